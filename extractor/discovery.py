# extractor/discovery.py
import logging
import os
from pathlib import Path

from .config import EVTX_SUFFIX
from .errors import InputNotFound, InputUnreadable

logger = logging.getLogger(__name__)


def is_evtx_name(path: Path) -> bool:
    return path.suffix.lower() == EVTX_SUFFIX


def discover_evtx_files(input_path: str | Path, recursive: bool = True) -> list[Path]:
    """
    Resolve `input_path` into the ordered list of EVTX files to process.

    - A regular file is returned as-is, whatever its extension.
    - A directory yields every `*.evtx` file (case-insensitive) below it,
      or only its direct children when `recursive` is False.

    The result is sorted lexicographically so repeated runs see the same order.
    An empty list is a valid result; the caller decides whether that is fatal.

    Raises:
        InputNotFound: `input_path` does not exist.
        InputUnreadable: it exists but cannot be opened or listed.
    """
    path = Path(input_path)
    if not path.exists():
        raise InputNotFound(f"Input path does not exist: {path}")

    if path.is_file():
        try:
            with path.open("rb"):
                pass
        except OSError as exc:
            raise InputUnreadable(f"Cannot open input file {path}: {exc}") from exc
        return [path]

    if not path.is_dir():
        raise InputUnreadable(f"Input path is neither a file nor a directory: {path}")

    try:
        top_level = list(path.iterdir())
    except OSError as exc:
        raise InputUnreadable(f"Cannot list input directory {path}: {exc}") from exc

    if recursive:
        found = []

        def _skip(err: OSError) -> None:
            logger.warning("Skipping unreadable directory %s: %s", err.filename, err)

        for dirpath, _dirnames, filenames in os.walk(path, onerror=_skip):
            for name in filenames:
                candidate = Path(dirpath) / name
                if is_evtx_name(candidate) and candidate.is_file():
                    found.append(candidate)
    else:
        found = [p for p in top_level if is_evtx_name(p) and p.is_file()]

    files = sorted(found, key=lambda p: str(p))
    logger.info(
        "Discovered %d EVTX file(s) under %s (%s)",
        len(files),
        path,
        "recursive" if recursive else "flat",
    )
    return files
