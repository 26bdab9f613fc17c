# extractor/writer.py
import logging
import os
import threading
from pathlib import Path

from .config import PARTIAL_SUFFIX, ROOT_ELEMENT, XML_DECLARATION
from .errors import AggregatorClosed, OutputUnavailable, OutputWriteError

logger = logging.getLogger(__name__)


class XmlAggregator:
    """
    Sole owner of the output document.

    The document is built in `<output>.partial` and renamed onto the output
    path by `finalize()`, so the output path only ever holds a complete
    document. `accept()` may be called from any number of threads; writes are
    serialized under one lock so fragments never interleave.

    Lifecycle: `open()` -> `accept()`* -> `finalize()` (or `abort()`).
    """

    def __init__(self, output_path: str | Path, root_element: str = ROOT_ELEMENT):
        self.output_path = Path(output_path)
        self.partial_path = self.output_path.with_name(self.output_path.name + PARTIAL_SUFFIX)
        self.root_element = root_element
        self.fragments_written = 0
        self._lock = threading.Lock()
        self._fh = None
        self._state = "new"  # new -> open -> finalized | aborted

    @property
    def is_open(self) -> bool:
        return self._state == "open"

    def open(self) -> "XmlAggregator":
        """
        Create the partial document and write its prologue.

        Raises:
            OutputUnavailable: the output location cannot be written.
        """
        with self._lock:
            if self._state != "new":
                raise AggregatorClosed(f"aggregator for {self.output_path} already {self._state}")
            if self.output_path.is_dir():
                raise OutputUnavailable(f"Output path is a directory: {self.output_path}")
            try:
                self._fh = self.partial_path.open("w", encoding="utf-8", newline="\n")
                self._fh.write(f"{XML_DECLARATION}\n<{self.root_element}>\n")
            except OSError as exc:
                self._discard()
                raise OutputUnavailable(f"Cannot open output {self.output_path}: {exc}") from exc
            self._state = "open"
        logger.info("Writing matched events to output file: %s", self.output_path)
        return self

    def accept(self, fragment: str) -> None:
        """Append one record fragment. Thread-safe."""
        with self._lock:
            if self._state != "open":
                raise AggregatorClosed(f"cannot accept fragment: aggregator is {self._state}")
            try:
                self._fh.write(fragment.strip())
                self._fh.write("\n")
            except OSError as exc:
                raise OutputWriteError(f"Write to {self.partial_path} failed: {exc}") from exc
            self.fragments_written += 1

    def finalize(self) -> int:
        """
        Close the root element, flush, and move the document into place.

        Returns the number of fragments written. Further `accept` calls raise
        `AggregatorClosed`.
        """
        with self._lock:
            if self._state != "open":
                raise AggregatorClosed(f"cannot finalize: aggregator is {self._state}")
            try:
                self._fh.write(f"</{self.root_element}>\n")
                self._fh.flush()
                os.fsync(self._fh.fileno())
                self._fh.close()
                self._fh = None
                os.replace(self.partial_path, self.output_path)
            except OSError as exc:
                self._state = "aborted"
                self._discard()
                raise OutputWriteError(f"Finalizing {self.output_path} failed: {exc}") from exc
            self._state = "finalized"

        logger.info("Wrote %d event(s) to %s", self.fragments_written, self.output_path)
        return self.fragments_written

    def abort(self) -> None:
        """Drop the partial document; the output path is left untouched."""
        with self._lock:
            if self._state in ("finalized", "aborted"):
                return
            self._state = "aborted"
            self._discard()
        logger.debug("Discarded partial output %s", self.partial_path)

    def _discard(self) -> None:
        if self._fh is not None:
            try:
                self._fh.close()
            except OSError as exc:
                logger.debug("Closing %s failed: %s", self.partial_path, exc)
            self._fh = None
        self.partial_path.unlink(missing_ok=True)

    def __enter__(self) -> "XmlAggregator":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        # Anything not finalized by now is incomplete
        if self._state != "finalized":
            self.abort()
