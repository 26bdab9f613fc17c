# extractor/cli.py
import argparse
import logging
import sys
from datetime import date, datetime

from . import __version__
from .config import DEFAULT_EVENT_IDS, DEFAULT_THREADS, LOG_FORMAT, LOG_LEVEL
from .coordinator import run_extraction
from .errors import ExtractorError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INTERRUPTED = 130


def _date_arg(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, use YYYY-MM-DD") from None


def _event_ids_arg(value: str) -> frozenset[int]:
    ids = set()
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            event_id = int(part)
        except ValueError:
            raise argparse.ArgumentTypeError(f"invalid event ID {part!r}") from None
        if not 0 <= event_id <= 0xFFFFFFFF:
            raise argparse.ArgumentTypeError(f"event ID out of range: {event_id}")
        ids.add(event_id)
    if not ids:
        raise argparse.ArgumentTypeError("no event IDs given (use --all-events to match any)")
    return frozenset(ids)


def _threads_arg(value: str) -> int:
    try:
        threads = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid thread count {value!r}") from None
    if threads < 1:
        raise argparse.ArgumentTypeError("thread count must be at least 1")
    return threads


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="evtx-extract",
        description="Extract matching records from .evtx files into a single XML document.",
    )
    p.add_argument("-i", "--input-path", required=True,
                   help="Path to an .evtx file or a directory of them.")
    p.add_argument("-o", "--output-file", required=True,
                   help="Path to the output XML file.")
    p.add_argument("-u", "--users-file",
                   help="File with one target username per line (optional).")
    p.add_argument("-s", "--start-date", type=_date_arg,
                   help="Keep events on or after this day, YYYY-MM-DD (optional).")
    p.add_argument("-e", "--end-date", type=_date_arg,
                   help="Keep events on or before this day, YYYY-MM-DD (optional).")
    p.add_argument("-t", "--threads", type=_threads_arg, default=DEFAULT_THREADS,
                   help=f"Worker threads (default: {DEFAULT_THREADS}).")

    ids = p.add_mutually_exclusive_group()
    ids.add_argument("--event-ids", type=_event_ids_arg, default=DEFAULT_EVENT_IDS,
                     help="Comma-separated event IDs to keep (default: "
                          + ",".join(str(i) for i in sorted(DEFAULT_EVENT_IDS)) + ").")
    ids.add_argument("--all-events", action="store_true",
                     help="Keep events of any ID.")

    p.add_argument("--no-recursive", dest="recursive", action="store_false",
                   help="Only scan the top level of an input directory.")
    p.add_argument("--ordered", action="store_true",
                   help="Write events in file discovery order (buffers each file's matches).")

    verbosity = p.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Warnings and errors only.")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.getLevelName(LOG_LEVEL)
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.quiet)

    try:
        summary = run_extraction(
            args.input_path,
            args.output_file,
            users_file=args.users_file,
            start_date=args.start_date,
            end_date=args.end_date,
            event_ids=frozenset() if args.all_events else args.event_ids,
            threads=args.threads,
            recursive=args.recursive,
            ordered=args.ordered,
        )
    except ExtractorError as exc:
        logger.error("%s", exc)
        return EXIT_FATAL
    except KeyboardInterrupt:
        logger.warning("Interrupted before the run completed; %s may be missing", args.output_file)
        return EXIT_INTERRUPTED

    if summary.interrupted:
        logger.warning("Run interrupted; %s holds a partial result", args.output_file)
        return EXIT_INTERRUPTED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
