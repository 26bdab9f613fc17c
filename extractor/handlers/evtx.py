# extractor/handlers/evtx.py
import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import ExitStack, closing
from pathlib import Path

from Evtx.Evtx import Evtx

from ..config import EVTX_MAGIC
from ..errors import EvtxFileError, RecordDecodeError, SinkError
from ..filters import FilterConfig, matches
from ..records import EventRecord, decode_record
from ..reports import FileReport, FileStatus

logger = logging.getLogger(__name__)

Emit = Callable[[str], None]


class EvtxHandler:
    """
    Windows Event Log (.evtx) file worker.

    - `check_header` reads the EVTX magic so renamed or foreign files are
      rejected before python-evtx mmaps them; `validate_file_header` then
      rejects headers python-evtx cannot trust.
    - `iter_records` lazily yields one decoded record (or its decode error)
      at a time; it is consumed once per file.
    - `process_file` filters the records and hands each match to `emit`.

    File-level problems end up in the returned `FileReport`; they never
    propagate. Errors raised by `emit` (`SinkError`) do propagate.
    """

    EVTX_MAGIC = EVTX_MAGIC
    MAJOR_VERSION = 3
    MINOR_VERSION = 1
    HEADER_CHUNK_SIZE = 0x1000

    def check_header(self, path: Path) -> None:
        try:
            with path.open("rb") as f:
                sig = f.read(len(self.EVTX_MAGIC))
        except OSError as exc:
            raise EvtxFileError(f"cannot open {path}: {exc}") from exc
        if sig != self.EVTX_MAGIC:
            raise EvtxFileError(f"not an EVTX file (bad header magic): {path}")

    def validate_file_header(self, header, path: Path) -> None:
        """
        Reject files whose header python-evtx cannot trust.

        Major version, header chunk size and checksum must be right. A newer
        minor version or the dirty flag (log copied from a live system) only
        earn a warning.
        """
        if header.major_version() != self.MAJOR_VERSION:
            raise EvtxFileError(
                f"unsupported EVTX major version {header.major_version()}: {path}"
            )
        if header.header_chunk_size() != self.HEADER_CHUNK_SIZE:
            raise EvtxFileError(
                f"bad EVTX header chunk size {header.header_chunk_size():#x}: {path}"
            )
        if header.checksum() != header.calculate_checksum():
            raise EvtxFileError(f"EVTX header checksum mismatch: {path}")

        if header.minor_version() != self.MINOR_VERSION:
            logger.warning(
                "EVTX minor version %d in %s; reading anyway", header.minor_version(), path.name
            )
        if header.is_dirty():
            logger.warning("EVTX log %s is marked dirty; reading anyway", path.name)

    def iter_records(self, path: Path) -> Iterator[EventRecord | RecordDecodeError]:
        self.check_header(path)

        with ExitStack() as stack:
            try:
                log = stack.enter_context(Evtx(str(path)))
                header = log.get_file_header()
                self.validate_file_header(header, path)
                records = iter(log.records())
            except EvtxFileError:
                raise
            except Exception as exc:
                raise EvtxFileError(f"cannot open {path}: {exc}") from exc

            last_num = None
            while True:
                try:
                    record = next(records)
                except StopIteration:
                    return
                except Exception as exc:
                    # The chunk stream is unusable past this point
                    yield RecordDecodeError(
                        f"record stream broken after record {last_num}: {type(exc).__name__}: {exc}",
                        last_num,
                    )
                    return

                try:
                    last_num = record.record_num()
                    yield decode_record(record.xml(), last_num)
                except RecordDecodeError as err:
                    yield err
                except Exception as exc:
                    yield RecordDecodeError(f"{type(exc).__name__}: {exc}", last_num)

    def process_file(
        self,
        path: Path,
        config: FilterConfig,
        emit: Emit,
        stop_event: threading.Event | None = None,
    ) -> FileReport:
        """
        Filter one file and pass each matching fragment to `emit`, in record order.

        Args:
            path: EVTX file to read.
            config: Shared, immutable filter settings.
            emit: Receives the XML text of every matching record.
            stop_event: Checked between records; when set the file is abandoned
                and the report is marked cancelled.

        Returns:
            FileReport: counts for this file, or the reason it failed.
        """
        report = FileReport(path=path, status=FileStatus.COMPLETED)
        logger.debug("Processing EVTX file: %s", path)

        try:
            with closing(self.iter_records(path)) as items:
                for item in items:
                    if stop_event is not None and stop_event.is_set():
                        report.status = FileStatus.CANCELLED
                        report.reason = "stopped"
                        break

                    if isinstance(item, RecordDecodeError):
                        report.error_count += 1
                        logger.warning(
                            "Skipping record %s in %s: %s",
                            item.record_num if item.record_num is not None else "?",
                            path.name,
                            item,
                        )
                        continue

                    report.records_seen += 1
                    if matches(item, config):
                        emit(item.fragment)
                        report.matched_count += 1
        except SinkError:
            raise
        except Exception as exc:
            report.status = FileStatus.FAILED
            report.reason = str(exc)
            logger.warning("Skipping file %s: %s", path, exc)
            logger.debug("Failure detail for %s", path, exc_info=True)
            return report

        logger.info(
            "Matched %d of %d records from %s (%d record errors)",
            report.matched_count,
            report.records_seen,
            path.name,
            report.error_count,
        )
        return report

    def process(
        self,
        path: Path,
        config: FilterConfig,
        stop_event: threading.Event | None = None,
    ) -> tuple[list[str], FileReport]:
        """Like `process_file`, but collects the fragments and returns them."""
        fragments: list[str] = []
        report = self.process_file(path, config, fragments.append, stop_event)
        return fragments, report
