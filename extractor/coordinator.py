# extractor/coordinator.py
import logging
import threading
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed, wait
from datetime import date
from pathlib import Path

from .config import DEFAULT_EVENT_IDS, DEFAULT_THREADS
from .discovery import discover_evtx_files
from .errors import AllInputsFailed, NoInputFiles, SinkError
from .filters import FilterConfig
from .handlers.evtx import EvtxHandler
from .reports import FileReport, RunSummary
from .users import load_target_users
from .writer import XmlAggregator

logger = logging.getLogger(__name__)


class ParallelCoordinator:
    """
    Fan EVTX files out over a fixed thread pool and feed the aggregator.

    Each file goes to exactly one worker. In the default streaming mode workers
    call `aggregator.accept` themselves, one fragment at a time; output order is
    stable within a file and unspecified across files. With `ordered=True`
    each worker buffers its file's matches and the coordinator writes them in
    discovery order.
    """

    def __init__(
        self,
        handler: EvtxHandler,
        aggregator: XmlAggregator,
        threads: int = DEFAULT_THREADS,
        ordered: bool = False,
        stop_event: threading.Event | None = None,
    ):
        if threads < 1:
            raise ValueError(f"threads must be at least 1, got {threads}")
        self.handler = handler
        self.aggregator = aggregator
        self.threads = threads
        self.ordered = ordered
        self.stop_event = stop_event or threading.Event()

    def run(self, files: list[Path], config: FilterConfig) -> RunSummary:
        """Process every file and return per-file reports in discovery order."""
        summary = RunSummary()
        if not files:
            return summary

        workers = min(self.threads, len(files))
        logger.info(
            "Processing %d file(s) with %d thread(s); filter: %s",
            len(files),
            workers,
            config.describe(),
        )

        reports: dict[int, FileReport] = {}
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="evtx-worker") as executor:
            futures = [self._submit(executor, path, config) for path in files]
            try:
                if self.ordered:
                    self._drain_ordered(futures, files, reports)
                else:
                    self._drain(futures, files, reports)
            except KeyboardInterrupt:
                logger.warning("Interrupted; stopping workers and keeping finished output")
                summary.interrupted = True
                self._stop(futures)
                wait(futures)
                for i, future in enumerate(futures):
                    if i not in reports:
                        self._collect(i, future, files[i], reports)
            except SinkError:
                self._stop(futures)
                raise

        summary.reports = [reports[i] for i in range(len(files))]
        return summary

    def _submit(self, executor: ThreadPoolExecutor, path: Path, config: FilterConfig) -> Future:
        if self.ordered:
            return executor.submit(self.handler.process, path, config, self.stop_event)
        return executor.submit(
            self.handler.process_file, path, config, self.aggregator.accept, self.stop_event
        )

    def _drain(self, futures: list[Future], files: list[Path], reports: dict[int, FileReport]) -> None:
        index = {future: i for i, future in enumerate(futures)}
        for future in as_completed(futures):
            i = index[future]
            self._collect(i, future, files[i], reports)

    def _drain_ordered(
        self, futures: list[Future], files: list[Path], reports: dict[int, FileReport]
    ) -> None:
        for i, future in enumerate(futures):
            self._collect(i, future, files[i], reports)

    def _collect(
        self, i: int, future: Future, path: Path, reports: dict[int, FileReport]
    ) -> None:
        """
        Record the report for a finished future. In ordered mode the file's
        buffered fragments are written afterwards, so each file is written at
        most once even if the write is interrupted.
        """
        fragments: list[str] = []
        if future.cancelled():
            report = FileReport.cancelled(path)
        else:
            try:
                result = future.result()
            except SinkError:
                raise
            except Exception as exc:
                logger.error("Worker for %s crashed: %s", path, exc, exc_info=True)
                result = FileReport.failed(path, f"worker error: {exc}")

            if self.ordered and not isinstance(result, FileReport):
                fragments, report = result
            else:
                report = result

        reports[i] = report
        for fragment in fragments:
            self.aggregator.accept(fragment)

    def _stop(self, futures: Iterable[Future]) -> None:
        self.stop_event.set()
        for future in futures:
            future.cancel()


def log_summary(summary: RunSummary) -> None:
    for report in summary.failed:
        logger.warning("Failed: %s (%s)", report.path, report.reason)
    logger.info(
        "Processing complete: %d file(s) completed, %d failed, %d cancelled; "
        "%d event(s) matched, %d record error(s)",
        len(summary.completed),
        len(summary.failed),
        len(summary.cancelled),
        summary.matched,
        summary.record_errors,
    )


def run_extraction(
    input_path: str | Path,
    output_path: str | Path,
    *,
    users_file: str | Path | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    event_ids: Iterable[int] = DEFAULT_EVENT_IDS,
    threads: int = DEFAULT_THREADS,
    recursive: bool = True,
    ordered: bool = False,
    handler: EvtxHandler | None = None,
    stop_event: threading.Event | None = None,
) -> RunSummary:
    """
    Run the whole pipeline: discover, filter in parallel, write one document.

    Fatal problems raise an `ExtractorError` subclass, and in that case no
    document is left at `output_path`. Per-file and per-record problems are
    reported in the returned summary.
    """
    target_users = load_target_users(users_file)
    config = FilterConfig(
        event_ids=frozenset(event_ids),
        start_date=start_date,
        end_date=end_date,
        target_users=target_users,
    )

    files = discover_evtx_files(input_path, recursive=recursive)
    if not files:
        raise NoInputFiles(f"No .evtx files found under {input_path}")

    with XmlAggregator(output_path) as aggregator:
        coordinator = ParallelCoordinator(
            handler or EvtxHandler(),
            aggregator,
            threads=threads,
            ordered=ordered,
            stop_event=stop_event,
        )
        summary = coordinator.run(files, config)
        if summary.all_failed:
            log_summary(summary)
            raise AllInputsFailed(f"All {len(files)} input file(s) failed to open")
        summary.fragments_written = aggregator.finalize()

    log_summary(summary)
    return summary
