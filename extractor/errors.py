"""
Exception taxonomy for evtx-extractor.

Anything deriving from `ExtractorError` that escapes `run_extraction` is fatal
for the run. `EvtxFileError` and `RecordDecodeError` are recoverable: the file
worker absorbs them into its `FileReport`.
"""


class ExtractorError(Exception):
    """Base class for every error raised by this package."""


# -----------------------
# Fatal, raised before any worker starts
# -----------------------
class InputNotFound(ExtractorError):
    pass


class InputUnreadable(ExtractorError):
    pass


class NoInputFiles(ExtractorError):
    pass


class UsersFileUnreadable(ExtractorError):
    pass


class InvalidFilter(ExtractorError):
    pass


class OutputUnavailable(ExtractorError):
    pass


# -----------------------
# Fatal, raised after workers finish
# -----------------------
class AllInputsFailed(ExtractorError):
    pass


# -----------------------
# Output sink; these propagate through workers untouched
# -----------------------
class SinkError(ExtractorError):
    pass


class AggregatorClosed(SinkError):
    pass


class OutputWriteError(SinkError):
    pass


# -----------------------
# Recoverable
# -----------------------
class EvtxFileError(ExtractorError):
    """A whole file could not be opened or is not an EVTX log."""


class RecordDecodeError(ExtractorError):
    """A single record could not be rendered or understood."""

    def __init__(self, message: str, record_num: int | None = None):
        super().__init__(message)
        self.record_num = record_num
