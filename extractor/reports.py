# extractor/reports.py
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class FileStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class FileReport:
    """Outcome of processing one EVTX file."""

    path: Path
    status: FileStatus
    records_seen: int = 0
    matched_count: int = 0
    error_count: int = 0
    reason: str | None = None

    @classmethod
    def failed(cls, path: Path, reason: str) -> "FileReport":
        return cls(path=path, status=FileStatus.FAILED, reason=reason)

    @classmethod
    def cancelled(cls, path: Path) -> "FileReport":
        return cls(path=path, status=FileStatus.CANCELLED, reason="cancelled before start")


@dataclass
class RunSummary:
    reports: list[FileReport] = field(default_factory=list)
    fragments_written: int = 0
    interrupted: bool = False

    def _with(self, status: FileStatus) -> list[FileReport]:
        return [r for r in self.reports if r.status is status]

    @property
    def completed(self) -> list[FileReport]:
        return self._with(FileStatus.COMPLETED)

    @property
    def failed(self) -> list[FileReport]:
        return self._with(FileStatus.FAILED)

    @property
    def cancelled(self) -> list[FileReport]:
        return self._with(FileStatus.CANCELLED)

    @property
    def matched(self) -> int:
        return sum(r.matched_count for r in self.reports)

    @property
    def record_errors(self) -> int:
        return sum(r.error_count for r in self.reports)

    @property
    def all_failed(self) -> bool:
        return bool(self.reports) and len(self.failed) == len(self.reports)
