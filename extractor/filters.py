# extractor/filters.py
from dataclasses import dataclass, field
from datetime import date

from .errors import InvalidFilter
from .records import EventRecord
from .users import normalize_username


@dataclass(frozen=True)
class FilterConfig:
    """
    Selection criteria shared read-only by every worker.

    Each clause is independent and switched off by its "empty" value:
    - event_ids: empty set matches any event ID
    - start_date / end_date: None leaves that side of the range open
    - target_users: None disables user filtering (an empty set does not)
    """

    event_ids: frozenset[int] = field(default_factory=frozenset)
    start_date: date | None = None
    end_date: date | None = None
    target_users: frozenset[str] | None = None

    def __post_init__(self):
        # Accept any iterable but always store frozensets
        object.__setattr__(self, "event_ids", frozenset(self.event_ids))
        if self.target_users is not None:
            object.__setattr__(
                self, "target_users", frozenset(normalize_username(u) for u in self.target_users)
            )
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise InvalidFilter(
                f"start date {self.start_date.isoformat()} is after end date {self.end_date.isoformat()}"
            )

    def describe(self) -> str:
        ids = ",".join(str(i) for i in sorted(self.event_ids)) or "any"
        users = "any" if self.target_users is None else f"{len(self.target_users)} listed"
        start = self.start_date.isoformat() if self.start_date else "open"
        end = self.end_date.isoformat() if self.end_date else "open"
        return f"event_ids={ids} dates={start}..{end} users={users}"


def event_id_matches(record: EventRecord, config: FilterConfig) -> bool:
    return not config.event_ids or record.event_id in config.event_ids


def date_matches(record: EventRecord, config: FilterConfig) -> bool:
    if config.start_date is None and config.end_date is None:
        return True
    if record.timestamp is None:
        return False
    day = record.timestamp.date()
    if config.start_date is not None and day < config.start_date:
        return False
    if config.end_date is not None and day > config.end_date:
        return False
    return True


def user_matches(record: EventRecord, config: FilterConfig) -> bool:
    if config.target_users is None:
        return True
    # With a user filter active, records without an account are rejected
    if record.username is None:
        return False
    return normalize_username(record.username) in config.target_users


def matches(record: EventRecord, config: FilterConfig) -> bool:
    """True when `record` satisfies every active clause of `config`."""
    return (
        event_id_matches(record, config)
        and date_matches(record, config)
        and user_matches(record, config)
    )
