from datetime import UTC, date, datetime

import pytest

from extractor.errors import InvalidFilter
from extractor.filters import FilterConfig, matches
from extractor.records import EventRecord


def _record(event_id=4624, ts=datetime(2024, 8, 18, 12, 0, tzinfo=UTC), username="jdoe"):
    return EventRecord(event_id=event_id, timestamp=ts, username=username, fragment="<Event/>")


def test_empty_config_matches_everything():
    config = FilterConfig()
    assert matches(_record(), config)
    assert matches(_record(event_id=1, ts=None, username=None), config)


def test_event_id_allow_list():
    config = FilterConfig(event_ids={4624, 4625})
    assert matches(_record(event_id=4625), config)
    assert not matches(_record(event_id=4688), config)


def test_clauses_are_conjunctive():
    """An allowed event ID does not rescue a record outside the date range."""
    config = FilterConfig(event_ids={4624}, start_date=date(2024, 8, 19))
    assert not matches(_record(event_id=4624), config)


def test_boundary_days_are_inclusive():
    config = FilterConfig(start_date=date(2024, 8, 18), end_date=date(2024, 8, 20))

    assert matches(_record(ts=datetime(2024, 8, 18, 0, 0, tzinfo=UTC)), config)
    assert matches(_record(ts=datetime(2024, 8, 20, 23, 59, 59, 999999, tzinfo=UTC)), config)
    assert not matches(_record(ts=datetime(2024, 8, 17, 23, 59, 59, tzinfo=UTC)), config)
    assert not matches(_record(ts=datetime(2024, 8, 21, 0, 0, tzinfo=UTC)), config)


def test_open_ended_ranges():
    assert matches(_record(), FilterConfig(start_date=date(2024, 8, 18)))
    assert not matches(_record(), FilterConfig(end_date=date(2024, 8, 17)))


def test_missing_timestamp_rejected_only_when_dates_are_active():
    record = _record(ts=None)
    assert matches(record, FilterConfig())
    assert not matches(record, FilterConfig(start_date=date(2020, 1, 1)))


def test_user_filter_is_case_insensitive():
    config = FilterConfig(target_users={"JDoe"})
    assert matches(_record(username="jdoe"), config)
    assert matches(_record(username="JDOE"), config)
    assert not matches(_record(username="alice"), config)


def test_user_filter_rejects_records_without_username():
    config = FilterConfig(target_users={"jdoe"})
    assert not matches(_record(username=None), config)


def test_empty_user_set_rejects_everything():
    assert not matches(_record(), FilterConfig(target_users=frozenset()))


def test_start_after_end_is_invalid():
    with pytest.raises(InvalidFilter):
        FilterConfig(start_date=date(2024, 9, 1), end_date=date(2024, 8, 1))


def test_config_is_immutable():
    config = FilterConfig(event_ids=[4624])
    assert config.event_ids == frozenset({4624})
    with pytest.raises(AttributeError):
        config.event_ids = frozenset()
