# extractor/records.py
"""
Turn one rendered EVTX record (python-evtx XML) into an `EventRecord`.

Only the fields the filter needs are pulled out: event ID, creation time and
the account name the event is about. The original XML text is kept verbatim as
the output fragment.
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import UTC, datetime

from dateutil import parser as dtp

from .errors import RecordDecodeError

# Fields consulted, in order, for the account an event is about.
USERNAME_FIELDS = ("TargetUserName", "SubjectUserName")
# Placeholders Windows writes when no account applies.
EMPTY_USERNAMES = frozenset({"", "-"})

MAX_EVENT_ID = 0xFFFFFFFF


@dataclass(frozen=True)
class EventRecord:
    event_id: int
    timestamp: datetime | None  # always UTC-aware when present
    username: str | None
    fragment: str
    record_num: int | None = None


def _get_nsmap(root: ET.Element) -> dict[str, str]:
    nsmap: dict[str, str] = {}
    if root.tag.startswith("{"):
        nsmap["e"] = root.tag[1:].split("}")[0]
    return nsmap


def _get_child(parent: ET.Element, tag: str, ns: dict[str, str]) -> ET.Element | None:
    if ns:
        el = parent.find(f"e:{tag}", ns)
        if el is not None:
            return el
    return parent.find(tag)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def strip_declaration(xml: str) -> str:
    """Drop a leading `<?xml ...?>` declaration so the record nests in a document."""
    xml = xml.strip()
    if xml.startswith("<?xml"):
        xml = xml.split("?>", 1)[1].lstrip()
    return xml


def event_fields(root: ET.Element, ns: dict[str, str]) -> dict[str, str]:
    """
    Collect the named payload fields of an event.

    `EventData/Data[@Name]` is the usual shape; events that carry a `UserData`
    block instead contribute their leaf elements by local name.
    """
    fields: dict[str, str] = {}
    event_data = _get_child(root, "EventData", ns)
    if event_data is not None:
        for d in event_data:
            if _local_name(d.tag) != "Data":
                continue
            name = d.get("Name")
            if name:
                fields[name] = (d.text or "").strip()
    if fields:
        return fields

    user_data = _get_child(root, "UserData", ns)
    if user_data is not None:
        for el in user_data.iter():
            if len(el) == 0 and el is not user_data:
                fields.setdefault(_local_name(el.tag), (el.text or "").strip())
    return fields


def extract_username(fields: dict[str, str]) -> str | None:
    """
    The single rule for "which account is this event about".

    `TargetUserName` wins; `SubjectUserName` is the fallback. Empty values and
    the `-` placeholder count as missing. Returns None when neither applies.
    """
    for name in USERNAME_FIELDS:
        value = fields.get(name)
        if value is not None and value.strip() not in EMPTY_USERNAMES:
            return value.strip()
    return None


def parse_system_time(value: str) -> datetime:
    """
    Parse a `TimeCreated/@SystemTime` value into an aware UTC datetime.

    python-evtx renders `2016-07-08 18:12:51.681640`; other tools emit ISO
    strings with `T`/`Z` or a trailing ` UTC`. Naive values are taken as UTC.
    """
    ts = dtp.parse(value)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def decode_record(xml: str, record_num: int | None = None) -> EventRecord:
    """
    Build an `EventRecord` from a record's XML rendering.

    Raises:
        RecordDecodeError: unparseable XML, no usable `EventID`, or a
            `SystemTime` that is not a timestamp.
    """
    fragment = strip_declaration(xml)
    try:
        root = ET.fromstring(fragment)
    except ET.ParseError as exc:
        raise RecordDecodeError(f"malformed record XML: {exc}", record_num) from exc

    ns = _get_nsmap(root)
    system = _get_child(root, "System", ns)
    if system is None:
        raise RecordDecodeError("record has no System element", record_num)

    event_id_el = _get_child(system, "EventID", ns)
    if event_id_el is None or not (event_id_el.text or "").strip():
        raise RecordDecodeError("record has no EventID", record_num)
    try:
        event_id = int(event_id_el.text.strip())
    except ValueError as exc:
        raise RecordDecodeError(f"non-numeric EventID {event_id_el.text!r}", record_num) from exc
    if not 0 <= event_id <= MAX_EVENT_ID:
        raise RecordDecodeError(f"EventID out of range: {event_id}", record_num)

    timestamp = None
    time_el = _get_child(system, "TimeCreated", ns)
    system_time = time_el.get("SystemTime") if time_el is not None else None
    if system_time:
        try:
            timestamp = parse_system_time(system_time)
        except (ValueError, OverflowError) as exc:
            raise RecordDecodeError(f"bad SystemTime {system_time!r}", record_num) from exc

    return EventRecord(
        event_id=event_id,
        timestamp=timestamp,
        username=extract_username(event_fields(root, ns)),
        fragment=fragment,
        record_num=record_num,
    )
