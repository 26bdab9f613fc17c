import json
import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from extractor.handlers import evtx as evtx_module

MAGIC = b"ElfFile\x00"
EVENT_NS = "http://schemas.microsoft.com/win/2004/08/events/event"


def event_xml(
    event_id,
    system_time="2024-08-18 13:45:55.479781",
    target_user=None,
    subject_user=None,
    record_id=1,
):
    """Render a Security event the way python-evtx lays it out."""
    data = []
    if subject_user is not None:
        data.append(f'<Data Name="SubjectUserName">{subject_user}</Data>')
    if target_user is not None:
        data.append(f'<Data Name="TargetUserName">{target_user}</Data>')
    data.append('<Data Name="LogonType">3</Data>')
    time_el = f'<TimeCreated SystemTime="{system_time}"></TimeCreated>' if system_time else ""
    return (
        f'<Event xmlns="{EVENT_NS}"><System>'
        '<Provider Name="Microsoft-Windows-Security-Auditing"></Provider>'
        f'<EventID Qualifiers="">{event_id}</EventID>'
        f"{time_el}"
        f"<EventRecordID>{record_id}</EventRecordID>"
        "<Channel>Security</Channel><Computer>DC01.corp.local</Computer>"
        f'</System><EventData>{"".join(data)}</EventData></Event>'
    )


def write_fake_evtx(path: Path, records: list) -> Path:
    """
    Write a stand-in EVTX file: the real header magic followed by a JSON list.

    Each entry is either record XML, {"error": msg} for a record whose
    rendering fails, or {"stream_error": msg} for a broken chunk stream.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(MAGIC + json.dumps(records).encode("utf-8"))
    return path


def record_ids(output: Path) -> list[int]:
    """EventRecordIDs in document order; parsing also proves well-formedness."""
    root = ET.parse(output).getroot()
    assert root.tag == "Events"
    return [
        int(event.find(f"{{{EVENT_NS}}}System/{{{EVENT_NS}}}EventRecordID").text)
        for event in root
    ]


class FakeRecord:
    def __init__(self, num, spec):
        self._num = num
        self._spec = spec

    def record_num(self):
        return self._num

    def xml(self):
        if isinstance(self._spec, dict):
            raise ValueError(self._spec["error"])
        return self._spec


class FakeHeader:
    """A header that passes every check python-evtx's FileHeader exposes."""

    def major_version(self):
        return 3

    def minor_version(self):
        return 1

    def header_chunk_size(self):
        return 0x1000

    def checksum(self):
        return 0x1234

    def calculate_checksum(self):
        return 0x1234

    def is_dirty(self):
        return False


class FakeEvtx:
    """Drop-in for Evtx.Evtx.Evtx reading files made by write_fake_evtx."""

    def __init__(self, filename):
        self._filename = filename
        self._records = None

    def __enter__(self):
        raw = Path(self._filename).read_bytes()
        self._records = json.loads(raw[len(MAGIC):].decode("utf-8"))
        return self

    def __exit__(self, exc_type, exc, tb):
        self._records = None
        return False

    def get_file_header(self):
        return FakeHeader()

    def records(self):
        for i, spec in enumerate(self._records, start=1):
            if isinstance(spec, dict) and "stream_error" in spec:
                raise ValueError(spec["stream_error"])
            yield FakeRecord(i, spec)


@pytest.fixture
def fake_evtx(monkeypatch):
    monkeypatch.setattr(evtx_module, "Evtx", FakeEvtx)
    return FakeEvtx


def write_bad_header_evtx(path: Path, fill: bytes = b"\x00") -> Path:
    """Correct magic, nonsense header: real python-evtx must reject it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(MAGIC + fill * (0x1000 - len(MAGIC)))
    return path
