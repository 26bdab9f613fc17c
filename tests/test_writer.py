import threading
import xml.etree.ElementTree as ET

import pytest

from extractor.errors import AggregatorClosed, OutputUnavailable
from extractor.writer import XmlAggregator


def test_document_is_wrapped_in_root_element(tmp_path):
    out = tmp_path / "out.xml"
    agg = XmlAggregator(out).open()
    agg.accept('<Event n="1"/>')
    agg.accept('  <Event n="2"/>\n')

    assert agg.finalize() == 2
    root = ET.parse(out).getroot()
    assert root.tag == "Events"
    assert [e.get("n") for e in root] == ["1", "2"]
    assert not agg.partial_path.exists()


def test_output_only_appears_on_finalize(tmp_path):
    out = tmp_path / "out.xml"
    agg = XmlAggregator(out).open()
    agg.accept("<Event/>")

    assert not out.exists()
    assert agg.partial_path.exists()
    agg.finalize()
    assert out.exists()


def test_empty_document_is_well_formed(tmp_path):
    out = tmp_path / "out.xml"
    agg = XmlAggregator(out).open()
    agg.finalize()

    assert len(ET.parse(out).getroot()) == 0


def test_accept_after_finalize_is_rejected(tmp_path):
    agg = XmlAggregator(tmp_path / "out.xml").open()
    agg.finalize()

    with pytest.raises(AggregatorClosed):
        agg.accept("<Event/>")
    with pytest.raises(AggregatorClosed):
        agg.finalize()


def test_accept_before_open_is_rejected(tmp_path):
    with pytest.raises(AggregatorClosed):
        XmlAggregator(tmp_path / "out.xml").accept("<Event/>")


def test_unopenable_output_is_reported(tmp_path):
    with pytest.raises(OutputUnavailable):
        XmlAggregator(tmp_path / "missing" / "out.xml").open()
    with pytest.raises(OutputUnavailable):
        XmlAggregator(tmp_path).open()


def test_abort_leaves_existing_output_untouched(tmp_path):
    out = tmp_path / "out.xml"
    out.write_text("previous run")

    with pytest.raises(RuntimeError):
        with XmlAggregator(out) as agg:
            agg.accept("<Event/>")
            raise RuntimeError("boom")

    assert out.read_text() == "previous run"
    assert not agg.partial_path.exists()
    with pytest.raises(AggregatorClosed):
        agg.accept("<Event/>")


def test_concurrent_accepts_never_interleave(tmp_path):
    out = tmp_path / "out.xml"
    agg = XmlAggregator(out).open()
    payload = "x" * 2048

    def producer(worker):
        for i in range(200):
            agg.accept(f'<Event w="{worker}" i="{i}">{payload}</Event>')

    threads = [threading.Thread(target=producer, args=(w,)) for w in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    agg.finalize()

    root = ET.parse(out).getroot()
    seen = {(e.get("w"), e.get("i")) for e in root}
    assert len(root) == 1600
    assert len(seen) == 1600
    assert all(e.text == payload for e in root)
