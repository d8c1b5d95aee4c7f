"""Tests for render_timeline_html.py"""

from datetime import datetime, timedelta
import json

from conftest import make_event
from pack_lanes import pack_lanes
from render_timeline_html import (
    LANE_WIDTH,
    MIN_GLOBAL_WIDTH,
    build_blocks,
    build_html,
    build_payload,
    canvas_width,
)
from timeline_types import Event


def _timeline(patterns, events):
    return pack_lanes(events, patterns.colors)


class TestBuildBlocks:
    def test_block_fields(self, patterns):
        timeline = _timeline(patterns, [make_event(10, 15.9, color=1), make_event(0, 4)])
        blocks = build_blocks(timeline)
        assert [b["top"] for b in blocks] == [0, 10]
        assert [b["height"] for b in blocks] == [4, 5]
        assert blocks[1]["color"] == 1
        assert blocks[0]["start"] == "2024-03-01 12:00:00"
        assert blocks[0]["end"] == "2024-03-01 12:00:04"
        assert blocks[0]["msg"] == "event 0-4"

    def test_invalid_utf8_is_replaced(self, patterns):
        event = make_event(0, 4)
        event.message = b"compile \xff took 4s"
        blocks = build_blocks(_timeline(patterns, [event]))
        assert blocks[0]["msg"] == "compile \ufffd took 4s"

    def test_whole_seconds_are_exact_for_long_spans(self, patterns):
        start = datetime(1, 1, 1)
        end = datetime(9000, 1, 1) - timedelta(microseconds=1)
        event = Event(start=start, end=end, message=b"compile", color=0, duration_ns=0)
        blocks = build_blocks(_timeline(patterns, [event]))
        assert blocks[0]["top"] == 0
        assert blocks[0]["height"] == (datetime(9000, 1, 1) - start).days * 86400 - 1


class TestBuildHtml:
    def test_canvas_width(self):
        assert canvas_width(0) == MIN_GLOBAL_WIDTH
        assert canvas_width(100) == 100 * LANE_WIDTH

    def test_document(self, patterns):
        timeline = _timeline(patterns, [make_event(0, 90), make_event(30, 120, color=2)])
        html = build_html("Build <main>", timeline, patterns)
        assert html.startswith("<!DOCTYPE html>")
        assert "<title>Build &lt;main&gt;</title>" in html
        assert 'width="400" height="120"' in html
        assert '"#377eb8"' in html
        assert "const laneWidth = 20;" in html

    def test_script_close_tag_in_message_is_escaped(self, patterns):
        event = make_event(0, 4)
        event.message = b"compile </script><b>x</b> took 4s"
        html = build_html("t", _timeline(patterns, [event]), patterns)
        assert html.count("</script>") == 1

    def test_empty_timeline(self, patterns):
        html = build_html("t", _timeline(patterns, []), patterns)
        assert 'height="0"' in html
        assert "const blocks = [];" in html


def test_payload_is_json_serializable(patterns):
    timeline = _timeline(patterns, [make_event(0, 5), make_event(1, 3, color=2)])
    payload = json.loads(json.dumps(build_payload(timeline, patterns)))
    assert payload["total_lanes"] == 2
    assert payload["global_duration"] == 5
    assert payload["colors"] == ["#e41a1c", "#4daf4a", "#377eb8"]
    assert payload["group_offsets"] == {"0": {"offset": 0, "lanes": 1}, "1": {"offset": 1, "lanes": 1}}
    assert [b["lane"] for b in payload["blocks"]] == [0, 1]
