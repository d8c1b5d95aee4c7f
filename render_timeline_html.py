"""
Render a packed timeline as a self-contained HTML page.

Each event is drawn as a block on a canvas: x is its lane, y is the number of
seconds since the earliest event start, height is its duration. A zoom
slider scales the time axis; hovering a block shows its start/end time and
the original log line.
"""
from __future__ import annotations

from datetime import timedelta
import json
from typing import Any, Dict, List

from pack_lanes import PackedTimeline
from timeline_types import PatternSet


LANE_WIDTH = 20
MIN_GLOBAL_WIDTH = 400
_SECOND = timedelta(seconds=1)


def to_js(o: Any) -> str:
    # Keep "</script>" out of the embedded data.
    return json.dumps(o, ensure_ascii=False, separators=(",", ":")).replace("</", "<\\/")


def build_blocks(timeline: PackedTimeline) -> List[Dict[str, Any]]:
    blocks: List[Dict[str, Any]] = []
    for event in timeline.events:
        blocks.append(
            {
                "color": event.color,
                "start": str(event.start),
                "end": str(event.end),
                "msg": event.message.decode("utf-8", errors="replace"),
                "top": (event.start - timeline.global_start) // _SECOND,
                "height": event.duration // _SECOND,
                "lane": event.lane,
            }
        )
    return blocks


def build_payload(timeline: PackedTimeline, patterns: PatternSet) -> Dict[str, Any]:
    """Everything the page needs, as a JSON-serializable dict."""
    return {
        "total_lanes": timeline.total_lanes,
        "global_start": str(timeline.global_start) if timeline.global_start else None,
        "global_end": str(timeline.global_end) if timeline.global_end else None,
        "global_duration": timeline.global_duration_seconds,
        "colors": [rule.color for rule in patterns.colors],
        "group_offsets": {
            str(group): {"offset": offset, "lanes": count}
            for group, (offset, count) in timeline.group_offsets.items()
        },
        "blocks": build_blocks(timeline),
    }


def canvas_width(total_lanes: int) -> int:
    return max(MIN_GLOBAL_WIDTH, total_lanes * LANE_WIDTH)


def build_html(title: str, timeline: PackedTimeline, patterns: PatternSet) -> str:
    width = canvas_width(timeline.total_lanes)
    height = timeline.global_duration_seconds
    colors = [rule.color for rule in patterns.colors]
    blocks = build_blocks(timeline)
    safe_title = title.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")

    html = f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{safe_title}</title>
  <style>
    canvas {{
      position: absolute;
      left: 0.5em;
      top: 0.5em;
    }}
    #aux {{
      position: fixed;
      right: 0.5em;
      top: 0.5em;
      width: 30em;
      font-family: sans-serif;
      font-size: 0.75em;
    }}
  </style>
</head>
<body>
  <canvas id="lanes" width="{width}" height="{height}"></canvas>
  <canvas id="hover" width="{width}" height="{height}"></canvas>
  <div id="aux">
    <p>
      <label for="zoom"><strong>Zoom out:</strong></label>
      <input id="zoom" type="range" min="1" max="100" value="1">
      (<output for="zoom" id="zoom-val">1</output>&times;)
    </p>
    <p><strong>Start time:</strong> <span id="start-time"></span></p>
    <p><strong>End time:</strong> <span id="end-time"></span></p>
    <p><strong>Message:</strong><br/><span id="msg"></span></p>
  </div>
<script>
const zoom = document.getElementById('zoom');
const globalWidth = {width};
const globalHeight = {height};
const laneWidth = {LANE_WIDTH};
const colors = {to_js(colors)};
const blocks = {to_js(blocks)};

function render(z) {{
  const ctx = document.getElementById('lanes').getContext('2d');
  ctx.clearRect(0, 0, globalWidth, globalHeight);

  ctx.lineWidth = 1;
  ctx.font = 'sans-serif';
  ctx.textBaseline = 'top';
  ctx.textAlign = 'right';
  ctx.fillStyle = '#999';
  // Grid line every 5 minutes, darker on the hour.
  for (let i = 0; i < globalHeight; i += 300) {{
    const notHour = i % 3600;
    const x = notHour ? 0.85 : 0.75;
    const y = Math.round(i * z) + 0.5;
    ctx.strokeStyle = notHour ? '#999' : '#333';
    ctx.beginPath();
    ctx.moveTo(globalWidth * x, y);
    ctx.lineTo(globalWidth, y);
    ctx.stroke();
    ctx.fillText((i / 60 | 0) + 'm', globalWidth, y);
  }}

  for (const block of blocks) {{
    ctx.fillStyle = colors[block.color];
    ctx.fillRect(block.lane * laneWidth, block.top * z, laneWidth - 1, block.height * z);
  }}
}}

function findBlock(x, y) {{
  for (const block of blocks) {{
    if (block.top <= y && y <= block.top + block.height &&
        block.lane <= x && x <= block.lane + 1) {{
      return block;
    }}
  }}
  return null;
}}

document.addEventListener('DOMContentLoaded', () => render(1));

zoom.addEventListener('input', () => {{
  document.getElementById('zoom-val').value = zoom.value;
  render(1 / zoom.value);
}});

document.getElementById('hover').addEventListener('mousemove', function (e) {{
  const rect = this.getBoundingClientRect();
  const z = 1 / zoom.value;
  const xx = e.clientX - rect.left;
  const y = (e.clientY - rect.top) / z;
  const yy = Math.round(e.clientY - rect.top) + 0.5;
  const block = findBlock(xx / laneWidth, y);

  const ctx = this.getContext('2d');
  ctx.clearRect(0, 0, globalWidth, globalHeight);
  ctx.strokeStyle = 'rgba(255,0,0,0.5)';
  ctx.lineWidth = 1;
  ctx.font = 'sans-serif';
  ctx.textBaseline = 'top';
  ctx.textAlign = 'left';
  ctx.fillStyle = '#f88';
  ctx.beginPath();
  ctx.moveTo(0, yy);
  ctx.lineTo(globalWidth, yy);
  ctx.stroke();
  ctx.fillText((y / 60 | 0) + 'm' + (y % 60 | 0) + 's', globalWidth * 0.85, yy);

  if (block) {{
    ctx.strokeStyle = '#000';
    ctx.strokeRect(block.lane * laneWidth, block.top * z, laneWidth - 1, block.height * z);
    document.getElementById('start-time').innerText = block.start;
    document.getElementById('end-time').innerText = block.end;
    document.getElementById('msg').innerText = block.msg;
  }}
}});
</script>
</body>
</html>
"""
    return html
