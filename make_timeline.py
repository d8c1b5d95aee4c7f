#!/usr/bin/env python3
"""
Build an interactive execution timeline from a plain-text log.

Usage:
    python3 make_timeline.py -c timeline.yml build.log [OPTIONS]

Options:
    -c, --config PATH   Pattern configuration (default: $TIMELINE_CONFIG)
    -o, --output PATH   HTML output (default: renders/<log stem>.html, "-" for stdout)
    --json PATH         Also write the computed timeline as JSON
    --stats             Print per-category duration statistics
    --title TEXT        Page title (default: "Execution timeline")

Status messages go to stderr.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from pack_lanes import pack_lanes
from parse_timeline import read_events_from_log
from render_timeline_html import build_html, build_payload
from timeline_config import CONFIG_ENV_VAR, load_patterns
from timeline_stats import compute_category_stats, print_category_stats
from timeline_types import TimelineError, c_label, c_ok, c_value, c_warn, status


DEFAULT_TITLE = "Execution timeline"


def die(msg: str) -> None:
    print(f"Error: {msg}", file=sys.stderr)
    sys.exit(1)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render a lane-packed timeline from an execution log.")
    parser.add_argument("log", help="Log file to read")
    parser.add_argument("-c", "--config", help=f"Pattern configuration file (default: ${CONFIG_ENV_VAR})")
    parser.add_argument("-o", "--output", help="HTML output path, '-' for stdout (default: renders/<log>.html)")
    parser.add_argument("--json", dest="json_path", help="Also write the timeline as JSON to this path")
    parser.add_argument("--stats", action="store_true", help="Print per-category duration statistics")
    parser.add_argument("--title", default=DEFAULT_TITLE, help="Page title")
    return parser.parse_args(argv)


def default_output(log_path: Path) -> Path:
    return Path("renders") / f"{log_path.stem}.html"


def run(args: argparse.Namespace) -> None:
    patterns = load_patterns(args.config)
    log_path = Path(args.log)
    status(f"{c_label('Log:')} {c_value(str(log_path))}")

    builder = read_events_from_log(log_path, patterns)
    status(f"{c_label('Lines:')} {c_value(str(builder.lines_total))}")
    status(f"{c_label('Events:')} {c_value(str(len(builder.events)))}")
    if not builder.events:
        status(f"{c_warn('WARNING:')} no events matched; the timeline is empty")

    timeline = pack_lanes(builder.events, patterns.colors, builder.global_start, builder.global_end)
    status(f"{c_label('Lanes:')} {c_value(str(timeline.total_lanes))}")
    status(f"{c_label('Duration:')} {c_value(str(timeline.global_duration_seconds))}s")

    if args.stats:
        print_category_stats(compute_category_stats(timeline.events, patterns.colors))

    html = build_html(args.title, timeline, patterns)
    if args.output == "-":
        sys.stdout.write(html)
        sys.stdout.flush()
    else:
        out_path = Path(args.output) if args.output else default_output(log_path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(html, encoding="utf-8")
        status(f"{c_ok('Done.')} Timeline written to {c_value(str(out_path))}")

    if args.json_path:
        json_path = Path(args.json_path)
        json_path.parent.mkdir(parents=True, exist_ok=True)
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump(build_payload(timeline, patterns), f, indent=2, ensure_ascii=False)
        status(f"{c_ok('Done.')} JSON written to {c_value(str(json_path))}")


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    try:
        run(args)
    except (TimelineError, OSError) as e:
        die(str(e))


if __name__ == "__main__":
    main()
