"""
Per-category duration statistics for a parsed timeline.

For every color rule that has at least one event, computes the event count,
total/mean/66th-percentile/max duration in seconds.
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np

from timeline_types import ColorRule, Event, c_dim, c_label, c_value, status


@dataclass
class CategoryStats:
    color_index: int
    color: str
    group: int
    count: int
    total_sec: float
    mean_sec: float
    p66_sec: float
    max_sec: float


def compute_category_stats(events: Sequence[Event], color_rules: Sequence[ColorRule]) -> List[CategoryStats]:
    durations_by_color: Dict[int, List[float]] = {}
    for event in events:
        durations_by_color.setdefault(event.color, []).append(event.duration_ns / 1e9)

    stats: List[CategoryStats] = []
    for color_index in sorted(durations_by_color):
        durations = np.array(durations_by_color[color_index])
        rule = color_rules[color_index]
        stats.append(
            CategoryStats(
                color_index=color_index,
                color=rule.color,
                group=rule.group,
                count=int(durations.size),
                total_sec=float(durations.sum()),
                mean_sec=float(durations.mean()),
                p66_sec=float(np.percentile(durations, 66)),
                max_sec=float(durations.max()),
            )
        )
    return stats


def print_category_stats(stats: Sequence[CategoryStats]) -> None:
    for s in stats:
        pattern = f"colors[{s.color_index}]"
        status(f"\n{c_label(pattern)} color={c_value(s.color)} group={c_value(str(s.group))}")
        status(f"  {c_dim('Events:')} {s.count}")
        status(f"  {c_dim('Total:')} {s.total_sec:.3f}s")
        status(f"  {c_dim('Mean / 66p / max:')} {s.mean_sec:.3f}s / {s.p66_sec:.3f}s / {s.max_sec:.3f}s")
