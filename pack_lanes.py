"""
Assign timeline lanes to parsed events.

Events are sorted by start (ties: longest first) and placed greedily, one
lane pool per color group. An event reuses the first lane of its group whose
last event ends less than CUTOFF after the new event starts, so small
overlaps share a lane. Groups are then laid side by side in ascending group
id order, which turns per-group lane numbers into one global numbering.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from timeline_types import CUTOFF, ColorRule, Event


@dataclass
class PackedTimeline:
    events: List[Event]
    total_lanes: int
    group_offsets: Dict[int, Tuple[int, int]]   # group id -> (first lane, lane count)
    global_start: Optional[datetime]
    global_end: Optional[datetime]

    @property
    def global_duration_seconds(self) -> int:
        """Whole seconds between the earliest start and the latest end; 0 when empty."""
        if self.global_start is None or self.global_end is None:
            return 0
        return (self.global_end - self.global_start) // timedelta(seconds=1)


@dataclass
class LanePools:
    """Per-group lane end times, stored densely in ascending group id order."""
    slot_by_group: Dict[int, int]
    lanes: List[List[datetime]] = field(default_factory=list)

    @classmethod
    def from_color_rules(cls, color_rules: Sequence[ColorRule]) -> "LanePools":
        groups = sorted({rule.group for rule in color_rules})
        return cls(
            slot_by_group={group: slot for slot, group in enumerate(groups)},
            lanes=[[] for _ in groups],
        )

    def groups(self) -> List[int]:
        return sorted(self.slot_by_group)

    def lanes_for(self, group: int) -> List[datetime]:
        return self.lanes[self.slot_by_group[group]]


def sort_events(events: List[Event]) -> None:
    """Sort in place by start ascending, then end descending."""
    # start - end is more negative for a later end
    events.sort(key=lambda e: (e.start, e.start - e.end))


def place_event(lane_ends: List[datetime], event: Event) -> int:
    """
    Put *event* in the first lane it fits and return the lane's local index.

    The chosen lane's end time is overwritten with the event's end, even if
    that is earlier than the previous occupant's end.
    """
    for lane_id, lane_end in enumerate(lane_ends):
        if lane_end - event.start < CUTOFF:
            lane_ends[lane_id] = event.end
            return lane_id
    lane_ends.append(event.end)
    return len(lane_ends) - 1


def assign_lanes(events: Sequence[Event], color_rules: Sequence[ColorRule]) -> LanePools:
    """Assign local (per-group) lane numbers; *events* must already be sorted."""
    pools = LanePools.from_color_rules(color_rules)
    for event in events:
        group = color_rules[event.color].group
        event.lane = place_event(pools.lanes_for(group), event)
    return pools


def assign_offsets(pools: LanePools) -> Tuple[Dict[int, Tuple[int, int]], int]:
    """Give every group a base lane offset; returns (offsets, total lanes)."""
    offsets: Dict[int, Tuple[int, int]] = {}
    total_lanes = 0
    for group in pools.groups():
        count = len(pools.lanes_for(group))
        offsets[group] = (total_lanes, count)
        total_lanes += count
    return offsets, total_lanes


def pack_lanes(
    events: List[Event],
    color_rules: Sequence[ColorRule],
    global_start: Optional[datetime] = None,
    global_end: Optional[datetime] = None,
) -> PackedTimeline:
    """
    Sort *events* in place and give each one its final, global lane number.

    When the global range is not given it is computed from the events.
    """
    sort_events(events)
    pools = assign_lanes(events, color_rules)
    offsets, total_lanes = assign_offsets(pools)

    for event in events:
        event.lane += offsets[color_rules[event.color].group][0]

    if events and global_start is None:
        global_start = min(e.start for e in events)
    if events and global_end is None:
        global_end = max(e.end for e in events)

    return PackedTimeline(
        events=events,
        total_lanes=total_lanes,
        group_offsets=offsets,
        global_start=global_start,
        global_end=global_end,
    )
