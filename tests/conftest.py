import copy
from datetime import datetime, timedelta

import pytest

from timeline_config import patterns_from_dict
from timeline_types import Event


BASE = datetime(2024, 3, 1, 12, 0, 0)

CONFIG = {
    "timestamp": {"pattern": r"^\[([^\]]+)\]", "format": "%Y-%m-%d %H:%M:%S"},
    "durations": [
        {"pattern": r"took (?:(?P<h>\d+)h)?(?:(?P<m>\d+)m)?(?:(?P<s>[\d.]+)s)?"},
    ],
    "colors": [
        {"pattern": "compile", "color": "#e41a1c"},
        {"pattern": "link", "color": "#4daf4a"},
        {"pattern": "test", "color": "#377eb8", "group": 1},
    ],
}


def make_event(start_s: float, end_s: float, color: int = 0) -> Event:
    start = BASE + timedelta(seconds=start_s)
    end = BASE + timedelta(seconds=end_s)
    return Event(
        start=start,
        end=end,
        message=f"event {start_s}-{end_s}".encode(),
        color=color,
        duration_ns=round((end_s - start_s) * 1e9),
    )


@pytest.fixture
def config_dict():
    return copy.deepcopy(CONFIG)


@pytest.fixture
def patterns(config_dict):
    return patterns_from_dict(config_dict)
