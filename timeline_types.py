"""
Shared types and utilities for the timeline scripts.

This module contains:
- Rule dataclasses describing the configured patterns
- Event dataclass for representing one chartable interval
- Error classes for fatal configuration/data problems
- ANSI color helpers for terminal output
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List
import os
import re
import sys


# Minimum chartable duration and lane merge tolerance.
CUTOFF = timedelta(seconds=1)
CUTOFF_NS = (CUTOFF // timedelta(microseconds=1)) * 1000


# ---------------------------------------------------------------------------
# ANSI color helpers
# ---------------------------------------------------------------------------

def _use_color() -> bool:
    # Status output goes to stderr so stdout can carry the rendered document.
    if os.environ.get("NO_COLOR") is not None:
        return False
    try:
        return sys.stderr.isatty()
    except Exception:
        return False


_COLOR = _use_color()


def _c(text: str, code: str) -> str:
    if not _COLOR:
        return text
    return f"\033[{code}m{text}\033[0m"


def c_label(text: str) -> str:
    return _c(text, "1;36")  # bold cyan


def c_value(text: str) -> str:
    return _c(text, "1;37")  # bold white


def c_ok(text: str) -> str:
    return _c(text, "1;32")  # bold green


def c_warn(text: str) -> str:
    return _c(text, "1;33")  # bold yellow


def c_dim(text: str) -> str:
    return _c(text, "2")  # dim


def status(text: str) -> None:
    print(text, file=sys.stderr)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class TimelineError(Exception):
    """Base class for errors that abort a timeline run."""


class ConfigError(TimelineError):
    """The configuration document is unreadable, malformed or has a bad pattern."""


class LineError(TimelineError):
    """A log line violates the configuration contract."""

    def __init__(self, message: str, line_num: int, line: bytes) -> None:
        self.line_num = line_num
        self.line = line
        text = line.decode("utf-8", errors="replace")
        super().__init__(f"Line {line_num}: {message}\n  {text[:150]}")


class UnparseableTimestampError(LineError):
    pass


class UnclassifiedLineError(LineError):
    pass


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DurationRule:
    pattern: re.Pattern[bytes]      # optional named groups h, m, s


@dataclass(frozen=True)
class TimestampRule:
    pattern: re.Pattern[bytes]      # group 1 is the timestamp text
    format: str                     # strptime format


@dataclass(frozen=True)
class ColorRule:
    pattern: re.Pattern[bytes]
    color: str                      # display color, opaque here
    group: int = 0                  # lane pool id


@dataclass(frozen=True)
class PatternSet:
    timestamp: TimestampRule
    durations: List[DurationRule] = field(default_factory=list)
    colors: List[ColorRule] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Event dataclass
# ---------------------------------------------------------------------------

@dataclass
class Event:
    start: datetime           # START of the interval (end - duration)
    end: datetime             # END timestamp (from log line)
    message: bytes            # raw log line
    color: int                # index into PatternSet.colors
    duration_ns: int
    lane: int = 0             # written by pack_lanes only

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


def duration_from_ns(nanoseconds: int) -> timedelta:
    """datetime only keeps microseconds; round the remainder."""
    return timedelta(microseconds=round(nanoseconds / 1000))

