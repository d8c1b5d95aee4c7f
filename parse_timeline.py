"""
Parse an execution log into timeline events.

Every line goes through the same steps:
    - duration   first matching duration rule; h/m/s groups -> nanoseconds
    - end time   timestamp rule group 1, parsed with the configured format
    - category   lowest-index color rule matching the line
    - start      end - duration

Lines without a duration match, with a duration below CUTOFF, or without a
timestamp match are skipped. A timestamp that matches but cannot be parsed,
or a line no color rule matches, aborts the run.

The main entry point is `read_events_from_log`, which returns an
EventBuilder holding the accepted events and the global time range.
"""

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Sequence, Tuple
import math
import re

from timeline_types import (
    CUTOFF_NS,
    ColorRule,
    DurationRule,
    Event,
    LineError,
    PatternSet,
    TimestampRule,
    UnclassifiedLineError,
    UnparseableTimestampError,
    duration_from_ns,
)


# Time-only timestamps are anchored to this date.
REFERENCE_DATE = datetime(1, 1, 1)

# chrono-style fraction directives (%.f, %.3f, %.6f, %.9f) -> strptime's .%f
_CHRONO_FRACTION_RE = re.compile(r"%\.\d?f")
# datetime supports up to 6 fractional digits
_LONG_FRACTION_RE = re.compile(r"(\.\d{6})\d+")
_DIRECTIVE_RE = re.compile(r"%(.)")
_YEAR_DIRECTIVES = frozenset("Yycx")

# Time-of-day fallback: date fields are matched for shape and ignored.
_DAY_RE = r"3[01]|[12]\d|0[1-9]|[1-9]| [1-9]"
_NAME_RE = r"[^\W\d_]+"
_DATE_FIELD_RES = {
    "Y": r"[+-]?\d{4}",
    "y": r"\d\d",
    "C": r"\d\d",
    "G": r"\d{4}",
    "m": r"1[0-2]|0[1-9]|[1-9]",
    "d": _DAY_RE,
    "e": _DAY_RE,
    "j": r"36[0-6]|3[0-5]\d|[12]\d\d|0[1-9]\d|00[1-9]|[1-9]\d|0[1-9]|[1-9]",
    "U": r"5[0-3]|[0-4]\d|\d",
    "W": r"5[0-3]|[0-4]\d|\d",
    "V": r"5[0-3]|0[1-9]|[1-4]\d|\d",
    "u": r"[1-7]",
    "w": r"[0-6]",
    "a": _NAME_RE,
    "A": _NAME_RE,
    "b": _NAME_RE,
    "B": _NAME_RE,
    "h": _NAME_RE,
    "z": r"Z|[+-]\d\d:?[0-5]\d(?::?[0-5]\d)?",
    "Z": r"\S+",
}
_TIME_FIELD_RES = {
    "H": r"2[0-3]|[0-1]\d|\d",
    "I": r"1[0-2]|0[1-9]|[1-9]",
    "M": r"[0-5]\d|\d",
    "S": r"6[0-1]|[0-5]\d|\d",
    "f": r"\d{1,6}",
    "p": _NAME_RE,
}
_COMPOSITE_DIRECTIVES = {"%D": "%m/%d/%y", "%R": "%H:%M", "%r": "%I:%M:%S %p"}


# ---------------------------------------------------------------------------
# Duration extraction
# ---------------------------------------------------------------------------

def _get_float(m: re.Match[bytes], name: str) -> float:
    """Value of named group *name*, or 0.0 when absent or not a finite number."""
    if name not in m.re.groupindex:
        return 0.0
    raw = m.group(name)
    if raw is None:
        return 0.0
    try:
        value = float(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return value


def _round_half_away(value: float) -> int:
    # builtin round() sends halves to even; durations round halves away from zero
    magnitude = abs(value)
    whole = math.floor(magnitude)
    if magnitude - whole >= 0.5:
        whole += 1
    return whole if value >= 0 else -whole


def duration_ns_from_match(m: re.Match[bytes]) -> int:
    """
    Duration in nanoseconds from the h/m/s groups. Raises OverflowError when
    the components are finite but their total is not.
    """
    hours = _get_float(m, "h")
    minutes = _get_float(m, "m")
    seconds = _get_float(m, "s")
    total = (hours * 3600 + minutes * 60 + seconds) * 1e9
    if not math.isfinite(total):
        raise OverflowError("duration out of range")
    return _round_half_away(total)


def match_duration(line: bytes, rules: Sequence[DurationRule]) -> Optional[re.Match[bytes]]:
    """First duration rule matching the line wins; later rules are not tried."""
    for rule in rules:
        m = rule.pattern.search(line)
        if m:
            return m
    return None


def classify_duration(line: bytes, rules: Sequence[DurationRule], line_num: int = 0) -> Optional[int]:
    """
    Return the line's duration in nanoseconds, or None when the line is not
    a chartable event (no rule matches, or the duration is below CUTOFF).
    A duration too large to represent raises LineError.
    """
    m = match_duration(line, rules)
    if m is None:
        return None
    try:
        duration_ns = duration_ns_from_match(m)
    except OverflowError:
        raise LineError("duration out of range", line_num, line) from None
    if duration_ns < CUTOFF_NS:
        return None
    return duration_ns


# ---------------------------------------------------------------------------
# Timestamp resolution
# ---------------------------------------------------------------------------

class TimestampKind(Enum):
    FULL = "full"
    TIME_ONLY = "time_only"
    FAILED = "failed"


@dataclass(frozen=True)
class ParsedTimestamp:
    kind: TimestampKind
    value: Optional[datetime] = None


def normalize_format(fmt: str) -> str:
    """Translate the chrono-style directives strptime lacks."""
    fmt = _CHRONO_FRACTION_RE.sub(".%f", fmt)
    return fmt.replace("%T", "%H:%M:%S").replace("%F", "%Y-%m-%d")


def has_date(fmt: str) -> bool:
    return any(d in _YEAR_DIRECTIVES for d in _DIRECTIVE_RE.findall(fmt))


def _strptime(text: str, fmt: str) -> Optional[datetime]:
    try:
        value = datetime.strptime(text, fmt)
    except ValueError:
        return None
    # Offsets are parsed but dropped; all times are naive.
    return value.replace(tzinfo=None)


def _literal_re(literal: str) -> str:
    # strptime treats any run of whitespace in the format as \s+
    return r"\s+".join(re.escape(chunk) for chunk in re.split(r"\s+", literal))


@lru_cache(maxsize=32)
def _time_of_day_pattern(fmt: str) -> Optional[Tuple[re.Pattern[str], Tuple[str, ...]]]:
    """
    Regex for *fmt* that checks the date fields only for shape and captures
    the time fields, plus the directives of the captured fields in order.
    None when the format has no time fields or a directive we cannot skip.
    """
    for directive, expansion in _COMPOSITE_DIRECTIVES.items():
        fmt = fmt.replace(directive, expansion)

    parts: List[str] = []
    fields: List[str] = []
    pos = 0
    for m in _DIRECTIVE_RE.finditer(fmt):
        parts.append(_literal_re(fmt[pos:m.start()]))
        directive = m.group(1)
        if directive == "%":
            parts.append("%")
        elif directive in _TIME_FIELD_RES:
            parts.append(f"({_TIME_FIELD_RES[directive]})")
            fields.append(directive)
        elif directive in _DATE_FIELD_RES:
            parts.append(f"(?:{_DATE_FIELD_RES[directive]})")
        else:
            return None
        pos = m.end()
    parts.append(_literal_re(fmt[pos:]))

    if not fields:
        return None
    return re.compile("".join(parts), re.IGNORECASE), tuple(fields)


def parse_time_of_day(text: str, fmt: str) -> Optional[time]:
    """Time fields of *text*; the date fields only need to look right."""
    compiled = _time_of_day_pattern(fmt)
    if compiled is None:
        return None
    pattern, fields = compiled
    m = pattern.fullmatch(text)
    if m is None:
        return None
    value = _strptime(" ".join(m.groups()), " ".join("%" + d for d in fields))
    if value is None:
        return None
    return value.time()


def parse_timestamp(text: str, fmt: str) -> ParsedTimestamp:
    """
    Parse *text* with *fmt*, first as a full date and time, then as a time of
    day anchored to REFERENCE_DATE.
    """
    fmt = normalize_format(fmt)
    if "%f" in fmt:
        text = _LONG_FRACTION_RE.sub(r"\1", text)

    if has_date(fmt):
        value = _strptime(text, fmt)
        if value is not None:
            return ParsedTimestamp(TimestampKind.FULL, value)

    time_of_day = parse_time_of_day(text, fmt)
    if time_of_day is not None:
        return ParsedTimestamp(TimestampKind.TIME_ONLY, datetime.combine(REFERENCE_DATE, time_of_day))
    return ParsedTimestamp(TimestampKind.FAILED)


def resolve_timestamp(line: bytes, rule: TimestampRule, line_num: int = 0) -> Optional[datetime]:
    """
    Return the end timestamp of the line, or None when the timestamp pattern
    does not match. Raises UnparseableTimestampError when it matches but the
    captured text does not fit the format.
    """
    m = rule.pattern.search(line)
    if m is None:
        return None
    raw = m.group(1)
    text = raw.decode("utf-8", errors="replace") if raw is not None else ""
    parsed = parse_timestamp(text, rule.format)
    if parsed.kind is TimestampKind.FAILED:
        raise UnparseableTimestampError(
            f"timestamp {text!r} does not match format {rule.format!r}", line_num, line
        )
    return parsed.value


# ---------------------------------------------------------------------------
# Color classification
# ---------------------------------------------------------------------------

class ColorClassifier:
    """Multi-pattern match over the color rules; list order is priority order."""

    def __init__(self, rules: Sequence[ColorRule]) -> None:
        self.rules = list(rules)

    def matches(self, line: bytes) -> List[int]:
        """Indices of every rule matching the line, ascending."""
        return [i for i, rule in enumerate(self.rules) if rule.pattern.search(line)]

    def classify(self, line: bytes, line_num: int = 0) -> int:
        for i, rule in enumerate(self.rules):
            if rule.pattern.search(line):
                return i
        raise UnclassifiedLineError("no color specified for line", line_num, line)


# ---------------------------------------------------------------------------
# Event building
# ---------------------------------------------------------------------------

class EventBuilder:
    """Accumulates accepted events and the global time range."""

    def __init__(self, patterns: PatternSet) -> None:
        self.patterns = patterns
        self.colors = ColorClassifier(patterns.colors)
        self.events: List[Event] = []
        self.lines_total = 0
        self._min_start = datetime.max
        self._max_end = datetime.min

    def add_line(self, line: bytes, line_num: int = 0) -> Optional[Event]:
        """Turn one log line into an Event, or return None if it is not chartable."""
        self.lines_total += 1
        duration_ns = classify_duration(line, self.patterns.durations, line_num)
        if duration_ns is None:
            return None

        end = resolve_timestamp(line, self.patterns.timestamp, line_num)
        if end is None:
            return None

        color = self.colors.classify(line, line_num)

        try:
            start = end - duration_from_ns(duration_ns)
        except OverflowError:
            raise LineError(f"event starts before {datetime.min.date()}", line_num, line) from None

        if start < self._min_start:
            self._min_start = start
        if end > self._max_end:
            self._max_end = end

        event = Event(start=start, end=end, message=line, color=color, duration_ns=duration_ns)
        self.events.append(event)
        return event

    @property
    def global_start(self) -> Optional[datetime]:
        return self._min_start if self.events else None

    @property
    def global_end(self) -> Optional[datetime]:
        return self._max_end if self.events else None

    @property
    def global_duration(self) -> timedelta:
        if not self.events:
            return timedelta(0)
        return self._max_end - self._min_start


# ---------------------------------------------------------------------------
# Main parsing function
# ---------------------------------------------------------------------------

def iter_log_lines(f: BinaryIO) -> Iterator[bytes]:
    """Yield lines split on b"\\n", without the delimiter."""
    for line in f:
        if line.endswith(b"\n"):
            line = line[:-1]
        yield line


def read_events_from_log(log_path: Path, patterns: PatternSet) -> EventBuilder:
    """
    Read every line of *log_path* and return the EventBuilder holding the
    accepted events.
    """
    builder = EventBuilder(patterns)
    with open(log_path, "rb") as f:
        for line_num, line in enumerate(iter_log_lines(f), 1):
            builder.add_line(line, line_num)
    return builder
