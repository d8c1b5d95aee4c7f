"""
Load the pattern configuration used to turn log lines into timeline events.

The document (YAML, or JSON/TOML when the file ends in .json/.toml) looks
like:

    timestamp:
      pattern: '^\\[([^\\]]+)\\]'
      format: '%Y-%m-%d %H:%M:%S'
    durations:
      - pattern: 'took (?:(?P<m>\\d+)m)?(?P<s>[\\d.]+)s'
    colors:
      - pattern: 'compile'
        color: '#e41a1c'
      - pattern: 'test'
        color: '#377eb8'
        group: 1

All patterns are compiled as bytes regexes, since log lines are matched
before any decoding happens.
"""

from pathlib import Path
from typing import Any, List, Optional
import json
import os
import re
import tomllib

import yaml

from timeline_types import ColorRule, ConfigError, DurationRule, PatternSet, TimestampRule


CONFIG_ENV_VAR = "TIMELINE_CONFIG"


def compile_pattern(pattern: Any, where: str) -> re.Pattern[bytes]:
    if not isinstance(pattern, str):
        raise ConfigError(f"{where}: pattern must be a string, got {type(pattern).__name__}")
    try:
        return re.compile(pattern.encode("utf-8"))
    except re.error as e:
        raise ConfigError(f"{where}: invalid pattern {pattern!r}: {e}") from None


def _require(entry: Any, key: str, where: str) -> Any:
    if not isinstance(entry, dict):
        raise ConfigError(f"{where}: expected a table, got {type(entry).__name__}")
    if key not in entry:
        raise ConfigError(f"{where}: missing '{key}'")
    return entry[key]


def _require_list(data: dict, key: str) -> list:
    value = data.get(key, [])
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"'{key}' must be a list")
    return value


def _parse_timestamp(data: dict) -> TimestampRule:
    entry = _require(data, "timestamp", "config")
    pattern = compile_pattern(_require(entry, "pattern", "timestamp"), "timestamp")
    if pattern.groups < 1:
        raise ConfigError("timestamp: pattern needs a capture group for the timestamp text")
    fmt = _require(entry, "format", "timestamp")
    if not isinstance(fmt, str) or not fmt:
        raise ConfigError("timestamp: format must be a non-empty string")
    return TimestampRule(pattern=pattern, format=fmt)


def _parse_durations(data: dict) -> List[DurationRule]:
    rules: List[DurationRule] = []
    for i, entry in enumerate(_require_list(data, "durations")):
        where = f"durations[{i}]"
        rules.append(DurationRule(pattern=compile_pattern(_require(entry, "pattern", where), where)))
    return rules


def _parse_colors(data: dict) -> List[ColorRule]:
    rules: List[ColorRule] = []
    for i, entry in enumerate(_require_list(data, "colors")):
        where = f"colors[{i}]"
        pattern = compile_pattern(_require(entry, "pattern", where), where)
        color = _require(entry, "color", where)
        if not isinstance(color, str):
            raise ConfigError(f"{where}: color must be a string")
        group = entry.get("group", 0)
        # bool is an int subclass; reject it explicitly
        if isinstance(group, bool) or not isinstance(group, int) or group < 0:
            raise ConfigError(f"{where}: group must be a non-negative integer, got {group!r}")
        rules.append(ColorRule(pattern=pattern, color=color, group=group))
    return rules


def patterns_from_dict(data: Any) -> PatternSet:
    """Validate a decoded configuration document and compile its patterns."""
    if not isinstance(data, dict):
        raise ConfigError("configuration must be a mapping at the top level")
    return PatternSet(
        timestamp=_parse_timestamp(data),
        durations=_parse_durations(data),
        colors=_parse_colors(data),
    )


def load_document(path: Path) -> Any:
    suffix = path.suffix.lower()
    try:
        if suffix == ".toml":
            with open(path, "rb") as f:
                return tomllib.load(f)
        with open(path, "r", encoding="utf-8") as f:
            if suffix == ".json":
                return json.load(f)
            return yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config {path}: {e}") from None
    except (yaml.YAMLError, json.JSONDecodeError, tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        raise ConfigError(f"malformed config {path}: {e}") from None


def load_patterns(path: Optional[str] = None) -> PatternSet:
    """
    Load a PatternSet from *path*.

    When *path* is empty the TIMELINE_CONFIG environment variable is used.
    """
    path = path or os.environ.get(CONFIG_ENV_VAR)
    if not path:
        raise ConfigError(f"no config given (use --config or set {CONFIG_ENV_VAR})")
    return patterns_from_dict(load_document(Path(path)))
