# log_forensics/io/log_dump.py
"""
Reader for parsed-log dumps: the JSON hand-off produced by a log parser.

A dump is either a flat object of fields, or an object with a ``fields`` key
and optional ``value_hit_stats``, ``error``, ``status`` and ``update``
(``{"current": ISO-8601, "latest": ISO-8601}``) keys. List values are joined
into multi-value fields.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from log_forensics.analysis.base import LogParseState, ParseError, StatusClass
from log_forensics.analysis.fields import RECORD_SEPARATOR, FieldMap


class LogDumpError(Exception):
    """Raised when a log dump is unreadable or malformed."""


@dataclass
class LogDump:
    state: LogParseState
    current_build: Optional[datetime] = None
    latest_build: Optional[datetime] = None


def _field_value(key: str, value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return RECORD_SEPARATOR.join(value)
    raise LogDumpError(f"Field {key!r} must be a string or a list of strings")


def _timestamp(raw: Any, name: str) -> Optional[datetime]:
    if raw is None:
        return None
    try:
        stamp = datetime.fromisoformat(raw)
    except (TypeError, ValueError) as e:
        raise LogDumpError(f"Invalid {name} build timestamp: {raw!r}") from e
    # naive timestamps are UTC
    return stamp if stamp.tzinfo is not None else stamp.replace(tzinfo=timezone.utc)


def parse_log_dump(data: Dict[str, Any]) -> LogDump:
    raw_fields = data["fields"] if "fields" in data else data
    if not isinstance(raw_fields, dict):
        raise LogDumpError("fields must be a JSON object")
    fields = FieldMap({k: _field_value(k, v) for k, v in raw_fields.items()})
    if "fields" not in data:
        return LogDump(state=LogParseState(fields=fields))

    hit_stats = data.get("value_hit_stats") or {}
    if not isinstance(hit_stats, dict) or not all(isinstance(v, int) for v in hit_stats.values()):
        raise LogDumpError("value_hit_stats must map field names to integers")

    try:
        error = ParseError(data.get("error") or ParseError.NONE.value)
        status = StatusClass.from_name(data.get("status") or StatusClass.UNKNOWN.name)
    except (KeyError, ValueError, AttributeError) as e:
        raise LogDumpError(f"Invalid error or status value: {e}") from e

    update = data.get("update") or {}
    if not isinstance(update, dict):
        raise LogDumpError("update must be a JSON object")
    return LogDump(
        state=LogParseState(fields=fields, value_hit_stats=hit_stats, error=error, status=status),
        current_build=_timestamp(update.get("current"), "current"),
        latest_build=_timestamp(update.get("latest"), "latest"),
    )


def load_log_dump(path: str) -> LogDump:
    """Read and validate a dump file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise LogDumpError(f"Cannot read log dump {path}: {e}") from e
    if not isinstance(data, dict):
        raise LogDumpError("Log dump must contain a JSON object")
    return parse_log_dump(data)
