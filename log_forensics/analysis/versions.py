# log_forensics/analysis/versions.py
"""
Dotted version values and build-age tiers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from functools import total_ordering
from typing import Optional, Tuple, TYPE_CHECKING

from log_forensics.analysis.base import Severity

if TYPE_CHECKING:
    from log_forensics.config import RuleConfig

_MAX_COMPONENTS = 4


@total_ordering
@dataclass(frozen=True, eq=False)
class Version:
    """Up to four numeric components (major, minor, build, revision)."""

    parts: Tuple[int, ...]

    @classmethod
    def parse(cls, text: str) -> Optional["Version"]:
        """Parse ``"4.80"`` style strings; ``None`` when malformed."""
        pieces = text.strip().split(".")
        if not 1 <= len(pieces) <= _MAX_COMPONENTS:
            return None
        if not all(p.isdigit() and p.isascii() for p in pieces):
            return None
        try:
            return cls(tuple(int(p) for p in pieces))
        except ValueError:
            # int() refuses digit strings past the interpreter limit
            return None

    @classmethod
    def of(cls, *parts: int) -> "Version":
        return cls(tuple(parts))

    @property
    def key(self) -> Tuple[int, ...]:
        return self.parts + (0,) * (_MAX_COMPONENTS - len(self.parts))

    def component(self, index: int) -> int:
        return self.key[index]

    @property
    def major(self) -> int:
        return self.component(0)

    @property
    def minor(self) -> int:
        return self.component(1)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.key == other.key

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.key < other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        return ".".join(str(p) for p in self.parts)


def classify_build_age(delta: timedelta, config: "RuleConfig") -> Optional[Severity]:
    """Highest build-age tier the delta exceeds, oldest tier first."""
    tiers = (
        (config.prehistoric_build_age, Severity.PREHISTORIC),
        (config.ancient_build_age, Severity.ANCIENT),
        (config.very_old_build_age, Severity.VERY_OUTDATED),
        (config.old_build_age, Severity.OUTDATED),
    )
    for threshold, severity in tiers:
        if delta > threshold:
            return severity
    return None


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def describe_time_delta(delta: timedelta) -> str:
    """Coarse description, e.g. ``"3 weeks"`` or ``"1 year"``."""
    days = delta.total_seconds() / 86400
    if days < 1:
        hours = max(1, int(delta.total_seconds() // 3600))
        return _plural(hours, "hour")
    if days < 7:
        return _plural(int(days), "day")
    if days < 30:
        return _plural(int(days // 7), "week")
    if days < 365:
        return _plural(int(days // 30), "month")
    return _plural(int(days // 365), "year")
