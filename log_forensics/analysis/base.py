# log_forensics/analysis/base.py
"""
Base analysis models: severities, status classification, notes and the
single-pass analysis context threaded through the rule engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import Dict, Iterable, List, Mapping, Optional

from log_forensics.analysis.fields import FieldMap


class Severity(IntEnum):
    """Display rank of a note. Lower values are shown first."""

    FAILURE = 0
    WARNING = 1
    OUTDATED = 2
    VERY_OUTDATED = 3
    ANCIENT = 4
    PREHISTORIC = 5
    INFO = 6
    CONFIRMED = 7
    SPECIAL = 8

    @property
    def marker(self) -> str:
        return SEVERITY_MARKERS[self]


SEVERITY_MARKERS: Dict[Severity, str] = {
    Severity.FAILURE: "❌",
    Severity.WARNING: "⚠",
    Severity.OUTDATED: "❗",
    Severity.VERY_OUTDATED: "‼",
    Severity.ANCIENT: "💢",
    Severity.PREHISTORIC: "😱",
    Severity.INFO: "ℹ",
    Severity.CONFIRMED: "✅",
    Severity.SPECIAL: "🔨",
}


class StatusClass(IntEnum):
    """Compatibility verdict, ordered worst to best."""

    NOTHING = 0
    LOADABLE = 1
    INTRO = 2
    INGAME = 3
    PLAYABLE = 4
    UNKNOWN = 5

    @classmethod
    def from_name(cls, name: str) -> "StatusClass":
        return cls[name.strip().upper()]


class ParseError(Enum):
    """Pass-scoped error reported by the log parser."""

    NONE = "none"
    SIZE_LIMIT = "size_limit"


@dataclass(frozen=True)
class Note:
    """Single diagnostic note."""

    text: str
    severity: Severity

    @property
    def line(self) -> str:
        return f"{self.severity.marker} {self.text}"


@dataclass(frozen=True)
class BrokenFileVerdict:
    """Outcome of cross-referencing missing files against the catalog."""

    catalog_checked: bool
    broken_detected: bool
    longest_known_path_length: int


@dataclass(frozen=True)
class UpdateInfo:
    """Build timestamps reported by the update lookup."""

    current_build: Optional[datetime]
    latest_build: Optional[datetime]

    @property
    def delta(self) -> Optional[timedelta]:
        if self.current_build is None or self.latest_build is None:
            return None
        try:
            return self.latest_build - self.current_build
        except TypeError:
            # one timestamp is naive and the other aware
            return None


@dataclass
class LogParseState:
    """Everything the log parser hands over for one analysis pass."""

    fields: FieldMap
    value_hit_stats: Mapping[str, int] = field(default_factory=dict)
    error: ParseError = ParseError.NONE
    status: StatusClass = StatusClass.UNKNOWN


@dataclass
class AnalysisContext:
    """Mutable state owned by exactly one analysis pass."""

    state: LogParseState
    verdict: BrokenFileVerdict
    status: StatusClass
    update_info: Optional[UpdateInfo] = None
    notes: List[Note] = field(default_factory=list)
    broken_dump: bool = False
    supported_gpu: bool = True
    fatal_error: Optional[str] = None
    ppu_patches: Dict[str, int] = field(default_factory=dict)
    ovl_patches: Dict[str, int] = field(default_factory=dict)
    spu_patches: Dict[str, int] = field(default_factory=dict)

    @property
    def catalog_checked(self) -> bool:
        return self.verdict.catalog_checked

    @property
    def longest_known_path(self) -> int:
        return self.verdict.longest_known_path_length

    def add(self, severity: Severity, text: str) -> None:
        self.notes.append(Note(text=text, severity=severity))

    def downgrade(self, status: StatusClass) -> None:
        """Lower the status classification; never raises it."""
        if status < self.status:
            self.status = status


@dataclass
class NotesReport:
    """Final result of an analysis pass."""

    status: StatusClass
    notes: List[Note]
    verdict: BrokenFileVerdict
    fatal_error: Optional[str] = None
    missing_licenses: List[str] = field(default_factory=list)
    rules_run: List[str] = field(default_factory=list)

    @property
    def notes_text(self) -> str:
        return render_notes(self.notes)


def sort_notes(notes: Iterable[Note]) -> List[Note]:
    """Order notes by severity; equal severities keep insertion order."""
    return sorted(notes, key=lambda n: n.severity)


def render_notes(notes: Iterable[Note]) -> str:
    """Newline-joined note lines, trailing whitespace trimmed."""
    return "\n".join(n.line for n in notes).rstrip()
