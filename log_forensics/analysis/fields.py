# log_forensics/analysis/fields.py
"""
Read-only view over the fields extracted from a run log.

Multi-value fields arrive newline-joined. Every typed read returns ``None``
for absent or unparseable input instead of raising, so rules can treat
missing telemetry as "does not fire".
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Mapping, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from log_forensics.analysis.versions import Version

RECORD_SEPARATOR = "\n"


class FieldMap(Mapping[str, str]):
    """Immutable mapping of field name → raw value."""

    __slots__ = ("_items",)

    def __init__(self, items: Optional[Mapping[str, str]] = None):
        self._items: Dict[str, str] = dict(items or {})

    def __getitem__(self, key: str) -> str:
        return self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"FieldMap({self._items!r})"

    def has(self, key: str) -> bool:
        """True when the field is present and non-empty."""
        return bool(self._items.get(key))

    def first(self, *keys: str) -> Optional[str]:
        """Value of the first present key; empty strings count as present."""
        for key in keys:
            value = self._items.get(key)
            if value is not None:
                return value
        return None

    def get_all(self, key: str, *, distinct: bool = False) -> List[str]:
        """Split a multi-value field, preserving order and dropping empty entries."""
        raw = self._items.get(key)
        if not raw:
            return []
        values = [v.rstrip("\r") for v in raw.split(RECORD_SEPARATOR)]
        values = [v for v in values if v]
        if distinct:
            values = list(dict.fromkeys(values))
        return values

    def get_int(self, key: str) -> Optional[int]:
        raw = self._items.get(key)
        if raw is None:
            return None
        try:
            return int(raw.strip())
        except ValueError:
            return None

    def get_version(self, key: str) -> Optional["Version"]:
        from log_forensics.analysis.versions import Version

        raw = self._items.get(key)
        if raw is None:
            return None
        return Version.parse(raw)
