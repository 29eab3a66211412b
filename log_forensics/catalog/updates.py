# log_forensics/catalog/updates.py
"""
Update lookup port and the adapter that serves update info from a log dump.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from log_forensics.analysis.base import UpdateInfo
from log_forensics.analysis.fields import FieldMap


class UpdateChecker(Protocol):
    """Resolves the running build and the latest known build."""

    async def check_for_update(self, fields: FieldMap) -> Optional[UpdateInfo]:
        ...


class DumpUpdateChecker:
    """Returns update info that was captured alongside the parsed fields."""

    def __init__(self, current_build: Optional[datetime], latest_build: Optional[datetime]):
        self.info = UpdateInfo(current_build=current_build, latest_build=latest_build)

    async def check_for_update(self, fields: FieldMap) -> Optional[UpdateInfo]:
        if self.info.latest_build is None:
            return None
        return self.info
