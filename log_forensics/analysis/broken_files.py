# log_forensics/analysis/broken_files.py
"""
Dump integrity check: missing files and directories reported by the log are
cross-referenced against the reference catalog for the product code.
"""

from __future__ import annotations

import asyncio
import posixpath
from typing import Optional, Set

from loguru import logger

from log_forensics.analysis.base import BrokenFileVerdict
from log_forensics.analysis.fields import FieldMap
from log_forensics.catalog.catalog import CatalogClient, CatalogError
from log_forensics.config import RuleConfig
from log_forensics.knowledge.known_titles import CATALOG_PREFIXES

# Typical game data path; most titles nest data files one level deeper.
DEFAULT_LONGEST_PATH = len("/PS3_GAME/USRDIR/") + (1 + 8 + 3) * 2

UNCHECKED = BrokenFileVerdict(
    catalog_checked=False, broken_detected=False, longest_known_path_length=DEFAULT_LONGEST_PATH
)


def _normalize(path: str) -> str:
    return path.replace("\\", "/").casefold()


def _parent(path: str) -> str:
    return posixpath.dirname(path.replace("\\", "/"))


class BrokenFileChecker:
    """Classifies a dump as unchecked, intact or broken."""

    def __init__(
        self,
        catalog: Optional[CatalogClient],
        config: Optional[RuleConfig] = None,
        cancel: Optional[asyncio.Event] = None,
    ):
        self.catalog = catalog
        self.config = config or RuleConfig()
        self.cancel = cancel

    async def check(self, fields: FieldMap) -> BrokenFileVerdict:
        product_code = fields.get("serial")
        if not product_code or not product_code.startswith(CATALOG_PREFIXES):
            return UNCHECKED
        if self.catalog is None:
            return UNCHECKED

        try:
            known_files = await self._known_files(product_code)
        except Exception as e:
            logger.warning(
                "Failed to get catalog files for {code}: {error}", code=product_code, error=e
            )
            return UNCHECKED
        if not known_files:
            return UNCHECKED

        longest = max(len(name.rstrip("./\\")) for name in known_files)
        missing_files = fields.get_all("broken_filename", distinct=True)
        missing_dirs = fields.get_all("broken_directory", distinct=True)
        if not missing_files and not missing_dirs:
            return BrokenFileVerdict(True, False, longest)

        known_by_key = {_normalize(name): name for name in known_files}
        broken = [f for f in missing_files if _normalize(f) in known_by_key]
        if broken:
            logger.debug("Broken files according to catalog: {files}", files=broken)
            return BrokenFileVerdict(True, True, longest)

        known_dirs = {_normalize(_parent(name)) for name in known_files}
        broken_dirs = [d for d in missing_dirs if _normalize(d) in known_dirs]
        if broken_dirs:
            logger.debug("Broken directories according to catalog: {dirs}", dirs=broken_dirs)
            return BrokenFileVerdict(True, True, longest)
        return BrokenFileVerdict(True, False, longest)

    async def _known_files(self, product_code: str) -> Set[str]:
        """Fetch the catalog, bounded by the configured timeout and the cancel signal."""
        fetch = asyncio.ensure_future(
            self.catalog.fetch(product_code, self.config.catalog_cache_dir, self.cancel)
        )
        waiters = {fetch}
        if self.cancel is not None:
            waiters.add(asyncio.ensure_future(self.cancel.wait()))
        try:
            done, _ = await asyncio.wait(
                waiters, timeout=self.config.catalog_timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for waiter in waiters:
                if not waiter.done():
                    waiter.cancel()

        if fetch not in done or fetch.cancelled():
            reason = "cancelled" if self.cancel is not None and self.cancel.is_set() else "timed out"
            raise CatalogError(f"Catalog fetch {reason}")
        return {name for entry in fetch.result() for name in entry.filenames()}
