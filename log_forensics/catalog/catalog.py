# log_forensics/catalog/catalog.py
"""
Reference-catalog ports and adapters.

The catalog resolves a product code to the disc image descriptors (IRD files)
known for it; each descriptor lists the files that a complete dump contains.
"""

from __future__ import annotations

import asyncio
import json
import os
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Protocol, Sequence, Tuple

from loguru import logger


class CatalogError(Exception):
    """Raised when catalog data cannot be fetched or decoded."""


@dataclass(frozen=True)
class CatalogEntry:
    """One disc image descriptor for a product code."""

    product_code: str
    names: FrozenSet[str] = field(default_factory=frozenset)

    def filenames(self) -> FrozenSet[str]:
        return self.names


class CatalogClient(Protocol):
    """Catalog lookup used by the broken-file checker."""

    async def fetch(
        self, product_code: str, cache_dir: Optional[str], cancel: Optional[asyncio.Event]
    ) -> Sequence[CatalogEntry]:
        ...


class DirectoryCatalogClient:
    """Serves catalog entries from ``<root>/<PRODUCT_CODE>.json`` files.

    Each file holds a JSON list of entries, every entry a list of file paths.
    A missing file means the catalog has no entries for that product code.
    """

    def __init__(self, root: str):
        self.root = root

    async def fetch(
        self, product_code: str, cache_dir: Optional[str], cancel: Optional[asyncio.Event]
    ) -> Sequence[CatalogEntry]:
        path = os.path.join(cache_dir or self.root, f"{product_code.upper()}.json")
        if not os.path.exists(path):
            logger.debug("No catalog file for {code} at {path}", code=product_code, path=path)
            return []
        return await asyncio.to_thread(self._read, product_code, path)

    @staticmethod
    def _read(product_code: str, path: str) -> List[CatalogEntry]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogError(f"Cannot read catalog file {path}: {e}") from e
        if not isinstance(raw, list) or not all(isinstance(e, list) for e in raw):
            raise CatalogError(f"Catalog file {path} must contain a list of file lists")
        return [
            CatalogEntry(product_code=product_code, names=frozenset(str(n) for n in entry))
            for entry in raw
        ]


class CachedCatalogClient:
    """Process-wide cache in front of another catalog client.

    Concurrent passes share results; one lock per product code keeps at most
    one fetch in flight for it. Failures are not cached.
    """

    def __init__(self, inner: CatalogClient):
        self.inner = inner
        self._entries: Dict[str, Sequence[CatalogEntry]] = {}
        # product code -> (lock, number of passes holding or waiting on it)
        self._locks: Dict[str, Tuple[asyncio.Lock, int]] = {}

    def _acquire_lock(self, key: str) -> asyncio.Lock:
        lock, users = self._locks.get(key, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[key] = (lock, users + 1)
        return lock

    def _release_lock(self, key: str) -> None:
        lock, users = self._locks[key]
        if users <= 1:
            del self._locks[key]
        else:
            self._locks[key] = (lock, users - 1)

    async def fetch(
        self, product_code: str, cache_dir: Optional[str], cancel: Optional[asyncio.Event]
    ) -> Sequence[CatalogEntry]:
        key = product_code.upper()
        cached = self._entries.get(key)
        if cached is not None:
            return cached
        lock = self._acquire_lock(key)
        try:
            async with lock:
                cached = self._entries.get(key)
                if cached is None:
                    cached = await self.inner.fetch(product_code, cache_dir, cancel)
                    self._entries[key] = cached
                    logger.debug(
                        "Cached {count} catalog entries for {code}", count=len(cached), code=key
                    )
                return cached
        finally:
            self._release_lock(key)
