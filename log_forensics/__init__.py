# log_forensics/__init__.py
"""
log_forensics
=============

Rule-driven diagnostics for parsed emulator run logs: an ordered rule engine
that turns extracted log fields into severity-tagged notes, reference-catalog
dump verification, and rich console reporting.
"""
from __future__ import annotations

from importlib.metadata import version as _pkg_version

__all__ = ["__version__"]

try:
    # Read version dynamically from installed package metadata
    __version__: str = _pkg_version("logforensics")
except Exception:  # pragma: no cover - fallback for development environments
    __version__ = "0.0.0-dev"
