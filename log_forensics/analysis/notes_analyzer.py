# log_forensics/analysis/notes_analyzer.py
"""
Notes analyzer: runs one analysis pass over a parsed log.
"""
from __future__ import annotations

import asyncio
from typing import Optional, Sequence, Tuple

from loguru import logger

from log_forensics.analysis.base import (
    AnalysisContext,
    LogParseState,
    NotesReport,
    UpdateInfo,
    sort_notes,
)
from log_forensics.analysis.broken_files import BrokenFileChecker
from log_forensics.analysis.licenses import missing_licenses
from log_forensics.analysis.rules import Rule, build_rules
from log_forensics.catalog.catalog import CatalogClient
from log_forensics.catalog.updates import UpdateChecker
from log_forensics.config import RuleConfig
from log_forensics.observability import Timer


class NotesAnalyzer:
    """Builds the ordered note list for parsed logs.

    One analyzer can serve concurrent passes: every call to :meth:`run`
    creates its own :class:`AnalysisContext`.
    """

    def __init__(
        self,
        catalog: Optional[CatalogClient] = None,
        updates: Optional[UpdateChecker] = None,
        config: Optional[RuleConfig] = None,
        rules: Optional[Sequence[Tuple[str, Rule]]] = None,
    ):
        self.catalog = catalog
        self.updates = updates
        self.config = config or RuleConfig()
        self.rules = tuple(rules) if rules is not None else build_rules(self.config)

    async def run(
        self, state: LogParseState, cancel: Optional[asyncio.Event] = None
    ) -> NotesReport:
        """
        Orchestrates a pass: dump verdict, update lookup, every rule in order,
        then the stable severity sort.

        Args:
            state: Fields and pass-scoped flags from the log parser.
            cancel: Optional signal that aborts the catalog fetch.
        """
        fields = state.fields
        with Timer("broken_files") as t_catalog:
            checker = BrokenFileChecker(self.catalog, self.config, cancel)
            verdict = await checker.check(fields)
        logger.debug(
            "Dump verdict {verdict} in {ms:.2f}ms", verdict=verdict, ms=t_catalog.duration_ms
        )

        ctx = AnalysisContext(
            state=state,
            verdict=verdict,
            status=state.status,
            update_info=await self._update_info(state),
            broken_dump=verdict.broken_detected or fields.has("edat_block_offset"),
        )

        with Timer("rules") as t_rules:
            for name, rule in self.rules:
                try:
                    rule(ctx, fields)
                except Exception:
                    logger.exception("Rule {name} failed", name=name)
        logger.debug(
            "{count} rules produced {notes} notes in {ms:.2f}ms",
            count=len(self.rules),
            notes=len(ctx.notes),
            ms=t_rules.duration_ms,
        )

        return NotesReport(
            status=ctx.status,
            notes=sort_notes(ctx.notes),
            verdict=verdict,
            fatal_error=ctx.fatal_error,
            missing_licenses=missing_licenses(fields),
            rules_run=[name for name, _ in self.rules],
        )

    async def _update_info(self, state: LogParseState) -> Optional[UpdateInfo]:
        if self.updates is None:
            return None
        try:
            return await self.updates.check_for_update(state.fields)
        except Exception as e:
            logger.warning("Update check failed: {error}", error=e)
            return None

