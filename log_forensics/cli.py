# log_forensics/cli.py
"""
cli.py

Rich console CLI:
- notes:   run the rule engine over a parsed-log dump and print the status,
           fatal error, missing licenses and ordered notes.
- version: show the package version.
"""
from __future__ import annotations

import argparse
import asyncio
from dataclasses import replace
from typing import Optional

from rich.console import Console

from log_forensics import __version__
from log_forensics.analysis.notes_analyzer import NotesAnalyzer
from log_forensics.catalog.catalog import CachedCatalogClient, DirectoryCatalogClient
from log_forensics.catalog.updates import DumpUpdateChecker
from log_forensics.config import ConfigError, RuleConfig, load_config
from log_forensics.io.log_dump import LogDumpError, load_log_dump
from log_forensics.logging import configure_logging
from log_forensics.reporting import console as console_reporter
from log_forensics.reporting.json_reporter import write_json

console = Console()


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="lfx",
        description="Log Forensics: diagnostic notes for parsed emulator logs.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    sub = p.add_subparsers(dest="cmd", title="Available Commands", metavar="<command>")

    sp_notes = sub.add_parser("notes", help="Build diagnostic notes for a parsed-log dump")
    sp_notes.add_argument("path", help="Path to the parsed-log dump (.json)")
    sp_notes.add_argument("--debug", action="store_true", help="Enable debug logging")
    sp_notes.add_argument(
        "--catalog-dir",
        type=str,
        default=None,
        help="Directory of <PRODUCT_CODE>.json catalog files used to verify the dump",
    )
    sp_notes.add_argument(
        "--config", type=str, default=None, help="JSON file with build age and catalog settings"
    )
    sp_notes.add_argument(
        "--json-out", type=str, default=None, help="Write JSON report to this path"
    )
    sp_notes.add_argument(
        "--log-file", type=str, default=None, help="Also write logs to this file"
    )

    sub.add_parser("version", help="Show the version of log-forensics")

    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "version":
        console.print(f"Log Forensics Version {__version__}")
        return 0

    if args.cmd == "notes":
        configure_logging(debug=args.debug, log_file=args.log_file)
        try:
            config = load_config(args.config) if args.config else RuleConfig()
            dump = load_log_dump(args.path)
        except (ConfigError, LogDumpError) as e:
            console.print(f"[red]{e}[/red]")
            return 2

        if args.catalog_dir:
            config = replace(config, catalog_cache_dir=args.catalog_dir)
        catalog = (
            CachedCatalogClient(DirectoryCatalogClient(config.catalog_cache_dir))
            if config.catalog_cache_dir
            else None
        )
        analyzer = NotesAnalyzer(
            catalog=catalog,
            updates=DumpUpdateChecker(dump.current_build, dump.latest_build),
            config=config,
        )
        rep = asyncio.run(analyzer.run(dump.state))
        console_reporter.render_report(rep)

        if args.json_out:
            write_json(rep, args.json_out)
            console.print(f"[dim]Wrote JSON report → {args.json_out}[/dim]")
        return 0

    parser.print_help()
    return 1  # Return a non-zero exit code when no command is given
