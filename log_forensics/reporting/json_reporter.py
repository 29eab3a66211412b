"""
JSON reporting utilities (optional).
"""

from __future__ import annotations

import json
from typing import Any, Dict

from log_forensics.analysis.base import NotesReport
from log_forensics.observability import to_dict


def to_json_dict(report: NotesReport) -> Dict[str, Any]:
    """Convert NotesReport to a JSON-serializable dict."""
    data = to_dict(report)
    data["notes_text"] = report.notes_text
    return data


def write_json(report: NotesReport, path: str) -> None:
    """Write report to a file as pretty JSON."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(to_json_dict(report), f, indent=2, ensure_ascii=False)
