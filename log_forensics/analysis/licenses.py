# log_forensics/analysis/licenses.py
"""
Missing license (RAP) files reported by the log.
"""

from __future__ import annotations

import ntpath
from typing import List

from log_forensics.analysis.fields import FieldMap
from log_forensics.knowledge.known_titles import KNOWN_BOGUS_LICENSES


def missing_licenses(fields: FieldMap) -> List[str]:
    """Distinct license file names, without the ones every run reports."""
    names = (ntpath.basename(p) for p in fields.get_all("rap_file", distinct=True))
    return [
        name
        for name in dict.fromkeys(names)
        if name and name.casefold() not in KNOWN_BOGUS_LICENSES
    ]
