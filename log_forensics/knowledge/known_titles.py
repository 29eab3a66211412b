"""
Product-code tables for titles that get dedicated notes.
This file acts as a Python-based registry; rules look titles up here instead
of carrying inline literals.
"""

from __future__ import annotations

import re
from typing import FrozenSet

# Persona 5, all regions and editions.
P5_IDS: FrozenSet[str] = frozenset(
    {"BLES02247", "BLUS31604", "BLJM61346", "NPEB02436", "NPUB31848", "NPJB00769"}
)

# Demon's Souls, all regions and editions.
DES_IDS: FrozenSet[str] = frozenset(
    {
        "BLES00932",
        "BLUS30443",
        "BCJS30022",
        "BCJS70013",
        "BCAS20071",
        "BCKS10071",
        "NPEB01202",
        "NPUB30910",
        "NPJA00102",
    }
)

# Persona 5 patch sizes, counted in applied PPU patch entries.
# The counts belong to specific patch revisions; a new revision of any of
# these patches changes its count.
P5_PATCH_MOD_SUPPORT = 27
P5_PATCH_60FPS_V1 = 12
P5_PATCH_60FPS_V2_MIN = 260

# Counts that can only come from the v1 60 fps patch, alone or with mod support.
P5_OLD_60FPS_COUNTS: FrozenSet[int] = frozenset(
    {P5_PATCH_60FPS_V1, P5_PATCH_60FPS_V1 + P5_PATCH_MOD_SUPPORT}
)

# License files reported missing by every run of these titles.
KNOWN_BOGUS_LICENSES: FrozenSet[str] = frozenset(
    name.casefold()
    for name in (
        "UP0700-NPUB30932_00-NNKDLFULLGAMEPTB.rap",
        "EP0700-NPEB01158_00-NNKDLFULLGAMEPTB.rap",
    )
)

# Product codes as printed on retail and digital releases, e.g. "BLUS-30443".
PRODUCT_CODE = re.compile(
    r"(?P<letters>(?:[BPSUVX][CL]|P[ETU]|NP)[AEHJKPUIX][ABJKLMPQRS]|MRTC)[ \-]?(?P<numbers>\d{5})",
    re.IGNORECASE,
)

# Product code prefixes that have catalog (IRD) entries.
CATALOG_PREFIXES = ("B", "M")

# PSP, minis and PS2 categories from PARAM.SFO.
PSP_CATEGORIES: FrozenSet[str] = frozenset({"PE", "PP"})
MINIS_CATEGORIES: FrozenSet[str] = frozenset({"MN"})
PS2_CATEGORIES: FrozenSet[str] = frozenset({"2G", "2P", "2D"})
