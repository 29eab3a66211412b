"""
Hardware, driver and firmware reference values used by the sufficiency rules.
"""

from __future__ import annotations

import re
from typing import Tuple

from log_forensics.analysis.versions import Version

MINIMUM_FIRMWARE_VERSION = Version.of(4, 80)
MINIMUM_OPENGL_VERSION = Version.of(4, 3)

NVIDIA_RECOMMENDED_OLD_WINDOWS_VERSION = Version.of(399, 41)
NVIDIA_FULLSCREEN_BUG_MIN_VERSION = Version.of(400, 0)
NVIDIA_FULLSCREEN_BUG_MAX_VERSION = Version.of(411, 73)
# First emulator build with the Vulkan fullscreen freeze workaround.
NVIDIA_FULLSCREEN_BUG_FIXED = Version.of(0, 0, 6, 8204)
AMD_RECOMMENDED_OLD_WINDOWS_VERSION = Version.of(18, 8, 1)

# Windows MAX_PATH and the longest folder that still fits an 8.3 file name.
MAX_PATH = 260
MAX_FOLDER_PATH = MAX_PATH - 1 - 8 - 3

MIN_THREAD_COUNT = 4
RYZEN_RECOMMENDED_THREADS = 12
INTEL_MOBILE_RECOMMENDED_THREADS = 8

# Substrings of Intel CPU names that mark low-end models.
INTEL_WEAK_FAMILIES: Tuple[str, ...] = ("Core2", "Celeron", "Atom", "Pentium")

AUDIO_ERROR_THRESHOLD = 100

# Checkbox marks used by the settings dump.
ENABLED_MARK = "[x]"
DISABLED_MARK = "[ ]"

INTEL_GPU_MODEL = re.compile(
    r"Intel\s?(®|\(R\))? (?P<gpu_model>(?P<gpu_family>(\w| )+Graphics)( (?P<gpu_model_number>P?\d+))?)(\s+\(|$)",
    re.IGNORECASE,
)
# Skylake-era iGPU model numbers.
INTEL_SKYLAKE_MODEL_RANGE = range(500, 1001)

# Install location of the emulator, matched against the compat database path.
INSTALL_PATH = re.compile(
    r"[A-Z]:/(?P<program_files>Program Files( \(x86\))?/)?(?P<desktop>([^/]+/)+Desktop/)?(?P<rpcs3_folder>[^/]+/)*GuiConfigs/",
    re.IGNORECASE,
)


def is_nvidia(gpu_info: str) -> bool:
    return "GeForce" in gpu_info or "nvidia" in gpu_info.lower() or "Quadro" in gpu_info


def is_amd(gpu_info: str) -> bool:
    return "Radeon" in gpu_info or "AMD" in gpu_info or "Advanced Micro Devices" in gpu_info
