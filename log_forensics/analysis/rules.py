# log_forensics/analysis/rules.py
"""
Diagnostic rules and their fixed evaluation order.

Every rule has the signature ``rule(ctx, fields) -> None``. A rule may append
notes and downgrade the status; it must treat missing or malformed fields as
"does not fire". ``RULES`` is the evaluation order and changing it changes
the produced notes.
"""

from __future__ import annotations

import ntpath
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from log_forensics.analysis.base import AnalysisContext, ParseError, Severity, StatusClass
from log_forensics.analysis.fields import FieldMap
from log_forensics.analysis.versions import Version, classify_build_age, describe_time_delta
from log_forensics.config import RuleConfig
from log_forensics.knowledge import hardware as hw
from log_forensics.knowledge.known_titles import (
    DES_IDS,
    MINIS_CATEGORIES,
    P5_IDS,
    P5_OLD_60FPS_COUNTS,
    P5_PATCH_60FPS_V2_MIN,
    PRODUCT_CODE,
    PS2_CATEGORIES,
    PSP_CATEGORIES,
)

Rule = Callable[[AnalysisContext, FieldMap], None]

# Keeps user-supplied text from closing inline code spans.
BACKTICK_SUBSTITUTE = "ˋ"

# --- Fatal errors -----------------------------------------------------------

FatalPredicate = Callable[[str, str], bool]


def _contains(needle: str) -> FatalPredicate:
    lowered = needle.lower()
    return lambda error, context: lowered in error.lower()


def _null_file(prefix: str) -> FatalPredicate:
    def predicate(error: str, context: str) -> bool:
        if "file is null" not in error:
            return False
        if context.upper().startswith(prefix):
            return True
        return prefix == "RSX" and error.startswith("RSX:")

    return predicate


# First matching entry wins.
FATAL_ERROR_TABLE: Tuple[Tuple[FatalPredicate, Severity, str], ...] = (
    (
        lambda error, context: (
            "psf.cpp" in error.lower()
            or "invalid map<k, t>" in error.lower()
            or "savedata" in context.lower()
        ),
        Severity.FAILURE,
        "Game save data is corrupted",
    ),
    (
        lambda error, context: "Could not bind OpenGL context" in error,
        Severity.FAILURE,
        "GPU or installed GPU drivers do not support OpenGL 4.3",
    ),
    (
        _null_file("RSX"),
        Severity.FAILURE,
        "Shader cache might be corrupted; right-click on the game, then `Remove` → `Shader Cache`",
    ),
    (
        _null_file("SPU"),
        Severity.FAILURE,
        "SPU cache might be corrupted; right-click on the game, then `Remove` → `SPU Cache`",
    ),
    (
        _null_file("PPU"),
        Severity.FAILURE,
        "PPU cache might be corrupted; right-click on the game, then `Remove` → `PPU Cache`",
    ),
    # ERROR_CRC on Windows
    (
        _contains("(e=0x17): file::read"),
        Severity.FAILURE,
        "Storage device communication error; check your cables",
    ),
    (
        lambda error, context: "Unknown primitive type" in error,
        Severity.WARNING,
        "RSX desync detected, it's probably random",
    ),
)


def classify_fatal_error(error: str, context: str) -> Optional[Tuple[Severity, str]]:
    for predicate, severity, text in FATAL_ERROR_TABLE:
        if predicate(error, context):
            return severity, text
    return None


def fatal_error_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    fatal_error = fields.get("fatal_error")
    if fatal_error is not None:
        ctx.fatal_error = fatal_error
        bucket = classify_fatal_error(fatal_error, fields.get("fatal_error_context") or "")
        if bucket is not None:
            ctx.add(*bucket)
        return

    syscall = fields.get("unimplemented_syscall")
    if syscall is None or "syscall_988" not in syscall:
        return
    ctx.fatal_error = f"Unimplemented syscall {syscall}"
    ppu_decoder = fields.get("ppu_decoder") or ""
    if "Recompiler" in ppu_decoder and ctx.status != StatusClass.PLAYABLE:
        ctx.add(
            Severity.WARNING,
            "PPU desync detected; check your save data for corruption and/or try PPU Interpreter",
        )
    else:
        ctx.add(Severity.WARNING, "PPU desync detected, most likely cause is corrupted save data")


# --- Status and boot ----------------------------------------------------------


def status_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    if ctx.status in (StatusClass.NOTHING, StatusClass.LOADABLE):
        ctx.add(Severity.FAILURE, "This game doesn't work on the emulator yet")


def boot_failures_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    if "failed_to_decrypt" in fields:
        ctx.add(Severity.FAILURE, "Failed to decrypt game content, license file might be corrupted")
    if "failed_to_boot" in fields:
        ctx.add(Severity.FAILURE, "Failed to boot the game, the dump might be encrypted or corrupted")
    if "sce" in fields.get_all("failed_to_verify", distinct=True):
        ctx.add(Severity.FAILURE, "Failed to decrypt executables, PPU recompiler may crash or fail")


def dump_integrity_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    if ctx.broken_dump:
        ctx.add(Severity.FAILURE, "Some game files are missing or corrupted, please re-dump and validate.")
    elif ctx.catalog_checked:
        ctx.add(Severity.CONFIRMED, "Checked missing files against IRD")


def firmware_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    if not fields.has("fw_version_installed"):
        return
    version = fields.get_version("fw_version_installed")
    if version is None:
        ctx.add(Severity.WARNING, "Custom firmware is not supported, please use the latest official one")
    elif version < hw.MINIMUM_FIRMWARE_VERSION:
        ctx.add(Severity.WARNING, f"Firmware version {hw.MINIMUM_FIRMWARE_VERSION} or later is recommended")


# --- Paths and boot location -----------------------------------------------------

PATH_LENGTH_CANDIDATES = (
    "win_path",
    "ldr_game_full",
    "ldr_disc_full",
    "ldr_path_full",
    "ldr_boot_path_full",
    "elf_boot_path_full",
)


def path_length_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    """At most one note; stops at the first path that trips any limit."""
    if fields.get("os_type") != "Windows":
        return
    for key in PATH_LENGTH_CANDIDATES:
        path = fields.get(key)
        if not path:
            continue
        if len(path) > hw.MAX_PATH:
            ctx.add(Severity.WARNING, f"Some file paths are longer than {hw.MAX_PATH} characters")
            return
        base_dir = ntpath.dirname(path)
        if len(base_dir) > hw.MAX_FOLDER_PATH:
            ctx.add(Severity.WARNING, f"Some folder paths are longer than {hw.MAX_FOLDER_PATH} characters")
            return
        if len(base_dir) + ctx.longest_known_path > hw.MAX_PATH:
            ctx.add(
                Severity.WARNING,
                f"Some file paths are potentially longer than {hw.MAX_PATH} characters",
            )
            return


def _is_eboot(elf_boot_path: str) -> bool:
    return elf_boot_path.upper().endswith("EBOOT.BIN")


def boot_location_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    serial = fields.get("serial") or ""
    elf_boot_path = fields.get("elf_boot_path") or ""
    is_eboot = bool(elf_boot_path) and _is_eboot(elf_boot_path)
    is_elf = bool(elf_boot_path) and not _is_eboot(elf_boot_path)

    if fields.has("host_root_in_boot") and is_eboot:
        ctx.add(
            Severity.FAILURE,
            "Retail game booted as an ELF through the `/root_host/`, probably due to passing path "
            "as an argument; please boot through the game library list for now",
        )

    path = fields.first("ldr_game", "ldr_path", "ldr_boot_path", "elf_boot_path")
    mount_serials = (
        fields.get("ldr_game_serial"),
        fields.get("ldr_path_serial"),
        fields.get("ldr_boot_path_serial"),
        fields.get("elf_boot_path_serial"),
    )
    if path and serial.startswith("NP") and serial not in mount_serials:
        ctx.add(Severity.FAILURE, "Digital version of the game outside of `/dev_hdd0/game/` directory")

    # The loader path logged before settings is unreliable, only the disc mount is checked.
    if fields.has("ldr_disc") and serial.startswith("BL") and fields.has("ldr_disc_serial"):
        ctx.add(Severity.FAILURE, "Disc version of the game inside the `/dev_hdd0/game/` directory")

    if serial and is_elf:
        ctx.add(
            Severity.WARNING,
            f"Retail game booted directly through `{ntpath.basename(elf_boot_path)}`, which is not recommended",
        )


def log_source_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    if "log_from_ui" in fields:
        ctx.add(Severity.INFO, "The log is a copy from UI, please upload the full file created by RPCS3")
        return
    if not fields:
        return
    if not fields.has("ppu_decoder") or not fields.has("renderer"):
        ctx.add(Severity.INFO, "The log is empty")
        ctx.add(Severity.INFO, "Please boot the game and upload a new log")
        return
    fw_version = fields.get("fw_version_installed")
    if (
        not fields.has("serial")
        and not fields.has("game_title")
        and fields.has("fw_installed_message")
        and fw_version is not None
    ):
        ctx.add(Severity.INFO, f"The log contains only installation of firmware {fw_version}")
        ctx.add(Severity.INFO, "Please boot the game and upload a new log")


def unsupported_platform_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    category = fields.get("game_category")
    serial = fields.get("serial") or ""
    if category in PSP_CATEGORIES or (serial.startswith("U") and PRODUCT_CODE.search(serial)):
        ctx.downgrade(StatusClass.NOTHING)
        ctx.add(Severity.FAILURE, "PSP software is not supported")
    elif category in MINIS_CATEGORIES:
        ctx.downgrade(StatusClass.NOTHING)
        ctx.add(Severity.FAILURE, "Minis are not supported")
    if category in PS2_CATEGORIES:
        ctx.downgrade(StatusClass.NOTHING)
        ctx.add(Severity.FAILURE, "PS2 software is not supported")


def install_path_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    db_path = fields.get("compat_database_path")
    if db_path is None:
        return
    match = hw.INSTALL_PATH.search(db_path.replace("\\", "/").replace("//", "/").strip())
    if match is None:
        return
    folder_missing = not match.group("rpcs3_folder")
    desktop = bool(match.group("desktop"))
    program_files = bool(match.group("program_files"))
    if folder_missing:
        if desktop:
            ctx.add(Severity.INFO, "RPCS3 installed directly on desktop, without folder")
        elif program_files:
            ctx.add(Severity.WARNING, "RPCS3 installed directly inside Program Files, without folder")
        else:
            ctx.add(
                Severity.WARNING,
                "RPCS3 installed in the drive root, please create a folder and move all files inside",
            )
    if program_files:
        ctx.add(Severity.WARNING, "Program Files have special permissions, please move RPCS3 to another location")


# --- Hardware -------------------------------------------------------------------


def _is_weak_intel(cpu: str, threads: Optional[int]) -> bool:
    if any(family in cpu for family in hw.INTEL_WEAK_FAMILIES):
        return True
    if cpu.endswith(("U", "M")) or "Y" in cpu:
        return True
    return cpu.endswith(("HQ", "H")) and threads is not None and threads < hw.INTEL_MOBILE_RECOMMENDED_THREADS


def cpu_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    threads = fields.get_int("thread_count")
    if threads is not None and threads < hw.MIN_THREAD_COUNT:
        suffix = "" if threads == 1 else "s"
        ctx.add(Severity.WARNING, f"This CPU only has {threads} hardware thread{suffix} enabled")

    cpu = fields.get("cpu_model")
    if cpu is None:
        return
    if cpu.startswith("AMD"):
        if "Ryzen" in cpu:
            if threads is not None and threads < hw.RYZEN_RECOMMENDED_THREADS:
                ctx.add(Severity.WARNING, "Six cores or more is recommended for Ryzen CPUs")
            if fields.get("os_type") != "Linux" and fields.get("thread_scheduler") == hw.DISABLED_MARK:
                ctx.add(Severity.WARNING, "Please enable `Thread scheduler` option in the CPU Settings")
        else:
            ctx.add(Severity.WARNING, "AMD CPUs before Ryzen are too weak for PS3 emulation")

    extensions = fields.get("cpu_extensions")
    if cpu.startswith("Intel") and extensions is not None and "TSX" not in extensions:
        if _is_weak_intel(cpu, threads):
            ctx.add(Severity.WARNING, "This CPU is too old and/or too weak for PS3 emulation")


def effective_opengl_version(fields: FieldMap) -> Optional[Version]:
    """Greater of the reported OpenGL version and the GLSL-derived one."""
    gl_version = fields.get_version("opengl_version")
    glsl = fields.get_version("glsl_version")
    if glsl is not None:
        from_glsl = Version.of(glsl.major, glsl.minor // 10)
        if gl_version is None or from_glsl > gl_version:
            gl_version = from_glsl
    return gl_version


def _intel_model_number(gpu_info: str) -> Optional[int]:
    match = hw.INTEL_GPU_MODEL.search(gpu_info)
    if match is None:
        return None
    model = (match.group("gpu_model_number") or "").lstrip("P")
    return int(model) if model.isdigit() else 0


def _driver_notes(ctx: AnalysisContext, fields: FieldMap, gpu_info: str) -> None:
    driver_info = fields.get("driver_version_info")
    if driver_info is None:
        return
    driver = Version.parse(driver_info)
    build = fields.get_version("build_version")
    build_number = fields.get_int("build_number")
    amd_note = f"Please update your AMD GPU driver to at least version {hw.AMD_RECOMMENDED_OLD_WINDOWS_VERSION}"

    if driver is None or build is None or build_number is None:
        if "older than" in driver_info.lower() and hw.is_amd(gpu_info):
            ctx.add(Severity.OUTDATED, amd_note)
        return

    build = Version.of(build.component(0), build.component(1), build.component(2), build_number)
    if hw.is_nvidia(gpu_info):
        if driver < hw.NVIDIA_RECOMMENDED_OLD_WINDOWS_VERSION:
            ctx.add(
                Severity.OUTDATED,
                f"Please update your nVidia GPU driver to at least version {hw.NVIDIA_RECOMMENDED_OLD_WINDOWS_VERSION}",
            )
        os_type = fields.get("os_type")
        if (
            os_type is not None
            and os_type != "Linux"
            and build < hw.NVIDIA_FULLSCREEN_BUG_FIXED
            and fields.get("build_branch") == "HEAD"
            and hw.NVIDIA_FULLSCREEN_BUG_MIN_VERSION <= driver < hw.NVIDIA_FULLSCREEN_BUG_MAX_VERSION
            and fields.get("renderer") == "Vulkan"
        ):
            ctx.add(Severity.INFO, "400 series nVidia drivers can cause screen freezes, please update RPCS3")
    elif hw.is_amd(gpu_info):
        if driver < hw.AMD_RECOMMENDED_OLD_WINDOWS_VERSION:
            ctx.add(Severity.OUTDATED, amd_note)


def gpu_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    gl_version = effective_opengl_version(fields)
    if gl_version is not None and gl_version < hw.MINIMUM_OPENGL_VERSION:
        ctx.add(
            Severity.FAILURE,
            f"GPU only supports OpenGL {gl_version.major}.{gl_version.minor}, "
            f"which is below the minimum requirement of {hw.MINIMUM_OPENGL_VERSION}",
        )
        ctx.supported_gpu = False

    gpu_info = fields.first("gpu_info", "discrete_gpu_info")
    if not ctx.supported_gpu or not gpu_info:
        return

    model_number = _intel_model_number(gpu_info)
    if model_number is not None:
        if model_number not in hw.INTEL_SKYLAKE_MODEL_RANGE:
            ctx.add(Severity.WARNING, "Intel iGPUs before Skylake do not fully comply with OpenGL 4.3")
            ctx.supported_gpu = False
        else:
            ctx.add(Severity.WARNING, "Intel iGPUs are not officially supported; visual glitches are to be expected")

    _driver_notes(ctx, fields, gpu_info)


def shader_compile_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    if not fields.has("shader_compile_error"):
        return
    if ctx.supported_gpu:
        ctx.add(Severity.FAILURE, "Shader compilation error might indicate shader cache corruption")
    else:
        ctx.add(Severity.FAILURE, "Shader compilation error on unsupported GPU")


def audio_backend_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    if not fields.has("enqueue_buffer_error"):
        return
    if ctx.state.value_hit_stats.get("enqueue_buffer_error", 0) <= hw.AUDIO_ERROR_THRESHOLD:
        return
    if fields.get("os_type") == "Windows":
        ctx.add(
            Severity.WARNING,
            "Audio backend issues detected; it could be caused by a bad driver or 3rd party software",
        )
    else:
        ctx.add(Severity.WARNING, "Audio backend issues detected; check for high audio driver/sink latency")


# --- Patches --------------------------------------------------------------------


def get_patches(fields: FieldMap, hash_key: str, patch_key: str) -> Dict[str, int]:
    """Pair hashes with applied patch counts by position; zero counts are skipped."""
    hashes = fields.get_all(hash_key)
    counts = fields.get_all(patch_key)
    if not hashes or not counts:
        return {}
    if len(hashes) != len(counts):
        logger.warning(
            "Mismatched {hash_key}/{patch_key} counts: {h} vs {p}",
            hash_key=hash_key,
            patch_key=patch_key,
            h=len(hashes),
            p=len(counts),
        )
        return {}
    patches: Dict[str, int] = {}
    for hash_value, count in zip(hashes, counts):
        try:
            applied = int(count.strip())
        except ValueError:
            continue
        if applied > 0:
            patches[hash_value] = applied
    return patches


def patches_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    ctx.ppu_patches = get_patches(fields, "ppu_hash", "ppu_hash_patch")
    ctx.ovl_patches = get_patches(fields, "ovl_hash", "ovl_hash_patch")
    ctx.spu_patches = get_patches(fields, "spu_hash", "spu_hash_patch")

    parts: List[str] = []
    for label, patches in (("PPU", ctx.ppu_patches), ("OVL", ctx.ovl_patches), ("SPU", ctx.spu_patches)):
        if patches:
            parts.append(f"{label}: " + "/".join(str(n) for n in patches.values()))
    if parts:
        ctx.add(Severity.INFO, f"Game-specific patches were applied ({', '.join(parts)})")

    if fields.get("serial") in P5_IDS:
        counts = list(ctx.ppu_patches.values())
        if any(n > P5_PATCH_60FPS_V2_MIN or n in P5_OLD_60FPS_COUNTS for n in counts):
            ctx.add(Severity.INFO, "60 fps patch is enabled; please disable if you have any strange issues")
        if any(n in P5_OLD_60FPS_COUNTS for n in counts):
            ctx.add(Severity.WARNING, "An old version of the 60 fps patch is used")

    ppu_hashes = fields.get_all("ppu_hash")
    if ppu_hashes:
        exe = ntpath.basename(fields.get("elf_boot_path") or "")
        exe = "Main" if not exe or exe.upper() == "EBOOT.BIN" else f"`{exe}`"
        ctx.add(Severity.INFO, f"{exe} hash: `PPU-{ppu_hashes[0]}`")


# --- Installation and runtime errors -------------------------------------------


def disc_install_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    category = fields.get("game_category")
    digital = (fields.get("serial") or "").upper().startswith("NP")
    disc_inside_game = False
    disc_as_pkg = False
    # Only disc games install game data.
    if category in ("DG", "GD"):
        disc_inside_game = fields.has("ldr_disc") and not digital
        disc_as_pkg = digital or (fields.get("ldr_game_serial") or "").upper().startswith("NP")
    if category == "HG" and not digital:
        disc_as_pkg = True

    if disc_inside_game:
        ctx.add(Severity.FAILURE, f"Disc game inside `{fields.get('ldr_disc')}`")
    if disc_as_pkg:
        ctx.add(Severity.SPECIAL, "Disc game installed as a PKG")


def _trim(text: str, length: int) -> str:
    return text if len(text) <= length else text[: length - 1] + "…"


def misc_errors_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    if fields.has("native_ui_input"):
        ctx.add(Severity.WARNING, "Pad initialization problem detected; try disabling `Native UI`")
    if fields.has("xaudio_init_error"):
        ctx.add(Severity.FAILURE, "XAudio initialization failed; make sure you have audio output device working")
    if fields.has("fw_missing_msg") or fields.has("fw_missing_something"):
        ctx.add(Severity.FAILURE, "PS3 firmware is missing or corrupted")
    mod = fields.get("game_mod")
    if mod is not None:
        ctx.add(Severity.INFO, f"Game files modification present: `{_trim(mod, 10)}`")


def make_build_age_rule(config: RuleConfig) -> Rule:
    """Build staleness rule bound to the configured age tiers."""

    def build_age_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
        info = ctx.update_info
        if info is None:
            return
        branch = (fields.get("build_branch") or "").lower()
        if branch not in ("head", "spu_perf") and not (branch == "" and info.current_build is not None):
            return

        delta = info.delta
        if delta is None:
            ctx.add(Severity.WARNING, "This RPCS3 build is outdated, please consider updating it")
        else:
            severity = classify_build_age(delta, config)
            if severity is not None:
                ctx.add(
                    severity,
                    f"This RPCS3 build is {describe_time_delta(delta)} old, please consider updating it",
                )
        if branch == "spu_perf":
            ctx.add(
                Severity.INFO,
                f"`{branch}` build is obsolete, current master build offers at least the same level "
                "of performance and includes many additional improvements",
            )

    return build_age_rule


def failed_pad_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    failed_pad = fields.get("failed_pad")
    if failed_pad is not None:
        device = failed_pad.replace("`", BACKTICK_SUBSTITUTE)
        ctx.add(Severity.FAILURE, f"Binding `{device}` failed, check if device is connected.")


def known_title_hints_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    if fields.get("serial") in DES_IDS:
        ctx.add(
            Severity.INFO,
            "If you experience infinite load screen, clear game cache via `File` → `All games` → `Remove Disk Cache`",
        )


# --- Trailing notes; these read the final note list ---------------------------


def custom_config_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    if "custom_config" not in fields:
        return
    if ctx.notes or "weird_settings_notes" in fields:
        ctx.add(Severity.WARNING, "To change custom configuration, **Right-click on the game**, then `Configure`")


def size_limit_rule(ctx: AnalysisContext, fields: FieldMap) -> None:
    if ctx.state.error == ParseError.SIZE_LIMIT:
        ctx.add(Severity.INFO, "The log was too large, so only the last processed run is shown")


def build_rules(config: Optional[RuleConfig] = None) -> Tuple[Tuple[str, Rule], ...]:
    """The ordered rule table for one configuration."""
    config = config or RuleConfig()
    return (
        ("fatal_error", fatal_error_rule),
        ("status", status_rule),
        ("boot_failures", boot_failures_rule),
        ("dump_integrity", dump_integrity_rule),
        ("firmware", firmware_rule),
        ("path_length", path_length_rule),
        ("boot_location", boot_location_rule),
        ("log_source", log_source_rule),
        ("unsupported_platform", unsupported_platform_rule),
        ("install_path", install_path_rule),
        ("cpu", cpu_rule),
        ("gpu", gpu_rule),
        ("shader_compile", shader_compile_rule),
        ("audio_backend", audio_backend_rule),
        ("patches", patches_rule),
        ("disc_install", disc_install_rule),
        ("misc_errors", misc_errors_rule),
        ("build_age", make_build_age_rule(config)),
        ("failed_pad", failed_pad_rule),
        ("known_title_hints", known_title_hints_rule),
        ("custom_config", custom_config_rule),
        ("size_limit", size_limit_rule),
    )


RULES = build_rules()
RULE_NAMES: Tuple[str, ...] = tuple(name for name, _ in RULES)
