from __future__ import annotations

from typing import Dict, List, Tuple

from log_forensics.analysis import rules
from log_forensics.analysis.base import (
    AnalysisContext,
    BrokenFileVerdict,
    LogParseState,
    Severity,
    StatusClass,
)
from log_forensics.analysis.broken_files import UNCHECKED
from log_forensics.analysis.fields import FieldMap
from log_forensics.analysis.versions import Version

ACTIVE_LOG = {"ppu_decoder": "Recompiler (LLVM)", "renderer": "Vulkan"}


def _ctx(
    fields: Dict[str, str],
    *,
    status: StatusClass = StatusClass.UNKNOWN,
    verdict: BrokenFileVerdict = UNCHECKED,
    hits: Dict[str, int] | None = None,
) -> Tuple[AnalysisContext, FieldMap]:
    fm = FieldMap(fields)
    state = LogParseState(fields=fm, value_hit_stats=hits or {}, status=status)
    ctx = AnalysisContext(state=state, verdict=verdict, status=status)
    return ctx, fm


def _run(rule, fields: Dict[str, str], **kwargs) -> List[str]:
    ctx, fm = _ctx(fields, **kwargs)
    rule(ctx, fm)
    return [n.line for n in ctx.notes]


# --- fatal errors ---


def test_fatal_error_first_match_wins() -> None:
    lines = _run(
        rules.fatal_error_rule,
        {"fatal_error": "Could not bind OpenGL context (psf.cpp:10)"},
    )

    assert lines == ["❌ Game save data is corrupted"]


def test_fatal_error_cache_bucket_uses_context_prefix() -> None:
    spu = _run(rules.fatal_error_rule, {"fatal_error": "file is null", "fatal_error_context": "SPU[0x0000100] Thread"})
    rsx = _run(rules.fatal_error_rule, {"fatal_error": "RSX: file is null"})

    assert spu == ["❌ SPU cache might be corrupted; right-click on the game, then `Remove` → `SPU Cache`"]
    assert rsx[0].startswith("❌ Shader cache might be corrupted")


def test_fatal_error_other_buckets() -> None:
    assert _run(rules.fatal_error_rule, {"fatal_error": "(e=0x17): file::read"}) == [
        "❌ Storage device communication error; check your cables"
    ]
    assert _run(rules.fatal_error_rule, {"fatal_error": "Unknown primitive type 13"}) == [
        "⚠ RSX desync detected, it's probably random"
    ]
    assert _run(rules.fatal_error_rule, {"fatal_error": "Something else entirely"}) == []


def test_fatal_error_is_recorded() -> None:
    ctx, fm = _ctx({"fatal_error": "boom", "unimplemented_syscall": "syscall_988"})
    rules.fatal_error_rule(ctx, fm)

    assert ctx.fatal_error == "boom"
    assert ctx.notes == []


def test_unimplemented_syscall_wording_depends_on_decoder_and_status() -> None:
    fields = {"unimplemented_syscall": "syscall_988", "ppu_decoder": "Recompiler (LLVM)"}

    ctx, fm = _ctx(fields, status=StatusClass.INGAME)
    rules.fatal_error_rule(ctx, fm)
    assert ctx.fatal_error == "Unimplemented syscall syscall_988"
    assert ctx.notes[0].text.endswith("and/or try PPU Interpreter")

    assert _run(rules.fatal_error_rule, fields, status=StatusClass.PLAYABLE) == [
        "⚠ PPU desync detected, most likely cause is corrupted save data"
    ]
    assert _run(rules.fatal_error_rule, {"unimplemented_syscall": "syscall_123"}) == []


# --- status and platform ---


def test_status_rule_only_for_worst_statuses() -> None:
    assert _run(rules.status_rule, {}, status=StatusClass.LOADABLE) == [
        "❌ This game doesn't work on the emulator yet"
    ]
    assert _run(rules.status_rule, {}, status=StatusClass.INGAME) == []


def test_unsupported_category_forces_worst_status() -> None:
    ctx, fm = _ctx({"game_category": "2P"}, status=StatusClass.PLAYABLE)
    rules.unsupported_platform_rule(ctx, fm)

    assert ctx.status == StatusClass.NOTHING
    assert [n.text for n in ctx.notes] == ["PS2 software is not supported"]


def test_psp_detected_from_product_code() -> None:
    assert _run(rules.unsupported_platform_rule, {"serial": "ULUS10041"}) == ["❌ PSP software is not supported"]
    assert _run(rules.unsupported_platform_rule, {"game_category": "MN"}) == ["❌ Minis are not supported"]


def test_downgrade_never_upgrades() -> None:
    ctx, _ = _ctx({}, status=StatusClass.NOTHING)
    ctx.downgrade(StatusClass.PLAYABLE)

    assert ctx.status == StatusClass.NOTHING


# --- boot failures, dump integrity, firmware ---


def test_boot_failures() -> None:
    lines = _run(
        rules.boot_failures_rule,
        {"failed_to_decrypt": "", "failed_to_verify": "npdrm\nsce\nsce"},
    )

    assert lines == [
        "❌ Failed to decrypt game content, license file might be corrupted",
        "❌ Failed to decrypt executables, PPU recompiler may crash or fail",
    ]
    assert _run(rules.boot_failures_rule, {"failed_to_verify": "npdrm"}) == []


def test_dump_integrity_is_mutually_exclusive() -> None:
    checked = BrokenFileVerdict(True, False, 41)

    ctx, fm = _ctx({}, verdict=checked)
    ctx.broken_dump = True
    rules.dump_integrity_rule(ctx, fm)
    assert [n.line for n in ctx.notes] == ["❌ Some game files are missing or corrupted, please re-dump and validate."]

    assert _run(rules.dump_integrity_rule, {}, verdict=checked) == ["✅ Checked missing files against IRD"]
    assert _run(rules.dump_integrity_rule, {}) == []


def test_firmware_version() -> None:
    assert _run(rules.firmware_rule, {"fw_version_installed": "4.81"}) == []
    assert _run(rules.firmware_rule, {"fw_version_installed": "4.70"}) == [
        "⚠ Firmware version 4.80 or later is recommended"
    ]
    assert _run(rules.firmware_rule, {"fw_version_installed": "4.84 Evilnat"}) == [
        "⚠ Custom firmware is not supported, please use the latest official one"
    ]
    assert _run(rules.firmware_rule, {"fw_version_installed": ""}) == []


# --- paths ---


def test_path_length_stops_at_first_candidate() -> None:
    fields = {
        "os_type": "Windows",
        "win_path": "C:/" + "a" * 270 + "/rpcs3.exe",
        "ldr_game_full": "C:/" + "b" * 250 + "/EBOOT.BIN",
    }

    assert _run(rules.path_length_rule, fields) == ["⚠ Some file paths are longer than 260 characters"]


def test_path_length_folder_and_potential_checks() -> None:
    folder = {"os_type": "Windows", "win_path": "C:/" + "a" * 247 + "/x.exe"}
    potential = {"os_type": "Windows", "win_path": "C:/" + "a" * 227 + "/x.exe"}
    short = {"os_type": "Windows", "win_path": "C:/Games/rpcs3/rpcs3.exe"}

    assert _run(rules.path_length_rule, folder) == ["⚠ Some folder paths are longer than 248 characters"]
    assert _run(rules.path_length_rule, potential) == [
        "⚠ Some file paths are potentially longer than 260 characters"
    ]
    assert _run(rules.path_length_rule, short) == []
    assert _run(rules.path_length_rule, {**folder, "os_type": "Linux"}) == []


def test_path_length_without_separator_has_no_folder() -> None:
    fields = {"os_type": "Windows", "win_path": "a" * 250}

    assert _run(rules.path_length_rule, fields) == []


def test_path_length_uses_catalog_longest_path() -> None:
    fields = {"os_type": "Windows", "win_path": "C:/" + "a" * 150 + "/x.exe"}

    assert _run(rules.path_length_rule, fields) == []
    assert _run(rules.path_length_rule, fields, verdict=BrokenFileVerdict(True, False, 120)) == [
        "⚠ Some file paths are potentially longer than 260 characters"
    ]


def test_digital_game_outside_game_directory() -> None:
    fields = {
        "serial": "NPUB30910",
        "ldr_game": "/dev_hdd0/disc/PS3_GAME",
        "ldr_game_serial": "BLUS30443",
    }

    assert _run(rules.boot_location_rule, fields) == [
        "❌ Digital version of the game outside of `/dev_hdd0/game/` directory"
    ]
    assert _run(rules.boot_location_rule, {**fields, "ldr_game_serial": "NPUB30910"}) == []


def test_disc_game_inside_game_directory_and_elf_boot() -> None:
    disc = {"serial": "BLUS30443", "ldr_disc": "/dev_hdd0/game/BLUS30443", "ldr_disc_serial": "BLUS30443"}
    elf = {"serial": "BLUS30443", "elf_boot_path": "/dev_hdd0/game/BLUS30443/USRDIR/game.self"}

    assert _run(rules.boot_location_rule, disc) == ["❌ Disc version of the game inside the `/dev_hdd0/game/` directory"]
    assert _run(rules.boot_location_rule, elf) == [
        "⚠ Retail game booted directly through `game.self`, which is not recommended"
    ]


def test_install_path_classification() -> None:
    program_files = {"compat_database_path": "C:\\Program Files\\RPCS3\\GuiConfigs\\compat_database.dat"}
    drive_root = {"compat_database_path": "D:/GuiConfigs/compat_database.dat"}
    desktop = {"compat_database_path": "C:/Users/me/Desktop/GuiConfigs/compat_database.dat"}

    assert _run(rules.install_path_rule, program_files) == [
        "⚠ Program Files have special permissions, please move RPCS3 to another location"
    ]
    assert _run(rules.install_path_rule, drive_root) == [
        "⚠ RPCS3 installed in the drive root, please create a folder and move all files inside"
    ]
    assert _run(rules.install_path_rule, desktop) == ["ℹ RPCS3 installed directly on desktop, without folder"]
    assert _run(rules.install_path_rule, {"compat_database_path": "/home/me/.config/rpcs3"}) == []


# --- log source ---


def test_log_source_notes() -> None:
    assert _run(rules.log_source_rule, {"log_from_ui": ""}) == [
        "ℹ The log is a copy from UI, please upload the full file created by RPCS3"
    ]
    assert _run(rules.log_source_rule, {"renderer": "Vulkan"}) == [
        "ℹ The log is empty",
        "ℹ Please boot the game and upload a new log",
    ]
    assert _run(
        rules.log_source_rule,
        {**ACTIVE_LOG, "fw_installed_message": "done", "fw_version_installed": "4.88"},
    ) == [
        "ℹ The log contains only installation of firmware 4.88",
        "ℹ Please boot the game and upload a new log",
    ]
    assert _run(rules.log_source_rule, {}) == []


# --- hardware ---


def test_low_thread_count() -> None:
    assert _run(rules.cpu_rule, {"thread_count": "1"}) == ["⚠ This CPU only has 1 hardware thread enabled"]
    assert _run(rules.cpu_rule, {"thread_count": "2"}) == ["⚠ This CPU only has 2 hardware threads enabled"]
    assert _run(rules.cpu_rule, {"thread_count": "lots"}) == []


def test_cpu_vendor_checks() -> None:
    assert _run(rules.cpu_rule, {"cpu_model": "AMD FX-8350", "thread_count": "8"}) == [
        "⚠ AMD CPUs before Ryzen are too weak for PS3 emulation"
    ]
    assert _run(
        rules.cpu_rule,
        {"cpu_model": "AMD Ryzen 7 3700X", "thread_count": "16", "thread_scheduler": "[ ]", "os_type": "Windows"},
    ) == ["⚠ Please enable `Thread scheduler` option in the CPU Settings"]
    assert _run(rules.cpu_rule, {"cpu_model": "Intel Core i5-8250U", "cpu_extensions": "SSE4.1 | AVX"}) == [
        "⚠ This CPU is too old and/or too weak for PS3 emulation"
    ]
    assert _run(rules.cpu_rule, {"cpu_model": "Intel Core i5-8250U", "cpu_extensions": "AVX | TSX"}) == []
    assert _run(
        rules.cpu_rule, {"cpu_model": "Intel Core i7-8750H", "cpu_extensions": "AVX", "thread_count": "12"}
    ) == []


def test_effective_opengl_version_uses_glsl() -> None:
    assert rules.effective_opengl_version(FieldMap({"opengl_version": "3.3", "glsl_version": "4.50"})) == Version.of(4, 5)
    assert rules.effective_opengl_version(FieldMap({"opengl_version": "4.6"})) == Version.of(4, 6)
    assert rules.effective_opengl_version(FieldMap({})) is None


def test_old_opengl_marks_gpu_unsupported() -> None:
    ctx, fm = _ctx({"opengl_version": "3.3", "gpu_info": "GeForce GTX 260", "shader_compile_error": "x"})
    rules.gpu_rule(ctx, fm)
    rules.shader_compile_rule(ctx, fm)

    assert not ctx.supported_gpu
    assert [n.line for n in ctx.notes] == [
        "❌ GPU only supports OpenGL 3.3, which is below the minimum requirement of 4.3",
        "❌ Shader compilation error on unsupported GPU",
    ]


def test_intel_igpu_generations() -> None:
    assert _run(rules.gpu_rule, {"gpu_info": "Intel(R) HD Graphics 4000"}) == [
        "⚠ Intel iGPUs before Skylake do not fully comply with OpenGL 4.3"
    ]
    assert _run(rules.gpu_rule, {"gpu_info": "Intel(R) UHD Graphics 620"}) == [
        "⚠ Intel iGPUs are not officially supported; visual glitches are to be expected"
    ]


def test_gpu_driver_staleness() -> None:
    nvidia = {
        "gpu_info": "GeForce GTX 1060 6GB",
        "driver_version_info": "390.77",
        "build_version": "0.0.5",
        "build_number": "7000",
    }
    amd_unparsed = {"gpu_info": "Radeon RX 580", "driver_version_info": "older than 18.8.1"}

    assert _run(rules.gpu_rule, nvidia) == ["❗ Please update your nVidia GPU driver to at least version 399.41"]
    assert _run(rules.gpu_rule, {**nvidia, "driver_version_info": "430.86"}) == []
    assert _run(rules.gpu_rule, amd_unparsed) == ["❗ Please update your AMD GPU driver to at least version 18.8.1"]


def test_nvidia_vulkan_freeze_hint() -> None:
    fields = {
        "gpu_info": "GeForce GTX 1070",
        "driver_version_info": "411.70",
        "build_version": "0.0.5",
        "build_number": "7000",
        "build_branch": "HEAD",
        "os_type": "Windows",
        "renderer": "Vulkan",
    }

    assert _run(rules.gpu_rule, fields) == [
        "ℹ 400 series nVidia drivers can cause screen freezes, please update RPCS3"
    ]


def test_audio_backend_requires_repeated_errors() -> None:
    fields = {"enqueue_buffer_error": "XAudio2 error", "os_type": "Windows"}

    assert _run(rules.audio_backend_rule, fields, hits={"enqueue_buffer_error": 100}) == []
    assert _run(rules.audio_backend_rule, fields, hits={"enqueue_buffer_error": 101}) == [
        "⚠ Audio backend issues detected; it could be caused by a bad driver or 3rd party software"
    ]


# --- patches ---


def test_patch_maps_pair_by_position() -> None:
    fm = FieldMap({"ppu_hash": "aaa\nbbb\nccc", "ppu_hash_patch": "3\n0\n5"})

    assert rules.get_patches(fm, "ppu_hash", "ppu_hash_patch") == {"aaa": 3, "ccc": 5}
    assert rules.get_patches(FieldMap({"ppu_hash": "aaa", "ppu_hash_patch": "1\n2"}), "ppu_hash", "ppu_hash_patch") == {}


def test_patch_notes() -> None:
    lines = _run(
        rules.patches_rule,
        {"ppu_hash": "aaa\nbbb", "ppu_hash_patch": "3\n0", "spu_hash": "ccc", "spu_hash_patch": "2"},
    )

    assert lines == [
        "ℹ Game-specific patches were applied (PPU: 3, SPU: 2)",
        "ℹ Main hash: `PPU-aaa`",
    ]


def test_known_title_patch_counts() -> None:
    lines = _run(
        rules.patches_rule,
        {"serial": "BLUS31604", "ppu_hash": "aaa", "ppu_hash_patch": "12", "elf_boot_path": "/x/USRDIR/game.self"},
    )

    assert lines == [
        "ℹ Game-specific patches were applied (PPU: 12)",
        "ℹ 60 fps patch is enabled; please disable if you have any strange issues",
        "⚠ An old version of the 60 fps patch is used",
        "ℹ `game.self` hash: `PPU-aaa`",
    ]


# --- installation and trailing notes ---


def test_disc_installed_as_pkg() -> None:
    assert _run(rules.disc_install_rule, {"game_category": "HG", "serial": "BLUS30443"}) == [
        "🔨 Disc game installed as a PKG"
    ]
    assert _run(rules.disc_install_rule, {"game_category": "HG", "serial": "NPUB30910"}) == []
    assert _run(rules.disc_install_rule, {"game_category": "GD", "serial": "BLUS30443", "ldr_disc": "/dev_hdd0/game/X"}) == [
        "❌ Disc game inside `/dev_hdd0/game/X`"
    ]


def test_misc_errors() -> None:
    lines = _run(
        rules.misc_errors_rule,
        {"xaudio_init_error": "1", "fw_missing_something": "1", "game_mod": "/dev_hdd0/game/mods/big"},
    )

    assert lines == [
        "❌ XAudio initialization failed; make sure you have audio output device working",
        "❌ PS3 firmware is missing or corrupted",
        "ℹ Game files modification present: `/dev_hdd0…`",
    ]


def test_failed_pad_sanitizes_backticks() -> None:
    assert _run(rules.failed_pad_rule, {"failed_pad": "pad`1"}) == [
        "❌ Binding `padˋ1` failed, check if device is connected."
    ]


def test_custom_config_reminder_needs_other_notes() -> None:
    ctx, fm = _ctx({"custom_config": ""})
    rules.custom_config_rule(ctx, fm)
    assert ctx.notes == []

    ctx.add(Severity.WARNING, "something")
    rules.custom_config_rule(ctx, fm)
    assert ctx.notes[-1].text.startswith("To change custom configuration")

    assert len(_run(rules.custom_config_rule, {"custom_config": "", "weird_settings_notes": "x"})) == 1
