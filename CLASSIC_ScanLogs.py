import random
import shutil
import time
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, TypeAlias

import regex as re
from packaging.version import Version

import CLASSIC_Integrity as CIntegrity
import CLASSIC_Main as CMain
from CLASSIC_Main import YAML

# [05] DLCRobot.esm | [FE:002] RedRocketsGlareII.esl
PLUGIN_SEARCH = re.compile(r"\s*\[(FE:([0-9A-F]{3})|[0-9A-F]{2})\]\s*(.+?(?:\.es[pml])+)", flags=re.IGNORECASE)
CRASH_LOGS_PATH = Path("Crash Logs")
UNSOLVED_LOGS_PATH = Path("CLASSIC Backup/Unsolved Logs")
MIN_LOG_LINES = 20
MAX_WARN_LENGTH = 30
XCELL_DLLS = ("x-cell-fo4.dll", "x-cell-og.dll", "x-cell-ng2.dll")

GpuRival: TypeAlias = Literal["nvidia", "amd"] | None


def section_header(title: str) -> tuple[str, str, str]:
    return (
        "====================================================\n",
        f"{title}\n",
        "====================================================\n",
    )


# ================================================
# INITIAL REFORMAT FOR CRASH LOG FILES
# ================================================
def crashlogs_get_files() -> list[Path]:
    """Get paths of all available crash logs."""
    CMain.logger.debug("- - - INITIATED CRASH LOG FILE LIST GENERATION")
    classic_folder = Path.cwd()
    classic_logs = classic_folder / CRASH_LOGS_PATH
    custom_folder = CMain.classic_settings(Path, "SCAN Custom Path")
    xse_folder = CMain.game_settings(Path, YAML.Game_Local, "Docs_Folder_XSE")

    classic_logs.mkdir(parents=True, exist_ok=True)
    for pattern in ("crash-*.log", "crash-*-AUTOSCAN.md"):
        for file in classic_folder.glob(pattern):
            destination_file = classic_logs / file.name
            if not destination_file.is_file():
                file.rename(destination_file)
    if xse_folder and xse_folder.is_dir():
        for crash_file in xse_folder.glob("crash-*.log"):
            destination_file = classic_logs / crash_file.name
            if not destination_file.is_file():
                shutil.copy2(crash_file, destination_file)

    crash_files = sorted(classic_logs.rglob("crash-*.log"))
    if custom_folder and custom_folder.is_dir():
        crash_files.extend(sorted(custom_folder.glob("crash-*.log")))
    return crash_files


def crashlogs_reformat(crashlog_list: list[Path], remove_list: list[str]) -> None:
    """Reformat plugin lists in crash logs, so that old and new CRASHGEN formats match."""
    CMain.logger.debug("- - - INITIATED CRASH LOG FILE REFORMAT")
    simplify_logs = CMain.classic_settings(bool, "Simplify Logs")

    for file in crashlog_list:
        with CMain.open_file_with_encoding(file) as crash_log:
            crash_data = crash_log.readlines()

        # The PLUGINS list is always the last segment of the log.
        plugins_start = next((index for index, line in enumerate(crash_data) if line.startswith("PLUGINS:")), len(crash_data))
        reformatted: list[str] = []
        for index, line in enumerate(crash_data):
            if simplify_logs and any(string in line for string in remove_list):
                continue
            if index > plugins_start and "[" in line and "]" in line:
                # [ 1] DLCRobot.esm -> [01] DLCRobot.esm | [FE:  0] Glare.esl -> [FE:000] Glare.esl
                indent, rest = line.split("[", 1)
                fid, name = rest.split("]", 1)
                line = f"{indent}[{fid.replace(' ', '0')}]{name}"
            reformatted.append(line)

        with file.open("w", encoding="utf-8", errors="ignore") as crash_log:
            crash_log.writelines(reformatted)


# ================================================
# CRASH LOG SEGMENTS
# ================================================
@dataclass
class CrashLogSegments:
    game_version: str = "UNKNOWN"
    crashgen: str = "UNKNOWN"
    main_error: str = "UNKNOWN"
    crashgen_settings: list[str] = field(default_factory=list)
    system: list[str] = field(default_factory=list)
    callstack: list[str] = field(default_factory=list)
    allmodules: list[str] = field(default_factory=list)
    xsemodules: list[str] = field(default_factory=list)
    plugins: list[str] = field(default_factory=list)


def find_segments(crash_data: list[str], xse_acronym: str, crashgen_name: str, root_name: str) -> CrashLogSegments:
    """Divide the log up into segments and pick out the header values."""
    segment_starts = {
        "[Compatibility]": "crashgen_settings",
        "SYSTEM SPECS:": "system",
        "PROBABLE CALL STACK:": "callstack",
        "MODULES:": "allmodules",
        f"{xse_acronym.upper()} PLUGINS:": "xsemodules",
        "PLUGINS:": "plugins",
    }
    result = CrashLogSegments()
    found_gameversion = found_crashgen = found_mainerror = False
    current_segment: list[str] | None = None

    for line in crash_data:
        stripped = line.strip()
        if stripped in segment_starts:
            current_segment = getattr(result, segment_starts[stripped])
            continue
        if current_segment is not None:
            if stripped:
                current_segment.append(stripped)
            continue

        if not found_gameversion and root_name and line.startswith(root_name):
            result.game_version, found_gameversion = stripped, True
        elif not found_crashgen and crashgen_name and line.startswith(crashgen_name):
            result.crashgen, found_crashgen = stripped, True
        elif not found_mainerror and line.startswith("Unhandled exception"):
            result.main_error, found_mainerror = line.replace("|", "\n", 1).rstrip(), True

    return result


def crashgen_version_gen(input_string: str) -> Version:
    """Return the first `v`-prefixed version token, e.g. `Buffout 4 v1.28.6` -> 1.28.6."""
    for part in input_string.strip().split():
        if part.startswith("v") and len(part) > 1 and (version := CMain.try_parse_version(part[1:])):
            return version
    return Version("0.0.0")


def crashgen_settings_parse(segment: list[str]) -> dict[str, bool | int | str]:
    crashgen: dict[str, bool | int | str] = {}
    for elem in segment:
        if ":" in elem:
            key, value = (part.strip() for part in elem.split(":", 1))
            crashgen[key] = True if value == "true" else False if value == "false" else int(value) if value.isdecimal() else value
    return crashgen


def xsemodules_parse(segment: list[str]) -> set[str]:
    # SOME IMPORTANT DLLs HAVE A VERSION, REMOVE IT
    return {x.split(" v", 1)[0].strip() if "dll v" in x else x.strip() for x in (line.lower() for line in segment)}


# ================================================
# SCAN CONFIGURATION
# ================================================
@dataclass
class ClassicScanLogsInfo:
    classic_game_hints: list[str] = field(default_factory=list)
    classic_records_list: list[str] = field(default_factory=list)
    classic_version: str = ""
    classic_version_date: str = ""
    crashgen_name: str = ""
    crashgen_latest_og: str = ""
    crashgen_latest_vr: str = ""
    crashgen_ignore: set[str] = field(default_factory=set)
    warn_noplugins: str = ""
    warn_outdated: str = ""
    warn_plugin_limit: str = ""
    xse_acronym: str = ""
    root_name: str = ""
    game_ignore_plugins: list[str] = field(default_factory=list)
    game_ignore_records: list[str] = field(default_factory=list)
    suspects_error_list: dict[str, str] = field(default_factory=dict)
    suspects_stack_list: dict[str, list[str]] = field(default_factory=dict)
    autoscan_text: str = ""
    ignore_list: list[str] = field(default_factory=list)
    game_mods_conf: dict[str, str] = field(default_factory=dict)
    game_mods_core: dict[str, str] = field(default_factory=dict)
    game_mods_core_folon: dict[str, str] = field(default_factory=dict)
    game_mods_freq: dict[str, str] = field(default_factory=dict)
    game_mods_opc2: dict[str, str] = field(default_factory=dict)
    game_mods_solu: dict[str, str] = field(default_factory=dict)
    game_version: Version = field(default=Version("0.0.0"), init=False)
    game_version_new: Version = field(default=Version("0.0.0"), init=False)
    game_version_vr: Version = field(default=Version("0.0.0"), init=False)

    def __post_init__(self) -> None:
        if CMain.yaml_cache is None:
            raise TypeError("CMain is not initialized.")
        game = CMain.gamevars["game"]
        self.classic_game_hints = CMain.yaml_settings(list[str], YAML.Game, "Game_Hints") or []
        self.classic_records_list = CMain.yaml_settings(list[str], YAML.Main, "catch_log_records") or []
        self.classic_version = CMain.yaml_settings(str, YAML.Main, "CLASSIC_Info.version") or ""
        self.classic_version_date = CMain.yaml_settings(str, YAML.Main, "CLASSIC_Info.version_date") or ""
        self.crashgen_name = CMain.game_settings(str, YAML.Game, "CRASHGEN_LogName") or ""
        self.crashgen_latest_og = CMain.yaml_settings(str, YAML.Game, "Game_Info.CRASHGEN_LatestVer") or ""
        self.crashgen_latest_vr = CMain.yaml_settings(str, YAML.Game, "GameVR_Info.CRASHGEN_LatestVer") or ""
        self.crashgen_ignore = set(CMain.game_settings(list[str], YAML.Game, "CRASHGEN_Ignore") or [])
        self.warn_noplugins = CMain.yaml_settings(str, YAML.Game, "Warnings_CRASHGEN.Warn_NOPlugins") or ""
        self.warn_outdated = CMain.yaml_settings(str, YAML.Game, "Warnings_CRASHGEN.Warn_Outdated") or ""
        self.warn_plugin_limit = CMain.yaml_settings(str, YAML.Main, "Mods_Warn.Mods_Plugin_Limit") or ""
        self.xse_acronym = CMain.yaml_settings(str, YAML.Game, "Game_Info.XSE_Acronym") or ""
        self.root_name = CMain.game_settings(str, YAML.Game, "Main_Root_Name") or ""
        self.game_ignore_plugins = CMain.yaml_settings(list[str], YAML.Game, "Crashlog_Plugins_Exclude") or []
        self.game_ignore_records = CMain.yaml_settings(list[str], YAML.Game, "Crashlog_Records_Exclude") or []
        self.suspects_error_list = CMain.yaml_settings(dict[str, str], YAML.Game, "Crashlog_Error_Check") or {}
        self.suspects_stack_list = CMain.yaml_settings(dict[str, list[str]], YAML.Game, "Crashlog_Stack_Check") or {}
        self.autoscan_text = CMain.yaml_settings(str, YAML.Main, f"CLASSIC_Interface.autoscan_text_{game}") or ""
        self.ignore_list = CMain.yaml_settings(list[str], YAML.Ignore, f"CLASSIC_Ignore_{game}") or []
        self.game_mods_conf = CMain.yaml_settings(dict[str, str], YAML.Game, "Mods_CONF") or {}
        self.game_mods_core = CMain.yaml_settings(dict[str, str], YAML.Game, "Mods_CORE") or {}
        self.game_mods_core_folon = CMain.yaml_settings(dict[str, str], YAML.Game, "Mods_CORE_FOLON") or {}
        self.game_mods_freq = CMain.yaml_settings(dict[str, str], YAML.Game, "Mods_FREQ") or {}
        self.game_mods_opc2 = CMain.yaml_settings(dict[str, str], YAML.Game, "Mods_OPC2") or {}
        self.game_mods_solu = CMain.yaml_settings(dict[str, str], YAML.Game, "Mods_SOLU") or {}
        self.game_version = Version(CMain.yaml_settings(str, YAML.Game, "Game_Info.GameVersion") or "0.0.0")
        self.game_version_new = Version(CMain.yaml_settings(str, YAML.Game, "Game_Info.GameVersionNEW") or "0.0.0")
        self.game_version_vr = Version(CMain.yaml_settings(str, YAML.Game, "GameVR_Info.GameVersion") or "0.0.0")


# ================================================
# PLUGINS
# ================================================
@dataclass
class CrashLogPlugins:
    plugins: dict[str, str] = field(default_factory=dict)
    loaded: bool = False
    limit_reached: bool = False
    limit_check_disabled: bool = False
    from_loadorder: bool = False


def plugins_from_loadorder(loadorder_path: Path) -> dict[str, str]:
    with CMain.open_file_with_encoding(loadorder_path) as loadorder_file:
        # First line of loadorder.txt is a header.
        return {line.strip(): "LO" for line in loadorder_file.readlines()[1:] if line.strip()}


def plugins_extract(segments: CrashLogSegments, yamldata: ClassicScanLogsInfo) -> CrashLogPlugins:
    """Collect plugins with their load order index, plus XSE and other important DLLs."""
    result = CrashLogPlugins()
    crashlog_game_version = crashgen_version_gen(segments.game_version)
    loadorder_path = Path("loadorder.txt")

    if loadorder_path.is_file():
        result.plugins = plugins_from_loadorder(loadorder_path)
        result.loaded = result.from_loadorder = True
    else:
        result.loaded = any(f"{CMain.gamevars['game']}.esm" in elem for elem in segments.plugins)
        for elem in segments.plugins:
            if "[FF]" in elem:
                if crashlog_game_version in (yamldata.game_version, yamldata.game_version_vr):
                    result.limit_reached = True
                elif crashlog_game_version >= yamldata.game_version_new:
                    result.limit_check_disabled = True
            if (pluginmatch := PLUGIN_SEARCH.match(elem, concurrent=True)) is not None:
                plugin_fid, plugin_name = pluginmatch.group(1), pluginmatch.group(3)
                if plugin_name not in result.plugins:
                    result.plugins[plugin_name] = plugin_fid.replace(":", "")

    for elem in xsemodules_parse(segments.xsemodules):
        result.plugins.setdefault(elem, "DLL")

    # SOME IMPORTANT DLLs ONLY APPEAR UNDER ALL MODULES
    for elem in segments.allmodules:
        if "vulkan" in elem.lower():
            result.plugins.setdefault(elem.split(" ", 1)[0], "DLL")

    ignore_plugins = {item.lower() for item in yamldata.ignore_list}
    result.plugins = {name: fid for name, fid in result.plugins.items() if name.lower() not in ignore_plugins}
    return result


# ================================================
# MOD DATABASE DETECTION
# ================================================
def detect_mods_single(yaml_dict: dict[str, str], crashlog_plugins: dict[str, str], autoscan_report: list[str]) -> bool:
    """Detect one whole key (1 mod) per loop in YAML dict."""
    trigger_mod_found = False
    for mod_name, mod_warn in yaml_dict.items():
        for plugin_name, plugin_fid in crashlog_plugins.items():
            if mod_name.lower() in plugin_name.lower():
                if not mod_warn:
                    raise ValueError(f"ERROR: {mod_name} has no warning in the database!")
                autoscan_report.extend((f"[!] FOUND : [{plugin_fid}] ", mod_warn))
                trigger_mod_found = True
                break
    return trigger_mod_found


def detect_mods_double(yaml_dict: dict[str, str], crashlog_plugins: dict[str, str], autoscan_report: list[str]) -> bool:
    """Detect one split key (2 mods) per loop in YAML dict."""
    trigger_mod_found = False
    plugins_lower = [plugin.lower() for plugin in crashlog_plugins]
    for mod_name, mod_warn in yaml_dict.items():
        mod_split = mod_name.lower().split(" | ", 1)
        if len(mod_split) < 2:
            continue
        if all(any(part in plugin for plugin in plugins_lower) for part in mod_split):
            if not mod_warn:
                raise ValueError(f"ERROR: {mod_name} has no warning in the database!")
            autoscan_report.extend(("[!] CAUTION : ", mod_warn))
            trigger_mod_found = True
    return trigger_mod_found


def detect_mods_important(yaml_dict: dict[str, str], crashlog_plugins: dict[str, str], autoscan_report: list[str], gpu_rival: GpuRival) -> None:
    """Detect one important Core and GPU specific mod per loop in YAML dict."""
    plugins_lower = [plugin.lower() for plugin in crashlog_plugins]
    for mod_name, mod_warn in yaml_dict.items():
        mod_file, _, mod_title = mod_name.partition(" | ")
        mod_title = mod_title or mod_file
        if any(mod_file.lower() in plugin for plugin in plugins_lower):
            if gpu_rival and gpu_rival in mod_warn.lower():
                autoscan_report.extend((
                    f"❓ {mod_title} is installed, BUT IT SEEMS YOU DON'T HAVE AN {gpu_rival.upper()} GPU?\n",
                    "IF THIS IS CORRECT, COMPLETELY UNINSTALL THIS MOD TO AVOID ANY PROBLEMS! \n\n",
                ))
            else:
                autoscan_report.append(f"✔️ {mod_title} is installed!\n\n")
        elif mod_warn and not (gpu_rival and gpu_rival in mod_warn.lower()):
            autoscan_report.extend((f"❌ {mod_title} is not installed!\n", mod_warn, "\n"))


def detect_gpu_rival(system_segment: list[str]) -> GpuRival:
    """Return the GPU vendor the user does NOT have, so vendor specific mods can be flagged."""
    gpu_line = next((elem for elem in system_segment if "GPU #1" in elem), "")
    if "Nvidia" in gpu_line:
        return "amd"
    return "nvidia"


# ================================================
# CRASH SUSPECTS
# ================================================
def suspect_found_line(error: str) -> str:
    error_severity, _, error_name = error.partition(" | ")
    return f"# Checking for {error_name.ljust(MAX_WARN_LENGTH, '.')} SUSPECT FOUND! > Severity : {error_severity} # \n-----\n"


def stack_suspect_matches(signal_list: list[str], main_error: str, callstack: str) -> bool:
    """Evaluate one Crashlog_Stack_Check entry.

    Signals: `ME-REQ|text` must be in the main error, `ME-OPT|text` may be in the main error,
    `NOT|text` must be absent from the call stack, `<count>|text` must show up at least <count> times
    in the call stack, and a plain signal must show up in the call stack.
    """
    has_required_item = error_req_found = error_opt_found = stack_found = False
    for signal in signal_list:
        signal_modifier, separator, signal_string = signal.partition("|")
        if not separator:
            stack_found = stack_found or signal in callstack
            continue
        match signal_modifier:
            case "ME-REQ":
                has_required_item = True
                error_req_found = error_req_found or signal_string in main_error
            case "ME-OPT":
                error_opt_found = error_opt_found or signal_string in main_error
            case "NOT":
                if signal_string in callstack:
                    return False
            case _ if signal_modifier.isdecimal():
                stack_found = stack_found or callstack.count(signal_string) >= int(signal_modifier)

    if has_required_item:
        return error_req_found
    return error_opt_found or stack_found


def detect_suspects(segments: CrashLogSegments, yamldata: ClassicScanLogsInfo, autoscan_report: list[str]) -> bool:
    trigger_suspect_found = False
    main_error = segments.main_error
    callstack = "\n".join(segments.callstack)

    main_error_lower = main_error.lower()
    if ".dll" in main_error_lower and "tbbmalloc" not in main_error_lower:
        autoscan_report.extend((
            "* NOTICE : MAIN ERROR REPORTS THAT A DLL FILE WAS INVOLVED IN THIS CRASH! * \n",
            "If that dll file belongs to a mod, that mod is a prime suspect for the crash. \n-----\n",
        ))

    for error, signal in yamldata.suspects_error_list.items():
        if signal in main_error:
            autoscan_report.append(suspect_found_line(error))
            trigger_suspect_found = True

    for error, signal_list in yamldata.suspects_stack_list.items():
        if stack_suspect_matches(signal_list, main_error, callstack):
            autoscan_report.append(suspect_found_line(error))
            trigger_suspect_found = True

    return trigger_suspect_found


def plugin_suspects(callstack: list[str], crashlog_plugins: dict[str, str], ignore_plugins: list[str]) -> Counter[str]:
    ignore_lower = [ignore.lower() for ignore in ignore_plugins]
    plugins_lower = [plugin.lower() for plugin in crashlog_plugins if all(ignore not in plugin.lower() for ignore in ignore_lower)]
    return Counter(
        plugin
        for line in (line.lower() for line in callstack)
        if "modified by:" not in line
        for plugin in plugins_lower
        if plugin in line
    )


def formid_suspects(callstack: list[str], crashlog_plugins: dict[str, str]) -> list[str]:
    """Match `Form ID: 0x0A001234` call stack lines to the plugin with load order index `0A`."""
    formids_found = Counter(sorted(line.replace("0x", "").strip() for line in callstack if "0xFF" not in line and "id:" in line.lower()))
    report: list[str] = []
    for formid_full, count in formids_found.items():
        formid_split = formid_full.split(": ", 1)
        if len(formid_split) < 2:
            continue
        plugin = next((name for name, plugin_id in crashlog_plugins.items() if plugin_id == formid_split[1][:2]), None)
        if plugin is not None:
            report.append(f"- {formid_full} | [{plugin}] | {count}\n")
    return report


def record_suspects(callstack: list[str], records_list: list[str], ignore_records: list[str]) -> Counter[str]:
    lower_records = [record.lower() for record in records_list]
    lower_ignore = [record.lower() for record in ignore_records]
    records_matches: list[str] = []
    for line in callstack:
        lower_line = line.lower()
        if any(item in lower_line for item in lower_records) and all(record not in lower_line for record in lower_ignore):
            # [RSP+50  ] 0x7FF6A1B2C3D4   (TESObjectREFR*) -> Skip the stack address prefix.
            records_matches.append(line[30:].strip() if "[RSP+" in line else line.strip())
    return Counter(sorted(records_matches))


# ================================================
# CRASHGEN SETTINGS
# ================================================
# Must be FALSE when X-Cell is installed.
XCELL_CONFLICTS = ("HavokMemorySystem", "BSTextureStreamerLocalHeap", "ScaleformAllocator", "SmallBlockAllocator")


def check_crashgen_settings(crashgen: dict[str, bool | int | str], xsemodules: set[str], yamldata: ClassicScanLogsInfo, autoscan_report: list[str]) -> None:
    crashgen_name = yamldata.crashgen_name
    has_xcell = any(dll in xsemodules for dll in XCELL_DLLS)
    has_bakascrapheap = "bakascrapheap.dll" in xsemodules
    crashgen_ignore = set(yamldata.crashgen_ignore)
    if has_xcell:
        crashgen_ignore.update(("MemoryManager", *XCELL_CONFLICTS))
    elif has_bakascrapheap:
        # To prevent two messages mentioning this parameter.
        crashgen_ignore.add("MemoryManager")

    for setting_name, setting_value in crashgen.items():
        if setting_value is False and setting_name not in crashgen_ignore:
            autoscan_report.append(f"* NOTICE : {setting_name} is disabled in your {crashgen_name} settings, is this intentional? * \n-----\n")

    def caution(problem: str, fix: str) -> None:
        autoscan_report.extend((f"# ❌ CAUTION : {problem} # \n", f" FIX: {fix}\n-----\n"))

    def configured(setting: str, suffix: str = "") -> None:
        autoscan_report.append(f"✔️ {setting} parameter is correctly configured{suffix} in your {crashgen_name} settings! \n-----\n")

    achievements = crashgen.get("Achievements")
    if achievements is not None:
        if achievements and ("achievements.dll" in xsemodules or "unlimitedsurvivalmode.dll" in xsemodules):
            caution("The Achievements Mod and/or Unlimited Survival Mode is installed, but Achievements is set to TRUE",
                    f"Open {crashgen_name}'s TOML file and change Achievements to FALSE, this prevents conflicts with {crashgen_name}.")
        else:
            configured("Achievements")

    memory_manager = crashgen.get("MemoryManager")
    if memory_manager is not None:
        if memory_manager and has_xcell:
            caution("X-Cell is installed, but MemoryManager parameter is set to TRUE",
                    f"Open {crashgen_name}'s TOML file and change MemoryManager to FALSE, this prevents conflicts with X-Cell.")
        if has_bakascrapheap:
            redundant_with = "X-Cell" if has_xcell else crashgen_name
            if memory_manager or has_xcell:
                fix = f"Uninstall the Baka ScrapHeap Mod, this prevents conflicts with {redundant_with}."
            else:
                fix = f"Uninstall the Baka ScrapHeap Mod and open {crashgen_name}'s TOML file and change MemoryManager to TRUE, this improves performance."
            caution(f"The Baka ScrapHeap Mod is installed, but is redundant with {redundant_with}", fix)
        elif has_xcell and not memory_manager:
            configured("Memory Manager", " for use with X-Cell")
        elif memory_manager and not has_xcell:
            configured("Memory Manager")

    if has_xcell:
        for setting_name in XCELL_CONFLICTS:
            setting_value = crashgen.get(setting_name)
            if setting_value is None:
                continue
            if setting_value:
                caution(f"X-Cell is installed, but {setting_name} parameter is set to TRUE",
                        f"Open {crashgen_name}'s TOML file and change {setting_name} to FALSE, this prevents conflicts with X-Cell.")
            else:
                configured(setting_name, " for use with X-Cell")

    f4ee = crashgen.get("F4EE")
    if f4ee is not None:
        if not f4ee and "f4ee.dll" in xsemodules:
            caution("Looks Menu is installed, but F4EE parameter under [Compatibility] is set to FALSE",
                    f"Open {crashgen_name}'s TOML file and change F4EE to TRUE, this prevents bugs and crashes from Looks Menu.")
        else:
            configured("F4EE (Looks Menu)")


# ================================================
# REPORT OUTPUT
# ================================================
def redact_user_path(report_text: str, user_folder: Path | None = None) -> str:
    """Hide the user's home folder so reports can be shared."""
    user_folder = user_folder or Path.home()
    for user_path in (f"{user_folder.parent}\\{user_folder.name}", f"{user_folder.parent}/{user_folder.name}"):
        report_text = report_text.replace(user_path, "******")
    return report_text


def autoscan_path_for(crashlog_file: Path) -> Path:
    return crashlog_file.with_name(f"{crashlog_file.stem}-AUTOSCAN.md")


def move_unsolved_log(crashlog_file: Path) -> None:
    UNSOLVED_LOGS_PATH.mkdir(parents=True, exist_ok=True)
    for file in (crashlog_file, autoscan_path_for(crashlog_file)):
        if file.exists():
            shutil.copy2(file, UNSOLVED_LOGS_PATH / file.name)


@dataclass
class ScanStats:
    scanned: int = 0
    incomplete: int = 0
    failed: int = 0
    failed_logs: list[str] = field(default_factory=list)


def mods_section(
    autoscan_report: list[str],
    title: str,
    detect: Callable[[], bool],
    plugins: CrashLogPlugins,
    warn_noplugins: str,
    found_text: tuple[str, ...],
    missing_text: tuple[str, ...],
) -> None:
    autoscan_report.extend(section_header(title))
    if not plugins.loaded:
        autoscan_report.append(warn_noplugins)
    else:
        autoscan_report.extend(found_text if detect() else missing_text)


def scan_crashlog(crash_data: list[str], crashlog_name: str, yamldata: ClassicScanLogsInfo, main_files_check: str) -> tuple[list[str], CrashLogSegments, CrashLogPlugins]:
    """Build the AUTOSCAN report for one crash log."""
    fcx_mode = CMain.classic_settings(bool, "FCX Mode")
    autoscan_report: list[str] = [
        f"{crashlog_name} -> AUTOSCAN REPORT GENERATED BY {yamldata.classic_version} \n",
        "# FOR BEST VIEWING EXPERIENCE OPEN THIS FILE IN NOTEPAD++ OR SIMILAR # \n",
        "# PLEASE READ EVERYTHING CAREFULLY AND BEWARE OF FALSE POSITIVES # \n",
        "====================================================\n",
    ]

    segments = find_segments(crash_data, yamldata.xse_acronym, yamldata.crashgen_name, yamldata.root_name)
    xsemodules = xsemodules_parse(segments.xsemodules)
    crashgen = crashgen_settings_parse(segments.crashgen_settings)

    # ================== MAIN ERROR & CRASHGEN VERSION ==================
    version_current = crashgen_version_gen(segments.crashgen)
    version_latest = crashgen_version_gen(yamldata.crashgen_latest_og)
    version_latest_vr = crashgen_version_gen(yamldata.crashgen_latest_vr)
    autoscan_report.extend((
        f"\nMain Error: {segments.main_error}\n",
        f"Detected {yamldata.crashgen_name} Version: {segments.crashgen} \n",
        (
            f"* You have the latest version of {yamldata.crashgen_name}! *\n\n"
            if version_current >= version_latest or version_current >= version_latest_vr
            else f"{yamldata.warn_outdated} \n"
        ),
    ))

    plugins = plugins_extract(segments, yamldata)
    if plugins.from_loadorder:
        autoscan_report.extend((
            "* ✔️ LOADORDER.TXT FILE FOUND IN THE MAIN CLASSIC FOLDER! *\n",
            "CLASSIC will now ignore plugins in all crash logs and only detect plugins in this file.\n",
            "[ To disable this functionality, simply remove loadorder.txt from your CLASSIC folder. ]\n\n",
        ))

    autoscan_report.extend(section_header("CHECKING IF LOG MATCHES ANY KNOWN CRASH SUSPECTS..."))
    if detect_suspects(segments, yamldata, autoscan_report):
        autoscan_report.extend((
            "* FOR DETAILED DESCRIPTIONS AND POSSIBLE SOLUTIONS TO ANY ABOVE DETECTED CRASH SUSPECTS *\n",
            "* SEE: https://docs.google.com/document/d/17FzeIMJ256xE85XdjoPvv_Zi3C5uHeSTQh6wOZugs4c *\n\n",
        ))
    else:
        autoscan_report.extend((
            "# FOUND NO CRASH ERRORS / SUSPECTS THAT MATCH THE CURRENT DATABASE #\n",
            "Check below for mods that can cause frequent crashes and other problems.\n\n",
        ))

    autoscan_report.extend(section_header("CHECKING IF NECESSARY FILES/SETTINGS ARE CORRECT..."))
    if fcx_mode:
        autoscan_report.extend((
            "* NOTICE: FCX MODE IS ENABLED. CLASSIC MUST BE RUN BY THE ORIGINAL USER FOR CORRECT DETECTION * \n",
            "[ To disable mod & game files detection, disable FCX Mode in the exe or CLASSIC Settings.yaml ] \n\n",
        ))
    else:
        autoscan_report.extend((
            "* NOTICE: FCX MODE IS DISABLED. YOU CAN ENABLE IT TO DETECT PROBLEMS IN YOUR MOD & GAME FILES * \n",
            "[ FCX Mode can be enabled in the exe or CLASSIC Settings.yaml located in your CLASSIC folder. ] \n\n",
        ))
        check_crashgen_settings(crashgen, xsemodules, yamldata, autoscan_report)
    autoscan_report.append(main_files_check)

    # ================== MOD DATABASES ==================
    mods_section(
        autoscan_report,
        "CHECKING FOR MODS THAT CAN CAUSE FREQUENT CRASHES...",
        lambda: detect_mods_single(yamldata.game_mods_freq, plugins.plugins, autoscan_report),
        plugins, yamldata.warn_noplugins,
        ("# [!] CAUTION : ANY ABOVE DETECTED MODS HAVE A MUCH HIGHER CHANCE TO CRASH YOUR GAME! #\n",
         "* YOU CAN DISABLE ANY / ALL OF THEM TEMPORARILY TO CONFIRM THEY CAUSED THIS CRASH. * \n\n"),
        ("# FOUND NO PROBLEMATIC MODS THAT MATCH THE CURRENT DATABASE FOR THIS CRASH LOG #\n",
         "THAT DOESN'T MEAN THERE AREN'T ANY! YOU SHOULD RUN PLUGIN CHECKER IN WRYE BASH \n",
         "Plugin Checker Instructions: https://www.nexusmods.com/fallout4/articles/4141 \n\n"),
    )
    mods_section(
        autoscan_report,
        "CHECKING FOR MODS THAT CONFLICT WITH OTHER MODS...",
        lambda: detect_mods_double(yamldata.game_mods_conf, plugins.plugins, autoscan_report),
        plugins, yamldata.warn_noplugins,
        ("# [!] CAUTION : FOUND MODS THAT ARE INCOMPATIBLE OR CONFLICT WITH YOUR OTHER MODS # \n",
         "* YOU SHOULD CHOOSE WHICH MOD TO KEEP AND DISABLE OR COMPLETELY REMOVE THE OTHER MOD * \n\n"),
        ("# FOUND NO MODS THAT ARE INCOMPATIBLE OR CONFLICT WITH YOUR OTHER MODS # \n\n",),
    )
    mods_section(
        autoscan_report,
        "CHECKING FOR MODS WITH SOLUTIONS & COMMUNITY PATCHES",
        lambda: detect_mods_single(yamldata.game_mods_solu, plugins.plugins, autoscan_report),
        plugins, yamldata.warn_noplugins,
        ("# [!] CAUTION : FOUND PROBLEMATIC MODS WITH SOLUTIONS AND COMMUNITY PATCHES # \n",
         "[Due to limitations, CLASSIC will show warnings for some mods even if fixes or patches are already installed.] \n",
         "[To hide these warnings, you can add their plugin names to the CLASSIC Ignore.yaml file. ONE PLUGIN PER LINE.] \n\n"),
        ("# FOUND NO PROBLEMATIC MODS WITH AVAILABLE SOLUTIONS AND COMMUNITY PATCHES # \n\n",),
    )
    if CMain.gamevars["game"] == "Fallout4":
        mods_section(
            autoscan_report,
            "CHECKING FOR MODS PATCHED THROUGH OPC INSTALLER...",
            lambda: detect_mods_single(yamldata.game_mods_opc2, plugins.plugins, autoscan_report),
            plugins, yamldata.warn_noplugins,
            ("\n* FOR PATCH REPOSITORY THAT PREVENTS CRASHES AND FIXES PROBLEMS IN THESE AND OTHER MODS,* \n",
             "* VISIT OPTIMIZATION PATCHES COLLECTION: https://www.nexusmods.com/fallout4/mods/54872 * \n\n"),
            ("# FOUND NO PROBLEMATIC MODS THAT ARE ALREADY PATCHED THROUGH THE OPC INSTALLER # \n\n",),
        )

    autoscan_report.extend(section_header("CHECKING IF IMPORTANT PATCHES & FIXES ARE INSTALLED"))
    if plugins.loaded:
        is_folon = any("londonworldspace" in plugin.lower() for plugin in plugins.plugins)
        core_mods = yamldata.game_mods_core_folon if is_folon else yamldata.game_mods_core
        detect_mods_important(core_mods, plugins.plugins, autoscan_report, detect_gpu_rival(segments.system))
    else:
        autoscan_report.append(yamldata.warn_noplugins)

    # ================== SPECIFIC SUSPECTS ==================
    autoscan_report.extend(section_header("SCANNING THE LOG FOR SPECIFIC (POSSIBLE) SUSPECTS..."))
    if plugins.limit_reached and not plugins.limit_check_disabled:
        autoscan_report.append(yamldata.warn_plugin_limit)
    if plugins.limit_check_disabled:
        autoscan_report.extend(("❌ WARNING : Crash logs for the current game version do not report plugin indexes correctly! \n",
                                "The plugin limit check will be disabled for this scan. \n\n"))

    autoscan_report.append("# LIST OF (POSSIBLE) PLUGIN SUSPECTS #\n")
    if plugins_found := plugin_suspects(segments.callstack, plugins.plugins, yamldata.game_ignore_plugins):
        autoscan_report.extend(f"- {key} | {value}\n" for key, value in plugins_found.items())
        autoscan_report.extend((
            "\n[Last number counts how many times each Plugin Suspect shows up in the crash log.]\n",
            f"These Plugins were caught by {yamldata.crashgen_name} and some of them might be responsible for this crash.\n",
            "You can try disabling these plugins and check if the game still crashes, though this method can be unreliable.\n\n",
        ))
    else:
        autoscan_report.append("* COULDN'T FIND ANY PLUGIN SUSPECTS *\n\n")

    autoscan_report.append("# LIST OF (POSSIBLE) FORM ID SUSPECTS #\n")
    if formids_found := formid_suspects(segments.callstack, plugins.plugins):
        autoscan_report.extend(formids_found)
        autoscan_report.extend((
            "\n[Last number counts how many times each Form ID shows up in the crash log.]\n",
            f"These Form IDs were caught by {yamldata.crashgen_name} and some of them might be related to this crash.\n",
            "You can try searching any listed Form IDs in xEdit and see if they lead to relevant records.\n\n",
        ))
    else:
        autoscan_report.append("* COULDN'T FIND ANY FORM ID SUSPECTS *\n\n")

    autoscan_report.append("# LIST OF DETECTED (NAMED) RECORDS #\n")
    if records_found := record_suspects(segments.callstack, yamldata.classic_records_list, yamldata.game_ignore_records):
        autoscan_report.extend(f"- {record} | {count}\n" for record, count in records_found.items())
        autoscan_report.extend((
            "\n[Last number counts how many times each Named Record shows up in the crash log.]\n",
            f"These records were caught by {yamldata.crashgen_name} and some of them might be related to this crash.\n",
            "Named records should give extra info on involved game objects, record types or mod files.\n\n",
        ))
    else:
        autoscan_report.append("* COULDN'T FIND ANY NAMED RECORDS *\n\n")

    # ============== AUTOSCAN REPORT END ==============
    if CMain.gamevars["game"] == "Fallout4":
        autoscan_report.append(yamldata.autoscan_text)
    autoscan_report.append(f"{yamldata.classic_version} | {yamldata.classic_version_date} | END OF AUTOSCAN \n")
    return autoscan_report, segments, plugins


# ================================================
# CRASH LOG SCAN START
# ================================================
def crashlogs_scan() -> ScanStats:
    crashlog_list = crashlogs_get_files()
    print("REFORMATTING CRASH LOGS, PLEASE WAIT...\n")
    remove_list = CMain.yaml_settings(list[str], YAML.Main, "exclude_log_records") or []
    crashlogs_reformat(crashlog_list, remove_list)

    print("SCANNING CRASH LOGS, PLEASE WAIT...\n")
    scan_start_time = time.perf_counter()
    # Grabbing YAML values is time expensive, so keep these out of the main file loop.
    yamldata = ClassicScanLogsInfo()
    move_unsolved_logs = CMain.classic_settings(bool, "Move Unsolved Logs")
    if CMain.classic_settings(bool, "FCX Mode"):
        main_files_check = CIntegrity.main_combined_result()
    else:
        main_files_check = "❌ FCX Mode is disabled, skipping game files check... \n-----\n"

    stats = ScanStats()
    CMain.logger.info(f"- - - INITIATED CRASH LOG FILE SCAN >>> CURRENTLY SCANNING {len(crashlog_list)} FILES")

    for crashlog_file in crashlog_list:
        with CMain.open_file_with_encoding(crashlog_file) as crash_log:
            crash_data = crash_log.read().splitlines()

        autoscan_report, segments, plugins = scan_crashlog(crash_data, crashlog_file.name, yamldata, main_files_check)
        if not segments.plugins or not plugins.loaded:
            stats.incomplete += 1
        trigger_scan_failed = len(crash_data) < MIN_LOG_LINES
        if trigger_scan_failed:
            stats.failed += 1
            stats.failed_logs.append(crashlog_file.name)
        else:
            stats.scanned += 1

        autoscan_path = autoscan_path_for(crashlog_file)
        autoscan_path.write_text(redact_user_path("".join(autoscan_report)), encoding="utf-8", errors="ignore")
        CMain.logger.debug(f"- - -> RUNNING CRASH LOG FILE SCAN >>> SCANNED {crashlog_file.name}")

        if trigger_scan_failed and move_unsolved_logs:
            move_unsolved_log(crashlog_file)

    # CHECK FOR FAILED OR INVALID CRASH LOGS
    scan_invalid_list = list(Path.cwd().glob("crash-*.txt"))
    if stats.failed_logs or scan_invalid_list:
        print("❌ NOTICE : CLASSIC WAS UNABLE TO PROPERLY SCAN THE FOLLOWING LOG(S):")
        print("\n".join(stats.failed_logs))
        for file in scan_invalid_list:
            print(f"{file}\n")
        print("===============================================================================")
        print("Most common reason for this are logs being incomplete or in the wrong format.")
        print("Make sure that your crash log files have the .log file format, NOT .txt! \n")

    # ================================================
    # CRASH LOG SCAN COMPLETE / TERMINAL OUTPUT
    # ================================================
    CMain.logger.info("- - - COMPLETED CRASH LOG FILE SCAN >>> ALL AVAILABLE LOGS SCANNED")
    print("SCAN COMPLETE! (IT MIGHT TAKE SEVERAL SECONDS FOR SCAN RESULTS TO APPEAR)")
    print("SCAN RESULTS ARE AVAILABLE IN FILES NAMED crash-date-and-time-AUTOSCAN.md \n")
    if yamldata.classic_game_hints:
        print(f"{random.choice(yamldata.classic_game_hints)}\n-----")
    print(f"Scanned all available logs in {time.perf_counter() - scan_start_time:.2f} seconds.")
    print(f"Number of Scanned Logs (No Autoscan Errors): {stats.scanned}")
    print(f"Number of Incomplete Logs (No Plugins List): {stats.incomplete}")
    print(f"Number of Failed Logs (Autoscan Can't Scan): {stats.failed}\n-----")
    if CMain.gamevars["game"] == "Fallout4":
        print(yamldata.autoscan_text)
    if stats.scanned == 0 and stats.incomplete == 0:
        print("\n❌ CLASSIC found no crash logs to scan or the scan failed.")
        print("    There are no statistics to show (at this time).\n")
    return stats


if __name__ == "__main__":
    from tap import Tap

    class Args(Tap):
        """Command-line arguments for CLASSIC's crash log scanner"""

        fcx_mode: bool = False
        """Enable FCX mode"""

        move_unsolved: bool = False
        """Move unsolved logs"""

        scan_path: Path | None = None
        """Path to the scan directory"""

        simplify_logs: bool = False
        """Simplify the logs"""

    args = Args().parse_args()
    CMain.configure_logging()
    CMain.classic_data_extract()
    CMain.initialize()

    if args.fcx_mode != CMain.classic_settings(bool, "FCX Mode"):
        CMain.yaml_settings(bool, YAML.Settings, "CLASSIC_Settings.FCX Mode", args.fcx_mode)
    if args.move_unsolved != CMain.classic_settings(bool, "Move Unsolved Logs"):
        CMain.yaml_settings(bool, YAML.Settings, "CLASSIC_Settings.Move Unsolved Logs", args.move_unsolved)
    if args.simplify_logs != CMain.classic_settings(bool, "Simplify Logs"):
        CMain.yaml_settings(bool, YAML.Settings, "CLASSIC_Settings.Simplify Logs", args.simplify_logs)
    if args.scan_path is not None and args.scan_path.resolve().is_dir():
        CMain.yaml_settings(str, YAML.Settings, "CLASSIC_Settings.SCAN Custom Path", str(args.scan_path.resolve()))

    crashlogs_scan()
