import hashlib
import logging
import zipfile
from collections.abc import Generator
from dataclasses import dataclass
from pathlib import Path

import pytest

import CLASSIC_GamePaths
import CLASSIC_Main

OG_EXE_BYTES = b"fallout4 executable 1.10.163"
NG_EXE_BYTES = b"fallout4 executable 1.10.984"
SCRIPT_FILES = {
    "Actor.pex": b"actor script compiled for f4se",
    "F4SE.pex": b"f4se script compiled for f4se",
    "Form.pex": b"form script compiled for f4se",
}


def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


MAIN_YAML = """CLASSIC_Info:
  version: CLASSIC v7.30.3
  version_date: 24.10.01
  default_settings: |
    CLASSIC_Settings:
      Update Check: true
      VR Mode: false
      FCX Mode: false
      Simplify Logs: false
      Update Source: Both
      Show FormID Values: false
      Move Unsolved Logs: false
      SCAN Custom Path:
      MODS Folder Path:
  default_ignorefile: |
    CLASSIC_Ignore_Fallout4:
      - Unofficial Fallout 4 Patch.esp
  default_localyaml: |
    Game_Info:
      Root_Folder_Game:
      Root_Folder_Docs:
    GameVR_Info:
      Root_Folder_Game:
      Root_Folder_Docs:
CLASSIC_Interface:
  update_warning_Fallout4: "❌ WARNING : YOUR CLASSIC VERSION IS OUT OF DATE!"
  update_unable_Fallout4: "❌ WARNING : CLASSIC WAS UNABLE TO CHECK FOR UPDATES!"
  autoscan_text_Fallout4: "FOR FULL LIST OF MODS THAT CAUSE PROBLEMS, THEIR ALTERNATIVES AND DETAILED SOLUTIONS..."
CLASSIC_AutoBackup:
  - Fallout4.exe
  - f4se_loader.exe
  - f4se_1_10_163.dll
catch_log_errors:
  - critical
  - error
  - failed
catch_log_records:
  - .bgsm
  - "name:"
exclude_log_records:
  - (Main*)
Warnings_GAME:
  warn_root_path: "[!] CAUTION : YOUR GAME FILES ARE INSTALLED INSIDE OF THE DEFAULT Program Files FOLDER! \\n-----\\n"
  warn_docs_path: "[!] CAUTION : MICROSOFT ONEDRIVE IS OVERRIDING YOUR DOCUMENTS FOLDER PATH! \\n-----\\n"
Mods_Warn:
  Mods_Plugin_Limit: "# [!] CAUTION : ONE OF YOUR PLUGINS HAS THE [FF] PLUGIN INDEX VALUE # \\n"
"""

_SCRIPT_HASH_LINES = "".join(f'    {name}: "{sha256(data)}"\n' for name, data in SCRIPT_FILES.items())

GAME_YAML = f"""Game_Info:
  Main_Root_Name: Fallout 4
  Main_Docs_Name: Fallout4
  Main_SteamID: 377160
  EXE_HashedOLD: "{sha256(OG_EXE_BYTES)}"
  EXE_HashedNEW: "{sha256(NG_EXE_BYTES)}"
  XSE_Acronym: F4SE
  XSE_FullName: Fallout 4 Script Extender (F4SE)
  XSE_Ver_Latest: 0.6.23
  XSE_Ver_LatestNG: 0.7.2
  XSE_HashedScripts:
{_SCRIPT_HASH_LINES}  CRASHGEN_LogName: Buffout 4
  CRASHGEN_LatestVer: Buffout 4 v1.28.6
  CRASHGEN_Ignore:
    - F4EE
    - WaitForDebugger
  GameVersion: 1.10.163
  GameVersionNEW: 1.10.980
GameVR_Info:
  Main_Root_Name: Fallout 4 VR
  EXE_HashedOLD: "{sha256(b"fallout4vr executable 1.2.72")}"
  XSE_Acronym: F4SEVR
  XSE_FullName: Fallout 4 VR Script Extender (F4SEVR)
  XSE_Ver_Latest: 0.6.21
  CRASHGEN_LatestVer: Buffout 4 v1.31.1
  GameVersion: 1.2.72
Warnings_MODS:
  Warn_ADLIB_Missing: "❌ CAUTION : ADDRESS LIBRARY MOD IS NOT INSTALLED! \\n-----\\n"
Warnings_XSE:
  Warn_Outdated: "❌ CAUTION : YOUR F4SE VERSION IS OUT OF DATE! \\n-----\\n"
  Warn_Missing: "❌ CAUTION : SOME F4SE SCRIPT FILES ARE MISSING! \\n-----\\n"
  Warn_Mismatch: "❌ CAUTION : SOME F4SE SCRIPT FILES ARE OVERRIDDEN! \\n-----\\n"
Warnings_CRASHGEN:
  Warn_NOPlugins: "# [!] NOTICE : BUFFOUT 4 WAS NOT ABLE TO LOAD THE PLUGIN LIST FOR THIS CRASH LOG! # \\n"
  Warn_Outdated: "❌ CAUTION : REPORTED BUFFOUT 4 VERSION DOES NOT MATCH THE VERSION USED BY AUTOSCAN!"
Default_CustomINI: |
  [Archive]
  bInvalidateOlderFiles=1
  sResourceDataDirsFinal=
Backup ENB:
  - enbseries
  - d3d11.dll
  - d3dcompiler_46e.dll
Game_Hints:
  - "Hint: Keep your mods up to date."
Crashlog_Plugins_Exclude:
  - Fallout4.esm
  - DLCRobot.esm
Crashlog_Records_Exclude:
  - '"Fallout4.esm"'
Crashlog_Error_Check:
  "6 | Access Violation Crash": EXCEPTION_ACCESS_VIOLATION
  "5 | Stack Overflow Crash": EXCEPTION_STACK_OVERFLOW
Crashlog_Stack_Check:
  "4 | Power Armor Crash":
    - ME-OPT|EXCEPTION_ACCESS_VIOLATION
    - Power Armor
  "5 | Nif Crash":
    - NOT|armor.nif
    - BSLightingShaderProperty
  "3 | Repeated Frame Crash":
    - 2|Fallout4.exe
  "6 | Required Error Crash":
    - ME-REQ|EXCEPTION_STACK_OVERFLOW
    - Power Armor
Mods_FREQ:
  ArmorKeywords: "ARMOR AND WEAPON KEYWORDS \\n    - Frequently outdated, install the latest version. \\n-----\\n"
Mods_CONF:
  x-cell | bakascrapheap: "X-CELL AND BAKA SCRAPHEAP \\n    - These mods conflict. \\n-----\\n"
Mods_SOLU:
  DLCRobot: "AUTOMATRON \\n    - Install the community patch. \\n-----\\n"
Mods_OPC2: {{}}
Mods_CORE:
  CanarySaveFileMonitor | Canary Save File Monitor: "Canary helps detect save corruption. \\n"
  x-cell | X-Cell: "X-Cell improves performance. \\n"
Mods_CORE_FOLON: {{}}
"""

XSE_LOG = """F4SE runtime: initialize (version = 0.6.23 010A3A30 01D9F5DE3E8D4AF6, os = 6.2 (9200))
config path = Fallout4/F4SE/f4se.ini
plugin XDI.dll (00000001 XDI 00000001) loaded correctly
plugin BrokenMod.dll (00000001 BrokenMod 00000001) failed to load
"""


@dataclass
class GameEnv:
    game_path: Path
    docs_path: Path
    xse_log: Path
    scripts_path: Path
    exe_path: Path
    adlib_path: Path


@pytest.fixture
def classic_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run the test from an empty CLASSIC folder holding the Main and Fallout4 databases."""
    monkeypatch.chdir(tmp_path)
    databases_path = tmp_path / "CLASSIC Data/databases"
    databases_path.mkdir(parents=True)
    databases_path.joinpath("CLASSIC Main.yaml").write_text(MAIN_YAML, encoding="utf-8")
    databases_path.joinpath("CLASSIC Fallout4.yaml").write_text(GAME_YAML, encoding="utf-8")

    monkeypatch.setattr(CLASSIC_Main, "yaml_cache", CLASSIC_Main.YamlSettingsCache())
    monkeypatch.setitem(CLASSIC_Main.gamevars, "game", "Fallout4")
    monkeypatch.setitem(CLASSIC_Main.gamevars, "vr", "")
    return tmp_path


@pytest.fixture
def classic_zip(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run the test from a CLASSIC folder as downloaded, holding only `CLASSIC Data.zip`."""
    monkeypatch.chdir(tmp_path)
    with zipfile.ZipFile(tmp_path / "CLASSIC Data.zip", "w") as zip_data:
        zip_data.writestr("databases/CLASSIC Main.yaml", MAIN_YAML)
        zip_data.writestr("databases/CLASSIC Fallout4.yaml", GAME_YAML)

    monkeypatch.setattr(CLASSIC_Main, "yaml_cache", None)
    monkeypatch.setitem(CLASSIC_Main.gamevars, "game", "Fallout4")
    monkeypatch.setitem(CLASSIC_Main.gamevars, "vr", "")
    return tmp_path


@pytest.fixture
def game_env(classic_env: Path) -> GameEnv:
    """Fake Fallout 4 installation and documents folder, with all paths saved to the Local YAML."""
    game_path = classic_env / "Games/Fallout 4"
    scripts_path = game_path / "Data/Scripts"
    plugins_path = game_path / "Data/F4SE/Plugins"
    scripts_path.mkdir(parents=True)
    plugins_path.mkdir(parents=True)
    exe_path = game_path / "Fallout4.exe"
    exe_path.write_bytes(OG_EXE_BYTES)
    game_path.joinpath("f4se_loader.exe").write_bytes(b"f4se loader")
    for name, data in SCRIPT_FILES.items():
        scripts_path.joinpath(name).write_bytes(data)
    adlib_path = plugins_path / "version-1-10-163-0.bin"
    adlib_path.write_bytes(b"address library")

    docs_path = classic_env / "Documents/My Games/Fallout4"
    docs_path.joinpath("F4SE").mkdir(parents=True)
    docs_path.joinpath("Fallout4.ini").write_text("[General]\nsLanguage=en\n", encoding="utf-8")
    xse_log = docs_path / "F4SE/f4se.log"
    xse_log.write_text(XSE_LOG, encoding="utf-8")

    CLASSIC_Main.game_settings(str, CLASSIC_Main.YAML.Game_Local, "Root_Folder_Docs", str(docs_path))
    CLASSIC_Main.game_settings(str, CLASSIC_Main.YAML.Game_Local, "Root_Folder_Game", str(game_path))
    CLASSIC_GamePaths.docs_generate_paths()
    CLASSIC_GamePaths.game_generate_paths()
    return GameEnv(game_path, docs_path, xse_log, scripts_path, exe_path, adlib_path)


@pytest.fixture
def clean_logger() -> Generator[logging.Logger]:
    """Remove any handlers `configure_logging()` attached to the CLASSIC logger."""
    yield CLASSIC_Main.logger
    for handler in list(CLASSIC_Main.logger.handlers):
        handler.close()
        CLASSIC_Main.logger.removeHandler(handler)
