import configparser
import contextlib
import hashlib
from collections.abc import Callable
from pathlib import Path

import CLASSIC_GamePaths as CGamePaths
import CLASSIC_Main as CMain
from CLASSIC_Main import YAML


def calculate_file_hash(file_path: Path) -> str:
    # Algo should match the one used for Database YAML!
    with file_path.open("rb") as f:
        return hashlib.file_digest(f, "sha256").hexdigest()


def local_yaml_name() -> str:
    return CMain.yaml_store_path(YAML.Game_Local).name


# ================================================
# CHECK GAME EXE & SCRIPT EXTENDER INTEGRITY
# ================================================
def game_check_integrity() -> str:
    message_list: list[str] = []
    CMain.logger.debug("- - - INITIATED GAME INTEGRITY CHECK")

    exe_hash_old = CMain.require_game_setting(str, YAML.Game, "EXE_HashedOLD")
    exe_hash_new = CMain.game_settings(str, YAML.Game, "EXE_HashedNEW")
    root_name = CMain.require_game_setting(str, YAML.Game, "Main_Root_Name")
    steam_ini_path = CMain.game_settings(Path, YAML.Game_Local, "Game_File_SteamINI")
    game_exe_path = CMain.game_settings(Path, YAML.Game_Local, "Game_File_EXE")

    if game_exe_path and game_exe_path.is_file():
        exe_hash_local = calculate_file_hash(game_exe_path)
        steam_ini_exists = bool(steam_ini_path and steam_ini_path.exists())
        if exe_hash_local in {exe_hash_old, exe_hash_new} and not steam_ini_exists:
            message_list.append(f"✔️ You have the latest version of {root_name}! \n-----\n")
        elif steam_ini_exists:
            message_list.append(f"\U0001F480 CAUTION : YOUR {root_name} GAME / EXE VERSION IS OUT OF DATE \n-----\n")
        else:
            message_list.append(f"❌ CAUTION : YOUR {root_name} GAME / EXE VERSION IS OUT OF DATE \n-----\n")

        if "Program Files" not in str(game_exe_path):
            message_list.append(f"✔️ Your {root_name} game files are installed outside of the Program Files folder! \n-----\n")
        else:
            message_list.append(CMain.require_setting(str, YAML.Main, "Warnings_GAME.warn_root_path"))

    return "".join(message_list)


def xse_latest_version() -> str:
    """Script Extender version expected in the log, which depends on the installed game version."""
    xse_ver_latest = CMain.require_game_setting(str, YAML.Game, "XSE_Ver_Latest")
    if CMain.gamevars["game"] != "Fallout4" or CMain.gamevars["vr"]:
        return xse_ver_latest

    game_exe_path = CMain.game_settings(Path, YAML.Game_Local, "Game_File_EXE")
    if game_exe_path and game_exe_path.is_file() and CGamePaths.get_game_version(game_exe_path) == CMain.NG_VERSION:
        return CMain.game_settings(str, YAML.Game, "XSE_Ver_LatestNG") or str(CMain.NG_F4SE_VERSION)
    return xse_ver_latest


def xse_check_integrity() -> str:
    message_list: list[str] = []
    CMain.logger.debug("- - - INITIATED XSE INTEGRITY CHECK")

    catch_errors = CMain.yaml_settings(list[str], YAML.Main, "catch_log_errors") or []
    xse_acronym = CMain.require_game_setting(str, YAML.Game, "XSE_Acronym")
    xse_full_name = CMain.require_game_setting(str, YAML.Game, "XSE_FullName")
    xse_log_file = CMain.game_settings(Path, YAML.Game_Local, "Docs_File_XSE")
    adlib_file = CMain.game_settings(Path, YAML.Game_Local, "Game_File_AddressLib")

    if adlib_file is None:
        message_list.append(f"❌ Value for Address Library is invalid or missing from {local_yaml_name()}!\n-----\n")
    elif adlib_file.exists():
        message_list.append("✔️ REQUIRED: *Address Library* for Script Extender is installed! \n-----\n")
    else:
        message_list.append(CMain.require_setting(str, YAML.Game, "Warnings_MODS.Warn_ADLIB_Missing"))

    if xse_log_file is None:
        message_list.append(f"❌ Value for {xse_acronym.lower()}.log is invalid or missing from {local_yaml_name()}!\n-----\n")
    elif xse_log_file.exists():
        message_list.append(f"✔️ REQUIRED: *{xse_full_name}* is installed! \n-----\n")
        with CMain.open_file_with_encoding(xse_log_file) as xse_log:
            xse_data = xse_log.readlines()

        if xse_data and xse_latest_version() in xse_data[0]:
            message_list.append(f"✔️ You have the latest version of *{xse_full_name}*! \n-----\n")
        else:
            message_list.append(CMain.require_setting(str, YAML.Game, "Warnings_XSE.Warn_Outdated"))

        catch_errors_lower = [item.lower() for item in catch_errors]
        failed_list = [line for line in xse_data if any(item in line.lower() for item in catch_errors_lower)]
        if failed_list:
            message_list.append(f"#❌ CAUTION : {xse_acronym}.log REPORTS THE FOLLOWING ERRORS #\n")
            message_list.extend(f"ERROR > {elem.strip()} \n-----\n" for elem in failed_list)
    else:
        message_list.extend((
            f"❌ CAUTION : *{xse_acronym.lower()}.log* FILE IS MISSING FROM YOUR DOCUMENTS FOLDER! \n",
            f"   You need to run the game at least once with {xse_acronym.lower()}_loader.exe \n",
            "    After that, try running CLASSIC again! \n-----\n",
        ))

    return "".join(message_list)


def xse_check_hashes() -> str:
    message_list: list[str] = []
    CMain.logger.debug("- - - INITIATED XSE FILE HASH CHECK")

    xse_hashedscripts = CMain.require_game_setting(dict[str, str], YAML.Game, "XSE_HashedScripts")
    game_folder_scripts = CMain.game_settings(Path, YAML.Game_Local, "Game_Folder_Scripts")
    if game_folder_scripts is None:
        return f"❌ Value for Game_Folder_Scripts is invalid or missing from {local_yaml_name()}!\n-----\n"

    xse_script_missing = xse_script_mismatch = False
    for script_name, expected_hash in xse_hashedscripts.items():
        script_path = game_folder_scripts / script_name
        if not script_path.is_file():
            message_list.append(f"❌ CAUTION : {script_name} Script Extender file is missing from your game Scripts folder! \n-----\n")
            xse_script_missing = True
        elif calculate_file_hash(script_path) != str(expected_hash).lower():
            message_list.append(f"[!] CAUTION : {script_name} Script Extender file is outdated or overriden by another mod! \n-----\n")
            xse_script_mismatch = True

    if xse_script_missing:
        message_list.append(CMain.require_setting(str, YAML.Game, "Warnings_XSE.Warn_Missing"))
    if xse_script_mismatch:
        message_list.append(CMain.require_setting(str, YAML.Game, "Warnings_XSE.Warn_Mismatch"))
    if not xse_script_missing and not xse_script_mismatch:
        message_list.append("✔️ All Script Extender files have been found and accounted for! \n-----\n")

    return "".join(message_list)


# ================================================
# CHECK DOCUMENTS GAME INI FILES & INI SETTINGS
# ================================================
def docs_check_folder() -> str:
    docs_path = CMain.game_settings(str, YAML.Game_Local, "Root_Folder_Docs") or ""
    if "onedrive" in docs_path.lower():
        return CMain.require_setting(str, YAML.Main, "Warnings_GAME.warn_docs_path")
    return ""


# =========== CHECK DOCS MAIN INI -> CHECK EXISTENCE & CORRUPTION ===========
def docs_check_ini(ini_name: str) -> str:
    message_list: list[str] = []
    CMain.logger.info(f"- - - INITIATED {ini_name} CHECK")
    docs_name = CMain.require_game_setting(str, YAML.Game, "Main_Docs_Name")
    folder_docs = CMain.game_settings(Path, YAML.Game_Local, "Root_Folder_Docs")
    if folder_docs is None:
        raise CMain.InvalidSettingError(f"Game{CMain.gamevars['vr']}_Info.Root_Folder_Docs", YAML.Game_Local)

    ini_path = folder_docs / ini_name
    is_custom_ini = ini_name.lower() == f"{docs_name.lower()}custom.ini"
    ini_exists = any(ini_name.lower() == file.name.lower() for file in folder_docs.glob("*.ini"))

    if ini_exists:
        try:
            CMain.remove_readonly(ini_path)

            INI_config = configparser.ConfigParser()
            INI_config.optionxform = str  # type: ignore[method-assign, assignment]
            with CMain.open_file_with_encoding(ini_path) as ini_file:
                INI_config.read_file(ini_file)
                ini_encoding = ini_file.encoding
            message_list.append(f"✔️ No obvious corruption detected in {ini_name}, file seems OK! \n-----\n")

            if is_custom_ini:
                if "Archive" not in INI_config.sections():
                    message_list.extend(("❌ WARNING : Archive Invalidation / Loose Files setting is not enabled. \n",
                                         "  CLASSIC will now enable this setting automatically in the game INI files. \n-----\n"))
                    with contextlib.suppress(configparser.DuplicateSectionError):
                        INI_config.add_section("Archive")
                else:
                    message_list.append("✔️ Archive Invalidation / Loose Files setting is already enabled! \n-----\n")

                INI_config.set("Archive", "bInvalidateOlderFiles", "1")
                INI_config.set("Archive", "sResourceDataDirsFinal", "")

                with ini_path.open("w", encoding=ini_encoding, errors="ignore") as ini_file:
                    INI_config.write(ini_file, space_around_delimiters=False)

        except PermissionError:
            message_list.extend((f"[!] CAUTION : YOUR {ini_name} FILE IS SET TO READ ONLY. \n",
                                 "     PLEASE REMOVE THE READ ONLY PROPERTY FROM THIS FILE, \n",
                                 "     SO CLASSIC CAN MAKE THE REQUIRED CHANGES TO IT. \n-----\n"))
        except configparser.DuplicateOptionError as e:
            message_list.extend((f"[!] ERROR : Your {ini_name} file has duplicate options! \n",
                                 f"    {e} \n-----\n"))
        except (configparser.Error, ValueError, OSError):
            message_list.extend((f"[!] CAUTION : YOUR {ini_name} FILE IS VERY LIKELY BROKEN, PLEASE CREATE A NEW ONE \n",
                                 f"    Delete this file from your Documents/My Games/{docs_name} folder, then press \n",
                                 f"    *Scan Game Files* in CLASSIC to generate a new {ini_name} file. \n-----\n"))

    elif ini_name.lower() == f"{docs_name.lower()}.ini":
        message_list.extend((f"❌ CAUTION : {ini_name} FILE IS MISSING FROM YOUR DOCUMENTS FOLDER! \n",
                             f"   You need to run the game at least once with {docs_name}Launcher.exe \n",
                             "    This will create files and INI settings required for the game to run. \n-----\n"))

    elif is_custom_ini:
        customini_config = CMain.require_setting(str, YAML.Game, "Default_CustomINI")
        with ini_path.open("a", encoding="utf-8", errors="ignore") as ini_file:
            ini_file.write(customini_config)
        message_list.extend(("❌ WARNING : Archive Invalidation / Loose Files setting is not enabled. \n",
                             "  CLASSIC will now enable this setting automatically in the game INI files. \n-----\n"))

    return "".join(message_list)


# =========== GENERATE MAIN RESULTS ===========
def run_isolated(check: Callable[[], str], check_name: str) -> str:
    try:
        return check()
    except (CMain.InvalidSettingError, OSError) as err:
        CMain.logger.error(f"> > > ERROR ({check_name}) : {err}")
        return f"❌ ERROR : {check_name} could not be completed : {err} \n-----\n"


def main_combined_result() -> str:
    game = CMain.gamevars["game"]
    checks: list[tuple[Callable[[], str], str]] = [
        (game_check_integrity, "game_check_integrity"),
        (xse_check_integrity, "xse_check_integrity"),
        (xse_check_hashes, "xse_check_hashes"),
        (docs_check_folder, "docs_check_folder"),
    ]
    checks.extend((lambda ini=ini: docs_check_ini(ini), f"docs_check_ini({ini})")
                  for ini in (f"{game}.ini", f"{game}Custom.ini", f"{game}Prefs.ini"))
    return "".join(run_isolated(check, check_name) for check, check_name in checks)
