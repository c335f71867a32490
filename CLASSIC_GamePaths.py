import platform
from pathlib import Path

import pefile
import regex as re
from packaging.version import Version

import CLASSIC_Main as CMain
from CLASSIC_Main import YAML

STEAM_LIBRARY_FILES = (
    Path.home() / ".local/share/Steam/steamapps/libraryfolders.vdf",
    Path.home() / ".steam/steam/steamapps/libraryfolders.vdf",
    Path.home() / ".var/app/com.valvesoftware.Steam/data/Steam/steamapps/libraryfolders.vdf",
)
PROTON_DOCS_PATH = "pfx/drive_c/users/steamuser/Documents/My Games"

# Matches the closing part of: plugin directory = C:\Games\Fallout 4\Data\F4SE\Plugins\
PLUGINS_SUFFIX = r"[\\/]Data[\\/]{xse}[\\/]Plugins[\\/]?$"


def exe_name() -> str:
    return f"{CMain.gamevars['game']}{CMain.gamevars['vr']}.exe"


def is_game_folder(game_path: Path | None) -> bool:
    return bool(game_path) and game_path.is_dir() and game_path.joinpath(exe_name()).is_file()  # type: ignore[union-attr]


def find_steam_library(steam_id: int) -> Path | None:
    """Return the `steamapps` folder of the Steam library that has `steam_id` installed."""
    for libraryfolders_path in STEAM_LIBRARY_FILES:
        if not libraryfolders_path.is_file():
            continue
        library_path: Path | None = None
        with libraryfolders_path.open(encoding="utf-8", errors="ignore") as steam_library:
            for library_line in steam_library:
                # "path"		"/home/user/.local/share/Steam"
                parts = library_line.split('"')
                if len(parts) >= 4 and parts[1] == "path":
                    library_path = Path(parts[3].replace("\\\\", "\\"))
                # "377160"		"31829125"
                elif len(parts) >= 2 and parts[1] == str(steam_id) and library_path is not None:
                    return library_path / "steamapps"
    return None


def prompt_for_path(prompt: str, example: str, required_file: str) -> Path:
    """Ask until the user enters a folder that contains `required_file`."""
    print(f"> > > PLEASE ENTER THE FULL DIRECTORY PATH WHERE YOUR {prompt} IS LOCATED < < <")
    while True:
        input_str = input(f"(EXAMPLE: {example} | Press ENTER to confirm.)\n> ").strip()
        input_path = Path(input_str)
        if input_str and input_path.joinpath(required_file).is_file():
            print(f"You entered: '{input_str}' | This path will be automatically added to CLASSIC Settings.yaml")
            return input_path
        print(f"❌ ERROR : NO {required_file} FILE FOUND IN '{input_str}'! Please try again.")


# =========== CHECK DOCUMENTS FOLDER PATH -> GET GAME DOCUMENTS FOLDER ===========
def docs_path_find(interactive: bool = True) -> None:
    CMain.logger.debug("- - - INITIATED DOCS PATH CHECK")
    docs_name = CMain.game_settings(str, YAML.Game, "Main_Docs_Name") or CMain.gamevars["game"]

    docs_path = CMain.game_settings(Path, YAML.Game_Local, "Root_Folder_Docs")
    if docs_path is None:
        if platform.system() == "Windows":
            docs_path = Path.home() / "Documents" / "My Games" / docs_name
        else:
            steam_id = CMain.game_settings(int, YAML.Game, "Main_SteamID")
            steamapps = find_steam_library(steam_id) if steam_id else None
            if steamapps is not None:
                docs_path = steamapps / "compatdata" / str(steam_id) / PROTON_DOCS_PATH / docs_name
        if docs_path is not None:
            CMain.game_settings(str, YAML.Game_Local, "Root_Folder_Docs", str(docs_path))
            CMain.logger.info(f"- - - Game docs path set to: {docs_path}")

    if docs_path is not None and docs_path.is_dir():
        return
    CMain.logger.warning(f"> ! > DOCS PATH NOT FOUND : {docs_path}")
    if interactive:
        manual_docs = prompt_for_path(f"{docs_name}.ini", f"C:/Users/Zen/Documents/My Games/{docs_name}", f"{docs_name}.ini")
        CMain.game_settings(str, YAML.Game_Local, "Root_Folder_Docs", str(manual_docs))


def docs_generate_paths() -> None:
    CMain.logger.debug("- - - INITIATED DOCS PATH GENERATION")
    xse_acronym = CMain.require_game_setting(str, YAML.Game, "XSE_Acronym")
    xse_acronym_base = CMain.require_setting(str, YAML.Game, "Game_Info.XSE_Acronym")
    docs_path = CMain.game_settings(Path, YAML.Game_Local, "Root_Folder_Docs")
    if docs_path is None:
        CMain.logger.error("> > > ERROR (docs_generate_paths) : Docs path is missing")
        return

    generated = {
        "Docs_Folder_XSE": docs_path / xse_acronym_base,
        "Docs_File_PapyrusLog": docs_path / "Logs/Script/Papyrus.0.log",
        "Docs_File_WryeBashPC": docs_path / "ModChecker.html",
        "Docs_File_XSE": docs_path / xse_acronym_base / f"{xse_acronym.lower()}.log",
    }
    for key, path in generated.items():
        CMain.game_settings(str, YAML.Game_Local, key, str(path))


# =========== CHECK DOCUMENTS XSE FILE -> GET GAME ROOT FOLDER PATH ===========
def game_path_from_xse_log(xse_log: Path, xse_acronym_base: str) -> Path | None:
    plugins_suffix = re.compile(PLUGINS_SUFFIX.format(xse=re.escape(xse_acronym_base)), flags=re.IGNORECASE)
    with CMain.open_file_with_encoding(xse_log) as xse_file:
        for logline in xse_file:
            if logline.startswith("plugin directory"):
                plugin_dir = logline.split("=", maxsplit=1)[1].strip()
                return Path(plugins_suffix.sub("", plugin_dir))
    return None


def game_path_find(interactive: bool = True) -> None:
    CMain.logger.debug("- - - INITIATED GAME PATH CHECK")
    xse_acronym = CMain.require_game_setting(str, YAML.Game, "XSE_Acronym")
    xse_acronym_base = CMain.require_setting(str, YAML.Game, "Game_Info.XSE_Acronym")
    game_name = CMain.require_game_setting(str, YAML.Game, "Main_Root_Name")
    xse_file = CMain.game_settings(Path, YAML.Game_Local, "Docs_File_XSE")

    candidates: list[Path] = []
    if xse_file and xse_file.is_file():
        try:
            if xse_game_path := game_path_from_xse_log(xse_file, xse_acronym_base):
                candidates.append(xse_game_path)
        except OSError as err:
            CMain.logger.error(f"> > > ERROR (game_path_find) : Failed to read {xse_file} : {err}")
    else:
        print(f"❌ CAUTION : THE {xse_acronym.lower()}.log FILE IS MISSING FROM YOUR GAME DOCUMENTS FOLDER! \n")
        print(f"   You need to run the game at least once with {xse_acronym.lower()}_loader.exe \n")
        print("    After that, try running CLASSIC again! \n-----\n")

    steam_id = CMain.game_settings(int, YAML.Game, "Main_SteamID")
    if steam_id and (steamapps := find_steam_library(steam_id)):
        candidates.append(steamapps / "common" / game_name)

    for game_path in candidates:
        if is_game_folder(game_path):
            CMain.game_settings(str, YAML.Game_Local, "Root_Folder_Game", str(game_path))
            CMain.logger.info(f"- - - Game path found: {game_path}")
            return

    CMain.logger.warning("> ! > GAME PATH NOT FOUND IN XSE LOG OR STEAM LIBRARY")
    if interactive:
        game_path = prompt_for_path(game_name, rf"C:\Steam\steamapps\common\{game_name}", exe_name())
        CMain.game_settings(str, YAML.Game_Local, "Root_Folder_Game", str(game_path))


def get_game_version(exe_path: Path) -> Version:
    """Read the file version from the executable's version resource."""
    try:
        pe = pefile.PE(str(exe_path), fast_load=True)
        try:
            pe.parse_data_directories(directories=[pefile.DIRECTORY_ENTRY["IMAGE_DIRECTORY_ENTRY_RESOURCE"]])
            fixed_info = pe.VS_FIXEDFILEINFO[0] if isinstance(pe.VS_FIXEDFILEINFO, list) else pe.VS_FIXEDFILEINFO
            ms, ls = fixed_info.FileVersionMS, fixed_info.FileVersionLS
        finally:
            pe.close()
    except (OSError, AttributeError, IndexError, pefile.PEFormatError) as err:
        CMain.logger.warning(f"> ! > UNABLE TO READ GAME VERSION FROM {exe_path} : {err}")
        return CMain.NULL_VERSION
    return Version(f"{ms >> 16}.{ms & 0xFFFF}.{ls >> 16}.{ls & 0xFFFF}")


def address_library_name(game_version: Version) -> str | None:
    if CMain.gamevars["game"] != "Fallout4":
        return None
    if CMain.gamevars["vr"]:
        return "version-1-2-72-0.csv"
    if game_version in (CMain.OG_VERSION, CMain.NULL_VERSION):
        return "version-1-10-163-0.bin"
    if game_version == CMain.NG_VERSION:
        return "version-1-10-984-0.bin"
    return None


def game_generate_paths() -> None:
    CMain.logger.debug("- - - INITIATED GAME PATH GENERATION")
    game_path = CMain.game_settings(Path, YAML.Game_Local, "Root_Folder_Game")
    xse_acronym_base = CMain.yaml_settings(str, YAML.Game, "Game_Info.XSE_Acronym")
    if game_path is None or not xse_acronym_base:
        CMain.logger.error("> > > ERROR (game_generate_paths) : Game path or XSE acronym is missing")
        return

    plugins_path = game_path / "Data" / xse_acronym_base / "Plugins"
    exe_path = game_path / exe_name()
    generated = {
        "Game_Folder_Data": game_path / "Data",
        "Game_Folder_Scripts": game_path / "Data" / "Scripts",
        "Game_Folder_Plugins": plugins_path,
        "Game_File_SteamINI": game_path / "steam_api.ini",
        "Game_File_EXE": exe_path,
    }
    for key, path in generated.items():
        CMain.game_settings(str, YAML.Game_Local, key, str(path))

    game_version = get_game_version(exe_path) if exe_path.is_file() else CMain.NULL_VERSION
    if adlib_name := address_library_name(game_version):
        CMain.game_settings(str, YAML.Game_Local, "Game_File_AddressLib", str(plugins_path / adlib_name))
    else:
        CMain.logger.warning(f"> ! > NO ADDRESS LIBRARY KNOWN FOR GAME VERSION {game_version}")
