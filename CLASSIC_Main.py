import contextlib
import datetime
import logging
import os
import platform
import stat
import sys
import zipfile
from collections.abc import Iterator
from enum import Enum, auto
from io import TextIOWrapper
from pathlib import Path
from typing import Any, Literal, TypeAlias, TypedDict, TypeVar, get_origin

import aiohttp
import chardet
import ruamel.yaml
from packaging.version import InvalidVersion, Version

""" AUTHOR NOTES (POET): ❓ ❌ ✔️
    ❓ (..., encoding="utf-8", errors="ignore") needs to go with every opened file because of unicode & charmap errors.
    ❓ Globals are generally used to standardize game paths and INI files naming conventions.
    ❓ Every setting lookup goes through yaml_settings() so the mtime cache stays coherent.
"""

YAMLLiteral: TypeAlias = str | int | bool
YAMLSequence: TypeAlias = list[str]
YAMLMapping: TypeAlias = dict[str, "YAMLValue"]
YAMLValue: TypeAlias = YAMLMapping | YAMLSequence | YAMLLiteral
YAMLValueOptional: TypeAlias = YAMLValue | None
GameID: TypeAlias = Literal["Fallout4", "Fallout4VR", "Skyrim", "Starfield"]  # Entries must correspond to the game's Main ESM or EXE file name.

T = TypeVar("T")


class YAML(Enum):
    Main = auto()
    """CLASSIC Data/databases/CLASSIC Main.yaml"""
    Settings = auto()
    """CLASSIC Settings.yaml"""
    Ignore = auto()
    """CLASSIC Ignore.yaml"""
    Game = auto()
    """CLASSIC Data/databases/CLASSIC Fallout4.yaml"""
    Game_Local = auto()
    """CLASSIC Data/CLASSIC Fallout4 Local.yaml (Fallout4VR Local.yaml in VR Mode)"""
    TEST = auto()
    """tests/test_settings.yaml"""


class BackupOperation(Enum):
    BACKUP = auto()
    RESTORE = auto()
    REMOVE = auto()


class GameVars(TypedDict):
    game: GameID
    vr: Literal["VR", ""]


gamevars: GameVars = {
    "game": "Fallout4",
    "vr": "",
}

# Executable file versions, as reported by the PE version resource.
NULL_VERSION = Version("0.0.0.0")
OG_VERSION = Version("1.10.163.0")
NG_VERSION = Version("1.10.984.0")
VR_VERSION = Version("1.2.72.0")
# Script Extender releases matching OG_VERSION and NG_VERSION.
OG_F4SE_VERSION = Version("0.6.23")
NG_F4SE_VERSION = Version("0.7.2")

DATA_PATH = Path("CLASSIC Data")
JOURNAL_PATH = Path("CLASSIC Journal.log")
JOURNAL_MAX_AGE_DAYS = 7


class UpdateCheckError(Exception):
    """Checking for updates failed."""


class InvalidSettingError(TypeError):
    """A required YAML setting is missing or has an unexpected type."""

    def __init__(self, key_path: str, yaml_store: YAML | None = None) -> None:
        where = f" in {yaml_store.name}" if yaml_store else ""
        super().__init__(f"Setting '{key_path}'{where} is missing or invalid")
        self.key_path = key_path


logger = logging.getLogger("CLASSIC")


@contextlib.contextmanager
def open_file_with_encoding(file_path: Path | str | os.PathLike) -> Iterator[TextIOWrapper]:
    """Read only file open with encoding detection. Only for text files."""
    file_path = Path(file_path)
    raw_data = file_path.read_bytes()
    encoding = chardet.detect(raw_data)["encoding"] or "utf-8"

    file_handle = file_path.open(encoding=encoding, errors="ignore")
    try:
        yield file_handle
    finally:
        file_handle.close()


def configure_logging() -> None:
    """Configure log output to `CLASSIC Journal.log`, regenerating it when older than 7 days.

    Logging levels: debug | info | warning | error | critical.
    """
    if JOURNAL_PATH.exists():
        log_time = datetime.datetime.fromtimestamp(JOURNAL_PATH.stat().st_mtime)
        if (datetime.datetime.now() - log_time).days > JOURNAL_MAX_AGE_DAYS:
            try:
                JOURNAL_PATH.unlink(missing_ok=True)
                print(f"{JOURNAL_PATH.name} has been deleted and regenerated due to being older than {JOURNAL_MAX_AGE_DAYS} days.")
            except OSError as err:
                print(f"An error occurred while deleting {JOURNAL_PATH.name}: {err}")

    if any(isinstance(handler, logging.FileHandler) for handler in logger.handlers):
        return
    logger.setLevel(logging.INFO)
    handler = logging.FileHandler(filename=JOURNAL_PATH, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))
    logger.addHandler(handler)
    logger.debug("- - - LOGGING CONFIGURED")


def remove_readonly(file_path: Path) -> None:
    """Remove the read-only flag from a given file, if present."""
    try:
        if platform.system() == "Windows":
            read_only = bool(file_path.stat().st_file_attributes & stat.FILE_ATTRIBUTE_READONLY)
        else:
            read_only = not file_path.stat().st_mode & stat.S_IWUSR
        if read_only:
            file_path.chmod(file_path.stat().st_mode | stat.S_IWUSR)
            logger.debug(f"- - - '{file_path}' is no longer Read-Only.")
        else:
            logger.debug(f"- - - '{file_path}' is not set to Read-Only.")

    except FileNotFoundError:
        logger.error(f"> > > ERROR (remove_readonly) : '{file_path}' not found.")
    except OSError as err:
        logger.error(f"> > > ERROR (remove_readonly) : {err}")


# ================================================
# YAML SETTINGS STORE
# ================================================
def _yaml_handler() -> ruamel.yaml.YAML:
    yaml = ruamel.yaml.YAML()
    yaml.indent(offset=2)
    yaml.width = 300
    return yaml


def yaml_store_path(yaml_store: YAML) -> Path:
    match yaml_store:
        case YAML.Main:
            return DATA_PATH / "databases/CLASSIC Main.yaml"
        case YAML.Settings:
            return Path("CLASSIC Settings.yaml")
        case YAML.Ignore:
            return Path("CLASSIC Ignore.yaml")
        case YAML.Game:
            return DATA_PATH / f"databases/CLASSIC {gamevars['game']}.yaml"
        case YAML.Game_Local:
            return DATA_PATH / f"CLASSIC {gamevars['game']}{gamevars['vr']} Local.yaml"
        case YAML.TEST:
            return Path("tests/test_settings.yaml")
        case _:
            raise NotImplementedError(yaml_store)


def convert_setting(_type: type[T], value: Any) -> T | None:
    """Coerce a raw YAML value to `_type`, or return None if it can't be done."""
    if value is None:
        return None
    if _type is Path:
        return Path(value) if isinstance(value, str) and value else None  # type: ignore[return-value]
    if _type is bool:
        if isinstance(value, bool):
            return value  # type: ignore[return-value]
        if isinstance(value, int):
            return bool(value)  # type: ignore[return-value]
        if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
            return (value.strip().lower() == "true")  # type: ignore[return-value]
        return None
    if _type is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value  # type: ignore[return-value]
        if isinstance(value, str) and value.strip().lstrip("-").isdecimal():
            return int(value)  # type: ignore[return-value]
        return None
    if _type is float:
        return float(value) if isinstance(value, int | float) and not isinstance(value, bool) else None  # type: ignore[return-value]
    if _type is str:
        if isinstance(value, str):
            return value  # type: ignore[return-value]
        return str(value) if isinstance(value, int | float) else None  # type: ignore[return-value]

    origin = get_origin(_type) or _type
    return value if isinstance(value, origin) else None


class YamlSettingsCache:
    def __init__(self) -> None:
        self.cache: dict[Path, YAMLMapping] = {}
        self.file_mod_times: dict[Path, float] = {}

    def load_yaml(self, yaml_path: str | os.PathLike) -> YAMLMapping:
        """Return the parsed YAML file, re-reading it only if its modification time changed."""
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            return {}

        last_mod_time = yaml_path.stat().st_mtime
        if yaml_path not in self.cache or self.file_mod_times.get(yaml_path) != last_mod_time:
            with yaml_path.open(encoding="utf-8") as yaml_file:
                data = _yaml_handler().load(yaml_file)
            self.cache[yaml_path] = data if isinstance(data, dict) else {}
            self.file_mod_times[yaml_path] = last_mod_time
            logger.debug(f"- - - LOADED {yaml_path}")

        return self.cache[yaml_path]

    def save_yaml(self, yaml_path: Path, data: YAMLMapping) -> None:
        yaml_path.parent.mkdir(parents=True, exist_ok=True)
        with yaml_path.open("w", encoding="utf-8") as yaml_file:
            _yaml_handler().dump(data, yaml_file)
        self.cache[yaml_path] = data
        self.file_mod_times[yaml_path] = yaml_path.stat().st_mtime

    def get_setting(self, _type: type[T], yaml_store: YAML, key_path: str, default: T | None = None) -> T | None:
        """Traverse `key_path` and convert the value found there; `default` on any miss."""
        try:
            current: Any = self.load_yaml(yaml_store_path(yaml_store))
        except (OSError, UnicodeDecodeError, ruamel.yaml.YAMLError) as err:
            logger.error(f"> > > ERROR (get_setting) : Unable to load {yaml_store.name} YAML : {err}")
            return default

        for key in key_path.split("."):
            if not isinstance(current, dict) or key not in current:
                logger.debug(f"- - - Setting '{key_path}' not found in {yaml_store.name} YAML.")
                return default
            current = current[key]

        if current is None:
            return default
        value = convert_setting(_type, current)
        if value is None:
            logger.error(f"> > > ERROR (get_setting) : '{key_path}' is {type(current).__name__}, expected {getattr(_type, '__name__', _type)}")
            return default
        return value

    def set_setting(self, yaml_store: YAML, key_path: str, new_value: T) -> T:
        """Write `new_value` at `key_path`, creating intermediate mappings, and save the file."""
        yaml_path = yaml_store_path(yaml_store)
        data = self.load_yaml(yaml_path)
        if not data:
            data = ruamel.yaml.CommentedMap()

        *parents, last_key = key_path.split(".")
        container: dict[str, Any] = data
        for key in parents:
            next_value = container.get(key)
            if not isinstance(next_value, dict):
                next_value = ruamel.yaml.CommentedMap()
                container[key] = next_value
            container = next_value

        container[last_key] = str(new_value) if isinstance(new_value, Path) else new_value
        self.save_yaml(yaml_path, data)
        return new_value


yaml_cache: YamlSettingsCache | None = None


def yaml_settings(_type: type[T], yaml_store: YAML, key_path: str, new_value: T | None = None) -> T | None:
    if yaml_cache is None:
        raise TypeError("CMain not initialized")
    if new_value is not None:
        return yaml_cache.set_setting(yaml_store, key_path, new_value)
    return yaml_cache.get_setting(_type, yaml_store, key_path)


def require_setting(_type: type[T], yaml_store: YAML, key_path: str) -> T:
    value = yaml_settings(_type, yaml_store, key_path)
    if value is None or (isinstance(value, str) and not value):
        raise InvalidSettingError(key_path, yaml_store)
    return value


def game_settings(_type: type[T], yaml_store: YAML, key: str, new_value: T | None = None) -> T | None:
    """Look up `Game<VR>_Info.<key>`, falling back to `Game_Info.<key>` when reading in VR Mode."""
    variant_path = f"Game{gamevars['vr']}_Info.{key}"
    if new_value is not None:
        return yaml_settings(_type, yaml_store, variant_path, new_value)
    value = yaml_settings(_type, yaml_store, variant_path)
    if value is None and gamevars["vr"]:
        value = yaml_settings(_type, yaml_store, f"Game_Info.{key}")
    return value


def require_game_setting(_type: type[T], yaml_store: YAML, key: str) -> T:
    value = game_settings(_type, yaml_store, key)
    if value is None or (isinstance(value, str) and not value):
        raise InvalidSettingError(f"Game{gamevars['vr']}_Info.{key}", yaml_store)
    return value


def classic_settings(_type: type[T], setting: str) -> T | None:
    settings_path = yaml_store_path(YAML.Settings)
    if not settings_path.exists():
        default_settings = yaml_settings(str, YAML.Main, "CLASSIC_Info.default_settings")
        if not default_settings:
            raise InvalidSettingError("CLASSIC_Info.default_settings", YAML.Main)
        settings_path.write_text(default_settings, encoding="utf-8")

    return yaml_settings(_type, YAML.Settings, f"CLASSIC_Settings.{setting}")


# ================================================
# CREATE REQUIRED FILES & UPDATE CHECK
# ================================================
def classic_generate_files() -> None:
    """Generate `CLASSIC Ignore.yaml` and `CLASSIC Data/CLASSIC <GAME> Local.yaml` from their defaults."""
    for yaml_store, default_key in ((YAML.Ignore, "default_ignorefile"), (YAML.Game_Local, "default_localyaml")):
        target_path = yaml_store_path(yaml_store)
        if target_path.exists():
            continue
        default_text = require_setting(str, YAML.Main, f"CLASSIC_Info.{default_key}")
        target_path.parent.mkdir(parents=True, exist_ok=True)
        target_path.write_text(default_text, encoding="utf-8")
        logger.info(f"- - - GENERATED {target_path}")


def classic_data_extract() -> None:
    """Extract `CLASSIC Data.zip` if `CLASSIC Main.yaml` is not found."""
    if yaml_store_path(YAML.Main).exists():
        return

    exe = sys.executable if getattr(sys, "frozen", False) else __file__
    search_dirs = dict.fromkeys((Path.cwd(), Path(exe).parent))
    for search_dir in search_dirs:
        if datafile := next(search_dir.rglob("CLASSIC Data.zip", case_sensitive=False), None):
            with zipfile.ZipFile(datafile) as zip_data:
                zip_data.extractall(DATA_PATH)
            logger.info(f"- - - EXTRACTED {datafile}")
            return

    print("❌ ERROR : UNABLE TO FIND CLASSIC Data.zip! This archive is required for CLASSIC to function.")
    print("Please ensure that you have extracted all CLASSIC files into the same folder after downloading.")
    raise FileNotFoundError("CLASSIC Data.zip")


def try_parse_version(version_string: str) -> Version | None:
    try:
        return Version(version_string)
    except InvalidVersion:
        return None


GITHUB_RELEASE_URL = "https://api.github.com/repos/evildarkarchon/CLASSIC-Fallout4/releases/latest"
NEXUS_MOD_URL = "https://www.nexusmods.com/fallout4/mods/56255"


async def get_github_version(session: aiohttp.ClientSession) -> Version | None:
    """Return the version of the latest GitHub release, or None if the check fails."""
    try:
        async with session.get(GITHUB_RELEASE_URL) as response:
            response_json = await response.json()
    except aiohttp.ClientError:
        return None

    # Release titles look like "CLASSIC v7.30.3"
    release_name = response_json.get("name") if isinstance(response_json, dict) else None
    if isinstance(release_name, str) and release_name:
        return try_parse_version(release_name.rsplit(maxsplit=1)[-1])
    return None


async def get_nexus_version(session: aiohttp.ClientSession) -> Version | None:
    """Return the version advertised on the Nexus Mods page, or None if the check fails."""
    try:
        async with session.get(NEXUS_MOD_URL) as response:
            found_label = False
            async for raw_line in response.content:
                # <meta property="twitter:label1" content="Version" />
                # <meta property="twitter:data1" content="7.30.3" />
                line = raw_line.decode("utf-8", errors="ignore").strip()
                if line.startswith('<meta property="twitter:label1" content="Version"'):
                    found_label = True
                elif found_label:
                    parts = line.rsplit('"', 2)
                    return try_parse_version(parts[1]) if len(parts) == 3 else None
                elif line.startswith('<link rel="stylesheet"'):
                    # Past the meta tags, the page layout changed.
                    break
    except aiohttp.ClientError:
        pass
    return None


async def is_latest_version(quiet: bool = False, gui_request: bool = True) -> bool:
    """Check GitHub and Nexus Mods for newer versions, depending on settings.

    Returns True if CLASSIC is already the latest version, False otherwise.
    With `gui_request`, failures and outdated versions raise UpdateCheckError instead.
    """
    logger.debug("- - - INITIATED UPDATE CHECK")
    if not (gui_request or classic_settings(bool, "Update Check")):
        if not quiet:
            print("\n❌ NOTICE: UPDATE CHECK IS DISABLED IN CLASSIC Settings.yaml \n")
        return False

    update_source = classic_settings(str, "Update Source") or "Both"
    if update_source not in {"Both", "GitHub", "Nexus"}:
        if not quiet:
            print("\n❌ NOTICE: INVALID VALUE FOR UPDATE SOURCE IN CLASSIC Settings.yaml \n")
        return False

    if not quiet:
        print("❓ (Needs internet connection) CHECKING FOR NEW CLASSIC VERSIONS...\n")

    use_github = update_source in {"Both", "GitHub"}
    use_nexus = update_source in {"Both", "Nexus"}
    try:
        async with aiohttp.ClientSession(raise_for_status=True) as session:
            version_github = await get_github_version(session) if use_github else None
            version_nexus = await get_nexus_version(session) if use_nexus else None
        if version_github is None and version_nexus is None:
            raise UpdateCheckError("No update source could be reached")  # noqa: TRY301
    except (OSError, aiohttp.ClientError, UpdateCheckError) as err:
        logger.warning(f"> ! > UPDATE CHECK FAILED : {err}")
        if not quiet:
            print(yaml_settings(str, YAML.Main, f"CLASSIC_Interface.update_unable_{gamevars['game']}") or err)
        if gui_request:
            raise UpdateCheckError from err
        return False

    classic_local = yaml_settings(str, YAML.Main, "CLASSIC_Info.version") or ""
    version_local = try_parse_version(classic_local.rsplit(maxsplit=1)[-1]) if classic_local else None
    remote_versions = [version for version in (version_github, version_nexus) if version is not None]

    if version_local is None or any(version_local < remote for remote in remote_versions):
        if not quiet:
            print(yaml_settings(str, YAML.Main, f"CLASSIC_Interface.update_warning_{gamevars['game']}") or "")
        if gui_request:
            raise UpdateCheckError(f"A newer version than {classic_local} is available")
        return False

    if not quiet:
        print(f"Your CLASSIC Version: {version_local}")
        if use_github:
            print(f"Latest GitHub Version: {version_github}")
        if use_nexus:
            print(f"Latest Nexus Version: {version_nexus}")
        print("\n✔️ You have the latest version of CLASSIC!\n")
    return True


def initialize() -> None:
    global yaml_cache  # noqa: PLW0603

    yaml_cache = YamlSettingsCache()
    gamevars["vr"] = "VR" if classic_settings(bool, "VR Mode") else ""
    logger.debug(f"- - - INITIALIZED FOR {gamevars['game']}{gamevars['vr']}")
