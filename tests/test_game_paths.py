from collections.abc import Iterator
from pathlib import Path

import pytest

import CLASSIC_GamePaths
import CLASSIC_Main
from CLASSIC_Main import YAML

LIBRARY_VDF = """"libraryfolders"
{{
	"0"
	{{
		"path"		"{library}"
		"label"		""
		"apps"
		{{
			"228980"		"426134004"
			"377160"		"31829125"
		}}
	}}
}}
"""


def write_steam_library(monkeypatch: pytest.MonkeyPatch, root: Path) -> Path:
    """Point the Steam library lookup at a fake `libraryfolders.vdf` listing Fallout 4."""
    library = root / "SteamLibrary"
    vdf_path = root / "libraryfolders.vdf"
    vdf_path.write_text(LIBRARY_VDF.format(library=library), encoding="utf-8")
    monkeypatch.setattr(CLASSIC_GamePaths, "STEAM_LIBRARY_FILES", (root / "missing.vdf", vdf_path))
    return library / "steamapps"


def fake_input(monkeypatch: pytest.MonkeyPatch, answers: list[str]) -> list[str]:
    """Answer `input()` prompts in order, returning the list of prompts shown."""
    prompts: list[str] = []
    answer_iter: Iterator[str] = iter(answers)

    def _input(prompt: str = "") -> str:
        prompts.append(prompt)
        return next(answer_iter)

    monkeypatch.setattr("builtins.input", _input)
    return prompts


def make_game_folder(path: Path) -> Path:
    path.mkdir(parents=True)
    path.joinpath("Fallout4.exe").write_bytes(b"exe")
    return path


@pytest.fixture
def no_steam(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(CLASSIC_GamePaths, "STEAM_LIBRARY_FILES", ())


def test_find_steam_library(classic_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    steamapps = write_steam_library(monkeypatch, classic_env)
    assert CLASSIC_GamePaths.find_steam_library(377160) == steamapps
    assert CLASSIC_GamePaths.find_steam_library(489830) is None, "apps not listed in any library are not found"


def test_game_path_from_xse_log(classic_env: Path) -> None:
    xse_log = classic_env / "f4se.log"
    xse_log.write_text(
        "F4SE runtime: initialize (version = 0.6.23 010A3A30 01D9F5DE3E8D4AF6, os = 6.2 (9200))\n"
        "plugin directory = C:\\Games\\Fallout 4\\Data\\F4SE\\Plugins\\\n",
        encoding="utf-8",
    )
    assert str(CLASSIC_GamePaths.game_path_from_xse_log(xse_log, "F4SE")) == "C:\\Games\\Fallout 4"

    xse_log.write_text("plugin directory = /games/Fallout 4/data/f4se/plugins\n", encoding="utf-8")
    assert CLASSIC_GamePaths.game_path_from_xse_log(xse_log, "F4SE") == Path("/games/Fallout 4"), "match should ignore case"

    xse_log.write_text("config path = Fallout4/F4SE/f4se.ini\n", encoding="utf-8")
    assert CLASSIC_GamePaths.game_path_from_xse_log(xse_log, "F4SE") is None


def test_game_path_find_from_xse_log(classic_env: Path, no_steam: None) -> None:
    game_path = make_game_folder(classic_env / "Games/Fallout 4")
    xse_log = classic_env / "f4se.log"
    xse_log.write_text(f"plugin directory = {game_path / 'Data/F4SE/Plugins'}/\n", encoding="utf-8")
    CLASSIC_Main.game_settings(str, YAML.Game_Local, "Docs_File_XSE", str(xse_log))

    CLASSIC_GamePaths.game_path_find(interactive=False)
    assert CLASSIC_Main.game_settings(Path, YAML.Game_Local, "Root_Folder_Game") == game_path


def test_game_path_find_from_steam(classic_env: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    steamapps = write_steam_library(monkeypatch, classic_env)
    game_path = make_game_folder(steamapps / "common/Fallout 4")

    CLASSIC_GamePaths.game_path_find(interactive=False)
    assert CLASSIC_Main.game_settings(Path, YAML.Game_Local, "Root_Folder_Game") == game_path
    assert "f4se.log FILE IS MISSING" in capsys.readouterr().out


def test_game_path_find_skips_folder_without_exe(classic_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    steamapps = write_steam_library(monkeypatch, classic_env)
    (steamapps / "common/Fallout 4").mkdir(parents=True)

    CLASSIC_GamePaths.game_path_find(interactive=False)
    assert CLASSIC_Main.game_settings(Path, YAML.Game_Local, "Root_Folder_Game") is None


def test_game_path_find_prompt(classic_env: Path, monkeypatch: pytest.MonkeyPatch, no_steam: None) -> None:
    game_path = make_game_folder(classic_env / "Manual/Fallout 4")
    empty_path = classic_env / "Empty"
    empty_path.mkdir()
    prompts = fake_input(monkeypatch, ["", str(empty_path), str(game_path)])

    CLASSIC_GamePaths.game_path_find(interactive=True)
    assert len(prompts) == 3, "the prompt should repeat until a folder with the game exe is entered"
    assert CLASSIC_Main.game_settings(Path, YAML.Game_Local, "Root_Folder_Game") == game_path


def test_docs_path_find_windows(classic_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    home = classic_env / "home"
    docs_path = home / "Documents/My Games/Fallout4"
    docs_path.mkdir(parents=True)
    monkeypatch.setattr(CLASSIC_GamePaths.platform, "system", lambda: "Windows")
    monkeypatch.setattr(CLASSIC_GamePaths.Path, "home", lambda: home)

    CLASSIC_GamePaths.docs_path_find(interactive=False)
    assert CLASSIC_Main.game_settings(Path, YAML.Game_Local, "Root_Folder_Docs") == docs_path


def test_docs_path_find_proton(classic_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    steamapps = write_steam_library(monkeypatch, classic_env)
    docs_path = steamapps / "compatdata/377160" / CLASSIC_GamePaths.PROTON_DOCS_PATH / "Fallout4"
    docs_path.mkdir(parents=True)
    monkeypatch.setattr(CLASSIC_GamePaths.platform, "system", lambda: "Linux")

    CLASSIC_GamePaths.docs_path_find(interactive=False)
    assert CLASSIC_Main.game_settings(Path, YAML.Game_Local, "Root_Folder_Docs") == docs_path


def test_docs_path_find_prompt(classic_env: Path, monkeypatch: pytest.MonkeyPatch, no_steam: None) -> None:
    docs_path = classic_env / "Docs/Fallout4"
    docs_path.mkdir(parents=True)
    docs_path.joinpath("Fallout4.ini").write_text("[General]\n", encoding="utf-8")
    monkeypatch.setattr(CLASSIC_GamePaths.platform, "system", lambda: "Linux")

    CLASSIC_GamePaths.docs_path_find(interactive=False)
    assert CLASSIC_Main.game_settings(Path, YAML.Game_Local, "Root_Folder_Docs") is None, "nothing to save without a prompt"

    prompts = fake_input(monkeypatch, [str(classic_env), str(docs_path)])
    CLASSIC_GamePaths.docs_path_find(interactive=True)
    assert len(prompts) == 2
    assert CLASSIC_Main.game_settings(Path, YAML.Game_Local, "Root_Folder_Docs") == docs_path


def test_docs_generate_paths(game_env) -> None:
    docs_path = game_env.docs_path
    assert CLASSIC_Main.game_settings(Path, YAML.Game_Local, "Docs_Folder_XSE") == docs_path / "F4SE"
    assert CLASSIC_Main.game_settings(Path, YAML.Game_Local, "Docs_File_XSE") == game_env.xse_log
    assert CLASSIC_Main.game_settings(Path, YAML.Game_Local, "Docs_File_PapyrusLog") == docs_path / "Logs/Script/Papyrus.0.log"


def test_docs_generate_paths_vr(classic_env: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setitem(CLASSIC_Main.gamevars, "vr", "VR")
    docs_path = classic_env / "Fallout4VR"
    CLASSIC_Main.game_settings(str, YAML.Game_Local, "Root_Folder_Docs", str(docs_path))

    CLASSIC_GamePaths.docs_generate_paths()
    assert CLASSIC_Main.yaml_settings(Path, YAML.Game_Local, "GameVR_Info.Docs_File_XSE") == docs_path / "F4SE/f4sevr.log"


def test_game_generate_paths(game_env) -> None:
    game_path = game_env.game_path
    assert CLASSIC_Main.game_settings(Path, YAML.Game_Local, "Game_Folder_Scripts") == game_env.scripts_path
    assert CLASSIC_Main.game_settings(Path, YAML.Game_Local, "Game_File_EXE") == game_env.exe_path
    assert CLASSIC_Main.game_settings(Path, YAML.Game_Local, "Game_File_SteamINI") == game_path / "steam_api.ini"
    assert CLASSIC_Main.game_settings(Path, YAML.Game_Local, "Game_File_AddressLib") == game_env.adlib_path


def test_game_generate_paths_next_gen(game_env, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(CLASSIC_GamePaths, "get_game_version", lambda _exe_path: CLASSIC_Main.NG_VERSION)
    CLASSIC_GamePaths.game_generate_paths()
    adlib_path = CLASSIC_Main.game_settings(Path, YAML.Game_Local, "Game_File_AddressLib")
    assert adlib_path == game_env.game_path / "Data/F4SE/Plugins/version-1-10-984-0.bin"


def test_address_library_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setitem(CLASSIC_Main.gamevars, "game", "Fallout4")
    monkeypatch.setitem(CLASSIC_Main.gamevars, "vr", "")
    assert CLASSIC_GamePaths.address_library_name(CLASSIC_Main.OG_VERSION) == "version-1-10-163-0.bin"
    assert CLASSIC_GamePaths.address_library_name(CLASSIC_Main.NULL_VERSION) == "version-1-10-163-0.bin"
    assert CLASSIC_GamePaths.address_library_name(CLASSIC_Main.NG_VERSION) == "version-1-10-984-0.bin"
    assert CLASSIC_GamePaths.address_library_name(CLASSIC_Main.VR_VERSION) is None

    monkeypatch.setitem(CLASSIC_Main.gamevars, "vr", "VR")
    assert CLASSIC_GamePaths.address_library_name(CLASSIC_Main.NULL_VERSION) == "version-1-2-72-0.csv"


def test_get_game_version_not_pe(tmp_path: Path) -> None:
    not_pe = tmp_path / "Fallout4.exe"
    not_pe.write_bytes(b"MZ but not really a PE file")
    assert CLASSIC_GamePaths.get_game_version(not_pe) == CLASSIC_Main.NULL_VERSION
    assert CLASSIC_GamePaths.get_game_version(tmp_path / "missing.exe") == CLASSIC_Main.NULL_VERSION
