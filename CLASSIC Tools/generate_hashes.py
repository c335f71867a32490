import sys
from pathlib import Path
from typing import Literal

import ruamel.yaml
from tap import Tap

from CLASSIC_Integrity import calculate_file_hash


class Arguments(Tap):
    """Prints the EXE and Script Extender hashes of a known-good game installation as Game YAML."""

    game_path: Path
    """Path to the game root folder (the folder holding the game EXE)"""

    game: Literal["Fallout4", "Skyrim", "Starfield"] = "Fallout4"
    """Game the installation belongs to"""

    vr: bool = False
    """Installation is the VR variant"""

    scripts: list[str] = ["Actor.pex", "ActorBase.pex", "Armor.pex", "ArmorAddon.pex", "Cell.pex", "Component.pex", "ConstructibleObject.pex", "DefaultObject.pex", "EncounterZone.pex", "EquipSlot.pex", "F4SE.pex", "FavoritesManager.pex", "Form.pex", "Game.pex", "HeadPart.pex", "Input.pex", "InstanceData.pex", "Location.pex", "Math.pex", "MatSwap.pex", "MiscObject.pex", "ObjectMod.pex", "ObjectReference.pex", "Perk.pex", "ScriptObject.pex", "UI.pex", "Utility.pex", "WaterType.pex", "Weapon.pex"]
    """Script Extender script file names under Data/Scripts"""


args = Arguments().parse_args()
exe_path = args.game_path / f"{args.game}{'VR' if args.vr else ''}.exe"
scripts_path = args.game_path / "Data" / "Scripts"

if not exe_path.is_file():
    msg = f"Game EXE {exe_path} not found"
    raise FileNotFoundError(msg)

hashed_scripts = ruamel.yaml.CommentedMap()
for script_name in args.scripts:
    script_path = scripts_path / script_name
    if script_path.is_file():
        hashed_scripts[script_name] = calculate_file_hash(script_path)
    else:
        print(f"# Skipped {script_name}, not found in {scripts_path}", file=sys.stderr)

game_info = ruamel.yaml.CommentedMap()
game_info["EXE_HashedOLD"] = calculate_file_hash(exe_path)
game_info["XSE_HashedScripts"] = hashed_scripts

yaml = ruamel.yaml.YAML()
yaml.indent(offset=2)
yaml.width = 300
yaml.dump({f"Game{'VR' if args.vr else ''}_Info": game_info}, sys.stdout)
