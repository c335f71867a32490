import shutil
from pathlib import Path

import CLASSIC_Main as CMain
from CLASSIC_Main import YAML, BackupOperation

BACKUP_PATH = Path("CLASSIC Backup/Game Files")


def xse_version_from_log(xse_log_file: Path) -> str | None:
    """Return the `version = x.y.z` value from the Script Extender log, if any."""
    with CMain.open_file_with_encoding(xse_log_file) as xse_log:
        for line in xse_log:
            # F4SE runtime: initialize (version = 0.6.23 010A3A30 01D9F5DE3E8D4AF6, os = 6.2 (9200))
            if "version = " not in line.lower():
                continue
            split_xse = line.lower().split()
            for index, item in enumerate(split_xse):
                if "version" in item and index + 2 < len(split_xse):
                    return split_xse[index + 2].rstrip(",")
    return None


# =========== GENERATE FILE BACKUPS ===========
def main_files_backup() -> None:
    CMain.logger.debug("- - - INITIATED AUTOMATIC BACKUP")
    backup_list = CMain.yaml_settings(list[str], YAML.Main, "CLASSIC_AutoBackup") or []
    game_path = CMain.game_settings(Path, YAML.Game_Local, "Root_Folder_Game")
    xse_log_file = CMain.game_settings(Path, YAML.Game_Local, "Docs_File_XSE")

    if not (xse_log_file and xse_log_file.is_file() and game_path and game_path.is_dir()):
        CMain.logger.info("- - - AUTOMATIC BACKUP SKIPPED, XSE LOG OR GAME FOLDER NOT FOUND")
        return

    # Grab current xse version to create a folder with that name.
    version_xse = xse_version_from_log(xse_log_file) or CMain.game_settings(str, YAML.Game, "XSE_Ver_Latest")
    if not version_xse:
        return

    # If there is no folder for current xse version, create it.
    backup_path = BACKUP_PATH / version_xse
    backup_path.mkdir(parents=True, exist_ok=True)
    backup_files = {file.name for file in backup_path.iterdir()}

    # Backup the file if backup of file does not already exist.
    for file in game_path.iterdir():
        if file.is_file() and file.name not in backup_files and any(file.name in item for item in backup_list):
            shutil.copy2(file, backup_path / file.name)
            CMain.logger.info(f"- - - BACKED UP {file.name} TO {backup_path}")


def replace_path(source: Path, destination: Path) -> None:
    if destination.is_dir():
        shutil.rmtree(destination)
    elif destination.exists():
        destination.unlink(missing_ok=True)
    if source.is_dir():
        shutil.copytree(source, destination)
    else:
        shutil.copy2(source, destination)


def game_files_manage(classic_list: str, operation: BackupOperation = BackupOperation.BACKUP) -> bool:
    """Back up, restore or remove the game root files named in the Game YAML list `classic_list`.

    Returns False when the game folder is unknown or the operation was stopped by file permissions.
    """
    game_path = CMain.game_settings(Path, YAML.Game_Local, "Root_Folder_Game")
    manage_list = CMain.yaml_settings(list[str], YAML.Game, classic_list) or []
    list_name = classic_list.split(maxsplit=1)[-1]

    if game_path is None or not game_path.is_dir():
        CMain.logger.error(f"> > > ERROR (game_files_manage) : Game folder not found: {game_path}")
        print(f"❌ ERROR : UNABLE TO {operation.name} {list_name} FILES, YOUR GAME FOLDER WAS NOT FOUND!")
        print(f"    CHECK Root_Folder_Game IN {CMain.yaml_store_path(YAML.Game_Local).name} OR RUN CLASSIC AGAIN TO SET IT.\n")
        return False

    backup_path = BACKUP_PATH / classic_list
    backup_path.mkdir(parents=True, exist_ok=True)

    def listed(file: Path) -> bool:
        return any(item.lower() in file.name.lower() for item in manage_list)

    try:
        match operation:
            case BackupOperation.BACKUP:
                print(f"CREATING A BACKUP OF {list_name} FILES, PLEASE WAIT...")
                for file in filter(listed, game_path.iterdir()):
                    replace_path(file, backup_path / file.name)
                print(f"✔️ SUCCESSFULLY CREATED A BACKUP OF {list_name} FILES\n")

            case BackupOperation.RESTORE:
                print(f"RESTORING {list_name} FILES FROM A BACKUP, PLEASE WAIT...")
                for file in filter(listed, backup_path.iterdir()):
                    replace_path(file, game_path / file.name)
                print(f"✔️ SUCCESSFULLY RESTORED {list_name} FILES TO THE GAME FOLDER\n")

            case BackupOperation.REMOVE:
                print(f"REMOVING {list_name} FILES FROM YOUR GAME FOLDER, PLEASE WAIT...")
                for file in filter(listed, game_path.iterdir()):
                    if file.is_dir():
                        shutil.rmtree(file)
                    else:
                        file.unlink(missing_ok=True)
                print(f"✔️ SUCCESSFULLY REMOVED {list_name} FILES FROM THE GAME FOLDER\n")

    except PermissionError:
        CMain.logger.error(f"> > > ERROR (game_files_manage) : Permission denied during {operation.name} of {list_name}")
        print(f"❌ ERROR : UNABLE TO {operation.name} {list_name} FILES DUE TO FILE PERMISSIONS!")
        print("    TRY RUNNING CLASSIC.EXE IN ADMIN MODE TO RESOLVE THIS PROBLEM.\n")
        return False

    CMain.logger.info(f"- - - {operation.name} OF {list_name} FILES COMPLETED")
    return True
