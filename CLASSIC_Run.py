import asyncio
from pathlib import Path

from tap import Tap

import CLASSIC_Backup as CBackup
import CLASSIC_GamePaths as CGamePaths
import CLASSIC_Integrity as CIntegrity
import CLASSIC_Main as CMain
import CLASSIC_ScanLogs as CScanLogs
from CLASSIC_Main import YAML, BackupOperation

GFS_REPORT_PATH = Path("CLASSIC GFS Report.md")


def main_generate_required(interactive: bool = True) -> None:
    CMain.classic_generate_files()
    classic_ver = CMain.require_setting(str, YAML.Main, "CLASSIC_Info.version")
    game_name = CMain.require_setting(str, YAML.Game, "Game_Info.Main_Root_Name")
    print(f"Hello World! | Crash Log Auto Scanner & Setup Integrity Checker | {classic_ver} | {game_name}")
    print("REMINDER: COMPATIBLE CRASH LOGS MUST START WITH 'crash-' AND MUST HAVE .log EXTENSION \n")
    print("❓ PLEASE WAIT WHILE CLASSIC CHECKS YOUR SETTINGS AND GAME SETUP...")
    CMain.logger.debug(f"> > > STARTED {classic_ver}")

    if not CMain.game_settings(str, YAML.Game_Local, "Root_Folder_Game"):
        CGamePaths.docs_path_find(interactive)
        CGamePaths.docs_generate_paths()
        CGamePaths.game_path_find(interactive)
        CGamePaths.game_generate_paths()
    else:
        CBackup.main_files_backup()

    print("✔️ ALL CLASSIC AND GAME SETTINGS CHECKS HAVE BEEN PERFORMED!")
    print("    YOU CAN NOW SCAN YOUR CRASH LOGS, GAME AND/OR MOD FILES \n")


def scan_game_files() -> str:
    """Run every game integrity check and save the results to `CLASSIC GFS Report.md`."""
    CMain.logger.info("- - - INITIATED GAME FILES SCAN")
    game_result = CIntegrity.main_combined_result()
    GFS_REPORT_PATH.write_text(game_result, encoding="utf-8", errors="ignore")
    return game_result


class Args(Tap):
    """Command-line arguments for CLASSIC's Command Line Interface"""

    scan_logs: bool = False
    """Scan all available crash logs"""

    scan_game: bool = False
    """Check game and Script Extender files, write the results to CLASSIC GFS Report.md"""

    update_check: bool = False
    """Check GitHub and/or Nexus Mods for a newer CLASSIC version"""

    backup: str | None = None
    """Back up the files of a Game YAML list, e.g. 'Backup ENB'"""

    restore: str | None = None
    """Restore the files of a Game YAML list from a backup"""

    remove: str | None = None
    """Remove the files of a Game YAML list from the game folder"""

    vr: bool = False
    """Use VR Mode for this run, without changing CLASSIC Settings.yaml"""

    non_interactive: bool = False
    """Never prompt for missing paths"""


def main(argv: list[str] | None = None) -> int:
    args = Args().parse_args(argv)
    # The Main database must exist before initialize() can generate CLASSIC Settings.yaml from it.
    CMain.configure_logging()
    CMain.classic_data_extract()
    CMain.initialize()
    if args.vr:
        CMain.gamevars["vr"] = "VR"

    main_generate_required(interactive=not args.non_interactive)
    exit_code = 0

    if args.update_check:
        try:
            if not asyncio.run(CMain.is_latest_version(quiet=False, gui_request=False)):
                exit_code = 1
        except CMain.UpdateCheckError as err:
            CMain.logger.error(f"> > > ERROR (main) : {err}")
            exit_code = 1

    for list_name, operation in ((args.backup, BackupOperation.BACKUP),
                                 (args.restore, BackupOperation.RESTORE),
                                 (args.remove, BackupOperation.REMOVE)):
        if list_name and not CBackup.game_files_manage(list_name, operation):
            exit_code = 1

    if args.scan_game:
        print(scan_game_files())
    if args.scan_logs:
        CScanLogs.crashlogs_scan()

    return exit_code


if __name__ == "__main__":  # AKA only autorun / do the following when NOT imported.
    raise SystemExit(main())
