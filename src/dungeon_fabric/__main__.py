"""
Command line entry point for dungeon_fabric.
Usage: python -m dungeon_fabric GAME_PATH [--dungeon ID ...] [--layer ID ...]
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .content.service import ContentService
from .dungeon.compiler import CompileResult
from .dungeon.models import Dungeon
from .dungeon.services import DungeonEventEmitter, ImageAssetProvider, InertResolver
from .errors import ConfigError, DungeonFabricError
from .settings import AppSettings
from .settings.logging import VALID_LEVELS, normalize_level
from .utils.logging_config import setup_logging


def _log_level(value: str) -> str:
    try:
        return normalize_level(value)
    except ConfigError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dungeon_fabric",
        description="Merge content layers and compile every dungeon of a game folder.",
    )
    parser.add_argument(
        "game_path",
        nargs="?",
        type=Path,
        help="Game folder holding the layers (defaults to the stored game path)",
    )
    parser.add_argument(
        "--dungeon",
        action="append",
        default=[],
        metavar="ID",
        help="Compile only this dungeon (repeatable)",
    )
    parser.add_argument(
        "--layer",
        action="append",
        default=[],
        metavar="ID",
        help="Use only this overlay layer (repeatable; core is kept unless always_include_core is off)",
    )
    parser.add_argument(
        "--log-level",
        type=_log_level,
        metavar="LEVEL",
        help=f"Console log level for this run ({', '.join(VALID_LEVELS)})",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        metavar="FILE",
        help="INI settings file instead of the native settings storage",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def format_result(result: CompileResult, name: str) -> str:
    """One summary line per compiled dungeon."""
    if result.dungeon is None:
        stage = result.failed_stage.name.lower() if result.failed_stage else "unknown"
        return f"FAILED {result.dungeon_id} at {stage}: {'; '.join(result.errors)}"
    dungeon = result.dungeon
    return (
        f"OK     {dungeon.id} ({name}, {dungeon.dungeon_type.value}): "
        f"{len(dungeon.rooms)} rooms, {len(dungeon.encounters)} encounters, "
        f"{len(dungeon.connections)} doors"
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main command line entry point."""
    args = build_parser().parse_args(argv)
    logger = logging.getLogger(f"{__name__}.main")
    try:
        settings = AppSettings(settings_file=args.settings)
        if args.game_path is not None:
            # The log file lives in the game folder, so store it first
            settings.game_path = args.game_path.resolve()
        setup_logging(settings, console_level=args.log_level)
        logger.info(f"Configuration loaded from {settings.get_settings_file_path()}")

        game_path = settings.game_path
        if game_path is None:
            logger.error("No game path given and none stored in settings")
            return 1

        service = ContentService(game_path, settings, active_layers=args.layer or None)
        dungeon_ids = args.dungeon or service.get_dungeon_ids()
        if not dungeon_ids:
            print(f"No dungeons found in {game_path}")
            return 1

        events = DungeonEventEmitter()
        events.dungeon_created.connect(_log_created)  # type: ignore
        results = service.compile_all(
            InertResolver(),
            ImageAssetProvider(game_path),
            events=events,
            dungeon_ids=dungeon_ids,
        )

        for dungeon_id, result in results.items():
            print(format_result(result, service.get_dungeon_name(dungeon_id)))

        settings.add_recent_game(game_path.resolve())
        failed = sum(1 for result in results.values() if result.load_failed)
        logger.info(f"Compiled {len(results) - failed}/{len(results)} dungeons")
        return 1 if failed else 0

    except DungeonFabricError as e:
        logger.error(f"{e}")
        return 1


def _log_created(dungeon: Dungeon) -> None:
    logging.getLogger(f"{__name__}.main").debug(f"Dungeon created: {dungeon.id}")


if __name__ == "__main__":
    sys.exit(main())
