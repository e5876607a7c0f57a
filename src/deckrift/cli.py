import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

from .config import AppConfig, build_manager
from .logging_config import configure_logging
from .persistence import SaveManager, SaveResult


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="deckrift-saves",
        description="Inspect and manage Deckrift save data",
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        type=Path,
        default=None,
        help="Path to a YAML config file overriding the built-in defaults.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable verbose debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    new = sub.add_parser("new", help="Start a new save")
    new.add_argument("name")
    sub.add_parser("show", help="Print the current save")
    sub.add_parser("status", help="Print save and auto-save status")
    sub.add_parser("slots", help="List save slots")
    delete = sub.add_parser("delete-slot", help="Remove a save slot")
    delete.add_argument("slot_id")
    export = sub.add_parser("export", help="Export the current save as JSON")
    export.add_argument("--out", type=Path, default=None, help="Write to a file instead of stdout.")
    imp = sub.add_parser("import", help="Import a save from a JSON file")
    imp.add_argument("path", type=Path)
    sub.add_parser("push", help="Upload the current save to the cloud")
    sub.add_parser("pull", help="Replace the current save with the cloud copy")
    sub.add_parser("clear", help="Delete the current save and all slots")
    return parser.parse_args(argv)


def _report(result: SaveResult) -> int:
    if result.success:
        return 0
    print(f"error: {result.error}", file=sys.stderr)
    for problem in result.errors:
        print(f"  - {problem}", file=sys.stderr)
    return 1


def _dump(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


async def run_command(manager: SaveManager, args) -> int:
    command = args.command
    if command == "new":
        return _report(await manager.create_new_save(args.name))
    if command == "show":
        result = await manager.load_current_save()
        if result.success:
            _dump(result.save_data)
        return _report(result)
    if command == "status":
        status = await manager.get_save_status()
        _dump(asdict(status))
        return 0
    if command == "slots":
        for slot in (await manager.get_save_slots()).values():
            print(f"{slot.id}\t{slot.name}\trealm {slot.realm} level {slot.level}\t{slot.timestamp}")
        return 0
    if command == "delete-slot":
        return _report(await manager.delete_save_slot(args.slot_id))
    if command == "export":
        result = await manager.export_save()
        if result.success:
            text = json.dumps(result.data, indent=2, ensure_ascii=False)
            if args.out is not None:
                args.out.write_text(text, encoding="utf-8")
            else:
                print(text)
        return _report(result)
    if command == "import":
        try:
            text = args.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            print(f"error: cannot read {args.path}: {exc}", file=sys.stderr)
            return 1
        return _report(await manager.import_save(text))
    if command == "push":
        result = await manager.load_current_save()
        if not result.success:
            return _report(result)
        if not await manager.sync_to_cloud(result.save_data):
            print("error: cloud sync failed", file=sys.stderr)
            return 1
        return 0
    if command == "pull":
        return _report(await manager.load_from_cloud())
    if command == "clear":
        return _report(await manager.clear_all_saves())
    raise ValueError(f"Unknown command: {command}")


def main(argv=None) -> int:
    args = parse_args(argv)
    # Warnings only unless debugging
    configure_logging(level=logging.DEBUG if args.debug else logging.WARNING)

    config = AppConfig.load(user_path=args.config_path)
    manager = build_manager(config)
    return asyncio.run(run_command(manager, args))


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
