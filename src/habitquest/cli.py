from __future__ import annotations

import argparse
import json
import sys
from datetime import date
from pathlib import Path
from uuid import uuid4

import uvicorn

from .api import create_app
from .errors import EmptyTitle, GameError
from .quests import XP_TIERS
from .service import GameService


BAR_WIDTH = 20


def _service(source: str = "cli") -> GameService:
    return GameService.create(source=source)


def _print_json(value: object) -> None:
    print(json.dumps(value, indent=2, ensure_ascii=False))


def _print_status(status: dict) -> None:
    filled = int(status["progress"] * BAR_WIDTH)
    bar = "#" * filled + "-" * (BAR_WIDTH - filled)
    print(f"Lv.{status['level']}  [{bar}]  {status['xp']}/{status['needed_xp']} XP")
    print(f"Next level in {status['xp_to_next_level']} XP")


def _print_quests(quests: list[dict]) -> None:
    if not quests:
        print("No quests yet.")
        return
    for quest in quests:
        print(f"{quest['id']:>14}  {quest['emoji']}  {quest['title']}  {quest['stars']} (+{quest['xp']} XP)")


def _print_award(result: dict) -> None:
    if result.get("leveled_up"):
        print(f"LEVEL UP! You are now Lv.{result['level']}.")
    _print_status(result["status"])


def main() -> int:
    parser = argparse.ArgumentParser(description="HabitQuest CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    status_cmd = sub.add_parser("status", help="Show level and XP progress")
    status_cmd.add_argument("--json", action="store_true", help="Print raw JSON")

    quests_cmd = sub.add_parser("quests", help="Quest catalog operations")
    quests_sub = quests_cmd.add_subparsers(dest="quests_command", required=True)
    quests_list = quests_sub.add_parser("list", help="List quests in display order")
    quests_list.add_argument("--json", action="store_true", help="Print raw JSON")
    quests_add = quests_sub.add_parser("add", help="Add a quest")
    quests_add.add_argument("title", help="Quest title")
    quests_add.add_argument("--xp", type=int, default=30, choices=list(XP_TIERS), help="XP reward tier")
    quests_add.add_argument("--emoji", default=None, help="Display emoji (random when omitted)")
    quests_delete = quests_sub.add_parser("delete", help="Delete a quest by id")
    quests_delete.add_argument("quest_id", type=int)
    quests_import = quests_sub.add_parser("import", help="Add quests from a YAML file")
    quests_import.add_argument("path", help="YAML file with a top-level 'quests' list")

    complete_cmd = sub.add_parser("complete", help="Complete a quest and collect its XP")
    complete_cmd.add_argument("quest_id", type=int)

    award_cmd = sub.add_parser("award", help="Award raw XP")
    award_cmd.add_argument("--amount", type=int, required=True)

    bonus_cmd = sub.add_parser("bonus", help="Daily login bonus")
    bonus_sub = bonus_cmd.add_subparsers(dest="bonus_command", required=True)
    bonus_status = bonus_sub.add_parser("status", help="Show whether today's bonus is owed")
    bonus_status.add_argument("--date", default=None, help="Date in YYYY-MM-DD (defaults to local today)")
    bonus_claim = bonus_sub.add_parser("claim", help="Claim today's bonus if owed")
    bonus_claim.add_argument("--date", default=None, help="Date in YYYY-MM-DD (defaults to local today)")

    settings_cmd = sub.add_parser("settings", help="Show or change sound/theme flags")
    mute_group = settings_cmd.add_mutually_exclusive_group()
    mute_group.add_argument("--mute", dest="muted", action="store_const", const=True, default=None)
    mute_group.add_argument("--unmute", dest="muted", action="store_const", const=False)
    theme_group = settings_cmd.add_mutually_exclusive_group()
    theme_group.add_argument("--dark", dest="dark_mode", action="store_const", const=True, default=None)
    theme_group.add_argument("--light", dest="dark_mode", action="store_const", const=False)

    export_cmd = sub.add_parser("export", help="Export current state to a JSON file")
    export_cmd.add_argument("--out", required=True, help="Output JSON path")

    reset_cmd = sub.add_parser("reset", help="Reset level, XP and quests to defaults")
    reset_cmd.add_argument("--yes", action="store_true", help="Confirm the reset")

    telemetry_cmd = sub.add_parser("telemetry", help="Local event log operations")
    telemetry_sub = telemetry_cmd.add_subparsers(dest="telemetry_command", required=True)
    telemetry_sub.add_parser("status", help="Show event log path and size")
    telemetry_summary = telemetry_sub.add_parser("summary", help="Summarize recent activity")
    telemetry_summary.add_argument("--range", default="7d", help="Range window like 7d or 24h")
    telemetry_purge = telemetry_sub.add_parser("purge", help="Drop events older than a range")
    telemetry_purge.add_argument("--older-than", default=None, help="Range like 30d or 720h")

    api_cmd = sub.add_parser("api", help="Run local API server")
    api_cmd.add_argument("--host", default="127.0.0.1")
    api_cmd.add_argument("--port", type=int, default=8000)

    args = parser.parse_args()
    service = _service("api") if args.command == "api" else _service()
    trace_id = f"cli:{uuid4()}"

    try:
        return _dispatch(args, service, trace_id)
    except GameError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 1
    except KeyError as exc:
        print(f"error: {exc.args[0] if exc.args else exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


def _dispatch(args: argparse.Namespace, service: GameService, trace_id: str) -> int:
    if args.command == "status":
        if args.json:
            _print_json(service.status())
        else:
            _print_status(service.status())
        return 0

    if args.command == "quests":
        if args.quests_command == "list":
            quests = service.list_quests()
            if args.json:
                _print_json(quests)
            else:
                _print_quests(quests)
            return 0
        if args.quests_command == "add":
            quest = service.add_quest(args.title, args.xp, args.emoji, trace_id=trace_id)
            if quest is None:
                raise EmptyTitle()
            _print_json(quest)
            return 0
        if args.quests_command == "delete":
            removed = service.delete_quest(args.quest_id, trace_id=trace_id)
            _print_json({"deleted": removed})
            return 0 if removed else 1
        if args.quests_command == "import":
            _print_json(service.import_quests(Path(args.path), trace_id=trace_id))
            return 0

    if args.command == "complete":
        result = service.complete_quest(args.quest_id, trace_id=trace_id)
        quest = result["quest"]
        print(f"Quest complete: {quest['emoji']} {quest['title']} (+{quest['xp']} XP)")
        _print_award(result)
        return 0

    if args.command == "award":
        _print_award(service.award_xp(args.amount, trace_id=trace_id))
        return 0

    if args.command == "bonus":
        target = date.fromisoformat(args.date) if args.date else None
        if args.bonus_command == "status":
            _print_json(service.bonus_status(target))
            return 0
        if args.bonus_command == "claim":
            result = service.claim_bonus_if_owed(target, trace_id=trace_id)
            if result["claimed"]:
                print(f"Login bonus! +{result['bonus_xp']} XP")
                _print_award({**result["level_up"], "status": result["status"]})
            else:
                print("Today's login bonus was already claimed.")
            return 0

    if args.command == "settings":
        _print_json(service.update_settings(muted=args.muted, dark_mode=args.dark_mode, trace_id=trace_id))
        return 0

    if args.command == "export":
        _print_json(service.export_state(Path(args.out), trace_id=trace_id))
        return 0

    if args.command == "reset":
        if not args.yes:
            print("Refusing to reset without --yes.", file=sys.stderr)
            return 1
        _print_json(service.reset(trace_id=trace_id))
        return 0

    if args.command == "telemetry":
        if args.telemetry_command == "status":
            _print_json(service.telemetry_status())
            return 0
        if args.telemetry_command == "summary":
            _print_json(service.telemetry_summary(args.range))
            return 0
        if args.telemetry_command == "purge":
            _print_json(service.telemetry_purge(older_than=args.older_than, trace_id=trace_id))
            return 0

    if args.command == "api":
        app = create_app(service)
        uvicorn.run(app, host=args.host, port=args.port, log_level="info")
        return 0

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
