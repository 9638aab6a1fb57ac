"""CLI entrypoint for the relay.

The same components the HTTP server uses, driven from a shell: handy for cron
sweeps, manual dispatches and managing bindings without Telegram.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from pydantic import ValidationError

from notion_dispatch_relay import __version__
from notion_dispatch_relay.relay.config import RelaySettings
from notion_dispatch_relay.relay.context import RelayContext, build_context
from notion_dispatch_relay.relay.logging import configure_logging
from notion_dispatch_relay.relay.notion.client import NotionApiError
from notion_dispatch_relay.relay.registry import DispatchTarget, InvalidDispatchTarget, TrackedDatabase
from notion_dispatch_relay.relay.triggers.coordinator import UpdateOutcome, UpdateStatus

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notion-relay",
        description="Relay Notion database changes to GitHub repository_dispatch events",
    )
    parser.add_argument("--version", action="version", version=f"notion-dispatch-relay {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP server (webhooks, sweep runner)")
    serve.add_argument("--host", default="127.0.0.1", help="Interface to bind")
    serve.add_argument("--port", type=int, default=8000, help="Port to listen on")

    subparsers.add_parser("sweep", help="Fire every due delayed trigger once and exit")

    notify = subparsers.add_parser(
        "notify-update", help="Record a change for a database as if Notion had sent it"
    )
    notify.add_argument("--database-id", required=True, help="Notion database id")

    trigger = subparsers.add_parser(
        "trigger", help="Dispatch the GitHub Action for a database now, skipping the delay"
    )
    trigger.add_argument("--database-id", required=True, help="Notion database id")

    bind = subparsers.add_parser("bind", help="Track a database and link it to a repository")
    bind.add_argument("--database-id", required=True, help="Notion database id")
    bind.add_argument(
        "--repo",
        "--repository",
        dest="repository",
        required=True,
        help="Target repository in the form 'owner/repo'",
    )

    unbind = subparsers.add_parser("unbind", help="Stop tracking a database")
    unbind.add_argument("--database-id", required=True, help="Notion database id")

    subparsers.add_parser("list", help="List tracked databases")
    subparsers.add_parser("pending", help="List pending delayed triggers")

    return parser


def _print_outcome(outcome: UpdateOutcome) -> int:
    print(f"{outcome.entity_id}: {outcome.status.value} ({outcome.message})")
    if outcome.status in (UpdateStatus.SCHEDULED, UpdateStatus.FIRED):
        return 0
    return 1


def _bind(ctx: RelayContext, database_id: str, repository: str) -> int:
    try:
        target = DispatchTarget.parse(repository)
    except InvalidDispatchTarget as e:
        print(str(e), file=sys.stderr)
        return 2

    if ctx.registry.find(database_id) is not None:
        updated = ctx.registry.bind(database_id, target.full_name)
        print(f"Linked {updated.display_name} to {target.full_name}")
        return 0

    database = TrackedDatabase(id=database_id, github_repo_id=target.full_name)
    if ctx.notion is not None:
        info = ctx.notion.retrieve_database(database_id)
        database = TrackedDatabase(
            id=database_id,
            name=info.title,
            title=info.title,
            url=info.url,
            github_repo_id=target.full_name,
        )
    else:
        logger.warning(
            "NOTION_TOKEN not set; tracking database without title",
            extra={"database_id": database_id},
        )

    if ctx.dispatcher.configured and not ctx.dispatcher.verify_access(target):
        print(f"GitHub token cannot access {target.full_name}", file=sys.stderr)
        return 1

    ctx.registry.upsert(database)
    print(f"Added {database.display_name} and linked it to {target.full_name}")
    return 0


def _run_command(ctx: RelayContext, args: argparse.Namespace) -> int:
    if args.command == "sweep":
        report = ctx.coordinator.run_scheduled_sweep()
        print(json.dumps(report.to_json(), indent=2))
        return 0 if not report.failed and not report.errors else 1

    if args.command == "notify-update":
        return _print_outcome(ctx.coordinator.notify_update(args.database_id))

    if args.command == "trigger":
        return _print_outcome(ctx.coordinator.trigger_now(args.database_id))

    if args.command == "bind":
        return _bind(ctx, args.database_id, args.repository)

    if args.command == "unbind":
        removed = ctx.registry.remove(args.database_id)
        ctx.coordinator.forget(args.database_id)
        if not removed:
            print(f"Database {args.database_id} is not tracked", file=sys.stderr)
            return 1
        print(f"Removed {args.database_id}")
        return 0

    if args.command == "list":
        databases = ctx.registry.list()
        if not databases:
            print("No tracked databases")
        for db in databases:
            print(f"{db.entity_id}\t{db.display_name}\t{db.github_repo_id or '-'}")
        return 0

    if args.command == "pending":
        records = [r for r in ctx.triggers.list_records() if r.pending]
        if not records:
            print("No pending triggers")
        for record in records:
            print(record.to_json())
        return 0

    logger.error("Unknown command", extra={"command": args.command})
    return 2


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = RelaySettings()
    except ValidationError as e:
        # Logging isn't configured yet.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    if args.command == "serve":
        import uvicorn

        from notion_dispatch_relay.server.app import create_app

        uvicorn.run(create_app(context=build_context(settings)), host=args.host, port=args.port)
        return 0

    ctx = build_context(settings)
    try:
        return _run_command(ctx, args)
    except NotionApiError as e:
        logger.error("Notion request failed", extra={"error": str(e)})
        print(f"Notion request failed: {e}", file=sys.stderr)
        return 1
    except Exception:
        logger.exception("Command failed")
        return 1
    finally:
        ctx.close()


if __name__ == "__main__":
    raise SystemExit(main())
