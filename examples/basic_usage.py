#!/usr/bin/env python3
"""Programmatic relay example.

This drives the relay components directly, without the HTTP server:

* load settings from `.env`
* track a Notion database and bind it to a repository
* record a change and, once the debounce window passes, sweep

Pass `--sweep` on a later run (after `TRIGGER_DELAY_MINUTES`) to dispatch.
"""

from __future__ import annotations

import argparse
from typing import Sequence

from notion_dispatch_relay.relay.config import RelaySettings
from notion_dispatch_relay.relay.context import build_context
from notion_dispatch_relay.relay.logging import configure_logging
from notion_dispatch_relay.relay.registry import TrackedDatabase


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Record a Notion update (programmatic example).")
    parser.add_argument("--database-id", required=True, help="Notion database id")
    parser.add_argument("--repo", required=True, help='Target repository in the form "owner/repo"')
    parser.add_argument("--sweep", action="store_true", help="Run a sweep instead of recording")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = RelaySettings()
    configure_logging(settings.log_level)

    ctx = build_context(settings)
    try:
        if args.sweep:
            report = ctx.coordinator.run_scheduled_sweep()
            print(f"Fired: {report.fired or 'none'}; waiting: {report.waiting or 'none'}")
            return 0 if not report.failed else 1

        ctx.registry.upsert(TrackedDatabase(id=args.database_id, github_repo_id=args.repo))
        outcome = ctx.coordinator.notify_update(args.database_id)
        print(f"{outcome.status.value}: {outcome.message}")
        if outcome.record is not None:
            print(f"Next trigger at epoch ms {outcome.record.next_trigger_time}")
        return 0
    finally:
        ctx.close()


if __name__ == "__main__":
    raise SystemExit(main())
