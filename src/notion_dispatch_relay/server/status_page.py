"""Server-rendered status page served at `/`."""

from __future__ import annotations

from datetime import UTC, datetime
from html import escape

from notion_dispatch_relay import __version__
from notion_dispatch_relay.relay.registry import TrackedDatabase
from notion_dispatch_relay.relay.triggers.record import TriggerRecord

_STYLE = """
body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
       background: #F8FAFC; color: #1A1F36; margin: 0; padding: 2rem; }
main { max-width: 960px; margin: 0 auto; background: #fff; border-radius: 12px;
       padding: 1.5rem; box-shadow: 0 4px 20px rgba(0, 0, 0, 0.05); }
h1 { margin-top: 0; color: #3B82F6; }
table { width: 100%; border-collapse: collapse; margin-bottom: 1.5rem; }
th, td { text-align: left; padding: 0.4rem 0.6rem; border-bottom: 1px solid #E2E8F0; }
code { background: #F1F5F9; padding: 0.1rem 0.3rem; border-radius: 4px; }
.muted { color: #697386; }
"""

_ENDPOINTS: list[tuple[str, str, str]] = [
    ("POST", "/api/notion/webhook", "Notion database change notifications"),
    ("POST", "/api/telegram/webhook", "Telegram bot updates"),
    ("GET", "/api/telegram/setup", "Register the Telegram webhook and command menu"),
    ("POST", "/api/sweep", "Fire every due delayed trigger"),
    ("GET", "/api/triggers", "Pending delayed triggers"),
    ("GET", "/health", "Liveness check"),
]


def _ms_to_text(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=UTC).strftime("%Y-%m-%d %H:%M:%S UTC")


def render_status_page(
    *,
    databases: list[TrackedDatabase],
    triggers: list[TriggerRecord],
    delay_minutes: float,
    error: str | None = None,
) -> str:
    db_rows = "".join(
        "<tr>"
        f"<td>{escape(db.display_name)}</td>"
        f"<td><code>{escape(db.entity_id)}</code></td>"
        f"<td>{escape(db.github_repo_id or '-')}</td>"
        "</tr>"
        for db in databases
    ) or '<tr><td colspan="3" class="muted">No tracked databases</td></tr>'

    trigger_rows = "".join(
        "<tr>"
        f"<td><code>{escape(t.entity_id)}</code></td>"
        f"<td>{_ms_to_text(t.next_trigger_time)}</td>"
        f"<td>{_ms_to_text(t.updated_at)}</td>"
        "</tr>"
        for t in triggers
        if t.pending
    ) or '<tr><td colspan="3" class="muted">Nothing pending</td></tr>'

    endpoint_rows = "".join(
        f"<tr><td>{m}</td><td><code>{p}</code></td><td>{escape(d)}</td></tr>"
        for m, p, d in _ENDPOINTS
    )

    error_block = f'<p class="muted">⚠️ {escape(error)}</p>' if error else ""

    return f"""<!DOCTYPE html>
<html>
  <head>
    <title>Notion Dispatch Relay</title>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <style>{_STYLE}</style>
  </head>
  <body>
    <main>
      <h1>Notion Dispatch Relay</h1>
      <p class="muted">v{__version__} &middot; running &middot; debounce window {delay_minutes:g} min</p>
      {error_block}
      <h2>Tracked databases</h2>
      <table><tr><th>Name</th><th>ID</th><th>Repository</th></tr>{db_rows}</table>
      <h2>Pending triggers</h2>
      <table><tr><th>Database</th><th>Fires at</th><th>Last update</th></tr>{trigger_rows}</table>
      <h2>Endpoints</h2>
      <table><tr><th>Method</th><th>Path</th><th>Purpose</th></tr>{endpoint_rows}</table>
    </main>
  </body>
</html>
"""
