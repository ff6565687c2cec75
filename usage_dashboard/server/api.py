"""
HTTP endpoints serving the latest dashboard snapshot.

Endpoints:
    /api/summary        -> summary totals and last update time
    /api/daily?days=N   -> daily series for the last N days (default 30)
    /api/models         -> per-model table
    /api/quotas         -> provider quota report and per-provider table
    /api/tips           -> tips list
    /api/all            -> full snapshot

Handlers only read the snapshot cell; they never wait for a refresh.
"""

import json
import logging
from datetime import date, timedelta
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, urlparse

from usage_dashboard.core.refresh import SnapshotCell
from usage_dashboard.storage.cache import DashboardSnapshot

logger = logging.getLogger(__name__)

DEFAULT_DAYS = 30


def _days(query: Dict[str, Any]) -> int:
    values = query.get("days") or [str(DEFAULT_DAYS)]
    try:
        return max(int(values[0]), 0)
    except ValueError:
        return DEFAULT_DAYS


def build_view(
    path: str,
    query: Dict[str, Any],
    snapshot: DashboardSnapshot,
    today: Optional[date] = None,
) -> Optional[Dict[str, Any]]:
    """Build the JSON body for an API path.

    Args:
        path: Request path, e.g. `/api/daily`
        query: Parsed query string (as returned by `parse_qs`)
        snapshot: Snapshot to read from
        today: Reference date for `/api/daily` (defaults to today)

    Returns:
        Response body, or None when the path is unknown
    """
    data = snapshot.to_dict()
    if path == "/api/summary":
        return {"summary": data["summary"], "updated_at": data["updated_at"]}
    if path == "/api/daily":
        days = _days(query)
        # Daily keys are local calendar dates, so the cutoff is a local date too
        cutoff = ((today or date.today()) - timedelta(days=days)).isoformat()
        return {"daily": [d for d in data["daily"] if d["date"] >= cutoff], "days": days}
    if path == "/api/models":
        return {"models": data["models"]}
    if path == "/api/quotas":
        return {"quotas": data["quotas"], "providers": data["providers"]}
    if path == "/api/tips":
        return {"tips": data["tips"]}
    if path == "/api/all":
        return data
    return None


class DashboardRequestHandler(BaseHTTPRequestHandler):
    """Request handler bound to a SnapshotCell via `create_server`."""

    cell: Optional[SnapshotCell] = None

    def _send_json(self, body: Dict[str, Any]) -> None:
        payload = json.dumps(body).encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def do_OPTIONS(self):
        self.send_response(204)
        self.send_header("Access-Control-Allow-Origin", "*")
        self.send_header("Access-Control-Allow-Methods", "GET")
        self.send_header("Access-Control-Allow-Headers", "*")
        self.end_headers()

    def do_GET(self):
        parsed = urlparse(self.path)
        snapshot = (self.cell.get() if self.cell else None) or DashboardSnapshot.empty()
        body = build_view(parsed.path, parse_qs(parsed.query), snapshot)
        if body is None:
            self.send_error(404, "Not found")
            return
        self._send_json(body)

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)


def create_server(cell: SnapshotCell, host: str = "127.0.0.1", port: int = 18790) -> ThreadingHTTPServer:
    """Create an HTTP server answering from `cell`.

    Args:
        cell: Snapshot cell published by the refresh orchestrator
        host: Interface to bind
        port: Port to bind (0 picks a free port)

    Returns:
        A bound, not yet serving, ThreadingHTTPServer
    """
    handler = type("BoundDashboardRequestHandler", (DashboardRequestHandler,), {"cell": cell})
    return ThreadingHTTPServer((host, port), handler)
