"""SQLite schema for the campaign registry and event log.

Timestamps are stored as fixed-width UTC ISO-8601 text so lexical order
equals chronological order and window scans can use the compound index.
"""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_timestamp(value: datetime) -> str:
    """Render *value* in the storage timestamp format (UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Parse a stored timestamp back into an aware UTC datetime."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=UTC)


def init_schema(conn: sqlite3.Connection) -> None:
    """Create the campaigns and events tables if they do not already exist.

    The ``(campaign_id, event_type, created_at)`` index backs the per-campaign
    report scans; ``(created_at)`` and ``(event_type, created_at)`` back the
    overview and real-time queries.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS campaigns (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            casino TEXT NOT NULL,
            template_config TEXT NOT NULL,
            script_id TEXT NOT NULL UNIQUE,
            postback_url TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            created_by TEXT NOT NULL DEFAULT 'system',
            cookie_sets INTEGER NOT NULL DEFAULT 0,
            registrations INTEGER NOT NULL DEFAULT 0,
            ftds INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            campaign_id TEXT NOT NULL REFERENCES campaigns (id),
            event_type TEXT NOT NULL,
            user_agent TEXT,
            referrer TEXT,
            ip_address TEXT,
            cookie_data TEXT,
            postback_data TEXT,
            metadata TEXT,
            created_at TEXT NOT NULL
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_campaigns_active ON campaigns (is_active)")
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_events_campaign_type_created "
        "ON events (campaign_id, event_type, created_at)"
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_events_created ON events (created_at)")
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_events_type_created ON events (event_type, created_at)"
    )

    conn.commit()
