"""SQLite-backed campaign registry and event log.

Uses parameterized queries exclusively, commits synchronously after every
write, and serialises access to the shared connection with a lock because
request handlers call into the repository from worker threads.
"""

from __future__ import annotations

import secrets
import sqlite3
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

import structlog

from attribution.domain.errors import PersistenceError
from attribution.domain.models import (
    Campaign,
    CampaignStats,
    CookieData,
    Event,
    EventMetadata,
    PostbackData,
    TemplateConfig,
)
from attribution.domain.types import EventType, StatName
from attribution.storage.schema import format_timestamp, init_schema, parse_timestamp

logger = structlog.get_logger()

# Whitelisted counter columns; StatName values never reach SQL text directly.
_STAT_COLUMNS: dict[StatName, str] = {
    StatName.COOKIE_SETS: "cookie_sets",
    StatName.REGISTRATIONS: "registrations",
    StatName.FTDS: "ftds",
}


def open_database(db_path: Path | str) -> sqlite3.Connection:
    """Open (creating if needed) the attribution database with WAL mode.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.

    Returns:
        An open connection usable from any thread, with the schema created.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    if str(db_path) != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    init_schema(conn)
    return conn


class SQLiteRepository:
    """``CampaignRepository`` implementation over a single sqlite3 connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize with an open database connection.

        Args:
            conn: An open sqlite3.Connection whose database already has the
                  schema (see ``open_database`` / ``init_schema``).
        """
        self._conn = conn
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()

    @contextmanager
    def _guarded(self, operation: str) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
            except sqlite3.Error as exc:
                logger.error("storage_operation_failed", operation=operation, error=str(exc))
                raise PersistenceError(operation) from exc

    # ------------------------------------------------------------------
    # Campaign registry
    # ------------------------------------------------------------------

    def create_campaign(
        self,
        name: str,
        casino: str,
        template_config: TemplateConfig,
        *,
        postback_url: str | None = None,
        created_by: str = "system",
        created_at: datetime | None = None,
    ) -> Campaign:
        """Insert a new active campaign with zeroed counters.

        Stand-in for the campaign CRUD layer; used by the CLI and tests.

        Returns:
            The stored campaign, including its generated ``id`` and ``script_id``.
        """
        campaign = Campaign(
            id=uuid.uuid4().hex,
            name=name,
            casino=casino,
            template_config=template_config,
            script_id=secrets.token_hex(16),
            postback_url=postback_url,
            created_by=created_by,
            created_at=created_at or datetime.now(tz=UTC),
        )
        stamp = format_timestamp(campaign.created_at)
        with self._guarded("create_campaign") as conn:
            conn.execute(
                """
                INSERT INTO campaigns (
                    id, name, casino, template_config, script_id, postback_url,
                    is_active, created_by, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?, ?)
                """,
                (
                    campaign.id,
                    campaign.name,
                    campaign.casino,
                    template_config.model_dump_json(by_alias=True),
                    campaign.script_id,
                    campaign.postback_url,
                    campaign.created_by,
                    stamp,
                    stamp,
                ),
            )
            conn.commit()
        return campaign

    def deactivate_campaign(self, campaign_id: str) -> bool:
        """Soft-delete a campaign by clearing its active flag.

        Returns:
            True if an active campaign was deactivated.
        """
        with self._guarded("deactivate_campaign") as conn:
            cursor = conn.execute(
                "UPDATE campaigns SET is_active = 0, updated_at = ? WHERE id = ? AND is_active = 1",
                (format_timestamp(datetime.now(tz=UTC)), campaign_id),
            )
            conn.commit()
        return cursor.rowcount > 0

    def find_campaign(self, campaign_id: str) -> Campaign | None:
        with self._guarded("find_campaign") as conn:
            row = conn.execute("SELECT * FROM campaigns WHERE id = ?", (campaign_id,)).fetchone()
        return _row_to_campaign(row) if row is not None else None

    def find_active_campaign(self, campaign_id: str) -> Campaign | None:
        with self._guarded("find_active_campaign") as conn:
            row = conn.execute(
                "SELECT * FROM campaigns WHERE id = ? AND is_active = 1", (campaign_id,)
            ).fetchone()
        return _row_to_campaign(row) if row is not None else None

    def find_active_campaign_by_script(self, script_id: str) -> Campaign | None:
        with self._guarded("find_active_campaign_by_script") as conn:
            row = conn.execute(
                "SELECT * FROM campaigns WHERE script_id = ? AND is_active = 1", (script_id,)
            ).fetchone()
        return _row_to_campaign(row) if row is not None else None

    def list_active_campaigns(self) -> list[Campaign]:
        """Return all active campaigns, newest first."""
        with self._guarded("list_active_campaigns") as conn:
            rows = conn.execute(
                "SELECT * FROM campaigns WHERE is_active = 1 ORDER BY created_at DESC"
            ).fetchall()
        return [_row_to_campaign(row) for row in rows]

    def increment_stat(self, campaign_id: str, stat: StatName, amount: int = 1) -> None:
        """Atomically add *amount* to one of the campaign's counters.

        The update is a single ``col = col + ?`` statement, so concurrent
        increments for the same campaign never overwrite each other.
        """
        column = _STAT_COLUMNS[stat]
        with self._guarded("increment_stat") as conn:
            conn.execute(
                f"UPDATE campaigns SET {column} = {column} + ?, updated_at = ? WHERE id = ?",
                (amount, format_timestamp(datetime.now(tz=UTC)), campaign_id),
            )
            conn.commit()

    # ------------------------------------------------------------------
    # Event log
    # ------------------------------------------------------------------

    def insert_event(self, event: Event) -> Event:
        """Append *event* to the log.

        Returns:
            A copy of the event carrying its assigned row ID.
        """
        with self._guarded("insert_event") as conn:
            cursor = conn.execute(
                """
                INSERT INTO events (
                    campaign_id, event_type, user_agent, referrer, ip_address,
                    cookie_data, postback_data, metadata, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.campaign_id,
                    event.event_type.value,
                    event.user_agent,
                    event.referrer,
                    event.ip_address,
                    _dump(event.cookie_data),
                    _dump(event.postback_data),
                    event.metadata.model_dump_json(by_alias=True),
                    format_timestamp(event.created_at),
                ),
            )
            conn.commit()
        return event.model_copy(update={"id": cursor.lastrowid})

    def query_events_in_window(
        self,
        campaign_id: str | None,
        start: datetime,
        end: datetime,
        event_types: list[EventType] | None = None,
    ) -> list[Event]:
        """Return events created within ``[start, end]``, oldest first.

        Args:
            campaign_id: Restrict to one campaign, or ``None`` for all.
            start: Inclusive lower bound.
            end: Inclusive upper bound.
            event_types: Restrict to these types, or ``None`` for all.
        """
        conditions = ["created_at >= ?", "created_at <= ?"]
        params: list[str] = [format_timestamp(start), format_timestamp(end)]

        if campaign_id is not None:
            conditions.insert(0, "campaign_id = ?")
            params.insert(0, campaign_id)

        if event_types:
            placeholders = ", ".join("?" for _ in event_types)
            conditions.append(f"event_type IN ({placeholders})")
            params.extend(t.value for t in event_types)

        query = f"SELECT * FROM events WHERE {' AND '.join(conditions)} ORDER BY created_at, id"
        with self._guarded("query_events_in_window") as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_event(row) for row in rows]

    def count_events(
        self,
        campaign_id: str | None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> dict[EventType, int]:
        """Count events per type, optionally bounded in time and by campaign.

        Event types with no rows are present with a count of 0.
        """
        conditions: list[str] = []
        params: list[str] = []

        if campaign_id is not None:
            conditions.append("campaign_id = ?")
            params.append(campaign_id)
        if since is not None:
            conditions.append("created_at >= ?")
            params.append(format_timestamp(since))
        if until is not None:
            conditions.append("created_at <= ?")
            params.append(format_timestamp(until))

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        with self._guarded("count_events") as conn:
            rows = conn.execute(
                f"SELECT event_type, COUNT(*) AS n FROM events {where_clause} GROUP BY event_type",
                params,
            ).fetchall()

        counts = dict.fromkeys(EventType, 0)
        for row in rows:
            counts[EventType(row["event_type"])] = row["n"]
        return counts

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def ping(self) -> None:
        """Run a trivial query; raises ``PersistenceError`` if the DB is unusable."""
        with self._guarded("ping") as conn:
            conn.execute("SELECT 1")

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def _dump(model: CookieData | PostbackData | None) -> str | None:
    return model.model_dump_json(by_alias=True) if model is not None else None


def _row_to_campaign(row: sqlite3.Row) -> Campaign:
    return Campaign(
        id=row["id"],
        name=row["name"],
        casino=row["casino"],
        is_active=bool(row["is_active"]),
        template_config=TemplateConfig.model_validate_json(row["template_config"]),
        stats=CampaignStats(
            cookie_sets=row["cookie_sets"],
            registrations=row["registrations"],
            ftds=row["ftds"],
        ),
        script_id=row["script_id"],
        postback_url=row["postback_url"],
        created_by=row["created_by"],
        created_at=parse_timestamp(row["created_at"]),
    )


def _row_to_event(row: sqlite3.Row) -> Event:
    cookie_data = row["cookie_data"]
    postback_data = row["postback_data"]
    metadata = row["metadata"]
    return Event(
        id=row["id"],
        campaign_id=row["campaign_id"],
        event_type=EventType(row["event_type"]),
        created_at=parse_timestamp(row["created_at"]),
        user_agent=row["user_agent"],
        referrer=row["referrer"],
        ip_address=row["ip_address"],
        cookie_data=CookieData.model_validate_json(cookie_data) if cookie_data else None,
        postback_data=PostbackData.model_validate_json(postback_data) if postback_data else None,
        metadata=EventMetadata.model_validate_json(metadata) if metadata else EventMetadata(),
    )
