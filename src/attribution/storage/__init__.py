"""Persistence: repository protocol, SQLite and in-memory backends, stats readers."""

from attribution.storage.base import CampaignRepository
from attribution.storage.memory import InMemoryRepository
from attribution.storage.schema import format_timestamp, init_schema, parse_timestamp
from attribution.storage.sqlite import SQLiteRepository, open_database
from attribution.storage.stats import (
    CounterStatsReader,
    EventLogStatsReader,
    StatsReader,
    build_stats_reader,
)

__all__ = [
    "CampaignRepository",
    "CounterStatsReader",
    "EventLogStatsReader",
    "InMemoryRepository",
    "SQLiteRepository",
    "StatsReader",
    "build_stats_reader",
    "format_timestamp",
    "init_schema",
    "open_database",
    "parse_timestamp",
]
