"""Campaign statistics read path.

Two strategies sit behind one ``StatsReader`` protocol:

- ``CounterStatsReader`` returns the counters stored on the campaign record
  (cheap; exact as long as every insert-then-increment pair completed).
- ``EventLogStatsReader`` recounts the event log on demand (always exact).

Callers pick neither; ``build_stats_reader`` selects one from settings.
"""

from __future__ import annotations

from typing import Literal, Protocol

from attribution.domain.models import Campaign, CampaignStats
from attribution.domain.types import EventType
from attribution.storage.base import CampaignRepository


class StatsReader(Protocol):
    """Something that can produce a campaign's funnel counters."""

    def stats_for(self, campaign: Campaign) -> CampaignStats: ...


class CounterStatsReader:
    """Read the derived counters maintained by ``increment_stat``."""

    def stats_for(self, campaign: Campaign) -> CampaignStats:
        return campaign.stats


class EventLogStatsReader:
    """Recount a campaign's events from the log."""

    def __init__(self, repo: CampaignRepository) -> None:
        self._repo = repo

    def stats_for(self, campaign: Campaign) -> CampaignStats:
        counts = self._repo.count_events(campaign.id)
        return CampaignStats(
            cookie_sets=counts[EventType.COOKIE_SET],
            registrations=counts[EventType.REGISTRATION],
            ftds=counts[EventType.FTD],
        )


def build_stats_reader(
    strategy: Literal["counter", "event_log"], repo: CampaignRepository
) -> StatsReader:
    """Return the reader for *strategy*.

    Raises:
        ValueError: If *strategy* is not recognised.
    """
    if strategy == "counter":
        return CounterStatsReader()
    if strategy == "event_log":
        return EventLogStatsReader(repo)
    raise ValueError(f"Unknown stats strategy: {strategy}")
