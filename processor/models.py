"""Data models for event processing."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

# Host value the detail page parser reports when no "Host Club" row exists.
UNKNOWN_HOST_CLUB = 'Unknown Club'


@dataclass(frozen=True)
class RawEventRecord:
    """Row from the event listing table."""
    url: str
    name: str
    display_date: str
    region: str
    category: str


@dataclass
class EventDetails:
    """Fields scraped from an event's detail page."""
    start_date: Optional[str]
    end_date: Optional[str]
    host_club: str = UNKNOWN_HOST_CLUB


@dataclass
class EnrichedEvent:
    """Listing row merged with its detail page."""
    url: str
    name: str
    start_date: str
    end_date: str
    region: str
    category: str
    host_club: str


class ReconcileOutcome(Enum):
    """What reconciliation did with a single event."""
    CREATED = 'created'
    UPDATED = 'updated'
    UNCHANGED = 'unchanged'


@dataclass
class SyncResult:
    """Result of sync operation."""
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    errors: list[str] = field(default_factory=list)

    def record(self, outcome: ReconcileOutcome) -> None:
        if outcome is ReconcileOutcome.CREATED:
            self.created += 1
        elif outcome is ReconcileOutcome.UPDATED:
            self.updated += 1
        else:
            self.unchanged += 1
