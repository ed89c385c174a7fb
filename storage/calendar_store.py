"""Calendar store contract used by the reconciler."""
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Protocol


@dataclass
class CalendarEntry:
    """Full-day calendar entry owned by the store."""
    entry_id: str
    title: str
    location: Optional[str]
    description: Optional[str]
    start: datetime
    end: datetime


class CalendarStore(Protocol):
    """Day-scoped listing, creation and in-place update of entries."""

    def list_entries_for_day(self, day: date) -> List[CalendarEntry]:
        """Return entries whose span overlaps the given day."""
        ...

    def create_full_day_entry(
        self,
        title: str,
        start: datetime,
        end: datetime,
        location: str,
        description: str
    ) -> CalendarEntry:
        """Create a full-day entry from start up to the exclusive end."""
        ...

    def update_entry(
        self,
        entry: CalendarEntry,
        title: str,
        location: str,
        description: str,
        start: datetime,
        end: datetime
    ) -> CalendarEntry:
        """Overwrite all fields of an existing entry."""
        ...
