"""Reconciles scraped events against a calendar store."""
import logging
from datetime import datetime
from typing import Iterable, Optional

from botocore.exceptions import ClientError

from processor.event_processor import (
    HOST_LABEL,
    KEY_LABEL,
    REGION_LABEL,
    TYPE_LABEL,
    URL_LABEL,
    EventDateError,
    EventProcessor,
    normalize_key_part,
    parse_description_metadata,
)
from processor.models import EnrichedEvent, ReconcileOutcome, SyncResult
from storage.calendar_store import CalendarEntry, CalendarStore

logger = logging.getLogger(__name__)

QUORUM = 2


class CalendarReconciler:
    """Creates or updates one calendar entry per scraped event."""

    def __init__(self, store: CalendarStore, processor: EventProcessor):
        """
        Initialize the reconciler.

        Args:
            store: Calendar store holding the entries
            processor: Processor used for keys, titles and dates
        """
        self.store = store
        self.processor = processor

    def sync_events(self, events: Iterable[EnrichedEvent]) -> SyncResult:
        """
        Reconcile every event in order.

        Failures for a single event are recorded and the run continues.
        Entries written before a failure are kept.

        Args:
            events: Enriched events in listing order

        Returns:
            SyncResult with counts of created, updated and unchanged entries
        """
        result = SyncResult()

        for event in events:
            try:
                outcome = self.reconcile(event)
            except (EventDateError, ClientError) as e:
                error_msg = f"Failed to reconcile event '{event.name}' ({event.url}): {e}"
                logger.error(error_msg)
                result.errors.append(error_msg)
                continue

            result.record(outcome)

        logger.info(
            f"Sync complete: {result.created} created, {result.updated} updated, "
            f"{result.unchanged} unchanged, {len(result.errors)} errors"
        )
        return result

    def reconcile(self, event: EnrichedEvent) -> ReconcileOutcome:
        """
        Create or update the calendar entry for one event.

        Args:
            event: Enriched event

        Returns:
            ReconcileOutcome

        Raises:
            EventDateError: If the event's start date cannot be parsed
        """
        start, end = self.processor.resolve_event_span(event)
        event_key = self.processor.build_event_key(event, start)
        description = self.processor.build_description(event, event_key)
        title = self.processor.build_title(event)
        location = event.host_club or ''

        existing = self.find_existing_entry(start, event, event_key)

        if existing is None:
            logger.info(f"Creating new event: {title}")
            self.store.create_full_day_entry(
                title, start, end, location=location, description=description
            )
            return ReconcileOutcome.CREATED

        if not self._entry_differs(existing, title, location, description, start, end):
            logger.debug(f"Event with URL \"{event.url}\" already exists and is up-to-date.")
            return ReconcileOutcome.UNCHANGED

        logger.info(f"Updating event: {title}")
        self.store.update_entry(
            existing,
            title=title,
            location=location,
            description=description,
            start=start,
            end=end
        )
        return ReconcileOutcome.UPDATED

    def find_existing_entry(
        self,
        start: datetime,
        event: EnrichedEvent,
        event_key: str
    ) -> Optional[CalendarEntry]:
        """
        Find the entry on the event's start day that represents it.

        Each entry is checked in turn for a matching event key, then a
        matching event URL, then agreement on at least two of host club,
        region and type. The first entry that qualifies wins.

        Args:
            start: Resolved start of the event
            event: Enriched event
            event_key: Key built for the event

        Returns:
            Matching CalendarEntry or None
        """
        host = normalize_key_part(event.host_club)
        region = normalize_key_part(event.region)
        category = normalize_key_part(event.category)

        day = start.astimezone(self.processor.timezone).date()
        for entry in self.store.list_entries_for_day(day):
            metadata = parse_description_metadata(entry.description)

            if metadata.get(KEY_LABEL) == event_key:
                return entry

            if metadata.get(URL_LABEL) == event.url:
                return entry

            matches = sum([
                bool(host) and normalize_key_part(metadata.get(HOST_LABEL)) == host,
                bool(region) and normalize_key_part(metadata.get(REGION_LABEL)) == region,
                bool(category) and normalize_key_part(metadata.get(TYPE_LABEL)) == category,
            ])
            if matches >= QUORUM:
                return entry

        return None

    def _entry_differs(
        self,
        entry: CalendarEntry,
        title: str,
        location: str,
        description: str,
        start: datetime,
        end: datetime
    ) -> bool:
        return (
            entry.title != title or
            (entry.location or '') != location or
            entry.description != description or
            entry.start != start or
            entry.end != end
        )
