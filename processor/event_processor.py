"""Event processor for deriving calendar identity, text and dates."""
import logging
import re
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from dateutil import parser as dateparser

from processor.config import DEFAULT_TIMEZONE
from processor.models import EnrichedEvent

logger = logging.getLogger(__name__)

KEY_DELIMITER = '|'

# Labels of the description lines, in the order they are written.
TYPE_LABEL = 'Type'
URL_LABEL = 'Event URL'
HOST_LABEL = 'Host Club'
REGION_LABEL = 'Region'
KEY_LABEL = 'Event Key'

LEAGUE_CATEGORY = 'League'
HOST_NAME_NOISE = ('Archery Club', 'Archers')

WHITESPACE_PATTERN = re.compile(r'\s+')
YEAR_PATTERN = re.compile(r'\b\d{4}\b')
DAY_PATTERN = re.compile(r'\d')


class EventDateError(ValueError):
    """Raised when an event date string cannot be parsed."""


def normalize_key_part(value: Optional[str]) -> str:
    """Lowercase a value and collapse its whitespace runs to single spaces."""
    return WHITESPACE_PATTERN.sub(' ', (value or '').lower()).strip()


def parse_description_metadata(description: Optional[str]) -> Dict[str, str]:
    """
    Parse ``Label: value`` lines from an entry description.

    Lines are split on their first colon. Lines without a colon or with an
    empty label are ignored, so lines may be missing or reordered.

    Args:
        description: Entry description text

    Returns:
        Dictionary mapping label to value
    """
    metadata = {}

    for line in (description or '').split('\n'):
        label, separator, value = line.partition(':')
        if not separator:
            continue

        label = label.strip()
        if label:
            metadata[label] = value.strip()

    return metadata


class EventProcessor:
    """Builds keys, descriptions, titles and day spans for events."""

    DATE_FORMATS = [
        '%Y-%m-%d',      # ISO 8601
        '%d %b %Y',      # 16 Nov 2025
        '%d %B %Y',      # 16 November 2025
        '%a %d %b %Y',   # Sun 16 Nov 2025
        '%A %d %B %Y',   # Sunday 16 November 2025
        '%A, %d %B %Y',  # Sunday, 16 November 2025
        '%d/%m/%Y',      # European format
        '%B %d, %Y',     # November 16, 2025
        '%b %d, %Y',     # Nov 16, 2025
    ]
    # Parsed with the year appended
    YEARLESS_FORMATS = [
        '%d %b',
        '%d %B',
        '%a %d %b',
        '%A %d %B',
    ]
    YEARLESS_LOOKBACK_DAYS = 180

    def __init__(self, timezone: Optional[tzinfo] = None, today: Optional[date] = None):
        """
        Initialize the processor.

        Args:
            timezone: Zone used for calendar days (default: Etc/GMT)
            today: Reference date for year-less source dates (default: now)
        """
        self.timezone = timezone or ZoneInfo(DEFAULT_TIMEZONE)
        self._today = today

    @property
    def today(self) -> date:
        return self._today or datetime.now(self.timezone).date()

    def parse_event_date(self, date_str: str, not_before: Optional[date] = None) -> date:
        """
        Parse a free-form source date.

        Args:
            date_str: Date as shown on the site (e.g. "16 Nov 2025", "16 Nov")
            not_before: Anchor for a year-less date, such as the start of the
                same event (default: place it relative to today)

        Returns:
            Parsed date; year-less dates are placed in the current year, or
            the next one if that would be long past. With ``not_before`` they
            are placed on the first matching day on or after it

        Raises:
            EventDateError: If the string cannot be parsed
        """
        text = WHITESPACE_PATTERN.sub(' ', (date_str or '').strip())
        if not text:
            raise EventDateError('Empty event date')

        for fmt in self.DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue

        for fmt in self.YEARLESS_FORMATS:
            try:
                datetime.strptime(f"{text} 2000", f"{fmt} %Y")
            except ValueError:
                continue
            return self._infer_year(lambda year: datetime.strptime(
                f"{text} {year}", f"{fmt} %Y"
            ).date(), not_before)

        if not DAY_PATTERN.search(text):
            raise EventDateError(f"Unrecognised event date '{date_str}'")

        try:
            if YEAR_PATTERN.search(text):
                return dateparser.parse(text, dayfirst=True, fuzzy=True).date()
            return self._infer_year(lambda year: dateparser.parse(
                text, dayfirst=True, fuzzy=True, default=datetime(year, 1, 1)
            ).date(), not_before)
        except (ValueError, OverflowError) as e:
            raise EventDateError(f"Unrecognised event date '{date_str}'") from e

    def _infer_year(self, build, not_before: Optional[date] = None) -> date:
        if not_before is None:
            anchor = self.today
            earliest = anchor - timedelta(days=self.YEARLESS_LOOKBACK_DAYS)
            latest = date.max
        else:
            anchor = earliest = not_before
            latest = not_before + timedelta(days=self.YEARLESS_LOOKBACK_DAYS)

        for year in (anchor.year, anchor.year + 1):
            try:
                candidate = build(year)
            except (ValueError, OverflowError):
                # e.g. 29 Feb outside a leap year
                continue
            if earliest <= candidate <= latest:
                return candidate

        raise EventDateError('Could not place year-less event date')

    def resolve_event_span(self, event: EnrichedEvent) -> Tuple[datetime, datetime]:
        """
        Resolve an event's dates to a full-day span.

        The end is midnight after the inclusive end date. A year-less end
        date takes the first matching day on or after the start. An end date
        that is missing, unparseable or before the start gives a one-day span.

        Args:
            event: Enriched event

        Returns:
            Tuple of (start, exclusive end) as aware datetimes

        Raises:
            EventDateError: If the start date cannot be parsed
        """
        start_day = self.parse_event_date(event.start_date)

        end_day = start_day
        if event.end_date and event.end_date != event.start_date:
            try:
                end_day = self.parse_event_date(event.end_date, not_before=start_day)
            except EventDateError:
                logger.warning(
                    f"Invalid end date for event '{event.name}': "
                    f"{event.end_date}; using start date"
                )
            if end_day < start_day:
                logger.warning(
                    f"End date {end_day} before start date {start_day} "
                    f"for event '{event.name}'; using start date"
                )
                end_day = start_day

        start = datetime.combine(start_day, time.min, tzinfo=self.timezone)
        end = datetime.combine(
            end_day + timedelta(days=1), time.min, tzinfo=self.timezone
        )
        return start, end

    def build_event_key(self, event: EnrichedEvent, start: datetime) -> str:
        """
        Build the stable identity key for an event.

        Args:
            event: Enriched event
            start: Resolved start of the event

        Returns:
            Key of the form ``yyyy-mm-dd|host|region|category``
        """
        return KEY_DELIMITER.join([
            start.astimezone(self.timezone).strftime('%Y-%m-%d'),
            normalize_key_part(event.host_club),
            normalize_key_part(event.region),
            normalize_key_part(event.category),
        ])

    def build_description(self, event: EnrichedEvent, event_key: str) -> str:
        """Render the labelled description stored on the calendar entry."""
        return '\n'.join([
            f"{TYPE_LABEL}: {event.category}",
            f"{URL_LABEL}: {event.url}",
            f"{HOST_LABEL}: {event.host_club}",
            f"{REGION_LABEL}: {event.region}",
            f"{KEY_LABEL}: {event_key}",
        ])

    def build_title(self, event: EnrichedEvent) -> str:
        """
        Build the calendar title, prefixed with a short host club name.

        League events and events without a host use the event name as is.
        Otherwise "Archery Club" and "Archers" are dropped from the host and
        up to its first two remaining words prefix the name.

        Args:
            event: Enriched event

        Returns:
            Entry title
        """
        if not event.host_club or event.category == LEAGUE_CATEGORY:
            return event.name

        host = event.host_club
        for noise in HOST_NAME_NOISE:
            host = re.sub(re.escape(noise), '', host, count=1, flags=re.IGNORECASE)

        words = host.split()
        if not words:
            return event.name

        return f"{' '.join(words[:2])}: {event.name}"
