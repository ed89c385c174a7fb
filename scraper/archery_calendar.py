"""Scraper for the ArcheryOSA upcoming events listing."""
import logging
import re
from typing import Iterator, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag

from processor.config import DEFAULT_BASE_URLS, DEFAULT_LISTING_PATHS
from processor.models import (
    UNKNOWN_HOST_CLUB,
    EnrichedEvent,
    EventDetails,
    RawEventRecord,
)
from scraper.fetcher import FetchError, ResilientFetcher

logger = logging.getLogger(__name__)

ABSOLUTE_URL_PATTERN = re.compile(r'^https?://', re.IGNORECASE)

DETAIL_LABELS = {
    'start_date': 'Start Date',
    'end_date': 'End Date',
    'host_club': 'Host Club',
}


def resolve_event_url(href: str, base_url: str) -> str:
    """
    Resolve a listing link against the listing's base URL.

    Args:
        href: Link as found in the listing (absolute or site-relative)
        base_url: Base URL the listing was fetched from

    Returns:
        Absolute event URL
    """
    if ABSOLUTE_URL_PATTERN.match(href):
        return href

    path = href if href.startswith('/') else f"/{href}"
    return f"{base_url.rstrip('/')}{path}"


def parse_listing(html_content: str, base_url: str) -> Iterator[RawEventRecord]:
    """
    Parse event rows from the listing table.

    A row is ``<tr><th scope="row"><a href="...">Name</a></th>`` followed by
    three plain ``<td>`` cells (date, region, type). Rows of any other shape
    are skipped.

    Args:
        html_content: Listing page HTML
        base_url: Base URL used to resolve relative event links

    Yields:
        RawEventRecord for each well-formed row, in document order
    """
    soup = BeautifulSoup(html_content, 'html.parser')

    for row in soup.find_all('tr'):
        record = _parse_listing_row(row, base_url)
        if record is None:
            logger.debug("Skipping listing row that does not match the event layout")
            continue
        yield record


def _parse_listing_row(row: Tag, base_url: str) -> Optional[RawEventRecord]:
    cells = row.find_all(['th', 'td'], recursive=False)
    if len(cells) != 4:
        return None

    header, date_cell, region_cell, type_cell = cells
    if header.name != 'th' or header.get('scope') != 'row':
        return None
    if any(cell.name != 'td' for cell in (date_cell, region_cell, type_cell)):
        return None

    link = _only_child_tag(header)
    if link is None or link.name != 'a' or not link.get('href'):
        return None

    name = _plain_text(link)
    columns = [_plain_text(cell) for cell in (date_cell, region_cell, type_cell)]
    if name is None or not name.strip() or any(text is None or not text.strip() for text in columns):
        return None

    display_date, region, category = (text.strip() for text in columns)
    return RawEventRecord(
        url=resolve_event_url(link['href'].strip(), base_url),
        name=name.strip(),
        display_date=display_date,
        region=region,
        category=category,
    )


def _plain_text(element: Tag) -> Optional[str]:
    """Return the text of an element that holds no nested tags."""
    if any(isinstance(child, Tag) for child in element.children):
        return None
    return element.get_text()


def _only_child_tag(element: Tag) -> Optional[Tag]:
    """Return the single child tag of an element that holds nothing else."""
    children = [
        child for child in element.children
        if isinstance(child, Tag) or child.strip()
    ]
    if len(children) == 1 and isinstance(children[0], Tag):
        return children[0]
    return None


def parse_event_details(html_content: str) -> EventDetails:
    """
    Parse start date, end date and host club from an event page.

    Each value is the plain text of the ``<td>`` directly following a
    ``<th>`` with the matching label. Missing end dates default to the start
    date and a missing host club to UNKNOWN_HOST_CLUB.

    Args:
        html_content: Event detail page HTML

    Returns:
        EventDetails
    """
    soup = BeautifulSoup(html_content, 'html.parser')
    values = {}

    for field_name, label in DETAIL_LABELS.items():
        values[field_name] = _labelled_value(soup, label)

    start_date = values['start_date']
    return EventDetails(
        start_date=start_date,
        end_date=values['end_date'] or start_date,
        host_club=values['host_club'] or UNKNOWN_HOST_CLUB,
    )


def _labelled_value(soup: BeautifulSoup, label: str) -> Optional[str]:
    for header in soup.find_all('th'):
        if header.get_text() != label:
            continue

        cell = header.find_next_sibling()
        if cell is None or cell.name != 'td' or cell.attrs:
            continue

        value = (_plain_text(cell) or '').strip()
        if value:
            return value

    return None


def merge_event(raw: RawEventRecord, details: Optional[EventDetails]) -> EnrichedEvent:
    """
    Merge a listing row with its detail page, falling back to listing data.

    Args:
        raw: Listing row
        details: Detail page fields, or None if the page was unavailable

    Returns:
        EnrichedEvent whose start date is never empty
    """
    start_date = (details and details.start_date) or raw.display_date
    end_date = (details and details.end_date) or start_date
    host_club = (details and details.host_club) or ''
    if host_club == UNKNOWN_HOST_CLUB:
        host_club = ''

    return EnrichedEvent(
        url=raw.url,
        name=raw.name,
        start_date=start_date,
        end_date=end_date,
        region=raw.region,
        category=raw.category,
        host_club=host_club,
    )


class ArcheryCalendarScraper:
    """Scraper for the ArcheryOSA events listing and event pages."""

    def __init__(
        self,
        fetcher: ResilientFetcher,
        base_urls: Sequence[str] = DEFAULT_BASE_URLS,
        listing_paths: Sequence[str] = DEFAULT_LISTING_PATHS
    ):
        """
        Initialize the scraper.

        Args:
            fetcher: Fetcher used for listing and detail pages
            base_urls: Site base URLs, tried in order
            listing_paths: Listing paths tried under each base URL
        """
        self.fetcher = fetcher
        self.base_urls = list(base_urls)
        self.listing_paths = list(listing_paths)

    def fetch_events(self) -> List[EnrichedEvent]:
        """
        Fetch the listing and enrich every event from its detail page.

        Returns:
            List of EnrichedEvent objects in listing order

        Raises:
            ListingUnavailableError: If the listing could not be fetched
        """
        base_url, html_content = self.fetch_listing_page()

        events = []
        for raw in parse_listing(html_content, base_url):
            details = None
            try:
                details = self.enrich_event(raw.url)
            except FetchError as e:
                logger.warning(f"Failed to fetch event details for {raw.url}: {e}")

            events.append(merge_event(raw, details))

        logger.info(f"Successfully fetched {len(events)} events")
        return events

    def fetch_listing_page(self) -> Tuple[str, str]:
        """
        Fetch the listing page from the first base URL and path that work.

        Returns:
            Tuple of (base URL, listing HTML)

        Raises:
            ListingUnavailableError: If every candidate failed
        """
        candidates = {
            f"{base.rstrip('/')}{path}": base
            for base in self.base_urls
            for path in self.listing_paths
        }

        url, response = self.fetcher.fetch_first(candidates)
        logger.info(f"Fetched event listing from {url}")
        return candidates[url], response.text

    def enrich_event(self, url: str) -> EventDetails:
        """
        Fetch and parse an event's detail page.

        Args:
            url: Absolute event URL

        Returns:
            EventDetails

        Raises:
            FetchError: If the detail page could not be fetched
        """
        response = self.fetcher.fetch(url)
        return parse_event_details(response.text)
