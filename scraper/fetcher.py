"""HTTP fetching with bounded retries and exponential backoff."""
import logging
import time
from typing import Iterable, Optional, Tuple

import requests

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = 'Mozilla/5.0 (compatible; ArcheryOSAEventsBot/1.0)'


class FetchError(Exception):
    """Raised when a URL could not be fetched after all retry attempts."""

    def __init__(self, message: str, last_error: Optional[str] = None):
        super().__init__(message)
        self.last_error = last_error


class ListingUnavailableError(FetchError):
    """Raised when none of the listing page candidates could be fetched."""

    def __init__(self, attempts: list[str]):
        super().__init__(
            f"Unable to fetch event listing page. Attempts: {'; '.join(attempts)}"
        )
        self.attempts = attempts


class ResilientFetcher:
    """GET requests retried on transport errors and non-2xx responses."""

    def __init__(
        self,
        timeout: int = 30,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the fetcher.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            max_attempts: Attempts per URL before giving up (default: 3)
            initial_delay: Delay before the first retry in seconds, doubled
                after every further failure (default: 1.0)
            user_agent: User-Agent header sent with every request
            session: Optional requests session to reuse
        """
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.initial_delay = initial_delay
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': user_agent})

    def fetch(self, url: str) -> requests.Response:
        """
        Fetch a URL, retrying with exponential backoff.

        Args:
            url: Absolute URL to GET

        Returns:
            Response with a 2xx status code

        Raises:
            FetchError: If every attempt failed
        """
        last_error = None

        for attempt in range(self.max_attempts):
            try:
                response = self.session.get(
                    url,
                    timeout=self.timeout,
                    allow_redirects=True
                )
                if 200 <= response.status_code < 300:
                    return response

                last_error = f"HTTP {response.status_code}: {response.text[:200]}"

            except requests.RequestException as e:
                last_error = str(e) or type(e).__name__

            if attempt < self.max_attempts - 1:
                delay = self.initial_delay * (2 ** attempt)
                logger.warning(
                    f"Request to {url} failed (attempt {attempt + 1}/"
                    f"{self.max_attempts}): {last_error}. "
                    f"Retrying in {delay} seconds..."
                )
                time.sleep(delay)

        logger.error(
            f"All {self.max_attempts} attempts to fetch {url} failed. "
            f"Last error: {last_error}"
        )
        raise FetchError(
            f"Failed to fetch {url}. {last_error or 'Unknown error'}",
            last_error=last_error
        )

    def fetch_first(self, urls: Iterable[str]) -> Tuple[str, requests.Response]:
        """
        Fetch the first candidate URL that succeeds.

        Args:
            urls: Candidate URLs in priority order

        Returns:
            Tuple of (url that succeeded, response)

        Raises:
            ListingUnavailableError: If every candidate failed
        """
        attempts = []

        for url in urls:
            try:
                response = self.fetch(url)
            except FetchError as e:
                message = f"{url}: {e}"
                attempts.append(message)
                logger.warning(f"Failed to fetch {message}")
                continue

            return url, response

        raise ListingUnavailableError(attempts)
