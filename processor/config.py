"""Runtime configuration for the calendar sync."""
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = 'Etc/GMT'
DEFAULT_BASE_URLS = ('https://archeryosa.com', 'https://www.archeryosa.com')
DEFAULT_LISTING_PATHS = ('/events',)


@dataclass(frozen=True)
class SyncConfig:
    """Settings passed into the sync pipeline's entry point."""
    table_name: str = 'archery-events-calendar'
    base_urls: Tuple[str, ...] = DEFAULT_BASE_URLS
    listing_paths: Tuple[str, ...] = DEFAULT_LISTING_PATHS
    timezone: str = DEFAULT_TIMEZONE
    timeout_seconds: int = 30
    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'SyncConfig':
        """
        Build a config from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            SyncConfig with defaults for anything unset
        """
        if environ is None:
            environ = os.environ

        return cls(
            table_name=environ.get('TABLE_NAME', cls.table_name),
            base_urls=_split_list(environ.get('BASE_URLS'), DEFAULT_BASE_URLS),
            listing_paths=_split_list(
                environ.get('LISTING_PATHS'), DEFAULT_LISTING_PATHS
            ),
            timezone=environ.get('TIMEZONE', DEFAULT_TIMEZONE),
            timeout_seconds=int(environ.get('TIMEOUT_SECONDS', '30')),
            max_attempts=int(environ.get('MAX_ATTEMPTS', '3')),
            initial_delay_seconds=float(
                environ.get('INITIAL_DELAY_SECONDS', '1.0')
            ),
            log_level=environ.get('LOG_LEVEL', 'INFO'),
        )

    @property
    def listing_urls(self) -> list[str]:
        """Candidate listing URLs in the order they are tried."""
        return [
            base.rstrip('/') + path
            for base in self.base_urls
            for path in self.listing_paths
        ]

    def tzinfo(self) -> ZoneInfo:
        """Configured timezone, falling back to Etc/GMT if unknown."""
        try:
            return ZoneInfo(self.timezone or DEFAULT_TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(
                f"Unknown timezone '{self.timezone}', using {DEFAULT_TIMEZONE}"
            )
            return ZoneInfo(DEFAULT_TIMEZONE)


def _split_list(value: Optional[str], default: Tuple[str, ...]) -> Tuple[str, ...]:
    if not value:
        return default
    items = tuple(item.strip() for item in value.split(',') if item.strip())
    return items or default
