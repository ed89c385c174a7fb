"""AWS Lambda handler for ArcheryOSA Events Calendar Sync."""
import json
import logging
import time
from typing import Dict, Any, Optional

from processor.config import SyncConfig
from processor.event_processor import EventProcessor
from scraper.archery_calendar import ArcheryCalendarScraper
from scraper.fetcher import ResilientFetcher
from storage.calendar_sync import CalendarReconciler
from storage.dynamodb_calendar import DynamoDBCalendarStore


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def lambda_handler(
    event: Dict[str, Any],
    context: Any,
    config: Optional[SyncConfig] = None
) -> Dict[str, Any]:
    """
    Main Lambda handler function for the events calendar sync.

    Runs must not overlap; the function is expected to be deployed with a
    reserved concurrency of 1.

    Args:
        event: EventBridge event payload
        context: Lambda context object
        config: Sync settings (default: read from environment variables)

    Returns:
        Response dict with statusCode and summary statistics
    """
    config = config or SyncConfig.from_env()

    setup_logging(config.log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    logger.info(
        f"Lambda execution started",
        extra={
            'table_name': config.table_name,
            'listing_urls': config.listing_urls,
            'timezone': config.timezone
        }
    )

    try:
        fetcher = ResilientFetcher(
            timeout=config.timeout_seconds,
            max_attempts=config.max_attempts,
            initial_delay=config.initial_delay_seconds
        )
        scraper = ArcheryCalendarScraper(
            fetcher,
            base_urls=config.base_urls,
            listing_paths=config.listing_paths
        )
        processor = EventProcessor(timezone=config.tzinfo())
        store = DynamoDBCalendarStore(table_name=config.table_name)
        reconciler = CalendarReconciler(store, processor)

        # A listing that cannot be fetched aborts the run
        try:
            logger.info("Fetching events from listing")
            events = scraper.fetch_events()
            logger.info(f"Fetched {len(events)} events from listing")
        except Exception as e:
            logger.error(
                f"Failed to fetch event listing after retries: {str(e)}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            duration = time.time() - start_time
            return {
                'statusCode': 500,
                'body': json.dumps({
                    'message': 'Failed to fetch event listing',
                    'error': str(e),
                    'error_type': type(e).__name__,
                    'duration_seconds': round(duration, 2)
                })
            }

        logger.info("Reconciling events with calendar")
        sync_result = reconciler.sync_events(events)

        duration = time.time() - start_time

        logger.info(
            f"Lambda execution completed successfully",
            extra={
                'duration_seconds': round(duration, 2),
                'events_created': sync_result.created,
                'events_updated': sync_result.updated,
                'events_unchanged': sync_result.unchanged,
                'errors': sync_result.errors
            }
        )

        return {
            'statusCode': 200,
            'body': json.dumps({
                'message': 'Sync completed successfully',
                'statistics': {
                    'events_listed': len(events),
                    'events_created': sync_result.created,
                    'events_updated': sync_result.updated,
                    'events_unchanged': sync_result.unchanged,
                    'duration_seconds': round(duration, 2)
                },
                'errors': sync_result.errors
            })
        }

    except Exception as e:
        duration = time.time() - start_time

        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )

        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Sync failed',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }
