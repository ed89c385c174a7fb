"""DynamoDB-backed calendar store."""
import logging
import uuid
from datetime import date, datetime, timedelta
from typing import List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from storage.calendar_store import CalendarEntry

logger = logging.getLogger(__name__)


class DynamoDBCalendarStore:
    """
    Calendar entries kept in a DynamoDB table.

    The table is keyed on a generated ``entry_id`` only. Entries are found
    by scanning for spans that overlap a day, so the event identity lives in
    the description text like it would in a hosted calendar.
    """

    def __init__(self, table_name: str, dynamodb=None):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
            dynamodb: Optional boto3 DynamoDB resource
        """
        self.table_name = table_name
        self.dynamodb = dynamodb or boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBCalendarStore for table: {table_name}")

    def list_entries_for_day(self, day: date) -> List[CalendarEntry]:
        """
        Retrieve entries overlapping a day using a filtered Scan.

        Args:
            day: Calendar day

        Returns:
            List of CalendarEntry objects
        """
        day_str = day.isoformat()
        filter_expression = (
            Attr('start_day').lte(day_str) & Attr('end_day').gt(day_str)
        )

        try:
            response = self.table.scan(FilterExpression=filter_expression)
            items = response.get('Items', [])

            # Handle pagination
            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    FilterExpression=filter_expression,
                    ExclusiveStartKey=response['LastEvaluatedKey']
                )
                items.extend(response.get('Items', []))

        except ClientError as e:
            logger.error(f"Error scanning DynamoDB table for {day_str}: {e}")
            raise

        entries = []
        for item in items:
            entry = self._item_to_entry(item)
            if entry:
                entries.append(entry)

        logger.debug(f"Found {len(entries)} entries on {day_str}")
        return entries

    def create_full_day_entry(
        self,
        title: str,
        start: datetime,
        end: datetime,
        location: str,
        description: str
    ) -> CalendarEntry:
        """
        Write a new full-day entry.

        Args:
            title: Entry title
            start: Start of the first day
            end: Midnight after the last day
            location: Entry location
            description: Entry description

        Returns:
            The created CalendarEntry
        """
        entry = CalendarEntry(
            entry_id=uuid.uuid4().hex,
            title=title,
            location=location,
            description=description,
            start=start,
            end=end
        )

        try:
            self.table.put_item(Item=self._entry_to_item(entry))
        except ClientError as e:
            logger.error(f"Error creating entry '{title}': {e}")
            raise

        return entry

    def update_entry(
        self,
        entry: CalendarEntry,
        title: str,
        location: str,
        description: str,
        start: datetime,
        end: datetime
    ) -> CalendarEntry:
        """
        Overwrite every field of an existing entry.

        Args:
            entry: Entry returned by this store
            title: New title
            location: New location
            description: New description
            start: New start
            end: New exclusive end

        Returns:
            The updated CalendarEntry
        """
        entry.title = title
        entry.location = location
        entry.description = description
        entry.start = start
        entry.end = end

        try:
            self.table.put_item(Item=self._entry_to_item(entry))
        except ClientError as e:
            logger.error(f"Error updating entry {entry.entry_id}: {e}")
            raise

        return entry

    def _item_to_entry(self, item: dict) -> Optional[CalendarEntry]:
        """
        Convert DynamoDB item to CalendarEntry object.

        Args:
            item: DynamoDB item dictionary

        Returns:
            CalendarEntry object or None if conversion fails
        """
        try:
            return CalendarEntry(
                entry_id=item['entry_id'],
                title=item['title'],
                location=item.get('location'),
                description=item.get('description'),
                start=datetime.fromisoformat(item['start']),
                end=datetime.fromisoformat(item['end'])
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Failed to convert item to CalendarEntry: {e}")
            return None

    def _entry_to_item(self, entry: CalendarEntry) -> dict:
        """
        Convert CalendarEntry object to DynamoDB item.

        ``end_day`` is the exclusive end, so an entry from 1 to 3 March
        covers 1 and 2 March.

        Args:
            entry: CalendarEntry object

        Returns:
            DynamoDB item dictionary
        """
        end_day = entry.end.date()
        if entry.end.time() != datetime.min.time():
            end_day += timedelta(days=1)

        return {
            'entry_id': entry.entry_id,
            'title': entry.title,
            'location': entry.location or '',
            'description': entry.description or '',
            'start': entry.start.isoformat(),
            'end': entry.end.isoformat(),
            'start_day': entry.start.date().isoformat(),
            'end_day': end_day.isoformat(),
        }
