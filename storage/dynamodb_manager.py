"""DynamoDB manager for whole-document pipeline state."""
import gzip
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from pipeline.errors import PersistenceError
from processor.models import EventsSnapshot, ScrapeRun, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)


class DynamoDBManager:
    """
    Key-value document store backed by a DynamoDB table.

    Each document is a single item keyed by ``cache_key``; the JSON payload is
    gzip-compressed into a binary attribute so the full events snapshot fits
    within the item size limit. Documents are always read and written whole.
    """

    EVENTS_KEY = 'nyc_events'
    STATUS_KEY = 'scraping_status'
    LAST_COMPLETED_KEY = 'scraping:lastCompleted'

    def __init__(self, table_name: str, dynamodb_resource: Any = None):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
            dynamodb_resource: Optional boto3 DynamoDB resource
        """
        self.table_name = table_name
        self.dynamodb = dynamodb_resource or boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBManager for table: {table_name}")

    def get_document(self, key: str) -> Optional[Dict[str, Any]]:
        """
        Read a document.

        Args:
            key: Document key

        Returns:
            Decoded document, or None if the key does not exist

        Raises:
            PersistenceError: If the read fails or the payload is corrupt
        """
        try:
            response = self.table.get_item(Key={'cache_key': key})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error reading {key} from DynamoDB: {e}")
            raise PersistenceError(f"Failed to read {key}: {e}") from e

        item = response.get('Item')
        if not item:
            return None

        try:
            payload = item['payload']
            raw = payload.value if hasattr(payload, 'value') else payload
            return json.loads(gzip.decompress(bytes(raw)).decode('utf-8'))
        except (KeyError, OSError, ValueError) as e:
            logger.error(f"Corrupt payload for {key}: {e}")
            raise PersistenceError(f"Corrupt payload for {key}: {e}") from e

    def _item(self, key: str, document: Dict[str, Any], **attributes: Any) -> Dict[str, Any]:
        item = {
            'cache_key': key,
            'payload': gzip.compress(json.dumps(document).encode('utf-8')),
            'updated_at': format_timestamp(datetime.now(timezone.utc)),
        }
        item.update(attributes)
        return item

    def put_document(self, key: str, document: Dict[str, Any], **attributes: Any) -> None:
        """
        Replace a document.

        Args:
            key: Document key
            document: JSON-serializable document
            **attributes: Extra top-level item attributes (usable in conditions)

        Raises:
            PersistenceError: If the write fails
        """
        try:
            self.table.put_item(Item=self._item(key, document, **attributes))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error writing {key} to DynamoDB: {e}")
            raise PersistenceError(f"Failed to write {key}: {e}") from e

    def load_events(self) -> EventsSnapshot:
        document = self.get_document(self.EVENTS_KEY)
        if document is None:
            return EventsSnapshot()
        return EventsSnapshot.from_dict(document)

    def save_events(self, snapshot: EventsSnapshot) -> None:
        self.put_document(self.EVENTS_KEY, snapshot.to_dict())
        logger.info(f"Saved events snapshot with {snapshot.count} events")

    def load_status(self) -> Optional[ScrapeRun]:
        document = self.get_document(self.STATUS_KEY)
        if document is None:
            return None
        return ScrapeRun.from_dict(document)

    @staticmethod
    def _status_attributes(run: ScrapeRun) -> Dict[str, Any]:
        heartbeat = run.last_heartbeat
        return {
            'run_id': run.run_id,
            'invocation_id': run.invocation_id,
            'heartbeat_epoch': int(heartbeat.timestamp()) if heartbeat else 0,
        }

    def save_status(self, run: ScrapeRun) -> None:
        self.put_document(self.STATUS_KEY, run.to_dict(), **self._status_attributes(run))

    def claim_status(self, run: ScrapeRun, lease_expired_before: datetime) -> bool:
        """
        Write the status only if this invocation may execute the run.

        The write succeeds when the stored status belongs to the same run and
        no other invocation holds it, or the holder's heartbeat is older than
        lease_expired_before.

        Args:
            run: Run carrying the claiming invocation_id
            lease_expired_before: Heartbeats older than this no longer hold a claim

        Returns:
            True if the claim was written, False if another invocation holds the run

        Raises:
            PersistenceError: If the write fails for any other reason
        """
        unclaimed = Attr('invocation_id').not_exists() | Attr('invocation_id').eq('')
        condition = Attr('run_id').eq(run.run_id) & (
            unclaimed
            | Attr('invocation_id').eq(run.invocation_id)
            | Attr('heartbeat_epoch').lt(int(lease_expired_before.timestamp()))
        )

        try:
            self.table.put_item(
                Item=self._item(self.STATUS_KEY, run.to_dict(), **self._status_attributes(run)),
                ConditionExpression=condition,
            )
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'ConditionalCheckFailedException':
                logger.info(f"Run {run.run_id} is already claimed by another invocation")
                return False
            logger.error(f"Error claiming run {run.run_id}: {e}")
            raise PersistenceError(f"Failed to claim {run.run_id}: {e}") from e
        except BotoCoreError as e:
            logger.error(f"Error claiming run {run.run_id}: {e}")
            raise PersistenceError(f"Failed to claim {run.run_id}: {e}") from e
        return True

    def load_last_completed(self) -> Optional[datetime]:
        document = self.get_document(self.LAST_COMPLETED_KEY)
        if document is None:
            return None
        return parse_timestamp(document.get('completedAt'))

    def save_last_completed(self, completed_at: datetime) -> None:
        self.put_document(
            self.LAST_COMPLETED_KEY,
            {'completedAt': format_timestamp(completed_at)},
        )
