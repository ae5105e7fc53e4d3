"""Read model for the status endpoint."""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from pipeline.errors import PersistenceError
from processor.models import EventsSnapshot, RunState, ScrapeRun, format_timestamp, utcnow
from storage.dynamodb_manager import DynamoDBManager

logger = logging.getLogger(__name__)


class StatusTracker:
    """Combines run progress, geocoding progress and snapshot metadata."""

    def __init__(
        self,
        store: DynamoDBManager,
        stale_run_minutes: int = 10,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.stale_run_minutes = stale_run_minutes
        self.clock = clock

    def snapshot(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Build the status document.

        Unreadable documents are reported as defaults with success False
        rather than failing the request.

        Args:
            now: Current time (default: tracker clock)

        Returns:
            Dictionary with scraping, stalled, geocoding, lastFetched,
            lastCompleted and totalEvents keys
        """
        now = now or self.clock()
        success = True

        try:
            run = self.store.load_status()
        except PersistenceError as e:
            logger.error(f"Error reading scraping status: {e}")
            run, success = None, False
        if run is None:
            run = ScrapeRun(run_id='', state=RunState.IDLE)

        try:
            events = self.store.load_events()
        except PersistenceError as e:
            logger.error(f"Error reading events snapshot: {e}")
            events, success = EventsSnapshot(), False

        try:
            last_completed = self.store.load_last_completed()
        except PersistenceError as e:
            logger.error(f"Error reading completion timestamp: {e}")
            last_completed, success = None, False

        geocoded = sum(1 for event in events.events if event.coordinates is not None)

        return {
            'success': success,
            'scraping': run.to_dict(),
            'stalled': run.is_running and run.is_stale(now, self.stale_run_minutes),
            'geocoding': {
                'total': events.count,
                'geocoded': geocoded,
                'remaining': events.count - geocoded,
            },
            'lastFetched': format_timestamp(events.last_fetched),
            'lastCompleted': format_timestamp(last_completed),
            'totalEvents': events.count,
        }
