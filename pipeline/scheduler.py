"""Pipeline events on EventBridge and the scheduled-run gate."""
import json
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

EVENT_SOURCE = 'nyc-events.pipeline'

RUN_REQUESTED = 'ScrapeRunRequested'
RUN_COMPLETED = 'ScrapeRunCompleted'
SWEEP_REQUESTED = 'SweepRequested'

SWEEP_GEOCODE = 'geocode'
SWEEP_ENRICH = 'enrich'
SWEEP_HYDRATE = 'hydrate'


def should_trigger(last_completed: Optional[datetime], now: datetime, interval_hours: int) -> bool:
    """
    Decide whether a scheduled trigger should start a run.

    Args:
        last_completed: Completion time of the last run, if any
        now: Current time (timezone-aware)
        interval_hours: Minimum hours between runs

    Returns:
        True if no run has completed or the interval has elapsed
    """
    if last_completed is None:
        return True
    return now - last_completed >= timedelta(hours=interval_hours)


class PipelineEventPublisher:
    """Publishes pipeline stage events to an EventBridge bus."""

    def __init__(self, event_bus_name: str = 'default', events_client: Any = None):
        self.event_bus_name = event_bus_name
        self.client = events_client or boto3.client('events')

    def publish(self, detail_type: str, detail: Dict[str, Any]) -> bool:
        """
        Put a single event on the bus.

        Args:
            detail_type: EventBridge detail-type
            detail: JSON-serializable event detail

        Returns:
            True if EventBridge accepted the event
        """
        try:
            response = self.client.put_events(
                Entries=[
                    {
                        'Source': EVENT_SOURCE,
                        'DetailType': detail_type,
                        'Detail': json.dumps(detail),
                        'EventBusName': self.event_bus_name,
                    }
                ]
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to publish {detail_type}: {e}")
            return False

        if response.get('FailedEntryCount', 0):
            logger.error(f"EventBridge rejected {detail_type}: {response.get('Entries')}")
            return False

        logger.info(f"Published {detail_type}", extra={'detail': detail})
        return True

    def run_requested(self, run_id: str, start_index: int = 0) -> bool:
        return self.publish(RUN_REQUESTED, {'runId': run_id, 'startIndex': start_index})

    def run_completed(self, run_id: str, completed_at: datetime, total_events: int) -> bool:
        return self.publish(
            RUN_COMPLETED,
            {
                'runId': run_id,
                'completedAt': completed_at.isoformat(),
                'totalEvents': total_events,
            },
        )

    def sweep_requested(self, sweep: str) -> bool:
        return self.publish(SWEEP_REQUESTED, {'sweep': sweep})
