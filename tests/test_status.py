"""Unit tests for the status read model."""
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from pipeline.errors import PersistenceError
from pipeline.status import StatusTracker
from processor.models import Coordinates, EventRecord, EventsSnapshot, RunState, ScrapeRun

NOW = datetime(2025, 11, 1, 16, 0, tzinfo=timezone.utc)


def make_store(run=None, snapshot=None, last_completed=None):
    store = Mock()
    store.load_status.return_value = run
    store.load_events.return_value = snapshot or EventsSnapshot()
    store.load_last_completed.return_value = last_completed
    return store


class TestStatusTracker:
    """Test cases for StatusTracker class."""

    def test_idle_default(self):
        """Test an absent status document reads as idle."""
        status = StatusTracker(make_store()).snapshot(NOW)

        assert status['success'] is True
        assert status['scraping']['state'] == 'idle'
        assert status['scraping']['isRunning'] is False
        assert status['stalled'] is False
        assert status['totalEvents'] == 0
        assert status['lastCompleted'] is None

    def test_running_with_fresh_heartbeat(self):
        """Test a live run is reported without the stalled flag."""
        run = ScrapeRun(
            run_id='abc', state=RunState.RUNNING, current_source_index=3,
            total_sources=60, last_heartbeat=NOW - timedelta(minutes=2),
        )

        status = StatusTracker(make_store(run=run)).snapshot(NOW)

        assert status['scraping']['sourcesCompleted'] == 3
        assert status['scraping']['totalSources'] == 60
        assert status['stalled'] is False

    def test_stalled_run(self):
        """Test a running status with an old heartbeat is flagged stalled."""
        run = ScrapeRun(run_id='abc', state=RunState.RUNNING, last_heartbeat=NOW - timedelta(minutes=15))

        status = StatusTracker(make_store(run=run), stale_run_minutes=10).snapshot(NOW)

        assert status['stalled'] is True

    def test_geocoding_progress_and_timestamps(self):
        """Test geocoding counts and snapshot timestamps."""
        snapshot = EventsSnapshot(
            events=[
                EventRecord(title='A', coordinates=Coordinates(lat=40.7, lng=-74.0)),
                EventRecord(title='B'),
                EventRecord(title='C'),
            ],
            last_fetched=NOW - timedelta(hours=1),
        )

        status = StatusTracker(make_store(snapshot=snapshot, last_completed=NOW)).snapshot(NOW)

        assert status['geocoding'] == {'total': 3, 'geocoded': 1, 'remaining': 2}
        assert status['totalEvents'] == 3
        assert status['lastFetched'] == '2025-11-01T15:00:00+00:00'
        assert status['lastCompleted'] == '2025-11-01T16:00:00+00:00'

    def test_read_failure_is_reported(self, caplog):
        """Test unreadable documents degrade to defaults with success False."""
        store = make_store()
        store.load_events.side_effect = PersistenceError('corrupt payload')

        status = StatusTracker(store).snapshot(NOW)

        assert status['success'] is False
        assert status['totalEvents'] == 0
        assert 'Error reading events snapshot' in caplog.text
