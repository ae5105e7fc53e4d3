"""Unit tests for event and run models."""
from datetime import date, datetime, timedelta, timezone

from processor.models import (
    Coordinates,
    EventRecord,
    EventsSnapshot,
    RunState,
    ScrapeRun,
    parse_timestamp,
)

NOW = datetime(2025, 11, 1, 16, 0, tzinfo=timezone.utc)


class TestEventRecord:
    """Test cases for EventRecord serialization."""

    def test_to_dict_uses_wire_keys_and_omits_empty_fields(self):
        """Test camelCase keys and omission of absent fields."""
        event = EventRecord(
            title='Jazz Night',
            raw_time='November 9, 7:00 PM',
            canonical_date=date(2025, 11, 9),
            coordinates=Coordinates(lat=40.73, lng=-74.0),
            ticket_link='https://tickets.example.com/jazz',
        )

        item = event.to_dict()

        assert item == {
            'title': 'Jazz Night',
            'description': '',
            'enriched': False,
            'time': 'November 9, 7:00 PM',
            'date': '2025-11-09',
            'lat': 40.73,
            'lng': -74.0,
            'ticketLink': 'https://tickets.example.com/jazz',
        }

    def test_from_dict_restores_record(self):
        """Test a stored document rebuilds the same record."""
        event = EventRecord(
            title='Jazz Night',
            description='Live jazz',
            raw_time='November 9, 7:00 PM',
            canonical_date=date(2025, 11, 9),
            location='Blue Note, Greenwich Village',
            category='Cultural & Arts',
            borough='Manhattan',
            neighborhood='Greenwich Village',
            coordinates=Coordinates(lat=40.7336, lng=-74.0027),
            link='https://example.com/jazz',
            enriched=True,
            hydrated=True,
        )

        assert EventRecord.from_dict(event.to_dict()) == event

    def test_from_dict_rejects_missing_title(self):
        """Test documents without a title are skipped."""
        assert EventRecord.from_dict({'description': 'No title'}) is None
        assert EventRecord.from_dict({'title': '   '}) is None

    def test_from_dict_drops_invalid_values(self):
        """Test unknown categories, boroughs and half coordinates are dropped."""
        event = EventRecord.from_dict({
            'title': 'Show',
            'category': 'Nightlife',
            'borough': 'Hoboken',
            'lat': 40.7,
        })

        assert event.category is None
        assert event.borough is None
        assert event.coordinates is None

    def test_hydrated_flag_only_written_when_set(self):
        """Test the hydrated marker is omitted until a detail page was read."""
        assert 'hydrated' not in EventRecord(title='Show').to_dict()
        assert EventRecord(title='Show', hydrated=True).to_dict()['hydrated'] is True


class TestEventsSnapshot:
    """Test cases for EventsSnapshot."""

    def test_round_trip_document(self):
        """Test snapshot documents carry count and lastFetched."""
        snapshot = EventsSnapshot(events=[EventRecord(title='A')], last_fetched=NOW)

        document = snapshot.to_dict()
        restored = EventsSnapshot.from_dict(document)

        assert document['count'] == 1
        assert document['lastFetched'] == '2025-11-01T16:00:00+00:00'
        assert restored.events == snapshot.events
        assert restored.last_fetched == NOW

    def test_from_dict_skips_malformed_items(self):
        """Test non-object and untitled items are skipped."""
        restored = EventsSnapshot.from_dict({'events': ['junk', {}, {'title': 'Kept'}]})

        assert [event.title for event in restored.events] == ['Kept']


class TestScrapeRun:
    """Test cases for ScrapeRun."""

    def test_fresh_running_run_is_not_stale(self):
        """Test a heartbeat under the threshold keeps the run active."""
        run = ScrapeRun(run_id='r1', state=RunState.RUNNING, last_heartbeat=NOW - timedelta(minutes=9))

        assert not run.is_stale(NOW, threshold_minutes=10)

    def test_old_heartbeat_is_stale(self):
        """Test a heartbeat at the threshold makes the run stale."""
        run = ScrapeRun(run_id='r1', state=RunState.RUNNING, last_heartbeat=NOW - timedelta(minutes=10))

        assert run.is_stale(NOW, threshold_minutes=10)

    def test_finished_run_is_stale(self):
        """Test runs that are not running never block admission."""
        run = ScrapeRun(run_id='r1', state=RunState.COMPLETED, last_heartbeat=NOW)

        assert run.is_stale(NOW)

    def test_recent_errors_are_bounded(self):
        """Test only the last five errors are kept."""
        run = ScrapeRun(run_id='r1')
        for index in range(8):
            run.record_error(f"error {index}")

        assert run.recent_errors == [f"error {index}" for index in range(3, 8)]

    def test_status_document_round_trip(self):
        """Test the status document restores the run."""
        run = ScrapeRun(
            run_id='r1',
            state=RunState.RUNNING,
            current_source='https://example.com',
            current_source_index=3,
            total_sources=10,
            events_ingested=42,
            last_heartbeat=NOW,
            started_at=NOW - timedelta(minutes=5),
            recent_errors=['boom'],
        )

        document = run.to_dict()

        assert document['isRunning'] is True
        assert document['sourcesCompleted'] == 3
        assert ScrapeRun.from_dict(document) == run

    def test_from_dict_without_state_uses_is_running(self):
        """Test older status documents without a state field."""
        run = ScrapeRun.from_dict({'isRunning': True, 'lastUpdate': '2025-11-01T16:00:00Z'})

        assert run.state == RunState.RUNNING
        assert run.last_heartbeat == NOW

    def test_parse_timestamp_treats_naive_as_utc(self):
        """Test naive timestamps are interpreted as UTC."""
        assert parse_timestamp('2025-11-01T16:00:00') == NOW
        assert parse_timestamp('not a timestamp') is None
