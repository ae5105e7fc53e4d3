"""Unit tests for the hydration, geocoding and enrichment sweeps."""
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from pipeline.errors import ExtractionError, ExtractionParseError, SourceFetchError
from pipeline.scheduler import SWEEP_ENRICH, SWEEP_GEOCODE, SWEEP_HYDRATE
from pipeline.sweeps import EnrichmentSweep, GeocodeSweep, HydrationSweep, run_sweep
from scraper.page_fetcher import FetchedPage
from processor.location_resolver import LocationResult
from processor.models import Coordinates, EventRecord, EventsSnapshot, RunState, ScrapeRun

NOW = datetime(2025, 11, 1, 16, 0, tzinfo=timezone.utc)


class InMemoryStore:
    """Minimal document store holding one snapshot and one status."""

    def __init__(self, events, status=None):
        self.snapshot = EventsSnapshot(events=list(events), last_fetched=NOW - timedelta(hours=2))
        self.status = status
        self.saves = 0

    def load_events(self):
        return EventsSnapshot(events=list(self.snapshot.events), last_fetched=self.snapshot.last_fetched)

    def save_events(self, snapshot):
        self.snapshot = snapshot
        self.saves += 1

    def load_status(self):
        return self.status


def make_context(config, store, **overrides):
    context = Mock()
    context.config = replace(config, **overrides)
    context.store = store
    context.clock = lambda: NOW
    return context


class TestGeocodeSweep:
    """Test cases for GeocodeSweep."""

    def test_fills_missing_coordinates(self, config):
        """Test records without coordinates are resolved and saved."""
        store = InMemoryStore([
            EventRecord(title='Show', location='Some Venue', borough='Brooklyn'),
            EventRecord(title='Placed', location='Elsewhere', coordinates=Coordinates(lat=1.0, lng=2.0)),
            EventRecord(title='Nowhere'),
        ])
        context = make_context(config, store)
        context.resolver.resolve.return_value = LocationResult(
            borough='Manhattan', neighborhood='Midtown', lat=40.75, lng=-73.98
        )

        result = GeocodeSweep(context).run()

        assert result.processed == 1
        assert result.updated == 1
        assert result.remaining == 0
        context.resolver.resolve.assert_called_once_with('Some Venue', allow_remote=True)
        show = store.snapshot.events[0]
        assert show.coordinates == Coordinates(lat=40.75, lng=-73.98)
        assert show.borough == 'Brooklyn'
        assert show.neighborhood == 'Midtown'
        assert store.snapshot.last_fetched == NOW - timedelta(hours=2)

    def test_unresolved_records_remain(self, config):
        """Test records the resolver cannot place are left unchanged and not saved."""
        store = InMemoryStore([EventRecord(title='Show', location='Some Venue')])
        context = make_context(config, store)
        context.resolver.resolve.return_value = LocationResult()

        result = GeocodeSweep(context).run()

        assert result.updated == 0
        assert result.remaining == 1
        assert store.saves == 0

    def test_batch_size_limits_work(self, config):
        """Test at most one batch is processed per invocation."""
        store = InMemoryStore([
            EventRecord(title=f"Show {index}", location=f"Venue {index}") for index in range(5)
        ])
        context = make_context(config, store, geocode_batch_size=2)
        context.resolver.resolve.return_value = LocationResult(lat=40.7, lng=-74.0)

        result = GeocodeSweep(context).run()

        assert result.processed == 2
        assert result.remaining == 3
        assert context.resolver.resolve.call_count == 2

    def test_skipped_while_run_active(self, config):
        """Test sweeps do not touch the snapshot during a live scrape run."""
        status = ScrapeRun(run_id='live', state=RunState.RUNNING, last_heartbeat=NOW - timedelta(minutes=1))
        store = InMemoryStore([EventRecord(title='Show', location='Some Venue')], status=status)
        context = make_context(config, store)

        result = GeocodeSweep(context).run()

        assert result.skipped is True
        context.resolver.resolve.assert_not_called()

    def test_runs_when_active_run_is_stale(self, config):
        """Test a stalled run does not block the sweep."""
        status = ScrapeRun(run_id='stuck', state=RunState.RUNNING, last_heartbeat=NOW - timedelta(minutes=30))
        store = InMemoryStore([EventRecord(title='Show', location='Some Venue')], status=status)
        context = make_context(config, store)
        context.resolver.resolve.return_value = LocationResult()

        assert GeocodeSweep(context).run().skipped is False

    def test_batch_discarded_when_run_starts_midway(self, config):
        """Test updates are dropped if a scrape run begins before the save."""
        store = InMemoryStore([EventRecord(title='Show', location='Some Venue')])
        context = make_context(config, store)

        def resolve_and_start_run(location, allow_remote):
            store.status = ScrapeRun(run_id='live', state=RunState.RUNNING, last_heartbeat=NOW)
            return LocationResult(lat=40.7, lng=-74.0)

        context.resolver.resolve.side_effect = resolve_and_start_run

        result = GeocodeSweep(context).run()

        assert result.skipped is True
        assert result.updated == 0
        assert result.remaining == 1
        assert store.saves == 0
        assert not result.should_continue

    def test_changes_apply_to_reloaded_snapshot(self, config):
        """Test a save keeps fields another writer stored during the batch."""
        store = InMemoryStore([EventRecord(title='Show', location='Some Venue')])
        context = make_context(config, store)

        def resolve_while_enriched_elsewhere(location, allow_remote):
            store.snapshot = EventsSnapshot(events=[
                EventRecord(title='Show', location='Some Venue', description='Rewritten', enriched=True),
            ])
            return LocationResult(lat=40.7, lng=-74.0)

        context.resolver.resolve.side_effect = resolve_while_enriched_elsewhere

        GeocodeSweep(context).run()

        show = store.snapshot.events[0]
        assert show.coordinates == Coordinates(lat=40.7, lng=-74.0)
        assert show.description == 'Rewritten'
        assert show.enriched is True


class TestEnrichmentSweep:
    """Test cases for EnrichmentSweep."""

    def test_enriches_batch(self, config):
        """Test returned descriptions are applied and flagged."""
        store = InMemoryStore([
            EventRecord(title='Band', description='Music'),
            EventRecord(title='Done', description='Already good', enriched=True),
            EventRecord(title='Comic', description='Comedy'),
        ])
        context = make_context(config, store)
        context.enricher.enrich.return_value = {1: 'A sharp stand-up set.'}

        result = EnrichmentSweep(context).run()

        batch = context.enricher.enrich.call_args.args[0]
        assert [event.title for event in batch] == ['Band', 'Comic']
        assert result.updated == 1
        assert result.remaining == 1
        events = {event.title: event for event in store.snapshot.events}
        assert events['Comic'].description == 'A sharp stand-up set.'
        assert events['Comic'].enriched is True
        assert events['Band'].enriched is False

    def test_model_failure_updates_nothing(self, config, caplog):
        """Test an enrichment failure is logged and leaves the snapshot alone."""
        store = InMemoryStore([EventRecord(title='Band')])
        context = make_context(config, store)
        context.enricher.enrich.side_effect = ExtractionError('Claude API failed')

        result = EnrichmentSweep(context).run()

        assert result.updated == 0
        assert store.saves == 0
        assert 'Enrichment batch failed' in caplog.text


LONG_DESCRIPTION = 'An evening of new paintings with the artists on hand and drinks in the garden.'


def detail_page(url='https://example.com/event'):
    return FetchedPage(url=url, content='Event page text', scraper='Firecrawl')


class TestHydrationSweep:
    """Test cases for HydrationSweep."""

    def test_selects_thin_records_with_links(self, config):
        """Test short descriptions and vague locations qualify when a link exists."""
        store = InMemoryStore([
            EventRecord(title='Short', description='Art', location='Blue Note, Greenwich Village',
                        link='https://example.com/short'),
            EventRecord(title='City Only', description=LONG_DESCRIPTION, location='New York, New York',
                        link='https://example.com/city'),
            EventRecord(title='Venue Only', description=LONG_DESCRIPTION, location='Some Venue',
                        link='https://example.com/venue'),
            EventRecord(title='No Link', description='Art'),
            EventRecord(title='Complete', description=LONG_DESCRIPTION, location='Pioneer Works, Red Hook',
                        link='https://example.com/complete'),
            EventRecord(title='Done', description='Art', link='https://example.com/done', hydrated=True),
        ])
        context = make_context(config, store)
        context.fetcher.fetch.side_effect = SourceFetchError('https://example.com', 'Scrapers failed')

        result = HydrationSweep(context).run()

        fetched = [call.args[0] for call in context.fetcher.fetch.call_args_list]
        assert fetched == ['https://example.com/short', 'https://example.com/city', 'https://example.com/venue']
        assert result.processed == 3
        events = {event.title: event for event in store.snapshot.events}
        assert events['Short'].hydrated is True
        assert events['No Link'].hydrated is False
        assert events['Complete'].hydrated is False

    def test_merges_richer_details(self, config):
        """Test fuller description, location and dated time replace thin ones."""
        event = EventRecord(
            title='Gallery Opening',
            description='Art',
            raw_time='Thursday 7pm',
            canonical_date=date(2025, 11, 6),
            location='Chelsea',
            link='https://example.com/gallery',
        )
        store = InMemoryStore([event])
        context = make_context(config, store)
        context.fetcher.fetch.return_value = detail_page(event.link)
        context.extractor.extract_details.return_value = {
            'description': LONG_DESCRIPTION,
            'location': '511 W 25th St, Chelsea, New York',
            'date': '2025-11-06',
            'time': 'Thursday, November 13, 7:00 PM - 9:00 PM',
        }
        context.resolver.resolve.return_value = LocationResult(
            borough='Manhattan', neighborhood='Chelsea', lat=40.749, lng=-74.004
        )

        result = HydrationSweep(context).run()

        assert result.updated == 1
        context.extractor.extract_details.assert_called_once_with('Event page text', event.to_dict())
        context.resolver.resolve.assert_called_once_with('511 W 25th St, Chelsea, New York', allow_remote=True)
        hydrated = store.snapshot.events[0]
        assert hydrated.description == LONG_DESCRIPTION
        assert hydrated.location == '511 W 25th St, Chelsea, New York'
        assert hydrated.raw_time == 'Thursday, November 13, 7:00 PM - 9:00 PM'
        assert hydrated.canonical_date == date(2025, 11, 13)
        assert hydrated.borough == 'Manhattan'
        assert hydrated.coordinates == Coordinates(lat=40.749, lng=-74.004)
        assert hydrated.hydrated is True

    def test_keeps_stored_fields_when_details_are_weaker(self, config):
        """Test short descriptions, the bare city and undated times do not overwrite."""
        event = EventRecord(
            title='Jazz Night',
            description='Jazz',
            raw_time='Saturday, November 8, 7:00 PM',
            canonical_date=date(2025, 11, 8),
            location='Blue Note',
            link='https://example.com/jazz',
        )
        store = InMemoryStore([event])
        context = make_context(config, store)
        context.fetcher.fetch.return_value = detail_page(event.link)
        context.extractor.extract_details.return_value = {
            'description': 'Live jazz',
            'location': 'New York, New York',
            'time': '7pm',
        }

        HydrationSweep(context).run()

        assert store.snapshot.events[0] == replace(event, hydrated=True)
        context.resolver.resolve.assert_not_called()

    def test_detail_date_fills_missing_date(self, config):
        """Test the page's ISO date is used when no time string yields one."""
        event = EventRecord(title='Market', description='Food', link='https://example.com/market')
        store = InMemoryStore([event])
        context = make_context(config, store)
        context.fetcher.fetch.return_value = detail_page(event.link)
        context.extractor.extract_details.return_value = {'date': '2025-11-20', 'time': ''}

        HydrationSweep(context).run()

        assert store.snapshot.events[0].canonical_date == date(2025, 11, 20)
        assert store.snapshot.events[0].raw_time is None

    @pytest.mark.parametrize('failure', [
        SourceFetchError('https://example.com/market', 'Scrapers failed'),
        ExtractionParseError('No JSON object in response'),
    ])
    def test_unreadable_page_marks_record_done(self, config, failure):
        """Test pages that cannot be fetched or parsed are not retried."""
        event = EventRecord(title='Market', description='Food', link='https://example.com/market')
        store = InMemoryStore([event])
        context = make_context(config, store)
        context.fetcher.fetch.return_value = detail_page(event.link)
        context.extractor.extract_details.side_effect = failure
        if isinstance(failure, SourceFetchError):
            context.fetcher.fetch.side_effect = failure

        result = HydrationSweep(context).run()

        assert result.remaining == 0
        assert store.snapshot.events[0] == replace(event, hydrated=True)

    def test_model_failure_leaves_record_pending(self, config):
        event = EventRecord(title='Market', description='Food', link='https://example.com/market')
        store = InMemoryStore([event])
        context = make_context(config, store)
        context.fetcher.fetch.return_value = detail_page(event.link)
        context.extractor.extract_details.side_effect = ExtractionError('Claude API failed')

        result = HydrationSweep(context).run()

        assert result.updated == 0
        assert result.remaining == 1
        assert store.saves == 0


class TestRunSweep:
    """Test cases for run_sweep chaining."""

    def test_enrichment_chains_while_progressing(self, config):
        """Test another enrichment batch is requested while work remains."""
        store = InMemoryStore([EventRecord(title=f"Event {index}") for index in range(3)])
        context = make_context(config, store, enrich_batch_size=2)
        context.enricher.enrich.return_value = {0: 'One', 1: 'Two'}

        result = run_sweep(context, SWEEP_ENRICH)

        assert result.should_continue
        context.publisher.sweep_requested.assert_called_once_with(SWEEP_ENRICH)

    def test_enrichment_stops_without_progress(self, config):
        """Test chaining stops when a batch updates nothing."""
        store = InMemoryStore([EventRecord(title='Event')])
        context = make_context(config, store)
        context.enricher.enrich.return_value = {}

        run_sweep(context, SWEEP_ENRICH)

        context.publisher.sweep_requested.assert_not_called()

    def test_hydration_chains_while_progressing(self, config):
        store = InMemoryStore([
            EventRecord(title=f"Event {index}", link=f"https://example.com/{index}") for index in range(3)
        ])
        context = make_context(config, store, hydrate_batch_size=2)
        context.fetcher.fetch.side_effect = SourceFetchError('https://example.com', 'Scrapers failed')

        run_sweep(context, SWEEP_HYDRATE)

        context.publisher.sweep_requested.assert_called_once_with(SWEEP_HYDRATE)

    def test_geocode_does_not_chain(self, config):
        store = InMemoryStore([EventRecord(title=f"Show {index}", location='Venue') for index in range(3)])
        context = make_context(config, store, geocode_batch_size=1)
        context.resolver.resolve.return_value = LocationResult(lat=40.7, lng=-74.0)

        run_sweep(context, SWEEP_GEOCODE)

        context.publisher.sweep_requested.assert_not_called()

    def test_unknown_sweep(self, config):
        with pytest.raises(ValueError):
            run_sweep(make_context(config, InMemoryStore([])), 'translate')
