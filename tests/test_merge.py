"""Unit tests for merging, staleness filtering and feed ordering."""
from datetime import date

from processor.merge import build_store, filter_stale, merge_events, sort_for_feed
from processor.models import EventRecord


def make_event(title, **kwargs):
    kwargs.setdefault('link', f"https://example.com/{title.lower().replace(' ', '-')}")
    return EventRecord(title=title, **kwargs)


class TestMergeEvents:
    """Test cases for merge_events."""

    def test_merge_is_idempotent(self):
        """Test merging the same batch twice leaves the store unchanged."""
        batch = [make_event('Jazz Night'), make_event('Book Fair')]

        once = merge_events({}, batch)
        twice = merge_events(once, batch)

        assert twice == once
        assert len(twice) == 2

    def test_last_write_wins_as_whole_record(self):
        """Test a colliding record replaces the stored one entirely."""
        original = make_event(
            'Jazz Night',
            description='Old description',
            location='Blue Note',
            category='Cultural & Arts',
        )
        replacement = make_event('Jazz Night', description='New description')

        store = merge_events(build_store([original]), [replacement])

        stored = store[replacement.identity_key]
        assert stored.description == 'New description'
        assert stored.location is None
        assert stored.category is None

    def test_identity_is_case_insensitive_on_title(self):
        """Test titles differing only by case collide."""
        store = merge_events({}, [
            make_event('JAZZ NIGHT', link='https://example.com/jazz'),
            make_event('Jazz Night', link='https://example.com/jazz'),
        ])

        assert len(store) == 1
        assert next(iter(store.values())).title == 'Jazz Night'

    def test_identity_falls_back_to_location(self):
        """Test records without links are keyed by location."""
        first = EventRecord(title='Open Mic', location='Brooklyn Bowl')
        second = EventRecord(title='Open Mic', location='Nuyorican Poets Cafe')

        store = merge_events({}, [first, second])

        assert len(store) == 2
        assert 'open mic|brooklyn bowl' in store

    def test_existing_store_is_not_modified(self):
        """Test merge_events returns a new mapping."""
        existing = build_store([make_event('Jazz Night')])

        merged = merge_events(existing, [make_event('Book Fair')])

        assert len(existing) == 1
        assert len(merged) == 2


class TestFilterStale:
    """Test cases for filter_stale."""

    def test_filter_keeps_today_dateless_and_ongoing(self):
        """Test only events dated before today are removed."""
        today = date(2025, 11, 1)
        yesterday = make_event('Yesterday', canonical_date=date(2025, 10, 31))
        current = make_event('Today', canonical_date=today)
        dateless = make_event('Dateless')
        ongoing = make_event(
            'Exhibit',
            raw_time='Ongoing',
            canonical_date=date(2025, 1, 1),
        )

        result = filter_stale(build_store([yesterday, current, dateless, ongoing]), today)

        assert {event.title for event in result.values()} == {'Today', 'Dateless', 'Exhibit'}

    def test_filter_logs_removed_count(self, caplog):
        """Test the number of removed events is logged."""
        store = build_store([make_event('Old', canonical_date=date(2020, 1, 1))])

        with caplog.at_level('INFO'):
            result = filter_stale(store, date(2025, 11, 1))

        assert result == {}
        assert 'Removed 1 past events' in caplog.text


class TestSortForFeed:
    """Test cases for sort_for_feed."""

    def test_sort_by_date_with_dateless_last(self):
        """Test dated events come first in date order."""
        events = [
            make_event('Dateless'),
            make_event('Later', canonical_date=date(2025, 12, 1)),
            make_event('Sooner', canonical_date=date(2025, 11, 2)),
        ]

        ordered = sort_for_feed(events)

        assert [event.title for event in ordered] == ['Sooner', 'Later', 'Dateless']
