"""Deduplication, staleness filtering and feed ordering for event stores."""
import logging
from datetime import date
from typing import Iterable, List

from processor.models import EventRecord, EventStore

logger = logging.getLogger(__name__)


def identity_key(event: EventRecord) -> str:
    return event.identity_key


def build_store(events: Iterable[EventRecord]) -> EventStore:
    """Key a sequence of records; later records replace earlier ones."""
    return merge_events({}, events)


def merge_events(existing: EventStore, incoming: Iterable[EventRecord]) -> EventStore:
    """
    Fold incoming records into a store.

    A record whose identity key is already present replaces the stored
    record as a whole; fields are never mixed between two versions.

    Args:
        existing: Current store, left unmodified
        incoming: Records in arrival order

    Returns:
        New store containing the merged records
    """
    merged = dict(existing)
    replaced = 0
    added = 0

    for event in incoming:
        key = identity_key(event)
        if key in merged:
            replaced += 1
        else:
            added += 1
        merged[key] = event

    logger.debug(f"Merged events: {added} added, {replaced} replaced, {len(merged)} total")
    return merged


def is_stale(event: EventRecord, today: date) -> bool:
    if event.is_ongoing or event.canonical_date is None:
        return False
    return event.canonical_date < today


def filter_stale(store: EventStore, today: date) -> EventStore:
    """
    Drop records whose canonical date is before today.

    Dateless records and records marked ongoing/permanent are kept.

    Args:
        store: Store to filter, left unmodified
        today: Civil date in New York

    Returns:
        New store without the past events
    """
    active = {key: event for key, event in store.items() if not is_stale(event, today)}
    removed = len(store) - len(active)
    if removed:
        logger.info(f"Removed {removed} past events")
    return active


def sort_for_feed(events: Iterable[EventRecord]) -> List[EventRecord]:
    """Order events by canonical date with dateless events last."""
    return sorted(
        events,
        key=lambda event: (event.canonical_date is None, event.canonical_date or date.min),
    )
