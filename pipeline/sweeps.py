"""Batch passes over the stored snapshot that run after a scrape completes."""
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List

from pipeline.errors import ExtractionError, ExtractionParseError, SourceFetchError
from pipeline.scheduler import SWEEP_ENRICH, SWEEP_GEOCODE, SWEEP_HYDRATE
from processor.models import EventRecord, EventsSnapshot
from processor.temporal import normalize, parse_iso_date

logger = logging.getLogger(__name__)

# Field changes per record, keyed by identity_key
Changes = Dict[str, Dict[str, Any]]

GENERIC_LOCATION = 'New York, New York'
THIN_DESCRIPTION_CHARS = 50

_DATE_INFO_RE = re.compile(
    r'\b(january|february|march|april|may|june|july|august|september|october|november|december'
    r'|jan|feb|mar|apr|jun|jul|aug|sep|sept|oct|nov|dec)\b'
    r'|\b\d{1,2}(st|nd|rd|th)\b|\b\d{4}\b|\b\d{1,2}/\d{1,2}\b',
    re.IGNORECASE,
)


@dataclass
class SweepResult:
    """Outcome of one sweep batch."""
    processed: int = 0
    updated: int = 0
    remaining: int = 0
    skipped: bool = False

    @property
    def should_continue(self) -> bool:
        return self.updated > 0 and self.remaining > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'processed': self.processed,
            'updated': self.updated,
            'remaining': self.remaining,
            'skipped': self.skipped,
        }


class _Sweep:
    """
    Shared batch loop: select pending records, update a batch, save once.

    Sweeps never write while a scrape run holds a fresh heartbeat. The status
    is checked before the batch and again just before saving, since a batch
    can take minutes. Changes are applied field by field to a freshly loaded
    snapshot so that a concurrent sweep's save is not overwritten wholesale.
    """

    name = ''

    def __init__(self, context, batch_size: int):
        self.context = context
        self.batch_size = batch_size

    def _needs_work(self, event: EventRecord) -> bool:
        raise NotImplementedError

    def _process_batch(self, batch: List[EventRecord]) -> Changes:
        raise NotImplementedError

    def _run_active(self) -> bool:
        current = self.context.store.load_status()
        if current is None or not current.is_running:
            return False
        return not current.is_stale(self.context.clock(), self.context.config.stale_run_minutes)

    def run(self) -> SweepResult:
        """
        Process one batch of pending records.

        Returns:
            SweepResult; skipped is True if a scrape run is active, including
            one that started while the batch was being processed

        Raises:
            PersistenceError: If the snapshot cannot be read or written
        """
        if self._run_active():
            logger.info(f"Scrape run in progress, skipping {self.name} sweep")
            return SweepResult(skipped=True)

        snapshot = self.context.store.load_events()
        pending = [event for event in snapshot.events if self._needs_work(event)]
        batch = pending[:self.batch_size]

        if not batch:
            logger.info(f"No events pending for {self.name} sweep")
            return SweepResult()

        changes = self._process_batch(batch)

        if changes:
            if self._run_active():
                logger.info(f"Scrape run started during {self.name} sweep, discarding {len(changes)} updates")
                return SweepResult(processed=len(batch), remaining=len(pending), skipped=True)
            self._save_changes(changes)

        result = SweepResult(
            processed=len(batch),
            updated=len(changes),
            remaining=len(pending) - len(changes),
        )
        logger.info(
            f"{self.name.capitalize()} sweep: {result.updated}/{result.processed} updated, "
            f"{result.remaining} remaining",
            extra={'sweep': self.name},
        )
        return result

    def _save_changes(self, changes: Changes) -> None:
        current = self.context.store.load_events()
        events = [
            event.with_updates(**changes[event.identity_key]) if event.identity_key in changes else event
            for event in current.events
        ]
        self.context.store.save_events(
            EventsSnapshot(
                events=events,
                last_fetched=current.last_fetched,
                success=current.success,
            )
        )


class GeocodeSweep(_Sweep):
    """Fills in coordinates for records that have a location but none yet."""

    name = SWEEP_GEOCODE

    def __init__(self, context):
        super().__init__(context, context.config.geocode_batch_size)

    def _needs_work(self, event: EventRecord) -> bool:
        return event.coordinates is None and bool(event.location)

    def _process_batch(self, batch: List[EventRecord]) -> Changes:
        changes = {}
        for event in batch:
            result = self.context.resolver.resolve(event.location, allow_remote=True)
            if result.coordinates is None:
                logger.debug(f"No coordinates for {event.location!r}")
                continue

            changes[event.identity_key] = {
                'coordinates': result.coordinates,
                'borough': event.borough or result.borough,
                'neighborhood': event.neighborhood or result.neighborhood,
            }
        return changes


class EnrichmentSweep(_Sweep):
    """Replaces scraped descriptions with model-written ones."""

    name = SWEEP_ENRICH

    def __init__(self, context):
        super().__init__(context, context.config.enrich_batch_size)

    def _needs_work(self, event: EventRecord) -> bool:
        return not event.enriched

    def _process_batch(self, batch: List[EventRecord]) -> Changes:
        try:
            descriptions = self.context.enricher.enrich(batch)
        except ExtractionError as e:
            logger.error(f"Enrichment batch failed: {e}")
            return {}

        return {
            batch[index].identity_key: {'description': description, 'enriched': True}
            for index, description in descriptions.items()
        }


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ''


class HydrationSweep(_Sweep):
    """
    Re-reads thin listings from their own detail pages.

    A record qualifies when it has a link and either a short description or a
    vague location (missing, a single part, or just the city). Each record is
    hydrated at most once; pages that cannot be fetched or parsed still mark
    the record so it is not retried on every pass. A failed model call leaves
    it pending.
    """

    name = SWEEP_HYDRATE

    def __init__(self, context):
        super().__init__(context, context.config.hydrate_batch_size)

    def _needs_work(self, event: EventRecord) -> bool:
        if not event.link or event.hydrated:
            return False
        location = event.location or ''
        return (
            len(event.description) < THIN_DESCRIPTION_CHARS
            or location == GENERIC_LOCATION
            or len(location.split(',')) == 1
        )

    def _process_batch(self, batch: List[EventRecord]) -> Changes:
        changes = {}
        for event in batch:
            try:
                page = self.context.fetcher.fetch(event.link)
                details = self.context.extractor.extract_details(page.content, event.to_dict())
            except (SourceFetchError, ExtractionParseError) as e:
                logger.warning(f"Could not hydrate {event.title!r} from {event.link}: {e}")
                changes[event.identity_key] = {'hydrated': True}
                continue
            except ExtractionError as e:
                logger.error(f"Hydration request failed for {event.title!r}: {e}")
                continue

            changes[event.identity_key] = self._merge_details(event, details)
        return changes

    def _merge_details(self, event: EventRecord, details: Dict[str, Any]) -> Dict[str, Any]:
        """
        Work out which detail-page fields improve on the stored record.

        Args:
            event: Stored record
            details: Fields read from the detail page

        Returns:
            Field changes for the record, always including hydrated
        """
        changes: Dict[str, Any] = {'hydrated': True}

        description = _text(details.get('description'))
        if len(description) > THIN_DESCRIPTION_CHARS:
            changes['description'] = description

        location = _text(details.get('location'))
        if location and location != GENERIC_LOCATION and location != event.location:
            changes['location'] = location
            geography = self.context.resolver.resolve(location, allow_remote=True)
            if not geography.is_empty:
                changes['borough'] = geography.borough
                changes['neighborhood'] = geography.neighborhood
                changes['coordinates'] = geography.coordinates

        raw_time = event.raw_time or ''
        detail_time = _text(details.get('time'))
        # Keep whichever time string carries more of the date
        if detail_time and (_DATE_INFO_RE.search(detail_time) or len(detail_time) > len(raw_time)):
            raw_time = detail_time

        normalized = normalize(raw_time or None, self.context.clock())
        canonical_date = normalized.canonical_date
        if canonical_date is None and not normalized.ongoing:
            canonical_date = parse_iso_date(details.get('date')) or event.canonical_date

        if raw_time and raw_time != event.raw_time:
            changes['raw_time'] = normalized.display_time or raw_time
        if canonical_date != event.canonical_date:
            changes['canonical_date'] = canonical_date

        return changes


SWEEPS = {
    SWEEP_HYDRATE: HydrationSweep,
    SWEEP_GEOCODE: GeocodeSweep,
    SWEEP_ENRICH: EnrichmentSweep,
}

# Sweeps that request their next batch while they make progress
CHAINED_SWEEPS = (SWEEP_HYDRATE, SWEEP_ENRICH)


def run_sweep(context, name: str) -> SweepResult:
    """
    Run one batch of a named sweep, chaining further batches where needed.

    Args:
        context: PipelineContext
        name: Sweep name (hydrate, geocode or enrich)

    Returns:
        SweepResult of the batch

    Raises:
        ValueError: If the sweep name is unknown
    """
    sweep_class = SWEEPS.get(name)
    if sweep_class is None:
        raise ValueError(f"Unknown sweep: {name!r}")

    result = sweep_class(context).run()

    if name in CHAINED_SWEEPS and result.should_continue:
        context.publisher.sweep_requested(name)

    return result
