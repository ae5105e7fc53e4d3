"""Scrape orchestrator: source iteration, merge and incremental persistence."""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from pipeline.config import PipelineConfig
from pipeline.errors import (
    AlreadyRunningError,
    ExtractionError,
    PersistenceError,
    SourceFetchError,
)
from pipeline.scheduler import PipelineEventPublisher
from processor.event_processor import EventProcessor
from processor.location_resolver import LocationResolver
from processor.merge import build_store, filter_stale, merge_events
from processor.models import (
    CATEGORIES,
    EventRecord,
    EventsSnapshot,
    EventStore,
    RunState,
    ScrapeRun,
    utcnow,
)
from processor.temporal import today_in_nyc
from scraper.event_extractor import DescriptionEnricher, EventExtractor
from scraper.page_fetcher import PageFetcher
from scraper.sources import DEEP_SCRAPE_SOURCES, EVENT_SOURCES
from storage.dynamodb_manager import DynamoDBManager

logger = logging.getLogger(__name__)


@dataclass
class PipelineContext:
    """Collaborators and settings shared by one pipeline invocation."""
    config: PipelineConfig
    store: DynamoDBManager
    fetcher: PageFetcher
    extractor: EventExtractor
    processor: EventProcessor
    resolver: LocationResolver
    enricher: DescriptionEnricher
    publisher: PipelineEventPublisher
    sources: List[str] = field(default_factory=lambda: list(EVENT_SOURCES))
    deep_sources: Dict[str, str] = field(default_factory=lambda: dict(DEEP_SCRAPE_SOURCES))
    clock: Callable[[], datetime] = utcnow

    @classmethod
    def from_config(cls, config: PipelineConfig) -> 'PipelineContext':
        """Build the production collaborators for a configuration."""
        resolver = LocationResolver()
        return cls(
            config=config,
            store=DynamoDBManager(table_name=config.table_name),
            fetcher=PageFetcher(
                firecrawl_api_key=config.firecrawl_api_key,
                scrapfly_api_key=config.scrapfly_api_key,
                timeout=config.timeout_seconds,
            ),
            extractor=EventExtractor(
                api_key=config.anthropic_api_key,
                model=config.extraction_model,
                max_content_chars=config.max_content_chars,
                categories=list(CATEGORIES),
            ),
            processor=EventProcessor(
                resolver=resolver,
                allow_remote_geocoding=config.geocode_during_scrape,
            ),
            resolver=resolver,
            enricher=DescriptionEnricher(
                api_key=config.anthropic_api_key,
                model=config.extraction_model,
            ),
            publisher=PipelineEventPublisher(event_bus_name=config.event_bus_name),
        )


@dataclass
class RunSummary:
    """Outcome of one orchestrator pass."""
    run_id: str
    state: RunState = RunState.RUNNING
    sources_processed: int = 0
    sources_failed: int = 0
    events_ingested: int = 0
    total_events: int = 0
    errors: List[str] = field(default_factory=list)
    superseded: bool = False
    continued: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'runId': self.run_id,
            'state': self.state.value,
            'sourcesProcessed': self.sources_processed,
            'sourcesFailed': self.sources_failed,
            'eventsScraped': self.events_ingested,
            'totalEvents': self.total_events,
            'errors': list(self.errors),
            'superseded': self.superseded,
            'continued': self.continued,
        }


class ScrapeOrchestrator:
    """
    Runs scrape passes over the source list.

    Sources are processed one at a time in list order. After every source
    the merged, staleness-filtered store is saved as a whole snapshot and the
    run status is refreshed, so each source is an independent checkpoint.
    A failure in one source is recorded and the run moves on.

    Only one run may be active: a new run is admitted when no run is
    active or when the active run's heartbeat is older than the stale-run
    threshold, in which case the old run is superseded. A superseded run
    notices the new owner at its next checkpoint and stops writing.

    A run may span several Lambda invocations. Each one claims the run with
    its request id before executing, and when its remaining time drops below
    the continuation reserve it releases the claim and queues the rest of
    the run from the next unprocessed source.
    """

    def __init__(self, context: PipelineContext):
        self.context = context

    @property
    def stale_run_minutes(self) -> int:
        return self.context.config.stale_run_minutes

    def _load_status(self) -> Optional[ScrapeRun]:
        try:
            return self.context.store.load_status()
        except PersistenceError as e:
            logger.error(f"Error checking scraping status: {e}")
            return None

    def _save_status(self, run: ScrapeRun) -> None:
        try:
            self.context.store.save_status(run)
        except PersistenceError as e:
            logger.error(f"Error updating status: {e}")

    def start_run(self, now: Optional[datetime] = None) -> ScrapeRun:
        """
        Admit a new run and record it as the status owner.

        Args:
            now: Current time (default: context clock)

        Returns:
            The new running ScrapeRun

        Raises:
            AlreadyRunningError: If another run is active with a fresh heartbeat
            PersistenceError: If the new status cannot be recorded
        """
        now = now or self.context.clock()
        current = self._load_status()

        if current and current.is_running:
            minutes = current.minutes_since_heartbeat(now)
            if not current.is_stale(now, self.stale_run_minutes):
                logger.info("Scraping already in progress, rejecting new request")
                raise AlreadyRunningError(current.run_id, minutes)
            logger.warning(
                f"Found stale scraping job {current.run_id} "
                f"({minutes:.1f} minutes old), superseding it"
            )

        run = ScrapeRun(
            run_id=uuid.uuid4().hex,
            state=RunState.RUNNING,
            total_sources=len(self.context.sources),
            started_at=now,
            last_heartbeat=now,
        )
        self.context.store.save_status(run)
        logger.info(f"Started scrape run {run.run_id} over {run.total_sources} sources")
        return run

    def run(self, now: Optional[datetime] = None) -> RunSummary:
        """Admit and execute a run in one call, without a time budget."""
        run = self.start_run(now)
        run.invocation_id = uuid.uuid4().hex
        self.context.store.save_status(run)
        return self.execute(run)

    def claim(self, run_id: str, invocation_id: str) -> Optional[ScrapeRun]:
        """
        Take the execution claim on an admitted run.

        Args:
            run_id: Identifier returned by start_run
            invocation_id: Identifier of the invocation that will execute it

        Returns:
            The claimed ScrapeRun, or None if the run was superseded, already
            finished, or is being executed by another invocation
        """
        current = self._load_status()
        if current is None or current.run_id != run_id or not current.is_running:
            logger.warning(f"Run {run_id} no longer owns the scraping status, skipping")
            return None

        now = self.context.clock()
        current.invocation_id = invocation_id
        current.heartbeat(now)
        lease_expired_before = now - timedelta(minutes=self.stale_run_minutes)
        if not self.context.store.claim_status(current, lease_expired_before):
            logger.warning(f"Run {run_id} is already being executed, skipping duplicate request")
            return None
        return current

    def execute_requested(
        self,
        run_id: str,
        invocation_id: Optional[str] = None,
        remaining_ms: Optional[Callable[[], int]] = None,
    ) -> Optional[RunSummary]:
        """
        Claim and execute a previously admitted run.

        Args:
            run_id: Identifier returned by start_run
            invocation_id: Lambda request id (default: a new random id)
            remaining_ms: Callable returning the invocation's remaining time

        Returns:
            RunSummary, or None if the run could not be claimed
        """
        run = self.claim(run_id, invocation_id or uuid.uuid4().hex)
        if run is None:
            return None
        return self.execute(run, remaining_ms=remaining_ms)

    def _out_of_time(self, remaining_ms: Optional[Callable[[], int]]) -> bool:
        if remaining_ms is None:
            return False
        return remaining_ms() < self.context.config.continuation_reserve_seconds * 1000

    def execute(self, run: ScrapeRun, remaining_ms: Optional[Callable[[], int]] = None) -> RunSummary:
        """
        Process the remaining sources of a claimed run.

        Processing starts at run.current_source_index. When remaining_ms
        reports less time than the continuation reserve, the run is handed
        to a fresh invocation after at least one source has been processed.

        Args:
            run: Running ScrapeRun owned by this invocation
            remaining_ms: Callable returning the invocation's remaining time

        Returns:
            RunSummary describing this invocation's share of the pass

        Raises:
            PersistenceError: If the existing snapshot cannot be loaded
        """
        summary = RunSummary(run_id=run.run_id)
        start = run.current_source_index

        try:
            existing = self.context.store.load_events()
            events = build_store(existing.events)
            logger.info(
                f"Found {len(events)} existing events in store, "
                f"starting at source {start + 1}/{len(self.context.sources)}"
            )

            for index, url in enumerate(self.context.sources[start:], start=start):
                if self._is_superseded(run):
                    summary.superseded = True
                    break

                if index > start and self._out_of_time(remaining_ms):
                    self._hand_off(run, summary)
                    break

                run.current_source = url
                run.heartbeat(self.context.clock())
                self._save_status(run)

                events = self._process_source(run, url, events, summary)

                run.current_source_index = index + 1
                run.heartbeat(self.context.clock())
                if self._is_superseded(run):
                    summary.superseded = True
                    break
                self._save_status(run)

            summary.total_events = len(events)
            summary.events_ingested = run.events_ingested

            if summary.superseded:
                logger.warning(f"Run {run.run_id} was superseded, stopping without further writes")
                return summary

            if summary.continued:
                return summary

            self._complete(run, summary)
            return summary

        except Exception as e:
            logger.error(f"Scrape run {run.run_id} failed: {e}", exc_info=True)
            run.state = RunState.FAILED
            run.error = str(e)
            run.current_source = ''
            run.heartbeat(self.context.clock())
            self._save_status(run)
            summary.state = RunState.FAILED
            raise

    def _ingest_source(self, url: str) -> List[EventRecord]:
        detail_prefix = self.context.deep_sources.get(url)
        if detail_prefix:
            candidates = self._extract_detail_pages(url, detail_prefix)
        else:
            page = self.context.fetcher.fetch(url)
            candidates = self.context.extractor.extract(page.content, source_url=url)
        if not candidates:
            logger.info(f"No events found in {url}")
            return []
        return self.context.processor.process_events(candidates, self.context.clock())

    def _extract_detail_pages(self, url: str, detail_prefix: str) -> List[Dict[str, Any]]:
        """
        Extract events from the detail pages linked from a listing page.

        Each candidate's link is set to the page it was read from. A detail
        page that cannot be fetched or extracted is skipped.

        Raises:
            SourceFetchError: If the listing page's links cannot be retrieved
        """
        links = self.context.fetcher.fetch_links(url)
        detail_urls = list(dict.fromkeys(link for link in links if link.startswith(detail_prefix)))
        limit = self.context.config.deep_scrape_max_pages
        logger.info(f"Found {len(detail_urls)} unique event detail links on {url}, scraping up to {limit}")

        candidates = []
        for detail_url in detail_urls[:limit]:
            try:
                page = self.context.fetcher.fetch(detail_url)
                extracted = self.context.extractor.extract(page.content, source_url=detail_url)
            except (SourceFetchError, ExtractionError) as e:
                logger.warning(f"Skipping detail page {detail_url}: {e}")
                continue
            candidates.extend({**candidate, 'link': detail_url} for candidate in extracted)
        return candidates

    def _process_source(
        self,
        run: ScrapeRun,
        url: str,
        events: EventStore,
        summary: RunSummary,
    ) -> EventStore:
        """
        Fetch, extract and merge one source, isolating its failures.

        Returns:
            The store after this source (unchanged if the source failed)
        """
        logger.info(f"Scraping {url}")

        try:
            records = self._ingest_source(url)
        except SourceFetchError as e:
            self._record_failure(run, summary, str(e))
            return events
        except ExtractionError as e:
            self._record_failure(run, summary, f"Extraction failed for {url[:40]}: {e}")
            return events
        except Exception as e:
            logger.error(f"Unexpected error processing {url}", exc_info=True)
            self._record_failure(run, summary, f"Error processing {url[:40]}: {e}")
            return events

        summary.sources_processed += 1
        if not records:
            return events

        run.events_ingested += len(records)
        events = filter_stale(
            merge_events(events, records),
            today_in_nyc(self.context.clock()),
        )
        logger.info(f"Extracted {len(records)} events from {url}")

        if self._is_superseded(run):
            return events

        try:
            self._save_snapshot(events)
        except PersistenceError as e:
            self._record_failure(
                run,
                summary,
                f"Incremental save failed after {url[:40]}: {e}",
                counts_as_source=False,
            )
        else:
            logger.info(
                f"Incremental save: {len(events)} total events cached "
                f"({len(records)} new from {url})"
            )
        return events

    def _record_failure(
        self,
        run: ScrapeRun,
        summary: RunSummary,
        message: str,
        counts_as_source: bool = True,
    ) -> None:
        logger.error(message)
        run.record_error(message)
        summary.errors.append(message)
        if counts_as_source:
            summary.sources_failed += 1

    def _save_snapshot(self, events: EventStore) -> None:
        snapshot = EventsSnapshot(
            events=list(events.values()),
            last_fetched=self.context.clock(),
        )
        self.context.store.save_events(snapshot)

    def _is_superseded(self, run: ScrapeRun) -> bool:
        current = self._load_status()
        if current is None:
            return False
        return current.run_id != run.run_id or current.invocation_id != run.invocation_id

    def _hand_off(self, run: ScrapeRun, summary: RunSummary) -> None:
        """Release the claim and queue the rest of the run for a new invocation."""
        run.current_source = ''
        run.invocation_id = ''
        run.heartbeat(self.context.clock())
        self._save_status(run)
        summary.continued = True
        logger.info(
            f"Time budget reached, continuing run {run.run_id} at source "
            f"{run.current_source_index + 1}/{run.total_sources} in a new invocation"
        )

        if not self.context.publisher.run_requested(run.run_id, start_index=run.current_source_index):
            message = f"Failed to dispatch continuation at source {run.current_source_index + 1}"
            self._record_failure(run, summary, message, counts_as_source=False)
            self._save_status(run)

    def _complete(self, run: ScrapeRun, summary: RunSummary) -> None:
        completed_at = self.context.clock()
        run.state = RunState.COMPLETED
        run.current_source = ''
        run.completed_at = completed_at
        run.heartbeat(completed_at)
        self._save_status(run)
        summary.state = RunState.COMPLETED

        try:
            self.context.store.save_last_completed(completed_at)
        except PersistenceError as e:
            logger.error(f"Error saving completion timestamp: {e}")

        logger.info(
            f"Scraping complete: {summary.events_ingested} events scraped, "
            f"{summary.total_events} total, {summary.sources_failed} sources failed"
        )
        self.context.publisher.run_completed(run.run_id, completed_at, summary.total_events)

    def abandon(self, run: ScrapeRun, reason: str) -> None:
        """Mark an admitted run as failed without executing it."""
        run.state = RunState.FAILED
        run.error = reason
        run.heartbeat(self.context.clock())
        self._save_status(run)
        logger.error(f"Abandoned run {run.run_id}: {reason}")

    def reset_status(self) -> ScrapeRun:
        """
        Force the status record back to idle.

        Any run still executing sees a different owner at its next
        checkpoint and stops.
        """
        run = ScrapeRun(
            run_id='',
            state=RunState.IDLE,
            total_sources=len(self.context.sources),
            last_heartbeat=self.context.clock(),
        )
        self.context.store.save_status(run)
        logger.info("Scraping status has been reset")
        return run
