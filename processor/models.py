"""Data models for event ingestion and run tracking."""
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from processor.temporal import is_ongoing, parse_iso_date

logger = logging.getLogger(__name__)

CATEGORIES = (
    'Cultural & Arts',
    'Fitness & Wellness',
    'Sports & Recreation',
    'Markets & Shopping',
    'Community & Volunteering',
    'Food & Dining',
    'Holiday & Seasonal',
    'Professional & Networking',
    'Educational & Literary',
)

BOROUGHS = ('Manhattan', 'Brooklyn', 'Queens', 'The Bronx', 'Staten Island')

MAX_RECENT_ERRORS = 5


@dataclass(frozen=True)
class Coordinates:
    """Latitude/longitude pair."""
    lat: float
    lng: float


@dataclass(frozen=True)
class EventRecord:
    """Normalized event listing."""
    title: str
    description: str = ''
    raw_time: Optional[str] = None
    canonical_date: Optional[date] = None
    location: Optional[str] = None
    category: Optional[str] = None
    borough: Optional[str] = None
    neighborhood: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    link: Optional[str] = None
    ticket_link: Optional[str] = None
    enriched: bool = False
    # Detail page already read back for missing fields
    hydrated: bool = False

    @property
    def identity_key(self) -> str:
        """Deduplication key: lowercase title plus link, or location when no link."""
        return f"{self.title.lower()}|{self.link or self.location or ''}"

    @property
    def is_ongoing(self) -> bool:
        return is_ongoing(self.raw_time)

    def with_updates(self, **changes: Any) -> 'EventRecord':
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to the JSON document shape served to clients.

        Returns:
            Dictionary with camelCase keys; absent optional fields are omitted
        """
        item: Dict[str, Any] = {
            'title': self.title,
            'description': self.description,
            'enriched': self.enriched,
        }

        if self.raw_time:
            item['time'] = self.raw_time
        if self.canonical_date:
            item['date'] = self.canonical_date.isoformat()
        if self.location:
            item['location'] = self.location
        if self.category:
            item['category'] = self.category
        if self.borough:
            item['borough'] = self.borough
        if self.neighborhood:
            item['neighborhood'] = self.neighborhood
        if self.coordinates:
            item['lat'] = self.coordinates.lat
            item['lng'] = self.coordinates.lng
        if self.link:
            item['link'] = self.link
        if self.ticket_link:
            item['ticketLink'] = self.ticket_link
        if self.hydrated:
            item['hydrated'] = True

        return item

    @classmethod
    def from_dict(cls, item: Dict[str, Any]) -> Optional['EventRecord']:
        """
        Rebuild a record from a stored JSON document.

        Args:
            item: Document as produced by to_dict()

        Returns:
            EventRecord, or None if the document has no usable title
        """
        title = item.get('title')
        if not isinstance(title, str) or not title.strip():
            logger.warning(f"Skipping stored event without title: {item!r:.120}")
            return None

        coordinates = None
        lat, lng = item.get('lat'), item.get('lng')
        if lat is not None and lng is not None:
            try:
                coordinates = Coordinates(lat=float(lat), lng=float(lng))
            except (TypeError, ValueError):
                coordinates = None

        return cls(
            title=title,
            description=item.get('description') or '',
            raw_time=item.get('time') or None,
            canonical_date=parse_iso_date(item.get('date')),
            location=item.get('location') or None,
            category=item.get('category') if item.get('category') in CATEGORIES else None,
            borough=item.get('borough') if item.get('borough') in BOROUGHS else None,
            neighborhood=item.get('neighborhood') or None,
            coordinates=coordinates,
            link=item.get('link') or None,
            ticket_link=item.get('ticketLink') or None,
            enriched=bool(item.get('enriched', False)),
            hydrated=bool(item.get('hydrated', False)),
        )


EventStore = Dict[str, EventRecord]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class EventsSnapshot:
    """Persisted events document."""
    events: List[EventRecord] = field(default_factory=list)
    last_fetched: Optional[datetime] = None
    success: bool = True

    @property
    def count(self) -> int:
        return len(self.events)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'count': self.count,
            'events': [event.to_dict() for event in self.events],
            'lastFetched': format_timestamp(self.last_fetched),
        }

    @classmethod
    def from_dict(cls, document: Dict[str, Any]) -> 'EventsSnapshot':
        events = []
        for item in document.get('events') or []:
            if not isinstance(item, dict):
                continue
            event = EventRecord.from_dict(item)
            if event:
                events.append(event)

        return cls(
            events=events,
            last_fetched=parse_timestamp(document.get('lastFetched')),
            success=bool(document.get('success', True)),
        )


class RunState(str, Enum):
    """Lifecycle states of a scrape run."""
    IDLE = 'idle'
    RUNNING = 'running'
    COMPLETED = 'completed'
    FAILED = 'failed'


@dataclass
class ScrapeRun:
    """Progress record for one orchestrator pass."""
    run_id: str
    state: RunState = RunState.IDLE
    current_source: str = ''
    current_source_index: int = 0
    total_sources: int = 0
    events_ingested: int = 0
    last_heartbeat: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    recent_errors: List[str] = field(default_factory=list)
    error: Optional[str] = None
    # Lambda request currently executing the run; empty between invocations
    invocation_id: str = ''

    @property
    def is_running(self) -> bool:
        return self.state == RunState.RUNNING

    def minutes_since_heartbeat(self, now: datetime) -> float:
        if self.last_heartbeat is None:
            return float('inf')
        return (now - self.last_heartbeat).total_seconds() / 60

    def is_stale(self, now: datetime, threshold_minutes: int = 10) -> bool:
        """
        Check whether this run may be superseded.

        Args:
            now: Current time (timezone-aware)
            threshold_minutes: Heartbeat age after which a running run is abandoned

        Returns:
            True if the run is not running or its heartbeat is too old
        """
        if not self.is_running:
            return True
        return self.minutes_since_heartbeat(now) >= threshold_minutes

    def record_error(self, message: str) -> None:
        self.recent_errors.append(message)
        del self.recent_errors[:-MAX_RECENT_ERRORS]

    def heartbeat(self, now: datetime) -> None:
        self.last_heartbeat = now

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the status document polled by clients."""
        item = {
            'runId': self.run_id,
            'state': self.state.value,
            'isRunning': self.is_running,
            'currentSource': self.current_source,
            'sourcesCompleted': self.current_source_index,
            'totalSources': self.total_sources,
            'eventsScraped': self.events_ingested,
            'lastUpdate': format_timestamp(self.last_heartbeat),
            'startedAt': format_timestamp(self.started_at),
            'completedAt': format_timestamp(self.completed_at),
            'errors': list(self.recent_errors),
            'invocationId': self.invocation_id,
        }
        if self.error:
            item['error'] = self.error
        return item

    @classmethod
    def from_dict(cls, item: Dict[str, Any]) -> 'ScrapeRun':
        """Rebuild a run from a status document, tolerating older documents without a state."""
        try:
            state = RunState(item.get('state'))
        except ValueError:
            state = RunState.RUNNING if item.get('isRunning') else RunState.IDLE

        return cls(
            run_id=str(item.get('runId') or ''),
            state=state,
            current_source=item.get('currentSource') or '',
            current_source_index=int(item.get('sourcesCompleted') or 0),
            total_sources=int(item.get('totalSources') or 0),
            events_ingested=int(item.get('eventsScraped') or 0),
            last_heartbeat=parse_timestamp(item.get('lastUpdate')),
            started_at=parse_timestamp(item.get('startedAt')),
            completed_at=parse_timestamp(item.get('completedAt')),
            recent_errors=list(item.get('errors') or [])[-MAX_RECENT_ERRORS:],
            error=item.get('error'),
            invocation_id=str(item.get('invocationId') or ''),
        )
