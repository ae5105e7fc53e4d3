"""Event processor for validating and normalizing extracted candidates."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from processor.location_resolver import LocationResolver
from processor.models import CATEGORIES, EventRecord
from processor.temporal import normalize, parse_iso_date

logger = logging.getLogger(__name__)

_CATEGORY_LOOKUP = {category.lower(): category for category in CATEGORIES}


class EventProcessor:
    """Turns untyped extraction candidates into EventRecords."""

    MAX_TITLE_LENGTH = 200
    MAX_DESCRIPTION_LENGTH = 2000

    def __init__(self, resolver: Optional[LocationResolver] = None, allow_remote_geocoding: bool = True):
        """
        Initialize the processor.

        Args:
            resolver: Location resolver used to fill in geography
            allow_remote_geocoding: Whether the resolver may call the geocoding API
        """
        self.resolver = resolver or LocationResolver()
        self.allow_remote_geocoding = allow_remote_geocoding

    def process_events(self, candidates: List[Any], reference_now: datetime) -> List[EventRecord]:
        """
        Validate and normalize extracted candidates.

        Args:
            candidates: Raw records returned by the extractor
            reference_now: Instant used to resolve dates

        Returns:
            List of valid EventRecord objects
        """
        processed_events = []

        for candidate in candidates:
            if not isinstance(candidate, dict):
                logger.warning(f"Skipping non-object candidate: {candidate!r:.80}")
                continue
            try:
                event = self._process_single_event(candidate, reference_now)
                if event:
                    processed_events.append(event)
            except Exception as e:
                logger.warning(
                    f"Failed to process event '{candidate.get('title')}': {e}"
                )
                continue

        logger.info(
            f"Processed {len(processed_events)} valid events out of "
            f"{len(candidates)} candidates"
        )
        return processed_events

    def _process_single_event(self, candidate: Dict[str, Any], reference_now: datetime) -> Optional[EventRecord]:
        """
        Process a single candidate.

        Args:
            candidate: Raw candidate dictionary
            reference_now: Instant used to resolve dates

        Returns:
            EventRecord or None if validation fails
        """
        if not self._validate_required_fields(candidate):
            return None

        title = self._clean_text(candidate.get('title'))[:self.MAX_TITLE_LENGTH]
        description = (self._clean_text(candidate.get('description')) or '')[:self.MAX_DESCRIPTION_LENGTH]
        raw_time = self._clean_text(candidate.get('time'))
        location = self._clean_text(candidate.get('location'))

        normalized = normalize(raw_time, reference_now)
        canonical_date = normalized.canonical_date
        if canonical_date is None and not normalized.ongoing:
            # Extractor-supplied ISO date is only a fallback
            canonical_date = parse_iso_date(candidate.get('date'))

        geography = self.resolver.resolve(location, allow_remote=self.allow_remote_geocoding)

        return EventRecord(
            title=title,
            description=description,
            raw_time=normalized.display_time or None,
            canonical_date=canonical_date,
            location=location,
            category=self._normalize_category(candidate.get('category')),
            borough=geography.borough,
            neighborhood=geography.neighborhood,
            coordinates=geography.coordinates,
            link=self._normalize_link(candidate.get('link')),
            ticket_link=self._normalize_link(candidate.get('ticketLink')),
        )

    def _validate_required_fields(self, candidate: Dict[str, Any]) -> bool:
        if not self._clean_text(candidate.get('title')):
            logger.warning("Event missing required field: title")
            return False
        return True

    @staticmethod
    def _clean_text(value: Any) -> Optional[str]:
        if value is None:
            return None
        if not isinstance(value, str):
            value = str(value)
        value = ' '.join(value.split())
        return value or None

    def _normalize_category(self, value: Any) -> Optional[str]:
        text = self._clean_text(value)
        if not text:
            return None
        category = _CATEGORY_LOOKUP.get(text.lower())
        if category is None:
            logger.debug(f"Dropping unknown category: {text}")
        return category

    def _normalize_link(self, value: Any) -> Optional[str]:
        """
        Keep only absolute http(s) URLs.

        Args:
            value: Link as returned by the extractor

        Returns:
            URL string or None
        """
        text = self._clean_text(value)
        if not text:
            return None
        parsed = urlparse(text)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            return None
        return text
