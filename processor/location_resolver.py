"""Resolve free-text locations to borough, neighborhood and coordinates."""
import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import requests

from pipeline.errors import GeocodeTimeout
from processor.gazetteer import BOROUGH_CENTERS, BOROUGH_KEYWORDS, NEIGHBORHOODS
from processor.models import Coordinates

logger = logging.getLogger(__name__)


def _keyword_patterns(keys) -> List[Tuple[str, 're.Pattern']]:
    # Longest first so "east harlem" wins over "harlem"
    ordered = sorted(keys, key=len, reverse=True)
    return [
        (key, re.compile(rf"(?<![a-z]){re.escape(key)}(?![a-z])"))
        for key in ordered
    ]


_NEIGHBORHOOD_PATTERNS = _keyword_patterns(NEIGHBORHOODS)
_BOROUGH_PATTERNS = _keyword_patterns(BOROUGH_KEYWORDS)


@dataclass(frozen=True)
class LocationResult:
    """Geography resolved for a location string; every field may be absent."""
    borough: Optional[str] = None
    neighborhood: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    @property
    def coordinates(self) -> Optional[Coordinates]:
        if self.lat is None or self.lng is None:
            return None
        return Coordinates(lat=self.lat, lng=self.lng)

    @property
    def is_empty(self) -> bool:
        return self.borough is None and self.neighborhood is None and self.coordinates is None


class NominatimGeocoder:
    """Rate-limited client for the OpenStreetMap Nominatim search API."""

    SEARCH_URL = 'https://nominatim.openstreetmap.org/search'
    USER_AGENT = 'NYC-Events-Pipeline'

    def __init__(
        self,
        timeout: int = 5,
        min_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the geocoder.

        Args:
            timeout: HTTP request timeout in seconds (default: 5)
            min_interval: Minimum seconds between requests (default: 1.0)
            clock: Monotonic clock, replaceable in tests
            sleep: Sleep function, replaceable in tests
        """
        self.timeout = timeout
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_request = None

    def _wait_for_slot(self) -> None:
        if self._last_request is not None:
            elapsed = self._clock() - self._last_request
            if elapsed < self.min_interval:
                self._sleep(self.min_interval - elapsed)
        self._last_request = self._clock()

    def geocode(self, address: str) -> Optional[Coordinates]:
        """
        Look up coordinates for an address.

        Args:
            address: Free-text address or venue

        Returns:
            Coordinates of the best match, or None if there is no match

        Raises:
            GeocodeTimeout: If the provider does not answer within the timeout
        """
        query = address if 'new york' in address.lower() else f"{address}, New York City, NY"
        self._wait_for_slot()

        try:
            response = requests.get(
                self.SEARCH_URL,
                params={'q': query, 'format': 'json', 'limit': 1},
                headers={'User-Agent': self.USER_AGENT},
                timeout=self.timeout,
            )
            response.raise_for_status()
            results = response.json()
        except requests.Timeout as e:
            raise GeocodeTimeout(f"Geocoding timed out for {address!r}") from e
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Failed to geocode {address!r}: {e}")
            return None

        if not results:
            logger.info(f"No geocoding results for {address!r}")
            return None

        try:
            return Coordinates(lat=float(results[0]['lat']), lng=float(results[0]['lon']))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Malformed geocoding result for {address!r}: {e}")
            return None


class LocationResolver:
    """Gazetteer lookup with an optional remote geocoding fallback."""

    def __init__(self, geocoder: Optional[NominatimGeocoder] = None):
        self.geocoder = geocoder or NominatimGeocoder()

    def resolve_static(self, location: str) -> LocationResult:
        if not location:
            return LocationResult()

        lowered = location.lower()

        for key, pattern in _NEIGHBORHOOD_PATTERNS:
            if pattern.search(lowered):
                borough, neighborhood, lat, lng = NEIGHBORHOODS[key]
                return LocationResult(borough=borough, neighborhood=neighborhood, lat=lat, lng=lng)

        for key, pattern in _BOROUGH_PATTERNS:
            if pattern.search(lowered):
                borough = BOROUGH_KEYWORDS[key]
                lat, lng = BOROUGH_CENTERS[borough]
                return LocationResult(borough=borough, lat=lat, lng=lng)

        return LocationResult()

    def resolve(self, location: Optional[str], allow_remote: bool = False) -> LocationResult:
        """
        Resolve a location, consulting the gazetteer before the geocoder.

        Never raises: a failed or timed-out lookup returns whatever the
        gazetteer found, possibly an empty result.

        Args:
            location: Free-text location
            allow_remote: Whether the rate-limited remote lookup may be used

        Returns:
            LocationResult
        """
        if not location or not location.strip():
            return LocationResult()

        static_result = self.resolve_static(location)
        if static_result.coordinates or not allow_remote:
            return static_result

        try:
            coordinates = self.geocoder.geocode(location)
        except GeocodeTimeout as e:
            logger.warning(f"{e}; continuing without coordinates")
            return static_result

        if coordinates is None:
            return static_result

        return LocationResult(
            borough=static_result.borough,
            neighborhood=static_result.neighborhood,
            lat=coordinates.lat,
            lng=coordinates.lng,
        )
