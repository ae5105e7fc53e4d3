"""Exception taxonomy for the events ingestion pipeline."""


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class SourceFetchError(PipelineError):
    """A source page could not be retrieved by any available scraper."""

    def __init__(self, url: str, message: str = ''):
        self.url = url
        super().__init__(message or f"Scrapers failed for {url}")


class ExtractionError(PipelineError):
    """The extraction model call failed for a source."""


class ExtractionParseError(ExtractionError):
    """The extraction output could not be parsed into event records."""


class GeocodeTimeout(PipelineError):
    """The geocoding provider did not answer in time."""


class AlreadyRunningError(PipelineError):
    """A scrape run is already active and its heartbeat is fresh."""

    def __init__(self, run_id: str, minutes_since_update: float):
        self.run_id = run_id
        self.minutes_since_update = minutes_since_update
        super().__init__(
            f"Scraping already in progress (run {run_id}, "
            f"updated {minutes_since_update:.1f} minutes ago)"
        )


class ConfigurationError(PipelineError):
    """Required configuration is missing or malformed."""


class PersistenceError(PipelineError):
    """A document could not be read from or written to the store."""
