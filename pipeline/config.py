"""Environment-driven configuration for the pipeline."""
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from pipeline.errors import ConfigurationError

REQUIRED_SECRETS = ('ANTHROPIC_API_KEY', 'FIRECRAWL_API_KEY', 'SCRAPFLY_API_KEY')

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}
_FALSE_VALUES = {'0', 'false', 'no', 'off'}


@dataclass(frozen=True)
class PipelineConfig:
    """Resolved pipeline settings."""
    anthropic_api_key: str
    firecrawl_api_key: str
    scrapfly_api_key: str
    table_name: str = 'nyc-events'
    event_bus_name: str = 'default'
    log_level: str = 'INFO'
    timeout_seconds: int = 30
    extraction_model: str = 'claude-haiku-4-5'
    max_content_chars: int = 200000
    stale_run_minutes: int = 10
    refresh_interval_hours: int = 48
    geocode_during_scrape: bool = True
    geocode_batch_size: int = 20
    enrich_batch_size: int = 25
    hydrate_batch_size: int = 20
    continuation_reserve_seconds: int = 300
    deep_scrape_max_pages: int = 10


def _int_setting(environ: Mapping[str, str], name: str, default: int) -> int:
    """
    Read a positive integer setting.

    Args:
        environ: Environment mapping
        name: Variable name
        default: Value used when the variable is unset or blank

    Returns:
        Parsed integer

    Raises:
        ConfigurationError: If the value is not a positive integer
    """
    raw = environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def _bool_setting(environ: Mapping[str, str], name: str, default: bool) -> bool:
    """
    Read a boolean setting (1/0, true/false, yes/no, on/off).

    Raises:
        ConfigurationError: If the value is not a recognized boolean
    """
    raw = environ.get(name)
    if raw is None or raw.strip() == '':
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def load_config(environ: Optional[Mapping[str, str]] = None) -> PipelineConfig:
    """
    Build the pipeline configuration from environment variables.

    Args:
        environ: Mapping to read from (default: os.environ)

    Returns:
        PipelineConfig with every setting resolved

    Raises:
        ConfigurationError: If a required secret is missing or a value is malformed
    """
    if environ is None:
        environ = os.environ

    missing = [name for name in REQUIRED_SECRETS if not environ.get(name, '').strip()]
    if missing:
        raise ConfigurationError(
            f"API keys not configured: {', '.join(missing)}"
        )

    return PipelineConfig(
        anthropic_api_key=environ['ANTHROPIC_API_KEY'].strip(),
        firecrawl_api_key=environ['FIRECRAWL_API_KEY'].strip(),
        scrapfly_api_key=environ['SCRAPFLY_API_KEY'].strip(),
        table_name=environ.get('TABLE_NAME', 'nyc-events'),
        event_bus_name=environ.get('EVENT_BUS_NAME', 'default'),
        log_level=environ.get('LOG_LEVEL', 'INFO'),
        timeout_seconds=_int_setting(environ, 'TIMEOUT_SECONDS', 30),
        extraction_model=environ.get('EXTRACTION_MODEL', 'claude-haiku-4-5'),
        max_content_chars=_int_setting(environ, 'MAX_CONTENT_CHARS', 200000),
        stale_run_minutes=_int_setting(environ, 'STALE_RUN_MINUTES', 10),
        refresh_interval_hours=_int_setting(environ, 'REFRESH_INTERVAL_HOURS', 48),
        geocode_during_scrape=_bool_setting(environ, 'GEOCODE_DURING_SCRAPE', True),
        geocode_batch_size=_int_setting(environ, 'GEOCODE_BATCH_SIZE', 20),
        enrich_batch_size=_int_setting(environ, 'ENRICH_BATCH_SIZE', 25),
        hydrate_batch_size=_int_setting(environ, 'HYDRATE_BATCH_SIZE', 20),
        continuation_reserve_seconds=_int_setting(environ, 'CONTINUATION_RESERVE_SECONDS', 300),
        deep_scrape_max_pages=_int_setting(environ, 'DEEP_SCRAPE_MAX_PAGES', 10),
    )
