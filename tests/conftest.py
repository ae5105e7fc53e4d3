"""Shared fixtures for the test suite."""
import os
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from pipeline.config import PipelineConfig


@pytest.fixture(autouse=True)
def aws_credentials():
    """Point boto3 at fake credentials so nothing reaches a real account."""
    env_vars = {
        'AWS_ACCESS_KEY_ID': 'testing',
        'AWS_SECRET_ACCESS_KEY': 'testing',
        'AWS_SECURITY_TOKEN': 'testing',
        'AWS_SESSION_TOKEN': 'testing',
        'AWS_DEFAULT_REGION': 'us-east-1',
    }
    with patch.dict(os.environ, env_vars):
        yield


@pytest.fixture
def config():
    """PipelineConfig with test secrets and defaults."""
    return PipelineConfig(
        anthropic_api_key='test-anthropic',
        firecrawl_api_key='test-firecrawl',
        scrapfly_api_key='test-scrapfly',
        table_name='test-nyc-events',
    )


@pytest.fixture
def reference_now():
    """Saturday, November 1, 2025, noon in New York."""
    return datetime(2025, 11, 1, 16, 0, tzinfo=timezone.utc)
