"""Pytest configuration and shared fixtures."""

from collections.abc import Iterator
from unittest.mock import AsyncMock, Mock

import pytest

from awsutils.config import get_settings


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Isolate tests from AWS environment variables and the settings cache."""
    for name in ("AWS_REGION", "AWS_PROFILE", "AWS_ENDPOINT_URL", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def sample_instance_id() -> str:
    """Provide a sample EC2 instance ID for testing.

    Returns:
        A valid-format EC2 instance ID.
    """
    return "i-1234567890abcdef0"


@pytest.fixture
def mock_client() -> Mock:
    """Fixture providing a mocked AWSClientWrapper."""
    client = Mock()
    client.call = AsyncMock()
    client.wait = AsyncMock()
    client.paginate = AsyncMock()
    client.region_name = "us-east-1"
    return client
