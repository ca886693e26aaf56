"""
Pytest configuration for Storefront assistant tests.

Sets up test environment and global fixtures.
"""
import os
import pytest
from unittest.mock import MagicMock

# Disable config validation during tests
# This allows tests to run without requiring real environment variables
os.environ["VALIDATE_CONFIG"] = "false"

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("ADMIN_API_TOKEN", "test-admin-token")

from storefront.services.api_key_pool import ApiKeyPool  # noqa: E402


class FakeClock:
    """Manually advanced clock for cooldown tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def key_pool(clock):
    """Three-key pool driven by the fake clock."""
    return ApiKeyPool(
        ["key-alpha-0001", "key-bravo-0002", "key-charlie-0003"],
        clock=clock,
    )


@pytest.fixture
def supabase_client():
    """
    Mock Supabase client for testing catalog queries.
    Returns a MagicMock that simulates Supabase client behavior.
    """
    mock_client = MagicMock()
    return mock_client
