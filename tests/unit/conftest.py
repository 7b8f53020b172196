"""Unit test fixtures (stub policies and patched delays).

Provides lightweight policies for ordering/composition tests and keeps
retry tests from sleeping.
"""

from unittest.mock import AsyncMock, patch

import pytest


class RecordingPolicy:
    """Policy appending "<name>-in"/"<name>-out" to a shared log."""

    def __init__(self, name: str, log: list[str] | None = None):
        self.name = name
        self.log = log if log is not None else []

    async def send_request(self, request, call_next):
        self.log.append(f"{self.name}-in")
        response = await call_next(request)
        self.log.append(f"{self.name}-out")
        return response

    def __repr__(self) -> str:
        return f"RecordingPolicy({self.name!r})"


@pytest.fixture
def make_policy():
    """Factory fixture for RecordingPolicy sharing one log per test."""
    log: list[str] = []

    def _create(name: str) -> RecordingPolicy:
        return RecordingPolicy(name, log)

    _create.log = log
    return _create


@pytest.fixture
def no_retry_delay():
    """Patch the retry engine's delay so tests never sleep."""
    with patch("storage_pipeline.retry.engine.delay", new=AsyncMock()) as mock_delay:
        yield mock_delay


@pytest.fixture
def no_storage_delay():
    """Patch the storage retry policy's delay so tests never sleep."""
    with patch("storage_pipeline.storage.retry_policy.delay", new=AsyncMock()) as mock_delay:
        yield mock_delay
