"""Shared test fixtures."""

import pytest

from devpilot.llm.client import _reset_provider
from devpilot.memory.store import ConversationStore


@pytest.fixture
def store(tmp_path):
    """Create a ConversationStore rooted in a temporary directory."""
    ConversationStore._reset()
    s = ConversationStore(
        root=tmp_path / "memory",
        max_messages=20,
        lock_timeout=1.0,
        poll_interval=0.01,
    )
    ConversationStore._instance = s
    yield s
    ConversationStore._reset()


@pytest.fixture(autouse=True)
def _fresh_provider():
    """Never leak a cached completion provider between tests."""
    _reset_provider()
    yield
    _reset_provider()
