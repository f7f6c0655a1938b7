"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.helpers import MemoryDocumentStore, RecordingChannel


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Resolved project root inside the pytest temporary directory."""

    root = tmp_path.resolve() / "app"
    root.mkdir()
    return root


@pytest.fixture
def memory_store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()
