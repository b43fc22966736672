"""Shared test fixtures for the computation engine."""

import pytest

from calcengine.config import EngineSettings, WorkerSettings
from calcengine.dispatcher import TaskDispatcher
from calcengine.models import TaskResponse


@pytest.fixture
def small_chunk_settings() -> EngineSettings:
    """EngineSettings with tiny sort thresholds so chunking runs on short inputs."""
    return EngineSettings(sort_direct_threshold=10, sort_chunk_size=4)


@pytest.fixture
def emitted() -> list[TaskResponse]:
    """Collects every response a dispatcher emits."""
    return []


@pytest.fixture
def dispatcher(small_chunk_settings: EngineSettings, emitted: list[TaskResponse]) -> TaskDispatcher:
    """TaskDispatcher wired to the ``emitted`` list."""
    return TaskDispatcher(small_chunk_settings, emit=emitted.append)


@pytest.fixture
def worker_settings() -> WorkerSettings:
    """Two-worker pool with no default timeout."""
    return WorkerSettings(pool_size=2, task_timeout_seconds=None)
