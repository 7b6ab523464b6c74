"""
Shared pytest fixtures and configuration for alertsync tests.

This module provides:
- An isolated environment (no stray ALERTSYNC_* / NEWRELIC_* variables)
- In-memory store and fake New Relic API fixtures
- Collaborator bundles with zero-delay conflict retries

Usage:
    Fixtures are auto-discovered by pytest::

        def test_something(store, api, deps):
            ...
"""

from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import pytest

from alertsync.controller import Collaborators
from alertsync.controller.finalizer import FinalizerManager
from alertsync.controller.status import StatusUpdater
from alertsync.execution.retry import ExponentialBackoff
from alertsync.newrelic.channels import ChannelRepository
from alertsync.newrelic.policies import PolicyRepository
from alertsync.store.memory import MemoryResourceStore
from tests._support import FakeNewRelicAPI


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests without explicit markers as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Environment isolation
# =============================================================================


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Drop operator env vars and run from a temp dir (no stray .env)."""
    for key in list(os.environ):
        if key.startswith("ALERTSYNC_") or key == "NEWRELIC_ADMIN_KEY":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    yield


# =============================================================================
# Collaborators
# =============================================================================


def no_sleep(_: float) -> None:
    return None


@pytest.fixture
def store() -> MemoryResourceStore:
    return MemoryResourceStore()


@pytest.fixture
def api() -> FakeNewRelicAPI:
    return FakeNewRelicAPI()


@pytest.fixture
def conflict_strategy() -> ExponentialBackoff:
    return ExponentialBackoff(max_retries=5, base_delay=0.0, max_delay=0.0, jitter=False)


@pytest.fixture
def deps(store, api, conflict_strategy) -> Collaborators:
    return Collaborators(
        store=store,
        policies=PolicyRepository(api),
        channels=ChannelRepository(api),
        status=StatusUpdater(store, conflict_strategy, sleep=no_sleep),
        finalizers=FinalizerManager(store, conflict_strategy, sleep=no_sleep),
    )
