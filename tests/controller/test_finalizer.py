"""Tests for the finalizer marker lifecycle."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from alertsync.controller.finalizer import FinalizerManager
from alertsync.core.errors import (
    ConflictError,
    ConflictRetriesExhaustedError,
    ExternalAPIError,
    ResourceNotFoundError,
)
from alertsync.domain.meta import FINALIZER, ResourceStatus
from alertsync.domain.policy import AlertPolicy
from tests._support import make_policy


def no_sleep(_: float) -> None:
    return None


@pytest.fixture
def finalizers(store, conflict_strategy) -> FinalizerManager:
    return FinalizerManager(store, conflict_strategy, sleep=no_sleep)


def deleting(store, finalizers, external_id=7):
    created = store.apply(make_policy())
    created = finalizers.ensure(created)
    created.status = ResourceStatus.ready(external_id, "v")
    store.update_status(created)
    return store.request_deletion(AlertPolicy.KIND, created.name_ref)


class TestEnsure:
    def test_adds_marker(self, store, finalizers):
        created = store.apply(make_policy())

        ensured = finalizers.ensure(created)

        assert ensured.metadata.finalizers == [FINALIZER]
        assert store.get(AlertPolicy.KIND, created.name_ref).has_finalizer()

    def test_present_marker_is_not_rewritten(self, store, finalizers):
        ensured = finalizers.ensure(store.apply(make_policy()))
        again = finalizers.ensure(ensured)
        assert again.metadata.resource_version == ensured.metadata.resource_version

    def test_conflict_returns_none(self, store, finalizers):
        stale = store.apply(make_policy())
        store.apply(make_policy(labels={"team": "core"}))

        assert finalizers.ensure(stale) is None
        assert not store.get(AlertPolicy.KIND, stale.name_ref).has_finalizer()

    def test_custom_marker(self, store, conflict_strategy):
        manager = FinalizerManager(store, conflict_strategy, marker="example.com/cleanup", sleep=no_sleep)
        ensured = manager.ensure(store.apply(make_policy()))
        assert ensured.metadata.finalizers == ["example.com/cleanup"]


class TestFinalize:
    def test_teardown_then_release(self, store, finalizers):
        resource = deleting(store, finalizers)
        teardown = MagicMock()

        finalizers.finalize(resource, teardown)

        teardown.assert_called_once_with(7)
        with pytest.raises(ResourceNotFoundError):
            store.get(AlertPolicy.KIND, resource.name_ref)

    def test_teardown_failure_keeps_marker(self, store, finalizers):
        resource = deleting(store, finalizers)
        teardown = MagicMock(side_effect=ExternalAPIError(503, "unavailable"))

        with pytest.raises(ExternalAPIError):
            finalizers.finalize(resource, teardown)

        current = store.get(AlertPolicy.KIND, resource.name_ref)
        assert current.has_finalizer()
        assert current.is_deleting

    def test_unknown_external_id_is_passed_through(self, store, finalizers):
        created = finalizers.ensure(store.apply(make_policy()))
        resource = store.request_deletion(AlertPolicy.KIND, created.name_ref)
        teardown = MagicMock()

        finalizers.finalize(resource, teardown)

        teardown.assert_called_once_with(None)

    def test_conflict_on_release_refetches(self, store, finalizers):
        resource = deleting(store, finalizers)
        store.apply(make_policy(labels={"changed": "yes"}))

        finalizers.finalize(resource, MagicMock())

        with pytest.raises(ResourceNotFoundError):
            store.get(AlertPolicy.KIND, resource.name_ref)

    def test_other_finalizers_are_kept(self, store, finalizers):
        created = finalizers.ensure(store.apply(make_policy()))
        created.metadata.finalizers.append("someone-else")
        store.update(created)
        resource = store.request_deletion(AlertPolicy.KIND, created.name_ref)

        finalizers.finalize(resource, MagicMock())

        assert store.get(AlertPolicy.KIND, resource.name_ref).metadata.finalizers == ["someone-else"]

    def test_release_with_other_finalizers_clears_external_id(self, store, finalizers):
        created = finalizers.ensure(store.apply(make_policy()))
        created.metadata.finalizers.append("someone-else")
        created = store.update(created)
        created.status = ResourceStatus.ready(7, "v")
        store.update_status(created)
        resource = store.request_deletion(AlertPolicy.KIND, created.name_ref)

        finalizers.finalize(resource, MagicMock())

        remaining = store.get(AlertPolicy.KIND, resource.name_ref)
        assert remaining.metadata.finalizers == ["someone-else"]
        assert remaining.status.external_id is None

    def test_already_removed_is_success(self, conflict_strategy):
        resource = make_policy()
        resource.metadata.finalizers = [FINALIZER]
        store = MagicMock()
        store.update.side_effect = ResourceNotFoundError("AlertPolicy", "default", "cpu")

        FinalizerManager(store, conflict_strategy, sleep=no_sleep).finalize(resource, MagicMock())

    def test_release_retries_are_bounded(self, conflict_strategy):
        resource = make_policy()
        resource.metadata.finalizers = [FINALIZER]
        store = MagicMock()
        store.update.side_effect = ConflictError("AlertPolicy", "default", "cpu", 1, 2)
        store.get.return_value = resource

        with pytest.raises(ConflictRetriesExhaustedError):
            FinalizerManager(store, conflict_strategy, sleep=no_sleep).finalize(resource, MagicMock())
        assert store.update.call_count == conflict_strategy.max_retries + 1
