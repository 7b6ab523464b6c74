"""Write semantics shared by every resource store backend."""

from __future__ import annotations

import pytest

from alertsync.core.errors import ConflictError, ResourceNotFoundError
from alertsync.domain.meta import FINALIZER, NamespacedName, ResourceState, ResourceStatus
from alertsync.domain.policy import AlertPolicy
from alertsync.store import MemoryResourceStore, SqliteResourceStore
from tests._support import make_policy, make_slack_channel, nrql

REF = NamespacedName("default", "cpu")


@pytest.fixture(params=["memory", "sqlite"])
def backend(request):
    if request.param == "memory":
        yield MemoryResourceStore()
    else:
        with SqliteResourceStore() as store:
            yield store


def with_finalizer(backend, resource):
    resource.metadata.finalizers.append(FINALIZER)
    return backend.update(resource)


# ── apply ────────────────────────────────────────────────────────────────


class TestApply:
    def test_create_initialises_metadata(self, backend):
        submitted = make_policy()
        submitted.metadata.finalizers = ["stray"]
        submitted.status = ResourceStatus(external_id=9)

        created = backend.apply(submitted)

        assert created.metadata.resource_version == 1
        assert created.metadata.generation == 1
        assert created.metadata.finalizers == []
        assert created.status == ResourceStatus()

    def test_spec_change_bumps_generation(self, backend):
        backend.apply(make_policy())
        updated = backend.apply(make_policy(nrql_conditions=[nrql()]))
        assert updated.metadata.generation == 2
        assert updated.metadata.resource_version == 2

    def test_label_change_keeps_generation(self, backend):
        backend.apply(make_policy())
        updated = backend.apply(make_policy(labels={"team": "core"}))
        assert updated.metadata.generation == 1
        assert updated.metadata.labels == {"team": "core"}

    def test_keeps_status_and_finalizers(self, backend):
        created = backend.apply(make_policy())
        created = with_finalizer(backend, created)
        created.status = ResourceStatus.ready(5, "v1")
        backend.update_status(created)

        reapplied = backend.apply(make_policy(nrql_conditions=[nrql()]))

        assert reapplied.metadata.finalizers == [FINALIZER]
        assert reapplied.status.external_id == 5

    def test_stale_version_conflicts(self, backend):
        backend.apply(make_policy())
        backend.apply(make_policy(labels={"a": "b"}))
        stale = make_policy()
        stale.metadata.resource_version = 1
        with pytest.raises(ConflictError):
            backend.apply(stale)

    def test_returned_object_is_a_copy(self, backend):
        created = backend.apply(make_policy())
        created.spec.name = "mutated"
        assert backend.get(AlertPolicy.KIND, REF).spec.name == "cpu policy"


# ── update / update_status ───────────────────────────────────────────────


class TestUpdate:
    def test_only_labels_and_finalizers_written(self, backend):
        created = backend.apply(make_policy())
        created.spec.name = "ignored"
        created.status = ResourceStatus(external_id=1)
        created.metadata.finalizers = [FINALIZER]

        updated = backend.update(created)

        assert updated.metadata.finalizers == [FINALIZER]
        assert updated.spec.name == "cpu policy"
        assert updated.status.external_id is None
        assert updated.metadata.resource_version == 2

    def test_status_write_keeps_metadata(self, backend):
        created = with_finalizer(backend, backend.apply(make_policy()))
        created.metadata.finalizers = []
        created.status = ResourceStatus.pending(None, "v1")

        updated = backend.update_status(created)

        assert updated.status.state == ResourceState.PENDING
        assert updated.metadata.finalizers == [FINALIZER]

    def test_stale_status_write_conflicts(self, backend):
        created = backend.apply(make_policy())
        backend.update_status(created)
        with pytest.raises(ConflictError) as exc_info:
            backend.update_status(created)
        assert exc_info.value.actual == 2

    def test_missing_object(self, backend):
        with pytest.raises(ResourceNotFoundError):
            backend.update(make_policy())


# ── deletion ─────────────────────────────────────────────────────────────


class TestDeletion:
    def test_without_finalizer_removes_at_once(self, backend):
        backend.apply(make_policy())
        assert backend.request_deletion(AlertPolicy.KIND, REF) is None
        with pytest.raises(ResourceNotFoundError):
            backend.get(AlertPolicy.KIND, REF)

    def test_with_finalizer_marks_deleting(self, backend):
        with_finalizer(backend, backend.apply(make_policy()))

        marked = backend.request_deletion(AlertPolicy.KIND, REF)

        assert marked.is_deleting
        assert backend.get(AlertPolicy.KIND, REF).is_deleting

    def test_repeated_request_is_idempotent(self, backend):
        with_finalizer(backend, backend.apply(make_policy()))
        first = backend.request_deletion(AlertPolicy.KIND, REF)
        second = backend.request_deletion(AlertPolicy.KIND, REF)
        assert second.metadata.resource_version == first.metadata.resource_version

    def test_removing_last_finalizer_deletes(self, backend):
        with_finalizer(backend, backend.apply(make_policy()))
        marked = backend.request_deletion(AlertPolicy.KIND, REF)
        marked.metadata.finalizers = []

        backend.update(marked)

        with pytest.raises(ResourceNotFoundError):
            backend.get(AlertPolicy.KIND, REF)

    def test_apply_does_not_clear_deletion(self, backend):
        with_finalizer(backend, backend.apply(make_policy()))
        backend.request_deletion(AlertPolicy.KIND, REF)
        assert backend.apply(make_policy(labels={"x": "y"})).is_deleting


# ── list ─────────────────────────────────────────────────────────────────


class TestList:
    def test_filters_kind_namespace_and_selector(self, backend):
        backend.apply(make_policy("a", labels={"team": "core"}))
        backend.apply(make_policy("b", labels={"team": "web"}))
        backend.apply(make_policy("c", namespace="other", labels={"team": "core"}))
        backend.apply(make_slack_channel())

        names = [p.metadata.name for p in backend.list(AlertPolicy.KIND, "default", {"team": "core"})]
        assert names == ["a"]
        assert len(backend.list(AlertPolicy.KIND)) == 3

    def test_empty_selector_matches_all_in_namespace(self, backend):
        backend.apply(make_policy("b"))
        backend.apply(make_policy("a", labels={"x": "1"}))
        assert [p.metadata.name for p in backend.list(AlertPolicy.KIND, "default", {})] == ["a", "b"]
