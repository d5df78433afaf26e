from typing import List, Optional

import pytest

from isvcsync.core.delta import Delta, DeltaType
from isvcsync.core.errors import ConflictError, IsvcSyncError, NotFoundError, StoreError
from isvcsync.core.resources import NamespacedName, Resource
from isvcsync.core.store import InMemoryStore
from isvcsync.reconcilers.base import SubResourceReconciler

from conftest import make_configmap, make_isvc

KEY = NamespacedName("ns1", "mnist-cfg")


class _RecordingStore(InMemoryStore):
    """InMemoryStore that keeps the arguments of every mutation."""

    def __init__(self, objects=None):
        super().__init__(objects)
        self.created: List[Resource] = []
        self.updated: List[Resource] = []
        self.deleted: List[NamespacedName] = []

    def create(self, resource):
        self.created.append(resource.deep_copy())
        return super().create(resource)

    def update(self, resource):
        self.updated.append(resource.deep_copy())
        return super().update(resource)

    def delete(self, kind, key):
        self.deleted.append(key)
        return super().delete(kind, key)


class _ConfigReconciler(SubResourceReconciler):
    """Owns `<parent>-cfg` with data taken from `self.wanted` (None = not wanted)."""

    kind = "ConfigMap"
    owned_sections = ("data",)

    def __init__(self, store, wanted: Optional[dict] = None, labels: Optional[dict] = None):
        super().__init__(store)
        self.wanted = wanted
        self.labels = labels or {"app": "test"}

    def resource_name(self, parent):
        return parent.name + "-cfg"

    def build_desired(self, parent):
        if self.wanted is None:
            return None
        return make_configmap(self.resource_name(parent), parent.namespace, self.wanted, self.labels)


def _existing(data, labels=None, annotations=None):
    cm = make_configmap("mnist-cfg", "ns1", data, labels or {"app": "test"})
    cm.annotations = dict(annotations or {})
    return cm


def test_scenario_added_creates_once_with_built_fields():
    store = _RecordingStore()
    delta = _ConfigReconciler(store, {"x": "a"}).reconcile(make_isvc())

    assert delta.is_added()
    assert store.calls == {"get": 1, "create": 1, "update": 0, "delete": 0}
    [created] = store.created
    assert created.key == KEY
    assert created.content == {"data": {"x": "a"}}
    assert created.labels == {"app": "test"}


def test_scenario_updated_keeps_concurrency_token():
    store = _RecordingStore([_existing({"x": "a"})])
    before = store.get("ConfigMap", KEY)

    delta = _ConfigReconciler(store, {"x": "b"}).reconcile(make_isvc())

    assert delta.is_updated()
    assert store.calls["update"] == 1 and store.mutations() == 1
    [sent] = store.updated
    assert sent.content["data"] == {"x": "b"}
    assert sent.resource_version == before.resource_version
    assert sent.uid == before.uid


def test_update_preserves_unowned_state():
    existing = _existing({"x": "a"}, annotations={"note": "kept"})
    existing.content["binaryData"] = {"blob": "AAAA"}
    store = _RecordingStore([existing])

    _ConfigReconciler(store, {"x": "b"}).reconcile(make_isvc())

    after = store.get("ConfigMap", KEY)
    assert after.annotations == {"note": "kept"}
    assert after.content["binaryData"] == {"blob": "AAAA"}
    assert after.content["data"] == {"x": "b"}


def test_label_drift_is_repaired():
    store = _RecordingStore([_existing({"x": "a"}, labels={"app": "hijacked"})])
    delta = _ConfigReconciler(store, {"x": "a"}).reconcile(make_isvc())
    assert delta.is_updated()
    assert store.get("ConfigMap", KEY).labels == {"app": "test"}


def test_scenario_removed_deletes_existing_identity():
    store = _RecordingStore([_existing({"x": "a"})])
    delta = _ConfigReconciler(store, None).reconcile(make_isvc())

    assert delta.is_removed()
    assert store.deleted == [KEY]
    assert store.get("ConfigMap", KEY) is None


def test_scenario_equal_issues_no_mutation():
    store = _RecordingStore([_existing({"x": "a"})])
    delta = _ConfigReconciler(store, {"x": "a"}).reconcile(make_isvc())

    assert delta.type is DeltaType.NONE
    # the single read is the fetch of existing state
    assert store.calls == {"get": 1, "create": 0, "update": 0, "delete": 0}


def test_both_absent_is_a_no_op():
    store = _RecordingStore()
    delta = _ConfigReconciler(store, None).reconcile(make_isvc())
    assert delta.type is DeltaType.NONE
    assert store.mutations() == 0


class _RacingStore(InMemoryStore):
    """Another writer commits between our read and our update."""

    def __init__(self, objects=None):
        super().__init__(objects)
        self.raised: List[ConflictError] = []

    def update(self, resource):
        self.seed(_existing({"x": "external"}, labels={"app": "external"}))
        try:
            return super().update(resource)
        except ConflictError as e:
            self.raised.append(e)
            raise


def test_scenario_conflict_propagates_unmodified_without_partial_write():
    store = _RacingStore([_existing({"x": "a"})])

    with pytest.raises(ConflictError) as exc:
        _ConfigReconciler(store, {"x": "b"}, labels={"app": "ours"}).reconcile(make_isvc())

    assert exc.value is store.raised[0]
    after = store.get("ConfigMap", KEY)
    assert after.content["data"] == {"x": "external"}
    assert after.labels == {"app": "external"}


@pytest.mark.parametrize(
    "seed, wanted",
    [
        ([], {"x": "a"}),
        ([_existing({"x": "a"})], {"x": "b"}),
        ([_existing({"x": "a"})], None),
        ([_existing({"x": "a"})], {"x": "a"}),
        ([], None),
    ],
)
def test_second_pass_is_always_no_change(seed, wanted):
    store = InMemoryStore(seed)
    rec = _ConfigReconciler(store, wanted)
    rec.reconcile(make_isvc())
    mutations = store.mutations()

    assert rec.reconcile(make_isvc()).type is DeltaType.NONE
    assert store.mutations() == mutations


def test_fetch_error_aborts_before_any_mutation():
    class _Unreadable(InMemoryStore):
        def get(self, kind, key):
            raise StoreError("api down", status=503)

    store = _Unreadable()
    with pytest.raises(StoreError):
        _ConfigReconciler(store, {"x": "a"}).reconcile(make_isvc())
    assert store.mutations() == 0


def test_deleting_parent_skips_pass():
    store = _RecordingStore([_existing({"x": "a"})])
    delta = _ConfigReconciler(store, {"x": "b"}).reconcile(make_isvc(deleting=True))
    assert delta.type is DeltaType.NONE
    assert store.calls["get"] == 0


def test_remove_deletes_and_tolerates_absence():
    store = _RecordingStore([_existing({"x": "a"})])
    rec = _ConfigReconciler(store, {"x": "a"})
    rec.remove(make_isvc())
    assert store.get("ConfigMap", KEY) is None
    rec.remove(make_isvc())  # already gone: NotFoundError swallowed
    assert store.deleted == [KEY, KEY]


def test_reconciler_requires_kind():
    class _NoKind(_ConfigReconciler):
        kind = ""

    with pytest.raises(TypeError):
        _NoKind(InMemoryStore())


def test_not_found_on_update_propagates():
    class _Vanishing(_RecordingStore):
        def update(self, resource):
            InMemoryStore.delete(self, resource.kind, resource.key)
            return super().update(resource)

    store = _Vanishing([_existing({"x": "a"})])
    with pytest.raises(NotFoundError):
        _ConfigReconciler(store, {"x": "b"}).reconcile(make_isvc())


@pytest.mark.parametrize(
    "delta_type, desired, existing",
    [
        (DeltaType.ADDED, None, None),
        (DeltaType.UPDATED, "cm", None),
        (DeltaType.UPDATED, None, "cm"),
        (DeltaType.REMOVED, "cm", None),
    ],
)
def test_delta_inconsistent_with_states_is_rejected(delta_type, desired, existing):
    store = _RecordingStore()
    rec = _ConfigReconciler(store, {"x": "a"})
    cm = make_configmap("mnist-cfg", "ns1", {"x": "a"})

    with pytest.raises(IsvcSyncError):
        rec.apply(rec.log, Delta(delta_type), cm if desired else None, cm if existing else None)
    assert store.mutations() == 0
