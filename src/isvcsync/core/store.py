"""
Object store boundary.

Store.get returns None for "not found"; any other read failure raises.
Each mutation is one atomic call. Implementations:

- InMemoryStore: dict-backed, optimistic concurrency on resource_version.
  Used for dry runs and tests; counts calls per operation.
- KubeStore: Kubernetes-style REST API through KubeClient.
"""

from __future__ import annotations

import itertools
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import ConflictError, NotFoundError, StoreError, StoreForbiddenError, UnknownKindError
from .kube_client import HttpError, KubeClient
from .resources import NamespacedName, Resource


class Store(ABC):
    @abstractmethod
    def get(self, kind: str, key: NamespacedName) -> Optional[Resource]:
        ...

    @abstractmethod
    def create(self, resource: Resource) -> Resource:
        ...

    @abstractmethod
    def update(self, resource: Resource) -> Resource:
        ...

    @abstractmethod
    def delete(self, kind: str, key: NamespacedName) -> None:
        ...


# =========================
# In-memory store
# =========================

_StoreKey = Tuple[str, str, str]


class InMemoryStore(Store):
    """Thread-safe in-process store with Kubernetes-like write semantics."""

    def __init__(self, objects: Optional[Iterable[Resource]] = None) -> None:
        self._lock = threading.Lock()
        self._objects: Dict[_StoreKey, Resource] = {}
        self._versions = itertools.count(1)
        self.calls: Dict[str, int] = {"get": 0, "create": 0, "update": 0, "delete": 0}
        for obj in objects or []:
            self.seed(obj)

    @staticmethod
    def _key(kind: str, key: NamespacedName) -> _StoreKey:
        return (kind, key.namespace, key.name)

    def _stamp(self, res: Resource) -> None:
        res.resource_version = str(next(self._versions))
        if not res.uid:
            res.uid = uuid.uuid4().hex

    def seed(self, resource: Resource) -> Resource:
        """Insert or replace without counting a call (test/dry-run fixtures)."""
        with self._lock:
            stored = resource.deep_copy()
            self._stamp(stored)
            self._objects[self._key(stored.kind, stored.key)] = stored
            return stored.deep_copy()

    def get(self, kind: str, key: NamespacedName) -> Optional[Resource]:
        with self._lock:
            self.calls["get"] += 1
            found = self._objects.get(self._key(kind, key))
            return found.deep_copy() if found is not None else None

    def create(self, resource: Resource) -> Resource:
        with self._lock:
            self.calls["create"] += 1
            k = self._key(resource.kind, resource.key)
            if k in self._objects:
                raise ConflictError(f"{resource.kind} {resource.key} already exists", status=409, key=str(resource.key))
            stored = resource.deep_copy()
            stored.uid = ""
            self._stamp(stored)
            self._objects[k] = stored
            return stored.deep_copy()

    def update(self, resource: Resource) -> Resource:
        with self._lock:
            self.calls["update"] += 1
            k = self._key(resource.kind, resource.key)
            current = self._objects.get(k)
            if current is None:
                raise NotFoundError(f"{resource.kind} {resource.key} not found", status=404, key=str(resource.key))
            if resource.resource_version and resource.resource_version != current.resource_version:
                raise ConflictError(
                    f"{resource.kind} {resource.key}: resourceVersion {resource.resource_version} "
                    f"is stale (current {current.resource_version})",
                    status=409,
                    key=str(resource.key),
                )
            stored = resource.deep_copy()
            stored.uid = current.uid
            self._stamp(stored)
            self._objects[k] = stored
            return stored.deep_copy()

    def delete(self, kind: str, key: NamespacedName) -> None:
        with self._lock:
            self.calls["delete"] += 1
            if self._objects.pop(self._key(kind, key), None) is None:
                raise NotFoundError(f"{kind} {key} not found", status=404, key=str(key))

    def list(self, kind: Optional[str] = None) -> List[Resource]:
        with self._lock:
            return [r.deep_copy() for (k, _, _), r in sorted(self._objects.items()) if kind in (None, k)]

    def mutations(self) -> int:
        return self.calls["create"] + self.calls["update"] + self.calls["delete"]


# =========================
# Kubernetes REST store
# =========================

@dataclass(frozen=True)
class KindInfo:
    api_version: str
    plural: str

    def collection_path(self, namespace: str) -> str:
        if "/" in self.api_version:
            return f"/apis/{self.api_version}/namespaces/{namespace}/{self.plural}"
        return f"/api/{self.api_version}/namespaces/{namespace}/{self.plural}"


KIND_REGISTRY: Dict[str, KindInfo] = {
    "ConfigMap": KindInfo("v1", "configmaps"),
    "NetworkPolicy": KindInfo("networking.k8s.io/v1", "networkpolicies"),
    "AuthConfig": KindInfo("authorino.kuadrant.io/v1beta2", "authconfigs"),
    "PeerAuthentication": KindInfo("security.istio.io/v1beta1", "peerauthentications"),
    "ServingRuntime": KindInfo("serving.kserve.io/v1alpha1", "servingruntimes"),
    "InferenceService": KindInfo("serving.kserve.io/v1beta1", "inferenceservices"),
}


def _translate(err: HttpError, what: str) -> StoreError:
    if err.status == 404:
        return NotFoundError(f"{what} not found", status=404, key=what)
    if err.status == 409:
        return ConflictError(f"{what}: conflict: {err.body[:200]}", status=409, key=what)
    if err.status in (401, 403):
        return StoreForbiddenError(f"{what}: forbidden (status={err.status})", status=err.status, key=what)
    return StoreError(f"{what}: {err}", status=err.status, key=what)


class KubeStore(Store):
    """Store backed by the Kubernetes REST layout."""

    def __init__(self, client: KubeClient, kinds: Optional[Dict[str, KindInfo]] = None) -> None:
        self.client = client
        self.kinds: Dict[str, KindInfo] = dict(KIND_REGISTRY)
        if kinds:
            self.kinds.update(kinds)

    def _info(self, kind: str) -> KindInfo:
        try:
            return self.kinds[kind]
        except KeyError:
            raise UnknownKindError(f"No API mapping registered for kind '{kind}'") from None

    def _object_path(self, kind: str, key: NamespacedName) -> str:
        return f"{self._info(kind).collection_path(key.namespace)}/{key.name}"

    def get(self, kind: str, key: NamespacedName) -> Optional[Resource]:
        try:
            obj = self.client.get_json(self._object_path(kind, key))
        except HttpError as e:
            if e.status == 404:
                return None
            raise _translate(e, f"{kind} {key}") from e
        res = Resource.from_manifest(obj)
        # some servers omit kind/apiVersion on single reads
        res.kind = res.kind or kind
        res.api_version = res.api_version or self._info(kind).api_version
        return res

    def create(self, resource: Resource) -> Resource:
        path = self._info(resource.kind).collection_path(resource.namespace)
        try:
            return Resource.from_manifest(self.client.post_json(path, resource.to_manifest()) or resource.to_manifest())
        except HttpError as e:
            raise _translate(e, f"{resource.kind} {resource.key}") from e

    def update(self, resource: Resource) -> Resource:
        path = self._object_path(resource.kind, resource.key)
        try:
            return Resource.from_manifest(self.client.put_json(path, resource.to_manifest()) or resource.to_manifest())
        except HttpError as e:
            raise _translate(e, f"{resource.kind} {resource.key}") from e

    def delete(self, kind: str, key: NamespacedName) -> None:
        try:
            self.client.delete_json(self._object_path(kind, key))
        except HttpError as e:
            raise _translate(e, f"{kind} {key}") from e
