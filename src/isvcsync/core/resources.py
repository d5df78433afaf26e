"""
Resource data model.

A Resource is a typed, namespaced entity as persisted by the object store.
Everything that is not apiVersion/kind/metadata/status lives in `content`
(e.g. {"data": {...}} for a ConfigMap, {"spec": {...}} for a NetworkPolicy).

Absence is always Optional[Resource] (None), never a sentinel.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

_ENVELOPE_KEYS = ("apiVersion", "kind", "metadata", "status")
_MODELLED_METADATA = ("name", "namespace", "labels", "annotations", "ownerReferences", "resourceVersion", "uid")


@dataclass(frozen=True)
class NamespacedName:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class OwnerReference:
    api_version: str
    kind: str
    name: str
    uid: str
    controller: bool = True
    block_owner_deletion: bool = True

    def to_manifest(self) -> Dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
            "controller": self.controller,
            "blockOwnerDeletion": self.block_owner_deletion,
        }

    @classmethod
    def from_manifest(cls, obj: Dict[str, Any]) -> "OwnerReference":
        return cls(
            api_version=str(obj.get("apiVersion", "")),
            kind=str(obj.get("kind", "")),
            name=str(obj.get("name", "")),
            uid=str(obj.get("uid", "")),
            controller=bool(obj.get("controller", False)),
            block_owner_deletion=bool(obj.get("blockOwnerDeletion", False)),
        )


@dataclass
class Resource:
    """Typed wrapper around a persisted (or to-be-persisted) object."""

    api_version: str
    kind: str
    name: str
    namespace: str
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    owner_references: List[OwnerReference] = field(default_factory=list)
    content: Dict[str, Any] = field(default_factory=dict)
    # Store-assigned; never set by a desired builder.
    resource_version: str = ""
    uid: str = ""
    # Metadata nobody here models (finalizers, generation, managedFields, ...).
    # Carried through unchanged so a whole-object update does not drop it.
    extra_metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> NamespacedName:
        return NamespacedName(self.namespace, self.name)

    def deep_copy(self) -> "Resource":
        return copy.deepcopy(self)

    # ----- Conversion -----
    def to_manifest(self) -> Dict[str, Any]:
        """Render the store's JSON shape (store-assigned fields only when set)."""
        metadata: Dict[str, Any] = copy.deepcopy(self.extra_metadata)
        metadata.update(name=self.name, namespace=self.namespace)
        if self.labels:
            metadata["labels"] = dict(self.labels)
        if self.annotations:
            metadata["annotations"] = dict(self.annotations)
        if self.owner_references:
            metadata["ownerReferences"] = [o.to_manifest() for o in self.owner_references]
        if self.resource_version:
            metadata["resourceVersion"] = self.resource_version
        if self.uid:
            metadata["uid"] = self.uid

        out: Dict[str, Any] = {"apiVersion": self.api_version, "kind": self.kind, "metadata": metadata}
        out.update(copy.deepcopy(self.content))
        return out

    @classmethod
    def from_manifest(cls, obj: Dict[str, Any]) -> "Resource":
        if not isinstance(obj, dict):
            raise ValueError("Manifest must be a mapping")
        meta = obj.get("metadata") or {}
        if not meta.get("name"):
            raise ValueError("Manifest is missing metadata.name")
        return cls(
            api_version=str(obj.get("apiVersion", "")),
            kind=str(obj.get("kind", "")),
            name=str(meta["name"]),
            namespace=str(meta.get("namespace", "")),
            labels=dict(meta.get("labels") or {}),
            annotations=dict(meta.get("annotations") or {}),
            owner_references=[OwnerReference.from_manifest(o) for o in meta.get("ownerReferences") or []],
            content={k: copy.deepcopy(v) for k, v in obj.items() if k not in _ENVELOPE_KEYS},
            resource_version=str(meta.get("resourceVersion", "") or ""),
            uid=str(meta.get("uid", "") or ""),
            extra_metadata={k: copy.deepcopy(v) for k, v in meta.items() if k not in _MODELLED_METADATA},
        )


@dataclass(frozen=True)
class InferenceService:
    """The parent resource whose intent owned resources are derived from."""

    name: str
    namespace: str
    uid: str = ""
    api_version: str = "serving.kserve.io/v1beta1"
    kind: str = "InferenceService"
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    runtime: Optional[str] = None
    model_format: Optional[str] = None
    url: Optional[str] = None
    address_url: Optional[str] = None
    deleting: bool = False

    @property
    def key(self) -> NamespacedName:
        return NamespacedName(self.namespace, self.name)

    @classmethod
    def from_manifest(cls, obj: Dict[str, Any]) -> "InferenceService":
        if not isinstance(obj, dict):
            raise ValueError("InferenceService manifest must be a mapping")
        meta = obj.get("metadata") or {}
        if not meta.get("name") or not meta.get("namespace"):
            raise ValueError("InferenceService manifest requires metadata.name and metadata.namespace")
        model = ((obj.get("spec") or {}).get("predictor") or {}).get("model") or {}
        status = obj.get("status") or {}
        return cls(
            name=str(meta["name"]),
            namespace=str(meta["namespace"]),
            uid=str(meta.get("uid", "") or ""),
            api_version=str(obj.get("apiVersion") or "serving.kserve.io/v1beta1"),
            kind=str(obj.get("kind") or "InferenceService"),
            labels=dict(meta.get("labels") or {}),
            annotations=dict(meta.get("annotations") or {}),
            runtime=model.get("runtime") or None,
            model_format=(model.get("modelFormat") or {}).get("name") or None,
            url=status.get("url") or None,
            address_url=(status.get("address") or {}).get("url") or None,
            deleting=bool(meta.get("deletionTimestamp")),
        )
