"""
Per-kind equality predicates.

Each comparator lists the fields the reconciler owns, as dotted paths.
Anything not listed (resourceVersion, uid, timestamps, ownerReferences,
annotations written by other actors) is ignored.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Tuple

from .errors import UnknownKindError
from .resources import Resource

_MISSING = object()


class Comparator(ABC):
    """Pure, total equality over two present resources of the same kind."""

    kind: str = ""

    @abstractmethod
    def equal(self, desired: Resource, existing: Resource) -> bool:
        ...


def _lookup(res: Resource, path: str) -> Any:
    head, _, rest = path.partition(".")
    if head == "metadata":
        if rest == "labels":
            return res.labels
        if rest == "annotations":
            return res.annotations
        raise ValueError(f"Unsupported metadata path: {path}")

    value: Any = res.content.get(head, _MISSING)
    for part in rest.split(".") if rest else []:
        if not isinstance(value, dict):
            return _MISSING
        value = value.get(part, _MISSING)
    return value


def _normalize(value: Any) -> Any:
    # a missing section and an empty one are the same intent
    if value is _MISSING or value is None:
        return {}
    return value


class FieldComparator(Comparator):
    """Compares an explicit list of owned field paths."""

    def __init__(self, kind: str, fields: Tuple[str, ...]) -> None:
        if not fields:
            raise ValueError("FieldComparator requires at least one field")
        for f in fields:
            # fail at construction, not inside equal()
            if f.startswith("metadata.") and f not in ("metadata.labels", "metadata.annotations"):
                raise ValueError(f"Unsupported metadata path: {f}")
        self.kind = kind
        self.fields = tuple(fields)

    def equal(self, desired: Resource, existing: Resource) -> bool:
        for path in self.fields:
            if _normalize(_lookup(desired, path)) != _normalize(_lookup(existing, path)):
                return False
        return True

    def __repr__(self) -> str:
        return f"FieldComparator(kind={self.kind!r}, fields={self.fields!r})"


COMPARATOR_REGISTRY: Dict[str, Comparator] = {
    "ConfigMap": FieldComparator("ConfigMap", ("metadata.labels", "data")),
    "AuthConfig": FieldComparator("AuthConfig", ("metadata.labels", "spec")),
    "NetworkPolicy": FieldComparator("NetworkPolicy", ("metadata.labels", "spec")),
    "PeerAuthentication": FieldComparator("PeerAuthentication", ("metadata.labels", "spec")),
}


def get_comparator(kind: str) -> Comparator:
    try:
        return COMPARATOR_REGISTRY[kind]
    except KeyError:
        raise UnknownKindError(f"No comparator registered for kind '{kind}'") from None


def register_comparator(comparator: Comparator) -> None:
    """Add or replace the comparator for `comparator.kind`."""
    if not comparator.kind:
        raise ValueError("Comparator must declare a kind")
    COMPARATOR_REGISTRY[comparator.kind] = comparator
