from __future__ import annotations

from typing import Optional

from .errors import OwnershipError
from .resources import InferenceService, OwnerReference, Resource


def owner_reference_for(parent: InferenceService) -> OwnerReference:
    if not parent.uid:
        raise OwnershipError(f"Parent {parent.kind} {parent.key} has no uid; cannot own resources")
    return OwnerReference(
        api_version=parent.api_version,
        kind=parent.kind,
        name=parent.name,
        uid=parent.uid,
        controller=True,
        block_owner_deletion=True,
    )


def controller_of(resource: Resource) -> Optional[OwnerReference]:
    return next((o for o in resource.owner_references if o.controller), None)


def ensure_controllable(resource: Resource, owner_uid: str) -> None:
    """Raise OwnershipError when a different owner already controls `resource`."""
    current = controller_of(resource)
    if current is not None and current.uid != owner_uid:
        raise OwnershipError(
            f"{resource.kind} {resource.key} is already controlled by "
            f"{current.kind} {current.name} ({current.uid})"
        )


def set_controller_reference(parent: InferenceService, resource: Resource) -> Resource:
    """
    Stamp `parent` as the controlling owner of `resource` (in place; also returned).

    Raises OwnershipError when the parent has no uid, when the namespaces
    differ, or when another owner already controls the resource.
    Re-stamping by the same owner is a no-op.
    """
    ref = owner_reference_for(parent)
    if resource.namespace != parent.namespace:
        raise OwnershipError(
            f"Cross-namespace owner references are not allowed: {parent.key} -> {resource.key}"
        )
    ensure_controllable(resource, ref.uid)
    resource.owner_references = [o for o in resource.owner_references if o.uid != ref.uid] + [ref]
    return resource
