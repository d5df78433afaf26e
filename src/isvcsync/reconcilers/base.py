"""
Generic sub-resource reconciler.

One pass, strictly sequential:
  build desired -> fetch existing -> compute delta -> apply (at most one store call)

- build_desired may return None: the parent no longer wants the resource.
- "not found" on fetch is a normal outcome (existing = None).
- Store failures propagate unmodified; there is no retry here. The next pass
  re-derives the delta and retries naturally.

Precondition: at most one concurrent pass per parent (serialized by the caller).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..core.comparators import Comparator, get_comparator
from ..core.delta import NO_CHANGE, Delta, DeltaProcessor
from ..core.errors import IsvcSyncError, NotFoundError
from ..core.logging_setup import null_logger, with_context
from ..core.ownership import controller_of, ensure_controllable
from ..core.resources import InferenceService, NamespacedName, Resource
from ..core.store import Store


class SubResourceReconciler(ABC):
    """
    Subclasses supply the strategies:
      - kind / owned_sections (class attributes)
      - resource_name(parent)
      - build_desired(parent)
    and may override merge() and skip_reason().
    """

    kind: str = ""
    # top-level content sections written by this reconciler; everything else is preserved on update
    owned_sections: tuple = ()

    def __init__(
        self,
        store: Store,
        *,
        logger: Optional[logging.LoggerAdapter] = None,
        comparator: Optional[Comparator] = None,
        delta_processor: Optional[DeltaProcessor] = None,
    ) -> None:
        if not self.kind:
            raise TypeError(f"{type(self).__name__} must declare a kind")
        self.store = store
        self.log = with_context(logger or null_logger(), kind=self.kind)
        self.comparator = comparator or get_comparator(self.kind)
        self.delta_processor = delta_processor or DeltaProcessor()

    # ----- Strategies -----
    @abstractmethod
    def resource_name(self, parent: InferenceService) -> str:
        ...

    @abstractmethod
    def build_desired(self, parent: InferenceService) -> Optional[Resource]:
        ...

    def skip_reason(self, parent: InferenceService) -> Optional[str]:
        """Return a reason to leave the store untouched this pass (None = proceed)."""
        if parent.deleting:
            return "parent is being deleted"
        return None

    def merge(self, existing: Resource, desired: Resource) -> Resource:
        """
        Start from existing (keeps resourceVersion, uid, annotations, owner refs,
        extra metadata, unowned sections) and overwrite labels and owned sections
        from desired. Owner references are left as they are; an object controlled
        by another owner is refused with OwnershipError.
        """
        owner = controller_of(desired)
        if owner is not None:
            ensure_controllable(existing, owner.uid)
        merged = existing.deep_copy()
        merged.labels = dict(desired.labels)
        for section in self.owned_sections:
            if section in desired.content:
                merged.content[section] = desired.deep_copy().content[section]
            else:
                merged.content.pop(section, None)
        return merged

    # ----- Pass -----
    def key_for(self, parent: InferenceService) -> NamespacedName:
        return NamespacedName(parent.namespace, self.resource_name(parent))

    def fetch_existing(self, parent: InferenceService) -> Optional[Resource]:
        return self.store.get(self.kind, self.key_for(parent))

    def reconcile(self, parent: InferenceService) -> Delta:
        """Run one pass for `parent`; return the delta that was applied."""
        log = with_context(self.log, namespace=parent.namespace, parent=parent.name)

        reason = self.skip_reason(parent)
        if reason:
            log.debug("Skipping pass: %s", reason)
            return NO_CHANGE

        log.debug("create desired state")
        desired = self.build_desired(parent)

        log.debug("get existing state")
        existing = self.fetch_existing(parent)

        log.debug("process delta")
        delta = self.delta_processor.compute_delta(self.comparator, desired, existing)
        self.apply(log, delta, desired, existing)
        return delta

    def apply(
        self,
        log: logging.LoggerAdapter,
        delta: Delta,
        desired: Optional[Resource],
        existing: Optional[Resource],
    ) -> None:
        if not delta.has_changes():
            log.debug("No delta found for %s", self.kind)
            return

        if delta.is_added() and desired is not None:
            log.info("Delta found: create %s %s", self.kind, desired.key)
            self.store.create(desired)
        elif delta.is_updated() and desired is not None and existing is not None:
            log.info("Delta found: update %s %s", self.kind, existing.key)
            self.store.update(self.merge(existing, desired))
        elif delta.is_removed() and existing is not None:
            log.info("Delta found: delete %s %s", self.kind, existing.key)
            self.store.delete(self.kind, existing.key)
        else:
            raise IsvcSyncError(
                f"{delta.type.name} delta for {self.kind} does not match the states "
                f"(desired={'set' if desired else 'none'}, existing={'set' if existing else 'none'})"
            )

    def remove(self, parent: InferenceService) -> None:
        """Delete the owned resource now; already absent counts as success."""
        key = self.key_for(parent)
        log = with_context(self.log, namespace=parent.namespace, parent=parent.name)
        try:
            self.store.delete(self.kind, key)
        except NotFoundError:
            log.debug("%s %s already absent", self.kind, key)
            return
        log.info("Removed %s %s", self.kind, key)


class NoResourceRemoval:
    """Mixin for kinds cleaned up only by ownership cascade: remove() does nothing."""

    def remove(self, parent: InferenceService) -> None:
        return None
