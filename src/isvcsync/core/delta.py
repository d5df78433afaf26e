"""
Delta processor.

Classifies a (desired, existing) pair into exactly one action:

    desired   existing   comparator   delta
    absent    absent     -            NONE
    present   absent     -            ADDED
    absent    present    -            REMOVED
    present   present    equal        NONE
    present   present    not equal    UPDATED

No I/O. A fetch error never reaches this module; callers raise it first.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .comparators import Comparator
from .resources import Resource


class DeltaType(str, Enum):
    NONE = "none"
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass(frozen=True)
class Delta:
    type: DeltaType

    def is_added(self) -> bool:
        return self.type is DeltaType.ADDED

    def is_updated(self) -> bool:
        return self.type is DeltaType.UPDATED

    def is_removed(self) -> bool:
        return self.type is DeltaType.REMOVED

    def has_changes(self) -> bool:
        return self.type is not DeltaType.NONE


NO_CHANGE = Delta(DeltaType.NONE)


class DeltaProcessor:
    """Stateless; one instance can be shared by every reconciler."""

    def compute_delta(
        self,
        comparator: Comparator,
        desired: Optional[Resource],
        existing: Optional[Resource],
    ) -> Delta:
        if desired is None and existing is None:
            return NO_CHANGE
        if existing is None:
            return Delta(DeltaType.ADDED)
        if desired is None:
            return Delta(DeltaType.REMOVED)
        if comparator.equal(desired, existing):
            return NO_CHANGE
        return Delta(DeltaType.UPDATED)


_DEFAULT_PROCESSOR = DeltaProcessor()


def compute_delta(comparator: Comparator, desired: Optional[Resource], existing: Optional[Resource]) -> Delta:
    return _DEFAULT_PROCESSOR.compute_delta(comparator, desired, existing)
