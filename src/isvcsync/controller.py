"""
In-process pass runner for one InferenceService.

Stands in for the host orchestrator when driven from the CLI: runs every
sub-resource reconciler once, in order, and records one result per kind.
A failing kind does not stop the others. No scheduling and no retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .core.config import AppConfig
from .core.delta import Delta, DeltaType
from .core.errors import IsvcSyncError
from .core.logging_setup import null_logger, with_context
from .core.resources import InferenceService
from .core.store import Store
from .core.templates import TemplateBundle
from .reconcilers.authconfig import AuthConfigReconciler
from .reconcilers.base import SubResourceReconciler
from .reconcilers.metrics_dashboard import MetricsDashboardReconciler
from .reconcilers.network_policy import NetworkPolicyReconciler
from .reconcilers.peer_authentication import PeerAuthenticationReconciler

STATUS_ORDER = ("CREATED", "UPDATED", "DELETED", "UNCHANGED", "REMOVED", "ERROR")

_STATUS_BY_DELTA = {
    DeltaType.ADDED: "CREATED",
    DeltaType.UPDATED: "UPDATED",
    DeltaType.REMOVED: "DELETED",
    DeltaType.NONE: "UNCHANGED",
}


@dataclass(frozen=True)
class PassResult:
    kind: str
    name: str
    status: str
    error: str = ""


def status_for(delta: Delta) -> str:
    return _STATUS_BY_DELTA[delta.type]


class InferenceServiceController:
    def __init__(
        self,
        reconcilers: Sequence[SubResourceReconciler],
        *,
        logger: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        self.reconcilers = list(reconcilers)
        self.log = logger or null_logger()

    def reconcile(self, parent: InferenceService) -> Tuple[List[PassResult], Dict[str, int]]:
        """One pass over every owned kind; remove() instead when the parent is being deleted."""
        log = with_context(self.log, namespace=parent.namespace, parent=parent.name)
        log.info("Reconciling InferenceService %s", parent.key)

        results: List[PassResult] = []
        counts: Dict[str, int] = {}
        for rec in self.reconcilers:
            name = rec.resource_name(parent)
            try:
                if parent.deleting:
                    rec.remove(parent)
                    res = PassResult(rec.kind, name, "REMOVED")
                else:
                    res = PassResult(rec.kind, name, status_for(rec.reconcile(parent)))
            except IsvcSyncError as e:
                log.error("Reconcile of %s %s failed: %s", rec.kind, name, e)
                res = PassResult(rec.kind, name, "ERROR", error=str(e))
            self._accumulate(results, counts, res)

        log.info("InferenceService %s reconciled: %s", parent.key, summarize_counts(counts))
        return results, counts

    def remove(self, parent: InferenceService) -> Tuple[List[PassResult], Dict[str, int]]:
        log = with_context(self.log, namespace=parent.namespace, parent=parent.name)
        results: List[PassResult] = []
        counts: Dict[str, int] = {}
        for rec in self.reconcilers:
            name = rec.resource_name(parent)
            try:
                rec.remove(parent)
                res = PassResult(rec.kind, name, "REMOVED")
            except IsvcSyncError as e:
                log.error("Remove of %s %s failed: %s", rec.kind, name, e)
                res = PassResult(rec.kind, name, "ERROR", error=str(e))
            self._accumulate(results, counts, res)
        return results, counts

    @staticmethod
    def _accumulate(results: List[PassResult], counts: Dict[str, int], res: PassResult) -> None:
        results.append(res)
        counts[res.status] = counts.get(res.status, 0) + 1


def build_reconcilers(
    cfg: AppConfig,
    store: Store,
    templates: TemplateBundle,
    logger: Optional[logging.LoggerAdapter] = None,
) -> List[SubResourceReconciler]:
    return [
        MetricsDashboardReconciler(
            store,
            templates,
            rate_interval=cfg.monitoring.rate_interval,
            operator_namespace=cfg.cluster.operator_namespace,
            logger=logger,
        ),
        AuthConfigReconciler(store, templates, logger=logger),
        NetworkPolicyReconciler(
            store,
            monitoring_namespace=cfg.monitoring.monitoring_namespace,
            operator_namespace=cfg.cluster.operator_namespace,
            logger=logger,
        ),
        PeerAuthenticationReconciler(store, logger=logger),
    ]


def summarize_counts(counts: Dict[str, int]) -> str:
    return " | ".join(f"{k}={counts.get(k, 0)}" for k in STATUS_ORDER)
