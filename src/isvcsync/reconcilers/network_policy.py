from __future__ import annotations

import logging
from typing import Optional

from ..core.errors import BuildError, LookupFailure
from ..core.lookups import MODEL_MESH, DeploymentModeResolver
from ..core.ownership import set_controller_reference
from ..core.resources import InferenceService, Resource
from ..core.store import Store
from .base import SubResourceReconciler

NAME_SUFFIX = "-allow-monitoring"
ISVC_POD_LABEL = "serving.kserve.io/inferenceservice"
MANAGED_LABELS = {"app.kubernetes.io/managed-by": "isvcsync"}


class NetworkPolicyReconciler(SubResourceReconciler):
    """
    Lets the user-workload monitoring stack scrape the InferenceService pods.
    Not built for ModelMesh deployments; without a known deployment mode
    there is no safe default, so the pass fails.
    """

    kind = "NetworkPolicy"
    owned_sections = ("spec",)

    def __init__(
        self,
        store: Store,
        *,
        monitoring_namespace: str = "openshift-user-workload-monitoring",
        operator_namespace: str = "",
        logger: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        super().__init__(store, logger=logger)
        self.monitoring_namespace = monitoring_namespace
        self.deployment_mode = DeploymentModeResolver(store, operator_namespace)

    def resource_name(self, parent: InferenceService) -> str:
        return parent.name + NAME_SUFFIX

    def build_desired(self, parent: InferenceService) -> Optional[Resource]:
        try:
            mode = self.deployment_mode(parent)
        except LookupFailure as e:
            self.log.error("Could not determine deployment mode for %s: %s", parent.key, e)
            raise BuildError(f"could not build NetworkPolicy for InferenceService {parent.key}: {e}") from e
        if mode == MODEL_MESH:
            return None

        np = Resource(
            api_version="networking.k8s.io/v1",
            kind="NetworkPolicy",
            name=self.resource_name(parent),
            namespace=parent.namespace,
            labels=dict(MANAGED_LABELS),
            content={
                "spec": {
                    "podSelector": {"matchLabels": {ISVC_POD_LABEL: parent.name}},
                    "policyTypes": ["Ingress"],
                    "ingress": [
                        {
                            "from": [
                                {
                                    "namespaceSelector": {
                                        "matchLabels": {"name": self.monitoring_namespace},
                                    },
                                },
                            ],
                        },
                    ],
                },
            },
        )
        return set_controller_reference(parent, np)
