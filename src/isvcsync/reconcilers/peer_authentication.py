from __future__ import annotations

from typing import Optional

from ..core.ownership import set_controller_reference
from ..core.resources import InferenceService, Resource
from .base import SubResourceReconciler
from .network_policy import ISVC_POD_LABEL, MANAGED_LABELS

NAME_SUFFIX = "-metrics"

# model format -> port whose metrics must be readable without mTLS
METRICS_PORTS = {"caikit": 8086}


class PeerAuthenticationReconciler(SubResourceReconciler):
    """
    Istio PeerAuthentication for model formats that serve metrics on a
    separate port: STRICT mTLS for the workload, PERMISSIVE on the metrics
    port so the monitoring stack can scrape it. Other formats get none.
    """

    kind = "PeerAuthentication"
    owned_sections = ("spec",)

    def resource_name(self, parent: InferenceService) -> str:
        return parent.name + NAME_SUFFIX

    def build_desired(self, parent: InferenceService) -> Optional[Resource]:
        port = METRICS_PORTS.get(parent.model_format or "")
        if port is None:
            self.log.debug("Model format %r of %s needs no PeerAuthentication", parent.model_format, parent.key)
            return None

        pa = Resource(
            api_version="security.istio.io/v1beta1",
            kind="PeerAuthentication",
            name=self.resource_name(parent),
            namespace=parent.namespace,
            labels=dict(MANAGED_LABELS),
            content={
                "spec": {
                    "selector": {"matchLabels": {ISVC_POD_LABEL: parent.name}},
                    "mtls": {"mode": "STRICT"},
                    # JSON map keys are strings
                    "portLevelMtls": {str(port): {"mode": "PERMISSIVE"}},
                },
            },
        )
        return set_controller_reference(parent, pa)
