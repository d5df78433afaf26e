"""
Metrics dashboard ConfigMap (`<isvc>-metrics-dashboard`).

Data:
  metrics    JSON dashboard config with queries scoped to the InferenceService
  supported  "true" when the runtime has a known dashboard, else "false"

Not built for ModelMesh deployments (an existing one is then removed).
Cleanup on parent deletion is left to the ownership cascade.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..core.errors import LookupFailure
from ..core.lookups import MODEL_MESH, DeploymentModeResolver, RuntimeImageLookup, extract_image_name
from ..core.ownership import set_controller_reference
from ..core.resources import InferenceService, Resource
from ..core.store import Store
from ..core.templates import TemplateBundle, substitute_variables
from .base import NoResourceRemoval, SubResourceReconciler

NAME_SUFFIX = "-metrics-dashboard"
DASHBOARD_LABELS = {
    "app.opendatahub.io/kserve": "true",
    "app.kubernetes.io/managed-by": "isvcsync",
}


class MetricsDashboardReconciler(NoResourceRemoval, SubResourceReconciler):
    kind = "ConfigMap"
    owned_sections = ("data",)

    def __init__(
        self,
        store: Store,
        templates: TemplateBundle,
        *,
        rate_interval: str = "1m",
        operator_namespace: str = "",
        logger: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        super().__init__(store, logger=logger)
        self.templates = templates
        self.rate_interval = rate_interval
        self.runtime_image = RuntimeImageLookup(store, logger=self.log)
        self.deployment_mode = DeploymentModeResolver(store, operator_namespace)

    def resource_name(self, parent: InferenceService) -> str:
        return parent.name + NAME_SUFFIX

    def _is_model_mesh(self, parent: InferenceService) -> bool:
        try:
            return self.deployment_mode(parent) == MODEL_MESH
        except LookupFailure as e:
            self.log.warning("Could not determine deployment mode for %s, assuming KServe: %s", parent.key, e)
            return False

    def build_desired(self, parent: InferenceService) -> Optional[Resource]:
        if self._is_model_mesh(parent):
            self.log.debug("ModelMesh deployment %s has no metrics dashboard", parent.key)
            return None

        image = self.runtime_image(parent)
        runtime = self.templates.runtime_for_image(extract_image_name(image or ""))
        if image and runtime is None:
            self.log.info("Runtime image %s has no known metrics dashboard", image)
        raw, supported = self.templates.dashboard(runtime)
        metrics = substitute_variables(
            raw,
            namespace=parent.namespace,
            model_name=parent.name,
            rate_interval=self.rate_interval,
        )

        cm = Resource(
            api_version="v1",
            kind="ConfigMap",
            name=self.resource_name(parent),
            namespace=parent.namespace,
            labels=dict(DASHBOARD_LABELS),
            content={"data": {"metrics": metrics, "supported": "true" if supported else "false"}},
        )
        return set_controller_reference(parent, cm)
