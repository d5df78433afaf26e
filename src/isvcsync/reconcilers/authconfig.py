from __future__ import annotations

import logging
from typing import Optional

from ..core.errors import TemplateError
from ..core.lookups import AuthTypeDetector, HostExtractor
from ..core.ownership import set_controller_reference
from ..core.resources import InferenceService, Resource
from ..core.store import Store
from ..core.templates import TemplateBundle
from .base import SubResourceReconciler

AUTHORIZATION_GROUP_LABEL = "security.opendatahub.io/authorization-group"
AUTHCONFIG_API_VERSION = "authorino.kuadrant.io/v1beta2"


class AuthConfigReconciler(SubResourceReconciler):
    """Access policy named after the InferenceService; waits until the parent has a URL."""

    kind = "AuthConfig"
    owned_sections = ("spec",)

    def __init__(
        self,
        store: Store,
        templates: TemplateBundle,
        *,
        logger: Optional[logging.LoggerAdapter] = None,
    ) -> None:
        super().__init__(store, logger=logger)
        self.templates = templates
        self.detector = AuthTypeDetector()
        self.host_extractor = HostExtractor()

    def resource_name(self, parent: InferenceService) -> str:
        return parent.name

    def skip_reason(self, parent: InferenceService) -> Optional[str]:
        if not parent.url:
            return "InferenceService not ready yet, waiting for URL"
        return super().skip_reason(parent)

    def build_desired(self, parent: InferenceService) -> Optional[Resource]:
        auth_type = self.detector(parent)
        try:
            spec = self.templates.authconfig(auth_type)
        except TemplateError as e:
            raise TemplateError(
                f"could not load template for AuthType {auth_type} for InferenceService {parent.key}: {e}"
            ) from e
        spec["hosts"] = self.host_extractor(parent)

        ac = Resource(
            api_version=AUTHCONFIG_API_VERSION,
            kind="AuthConfig",
            name=self.resource_name(parent),
            namespace=parent.namespace,
            labels={AUTHORIZATION_GROUP_LABEL: "default"},
            content={"spec": spec},
        )
        return set_controller_reference(parent, ac)
