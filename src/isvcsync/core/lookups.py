"""
Read-only auxiliary lookups used by desired-state builders.

Each lookup returns a value, or a "not configured for this case" outcome
(None / a default) that builders handle without failing. Real failures
raise LookupFailure.
"""

from __future__ import annotations

import json
import logging
import re
from typing import List, Optional
from urllib.parse import urlparse

from .errors import LookupFailure, StoreError
from .resources import InferenceService, NamespacedName
from .store import Store

DEPLOYMENT_MODE_ANNOTATION = "serving.kserve.io/deploymentMode"
ENABLE_AUTH_ANNOTATION = "security.opendatahub.io/enable-auth"
KSERVE_CONFIGMAP_NAME = "inferenceservice-config"
SERVICE_ACCOUNT_NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"

SERVERLESS = "Serverless"
RAW_DEPLOYMENT = "RawDeployment"
MODEL_MESH = "ModelMesh"
_KNOWN_MODES = (SERVERLESS, RAW_DEPLOYMENT, MODEL_MESH)
# annotation present but not one of the known modes
UNKNOWN_MODE = ""

AUTH_USER_DEFINED = "userdefined"
AUTH_ANONYMOUS = "anonymous"

_IMAGE_NAME_RE = re.compile(r".*/(.+?)(:|@).*")


def extract_image_name(image: str) -> str:
    """
    'quay.io/org/vllm:0.4' -> 'vllm'; 'reg/x/ovms@sha256:..' -> 'ovms'.
    Returns '' when the reference has no registry path or no tag/digest.
    """
    m = _IMAGE_NAME_RE.match(image or "")
    return m.group(1) if m else ""


def operator_namespace_from_file(path: str = SERVICE_ACCOUNT_NAMESPACE_FILE) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read().strip()
    except OSError:
        return ""


class RuntimeImageLookup:
    """Image of the first container of the parent's ServingRuntime."""

    def __init__(self, store: Store, logger: Optional[logging.LoggerAdapter] = None) -> None:
        self.store = store
        self.log = logger or logging.getLogger("isync.lookup")

    def __call__(self, parent: InferenceService) -> Optional[str]:
        if not parent.runtime:
            self.log.debug("InferenceService %s names no runtime", parent.key)
            return None
        try:
            runtime = self.store.get("ServingRuntime", NamespacedName(parent.namespace, parent.runtime))
        except StoreError as e:
            raise LookupFailure(f"error getting ServingRuntime {parent.namespace}/{parent.runtime}: {e}") from e
        if runtime is None:
            self.log.warning("ServingRuntime %s/%s not found", parent.namespace, parent.runtime)
            return None
        containers = (runtime.content.get("spec") or {}).get("containers") or []
        if not containers or not isinstance(containers[0], dict):
            self.log.warning("ServingRuntime %s/%s declares no containers", parent.namespace, parent.runtime)
            return None
        return containers[0].get("image") or None


class DeploymentModeResolver:
    """
    The annotation decides whenever it is present; an unrecognised value
    resolves to UNKNOWN_MODE (treated as "not ModelMesh"). Only a parent
    without the annotation falls back to inferenceservice-config.
    """

    def __init__(self, store: Store, operator_namespace: str = "") -> None:
        self.store = store
        self.operator_namespace = operator_namespace

    def __call__(self, parent: InferenceService) -> str:
        if DEPLOYMENT_MODE_ANNOTATION in parent.annotations:
            value = parent.annotations[DEPLOYMENT_MODE_ANNOTATION]
            return value if value in _KNOWN_MODES else UNKNOWN_MODE

        if not self.operator_namespace:
            raise LookupFailure("cannot determine operator namespace to read inferenceservice-config")
        try:
            cm = self.store.get("ConfigMap", NamespacedName(self.operator_namespace, KSERVE_CONFIGMAP_NAME))
        except StoreError as e:
            raise LookupFailure(f"error getting configmap '{KSERVE_CONFIGMAP_NAME}': {e}") from e
        if cm is None:
            raise LookupFailure(f"configmap {self.operator_namespace}/{KSERVE_CONFIGMAP_NAME} not found")

        raw = (cm.content.get("data") or {}).get("deploy", "")
        try:
            deploy = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise LookupFailure(f"error reading key 'deploy' from configmap {KSERVE_CONFIGMAP_NAME}: {e}") from e
        if not isinstance(deploy, dict):
            raise LookupFailure(f"key 'deploy' of configmap {KSERVE_CONFIGMAP_NAME} is not an object")
        if deploy.get("defaultDeploymentMode") == SERVERLESS:
            return SERVERLESS
        return RAW_DEPLOYMENT


class AuthTypeDetector:
    def __call__(self, parent: InferenceService) -> str:
        if parent.annotations.get(ENABLE_AUTH_ANNOTATION, "").strip().lower() == "true":
            return AUTH_USER_DEFINED
        return AUTH_ANONYMOUS


class HostExtractor:
    """External and in-cluster hosts an InferenceService is reachable on."""

    def __call__(self, parent: InferenceService) -> List[str]:
        hosts: List[str] = []
        for url in (parent.url, parent.address_url):
            host = urlparse(url).hostname if url else None
            if host:
                hosts.append(host)
        svc = f"{parent.name}-predictor.{parent.namespace}.svc"
        hosts.extend([svc, f"{svc}.cluster.local"])
        return list(dict.fromkeys(hosts))
