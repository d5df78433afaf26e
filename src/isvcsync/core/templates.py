"""
Template loading for desired-state builders.

Templates are read once at startup into an immutable TemplateBundle that is
passed to every reconciler. Search order for each file: the configured
`search_paths` first, then the packaged `isvcsync/resources` directory.

Layout (relative to each search path):
    dashboards/<runtime>.yml      one per runtime, plus unsupported.yml
    authconfig/<auth_type>.yml    one per auth type
"""

from __future__ import annotations

import copy
import json
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from .errors import TemplateError

PACKAGED_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "resources"))

UNSUPPORTED = "unsupported"
DASHBOARD_RUNTIMES: Tuple[str, ...] = ("caikit", "ovms", "tgis", "vllm")
AUTH_TYPES: Tuple[str, ...] = ("userdefined", "anonymous")

DEFAULT_RUNTIME_IMAGES: Dict[str, str] = {
    "openvino_model_server": "ovms",
    "text-generation-inference": "tgis",
    "caikit-tgis-serving": "tgis",
    "caikit-nlp": "caikit",
    "vllm": "vllm",
}


def substitute_variables(text: str, *, namespace: str, model_name: str, rate_interval: str) -> str:
    """Replace ${NAMESPACE}, ${MODEL_NAME}, ${RATE_INTERVAL} (lowercase variants too)."""
    values = {
        "NAMESPACE": namespace,
        "MODEL_NAME": model_name,
        "RATE_INTERVAL": rate_interval,
    }
    for k, v in values.items():
        text = text.replace("${" + k + "}", v).replace("${" + k.lower() + "}", v)
    return text


@dataclass(frozen=True)
class TemplateBundle:
    """Immutable templates shared by all reconcilers of a process."""

    dashboards: Mapping[str, str]
    authconfigs: Mapping[str, Mapping[str, Any]]
    runtime_images: Mapping[str, str] = field(default_factory=lambda: MappingProxyType(dict(DEFAULT_RUNTIME_IMAGES)))

    def runtime_for_image(self, image_name: str) -> Optional[str]:
        """Dashboard key for an image name ('' or unknown -> None)."""
        if not image_name:
            return None
        return self.runtime_images.get(image_name)

    def dashboard(self, runtime: Optional[str]) -> Tuple[str, bool]:
        """Return (raw JSON text with placeholders, supported) for a runtime key."""
        if runtime and runtime in self.dashboards:
            return self.dashboards[runtime], True
        return self.dashboards[UNSUPPORTED], False

    def authconfig(self, auth_type: str) -> Dict[str, Any]:
        """Fresh, mutable copy of the AuthConfig spec for an auth type."""
        try:
            spec = self.authconfigs[auth_type]
        except KeyError:
            raise TemplateError(f"No AuthConfig template for auth type '{auth_type}'") from None
        return copy.deepcopy(dict(spec))


class TemplateLoader:
    """Find and parse template files; see module docstring for layout."""

    def __init__(
        self,
        search_paths: Optional[List[str]] = None,
        runtime_images: Optional[Dict[str, str]] = None,
    ) -> None:
        self.search_paths = list(search_paths or []) + [PACKAGED_DIR]
        self.runtime_images = dict(DEFAULT_RUNTIME_IMAGES)
        if runtime_images:
            self.runtime_images.update(runtime_images)

    def _find_path(self, relative: str) -> str:
        for base in self.search_paths:
            candidate = os.path.join(base, relative)
            if os.path.exists(candidate):
                return candidate
        raise TemplateError(f"Template '{relative}' not found in {self.search_paths}")

    def _read_yaml(self, relative: str) -> Dict[str, Any]:
        path = self._find_path(relative)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise TemplateError(f"Cannot read template {path}: {e}") from e
        if not isinstance(data, dict):
            raise TemplateError(f"Top-level YAML must be a mapping: {path}")
        return data

    def _load_dashboard(self, runtime: str) -> str:
        data = self._read_yaml(os.path.join("dashboards", f"{runtime}.yml"))
        if not isinstance(data.get("config"), list):
            raise TemplateError(f"Dashboard template '{runtime}' must define a 'config' list")
        return json.dumps(data)

    def _load_authconfig(self, auth_type: str) -> Mapping[str, Any]:
        data = self._read_yaml(os.path.join("authconfig", f"{auth_type}.yml"))
        spec = data.get("spec")
        if not isinstance(spec, dict):
            raise TemplateError(f"AuthConfig template '{auth_type}' must define a 'spec' mapping")
        return MappingProxyType(spec)

    def load(self) -> TemplateBundle:
        dashboards = {rt: self._load_dashboard(rt) for rt in DASHBOARD_RUNTIMES + (UNSUPPORTED,)}
        authconfigs = {at: self._load_authconfig(at) for at in AUTH_TYPES}
        return TemplateBundle(
            dashboards=MappingProxyType(dashboards),
            authconfigs=MappingProxyType(authconfigs),
            runtime_images=MappingProxyType(dict(self.runtime_images)),
        )
