"""
Layered configuration.

Precedence, lowest first:
  built-in defaults < YAML file < environment (ISYNC_SECTION__KEY) < CLI overrides

A `.env` file only fills environment variables that are not already set.
String values of the form "${VAR}" are replaced by the environment value.
Env values arrive as strings and are coerced to the type of the target field.
"""

from __future__ import annotations

import dataclasses
import os
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv

from .templates import DEFAULT_RUNTIME_IMAGES

_TRUE = {"1", "true", "yes", "y", "on"}


@dataclass
class AppSection:
    run_id: Optional[str] = None
    dry_run: bool = False


@dataclass
class ClusterSection:
    api_url: str = ""
    token: str = ""          # never logged
    verify_tls: bool = True
    timeout_sec: int = 30
    retries: int = 3         # reads only
    operator_namespace: str = ""


@dataclass
class TemplatesSection:
    search_paths: List[str] = field(default_factory=list)
    runtime_images: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_RUNTIME_IMAGES))


@dataclass
class MonitoringSection:
    rate_interval: str = "1m"
    monitoring_namespace: str = "openshift-user-workload-monitoring"


@dataclass
class LoggingSection:
    base_dir: str = "logs"
    console_level: str = "INFO"
    file_level: str = "DEBUG"


@dataclass
class AppConfig:
    app: AppSection = field(default_factory=AppSection)
    cluster: ClusterSection = field(default_factory=ClusterSection)
    templates: TemplatesSection = field(default_factory=TemplatesSection)
    monitoring: MonitoringSection = field(default_factory=MonitoringSection)
    logging: LoggingSection = field(default_factory=LoggingSection)

    @property
    def run_id(self) -> str:
        """Generated on first access unless configured; stable afterwards."""
        if not self.app.run_id:
            self.app.run_id = uuid.uuid4().hex[:12]
        return self.app.run_id


_SECTIONS = {f.name: f.default_factory for f in dataclasses.fields(AppConfig)}  # type: ignore[misc]

DEFAULT_FILES: Tuple[str, ...] = (
    "./isvcsync.yml",
    os.path.expanduser("~/.config/isvcsync/config.yml"),
    "/etc/isvcsync/config.yml",
)


def _deep_merge(base: Dict[str, Any], ext: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Nested dicts merge key by key; anything else in `ext` replaces `base`."""
    out = dict(base)
    for k, v in (ext or {}).items():
        out[k] = _deep_merge(out[k], v) if isinstance(v, dict) and isinstance(out.get(k), dict) else v
    return out


def _file_layer(files: Tuple[str, ...]) -> Dict[str, Any]:
    path = next((p for p in files if os.path.exists(p)), None)
    if path is None:
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Top-level YAML must be a mapping: {path}")
    return data


def _env_layer(prefix: str) -> Dict[str, Any]:
    """ISYNC_CLUSTER__API_URL=x -> {"cluster": {"api_url": "x"}}"""
    out: Dict[str, Any] = {}
    for key, val in os.environ.items():
        if not key.startswith(prefix):
            continue
        *parents, leaf = key[len(prefix):].lower().split("__")
        node = out
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = val
    return out


def _interpolate_env(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {k: _interpolate_env(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_env(v) for v in obj]
    if isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
        return os.environ.get(obj[2:-1], "")
    return obj


def _coerce(value: Any, default: Any) -> Any:
    """Bring a (possibly string) value to the type of the field's default."""
    if isinstance(default, bool):
        return value if isinstance(value, bool) else str(value).strip().lower() in _TRUE
    if isinstance(default, int):
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"Expected an integer, got {value!r}") from None
    if isinstance(default, dict) and isinstance(value, dict):
        return {**default, **value}
    if isinstance(default, list) and isinstance(value, str):
        # env vars can only carry a string; accept a comma-separated list
        return [p.strip() for p in value.split(",") if p.strip()]
    if isinstance(default, str) and isinstance(value, (int, float)):
        # YAML reads `rate_interval: 5` as a number
        return str(value)
    return value


def _build_section(name: str, values: Dict[str, Any]) -> Any:
    if not isinstance(values, dict):
        raise ValueError(f"Section '{name}' must be a mapping")
    section = _SECTIONS[name]()
    known = {f.name for f in dataclasses.fields(section)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown key(s) in section '{name}': {', '.join(unknown)}")
    for key, value in values.items():
        setattr(section, key, _coerce(value, getattr(section, key)))
    return section


def _validate(cfg: AppConfig) -> None:
    if cfg.app.dry_run:
        return
    if not cfg.cluster.api_url:
        raise ValueError("Missing required configuration for non-dry run: cluster.api_url")


def load_config(
    cli_overrides: Optional[Dict[str, Any]] = None,
    files: Tuple[str, ...] = DEFAULT_FILES,
    env_prefix: str = "ISYNC_",
    env_file: Optional[str] = ".env",
) -> AppConfig:
    if env_file and os.path.exists(env_file):
        load_dotenv(env_file, override=False)

    merged: Dict[str, Any] = {}
    for layer in (_file_layer(files), _env_layer(env_prefix), cli_overrides or {}):
        merged = _deep_merge(merged, layer)
    merged = _interpolate_env(merged)

    unknown = sorted(set(merged) - set(_SECTIONS))
    if unknown:
        raise ValueError(f"Unknown configuration section(s): {', '.join(unknown)}")

    cfg = AppConfig(**{name: _build_section(name, values or {}) for name, values in merged.items()})
    _validate(cfg)
    return cfg
