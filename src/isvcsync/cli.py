"""
Command-line interface for isvcsync.

Usage (examples):
  - Dry-run (no HTTP, in-memory store seeded from a state file):
      python -m isvcsync.cli reconcile --manifest ./isvc.yml --existing ./state.yml --dry-run

  - Real pass against an API server:
      python -m isvcsync.cli reconcile --manifest ./isvc.yml \
        --api-url https://api.cluster:6443 --token "$TOKEN"

  - Explicit teardown of owned resources:
      python -m isvcsync.cli remove --manifest ./isvc.yml --api-url ... --token ...
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List

import yaml

from .controller import InferenceServiceController, build_reconcilers, summarize_counts
from .core.config import AppConfig, load_config
from .core.kube_client import KubeClient
from .core.logging_setup import build_logger
from .core.lookups import operator_namespace_from_file
from .core.resources import InferenceService, Resource
from .core.store import InMemoryStore, KubeStore, Store
from .core.templates import TemplateLoader


def _read_manifests(path: str) -> List[Dict[str, Any]]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Manifest file not found: {path}")
    with p.open("r", encoding="utf-8") as f:
        docs = [d for d in yaml.safe_load_all(f) if d]
    for d in docs:
        if not isinstance(d, dict):
            raise ValueError(f"Every YAML document must be a mapping: {path}")
    return docs


def _read_parent(path: str) -> InferenceService:
    docs = _read_manifests(path)
    if len(docs) != 1:
        raise ValueError(f"Expected exactly one InferenceService document in {path}, got {len(docs)}")
    return InferenceService.from_manifest(docs[0])


def _exit_code_from_counts(counts: Dict[str, int]) -> int:
    if counts.get("ERROR", 0):
        return 2
    return 0


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="isvcsync", description="Reconcile resources owned by an InferenceService")

    sub = p.add_subparsers(dest="cmd", required=True)
    for name, help_text in (
        ("reconcile", "Run one reconciliation pass for an InferenceService"),
        ("remove", "Delete the resources owned by an InferenceService"),
    ):
        a = sub.add_parser(name, help=help_text)
        a.add_argument("--manifest", required=True, help="InferenceService manifest (.yml/.json)")
        a.add_argument("--existing", default="", help="Dry-run only: YAML documents seeding the in-memory store")
        a.add_argument("--dry-run", action="store_true", help="Use an in-memory store, no network calls")

        # API server / HTTP
        a.add_argument("--api-url", default="", help="API server URL")
        a.add_argument("--token", default="", help="Bearer token")
        a.add_argument("--verify-tls", default="true", choices=["true", "false"], help="Verify TLS (https)")
        a.add_argument("--timeout-sec", type=int, default=30, help="HTTP timeout seconds")
        a.add_argument("--retries", type=int, default=3, help="HTTP retries for reads (5xx/network)")
        a.add_argument("--operator-namespace", default="", help="Namespace holding inferenceservice-config")

        # Templates / monitoring
        a.add_argument("--templates-dir", action="append", default=[], help="Extra template search path")
        a.add_argument("--rate-interval", default="", help="Rate interval used in dashboard queries")

        # Logging
        a.add_argument("--logs-dir", default="logs", help="Logs base directory")
        a.add_argument("--console-level", default="INFO", help="Console log level (INFO..CRITICAL)")
        a.add_argument("--file-level", default="DEBUG", help="File log level (DEBUG..CRITICAL)")

    return p


def _overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    cluster: Dict[str, Any] = {
        "verify_tls": (args.verify_tls.lower() == "true"),
        "timeout_sec": int(args.timeout_sec),
        "retries": int(args.retries),
    }
    if args.api_url:
        cluster["api_url"] = args.api_url
    if args.token:
        cluster["token"] = args.token
    if args.operator_namespace:
        cluster["operator_namespace"] = args.operator_namespace

    out: Dict[str, Any] = {
        "app": {"dry_run": bool(args.dry_run)},
        "cluster": cluster,
        "logging": {
            "base_dir": args.logs_dir,
            "console_level": args.console_level,
            "file_level": args.file_level,
        },
    }
    if args.templates_dir:
        out["templates"] = {"search_paths": list(args.templates_dir)}
    if args.rate_interval:
        out["monitoring"] = {"rate_interval": args.rate_interval}
    return out


def _build_store(cfg: AppConfig, args: argparse.Namespace, logger) -> Store:
    if cfg.app.dry_run:
        seed = [Resource.from_manifest(d) for d in _read_manifests(args.existing)] if args.existing else []
        logger.info("Dry-run: in-memory store seeded with %s object(s)", len(seed))
        return InMemoryStore(seed)

    client = KubeClient(
        api_url=cfg.cluster.api_url,
        token=cfg.cluster.token,
        verify_tls=bool(cfg.cluster.verify_tls),
        timeout_sec=int(cfg.cluster.timeout_sec),
        retries=int(cfg.cluster.retries),
        logger=logger,
    )
    return KubeStore(client)


def _run(args: argparse.Namespace) -> int:
    cfg = load_config(_overrides_from_args(args))
    if not cfg.cluster.operator_namespace:
        cfg.cluster.operator_namespace = operator_namespace_from_file()

    parent = _read_parent(args.manifest)

    logger = build_logger(
        run_id=cfg.run_id,
        action=args.cmd,
        base_dir=cfg.logging.base_dir,
        console_level=cfg.logging.console_level,
        file_level=cfg.logging.file_level,
        extra={"namespace": parent.namespace, "parent": parent.name},
    )
    logger.info("Starting isvcsync %s (dry_run=%s)", args.cmd, cfg.app.dry_run)

    templates = TemplateLoader(
        search_paths=cfg.templates.search_paths,
        runtime_images=cfg.templates.runtime_images,
    ).load()
    store = _build_store(cfg, args, logger)
    controller = InferenceServiceController(build_reconcilers(cfg, store, templates, logger), logger=logger)

    if args.cmd == "remove":
        results, counts = controller.remove(parent)
    else:
        results, counts = controller.reconcile(parent)

    for res in results:
        logger.debug("%s %s -> %s %s", res.kind, res.name, res.status, res.error)
    summary = summarize_counts(counts)
    logger.info("Summary: %s", summary)
    print(summary)
    return _exit_code_from_counts(counts)


def main(argv: Iterable[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.cmd in ("reconcile", "remove"):
        return _run(args)

    parser.error("Unknown command")  # pragma: no cover
    return 2  # pragma: no cover


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
