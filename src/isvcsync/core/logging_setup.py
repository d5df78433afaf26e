"""
Logging for isvcsync runs.

Sinks, all with UTC ISO-8601 timestamps and secret redaction:
  - stderr console (INFO and up by default)
  - <base_dir>/app.log, rotated daily (DEBUG)
  - <base_dir>/YYYY-MM-DD/<action>_<run_id>.log, one per run (DEBUG)

Records carry run_id/action/namespace/parent/kind through a LoggerAdapter;
missing fields print as "-".
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import re
import sys
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

CONTEXT_FIELDS = ("run_id", "action", "namespace", "parent", "kind")

LOG_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "run=%(run_id)s action=%(action)s ns=%(namespace)s parent=%(parent)s kind=%(kind)s | "
    "%(message)s"
)

_REDACTED = r"\1***REDACTED***"


class MaskSecretsFilter(logging.Filter):
    """Redact bearer tokens, API keys, passwords and tokens in messages and their args."""

    patterns = (
        re.compile(r"(Authorization:\s*Bearer\s+)([A-Za-z0-9._-]+)", re.IGNORECASE),
        re.compile(r"(api[_-]?key\s*[=:]\s*)([A-Za-z0-9._-]+)", re.IGNORECASE),
        re.compile(r"(password\s*[=:]\s*)([^,\s]+)", re.IGNORECASE),
        re.compile(r"(\btoken\s*[=:]\s*)([A-Za-z0-9._-]+)", re.IGNORECASE),
    )

    @classmethod
    def mask(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        for pat in cls.patterns:
            value = pat.sub(_REDACTED, value)
        return value

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.mask(record.msg)
        if isinstance(record.args, dict):
            record.args = {k: self.mask(v) for k, v in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(self.mask(a) for a in record.args)
        return True


class ContextDefaultsFilter(logging.Filter):
    """Records from plain loggers (e.g. isync.http) lack adapter fields."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name in CONTEXT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, "-")
        return True


def _formatter() -> logging.Formatter:
    fmt = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%SZ")
    fmt.converter = time.gmtime  # type: ignore[assignment]
    return fmt


def _prepare(handler: logging.Handler, level: str, fallback: int) -> logging.Handler:
    handler.setLevel(getattr(logging, str(level).upper(), fallback))
    handler.setFormatter(_formatter())
    handler.addFilter(ContextDefaultsFilter())
    handler.addFilter(MaskSecretsFilter())
    return handler


def _is_console(h: logging.Handler) -> bool:
    # FileHandler subclasses StreamHandler
    return isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)


def _swap_handlers(
    logger: logging.Logger,
    matches: Callable[[logging.Handler], bool],
    keep: Callable[[logging.Handler], bool],
    make: Callable[[], logging.Handler],
) -> None:
    """Drop handlers that `matches` but not `keep`; add `make()` unless one is kept."""
    kept = False
    for h in list(logger.handlers):
        if not matches(h):
            continue
        if keep(h):
            kept = True
            continue
        logger.removeHandler(h)
        h.close()
    if not kept:
        logger.addHandler(make())


def build_logger(
    *,
    name: str = "isync",
    run_id: str,
    action: str,
    base_dir: str = "logs",
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    extra: Optional[Dict[str, Any]] = None,
) -> logging.LoggerAdapter:
    """
    Configure the `<name>` base logger and return an adapter on `<name>.<action>.<run_id>`.

    Safe to call repeatedly (tests, several runs in one process): the console
    handler is re-bound to the current sys.stderr and app.log follows base_dir.
    """
    os.makedirs(base_dir, exist_ok=True)
    app_log = os.path.abspath(os.path.join(base_dir, "app.log"))

    base = logging.getLogger(name)
    base.setLevel(logging.DEBUG)
    _swap_handlers(
        base,
        matches=_is_console,
        keep=lambda h: False,
        make=lambda: _prepare(logging.StreamHandler(sys.stderr), console_level, logging.INFO),
    )
    _swap_handlers(
        base,
        matches=lambda h: isinstance(h, logging.handlers.TimedRotatingFileHandler),
        keep=lambda h: os.path.abspath(getattr(h, "baseFilename", "")) == app_log,
        make=lambda: _prepare(
            logging.handlers.TimedRotatingFileHandler(
                app_log, when="midnight", backupCount=14, encoding="utf-8", utc=True
            ),
            file_level,
            logging.DEBUG,
        ),
    )

    run_logger = logging.getLogger(f"{name}.{action}.{run_id}")
    run_logger.setLevel(logging.DEBUG)
    run_logger.propagate = True
    if not run_logger.handlers:
        day_dir = os.path.join(base_dir, datetime.now(timezone.utc).strftime("%Y-%m-%d"))
        os.makedirs(day_dir, exist_ok=True)
        run_file = os.path.join(day_dir, f"{action}_{run_id}.log")
        run_logger.addHandler(_prepare(logging.FileHandler(run_file, encoding="utf-8"), file_level, logging.DEBUG))

    ctx: Dict[str, Any] = dict.fromkeys(CONTEXT_FIELDS, "-")
    ctx.update({k: v for k, v in (extra or {}).items() if k in CONTEXT_FIELDS and v})
    ctx.update(run_id=run_id, action=action)
    adapter = logging.LoggerAdapter(run_logger, ctx)
    adapter.debug("Logger initialised (app log: %s)", app_log)
    return adapter


def with_context(logger: logging.LoggerAdapter, **fields: Any) -> logging.LoggerAdapter:
    """New adapter on the same logger; non-None `fields` override the inherited context."""
    ctx = dict(getattr(logger, "extra", None) or {})
    ctx.update({k: v for k, v in fields.items() if v is not None})
    return logging.LoggerAdapter(logger.logger, ctx)


def null_logger(name: str = "isync.null") -> logging.LoggerAdapter:
    """Adapter that discards everything; default for library use without build_logger()."""
    log = logging.getLogger(name)
    log.propagate = False
    if not log.handlers:
        log.addHandler(logging.NullHandler())
    return logging.LoggerAdapter(log, dict.fromkeys(CONTEXT_FIELDS, "-"))
