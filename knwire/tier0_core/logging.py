"""
knwire.tier0_core.logging
──────────────────────────
Structured logs for resolution passes. Every record emitted inside a
pass_scope carries the pass identity (pass_id, integration, namespace) and
the time left before the pass deadline; credentials sent to the registry
never reach the output.

Minimal stack: structlog (stdout JSON or console)
Level and format come from WiringSettings (KNWIRE_LOG_LEVEL,
KNWIRE_LOG_FORMAT=json|console).
"""
from __future__ import annotations

import logging
from typing import Any

import structlog

from knwire.tier0_core.config import WiringSettings, get_config


# ── Processors ────────────────────────────────────────────────────────────────

def _add_pass_fields(logger: Any, method: str, event_dict: dict) -> dict:
    """Attach the active pass identity. No-op outside a pass_scope."""
    from knwire.tier1_runtime.context import current_pass

    ctx = current_pass()
    if ctx is None:
        return event_dict
    event_dict.setdefault("pass_id", ctx.pass_id)
    event_dict.setdefault("integration", ctx.integration)
    event_dict.setdefault("namespace", ctx.namespace)
    remaining = ctx.remaining()
    if remaining is not None:
        event_dict.setdefault("deadline_remaining", round(remaining, 3))
    return event_dict


# registry bearer token and the header carrying it
_REDACT_KEYS = frozenset({"token", "authorization"})
_REDACTED = "[REDACTED]"


def _redact_processor(logger: Any, method: str, event_dict: dict) -> dict:
    for key in event_dict:
        if key.lower() in _REDACT_KEYS:
            event_dict[key] = _REDACTED
    return event_dict


# ── Configuration ─────────────────────────────────────────────────────────────

def configure_logging(settings: WiringSettings | None = None) -> None:
    """(Re)configure structlog from the engine settings."""
    cfg = settings if settings is not None else get_config()
    level = getattr(logging, cfg.log_level.upper(), logging.INFO)
    if cfg.log_format.lower() == "console":
        renderer: Any = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            _add_pass_fields,
            structlog.processors.TimeStamper(fmt="iso"),
            _redact_processor,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


_configured = False


def get_logger(name: str | None = None) -> Any:
    """
    Return a structured logger bound to the given name.

    Usage:
        log = get_logger(__name__)
        log.info("knative.endpoint.resolved", category="channel", name="orders")
    """
    global _configured
    if not _configured:
        configure_logging()
        _configured = True
    return structlog.get_logger(name or __name__)
