"""
policy_gate.tier0_core.logging
───────────────────────────────
Structured logs for the gate's debug traces, with redaction of
credential-like fields (request headers end up in log lines).

The gate runs inside someone else's server, so importing or using it never
touches the global structlog configuration. ``get_logger`` returns whatever
the host has configured. Hosts that want the redaction step add
``redact_processor`` to their own chain, or call ``configure_logging()``
once at startup when they have no structlog setup of their own.

Minimal stack: structlog
"""
from __future__ import annotations

import logging
from typing import Any

import structlog


# ── Redaction processor ───────────────────────────────────────────────────────

REDACT_KEYS = frozenset({
    "password", "secret", "token", "api_key", "apikey",
    "authorization", "proxy-authorization", "cookie", "set-cookie",
    "credential", "access_token", "refresh_token", "client_secret",
})

REDACTED = "[REDACTED]"


def redact_processor(
    logger: Any, method: str, event_dict: dict
) -> dict:
    """Strip sensitive fields from log records, one level into dicts."""
    for key in list(event_dict.keys()):
        value = event_dict[key]
        if key.lower() in REDACT_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, dict):
            event_dict[key] = {
                k: (REDACTED if str(k).lower() in REDACT_KEYS else v)
                for k, v in value.items()
            }
    return event_dict


# ── Opt-in setup ──────────────────────────────────────────────────────────────

def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """
    Install a stdout structlog pipeline with redaction. Never called by the
    gate itself; standalone services call it once at startup.

    Usage:
        configure_logging(level="DEBUG", fmt="console")
    """
    renderer: Any = (
        structlog.dev.ConsoleRenderer()
        if fmt.lower() == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_processor,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
    )


# ── Public API ────────────────────────────────────────────────────────────────

def get_logger(name: str | None = None) -> Any:
    """
    Return a structured logger bound to the given name, using the host's
    structlog configuration as it stands.

    Usage:
        log = get_logger("policy_gate")
        log.info("policy_gate.decision", result=True, expected=True)
    """
    return structlog.get_logger(name or "policy_gate")


__all__ = ["REDACTED", "configure_logging", "get_logger", "redact_processor"]
