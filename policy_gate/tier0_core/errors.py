"""
policy_gate.tier0_core.errors
──────────────────────────────
Error taxonomy for the gate. Configuration problems stop startup; binding
and evaluation failures are per-request and end as a 500 response.

A policy decision that does not match the expected outcome is NOT an error.
It is a denial, represented by ``GateResult`` in ``tier1_runtime.gate``.
"""
from __future__ import annotations

from typing import Any

from policy_gate.tier0_core.http import HTTP


# ── Base error ────────────────────────────────────────────────────────────────

class GateError(Exception):
    """
    Base class for all gate errors. Every error has:
    - code: stable machine-readable string (snake_case)
    - user_message: safe to surface to clients
    - detail: internal context, only shown when ``expose_errors`` is enabled
    - status_code: HTTP status code used when the error ends a request
    """

    status_code: int = HTTP.INTERNAL_SERVER_ERROR
    code: str = "internal_error"

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "Internal Server Error",
        detail: str | None = None,
        **metadata: Any,
    ) -> None:
        self.code = code or self.__class__.code
        self.user_message = user_message
        self.detail = detail or user_message
        self.metadata = metadata
        super().__init__(self.detail)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.user_message}


# ── Typed error classes ───────────────────────────────────────────────────────

class ConfigurationError(GateError):
    """Invalid or incomplete configuration. Raised at construction only."""
    code = "configuration_error"


class BindingError(GateError):
    """The input binder could not build a document for this request."""
    code = "binding_error"


class EvaluationError(GateError):
    """The local engine or the remote endpoint could not produce a decision."""
    code = "evaluation_error"


__all__ = ["GateError", "ConfigurationError", "BindingError", "EvaluationError"]
