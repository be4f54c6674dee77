"""
policy_gate.tier0_core.http
────────────────────────────
HTTP primitives shared by the gate and its server adapters: status code
constants and the JSON error envelope ``{"error": <message>}`` used for
both denials and internal errors.
"""
from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any


# ── Status code constants ──────────────────────────────────────────────────

class HTTP:
    """HTTP status codes used by the gate."""

    # 4xx
    FORBIDDEN = 403

    # 5xx
    INTERNAL_SERVER_ERROR = 500


JSON_CONTENT_TYPE = "application/json"


# ── Response helpers ───────────────────────────────────────────────────────

def error_body(message: str) -> dict[str, Any]:
    """Return the error envelope sent on denial and on internal error."""
    return {"error": message}


def encode_body(body: dict[str, Any]) -> bytes:
    return json.dumps(body).encode("utf-8")


def status_line(status_code: int) -> str:
    """WSGI status line, e.g. ``"403 Forbidden"``."""
    try:
        phrase = HTTPStatus(status_code).phrase
    except ValueError:
        return f"{status_code} Unknown"
    return f"{status_code} {phrase}"


def is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


__all__ = [
    "HTTP", "JSON_CONTENT_TYPE", "error_body", "encode_body", "status_line", "is_success",
]
