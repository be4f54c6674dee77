"""
policy_gate.tier1_runtime.binding
──────────────────────────────────
Input binding: turns an inbound request into the input document that is
evaluated against the policy.

``IncomingRequest`` is the framework-neutral view of a request that every
binder receives. Server adapters build it from an ASGI scope or a WSGI
environ; ``raw`` keeps the original mapping for framework-specific needs.

Binder precedence is fixed once, at gate construction: an explicit binder
wins over ``GateConfig.input_binder``.
"""
from __future__ import annotations

import copy
import json
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs

from policy_gate.tier0_core.errors import BindingError, ConfigurationError

if TYPE_CHECKING:
    from policy_gate.tier0_core.config import GateConfig


InputDocument = dict[str, Any]


# ── Domain model ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class IncomingRequest:
    """Read-only view of the observable parts of one HTTP request."""
    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    query_string: str = ""
    body: bytes = b""
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)

    def header(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name.lower(), default)

    def query_params(self) -> dict[str, list[str]]:
        return parse_qs(self.query_string, keep_blank_values=True)

    def json(self) -> Any:
        """Decode the body as JSON. Raises ValueError on malformed bodies."""
        if not self.body:
            return None
        return json.loads(self.body)

    @classmethod
    def from_asgi(cls, scope: Mapping[str, Any], body: bytes = b"") -> IncomingRequest:
        headers: dict[str, str] = {}
        for name, value in scope.get("headers", []):
            key = name.decode("latin-1").lower()
            text = value.decode("latin-1")
            headers[key] = f"{headers[key]}, {text}" if key in headers else text
        return cls(
            method=scope.get("method", "GET").upper(),
            path=scope.get("path", "/"),
            headers=headers,
            query_string=scope.get("query_string", b"").decode("latin-1"),
            body=body,
            request_id=_request_id(headers),
            raw=scope,
        )

    @classmethod
    def from_wsgi(cls, environ: Mapping[str, Any], body: bytes = b"") -> IncomingRequest:
        headers: dict[str, str] = {}
        for key, value in environ.items():
            if key.startswith("HTTP_"):
                headers[key[5:].replace("_", "-").lower()] = value
        if environ.get("CONTENT_TYPE"):
            headers["content-type"] = environ["CONTENT_TYPE"]
        if environ.get("CONTENT_LENGTH"):
            headers["content-length"] = environ["CONTENT_LENGTH"]
        return cls(
            method=environ.get("REQUEST_METHOD", "GET").upper(),
            path=environ.get("PATH_INFO", "") or "/",
            headers=headers,
            query_string=environ.get("QUERY_STRING", ""),
            body=body,
            request_id=_request_id(headers),
            raw=environ,
        )


def _request_id(headers: Mapping[str, str]) -> str:
    return (
        headers.get("x-request-id")
        or headers.get("x-correlation-id")
        or str(uuid.uuid4())
    )


InputBinder = Callable[[IncomingRequest], Mapping[str, Any]]


# ── Ready-made binder ─────────────────────────────────────────────────────────

def request_input(request: IncomingRequest) -> InputDocument:
    """
    Build a general-purpose input document from method, path, headers and
    query parameters. Pass it explicitly as a binder; it is never applied
    implicitly.

    Usage:
        gate = PolicyGate(config, input_binder=request_input)
    """
    return {
        "method": request.method,
        "path": request.path,
        "segments": [s for s in request.path.split("/") if s],
        "headers": dict(request.headers),
        "query": request.query_params(),
    }


# ── Resolution & invocation ───────────────────────────────────────────────────

def resolve_binder(
    explicit: InputBinder | None, config: GateConfig
) -> InputBinder:
    """Pick the binder for a gate: explicit first, then the config default."""
    if explicit is not None:
        return explicit
    default = config.input_binder
    if default is None:
        raise ConfigurationError(user_message="no input binder configured")

    def bind_default(request: IncomingRequest) -> InputDocument:
        return dict(default(request))

    return bind_default


def bind(binder: InputBinder, request: IncomingRequest) -> InputDocument:
    """
    Run a binder, turning every failure into BindingError. The returned
    document is a deep copy, so nothing the binder keeps a reference to is
    shared with the evaluator.
    """
    try:
        document = binder(request)
    except BindingError:
        raise
    except Exception as exc:
        raise BindingError(
            detail=f"input binder failed: {exc}",
            request_id=request.request_id,
        ) from exc
    if not isinstance(document, Mapping):
        raise BindingError(
            detail=f"input binder returned {type(document).__name__}, expected a mapping",
            request_id=request.request_id,
        )
    if not all(isinstance(key, str) for key in document):
        raise BindingError(
            detail="input document keys must be strings",
            request_id=request.request_id,
        )
    try:
        return copy.deepcopy(dict(document))
    except Exception as exc:
        raise BindingError(
            detail=f"input document cannot be copied: {exc}",
            request_id=request.request_id,
        ) from exc


__all__ = [
    "IncomingRequest", "InputBinder", "InputDocument",
    "request_input", "resolve_binder", "bind",
]
