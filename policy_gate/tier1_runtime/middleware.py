"""
policy_gate.tier1_runtime.middleware
─────────────────────────────────────
Server adapters for PolicyGate. Each one buffers the request body, hands an
IncomingRequest to the gate and then either calls the wrapped app (with the
body restored) or answers with the gate's JSON response.

Supports: FastAPI / Starlette (ASGI), Flask / Django (WSGI).
"""
from __future__ import annotations

import io
from typing import Any, Callable

from policy_gate.tier0_core.config import GateConfig, get_config
from policy_gate.tier0_core.http import JSON_CONTENT_TYPE, encode_body, status_line
from policy_gate.tier1_runtime.binding import IncomingRequest, InputBinder
from policy_gate.tier1_runtime.gate import GateResult, PolicyGate


def _build_gate(
    gate: PolicyGate | None,
    config: GateConfig | None,
    input_binder: InputBinder | None,
) -> PolicyGate:
    if gate is not None:
        return gate
    return PolicyGate(config if config is not None else get_config(), input_binder)


# ── ASGI middleware ────────────────────────────────────────────────────────

class PolicyGateASGIMiddleware:
    """
    ASGI middleware that authorizes every HTTP request against the policy.
    Non-HTTP scopes (lifespan, websocket) pass through ungated.

    Usage (FastAPI / Starlette)::

        from policy_gate import PolicyGateASGIMiddleware, request_input
        app.add_middleware(PolicyGateASGIMiddleware, config=config, input_binder=request_input)
    """

    def __init__(
        self,
        app: Any,
        config: GateConfig | None = None,
        input_binder: InputBinder | None = None,
        *,
        gate: PolicyGate | None = None,
    ) -> None:
        self.app = app
        self.gate = _build_gate(gate, config, input_binder)

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        buffered = await _buffer_body(receive)
        if buffered is None:
            return
        body, replay = buffered
        result = await self.gate.check_async(IncomingRequest.from_asgi(scope, body))
        if result.allowed:
            await self.app(scope, replay, send)
            return
        await _send_result(send, result)


async def _buffer_body(receive: Any) -> tuple[bytes, Callable] | None:
    """Read the whole request body. Returns None if the client disconnects first."""
    chunks: list[bytes] = []
    more_body = True
    while more_body:
        message = await receive()
        if message["type"] == "http.disconnect":
            return None
        if message["type"] != "http.request":
            continue
        chunks.append(message.get("body", b""))
        more_body = message.get("more_body", False)
    body = b"".join(chunks)
    replayed = False

    async def replay() -> dict:
        nonlocal replayed
        if not replayed:
            replayed = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return body, replay


async def _send_result(send: Any, result: GateResult) -> None:
    payload = encode_body(result.body or {})
    await send({
        "type": "http.response.start",
        "status": result.status_code,
        "headers": [
            (b"content-type", JSON_CONTENT_TYPE.encode()),
            (b"content-length", str(len(payload)).encode()),
        ],
    })
    await send({"type": "http.response.body", "body": payload})


# ── WSGI middleware ────────────────────────────────────────────────────────

class PolicyGateWSGIMiddleware:
    """
    WSGI middleware that authorizes every HTTP request against the policy.

    Usage (Flask)::

        from policy_gate import PolicyGateWSGIMiddleware, request_input
        app.wsgi_app = PolicyGateWSGIMiddleware(app.wsgi_app, config, request_input)
    """

    def __init__(
        self,
        app: Callable,
        config: GateConfig | None = None,
        input_binder: InputBinder | None = None,
        *,
        gate: PolicyGate | None = None,
    ) -> None:
        self.app = app
        self.gate = _build_gate(gate, config, input_binder)

    def __call__(self, environ: dict, start_response: Callable) -> Any:
        body = _read_body(environ)
        if body is None:
            body = b""
        else:
            environ["wsgi.input"] = io.BytesIO(body)

        result = self.gate.check(IncomingRequest.from_wsgi(environ, body))
        if result.allowed:
            return self.app(environ, start_response)

        payload = encode_body(result.body or {})
        start_response(
            status_line(result.status_code),
            [
                ("Content-Type", JSON_CONTENT_TYPE),
                ("Content-Length", str(len(payload))),
            ],
        )
        return [payload]


def _read_body(environ: dict) -> bytes | None:
    """
    Read the request body so it can be bound and then replayed.

    Without a usable CONTENT_LENGTH the body is read to EOF only when the
    server marks the stream as terminated (chunked uploads). Otherwise the
    stream is left alone and None is returned.
    """
    stream = environ.get("wsgi.input")
    if stream is None:
        return None
    try:
        length = int(environ.get("CONTENT_LENGTH") or "")
    except ValueError:
        length = -1
    if length >= 0:
        return stream.read(length) if length else b""
    if environ.get("wsgi.input_terminated"):
        return stream.read()
    return None


__all__ = ["PolicyGateASGIMiddleware", "PolicyGateWSGIMiddleware"]
