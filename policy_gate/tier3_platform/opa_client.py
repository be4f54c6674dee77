"""
policy_gate.tier3_platform.opa_client
──────────────────────────────────────
Remote policy evaluation over HTTP against an OPA-compatible data API.

Request:   POST <url>/<query path>   body {"input": <document>}
Response:  2xx with {"result": <bool>} (or a bare JSON boolean)

The query path is the query with a leading ``data.`` removed and dots turned
into slashes, so ``url="http://opa:8181/v1/data"`` with
``query="data.httpapi.authz.allow"`` posts to
``http://opa:8181/v1/data/httpapi/authz/allow``.

One client per call: no pooling and no retry. Every failure (transport,
timeout, status, payload) is an EvaluationError.

Backed by: httpx (sync and async)
"""
from __future__ import annotations

from typing import Any

import httpx
from pydantic import BaseModel, StrictBool, ValidationError as PydanticValidationError

from policy_gate.tier0_core.errors import EvaluationError
from policy_gate.tier0_core.http import JSON_CONTENT_TYPE, is_success


class DecisionResponse(BaseModel):
    """Shape of a data API answer. ``result`` is absent when undefined."""
    result: StrictBool | None = None


class RemoteEvaluator:
    """
    Evaluates queries on a remote policy service.

    Usage::

        evaluator = RemoteEvaluator("http://opa:8181/v1/data", timeout=2.0)
        allowed = evaluator.evaluate("data.httpapi.authz.allow", {"method": "GET"})
    """

    mode = "remote"

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 5.0,
        token: str | None = None,
        transport: httpx.BaseTransport | httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._timeout = timeout
        self._token = token
        self._transport = transport

    def endpoint(self, query: str) -> str:
        path = query[len("data."):] if query.startswith("data.") else query
        return f"{self._url}/{path.strip('/').replace('.', '/')}"

    def _build_headers(self) -> dict[str, str]:
        headers = {"Content-Type": JSON_CONTENT_TYPE, "Accept": JSON_CONTENT_TYPE}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def evaluate(self, query: str, document: dict[str, Any]) -> bool:
        url = self.endpoint(query)
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(url, json={"input": document}, headers=self._build_headers())
        except Exception as exc:
            raise EvaluationError(
                detail=f"request to {url} failed: {exc}", url=url
            ) from exc
        return _decision(response, url)

    async def evaluate_async(self, query: str, document: dict[str, Any]) -> bool:
        url = self.endpoint(query)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    url, json={"input": document}, headers=self._build_headers()
                )
        except Exception as exc:
            raise EvaluationError(
                detail=f"request to {url} failed: {exc}", url=url
            ) from exc
        return _decision(response, url)


def _decision(response: httpx.Response, url: str) -> bool:
    if not is_success(response.status_code):
        raise EvaluationError(
            detail=f"{url} answered with status {response.status_code}",
            url=url,
            status=response.status_code,
        )
    try:
        payload = response.json()
    except ValueError as exc:
        raise EvaluationError(detail=f"{url} returned a non-JSON body", url=url) from exc

    if isinstance(payload, bool):
        return payload
    try:
        decision = DecisionResponse.model_validate(payload)
    except PydanticValidationError as exc:
        raise EvaluationError(
            detail=f"{url} returned a non-boolean result", url=url
        ) from exc
    if decision.result is None:
        raise EvaluationError(detail=f"{url} returned an undefined result", url=url)
    return decision.result


__all__ = ["RemoteEvaluator", "DecisionResponse"]
