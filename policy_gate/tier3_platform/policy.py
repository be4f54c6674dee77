"""
policy_gate.tier3_platform.policy
──────────────────────────────────
Decision dispatch. A gate evaluates its query with exactly one evaluator,
selected once from the configuration:

- ``RemoteEvaluator`` when ``GateConfig.url`` is set (see opa_client)
- ``LocalEvaluator`` otherwise: the policy is compiled and run in-process
  by the embedded Rego engine, fresh for every call

The boolean returned here only says how the query evaluated. Whether that
means allow or deny is decided by the gate.

Backed by: regorus (embedded Rego), httpx (remote)
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Protocol, runtime_checkable

import regorus

from policy_gate.tier0_core.config import GateConfig
from policy_gate.tier0_core.errors import EvaluationError
from policy_gate.tier3_platform.opa_client import RemoteEvaluator


@runtime_checkable
class PolicyEvaluator(Protocol):
    mode: str

    def evaluate(self, query: str, document: dict[str, Any]) -> bool: ...

    async def evaluate_async(self, query: str, document: dict[str, Any]) -> bool: ...


# ── Embedded engine ───────────────────────────────────────────────────────────

class LocalEvaluator:
    """
    In-process Rego evaluation. Nothing is cached between calls, so every
    request sees exactly the configured policy text.
    """

    mode = "local"

    def __init__(self, policy: str, *, policy_name: str = "policy.rego") -> None:
        self._policy = policy
        self._policy_name = policy_name

    def evaluate(self, query: str, document: dict[str, Any]) -> bool:
        try:
            input_json = json.dumps(document)
        except (TypeError, ValueError) as exc:
            raise EvaluationError(detail=f"input document is not JSON: {exc}") from exc
        try:
            engine = regorus.Engine()
            engine.add_policy(self._policy_name, self._policy)
            engine.set_input_json(input_json)
            results = json.loads(engine.eval_query_as_json(query))
        except Exception as exc:
            raise EvaluationError(
                detail=f"policy evaluation of {query!r} failed: {exc}", query=query
            ) from exc
        return _single_boolean(results, query)

    async def evaluate_async(self, query: str, document: dict[str, Any]) -> bool:
        return await asyncio.to_thread(self.evaluate, query, document)


def _single_boolean(results: dict[str, Any], query: str) -> bool:
    """Extract the value of a query that must yield exactly one boolean."""
    rows = results.get("result") or []
    if not rows:
        raise EvaluationError(detail=f"query {query!r} is undefined", query=query)
    if len(rows) != 1 or len(rows[0].get("expressions") or []) != 1:
        raise EvaluationError(
            detail=f"query {query!r} produced more than one value", query=query
        )
    value = rows[0]["expressions"][0].get("value")
    if not isinstance(value, bool):
        raise EvaluationError(
            detail=f"query {query!r} evaluated to {type(value).__name__}, expected bool",
            query=query,
        )
    return value


# ── Selection & dispatch ──────────────────────────────────────────────────────

def build_evaluator(config: GateConfig) -> PolicyEvaluator:
    if config.url:
        return RemoteEvaluator(
            config.url,
            timeout=config.timeout,
            token=config.token.get_secret_value() if config.token else None,
        )
    return LocalEvaluator(config.policy_source())


class PolicyDispatcher:
    """
    Evaluates the configured query against one input document per call.

    Usage::

        dispatcher = PolicyDispatcher(config)
        allowed = dispatcher.decide({"method": "GET", "path": "/api/v1/users"})
    """

    def __init__(
        self, config: GateConfig, evaluator: PolicyEvaluator | None = None
    ) -> None:
        self._query = config.query
        self._evaluator = evaluator if evaluator is not None else build_evaluator(config)

    @property
    def mode(self) -> str:
        return self._evaluator.mode

    @property
    def evaluator(self) -> PolicyEvaluator:
        return self._evaluator

    def decide(self, document: dict[str, Any]) -> bool:
        try:
            result = self._evaluator.evaluate(self._query, document)
        except EvaluationError:
            raise
        except Exception as exc:
            raise EvaluationError(detail=f"evaluator failed: {exc}") from exc
        return _checked(result, self._query)

    async def decide_async(self, document: dict[str, Any]) -> bool:
        try:
            result = await self._evaluator.evaluate_async(self._query, document)
        except EvaluationError:
            raise
        except Exception as exc:
            raise EvaluationError(detail=f"evaluator failed: {exc}") from exc
        return _checked(result, self._query)


def _checked(result: Any, query: str) -> bool:
    if not isinstance(result, bool):
        raise EvaluationError(
            detail=f"evaluator returned {type(result).__name__} for {query!r}",
            query=query,
        )
    return result


__all__ = [
    "PolicyEvaluator", "LocalEvaluator", "RemoteEvaluator",
    "PolicyDispatcher", "build_evaluator",
]
