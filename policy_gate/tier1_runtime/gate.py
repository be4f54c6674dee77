"""
policy_gate.tier1_runtime.gate
───────────────────────────────
The enforcement gate. Per request:

    Start → Bound → Decided → Continue | Denied | Errored

- the binder fails                 → Errored (500)
- the dispatcher fails             → Errored (500)
- decision == expected_result      → Continue, response left untouched
- decision != expected_result      → Denied with the configured status and
                                     {"error": denied_message}

An evaluation failure is never reported as a denial.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from policy_gate.tier0_core.config import GateConfig
from policy_gate.tier0_core.errors import GateError
from policy_gate.tier0_core.http import error_body
from policy_gate.tier0_core.logging import get_logger
from policy_gate.tier1_runtime.binding import (
    IncomingRequest,
    InputBinder,
    bind,
    resolve_binder,
)
from policy_gate.tier3_platform.policy import PolicyDispatcher, PolicyEvaluator


class Outcome(str, enum.Enum):
    CONTINUE = "continue"
    DENIED = "denied"
    ERRORED = "errored"


@dataclass(frozen=True)
class GateResult:
    outcome: Outcome
    status_code: int | None = None
    body: dict[str, Any] | None = None
    error: GateError | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.CONTINUE


_CONTINUE = GateResult(Outcome.CONTINUE)


class PolicyGate:
    """
    Framework-neutral request authorization. Server adapters in
    ``middleware`` turn a GateResult into "call the next app" or a response.

    Usage::

        config = GateConfig(policy=REGO, query="data.policy.allow")
        gate = PolicyGate(config, input_binder=request_input)
        result = gate.check(IncomingRequest(method="GET", path="/api/v1/users"))
    """

    def __init__(
        self,
        config: GateConfig,
        input_binder: InputBinder | None = None,
        *,
        evaluator: PolicyEvaluator | None = None,
    ) -> None:
        config.verify()
        self.config = config
        self._binder = resolve_binder(input_binder, config)
        self._dispatcher = PolicyDispatcher(config, evaluator)
        self._log = config.logger
        if self._log is None and config.debug:
            self._log = get_logger("policy_gate")

    @property
    def mode(self) -> str:
        return self._dispatcher.mode

    def check(self, request: IncomingRequest) -> GateResult:
        self._received(request)
        try:
            document = bind(self._binder, request)
            result = self._dispatcher.decide(document)
        except GateError as exc:
            return self._errored(request, exc)
        return self._enforce(request, result)

    async def check_async(self, request: IncomingRequest) -> GateResult:
        self._received(request)
        try:
            document = bind(self._binder, request)
            result = await self._dispatcher.decide_async(document)
        except GateError as exc:
            return self._errored(request, exc)
        return self._enforce(request, result)

    # ── Transitions ──────────────────────────────────────────────────────────

    def _enforce(self, request: IncomingRequest, result: bool) -> GateResult:
        if self.config.debug:
            self._log.info(
                "policy_gate.decision",
                result=result,
                expected=self.config.expected_result,
                request_id=request.request_id,
            )
        if result == self.config.expected_result:
            return _CONTINUE
        return GateResult(
            Outcome.DENIED,
            status_code=self.config.denied_status_code,
            body=error_body(self.config.denied_message),
        )

    def _errored(self, request: IncomingRequest, exc: GateError) -> GateResult:
        if self.config.debug:
            self._log.error(
                "policy_gate.error",
                code=exc.code,
                error=exc.detail,
                request_id=request.request_id,
            )
        message = exc.detail if self.config.expose_errors else exc.user_message
        return GateResult(
            Outcome.ERRORED,
            status_code=exc.status_code,
            body=error_body(message),
            error=exc,
        )

    def _received(self, request: IncomingRequest) -> None:
        if self.config.debug:
            self._log.info(
                "policy_gate.request_received",
                method=request.method,
                path=request.path,
                request_id=request.request_id,
            )


__all__ = ["PolicyGate", "GateResult", "Outcome"]
