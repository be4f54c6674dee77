"""
policy_gate test configuration.

Remote calls go through httpx.MockTransport and the gate is usually driven
with a fake evaluator, so no policy service is required. Local evaluation
tests run the real embedded engine.
"""
from __future__ import annotations

import os
from typing import Any

import pytest

# ── Keep env-driven config deterministic ──────────────────────────────────
# These must be set before any policy_gate modules read the environment.

for _key in [k for k in os.environ if k.startswith("POLICY_GATE_")]:
    del os.environ[_key]


ALLOW_POLICY = """
package policy

import rego.v1

default allow := false

allow if {
    input.path == "/api/v1/users"
    input.method == "GET"
}
"""


# ── Fakes ──────────────────────────────────────────────────────────────────

class RecordingLogger:
    """Structlog-shaped sink that keeps every call."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    def info(self, event: str, **kw: Any) -> None:
        self.events.append(("info", event, kw))

    def error(self, event: str, **kw: Any) -> None:
        self.events.append(("error", event, kw))

    def names(self) -> list[str]:
        return [event for _, event, _ in self.events]


class StaticEvaluator:
    """Evaluator returning a fixed result (or raising) and recording inputs."""

    mode = "fake"

    def __init__(self, result: Any = True, error: BaseException | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def evaluate(self, query: str, document: dict[str, Any]) -> Any:
        self.calls.append((query, document))
        if self.error is not None:
            raise self.error
        return self.result

    async def evaluate_async(self, query: str, document: dict[str, Any]) -> Any:
        return self.evaluate(query, document)


def path_method_binder(request) -> dict[str, Any]:
    return {"path": request.path, "method": request.method}


# ── Fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def reset_config_cache():
    """Each test reads the environment afresh."""
    from policy_gate.tier0_core.config import _reset_config

    _reset_config()
    yield
    _reset_config()


@pytest.fixture
def allow_policy() -> str:
    return ALLOW_POLICY


@pytest.fixture
def local_config():
    """Scenario configuration: inline policy, allow on true, 403 Forbidden."""
    from policy_gate.tier0_core.config import GateConfig

    return GateConfig(
        policy=ALLOW_POLICY,
        query="data.policy.allow",
        expected_result=True,
        denied_status_code=403,
        denied_message="Forbidden",
    )


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def make_evaluator():
    return StaticEvaluator


@pytest.fixture
def path_binder():
    return path_method_binder


@pytest.fixture
def restore_structlog():
    """Put the global structlog configuration back after the test."""
    import structlog

    saved = structlog.get_config()
    yield
    structlog.configure(**saved)
