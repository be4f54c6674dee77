"""
policy_gate
───────────
Stable top-level exports. Import from here, not from sub-modules directly.
Every name exported here is part of the public API and subject to semver.
"""
from policy_gate.tier0_core.errors import (
    GateError,
    ConfigurationError,
    BindingError,
    EvaluationError,
)
from policy_gate.tier0_core.config import GateConfig, get_config
from policy_gate.tier0_core.logging import configure_logging, get_logger, redact_processor

from policy_gate.tier1_runtime.binding import (
    IncomingRequest,
    InputBinder,
    request_input,
)
from policy_gate.tier1_runtime.gate import PolicyGate, GateResult, Outcome
from policy_gate.tier1_runtime.middleware import (
    PolicyGateASGIMiddleware,
    PolicyGateWSGIMiddleware,
)

from policy_gate.tier3_platform.policy import (
    PolicyEvaluator,
    PolicyDispatcher,
    LocalEvaluator,
    build_evaluator,
)
from policy_gate.tier3_platform.opa_client import RemoteEvaluator

__version__ = "0.1.0"
__all__ = [
    # errors
    "GateError", "ConfigurationError", "BindingError", "EvaluationError",
    # config
    "GateConfig", "get_config",
    # logging
    "get_logger", "configure_logging", "redact_processor",
    # binding
    "IncomingRequest", "InputBinder", "request_input",
    # gate
    "PolicyGate", "GateResult", "Outcome",
    # middleware
    "PolicyGateASGIMiddleware", "PolicyGateWSGIMiddleware",
    # evaluation
    "PolicyEvaluator", "PolicyDispatcher", "LocalEvaluator", "RemoteEvaluator",
    "build_evaluator",
]
