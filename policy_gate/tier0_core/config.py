"""
policy_gate.tier0_core.config
──────────────────────────────
Typed gate configuration with env layering. Reads from .env → environment
variables (prefix POLICY_GATE_) → keyword arguments. The model is frozen:
it is built once and shared read-only by every request.

``verify()`` raises ConfigurationError at startup, never at request time.

Minimal stack: pydantic-settings
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Mapping

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from policy_gate.tier0_core.errors import ConfigurationError
from policy_gate.tier0_core.http import HTTP


class GateConfig(BaseSettings):
    """
    Everything a PolicyGate needs: where the policy lives, which query to
    evaluate, what result means "allow" and how to answer a denial.
    """

    model_config = SettingsConfigDict(
        env_prefix="POLICY_GATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        arbitrary_types_allowed=True,
    )

    # ── Policy source ─────────────────────────────────────────────────────────
    policy: str = ""
    policy_file: Path | None = None
    query: str = ""
    url: str | None = None

    # ── Enforcement ───────────────────────────────────────────────────────────
    expected_result: bool = True
    denied_status_code: int = HTTP.FORBIDDEN
    denied_message: str = "Forbidden"
    expose_errors: bool = False

    # ── Remote endpoint ───────────────────────────────────────────────────────
    timeout: float = 5.0
    token: SecretStr | None = None

    # ── Diagnostics ───────────────────────────────────────────────────────────
    debug: bool = False
    logger: Any = Field(default=None, exclude=True)

    # ── Input construction ────────────────────────────────────────────────────
    input_binder: Callable[[Any], Mapping[str, Any]] | None = Field(
        default=None, exclude=True
    )

    @field_validator("url")
    @classmethod
    def normalize_url(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip().rstrip("/")

    @property
    def mode(self) -> str:
        return "remote" if self.url else "local"

    def policy_source(self) -> str:
        """Return the inline policy, or the content of ``policy_file``."""
        if self.policy or self.policy_file is None:
            return self.policy
        try:
            return self.policy_file.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(
                user_message="policy_file cannot be read",
                detail=f"policy_file {str(self.policy_file)!r} cannot be read: {exc}",
            ) from exc

    def verify(self) -> None:
        """Raise ConfigurationError unless the gate can serve traffic."""
        if not self.query.strip():
            raise ConfigurationError(user_message="query must be provided")
        if not (self.url or self.policy or self.policy_file):
            raise ConfigurationError(
                user_message="either policy, policy_file or url must be provided"
            )
        if self.url and not self.url.startswith(("http://", "https://")):
            raise ConfigurationError(
                user_message=f"url must be an http(s) URL, got {self.url!r}"
            )
        if not self.url and not self.policy_source().strip():
            raise ConfigurationError(user_message="policy is empty")
        if not 100 <= self.denied_status_code <= 599:
            raise ConfigurationError(
                user_message=(
                    "denied_status_code must be an HTTP status code, "
                    f"got {self.denied_status_code}"
                )
            )
        if self.timeout <= 0:
            raise ConfigurationError(user_message="timeout must be positive")


@lru_cache(maxsize=1)
def get_config() -> GateConfig:
    """
    Return the env-loaded gate config. Cached after first call.
    Call _reset_config() in tests to pick up new env vars.
    """
    return GateConfig()


def _reset_config() -> None:
    """For tests: clear the config cache."""
    get_config.cache_clear()


__all__ = ["GateConfig", "get_config"]
