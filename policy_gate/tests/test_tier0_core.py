"""Tests for tier0_core modules."""
from __future__ import annotations

import pytest
import structlog
from pydantic import ValidationError as PydanticValidationError

from policy_gate.tier0_core.config import GateConfig, get_config
from policy_gate.tier0_core.errors import (
    BindingError,
    ConfigurationError,
    EvaluationError,
    GateError,
)
from policy_gate.tier0_core.http import HTTP, encode_body, error_body, is_success, status_line
from policy_gate.tier0_core.logging import (
    REDACTED,
    configure_logging,
    get_logger,
    redact_processor,
)


# ── errors ─────────────────────────────────────────────────────────────────

class TestErrors:
    def test_gate_error_defaults(self):
        e = GateError()
        assert e.code == "internal_error"
        assert e.status_code == 500
        assert e.to_dict() == {"error": "Internal Server Error"}

    def test_detail_stays_internal(self):
        e = EvaluationError(detail="connection refused to opa:8181")
        assert "opa:8181" in str(e)
        assert "opa:8181" not in e.user_message
        assert e.code == "evaluation_error"

    def test_subclasses_share_base(self):
        for cls in (ConfigurationError, BindingError, EvaluationError):
            assert issubclass(cls, GateError)

    def test_metadata_is_kept(self):
        e = BindingError(detail="boom", request_id="req-1")
        assert e.metadata == {"request_id": "req-1"}


# ── config ─────────────────────────────────────────────────────────────────

class TestConfig:
    def test_defaults(self):
        cfg = GateConfig(policy="package p", query="data.p.allow")
        assert cfg.expected_result is True
        assert cfg.denied_status_code == 403
        assert cfg.denied_message == "Forbidden"
        assert cfg.debug is False
        assert cfg.mode == "local"

    def test_valid_local_config(self, local_config):
        local_config.verify()

    def test_missing_policy_and_url_fails(self):
        cfg = GateConfig(query="data.policy.allow")
        with pytest.raises(ConfigurationError, match="policy"):
            cfg.verify()

    def test_missing_query_fails(self):
        cfg = GateConfig(policy="package p")
        with pytest.raises(ConfigurationError, match="query"):
            cfg.verify()

    def test_blank_query_fails(self):
        cfg = GateConfig(policy="package p", query="   ")
        with pytest.raises(ConfigurationError):
            cfg.verify()

    def test_url_selects_remote_mode(self):
        cfg = GateConfig(url="http://opa:8181/v1/data/", query="data.p.allow")
        cfg.verify()
        assert cfg.mode == "remote"
        assert cfg.url == "http://opa:8181/v1/data"

    def test_url_wins_over_inline_policy(self):
        cfg = GateConfig(url="http://opa:8181/v1/data", policy="package p", query="data.p.allow")
        assert cfg.mode == "remote"

    def test_blank_url_is_none(self):
        cfg = GateConfig(url="  ", policy="package p", query="data.p.allow")
        assert cfg.url is None
        assert cfg.mode == "local"

    def test_non_http_url_fails(self):
        cfg = GateConfig(url="opa:8181", query="data.p.allow")
        with pytest.raises(ConfigurationError, match="http"):
            cfg.verify()

    def test_bad_status_code_fails(self):
        cfg = GateConfig(policy="package p", query="data.p.allow", denied_status_code=42)
        with pytest.raises(ConfigurationError, match="denied_status_code"):
            cfg.verify()

    def test_non_positive_timeout_fails(self):
        cfg = GateConfig(url="http://opa", query="data.p.allow", timeout=0)
        with pytest.raises(ConfigurationError, match="timeout"):
            cfg.verify()

    def test_policy_file(self, tmp_path, allow_policy):
        path = tmp_path / "authz.rego"
        path.write_text(allow_policy, encoding="utf-8")
        cfg = GateConfig(policy_file=path, query="data.policy.allow")
        cfg.verify()
        assert cfg.policy_source() == allow_policy

    def test_unreadable_policy_file_fails(self, tmp_path):
        cfg = GateConfig(policy_file=tmp_path / "missing.rego", query="data.policy.allow")
        with pytest.raises(ConfigurationError, match="'.*missing.rego' cannot be read") as info:
            cfg.verify()
        assert info.value.user_message == "policy_file cannot be read"

    def test_config_is_frozen(self, local_config):
        with pytest.raises(PydanticValidationError):
            local_config.query = "data.other.allow"

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("POLICY_GATE_URL", "http://opa:8181/v1/data")
        monkeypatch.setenv("POLICY_GATE_QUERY", "data.httpapi.allow")
        monkeypatch.setenv("POLICY_GATE_EXPECTED_RESULT", "false")
        monkeypatch.setenv("POLICY_GATE_DENIED_STATUS_CODE", "401")
        monkeypatch.setenv("POLICY_GATE_TOKEN", "s3cr3t")
        cfg = get_config()
        assert cfg.mode == "remote"
        assert cfg.query == "data.httpapi.allow"
        assert cfg.expected_result is False
        assert cfg.denied_status_code == 401
        assert cfg.token.get_secret_value() == "s3cr3t"
        assert "s3cr3t" not in repr(cfg)

    def test_get_config_is_cached(self):
        assert get_config() is get_config()


# ── http ───────────────────────────────────────────────────────────────────

class TestHttp:
    def test_error_body(self):
        assert error_body("Forbidden") == {"error": "Forbidden"}

    def test_encode_body(self):
        assert encode_body({"error": "Forbidden"}) == b'{"error": "Forbidden"}'

    def test_status_line(self):
        assert status_line(HTTP.FORBIDDEN) == "403 Forbidden"
        assert status_line(HTTP.INTERNAL_SERVER_ERROR) == "500 Internal Server Error"
        assert status_line(499) == "499 Unknown"

    def test_is_success(self):
        assert is_success(200)
        assert is_success(204)
        assert not is_success(302)
        assert not is_success(500)


# ── logging ────────────────────────────────────────────────────────────────

class TestRedaction:
    def test_redacts_sensitive_keys(self):
        event = redact_processor(None, "info", {"event": "x", "token": "abc"})
        assert event["token"] == REDACTED
        assert event["event"] == "x"

    def test_redacts_one_level_into_dicts(self):
        event = redact_processor(
            None, "info",
            {"headers": {"authorization": "Bearer abc", "accept": "*/*"}},
        )
        assert event["headers"]["authorization"] == REDACTED
        assert event["headers"]["accept"] == "*/*"


class TestLoggerSetup:
    def test_get_logger_keeps_host_configuration(self, restore_structlog):
        processors = [structlog.processors.KeyValueRenderer()]
        structlog.configure(processors=processors)
        get_logger("policy_gate").info("policy_gate.test")
        assert structlog.get_config()["processors"] == processors

    def test_configure_logging_installs_redaction(self, restore_structlog):
        configure_logging(level="debug", fmt="console")
        assert redact_processor in structlog.get_config()["processors"]
