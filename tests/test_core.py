"""Tests for the ambient core: log formatting, Sentry event scrubbing, startup validation."""

import json
import logging
import sys

import pytest

from genmedia.core import config as config_module
from genmedia.core import sentry as sentry_module
from genmedia.core.config import Settings, validate_settings_for_production
from genmedia.core.logging import JSONFormatter
from genmedia.gateway.errors import ProviderError
from genmedia.gateway.types import ProviderId


def _record(msg="hello", **extra):
    record = logging.LogRecord("genmedia.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(_record()))
        assert data["level"] == "INFO"
        assert data["logger"] == "genmedia.test"
        assert data["message"] == "hello"
        assert "provider" not in data

    def test_context_fields(self):
        data = json.loads(JSONFormatter().format(_record(provider="fal", attempt=2, http_status=503)))
        assert data["provider"] == "fal"
        assert data["attempt"] == 2
        assert data["http_status"] == 503

    def test_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        data = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in data["exception"]


def _use_settings(monkeypatch, **values):
    fake = Settings(_env_file=None, **values)
    monkeypatch.setattr(config_module, "settings", fake)
    monkeypatch.setattr(sentry_module, "settings", fake)
    return fake


class TestSentryBeforeSend:
    def test_masks_provider_keys(self, monkeypatch):
        _use_settings(monkeypatch, fal_api_key="fal-secret-123456")
        event = {
            "message": "call failed with key fal-secret-123456",
            "extra": {"headers": ["Authorization: Key fal-secret-123456"]},
            "level": "error",
        }

        out = sentry_module.before_send(event, {})

        assert "fal-secret-123456" not in json.dumps(out)
        assert out["extra"]["headers"] == ["Authorization: Key [Filtered]"]
        assert out["level"] == "error"

    def test_tags_gateway_errors(self, monkeypatch):
        _use_settings(monkeypatch)
        exc = ProviderError("bad gateway", ProviderId.MODELSLAB, http_status=502)

        out = sentry_module.before_send({}, {"exc_info": (type(exc), exc, None)})

        assert out["tags"] == {"gateway.error": "provider_error", "gateway.provider": "modelslab"}


class TestStartupValidation:
    def test_requires_a_provider_key(self, monkeypatch):
        _use_settings(monkeypatch, fal_api_key="", openrouter_api_key="", modelslab_api_key="")
        with pytest.raises(SystemExit, match="FAL_API_KEY"):
            validate_settings_for_production()

    def test_production_rejects_wildcard_cors(self, monkeypatch):
        _use_settings(monkeypatch, fal_api_key="fal-key-123456", app_env="production", app_debug=False)
        with pytest.raises(SystemExit, match="ALLOWED_ORIGINS"):
            validate_settings_for_production()

    def test_valid_configuration(self, monkeypatch):
        _use_settings(monkeypatch, fal_api_key="fal-key-123456", fal_rpm_limit=10)
        validate_settings_for_production()
