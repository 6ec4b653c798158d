"""Tests for Sentry initialization."""

from pydantic import SecretStr

from memloop.config.models import SentryConfig
from memloop.observability import init_sentry


class TestInitSentry:
    def test_without_dsn(self):
        assert init_sentry(SentryConfig()) is False

    def test_without_sdk(self, monkeypatch):
        monkeypatch.setattr("memloop.observability.SENTRY_AVAILABLE", False)
        assert init_sentry(SentryConfig(dsn=SecretStr("https://key@sentry.example/1"))) is False
