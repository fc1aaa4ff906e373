"""Tests for id generation and startup checks."""

import logging

import pytest

from app.core import config
from app.core.database.base import generate_ulid
from app.main import check_secret_key


pytestmark = pytest.mark.unit


class TestGenerateUlid:
    def test_is_a_26_character_string(self):
        value = generate_ulid()
        assert isinstance(value, str)
        assert len(value) == 26

    def test_unique(self):
        assert generate_ulid() != generate_ulid()


class TestSecretKeyCheck:
    def test_default_key_warns(self, monkeypatch, caplog):
        monkeypatch.setattr(config, "SECRET_KEY", config.DEFAULT_SECRET_KEY)
        with caplog.at_level(logging.WARNING, logger="app.main"):
            assert check_secret_key() is False
        assert "SECRET_KEY is not set" in caplog.text

    def test_configured_key_is_quiet(self, monkeypatch, caplog):
        monkeypatch.setattr(config, "SECRET_KEY", "configured-secret")
        with caplog.at_level(logging.WARNING, logger="app.main"):
            assert check_secret_key() is True
        assert caplog.text == ""
