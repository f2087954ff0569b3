"""
Tests for opkit.settings module.

Tests cover:
- Defaults
- Environment overrides
- API prefix normalization
"""

import pytest
from pydantic import ValidationError

from opkit.settings import OperationSettings, get_settings


class TestOperationSettings:
    """Tests for OperationSettings."""

    def test_defaults(self, settings):
        assert settings.api_prefix == "/api/"
        assert settings.debug is False
        assert settings.log_level == "INFO"
        assert settings.log_format is None
        assert settings.service_name == "opkit"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("OPKIT_API_PREFIX", "/ops")
        monkeypatch.setenv("OPKIT_DEBUG", "true")
        monkeypatch.setenv("OPKIT_LOG_FORMAT", "json")

        settings = OperationSettings(_env_file=None)

        assert settings.api_prefix == "/ops/"
        assert settings.debug is True
        assert settings.log_format == "json"

    @pytest.mark.parametrize("prefix", ["api", "/api", "api/", "/api/"])
    def test_prefix_normalization(self, prefix):
        assert OperationSettings(_env_file=None, api_prefix=prefix).api_prefix == "/api/"

    def test_invalid_log_format(self):
        with pytest.raises(ValidationError):
            OperationSettings(_env_file=None, log_format="xml")

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
