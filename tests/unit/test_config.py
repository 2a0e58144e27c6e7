"""
Unit tests for scout/config.py

Tests YAML and environment loading, validation and the log filter.
"""

import logging
from unittest.mock import patch

import pytest
import yaml

from scout.config import (
    Config,
    ForumConfig,
    OpenAIConfig,
    SMTPConfig,
    SourceLogFilter,
    StateConfig,
    StorefrontConfig,
    _get_yaml,
    _get_yaml_section,
    source_context,
)


@pytest.fixture
def yaml_values(sample_config_yaml):
    """Swap the loaded YAML for the sample file's contents."""
    values = yaml.safe_load(sample_config_yaml.read_text())
    with patch("scout.config._yaml_config", values):
        yield values


class TestYamlConfigLoading:
    def test_get_yaml_returns_default_for_missing_key(self):
        assert _get_yaml("nonexistent", "key", "default_value") == "default_value"

    def test_get_yaml_section_returns_empty_dict_for_missing(self):
        assert _get_yaml_section("nonexistent") == {}

    def test_values_from_yaml(self, yaml_values):
        forum = ForumConfig()
        storefront = StorefrontConfig()

        assert forum.subreddits == ["SaaS"]
        assert forum.threshold == 4
        assert storefront.markets == ["us", "jp"]
        assert storefront.min_rank == 10
        # Untouched keys keep their defaults
        assert storefront.tracked_window == 300
        assert storefront.tracked_ranks == 100


class TestDataclasses:
    def test_secrets_from_env(self, mock_env_vars):
        assert OpenAIConfig().api_key == "test-openai-key"
        smtp = SMTPConfig()
        assert smtp.username == "test@example.com"
        assert smtp.password == "test-password"

    def test_scoring_configs_are_frozen(self):
        forum = ForumConfig(keywords={"x": 1})
        with pytest.raises(AttributeError):
            forum.threshold = 10  # type: ignore[misc]

    def test_state_defaults(self, yaml_values):
        state = StateConfig()
        assert state.history_ceiling == 2000
        assert state.history_retain == 1000


class TestHasLLMCredentials:
    def test_openai(self, monkeypatch, yaml_values):
        monkeypatch.setenv("OPENAI_API_KEY", "k")
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        cfg = Config()
        cfg.app.llm_provider = "openai"
        assert cfg.has_llm_credentials() is True

    def test_google_without_key(self, monkeypatch, yaml_values):
        monkeypatch.setenv("OPENAI_API_KEY", "k")
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        cfg = Config()
        assert cfg.app.llm_provider == "google"
        assert cfg.has_llm_credentials() is False


class TestValidate:
    def test_valid(self, mock_env_vars, yaml_values, sample_config_yaml):
        with patch("scout.config.CONFIG_FILE", sample_config_yaml):
            assert Config().validate() == []

    def test_missing_config_file(self, mock_env_vars, yaml_values, tmp_path):
        with patch("scout.config.CONFIG_FILE", tmp_path / "missing.yaml"):
            errors = Config().validate()
        assert any("Config file not found" in e for e in errors)

    def test_missing_smtp_credentials(self, monkeypatch, yaml_values, sample_config_yaml):
        monkeypatch.delenv("SMTP_USERNAME", raising=False)
        monkeypatch.delenv("SMTP_PASSWORD", raising=False)
        with patch("scout.config.CONFIG_FILE", sample_config_yaml):
            errors = Config().validate()
        assert any("SMTP_USERNAME" in e for e in errors)

    def test_retain_above_ceiling(self, mock_env_vars, yaml_values, sample_config_yaml):
        cfg = Config()
        cfg.state.history_retain = 5000
        with patch("scout.config.CONFIG_FILE", sample_config_yaml):
            errors = cfg.validate()
        assert any("history_retain" in e for e in errors)

    def test_unsupported_provider(self, mock_env_vars, yaml_values, sample_config_yaml):
        cfg = Config()
        cfg.app.llm_provider = "anthropic"  # type: ignore[assignment]
        with patch("scout.config.CONFIG_FILE", sample_config_yaml):
            errors = cfg.validate()
        assert any("Unsupported llm.provider" in e for e in errors)


class TestSourceLogFilter:
    def test_injects_source_name(self):
        record = logging.LogRecord("scout", logging.INFO, __file__, 1, "msg", None, None)
        token = source_context.set("r/SaaS")
        try:
            SourceLogFilter().filter(record)
        finally:
            source_context.reset(token)
        assert record.source_info == " [r/SaaS]"

    def test_empty_without_source(self):
        record = logging.LogRecord("scout", logging.INFO, __file__, 1, "msg", None, None)
        SourceLogFilter().filter(record)
        assert record.source_info == ""


class TestStorefrontWindow:
    def test_tracked_ranks_capped_by_fetch_limit(self):
        assert StorefrontConfig(fetch_limit=100, tracked_window=300).tracked_ranks == 100
        assert StorefrontConfig(fetch_limit=100, tracked_window=80).tracked_ranks == 80

    def test_non_positive_window_rejected(self, mock_env_vars, yaml_values, sample_config_yaml):
        cfg = Config()
        cfg.storefront = StorefrontConfig(fetch_limit=0)
        with patch("scout.config.CONFIG_FILE", sample_config_yaml):
            errors = cfg.validate()
        assert any("fetch_limit" in e for e in errors)
