"""Tests for application configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from epsilon_pipeline.config import AppConfig


class TestAppConfig:
    def test_defaults(self):
        config = AppConfig()
        assert config.epsilon == 0.4
        assert config.warmup_iterations == 3
        assert config.tick_interval_ms == 2500
        assert config.tick_interval == 2.5
        assert config.locale_cache_days == 30
        assert config.port == 7860

    def test_from_env(self):
        config = AppConfig.from_env({
            "PORT": "8050",
            "EPSILON_PIPELINE_EPSILON": "0.25",
            "EPSILON_PIPELINE_TICK_INTERVAL_MS": "500",
            "EPSILON_PIPELINE_DEFAULT_LOCALE": "es",
            "EPSILON_PIPELINE_DEBUG": "true",
            "UNRELATED": "x",
        })
        assert config.port == 8050
        assert config.epsilon == 0.25
        assert config.tick_interval == 0.5
        assert config.default_locale == "es"
        assert config.debug is True

    def test_empty_env_gives_defaults(self):
        assert AppConfig.from_env({}) == AppConfig()

    @pytest.mark.parametrize("value", ["0", "1", "1.5", "-0.2", "abc"])
    def test_invalid_epsilon(self, value):
        with pytest.raises(ValidationError):
            AppConfig.from_env({"EPSILON_PIPELINE_EPSILON": value})

    def test_invalid_locale(self):
        with pytest.raises(ValidationError):
            AppConfig(default_locale="fr")

    def test_invalid_interval(self):
        with pytest.raises(ValidationError):
            AppConfig(tick_interval_ms=0)


class TestLogging:
    def test_configure_is_repeatable(self, capsys):
        from loguru import logger

        from epsilon_pipeline.logs import configure_logging

        configure_logging("DEBUG")
        configure_logging("WARNING")
        logger.info("hidden")
        logger.warning("shown")
        err = capsys.readouterr().err
        assert "shown" in err
        assert "hidden" not in err
