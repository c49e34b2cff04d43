"""Tests for climarisk.config."""

import dataclasses
import logging

import pytest

from climarisk.config import (
    ClimaRiskConfig,
    configure_logging,
    get_config,
    reset_config,
    set_config,
)
from climarisk.exceptions import ConfigurationError


class TestClimaRiskConfig:
    """Tests for ClimaRiskConfig validation."""

    def test_defaults_are_valid(self):
        """The default configuration validates."""
        cfg = ClimaRiskConfig()

        assert cfg.risk_breakpoints == (0.25, 0.5, 0.75)
        assert cfg.severity_breakpoints == (1.0, 2.0, 3.0)
        assert cfg.max_concurrency == 5

    def test_weight_groups_sum_to_one(self):
        """Every default weight group is a convex combination."""
        for weights in ClimaRiskConfig().weight_groups().values():
            assert sum(weights.values()) == pytest.approx(1.0)

    def test_log_level_normalised(self):
        """Log levels are upper-cased."""
        assert ClimaRiskConfig(log_level="debug").log_level == "DEBUG"

    def test_lists_coerced_to_tuples(self):
        """Breakpoints given as lists are stored as tuples."""
        cfg = ClimaRiskConfig(risk_breakpoints=[0.2, 0.4, 0.8])
        assert cfg.risk_breakpoints == (0.2, 0.4, 0.8)

    def test_is_immutable(self):
        """Fields cannot be reassigned."""
        cfg = ClimaRiskConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            cfg.max_retries = 1

    def test_all_errors_reported(self):
        """Every violation is listed, not only the first."""
        with pytest.raises(ConfigurationError) as exc_info:
            ClimaRiskConfig(
                log_level="LOUD",
                max_concurrency=0,
                risk_breakpoints=(0.5, 0.4, 0.9),
                drought_weight_deficit=0.9,
            )

        errors = exc_info.value.context["errors"]
        assert len(errors) == 4
        assert any("log_level" in e for e in errors)
        assert any("max_concurrency" in e for e in errors)
        assert any("risk_breakpoints" in e for e in errors)
        assert any("drought weights" in e for e in errors)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"risk_breakpoints": (0.25, 0.5)},
            {"risk_breakpoints": (0.25, 0.5, 1.5)},
            {"severity_breakpoints": (0.0, 2.0, 3.0)},
            {"max_retries": 3},
            {"max_retries": -1},
            {"recent_days": 400},
            {"default_grid_size": 500},
            {"retry_base_delay": 5.0, "retry_max_delay": 1.0},
            {"idw_power": 0},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        """Out-of-range settings raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            ClimaRiskConfig(**kwargs)

    def test_configuration_error_is_value_error(self):
        """ConfigurationError can be caught as ValueError."""
        with pytest.raises(ValueError):
            ClimaRiskConfig(cache_ttl=0)

    def test_to_dict_redacts_redis_url(self):
        """The Redis URL never appears in serialised config."""
        cfg = ClimaRiskConfig(redis_url="redis://:secret@cache:6379/0")

        assert cfg.to_dict()["redis_url"] == "***"
        assert "secret" not in repr(cfg)
        assert cfg.to_dict()["risk_breakpoints"] == [0.25, 0.5, 0.75]


class TestFromEnv:
    """Tests for ClimaRiskConfig.from_env."""

    def test_reads_prefixed_variables(self, monkeypatch):
        """CLIMARISK_ variables override defaults."""
        monkeypatch.setenv("CLIMARISK_MAX_CONCURRENCY", "8")
        monkeypatch.setenv("CLIMARISK_ENABLE_METRICS", "false")
        monkeypatch.setenv("CLIMARISK_IDW_POWER", "3")
        monkeypatch.setenv("CLIMARISK_RISK_BREAKPOINTS", "0.2, 0.5, 0.8")
        monkeypatch.setenv("CLIMARISK_LOG_LEVEL", "warning")

        cfg = ClimaRiskConfig.from_env()

        assert cfg.max_concurrency == 8
        assert cfg.enable_metrics is False
        assert cfg.idw_power == 3.0
        assert cfg.risk_breakpoints == (0.2, 0.5, 0.8)
        assert cfg.log_level == "WARNING"

    def test_malformed_values_fall_back(self, monkeypatch, caplog):
        """Unparseable numbers keep the default and log a warning."""
        monkeypatch.setenv("CLIMARISK_CACHE_TTL", "soon")

        with caplog.at_level(logging.WARNING, logger="climarisk.config"):
            cfg = ClimaRiskConfig.from_env()

        assert cfg.cache_ttl == 1800
        assert "CLIMARISK_CACHE_TTL" in caplog.text

    def test_invalid_env_combination_raises(self, monkeypatch):
        """Values that parse but violate constraints still fail validation."""
        monkeypatch.setenv("CLIMARISK_WEIGHT_FLOOD", "0.9")
        with pytest.raises(ConfigurationError):
            ClimaRiskConfig.from_env()


class TestSingleton:
    """Tests for get_config / set_config / reset_config."""

    def test_set_and_get(self):
        """set_config installs the instance get_config returns."""
        cfg = ClimaRiskConfig(max_concurrency=2)
        set_config(cfg)
        assert get_config() is cfg

    def test_reset_rereads_env(self, monkeypatch):
        """After reset the next get_config reads the environment."""
        monkeypatch.setenv("CLIMARISK_MAX_RETRIES", "1")
        reset_config()
        assert get_config().max_retries == 1

    def test_configure_logging(self):
        """configure_logging applies the level to the package logger."""
        configure_logging(ClimaRiskConfig(log_level="ERROR"))
        assert logging.getLogger("climarisk").level == logging.ERROR
        logging.getLogger("climarisk").setLevel(logging.NOTSET)
