"""Tests for RelayConfig.from_env."""

import os
from unittest.mock import patch

import pytest

from app.relay.config import RelayConfig
from app.relay.groww_client import DEFAULT_BASE_URL


class TestRelayConfig:
    """Tests for environment parsing."""

    def test_defaults(self):
        """Test an empty environment yields the documented defaults."""
        config = RelayConfig.from_env({})
        assert config.api_key == ""
        assert config.base_url == DEFAULT_BASE_URL
        assert config.cache_ttl == 5.0
        assert config.batch_size == 3
        assert config.batch_delay == 0.5
        assert config.refresh_interval == 10.0
        assert config.refresh_batch_size == 10
        assert config.max_calls_per_minute == 60
        assert config.load_instruments
        assert config.port == 3000
        assert config.log_level == "INFO"
        assert not config.use_upstream

    def test_reads_os_environ(self):
        """Test os.environ is the default source."""
        with patch.dict(os.environ, {"GROWW_API_KEY": "abc", "BATCH_SIZE": "5"}, clear=True):
            config = RelayConfig.from_env()
        assert config.use_upstream
        assert config.batch_size == 5

    def test_overrides(self):
        """Test every tunable can be overridden."""
        config = RelayConfig.from_env(
            {
                "GROWW_BASE_URL": "https://sandbox.test",
                "QUOTE_CACHE_TTL": "2.5",
                "FETCH_TIMEOUT": "3",
                "BATCH_DELAY": "0",
                "REFRESH_INTERVAL": "30",
                "REFRESH_BATCH_SIZE": "20",
                "MAX_CALLS_PER_MINUTE": "0",
                "RATE_LIMIT_COOLDOWN": "10",
                "SESSION_RETENTION": "60",
                "LOAD_INSTRUMENTS": "off",
                "PORT": "8080",
                "LOG_LEVEL": "debug",
            }
        )
        assert config.base_url == "https://sandbox.test"
        assert config.cache_ttl == 2.5
        assert config.fetch_timeout == 3.0
        assert config.batch_delay == 0.0
        assert config.refresh_interval == 30.0
        assert config.refresh_batch_size == 20
        assert config.max_calls_per_minute == 0
        assert config.rate_limit_cooldown == 10.0
        assert config.session_retention == 60.0
        assert not config.load_instruments
        assert config.port == 8080
        assert config.log_level == "DEBUG"

    def test_whitespace_key_means_simulator(self):
        """Test a whitespace-only API key is treated as unset."""
        assert not RelayConfig.from_env({"GROWW_API_KEY": "   "}).use_upstream

    @pytest.mark.parametrize(
        "env",
        [
            {"BATCH_SIZE": "three"},
            {"BATCH_SIZE": "0"},
            {"BATCH_SIZE": "2.5"},
            {"QUOTE_CACHE_TTL": "-1"},
            {"FETCH_TIMEOUT": "0"},
        ],
    )
    def test_invalid_numbers(self, env):
        """Test bad values raise ValueError naming the variable."""
        name = next(iter(env))
        with pytest.raises(ValueError, match=name):
            RelayConfig.from_env(env)
