"""
Tests for O8 configuration and logging setup
"""

import logging

import pytest
import structlog

from o8.config import DEFAULT_API_URL, StoreConfig
from o8.core.ids import DEFAULT_GATEWAY
from o8.log import configure_logging


class TestStoreConfig:
    """Test environment-driven store settings."""

    def test_defaults(self):
        config = StoreConfig.from_env({})

        assert config.api_url == DEFAULT_API_URL
        assert config.gateway_url == DEFAULT_GATEWAY
        assert config.timeout == 30.0
        assert config.retries == 3
        assert config.base_delay == 1.0
        assert config.exists_timeout == 10.0

    def test_overrides(self):
        config = StoreConfig.from_env({
            "O8_IPFS_API_URL": "http://ipfs.internal:5001",
            "O8_IPFS_GATEWAY": "https://gateway.example.org",
            "O8_TIMEOUT": "5",
            "O8_RETRIES": "5",
            "O8_RETRY_BASE_DELAY": "0.25",
            "O8_EXISTS_TIMEOUT": "2.5",
        })

        assert config.api_url == "http://ipfs.internal:5001"
        assert config.gateway_url == "https://gateway.example.org"
        assert config.timeout == 5.0
        assert config.retries == 5
        assert config.base_delay == 0.25
        assert config.exists_timeout == 2.5

    def test_blank_values_use_defaults(self):
        config = StoreConfig.from_env({"O8_RETRIES": "  ", "O8_IPFS_GATEWAY": ""})

        assert config.retries == 3
        assert config.gateway_url == DEFAULT_GATEWAY

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("O8_RETRIES", "7")
        assert StoreConfig.from_env().retries == 7

    def test_non_numeric_value(self):
        with pytest.raises(ValueError, match="O8_TIMEOUT"):
            StoreConfig.from_env({"O8_TIMEOUT": "soon"})

    @pytest.mark.parametrize("kwargs", [
        {"retries": 0},
        {"timeout": 0},
        {"exists_timeout": -1},
        {"base_delay": -0.5},
    ])
    def test_rejects_out_of_range(self, kwargs):
        with pytest.raises(ValueError):
            StoreConfig(**kwargs)

    def test_to_dict(self):
        assert StoreConfig().to_dict()["retries"] == 3


class TestLogging:
    """Test structlog configuration."""

    def test_sets_root_level(self):
        configure_logging("debug")
        assert logging.getLogger().level == logging.DEBUG

        configure_logging("WARNING")
        assert logging.getLogger().level == logging.WARNING

    def test_json_output(self, capsys):
        configure_logging("INFO", json=True)
        structlog.get_logger("o8.test").info("Declaration published", cid="bafkrei")

        err = capsys.readouterr().err
        assert '"event": "Declaration published"' in err
        assert '"cid": "bafkrei"' in err

        configure_logging("WARNING")

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            configure_logging("LOUD")
