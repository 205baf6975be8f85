"""Tests for the config_loader module."""

from dataclasses import FrozenInstanceError
from decimal import Decimal
from pathlib import Path
from tempfile import NamedTemporaryFile

import pytest
import yaml

from flash_arbitrage.config_loader import (
    ScanConfig,
    apply_env_overrides,
    load_settings,
    settings_from_dict,
)
from flash_arbitrage.config_schema import BotSettings
from flash_arbitrage.exceptions import ConfigurationError, ErrorKind


def write_yaml(data):
    f = NamedTemporaryFile(mode="w", suffix=".yaml", delete=False)
    with f:
        if isinstance(data, str):
            f.write(data)
        else:
            yaml.dump(data, f)
    return f.name


def test_load_settings_from_yaml():
    path = write_yaml(
        {
            "network_mode": "mainnet",
            "min_profit_percent": 0.5,
            "venues": ["QuickSwap", "SushiSwap"],
            "token_pairs": [{"token_in": "USDC", "token_out": "DAI"}],
        }
    )
    try:
        settings = load_settings(path, environ={}, use_dotenv=False)
    finally:
        Path(path).unlink()

    assert settings.network_mode == "mainnet"
    assert settings.chain_id == 137
    assert settings.min_profit_percent == 0.5
    assert settings.venues == ["QuickSwap", "SushiSwap"]
    assert [p.label for p in settings.resolved_pairs()] == ["USDC/DAI"]


def test_defaults_without_file():
    settings = load_settings(None, environ={}, use_dotenv=False)

    assert settings.use_simulation is True
    assert settings.enable_real_trading is False
    assert settings.network_mode == "testnet"
    assert settings.chain_id == 80002
    assert len(settings.venues) >= 2


def test_environment_fills_missing_secrets():
    environ = {"PRIVATE_KEY": "ab" * 32, "ARBITRAGE_CONTRACT": "0xC0ffee254729296a45a3885639AC7E10F9d54979"}
    settings = load_settings(None, environ=environ, use_dotenv=False)

    assert settings.private_key == "ab" * 32
    assert settings.flash_loan_contract == "0xC0ffee254729296a45a3885639AC7E10F9d54979"


def test_file_value_wins_over_environment():
    merged = apply_env_overrides(
        {"telegram_chat_id": "from-file"},
        {"TELEGRAM_CHAT_ID": "from-env", "WEBHOOK_URL": "https://hooks.example/x"},
    )
    assert merged["telegram_chat_id"] == "from-file"
    assert merged["webhook_url"] == "https://hooks.example/x"


def test_private_key_not_in_repr():
    settings = settings_from_dict({"private_key": "ab" * 32}, environ={})
    assert "ab" * 32 not in repr(settings)


def test_missing_file():
    with pytest.raises(ConfigurationError, match="Configuration file not found"):
        load_settings("/non/existent/file.yaml", environ={}, use_dotenv=False)


def test_invalid_yaml():
    path = write_yaml("invalid: yaml: content: [")
    try:
        with pytest.raises(ConfigurationError, match="Failed to parse YAML"):
            load_settings(path, environ={}, use_dotenv=False)
    finally:
        Path(path).unlink()


def test_non_mapping_root():
    path = write_yaml("- just\n- a list\n")
    try:
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            load_settings(path, environ={}, use_dotenv=False)
    finally:
        Path(path).unlink()


@pytest.mark.parametrize(
    "config",
    [
        {"venues": ["QuickSwap"]},
        {"venues": ["QuickSwap", "QuickSwap"]},
        {"token_pairs": [{"token_in": "USDC", "token_out": "FOO"}]},
        {"token_pairs": [{"token_in": "USDC", "token_out": "USDC"}]},
        {"max_gas_price_gwei": 0},
        {"network_mode": "devnet"},
    ],
)
def test_validation_errors_are_configuration_errors(config):
    with pytest.raises(ConfigurationError) as exc_info:
        settings_from_dict(config, environ={})

    assert exc_info.value.kind is ErrorKind.CONFIGURATION
    assert exc_info.value.details["errors"]


class TestScanConfig:
    def test_from_settings(self):
        settings = BotSettings(flash_loan_amount=2500, venues=["QuickSwap", "SushiSwap"])
        config = ScanConfig.from_settings(settings)

        assert config.loan_amount == Decimal("2500")
        assert config.venues == ("QuickSwap", "SushiSwap")
        assert config.min_profit_percent == settings.min_profit_percent
        assert len(config.token_pairs) == len(settings.token_pairs)

    def test_overrides(self):
        config = ScanConfig.from_settings(
            BotSettings(),
            {
                "min_net_profit_usd": 25,
                "venues": ["1inch", "QuickSwap"],
                "token_pairs": [("WETH", "USDC"), {"token_in": "USDC", "token_out": "USDT"}],
                "loan_amount": 5000,
            },
        )

        assert config.min_net_profit_usd == 25
        assert config.venues == ("1inch", "QuickSwap")
        assert [p.label for p in config.token_pairs] == ["WETH/USDC", "USDC/USDT"]
        assert config.loan_amount == Decimal("5000")

    def test_unknown_override(self):
        with pytest.raises(ConfigurationError, match="Unknown scan config override"):
            ScanConfig.from_settings(BotSettings(), {"min_profit": 1})

    def test_unknown_token_in_override(self):
        with pytest.raises(ConfigurationError, match="unknown token 'FOO'"):
            ScanConfig.from_settings(BotSettings(), {"token_pairs": [("USDC", "FOO")]})

    def test_single_venue_override(self):
        with pytest.raises(ConfigurationError, match="two venues"):
            ScanConfig.from_settings(BotSettings(), {"venues": ["QuickSwap"]})

    def test_config_is_frozen(self):
        config = ScanConfig.from_settings(BotSettings())
        with pytest.raises(FrozenInstanceError):
            config.min_profit_percent = 5

    def test_qualifies_requires_all_thresholds(self):
        config = ScanConfig.from_settings(
            BotSettings(min_profit_percent=0.3, min_net_profit_percent=0.15, min_net_profit_usd=1.5)
        )

        assert config.qualifies(1.19, 1.11, 111.28)
        assert not config.qualifies(0.2, 1.11, 111.28)
        assert not config.qualifies(1.19, 0.1, 111.28)
        assert not config.qualifies(1.19, 1.11, 1.0)

    def test_to_dict(self):
        data = ScanConfig.from_settings(BotSettings(venues=["QuickSwap", "SushiSwap"])).to_dict()
        assert data["venues"] == ["QuickSwap", "SushiSwap"]
        assert "USDC/USDT" in data["token_pairs"]
        assert Decimal(data["loan_amount"]) == Decimal("10000")
