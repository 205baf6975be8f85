"""Tests for the flash-arb command line."""

import logging
from pathlib import Path
from tempfile import NamedTemporaryFile

import pytest
import yaml

from flash_arbitrage import cli, logging_config
from flash_arbitrage.quote_sources import SyntheticQuoteSource
from flash_arbitrage.service import build_service

from conftest import FakeChain, RecordingNotifier


@pytest.fixture
def config_file():
    config = {
        "quote_source": "synthetic",
        "telegram_enabled": False,
        "venues": ["QuickSwap", "SushiSwap"],
        "token_pairs": [{"token_in": "USDC", "token_out": "USDT"}],
    }
    with NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(config, f)
    yield f.name
    Path(f.name).unlink()


def test_parser():
    args = cli.build_parser().parse_args(["scan", "--config", "bot.yaml", "--once"])
    assert args.command == "scan"
    assert args.once is True
    assert args.log_level == "INFO"

    args = cli.build_parser().parse_args(["--log-level", "DEBUG", "serve", "--port", "9000"])
    assert args.command == "serve"
    assert args.port == 9000
    assert args.host == "127.0.0.1"


def test_command_is_required():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_scan_once(config_file, monkeypatch):
    built = []

    def offline_service(settings):
        source = SyntheticQuoteSource()
        source.set_price("QuickSwap", "USDC", "USDT", "1.000")
        source.set_price("SushiSwap", "USDC", "USDT", "1.012")
        service = build_service(
            settings, chain=FakeChain(), quote_source=source, notifier=RecordingNotifier()
        )
        built.append(service)
        return service

    monkeypatch.setattr(cli, "build_service", offline_service)

    assert cli.main(["scan", "--config", config_file, "--once"]) == 0
    assert built[0].scanner.cycle_count == 1


def test_missing_config_exits_with_2():
    assert cli.main(["scan", "--config", "/non/existent/bot.yaml", "--once"]) == 2


def test_debug_level_uses_debug_setup(monkeypatch):
    calls = []
    monkeypatch.setattr(cli.logging_config, "setup_debug", lambda: calls.append("debug"))
    monkeypatch.setattr(cli.logging_config, "setup", lambda level: calls.append(level))

    cli.main(["--log-level", "DEBUG", "scan", "--config", "/non/existent/bot.yaml", "--once"])
    cli.main(["--log-level", "WARNING", "scan", "--config", "/non/existent/bot.yaml", "--once"])

    assert calls == ["debug", logging.WARNING]


def test_setup_debug_shows_access_logs():
    logging_config.setup_debug()

    assert logging.getLogger("flash_arbitrage").level == logging.DEBUG
    assert logging.getLogger("uvicorn.access").level == logging.INFO

    logging_config.setup()
    assert logging.getLogger("uvicorn.access").level == logging.WARNING


def test_real_mode_without_route_source_exits_with_2(monkeypatch):
    config = {
        "use_simulation": False,
        "enable_real_trading": True,
        "quote_source": "auto",
        "telegram_enabled": False,
    }
    with NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(config, f)
    monkeypatch.delenv("ONEINCH_API_KEY", raising=False)
    try:
        assert cli.main(["scan", "--config", f.name, "--once"]) == 2
    finally:
        Path(f.name).unlink()
