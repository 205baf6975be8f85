"""
Unit tests for flash_arbitrage.utils module.
"""

import logging
from decimal import Decimal

import pytest

from flash_arbitrage.utils import (
    basis_points_to_decimal,
    format_duration,
    format_profit,
    from_base_units,
    get_current_timestamp,
    get_logger,
    is_valid_private_key,
    mask_address,
    normalize_private_key,
    to_base_units,
)


class TestTimestampUtils:
    """Test timestamp utilities."""

    def test_get_current_timestamp(self):
        assert get_current_timestamp() > 1640995200

    def test_format_duration(self):
        assert format_duration(30) == "30.00s"
        assert format_duration(90) == "1.5m"
        assert format_duration(5400) == "1.5h"


class TestUnitConversion:
    def test_to_base_units(self):
        assert to_base_units(Decimal("10000"), 6) == 10_000_000_000
        assert to_base_units("1.5", 18) == 1_500_000_000_000_000_000
        assert to_base_units(0.1, 6) == 100_000

    def test_to_base_units_truncates(self):
        assert to_base_units("1.0000009", 6) == 1_000_000

    def test_from_base_units(self):
        assert from_base_units(10_120_000_000, 6) == Decimal("10120")
        assert from_base_units(1, 8) == Decimal("0.00000001")

    def test_basis_points(self):
        assert basis_points_to_decimal(5) == 0.0005
        assert basis_points_to_decimal(100) == 0.01

    def test_format_profit(self):
        assert format_profit(0.0123) == "+1.23%"
        assert format_profit(-0.0456) == "-4.56%"


class TestPrivateKeys:
    def test_normalize(self):
        assert normalize_private_key(None) is None
        assert normalize_private_key("   ") is None
        assert normalize_private_key(" " + "ab" * 32 + "\n") == "0x" + "ab" * 32
        assert normalize_private_key("0x" + "ab" * 32) == "0x" + "ab" * 32

    @pytest.mark.parametrize(
        "key, valid",
        [
            ("0x" + "11" * 32, True),
            ("11" * 32, True),
            ("0x" + "AB" * 32, True),
            ("0x1234", False),
            ("0x" + "11" * 33, False),
            ("zz" * 32, False),
            ("", False),
            (None, False),
        ],
    )
    def test_is_valid_private_key(self, key, valid):
        assert is_valid_private_key(key) is valid


def test_mask_address():
    assert mask_address("0x5FbDB2315678afecb367f032d93F642f64180aa3") == "0x5FbDB231..."
    assert mask_address(None) == "-"


def test_get_logger():
    logger = get_logger("flash_arbitrage.test_utils")
    assert isinstance(logger, logging.Logger)
    assert logger.level == logging.INFO

    adapter = get_logger("flash_arbitrage.test_utils", extra={"cycle": 1})
    assert isinstance(adapter, logging.LoggerAdapter)
    assert adapter.extra == {"cycle": 1}
