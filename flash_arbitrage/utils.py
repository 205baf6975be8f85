"""
Common utilities and helper functions for the flash arbitrage core.

This module provides centralized helper functions for timestamps, logging,
unit conversions and credential checks.
"""

import logging
import re
import time
from decimal import Decimal
from typing import Any, Dict, Optional, Union

from .constants import PRIVATE_KEY_HEX_LENGTH

_HEX_KEY_RE = re.compile(r"^[0-9a-fA-F]+$")


# Timestamp utilities
def get_current_timestamp() -> float:
    """Get current Unix timestamp as float."""
    return time.time()


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds:.2f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"


# Math utilities
def basis_points_to_decimal(bps: float) -> float:
    """Convert basis points to decimal (100 bps = 0.01)."""
    return bps / 10000.0


def to_base_units(amount: Union[Decimal, float, int, str], decimals: int) -> int:
    """Convert a human token amount to integer base units (truncating)."""
    return int(Decimal(str(amount)) * (Decimal(10) ** decimals))


def from_base_units(amount: int, decimals: int) -> Decimal:
    """Convert integer base units to a human token amount."""
    return Decimal(int(amount)) / (Decimal(10) ** decimals)


def format_profit(decimal_profit: float) -> str:
    """Format a decimal profit value as a percentage string.

    Examples:
        >>> format_profit(0.0123)
        '+1.23%'
        >>> format_profit(-0.0456)
        '-4.56%'
    """
    percentage = decimal_profit * 100
    if percentage >= 0:
        return f"+{percentage:.2f}%"
    return f"{percentage:.2f}%"


# Credential utilities
def normalize_private_key(raw: Optional[str]) -> Optional[str]:
    """Strip whitespace and ensure a 0x prefix. Returns None for empty input."""
    if raw is None:
        return None
    key = raw.strip()
    if not key:
        return None
    if not key.startswith("0x"):
        key = "0x" + key
    return key


def is_valid_private_key(raw: Optional[str]) -> bool:
    """Check for 64 hex characters, or 66 with the 0x prefix."""
    key = normalize_private_key(raw)
    if key is None:
        return False
    body = key[2:]
    return len(body) == PRIVATE_KEY_HEX_LENGTH and bool(_HEX_KEY_RE.match(body))


def mask_address(address: Optional[str], visible: int = 10) -> str:
    """Shorten an address or hash for log messages."""
    if not address:
        return "-"
    return f"{address[:visible]}..."


# Logging utilities
def get_logger(
    name: str,
    level: Union[str, int] = logging.INFO,
    extra: Optional[Dict[str, Any]] = None,
) -> logging.Logger:
    """
    Get a structured logger with consistent formatting and extra context.

    Args:
        name: Logger name (typically __name__)
        level: Logging level
        extra: Additional context fields to include in all log messages

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    if extra:
        return logging.LoggerAdapter(logger, extra)

    return logger
