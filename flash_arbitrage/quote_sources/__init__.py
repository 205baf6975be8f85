"""
Quote sources for venue prices and swap payloads.
"""

from .base import QuoteSource
from .oneinch import OneInchQuoteSource
from .synthetic import SyntheticQuoteSource

__all__ = ["QuoteSource", "OneInchQuoteSource", "SyntheticQuoteSource"]
