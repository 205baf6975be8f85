"""Tests for the exceptions module."""

import pytest

from flash_arbitrage.exceptions import (
    ConfigurationError,
    ErrorKind,
    FlashArbitrageError,
    InfrastructureError,
    MalformedRouteError,
    OnChainRejectionError,
    QuoteSourceError,
    ThresholdNotMetError,
)


def test_base_exception():
    """Test the base exception class."""
    error = FlashArbitrageError("Test error")
    assert str(error) == "Test error"
    assert error.details == {}
    assert error.step is None
    assert error.remediation == FlashArbitrageError.default_remediation

    error_with_details = FlashArbitrageError("Test error", {"key": "value"}, step="1_validation")
    assert error_with_details.details == {"key": "value"}
    assert error_with_details.step == "1_validation"


@pytest.mark.parametrize(
    "error_cls, kind",
    [
        (ThresholdNotMetError, ErrorKind.THRESHOLD_NOT_MET),
        (InfrastructureError, ErrorKind.INFRASTRUCTURE),
        (QuoteSourceError, ErrorKind.INFRASTRUCTURE),
        (ConfigurationError, ErrorKind.CONFIGURATION),
        (MalformedRouteError, ErrorKind.MALFORMED_ROUTE),
        (OnChainRejectionError, ErrorKind.ONCHAIN_REJECTION),
    ],
)
def test_each_error_carries_its_kind(error_cls, kind):
    error = error_cls("boom")
    assert error.kind is kind
    assert isinstance(error, FlashArbitrageError)
    assert error.remediation


def test_only_transient_kinds_are_retryable():
    assert ErrorKind.THRESHOLD_NOT_MET.retryable
    assert ErrorKind.INFRASTRUCTURE.retryable
    assert not ErrorKind.CONFIGURATION.retryable
    assert not ErrorKind.MALFORMED_ROUTE.retryable
    assert not ErrorKind.ONCHAIN_REJECTION.retryable


def test_quote_source_error_fields():
    error = QuoteSourceError("HTTP 429", venue="QuickSwap", status_code=429)
    assert error.venue == "QuickSwap"
    assert error.status_code == 429
    assert error.endpoint is None
    assert isinstance(error, InfrastructureError)


def test_onchain_rejection_keeps_tx_hash_and_hint():
    error = OnChainRejectionError(
        "reverted", tx_hash="0xabc", remediation="Authorize the signer"
    )
    assert error.tx_hash == "0xabc"
    assert error.remediation == "Authorize the signer"


def test_to_dict():
    error = ConfigurationError(
        "Invalid key", details={"key_length": 6}, step="2_key_validation"
    )
    assert error.to_dict() == {
        "error": "Invalid key",
        "error_kind": "configuration",
        "remediation": ConfigurationError.default_remediation,
        "step": "2_key_validation",
        "details": {"key_length": 6},
    }
