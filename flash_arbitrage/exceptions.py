"""
Exception hierarchy for the flash-loan arbitrage core.

Every failure is classified at the point where it happens. The classification
travels with the exception (``kind``) together with a remediation hint, so
callers never have to inspect message text to decide how to react.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(Enum):
    """Classification of pipeline failures."""

    THRESHOLD_NOT_MET = "threshold_not_met"
    INFRASTRUCTURE = "infrastructure"
    CONFIGURATION = "configuration"
    MALFORMED_ROUTE = "malformed_route"
    ONCHAIN_REJECTION = "onchain_rejection"

    @property
    def retryable(self) -> bool:
        """Whether the next scan cycle may succeed without operator action."""
        return self in (ErrorKind.THRESHOLD_NOT_MET, ErrorKind.INFRASTRUCTURE)


class FlashArbitrageError(Exception):
    """Base exception for all flash arbitrage related errors."""

    kind: ErrorKind = ErrorKind.INFRASTRUCTURE
    default_remediation: str = "Check the activity log for the failing step."

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        remediation: Optional[str] = None,
        step: Optional[str] = None,
    ):
        super().__init__(message)
        self.details = details or {}
        self.remediation = remediation or self.default_remediation
        self.step = step

    def to_dict(self) -> Dict[str, Any]:
        """Structured form for activity log metadata."""
        return {
            "error": str(self),
            "error_kind": self.kind.value,
            "remediation": self.remediation,
            "step": self.step,
            "details": self.details,
        }


class ThresholdNotMetError(FlashArbitrageError):
    """Raised when a candidate or network condition falls short of a limit."""

    kind = ErrorKind.THRESHOLD_NOT_MET
    default_remediation = "Wait for the next scan cycle to produce a fresh candidate."


class InfrastructureError(FlashArbitrageError):
    """Raised when an RPC endpoint or remote service fails or times out."""

    kind = ErrorKind.INFRASTRUCTURE
    default_remediation = (
        "Check RPC and API connectivity; the next scan cycle retries automatically."
    )

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        remediation: Optional[str] = None,
        step: Optional[str] = None,
    ):
        super().__init__(message, details, remediation, step)
        self.endpoint = endpoint


class QuoteSourceError(InfrastructureError):
    """Raised when a venue cannot produce a quote or a swap route."""

    def __init__(
        self,
        message: str,
        venue: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        remediation: Optional[str] = None,
        step: Optional[str] = None,
    ):
        super().__init__(message, None, details, remediation, step)
        self.venue = venue
        self.status_code = status_code


class ConfigurationError(FlashArbitrageError):
    """Raised when configuration is missing or invalid."""

    kind = ErrorKind.CONFIGURATION
    default_remediation = "Fix the bot configuration; attempts fail until it changes."


class MalformedRouteError(FlashArbitrageError):
    """Raised when a built swap leg lacks a call target or payload."""

    kind = ErrorKind.MALFORMED_ROUTE
    default_remediation = (
        "The route service returned an incomplete transaction; verify the API key "
        "and that the pair has liquidity on the selected venue."
    )


class OnChainRejectionError(FlashArbitrageError):
    """Raised when the execution contract or the chain rejects the call."""

    kind = ErrorKind.ONCHAIN_REJECTION
    default_remediation = (
        "Verify the signer is authorized on the execution contract, that both "
        "venues have enough liquidity and that slippage covers the loan premium. "
        "Re-submitting identical parameters will fail identically."
    )

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        remediation: Optional[str] = None,
        step: Optional[str] = None,
    ):
        super().__init__(message, details, remediation, step)
        self.tx_hash = tx_hash
