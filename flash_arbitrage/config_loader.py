"""
Configuration loading and normalization for the flash arbitrage bot.

Loads YAML configuration, applies environment overrides (``.env`` supported
through python-dotenv) and resolves the immutable per-session ``ScanConfig``.
"""

import os
from dataclasses import dataclass, fields
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from .config_schema import BotSettings, PairSpec
from .exceptions import ConfigurationError
from .types import TokenPair

# Environment variable -> settings field
ENV_OVERRIDES = {
    "PRIVATE_KEY": "private_key",
    "ARBITRAGE_CONTRACT": "flash_loan_contract",
    "ONEINCH_API_KEY": "oneinch_api_key",
    "POLYGON_RPC_URL": "polygon_rpc_url",
    "POLYGON_TESTNET_RPC_URL": "polygon_testnet_rpc_url",
    "TELEGRAM_BOT_TOKEN": "telegram_bot_token",
    "TELEGRAM_CHAT_ID": "telegram_chat_id",
    "WEBHOOK_URL": "webhook_url",
}


@dataclass(frozen=True)
class ScanConfig:
    """
    Scan session parameters, resolved once per ``start_scanning`` call.

    A running session never observes configuration edits; stopping and
    starting again resolves a new instance.
    """

    min_profit_percent: float
    min_net_profit_percent: float
    min_net_profit_usd: float
    max_gas_price_gwei: float
    scan_interval_seconds: float
    token_pairs: Tuple[TokenPair, ...]
    venues: Tuple[str, ...]
    loan_amount: Decimal
    native_token_usd_price: float
    quote_timeout_seconds: float

    def qualifies(
        self, gross_percent: float, net_percent: float, net_profit_usd: float
    ) -> bool:
        """All three thresholds must hold at once."""
        return (
            gross_percent >= self.min_profit_percent
            and net_percent >= self.min_net_profit_percent
            and net_profit_usd >= self.min_net_profit_usd
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "min_profit_percent": self.min_profit_percent,
            "min_net_profit_percent": self.min_net_profit_percent,
            "min_net_profit_usd": self.min_net_profit_usd,
            "max_gas_price_gwei": self.max_gas_price_gwei,
            "scan_interval_seconds": self.scan_interval_seconds,
            "token_pairs": [p.label for p in self.token_pairs],
            "venues": list(self.venues),
            "loan_amount": str(self.loan_amount),
            "native_token_usd_price": self.native_token_usd_price,
            "quote_timeout_seconds": self.quote_timeout_seconds,
        }

    @classmethod
    def from_settings(
        cls, settings: BotSettings, overrides: Optional[Mapping[str, Any]] = None
    ) -> "ScanConfig":
        """
        Resolve a scan session from settings plus optional caller overrides.

        Overrides may replace any scalar field, ``venues`` (list of names) and
        ``token_pairs`` (list of ``{"token_in": sym, "token_out": sym}`` or
        ``(sym, sym)`` items referencing configured tokens).

        Raises:
            ConfigurationError: On unknown override keys or unknown tokens
        """
        overrides = dict(overrides or {})
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown scan config override(s): {', '.join(sorted(unknown))}"
            )

        pairs = settings.resolved_pairs()
        if "token_pairs" in overrides:
            pairs = _resolve_pair_overrides(settings, overrides.pop("token_pairs"))

        venues = tuple(overrides.pop("venues", settings.venues))
        if len(venues) < 2:
            raise ConfigurationError("At least two venues are required")

        values = {
            "min_profit_percent": settings.min_profit_percent,
            "min_net_profit_percent": settings.min_net_profit_percent,
            "min_net_profit_usd": settings.min_net_profit_usd,
            "max_gas_price_gwei": settings.max_gas_price_gwei,
            "scan_interval_seconds": settings.scan_interval_seconds,
            "loan_amount": Decimal(str(settings.flash_loan_amount)),
            "native_token_usd_price": settings.native_token_usd_price,
            "quote_timeout_seconds": settings.quote_timeout_seconds,
        }
        values.update(overrides)
        values["loan_amount"] = Decimal(str(values["loan_amount"]))

        return cls(token_pairs=tuple(pairs), venues=venues, **values)


def _resolve_pair_overrides(settings: BotSettings, raw: Iterable[Any]) -> Tuple[TokenPair, ...]:
    resolved = []
    for item in raw:
        if isinstance(item, Mapping):
            spec = PairSpec(**item)
        else:
            token_in, token_out = item
            spec = PairSpec(token_in=token_in, token_out=token_out)
        for symbol in (spec.token_in, spec.token_out):
            if symbol not in settings.tokens:
                raise ConfigurationError(
                    f"Pair references unknown token '{symbol}'",
                    details={"pair": [spec.token_in, spec.token_out]},
                )
        resolved.append(
            TokenPair(settings.token_info(spec.token_in), settings.token_info(spec.token_out))
        )
    return tuple(resolved)


def apply_env_overrides(
    config_dict: Dict[str, Any], environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """Return a copy of ``config_dict`` with environment values filled in.

    Values already present in the file win over the environment, matching the
    lookup order of the bot (configuration first, environment as fallback).
    """
    environ = os.environ if environ is None else environ
    merged = dict(config_dict)
    for env_name, field_name in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value and not merged.get(field_name):
            merged[field_name] = value
    return merged


def settings_from_dict(
    config_dict: Optional[Dict[str, Any]],
    environ: Optional[Mapping[str, str]] = None,
) -> BotSettings:
    """
    Validate a configuration dictionary.

    Raises:
        ConfigurationError: If validation fails
    """
    merged = apply_env_overrides(config_dict or {}, environ)
    try:
        return BotSettings(**merged)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid bot configuration: {e.error_count()} error(s)",
            details={"errors": e.errors(include_url=False)},
        ) from e


def load_settings(
    config_path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
    use_dotenv: bool = True,
) -> BotSettings:
    """
    Load bot settings from a YAML file plus environment overrides.

    Args:
        config_path: YAML file; defaults only when None
        environ: Environment mapping (defaults to ``os.environ``)
        use_dotenv: Load a ``.env`` file into the environment first

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    if use_dotenv:
        load_dotenv()

    config_dict: Dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {path}",
                details={"config_file": str(path)},
            )
        try:
            with open(path, "r") as f:
                config_dict = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML from {path}: {e}",
                details={"config_file": str(path)},
            ) from e
        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                f"Configuration root must be a mapping: {path}",
                details={"config_file": str(path)},
            )

    return settings_from_dict(config_dict, environ)
