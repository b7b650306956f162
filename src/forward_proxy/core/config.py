"""
Forward Proxy Configuration

All settings come from ``FORWARD_PROXY_*`` environment variables and are
read once at import. ``ProxyConfig.from_env()`` re-reads them, which tests
and embedding applications use to pick up overrides.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_bool(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var, "").strip().lower()
    if not raw:
        return default
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"{env_var} must be a boolean flag, got {raw!r}")


def _get_int(env_var: str, default: int) -> int:
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}")


DEFAULT_GAS_LIMIT = _get_int("FORWARD_PROXY_DEFAULT_GAS_LIMIT", 3_000_000)
MAX_CALL_GAS = _get_int("FORWARD_PROXY_MAX_CALL_GAS", 30_000_000)
MAX_CALL_DEPTH = _get_int("FORWARD_PROXY_MAX_CALL_DEPTH", 1024)
# Reject empty-payload value transfers instead of relying on gas exhaustion
REJECT_EMPTY_VALUE_TRANSFERS = _get_bool("FORWARD_PROXY_REJECT_EMPTY_VALUE_TRANSFERS", True)
LOG_LEVEL = os.getenv("FORWARD_PROXY_LOG_LEVEL", "INFO").strip().upper() or "INFO"
LOG_JSON = _get_bool("FORWARD_PROXY_LOG_JSON", False)
LOG_FILE = os.getenv("FORWARD_PROXY_LOG_FILE", "").strip()


@dataclass
class ProxyConfig:
    """Runtime settings for the VM and the proxies running on it."""

    default_gas_limit: int = DEFAULT_GAS_LIMIT
    max_call_gas: int = MAX_CALL_GAS
    max_call_depth: int = MAX_CALL_DEPTH
    reject_empty_value_transfers: bool = REJECT_EMPTY_VALUE_TRANSFERS
    log_level: str = LOG_LEVEL
    log_json: bool = LOG_JSON
    log_file: str = LOG_FILE

    @classmethod
    def from_env(cls) -> ProxyConfig:
        """Build a validated config from the current environment."""
        config = cls(
            default_gas_limit=_get_int("FORWARD_PROXY_DEFAULT_GAS_LIMIT", 3_000_000),
            max_call_gas=_get_int("FORWARD_PROXY_MAX_CALL_GAS", 30_000_000),
            max_call_depth=_get_int("FORWARD_PROXY_MAX_CALL_DEPTH", 1024),
            reject_empty_value_transfers=_get_bool(
                "FORWARD_PROXY_REJECT_EMPTY_VALUE_TRANSFERS", True
            ),
            log_level=os.getenv("FORWARD_PROXY_LOG_LEVEL", "INFO").strip().upper() or "INFO",
            log_json=_get_bool("FORWARD_PROXY_LOG_JSON", False),
            log_file=os.getenv("FORWARD_PROXY_LOG_FILE", "").strip(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """
        Check settings for consistency.

        Raises:
            ConfigurationError: If any setting is out of range
        """
        if self.default_gas_limit <= 0:
            raise ConfigurationError("default_gas_limit must be positive")
        if self.max_call_gas < self.default_gas_limit:
            raise ConfigurationError(
                f"max_call_gas ({self.max_call_gas}) must be >= "
                f"default_gas_limit ({self.default_gas_limit})"
            )
        if self.max_call_depth < 1:
            raise ConfigurationError("max_call_depth must be at least 1")
        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ConfigurationError(f"Unknown log level: {self.log_level}")
        if not self.reject_empty_value_transfers:
            logger.warning(
                "Empty-payload value transfers will be relayed; they only fail "
                "when the caller's gas allowance is too small",
                extra={"event": "config.empty_value_transfers_allowed"},
            )
