"""
Gas metering for contract frames.

Costs follow the post-Berlin EVM schedule for the handful of operations the
VM exposes to contracts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .exceptions import OutOfGasError

logger = logging.getLogger(__name__)

SLOAD_GAS = 2100
SSTORE_SET_GAS = 20000  # zero -> non-zero
SSTORE_RESET_GAS = 2900
CALL_GAS = 2600
CALL_VALUE_GAS = 9000
CALL_STIPEND = 2300
LOG_GAS = 375
BALANCE_GAS = 2600


@dataclass
class GasMeter:
    """Tracks gas consumption of a single execution frame."""

    limit: int
    used: int = 0

    def __post_init__(self) -> None:
        if self.limit < 0:
            raise ValueError(f"Gas limit cannot be negative: {self.limit}")

    @property
    def remaining(self) -> int:
        return self.limit - self.used

    def consume(self, amount: int, reason: str = "") -> None:
        """
        Charge ``amount`` gas.

        Raises:
            OutOfGasError: If the frame cannot afford the charge
        """
        if amount < 0:
            raise ValueError(f"Gas amount cannot be negative: {amount}")
        if self.used + amount > self.limit:
            logger.debug(
                "Out of gas",
                extra={
                    "event": "vm.out_of_gas",
                    "reason": reason,
                    "needed": amount,
                    "remaining": self.remaining,
                },
            )
            # The whole frame budget is gone on exhaustion
            self.used = self.limit
            raise OutOfGasError(f"out of gas: {reason}" if reason else "out of gas")
        self.used += amount

    def refund(self, amount: int) -> None:
        """Return unused gas from a child frame."""
        self.used = max(0, self.used - amount)
