"""
Exception hierarchy for contract execution.

Every exception carries ``data``: the raw revert payload handed back to
the caller of the aborted frame. When no payload is given, the message is
encoded in the standard ``Error(string)`` format.
"""

from __future__ import annotations

from .abi import encode_error


class VMExecutionError(Exception):
    """Raised when contract execution aborts and the frame must be reverted.

    Attributes:
        message: Human-readable error description
        data: Raw revert payload returned to the caller
    """

    def __init__(self, message: str, data: bytes | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.data = encode_error(message) if data is None else bytes(data)


class OutOfGasError(VMExecutionError):
    """Raised when a frame consumes more gas than it was given."""

    def __init__(self, message: str = "out of gas") -> None:
        # Out-of-gas frames return no data, as on the EVM
        super().__init__(message, data=b"")


class InsufficientBalanceError(VMExecutionError):
    """Raised when a value transfer exceeds the sender's balance."""
    pass


class AuthorizationError(VMExecutionError):
    """Raised when the caller is neither owner nor ward where one is required."""
    pass


class RelayFailure(VMExecutionError):
    """Raised when the forwarded-to contract failed.

    ``data`` is the target's failure payload, passed through unmodified.
    """

    def __init__(self, message: str, data: bytes) -> None:
        super().__init__(message, data=data)


class ResourceExhaustion(RelayFailure):
    """Raised when the relayed call ran out of gas."""

    def __init__(self, message: str = "relay ran out of gas", data: bytes = b"") -> None:
        super().__init__(message, data=data)
