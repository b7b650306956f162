"""
Forward Proxy contract VM.

A small account-based execution substrate: world state with keyed storage,
gas metering, atomic message calls and ABI helpers.
"""

from .exceptions import (
    AuthorizationError,
    InsufficientBalanceError,
    OutOfGasError,
    RelayFailure,
    ResourceExhaustion,
    VMExecutionError,
)
from .executor import (
    CallContext,
    Contract,
    ExecutionMessage,
    ExecutionResult,
    Executor,
    entrypoint,
)
from .state import Account, LogEntry, WorldState

__all__ = [
    # Execution
    "Executor",
    "ExecutionMessage",
    "ExecutionResult",
    "CallContext",
    "Contract",
    "entrypoint",
    # State
    "WorldState",
    "Account",
    "LogEntry",
    # Exceptions
    "VMExecutionError",
    "OutOfGasError",
    "InsufficientBalanceError",
    "AuthorizationError",
    "RelayFailure",
    "ResourceExhaustion",
]
