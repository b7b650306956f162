"""
Message-call executor for the contract VM.

An invocation is an ``ExecutionMessage``. The executor runs it as one
atomic unit: the world state is snapshotted, value is moved, the callee's
code runs, and any ``VMExecutionError`` restores the snapshot and turns
into a failed ``ExecutionResult`` carrying the raw revert payload.

Contracts expose two disjoint call channels:
- Entrypoints: named operations declared with ``@entrypoint`` and invoked
  with Python arguments (``ExecutionMessage.entrypoint``/``args``)
- Calldata: raw bytes, handled by ``Contract.fallback``

Nested calls made by contracts through ``CallContext.call`` always create a
fresh context in which the calling contract is the sender.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from .. import config
from .abi import decode_error, normalize_address
from .exceptions import OutOfGasError, VMExecutionError
from .gas import (
    BALANCE_GAS,
    CALL_GAS,
    CALL_STIPEND,
    CALL_VALUE_GAS,
    LOG_GAS,
    SLOAD_GAS,
    SSTORE_RESET_GAS,
    SSTORE_SET_GAS,
    GasMeter,
)
from .state import LogEntry, WorldState

logger = logging.getLogger(__name__)

CALL_DEPTH_EXCEEDED = "max call depth exceeded"


@dataclass
class ExecutionMessage:
    """A single invocation of an account."""

    sender: str
    to: str
    value: int = 0
    data: bytes = b""
    gas: int | None = None
    entrypoint: str | None = None
    args: tuple = ()


@dataclass
class ExecutionResult:
    """Outcome of an invocation."""

    success: bool
    return_data: bytes = b""
    gas_used: int = 0
    gas_limit: int = 0
    output: Any = None
    logs: list[LogEntry] = field(default_factory=list)
    error: VMExecutionError | None = None

    @property
    def gas_left(self) -> int:
        return self.gas_limit - self.gas_used

    @property
    def out_of_gas(self) -> bool:
        return isinstance(self.error, OutOfGasError)

    @property
    def revert_reason(self) -> str | None:
        """Decoded ``Error(string)`` reason of a failed call, if any."""
        if self.success:
            return None
        return decode_error(self.return_data)


def entrypoint(func: Callable | None = None, *, payable: bool = False) -> Callable:
    """
    Mark a contract method as a named entrypoint.

    Entrypoints receive the ``CallContext`` followed by the message args.
    Non-payable entrypoints reject calls that carry value.
    """

    def decorator(method: Callable) -> Callable:
        method.__entrypoint__ = {"payable": payable}
        return method

    if func is not None:
        return decorator(func)
    return decorator


class Contract:
    """
    Base class for contract code.

    Code objects hold no state of their own: ``ctx.sload``/``ctx.sstore``
    is the only persistent memory a contract has.
    """

    _entrypoints: dict[str, dict[str, Any]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        table: dict[str, dict[str, Any]] = {}
        for base in reversed(cls.__mro__[1:]):
            table.update(getattr(base, "_entrypoints", {}))
        for name, attr in vars(cls).items():
            spec = getattr(attr, "__entrypoint__", None)
            if spec is not None:
                table[name] = spec
        cls._entrypoints = table

    @classmethod
    def entrypoints(cls) -> list[str]:
        return sorted(cls._entrypoints)

    def constructor(self, ctx: CallContext, *args: Any) -> None:
        """Run once at deployment. No-op by default."""

    def dispatch(self, ctx: CallContext) -> Any:
        """Route a call to an entrypoint or to the calldata fallback."""
        if ctx.entrypoint is None:
            return self.fallback(ctx)

        spec = self._entrypoints.get(ctx.entrypoint)
        if spec is None:
            raise VMExecutionError(f"unknown entrypoint: {ctx.entrypoint}")
        if ctx.value and not spec["payable"]:
            raise VMExecutionError(f"entrypoint {ctx.entrypoint} is not payable")
        return getattr(self, ctx.entrypoint)(ctx, *ctx.args)

    def fallback(self, ctx: CallContext) -> bytes:
        """Handle raw calldata. Contracts without a fallback reject it."""
        raise VMExecutionError("contract does not accept calldata")


class CallContext:
    """Execution context of a single frame."""

    def __init__(
        self,
        executor: Executor,
        address: str,
        sender: str,
        value: int,
        data: bytes,
        gas: GasMeter,
        entrypoint: str | None = None,
        args: tuple = (),
        depth: int = 0,
    ) -> None:
        self.executor = executor
        self.address = address
        self.sender = sender
        self.value = value
        self.data = data
        self.gas = gas
        self.entrypoint = entrypoint
        self.args = args
        self.depth = depth

    @property
    def state(self) -> WorldState:
        return self.executor.state

    @property
    def gas_left(self) -> int:
        return self.gas.remaining

    # ==================== Storage ====================

    def sload(self, slot: int) -> int:
        self.gas.consume(SLOAD_GAS, "sload")
        return self.state.storage_read(self.address, slot)

    def sstore(self, slot: int, value: int) -> None:
        current = self.state.storage_read(self.address, slot)
        cost = SSTORE_SET_GAS if current == 0 and value != 0 else SSTORE_RESET_GAS
        self.gas.consume(cost, "sstore")
        self.state.storage_write(self.address, slot, value)

    # ==================== Environment ====================

    def balance(self, address: str | None = None) -> int:
        self.gas.consume(BALANCE_GAS, "balance")
        return self.state.get_balance(address or self.address)

    def emit(self, event: str, **data: Any) -> None:
        self.gas.consume(LOG_GAS, "log")
        self.state.logs.append(LogEntry(address=self.address, event=event, data=data))

    # ==================== Calls ====================

    def call(
        self,
        to: str,
        data: bytes = b"",
        value: int = 0,
        gas: int | None = None,
    ) -> ExecutionResult:
        """
        Call another account in a fresh context.

        All remaining gas is forwarded unless ``gas`` caps it. Value-bearing
        calls add the 2300 stipend to the callee's budget. Failures are
        returned, not raised, so the caller decides how to react.
        """
        self.gas.consume(CALL_GAS + (CALL_VALUE_GAS if value else 0), "call")
        forwarded = self.gas.remaining if gas is None else min(gas, self.gas.remaining)
        self.gas.consume(forwarded, "call")

        result = self.executor.call_frame(
            sender=self.address,
            to=to,
            value=value,
            data=data,
            gas=forwarded + (CALL_STIPEND if value else 0),
            depth=self.depth + 1,
        )
        self.gas.refund(min(forwarded, result.gas_left))
        return result

    def transfer(self, to: str, value: int) -> None:
        """Send value with only the stipend, reverting this frame on failure."""
        result = self.call(to, b"", value, gas=0)
        if not result.success:
            raise VMExecutionError("transfer failed", data=result.return_data)


class Executor:
    """Runs messages against a ``WorldState``."""

    def __init__(
        self,
        state: WorldState | None = None,
        settings: config.ProxyConfig | None = None,
    ) -> None:
        self.state = state if state is not None else WorldState()
        self.settings = settings or config.ProxyConfig()

    def execute(self, message: ExecutionMessage) -> ExecutionResult:
        """Execute a top-level invocation atomically."""
        gas = self.settings.default_gas_limit if message.gas is None else message.gas
        if gas > self.settings.max_call_gas:
            raise ValueError(
                f"Gas limit {gas} exceeds maximum {self.settings.max_call_gas}"
            )

        result = self.call_frame(
            sender=normalize_address(message.sender),
            to=message.to,
            value=message.value,
            data=bytes(message.data),
            gas=gas,
            entrypoint=message.entrypoint,
            args=tuple(message.args),
            depth=0,
        )

        logger.debug(
            "Message executed",
            extra={
                "event": "vm.message_executed",
                "to": normalize_address(message.to)[:10],
                "entrypoint": message.entrypoint,
                "success": result.success,
                "gas_used": result.gas_used,
            },
        )
        return result

    def transact(
        self,
        sender: str,
        to: str,
        data: bytes = b"",
        value: int = 0,
        gas: int | None = None,
        entrypoint: str | None = None,
        args: tuple = (),
    ) -> ExecutionResult:
        """Shorthand for ``execute(ExecutionMessage(...))``."""
        return self.execute(ExecutionMessage(
            sender=sender,
            to=to,
            value=value,
            data=data,
            gas=gas,
            entrypoint=entrypoint,
            args=args,
        ))

    def deploy(self, code: Contract, deployer: str, *args: Any, gas: int | None = None) -> str:
        """
        Deploy ``code`` and run its constructor with ``deployer`` as sender.

        Returns:
            Address of the deployed contract

        Raises:
            VMExecutionError: If the constructor fails; nothing is deployed
        """
        snapshot = self.state.snapshot()
        try:
            address = self.state.deploy(code, deployer)
            ctx = CallContext(
                executor=self,
                address=address,
                sender=normalize_address(deployer),
                value=0,
                data=b"",
                gas=GasMeter(self.settings.default_gas_limit if gas is None else gas),
            )
            code.constructor(ctx, *args)
        except Exception:
            self.state.restore(snapshot)
            raise
        return address

    def call_frame(
        self,
        sender: str,
        to: str,
        value: int,
        data: bytes,
        gas: int,
        entrypoint: str | None = None,
        args: tuple = (),
        depth: int = 0,
    ) -> ExecutionResult:
        """Run one frame; restores state and reports failure on revert."""
        meter = GasMeter(gas)
        if depth > self.settings.max_call_depth:
            error = VMExecutionError(CALL_DEPTH_EXCEEDED)
            return ExecutionResult(
                success=False, return_data=error.data, gas_limit=gas, error=error,
            )

        snapshot = self.state.snapshot()
        log_start = len(self.state.logs)
        try:
            to = normalize_address(to)
            if value < 0:
                raise VMExecutionError("negative value")
            self.state.transfer(sender, to, value)
            code = self.state.get_code(to)
            if code is None:
                if entrypoint is not None:
                    raise VMExecutionError(f"no contract at {to}")
                output: Any = b""
            else:
                ctx = CallContext(
                    executor=self,
                    address=to,
                    sender=sender,
                    value=value,
                    data=data,
                    gas=meter,
                    entrypoint=entrypoint,
                    args=args,
                    depth=depth,
                )
                output = code.dispatch(ctx)
        except VMExecutionError as exc:
            self.state.restore(snapshot)
            return ExecutionResult(
                success=False,
                return_data=exc.data,
                gas_used=meter.used,
                gas_limit=gas,
                error=exc,
            )
        except RecursionError:
            # Call chains deeper than the interpreter stack fail like the depth limit
            self.state.restore(snapshot)
            error = VMExecutionError(CALL_DEPTH_EXCEEDED)
            return ExecutionResult(
                success=False,
                return_data=error.data,
                gas_used=meter.used,
                gas_limit=gas,
                error=error,
            )
        except Exception:
            self.state.restore(snapshot)
            raise

        return_data = bytes(output) if isinstance(output, (bytes, bytearray)) else b""
        return ExecutionResult(
            success=True,
            return_data=return_data,
            gas_used=meter.used,
            gas_limit=gas,
            output=output,
            logs=list(self.state.logs[log_start:]),
        )
