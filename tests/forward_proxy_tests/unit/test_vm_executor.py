"""
Tests for the message-call executor: atomicity, value, gas, dispatch.
"""

import pytest

from forward_proxy.core.config import ProxyConfig
from forward_proxy.core.vm import (
    Contract,
    Executor,
    InsufficientBalanceError,
    OutOfGasError,
    VMExecutionError,
    entrypoint,
)
from forward_proxy.core.vm.abi import decode_address, encode_address
from forward_proxy.core.vm.gas import CALL_STIPEND, SLOAD_GAS, SSTORE_SET_GAS, GasMeter


class Counter(Contract):
    @entrypoint
    def increment(self, ctx):
        value = ctx.sload(0) + 1
        ctx.sstore(0, value)
        ctx.emit("Incremented", value=value)
        return value

    @entrypoint
    def increment_then_fail(self, ctx):
        self.increment(ctx)
        raise VMExecutionError("Counter/failed-on-purpose")

    @entrypoint(payable=True)
    def pay(self, ctx):
        return ctx.value

    @entrypoint
    def whoami(self, ctx):
        return ctx.sender


class Caller(Contract):
    """Calls the address in calldata and returns what it saw."""

    def fallback(self, ctx):
        target = decode_address(bytes(ctx.data))
        result = ctx.call(target, b"")
        if not result.success:
            raise VMExecutionError("Caller/nested-call-failed", data=result.return_data)
        return result.return_data


class SenderReporter(Contract):
    def fallback(self, ctx):
        return encode_address(ctx.sender)


@pytest.fixture
def counter(executor, accounts):
    return executor.deploy(Counter(), accounts.alice)


def test_entrypoint_call_updates_storage_and_returns_output(executor, counter, accounts):
    result = executor.transact(accounts.alice, counter, entrypoint="increment")
    assert result.success
    assert result.output == 1
    assert result.logs[0].event == "Incremented"
    assert executor.state.storage_read(counter, 0) == 1


def test_failed_call_restores_storage_and_logs(executor, counter, accounts):
    executor.transact(accounts.alice, counter, entrypoint="increment")
    log_count = len(executor.state.logs)

    result = executor.transact(accounts.alice, counter, entrypoint="increment_then_fail")

    assert not result.success
    assert result.revert_reason == "Counter/failed-on-purpose"
    assert executor.state.storage_read(counter, 0) == 1
    assert len(executor.state.logs) == log_count


def test_value_transfer_to_plain_account(executor, accounts):
    before = executor.state.get_balance(accounts.stranger)
    result = executor.transact(accounts.alice, accounts.stranger, value=500)
    assert result.success
    assert executor.state.get_balance(accounts.stranger) == before + 500


def test_insufficient_balance_fails_without_side_effects(executor, accounts):
    poor = "0x" + "e" * 40
    executor.state.create_account(poor, balance=10)
    result = executor.transact(poor, accounts.alice, value=11)
    assert not result.success
    assert isinstance(result.error, InsufficientBalanceError)
    assert executor.state.get_balance(poor) == 10


def test_non_payable_entrypoint_rejects_value(executor, counter, accounts):
    result = executor.transact(accounts.alice, counter, entrypoint="increment", value=1)
    assert not result.success
    assert "not payable" in result.revert_reason
    assert executor.state.get_balance(counter) == 0


def test_payable_entrypoint_accepts_value(executor, counter, accounts):
    result = executor.transact(accounts.alice, counter, entrypoint="pay", value=7)
    assert result.success
    assert result.output == 7
    assert executor.state.get_balance(counter) == 7


def test_unknown_entrypoint_reverts(executor, counter, accounts):
    result = executor.transact(accounts.alice, counter, entrypoint="nope")
    assert not result.success
    assert result.revert_reason == "unknown entrypoint: nope"


def test_calldata_without_fallback_reverts(executor, counter, accounts):
    result = executor.transact(accounts.alice, counter, data=b"\x01\x02\x03\x04")
    assert not result.success


def test_entrypoint_on_codeless_account_fails(executor, accounts):
    result = executor.transact(accounts.alice, accounts.stranger, entrypoint="increment")
    assert not result.success


def test_calldata_to_codeless_account_succeeds_with_empty_output(executor, accounts):
    result = executor.transact(accounts.alice, accounts.stranger, data=b"\xde\xad")
    assert result.success
    assert result.return_data == b""


def test_nested_call_sees_calling_contract_as_sender(executor, accounts):
    caller = executor.deploy(Caller(), accounts.alice)
    reporter = executor.deploy(SenderReporter(), accounts.alice)

    result = executor.transact(accounts.stranger, caller, data=encode_address(reporter))

    assert result.success
    assert decode_address(result.return_data) == caller


def test_entrypoints_are_listed_per_class():
    assert Counter.entrypoints() == ["increment", "increment_then_fail", "pay", "whoami"]
    assert Caller.entrypoints() == []


def test_out_of_gas_fails_the_frame(executor, counter, accounts):
    result = executor.transact(accounts.alice, counter, entrypoint="increment", gas=SLOAD_GAS + 10)
    assert not result.success
    assert result.out_of_gas
    assert result.return_data == b""
    assert result.gas_used == SLOAD_GAS + 10
    assert executor.state.storage_read(counter, 0) == 0


def test_gas_used_is_reported(executor, counter, accounts):
    result = executor.transact(accounts.alice, counter, entrypoint="increment")
    assert result.gas_used >= SLOAD_GAS + SSTORE_SET_GAS


def test_gas_limit_above_maximum_is_rejected(accounts):
    ex = Executor(settings=ProxyConfig(default_gas_limit=1000, max_call_gas=2000))
    with pytest.raises(ValueError):
        ex.transact(accounts.alice, accounts.stranger, gas=5000)


def test_max_call_depth_is_enforced(accounts):
    ex = Executor(settings=ProxyConfig(max_call_depth=1))
    caller = ex.deploy(Caller(), accounts.alice)
    inner = ex.deploy(Caller(), accounts.alice)
    reporter = ex.deploy(SenderReporter(), accounts.alice)

    # outer (depth 0) -> inner (depth 1) -> reporter (depth 2): too deep
    class Chain(Contract):
        def fallback(self, ctx):
            result = ctx.call(inner, encode_address(reporter))
            if not result.success:
                raise VMExecutionError("chain broke", data=result.return_data)
            return result.return_data

    chain = ex.deploy(Chain(), accounts.alice)
    assert ex.transact(accounts.alice, caller, data=encode_address(reporter)).success
    result = ex.transact(accounts.alice, chain)
    assert not result.success
    assert result.revert_reason == "max call depth exceeded"


def test_deploy_rolls_back_when_constructor_fails(executor, accounts):
    class Broken(Contract):
        def constructor(self, ctx, *args):
            ctx.sstore(1, 1)
            raise VMExecutionError("Broken/constructor")

    nonce_before = executor.state.get_account(accounts.alice).nonce
    with pytest.raises(VMExecutionError):
        executor.deploy(Broken(), accounts.alice)
    assert executor.state.get_account(accounts.alice).nonce == nonce_before


def test_deploy_addresses_are_unique_per_nonce(executor, accounts):
    first = executor.deploy(Counter(), accounts.alice)
    second = executor.deploy(Counter(), accounts.alice)
    assert first != second


def test_transfer_helper_only_forwards_stipend(executor, accounts):
    class Spender(Contract):
        @entrypoint(payable=True)
        def forward(self, ctx, to):
            ctx.transfer(to, ctx.value)

    class Hungry(Contract):
        def fallback(self, ctx):
            ctx.gas.consume(CALL_STIPEND + 1, "hungry")
            return b""

    spender = executor.deploy(Spender(), accounts.alice)
    hungry = executor.deploy(Hungry(), accounts.alice)

    ok = executor.transact(accounts.alice, spender, entrypoint="forward", args=(accounts.stranger,), value=5)
    assert ok.success

    starved = executor.transact(accounts.alice, spender, entrypoint="forward", args=(hungry,), value=5)
    assert not starved.success
    assert executor.state.get_balance(hungry) == 0


def test_gas_meter_exhaustion():
    meter = GasMeter(limit=10)
    meter.consume(4)
    assert meter.remaining == 6
    with pytest.raises(OutOfGasError):
        meter.consume(7)
    assert meter.remaining == 0
    meter.refund(3)
    assert meter.remaining == 3


def test_gas_meter_rejects_negative_limit():
    with pytest.raises(ValueError):
        GasMeter(limit=-1)
