from types import SimpleNamespace

import pytest

from forward_proxy.core.contracts import CallerEcho, ProxyClient, ProxyFactory
from forward_proxy.core.vm import Contract, Executor, VMExecutionError
from forward_proxy.core.vm.abi import encode_uint, keccak256

STARTING_BALANCE = 10**18


class PayloadEcho(Contract):
    """Returns keccak256(calldata) ++ calldata; accepts value."""

    def fallback(self, ctx):
        data = bytes(ctx.data)
        return keccak256(data) + data


class RawReverter(Contract):
    """Writes storage, then reverts with a fixed non-standard payload."""

    PAYLOAD = bytes.fromhex("deadbeef") + encode_uint(42)

    def fallback(self, ctx):
        ctx.sstore(0, 1)
        raise VMExecutionError("raw revert", data=self.PAYLOAD)


class GasBurner(Contract):
    """Consumes more gas than it is given."""

    def fallback(self, ctx):
        ctx.gas.consume(ctx.gas_left + 1, "burn")
        return b""


class SlotScribbler(Contract):
    """Writes its own sequential slots 0..3 on every call."""

    def fallback(self, ctx):
        for slot in range(4):
            ctx.sstore(slot, 0xFF)
        return encode_uint(4)


@pytest.fixture
def accounts():
    return SimpleNamespace(
        owner="0x" + "a" * 40,
        ward="0x" + "b" * 40,
        stranger="0x" + "c" * 40,
        alice="0x" + "d" * 40,
    )


@pytest.fixture
def executor(accounts):
    ex = Executor()
    for address in vars(accounts).values():
        ex.state.create_account(address, balance=STARTING_BALANCE)
    return ex


@pytest.fixture
def factory(executor):
    return ProxyFactory(executor)


@pytest.fixture
def echo(executor, accounts):
    """Address of a deployed CallerEcho target."""
    return executor.deploy(CallerEcho(), accounts.alice)


@pytest.fixture
def payload_echo(executor, accounts):
    return executor.deploy(PayloadEcho(), accounts.alice)


@pytest.fixture
def raw_reverter(executor, accounts):
    return executor.deploy(RawReverter(), accounts.alice)


@pytest.fixture
def gas_burner(executor, accounts):
    return executor.deploy(GasBurner(), accounts.alice)


@pytest.fixture
def scribbler(executor, accounts):
    return executor.deploy(SlotScribbler(), accounts.alice)


@pytest.fixture
def forward_proxy(executor, factory, accounts):
    return ProxyClient(executor, factory.deploy_forward_proxy(accounts.alice))


@pytest.fixture
def permissioned_proxy(executor, factory, accounts):
    return ProxyClient(executor, factory.deploy_permissioned_proxy(accounts.owner))


@pytest.fixture
def make_world(accounts):
    """Build a fresh (executor, permissioned proxy, CallerEcho) per call."""

    def build():
        ex = Executor()
        for address in vars(accounts).values():
            ex.state.create_account(address, balance=STARTING_BALANCE)
        proxy = ProxyClient(ex, ProxyFactory(ex).deploy_permissioned_proxy(accounts.owner))
        target = ex.deploy(CallerEcho(), accounts.alice)
        return ex, proxy, target

    return build
