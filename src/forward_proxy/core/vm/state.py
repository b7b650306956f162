"""
Account-based world state for the contract VM.

Accounts hold a balance, a nonce, keyed 256-bit storage and optional code.
Contract code objects are stateless; everything a contract remembers lives
in its account storage so that snapshots cover it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .abi import keccak256, normalize_address, pad32
from .exceptions import InsufficientBalanceError

if TYPE_CHECKING:
    from .executor import Contract

logger = logging.getLogger(__name__)


@dataclass
class Account:
    """A single account in the world state."""

    balance: int = 0
    nonce: int = 0
    storage: dict[int, int] = field(default_factory=dict)
    code: Contract | None = None

    @property
    def has_code(self) -> bool:
        return self.code is not None


@dataclass
class LogEntry:
    """An event emitted by a contract."""

    address: str
    event: str
    data: dict[str, Any] = field(default_factory=dict)


class WorldState:
    """
    In-memory world state.

    ``snapshot()``/``restore()`` provide whole-state atomicity for the
    executor: a failed invocation restores the snapshot taken before it.
    """

    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.logs: list[LogEntry] = []

    # ==================== Accounts ====================

    def get_account(self, address: str) -> Account:
        """Get an account, creating an empty one on first touch."""
        addr = normalize_address(address)
        account = self.accounts.get(addr)
        if account is None:
            account = Account()
            self.accounts[addr] = account
        return account

    def create_account(self, address: str, balance: int = 0) -> str:
        """Create (or top up) an externally owned account."""
        if balance < 0:
            raise ValueError(f"Balance cannot be negative: {balance}")
        addr = normalize_address(address)
        self.get_account(addr).balance += balance
        return addr

    def get_balance(self, address: str) -> int:
        account = self.accounts.get(normalize_address(address))
        return account.balance if account else 0

    def get_code(self, address: str) -> Contract | None:
        account = self.accounts.get(normalize_address(address))
        return account.code if account else None

    def transfer(self, sender: str, recipient: str, value: int) -> None:
        """
        Move ``value`` from sender to recipient.

        Raises:
            InsufficientBalanceError: If sender cannot cover the value
        """
        if value < 0:
            raise ValueError(f"Value cannot be negative: {value}")
        if value == 0:
            return
        source = self.get_account(sender)
        if source.balance < value:
            raise InsufficientBalanceError(
                f"insufficient balance ({value} > {source.balance})"
            )
        source.balance -= value
        self.get_account(recipient).balance += value

    def deploy(self, code: Contract, deployer: str) -> str:
        """
        Install ``code`` at an address derived from the deployer and its nonce.

        Returns:
            Address of the new contract
        """
        deployer_account = self.get_account(deployer)
        seed = pad32(bytes.fromhex(normalize_address(deployer)[2:])) + pad32(
            deployer_account.nonce.to_bytes(8, "big")
        )
        address = "0x" + keccak256(seed)[-20:].hex()
        deployer_account.nonce += 1

        account = self.get_account(address)
        if account.has_code:
            raise ValueError(f"Contract already deployed at {address}")
        account.code = code

        logger.info(
            "Contract deployed",
            extra={
                "event": "vm.contract_deployed",
                "address": address[:10],
                "deployer": normalize_address(deployer)[:10],
                "code": type(code).__name__,
            },
        )
        return address

    # ==================== Storage ====================

    def storage_read(self, address: str, slot: int) -> int:
        account = self.accounts.get(normalize_address(address))
        if account is None:
            return 0
        return account.storage.get(slot, 0)

    def storage_write(self, address: str, slot: int, value: int) -> None:
        storage = self.get_account(address).storage
        # Zero words are not materialized, matching EVM semantics
        if value == 0:
            storage.pop(slot, None)
        else:
            storage[slot] = value

    # ==================== Atomicity ====================

    def snapshot(self) -> dict[str, Any]:
        """
        Create a snapshot of balances, nonces, storage and logs.

        Code objects are shared, they are immutable once deployed.
        """
        return {
            "accounts": {
                addr: (acct.balance, acct.nonce, dict(acct.storage), acct.code)
                for addr, acct in self.accounts.items()
            },
            "log_count": len(self.logs),
        }

    def restore(self, snapshot: dict[str, Any]) -> None:
        """Restore state from a snapshot created by ``snapshot()``."""
        saved = snapshot["accounts"]
        for addr in list(self.accounts):
            if addr not in saved:
                del self.accounts[addr]
        for addr, (balance, nonce, storage, code) in saved.items():
            account = self.accounts.get(addr)
            if account is None:
                account = Account()
                self.accounts[addr] = account
            account.balance = balance
            account.nonce = nonce
            account.storage.clear()
            account.storage.update(storage)
            account.code = code
        del self.logs[snapshot["log_count"]:]
