"""
Call-Forwarding Proxies.

Implements a forwarding proxy used to emulate distinct caller identities
against a target contract:
- ForwardProxy: relays every calldata call, value included, to a mutable
  target; the target sees the proxy as its caller
- PermissionedForwardProxy: same, gated by an owner and a set of wards

Security features:
- Storage collision prevention (keccak256-derived slots, EIP-1967 style)
- Management operations live on the entrypoint channel, so no target
  selector can ever be captured by the proxy
- Target failures are propagated with their raw payload
- Owner/ward authorization checks on every state-changing path
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from ..vm.abi import (
    ZERO_ADDRESS,
    address_to_int,
    encode_address,
    encode_uint,
    int_to_address,
    keccak256,
    normalize_address,
)
from ..vm.exceptions import (
    AuthorizationError,
    RelayFailure,
    ResourceExhaustion,
    VMExecutionError,
)
from ..vm.executor import (
    CallContext,
    Contract,
    ExecutionResult,
    Executor,
    entrypoint,
)

logger = logging.getLogger(__name__)

# Storage labels; slots are keccak256(label) so they cannot meet sequentially
# allocated storage of any contract the proxy ends up sharing layout with
TARGET_LABEL = "forward-proxy.target"
OWNER_LABEL = "forward-proxy.owner"
WARDS_LABEL = "forward-proxy.wards"

TARGET_SLOT = int.from_bytes(keccak256(TARGET_LABEL.encode()), "big")
OWNER_SLOT = int.from_bytes(keccak256(OWNER_LABEL.encode()), "big")
WARDS_SLOT = int.from_bytes(keccak256(WARDS_LABEL.encode()), "big")

# Revert reasons
NOT_AUTHORIZED = "ForwardProxy/not-authorized"
NOT_OWNER = "ForwardProxy/not-owner"
EMPTY_VALUE_TRANSFER = "ForwardProxy/empty-payload-value-transfer"
INVALID_ADDRESS = "ForwardProxy/invalid-address"


def ward_slot(who: str) -> int:
    """
    Storage slot of the ward flag for ``who``.

    Solidity mapping layout: keccak256(pad32(key) ++ pad32(base_slot)).
    """
    return int.from_bytes(keccak256(encode_address(who) + encode_uint(WARDS_SLOT)), "big")


def storage_layout() -> dict[str, int]:
    """Label -> slot for every fixed proxy field."""
    return {
        TARGET_LABEL: TARGET_SLOT,
        OWNER_LABEL: OWNER_SLOT,
        WARDS_LABEL: WARDS_SLOT,
    }


class ProxyType(Enum):
    """Types of forwarding proxies."""
    FORWARD = "forward"
    PERMISSIONED = "permissioned"


def _parse_address(value: str) -> str:
    try:
        return normalize_address(value)
    except ValueError:
        raise VMExecutionError(INVALID_ADDRESS)


class ForwardProxy(Contract):
    """
    Forwarding proxy.

    Key characteristics:
    - One mutable target, zero address until set
    - ``set_target`` returns the proxy's own address for call chaining
    - Every calldata call is relayed with a fresh context (CALL, not
      DELEGATECALL), forwarding all remaining gas and the attached value
    - The target's return data or revert payload is passed back verbatim
    """

    proxy_type = ProxyType.FORWARD

    def __init__(self, reject_empty_value_transfers: bool | None = None) -> None:
        # None defers to the executor settings at call time
        self.reject_empty_value_transfers = reject_empty_value_transfers

    # ==================== Target ====================

    @entrypoint
    def get_target(self, ctx: CallContext) -> str:
        """Get the current forwarding target."""
        return int_to_address(ctx.sload(TARGET_SLOT))

    @entrypoint
    def set_target(self, ctx: CallContext, to: str) -> str:
        """
        Point the proxy at a new target.

        Args:
            ctx: Call context; sender must pass ``_authorize``
            to: New target, may be the zero address to disable forwarding

        Returns:
            The proxy's own address, so a target-typed call can be chained
        """
        self._authorize(ctx)
        target = _parse_address(to)
        ctx.sstore(TARGET_SLOT, address_to_int(target))
        ctx.emit("TargetSet", target=target, by=ctx.sender)

        logger.info(
            "Proxy target set",
            extra={
                "event": "proxy.target_set",
                "proxy": ctx.address[:10],
                "target": target[:10],
                "by": ctx.sender[:10],
            }
        )
        return ctx.address

    # ==================== Relay ====================

    def fallback(self, ctx: CallContext) -> bytes:
        """Relay raw calldata and value to the current target."""
        self._authorize(ctx)

        if not ctx.data and ctx.value and self._rejects_empty_value_transfers(ctx):
            raise VMExecutionError(EMPTY_VALUE_TRANSFER)

        target = int_to_address(ctx.sload(TARGET_SLOT))
        result = ctx.call(target, ctx.data, ctx.value)
        if not result.success:
            self._raise_relay_failure(ctx, target, result)
        return result.return_data

    def _raise_relay_failure(
        self,
        ctx: CallContext,
        target: str,
        result: ExecutionResult,
    ) -> None:
        logger.debug(
            "Relayed call failed",
            extra={
                "event": "proxy.relay_failed",
                "proxy": ctx.address[:10],
                "target": target[:10],
                "out_of_gas": result.out_of_gas,
                "payload_size": len(result.return_data),
            }
        )
        if result.out_of_gas:
            raise ResourceExhaustion(data=result.return_data)
        raise RelayFailure(f"relay to {target} failed", data=result.return_data)

    # ==================== Helpers ====================

    def _authorize(self, ctx: CallContext) -> None:
        """Access check for the setter and relay path. Open by default."""

    def _rejects_empty_value_transfers(self, ctx: CallContext) -> bool:
        if self.reject_empty_value_transfers is None:
            return ctx.executor.settings.reject_empty_value_transfers
        return self.reject_empty_value_transfers


class PermissionedForwardProxy(ForwardProxy):
    """
    Forwarding proxy restricted to an owner and its wards.

    Authorization:
    - Owner: set at deployment to the deployer, changed only by itself
    - Wards: added/removed by the owner or any ward
    - Setter, relay and ward management require owner or ward
    - Ownership transfer requires the owner
    """

    proxy_type = ProxyType.PERMISSIONED

    def constructor(self, ctx: CallContext, *args) -> None:
        ctx.sstore(OWNER_SLOT, address_to_int(ctx.sender))
        ctx.emit("OwnershipTransferred", previous=ZERO_ADDRESS, new=ctx.sender)

    # ==================== Ownership ====================

    @entrypoint
    def get_owner(self, ctx: CallContext) -> str:
        """Get the current owner."""
        return int_to_address(ctx.sload(OWNER_SLOT))

    @entrypoint
    def transfer_ownership(self, ctx: CallContext, new_owner: str) -> None:
        """
        Hand ownership to ``new_owner``.

        The transfer is unconditional: moving ownership to the zero address
        leaves the proxy without an owner for good.
        """
        self._require_owner(ctx)
        new_owner = _parse_address(new_owner)
        previous = int_to_address(ctx.sload(OWNER_SLOT))
        ctx.sstore(OWNER_SLOT, address_to_int(new_owner))
        ctx.emit("OwnershipTransferred", previous=previous, new=new_owner)

        if new_owner == ZERO_ADDRESS:
            logger.warning(
                "Proxy ownership renounced to zero address",
                extra={
                    "event": "proxy.ownership_renounced",
                    "proxy": ctx.address[:10],
                    "previous_owner": previous[:10],
                }
            )
        else:
            logger.info(
                "Proxy ownership transferred",
                extra={
                    "event": "proxy.ownership_transferred",
                    "proxy": ctx.address[:10],
                    "previous_owner": previous[:10],
                    "new_owner": new_owner[:10],
                }
            )

    # ==================== Wards ====================

    @entrypoint
    def is_ward(self, ctx: CallContext, who: str) -> bool:
        """Check whether ``who`` holds ward rights."""
        return ctx.sload(ward_slot(_parse_address(who))) == 1

    @entrypoint
    def add_ward(self, ctx: CallContext, who: str) -> None:
        """Grant ``who`` ward rights. Re-adding is a no-op."""
        self._require_authorized(ctx)
        who = _parse_address(who)
        ctx.sstore(ward_slot(who), 1)
        ctx.emit("WardAdded", who=who, by=ctx.sender)

        logger.info(
            "Ward added",
            extra={
                "event": "proxy.ward_added",
                "proxy": ctx.address[:10],
                "ward": who[:10],
                "by": ctx.sender[:10],
            }
        )

    @entrypoint
    def remove_ward(self, ctx: CallContext, who: str) -> None:
        """Revoke ward rights from ``who``. Removing a non-ward is a no-op."""
        self._require_authorized(ctx)
        who = _parse_address(who)
        ctx.sstore(ward_slot(who), 0)
        ctx.emit("WardRemoved", who=who, by=ctx.sender)

        logger.info(
            "Ward removed",
            extra={
                "event": "proxy.ward_removed",
                "proxy": ctx.address[:10],
                "ward": who[:10],
                "by": ctx.sender[:10],
            }
        )

    # ==================== Helpers ====================

    def _authorize(self, ctx: CallContext) -> None:
        self._require_authorized(ctx)

    def _is_owner(self, ctx: CallContext, who: str) -> bool:
        return ctx.sload(OWNER_SLOT) == address_to_int(who)

    def _is_authorized(self, ctx: CallContext, who: str) -> bool:
        return self._is_owner(ctx, who) or ctx.sload(ward_slot(who)) == 1

    def _require_owner(self, ctx: CallContext) -> None:
        if not self._is_owner(ctx, ctx.sender):
            self._deny(ctx, NOT_OWNER)

    def _require_authorized(self, ctx: CallContext) -> None:
        if not self._is_authorized(ctx, ctx.sender):
            self._deny(ctx, NOT_AUTHORIZED)

    def _deny(self, ctx: CallContext, reason: str) -> None:
        logger.warning(
            "Access denied",
            extra={
                "event": "proxy.access_denied",
                "proxy": ctx.address[:10],
                "caller": ctx.sender[:10],
                "operation": ctx.entrypoint or "relay",
                "reason": reason,
            }
        )
        raise AuthorizationError(reason)


@dataclass
class ProxyInfo:
    """Information about a deployed proxy."""
    address: str
    proxy_type: ProxyType
    deployer: str
    deployed_at: float


@dataclass
class ProxyFactory:
    """
    Factory for deploying forwarding proxies.

    Deploys either variant into the executor's world state and keeps a
    registry of what it deployed.
    """

    executor: Executor
    name: str = "Forward Proxy Factory"

    # Deployed proxies
    proxies: dict[str, ProxyInfo] = field(default_factory=dict)

    # Statistics
    total_proxies: int = 0

    def deploy_forward_proxy(
        self,
        deployer: str,
        reject_empty_value_transfers: bool | None = None,
    ) -> str:
        """
        Deploy an open forwarding proxy.

        Args:
            deployer: Deploying account
            reject_empty_value_transfers: Override of the configured policy

        Returns:
            Address of the deployed proxy
        """
        return self._deploy(ForwardProxy(reject_empty_value_transfers), deployer)

    def deploy_permissioned_proxy(
        self,
        deployer: str,
        reject_empty_value_transfers: bool | None = None,
    ) -> str:
        """
        Deploy a permissioned forwarding proxy.

        Args:
            deployer: Deploying account, becomes owner
            reject_empty_value_transfers: Override of the configured policy

        Returns:
            Address of the deployed proxy
        """
        return self._deploy(PermissionedForwardProxy(reject_empty_value_transfers), deployer)

    def _deploy(self, proxy: ForwardProxy, deployer: str) -> str:
        address = self.executor.deploy(proxy, deployer)
        self.proxies[address] = ProxyInfo(
            address=address,
            proxy_type=proxy.proxy_type,
            deployer=normalize_address(deployer),
            deployed_at=time.time(),
        )
        self.total_proxies += 1

        logger.info(
            "Forward proxy deployed",
            extra={
                "event": "factory.proxy_deployed",
                "type": proxy.proxy_type.value,
                "proxy": address[:10],
                "deployer": normalize_address(deployer)[:10],
            }
        )
        return address

    def get_proxy(self, address: str) -> ProxyInfo | None:
        """Get a deployed proxy by address."""
        return self.proxies.get(normalize_address(address))


class ProxyClient:
    """
    Thin caller-side wrapper around a deployed proxy.

    Every method sends one message from ``sender`` and returns the
    ``ExecutionResult``; nothing raises on revert.
    """

    def __init__(self, executor: Executor, address: str) -> None:
        self.executor = executor
        self.address = normalize_address(address)

    def _invoke(self, sender: str, name: str, *args, gas: int | None = None) -> ExecutionResult:
        return self.executor.transact(
            sender, self.address, entrypoint=name, args=args, gas=gas,
        )

    def get_target(self, sender: str) -> ExecutionResult:
        return self._invoke(sender, "get_target")

    def set_target(self, sender: str, to: str) -> ExecutionResult:
        return self._invoke(sender, "set_target", to)

    def get_owner(self, sender: str) -> ExecutionResult:
        return self._invoke(sender, "get_owner")

    def transfer_ownership(self, sender: str, new_owner: str) -> ExecutionResult:
        return self._invoke(sender, "transfer_ownership", new_owner)

    def add_ward(self, sender: str, who: str) -> ExecutionResult:
        return self._invoke(sender, "add_ward", who)

    def remove_ward(self, sender: str, who: str) -> ExecutionResult:
        return self._invoke(sender, "remove_ward", who)

    def is_ward(self, sender: str, who: str) -> ExecutionResult:
        return self._invoke(sender, "is_ward", who)

    def relay(
        self,
        sender: str,
        data: bytes,
        value: int = 0,
        gas: int | None = None,
    ) -> ExecutionResult:
        """Send raw calldata through the proxy."""
        return self.executor.transact(sender, self.address, data=data, value=value, gas=gas)
