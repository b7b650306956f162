"""
Reference target contracts.

Small contracts that report what they observe, used to exercise proxies
from the CLI demo and from tests.
"""

from __future__ import annotations

from ..vm.abi import (
    address_to_int,
    decode_uint,
    encode_address,
    encode_uint,
    function_selector,
)
from ..vm.exceptions import VMExecutionError
from ..vm.executor import CallContext, Contract

# Function selectors (first 4 bytes of keccak256 of the signature)
CALLER_ECHO_SELECTORS = {
    "whoami()": function_selector("whoami()"),
    "lastCaller()": function_selector("lastCaller()"),
    "deposit()": function_selector("deposit()"),
    "fail(uint256)": function_selector("fail(uint256)"),
}

# Slot 0: plain sequential layout, the way a naive contract stores state
LAST_CALLER_SLOT = 0


class CallerEcho(Contract):
    """
    Contract that echoes its caller.

    - ``whoami()``: returns (msg.sender, msg.value) and records the caller
    - ``lastCaller()``: returns the last recorded caller
    - ``deposit()``: payable, returns the contract balance
    - ``fail(uint256)``: reverts with a raw custom payload carrying the code
    """

    def fallback(self, ctx: CallContext) -> bytes:
        selector = bytes(ctx.data[:4])

        if selector == CALLER_ECHO_SELECTORS["whoami()"]:
            ctx.sstore(LAST_CALLER_SLOT, address_to_int(ctx.sender))
            return encode_address(ctx.sender) + encode_uint(ctx.value)

        if selector == CALLER_ECHO_SELECTORS["lastCaller()"]:
            return encode_uint(ctx.sload(LAST_CALLER_SLOT))

        if selector == CALLER_ECHO_SELECTORS["deposit()"]:
            return encode_uint(ctx.state.get_balance(ctx.address))

        if selector == CALLER_ECHO_SELECTORS["fail(uint256)"]:
            if len(ctx.data) < 36:
                raise VMExecutionError("CallerEcho/bad-arguments")
            code = decode_uint(bytes(ctx.data), 4)
            # Custom error CallerEchoFailure(uint256), not Error(string)
            raise VMExecutionError(
                f"CallerEcho failure {code}",
                data=function_selector("CallerEchoFailure(uint256)") + encode_uint(code),
            )

        raise VMExecutionError("CallerEcho/unknown-selector")
