"""
Minimal ABI helpers for the contract VM.

Only the pieces the proxy and its callers need:
- keccak256 and 4-byte function selectors
- 32-byte word encoding for addresses, unsigned ints and bools
- The Solidity ``Error(string)`` revert payload format
"""

from __future__ import annotations

from Crypto.Hash import keccak

WORD_SIZE = 32
UINT256_MAX = 2**256 - 1
ADDRESS_MASK = 2**160 - 1

ZERO_ADDRESS = "0x" + "0" * 40

# bytes4(keccak256("Error(string)"))
ERROR_SELECTOR = bytes.fromhex("08c379a0")


def keccak256(data: bytes) -> bytes:
    """Compute keccak256 hash (same as Ethereum)."""
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


def function_selector(signature: str) -> bytes:
    """Return the 4-byte selector for a canonical signature like ``echo(uint256)``."""
    return keccak256(signature.encode())[:4]


def normalize_address(address: str) -> str:
    """
    Normalize an address to lower-case ``0x`` + 40 hex characters.

    Raises:
        ValueError: If the value is not a 20-byte hex address
    """
    if not isinstance(address, str):
        raise ValueError(f"Address must be a string, got {type(address).__name__}")
    hex_part = address[2:] if address[:2].lower() == "0x" else address
    if len(hex_part) != 40:
        raise ValueError(f"Address hex part must be 40 characters, got {len(hex_part)}")
    try:
        int(hex_part, 16)
    except ValueError:
        raise ValueError(f"Invalid hex characters in address: {address}")
    return "0x" + hex_part.lower()


def address_to_int(address: str) -> int:
    return int(normalize_address(address), 16)


def int_to_address(value: int) -> str:
    return "0x" + format(value & ADDRESS_MASK, "040x")


def pad32(data: bytes) -> bytes:
    """Left-pad ``data`` to a 32-byte word."""
    if len(data) > WORD_SIZE:
        raise ValueError(f"Cannot pad {len(data)} bytes into a single word")
    return data.rjust(WORD_SIZE, b"\x00")


def encode_uint(value: int) -> bytes:
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"uint256 out of range: {value}")
    return value.to_bytes(WORD_SIZE, "big")


def decode_uint(data: bytes, offset: int = 0) -> int:
    word = data[offset:offset + WORD_SIZE]
    if len(word) != WORD_SIZE:
        raise ValueError("Not enough data to decode a word")
    return int.from_bytes(word, "big")


def encode_address(address: str) -> bytes:
    return encode_uint(address_to_int(address))


def decode_address(data: bytes, offset: int = 0) -> str:
    return int_to_address(decode_uint(data, offset))


def encode_bool(value: bool) -> bytes:
    return encode_uint(1 if value else 0)


def decode_bool(data: bytes, offset: int = 0) -> bool:
    return decode_uint(data, offset) != 0


def encode_call(signature: str, *words: bytes) -> bytes:
    """Build calldata from a signature and already-encoded static words."""
    return function_selector(signature) + b"".join(words)


def encode_error(reason: str) -> bytes:
    """
    Encode a revert reason as ``Error(string)`` payload.

    Layout: selector, offset word (0x20), length word, utf-8 bytes padded
    to a multiple of 32.
    """
    raw = reason.encode("utf-8")
    padding = (-len(raw)) % WORD_SIZE
    return (
        ERROR_SELECTOR
        + encode_uint(WORD_SIZE)
        + encode_uint(len(raw))
        + raw
        + b"\x00" * padding
    )


def decode_error(data: bytes) -> str | None:
    """Decode an ``Error(string)`` payload, or None if ``data`` is not one."""
    if len(data) < 4 + 2 * WORD_SIZE or data[:4] != ERROR_SELECTOR:
        return None
    body = data[4:]
    try:
        offset = decode_uint(body, 0)
        length = decode_uint(body, offset)
    except ValueError:
        return None
    start = offset + WORD_SIZE
    raw = body[start:start + length]
    if len(raw) != length:
        return None
    return raw.decode("utf-8", errors="replace")
