"""Shared type definitions for the planner's JSON models.

Integers that can exceed 2**53 (amounts, sqrt prices, liquidity) travel as
decimal strings in JSON and are validated into Python ints on the way in.
"""

from typing import Annotated, Any

from pydantic import BeforeValidator, Field, PlainSerializer

# Maximum uint256 value
UINT256_MAX = 2**256 - 1


def parse_uint256(value: Any) -> int:
    """Validate a uint256 given as int or decimal string.

    Args:
        value: Value to validate (string or int)

    Returns:
        The value as a Python int

    Raises:
        ValueError: If value is not a non-negative integer within uint256 range
    """
    if isinstance(value, bool):
        raise ValueError("Uint256 must be string or int, got bool")

    if isinstance(value, int):
        int_value = value
    elif isinstance(value, str):
        try:
            int_value = int(value, 0) if value.startswith("0x") else int(value)
        except ValueError as err:
            raise ValueError(f"Uint256 must be a decimal integer string: '{value}'") from err
    else:
        raise ValueError(f"Uint256 must be string or int, got {type(value).__name__}")

    if int_value < 0:
        raise ValueError(f"Uint256 cannot be negative: {value}")
    if int_value > UINT256_MAX:
        raise ValueError(f"Uint256 overflow: {value} > 2^256-1")
    return int_value


def parse_int24(value: Any) -> int:
    """Validate a signed tick value given as int or decimal string."""
    if isinstance(value, bool) or not isinstance(value, int | str):
        raise ValueError(f"tick must be string or int, got {type(value).__name__}")
    int_value = int(value)
    if not -(2**23) <= int_value < 2**23:
        raise ValueError(f"tick out of int24 range: {value}")
    return int_value


# Ethereum address (40 hex chars after 0x prefix)
Address = Annotated[str, Field(pattern=r"^0x[a-fA-F0-9]{40}$")]

# 256-bit unsigned integer, int in Python and decimal string in JSON
Uint256 = Annotated[
    int,
    BeforeValidator(parse_uint256),
    PlainSerializer(lambda v: str(v), return_type=str),
    Field(description="256-bit unsigned integer as decimal string"),
]

# Signed 24-bit tick
Int24 = Annotated[int, BeforeValidator(parse_int24)]

# Basis points in [0, 10000]
Bps = Annotated[int, Field(ge=0, le=10_000)]

# Arbitrary hex bytes
Bytes = Annotated[str, Field(pattern=r"^0x[a-fA-F0-9]*$")]


def normalize_address(address: str, *, validate: bool = False) -> str:
    """Normalize an Ethereum address to lowercase.

    Args:
        address: An Ethereum address (with or without 0x prefix)
        validate: If True, raises ValueError for invalid addresses.

    Returns:
        Lowercase address with 0x prefix

    Raises:
        ValueError: If validate=True and address is not a valid Ethereum address
    """
    addr = address.lower()
    if not addr.startswith("0x"):
        addr = "0x" + addr

    if validate and not is_valid_address(addr):
        raise ValueError(f"Invalid address: {address}")

    return addr


def is_valid_address(address: str) -> bool:
    """Check if a string is a valid Ethereum address (0x + 40 hex chars)."""
    if not isinstance(address, str):
        return False
    if not address.startswith("0x") or len(address) != 42:
        return False
    try:
        int(address, 16)
        return True
    except ValueError:
        return False


def hex_to_bytes(data: str) -> bytes:
    """Decode 0x-prefixed hex calldata."""
    return bytes.fromhex(data[2:] if data.startswith("0x") else data)


def bytes_to_hex(data: bytes) -> str:
    """Encode bytes as 0x-prefixed hex."""
    return "0x" + data.hex()
