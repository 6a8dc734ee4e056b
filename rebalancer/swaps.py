"""Swap instructions for the vault's exchange adapter.

The adapter executes `abi.encode(router, tokenIn, tokenOut, amountIn, minOut,
to, routerCalldata)` payloads against allow-listed routers only. The builder
here is pure: quotes are fetched by the caller (see rebalancer.quotes) and
passed in, so instruction building never touches the network.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from rebalancer.constants import BPS_DENOMINATOR
from rebalancer.errors import InvalidSlippage, RouterNotAllowed, ZeroAmount
from rebalancer.models.types import bytes_to_hex, normalize_address

# abi.encode layout decoded by the exchange adapter
SWAP_PAYLOAD_TYPES = ["address", "address", "address", "uint256", "uint256", "address", "bytes"]


@dataclass(frozen=True)
class SwapRequest:
    """A quoted swap the caller wants packed.

    Attributes:
        router: Router that will execute router_calldata
        token_in: Token sold
        token_out: Token bought
        amount_in: Raw amount sold
        quoted_amount_out: Raw amount the quote promises
        slippage_bps: Tolerated shortfall from the quote
        recipient: Receiver of token_out (usually the strategy)
        router_calldata: Router-specific calldata from the quote
    """

    router: str
    token_in: str
    token_out: str
    amount_in: int
    quoted_amount_out: int
    slippage_bps: int
    recipient: str
    router_calldata: bytes = b""


@dataclass(frozen=True)
class SwapInstruction:
    """Canonical instruction executed by the exchange adapter."""

    router: str
    token_in: str
    token_out: str
    amount_in: int
    min_amount_out: int
    recipient: str
    router_calldata: bytes

    def encode(self) -> bytes:
        """ABI-encoded payload for the exchange adapter."""
        return encode_swap_payload(self)


def min_amount_out(quoted_amount_out: int, slippage_bps: int) -> int:
    """Quote discounted by the slippage tolerance, truncating.

    Raises:
        InvalidSlippage: If slippage_bps is outside [0, 10000]
    """
    if not 0 <= slippage_bps <= BPS_DENOMINATOR:
        raise InvalidSlippage(f"slippage {slippage_bps} bps outside [0, {BPS_DENOMINATOR}]")
    return quoted_amount_out * (BPS_DENOMINATOR - slippage_bps) // BPS_DENOMINATOR


def _normalize_routers(allowed_routers: Iterable[str]) -> frozenset[str]:
    return frozenset(normalize_address(r) for r in allowed_routers)


def build_swap(
    router: str,
    token_in: str,
    token_out: str,
    amount_in: int,
    quoted_amount_out: int,
    slippage_bps: int,
    recipient: str,
    router_calldata: bytes,
    allowed_routers: Iterable[str],
) -> SwapInstruction:
    """Pack a quoted swap into an adapter instruction.

    Args:
        router: Router address from the quote
        token_in: Token sold
        token_out: Token bought
        amount_in: Raw amount sold
        quoted_amount_out: Raw amount the quote promises
        slippage_bps: Tolerated shortfall from the quote
        recipient: Receiver of token_out
        router_calldata: Calldata from the quote
        allowed_routers: Routers the adapter accepts

    Returns:
        SwapInstruction with min_amount_out = quote * (10000 - slippage) / 10000

    Raises:
        RouterNotAllowed: If router is not allow-listed
        ZeroAmount: If amount_in is not positive
        InvalidSlippage: If slippage_bps is outside [0, 10000]
    """
    allowed = _normalize_routers(allowed_routers)
    if normalize_address(router) not in allowed:
        raise RouterNotAllowed(f"router {router} is not in the allowed router set")
    if amount_in <= 0:
        raise ZeroAmount(f"swap of {token_in} -> {token_out} has amount_in {amount_in}")
    if quoted_amount_out < 0:
        raise ValueError(f"quoted amount out cannot be negative: {quoted_amount_out}")

    return SwapInstruction(
        router=normalize_address(router),
        token_in=normalize_address(token_in),
        token_out=normalize_address(token_out),
        amount_in=amount_in,
        min_amount_out=min_amount_out(quoted_amount_out, slippage_bps),
        recipient=normalize_address(recipient),
        router_calldata=bytes(router_calldata),
    )


def build_swap_from_request(
    request: SwapRequest, allowed_routers: Iterable[str]
) -> SwapInstruction:
    """build_swap for a SwapRequest."""
    return build_swap(
        router=request.router,
        token_in=request.token_in,
        token_out=request.token_out,
        amount_in=request.amount_in,
        quoted_amount_out=request.quoted_amount_out,
        slippage_bps=request.slippage_bps,
        recipient=request.recipient,
        router_calldata=request.router_calldata,
        allowed_routers=allowed_routers,
    )


def build_batch(
    strategy_plans: Sequence[tuple[str, Sequence[SwapRequest]]],
    allowed_routers: Iterable[str],
) -> list[list[SwapInstruction]]:
    """Build instructions for every strategy slot.

    The outer list follows strategy order and inner lists follow request
    order. A strategy without swaps gets an empty list, since the vault
    indexes swap data by strategy slot. Any invalid request aborts the whole
    batch.

    Args:
        strategy_plans: (strategy_id, requests) per strategy slot
        allowed_routers: Routers the adapter accepts

    Returns:
        One list of instructions per strategy slot
    """
    allowed = _normalize_routers(allowed_routers)
    return [
        [build_swap_from_request(request, allowed) for request in requests]
        for _strategy_id, requests in strategy_plans
    ]


# =============================================================================
# ABI encoding
# =============================================================================


def _address_bytes(address: str) -> bytes:
    return bytes.fromhex(normalize_address(address)[2:])


def encode_swap_payload(instruction: SwapInstruction) -> bytes:
    """ABI-encode an instruction in the exchange adapter's layout.

    (address router, address tokenIn, address tokenOut, uint256 amountIn,
     uint256 minOut, address to, bytes routerCalldata)
    """
    from eth_abi import encode  # type: ignore[attr-defined]

    return encode(
        SWAP_PAYLOAD_TYPES,
        [
            _address_bytes(instruction.router),
            _address_bytes(instruction.token_in),
            _address_bytes(instruction.token_out),
            instruction.amount_in,
            instruction.min_amount_out,
            _address_bytes(instruction.recipient),
            instruction.router_calldata,
        ],
    )


def decode_swap_payload(payload: bytes) -> SwapInstruction:
    """Decode an adapter payload back into an instruction (for debugging)."""
    from eth_abi import decode  # type: ignore[attr-defined]

    router, token_in, token_out, amount_in, min_out, recipient, calldata = decode(
        SWAP_PAYLOAD_TYPES, payload
    )
    return SwapInstruction(
        router=normalize_address(router),
        token_in=normalize_address(token_in),
        token_out=normalize_address(token_out),
        amount_in=amount_in,
        min_amount_out=min_out,
        recipient=normalize_address(recipient),
        router_calldata=calldata,
    )


def encode_batch(batch: Sequence[Sequence[SwapInstruction]]) -> list[list[str]]:
    """Hex-encode a batch as the bytes[][] swap data the vault consumes."""
    return [[bytes_to_hex(encode_swap_payload(i)) for i in instructions] for instructions in batch]


__all__ = [
    "SWAP_PAYLOAD_TYPES",
    "SwapRequest",
    "SwapInstruction",
    "min_amount_out",
    "build_swap",
    "build_swap_from_request",
    "build_batch",
    "encode_swap_payload",
    "decode_swap_payload",
    "encode_batch",
]
