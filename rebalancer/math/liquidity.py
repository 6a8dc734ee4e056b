"""Position sizing for concentrated liquidity.

Ports of the reference periphery's LiquidityAmounts library. All sqrt ratios
are Q64.96 integers; amounts are raw token units; results round down, which
is the pool-favourable direction for both mints and valuations.

A position over [sqrt_a, sqrt_b) holds:
- only token0 while the price is at or below sqrt_a,
- only token1 once the price reaches sqrt_b,
- both tokens in between.
"""

from __future__ import annotations

from rebalancer.errors import LiquidityOverflow
from rebalancer.math.fixed_point import Q96, UINT128_MAX, mul_div
from rebalancer.math.tick_math import TickRange

__all__ = [
    "amount0_for_liquidity",
    "amount1_for_liquidity",
    "amounts_for_liquidity",
    "amounts_for_position",
    "liquidity_for_amount0",
    "liquidity_for_amount1",
    "liquidity_for_amounts",
    "swap_amount_to_balance",
]


def _sorted(sqrt_a: int, sqrt_b: int) -> tuple[int, int]:
    return (sqrt_b, sqrt_a) if sqrt_a > sqrt_b else (sqrt_a, sqrt_b)


def _to_uint128(liquidity: int) -> int:
    if liquidity > UINT128_MAX:
        raise LiquidityOverflow(f"liquidity {liquidity} exceeds uint128")
    return liquidity


# =============================================================================
# Amounts -> liquidity
# =============================================================================


def liquidity_for_amount0(sqrt_a: int, sqrt_b: int, amount0: int) -> int:
    """Liquidity supplied by amount0 over [sqrt_a, sqrt_b).

    L = amount0 * (sqrt_a * sqrt_b / Q96) / (sqrt_b - sqrt_a)
    """
    sqrt_a, sqrt_b = _sorted(sqrt_a, sqrt_b)
    intermediate = mul_div(sqrt_a, sqrt_b, Q96)
    return _to_uint128(mul_div(amount0, intermediate, sqrt_b - sqrt_a))


def liquidity_for_amount1(sqrt_a: int, sqrt_b: int, amount1: int) -> int:
    """Liquidity supplied by amount1 over [sqrt_a, sqrt_b).

    L = amount1 * Q96 / (sqrt_b - sqrt_a)
    """
    sqrt_a, sqrt_b = _sorted(sqrt_a, sqrt_b)
    return _to_uint128(mul_div(amount1, Q96, sqrt_b - sqrt_a))


def liquidity_for_amounts(
    sqrt_price_x96: int,
    sqrt_a: int,
    sqrt_b: int,
    amount0: int,
    amount1: int,
) -> int:
    """Largest liquidity mintable from the available amounts at the current price.

    Inside the range the scarcer token binds, so the result is the minimum of
    the liquidity each amount would support on its own.

    Args:
        sqrt_price_x96: Current pool price
        sqrt_a: sqrt ratio at one bound
        sqrt_b: sqrt ratio at the other bound
        amount0: Available token0
        amount1: Available token1

    Returns:
        Liquidity (uint128)
    """
    sqrt_a, sqrt_b = _sorted(sqrt_a, sqrt_b)

    if sqrt_price_x96 <= sqrt_a:
        return liquidity_for_amount0(sqrt_a, sqrt_b, amount0)
    if sqrt_price_x96 < sqrt_b:
        liquidity0 = liquidity_for_amount0(sqrt_price_x96, sqrt_b, amount0)
        liquidity1 = liquidity_for_amount1(sqrt_a, sqrt_price_x96, amount1)
        return min(liquidity0, liquidity1)
    return liquidity_for_amount1(sqrt_a, sqrt_b, amount1)


# =============================================================================
# Liquidity -> amounts
# =============================================================================


def amount0_for_liquidity(sqrt_a: int, sqrt_b: int, liquidity: int) -> int:
    """token0 held by liquidity across [sqrt_a, sqrt_b)."""
    sqrt_a, sqrt_b = _sorted(sqrt_a, sqrt_b)
    return mul_div(liquidity << 96, sqrt_b - sqrt_a, sqrt_b) // sqrt_a


def amount1_for_liquidity(sqrt_a: int, sqrt_b: int, liquidity: int) -> int:
    """token1 held by liquidity across [sqrt_a, sqrt_b)."""
    sqrt_a, sqrt_b = _sorted(sqrt_a, sqrt_b)
    return mul_div(liquidity, sqrt_b - sqrt_a, Q96)


def amounts_for_liquidity(
    sqrt_price_x96: int,
    sqrt_a: int,
    sqrt_b: int,
    liquidity: int,
) -> tuple[int, int]:
    """Token amounts represented by a position at the current price.

    Returns:
        (amount0, amount1)
    """
    sqrt_a, sqrt_b = _sorted(sqrt_a, sqrt_b)

    if sqrt_price_x96 <= sqrt_a:
        return amount0_for_liquidity(sqrt_a, sqrt_b, liquidity), 0
    if sqrt_price_x96 < sqrt_b:
        return (
            amount0_for_liquidity(sqrt_price_x96, sqrt_b, liquidity),
            amount1_for_liquidity(sqrt_a, sqrt_price_x96, liquidity),
        )
    return 0, amount1_for_liquidity(sqrt_a, sqrt_b, liquidity)


def amounts_for_position(
    sqrt_price_x96: int,
    tick_range: TickRange,
    liquidity: int,
) -> tuple[int, int]:
    """amounts_for_liquidity for a tick range."""
    sqrt_a, sqrt_b = tick_range.sqrt_ratios()
    return amounts_for_liquidity(sqrt_price_x96, sqrt_a, sqrt_b, liquidity)


# =============================================================================
# Single-asset deposits
# =============================================================================


def swap_amount_to_balance(
    amount: int,
    asset_is_token0: bool,
    sqrt_price_x96: int,
    sqrt_a: int,
    sqrt_b: int,
) -> int:
    """Portion of a single-token deposit to swap into the pool's other token.

    The position's value split at the current price is

        token0 share ~ (sqrt_b - sqrt_p) * sqrt_p
        token1 share ~ (sqrt_p - sqrt_a) * sqrt_b

    (both measured in token1 and scaled by sqrt_b * Q96). The returned amount
    is the floor of the other token's share of `amount`, valued at spot price:
    swap fees and price impact are left to the slippage tolerance.

    Args:
        amount: Raw amount of the deposit asset
        asset_is_token0: True if the deposit asset is the pool's token0
        sqrt_price_x96: Current pool price
        sqrt_a: sqrt ratio at one bound
        sqrt_b: sqrt ratio at the other bound

    Returns:
        Raw amount of the deposit asset to swap
    """
    sqrt_a, sqrt_b = _sorted(sqrt_a, sqrt_b)

    if sqrt_price_x96 <= sqrt_a:
        share0, share1 = 1, 0
    elif sqrt_price_x96 >= sqrt_b:
        share0, share1 = 0, 1
    else:
        share0 = (sqrt_b - sqrt_price_x96) * sqrt_price_x96
        share1 = (sqrt_price_x96 - sqrt_a) * sqrt_b

    other_share = share1 if asset_is_token0 else share0
    return mul_div(amount, other_share, share0 + share1)
