"""Q64.96 fixed-point price codec and exact integer helpers.

Concentrated-liquidity pools store their price as

    sqrtPriceX96 = sqrt(amount1 / amount0) * 2**96

where amount1/amount0 is the raw (smallest-unit) price of token0 in token1.
Everything here works on Python integers, so squaring a 160-bit value or
shifting by 192 bits never overflows. Conversion to a human-readable price
happens exactly once, at the end, in a 78-digit Decimal context.
"""

from __future__ import annotations

import decimal
from decimal import Decimal
from fractions import Fraction

from rebalancer.errors import DivideByZero

__all__ = [
    # Constants
    "Q96",
    "Q192",
    "UINT128_MAX",
    "UINT160_MAX",
    "UINT256_MAX",
    "DECIMAL_HIGH_PREC_CONTEXT",
    # Functions
    "integer_sqrt",
    "mul_div",
    "mul_div_rounding_up",
    "encode_q96_price_from_amounts",
    "encode_q96_price_from_price",
    "price_ratio_from_q96",
    "price_from_q96",
]

# =============================================================================
# Constants
# =============================================================================

Q96 = 1 << 96
Q192 = 1 << 192

UINT128_MAX = 2**128 - 1
UINT160_MAX = 2**160 - 1
UINT256_MAX = 2**256 - 1

# 78 digits of precision, enough for any uint256 (up to ~1.16e77)
DECIMAL_HIGH_PREC_CONTEXT = decimal.Context(prec=78)


# =============================================================================
# Integer primitives
# =============================================================================


def integer_sqrt(n: int) -> int:
    """Return the largest r such that r * r <= n.

    Babylonian iteration seeded at (n >> 1) + 1, stopping as soon as the
    estimate no longer strictly decreases.

    Raises:
        ValueError: If n is negative
    """
    if n < 0:
        raise ValueError(f"integer_sqrt of negative value: {n}")
    if n <= 1:
        return n
    if n < 4:
        return 1

    z = n
    x = (n >> 1) + 1
    while x < z:
        z = x
        x = (n // x + x) >> 1
    return z


def mul_div(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator) without intermediate truncation.

    Raises:
        DivideByZero: If denominator is zero
    """
    if denominator == 0:
        raise DivideByZero(f"mul_div by zero: {a} * {b} / 0")
    return (a * b) // denominator


def mul_div_rounding_up(a: int, b: int, denominator: int) -> int:
    """ceil(a * b / denominator) without intermediate truncation.

    Raises:
        DivideByZero: If denominator is zero
    """
    if denominator == 0:
        raise DivideByZero(f"mul_div_rounding_up by zero: {a} * {b} / 0")
    return -((-(a * b)) // denominator)


# =============================================================================
# Price codec
# =============================================================================


def encode_q96_price_from_amounts(amount1: int, amount0: int) -> int:
    """Encode the reserve ratio amount1/amount0 as sqrtPriceX96.

    Computes floor(sqrt((amount1 << 192) // amount0)). This is how the
    initial price of a new pool is derived from a desired reserve ratio,
    e.g. "1 unit of token0 is worth K units of token1".

    Args:
        amount1: Raw amount of token1
        amount0: Raw amount of token0

    Returns:
        sqrtPriceX96 as an integer

    Raises:
        DivideByZero: If amount0 is zero
        ValueError: If either amount is negative
    """
    if amount0 == 0:
        raise DivideByZero("cannot encode price with amount0 == 0")
    if amount0 < 0 or amount1 < 0:
        raise ValueError(f"amounts must be non-negative: amount1={amount1}, amount0={amount0}")
    return integer_sqrt((amount1 << 192) // amount0)


def encode_q96_price_from_price(
    price: Decimal | str | int,
    decimals0: int,
    decimals1: int,
) -> int:
    """Encode a human token1-per-token0 price as sqrtPriceX96.

    Inverse of price_from_q96: the price is turned into an exact raw ratio
    (scaled by the token decimals) before encoding.

    Args:
        price: Human price, e.g. Decimal("2500") for 2500 USDC per WETH
        decimals0: Decimals of token0
        decimals1: Decimals of token1

    Returns:
        sqrtPriceX96 as an integer
    """
    ratio = Fraction(Decimal(price))
    if ratio <= 0:
        raise ValueError(f"price must be positive: {price}")
    amount1 = ratio.numerator * 10**decimals1
    amount0 = ratio.denominator * 10**decimals0
    return encode_q96_price_from_amounts(amount1, amount0)


def price_ratio_from_q96(sqrt_price_x96: int) -> Fraction:
    """Exact raw price (token1 units per token0 unit) of a sqrtPriceX96."""
    if sqrt_price_x96 <= 0:
        raise ValueError(f"sqrtPriceX96 must be positive: {sqrt_price_x96}")
    return Fraction(sqrt_price_x96 * sqrt_price_x96, Q192)


def price_from_q96(sqrt_price_x96: int, decimals0: int, decimals1: int) -> Decimal:
    """Human price of token0 expressed in token1.

    The square and the 10**(decimals0 - decimals1) adjustment are applied to
    exact integers; the single division into a Decimal is the only rounding
    step. Never route sqrtPriceX96 through float before squaring: a 160-bit
    value loses ~100 bits that way.

    Args:
        sqrt_price_x96: Pool price as sqrt(p) * 2**96
        decimals0: Decimals of token0
        decimals1: Decimals of token1

    Returns:
        Amount of token1 (whole units) per whole unit of token0
    """
    if sqrt_price_x96 <= 0:
        raise ValueError(f"sqrtPriceX96 must be positive: {sqrt_price_x96}")

    numerator = sqrt_price_x96 * sqrt_price_x96
    denominator = Q192
    if decimals0 >= decimals1:
        numerator *= 10 ** (decimals0 - decimals1)
    else:
        denominator *= 10 ** (decimals1 - decimals0)

    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        return Decimal(numerator) / Decimal(denominator)
