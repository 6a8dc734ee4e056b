"""Mathematical primitives for concentrated-liquidity planning.

This package provides:
- fixed_point: exact integer sqrt and the Q64.96 price codec
- tick_math: tick <-> sqrtPriceX96 conversion and range alignment
- liquidity: position sizing (amounts <-> liquidity)
"""

from rebalancer.math.fixed_point import (
    Q96,
    encode_q96_price_from_amounts,
    integer_sqrt,
    price_from_q96,
)
from rebalancer.math.liquidity import (
    amounts_for_liquidity,
    liquidity_for_amounts,
    swap_amount_to_balance,
)
from rebalancer.math.tick_math import (
    MAX_TICK,
    MIN_TICK,
    TickRange,
    aligned_tick_range,
    get_sqrt_ratio_at_tick,
    get_tick_at_sqrt_ratio,
)

__all__ = [
    "Q96",
    "MIN_TICK",
    "MAX_TICK",
    "TickRange",
    "integer_sqrt",
    "encode_q96_price_from_amounts",
    "price_from_q96",
    "aligned_tick_range",
    "get_sqrt_ratio_at_tick",
    "get_tick_at_sqrt_ratio",
    "amounts_for_liquidity",
    "liquidity_for_amounts",
    "swap_amount_to_balance",
]
