"""Error taxonomy for the rebalance planner.

Every error is a local validation failure raised before any instruction is
built. Messages name the violated invariant together with the offending
values so operators can act on them directly.
"""

from __future__ import annotations


class RebalancerError(Exception):
    """Base error for planner operations."""

    pass


class DivideByZero(RebalancerError, ArithmeticError):
    """Division by a zero amount (e.g. encoding a price with amount0 == 0)."""

    pass


class TickOutOfBounds(RebalancerError):
    """Tick outside [MIN_TICK, MAX_TICK]."""

    pass


class SqrtPriceOutOfBounds(RebalancerError):
    """sqrtPriceX96 outside [MIN_SQRT_RATIO, MAX_SQRT_RATIO)."""

    pass


class InvalidTickSpacing(RebalancerError):
    """Tick spacing must be a positive integer."""

    pass


class TickRangeOutOfBounds(RebalancerError):
    """Clamping a tick range to the usable ticks left lower >= upper."""

    pass


class LiquidityOverflow(RebalancerError):
    """Computed liquidity does not fit in uint128."""

    pass


class RouteNotConfigured(RebalancerError):
    """No oracle route (or no answer for its aggregator) exists for a token."""

    pass


class InvalidOracleAnswer(RebalancerError):
    """Aggregator returned a non-positive answer."""

    pass


class StalePrice(RebalancerError):
    """Oracle answer is older than the route's heartbeat."""

    pass


class InvalidWeight(RebalancerError):
    """Allocation weight outside [0, 10000] bps or duplicated strategy."""

    pass


class AllocationOverCommitted(RebalancerError):
    """Target weights sum to more than 10000 bps."""

    pass


class InvalidSlippage(RebalancerError):
    """Slippage tolerance outside [0, 10000] bps."""

    pass


class RouterNotAllowed(RebalancerError):
    """Swap router is not in the allow-set."""

    pass


class ZeroAmount(RebalancerError):
    """Swap input amount must be positive."""

    pass


class InconsistentSnapshot(RebalancerError):
    """Inputs of one computation come from different chain snapshots."""

    pass


class QuoteError(RebalancerError):
    """External quote provider failed or returned an unusable quote."""

    pass


class ConfigError(RebalancerError):
    """Operator configuration is inconsistent with the chain snapshot."""

    pass


__all__ = [
    "RebalancerError",
    "DivideByZero",
    "TickOutOfBounds",
    "SqrtPriceOutOfBounds",
    "InvalidTickSpacing",
    "TickRangeOutOfBounds",
    "LiquidityOverflow",
    "RouteNotConfigured",
    "InvalidOracleAnswer",
    "StalePrice",
    "InvalidWeight",
    "AllocationOverCommitted",
    "InvalidSlippage",
    "RouterNotAllowed",
    "ZeroAmount",
    "InconsistentSnapshot",
    "QuoteError",
    "ConfigError",
]
