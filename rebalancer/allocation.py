"""Split idle vault capital across strategies by target weight.

Weights are basis points of the idle amount. Each strategy receives
floor(idle * bps / 10000); the truncation remainder stays idle rather than
being pushed onto some strategy, so the plan can never overdraw the vault.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from rebalancer.amounts import TokenAmount
from rebalancer.constants import BPS_DENOMINATOR
from rebalancer.errors import AllocationOverCommitted, DivideByZero, InvalidWeight

logger = structlog.get_logger()


@dataclass(frozen=True)
class AllocationWeight:
    """Target share of idle capital for one strategy.

    Attributes:
        strategy_id: Strategy identifier (usually its address)
        bps: Target weight in basis points, 0..10000
    """

    strategy_id: str
    bps: int


@dataclass(frozen=True)
class StrategyAllocation:
    """Amount of idle capital assigned to a strategy."""

    strategy_id: str
    amount: TokenAmount

    @property
    def is_empty(self) -> bool:
        """True for a zero-weight (no-op) allocation."""
        return self.amount.raw == 0


def validate_weights(weights: Sequence[AllocationWeight]) -> int:
    """Check every weight and the total, returning the total in bps.

    Raises:
        InvalidWeight: If a weight is outside [0, 10000] or a strategy repeats
        AllocationOverCommitted: If the weights sum to more than 10000
    """
    seen: set[str] = set()
    total = 0
    for weight in weights:
        if not 0 <= weight.bps <= BPS_DENOMINATOR:
            raise InvalidWeight(
                f"target bps {weight.bps} for strategy {weight.strategy_id} "
                f"outside [0, {BPS_DENOMINATOR}]"
            )
        if weight.strategy_id in seen:
            raise InvalidWeight(f"strategy {weight.strategy_id} has more than one weight")
        seen.add(weight.strategy_id)
        total += weight.bps

    if total > BPS_DENOMINATOR:
        raise AllocationOverCommitted(
            f"sum of target bps {total} exceeds {BPS_DENOMINATOR}"
        )
    return total


def plan_allocation(
    idle: TokenAmount,
    weights: Sequence[AllocationWeight],
) -> list[StrategyAllocation]:
    """Assign idle capital to strategies, preserving the weights' order.

    All weights are validated before any amount is computed, so a bad
    configuration yields an exception and no partial plan.

    Args:
        idle: Idle vault balance
        weights: Target weights, in strategy-slot order

    Returns:
        One allocation per weight; zero weights produce zero allocations

    Raises:
        InvalidWeight: If a weight is malformed
        AllocationOverCommitted: If the weights sum to more than 10000 bps
    """
    total_bps = validate_weights(weights)

    allocations = [
        StrategyAllocation(
            strategy_id=weight.strategy_id,
            amount=idle.with_raw(idle.raw * weight.bps // BPS_DENOMINATOR),
        )
        for weight in weights
    ]

    logger.debug(
        "allocation_planned",
        idle=idle.raw,
        total_bps=total_bps,
        strategies=len(allocations),
        remainder=allocation_remainder(idle, allocations).raw,
    )
    return allocations


def allocation_remainder(
    idle: TokenAmount,
    allocations: Sequence[StrategyAllocation],
) -> TokenAmount:
    """Idle capital not assigned to any strategy."""
    assigned = sum(a.amount.raw for a in allocations)
    return idle.with_raw(idle.raw - assigned)


# =============================================================================
# Drift checks
# =============================================================================


def current_bps(strategy_assets: int, total_assets: int) -> int:
    """Strategy's share of total vault assets in bps (truncating).

    Raises:
        DivideByZero: If total_assets is zero
    """
    if total_assets == 0:
        raise DivideByZero("vault total assets is zero")
    return strategy_assets * BPS_DENOMINATOR // total_assets


def allocation_drift(strategy_assets: int, total_assets: int, target_bps: int) -> int:
    """Absolute distance in bps between the actual and target share."""
    return abs(current_bps(strategy_assets, total_assets) - target_bps)


def needs_rebalance(
    strategy_assets: int,
    total_assets: int,
    target_bps: int,
    threshold_bps: int,
) -> bool:
    """True when the drift from target exceeds the tolerance."""
    return allocation_drift(strategy_assets, total_assets, target_bps) > threshold_bps


__all__ = [
    "AllocationWeight",
    "StrategyAllocation",
    "validate_weights",
    "plan_allocation",
    "allocation_remainder",
    "current_bps",
    "allocation_drift",
    "needs_rebalance",
]
