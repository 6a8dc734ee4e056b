"""Allocation plan orchestration.

Turns an operator config and one chain snapshot into an ordered plan:

1. Read the vault's idle asset balance from the snapshot
2. Split it across strategies by target weight
3. Value the idle amount through the oracle routes (staleness is flagged,
   or rejected when the config asks for it)
4. For each concentrated-liquidity strategy, pick an aligned range around the
   pool tick, size the swap into the pool's other token, and quote it
5. Build every swap instruction in one all-or-nothing batch

Nothing is emitted unless every step succeeds.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from rebalancer.allocation import (
    StrategyAllocation,
    allocation_remainder,
    plan_allocation,
    validate_weights,
)
from rebalancer.amounts import TokenAmount
from rebalancer.chain.state import ChainSnapshot, PoolState, ensure_same_snapshot
from rebalancer.config import (
    DEFAULT_PLANNER_SETTINGS,
    AllocationConfig,
    PlannerSettings,
    StrategyConfig,
    StrategyKind,
)
from rebalancer.errors import ConfigError
from rebalancer.math.liquidity import liquidity_for_amounts, swap_amount_to_balance
from rebalancer.math.tick_math import TickRange, aligned_tick_range
from rebalancer.models.plan import AllocationPlan, PlanEntry, PlannedSwap, PositionRange
from rebalancer.models.types import bytes_to_hex, normalize_address
from rebalancer.oracle import PriceQuote
from rebalancer.quotes import ExternalQuoteProvider
from rebalancer.swaps import SwapInstruction, SwapRequest, build_batch, encode_batch

logger = structlog.get_logger()


@dataclass(frozen=True)
class _PositionPlan:
    """Range and swap request worked out for one CL strategy."""

    tick_range: TickRange
    pool: PoolState
    request: SwapRequest | None


def _value_idle(
    config: AllocationConfig,
    snapshot: ChainSnapshot,
    idle: TokenAmount,
    settings: PlannerSettings,
) -> PriceQuote | None:
    """Oracle quote for the vault asset, or None if no routes are configured."""
    if not config.oracle_routes:
        return None

    quote = config.oracle_router().price(config.asset, snapshot, now=settings.now)
    if config.reject_stale_prices or settings.reject_stale_prices:
        quote.require_fresh()

    logger.info(
        "idle_valued",
        asset=quote.token,
        usd_value=quote.usd_value(idle),
        is_stale=quote.is_stale,
        route=quote.route,
    )
    return quote


def _plan_position(
    config: AllocationConfig,
    strategy: StrategyConfig,
    allocation: StrategyAllocation,
    snapshot: ChainSnapshot,
    quote_provider: ExternalQuoteProvider,
    settings: PlannerSettings,
) -> _PositionPlan:
    if strategy.pool is None:
        raise ConfigError(f"concentrated liquidity strategy '{strategy.id}' has no pool")
    pool = snapshot.pool(strategy.pool)
    ensure_same_snapshot(snapshot.snapshot_id, pool)

    asset = normalize_address(config.asset)
    other = normalize_address(pool.other_token(asset))

    half_width = strategy.half_width_spacings or settings.default_half_width_spacings
    tick_range = aligned_tick_range(pool.tick, pool.tick_spacing, half_width)
    sqrt_a, sqrt_b = tick_range.sqrt_ratios()

    amount = allocation.amount.raw
    swap_amount = swap_amount_to_balance(
        amount, pool.is_token0(asset), pool.sqrt_price_x96, sqrt_a, sqrt_b
    )

    logger.debug(
        "position_sized",
        strategy_id=strategy.id,
        pool=pool.address,
        tick=pool.tick,
        tick_lower=tick_range.tick_lower,
        tick_upper=tick_range.tick_upper,
        amount=amount,
        swap_amount=swap_amount,
    )

    if swap_amount == 0:
        return _PositionPlan(tick_range, pool, None)

    quote = quote_provider.quote(asset, other, swap_amount, normalize_address(strategy.address))
    request = SwapRequest(
        router=quote.router,
        token_in=asset,
        token_out=other,
        amount_in=swap_amount,
        quoted_amount_out=quote.buy_amount,
        slippage_bps=config.slippage_bps,
        recipient=normalize_address(strategy.address),
        router_calldata=quote.router_calldata,
    )
    return _PositionPlan(tick_range, pool, request)


def _expected_liquidity(position: _PositionPlan, asset: str, amount: int) -> int:
    """Liquidity the strategy could mint after its swap, at spot price."""
    request = position.request
    kept = amount - (request.amount_in if request else 0)
    received = request.quoted_amount_out if request else 0

    if position.pool.is_token0(asset):
        amount0, amount1 = kept, received
    else:
        amount0, amount1 = received, kept

    sqrt_a, sqrt_b = position.tick_range.sqrt_ratios()
    return liquidity_for_amounts(position.pool.sqrt_price_x96, sqrt_a, sqrt_b, amount0, amount1)


def _planned_swap(instruction: SwapInstruction, request: SwapRequest, payload: str) -> PlannedSwap:
    return PlannedSwap(
        router=instruction.router,
        token_in=instruction.token_in,
        token_out=instruction.token_out,
        amount_in=instruction.amount_in,
        quoted_amount_out=request.quoted_amount_out,
        min_amount_out=instruction.min_amount_out,
        recipient=instruction.recipient,
        router_calldata=bytes_to_hex(instruction.router_calldata),
        payload=payload,
    )


def build_allocation_plan(
    config: AllocationConfig,
    snapshot: ChainSnapshot,
    quote_provider: ExternalQuoteProvider,
    settings: PlannerSettings = DEFAULT_PLANNER_SETTINGS,
) -> AllocationPlan:
    """Plan the investment of the vault's idle asset.

    Args:
        config: Operator configuration
        snapshot: Chain state at one block
        quote_provider: Source of swap quotes
        settings: Planner behavior flags

    Returns:
        AllocationPlan with one entry and one swap-data list per strategy

    Raises:
        RebalancerError: If any step fails; no partial plan is returned
    """
    # Over-committed or duplicate weights fail before any chain state is read
    validate_weights(config.weights())

    asset = normalize_address(config.asset)
    vault = normalize_address(config.vault)
    meta = snapshot.token(asset)
    idle = TokenAmount(snapshot.balance(asset, vault), meta.decimals)

    logger.info(
        "planning_started",
        snapshot_id=snapshot.snapshot_id,
        asset=asset,
        idle=idle.raw,
        strategies=len(config.strategies),
    )

    allocations = plan_allocation(idle, config.weights())
    price = _value_idle(config, snapshot, idle, settings)

    positions: dict[str, _PositionPlan] = {}
    strategy_plans: list[tuple[str, list[SwapRequest]]] = []
    for strategy, allocation in zip(config.strategies, allocations, strict=True):
        requests: list[SwapRequest] = []
        if strategy.kind == StrategyKind.CONCENTRATED_LIQUIDITY:
            position = _plan_position(
                config, strategy, allocation, snapshot, quote_provider, settings
            )
            positions[strategy.id] = position
            if position.request is not None:
                requests.append(position.request)
        elif strategy.kind != StrategyKind.LENDING:
            raise ConfigError(f"unsupported strategy kind {strategy.kind} for '{strategy.id}'")
        strategy_plans.append((strategy.id, requests))

    batch = build_batch(strategy_plans, config.allowed_routers)
    swap_data = encode_batch(batch)

    entries: list[PlanEntry] = []
    for strategy, allocation, (_, requests), instructions, payloads in zip(
        config.strategies, allocations, strategy_plans, batch, swap_data, strict=True
    ):
        position_range = None
        position = positions.get(strategy.id)
        if position is not None:
            position_range = PositionRange(
                tick_lower=position.tick_range.tick_lower,
                tick_upper=position.tick_range.tick_upper,
                current_tick=position.pool.tick,
                expected_liquidity=_expected_liquidity(position, asset, allocation.amount.raw),
            )
        entries.append(
            PlanEntry(
                strategy_id=strategy.id,
                strategy=normalize_address(strategy.address),
                kind=strategy.kind.value,
                target_bps=strategy.target_bps,
                amount=allocation.amount.raw,
                position=position_range,
                swaps=[
                    _planned_swap(instruction, request, payload)
                    for instruction, request, payload in zip(
                        instructions, requests, payloads, strict=True
                    )
                ],
            )
        )

    remainder = allocation_remainder(idle, allocations)
    plan = AllocationPlan(
        snapshot_id=snapshot.snapshot_id,
        block_number=snapshot.block_number,
        asset=asset,
        vault=vault,
        idle=idle.raw,
        remainder=remainder.raw,
        idle_usd_value=price.usd_value(idle) if price else None,
        price_is_stale=price.is_stale if price else False,
        entries=entries,
        swap_data=swap_data,
    )

    logger.info(
        "plan_built",
        snapshot_id=plan.snapshot_id,
        allocated=idle.raw - remainder.raw,
        remainder=plan.remainder,
        swaps=plan.swap_count,
    )
    return plan


class Planner:
    """Allocation planner bound to a set of settings.

    The HTTP service resolves one through a dependency so tests can inject a
    different instance.
    """

    def __init__(self, settings: PlannerSettings = DEFAULT_PLANNER_SETTINGS):
        self.settings = settings

    def plan(
        self,
        config: AllocationConfig,
        snapshot: ChainSnapshot,
        quote_provider: ExternalQuoteProvider,
    ) -> AllocationPlan:
        return build_allocation_plan(config, snapshot, quote_provider, self.settings)


# Default planner instance
planner = Planner()


def get_default_planner() -> Planner:
    """Shared planner with default settings."""
    return planner


__all__ = ["build_allocation_plan", "Planner", "get_default_planner"]
