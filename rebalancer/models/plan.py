"""Pydantic models for allocation plans.

An AllocationPlan is what the planner emits: one entry per deployed strategy,
in the vault's strategy array order, plus the hex-encoded swap data that the
vault's investIdle call consumes.
"""

from pydantic import BaseModel, Field

from rebalancer.models.types import Address, Bytes, Int24, Uint256


class PlannedSwap(BaseModel):
    """A swap instruction with the quote it was built from."""

    router: Address
    token_in: Address = Field(alias="tokenIn")
    token_out: Address = Field(alias="tokenOut")
    amount_in: Uint256 = Field(alias="amountIn")
    quoted_amount_out: Uint256 = Field(alias="quotedAmountOut")
    min_amount_out: Uint256 = Field(alias="minAmountOut")
    recipient: Address
    router_calldata: Bytes = Field(alias="routerCalldata")
    payload: Bytes = Field(description="ABI-encoded exchange adapter payload")

    model_config = {"populate_by_name": True}


class PositionRange(BaseModel):
    """Concentrated-liquidity range chosen for a strategy."""

    tick_lower: Int24 = Field(alias="tickLower")
    tick_upper: Int24 = Field(alias="tickUpper")
    current_tick: Int24 = Field(alias="currentTick")
    expected_liquidity: Uint256 = Field(
        default=0,
        alias="expectedLiquidity",
        description="Liquidity mintable from the post-swap balances at spot price",
    )

    model_config = {"populate_by_name": True}


class PlanEntry(BaseModel):
    """Allocation of one strategy slot."""

    strategy_id: str = Field(alias="strategyId")
    strategy: Address
    kind: str
    target_bps: int = Field(alias="targetBps")
    amount: Uint256 = Field(description="Raw asset amount sent to the strategy")
    position: PositionRange | None = None
    swaps: list[PlannedSwap] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class AllocationPlan(BaseModel):
    """Ordered allocation plan for one snapshot."""

    snapshot_id: str = Field(alias="snapshotId")
    block_number: int = Field(alias="blockNumber")
    asset: Address
    vault: Address
    idle: Uint256
    remainder: Uint256 = Field(description="Idle amount left unallocated by rounding or weights")
    idle_usd_value: Uint256 | None = Field(
        default=None,
        alias="idleUsdValue",
        description="Oracle value of the idle amount, 18 decimals",
    )
    price_is_stale: bool = Field(default=False, alias="priceIsStale")
    entries: list[PlanEntry] = Field(default_factory=list)
    swap_data: list[list[Bytes]] = Field(
        default_factory=list,
        alias="swapData",
        description="bytes[][] swap payloads, one list per strategy slot",
    )

    model_config = {"populate_by_name": True}

    @property
    def swap_count(self) -> int:
        return sum(len(e.swaps) for e in self.entries)


__all__ = ["PlannedSwap", "PositionRange", "PlanEntry", "AllocationPlan"]
