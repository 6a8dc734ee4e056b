"""Tests for allocation plan orchestration."""

import pytest

from rebalancer.config import PlannerSettings
from rebalancer.errors import (
    AllocationOverCommitted,
    ConfigError,
    InvalidWeight,
    QuoteError,
    RouteNotConfigured,
    RouterNotAllowed,
    StalePrice,
)
from rebalancer.planner import Planner, build_allocation_plan, get_default_planner
from rebalancer.quotes import MockQuoteProvider
from rebalancer.swaps import decode_swap_payload
from tests.helpers import (
    CL_STRATEGY,
    DAI,
    IDLE_USDC,
    LENDING_STRATEGY,
    ROUTER,
    SNAPSHOT_BLOCK,
    USDC,
    USDC_USD_FEED,
    VAULT,
    WETH,
    make_config,
    make_snapshot,
    snapshot_id,
)

CL_AMOUNT = IDLE_USDC * 4000 // 10000


class TestBuildAllocationPlan:
    """Tests for build_allocation_plan with the default 60/40 config."""

    @pytest.fixture
    def plan(self, config, snapshot, quote_provider):
        return build_allocation_plan(config, snapshot, quote_provider)

    def test_header(self, plan):
        """The plan names its snapshot, asset and vault."""
        assert plan.snapshot_id == snapshot_id()
        assert plan.block_number == SNAPSHOT_BLOCK
        assert plan.asset == USDC
        assert plan.vault == VAULT
        assert plan.idle == IDLE_USDC

    def test_entries_follow_strategy_order(self, plan):
        """One entry per strategy, in config order."""
        assert [e.strategy_id for e in plan.entries] == ["aave", "univ3"]
        assert [e.strategy for e in plan.entries] == [LENDING_STRATEGY, CL_STRATEGY]
        assert [e.amount for e in plan.entries] == [600_000000, CL_AMOUNT]
        assert plan.remainder == 0

    def test_lending_entry_has_no_swaps(self, plan):
        """Lending strategies take the asset as-is."""
        lending = plan.entries[0]
        assert lending.kind == "lending"
        assert lending.swaps == []
        assert lending.position is None

    def test_cl_entry_range(self, plan):
        """The range is aligned and brackets the current tick."""
        position = plan.entries[1].position
        assert position is not None
        assert position.tick_lower % 10 == 0
        assert position.tick_upper % 10 == 0
        assert position.tick_upper - position.tick_lower == 2 * 100 * 10
        assert position.tick_lower <= position.current_tick < position.tick_upper
        assert position.expected_liquidity > 0

    def test_cl_entry_swaps_about_half(self, plan):
        """A near-centered range swaps roughly half the allocation."""
        swaps = plan.entries[1].swaps
        assert len(swaps) == 1
        swap = swaps[0]
        assert swap.token_in == USDC
        assert swap.token_out == WETH
        assert 0.45 * CL_AMOUNT < swap.amount_in < 0.55 * CL_AMOUNT
        assert swap.recipient == CL_STRATEGY
        assert swap.router == ROUTER
        assert swap.router_calldata == "0xdead"

    def test_min_amount_out(self, plan):
        """minAmountOut applies the configured slippage to the quote."""
        swap = plan.entries[1].swaps[0]
        assert swap.quoted_amount_out == swap.amount_in * 5 * 10**8
        assert swap.min_amount_out == swap.quoted_amount_out * 9950 // 10000

    def test_quote_taker_is_strategy(self, config, snapshot, quote_provider):
        """Quotes are requested for the strategy that executes the swap."""
        plan = build_allocation_plan(config, snapshot, quote_provider)
        amount_in = plan.entries[1].swaps[0].amount_in
        assert quote_provider.calls == [(USDC, WETH, amount_in, CL_STRATEGY)]

    def test_swap_data(self, plan):
        """Swap data has one slot per strategy, empty for lending."""
        assert len(plan.swap_data) == 2
        assert plan.swap_data[0] == []
        assert len(plan.swap_data[1]) == 1
        assert plan.swap_data[1][0] == plan.entries[1].swaps[0].payload

        instruction = decode_swap_payload(bytes.fromhex(plan.swap_data[1][0][2:]))
        assert instruction.recipient == CL_STRATEGY
        assert instruction.min_amount_out == plan.entries[1].swaps[0].min_amount_out

    def test_idle_usd_value(self, plan):
        """1000 USDC at $1.00 is worth 1000e18."""
        assert plan.idle_usd_value == 1000 * 10**18
        assert plan.price_is_stale is False

    def test_swap_count(self, plan):
        assert plan.swap_count == 1

    def test_json_uses_aliases(self, plan):
        """Plans serialize with camelCase keys and string amounts."""
        data = plan.model_dump(mode="json", by_alias=True)
        assert data["snapshotId"] == snapshot_id()
        assert data["idle"] == str(IDLE_USDC)
        assert data["entries"][1]["swaps"][0]["minAmountOut"].isdigit()
        assert data["swapData"][0] == []


class TestPlannerEdgeCases:
    """Tests for planner failures and degenerate inputs."""

    def test_zero_idle(self, config, quote_provider):
        """Nothing idle means zero amounts and no swaps."""
        plan = build_allocation_plan(config, make_snapshot(idle=0), quote_provider)
        assert [e.amount for e in plan.entries] == [0, 0]
        assert plan.swap_data == [[], []]
        assert quote_provider.calls == []

    def test_zero_cl_weight(self, snapshot, quote_provider):
        """A zero-weight CL strategy gets a range but no swap."""
        config = make_config(lending_bps=10000, cl_bps=0)
        plan = build_allocation_plan(config, snapshot, quote_provider)
        assert plan.entries[1].amount == 0
        assert plan.entries[1].swaps == []
        assert plan.swap_data == [[], []]

    def test_partial_weights_leave_remainder(self, snapshot, quote_provider):
        """Unallocated weight stays idle."""
        config = make_config(lending_bps=2500, cl_bps=2500)
        plan = build_allocation_plan(config, snapshot, quote_provider)
        assert plan.remainder == IDLE_USDC // 2

    def test_stale_price_flagged(self, config, quote_provider):
        """A stale oracle answer is flagged, not hidden."""
        snapshot = make_snapshot(feed_age=86401)
        plan = build_allocation_plan(config, snapshot, quote_provider)
        assert plan.price_is_stale is True
        assert plan.idle_usd_value == 1000 * 10**18

    def test_heartbeat_boundary_is_fresh(self, config, quote_provider):
        """An answer exactly heartbeat seconds old is still fresh."""
        plan = build_allocation_plan(config, make_snapshot(feed_age=86400), quote_provider)
        assert plan.price_is_stale is False

    def test_stale_price_rejected_by_config(self, quote_provider):
        """rejectStalePrices aborts the plan on a stale answer."""
        config = make_config(rejectStalePrices=True)
        with pytest.raises(StalePrice):
            build_allocation_plan(config, make_snapshot(feed_age=86401), quote_provider)

    def test_stale_price_rejected_by_settings(self, config, quote_provider):
        """Planner settings can also reject stale answers."""
        planner = Planner(PlannerSettings(reject_stale_prices=True))
        with pytest.raises(StalePrice):
            planner.plan(config, make_snapshot(feed_age=86401), quote_provider)

    def test_reference_time_override(self, config, snapshot, quote_provider):
        """Staleness can be judged against an explicit time."""
        settings = PlannerSettings(now=snapshot.timestamp + 10**6)
        plan = build_allocation_plan(config, snapshot, quote_provider, settings)
        assert plan.price_is_stale is True

    def test_no_oracle_routes(self, snapshot, quote_provider):
        """Without oracle routes the plan carries no USD value."""
        config = make_config(oracleRoutes={})
        plan = build_allocation_plan(config, snapshot, quote_provider)
        assert plan.idle_usd_value is None
        assert plan.price_is_stale is False

    def test_asset_without_route(self, snapshot, quote_provider):
        """Routes that do not cover the asset are a config error."""
        config = make_config(
            oracleRoutes={DAI: {"kind": "direct", "aggregator": USDC_USD_FEED, "heartbeat": 60}}
        )
        with pytest.raises(RouteNotConfigured):
            build_allocation_plan(config, snapshot, quote_provider)

    def test_router_not_allowed(self, snapshot, quote_provider):
        """Quotes through routers outside the allow-set abort the plan."""
        config = make_config(allowed_routers=[])
        with pytest.raises(RouterNotAllowed):
            build_allocation_plan(config, snapshot, quote_provider)

    def test_quote_failure(self, config, snapshot):
        """A failing quote source aborts the plan."""
        with pytest.raises(QuoteError):
            build_allocation_plan(config, snapshot, MockQuoteProvider())

    def test_pool_missing_from_snapshot(self, snapshot, quote_provider):
        """The CL pool must be in the snapshot."""
        config = make_config()
        config.strategies[1].pool = "0x4444444444444444444444444444444444444444"
        with pytest.raises(ConfigError, match="not in snapshot"):
            build_allocation_plan(config, snapshot, quote_provider)

    def test_vault_balance_missing(self, snapshot, quote_provider):
        """The vault's idle balance must be in the snapshot."""
        config = make_config(vault=LENDING_STRATEGY)
        with pytest.raises(ConfigError, match="balance"):
            build_allocation_plan(config, snapshot, quote_provider)

    def test_over_committed_weights(self, snapshot, quote_provider):
        """Weights above 10000 bps abort with AllocationOverCommitted before quoting."""
        config = make_config(lending_bps=7000, cl_bps=4000)
        with pytest.raises(AllocationOverCommitted, match="sum of target bps 11000 exceeds 10000"):
            build_allocation_plan(config, snapshot, quote_provider)
        assert quote_provider.calls == []

    def test_over_committed_checked_before_snapshot(self, quote_provider):
        """Weights are checked even when the snapshot lacks the vault balance."""
        config = make_config(lending_bps=7000, cl_bps=4000, vault=LENDING_STRATEGY)
        with pytest.raises(AllocationOverCommitted):
            build_allocation_plan(config, make_snapshot(), quote_provider)

    def test_duplicate_strategy_ids(self, snapshot, quote_provider):
        """Repeated strategy ids abort with InvalidWeight."""
        config = make_config(lending_bps=1000, cl_bps=1000)
        config.strategies[1].id = "aave"
        with pytest.raises(InvalidWeight, match="more than one weight"):
            build_allocation_plan(config, snapshot, quote_provider)

    def test_cl_strategy_without_pool(self, snapshot, quote_provider):
        """A concentrated liquidity strategy stripped of its pool raises ConfigError."""
        config = make_config()
        config.strategies[1].pool = None
        with pytest.raises(ConfigError, match="'univ3' has no pool"):
            build_allocation_plan(config, snapshot, quote_provider)

    def test_deterministic(self, config, snapshot):
        """The same inputs always give the same plan."""
        rate = (5 * 10**8, 1)
        first = build_allocation_plan(config, snapshot, MockQuoteProvider(default_rate=rate))
        second = build_allocation_plan(config, snapshot, MockQuoteProvider(default_rate=rate))
        assert first == second


class TestPlanner:
    """Tests for the Planner wrapper."""

    def test_default_planner_is_shared(self):
        assert get_default_planner() is get_default_planner()

    def test_plan_matches_function(self, config, snapshot, quote_provider):
        """Planner.plan delegates to build_allocation_plan."""
        expected = build_allocation_plan(
            config, snapshot, MockQuoteProvider(default_rate=(5 * 10**8, 1), calldata=b"\xde\xad")
        )
        assert Planner().plan(config, snapshot, quote_provider) == expected
