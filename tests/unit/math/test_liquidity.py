"""Tests for concentrated-liquidity position sizing."""

import pytest

from rebalancer.errors import LiquidityOverflow
from rebalancer.math.fixed_point import Q96
from rebalancer.math.liquidity import (
    amount0_for_liquidity,
    amount1_for_liquidity,
    amounts_for_liquidity,
    amounts_for_position,
    liquidity_for_amount0,
    liquidity_for_amount1,
    liquidity_for_amounts,
    swap_amount_to_balance,
)
from rebalancer.math.tick_math import TickRange, get_sqrt_ratio_at_tick

# Range from price 1 to price 4
SQRT_A = Q96
SQRT_B = 2 * Q96
# Price 2.25, inside the range
SQRT_MID = 3 * Q96 // 2


class TestSingleTokenLiquidity:
    """Tests for the per-token building blocks."""

    def test_liquidity_for_amount0(self):
        """L = amount0 * sqrt_a * sqrt_b / (sqrt_b - sqrt_a)."""
        assert liquidity_for_amount0(SQRT_A, SQRT_B, 1000) == 2000

    def test_liquidity_for_amount1(self):
        """L = amount1 / (sqrt_b - sqrt_a)."""
        assert liquidity_for_amount1(SQRT_A, SQRT_B, 1000) == 1000

    def test_amount0_for_liquidity(self):
        """Inverse of liquidity_for_amount0."""
        assert amount0_for_liquidity(SQRT_A, SQRT_B, 2000) == 1000

    def test_amount1_for_liquidity(self):
        """Inverse of liquidity_for_amount1."""
        assert amount1_for_liquidity(SQRT_A, SQRT_B, 1000) == 1000

    def test_bounds_order_does_not_matter(self):
        """Bounds are sorted before use."""
        assert liquidity_for_amount0(SQRT_B, SQRT_A, 1000) == 2000
        assert amount1_for_liquidity(SQRT_B, SQRT_A, 1000) == 1000

    def test_overflow(self):
        """Liquidity beyond uint128 is rejected."""
        with pytest.raises(LiquidityOverflow, match="uint128"):
            liquidity_for_amount1(Q96, Q96 + 1, 2**128)


class TestAmountsForLiquidity:
    """Tests for the three-region amounts formula."""

    def test_below_range_all_token0(self):
        """At or below the lower bound the position is all token0."""
        assert amounts_for_liquidity(SQRT_A // 2, SQRT_A, SQRT_B, 2000) == (1000, 0)
        assert amounts_for_liquidity(SQRT_A, SQRT_A, SQRT_B, 2000) == (1000, 0)

    def test_above_range_all_token1(self):
        """At or above the upper bound the position is all token1."""
        assert amounts_for_liquidity(3 * Q96, SQRT_A, SQRT_B, 2000) == (0, 2000)
        assert amounts_for_liquidity(SQRT_B, SQRT_A, SQRT_B, 2000) == (0, 2000)

    def test_in_range_split(self):
        """Inside the range the position holds both tokens."""
        assert amounts_for_liquidity(SQRT_MID, SQRT_A, SQRT_B, 6000) == (1000, 3000)

    def test_amounts_for_position(self):
        """Tick-range wrapper matches the sqrt-ratio form."""
        tick_range = TickRange(-600, 600)
        sqrt_a, sqrt_b = tick_range.sqrt_ratios()
        price = get_sqrt_ratio_at_tick(0)
        assert amounts_for_position(price, tick_range, 10**18) == amounts_for_liquidity(
            price, sqrt_a, sqrt_b, 10**18
        )


class TestLiquidityForAmounts:
    """Tests for liquidity_for_amounts."""

    def test_in_range_balanced(self):
        """Balanced amounts support the same liquidity from either side."""
        assert liquidity_for_amounts(SQRT_MID, SQRT_A, SQRT_B, 1000, 3000) == 6000

    def test_in_range_scarce_token_binds(self):
        """The scarcer token limits liquidity."""
        assert liquidity_for_amounts(SQRT_MID, SQRT_A, SQRT_B, 1000, 1500) == 3000

    def test_below_range_uses_token0_only(self):
        """Below the range only token0 counts."""
        assert liquidity_for_amounts(SQRT_A // 2, SQRT_A, SQRT_B, 1000, 10**9) == 2000

    def test_above_range_uses_token1_only(self):
        """Above the range only token1 counts."""
        assert liquidity_for_amounts(3 * Q96, SQRT_A, SQRT_B, 10**9, 1000) == 1000

    def test_round_trip_never_exceeds_inputs(self):
        """Amounts for the computed liquidity never exceed what was supplied."""
        tick_range = TickRange(199310, 201310)
        sqrt_a, sqrt_b = tick_range.sqrt_ratios()
        price = get_sqrt_ratio_at_tick(200311)
        amount0, amount1 = 200_000000, 10**17
        liquidity = liquidity_for_amounts(price, sqrt_a, sqrt_b, amount0, amount1)
        used0, used1 = amounts_for_liquidity(price, sqrt_a, sqrt_b, liquidity)
        assert used0 <= amount0
        assert used1 <= amount1


class TestSwapAmountToBalance:
    """Tests for sizing the swap of a single-asset deposit."""

    def test_symmetric_value_split(self):
        """Equal value shares swap half the deposit."""
        # share0 = (4 - 2) * 2 = 4, share1 = (2 - 1) * 4 = 4
        assert swap_amount_to_balance(1000, True, 2, 1, 4) == 500
        assert swap_amount_to_balance(1000, False, 2, 1, 4) == 500

    def test_asymmetric_split(self):
        """Swap the other token's value share, floored."""
        # share0 = (4 - 3) * 3 = 3, share1 = (3 - 1) * 4 = 8
        assert swap_amount_to_balance(1000, True, 3, 1, 4) == 727
        assert swap_amount_to_balance(1000, False, 3, 1, 4) == 272

    def test_below_range(self):
        """Below the range the position is all token0."""
        assert swap_amount_to_balance(1000, True, SQRT_A // 2, SQRT_A, SQRT_B) == 0
        assert swap_amount_to_balance(1000, False, SQRT_A // 2, SQRT_A, SQRT_B) == 1000

    def test_above_range(self):
        """Above the range the position is all token1."""
        assert swap_amount_to_balance(1000, True, 3 * Q96, SQRT_A, SQRT_B) == 1000
        assert swap_amount_to_balance(1000, False, 3 * Q96, SQRT_A, SQRT_B) == 0

    def test_swap_matches_position_ratio(self):
        """After the swap, the balances fill the position on both sides."""
        # Price 2.25 in [1, 4]: position holds 1000 token0 per 3000 token1,
        # i.e. token0 is 2250 / (2250 + 3000) = 3/7 of the value.
        swap = swap_amount_to_balance(7000, False, SQRT_MID, SQRT_A, SQRT_B)
        assert swap == 3000

    def test_zero_amount(self):
        """Nothing to swap for a zero deposit."""
        assert swap_amount_to_balance(0, True, SQRT_MID, SQRT_A, SQRT_B) == 0
