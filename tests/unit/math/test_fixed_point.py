"""Tests for the Q64.96 price codec and integer helpers."""

from decimal import Decimal
from fractions import Fraction

import pytest

from rebalancer.errors import DivideByZero, RebalancerError
from rebalancer.math.fixed_point import (
    Q96,
    Q192,
    UINT256_MAX,
    encode_q96_price_from_amounts,
    encode_q96_price_from_price,
    integer_sqrt,
    mul_div,
    mul_div_rounding_up,
    price_from_q96,
    price_ratio_from_q96,
)


class TestIntegerSqrt:
    """Tests for integer_sqrt."""

    @pytest.mark.parametrize("n,expected", [(0, 0), (1, 1), (2, 1), (3, 1), (4, 2), (15, 3), (16, 4)])
    def test_small_values(self, n, expected):
        """Small inputs, including the n <= 1 and n < 4 shortcuts."""
        assert integer_sqrt(n) == expected

    @pytest.mark.parametrize(
        "n",
        [
            10**18,
            10**18 - 1,
            2**160 + 12345,
            Q192,
            Q192 - 1,
            (2**128 - 1) ** 2,
            (2**128 - 1) ** 2 - 1,
            UINT256_MAX,
        ],
    )
    def test_floor_bound(self, n):
        """r*r <= n < (r+1)*(r+1) across the uint256 range."""
        r = integer_sqrt(n)
        assert r * r <= n < (r + 1) * (r + 1)

    def test_perfect_squares(self):
        """Perfect squares return their exact root."""
        for root in (3, 1000, Q96, 2**127 + 1):
            assert integer_sqrt(root * root) == root

    def test_negative_raises(self):
        """Negative input is rejected."""
        with pytest.raises(ValueError, match="negative"):
            integer_sqrt(-1)


class TestMulDiv:
    """Tests for full-precision mul_div helpers."""

    def test_floor(self):
        """mul_div truncates."""
        assert mul_div(7, 3, 2) == 10

    def test_rounding_up(self):
        """mul_div_rounding_up rounds a remainder up."""
        assert mul_div_rounding_up(7, 3, 2) == 11
        assert mul_div_rounding_up(6, 3, 2) == 9

    def test_no_intermediate_overflow(self):
        """Products beyond 256 bits are exact."""
        assert mul_div(UINT256_MAX, UINT256_MAX, UINT256_MAX) == UINT256_MAX

    def test_divide_by_zero(self):
        """Zero denominators raise DivideByZero."""
        with pytest.raises(DivideByZero):
            mul_div(1, 1, 0)
        with pytest.raises(DivideByZero):
            mul_div_rounding_up(1, 1, 0)


class TestEncodeQ96Price:
    """Tests for encode_q96_price_from_amounts."""

    def test_unit_ratio(self):
        """A 1:1 ratio encodes to exactly 2**96."""
        assert encode_q96_price_from_amounts(1, 1) == Q96

    def test_ratio_of_four(self):
        """A 4:1 ratio encodes to 2 * 2**96."""
        assert encode_q96_price_from_amounts(4, 1) == 2 * Q96

    def test_usdc_per_weth(self):
        """100 USDC per WETH (token0 WETH, token1 USDC) decodes back to 100."""
        sqrt_price = encode_q96_price_from_amounts(100_000000, 1_000000000000000000)
        price = price_from_q96(sqrt_price, 18, 6)
        assert abs(price - Decimal(100)) < Decimal("1e-20")

    def test_zero_amount0_raises(self):
        """amount0 == 0 raises DivideByZero, which is also an ArithmeticError."""
        with pytest.raises(DivideByZero, match="amount0 == 0"):
            encode_q96_price_from_amounts(1, 0)
        assert issubclass(DivideByZero, ArithmeticError)
        assert issubclass(DivideByZero, RebalancerError)

    def test_negative_amount_raises(self):
        """Negative reserves are rejected."""
        with pytest.raises(ValueError):
            encode_q96_price_from_amounts(-1, 1)

    @pytest.mark.parametrize(
        "amount1,amount0",
        [(1, 1), (3, 7), (10**18, 2000 * 10**6), (2000 * 10**6, 10**18), (10**30, 1)],
    )
    def test_floor_of_exact_root(self, amount1, amount0):
        """The encoding is the floor of sqrt(amount1 / amount0) * 2**96."""
        s = encode_q96_price_from_amounts(amount1, amount0)
        assert s * s * amount0 <= amount1 << 192 < (s + 1) * (s + 1) * amount0

    @pytest.mark.parametrize(
        "amount1,amount0",
        [(1, 1), (7, 3), (10**18, 2000 * 10**6), (10**30, 1)],
    )
    def test_round_trip_within_q96_precision(self, amount1, amount0):
        """For ratios >= 1, decoding recovers amount1/amount0 to within 2**-95."""
        ratio = price_ratio_from_q96(encode_q96_price_from_amounts(amount1, amount0))
        expected = Fraction(amount1, amount0)
        assert ratio <= expected
        assert (expected - ratio) / expected < Fraction(1, 2**95)


class TestPriceFromQ96:
    """Tests for price_from_q96 and price_ratio_from_q96."""

    def test_exact_ratio(self):
        """price_ratio_from_q96 is the exact square over 2**192."""
        assert price_ratio_from_q96(2 * Q96) == 4
        assert price_ratio_from_q96(Q96 // 2) == Fraction(1, 4)

    def test_decimal_adjustment_direction(self):
        """Raw ratio 1e-12 between an 18- and a 6-decimal token is a human price of 1."""
        sqrt_price = encode_q96_price_from_amounts(1, 10**12)
        assert abs(price_from_q96(sqrt_price, 18, 6) - 1) < Decimal("1e-20")

    def test_token1_more_decimals(self):
        """decimals1 > decimals0 divides the raw ratio down."""
        # 2000 USDC (token0) per 1 WETH (token1): raw ratio 1e18 / 2000e6
        sqrt_price = encode_q96_price_from_amounts(10**18, 2000 * 10**6)
        price = price_from_q96(sqrt_price, 6, 18)
        assert abs(price - Decimal("0.0005")) < Decimal("1e-24")

    def test_non_positive_raises(self):
        """Uninitialized prices are rejected."""
        with pytest.raises(ValueError):
            price_from_q96(0, 18, 18)
        with pytest.raises(ValueError):
            price_ratio_from_q96(-1)


class TestEncodeFromHumanPrice:
    """Tests for encode_q96_price_from_price."""

    def test_inverse_of_price_from_q96(self):
        """A human price survives encode -> decode."""
        sqrt_price = encode_q96_price_from_price("2500", 18, 6)
        assert abs(price_from_q96(sqrt_price, 18, 6) - 2500) < Decimal("1e-18")

    def test_matches_amounts_encoding(self):
        """Encoding a human price equals encoding the scaled raw amounts."""
        assert encode_q96_price_from_price(100, 18, 6) == encode_q96_price_from_amounts(
            100 * 10**6, 10**18
        )

    def test_non_positive_price_raises(self):
        """Zero and negative prices are rejected."""
        with pytest.raises(ValueError):
            encode_q96_price_from_price("0", 18, 6)
