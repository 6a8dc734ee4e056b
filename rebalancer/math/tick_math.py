"""Tick <-> sqrtPriceX96 conversion and tick-range alignment.

get_sqrt_ratio_at_tick and get_tick_at_sqrt_ratio reproduce the reference
AMM's TickMath library bit for bit, including its rounding: the sqrt ratio of
a tick is rounded up, and the tick of a sqrt ratio is the greatest tick whose
ratio is <= the input. Float approximations (sqrt(1.0001**tick)) drift by one
tick near boundaries, which silently moves a position out of range.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from rebalancer.errors import (
    InvalidTickSpacing,
    SqrtPriceOutOfBounds,
    TickOutOfBounds,
    TickRangeOutOfBounds,
)
from rebalancer.math.fixed_point import (
    UINT256_MAX,
    encode_q96_price_from_price,
    price_from_q96,
)

__all__ = [
    "MIN_TICK",
    "MAX_TICK",
    "MIN_SQRT_RATIO",
    "MAX_SQRT_RATIO",
    "TickRange",
    "get_sqrt_ratio_at_tick",
    "get_tick_at_sqrt_ratio",
    "tick_to_sqrt_price_x96",
    "sqrt_price_x96_to_tick",
    "min_usable_tick",
    "max_usable_tick",
    "nearest_usable_tick",
    "aligned_tick_range",
    "tick_to_price",
    "price_to_tick",
]

MIN_TICK = -887272
MAX_TICK = 887272

# get_sqrt_ratio_at_tick(MIN_TICK) and get_sqrt_ratio_at_tick(MAX_TICK)
MIN_SQRT_RATIO = 4295128739
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342

# sqrt(1.0001) ** -(2 ** i) as Q128.128, for i in 0..19
_TICK_RATIO_FACTORS = (
    0xFFFCB933BD6FAD37AA2D162D1A594001,
    0xFFF97272373D413259A46990580E213A,
    0xFFF2E50F5F656932EF12357CF3C7FDCC,
    0xFFE5CACA7E10E4E61C3624EAA0941CD0,
    0xFFCB9843D60F6159C9DB58835C926644,
    0xFF973B41FA98C081472E6896DFB254C0,
    0xFF2EA16466C96A3843EC78B326B52861,
    0xFE5DEE046A99A2A811C461F1969C3053,
    0xFCBE86C7900A88AEDCFFC83B479AA3A4,
    0xF987A7253AC413176F2B074CF7815E54,
    0xF3392B0822B70005940C7A398E4B70F3,
    0xE7159475A2C29B7443B29C7FA6E889D9,
    0xD097F3BDFD2022B8845AD8F792AA5825,
    0xA9F746462D870FDF8A65DC1F90E061E5,
    0x70D869A156D2A1B890BB3DF62BAF32F7,
    0x31BE135F97D08FD981231505542FCFA6,
    0x9AA508B5B7A84E1C677DE54F3E99BC9,
    0x5D6AF8DEDB81196699C329225EE604,
    0x2216E584F5FA1EA926041BEDFE98,
    0x48A170391F7DC42444E8FA2,
)

# log_sqrt(1.0001)(2) as Q128.128 multiplier, plus the error bounds used to
# bracket the candidate ticks
_LOG_SQRT10001_FACTOR = 255738958999603826347141
_TICK_LOW_OFFSET = 3402992956809132418596140100660247210
_TICK_HIGH_OFFSET = 291339464771989622907027621153398088495


@dataclass(frozen=True)
class TickRange:
    """A concentrated-liquidity position range.

    Attributes:
        tick_lower: Lower bound (inclusive)
        tick_upper: Upper bound (exclusive)
    """

    tick_lower: int
    tick_upper: int

    def __post_init__(self) -> None:
        if self.tick_lower >= self.tick_upper:
            raise TickRangeOutOfBounds(
                f"tick_lower {self.tick_lower} must be below tick_upper {self.tick_upper}"
            )
        if self.tick_lower < MIN_TICK or self.tick_upper > MAX_TICK:
            raise TickRangeOutOfBounds(
                f"range [{self.tick_lower}, {self.tick_upper}] exceeds "
                f"[{MIN_TICK}, {MAX_TICK}]"
            )

    @property
    def width(self) -> int:
        """Number of ticks covered by the range."""
        return self.tick_upper - self.tick_lower

    def contains(self, tick: int) -> bool:
        """True if a position over this range is active at the given tick."""
        return self.tick_lower <= tick < self.tick_upper

    def is_aligned(self, spacing: int) -> bool:
        """True if both bounds are multiples of the tick spacing."""
        return self.tick_lower % spacing == 0 and self.tick_upper % spacing == 0

    def sqrt_ratios(self) -> tuple[int, int]:
        """sqrtPriceX96 at the lower and upper bound."""
        return get_sqrt_ratio_at_tick(self.tick_lower), get_sqrt_ratio_at_tick(self.tick_upper)


def get_sqrt_ratio_at_tick(tick: int) -> int:
    """sqrt(1.0001 ** tick) * 2**96, rounded up.

    Raises:
        TickOutOfBounds: If tick is outside [MIN_TICK, MAX_TICK]
    """
    abs_tick = abs(tick)
    if abs_tick > MAX_TICK:
        raise TickOutOfBounds(f"tick {tick} outside [{MIN_TICK}, {MAX_TICK}]")

    ratio = 1 << 128
    for bit, factor in enumerate(_TICK_RATIO_FACTORS):
        if abs_tick & (1 << bit):
            ratio = (ratio * factor) >> 128

    if tick > 0:
        ratio = UINT256_MAX // ratio

    # Q128.128 -> Q64.96, rounding up so the result is never below the true value
    return (ratio >> 32) + (0 if ratio % (1 << 32) == 0 else 1)


def get_tick_at_sqrt_ratio(sqrt_price_x96: int) -> int:
    """Greatest tick whose sqrt ratio is <= sqrt_price_x96.

    Raises:
        SqrtPriceOutOfBounds: If the input is outside [MIN_SQRT_RATIO, MAX_SQRT_RATIO)
    """
    if not MIN_SQRT_RATIO <= sqrt_price_x96 < MAX_SQRT_RATIO:
        raise SqrtPriceOutOfBounds(
            f"sqrtPriceX96 {sqrt_price_x96} outside [{MIN_SQRT_RATIO}, {MAX_SQRT_RATIO})"
        )

    ratio = sqrt_price_x96 << 32
    msb = ratio.bit_length() - 1

    if msb >= 128:
        r = ratio >> (msb - 127)
    else:
        r = ratio << (127 - msb)

    # Integer part of log2 in the high bits, 14 fractional bits by squaring
    log_2 = (msb - 128) << 64
    for shift in range(63, 49, -1):
        r = (r * r) >> 127
        f = r >> 128
        log_2 |= f << shift
        r >>= f

    log_sqrt10001 = log_2 * _LOG_SQRT10001_FACTOR

    tick_low = (log_sqrt10001 - _TICK_LOW_OFFSET) >> 128
    tick_high = (log_sqrt10001 + _TICK_HIGH_OFFSET) >> 128

    if tick_low == tick_high:
        return tick_low
    return tick_high if get_sqrt_ratio_at_tick(tick_high) <= sqrt_price_x96 else tick_low


# Names used by the operator tooling
tick_to_sqrt_price_x96 = get_sqrt_ratio_at_tick
sqrt_price_x96_to_tick = get_tick_at_sqrt_ratio


def _check_spacing(spacing: int) -> None:
    if spacing <= 0:
        raise InvalidTickSpacing(f"tick spacing must be positive, got {spacing}")


def min_usable_tick(spacing: int) -> int:
    """Smallest multiple of spacing that is >= MIN_TICK."""
    _check_spacing(spacing)
    return -((MAX_TICK // spacing) * spacing)


def max_usable_tick(spacing: int) -> int:
    """Largest multiple of spacing that is <= MAX_TICK."""
    _check_spacing(spacing)
    return (MAX_TICK // spacing) * spacing


def nearest_usable_tick(tick: int, spacing: int) -> int:
    """Round tick to the nearest multiple of spacing (halves round up), clamped."""
    _check_spacing(spacing)
    rounded = ((2 * tick + spacing) // (2 * spacing)) * spacing
    return max(min_usable_tick(spacing), min(rounded, max_usable_tick(spacing)))


def aligned_tick_range(current_tick: int, spacing: int, half_width_spacings: int) -> TickRange:
    """Spacing-aligned range of half_width_spacings spacings around current_tick.

    The reference tick is current_tick floored to the spacing grid, so the
    current tick is inside the range whenever half_width_spacings >= 1. Bounds
    beyond the usable ticks are clamped to them.

    Args:
        current_tick: Pool tick to centre on
        spacing: Pool tick spacing
        half_width_spacings: Spacings on each side of the reference tick

    Returns:
        TickRange with both bounds multiples of spacing

    Raises:
        InvalidTickSpacing: If spacing <= 0
        TickOutOfBounds: If current_tick is outside [MIN_TICK, MAX_TICK]
        TickRangeOutOfBounds: If the clamped range is empty
    """
    _check_spacing(spacing)
    if half_width_spacings < 0:
        raise ValueError(f"half_width_spacings must be non-negative, got {half_width_spacings}")
    if not MIN_TICK <= current_tick <= MAX_TICK:
        raise TickOutOfBounds(f"tick {current_tick} outside [{MIN_TICK}, {MAX_TICK}]")

    nearest = (current_tick // spacing) * spacing
    lower = max(nearest - half_width_spacings * spacing, min_usable_tick(spacing))
    upper = min(nearest + half_width_spacings * spacing, max_usable_tick(spacing))

    if lower >= upper:
        raise TickRangeOutOfBounds(
            f"range around tick {current_tick} (spacing {spacing}, half width "
            f"{half_width_spacings}) collapses to [{lower}, {upper}]"
        )
    return TickRange(lower, upper)


def tick_to_price(tick: int, decimals0: int, decimals1: int) -> Decimal:
    """Human token1-per-token0 price at a tick."""
    return price_from_q96(get_sqrt_ratio_at_tick(tick), decimals0, decimals1)


def price_to_tick(price: Decimal | str | int, decimals0: int, decimals1: int) -> int:
    """Greatest tick whose price is <= the given human token1-per-token0 price."""
    return get_tick_at_sqrt_ratio(encode_q96_price_from_price(price, decimals0, decimals1))
