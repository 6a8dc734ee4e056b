"""Raw token amounts.

All planning arithmetic is done on raw smallest-unit integers. Decimals are
carried along only so amounts can be displayed; they never enter the math.
"""

from __future__ import annotations

import decimal
from dataclasses import dataclass
from decimal import Decimal

from rebalancer.math.fixed_point import DECIMAL_HIGH_PREC_CONTEXT, UINT256_MAX


@dataclass(frozen=True)
class TokenAmount:
    """A raw token amount together with the token's decimals.

    Attributes:
        raw: Amount in the token's smallest unit
        decimals: Token decimals (display only)
    """

    raw: int
    decimals: int

    def __post_init__(self) -> None:
        if not 0 <= self.raw <= UINT256_MAX:
            raise ValueError(f"token amount out of uint256 range: {self.raw}")
        if not 0 <= self.decimals <= 77:
            raise ValueError(f"token decimals out of range: {self.decimals}")

    @classmethod
    def zero(cls, decimals: int) -> TokenAmount:
        """Create a zero amount."""
        return cls(0, decimals)

    @classmethod
    def from_units(cls, units: Decimal | str | int, decimals: int) -> TokenAmount:
        """Parse a whole-unit amount (e.g. "250.5" USDC) into raw units.

        Raises:
            ValueError: If the amount has more fractional digits than decimals
        """
        with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
            scaled = Decimal(units).scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise ValueError(f"{units} has more than {decimals} fractional digits")
        return cls(int(scaled), decimals)

    def to_decimal(self) -> Decimal:
        """Amount in whole token units."""
        with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
            return Decimal(self.raw).scaleb(-self.decimals)

    def format(self) -> str:
        """Whole-unit string without trailing zeros, e.g. '600' or '0.25'."""
        whole, frac = divmod(self.raw, 10**self.decimals)
        if self.decimals == 0 or frac == 0:
            return str(whole)
        frac_str = str(frac).rjust(self.decimals, "0").rstrip("0")
        return f"{whole}.{frac_str}"

    def with_raw(self, raw: int) -> TokenAmount:
        """Same token, different raw amount."""
        return TokenAmount(raw, self.decimals)

    def __str__(self) -> str:
        return self.format()


__all__ = ["TokenAmount"]
