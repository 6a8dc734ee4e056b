"""Pydantic models for recorded aggregator quotes.

A quote book lets the planner run offline: each entry either pins an exact
(sellAmount -> buyAmount) quote or gives a rate applied to any sell amount.
"""

from pydantic import BaseModel, Field, model_validator

from rebalancer.models.types import Address, Bytes, Uint256


class QuoteEntry(BaseModel):
    """One recorded quote for a token pair."""

    sell_token: Address = Field(alias="sellToken")
    buy_token: Address = Field(alias="buyToken")
    router: Address = Field(description="Router that executes the calldata")
    data: Bytes = Field(default="0x", description="Router calldata")
    sell_amount: Uint256 | None = Field(default=None, alias="sellAmount")
    buy_amount: Uint256 | None = Field(default=None, alias="buyAmount")
    rate: tuple[Uint256, Uint256] | None = Field(
        default=None,
        description="(numerator, denominator) applied to any sell amount",
    )

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def check_exact_or_rate(self) -> "QuoteEntry":
        exact = self.sell_amount is not None and self.buy_amount is not None
        if exact == (self.rate is not None):
            raise ValueError("quote entry needs either sellAmount+buyAmount or rate")
        if self.rate is not None and self.rate[1] == 0:
            raise ValueError("quote rate denominator cannot be zero")
        return self


class QuoteBook(BaseModel):
    """Recorded quotes, as loaded from a quotes JSON file."""

    quotes: list[QuoteEntry] = Field(default_factory=list)


__all__ = ["QuoteEntry", "QuoteBook"]
