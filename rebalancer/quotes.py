"""External quote providers for swap pricing.

The planner asks a provider how much of the pool's other token a sell amount
buys and which router calldata executes the swap. Providers are the only
network-facing piece of planning besides the chain reader, so they are
swappable: a mock for tests, a recorded quote book for offline runs, and the
0x swap API for live runs.
"""

from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import httpx
import structlog

from rebalancer.constants import ZEROX_ALLOWANCE_HOLDER, ZEROX_API_URL, ZEROX_QUOTE_PATH
from rebalancer.errors import QuoteError
from rebalancer.models.quotes import QuoteBook, QuoteEntry
from rebalancer.models.types import hex_to_bytes, normalize_address

logger = structlog.get_logger()


@dataclass(frozen=True)
class ExternalQuote:
    """Aggregator answer for one swap.

    Attributes:
        router: Router that executes router_calldata
        router_calldata: Calldata to forward to the router
        buy_amount: Raw amount of the buy token the quote promises
    """

    router: str
    router_calldata: bytes
    buy_amount: int


class ExternalQuoteProvider(Protocol):
    """Protocol for swap quote sources."""

    def quote(self, sell_token: str, buy_token: str, sell_amount: int, taker: str) -> ExternalQuote:
        """Quote selling sell_amount of sell_token for buy_token.

        Args:
            sell_token: Token sold
            buy_token: Token bought
            sell_amount: Raw amount sold
            taker: Address that will execute the swap

        Returns:
            ExternalQuote

        Raises:
            QuoteError: If no quote can be produced
        """
        ...


class MockQuoteProvider:
    """Mock provider for tests without network access.

    Configure with explicit quotes and/or a default rate, and inspect calls
    for assertions.
    """

    def __init__(
        self,
        quotes: dict[tuple[str, str, int], int] | None = None,
        default_rate: tuple[int, int] | None = None,
        router: str = ZEROX_ALLOWANCE_HOLDER,
        calldata: bytes = b"",
    ):
        """Initialize the mock provider.

        Args:
            quotes: (sell_token, buy_token, sell_amount) -> buy_amount
            default_rate: (numerator, denominator) for any unconfigured quote,
                buy_amount = sell_amount * num // denom
            router: Router returned with every quote
            calldata: Router calldata returned with every quote
        """
        self.quotes = {
            (normalize_address(sell), normalize_address(buy), amount): out
            for (sell, buy, amount), out in (quotes or {}).items()
        }
        self.default_rate = default_rate
        self.router = router
        self.calldata = calldata
        self.calls: list[tuple[str, str, int, str]] = []  # (sell, buy, amount, taker)

    def quote(self, sell_token: str, buy_token: str, sell_amount: int, taker: str) -> ExternalQuote:
        self.calls.append((sell_token, buy_token, sell_amount, taker))

        key = (normalize_address(sell_token), normalize_address(buy_token), sell_amount)
        if key in self.quotes:
            buy_amount = self.quotes[key]
        elif self.default_rate is not None:
            num, denom = self.default_rate
            buy_amount = sell_amount * num // denom
        else:
            raise QuoteError(f"no mock quote for {sell_amount} {sell_token} -> {buy_token}")

        return ExternalQuote(
            router=self.router, router_calldata=self.calldata, buy_amount=buy_amount
        )


class StaticQuoteProvider:
    """Provider that answers from a recorded quote book."""

    def __init__(self, book: QuoteBook):
        self.book = book

    @classmethod
    def from_file(cls, path: str | Path) -> StaticQuoteProvider:
        """Load a quote book from a JSON file."""
        with open(path) as f:
            data = json.load(f)
        return cls(QuoteBook.model_validate(data))

    def quote(self, sell_token: str, buy_token: str, sell_amount: int, taker: str) -> ExternalQuote:
        sell = normalize_address(sell_token)
        buy = normalize_address(buy_token)

        # Exact entries win over rates for the same pair
        rate_match: tuple[QuoteEntry, int, int] | None = None
        for entry in self.book.quotes:
            pair = (normalize_address(entry.sell_token), normalize_address(entry.buy_token))
            if pair != (sell, buy):
                continue
            if entry.rate is not None:
                if rate_match is None:
                    rate_match = (entry, *entry.rate)
            elif entry.sell_amount == sell_amount and entry.buy_amount is not None:
                return self._to_quote(entry.router, entry.data, entry.buy_amount)

        if rate_match is not None:
            entry, num, denom = rate_match
            return self._to_quote(entry.router, entry.data, sell_amount * num // denom)

        raise QuoteError(f"no recorded quote for {sell_amount} {sell_token} -> {buy_token}")

    @staticmethod
    def _to_quote(router: str, data: str, buy_amount: int) -> ExternalQuote:
        return ExternalQuote(
            router=normalize_address(router),
            router_calldata=hex_to_bytes(data),
            buy_amount=buy_amount,
        )


class ZeroExQuoteProvider:
    """Provider backed by the 0x swap API (allowance-holder quotes).

    Transport errors, HTTP 429 and 5xx responses are retried up to
    max_retries times with exponential backoff. A numeric Retry-After header
    on the response overrides the backoff delay. Any other failure raises
    QuoteError immediately.

    The provider owns an httpx client; close it, or use the provider as a
    context manager.
    """

    def __init__(
        self,
        chain_id: int,
        api_key: str | None = None,
        base_url: str = ZEROX_API_URL,
        timeout: float = 30.0,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        max_delay_seconds: float = 30.0,
        client: httpx.Client | None = None,
    ):
        """Initialize the provider.

        Args:
            chain_id: Chain the swap executes on
            api_key: 0x API key (default: ZEROX_API_KEY environment variable)
            base_url: API base URL
            timeout: Request timeout in seconds
            max_retries: Retries after the first attempt
            backoff_seconds: Delay before the first retry, doubled per attempt
            max_delay_seconds: Upper bound on any single delay
            client: Preconfigured httpx client (tests pass one with a MockTransport)
        """
        if max_retries < 0:
            raise ValueError(f"max_retries cannot be negative: {max_retries}")
        if backoff_seconds < 0 or max_delay_seconds < 0:
            raise ValueError("retry delays cannot be negative")
        self.chain_id = chain_id
        self.api_key = api_key if api_key is not None else os.environ.get("ZEROX_API_KEY")
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.max_delay_seconds = max_delay_seconds
        self.client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def __enter__(self) -> ZeroExQuoteProvider:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _retry_delay(self, attempt: int, response: httpx.Response | None) -> float:
        """Seconds to wait before the retry following attempt."""
        delay = self.backoff_seconds * 2**attempt
        if response is not None:
            retry_after = response.headers.get("retry-after", "").strip()
            # HTTP-date values fall back to the backoff
            if retry_after.isdigit():
                delay = float(retry_after)
        return min(delay, self.max_delay_seconds)

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"0x-api-key": self.api_key, "0x-version": "v2"}

    def quote(self, sell_token: str, buy_token: str, sell_amount: int, taker: str) -> ExternalQuote:
        params = {
            "sellToken": sell_token,
            "buyToken": buy_token,
            "sellAmount": str(sell_amount),
            "taker": taker,
            "chainId": str(self.chain_id),
        }

        last_error = ""
        for attempt in range(self.max_retries + 1):
            retry_response: httpx.Response | None = None
            try:
                response = self.client.get(ZEROX_QUOTE_PATH, params=params, headers=self._headers())
            except httpx.TransportError as e:
                last_error = f"transport error: {e}"
            else:
                if response.status_code == 200:
                    return self._parse(response.json(), sell_token, buy_token, sell_amount)
                if response.status_code != 429 and response.status_code < 500:
                    raise QuoteError(
                        f"0x quote for {sell_amount} {sell_token} -> {buy_token} failed: "
                        f"HTTP {response.status_code} {response.text[:200]}"
                    )
                last_error = f"HTTP {response.status_code}"
                retry_response = response

            if attempt == self.max_retries:
                break
            delay = self._retry_delay(attempt, retry_response)
            logger.warning("zeroex_quote_retry", attempt=attempt, error=last_error, delay=delay)
            time.sleep(delay)

        raise QuoteError(
            f"0x quote for {sell_amount} {sell_token} -> {buy_token} failed after "
            f"{self.max_retries + 1} attempts: {last_error}"
        )

    @staticmethod
    def _parse(
        body: dict[str, Any], sell_token: str, buy_token: str, sell_amount: int
    ) -> ExternalQuote:
        if body.get("liquidityAvailable") is False:
            raise QuoteError(f"0x has no liquidity for {sell_amount} {sell_token} -> {buy_token}")

        # v2 nests the call under "transaction", v1 returned it at top level
        tx = body.get("transaction") or body
        router = tx.get("to")
        data = tx.get("data")
        buy_amount = body.get("buyAmount")
        if not router or data is None or buy_amount is None:
            raise QuoteError(f"0x quote response missing to/data/buyAmount: {sorted(body)}")

        try:
            quote = ExternalQuote(
                router=normalize_address(router, validate=True),
                router_calldata=hex_to_bytes(data),
                buy_amount=int(buy_amount),
            )
        except ValueError as e:
            raise QuoteError(f"malformed 0x quote response: {e}") from e

        logger.debug(
            "zeroex_quote",
            sell_token=sell_token,
            buy_token=buy_token,
            sell_amount=sell_amount,
            buy_amount=quote.buy_amount,
            router=quote.router,
        )
        return quote

    def close(self) -> None:
        self.client.close()


__all__ = [
    "ExternalQuote",
    "ExternalQuoteProvider",
    "MockQuoteProvider",
    "StaticQuoteProvider",
    "ZeroExQuoteProvider",
]
