"""USD pricing through configured oracle routes.

A token is priced either directly from a TOKEN/USD aggregator, or through
ETH: TOKEN/ETH (or ETH/TOKEN, when inverted) combined with the ETH/USD feed.
All prices are returned with 18 decimals.

Staleness is reported, not hidden: a stale answer produces a flagged quote and
the caller decides whether to proceed. A token without a route, or a route
whose aggregator has no answer in the snapshot, is an error. There is no zero
or last-known-value fallback.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

import structlog

from rebalancer.amounts import TokenAmount
from rebalancer.chain.state import ChainSnapshot, OracleAnswer, ensure_same_snapshot
from rebalancer.constants import USD_PRICE_DECIMALS, USD_PRICE_SCALE
from rebalancer.errors import InvalidOracleAnswer, RouteNotConfigured, StalePrice
from rebalancer.models.types import normalize_address

logger = structlog.get_logger()


@dataclass(frozen=True)
class DirectRoute:
    """TOKEN/USD aggregator.

    Attributes:
        aggregator: Aggregator address
        heartbeat: Maximum answer age in seconds
    """

    aggregator: str
    heartbeat: int

    def __post_init__(self) -> None:
        if self.heartbeat <= 0:
            raise ValueError(f"heartbeat must be positive, got {self.heartbeat}")


@dataclass(frozen=True)
class ViaEthRoute:
    """TOKEN priced in ETH, then converted with the ETH/USD route.

    Attributes:
        aggregator: TOKEN/ETH aggregator address
        invert: False if the feed quotes ETH per token, True if it quotes
            tokens per ETH
        heartbeat: Maximum answer age in seconds
    """

    aggregator: str
    invert: bool
    heartbeat: int

    def __post_init__(self) -> None:
        if self.heartbeat <= 0:
            raise ValueError(f"heartbeat must be positive, got {self.heartbeat}")


OracleRoute = DirectRoute | ViaEthRoute


@dataclass(frozen=True)
class PriceQuote:
    """A token's USD price with its freshness.

    Attributes:
        token: Token priced
        usd_price_1e18: USD per whole token, 18 decimals
        is_stale: True if any answer used is older than its heartbeat
        updated_at: Timestamp of the oldest answer used
        route: 'direct' or 'via_eth'
        snapshot_id: Snapshot the answers came from
    """

    token: str
    usd_price_1e18: int
    is_stale: bool
    updated_at: int
    route: str
    snapshot_id: str

    def require_fresh(self) -> PriceQuote:
        """Return self, or raise if the price is stale.

        Raises:
            StalePrice: If is_stale is set
        """
        if self.is_stale:
            raise StalePrice(
                f"price of {self.token} last updated at {self.updated_at} is stale "
                f"(route {self.route}, snapshot {self.snapshot_id})"
            )
        return self

    def usd_value(self, amount: TokenAmount) -> int:
        """USD value (18 decimals) of a raw token amount."""
        return amount.raw * self.usd_price_1e18 // 10**amount.decimals


def scale_answer(answer: OracleAnswer) -> int:
    """Aggregator answer rescaled to 18 decimals.

    Raises:
        InvalidOracleAnswer: If the answer is not positive
    """
    if answer.answer <= 0:
        raise InvalidOracleAnswer(
            f"aggregator {answer.aggregator} answered {answer.answer}, expected > 0"
        )
    if answer.decimals <= USD_PRICE_DECIMALS:
        return answer.answer * 10 ** (USD_PRICE_DECIMALS - answer.decimals)
    return answer.answer // 10 ** (answer.decimals - USD_PRICE_DECIMALS)


def is_stale(answer: OracleAnswer, heartbeat: int, now: int) -> bool:
    """True if the answer is older than the heartbeat at time `now`."""
    return (now - answer.updated_at) > heartbeat


@dataclass(frozen=True)
class OracleRouter:
    """Resolves token prices through configured routes.

    Attributes:
        eth_usd: ETH/USD route, required by every ViaEthRoute
        routes: Token address -> route
    """

    eth_usd: DirectRoute | None = None
    routes: Mapping[str, OracleRoute] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Routes are looked up by lowercase address
        normalized = {normalize_address(token): route for token, route in self.routes.items()}
        object.__setattr__(self, "routes", normalized)

    def route_for(self, token: str) -> OracleRoute:
        """Configured route of a token.

        Raises:
            RouteNotConfigured: If the token has no route
        """
        route = self.routes.get(normalize_address(token))
        if route is None:
            raise RouteNotConfigured(f"no oracle route configured for token {token}")
        return route

    def price(self, token: str, snapshot: ChainSnapshot, now: int | None = None) -> PriceQuote:
        """USD price of a token from the snapshot's aggregator answers.

        Args:
            token: Token address
            snapshot: Chain snapshot holding the aggregator answers
            now: Reference time for staleness (default: snapshot timestamp)

        Returns:
            PriceQuote, flagged when stale

        Raises:
            RouteNotConfigured: If the token (or ETH/USD, for a via-ETH
                route) has no route, or an aggregator has no answer
            InvalidOracleAnswer: If an aggregator answer is not positive
        """
        if now is None:
            now = snapshot.timestamp
        route = self.route_for(token)

        if isinstance(route, DirectRoute):
            answer = snapshot.oracle_answer(route.aggregator)
            quote = PriceQuote(
                token=normalize_address(token),
                usd_price_1e18=scale_answer(answer),
                is_stale=is_stale(answer, route.heartbeat, now),
                updated_at=answer.updated_at,
                route="direct",
                snapshot_id=answer.snapshot_id,
            )
        else:
            quote = self._price_via_eth(token, route, snapshot, now)

        if quote.is_stale:
            logger.warning(
                "oracle_price_stale",
                token=quote.token,
                route=quote.route,
                updated_at=quote.updated_at,
                now=now,
            )
        return quote

    def _price_via_eth(
        self,
        token: str,
        route: ViaEthRoute,
        snapshot: ChainSnapshot,
        now: int,
    ) -> PriceQuote:
        if self.eth_usd is None:
            raise RouteNotConfigured(
                f"token {token} is routed via ETH but no ETH/USD route is configured"
            )

        eth_answer = snapshot.oracle_answer(self.eth_usd.aggregator)
        token_answer = snapshot.oracle_answer(route.aggregator)
        snapshot_id = ensure_same_snapshot(None, eth_answer, token_answer)

        eth_usd = scale_answer(eth_answer)
        token_eth = scale_answer(token_answer)
        if route.invert:
            usd_price = eth_usd * USD_PRICE_SCALE // token_eth
        else:
            usd_price = eth_usd * token_eth // USD_PRICE_SCALE

        return PriceQuote(
            token=normalize_address(token),
            usd_price_1e18=usd_price,
            is_stale=(
                is_stale(eth_answer, self.eth_usd.heartbeat, now)
                or is_stale(token_answer, route.heartbeat, now)
            ),
            updated_at=min(eth_answer.updated_at, token_answer.updated_at),
            route="via_eth",
            snapshot_id=snapshot_id or snapshot.snapshot_id,
        )


__all__ = [
    "DirectRoute",
    "ViaEthRoute",
    "OracleRoute",
    "PriceQuote",
    "OracleRouter",
    "scale_answer",
    "is_stale",
]
