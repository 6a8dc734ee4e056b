"""Immutable chain-state snapshot values.

Every value read from the chain is tagged with the id of the snapshot it was
read in. A planning cycle must use one snapshot throughout: mixing a tick read
at one block with a balance read at another is how stale-tick plans happen.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from rebalancer.errors import ConfigError, InconsistentSnapshot, RouteNotConfigured
from rebalancer.models.types import normalize_address


@dataclass(frozen=True)
class PoolState:
    """Concentrated-liquidity pool state at one snapshot.

    Attributes:
        address: Pool address
        token0: Lower-sorted pool token
        token1: Higher-sorted pool token
        fee: Fee in hundredths of a bip (e.g. 500 for 0.05%)
        sqrt_price_x96: Current sqrt(price) * 2**96
        tick: Current tick
        tick_spacing: Pool tick spacing
        liquidity: Active in-range liquidity
        snapshot_id: Snapshot the state was read in
    """

    address: str
    token0: str
    token1: str
    fee: int
    sqrt_price_x96: int
    tick: int
    tick_spacing: int
    liquidity: int
    snapshot_id: str

    def __post_init__(self) -> None:
        if self.sqrt_price_x96 <= 0:
            raise ConfigError(f"pool {self.address} is not initialized (sqrtPriceX96 == 0)")

    def is_token0(self, token: str) -> bool:
        """True if token is the pool's token0."""
        return normalize_address(token) == normalize_address(self.token0)

    def other_token(self, token: str) -> str:
        """The pool token that is not `token`.

        Raises:
            ConfigError: If token is not in the pool
        """
        token_norm = normalize_address(token)
        if token_norm == normalize_address(self.token0):
            return self.token1
        if token_norm == normalize_address(self.token1):
            return self.token0
        raise ConfigError(f"token {token} not in pool {self.address}")


@dataclass(frozen=True)
class OracleAnswer:
    """Latest answer of a price aggregator.

    Attributes:
        aggregator: Aggregator address
        answer: Raw answer (scaled by 10**decimals)
        updated_at: Unix timestamp of the answer
        decimals: Answer decimals
        snapshot_id: Snapshot the answer was read in
    """

    aggregator: str
    answer: int
    updated_at: int
    decimals: int
    snapshot_id: str


@dataclass(frozen=True)
class TokenMeta:
    """ERC20 metadata."""

    address: str
    decimals: int
    symbol: str = ""


@dataclass(frozen=True)
class ChainSnapshot:
    """Everything one planning cycle reads from the chain.

    Lookups are keyed by lowercase address. Construction rejects pool states
    or oracle answers that were read in a different snapshot.
    """

    snapshot_id: str
    block_number: int
    timestamp: int
    pools: Mapping[str, PoolState] = field(default_factory=dict)
    oracle_answers: Mapping[str, OracleAnswer] = field(default_factory=dict)
    tokens: Mapping[str, TokenMeta] = field(default_factory=dict)
    # (token, holder) -> raw balance
    balances: Mapping[tuple[str, str], int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        ensure_same_snapshot(self.snapshot_id, *self.pools.values(), *self.oracle_answers.values())

    def pool(self, address: str) -> PoolState:
        """Pool state by address.

        Raises:
            ConfigError: If the pool was not read into this snapshot
        """
        try:
            return self.pools[normalize_address(address)]
        except KeyError:
            raise ConfigError(f"pool {address} not in snapshot {self.snapshot_id}") from None

    def oracle_answer(self, aggregator: str) -> OracleAnswer:
        """Aggregator answer by address.

        Raises:
            RouteNotConfigured: If the aggregator was not read into this snapshot
        """
        try:
            return self.oracle_answers[normalize_address(aggregator)]
        except KeyError:
            raise RouteNotConfigured(
                f"aggregator {aggregator} has no answer in snapshot {self.snapshot_id}"
            ) from None

    def token(self, address: str) -> TokenMeta:
        """Token metadata by address.

        Raises:
            ConfigError: If the token was not read into this snapshot
        """
        try:
            return self.tokens[normalize_address(address)]
        except KeyError:
            raise ConfigError(f"token {address} not in snapshot {self.snapshot_id}") from None

    def balance(self, token: str, holder: str) -> int:
        """Raw token balance of holder.

        Raises:
            ConfigError: If the balance was not read into this snapshot
        """
        key = (normalize_address(token), normalize_address(holder))
        try:
            return self.balances[key]
        except KeyError:
            raise ConfigError(
                f"balance of {token} for {holder} not in snapshot {self.snapshot_id}"
            ) from None


def ensure_same_snapshot(expected: str | None, *items: PoolState | OracleAnswer) -> str | None:
    """Check that all items were read in the same snapshot.

    Args:
        expected: Required snapshot id, or None to take the first item's id
        items: Snapshot-tagged values

    Returns:
        The common snapshot id (None if there were no items and no expectation)

    Raises:
        InconsistentSnapshot: If any item carries a different id
    """
    snapshot_id = expected
    for item in items:
        if snapshot_id is None:
            snapshot_id = item.snapshot_id
        elif item.snapshot_id != snapshot_id:
            raise InconsistentSnapshot(
                f"{type(item).__name__} from snapshot {item.snapshot_id} "
                f"mixed with snapshot {snapshot_id}"
            )
    return snapshot_id


__all__ = [
    "PoolState",
    "OracleAnswer",
    "TokenMeta",
    "ChainSnapshot",
    "ensure_same_snapshot",
]
