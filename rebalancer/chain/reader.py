"""Chain state readers and snapshot acquisition.

The planner itself never touches the network. A ChainStateReader is the
narrow boundary through which pool, oracle, token and balance state is read,
and take_snapshot pins one block and reads everything at it.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol

import structlog

from rebalancer.errors import ConfigError
from rebalancer.models.types import normalize_address

from .abi import AGGREGATOR_V3_ABI, ERC20_ABI, UNISWAP_V3_POOL_ABI
from .state import ChainSnapshot, OracleAnswer, PoolState, TokenMeta

logger = structlog.get_logger()


class ChainStateReader(Protocol):
    """Protocol for chain state sources.

    Every read is pinned to a block so that all values of one snapshot are
    mutually consistent.
    """

    def get_block(self) -> tuple[int, int]:
        """Latest block as (number, timestamp)."""
        ...

    def get_pool_state(self, pool: str, *, block: int, snapshot_id: str) -> PoolState:
        """Read slot0, liquidity, tokens, fee and tick spacing of a pool."""
        ...

    def get_oracle_answer(self, aggregator: str, *, block: int, snapshot_id: str) -> OracleAnswer:
        """Read latestRoundData and decimals of an aggregator."""
        ...

    def get_token_meta(self, token: str) -> TokenMeta:
        """Read decimals and symbol of a token."""
        ...

    def get_balance(self, token: str, holder: str, *, block: int) -> int:
        """Read the raw token balance of holder."""
        ...


class StaticChainStateReader:
    """Reader that serves a fixed snapshot, for offline planning and tests.

    Records every call for assertions.
    """

    def __init__(self, snapshot: ChainSnapshot):
        self.snapshot = snapshot
        self.calls: list[tuple[str, str]] = []

    def get_block(self) -> tuple[int, int]:
        self.calls.append(("block", ""))
        return self.snapshot.block_number, self.snapshot.timestamp

    def get_pool_state(self, pool: str, *, block: int, snapshot_id: str) -> PoolState:
        self.calls.append(("pool", pool))
        return self.snapshot.pool(pool)

    def get_oracle_answer(self, aggregator: str, *, block: int, snapshot_id: str) -> OracleAnswer:
        self.calls.append(("oracle", aggregator))
        return self.snapshot.oracle_answer(aggregator)

    def get_token_meta(self, token: str) -> TokenMeta:
        self.calls.append(("token", token))
        return self.snapshot.token(token)

    def get_balance(self, token: str, holder: str, *, block: int) -> int:
        self.calls.append(("balance", f"{token}:{holder}"))
        return self.snapshot.balance(token, holder)


class Web3ChainStateReader:
    """Reader backed by JSON-RPC calls through web3.

    All contract calls pass block_identifier so the snapshot is pinned to the
    block returned by get_block().
    """

    def __init__(self, rpc_url: str):
        """Initialize the reader.

        Args:
            rpc_url: HTTP RPC URL (e.g., "https://arb1.arbitrum.io/rpc")
        """
        try:
            from web3 import Web3
        except ImportError as e:
            raise ImportError(
                "web3 package required for Web3ChainStateReader. Install with: pip install web3"
            ) from e

        self._web3_cls = Web3
        self.w3 = Web3(Web3.HTTPProvider(rpc_url))

    def _contract(self, address: str, abi: list[dict[str, Any]]) -> Any:
        return self.w3.eth.contract(address=self._web3_cls.to_checksum_address(address), abi=abi)

    def get_block(self) -> tuple[int, int]:
        block = self.w3.eth.get_block("latest")
        return int(block["number"]), int(block["timestamp"])

    def get_pool_state(self, pool: str, *, block: int, snapshot_id: str) -> PoolState:
        contract = self._contract(pool, UNISWAP_V3_POOL_ABI)
        fns = contract.functions
        slot0 = fns.slot0().call(block_identifier=block)
        return PoolState(
            address=normalize_address(pool),
            token0=normalize_address(fns.token0().call(block_identifier=block)),
            token1=normalize_address(fns.token1().call(block_identifier=block)),
            fee=int(fns.fee().call(block_identifier=block)),
            sqrt_price_x96=int(slot0[0]),
            tick=int(slot0[1]),
            tick_spacing=int(fns.tickSpacing().call(block_identifier=block)),
            liquidity=int(fns.liquidity().call(block_identifier=block)),
            snapshot_id=snapshot_id,
        )

    def get_oracle_answer(self, aggregator: str, *, block: int, snapshot_id: str) -> OracleAnswer:
        contract = self._contract(aggregator, AGGREGATOR_V3_ABI)
        # (roundId, answer, startedAt, updatedAt, answeredInRound)
        round_data = contract.functions.latestRoundData().call(block_identifier=block)
        decimals = contract.functions.decimals().call(block_identifier=block)
        return OracleAnswer(
            aggregator=normalize_address(aggregator),
            answer=int(round_data[1]),
            updated_at=int(round_data[3]),
            decimals=int(decimals),
            snapshot_id=snapshot_id,
        )

    def get_token_meta(self, token: str) -> TokenMeta:
        contract = self._contract(token, ERC20_ABI)
        return TokenMeta(
            address=normalize_address(token),
            decimals=int(contract.functions.decimals().call()),
            symbol=str(contract.functions.symbol().call()),
        )

    def get_balance(self, token: str, holder: str, *, block: int) -> int:
        contract = self._contract(token, ERC20_ABI)
        holder_checksum = self._web3_cls.to_checksum_address(holder)
        return int(contract.functions.balanceOf(holder_checksum).call(block_identifier=block))


def take_snapshot(
    reader: ChainStateReader,
    *,
    network: str,
    pools: Iterable[str] = (),
    aggregators: Iterable[str] = (),
    tokens: Iterable[str] = (),
    balances: Iterable[tuple[str, str]] = (),
) -> ChainSnapshot:
    """Read all state a planning cycle needs at a single block.

    Pool tokens are added to the token set automatically.

    Args:
        reader: Chain state source
        network: Network name, part of the snapshot id
        pools: Pool addresses
        aggregators: Oracle aggregator addresses
        tokens: Token addresses whose metadata is needed
        balances: (token, holder) pairs

    Returns:
        ChainSnapshot with id "<network>:<block>"
    """
    block_number, timestamp = reader.get_block()
    snapshot_id = f"{network}:{block_number}"

    pool_states: dict[str, PoolState] = {}
    for pool in pools:
        state = reader.get_pool_state(pool, block=block_number, snapshot_id=snapshot_id)
        pool_states[normalize_address(pool)] = state

    answers: dict[str, OracleAnswer] = {}
    for aggregator in aggregators:
        answer = reader.get_oracle_answer(aggregator, block=block_number, snapshot_id=snapshot_id)
        answers[normalize_address(aggregator)] = answer

    token_set = {normalize_address(t) for t in tokens}
    for state in pool_states.values():
        token_set.update((normalize_address(state.token0), normalize_address(state.token1)))
    token_metas = {token: reader.get_token_meta(token) for token in sorted(token_set)}

    balance_map: dict[tuple[str, str], int] = {}
    for token, holder in balances:
        key = (normalize_address(token), normalize_address(holder))
        if key[0] not in token_metas:
            raise ConfigError(f"balance requested for token {token} without metadata")
        balance_map[key] = reader.get_balance(token, holder, block=block_number)

    logger.info(
        "snapshot_taken",
        snapshot_id=snapshot_id,
        timestamp=timestamp,
        pools=len(pool_states),
        aggregators=len(answers),
        tokens=len(token_metas),
        balances=len(balance_map),
    )

    return ChainSnapshot(
        snapshot_id=snapshot_id,
        block_number=block_number,
        timestamp=timestamp,
        pools=pool_states,
        oracle_answers=answers,
        tokens=token_metas,
        balances=balance_map,
    )


__all__ = [
    "ChainStateReader",
    "StaticChainStateReader",
    "Web3ChainStateReader",
    "take_snapshot",
]
