"""Pydantic models for chain snapshot JSON files.

A snapshot file records everything one planning cycle reads from the chain
at one block, so plans can be produced and reviewed offline.
"""

from pydantic import BaseModel, Field

from rebalancer.chain.state import ChainSnapshot, OracleAnswer, PoolState, TokenMeta
from rebalancer.models.types import Address, Int24, Uint256, normalize_address


class PoolStateModel(BaseModel):
    """Pool slot0 and static parameters."""

    address: Address
    token0: Address
    token1: Address
    fee: int = Field(ge=0)
    sqrt_price_x96: Uint256 = Field(alias="sqrtPriceX96")
    tick: Int24
    tick_spacing: int = Field(gt=0, alias="tickSpacing")
    liquidity: Uint256 = 0

    model_config = {"populate_by_name": True}


class OracleAnswerModel(BaseModel):
    """Aggregator latestRoundData answer."""

    aggregator: Address
    # int256 on chain; sign is checked when pricing
    answer: int
    updated_at: int = Field(ge=0, alias="updatedAt")
    decimals: int = Field(ge=0, le=77)

    model_config = {"populate_by_name": True}


class TokenModel(BaseModel):
    address: Address
    decimals: int = Field(ge=0, le=77)
    symbol: str = ""


class BalanceModel(BaseModel):
    token: Address
    holder: Address
    amount: Uint256


class SnapshotDocument(BaseModel):
    """Chain state at one block, as stored in a snapshot JSON file."""

    network: str = "mainnet"
    snapshot_id: str | None = Field(default=None, alias="snapshotId")
    block_number: int = Field(ge=0, alias="blockNumber")
    timestamp: int = Field(ge=0)
    pools: list[PoolStateModel] = Field(default_factory=list)
    oracle_answers: list[OracleAnswerModel] = Field(default_factory=list, alias="oracleAnswers")
    tokens: list[TokenModel] = Field(default_factory=list)
    balances: list[BalanceModel] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    @property
    def resolved_snapshot_id(self) -> str:
        return self.snapshot_id or f"{self.network}:{self.block_number}"

    def to_snapshot(self) -> ChainSnapshot:
        """Build the immutable snapshot, tagging every value with its id."""
        snapshot_id = self.resolved_snapshot_id
        pools = {
            normalize_address(p.address): PoolState(
                address=normalize_address(p.address),
                token0=normalize_address(p.token0),
                token1=normalize_address(p.token1),
                fee=p.fee,
                sqrt_price_x96=p.sqrt_price_x96,
                tick=p.tick,
                tick_spacing=p.tick_spacing,
                liquidity=p.liquidity,
                snapshot_id=snapshot_id,
            )
            for p in self.pools
        }
        answers = {
            normalize_address(a.aggregator): OracleAnswer(
                aggregator=normalize_address(a.aggregator),
                answer=a.answer,
                updated_at=a.updated_at,
                decimals=a.decimals,
                snapshot_id=snapshot_id,
            )
            for a in self.oracle_answers
        }
        tokens = {
            normalize_address(t.address): TokenMeta(
                address=normalize_address(t.address), decimals=t.decimals, symbol=t.symbol
            )
            for t in self.tokens
        }
        balances = {
            (normalize_address(b.token), normalize_address(b.holder)): b.amount
            for b in self.balances
        }
        return ChainSnapshot(
            snapshot_id=snapshot_id,
            block_number=self.block_number,
            timestamp=self.timestamp,
            pools=pools,
            oracle_answers=answers,
            tokens=tokens,
            balances=balances,
        )

    @classmethod
    def from_snapshot(cls, snapshot: ChainSnapshot, network: str = "mainnet") -> "SnapshotDocument":
        """Serializable form of a snapshot (e.g. one read over RPC)."""
        return cls(
            network=network,
            snapshot_id=snapshot.snapshot_id,
            block_number=snapshot.block_number,
            timestamp=snapshot.timestamp,
            pools=[
                PoolStateModel(
                    address=p.address,
                    token0=p.token0,
                    token1=p.token1,
                    fee=p.fee,
                    sqrt_price_x96=p.sqrt_price_x96,
                    tick=p.tick,
                    tick_spacing=p.tick_spacing,
                    liquidity=p.liquidity,
                )
                for p in snapshot.pools.values()
            ],
            oracle_answers=[
                OracleAnswerModel(
                    aggregator=a.aggregator,
                    answer=a.answer,
                    updated_at=a.updated_at,
                    decimals=a.decimals,
                )
                for a in snapshot.oracle_answers.values()
            ],
            tokens=[
                TokenModel(address=t.address, decimals=t.decimals, symbol=t.symbol)
                for t in snapshot.tokens.values()
            ],
            balances=[
                BalanceModel(token=token, holder=holder, amount=amount)
                for (token, holder), amount in snapshot.balances.items()
            ],
        )


__all__ = [
    "PoolStateModel",
    "OracleAnswerModel",
    "TokenModel",
    "BalanceModel",
    "SnapshotDocument",
]
