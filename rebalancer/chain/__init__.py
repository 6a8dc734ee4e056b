"""Chain state boundary.

This package provides the only contact between the planner and the chain:
- Snapshot value types (PoolState, OracleAnswer, TokenMeta, ChainSnapshot)
- Reader implementations (static and web3-based)
- take_snapshot, which pins one block and reads everything at it
"""

from .abi import AGGREGATOR_V3_ABI, ERC20_ABI, UNISWAP_V3_POOL_ABI
from .reader import ChainStateReader, StaticChainStateReader, Web3ChainStateReader, take_snapshot
from .state import ChainSnapshot, OracleAnswer, PoolState, TokenMeta, ensure_same_snapshot

__all__ = [
    # State
    "PoolState",
    "OracleAnswer",
    "TokenMeta",
    "ChainSnapshot",
    "ensure_same_snapshot",
    # Readers
    "ChainStateReader",
    "StaticChainStateReader",
    "Web3ChainStateReader",
    "take_snapshot",
    # ABIs
    "UNISWAP_V3_POOL_ABI",
    "AGGREGATOR_V3_ABI",
    "ERC20_ABI",
]
