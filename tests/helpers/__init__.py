"""Test helpers module for shared test utilities.

This module consolidates common test utilities to reduce duplication:
- constants: Token, pool, feed and vault addresses
- factories: Snapshot, pool state and config factory functions
"""

from tests.helpers.constants import (
    CL_STRATEGY,
    DAI,
    ETH_USD_FEED,
    IDLE_USDC,
    LENDING_STRATEGY,
    ROUTER,
    SNAPSHOT_BLOCK,
    SNAPSHOT_TIMESTAMP,
    TOKEN_DECIMALS,
    UNLISTED_ROUTER,
    USDC,
    USDC_ETH_FEED,
    USDC_USD_FEED,
    USDC_WETH_POOL,
    VAULT,
    WETH,
)
from tests.helpers.factories import (
    make_answer,
    make_config,
    make_config_data,
    make_pool_state,
    make_snapshot,
    snapshot_id,
)

__all__ = [
    # Constants
    "WETH",
    "USDC",
    "DAI",
    "TOKEN_DECIMALS",
    "USDC_WETH_POOL",
    "USDC_USD_FEED",
    "ETH_USD_FEED",
    "USDC_ETH_FEED",
    "VAULT",
    "LENDING_STRATEGY",
    "CL_STRATEGY",
    "ROUTER",
    "UNLISTED_ROUTER",
    "SNAPSHOT_TIMESTAMP",
    "SNAPSHOT_BLOCK",
    "IDLE_USDC",
    # Factories
    "make_answer",
    "make_config",
    "make_config_data",
    "make_pool_state",
    "make_snapshot",
    "snapshot_id",
]
