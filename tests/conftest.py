"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

from rebalancer.chain.state import ChainSnapshot
from rebalancer.config import AllocationConfig
from rebalancer.quotes import MockQuoteProvider
from tests.helpers import ROUTER, make_config, make_snapshot

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the fixtures directory path."""
    return FIXTURES_DIR


@pytest.fixture
def snapshot() -> ChainSnapshot:
    """Mainnet snapshot with 1000 USDC idle in the vault."""
    return make_snapshot()


@pytest.fixture
def config() -> AllocationConfig:
    """60% lending / 40% concentrated liquidity config."""
    return make_config()


@pytest.fixture
def quote_provider() -> MockQuoteProvider:
    """Mock quotes at 2000 USDC per WETH (5e8 raw WETH per raw USDC)."""
    return MockQuoteProvider(default_rate=(5 * 10**8, 1), router=ROUTER, calldata=b"\xde\xad")
