"""Protocol constants for the rebalance planner.

Centralizes basis-point units, oracle scaling and well-known addresses.
"""

from rebalancer.models.types import is_valid_address

# Basis-point denominator for allocation weights and slippage tolerances
BPS_DENOMINATOR = 10_000

# USD prices are expressed with 18 decimals
USD_PRICE_DECIMALS = 18
USD_PRICE_SCALE = 10**USD_PRICE_DECIMALS

# Default slippage tolerance applied to aggregator quotes (0.5%)
DEFAULT_SLIPPAGE_BPS = 50

# Default concentrated-liquidity range: 100 tick spacings on each side
DEFAULT_HALF_WIDTH_SPACINGS = 100

# 0x API, the default external quote source
ZEROX_API_URL = "https://api.0x.org"
ZEROX_QUOTE_PATH = "/swap/allowance-holder/quote"


def _validate_address(name: str, address: str) -> str:
    """Validate and return a well-known address.

    Raises:
        ValueError: If the address is invalid
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid {name} address: {address} (must be 0x + 40 hex chars)")
    return address


# 0x allowance holder, the router of default quotes (lowercase). Validated at
# import time to catch typos early
ZEROX_ALLOWANCE_HOLDER = _validate_address(
    "ZEROX_ALLOWANCE_HOLDER", "0x0000000000001ff3684f28c67538d4d072c22734"
)

# Chain ids of the networks the planner knows, used for aggregator quotes
NETWORK_CHAIN_IDS = {
    "mainnet": 1,
    "arbitrum-one": 42161,
    "base": 8453,
    "sepolia": 11155111,
}
