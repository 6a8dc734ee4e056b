"""Pydantic models for the planner's JSON inputs and outputs.

Snapshot file models live in rebalancer.models.snapshot, which depends on
rebalancer.chain and is imported from there directly.
"""

from .plan import AllocationPlan, PlanEntry, PlannedSwap, PositionRange
from .quotes import QuoteBook, QuoteEntry
from .types import (
    Address,
    Bps,
    Bytes,
    Int24,
    Uint256,
    bytes_to_hex,
    hex_to_bytes,
    is_valid_address,
    normalize_address,
)

__all__ = [
    # Types
    "Address",
    "Bps",
    "Bytes",
    "Int24",
    "Uint256",
    "normalize_address",
    "is_valid_address",
    "hex_to_bytes",
    "bytes_to_hex",
    # Plan
    "AllocationPlan",
    "PlanEntry",
    "PlannedSwap",
    "PositionRange",
    # Quotes
    "QuoteBook",
    "QuoteEntry",
]
