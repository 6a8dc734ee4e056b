"""Vault rebalance planner - allocation and swap planning for a multi-strategy vault."""

from rebalancer.planner import Planner, build_allocation_plan, get_default_planner

__version__ = "0.1.0"
__all__ = ["Planner", "build_allocation_plan", "get_default_planner", "__version__"]
