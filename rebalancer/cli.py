"""Operator command line for the rebalance planner.

Usage:
    rebalancer plan --network mainnet --config vault.json --snapshot snap.json \\
        --quotes quotes.json --output swapdata.json --plan-output plan.json
    rebalancer price --sqrt-price-x96 792281625142643375935439503360 --decimals0 6 --decimals1 18
    rebalancer encode-price --amount1 1000000000000000000 --amount0 100000000
    rebalancer ticks --tick -269393 --spacing 10 --half-width 100

Exit codes: 0 on success, 1 when planning fails validation, 2 on usage errors.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from contextlib import ExitStack
from decimal import Decimal
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from rebalancer.chain.reader import Web3ChainStateReader, take_snapshot
from rebalancer.chain.state import ChainSnapshot
from rebalancer.config import AllocationConfig, PlannerSettings
from rebalancer.constants import NETWORK_CHAIN_IDS
from rebalancer.errors import ConfigError, RebalancerError
from rebalancer.math.fixed_point import (
    DECIMAL_HIGH_PREC_CONTEXT,
    encode_q96_price_from_amounts,
    price_from_q96,
)
from rebalancer.math.tick_math import aligned_tick_range, get_tick_at_sqrt_ratio, tick_to_price
from rebalancer.models.snapshot import SnapshotDocument
from rebalancer.planner import build_allocation_plan
from rebalancer.quotes import ExternalQuoteProvider, StaticQuoteProvider, ZeroExQuoteProvider

logger = structlog.get_logger()


def configure_logging(verbose: bool) -> None:
    """Console logging on stderr, debug level with --verbose."""
    log_level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    )


def _format_price(price: Decimal) -> str:
    return f"{price:.12g}"


def _read_json(path: Path) -> Any:
    with open(path) as f:
        return json.load(f)


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
        f.write("\n")


# =============================================================================
# plan
# =============================================================================


def _load_snapshot(args: argparse.Namespace, config: AllocationConfig) -> ChainSnapshot:
    if args.snapshot is not None:
        return SnapshotDocument.model_validate(_read_json(args.snapshot)).to_snapshot()

    rpc_url = args.rpc_url or os.environ.get("RPC_URL")
    if not rpc_url:
        raise ConfigError("either --snapshot or --rpc-url (or RPC_URL) is required")

    reader = Web3ChainStateReader(rpc_url)
    snapshot = take_snapshot(
        reader,
        network=args.network,
        pools=config.pools(),
        aggregators=config.aggregators(),
        tokens=[config.asset],
        balances=[(config.asset, config.vault)],
    )
    if args.snapshot_output is not None:
        document = SnapshotDocument.from_snapshot(snapshot, network=args.network)
        _write_json(args.snapshot_output, document.model_dump(mode="json", by_alias=True))
    return snapshot


def _quote_provider(args: argparse.Namespace, resources: ExitStack) -> ExternalQuoteProvider:
    if args.quotes is not None:
        return StaticQuoteProvider.from_file(args.quotes)

    chain_id = NETWORK_CHAIN_IDS.get(args.network)
    if chain_id is None:
        raise ConfigError(
            f"no chain id known for network '{args.network}' "
            f"(known: {', '.join(sorted(NETWORK_CHAIN_IDS))})"
        )
    return resources.enter_context(ZeroExQuoteProvider(chain_id=chain_id))


def cmd_plan(args: argparse.Namespace) -> int:
    config = AllocationConfig.model_validate(_read_json(args.config))
    snapshot = _load_snapshot(args, config)
    settings = PlannerSettings(reject_stale_prices=args.reject_stale)

    with ExitStack() as resources:
        quote_provider = _quote_provider(args, resources)
        plan = build_allocation_plan(config, snapshot, quote_provider, settings)

    if args.output is not None:
        _write_json(args.output, plan.swap_data)
        logger.info("swap_data_written", path=str(args.output), strategies=len(plan.swap_data))
    plan_json = plan.model_dump(mode="json", by_alias=True)
    if args.plan_output is not None:
        _write_json(args.plan_output, plan_json)
        logger.info("plan_written", path=str(args.plan_output))
    else:
        print(json.dumps(plan_json, indent=2))
    return 0


# =============================================================================
# Price helpers
# =============================================================================


def cmd_price(args: argparse.Namespace) -> int:
    price = price_from_q96(args.sqrt_price_x96, args.decimals0, args.decimals1)
    inverse = DECIMAL_HIGH_PREC_CONTEXT.divide(Decimal(1), price)
    tick = get_tick_at_sqrt_ratio(args.sqrt_price_x96)
    print(f"sqrtPriceX96:     {args.sqrt_price_x96}")
    print(f"tick:             {tick}")
    print(f"token1 per token0: {_format_price(price)}")
    print(f"token0 per token1: {_format_price(inverse)}")
    return 0


def cmd_encode_price(args: argparse.Namespace) -> int:
    sqrt_price = encode_q96_price_from_amounts(args.amount1, args.amount0)
    print(f"sqrtPriceX96: {sqrt_price}")
    print(f"tick:         {get_tick_at_sqrt_ratio(sqrt_price)}")
    return 0


def cmd_ticks(args: argparse.Namespace) -> int:
    tick_range = aligned_tick_range(args.tick, args.spacing, args.half_width)
    lower_price = tick_to_price(tick_range.tick_lower, args.decimals0, args.decimals1)
    upper_price = tick_to_price(tick_range.tick_upper, args.decimals0, args.decimals1)
    print(f"tickLower: {tick_range.tick_lower} (price {_format_price(lower_price)})")
    print(f"tickUpper: {tick_range.tick_upper} (price {_format_price(upper_price)})")
    print(f"width:     {tick_range.width} ticks")
    return 0


# =============================================================================
# Entry point
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rebalancer",
        description="Plan vault allocations and inspect concentrated-liquidity prices",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    plan = subparsers.add_parser("plan", help="Build an allocation plan and its swap data")
    plan.add_argument("--network", default="mainnet", help="Network name (default: mainnet)")
    plan.add_argument("--config", type=Path, required=True, help="Allocation config JSON")
    source = plan.add_mutually_exclusive_group()
    source.add_argument("--snapshot", type=Path, help="Chain snapshot JSON")
    source.add_argument("--rpc-url", help="RPC URL to snapshot live state (default: $RPC_URL)")
    plan.add_argument("--snapshot-output", type=Path, help="Save the RPC snapshot as JSON")
    plan.add_argument("--quotes", type=Path, help="Recorded quotes JSON (default: live 0x API)")
    plan.add_argument("--output", type=Path, help="Write bytes[][] swap data JSON here")
    plan.add_argument("--plan-output", type=Path, help="Write the full plan JSON here")
    plan.add_argument(
        "--reject-stale",
        action="store_true",
        help="Fail if any oracle price is older than its heartbeat",
    )
    plan.set_defaults(func=cmd_plan)

    price = subparsers.add_parser("price", help="Explain a pool sqrtPriceX96")
    price.add_argument("--sqrt-price-x96", type=int, required=True)
    price.add_argument("--decimals0", type=int, required=True)
    price.add_argument("--decimals1", type=int, required=True)
    price.set_defaults(func=cmd_price)

    encode = subparsers.add_parser("encode-price", help="sqrtPriceX96 for a reserve ratio")
    encode.add_argument("--amount1", type=int, required=True, help="Raw token1 amount")
    encode.add_argument("--amount0", type=int, required=True, help="Raw token0 amount")
    encode.set_defaults(func=cmd_encode_price)

    ticks = subparsers.add_parser("ticks", help="Aligned tick range around a tick")
    ticks.add_argument("--tick", type=int, required=True)
    ticks.add_argument("--spacing", type=int, required=True)
    ticks.add_argument("--half-width", type=int, required=True, help="Tick spacings per side")
    ticks.add_argument("--decimals0", type=int, default=18)
    ticks.add_argument("--decimals1", type=int, default=18)
    ticks.set_defaults(func=cmd_ticks)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        return int(args.func(args))
    except (RebalancerError, ValidationError, ValueError) as e:
        logger.error("command_failed", command=args.command, error_type=type(e).__name__)
        print(f"error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
