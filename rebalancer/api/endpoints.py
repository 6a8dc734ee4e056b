"""API endpoints for the rebalance planner."""

import asyncio
import os

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from rebalancer.config import AllocationConfig
from rebalancer.errors import RebalancerError
from rebalancer.models.plan import AllocationPlan
from rebalancer.models.quotes import QuoteBook
from rebalancer.models.snapshot import SnapshotDocument
from rebalancer.planner import Planner, get_default_planner
from rebalancer.quotes import StaticQuoteProvider

logger = structlog.get_logger()

router = APIRouter()

# Networks this service plans for
# Configurable via environment variable REBALANCER_SUPPORTED_NETWORKS (comma-separated)
SUPPORTED_NETWORKS = set(os.environ.get("REBALANCER_SUPPORTED_NETWORKS", "mainnet").split(","))


class PlanRequest(BaseModel):
    """Everything needed to plan offline: config, chain state and quotes."""

    config: AllocationConfig
    snapshot: SnapshotDocument
    quotes: QuoteBook = Field(default_factory=QuoteBook)


def get_planner() -> Planner:
    """Dependency provider for the planner instance.

    Override this in tests to inject a different planner:
        app.dependency_overrides[get_planner] = lambda: my_planner

    Returns:
        The planner instance to use.
    """
    return get_default_planner()


@router.post("/{network}/plan", response_model=AllocationPlan, response_model_by_alias=True)
async def plan(
    network: str,
    request: PlanRequest,
    planner_instance: Planner = Depends(get_planner),
) -> AllocationPlan | JSONResponse:
    """Build an allocation plan from a posted snapshot and quote book.

    Args:
        network: Network name (e.g., "mainnet", "arbitrum-one")
        request: Config, snapshot and recorded quotes
        planner_instance: Injected planner (via FastAPI Depends)

    Returns:
        The AllocationPlan.

    Error Handling:
        - Invalid request schema: 422 Validation Error (Pydantic)
        - Unsupported network: 404
        - Planning failure: 422 with the error class and message
    """
    if network not in SUPPORTED_NETWORKS:
        logger.warning(
            "unsupported_network",
            network=network,
            supported_networks=sorted(SUPPORTED_NETWORKS),
        )
        raise HTTPException(status_code=404, detail=f"unsupported network '{network}'")

    logger.info(
        "received_plan_request",
        network=network,
        block_number=request.snapshot.block_number,
        strategies=len(request.config.strategies),
    )

    try:
        snapshot = request.snapshot.to_snapshot()
        provider = StaticQuoteProvider(request.quotes)
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None, planner_instance.plan, request.config, snapshot, provider
        )
    except RebalancerError as e:
        logger.warning("plan_rejected", network=network, error=type(e).__name__, detail=str(e))
        return JSONResponse(
            status_code=422,
            content={"error": type(e).__name__, "detail": str(e)},
        )

    logger.info(
        "returning_plan",
        snapshot_id=result.snapshot_id,
        entries=len(result.entries),
        swaps=result.swap_count,
    )
    return result
