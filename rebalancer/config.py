"""Operator configuration for allocation planning.

AllocationConfig is the typed form of the operator's JSON config file: the
vault asset, its strategies with their target weights, oracle routes and the
swap policy. PlannerSettings holds the planner's own behavior flags.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Discriminator, Field, model_validator

from rebalancer.allocation import AllocationWeight
from rebalancer.constants import DEFAULT_HALF_WIDTH_SPACINGS, DEFAULT_SLIPPAGE_BPS
from rebalancer.models.types import Address, Bps, normalize_address
from rebalancer.oracle import DirectRoute, OracleRoute, OracleRouter, ViaEthRoute


class StrategyKind(str, Enum):
    """Kinds of vault strategies."""

    LENDING = "lending"
    CONCENTRATED_LIQUIDITY = "concentrated_liquidity"


class StrategyConfig(BaseModel):
    """One deployed strategy, in the vault's strategy array order."""

    id: str = Field(min_length=1)
    kind: StrategyKind
    address: Address
    target_bps: Bps = Field(alias="targetBps")
    pool: Address | None = None
    half_width_spacings: int | None = Field(default=None, ge=1, alias="halfWidthSpacings")

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def check_pool(self) -> StrategyConfig:
        if self.kind == StrategyKind.CONCENTRATED_LIQUIDITY and self.pool is None:
            raise ValueError(f"concentrated liquidity strategy '{self.id}' must name a pool")
        return self


class DirectRouteConfig(BaseModel):
    """TOKEN/USD aggregator route."""

    kind: Literal["direct"] = "direct"
    aggregator: Address
    heartbeat: int = Field(gt=0)

    def to_route(self) -> DirectRoute:
        return DirectRoute(aggregator=normalize_address(self.aggregator), heartbeat=self.heartbeat)


class ViaEthRouteConfig(BaseModel):
    """TOKEN/ETH aggregator route combined with ETH/USD."""

    kind: Literal["via_eth"] = "via_eth"
    aggregator: Address
    invert: bool = False
    heartbeat: int = Field(gt=0)

    def to_route(self) -> ViaEthRoute:
        return ViaEthRoute(
            aggregator=normalize_address(self.aggregator),
            invert=self.invert,
            heartbeat=self.heartbeat,
        )


RouteConfig = Annotated[DirectRouteConfig | ViaEthRouteConfig, Discriminator("kind")]


class AllocationConfig(BaseModel):
    """Operator configuration of one vault.

    Validation rejects concentrated-liquidity strategies without a pool.
    Target weights are checked when planning, which raises
    AllocationOverCommitted or InvalidWeight.
    """

    asset: Address = Field(description="Vault asset token")
    vault: Address = Field(description="Vault holding the idle asset")
    strategies: list[StrategyConfig] = Field(default_factory=list)
    slippage_bps: Bps = Field(default=DEFAULT_SLIPPAGE_BPS, alias="slippageBps")
    allowed_routers: list[Address] = Field(default_factory=list, alias="allowedRouters")
    eth_usd_route: DirectRouteConfig | None = Field(default=None, alias="ethUsdRoute")
    oracle_routes: dict[Address, RouteConfig] = Field(default_factory=dict, alias="oracleRoutes")
    reject_stale_prices: bool = Field(default=False, alias="rejectStalePrices")

    model_config = {"populate_by_name": True}

    def weights(self) -> list[AllocationWeight]:
        """Target weights in strategy order."""
        return [AllocationWeight(s.id, s.target_bps) for s in self.strategies]

    def oracle_router(self) -> OracleRouter:
        """Oracle router built from the configured routes."""
        routes: dict[str, OracleRoute] = {
            token: route.to_route() for token, route in self.oracle_routes.items()
        }
        eth_usd = self.eth_usd_route.to_route() if self.eth_usd_route else None
        return OracleRouter(eth_usd=eth_usd, routes=routes)

    def pools(self) -> list[str]:
        """Pools named by concentrated-liquidity strategies."""
        return [normalize_address(s.pool) for s in self.strategies if s.pool is not None]

    def aggregators(self) -> list[str]:
        """Every aggregator a price lookup may read."""
        found = [normalize_address(r.aggregator) for r in self.oracle_routes.values()]
        if self.eth_usd_route is not None:
            found.append(normalize_address(self.eth_usd_route.aggregator))
        return list(dict.fromkeys(found))


@dataclass(frozen=True)
class PlannerSettings:
    """Planner behavior flags.

    Attributes:
        default_half_width_spacings: Range half width for strategies that do
            not set their own (default: 100 tick spacings)
        reject_stale_prices: If True, a stale oracle price aborts the plan
            even when the config allows stale prices. If False, the config
            decides.
        now: Reference time for staleness (default: snapshot timestamp)
    """

    default_half_width_spacings: int = DEFAULT_HALF_WIDTH_SPACINGS
    reject_stale_prices: bool = False
    now: int | None = None


# Default settings instance
DEFAULT_PLANNER_SETTINGS = PlannerSettings()


__all__ = [
    "StrategyKind",
    "StrategyConfig",
    "DirectRouteConfig",
    "ViaEthRouteConfig",
    "RouteConfig",
    "AllocationConfig",
    "PlannerSettings",
    "DEFAULT_PLANNER_SETTINGS",
]
