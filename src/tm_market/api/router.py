"""tm_market REST endpoints.

GET /market                 — market state, participants, tick history
GET /market/participants    — participant snapshots
GET /market/history         — most recent rounds (bounded ring)
GET /pricing                — current price per unit
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from src.tm_common.response import ApiResponse, success_response
from src.tm_lifecycle.application.service import get_lifecycle_manager
from src.tm_lifecycle.engine.manager import SimulationLifecycleManager
from src.tm_market.application.service import MarketQueryService

router = APIRouter(tags=["market"])


def get_market_service(
    manager: Annotated[SimulationLifecycleManager, Depends(get_lifecycle_manager)],
) -> MarketQueryService:
    return MarketQueryService(manager)


@router.get("/market")
async def get_market(
    request: Request,
    service: Annotated[MarketQueryService, Depends(get_market_service)],
    history_limit: int | None = Query(None, ge=0, le=100),
) -> ApiResponse:
    result = service.get_market(history_limit)
    return success_response(result.model_dump(), request)


@router.get("/market/participants")
async def get_participants(
    request: Request,
    service: Annotated[MarketQueryService, Depends(get_market_service)],
) -> ApiResponse:
    result = service.get_participants()
    return success_response([p.model_dump() for p in result], request)


@router.get("/market/history")
async def get_history(
    request: Request,
    service: Annotated[MarketQueryService, Depends(get_market_service)],
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    result = service.get_history(limit)
    return success_response([r.model_dump() for r in result], request)


@router.get("/pricing")
async def get_pricing(
    request: Request,
    service: Annotated[MarketQueryService, Depends(get_market_service)],
    product_id: str = Query("apple"),
) -> ApiResponse:
    result = service.get_pricing(product_id)
    return success_response(result.model_dump(), request)
