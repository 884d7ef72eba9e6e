"""tm_lifecycle REST endpoints.

POST /control         — {"action": "start" | "stop"}
GET  /control/status  — lifecycle phase, generation, current round
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.tm_common.enums import ControlAction
from src.tm_common.errors import InvalidControlActionError
from src.tm_common.response import ApiResponse, success_response
from src.tm_lifecycle.application.schemas import (
    ControlRequest,
    ParticipantSummary,
    StartResponse,
    StatusResponse,
    StopResponse,
)
from src.tm_lifecycle.application.service import get_lifecycle_manager
from src.tm_lifecycle.engine.manager import SimulationLifecycleManager
from src.tm_market.application.schemas import MarketStateOut

router = APIRouter(prefix="/control", tags=["control"])


@router.post("")
async def control(
    body: ControlRequest,
    request: Request,
    manager: Annotated[SimulationLifecycleManager, Depends(get_lifecycle_manager)],
) -> ApiResponse:
    try:
        action = ControlAction(body.action)
    except ValueError:
        raise InvalidControlActionError(body.action) from None

    if action == ControlAction.START:
        engine = await manager.start()
        result = StartResponse(
            generation=engine.generation,
            market=MarketStateOut.from_domain(engine.market_state),
            participants=[
                ParticipantSummary(
                    id=p.id, display_name=p.display_name, personality=p.personality.value
                )
                for p in engine.participants()
            ],
        )
        return success_response(result.model_dump(), request)

    was_running = manager.stop()
    result = StopResponse(
        message="Simulation stopped successfully" if was_running else "No simulation was running",
        was_running=was_running,
    )
    return success_response(result.model_dump(), request)


@router.get("/status")
async def status(
    request: Request,
    manager: Annotated[SimulationLifecycleManager, Depends(get_lifecycle_manager)],
) -> ApiResponse:
    last = manager.last_termination.value if manager.last_termination else None
    result = StatusResponse.from_domain(manager.status(), last)
    return success_response(result.model_dump(), request)
