"""Pydantic schemas for the control endpoint."""

from pydantic import BaseModel

from src.tm_lifecycle.domain.models import LifecycleStatus
from src.tm_market.application.schemas import MarketStateOut


class ControlRequest(BaseModel):
    action: str


class ParticipantSummary(BaseModel):
    id: str
    display_name: str
    personality: str


class StartResponse(BaseModel):
    status: str = "started"
    message: str = "Simulation started successfully"
    generation: int
    market: MarketStateOut
    participants: list[ParticipantSummary]


class StopResponse(BaseModel):
    status: str = "stopped"
    message: str
    was_running: bool


class StatusResponse(BaseModel):
    phase: str
    running: bool
    generation: int
    round: int | None
    schedule_pending: bool
    last_termination: str | None

    @classmethod
    def from_domain(cls, s: LifecycleStatus, last_termination: str | None) -> "StatusResponse":
        return cls(
            phase=s.phase.value,
            running=s.running,
            generation=s.generation,
            round=s.round,
            schedule_pending=s.schedule_pending,
            last_termination=last_termination,
        )
