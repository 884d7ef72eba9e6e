"""Event payloads fanned out to observers (SSE stream, in-process listeners)."""

from typing import Literal

from pydantic import BaseModel, Field

from src.tm_common.datetime_utils import utc_now
from src.tm_common.enums import EventType, TerminationReason
from src.tm_market.application.schemas import MarketStateOut, ParticipantOut, TransactionOut


class MarketEvent(BaseModel):
    type: EventType
    timestamp: str = Field(default_factory=lambda: utc_now().isoformat())


class ConnectedEvent(MarketEvent):
    type: Literal[EventType.CONNECTED] = EventType.CONNECTED


class SimulationStartedEvent(MarketEvent):
    type: Literal[EventType.SIMULATION_STARTED] = EventType.SIMULATION_STARTED
    generation: int
    market: MarketStateOut
    participants: list[ParticipantOut]


class TickEvent(MarketEvent):
    type: Literal[EventType.TICK] = EventType.TICK
    round: int
    market: MarketStateOut
    participants: list[ParticipantOut]
    transactions: list[TransactionOut]


class SimulationEndedEvent(MarketEvent):
    """Terminal event: the simulation stopped itself."""

    type: Literal[EventType.SIMULATION_ENDED] = EventType.SIMULATION_ENDED
    reason: TerminationReason
    final_round: int
    final_revenue: float
    final_price: float
    remaining_inventory: int
    participants: list[ParticipantOut]


class SimulationStoppedEvent(MarketEvent):
    type: Literal[EventType.SIMULATION_STOPPED] = EventType.SIMULATION_STOPPED
    final_round: int | None = None
