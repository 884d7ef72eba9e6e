"""MarketQueryService — read-only snapshots of the active simulation.

Never mutates; every returned object is built from engine snapshots.
"""

from src.tm_common.errors import SimulationNotRunningError
from src.tm_lifecycle.engine.manager import SimulationLifecycleManager
from src.tm_market.application.schemas import (
    MarketSnapshotResponse,
    MarketStateOut,
    ParticipantOut,
    PricingOut,
    TickResultOut,
)
from src.tm_market.engine.engine import MarketEngine


class MarketQueryService:
    def __init__(self, manager: SimulationLifecycleManager) -> None:
        self._manager = manager

    def _engine(self) -> MarketEngine:
        engine = self._manager.active_engine
        if engine is None:
            raise SimulationNotRunningError()
        return engine

    def get_market(self, history_limit: int | None = None) -> MarketSnapshotResponse:
        engine = self._engine()
        return MarketSnapshotResponse(
            market=MarketStateOut.from_domain(engine.market_state),
            participants=[ParticipantOut.from_domain(p) for p in engine.participants()],
            history=[TickResultOut.from_domain(r) for r in engine.tick_history(history_limit)],
            is_running=self._manager.running,
        )

    def get_participants(self) -> list[ParticipantOut]:
        return [ParticipantOut.from_domain(p) for p in self._engine().participants()]

    def get_history(self, limit: int | None = None) -> list[TickResultOut]:
        return [TickResultOut.from_domain(r) for r in self._engine().tick_history(limit)]

    def get_pricing(self, product_id: str) -> PricingOut:
        """Current price; falls back to the configured opening price when idle."""
        engine = self._manager.active_engine
        if engine is not None:
            price, live = engine.market_state.price, True
        else:
            price, live = self._manager.config.market.initial_price, False
        return PricingOut(price=price, price_per_unit=price, product_id=product_id, is_live=live)
