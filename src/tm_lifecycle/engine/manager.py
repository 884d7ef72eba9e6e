"""SimulationLifecycleManager — at most one simulation, one round at a time.

State machine: Idle → Starting → Running → Stopping → Idle.

Rounds are self-rescheduled: the next round's timer is armed only after the
current round (every oracle call, execute_tick, and publication) has finished,
so rounds never overlap however slow the collaborators are. Each MarketEngine
carries a generation id; a round only acts while the manager is running and
its engine is still the active one, checked before any work, before every
oracle call, right before execute_tick, and inside execute_tick before each
participant's settlement.

stop() cancels the armed timer and drops the engine but does not abort a call
already in flight; the round notices it went stale at its next checkpoint and
exits without further settlements and without touching the new simulation.
"""

import asyncio
import logging
import random
import time
from collections.abc import Callable

from src.tm_common.datetime_utils import elapsed_ms
from src.tm_common.enums import LifecyclePhase, TerminationReason
from src.tm_common.errors import ConflictError, InitializationError, OracleError
from src.tm_common.id_generator import GenerationCounter
from src.tm_events.application.schemas import (
    SimulationEndedEvent,
    SimulationStartedEvent,
    SimulationStoppedEvent,
    TickEvent,
)
from src.tm_events.engine.bus import EventBus
from src.tm_lifecycle.domain.models import LifecycleStatus, SimulationConfig
from src.tm_market.application.schemas import MarketStateOut, ParticipantOut, TransactionOut
from src.tm_market.domain.models import (
    Decision,
    MarketState,
    ParticipantState,
    TickResult,
)
from src.tm_market.engine.engine import MarketEngine
from src.tm_participants.domain.oracle import PolicyOracleProtocol
from src.tm_participants.domain.profiles import build_participants
from src.tm_pricing.engine.pricing import PricingEngine
from src.tm_settlement.domain.protocol import SettlementServiceProtocol

logger = logging.getLogger(__name__)

ParticipantFactory = Callable[[SimulationConfig], list[ParticipantState]]


def _default_participants(config: SimulationConfig) -> list[ParticipantState]:
    return build_participants(config.default_sell_fraction, config.opening_balance)


class SimulationLifecycleManager:
    def __init__(
        self,
        config: SimulationConfig,
        oracle: PolicyOracleProtocol,
        settlement: SettlementServiceProtocol | None = None,
        event_bus: EventBus | None = None,
        participant_factory: ParticipantFactory = _default_participants,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self._oracle = oracle
        self._settlement = settlement
        self._bus = event_bus or EventBus()
        self._participant_factory = participant_factory
        self._rng = rng

        self._starting = False
        self._running = False
        self._abort_start = False
        self._engine: MarketEngine | None = None
        self._active_participants: list[str] = []
        self._pending: asyncio.TimerHandle | None = None
        self._round_tasks: set[asyncio.Task[TickResult | None]] = set()
        self._generations = GenerationCounter()
        self._idle = asyncio.Event()
        self._idle.set()
        self.last_termination: TerminationReason | None = None

    # ------------------------------------------------------------------
    # Read surface
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def active_engine(self) -> MarketEngine | None:
        return self._engine

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def oracle(self) -> PolicyOracleProtocol:
        return self._oracle

    @property
    def settlement(self) -> SettlementServiceProtocol | None:
        return self._settlement

    @property
    def phase(self) -> LifecyclePhase:
        if self._starting:
            return LifecyclePhase.STARTING
        if self._running:
            return LifecyclePhase.RUNNING
        if any(not t.done() for t in self._round_tasks):
            return LifecyclePhase.STOPPING
        return LifecyclePhase.IDLE

    def status(self) -> LifecycleStatus:
        engine = self._engine
        return LifecycleStatus(
            phase=self.phase,
            running=self._running,
            generation=self._generations.current,
            round=engine.market_state.round if engine is not None else None,
            schedule_pending=self._pending is not None,
        )

    async def wait_until_stopped(self, timeout: float | None = None) -> None:
        await asyncio.wait_for(self._idle.wait(), timeout)

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    def _conflict_reason(self) -> str | None:
        if self._starting:
            return "start already in progress"
        if self._running:
            return "simulation already running"
        if self._engine is not None or self._pending is not None:
            return "simulation not properly cleaned up"
        return None

    async def start(self) -> MarketEngine:
        """Start a new simulation. Raises ConflictError or InitializationError."""
        reason = self._conflict_reason()
        if reason is not None:
            logger.warning("Rejecting start request: %s", reason)
            raise ConflictError(f"{reason}. Stop the current simulation first")

        # lock before the first await
        self._starting = True
        self._abort_start = False
        logger.info("Start lock acquired")
        try:
            engine = await self._build_engine()
            if self._abort_start:
                raise InitializationError("stopped while starting")
            self._engine = engine
            self._active_participants = engine.participant_ids()
            self._running = True
            self.last_termination = None
            self._idle.clear()
            self._schedule_next(engine)
        except InitializationError:
            self._rollback_start()
            raise
        except asyncio.CancelledError:
            self._rollback_start()
            raise
        except Exception as exc:
            logger.exception("Failed to start simulation")
            self._rollback_start()
            raise InitializationError(str(exc) or type(exc).__name__) from exc
        finally:
            self._starting = False

        market = engine.market_state
        logger.info(
            "Simulation %d started: price $%.4f, inventory %d, %d participants",
            engine.generation, market.price, market.inventory, len(self._active_participants),
        )
        self._bus.publish(
            SimulationStartedEvent(
                generation=engine.generation,
                market=MarketStateOut.from_domain(market),
                participants=[ParticipantOut.from_domain(p) for p in engine.participants()],
            )
        )
        return engine

    async def _build_engine(self) -> MarketEngine:
        participants = self._participant_factory(self.config)
        pricing = PricingEngine(
            sensitivity=self.config.price_sensitivity,
            noise_band=self.config.price_noise,
            rng=self._rng,
        )
        engine = MarketEngine(
            self.config.market,
            participants,
            pricing=pricing,
            settlement=self._settlement,
            generation=self._generations.next(),
        )
        await engine.initialize_participants(self._load_balance, self.config.opening_balance)
        return engine

    async def _load_balance(self, participant: ParticipantState) -> float:
        get_balance = getattr(self._settlement, "get_balance", None)
        if get_balance is None:
            return self.config.opening_balance
        return float(await get_balance(participant.id))

    def _rollback_start(self) -> None:
        self._cancel_pending()
        self._running = False
        self._engine = None
        self._active_participants = []
        self._idle.set()

    def stop(self) -> bool:
        """Idempotent. Returns True if a simulation was active."""
        engine = self._engine
        was_active = (
            self._starting or self._running or engine is not None or self._pending is not None
        )
        if self._starting:
            self._abort_start = True
        self._teardown()
        if was_active:
            logger.info("Simulation stopped and state cleared")
            self._bus.publish(
                SimulationStoppedEvent(
                    final_round=engine.market_state.round if engine is not None else None
                )
            )
        return was_active

    async def shutdown(self, timeout: float = 5.0) -> None:
        """stop(), then give in-flight rounds a chance to drain."""
        self.stop()
        pending = [t for t in self._round_tasks if not t.done()]
        if not pending:
            return
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()

    def _teardown(self) -> None:
        self._running = False
        self._cancel_pending()
        self._engine = None
        self._active_participants = []
        self._idle.set()

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    # ------------------------------------------------------------------
    # Round loop
    # ------------------------------------------------------------------

    def _is_current(self, engine: MarketEngine) -> bool:
        return (
            self._running
            and self._engine is engine
            and engine.generation == self._generations.current
        )

    def _schedule_next(self, engine: MarketEngine) -> None:
        self._cancel_pending()
        loop = asyncio.get_running_loop()
        self._pending = loop.call_later(self.config.tick_interval_s, self._fire, engine)

    def _fire(self, engine: MarketEngine) -> None:
        if self._engine is engine:
            self._pending = None
        task = asyncio.get_running_loop().create_task(self._run_round(engine))
        self._round_tasks.add(task)
        task.add_done_callback(self._round_tasks.discard)

    async def _run_round(self, engine: MarketEngine) -> TickResult | None:
        if not self._is_current(engine):
            logger.info("Stale round for generation %d detected, exiting", engine.generation)
            return None

        try:
            result = await self._play_round(engine)
        except Exception:  # noqa: BLE001
            logger.exception("Round failed for generation %d", engine.generation)
            result = None

        if not self._is_current(engine):
            return result

        if result is not None:
            reason = self._termination_reason(result)
            if reason is not None:
                self._finish(engine, result, reason)
                return result

        self._schedule_next(engine)
        return result

    async def _play_round(self, engine: MarketEngine) -> TickResult | None:
        start = time.perf_counter()
        market = engine.market_state
        logger.info("Round %d starting at $%.4f", market.round + 1, market.price)

        decisions: dict[str, Decision] = {}
        for participant_id in list(self._active_participants):
            if not self._is_current(engine):
                logger.info("Simulation stopped during decisions, exiting round")
                return None
            participant = engine.get_participant(participant_id)
            if participant is None:
                continue
            decisions[participant_id] = await self._decide(participant, market)

        if not self._is_current(engine):
            logger.info("Simulation stopped before tick execution, exiting round")
            return None

        result = await engine.execute_tick(decisions, is_live=lambda: self._is_current(engine))
        if result is None:
            logger.info("Simulation stopped during settlement, round discarded")
            return None

        if self._is_current(engine):
            self._bus.publish(
                TickEvent(
                    round=result.round,
                    market=MarketStateOut.from_domain(result.market_state_after),
                    participants=[ParticipantOut.from_domain(p) for p in engine.participants()],
                    transactions=[TransactionOut.from_domain(t) for t in result.transactions],
                )
            )
        logger.debug("Round %d took %.0fms", result.round, elapsed_ms(start))
        return result

    async def _decide(self, participant: ParticipantState, market: MarketState) -> Decision:
        try:
            return await self._oracle.decide(participant, market)
        except OracleError as exc:
            logger.warning("%s: %s, waiting this round", participant.display_name, exc.message)
            return Decision.wait(f"Error: {exc.message}")
        except Exception as exc:  # noqa: BLE001
            logger.exception("Oracle raised for %s", participant.display_name)
            return Decision.wait(f"Error: {exc}")

    def _termination_reason(self, result: TickResult) -> TerminationReason | None:
        if result.market_state_after.inventory <= 0:
            return TerminationReason.INVENTORY_DEPLETED
        if self.config.max_rounds > 0 and result.round >= self.config.max_rounds:
            return TerminationReason.ROUND_LIMIT_REACHED
        return None

    def _finish(self, engine: MarketEngine, result: TickResult, reason: TerminationReason) -> None:
        final = result.market_state_after
        participants = engine.participants()
        self._teardown()
        self.last_termination = reason

        logger.info(
            "SIMULATION COMPLETE (%s): rounds=%d revenue=$%.2f price=$%.4f inventory=%d",
            reason.value, final.round, final.cumulative_revenue, final.price, final.inventory,
        )
        self._bus.publish(
            SimulationEndedEvent(
                reason=reason,
                final_round=final.round,
                final_revenue=final.cumulative_revenue,
                final_price=final.price,
                remaining_inventory=final.inventory,
                participants=[ParticipantOut.from_domain(p) for p in participants],
            )
        )
