"""MarketEngine — owns market state and the participant registry for one simulation.

execute_tick() is serialized per instance by an asyncio.Lock. While a round is
in flight the engine works on its private state; readers only ever see the
snapshot published at the end of the previous round (or at construction), so
a concurrent read observes the market either just before or just after a round.
"""

import asyncio
import copy
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import replace
from types import MappingProxyType

from src.tm_common.datetime_utils import utc_now
from src.tm_common.enums import Action
from src.tm_common.errors import SettlementError
from src.tm_common.id_generator import generate_transaction_id
from src.tm_market.domain.invariants import verify_invariants_after_tick
from src.tm_market.domain.models import (
    ActionRecord,
    Decision,
    MarketConfig,
    MarketState,
    ParticipantState,
    TickResult,
    Transaction,
)
from src.tm_market.domain.sanitizer import max_affordable, sanitize_decisions
from src.tm_pricing.engine.pricing import PricingEngine
from src.tm_settlement.domain.protocol import SettlementReceipt, SettlementServiceProtocol

logger = logging.getLogger(__name__)

BalanceLoader = Callable[[ParticipantState], Awaitable[float]]


class MarketEngine:
    def __init__(
        self,
        config: MarketConfig,
        participants: Iterable[ParticipantState],
        pricing: PricingEngine | None = None,
        settlement: SettlementServiceProtocol | None = None,
        generation: int = 0,
    ) -> None:
        self.config = config
        self.generation = generation
        self._pricing = pricing or PricingEngine()
        self._settlement = settlement
        self._lock = asyncio.Lock()

        self._market = MarketState(
            round=0,
            price=config.initial_price,
            inventory=config.initial_inventory,
        )
        # dict preserves registration order: the fixed application order
        self._participants: dict[str, ParticipantState] = {}
        for p in participants:
            if p.id in self._participants:
                raise ValueError(f"Duplicate participant id: {p.id}")
            p.recent_prices = deque(p.recent_prices, maxlen=config.recent_window)
            p.recent_actions = deque(p.recent_actions, maxlen=config.recent_window)
            self._participants[p.id] = p

        self._history: deque[TickResult] = deque(maxlen=config.history_limit)
        self._published_participants: tuple[ParticipantState, ...] = ()
        self._publish()

    # ------------------------------------------------------------------
    # Read surface (copy-on-read)
    # ------------------------------------------------------------------

    @property
    def market_state(self) -> MarketState:
        return self._published_market

    @property
    def in_round(self) -> bool:
        return self._lock.locked()

    def participants(self) -> list[ParticipantState]:
        return [p.snapshot() for p in self._published_participants]

    def get_participant(self, participant_id: str) -> ParticipantState | None:
        for p in self._published_participants:
            if p.id == participant_id:
                return p.snapshot()
        return None

    def participant_ids(self) -> list[str]:
        return [p.id for p in self._published_participants]

    def tick_history(self, limit: int | None = None) -> list[TickResult]:
        history = list(self._history)
        if limit is not None:
            history = history[-limit:] if limit > 0 else []
        return history

    def _publish(self) -> None:
        self._published_market = self._market
        self._published_participants = tuple(
            copy.deepcopy(p) for p in self._participants.values()
        )

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    async def initialize_participants(self, load_balance: BalanceLoader, fallback: float) -> None:
        """Set each participant's opening balance; fall back on loader failure."""
        async with self._lock:
            if self._market.round != 0:
                raise RuntimeError("Participants can only be initialized before the first round")
            for p in self._participants.values():
                try:
                    balance = float(await load_balance(p))
                    if balance < 0:
                        raise ValueError(f"negative balance {balance}")
                except Exception as exc:  # noqa: BLE001
                    logger.warning(
                        "Balance load failed for %s (%s); using fallback %.2f",
                        p.display_name, exc, fallback,
                    )
                    balance = fallback
                p.balance = balance
                logger.info("Opening balance %s: $%.4f", p.display_name, balance)
            self._publish()

    # ------------------------------------------------------------------
    # Round execution
    # ------------------------------------------------------------------

    async def execute_tick(
        self,
        decisions: Mapping[str, Decision],
        *,
        sanitized: bool = False,
        is_live: Callable[[], bool] | None = None,
    ) -> TickResult | None:
        """Run one round. Returns the immutable TickResult.

        ``is_live`` is consulted before each participant is applied (and so
        before its settlement call) and once more before the round commits.
        When it reports False the round is abandoned: the remaining
        participants are skipped, the pre-round state is restored, nothing is
        recorded or published, and None is returned. A round that raises is
        restored the same way.
        """
        async with self._lock:
            market_before = self._market
            participants_before = copy.deepcopy(self._participants)
            result: TickResult | None = None
            try:
                result = await self._execute_tick_inner(decisions, sanitized, is_live)
            finally:
                if result is None:
                    self._market = market_before
                    self._participants = participants_before
            return result

    async def _execute_tick_inner(
        self,
        decisions: Mapping[str, Decision],
        sanitized: bool,
        is_live: Callable[[], bool] | None,
    ) -> TickResult | None:
        round_no = self._market.round + 1
        self._market = replace(self._market, round=round_no)
        price = self._market.price

        authorized = (
            dict(decisions)
            if sanitized
            else sanitize_decisions(decisions, self._participants, self._market)
        )

        transactions: list[Transaction] = []
        total_buy = 0
        total_sell = 0

        for pid, participant in self._participants.items():
            if is_live is not None and not is_live():
                logger.info(
                    "Round %d abandoned before %s, simulation no longer active",
                    round_no, participant.display_name,
                )
                return None
            decision = authorized.get(pid) or Decision.wait("no decision")

            if decision.action == Action.BUY:
                tx = await self._apply_buy(participant, decision, round_no, price)
                if tx is not None:
                    transactions.append(tx)
                    total_buy += tx.quantity
            elif decision.action == Action.SELL:
                tx = await self._apply_sell(participant, decision, round_no, price)
                if tx is not None:
                    transactions.append(tx)
                    total_sell += tx.quantity
            else:
                tx = None

            if tx is not None:
                record = ActionRecord(round_no, tx.action, tx.quantity, price, decision.note)
            elif decision.action in (Action.BUY, Action.SELL):
                record = ActionRecord(
                    round_no, Action.WAIT, 0, None, f"{decision.action.value} skipped: {decision.note}"
                )
            else:
                record = ActionRecord(round_no, Action.WAIT, 0, None, decision.note)

            participant.recent_actions.append(record)
            participant.recent_prices.append(price)
            participant.last_round_seen = round_no

        if is_live is not None and not is_live():
            logger.info("Round %d abandoned after settlement, simulation no longer active", round_no)
            return None

        net_flow = total_buy - total_sell
        price_after = self._pricing.compute_price(
            net_flow, self.config.baseline_flow, price, self.config.bounds
        )
        self._market = replace(self._market, price=price_after, last_updated=utc_now())

        verify_invariants_after_tick(
            self._market,
            self._participants.values(),
            self.config.bounds,
            authorized,
            transactions,
        )

        result = TickResult(
            round=round_no,
            price_before=price,
            price_after=price_after,
            sanitized_decisions=MappingProxyType(dict(authorized)),
            transactions=tuple(transactions),
            market_state_after=self._market,
            timestamp=utc_now(),
        )
        self._history.append(result)
        self._publish()

        logger.info(
            "Round %d: price %.4f -> %.4f, net_flow=%d, %d transactions, inventory=%d",
            round_no, price, price_after, net_flow, len(transactions), self._market.inventory,
        )
        return result

    async def _apply_buy(
        self, p: ParticipantState, decision: Decision, round_no: int, price: float
    ) -> Transaction | None:
        qty = min(
            decision.quantity,
            self._market.inventory,
            max_affordable(p.balance, 1.0, price),
        )
        if qty <= 0:
            return None
        cost = qty * price

        market_before = self._market
        balance_before, holdings_before = p.balance, p.holdings
        stats_before = replace(p.stats)

        p.balance -= cost
        p.holdings += qty
        p.stats.total_spent += cost
        p.stats.total_bought += qty
        p.stats.avg_buy_price = p.stats.total_spent / p.stats.total_bought
        p.stats.max_single_round_buy = max(p.stats.max_single_round_buy, qty)
        p.stats.realized_profit = p.stats.total_received - p.stats.total_spent
        self._market = replace(
            self._market,
            inventory=self._market.inventory - qty,
            cumulative_revenue=self._market.cumulative_revenue + cost,
        )

        committed = False
        try:
            receipt = await self._attempt_settlement(p, Action.BUY, qty, price)
            committed = receipt.success
        finally:
            if not committed:
                self._market = market_before
                p.balance, p.holdings, p.stats = balance_before, holdings_before, stats_before
        if not committed:
            return None
        return self._record(p, Action.BUY, qty, price, decision.note, round_no, receipt)

    async def _apply_sell(
        self, p: ParticipantState, decision: Decision, round_no: int, price: float
    ) -> Transaction | None:
        qty = min(decision.quantity, p.holdings)
        if qty <= 0:
            return None
        proceeds = qty * price

        market_before = self._market
        balance_before, holdings_before = p.balance, p.holdings
        stats_before = replace(p.stats)

        p.balance += proceeds
        p.holdings -= qty
        p.stats.total_received += proceeds
        p.stats.total_sold += qty
        p.stats.realized_profit = p.stats.total_received - p.stats.total_spent
        self._market = replace(
            self._market,
            inventory=self._market.inventory + qty,
            cumulative_revenue=self._market.cumulative_revenue - proceeds,
        )

        committed = False
        try:
            receipt = await self._attempt_settlement(p, Action.SELL, qty, price)
            committed = receipt.success
        finally:
            if not committed:
                self._market = market_before
                p.balance, p.holdings, p.stats = balance_before, holdings_before, stats_before
        if not committed:
            return None
        return self._record(p, Action.SELL, qty, price, decision.note, round_no, receipt)

    async def _attempt_settlement(
        self, p: ParticipantState, action: Action, qty: int, price: float
    ) -> SettlementReceipt:
        """Settle once; any failure becomes a failed receipt (never retried)."""
        if self._settlement is None:
            return SettlementReceipt.ok()
        try:
            receipt = await self._settlement.settle(p.id, action, qty, price)
        except SettlementError as exc:
            receipt = SettlementReceipt.failed(exc.message)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Settlement raised for %s", p.display_name)
            receipt = SettlementReceipt.failed(str(exc) or type(exc).__name__)
        if not receipt.success:
            logger.warning(
                "Settlement rejected %s %d @ %.4f for %s: %s, rolled back",
                action.value, qty, price, p.display_name, receipt.error,
            )
        return receipt

    @staticmethod
    def _record(
        p: ParticipantState,
        action: Action,
        qty: int,
        price: float,
        note: str,
        round_no: int,
        receipt: SettlementReceipt,
    ) -> Transaction:
        return Transaction(
            id=generate_transaction_id(),
            round=round_no,
            participant_id=p.id,
            participant_name=p.display_name,
            action=action,
            quantity=qty,
            unit_price=price,
            total_value=qty * price,
            note=note,
            timestamp=utc_now(),
            settlement_ref=receipt.reference,
        )
