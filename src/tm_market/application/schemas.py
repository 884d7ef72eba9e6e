"""Pydantic schemas for tm_market API responses and published events.

Domain dataclasses never leave the process; everything serialized goes
through one of these from_domain() conversions.
"""

from pydantic import BaseModel

from src.tm_market.domain.models import (
    ActionRecord,
    Decision,
    MarketState,
    ParticipantState,
    TickResult,
    Transaction,
)

# ---------------------------------------------------------------------------
# Market
# ---------------------------------------------------------------------------


class MarketStateOut(BaseModel):
    round: int
    price: float
    inventory: int
    cumulative_revenue: float
    last_updated: str

    @classmethod
    def from_domain(cls, m: MarketState) -> "MarketStateOut":
        return cls(
            round=m.round,
            price=m.price,
            inventory=m.inventory,
            cumulative_revenue=m.cumulative_revenue,
            last_updated=m.last_updated.isoformat(),
        )


class PricingOut(BaseModel):
    price: float
    price_per_unit: float
    currency: str = "USDC"
    product_id: str
    product_name: str = "Fresh Apple"
    is_live: bool


# ---------------------------------------------------------------------------
# Participants
# ---------------------------------------------------------------------------


class ActionRecordOut(BaseModel):
    round: int
    action: str
    quantity: int
    price: float | None
    note: str

    @classmethod
    def from_domain(cls, r: ActionRecord) -> "ActionRecordOut":
        return cls(
            round=r.round, action=r.action.value, quantity=r.quantity, price=r.price, note=r.note
        )


class StatsOut(BaseModel):
    total_spent: float
    total_bought: int
    avg_buy_price: float
    total_received: float
    total_sold: int
    realized_profit: float
    max_single_round_buy: int


class ParticipantOut(BaseModel):
    id: str
    display_name: str
    personality: str
    balance: float
    holdings: int
    max_spend_fraction: float
    max_sell_fraction: float
    threshold: float | None
    recent_prices: list[float]
    recent_actions: list[ActionRecordOut]
    stats: StatsOut
    last_round_seen: int

    @classmethod
    def from_domain(cls, p: ParticipantState) -> "ParticipantOut":
        s = p.stats
        return cls(
            id=p.id,
            display_name=p.display_name,
            personality=p.personality.value,
            balance=p.balance,
            holdings=p.holdings,
            max_spend_fraction=p.preferences.max_spend_fraction,
            max_sell_fraction=p.preferences.max_sell_fraction,
            threshold=p.preferences.threshold,
            recent_prices=list(p.recent_prices),
            recent_actions=[ActionRecordOut.from_domain(r) for r in p.recent_actions],
            stats=StatsOut(
                total_spent=s.total_spent,
                total_bought=s.total_bought,
                avg_buy_price=s.avg_buy_price,
                total_received=s.total_received,
                total_sold=s.total_sold,
                realized_profit=s.realized_profit,
                max_single_round_buy=s.max_single_round_buy,
            ),
            last_round_seen=p.last_round_seen,
        )


# ---------------------------------------------------------------------------
# Rounds
# ---------------------------------------------------------------------------


class DecisionOut(BaseModel):
    action: str
    quantity: int
    note: str

    @classmethod
    def from_domain(cls, d: Decision) -> "DecisionOut":
        return cls(action=d.action.value, quantity=d.quantity, note=d.note)


class TransactionOut(BaseModel):
    id: str
    round: int
    participant_id: str
    participant_name: str
    action: str
    quantity: int
    unit_price: float
    total_value: float
    note: str
    timestamp: str
    settlement_ref: str | None

    @classmethod
    def from_domain(cls, t: Transaction) -> "TransactionOut":
        return cls(
            id=t.id,
            round=t.round,
            participant_id=t.participant_id,
            participant_name=t.participant_name,
            action=t.action.value,
            quantity=t.quantity,
            unit_price=t.unit_price,
            total_value=t.total_value,
            note=t.note,
            timestamp=t.timestamp.isoformat(),
            settlement_ref=t.settlement_ref,
        )


class TickResultOut(BaseModel):
    round: int
    price_before: float
    price_after: float
    decisions: dict[str, DecisionOut]
    transactions: list[TransactionOut]
    market: MarketStateOut
    timestamp: str

    @classmethod
    def from_domain(cls, r: TickResult) -> "TickResultOut":
        return cls(
            round=r.round,
            price_before=r.price_before,
            price_after=r.price_after,
            decisions={pid: DecisionOut.from_domain(d) for pid, d in r.sanitized_decisions.items()},
            transactions=[TransactionOut.from_domain(t) for t in r.transactions],
            market=MarketStateOut.from_domain(r.market_state_after),
            timestamp=r.timestamp.isoformat(),
        )


class MarketSnapshotResponse(BaseModel):
    market: MarketStateOut
    participants: list[ParticipantOut]
    history: list[TickResultOut]
    is_running: bool
