"""Domain models for tm_market — pure dataclasses, no business logic."""

import copy
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

from src.tm_common.datetime_utils import utc_now
from src.tm_common.enums import Action, Personality
from src.tm_pricing.domain.models import PriceBounds

RECENT_WINDOW = 10


@dataclass(frozen=True)
class MarketConfig:
    initial_price: float
    initial_inventory: int
    bounds: PriceBounds
    baseline_flow: float = 3.0
    history_limit: int = 100
    recent_window: int = RECENT_WINDOW

    def __post_init__(self) -> None:
        if self.initial_inventory < 0:
            raise ValueError(f"initial_inventory must be >= 0, got {self.initial_inventory}")
        if not self.bounds.contains(self.initial_price):
            raise ValueError(
                f"initial_price {self.initial_price} outside "
                f"[{self.bounds.min_price}, {self.bounds.max_price}]"
            )
        if self.history_limit < 1 or self.recent_window < 1:
            raise ValueError("history_limit and recent_window must be >= 1")


@dataclass(frozen=True)
class MarketState:
    """Replaced (never mutated) by MarketEngine, so any reference is a snapshot."""

    round: int
    price: float
    inventory: int
    cumulative_revenue: float = 0.0
    last_updated: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class Preferences:
    max_spend_fraction: float
    max_sell_fraction: float
    threshold: float | None = None

    def __post_init__(self) -> None:
        if not (0 < self.max_spend_fraction <= 1):
            raise ValueError(f"max_spend_fraction must be in (0, 1], got {self.max_spend_fraction}")
        if not (0 < self.max_sell_fraction <= 1):
            raise ValueError(f"max_sell_fraction must be in (0, 1], got {self.max_sell_fraction}")


@dataclass
class CumulativeStats:
    total_spent: float = 0.0
    total_bought: int = 0
    avg_buy_price: float = 0.0
    total_received: float = 0.0
    total_sold: int = 0
    realized_profit: float = 0.0
    max_single_round_buy: int = 0


@dataclass(frozen=True)
class ActionRecord:
    """One entry of a participant's recent-actions window."""

    round: int
    action: Action
    quantity: int
    price: float | None
    note: str


@dataclass
class ParticipantState:
    id: str
    display_name: str
    personality: Personality
    balance: float
    holdings: int
    preferences: Preferences
    recent_prices: deque[float] = field(default_factory=lambda: deque(maxlen=RECENT_WINDOW))
    recent_actions: deque[ActionRecord] = field(
        default_factory=lambda: deque(maxlen=RECENT_WINDOW)
    )
    stats: CumulativeStats = field(default_factory=CumulativeStats)
    last_round_seen: int = 0

    def snapshot(self) -> "ParticipantState":
        return copy.deepcopy(self)

    @property
    def last_action(self) -> ActionRecord | None:
        return self.recent_actions[-1] if self.recent_actions else None


@dataclass(frozen=True)
class Decision:
    action: Action
    quantity: int = 0
    note: str = ""

    @classmethod
    def wait(cls, note: str = "") -> "Decision":
        return cls(action=Action.WAIT, quantity=0, note=note)


@dataclass(frozen=True)
class Transaction:
    id: str
    round: int
    participant_id: str
    participant_name: str
    action: Action
    quantity: int
    unit_price: float
    total_value: float
    note: str
    timestamp: datetime
    settlement_ref: str | None = None


@dataclass(frozen=True)
class TickResult:
    round: int
    price_before: float
    price_after: float
    sanitized_decisions: Mapping[str, Decision]
    transactions: tuple[Transaction, ...]
    market_state_after: MarketState
    timestamp: datetime

    @property
    def buy_quantity(self) -> int:
        return sum(t.quantity for t in self.transactions if t.action == Action.BUY)

    @property
    def sell_quantity(self) -> int:
        return sum(t.quantity for t in self.transactions if t.action == Action.SELL)
