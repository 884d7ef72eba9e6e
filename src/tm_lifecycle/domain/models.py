"""Domain models for tm_lifecycle — pure dataclasses, no business logic."""

from dataclasses import dataclass

from config.settings import Settings
from src.tm_common.enums import LifecyclePhase
from src.tm_market.domain.models import MarketConfig
from src.tm_pricing.domain.models import PriceBounds


@dataclass(frozen=True)
class SimulationConfig:
    market: MarketConfig
    tick_interval_s: float = 5.0
    max_rounds: int = 0  # 0 = unlimited
    opening_balance: float = 10.0  # fallback when a balance can't be loaded
    default_sell_fraction: float = 0.08
    price_sensitivity: float = 0.05
    price_noise: float = 0.01

    def __post_init__(self) -> None:
        if self.tick_interval_s < 0:
            raise ValueError(f"tick_interval_s must be >= 0, got {self.tick_interval_s}")
        if self.max_rounds < 0:
            raise ValueError(f"max_rounds must be >= 0, got {self.max_rounds}")

    @classmethod
    def from_settings(cls, s: Settings) -> "SimulationConfig":
        return cls(
            market=MarketConfig(
                initial_price=s.INITIAL_PRICE,
                initial_inventory=s.INITIAL_INVENTORY,
                bounds=PriceBounds(s.MIN_PRICE, s.MAX_PRICE),
                baseline_flow=s.BASELINE_FLOW,
                history_limit=s.HISTORY_LIMIT,
                recent_window=s.RECENT_WINDOW,
            ),
            tick_interval_s=s.TICK_INTERVAL_MS / 1000,
            max_rounds=s.MAX_ROUNDS,
            opening_balance=s.INITIAL_BALANCE,
            default_sell_fraction=s.DEFAULT_SELL_FRACTION,
            price_sensitivity=s.PRICE_SENSITIVITY,
            price_noise=s.PRICE_NOISE,
        )


@dataclass(frozen=True)
class LifecycleStatus:
    phase: LifecyclePhase
    running: bool
    generation: int
    round: int | None
    schedule_pending: bool
