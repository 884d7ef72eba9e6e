"""Offline policy oracle: fixed personality rules instead of a model call.

Used in dev mode and tests. Decisions are a pure function of the participant
snapshot and market state, so runs with a seeded pricing engine are repeatable.
"""

import math

from src.tm_common.enums import Action, Personality
from src.tm_market.domain.models import Decision, MarketState, ParticipantState
from src.tm_market.domain.sanitizer import max_affordable
from src.tm_pricing.engine.pricing import PricingEngine


def _uptrend(prices: list[float], rounds: int) -> bool:
    """True if the last *rounds* moves were all increases."""
    if len(prices) < rounds + 1:
        return False
    tail = prices[-(rounds + 1):]
    return all(b > a for a, b in zip(tail, tail[1:]))


def _fraction_of(holdings: int, fraction: float) -> int:
    return max(1, math.ceil(holdings * fraction)) if holdings > 0 else 0


class RuleBasedOracle:
    async def decide(self, participant: ParticipantState, market: MarketState) -> Decision:
        if participant.personality == Personality.FRUGAL:
            return self._frugal(participant, market)
        if participant.personality == Personality.IMPULSIVE:
            return self._impulsive(participant, market)
        return self._skeptical(participant, market)

    @staticmethod
    def _budget_qty(p: ParticipantState, price: float, share: float) -> int:
        return int(max_affordable(p.balance, p.preferences.max_spend_fraction, price) * share)

    def _frugal(self, p: ParticipantState, market: MarketState) -> Decision:
        price = market.price
        avg = PricingEngine.rolling_average(list(p.recent_prices))
        threshold = p.preferences.threshold
        cheap = (threshold is not None and price <= threshold) or (avg > 0 and price <= 0.98 * avg)
        if not cheap:
            return Decision.wait(f"price ${price:.4f} not a bargain")

        last = p.last_action
        if last and last.action == Action.BUY and p.recent_prices and price > p.recent_prices[-1]:
            return Decision.wait("bought last round and price rose, waiting")

        qty = self._budget_qty(p, price, 0.5)
        if qty <= 0:
            return Decision.wait("budget too small at this price")
        return Decision(Action.BUY, qty, f"price ${price:.4f} is a good deal")

    def _impulsive(self, p: ParticipantState, market: MarketState) -> Decision:
        price = market.price
        seen = list(p.recent_prices)
        avg_cost = p.stats.avg_buy_price

        if p.holdings > 0 and avg_cost > 0 and price >= avg_cost * 1.015:
            return Decision(Action.SELL, _fraction_of(p.holdings, 0.05), "quick profit, selling!")
        if p.holdings > 0 and seen and price < max(seen) * 0.992:
            return Decision(Action.SELL, _fraction_of(p.holdings, 0.06), "it's crashing, panic sell!")

        dipped = bool(seen) and price < seen[-1]
        qty = self._budget_qty(p, price, 1.0 if dipped else 0.6)
        if qty <= 0:
            return Decision.wait("out of money")
        return Decision(Action.BUY, qty, "cheaper! all in!" if dipped else "can't resist, buying!")

    def _skeptical(self, p: ParticipantState, market: MarketState) -> Decision:
        price = market.price
        seen = list(p.recent_prices)
        if len(seen) < 2:
            return Decision.wait("not enough data yet")
        avg = PricingEngine.rolling_average(seen)
        trend = seen + [price]

        if p.holdings > 0:
            if price > avg * 1.005 and _uptrend(trend, 3):
                return Decision(
                    Action.SELL, _fraction_of(p.holdings, 0.055),
                    f"price ${price:.4f} > avg ${avg:.4f}, uptrend confirmed",
                )
            if price > avg * 1.002 and _uptrend(trend, 2):
                return Decision(
                    Action.SELL, _fraction_of(p.holdings, 0.035), "moderate uptrend, trimming"
                )

        if price < avg * 0.95:
            share, note = 1.0, "high confidence"
        elif price < avg * 0.98:
            share, note = 0.7, "good signal"
        elif price <= avg * 1.02:
            share, note = 0.3, "neutral, small position"
        else:
            return Decision.wait(f"price ${price:.4f} above avg ${avg:.4f}, waiting for pullback")

        qty = self._budget_qty(p, price, share)
        if qty <= 0:
            return Decision.wait("budget too small")
        return Decision(Action.BUY, qty, f"price ${price:.4f} vs avg ${avg:.4f}, {note}")
