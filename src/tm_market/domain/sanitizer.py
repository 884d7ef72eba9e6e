"""Decision sanitization — clamp raw decisions to what state allows.

The returned map is the only input MarketEngine applies. Rules per entry:
  - unknown participant id: dropped
  - quantity: floored, negative/non-finite -> 0
  - buy:  min(qty, affordable within max_spend_fraction, inventory); 0 -> wait
  - sell: min(qty, holdings, ceil(holdings * max_sell_fraction)); 0 -> wait
  - anything else: wait with quantity 0

Pure and deterministic; sanitizing an already-sanitized map returns it unchanged.
"""

import math
from collections.abc import Mapping

from src.tm_common.enums import Action
from src.tm_market.domain.models import Decision, MarketState, ParticipantState


def normalize_quantity(quantity: object) -> int:
    try:
        value = float(quantity)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(value) or value <= 0:
        return 0
    return int(math.floor(value))


def max_affordable(balance: float, spend_fraction: float, price: float) -> int:
    """Largest integer quantity whose cost fits in balance * spend_fraction."""
    if price <= 0 or balance <= 0:
        return 0
    budget = balance * spend_fraction
    qty = int(math.floor(budget / price))
    # float division can round up by one unit at the boundary
    while qty > 0 and qty * price > balance:
        qty -= 1
    return max(qty, 0)


def max_sellable(holdings: int, sell_fraction: float) -> int:
    if holdings <= 0:
        return 0
    return min(holdings, int(math.ceil(holdings * sell_fraction)))


def sanitize_decision(
    decision: Decision, participant: ParticipantState, market: MarketState
) -> Decision:
    qty = normalize_quantity(decision.quantity)
    action = decision.action if isinstance(decision.action, Action) else Action.parse(decision.action)
    note = decision.note or ""
    prefs = participant.preferences

    if action == Action.BUY:
        qty = min(
            qty,
            max_affordable(participant.balance, prefs.max_spend_fraction, market.price),
            market.inventory,
        )
    elif action == Action.SELL:
        qty = min(qty, max_sellable(participant.holdings, prefs.max_sell_fraction))
    else:
        qty = 0

    if qty <= 0:
        return Decision(action=Action.WAIT, quantity=0, note=note)
    return Decision(action=action, quantity=qty, note=note)


def sanitize_decisions(
    raw: Mapping[str, Decision],
    registry: Mapping[str, ParticipantState],
    market: MarketState,
) -> dict[str, Decision]:
    sanitized: dict[str, Decision] = {}
    for participant_id, decision in raw.items():
        participant = registry.get(participant_id)
        if participant is None:
            continue
        sanitized[participant_id] = sanitize_decision(decision, participant, market)
    return sanitized
