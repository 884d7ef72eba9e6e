"""Market invariant verification after each tick."""

import logging
from collections.abc import Iterable, Mapping

from src.tm_market.domain.models import Decision, MarketState, ParticipantState, Transaction
from src.tm_pricing.domain.models import PriceBounds

logger = logging.getLogger(__name__)


def verify_invariants_after_tick(
    market: MarketState,
    participants: Iterable[ParticipantState],
    bounds: PriceBounds,
    authorized: Mapping[str, Decision],
    transactions: Iterable[Transaction],
) -> None:
    """Raise AssertionError if any post-tick invariant is violated.

    INV-1: inventory >= 0
    INV-2: min_price <= price <= max_price
    INV-3: every participant has balance >= 0 and holdings >= 0
    INV-4: no applied quantity exceeds what sanitization authorized
    """
    assert market.inventory >= 0, f"INV-1 violated: inventory={market.inventory}"
    assert bounds.contains(market.price), (
        f"INV-2 violated: price={market.price} outside "
        f"[{bounds.min_price}, {bounds.max_price}]"
    )

    for p in participants:
        assert p.balance >= 0, f"INV-3 violated: {p.id} balance={p.balance}"
        assert p.holdings >= 0, f"INV-3 violated: {p.id} holdings={p.holdings}"

    for tx in transactions:
        allowed = authorized.get(tx.participant_id)
        assert allowed is not None and allowed.action == tx.action, (
            f"INV-4 violated: {tx.participant_id} applied {tx.action.value} without authorization"
        )
        assert tx.quantity <= allowed.quantity, (
            f"INV-4 violated: {tx.participant_id} applied {tx.quantity} > authorized "
            f"{allowed.quantity}"
        )

    logger.debug(
        "Invariants OK: round=%d, price=%.6f, inventory=%d",
        market.round, market.price, market.inventory,
    )
