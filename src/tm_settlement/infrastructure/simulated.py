"""In-process settlement for dev mode and tests — no real money moves."""

import logging
import random

from src.tm_common.enums import Action
from src.tm_common.id_generator import generate_settlement_ref
from src.tm_settlement.domain.protocol import SettlementReceipt

logger = logging.getLogger(__name__)


class SimulatedSettlementService:
    """Accepts every transfer unless told to fail.

    failure_rate: probability in [0, 1] that any call is rejected.
    failing_participants: ids whose transfers are always rejected.
    balances: opening balances reported by get_balance().
    default_balance: reported for ids missing from balances; when None those ids
    raise KeyError and the caller falls back to its own default.
    """

    def __init__(
        self,
        failure_rate: float = 0.0,
        failing_participants: set[str] | None = None,
        balances: dict[str, float] | None = None,
        default_balance: float | None = None,
        rng: random.Random | None = None,
    ) -> None:
        if not (0.0 <= failure_rate <= 1.0):
            raise ValueError(f"failure_rate must be in [0, 1], got {failure_rate}")
        self.failure_rate = failure_rate
        self.failing_participants = set(failing_participants or ())
        self.balances = dict(balances or {})
        self.default_balance = default_balance
        self.calls: list[tuple[str, Action, int, float]] = []
        self._rng = rng or random.Random()

    async def settle(
        self, participant_id: str, action: Action, quantity: int, unit_price: float
    ) -> SettlementReceipt:
        self.calls.append((participant_id, action, quantity, unit_price))
        if participant_id in self.failing_participants:
            return SettlementReceipt.failed(f"transfers disabled for {participant_id}")
        if self.failure_rate and self._rng.random() < self.failure_rate:
            return SettlementReceipt.failed("simulated settlement failure")
        ref = generate_settlement_ref()
        logger.debug(
            "[DEV MODE] %s %s %d @ $%.4f settled as %s",
            participant_id, action.value, quantity, unit_price, ref,
        )
        return SettlementReceipt.ok(ref)

    async def get_balance(self, participant_id: str) -> float:
        if participant_id in self.balances:
            return self.balances[participant_id]
        if self.default_balance is None:
            raise KeyError(participant_id)
        return self.default_balance
