"""Settlement service contract — how money/goods transfers get executed."""

from dataclasses import dataclass
from typing import Protocol

from src.tm_common.enums import Action


@dataclass(frozen=True)
class SettlementReceipt:
    success: bool
    reference: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, reference: str | None = None) -> "SettlementReceipt":
        return cls(success=True, reference=reference)

    @classmethod
    def failed(cls, error: str) -> "SettlementReceipt":
        return cls(success=False, error=error)


class SettlementServiceProtocol(Protocol):
    async def settle(
        self, participant_id: str, action: Action, quantity: int, unit_price: float
    ) -> SettlementReceipt: ...


class BalanceSourceProtocol(Protocol):
    """Optional capability: report a participant's spendable balance at start."""

    async def get_balance(self, participant_id: str) -> float: ...
