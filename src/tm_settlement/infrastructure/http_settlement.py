"""HTTP settlement adapter — forwards transfers to an external payment service.

Wire format (JSON):
    POST {base_url}/settlements
        {"participant_id", "action", "quantity", "unit_price", "total", "memo"}
    -> {"success": bool, "reference": str | null, "error": str | null}

    GET {base_url}/balances/{participant_id}
    -> {"balance": float}
"""

import logging

import httpx

from src.tm_common.enums import Action
from src.tm_common.errors import SettlementError
from src.tm_settlement.domain.protocol import SettlementReceipt

logger = logging.getLogger(__name__)


class HttpSettlementService:
    def __init__(
        self,
        base_url: str,
        timeout_s: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout_s)
        self._owns_client = client is None

    async def settle(
        self, participant_id: str, action: Action, quantity: int, unit_price: float
    ) -> SettlementReceipt:
        total = quantity * unit_price
        payload = {
            "participant_id": participant_id,
            "action": action.value,
            "quantity": quantity,
            "unit_price": unit_price,
            "total": total,
            "memo": f"{participant_id}: {action.value} {quantity} @ ${unit_price:.4f}/unit",
        }
        try:
            resp = await self._client.post("/settlements", json=payload)
        except httpx.HTTPError as exc:
            raise SettlementError(participant_id, f"transport error: {exc}") from exc

        if not resp.is_success:
            return SettlementReceipt.failed(f"HTTP {resp.status_code}")
        try:
            body = resp.json()
        except ValueError as exc:
            raise SettlementError(participant_id, "invalid JSON response") from exc
        if not isinstance(body, dict):
            raise SettlementError(participant_id, "unexpected response shape")

        if not body.get("success"):
            return SettlementReceipt.failed(body.get("error") or "rejected")
        logger.info(
            "Settled %s %d @ $%.4f for %s (ref=%s)",
            action.value, quantity, unit_price, participant_id, body.get("reference"),
        )
        return SettlementReceipt.ok(body.get("reference"))

    async def get_balance(self, participant_id: str) -> float:
        try:
            resp = await self._client.get(f"/balances/{participant_id}")
            resp.raise_for_status()
            return float(resp.json()["balance"])
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as exc:
            raise SettlementError(participant_id, f"balance lookup failed: {exc}") from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
