"""Tests for the settlement adapters."""
import json
import random
from collections.abc import Callable

import httpx
import pytest

from src.tm_common.enums import Action
from src.tm_common.errors import SettlementError
from src.tm_settlement.infrastructure.http_settlement import HttpSettlementService
from src.tm_settlement.infrastructure.simulated import SimulatedSettlementService

BASE_URL = "https://pay.test"


def _service(handler: Callable[[httpx.Request], httpx.Response]) -> HttpSettlementService:
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return HttpSettlementService(BASE_URL, client=client)


class TestSimulatedSettlement:
    async def test_accepts_by_default(self) -> None:
        service = SimulatedSettlementService()
        receipt = await service.settle("buyer_1", Action.BUY, 3, 0.02)
        assert receipt.success
        assert receipt.reference is not None
        assert receipt.reference.startswith("stl_")
        assert service.calls == [("buyer_1", Action.BUY, 3, 0.02)]

    async def test_failing_participant(self) -> None:
        service = SimulatedSettlementService(failing_participants={"buyer_1"})
        receipt = await service.settle("buyer_1", Action.SELL, 1, 0.02)
        assert not receipt.success
        assert receipt.error is not None

    async def test_failure_rate_one_always_fails(self) -> None:
        service = SimulatedSettlementService(failure_rate=1.0, rng=random.Random(0))
        results = [await service.settle("b", Action.BUY, 1, 0.02) for _ in range(10)]
        assert not any(r.success for r in results)

    def test_invalid_failure_rate(self) -> None:
        with pytest.raises(ValueError):
            SimulatedSettlementService(failure_rate=1.5)

    async def test_balances(self) -> None:
        service = SimulatedSettlementService(balances={"a": 3.0}, default_balance=10.0)
        assert await service.get_balance("a") == 3.0
        assert await service.get_balance("b") == 10.0

    async def test_unknown_balance_without_default(self) -> None:
        with pytest.raises(KeyError):
            await SimulatedSettlementService().get_balance("nobody")


class TestHttpSettlement:
    async def test_successful_settlement(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True, "reference": "ref-1"})

        receipt = await _service(handler).settle("buyer_1", Action.BUY, 4, 0.025)
        assert receipt.success
        assert receipt.reference == "ref-1"

        assert seen[0].url.path == "/settlements"
        body = json.loads(seen[0].content)
        assert body["participant_id"] == "buyer_1"
        assert body["action"] == "buy"
        assert body["quantity"] == 4
        assert body["total"] == pytest.approx(0.1)

    async def test_rejected_settlement(self) -> None:
        service = _service(
            lambda r: httpx.Response(200, json={"success": False, "error": "insufficient funds"})
        )
        receipt = await service.settle("buyer_1", Action.BUY, 4, 0.025)
        assert not receipt.success
        assert receipt.error == "insufficient funds"

    async def test_http_error_status_is_failed_receipt(self) -> None:
        receipt = await _service(lambda r: httpx.Response(503)).settle("b", Action.SELL, 1, 0.02)
        assert not receipt.success
        assert receipt.error == "HTTP 503"

    async def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(SettlementError) as exc_info:
            await _service(handler).settle("b", Action.BUY, 1, 0.02)
        assert exc_info.value.code == 3001
        assert exc_info.value.participant_id == "b"

    async def test_non_object_body_raises(self) -> None:
        with pytest.raises(SettlementError, match="unexpected response shape"):
            await _service(lambda r: httpx.Response(200, json=[1])).settle("b", Action.BUY, 1, 0.02)

    async def test_get_balance(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/balances/buyer_3"
            return httpx.Response(200, json={"balance": 12.5})

        assert await _service(handler).get_balance("buyer_3") == 12.5

    async def test_get_balance_failure(self) -> None:
        with pytest.raises(SettlementError, match="balance lookup failed"):
            await _service(lambda r: httpx.Response(404)).get_balance("buyer_3")
