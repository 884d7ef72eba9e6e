"""LLM-backed policy oracle (Anthropic Messages API over httpx).

Only decides; it is never given tools that move money. Every failure mode
(transport, HTTP status, malformed body, unparseable decision) surfaces as
OracleError so the lifecycle can treat it as a wait for the round.
"""

import logging

import httpx

from src.tm_common.errors import OracleError
from src.tm_market.domain.models import Decision, MarketState, ParticipantState
from src.tm_participants.domain.parser import DecisionParseError, parse_decision
from src.tm_participants.domain.prompts import market_prompt, system_prompt

logger = logging.getLogger(__name__)

_API_VERSION = "2023-06-01"


class LLMPolicyOracle:
    def __init__(
        self,
        api_url: str,
        api_key: str,
        model: str,
        temperature: float = 0.4,
        timeout_s: float = 30.0,
        max_tokens: int = 512,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_url = api_url
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_client = client is None
        self._headers = {
            "x-api-key": api_key,
            "anthropic-version": _API_VERSION,
            "content-type": "application/json",
        }

    async def decide(self, participant: ParticipantState, market: MarketState) -> Decision:
        payload = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            "system": system_prompt(participant),
            "messages": [{"role": "user", "content": market_prompt(participant, market)}],
        }
        try:
            resp = await self._client.post(self._api_url, json=payload, headers=self._headers)
            resp.raise_for_status()
            body = resp.json()
        except httpx.HTTPStatusError as exc:
            raise OracleError(participant.id, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise OracleError(participant.id, f"transport error: {exc}") from exc
        except ValueError as exc:
            raise OracleError(participant.id, "invalid JSON response") from exc
        if not isinstance(body, dict):
            raise OracleError(participant.id, "unexpected response shape")

        text = "".join(
            block.get("text", "")
            for block in body.get("content", [])
            if isinstance(block, dict) and block.get("type") == "text"
        )
        try:
            decision = parse_decision(text)
        except DecisionParseError as exc:
            logger.warning("Unparseable decision from %s: %.200s", participant.display_name, text)
            raise OracleError(participant.id, str(exc)) from exc

        logger.info(
            "%s: %s %d - %s",
            participant.display_name, decision.action.value, decision.quantity, decision.note,
        )
        return decision

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
