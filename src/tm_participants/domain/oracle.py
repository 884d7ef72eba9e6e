# src/tm_participants/domain/oracle.py
"""PolicyOracle Protocol — turns a participant's view of the market into a Decision.

Implementations raise OracleError on failure; the lifecycle treats that as a
wait for the round.
"""
from typing import Protocol

from src.tm_market.domain.models import Decision, MarketState, ParticipantState


class PolicyOracleProtocol(Protocol):
    async def decide(self, participant: ParticipantState, market: MarketState) -> Decision: ...
