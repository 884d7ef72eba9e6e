# src/tm_lifecycle/application/service.py
"""Wiring for the lifecycle manager and its collaborators.

The manager is built once in the app lifespan and stored on app.state;
request handlers reach it through get_lifecycle_manager().
"""
import logging

from fastapi import Request

from config.settings import Settings
from src.tm_events.engine.bus import EventBus
from src.tm_lifecycle.domain.models import SimulationConfig
from src.tm_lifecycle.engine.manager import SimulationLifecycleManager
from src.tm_participants.domain.oracle import PolicyOracleProtocol
from src.tm_participants.infrastructure.llm_oracle import LLMPolicyOracle
from src.tm_participants.infrastructure.rule_oracle import RuleBasedOracle
from src.tm_settlement.domain.protocol import SettlementServiceProtocol
from src.tm_settlement.infrastructure.http_settlement import HttpSettlementService
from src.tm_settlement.infrastructure.simulated import SimulatedSettlementService

logger = logging.getLogger(__name__)


def build_oracle(s: Settings) -> PolicyOracleProtocol:
    if s.ORACLE_MODE == "llm":
        if not s.LLM_API_KEY:
            raise ValueError("ORACLE_MODE=llm requires LLM_API_KEY")
        return LLMPolicyOracle(
            api_url=s.LLM_API_URL,
            api_key=s.LLM_API_KEY,
            model=s.LLM_MODEL,
            temperature=s.LLM_TEMPERATURE,
            timeout_s=s.LLM_TIMEOUT_S,
        )
    if s.ORACLE_MODE != "rules":
        raise ValueError(f"Unknown ORACLE_MODE: {s.ORACLE_MODE}")
    return RuleBasedOracle()


def build_settlement(s: Settings) -> SettlementServiceProtocol:
    if s.SETTLEMENT_MODE == "http":
        if not s.SETTLEMENT_URL:
            raise ValueError("SETTLEMENT_MODE=http requires SETTLEMENT_URL")
        return HttpSettlementService(s.SETTLEMENT_URL, timeout_s=s.SETTLEMENT_TIMEOUT_S)
    if s.SETTLEMENT_MODE != "simulated":
        raise ValueError(f"Unknown SETTLEMENT_MODE: {s.SETTLEMENT_MODE}")
    return SimulatedSettlementService(
        failure_rate=s.SETTLEMENT_FAILURE_RATE, default_balance=s.INITIAL_BALANCE
    )


def build_lifecycle_manager(
    s: Settings, event_bus: EventBus | None = None
) -> SimulationLifecycleManager:
    config = SimulationConfig.from_settings(s)
    logger.info(
        "Lifecycle configured: oracle=%s settlement=%s tick=%.1fs max_rounds=%d bounds=[%s, %s]",
        s.ORACLE_MODE, s.SETTLEMENT_MODE, config.tick_interval_s, config.max_rounds,
        s.MIN_PRICE, s.MAX_PRICE,
    )
    return SimulationLifecycleManager(
        config,
        oracle=build_oracle(s),
        settlement=build_settlement(s),
        event_bus=event_bus,
    )


async def close_collaborators(manager: SimulationLifecycleManager) -> None:
    """Close HTTP clients owned by the oracle/settlement adapters."""
    for collaborator in (manager.oracle, manager.settlement):
        aclose = getattr(collaborator, "aclose", None)
        if aclose is not None:
            await aclose()


def get_lifecycle_manager(request: Request) -> SimulationLifecycleManager:
    return request.app.state.lifecycle
