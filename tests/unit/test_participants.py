"""Tests for participant profiles, prompts, and the rule-based oracle."""
from collections import deque
from typing import Any

import pytest

from src.tm_common.enums import Action, Personality
from src.tm_market.domain.models import (
    ActionRecord,
    CumulativeStats,
    MarketState,
    ParticipantState,
    Preferences,
)
from src.tm_participants.domain.profiles import DEFAULT_PROFILES, Profile, build_participants
from src.tm_participants.domain.prompts import market_prompt, system_prompt
from src.tm_participants.infrastructure.rule_oracle import RuleBasedOracle, _uptrend


def _make_participant(personality: Personality, **kwargs: Any) -> ParticipantState:
    defaults: dict[str, Any] = {
        "id": "p1",
        "display_name": "Tester",
        "personality": personality,
        "balance": 10.0,
        "holdings": 0,
        "preferences": Preferences(max_spend_fraction=0.4, max_sell_fraction=0.08),
    }
    defaults.update(kwargs)
    return ParticipantState(**defaults)


def _market(price: float) -> MarketState:
    return MarketState(round=3, price=price, inventory=500)


class TestProfiles:
    def test_default_roster(self) -> None:
        participants = build_participants(0.08, opening_balance=10.0)
        assert [p.id for p in participants] == ["buyer_1", "buyer_2", "buyer_3"]
        assert [p.personality for p in participants] == [
            Personality.FRUGAL,
            Personality.IMPULSIVE,
            Personality.SKEPTICAL,
        ]
        assert all(p.balance == 10.0 and p.holdings == 0 for p in participants)
        assert participants[0].preferences.threshold == 0.015

    def test_sell_fraction_defaults_to_engine_value(self) -> None:
        participants = build_participants(0.12)
        assert all(p.preferences.max_sell_fraction == 0.12 for p in participants)

    def test_profile_sell_fraction_overrides_default(self) -> None:
        profile = Profile("x", "X", Personality.SKEPTICAL, 0.5, max_sell_fraction=0.2)
        (p,) = build_participants(0.08, profiles=(profile,))
        assert p.preferences.max_sell_fraction == 0.2

    def test_fresh_state_each_call(self) -> None:
        first = build_participants(0.08)
        second = build_participants(0.08)
        first[0].recent_prices.append(1.0)
        assert list(second[0].recent_prices) == []

    def test_empty_profiles_rejected(self) -> None:
        with pytest.raises(ValueError):
            build_participants(0.08, profiles=())

    def test_default_profiles_are_unique(self) -> None:
        ids = [p.participant_id for p in DEFAULT_PROFILES]
        assert len(ids) == len(set(ids))


class TestPrompts:
    def test_system_prompt_per_personality(self) -> None:
        for personality, marker in (
            (Personality.FRUGAL, "cautious"),
            (Personality.IMPULSIVE, "emotional"),
            (Personality.SKEPTICAL, "data-driven"),
        ):
            text = system_prompt(_make_participant(personality))
            assert marker in text
            assert "```json" in text

    def test_market_prompt_reports_limits(self) -> None:
        p = _make_participant(Personality.SKEPTICAL, holdings=25)
        text = market_prompt(p, _market(0.02))
        assert "Market Round 4" in text
        assert "Max buy this round: 200 apples" in text
        assert "Max sell this round: 2 apples" in text
        assert "Holdings: 25 apples" in text

    def test_market_prompt_includes_threshold_when_set(self) -> None:
        prefs = Preferences(max_spend_fraction=0.3, max_sell_fraction=0.08, threshold=0.015)
        p = _make_participant(Personality.FRUGAL, preferences=prefs)
        assert "price threshold: $0.0150" in market_prompt(p, _market(0.02))


class TestUptrend:
    def test_strict_increases(self) -> None:
        assert _uptrend([1, 2, 3, 4], 3)
        assert not _uptrend([1, 2, 2, 4], 3)

    def test_too_short(self) -> None:
        assert not _uptrend([1, 2], 3)


class TestRuleBasedOracle:
    @pytest.fixture
    def oracle(self) -> RuleBasedOracle:
        return RuleBasedOracle()

    async def test_frugal_waits_above_threshold(self, oracle: RuleBasedOracle) -> None:
        prefs = Preferences(max_spend_fraction=0.3, max_sell_fraction=0.08, threshold=0.015)
        p = _make_participant(Personality.FRUGAL, preferences=prefs)
        decision = await oracle.decide(p, _market(0.02))
        assert decision.action == Action.WAIT

    async def test_frugal_buys_below_threshold(self, oracle: RuleBasedOracle) -> None:
        prefs = Preferences(max_spend_fraction=0.3, max_sell_fraction=0.08, threshold=0.015)
        p = _make_participant(Personality.FRUGAL, preferences=prefs)
        decision = await oracle.decide(p, _market(0.01))
        # half of floor(10 * 0.3 / 0.01) = 150
        assert decision.action == Action.BUY
        assert decision.quantity == 150

    async def test_frugal_waits_after_buy_when_price_rose(self, oracle: RuleBasedOracle) -> None:
        prefs = Preferences(max_spend_fraction=0.3, max_sell_fraction=0.08, threshold=0.015)
        p = _make_participant(
            Personality.FRUGAL,
            preferences=prefs,
            recent_prices=deque([0.009]),
            recent_actions=deque([ActionRecord(2, Action.BUY, 10, 0.009, "deal")]),
        )
        decision = await oracle.decide(p, _market(0.01))
        assert decision.action == Action.WAIT

    async def test_impulsive_takes_profit(self, oracle: RuleBasedOracle) -> None:
        p = _make_participant(
            Personality.IMPULSIVE,
            holdings=100,
            stats=CumulativeStats(total_spent=1.0, total_bought=100, avg_buy_price=0.01),
            recent_prices=deque([0.02]),
        )
        decision = await oracle.decide(p, _market(0.02))
        assert decision.action == Action.SELL
        assert decision.quantity == 5

    async def test_impulsive_panic_sells_on_drop(self, oracle: RuleBasedOracle) -> None:
        p = _make_participant(
            Personality.IMPULSIVE,
            holdings=50,
            stats=CumulativeStats(total_spent=1.5, total_bought=50, avg_buy_price=0.03),
            recent_prices=deque([0.03, 0.029]),
        )
        decision = await oracle.decide(p, _market(0.025))
        assert decision.action == Action.SELL
        assert decision.quantity == 3

    async def test_impulsive_buys_with_money(self, oracle: RuleBasedOracle) -> None:
        p = _make_participant(Personality.IMPULSIVE)
        decision = await oracle.decide(p, _market(0.02))
        assert decision.action == Action.BUY
        assert decision.quantity > 0

    async def test_impulsive_broke_waits(self, oracle: RuleBasedOracle) -> None:
        p = _make_participant(Personality.IMPULSIVE, balance=0.0)
        decision = await oracle.decide(p, _market(0.02))
        assert decision.action == Action.WAIT

    async def test_skeptical_needs_history(self, oracle: RuleBasedOracle) -> None:
        p = _make_participant(Personality.SKEPTICAL, recent_prices=deque([0.02]))
        decision = await oracle.decide(p, _market(0.02))
        assert decision.action == Action.WAIT
        assert "not enough data" in decision.note

    async def test_skeptical_buys_deep_discount(self, oracle: RuleBasedOracle) -> None:
        p = _make_participant(Personality.SKEPTICAL, recent_prices=deque([0.02, 0.02]))
        decision = await oracle.decide(p, _market(0.018))
        assert decision.action == Action.BUY
        assert "high confidence" in decision.note

    async def test_skeptical_waits_when_expensive(self, oracle: RuleBasedOracle) -> None:
        p = _make_participant(Personality.SKEPTICAL, recent_prices=deque([0.02, 0.02]))
        decision = await oracle.decide(p, _market(0.03))
        assert decision.action == Action.WAIT

    async def test_skeptical_sells_on_confirmed_uptrend(self, oracle: RuleBasedOracle) -> None:
        p = _make_participant(
            Personality.SKEPTICAL,
            holdings=100,
            recent_prices=deque([0.018, 0.019, 0.020]),
        )
        decision = await oracle.decide(p, _market(0.021))
        assert decision.action == Action.SELL
        assert decision.quantity == 6
