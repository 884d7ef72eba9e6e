"""Tests for parsing decisions out of model output."""
import pytest

from src.tm_common.enums import Action
from src.tm_market.domain.models import Decision
from src.tm_participants.domain.parser import DecisionParseError, parse_decision


class TestParseDecision:
    def test_fenced_json_block(self) -> None:
        content = 'Thinking...\n```json\n{"action": "buy", "quantity": 12, "note": "cheap"}\n```'
        assert parse_decision(content) == Decision(Action.BUY, 12, "cheap")

    def test_plain_fence(self) -> None:
        content = '```\n{"action": "sell", "quantity": 2, "note": "profit"}\n```'
        assert parse_decision(content) == Decision(Action.SELL, 2, "profit")

    def test_bare_object_in_prose(self) -> None:
        content = 'I will do this: {"action": "BUY", "quantity": 3, "note": "dip"} and that is all'
        assert parse_decision(content) == Decision(Action.BUY, 3, "dip")

    def test_fenced_block_wins_over_earlier_object(self) -> None:
        content = (
            'example {"action": "sell", "quantity": 1}\n'
            '```json\n{"action": "buy", "quantity": 4, "note": "real"}\n```'
        )
        assert parse_decision(content).action == Action.BUY

    def test_wait_forces_zero_quantity(self) -> None:
        decision = parse_decision('{"action": "wait", "quantity": 50, "note": "hold"}')
        assert decision == Decision(Action.WAIT, 0, "hold")

    def test_unknown_action_is_wait(self) -> None:
        decision = parse_decision('{"action": "hodl", "quantity": 5}')
        assert decision.action == Action.WAIT
        assert decision.quantity == 0

    def test_missing_note_gets_default(self) -> None:
        assert parse_decision('{"action": "buy", "quantity": 1}').note == "No reason provided"

    @pytest.mark.parametrize("quantity", ['"lots"', "null", "-4"])
    def test_bad_quantity_becomes_zero(self, quantity: str) -> None:
        decision = parse_decision(f'{{"action": "buy", "quantity": {quantity}}}')
        assert decision.quantity == 0

    def test_fractional_quantity_truncated(self) -> None:
        assert parse_decision('{"action": "buy", "quantity": 7.9}').quantity == 7

    def test_no_json_raises(self) -> None:
        with pytest.raises(DecisionParseError, match="No JSON"):
            parse_decision("I think I'll buy some apples")

    def test_invalid_json_raises(self) -> None:
        with pytest.raises(DecisionParseError, match="Invalid JSON"):
            parse_decision("```json\n{action: buy}\n```")

    def test_non_object_raises(self) -> None:
        with pytest.raises(DecisionParseError):
            parse_decision("```json\n[1, 2, 3]\n```")
