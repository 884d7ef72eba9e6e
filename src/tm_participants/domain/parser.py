"""Parse a decision out of free-form model output.

Accepted shapes, first match wins:
  1. a fenced code block (```json ... ``` or ``` ... ```) containing an object
  2. the first {...} object anywhere in the text
"""

import json
import re

from src.tm_common.enums import Action
from src.tm_market.domain.models import Decision

_FENCED_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)```")
_OBJECT_RE = re.compile(r"\{[\s\S]*?\}")


class DecisionParseError(ValueError):
    pass


def _extract_json(content: str) -> str:
    fenced = _FENCED_RE.search(content)
    if fenced:
        return fenced.group(1).strip()
    obj = _OBJECT_RE.search(content)
    if obj is None:
        raise DecisionParseError("No JSON found in response")
    return obj.group(0)


def parse_decision(content: str) -> Decision:
    """Raise DecisionParseError when no usable JSON object is present."""
    try:
        parsed = json.loads(_extract_json(content))
    except json.JSONDecodeError as exc:
        raise DecisionParseError(f"Invalid JSON: {exc.msg}") from exc
    if not isinstance(parsed, dict):
        raise DecisionParseError("Decision must be a JSON object")

    try:
        quantity = max(0, int(float(parsed.get("quantity") or 0)))
    except (TypeError, ValueError, OverflowError):
        quantity = 0
    action = Action.parse(parsed.get("action"))
    if action == Action.WAIT:
        quantity = 0
    return Decision(
        action=action,
        quantity=quantity,
        note=str(parsed.get("note") or "No reason provided"),
    )
