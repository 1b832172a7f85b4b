"""
Recover a :class:`~stepwise.core.schema.Plan` from free-form model output.

Models asked for "JSON only" still wrap it in prose, restate it, or emit drafts before the final
answer.  The parser scans for balanced ``{...}`` spans, keeps the last one, and decodes it
against::

    {"rationale": "<text>", "steps": [{"tool": "<name>", "input": "<text>"}, ...]}

It never raises: anything it cannot use becomes a zero-step plan with a fallback rationale.
"""

import json
import logging
from enum import Enum
from typing import (
    Any,
    Dict,
    List,
    Mapping,
    NamedTuple,
)

from stepwise.agent import lenient_json
from stepwise.core.schema import (
    Plan,
    PlanStep,
)

logger = logging.getLogger(__name__)

NO_JSON_RATIONALE = "no valid JSON found"
INVALID_JSON_RATIONALE = "invalid JSON"


class ParseOutcome(str, Enum):
    """Which path :func:`parse_plan` took."""

    PARSED = "parsed"
    NO_JSON = "no_json"
    INVALID_JSON = "invalid_json"


class PlanParseResult(NamedTuple):
    plan: Plan
    outcome: ParseOutcome


class _SchemaMismatch(ValueError):
    """The selected block decoded as JSON but does not look like a plan."""


def extract_json_blocks(text: str) -> List[str]:
    """
    Return every maximal balanced ``{...}`` span in *text*, left to right.

    The scan is a plain depth counter: braces inside string values are counted too, and a stray
    ``}`` at depth zero is ignored.
    """
    blocks: List[str] = []
    depth = 0
    start = -1
    for i, ch in enumerate(text):
        if ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                blocks.append(text[start : i + 1])
                start = -1
    return blocks


def _lower_keys(obj: Mapping[str, Any]) -> Dict[str, Any]:
    return {str(k).lower(): v for k, v in obj.items()}


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _to_plan(data: Any) -> Plan:
    if not isinstance(data, dict):
        raise _SchemaMismatch("top-level value is not an object")
    fields = _lower_keys(data)

    raw_steps = fields.get("steps")
    if raw_steps is None:
        raw_steps = []
    if not isinstance(raw_steps, list):
        raise _SchemaMismatch("'steps' is not a list")

    steps: List[PlanStep] = []
    for raw in raw_steps:
        if not isinstance(raw, dict):
            raise _SchemaMismatch("step is not an object")
        step = _lower_keys(raw)
        steps.append(PlanStep(tool=_text(step.get("tool")), input=_text(step.get("input"))))

    return Plan(steps=steps, rationale=_text(fields.get("rationale")))


def parse_plan(text: str | None) -> PlanParseResult:
    """Parse model output into a plan, reporting how the result was obtained."""
    blocks = extract_json_blocks(text or "")
    if not blocks:
        logger.debug("No JSON object found in planner output")
        return PlanParseResult(Plan(rationale=NO_JSON_RATIONALE), ParseOutcome.NO_JSON)

    selected = blocks[-1]
    if len(blocks) > 1:
        logger.debug("Planner output contained %d JSON blocks; using the last", len(blocks))

    try:
        plan = _to_plan(lenient_json.loads(selected))
    except (json.JSONDecodeError, RecursionError, _SchemaMismatch) as exc:
        # RecursionError: nesting deeper than the decoder can follow.
        logger.warning("Could not decode plan JSON: %s", exc)
        return PlanParseResult(Plan(rationale=INVALID_JSON_RATIONALE), ParseOutcome.INVALID_JSON)
    return PlanParseResult(plan, ParseOutcome.PARSED)


def render_plan(plan: Plan) -> str:
    """Serialize *plan* in the schema :func:`parse_plan` reads."""
    return json.dumps(
        {
            "rationale": plan.rationale,
            "steps": [{"tool": s.tool, "input": s.input} for s in plan.steps],
        },
        ensure_ascii=False,
    )
