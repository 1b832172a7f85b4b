"""Tests for recovering plans from noisy model output."""

import pytest

from stepwise.agent import lenient_json
from stepwise.agent.plan_parser import (
    INVALID_JSON_RATIONALE,
    NO_JSON_RATIONALE,
    ParseOutcome,
    extract_json_blocks,
    parse_plan,
    render_plan,
)
from stepwise.core.schema import (
    Plan,
    PlanStep,
)


@pytest.mark.parametrize("text", ["", "no json here", "closing only }}", "{ never closed"])
def test_no_json_gives_empty_plan(text: str) -> None:
    plan, outcome = parse_plan(text)

    assert outcome is ParseOutcome.NO_JSON
    assert plan.steps == []
    assert plan.rationale == NO_JSON_RATIONALE


def test_none_input_is_tolerated() -> None:
    assert parse_plan(None).outcome is ParseOutcome.NO_JSON


def test_prose_around_json_is_ignored() -> None:
    text = (
        "Sure! Here is the plan:\n"
        '{"rationale": "need facts", "steps": [{"tool": "WebSearch", "input": "tallest tower"}]}\n'
        "Let me know if you need anything else."
    )
    plan, outcome = parse_plan(text)

    assert outcome is ParseOutcome.PARSED
    assert plan.rationale == "need facts"
    assert plan.steps == [PlanStep(tool="WebSearch", input="tallest tower")]


def test_last_json_block_wins() -> None:
    text = (
        'Draft: {"rationale": "draft", "steps": [{"tool": "echo", "input": "a"}]}\n'
        'Final: {"rationale": "final", "steps": [{"tool": "Upper", "input": "b"}]}'
    )
    plan, _ = parse_plan(text)

    assert plan.rationale == "final"
    assert plan.steps == [PlanStep(tool="Upper", input="b")]


def test_nested_objects_form_one_block() -> None:
    blocks = extract_json_blocks('x {"a": {"b": {}}} y {"c": 1}')

    assert blocks == ['{"a": {"b": {}}}', '{"c": 1}']


def test_braces_inside_strings_are_counted() -> None:
    """The scanner is a plain depth counter, so a lone brace in a string unbalances it."""
    text = '{"rationale": "use {", "steps": []}'

    assert extract_json_blocks(text) == []
    assert parse_plan(text).outcome is ParseOutcome.NO_JSON


def test_field_names_are_case_insensitive() -> None:
    plan, outcome = parse_plan('{"Rationale": "r", "STEPS": [{"Tool": "echo", "INPUT": "x"}]}')

    assert outcome is ParseOutcome.PARSED
    assert plan == Plan(steps=[PlanStep(tool="echo", input="x")], rationale="r")


def test_trailing_commas_and_comments_are_tolerated() -> None:
    text = """
    {
      // why we search
      "rationale": "look it up", /* inline */
      "steps": [
        {"tool": "WebSearch", "input": "http://example.com/a//b",},
      ],
    }
    """
    plan, outcome = parse_plan(text)

    assert outcome is ParseOutcome.PARSED
    assert plan.steps == [PlanStep(tool="WebSearch", input="http://example.com/a//b")]


def test_missing_fields_default_to_empty_text() -> None:
    plan, _ = parse_plan('{"steps": [{"tool": "echo"}, {"input": "orphan"}, {}]}')

    assert plan.rationale == ""
    assert plan.steps == [
        PlanStep(tool="echo", input=""),
        PlanStep(tool="", input="orphan"),
        PlanStep(tool="", input=""),
    ]


def test_empty_steps_means_answer_directly() -> None:
    plan, outcome = parse_plan('{"rationale": "small talk", "steps": []}')

    assert outcome is ParseOutcome.PARSED
    assert plan.steps == []


@pytest.mark.parametrize(
    "block",
    [
        '{"rationale": "x", "steps": [}',
        '{"rationale": "x", "steps": "not a list"}',
        '{"steps": ["echo"]}',
        "{rationale: unquoted}",
    ],
)
def test_undecodable_block_gives_invalid_json(block: str) -> None:
    plan, outcome = parse_plan(f"Plan: {block}")

    assert outcome is ParseOutcome.INVALID_JSON
    assert plan.steps == []
    assert plan.rationale == INVALID_JSON_RATIONALE


def test_rendered_plan_parses_back_to_equal_plan() -> None:
    original = Plan(
        steps=[
            PlanStep(tool="WebSearch", input='weather "today", Dhaka'),
            PlanStep(tool="echo", input="line1\nline2"),
        ],
        rationale="two steps",
    )

    assert parse_plan(render_plan(original)).plan == original


def test_lenient_loads_keeps_string_contents() -> None:
    data = lenient_json.loads('{"a": "x, }", "b": "/* not a comment */", "c": [1, 2,],}')

    assert data == {"a": "x, }", "b": "/* not a comment */", "c": [1, 2]}


def test_too_deeply_nested_block_gives_invalid_json() -> None:
    depth = 100_000
    block = '{"rationale": "x", "steps": [], "n": ' + '{"a": ' * depth + "1" + "}" * depth + "}"

    plan, outcome = parse_plan(block)

    assert outcome is ParseOutcome.INVALID_JSON
    assert plan.steps == []
    assert plan.rationale == INVALID_JSON_RATIONALE
