"""Plan parsing and validation."""

import pytest

from nexus.agent.agents import default_agents
from nexus.agent.planner import (
    PlanningError,
    build_planning_prompt,
    parse_plan,
    strip_code_fences,
)
from nexus.agent.schema import StepStatus


def test_plain_array() -> None:
    steps = parse_plan(
        '[{"id": "a", "agentId": "researcher", "description": "Find papers", "dependencies": []},'
        ' {"id": "b", "agentId": "coder", "description": "Prototype", "dependencies": ["a"]}]'
    )

    assert [s.id for s in steps] == ["a", "b"]
    assert steps[1].agent_id == "coder"
    assert steps[1].dependencies == ["a"]
    assert all(s.status == StepStatus.PENDING and s.result is None for s in steps)


def test_fenced_reply_with_prose() -> None:
    reply = (
        "Sure! Here is the plan:\n"
        "```json\n"
        '[{"id": "1", "agentId": "creative", "description": "Sketch"}]\n'
        "```\n"
        "Let me know if you need changes."
    )

    steps = parse_plan(reply)

    assert [s.description for s in steps] == ["Sketch"]
    assert steps[0].dependencies == []


def test_strip_code_fences_drops_surrounding_prose() -> None:
    assert strip_code_fences('Plan: [{"id": "1"}] done.') == '[{"id": "1"}]'


def test_numeric_ids_are_strings() -> None:
    steps = parse_plan(
        '[{"id": 1, "agentId": "researcher", "description": "x"},'
        ' {"id": 2, "agentId": "coder", "description": "y", "dependencies": [1]}]'
    )

    assert [s.id for s in steps] == ["1", "2"]
    assert steps[1].dependencies == ["1"]


def test_model_supplied_status_is_ignored() -> None:
    steps = parse_plan(
        '[{"id": "a", "agentId": "coder", "description": "x",'
        ' "status": "completed", "result": "already done"}]'
    )

    assert steps[0].status == StepStatus.PENDING
    assert steps[0].result is None


def test_forward_reference_is_allowed() -> None:
    steps = parse_plan(
        '[{"id": "b", "agentId": "coder", "description": "y", "dependencies": ["a"]},'
        ' {"id": "a", "agentId": "researcher", "description": "x"}]'
    )

    assert [s.id for s in steps] == ["b", "a"]


@pytest.mark.parametrize(
    "reply, message",
    [
        ("I cannot help with that.", "not valid JSON"),
        ('{"id": "a"}', "must be a JSON array"),
        ("[]", "no steps"),
        ('[{"id": "a", "description": "no agent"}]', "Malformed plan step"),
        ('["just a string"]', "not an object"),
        (
            '[{"id": "a", "agentId": "coder", "description": "x", "dependencies": "b"}]',
            "non-list dependencies",
        ),
        (
            '[{"id": "a", "agentId": "coder", "description": "x"},'
            ' {"id": "a", "agentId": "coder", "description": "y"}]',
            "Duplicate step id",
        ),
        (
            '[{"id": "a", "agentId": "coder", "description": "x", "dependencies": ["ghost"]}]',
            "unknown step",
        ),
        (
            '[{"id": "x", "agentId": "coder", "description": "x", "dependencies": ["y"]},'
            ' {"id": "y", "agentId": "coder", "description": "y", "dependencies": ["x"]}]',
            "cycle",
        ),
        (
            '[{"id": "x", "agentId": "coder", "description": "x", "dependencies": ["x"]}]',
            "cycle",
        ),
    ],
)
def test_invalid_plans(reply: str, message: str) -> None:
    with pytest.raises(PlanningError, match=message):
        parse_plan(reply)


def test_cycle_error_names_only_the_cyclic_steps() -> None:
    with pytest.raises(PlanningError) as excinfo:
        parse_plan(
            '[{"id": "root", "agentId": "coder", "description": "r"},'
            ' {"id": "x", "agentId": "coder", "description": "x", "dependencies": ["root", "y"]},'
            ' {"id": "y", "agentId": "coder", "description": "y", "dependencies": ["x"]}]'
        )

    assert str(excinfo.value).endswith("x, y")


def test_planning_prompt_lists_the_roster() -> None:
    prompt = build_planning_prompt("Build a game", "[SEMANTIC] likes Python", default_agents())

    assert "User Request: Build a game" in prompt
    assert "Context: [SEMANTIC] likes Python" in prompt
    for agent_id in ("coordinator", "coder", "researcher", "creative"):
        assert f"- {agent_id} (" in prompt
    assert prompt.endswith("Return ONLY JSON.")
