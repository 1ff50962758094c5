"""
Turns a user goal into an execution plan.

The coordinator model is asked for a JSON array of steps; this module builds that prompt and
validates what comes back.  A plan is only accepted when every dependency names a step of the
same plan and the dependency graph is acyclic.
"""

import json
import logging
import re
from typing import (
    Any,
    Dict,
    List,
    Sequence,
)

from pydantic import ValidationError

from nexus.agent.schema import (
    Agent,
    PlanStep,
)

logger = logging.getLogger(__name__)

PLANNER_SYSTEM_PROMPT = "You are an Orchestrator. Output valid JSON only."


class PlanningError(ValueError):
    """The model's plan could not be parsed or is structurally invalid."""


def build_planning_prompt(goal: str, context: str, agents: Sequence[Agent]) -> str:
    """Return the user message asking the coordinator for a plan."""
    roster = "\n".join(f"- {a.id} ({a.name}, {a.role.value}): {a.specialty}" for a in agents)
    return (
        f"Context: {context}\n"
        f"User Request: {goal}\n"
        f"Available Agents (use the id as agentId):\n{roster}\n"
        "Create a JSON execution plan: an array of objects with id, agentId, description, "
        "dependencies (ids of steps that must finish first).\n"
        "Return ONLY JSON."
    )


def strip_code_fences(content: str) -> str:
    """Clean up a JSON array returned by an LLM."""
    # Strip markdown code blocks if present
    if "```" in content:
        match = re.search(r"```(?:json)?\s*(.+?)```", content, re.DOTALL)
        if match:
            content = match.group(1)

    # Remove control characters except whitespace
    content = "".join(ch for ch in content if ch >= " " or ch in "\n\r\t")

    # Keep the outermost array, dropping any prose around it
    start, end = content.find("["), content.rfind("]")
    if 0 <= start < end:
        content = content[start : end + 1]
    return content.strip()


def _normalise(item: Any, index: int) -> Dict[str, Any]:
    if not isinstance(item, dict):
        raise PlanningError(f"Plan step #{index} is not an object: {item!r}")
    step = dict(item)
    # Models happily emit numeric ids
    if "id" in step:
        step["id"] = str(step["id"])
    deps = step.get("dependencies") or []
    if not isinstance(deps, list):
        raise PlanningError(f"Plan step '{step.get('id')}' has non-list dependencies: {deps!r}")
    step["dependencies"] = [str(dep) for dep in deps]
    step.pop("status", None)
    step.pop("result", None)
    return step


def _check_acyclic(steps: Sequence[PlanStep]) -> None:
    remaining = {step.id: set(step.dependencies) for step in steps}
    while remaining:
        ready = [step_id for step_id, deps in remaining.items() if not deps]
        if not ready:
            raise PlanningError(
                "Plan contains a dependency cycle among steps: " + ", ".join(sorted(remaining))
            )
        for step_id in ready:
            del remaining[step_id]
        for deps in remaining.values():
            deps.difference_update(ready)


def parse_plan(text: str) -> List[PlanStep]:
    """
    Parse the coordinator's raw reply into pending plan steps.

    Raises
    ------
    PlanningError
        If the reply is not a non-empty JSON array of steps, a step id repeats, a dependency
        names an unknown step, or the dependencies form a cycle.
    """
    cleaned = strip_code_fences(text)
    try:
        raw = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse plan as JSON: %s", exc)
        raise PlanningError(f"Plan is not valid JSON: {exc}") from exc

    if not isinstance(raw, list):
        raise PlanningError("Plan must be a JSON array of steps")
    if not raw:
        raise PlanningError("Plan contains no steps")

    try:
        steps = [PlanStep.model_validate(_normalise(item, i)) for i, item in enumerate(raw)]
    except ValidationError as exc:
        raise PlanningError(f"Malformed plan step: {exc}") from exc

    ids = [step.id for step in steps]
    duplicates = sorted({step_id for step_id in ids if ids.count(step_id) > 1})
    if duplicates:
        raise PlanningError(f"Duplicate step id(s): {', '.join(duplicates)}")

    known = set(ids)
    for step in steps:
        unknown = [dep for dep in step.dependencies if dep not in known]
        if unknown:
            raise PlanningError(
                f"Step '{step.id}' depends on unknown step(s): {', '.join(unknown)}"
            )

    _check_acyclic(steps)
    return steps
