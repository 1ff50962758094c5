"""Planning, DAG scheduling, tool rounds and synthesis in the orchestrator."""

import asyncio
import json
from typing import (
    Any,
    Dict,
    List,
)

import pytest

from nexus.agent.agents import (
    COORDINATOR_ID,
    default_agents,
    find_agent,
)
from nexus.agent.orchestrator import (
    SYNTHESIS_SYSTEM_PROMPT,
    Orchestrator,
)
from nexus.agent.planner import PLANNER_SYSTEM_PROMPT
from nexus.agent.schema import (
    AgentStatus,
    RunPhase,
    StepStatus,
)
from nexus.core.provider_config import ProviderConfigStore
from nexus.core.router import Router
from nexus.core.schema import (
    ChatRequest,
    ChatResponse,
    ToolCall,
    Usage,
)
from nexus.memory.session_store import SessionNotFoundError
from nexus.memory.vector_memory import MemoryTier
from nexus.providers import ProviderAuthError

from conftest import (
    FakeLLM,
    make_settings,
)


def _plan(*steps: Dict[str, Any]) -> str:
    return json.dumps(
        [
            {
                "id": step["id"],
                "agentId": step.get("agent", "researcher"),
                "description": step["description"],
                "dependencies": step.get("deps", []),
            }
            for step in steps
        ]
    )


class Script:
    """
    FakeLLM handler that answers by role: planner, synthesis or a step identified by its GOAL line.

    Step outcomes may be a string, a ChatResponse, an exception, an awaitable or a callable taking
    the request.
    """

    def __init__(self, plan: Any, steps: Dict[str, Any] | None = None, synthesis: Any = "Done."):
        self.plan = plan
        self.steps = steps or {}
        self.synthesis = synthesis

    @staticmethod
    def _resolve(outcome: Any, request: ChatRequest) -> Any:
        if callable(outcome):
            outcome = outcome(request)
        if isinstance(outcome, str):
            return ChatResponse(text=outcome, usage=Usage.from_counts(10, 5))
        return outcome

    def __call__(self, request: ChatRequest) -> Any:
        if request.system_prompt == PLANNER_SYSTEM_PROMPT:
            return self._resolve(self.plan, request)
        if request.system_prompt == SYNTHESIS_SYSTEM_PROMPT:
            return self._resolve(self.synthesis, request)
        content = request.messages[0].content
        for description, outcome in self.steps.items():
            if f"GOAL: {description}\n" in content:
                return self._resolve(outcome, request)
        return ChatResponse(text="unscripted")


class RecordingMemory:
    def __init__(self) -> None:
        self.added: List[tuple] = []
        self.consolidations = 0

    def add_memory(self, content: str, tier: MemoryTier, tags: List[str]) -> str:
        self.added.append((content, tier, tags))
        return f"mem-{len(self.added)}"

    def get_context(self, query: str, limit: int = 5) -> str:  # pylint: disable=unused-argument
        return "[SEMANTIC] prefers concise answers"

    async def consolidate(self, synthesizer) -> None:  # pylint: disable=unused-argument
        self.consolidations += 1


@pytest.fixture
def orchestrator(router: Router, settings) -> Orchestrator:
    return Orchestrator(router, settings=settings)


def _messages(orchestrator: Orchestrator):
    return orchestrator.sessions.get_messages(orchestrator.snapshot().session_id)


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_one_step_per_tick_in_dependency_order(
    orchestrator: Orchestrator, fake_llm: FakeLLM
) -> None:
    fake_llm.handler = Script(
        _plan(
            {"id": "A", "description": "collect sources"},
            {"id": "B", "description": "draft summary", "deps": ["A"]},
            {"id": "C", "description": "write code", "agent": "coder", "deps": ["A"]},
        ),
        steps={
            "collect sources": "three papers",
            "draft summary": "summary",
            "write code": "code",
        },
    )

    state = await orchestrator.start_goal("Survey retrieval methods")
    assert state.phase == RunPhase.EXECUTING
    assert [s.status for s in state.steps] == [StepStatus.PENDING] * 3

    expected = [
        [StepStatus.COMPLETED, StepStatus.PENDING, StepStatus.PENDING],
        [StepStatus.COMPLETED, StepStatus.COMPLETED, StepStatus.PENDING],
        [StepStatus.COMPLETED, StepStatus.COMPLETED, StepStatus.COMPLETED],
    ]
    for statuses in expected:
        assert await orchestrator.tick() is True
        assert [s.status for s in orchestrator.snapshot().steps] == statuses

    step_b = next(r for r in fake_llm.requests if "GOAL: draft summary" in r.messages[0].content)
    assert "[Input from Step A]: three papers" in step_b.messages[0].content

    assert await orchestrator.tick() is True
    final = orchestrator.snapshot()
    assert final.final_answer == "Done."
    assert final.phase == RunPhase.IDLE
    assert not final.is_loading
    assert await orchestrator.tick() is False


@pytest.mark.asyncio
async def test_steps_run_on_their_agents_models(
    orchestrator: Orchestrator, fake_llm: FakeLLM
) -> None:
    fake_llm.handler = Script(
        _plan(
            {"id": "1", "description": "write code", "agent": "coder"},
            {"id": "2", "description": "draw it", "agent": "creative"},
        )
    )

    await orchestrator.run("Ship a logo generator")

    by_goal = {r.messages[0].content.split("\n")[1]: r for r in fake_llm.requests[1:3]}
    coder = by_goal["GOAL: write code"]
    assert coder.model_id == "claude-opus-4-5-20251101"
    assert [t.name for t in coder.tools] == ["web_search", "code_analysis"]
    assert coder.system_prompt.endswith("You have access to tools. Use them if necessary.")
    creative = by_goal["GOAL: draw it"]
    assert creative.model_id == "gpt-5.2"
    assert creative.tools == []


@pytest.mark.asyncio
async def test_explicit_model_overrides_agent_defaults(
    orchestrator: Orchestrator, fake_llm: FakeLLM
) -> None:
    fake_llm.handler = Script(_plan({"id": "1", "description": "write code", "agent": "coder"}))

    await orchestrator.run("Refactor", model_id="gpt-5.2")

    assert set(fake_llm.model_ids) == {"gpt-5.2"}


@pytest.mark.asyncio
async def test_failure_is_contained_and_dependents_are_skipped(
    orchestrator: Orchestrator, fake_llm: FakeLLM
) -> None:
    fake_llm.handler = Script(
        _plan(
            {"id": "A", "description": "fragile"},
            {"id": "B", "description": "needs A", "deps": ["A"]},
            {"id": "C", "description": "independent"},
            {"id": "D", "description": "needs B", "deps": ["B"]},
        ),
        steps={"fragile": ProviderAuthError("rejected", status=401), "independent": "fine"},
    )

    state = await orchestrator.run("Do several things")

    status = {s.id: s for s in state.steps}
    assert status["A"].status == StepStatus.FAILED
    assert status["B"].status == StepStatus.FAILED
    assert status["B"].result == "Skipped: dependency 'A' failed"
    assert status["D"].result == "Skipped: dependency 'B' failed"
    assert status["C"].status == StepStatus.COMPLETED
    assert state.phase == RunPhase.FAILED
    assert not state.is_loading
    assert state.final_answer is None
    assert state.metrics.total_errors == 1
    assert all(r.system_prompt != SYNTHESIS_SYSTEM_PROMPT for r in fake_llm.requests)
    assert find_agent(state.agents, "researcher").status == AgentStatus.IDLE
    assert find_agent(state.agents, "coder").status == AgentStatus.DORMANT

    failure = next(m for m in _messages(orchestrator) if m.id == "fail-A")
    assert failure.role == "system"
    assert failure.content.startswith("Task Failed: ")


def test_unknown_agent_falls_back_to_coordinator() -> None:
    assert find_agent(default_agents(), "ghost").id == COORDINATOR_ID


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_cyclic_plan_is_rejected(orchestrator: Orchestrator, fake_llm: FakeLLM) -> None:
    fake_llm.handler = Script(
        _plan(
            {"id": "x", "description": "first", "deps": ["y"]},
            {"id": "y", "description": "second", "deps": ["x"]},
        )
    )

    state = await orchestrator.start_goal("Loop forever")

    assert state.phase == RunPhase.IDLE
    assert not state.is_loading
    assert "cycle" in state.error
    assert state.steps == []
    assert await orchestrator.tick() is False
    assert len(fake_llm.requests) == 1
    assert _messages(orchestrator)[-1].content.startswith("Planning failed: ")


@pytest.mark.asyncio
async def test_planning_call_failure(orchestrator: Orchestrator, fake_llm: FakeLLM) -> None:
    fake_llm.handler = Script(ProviderAuthError("rejected", status=401))

    state = await orchestrator.start_goal("Anything")

    assert state.phase == RunPhase.IDLE
    assert "Authentication failed" in state.error
    assert state.metrics.total_errors == 1
    coordinator = find_agent(state.agents, COORDINATOR_ID)
    assert coordinator.status == AgentStatus.IDLE


@pytest.mark.asyncio
async def test_plan_message_and_memory(router: Router, settings, fake_llm: FakeLLM) -> None:
    memory = RecordingMemory()
    orchestrator = Orchestrator(router, memory=memory, settings=settings)
    fake_llm.handler = Script(
        _plan({"id": "s1", "description": "look it up"}),
        steps={"look it up": "the answer is 42"},
        synthesis="Final: 42",
    )

    state = await orchestrator.run("What is the answer?")

    assert "Context: [SEMANTIC] prefers concise answers" in fake_llm.requests[0].messages[0].content
    messages = _messages(orchestrator)
    assert [(m.role, m.type) for m in messages] == [
        ("user", "text"),
        ("model", "plan"),
        ("model", "text"),
        ("model", "result"),
    ]
    plan_message = messages[1]
    assert plan_message.id == f"plan-{state.plan_id[:8]}"
    assert "using **Gemini 3 Flash**" in plan_message.content
    assert "• **researcher**: look it up" in plan_message.content
    assert messages[2].id == "res-s1"
    assert messages[3].content == "Final: 42"

    assert state.final_answer == "Final: 42"
    assert state.results == {"s1": "the answer is 42"}
    assert state.metrics.total_requests == 3
    assert state.metrics.total_tokens == 45
    assert memory.added[0] == ("What is the answer?", MemoryTier.SHORT_TERM, ["user_query"])
    assert memory.added[1][0] == "Agent Archive-X completed: look it up"
    assert memory.consolidations == 1


@pytest.mark.asyncio
async def test_unknown_session_is_rejected(orchestrator: Orchestrator) -> None:
    with pytest.raises(SessionNotFoundError):
        await orchestrator.start_goal("hi", session_id="missing")


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_tool_round(fake_llm: FakeLLM) -> None:
    settings = make_settings(GROK_API_KEY="xai-key")
    router = Router(
        config_store=ProviderConfigStore(settings),
        settings=settings,
        provider_factory=fake_llm.factory,
    )
    orchestrator = Orchestrator(router, settings=settings)

    def research(request: ChatRequest) -> ChatResponse:
        if len(request.messages) == 3:
            return ChatResponse(text="Grounded summary")
        return ChatResponse(
            text="",
            tool_calls=[
                ToolCall(id="c1", name="web_search", args={"query": "vector databases"}),
                ToolCall(id="c2", name="teleport", args={}),
            ],
        )

    base = Script(_plan({"id": "s1", "description": "research"}), steps={"research": research})

    def handler(request: ChatRequest) -> Any:
        if request.model_id == "grok-beta":
            return ChatResponse(text="Pinecone, Chroma, Weaviate")
        return base(request)

    fake_llm.handler = handler

    state = await orchestrator.run("Pick a vector database")

    assert state.results["s1"] == "Grounded summary"
    follow_up = next(r for r in fake_llm.requests if len(r.messages) == 3)
    assert follow_up.tools == []
    assert follow_up.messages[1].content == "Tool calls made."
    results = json.loads(follow_up.messages[2].content[len("Tool Results: "):])
    assert results[0]["response"] == {"result": "Pinecone, Chroma, Weaviate"}
    assert results[1]["response"] == {"result": "Tool not found."}

    tool_message = next(m for m in _messages(orchestrator) if m.id.startswith("tool-"))
    records = {r.tool_name: r for r in tool_message.tool_calls}
    assert records["web_search"].status == "success"
    assert "Pinecone" in records["web_search"].result
    assert records["teleport"].status == "error"
    assert "tool_result_web_search" in orchestrator.working_memory.get_snapshot().scratchpad


# ---------------------------------------------------------------------------
# Supersession and synthesis
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_superseded_step_result_is_discarded(
    orchestrator: Orchestrator, fake_llm: FakeLLM
) -> None:
    gate = asyncio.Event()

    async def slow() -> ChatResponse:
        await gate.wait()
        return ChatResponse(text="late result")

    def plan(request: ChatRequest) -> str:
        if "User Request: first" in request.messages[0].content:
            return _plan({"id": "old", "description": "slow work"})
        return _plan({"id": "new", "description": "fast work"})

    fake_llm.handler = Script(plan, steps={"slow work": lambda r: slow(), "fast work": "fast"})

    await orchestrator.start_goal("first")
    running = asyncio.create_task(orchestrator.tick())
    while len(fake_llm.requests) < 2:
        await asyncio.sleep(0)

    second = await orchestrator.start_goal("second")
    gate.set()
    assert await running is True

    current = orchestrator.snapshot()
    assert current.plan_id == second.plan_id
    assert current.results == {}
    assert [s.status for s in current.steps] == [StepStatus.PENDING]

    final = await orchestrator.drive()
    assert final.results == {"new": "fast"}
    assert all(m.id != "res-old" for m in _messages(orchestrator))


@pytest.mark.asyncio
async def test_superseded_planning_returns_none(
    orchestrator: Orchestrator, fake_llm: FakeLLM
) -> None:
    gate = asyncio.Event()

    async def late_plan() -> ChatResponse:
        await gate.wait()
        return ChatResponse(text=_plan({"id": "old", "description": "stale work"}))

    def plan(request: ChatRequest) -> Any:
        if "User Request: first" in request.messages[0].content:
            return late_plan()
        return _plan({"id": "new", "description": "fresh work"})

    fake_llm.handler = Script(plan, steps={"fresh work": "fresh"})

    first = asyncio.create_task(orchestrator.start_goal("first"))
    while not fake_llm.requests:
        await asyncio.sleep(0)

    second = await orchestrator.start_goal("second")
    gate.set()

    assert await first is None
    assert second is not None
    current = orchestrator.snapshot()
    assert current.plan_id == second.plan_id
    assert [s.id for s in current.steps] == ["new"]


@pytest.mark.asyncio
async def test_synthesis_failure(orchestrator: Orchestrator, fake_llm: FakeLLM) -> None:
    fake_llm.handler = Script(
        _plan({"id": "s1", "description": "work"}),
        synthesis=ProviderAuthError("rejected", status=401),
    )

    state = await orchestrator.run("Summarize")

    assert state.steps[0].status == StepStatus.COMPLETED
    assert state.error.startswith("Final synthesis failed: ")
    assert state.final_answer is None
    assert state.phase == RunPhase.IDLE
    assert not state.is_loading
    assert state.metrics.total_errors == 1
