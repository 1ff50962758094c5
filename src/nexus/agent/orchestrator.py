"""
Multi-agent plan executor.

A goal is first turned into a plan (a DAG of steps, each owned by one agent).  The plan is then
advanced by a periodic :meth:`Orchestrator.tick`: each tick promotes at most one ready step (the
first pending step, in plan order, whose dependencies have all completed), runs it to completion
and returns.  Once every step is terminal the coordinator synthesises the step outputs into the
run's final answer.

Every goal gets a fresh ``plan_id``.  Work that finishes after a newer goal has started checks the
id and discards its result instead of writing into the newer plan.
"""

import asyncio
import json
import logging
import uuid
from typing import (
    List,
    Optional,
    Sequence,
)

from nexus.agent.agents import (
    COORDINATOR_ID,
    default_agents,
    find_agent,
)
from nexus.agent.planner import (
    PLANNER_SYSTEM_PROMPT,
    build_planning_prompt,
    parse_plan,
)
from nexus.agent.schema import (
    Agent,
    AgentStatus,
    Message,
    PlanStep,
    RunMetrics,
    RunPhase,
    RunState,
    StepStatus,
    ToolCallRecord,
    ToolResult,
)
from nexus.agent.tool_executor import (
    ToolExecutionError,
    execute_tool,
)
from nexus.config import (
    Settings,
    settings as default_settings,
)
from nexus.core.router import Router
from nexus.core.schema import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ToolCall,
)
from nexus.memory.session_store import (
    InMemorySessionStore,
    SessionNotFoundError,
    SessionStore,
    append_message,
    create_session,
    update_message,
)
from nexus.memory.vector_memory import (
    MemoryTier,
    NullMemoryBank,
)
from nexus.memory.working_memory import WorkingMemory
from nexus.tools import (
    TOOL_REGISTRY,
    get_tool_declarations,
)

logger = logging.getLogger(__name__)

SYNTHESIS_SYSTEM_PROMPT = "You are the Coordinator. Summarize the findings."


class Orchestrator:
    """
    Plans a goal and drives its execution.

    Parameters
    ----------
    router:
        Used for every model call (planning, steps, tools, synthesis).
    memory:
        Long-term memory; anything with ``add_memory``/``get_context``/``consolidate``.
        Defaults to :class:`NullMemoryBank`.
    sessions:
        Where conversation messages are appended.
    agents:
        Agent roster; defaults to :func:`default_agents`.
    settings:
        Tick interval and per-category default models.
    """

    def __init__(
        self,
        router: Router,
        memory=None,
        sessions: SessionStore | None = None,
        agents: Sequence[Agent] | None = None,
        settings: Settings | None = None,
        working_memory: WorkingMemory | None = None,
    ):
        self.router = router
        self.memory = memory if memory is not None else NullMemoryBank()
        self.sessions = sessions if sessions is not None else InMemorySessionStore()
        self.settings = settings or default_settings
        self.working_memory = working_memory or WorkingMemory()
        self._roster: List[Agent] = list(agents) if agents else default_agents()
        self._metrics = RunMetrics()
        self._state = RunState(agents=self._fresh_agents(), metrics=self._metrics)
        self._tick_lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Observation
    # ------------------------------------------------------------------ #
    def snapshot(self) -> RunState:
        """Return a deep copy of the current run state."""
        return self._state.model_copy(deep=True)

    @property
    def plan_id(self) -> Optional[str]:
        return self._state.plan_id

    def _is_current(self, plan_id: str | None) -> bool:
        return plan_id is not None and self._state.plan_id == plan_id

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _fresh_agents(self) -> List[Agent]:
        return [agent.model_copy(deep=True) for agent in self._roster]

    def _agent(self, agent_id: str) -> Agent:
        return find_agent(self._state.agents, agent_id)

    def _set_agent_status(self, agent_id: str, status: AgentStatus) -> None:
        for agent in self._state.agents:
            if agent.id == agent_id:
                agent.status = status

    def _post(self, message: Message) -> None:
        session_id = self._state.session_id
        if session_id is None:
            return
        append_message(self.sessions, session_id, message)

    def _record_usage(self, response: ChatResponse) -> None:
        self._metrics.total_requests += 1
        self._metrics.total_tokens += response.usage.total_tokens

    def _model_for(self, agent: Agent) -> str:
        return self._state.model_id or self.settings.default_model(agent.model_category.value)

    async def _remember(self, content: str, tier: MemoryTier, tags: List[str]) -> None:
        try:
            await asyncio.to_thread(self.memory.add_memory, content, tier, tags)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Could not store memory: %s", exc)

    async def _retrieve_context(self, goal: str) -> str:
        try:
            return await asyncio.to_thread(self.memory.get_context, goal)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Context retrieval failed: %s", exc)
            return ""

    # ------------------------------------------------------------------ #
    # Planning
    # ------------------------------------------------------------------ #
    async def start_goal(
        self, goal: str, session_id: str | None = None, model_id: str | None = None
    ) -> Optional[RunState]:
        """
        Reset the run for *goal* and request a plan.

        Planning failures are not raised; they leave the run idle with ``error`` set and a
        system message in the session.  Returns a snapshot of the resulting state, or None if
        another goal replaced this one while its plan was being requested.
        """
        if session_id is None:
            session_id = create_session(self.sessions).id
        elif not any(s.id == session_id for s in self.sessions.get_sessions()):
            raise SessionNotFoundError(session_id)

        plan_id = uuid.uuid4().hex
        self._state = RunState(
            plan_id=plan_id,
            goal=goal,
            session_id=session_id,
            model_id=model_id,
            phase=RunPhase.PLANNING,
            is_loading=True,
            metrics=self._metrics,
            agents=self._fresh_agents(),
        )
        self._set_agent_status(COORDINATOR_ID, AgentStatus.THINKING)
        self.working_memory.clear()
        self._post(Message(role="user", content=goal))
        logger.info("Planning goal [%s]: %s", plan_id[:8], goal)

        await self._remember(goal, MemoryTier.SHORT_TERM, ["user_query"])
        context = await self._retrieve_context(goal)
        planner_model = model_id or self.settings.DEFAULT_GENERAL_MODEL
        request = ChatRequest(
            model_id=planner_model,
            messages=[
                ChatMessage(
                    role="user",
                    content=build_planning_prompt(goal, context, self._state.agents),
                )
            ],
            system_prompt=PLANNER_SYSTEM_PROMPT,
        )

        try:
            response = await self.router.chat(request)
            if not self._is_current(plan_id):
                logger.info("Discarding plan for superseded goal [%s]", plan_id[:8])
                return None
            self._record_usage(response)
            steps = parse_plan(response.text)
        except Exception as exc:  # pylint: disable=broad-except
            if self._is_current(plan_id):
                self._abort_planning(exc)
                return self.snapshot()
            return None

        self._state.steps = steps
        self._state.phase = RunPhase.EXECUTING
        self._set_agent_status(COORDINATOR_ID, AgentStatus.IDLE)

        model = self.router.get_model(planner_model)
        summary = "\n".join(f"• **{s.agent_id}**: {s.description}" for s in steps)
        self._post(
            Message(
                id=f"plan-{plan_id[:8]}",
                role="model",
                agent_id=COORDINATOR_ID,
                type="plan",
                content=(
                    "I have devised an execution plan using "
                    f"**{model.name if model else planner_model}**:\n\n{summary}"
                ),
                thinking=response.thinking,
            )
        )
        logger.info("Plan [%s] has %d step(s)", plan_id[:8], len(steps))
        return self.snapshot()

    def _abort_planning(self, exc: Exception) -> None:
        logger.error("Planning failed: %s", exc)
        self._metrics.total_errors += 1
        self._state.phase = RunPhase.IDLE
        self._state.is_loading = False
        self._state.error = str(exc) or "Planning Failed"
        self._set_agent_status(COORDINATOR_ID, AgentStatus.IDLE)
        self._post(Message(role="system", content=f"Planning failed: {self._state.error}"))

    # ------------------------------------------------------------------ #
    # Scheduling
    # ------------------------------------------------------------------ #
    def _next_ready_step(self) -> Optional[PlanStep]:
        status = {step.id: step.status for step in self._state.steps}
        for step in self._state.steps:
            if step.status == StepStatus.PENDING and all(
                status.get(dep) == StepStatus.COMPLETED for dep in step.dependencies
            ):
                return step
        return None

    async def tick(self) -> bool:
        """
        Advance the current plan by at most one step.

        Returns True if a step ran or the run was finished, False if there was nothing to do.
        """
        async with self._tick_lock:
            state = self._state
            if state.phase != RunPhase.EXECUTING:
                return False

            step = self._next_ready_step()
            if step is not None:
                await self._execute_step(state.plan_id, step)
                return True

            if all(s.is_terminal for s in state.steps) and state.is_loading:
                await self._finish(state.plan_id)
                return True
            return False

    async def drive(self, plan_id: str | None = None) -> RunState:
        """Tick every ``TICK_INTERVAL`` seconds until plan *plan_id* stops executing."""
        plan_id = plan_id or self._state.plan_id
        while self._is_current(plan_id) and self._state.phase == RunPhase.EXECUTING:
            await self.tick()
            await asyncio.sleep(self.settings.TICK_INTERVAL)
        return self.snapshot()

    async def run(
        self, goal: str, session_id: str | None = None, model_id: str | None = None
    ) -> RunState:
        """Plan *goal* and execute it to the end."""
        state = await self.start_goal(goal, session_id=session_id, model_id=model_id)
        if state is None:
            return self.snapshot()
        return await self.drive(state.plan_id)

    # ------------------------------------------------------------------ #
    # Step execution
    # ------------------------------------------------------------------ #
    def _task_context(self, step: PlanStep) -> str:
        dependency_results = "\n\n".join(
            f"[Input from Step {dep}]: {self._state.results.get(dep) or '(No output)'}"
            for dep in step.dependencies
        )
        scratchpad = json.dumps(self.working_memory.get_snapshot().scratchpad, default=str)
        return (
            f"GOAL: {step.description}\n"
            f"DEPENDENCY CONTEXT: {dependency_results}\n"
            f"ACTIVE SCRATCHPAD: {scratchpad}"
        )

    async def _execute_step(self, plan_id: str | None, step: PlanStep) -> None:
        agent = self._agent(step.agent_id)
        agent.status = AgentStatus.EXECUTING
        step.status = StepStatus.ACTIVE
        self.working_memory.push_thought(f"Agent {agent.name} starting step: {step.description}")
        logger.info("Step '%s' started by %s", step.id, agent.name)

        try:
            context = self._task_context(step)
            tools = get_tool_declarations(agent.tools) if agent.tools else []
            system_prompt = agent.system_prompt
            if tools:
                system_prompt += "\n\nYou have access to tools. Use them if necessary."
            request = ChatRequest(
                model_id=self._model_for(agent),
                messages=[ChatMessage(role="user", content=f"TASK CONTEXT:\n{context}")],
                system_prompt=system_prompt,
                tools=tools,
                capabilities=agent.required_capabilities,
            )
            response = await self.router.chat(request)
            if not self._is_current(plan_id):
                return
            self._record_usage(response)

            if response.tool_calls:
                response = await self._tool_round(plan_id, agent, request, context, response)
                if response is None:
                    return
        except Exception as exc:  # pylint: disable=broad-except
            if self._is_current(plan_id):
                self._fail_step(step, agent, exc)
            else:
                logger.info("Ignoring failure of superseded step '%s': %s", step.id, exc)
            return

        text = response.text
        step.result = text
        self._state.results[step.id] = text
        self.working_memory.update_scratchpad(f"step_output_{step.id[:4]}", text[:50])
        step.status = StepStatus.COMPLETED
        agent.status = AgentStatus.IDLE
        self._post(
            Message(
                id=f"res-{step.id}",
                role="model",
                agent_id=agent.id,
                content=text,
                thinking=response.thinking,
            )
        )
        logger.info("Step '%s' completed", step.id)
        await self._remember(
            f"Agent {agent.name} completed: {step.description}",
            MemoryTier.SHORT_TERM,
            [agent.role.value],
        )

    async def _tool_round(
        self,
        plan_id: str | None,
        agent: Agent,
        request: ChatRequest,
        context: str,
        response: ChatResponse,
    ) -> Optional[ChatResponse]:
        """Run the requested tools and ask the model again with their results."""
        message = Message(
            id=f"tool-{uuid.uuid4().hex[:8]}",
            role="model",
            agent_id=agent.id,
            content=response.thinking or "Executing tools...",
            tool_calls=[
                ToolCallRecord(id=call.id, tool_name=call.name, args=call.args)
                for call in response.tool_calls
            ],
        )
        self._post(message)

        results, records = await self._execute_tools(response.tool_calls)
        if not self._is_current(plan_id):
            return None
        if self._state.session_id:
            update_message(self.sessions, self._state.session_id, message.id, tool_calls=records)

        follow_up = request.model_copy(
            update={
                "messages": [
                    ChatMessage(role="user", content=f"TASK CONTEXT:\n{context}"),
                    ChatMessage(role="assistant", content="Tool calls made."),
                    ChatMessage(
                        role="user",
                        content="Tool Results: "
                        + json.dumps([result.model_dump() for result in results]),
                    ),
                ],
                "system_prompt": agent.system_prompt,
                "tools": [],
            }
        )
        final = await self.router.chat(follow_up)
        if not self._is_current(plan_id):
            return None
        self._record_usage(final)
        return final

    async def _execute_tools(
        self, calls: Sequence[ToolCall]
    ) -> tuple[List[ToolResult], List[ToolCallRecord]]:
        results: List[ToolResult] = []
        records: List[ToolCallRecord] = []
        for call in calls:
            self.working_memory.push_thought(
                f"Invoking tool: {call.name} with params: {json.dumps(call.args, default=str)}"
            )
            status = "success"
            if call.name not in TOOL_REGISTRY:
                output = "Tool not found."
                status = "error"
            else:
                try:
                    output = str(await execute_tool(call.name, call.args, router=self.router))
                except ToolExecutionError as exc:
                    output = str(exc)
                    status = "error"

            result = ToolResult(id=call.id, name=call.name, response={"result": output})
            results.append(result)
            records.append(
                ToolCallRecord(
                    id=call.id,
                    tool_name=call.name,
                    args=call.args,
                    status=status,
                    result=json.dumps(result.response)[:100],
                )
            )
            self.working_memory.update_scratchpad(f"tool_result_{call.name}", output[:50] + "...")
        return results, records

    def _fail_step(self, step: PlanStep, agent: Agent, exc: Exception) -> None:
        logger.error("Step '%s' failed: %s", step.id, exc)
        self._metrics.total_errors += 1
        step.status = StepStatus.FAILED
        agent.status = AgentStatus.IDLE
        self._post(Message(id=f"fail-{step.id}", role="system", content=f"Task Failed: {exc}"))

        # Dependents of a failed step can never run; fail them now so the plan still terminates
        failed = {step.id}
        changed = True
        while changed:
            changed = False
            for other in self._state.steps:
                if other.status != StepStatus.PENDING:
                    continue
                blocker = next((dep for dep in other.dependencies if dep in failed), None)
                if blocker is not None:
                    other.status = StepStatus.FAILED
                    other.result = f"Skipped: dependency '{blocker}' failed"
                    failed.add(other.id)
                    changed = True
                    logger.info("Step '%s' skipped: dependency '%s' failed", other.id, blocker)

    # ------------------------------------------------------------------ #
    # Synthesis
    # ------------------------------------------------------------------ #
    async def _finish(self, plan_id: str | None) -> None:
        state = self._state
        if any(s.status == StepStatus.FAILED for s in state.steps):
            state.phase = RunPhase.FAILED
            state.is_loading = False
            logger.info("Run [%s] ended with failed steps; skipping synthesis", (plan_id or "")[:8])
            return

        state.phase = RunPhase.SYNTHESIZING
        self._set_agent_status(COORDINATOR_ID, AgentStatus.THINKING)
        request = ChatRequest(
            model_id=state.model_id or self.settings.DEFAULT_GENERAL_MODEL,
            messages=[
                ChatMessage(
                    role="user",
                    content="All steps complete. Synthesize these results:\n"
                    + json.dumps(state.results),
                )
            ],
            system_prompt=SYNTHESIS_SYSTEM_PROMPT,
        )
        try:
            response = await self.router.chat(request)
        except Exception as exc:  # pylint: disable=broad-except
            if self._is_current(plan_id):
                logger.error("Final synthesis failed: %s", exc)
                self._metrics.total_errors += 1
                state.error = f"Final synthesis failed: {exc}"
                self._settle()
            return
        if not self._is_current(plan_id):
            return

        self._record_usage(response)
        state.final_answer = response.text
        self._post(
            Message(
                id=f"final-{(plan_id or '')[:8]}",
                role="model",
                agent_id=COORDINATOR_ID,
                type="result",
                content=response.text,
                thinking=response.thinking,
            )
        )
        self._settle()
        logger.info("Run [%s] complete", (plan_id or "")[:8])
        await self._consolidate_memory()

    def _settle(self) -> None:
        self._state.phase = RunPhase.IDLE
        self._state.is_loading = False
        self._set_agent_status(COORDINATOR_ID, AgentStatus.IDLE)

    async def _consolidate_memory(self) -> None:
        async def synthesize(prompt: str) -> str:
            response = await self.router.chat(
                ChatRequest(
                    model_id=self.settings.DEFAULT_GENERAL_MODEL,
                    messages=[ChatMessage(role="user", content=prompt)],
                )
            )
            return response.text

        try:
            await self.memory.consolidate(synthesize)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Memory consolidation failed: %s", exc)
