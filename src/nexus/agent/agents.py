"""Default agent roster and the capabilities each role needs from its model."""

import logging
from typing import (
    Dict,
    FrozenSet,
    List,
    Sequence,
)

from nexus.agent.schema import (
    Agent,
    AgentRole,
    AgentStatus,
)
from nexus.core.schema import (
    Capability,
    ModelCategory,
)

logger = logging.getLogger(__name__)

COORDINATOR_ID = "coordinator"

ROLE_CAPABILITIES: Dict[AgentRole, FrozenSet[Capability]] = {
    AgentRole.ORCHESTRATOR: frozenset(),
    AgentRole.ENGINEER: frozenset({Capability.TOOL_CALLING}),
    AgentRole.ANALYST: frozenset({Capability.TOOL_CALLING}),
    AgentRole.DESIGNER: frozenset({Capability.VISION}),
}


def _agent(role: AgentRole, **fields) -> Agent:
    return Agent(role=role, required_capabilities=ROLE_CAPABILITIES[role], **fields)


def default_agents() -> List[Agent]:
    """Return a fresh copy of the built-in roster."""
    return [
        _agent(
            AgentRole.ORCHESTRATOR,
            id=COORDINATOR_ID,
            name="Orchestrator",
            status=AgentStatus.IDLE,
            specialty="Strategic Planning",
            capabilities=["Task Decomposition", "Context Synthesis", "Plan Optimization"],
            system_prompt=(
                "You are the Orchestrator, the Strategic Planner.\n"
                "RESPONSIBILITIES:\n"
                "1. Analyze requests and delegate to specialists.\n"
                "2. Synthesize results into a final answer.\n"
                "3. Ensure the strategic goal is met."
            ),
        ),
        _agent(
            AgentRole.ENGINEER,
            id="coder",
            name="DevUnit-7",
            specialty="Full Stack Dev",
            capabilities=["React/TypeScript", "System Design", "Algorithm Optimization"],
            tools=["web_search", "code_analysis"],
            model_category=ModelCategory.CODING,
            system_prompt=(
                "You are DevUnit-7, a senior software engineer.\n"
                "CAPABILITIES:\n"
                "- Write clean, production-ready code.\n"
                "- Analyze existing code.\n"
                "- Design scalable architectures."
            ),
        ),
        _agent(
            AgentRole.ANALYST,
            id="researcher",
            name="Archive-X",
            specialty="Data Synthesis",
            capabilities=["Deep Web Search", "Trend Analysis", "Fact Verification"],
            tools=["web_search"],
            system_prompt=(
                "You are Archive-X, an elite research agent.\n"
                "CAPABILITIES:\n"
                "- Retrieve real-time info using 'web_search'.\n"
                "- Synthesize data and verify facts."
            ),
        ),
        _agent(
            AgentRole.DESIGNER,
            id="creative",
            name="Muse-9",
            specialty="UX & Copy",
            capabilities=["User Experience", "Creative Writing", "Brand Strategy"],
            model_category=ModelCategory.VISION,
            system_prompt=(
                "You are Muse-9, a creative director.\n"
                "CAPABILITIES:\n"
                "- Design intuitive user flows.\n"
                "- Write compelling copy."
            ),
        ),
    ]


def find_agent(agents: Sequence[Agent], agent_id: str) -> Agent:
    """Return the agent with *agent_id*, or the coordinator (else the first agent) if unknown."""
    fallback = None
    for agent in agents:
        if agent.id == agent_id:
            return agent
        if agent.id == COORDINATOR_ID:
            fallback = agent
    if fallback is None:
        fallback = agents[0]
    logger.warning("Unknown agent '%s'; assigning step to '%s'", agent_id, fallback.id)
    return fallback
