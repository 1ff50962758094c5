"""
Schema definitions for agents, plans and the run they belong to.

Everything the orchestrator publishes (plan steps, per-run state, chat messages and sessions) is a
pydantic model so the API layer can return it directly.
"""

import time
import uuid
from enum import Enum
from typing import (
    Any,
    Dict,
    FrozenSet,
    List,
    Literal,
    Optional,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)

from nexus.core.schema import (
    Capability,
    ModelCategory,
)


class AgentRole(str, Enum):
    ORCHESTRATOR = "Orchestrator"
    ENGINEER = "Engineer"
    ANALYST = "Analyst"
    DESIGNER = "Designer"


class AgentStatus(str, Enum):
    IDLE = "idle"
    THINKING = "thinking"
    EXECUTING = "executing"
    DORMANT = "dormant"


class StepStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class RunPhase(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    EXECUTING = "executing"
    SYNTHESIZING = "synthesizing"
    FAILED = "failed"


TERMINAL_STEP_STATUSES = frozenset({StepStatus.COMPLETED, StepStatus.FAILED})


# ---------------------------------------------------------------------------
# Agents and plans
# ---------------------------------------------------------------------------
class Agent(BaseModel):
    """A specialist that executes plan steps."""

    id: str
    name: str
    role: AgentRole
    status: AgentStatus = AgentStatus.DORMANT
    specialty: str = ""
    system_prompt: str = ""
    capabilities: List[str] = Field(default_factory=list, description="Free-text skill tags")
    required_capabilities: FrozenSet[Capability] = frozenset()
    tools: List[str] = Field(default_factory=list)
    model_category: ModelCategory = ModelCategory.GENERAL


class PlanStep(BaseModel):
    """One node of the execution DAG."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    agent_id: str = Field(..., alias="agentId")
    description: str
    dependencies: List[str] = Field(default_factory=list)
    status: StepStatus = StepStatus.PENDING
    result: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STEP_STATUSES


class RunMetrics(BaseModel):
    total_tokens: int = 0
    total_requests: int = 0
    total_errors: int = 0
    start_time: float = Field(default_factory=time.time)


class RunState(BaseModel):
    """Observable state of the current (or last) run."""

    plan_id: Optional[str] = None
    goal: Optional[str] = None
    session_id: Optional[str] = None
    model_id: Optional[str] = None
    phase: RunPhase = RunPhase.IDLE
    steps: List[PlanStep] = Field(default_factory=list)
    results: Dict[str, str] = Field(default_factory=dict)
    is_loading: bool = False
    error: Optional[str] = None
    final_answer: Optional[str] = None
    metrics: RunMetrics = Field(default_factory=RunMetrics)
    agents: List[Agent] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Messages and sessions
# ---------------------------------------------------------------------------
class ToolCallRecord(BaseModel):
    """A tool call as shown in the conversation."""

    id: str
    tool_name: str
    args: Dict[str, Any] = Field(default_factory=dict)
    status: Literal["pending", "success", "error"] = "pending"
    result: Optional[str] = None


class ToolResult(BaseModel):
    """Result envelope fed back to the model after a tool runs."""

    id: str
    name: str
    response: Dict[str, str]


class Message(BaseModel):
    """One entry in a session's conversation."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Literal["user", "model", "system"]
    content: str
    timestamp: float = Field(default_factory=time.time)
    thinking: Optional[str] = None
    agent_id: Optional[str] = None
    tool_calls: Optional[List[ToolCallRecord]] = None
    type: Literal["text", "plan", "result"] = "text"


class ChatSession(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str = "New Session"
    last_modified: float = Field(default_factory=time.time)
    preview: str = "New Conversation"
