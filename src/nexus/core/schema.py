"""
Schema definitions for the router <-> provider contract.

These data models are the canonical request/response shape every provider adapter translates to
and from, plus the static description of models and providers.  We keep them separate from runtime
logic so they can be imported anywhere without side-effects.
"""

from enum import Enum
from typing import (
    Any,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Literal,
    Optional,
    Tuple,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


class Capability(str, Enum):
    """Optional features a model may support."""

    VISION = "vision"
    TOOL_CALLING = "tool-calling"
    REASONING = "reasoning"
    STREAMING = "streaming"
    COMPUTER_USE = "computer-use"
    REAL_TIME_SEARCH = "real-time-search"
    THINKING_IN_TOOLS = "thinking-in-tools"


class ProviderId(str, Enum):
    """Upstream API families known to the router."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    DEEPSEEK = "deepseek"
    GROK = "grok"
    MOONSHOT = "moonshot"
    GLM = "glm"
    OLLAMA = "ollama"
    NANOBANANA = "nanobanana"
    MISTRAL = "mistral"
    META = "meta"


class ModelCategory(str, Enum):
    """Task categories that have a configurable default model."""

    GENERAL = "general"
    CODING = "coding"
    VISION = "vision"
    REASONING = "reasoning"
    LONG_CONTEXT = "long_context"


# ---------------------------------------------------------------------------
# Static catalog entries
# ---------------------------------------------------------------------------
class Model(BaseModel):
    """A model known to the registry.  Defined once, never mutated."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Provider-specific model identifier")
    name: str
    provider: ProviderId
    context_window: int
    input_price: float = Field(..., description="USD per million input tokens")
    output_price: float = Field(..., description="USD per million output tokens")
    capabilities: FrozenSet[Capability] = frozenset()
    badges: Tuple[str, ...] = ()
    description: Optional[str] = None

    def supports(self, required: Iterable[Capability]) -> bool:
        """Return True if every capability in *required* is offered by this model."""
        return set(required) <= self.capabilities

    def missing(self, required: Iterable[Capability]) -> List[Capability]:
        """Return the capabilities in *required* this model lacks, in a stable order."""
        return sorted(set(required) - self.capabilities, key=lambda cap: cap.value)


class ProviderConfig(BaseModel):
    """Per-provider connection settings, owned by the configuration store."""

    id: ProviderId
    name: str
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    enabled: bool = False


# ---------------------------------------------------------------------------
# Canonical request / response
# ---------------------------------------------------------------------------
class ChatMessage(BaseModel):
    """One turn of conversation in provider-independent form."""

    role: Literal["user", "assistant", "system"]
    content: str


class ToolDeclaration(BaseModel):
    """A tool the model may call; *parameters* is a JSON-schema-like object."""

    name: str
    description: str = ""
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


class ToolCall(BaseModel):
    """A tool invocation requested by the model."""

    id: str
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class Usage(BaseModel):
    """Token accounting for one call."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_counts(cls, input_tokens: int | None, output_tokens: int | None) -> "Usage":
        """Build a usage record, filling the total from the two halves."""
        inp = input_tokens or 0
        out = output_tokens or 0
        return cls(input_tokens=inp, output_tokens=out, total_tokens=inp + out)


class ChatRequest(BaseModel):
    """Canonical chat request.  Constructed fresh per call, never persisted."""

    model_id: str
    messages: List[ChatMessage]
    capabilities: FrozenSet[Capability] = frozenset()
    tools: List[ToolDeclaration] = Field(default_factory=list)
    system_prompt: Optional[str] = None


class ChatResponse(BaseModel):
    """Canonical chat response returned by every adapter."""

    text: str = ""
    tool_calls: List[ToolCall] = Field(default_factory=list)
    thinking: Optional[str] = None
    usage: Usage = Field(default_factory=Usage)
    model_id: Optional[str] = None  # the model that actually served the call
    provider: Optional[ProviderId] = None
    simulated: bool = False
