"""
Pydantic models for Nexus API requests and responses.
This module defines the request and response schemas used by the Nexus API; the run, message and
session payloads reuse the models in :mod:`nexus.agent.schema` directly.
"""

from typing import (
    Dict,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from nexus.agent.schema import RunState
from nexus.core.schema import (
    ProviderConfig,
    ProviderId,
)
from nexus.memory.working_memory import WorkingMemorySnapshot


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class ProviderResponse(BaseModel):
    """Provider settings as exposed over HTTP.  The key itself is never returned."""

    id: ProviderId
    name: str
    base_url: Optional[str] = None
    enabled: bool
    has_api_key: bool

    @classmethod
    def from_config(cls, config: ProviderConfig) -> "ProviderResponse":
        return cls(
            id=config.id,
            name=config.name,
            base_url=config.base_url,
            enabled=config.enabled,
            has_api_key=bool(config.api_key),
        )


class ProviderUpdate(BaseModel):
    """Partial update of one provider; omitted fields are left alone."""

    api_key: Optional[str] = Field(
        None, description="New key; an empty string disables the provider"
    )
    base_url: Optional[str] = None
    enabled: Optional[bool] = None


class RunRequest(BaseModel):
    """Start a new run."""

    goal: str = Field(..., min_length=1, description="What the agents should accomplish")
    session_id: Optional[str] = Field(None, description="Session to post messages to")
    model_id: Optional[str] = Field(None, description="Model override for every call of the run")


class RunResponse(BaseModel):
    """Current run together with the working memory it has built up."""

    run: RunState
    working_memory: WorkingMemorySnapshot


class UsageResponse(BaseModel):
    total_cost: float
    by_provider: Dict[str, Dict[str, float]]
