"""Shared fixtures: isolated settings and a scriptable stand-in for every provider adapter."""

import inspect
from typing import (
    Any,
    Callable,
    List,
)

import pytest

from nexus.config import Settings
from nexus.core.provider_config import ProviderConfigStore
from nexus.core.router import Router
from nexus.core.schema import (
    ChatRequest,
    ChatResponse,
    ProviderConfig,
)


def make_settings(**overrides: Any) -> Settings:
    """Settings independent of the developer's environment and .env file."""
    values: dict[str, Any] = {
        "GOOGLE_API_KEY": "google-key",
        "ANTHROPIC_API_KEY": "anthropic-key",
        "OPENAI_API_KEY": "openai-key",
        "TICK_INTERVAL": 0.0,
        "VECTOR_DB": "none",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeLLM:
    """
    Answers every adapter call through :attr:`handler` and records the requests.

    *handler* receives the request and returns a :class:`ChatResponse`, an exception to raise,
    or an awaitable producing either.
    """

    def __init__(self) -> None:
        self.requests: List[ChatRequest] = []
        self.handler: Callable[[ChatRequest], Any] = lambda request: ChatResponse(text="ok")

    def factory(self, config: ProviderConfig) -> "FakeProvider":
        return FakeProvider(config, self)

    @property
    def model_ids(self) -> List[str]:
        return [request.model_id for request in self.requests]


class FakeProvider:
    def __init__(self, config: ProviderConfig, llm: FakeLLM):
        self.config = config
        self.label = config.name
        self._llm = llm

    async def chat(self, request: ChatRequest) -> ChatResponse:
        self._llm.requests.append(request)
        outcome = self._llm.handler(request)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome.model_copy(update={"model_id": request.model_id, "provider": self.config.id})


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def config_store(settings: Settings) -> ProviderConfigStore:
    return ProviderConfigStore(settings)


@pytest.fixture
def router(settings: Settings, config_store: ProviderConfigStore, fake_llm: FakeLLM) -> Router:
    return Router(config_store=config_store, settings=settings, provider_factory=fake_llm.factory)
