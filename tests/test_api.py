"""HTTP surface: catalog, providers, sessions and runs."""

import json
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from nexus.agent.orchestrator import (
    SYNTHESIS_SYSTEM_PROMPT,
    Orchestrator,
)
from nexus.agent.planner import PLANNER_SYSTEM_PROMPT
from nexus.api.app import (
    Services,
    create_app,
)
from nexus.core.provider_config import ProviderConfigStore
from nexus.core.registry import MODEL_REGISTRY
from nexus.core.router import Router
from nexus.core.schema import (
    ChatRequest,
    ChatResponse,
    ProviderId,
    Usage,
)
from nexus.memory.session_store import InMemorySessionStore
from nexus.memory.vector_memory import NullMemoryBank
from nexus.providers import ProviderAuthError

from conftest import (
    FakeLLM,
    make_settings,
)

PLAN = json.dumps(
    [
        {"id": "s1", "agentId": "researcher", "description": "gather facts"},
        {"id": "s2", "agentId": "coder", "description": "write it up", "dependencies": ["s1"]},
    ]
)


def _answer(request: ChatRequest) -> ChatResponse:
    if request.system_prompt == PLANNER_SYSTEM_PROMPT:
        text = PLAN
    elif request.system_prompt == SYNTHESIS_SYSTEM_PROMPT:
        text = "Final report"
    else:
        text = "step output"
    return ChatResponse(text=text, usage=Usage.from_counts(1000, 500))


@pytest.fixture
def services(settings, config_store: ProviderConfigStore, router: Router) -> Services:
    sessions = InMemorySessionStore()
    orchestrator = Orchestrator(router, sessions=sessions, settings=settings)
    return Services(settings, config_store, router, sessions, orchestrator)


@pytest.fixture
def client(services: Services, fake_llm: FakeLLM) -> Iterator[TestClient]:
    fake_llm.handler = _answer
    with TestClient(create_app(services)) as test_client:
        yield test_client


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


# ---------------------------------------------------------------------------
# Catalog and providers
# ---------------------------------------------------------------------------
def test_models(client: TestClient) -> None:
    catalog = client.get("/models").json()
    assert len(catalog) == len(MODEL_REGISTRY)

    model = client.get("/models/gpt-5.2").json()
    assert model["provider"] == "openai"
    assert {"vision", "tool-calling"} <= set(model["capabilities"])

    missing = client.get("/models/gpt-2")
    assert missing.status_code == 404
    assert "not found in registry" in missing.json()["detail"]


def test_providers_never_expose_keys(client: TestClient) -> None:
    providers = {p["id"]: p for p in client.get("/providers").json()}

    assert providers["google"]["has_api_key"] is True
    assert providers["google"]["enabled"] is True
    assert providers["mistral"]["enabled"] is False
    assert all("api_key" not in p for p in providers.values())


def test_saving_a_key_enables_the_provider(client: TestClient, services: Services) -> None:
    response = client.put("/providers/mistral", json={"api_key": "m-key"})

    assert response.status_code == 200
    body = response.json()
    assert body["enabled"] is True
    assert body["has_api_key"] is True
    assert "m-key" not in response.text
    assert ProviderId.MISTRAL in services.router.active_providers


def test_disabling_a_provider(client: TestClient, services: Services) -> None:
    response = client.put("/providers/openai", json={"enabled": False})

    assert response.json()["enabled"] is False
    assert ProviderId.OPENAI not in services.router.active_providers


def test_unknown_provider(client: TestClient) -> None:
    assert client.put("/providers/skynet", json={"enabled": True}).status_code == 404


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------
def test_sessions(client: TestClient) -> None:
    created = client.post("/sessions")
    assert created.status_code == 201
    session = created.json()
    assert session["title"] == "New Session"

    assert [s["id"] for s in client.get("/sessions").json()] == [session["id"]]
    assert client.get(f"/sessions/{session['id']}/messages").json() == []
    assert client.get("/sessions/missing/messages").status_code == 404


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------
def test_run_is_planned_then_executed_in_background(client: TestClient) -> None:
    response = client.post("/runs", json={"goal": "Write a market report"})

    assert response.status_code == 202
    run = response.json()["run"]
    assert run["phase"] == "executing"
    assert run["is_loading"] is True
    assert [s["agentId"] for s in run["steps"]] == ["researcher", "coder"]
    assert run["steps"][1]["dependencies"] == ["s1"]

    # TestClient runs background tasks before returning
    current = client.get("/runs/current").json()
    assert current["run"]["final_answer"] == "Final report"
    assert current["run"]["phase"] == "idle"
    assert current["run"]["is_loading"] is False
    assert [s["status"] for s in current["run"]["steps"]] == ["completed", "completed"]
    assert "step_output_s1" in current["working_memory"]["scratchpad"]

    messages = client.get(f"/sessions/{run['session_id']}/messages").json()
    assert [m["type"] for m in messages] == ["text", "plan", "text", "text", "result"]
    session = client.get("/sessions").json()[0]
    assert session["title"] == "Write a market report"

    usage = client.get("/usage").json()
    assert usage["total_cost"] > 0
    assert {"google", "anthropic"} <= set(usage["by_provider"])


def test_run_in_existing_session(client: TestClient) -> None:
    session_id = client.post("/sessions").json()["id"]

    response = client.post("/runs", json={"goal": "Hello", "session_id": session_id})

    assert response.json()["run"]["session_id"] == session_id
    assert len(client.get(f"/sessions/{session_id}/messages").json()) == 5


def test_run_validation(client: TestClient) -> None:
    assert client.post("/runs", json={"goal": ""}).status_code == 422
    assert client.post("/runs", json={"goal": "x", "model_id": "gpt-2"}).status_code == 400
    assert client.post("/runs", json={"goal": "x", "session_id": "nope"}).status_code == 404


def test_planning_failure_is_reported_in_the_run(client: TestClient, fake_llm: FakeLLM) -> None:
    fake_llm.handler = lambda request: ProviderAuthError("rejected", status=401)

    response = client.post("/runs", json={"goal": "Anything"})

    assert response.status_code == 202
    run = response.json()["run"]
    assert run["phase"] == "idle"
    assert "Authentication failed" in run["error"]
    assert run["metrics"]["total_errors"] == 1


def test_superseded_run_is_not_driven(
    client: TestClient, services: Services, monkeypatch: pytest.MonkeyPatch
) -> None:
    driven = []

    async def superseded(goal, session_id=None, model_id=None):  # pylint: disable=unused-argument
        return None

    async def drive(plan_id=None):
        driven.append(plan_id)

    monkeypatch.setattr(services.orchestrator, "start_goal", superseded)
    monkeypatch.setattr(services.orchestrator, "drive", drive)

    response = client.post("/runs", json={"goal": "Anything"})

    assert response.status_code == 202
    assert response.json()["run"]["phase"] == "idle"
    assert driven == []


def test_current_run_before_any_goal(client: TestClient) -> None:
    body = client.get("/runs/current").json()

    assert body["run"]["phase"] == "idle"
    assert body["run"]["steps"] == []
    assert {a["id"] for a in body["run"]["agents"]} == {
        "coordinator",
        "coder",
        "researcher",
        "creative",
    }


def test_services_build_without_vector_store() -> None:
    services = Services.build(make_settings())

    assert isinstance(services.orchestrator.memory, NullMemoryBank)
    assert services.orchestrator.sessions is services.sessions
    assert services.orchestrator.router is services.router
