"""
Core API backend for Nexus.

The API is the observation and control surface of the orchestrator.  It exposes the following
endpoints:
- **GET /health**               - liveness probe for health checks.
- **GET /models**               - the model catalog; **GET /models/{id}** for one entry.
- **GET /providers**            - provider settings; **PUT /providers/{id}** to change one.
- **POST /sessions**            - create a new session.
- **GET /sessions**             - list sessions, most recent first.
- **GET /sessions/{id}/messages** - the conversation of one session.
- **POST /runs**                - plan a goal and execute it in the background.
- **GET /runs/current**         - state of the current run and its working memory.
- **GET /usage**                - estimated spend per provider.
"""

import logging
from dataclasses import dataclass
from typing import (
    Any,
    List,
)

from fastapi import (
    BackgroundTasks,
    FastAPI,
    HTTPException,
    Request,
)
from fastapi.middleware.cors import CORSMiddleware

from nexus.agent.orchestrator import Orchestrator
from nexus.agent.schema import (
    ChatSession,
    Message,
    RunPhase,
)
from nexus.api.models import (
    ProviderResponse,
    ProviderUpdate,
    RunRequest,
    RunResponse,
    UsageResponse,
)
from nexus.common import (
    AnsiColors,
    colored_print,
)
from nexus.config import (
    Settings,
    settings as default_settings,
)
from nexus.core.provider_config import ProviderConfigStore
from nexus.core.router import Router
from nexus.core.schema import (
    Model,
    ProviderId,
)
from nexus.memory.session_store import (
    InMemorySessionStore,
    SessionNotFoundError,
    SessionStore,
    create_session,
)
from nexus.memory.vector_memory import (
    MemoryBank,
    NullMemoryBank,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------
@dataclass
class Services:
    """Everything the API needs, constructed once per process."""

    settings: Settings
    config_store: ProviderConfigStore
    router: Router
    sessions: SessionStore
    orchestrator: Orchestrator

    @classmethod
    def build(cls, settings: Settings | None = None) -> "Services":
        settings = settings or default_settings
        config_store = ProviderConfigStore(settings)
        router = Router(config_store=config_store, settings=settings)
        sessions = InMemorySessionStore()
        memory: Any
        if settings.VECTOR_DB == "none":
            memory = NullMemoryBank()
        else:
            try:
                memory = MemoryBank(
                    collection_name=settings.MEMORY_COLLECTION,
                    host=settings.VECTOR_DB_HOST,
                    port=settings.VECTOR_DB_PORT,
                )
            except Exception as exc:
                logger.error("Failed to initialize vector memory: %s", exc)
                raise RuntimeError("Failed to initialize vector memory") from exc
        orchestrator = Orchestrator(router, memory=memory, sessions=sessions, settings=settings)
        return cls(settings, config_store, router, sessions, orchestrator)


def _services(request: Request) -> Services:
    return request.app.state.services


def _provider_id(provider_id: str) -> ProviderId:
    try:
        return ProviderId(provider_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown provider '{provider_id}'") from exc


def _run_response(services: Services) -> RunResponse:
    return RunResponse(
        run=services.orchestrator.snapshot(),
        working_memory=services.orchestrator.working_memory.get_snapshot(),
    )


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------
def create_app(services: Services | None = None) -> FastAPI:
    """Build the FastAPI app around *services* (built from settings when omitted)."""
    services = services or Services.build()

    app = FastAPI(
        title="Nexus API", version="0.1.0", description="Nexus multi-agent orchestrator API"
    )
    app.state.services = services

    # Allow requests from browser front-ends
    app.add_middleware(
        CORSMiddleware,
        allow_origins=services.settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", summary="Health check")
    async def health() -> dict[str, str]:
        """Return a simple liveness payload."""
        return {"status": "ok"}

    # ------------------------------------------------------------------ #
    # Models and providers
    # ------------------------------------------------------------------ #
    @app.get("/models", response_model=List[Model], summary="List the model catalog")
    async def list_models(request: Request) -> List[Model]:
        return _services(request).router.models

    @app.get("/models/{model_id}", response_model=Model, summary="Get one model")
    async def get_model(model_id: str, request: Request) -> Model:
        model = _services(request).router.get_model(model_id)
        if model is None:
            raise HTTPException(status_code=404, detail=f"Model {model_id} not found in registry.")
        return model

    @app.get("/providers", response_model=List[ProviderResponse], summary="List providers")
    async def list_providers(request: Request) -> List[ProviderResponse]:
        return [ProviderResponse.from_config(c) for c in _services(request).config_store.all()]

    @app.put(
        "/providers/{provider_id}", response_model=ProviderResponse, summary="Update a provider"
    )
    async def update_provider(
        provider_id: str, update: ProviderUpdate, request: Request
    ) -> ProviderResponse:
        services = _services(request)
        pid = _provider_id(provider_id)
        store = services.config_store
        if update.api_key is not None:
            store.set_api_key(pid, update.api_key)
        if update.base_url is not None:
            store.set_base_url(pid, update.base_url or None)
        if update.enabled is not None:
            store.set_enabled(pid, update.enabled)
        services.router.reload_config()
        logger.info("Provider '%s' updated", pid.value)
        return ProviderResponse.from_config(store.get(pid))

    @app.get("/usage", response_model=UsageResponse, summary="Estimated spend")
    async def usage(request: Request) -> UsageResponse:
        tracker = _services(request).router.usage
        return UsageResponse(total_cost=tracker.total_cost, by_provider=tracker.by_provider())

    # ------------------------------------------------------------------ #
    # Sessions
    # ------------------------------------------------------------------ #
    @app.post("/sessions", response_model=ChatSession, status_code=201, summary="Create a session")
    async def new_session(request: Request) -> ChatSession:
        return create_session(_services(request).sessions)

    @app.get("/sessions", response_model=List[ChatSession], summary="List sessions")
    async def list_sessions(request: Request) -> List[ChatSession]:
        return _services(request).sessions.get_sessions()

    @app.get(
        "/sessions/{session_id}/messages",
        response_model=List[Message],
        summary="Messages of a session",
    )
    async def session_messages(session_id: str, request: Request) -> List[Message]:
        store = _services(request).sessions
        if not any(s.id == session_id for s in store.get_sessions()):
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        return store.get_messages(session_id)

    # ------------------------------------------------------------------ #
    # Runs
    # ------------------------------------------------------------------ #
    @app.post("/runs", response_model=RunResponse, status_code=202, summary="Start a run")
    async def start_run(
        req: RunRequest, request: Request, background_tasks: BackgroundTasks
    ) -> RunResponse:
        """Plan *goal* now and execute the plan in the background."""
        services = _services(request)
        if req.model_id and services.router.get_model(req.model_id) is None:
            raise HTTPException(
                status_code=400, detail=f"Model {req.model_id} not found in registry."
            )

        try:
            state = await services.orchestrator.start_goal(
                req.goal, session_id=req.session_id, model_id=req.model_id
            )
        except SessionNotFoundError as exc:
            raise HTTPException(
                status_code=404, detail=f"Session {req.session_id} not found"
            ) from exc

        # A superseded goal returns None; the newer goal's request drives its own plan
        if state is not None and state.phase == RunPhase.EXECUTING:
            background_tasks.add_task(services.orchestrator.drive, state.plan_id)
        return _run_response(services)

    @app.get("/runs/current", response_model=RunResponse, summary="Current run state")
    async def current_run(request: Request) -> RunResponse:
        return _run_response(_services(request))

    return app


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting the app built by :func:`create_app`.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in dev docker-compose).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = default_settings.LOG_LEVEL

    logger.info(
        "Starting Nexus API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )

    colored_print(f"Nexus API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)
    uvicorn.run(
        "nexus.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m nexus.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
