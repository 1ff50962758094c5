"""
Provider adapter base class and registry.

Every upstream API family gets one adapter that translates the canonical
:class:`~nexus.core.schema.ChatRequest` into its wire format and the reply back into a
:class:`~nexus.core.schema.ChatResponse`.  Provider-specific shapes never leak past an adapter.

New adapters subclass :class:`BaseProvider` and register themselves via
:func:`register_provider`; :func:`load_provider` instantiates the right one for a config.
"""

import json
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    List,
    Type,
)

import httpx

from nexus.core.resilience import (
    RetryConfig,
    with_retry,
)
from nexus.core.schema import (
    ChatRequest,
    ChatResponse,
    ProviderConfig,
    ProviderId,
    ToolDeclaration,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class ProviderError(RuntimeError):
    """An upstream call failed.  The message always carries status and body when known."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        body: str | None = None,
        provider: str | None = None,
    ):
        self.status = status
        self.body = body
        self.provider = provider
        if status is not None:
            message = f"{message} ({status}): {body or ''}".rstrip()
        super().__init__(message)


class ProviderAuthError(ProviderError):
    """Missing, malformed or rejected credentials."""


class ProviderUnavailableError(ProviderError):
    """The upstream service did not answer a reachability probe."""


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_PROVIDER_REGISTRY: Dict[ProviderId, Type["BaseProvider"]] = {}


def register_provider(*provider_ids: ProviderId) -> Callable:
    """Decorator to register an adapter class for one or more provider ids."""

    def wrapper(cls: Type["BaseProvider"]) -> Type["BaseProvider"]:
        for provider_id in provider_ids:
            _PROVIDER_REGISTRY[provider_id] = cls
        return cls

    return wrapper


def load_provider(
    config: ProviderConfig, transport: httpx.AsyncBaseTransport | None = None, **kwargs: Any
) -> "BaseProvider":
    """
    Factory that returns an adapter instance for *config*.

    *transport* is handed to every HTTP client the adapter builds (tests pass an
    ``httpx.MockTransport``).
    """
    cls = _PROVIDER_REGISTRY.get(config.id)
    if cls is None:
        raise ValueError(f"No adapter registered for provider '{config.id.value}'.")
    return cls(config, transport=transport, **kwargs)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseProvider(ABC):
    """Abstract adapter: canonical request in, canonical response out."""

    retry_config: ClassVar[RetryConfig] = RetryConfig()
    requires_api_key: ClassVar[bool] = True

    def __init__(
        self,
        config: ProviderConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 60.0,
    ):
        self.config = config
        self._transport = transport
        self._timeout = timeout

    @property
    def provider_id(self) -> ProviderId:
        return self.config.id

    @property
    def label(self) -> str:
        return self.config.name

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Send *request* upstream, retrying transient failures."""
        self._check_credentials()
        response = await with_retry(lambda: self._complete(request), self.retry_config)
        return response.model_copy(
            update={"model_id": response.model_id or request.model_id, "provider": self.provider_id}
        )

    @abstractmethod
    async def _complete(self, request: ChatRequest) -> ChatResponse:
        """Perform a single upstream attempt."""

    # ------------------------------------------------------------------ #
    # Shared helpers
    # ------------------------------------------------------------------ #
    def _check_credentials(self) -> None:
        if self.requires_api_key and not self.config.api_key:
            raise ProviderAuthError(f"{self.label} API key not configured", provider=self.label)

    def _http_client(self, **kwargs: Any) -> httpx.AsyncClient:
        kwargs.setdefault("timeout", self._timeout)
        return httpx.AsyncClient(transport=self._transport, **kwargs)

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        error_cls = ProviderAuthError if response.status_code in (401, 403) else ProviderError
        raise error_cls(
            f"{self.label} API error",
            status=response.status_code,
            body=response.text,
            provider=self.label,
        )

    def _decode(
        self, response: httpx.Response, parse: Callable[[Any], ChatResponse]
    ) -> ChatResponse:
        """Apply *parse* to the JSON body; a body of the wrong shape becomes a ProviderError."""
        try:
            return parse(response.json())
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise ProviderError(
                f"{self.label} returned a malformed response: {exc!r}",
                body=response.text,
                provider=self.label,
            ) from exc


# ---------------------------------------------------------------------------
# OpenAI chat-completions wire helpers (shared by several families)
# ---------------------------------------------------------------------------
def openai_messages(request: ChatRequest) -> List[Dict[str, str]]:
    """Canonical messages with the system prompt injected as the first message."""
    messages: List[Dict[str, str]] = []
    if request.system_prompt:
        messages.append({"role": "system", "content": request.system_prompt})
    messages.extend({"role": m.role, "content": m.content} for m in request.messages)
    return messages


def openai_tools(tools: List[ToolDeclaration]) -> List[Dict[str, Any]]:
    """Wrap declarations in the ``{"type": "function", "function": {...}}`` envelope."""
    return [{"type": "function", "function": tool.model_dump()} for tool in tools]


def decode_tool_arguments(raw: Any) -> Dict[str, Any]:
    """
    Decode a tool-call argument payload.

    Most OpenAI-style APIs return arguments as a JSON string.  A payload that does not decode to
    an object is passed through under ``raw_arguments`` so the tool layer can report it.
    """
    if isinstance(raw, dict):
        return raw
    if raw is None or raw == "":
        return {}
    try:
        decoded = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        logger.warning("Could not decode tool arguments: %r", raw)
        return {"raw_arguments": raw}
    return decoded if isinstance(decoded, dict) else {"raw_arguments": raw}
