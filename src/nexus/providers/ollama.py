"""Adapter for a local Ollama daemon (OpenAI-compatible endpoint, no key)."""

import logging
from typing import ClassVar

import httpx

from nexus.core.resilience import RetryConfig
from nexus.core.schema import (
    ChatRequest,
    ChatResponse,
    ProviderId,
)
from nexus.providers.base import (
    ProviderUnavailableError,
    register_provider,
)
from nexus.providers.chat_completions import ChatCompletionsProvider

logger = logging.getLogger(__name__)

_PROBE_TIMEOUT = 2.0


@register_provider(ProviderId.OLLAMA)
class OllamaProvider(ChatCompletionsProvider):
    """Local models; probes the daemon before every request."""

    # Local failures rarely heal by waiting
    retry_config: ClassVar[RetryConfig] = RetryConfig(retries=1, initial_delay=0.5)
    requires_api_key: ClassVar[bool] = False

    @property
    def probe_url(self) -> str:
        base = (self.config.base_url or "http://localhost:11434/v1").rstrip("/")
        if base.endswith("/v1"):
            base = base[: -len("/v1")]
        return f"{base}/api/tags"

    async def check_connection(self) -> bool:
        """Return True if the daemon answers its tag listing."""
        try:
            async with self._http_client(timeout=_PROBE_TIMEOUT) as client:
                resp = await client.get(self.probe_url)
            return resp.is_success
        except httpx.HTTPError as exc:
            logger.debug("Ollama probe failed: %s", exc)
            return False

    async def chat(self, request: ChatRequest) -> ChatResponse:
        if not await self.check_connection():
            raise ProviderUnavailableError(
                f"Ollama server not reachable at {self.probe_url}. Ensure it is running.",
                provider=self.label,
            )
        return await super().chat(request)
