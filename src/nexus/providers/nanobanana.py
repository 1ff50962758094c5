"""
Adapter for Nano Banana, an on-device model with no hosted conversational endpoint.

When an edge runtime is configured (``base_url``) the prompt is sent there.  Without one, or when
the runtime errors, the adapter degrades to a clearly labelled simulated reply instead of failing
the whole run.
"""

import logging
from typing import ClassVar

import httpx

from nexus.core.resilience import with_retry
from nexus.core.schema import (
    ChatRequest,
    ChatResponse,
    ProviderId,
    Usage,
)
from nexus.providers.base import (
    BaseProvider,
    ProviderError,
    register_provider,
)

logger = logging.getLogger(__name__)


@register_provider(ProviderId.NANOBANANA)
class NanoBananaProvider(BaseProvider):
    """Edge runtime when available, simulation otherwise."""

    requires_api_key: ClassVar[bool] = False

    async def chat(self, request: ChatRequest) -> ChatResponse:
        if not self.config.base_url:
            return self._simulated(
                request, "Edge runtime not configured. Running in simulation mode."
            )
        try:
            response = await with_retry(lambda: self._complete(request), self.retry_config)
        except ProviderError as exc:
            logger.warning("Nano Banana edge runtime error: %s", exc)
            return self._simulated(request, f"Edge runtime error: {exc}")
        return response.model_copy(
            update={"model_id": request.model_id, "provider": self.provider_id}
        )

    async def _complete(self, request: ChatRequest) -> ChatResponse:
        # The edge session takes a single prompt, so history is flattened
        *history, last = request.messages
        context = "\n".join(f"{m.role}: {m.content}" for m in history)
        prompt = f"{last.role}: {last.content}"
        if context:
            prompt = f"{context}\n{prompt}"

        try:
            async with self._http_client() as client:
                resp = await client.post(
                    f"{self.config.base_url.rstrip('/')}/prompt",  # type: ignore[union-attr]
                    json={"system_prompt": request.system_prompt, "prompt": prompt},
                )
        except httpx.HTTPError as exc:
            raise ProviderError(f"{self.label} request failed: {exc}", provider=self.label) from exc
        self._raise_for_status(resp)
        return self._decode(resp, lambda data: ChatResponse(text=data["text"], usage=Usage()))

    def _simulated(self, request: ChatRequest, note: str) -> ChatResponse:
        return ChatResponse(
            text=(
                f"[Nano Banana Edge]: {note}\n\n"
                f"Processed request for {request.model_id}. (Simulated Response)"
            ),
            usage=Usage(total_tokens=50),
            model_id=request.model_id,
            provider=self.provider_id,
            simulated=True,
        )
