"""Adapter for OpenAI and the APIs that clone its chat-completions endpoint."""

import logging
from typing import (
    Any,
    Dict,
)

import openai

from nexus.core.schema import (
    ChatRequest,
    ChatResponse,
    ProviderId,
    ToolCall,
    Usage,
)
from nexus.providers.base import (
    BaseProvider,
    ProviderAuthError,
    ProviderError,
    decode_tool_arguments,
    openai_messages,
    openai_tools,
    register_provider,
)

logger = logging.getLogger(__name__)

# Models that accept a reasoning effort hint
_HIGH_EFFORT_MODELS = {"gpt-5.2-pro"}


@register_provider(
    ProviderId.OPENAI,
    ProviderId.GROK,
    ProviderId.MISTRAL,
    ProviderId.META,
    ProviderId.MOONSHOT,
)
class OpenAICompatibleProvider(BaseProvider):
    """OpenAI-compatible chat completions via the official async SDK."""

    def _check_credentials(self) -> None:
        super()._check_credentials()
        if not self.config.base_url:
            raise ProviderError(f"{self.label} base URL not configured", provider=self.label)

    def _client(self) -> openai.AsyncOpenAI:
        # SDK retries are off; with_retry owns the retry policy
        return openai.AsyncOpenAI(
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            max_retries=0,
            http_client=self._http_client(),
        )

    async def _complete(self, request: ChatRequest) -> ChatResponse:
        kwargs: Dict[str, Any] = {
            "model": request.model_id,
            "messages": openai_messages(request),
            "stream": False,
        }
        if request.model_id in _HIGH_EFFORT_MODELS:
            kwargs["reasoning_effort"] = "high"
        if request.tools:
            kwargs["tools"] = openai_tools(request.tools)

        try:
            async with self._client() as client:
                completion = await client.chat.completions.create(**kwargs)
        except openai.APIStatusError as exc:
            error_cls = ProviderAuthError if exc.status_code in (401, 403) else ProviderError
            raise error_cls(
                f"{self.label} API error",
                status=exc.status_code,
                body=exc.response.text,
                provider=self.label,
            ) from exc
        except openai.APIError as exc:
            raise ProviderError(f"{self.label} request failed: {exc}", provider=self.label) from exc

        if not completion.choices:
            raise ProviderError(f"{self.label} returned no choices", provider=self.label)
        message = completion.choices[0].message

        tool_calls = [
            ToolCall(
                id=call.id,
                name=call.function.name,
                args=decode_tool_arguments(call.function.arguments),
            )
            for call in (message.tool_calls or [])
            if getattr(call, "function", None) is not None
        ]
        usage = Usage()
        if completion.usage is not None:
            usage = Usage(
                input_tokens=completion.usage.prompt_tokens,
                output_tokens=completion.usage.completion_tokens,
                total_tokens=completion.usage.total_tokens,
            )

        logger.debug("%s response for %s: %s", self.label, request.model_id, message.content)
        return ChatResponse(
            text=message.content or "",
            tool_calls=tool_calls,
            usage=usage,
        )
