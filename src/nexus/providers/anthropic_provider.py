"""Adapter for Anthropic's Messages API."""

import logging
from typing import (
    Any,
    Dict,
    List,
)

import anthropic

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
    register_provider,
)

logger = logging.getLogger(__name__)

_MAX_TOKENS = 8192


@register_provider(ProviderId.ANTHROPIC)
class AnthropicProvider(BaseProvider):
    """Anthropic Claude via the official async SDK."""

    def _client(self) -> anthropic.AsyncAnthropic:
        kwargs: Dict[str, Any] = {
            "api_key": self.config.api_key,
            "max_retries": 0,
            "http_client": self._http_client(),
        }
        if self.config.base_url:
            kwargs["base_url"] = self.config.base_url
        return anthropic.AsyncAnthropic(**kwargs)

    @staticmethod
    def _build_body(request: ChatRequest) -> Dict[str, Any]:
        # System text is a top-level field here, never a message
        system_parts = [request.system_prompt] if request.system_prompt else []
        system_parts.extend(m.content for m in request.messages if m.role == "system")

        body: Dict[str, Any] = {
            "model": request.model_id,
            "max_tokens": _MAX_TOKENS,
            "messages": [
                {"role": m.role, "content": m.content}
                for m in request.messages
                if m.role != "system"
            ],
        }
        if system_parts:
            body["system"] = "\n\n".join(system_parts)
        if request.tools:
            body["tools"] = [
                {"name": t.name, "description": t.description, "input_schema": t.parameters}
                for t in request.tools
            ]
        return body

    async def _complete(self, request: ChatRequest) -> ChatResponse:
        body = self._build_body(request)
        try:
            async with self._client() as client:
                message = await client.messages.create(**body)
        except anthropic.APIStatusError as exc:
            error_cls = ProviderAuthError if exc.status_code in (401, 403) else ProviderError
            raise error_cls(
                f"{self.label} API error",
                status=exc.status_code,
                body=exc.response.text,
                provider=self.label,
            ) from exc
        except anthropic.APIError as exc:
            raise ProviderError(f"{self.label} request failed: {exc}", provider=self.label) from exc

        texts: List[str] = []
        thoughts: List[str] = []
        tool_calls: List[ToolCall] = []
        # Handle the different content block types the API may return
        for block in message.content:
            if block.type == "text":
                texts.append(block.text)
            elif block.type == "thinking":
                thoughts.append(block.thinking)
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(id=block.id, name=block.name, args=dict(block.input)))

        logger.debug("Anthropic response for %s: %d text block(s)", request.model_id, len(texts))
        return ChatResponse(
            text="".join(texts),
            tool_calls=tool_calls,
            thinking="\n".join(thoughts) or None,
            usage=Usage.from_counts(message.usage.input_tokens, message.usage.output_tokens),
        )
