"""
Raw-HTTP adapter for chat-completions style APIs.

Families that speak the OpenAI wire format but need something the SDK does not give us (signed
tokens, extra response fields, a reachability probe) build on :class:`ChatCompletionsProvider`
and override the small hooks below.
"""

import logging
from typing import (
    Any,
    Dict,
)

import httpx

from nexus.core.schema import (
    ChatRequest,
    ChatResponse,
    ToolCall,
    Usage,
)
from nexus.providers.base import (
    BaseProvider,
    ProviderError,
    decode_tool_arguments,
    openai_messages,
    openai_tools,
)

logger = logging.getLogger(__name__)


class ChatCompletionsProvider(BaseProvider):
    """POST ``{base_url}/chat/completions`` with httpx and parse the reply."""

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _build_body(self, request: ChatRequest) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": request.model_id,
            "messages": openai_messages(request),
            "stream": False,
        }
        if request.tools:
            body["tools"] = openai_tools(request.tools)
        return body

    def _parse_thinking(self, message: Dict[str, Any]) -> str | None:
        """Return the reasoning text carried by *message*, if the family sends any."""
        return message.get("reasoning") or None

    async def _complete(self, request: ChatRequest) -> ChatResponse:
        url = f"{self.config.base_url}/chat/completions"
        try:
            async with self._http_client() as client:
                resp = await client.post(
                    url, json=self._build_body(request), headers=self._headers()
                )
        except httpx.HTTPError as exc:
            raise ProviderError(f"{self.label} request failed: {exc}", provider=self.label) from exc
        self._raise_for_status(resp)
        return self._decode(resp, self._parse_response)

    def _parse_response(self, data: Dict[str, Any]) -> ChatResponse:
        choices = data.get("choices") or []
        if not choices:
            raise ProviderError(f"{self.label} returned no choices", provider=self.label)
        message = choices[0].get("message") or {}

        tool_calls = [
            ToolCall(
                id=call.get("id") or f"call_{index}",
                name=call["function"]["name"],
                args=decode_tool_arguments(call["function"].get("arguments")),
            )
            for index, call in enumerate(message.get("tool_calls") or [])
        ]

        raw_usage = data.get("usage") or {}
        usage = Usage(
            input_tokens=raw_usage.get("prompt_tokens", 0),
            output_tokens=raw_usage.get("completion_tokens", 0),
            total_tokens=raw_usage.get("total_tokens", 0),
        )
        return ChatResponse(
            text=message.get("content") or "",
            tool_calls=tool_calls,
            thinking=self._parse_thinking(message),
            usage=usage,
        )
