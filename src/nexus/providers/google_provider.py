"""Adapter for Google Gemini's ``generateContent`` REST endpoint."""

import logging
import uuid
from typing import (
    Any,
    Dict,
    List,
)

import httpx

from nexus.core.schema import (
    ChatRequest,
    ChatResponse,
    ProviderId,
    ToolCall,
    ToolDeclaration,
    Usage,
)
from nexus.providers.base import (
    BaseProvider,
    ProviderError,
    register_provider,
)

logger = logging.getLogger(__name__)

_THINKING_BUDGET = 4096
_SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)


def _gemini_schema(schema: Any) -> Any:
    """Gemini wants OpenAPI-style upper-case type names (``STRING``, ``OBJECT``...)."""
    if isinstance(schema, dict):
        out = {}
        for key, value in schema.items():
            if key == "type" and isinstance(value, str):
                out[key] = value.upper()
            else:
                out[key] = _gemini_schema(value)
        return out
    if isinstance(schema, list):
        return [_gemini_schema(item) for item in schema]
    return schema


def _function_declarations(tools: List[ToolDeclaration]) -> List[Dict[str, Any]]:
    return [
        {
            "name": tool.name,
            "description": tool.description,
            "parameters": _gemini_schema(tool.parameters),
        }
        for tool in tools
    ]


def _is_thinking_model(model_id: str) -> bool:
    return "deep-think" in model_id or model_id.startswith("gemini-3")


@register_provider(ProviderId.GOOGLE)
class GoogleProvider(BaseProvider):
    """Gemini over plain HTTPS."""

    def _build_body(self, request: ChatRequest) -> Dict[str, Any]:
        # Gemini has no assistant role; prior model turns are "model"
        contents = [
            {"role": "user" if m.role == "user" else "model", "parts": [{"text": m.content}]}
            for m in request.messages
            if m.role != "system"
        ]
        system_parts = [request.system_prompt] if request.system_prompt else []
        system_parts.extend(m.content for m in request.messages if m.role == "system")

        body: Dict[str, Any] = {
            "contents": contents,
            "safetySettings": [
                {"category": category, "threshold": "BLOCK_NONE"}
                for category in _SAFETY_CATEGORIES
            ],
        }
        if system_parts:
            body["systemInstruction"] = {"parts": [{"text": "\n\n".join(system_parts)}]}
        if request.tools:
            body["tools"] = [{"functionDeclarations": _function_declarations(request.tools)}]
        if _is_thinking_model(request.model_id):
            body["generationConfig"] = {
                "thinkingConfig": {"thinkingBudget": _THINKING_BUDGET, "includeThoughts": True}
            }
        return body

    async def _complete(self, request: ChatRequest) -> ChatResponse:
        url = f"{self.config.base_url}/models/{request.model_id}:generateContent"
        headers = {"x-goog-api-key": self.config.api_key or "", "Content-Type": "application/json"}

        try:
            async with self._http_client() as client:
                resp = await client.post(url, json=self._build_body(request), headers=headers)
        except httpx.HTTPError as exc:
            raise ProviderError(f"{self.label} request failed: {exc}", provider=self.label) from exc
        self._raise_for_status(resp)
        return self._decode(resp, self._parse_response)

    def _parse_response(self, data: Dict[str, Any]) -> ChatResponse:
        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback", {})
            raise ProviderError(
                f"{self.label} returned no candidates (feedback: {feedback})", provider=self.label
            )

        texts: List[str] = []
        thoughts: List[str] = []
        tool_calls: List[ToolCall] = []
        for part in candidates[0].get("content", {}).get("parts", []):
            if "functionCall" in part:
                call = part["functionCall"]
                tool_calls.append(
                    ToolCall(
                        id=call.get("id") or f"call_{uuid.uuid4().hex[:12]}",
                        name=call["name"],
                        args=call.get("args") or {},
                    )
                )
            elif part.get("thought"):
                thoughts.append(part.get("text", ""))
            elif "text" in part:
                texts.append(part["text"])

        meta = data.get("usageMetadata", {})
        usage = Usage(
            input_tokens=meta.get("promptTokenCount", 0),
            output_tokens=meta.get("candidatesTokenCount", 0),
            total_tokens=meta.get("totalTokenCount", 0),
        )
        return ChatResponse(
            text="".join(texts),
            tool_calls=tool_calls,
            thinking="\n".join(thoughts) or None,
            usage=usage,
        )
