"""Adapter for DeepSeek, which returns its reasoning chain next to the answer."""

from typing import (
    Any,
    Dict,
)

from nexus.core.schema import ProviderId
from nexus.providers.base import register_provider
from nexus.providers.chat_completions import ChatCompletionsProvider


@register_provider(ProviderId.DEEPSEEK)
class DeepSeekProvider(ChatCompletionsProvider):
    """DeepSeek chat completions; ``reasoning_content`` becomes the response's thinking."""

    def _parse_thinking(self, message: Dict[str, Any]) -> str | None:
        return message.get("reasoning_content") or None
