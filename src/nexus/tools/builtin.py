"""Tools available to agents out of the box."""

import logging

from nexus.core.router import Router
from nexus.core.schema import (
    Capability,
    ChatMessage,
    ChatRequest,
    ModelCategory,
)
from nexus.tools import register_tool

logger = logging.getLogger(__name__)


@register_tool("web_search", params={"query": "What to search the web for"})
async def web_search(router: Router, query: str) -> str:
    """Search the web for up-to-date information and summarize the top findings."""
    request = ChatRequest(
        model_id=router.settings.default_model(ModelCategory.GENERAL.value),
        messages=[
            ChatMessage(
                role="user",
                content=f"Search query: {query}. Summarize the top findings with sources.",
            )
        ],
        capabilities=frozenset({Capability.REAL_TIME_SEARCH}),
    )
    try:
        response = await router.chat(request)
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("web_search failed: %s", exc)
        return f"Search failed: {exc}"
    return response.text or "No results found."


@register_tool(
    "code_analysis",
    params={"code": "Source code to review", "focus": "Aspect to concentrate on"},
)
async def code_analysis(router: Router, code: str, focus: str | None = None) -> str:
    """Review a piece of code and report problems and improvements."""
    request = ChatRequest(
        model_id=router.settings.default_model(ModelCategory.CODING.value),
        messages=[
            ChatMessage(
                role="user",
                content=f"Analyze this code focusing on {focus or 'general quality'}:\n\n{code}",
            )
        ],
        system_prompt="You are a senior code reviewer. Be concise, critical, and constructive.",
    )
    try:
        response = await router.chat(request)
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("code_analysis failed: %s", exc)
        return f"Analysis failed: {exc}"
    return response.text or "No analysis generated."
