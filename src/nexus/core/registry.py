"""
Static catalog of the models and providers Nexus knows about.

The registry is read-only: it is defined once at import time and the router uses it for model
lookup and for capability-driven substitution.
"""

from typing import (
    Dict,
    List,
    Optional,
    Tuple,
)

from nexus.core.schema import (
    Capability,
    Model,
    ProviderId,
)

_V = Capability.VISION
_TOOLS = Capability.TOOL_CALLING
_REASON = Capability.REASONING
_STREAM = Capability.STREAMING
_COMPUTER = Capability.COMPUTER_USE
_SEARCH = Capability.REAL_TIME_SEARCH
_THINK_TOOLS = Capability.THINKING_IN_TOOLS


def _model(
    model_id: str,
    name: str,
    provider: ProviderId,
    context_window: int,
    prices: Tuple[float, float],
    capabilities: Tuple[Capability, ...],
    badges: Tuple[str, ...] = (),
    description: str | None = None,
) -> Model:
    return Model(
        id=model_id,
        name=name,
        provider=provider,
        context_window=context_window,
        input_price=prices[0],
        output_price=prices[1],
        capabilities=frozenset(capabilities),
        badges=badges,
        description=description,
    )


# fmt: off
MODEL_REGISTRY: Tuple[Model, ...] = (
    # Google Gemini
    _model("gemini-3-flash-preview", "Gemini 3 Flash", ProviderId.GOOGLE, 2_000_000, (0.50, 3.00),
           (_V, _TOOLS, _STREAM), ("Default", "2M Context"),
           "Fast, multimodal, huge context window."),
    _model("gemini-3-pro-preview", "Gemini 3 Pro", ProviderId.GOOGLE, 2_000_000, (2.50, 10.00),
           (_V, _TOOLS, _REASON, _STREAM), ("Reasoning",), "Complex reasoning and heavy tasks."),
    _model("gemini-3-deep-think", "Gemini 3 Deep Think", ProviderId.GOOGLE, 2_000_000,
           (5.00, 15.00), (_V, _TOOLS, _REASON, _STREAM), ("Max Reasoning",),
           "Maximum reasoning depth."),
    # OpenAI
    _model("gpt-5.2", "GPT-5.2", ProviderId.OPENAI, 256_000, (1.75, 14.00),
           (_V, _TOOLS, _REASON, _STREAM), ("Flagship",), "The standard for high intelligence."),
    _model("gpt-5.2-pro", "GPT-5.2 Pro", ProviderId.OPENAI, 256_000, (5.00, 30.00),
           (_V, _TOOLS, _REASON, _STREAM), ("Max Reasoning",),
           "Extended thinking for complex problems."),
    _model("gpt-5.2-codex", "GPT-5.2 Codex", ProviderId.OPENAI, 128_000, (1.50, 12.00),
           (_TOOLS, _STREAM), ("Coding",), "Specialized for software engineering."),
    _model("gpt-image-1.5", "GPT Image 1.5", ProviderId.OPENAI, 4_096, (0.04, 0.04),
           (_V,), ("Image Gen",), "Fast image generation."),
    # Anthropic
    _model("claude-opus-4-5-20251101", "Claude 4.5 Opus", ProviderId.ANTHROPIC, 200_000,
           (5.00, 25.00), (_V, _TOOLS, _COMPUTER, _STREAM, _REASON), ("Deep Thinker",),
           "Highest capability for nuanced tasks."),
    _model("claude-sonnet-4-5-20250929", "Claude 4.5 Sonnet", ProviderId.ANTHROPIC, 200_000,
           (3.00, 15.00), (_V, _TOOLS, _COMPUTER, _STREAM), ("Balanced",),
           "Best balance of intelligence and speed."),
    _model("claude-haiku-4-5", "Claude 4.5 Haiku", ProviderId.ANTHROPIC, 200_000, (0.25, 1.25),
           (_V, _TOOLS, _STREAM), ("Fast",), "Fast and cost-effective."),
    # DeepSeek
    _model("deepseek-chat", "DeepSeek V3.2", ProviderId.DEEPSEEK, 128_000, (0.28, 1.10),
           (_TOOLS, _THINK_TOOLS, _STREAM), ("Best Value",), "Strong performance per dollar."),
    _model("deepseek-reasoner", "DeepSeek V3.2 Speciale", ProviderId.DEEPSEEK, 128_000,
           (0.50, 2.00), (_REASON, _TOOLS, _STREAM, _THINK_TOOLS), ("Gold Medal Logic",),
           "Top-tier reasoning performance."),
    # xAI Grok
    _model("grok-beta", "Grok 4.1", ProviderId.GROK, 256_000, (5.00, 15.00),
           (_TOOLS, _SEARCH, _V, _STREAM), ("Real-time Search",),
           "Access to real-time X platform data."),
    _model("grok-voice", "Grok Voice", ProviderId.GROK, 128_000, (4.00, 12.00),
           (_STREAM,), ("Audio",), "Low latency audio model."),
    # Moonshot (Kimi)
    _model("moonshot-v1-128k", "Kimi K2 (Moonshot)", ProviderId.MOONSHOT, 200_000, (1.6, 1.6),
           (_TOOLS, _STREAM), ("Chinese SOTA",), "Excellent Chinese/English bilingual."),
    # Zhipu GLM
    _model("glm-4.7", "GLM 4.7", ProviderId.GLM, 128_000, (1.0, 1.0),
           (_V, _TOOLS, _STREAM), ("GLM",), "Strong general purpose model."),
    _model("glm-4v", "GLM 4V", ProviderId.GLM, 128_000, (1.0, 1.0),
           (_V, _STREAM), ("Vision",), "Specialized vision model."),
    # Ollama (local)
    _model("llama3.3", "Llama 3.3 (Local)", ProviderId.OLLAMA, 32_000, (0.0, 0.0),
           (_TOOLS, _STREAM), ("Private",), "Runs locally. Requires Ollama."),
    _model("mistral-large", "Mistral Large (Local)", ProviderId.OLLAMA, 32_000, (0.0, 0.0),
           (_TOOLS, _STREAM), ("Private",), "Runs locally."),
    # Nano Banana (edge)
    _model("nanobanana-pro", "Nano Banana Pro", ProviderId.NANOBANANA, 4_096, (0.1, 0.1),
           (_V,), ("Edge Image Gen",), "Studio-quality edge generation."),
    # Mistral AI
    _model("mistral-large-latest", "Mistral Large 2", ProviderId.MISTRAL, 128_000, (2.0, 6.0),
           (_TOOLS, _STREAM), ("EU Flagship",), "Strong reasoning and coding."),
)
# fmt: on

# Display name and default base URL per provider.  An empty base URL means the adapter
# either needs none (SDK default) or must be configured by the user.
PROVIDER_DEFAULTS: Dict[ProviderId, Tuple[str, str | None]] = {
    ProviderId.GOOGLE: ("Google Gemini", "https://generativelanguage.googleapis.com/v1beta"),
    ProviderId.OPENAI: ("OpenAI", "https://api.openai.com/v1"),
    ProviderId.ANTHROPIC: ("Anthropic", "https://api.anthropic.com"),
    ProviderId.DEEPSEEK: ("DeepSeek", "https://api.deepseek.com"),
    ProviderId.GROK: ("xAI Grok", "https://api.x.ai/v1"),
    ProviderId.MOONSHOT: ("Moonshot AI", "https://api.moonshot.cn/v1"),
    ProviderId.GLM: ("Zhipu GLM", "https://open.bigmodel.cn/api/paas/v4"),
    ProviderId.OLLAMA: ("Ollama (Local)", "http://localhost:11434/v1"),
    ProviderId.NANOBANANA: ("Nano Banana", None),
    ProviderId.MISTRAL: ("Mistral AI", "https://api.mistral.ai/v1"),
    ProviderId.META: ("Meta AI", None),
}

_BY_ID: Dict[str, Model] = {model.id: model for model in MODEL_REGISTRY}


def list_models() -> List[Model]:
    """Return every registered model in catalog order."""
    return list(MODEL_REGISTRY)


def find_model(model_id: str) -> Optional[Model]:
    """Return the model registered under *model_id*, or None."""
    return _BY_ID.get(model_id)


def models_by_provider(provider: ProviderId | str) -> List[Model]:
    """Return the models served by *provider*, in catalog order."""
    provider = ProviderId(provider)
    return [model for model in MODEL_REGISTRY if model.provider == provider]
