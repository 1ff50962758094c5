"""Static model catalog and provider configuration."""

from nexus.core.provider_config import ProviderConfigStore
from nexus.core.registry import (
    MODEL_REGISTRY,
    PROVIDER_DEFAULTS,
    find_model,
    models_by_provider,
)
from nexus.core.schema import (
    Capability,
    ProviderId,
)

from conftest import make_settings


def test_model_ids_are_unique_and_providers_known() -> None:
    ids = [model.id for model in MODEL_REGISTRY]
    assert len(ids) == len(set(ids))
    assert {model.provider for model in MODEL_REGISTRY} <= set(PROVIDER_DEFAULTS)
    assert all(model.input_price >= 0 and model.output_price >= 0 for model in MODEL_REGISTRY)


def test_lookup_helpers() -> None:
    opus = find_model("claude-opus-4-5-20251101")
    assert opus is not None and opus.provider == ProviderId.ANTHROPIC
    assert find_model("gpt-4") is None
    assert [m.id for m in models_by_provider("deepseek")] == ["deepseek-chat", "deepseek-reasoner"]


def test_capability_checks() -> None:
    codex = find_model("gpt-5.2-codex")
    assert codex is not None
    assert codex.supports({Capability.TOOL_CALLING})
    assert not codex.supports({Capability.TOOL_CALLING, Capability.VISION})
    assert codex.missing([Capability.VISION, Capability.REASONING, Capability.STREAMING]) == [
        Capability.REASONING,
        Capability.VISION,
    ]


def test_config_store_seeds_from_settings() -> None:
    store = ProviderConfigStore(
        make_settings(
            MISTRAL_API_KEY="m-key",
            OLLAMA_ENABLED=True,
            DISABLED_PROVIDERS=["openai"],
            PROVIDER_BASE_URLS={"ollama": "http://gpu-box:11434/v1"},
        )
    )

    enabled = {cfg.id for cfg in store.enabled()}
    assert enabled == {
        ProviderId.GOOGLE,
        ProviderId.ANTHROPIC,
        ProviderId.MISTRAL,
        ProviderId.OLLAMA,
    }
    assert store.get("ollama").base_url == "http://gpu-box:11434/v1"
    assert store.get(ProviderId.OPENAI).api_key == "openai-key"


def test_saving_a_key_toggles_the_provider() -> None:
    store = ProviderConfigStore(make_settings())

    store.set_api_key(ProviderId.GROK, "xai-key")
    assert store.is_enabled(ProviderId.GROK)

    store.set_api_key(ProviderId.GROK, "")
    assert not store.is_enabled(ProviderId.GROK)
    assert store.get(ProviderId.GROK).api_key is None


def test_reads_are_copies() -> None:
    store = ProviderConfigStore(make_settings())
    cfg = store.get(ProviderId.GOOGLE)
    cfg.enabled = False
    assert store.is_enabled(ProviderId.GOOGLE)
