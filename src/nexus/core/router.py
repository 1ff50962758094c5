"""
AI provider router.

The router is the only entry point the rest of Nexus uses to talk to a model.  It owns one adapter
per enabled provider, resolves the requested model against the registry, substitutes a capable
model when the requested one lacks a required capability, dispatches to the adapter and, on a
non-auth failure, retries once on the designated low-cost fallback model.
"""

import asyncio
import logging
import threading
from typing import (
    AbstractSet,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
)

from nexus.config import (
    Settings,
    settings as default_settings,
)
from nexus.core.provider_config import ProviderConfigStore
from nexus.core.registry import list_models
from nexus.core.resilience import is_auth_error
from nexus.core.schema import (
    Capability,
    ChatRequest,
    ChatResponse,
    Model,
    ProviderConfig,
    ProviderId,
)
from nexus.core.usage import UsageTracker
from nexus.providers import (
    BaseProvider,
    ProviderAuthError,
    ProviderError,
    load_provider,
)

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[ProviderConfig], BaseProvider]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class RouterError(RuntimeError):
    """Base class for routing failures."""


class ModelNotFoundError(RouterError):
    """The requested model id is not in the registry."""


class CapabilityUnsatisfiableError(RouterError):
    """No registered model offers the required capability combination."""

    def __init__(self, message: str, missing: Sequence[Capability]):
        super().__init__(message)
        self.missing = list(missing)


class ProviderNotConfiguredError(RouterError):
    """The resolved model's provider has no initialised adapter."""


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------
class Router:
    """
    Provider-agnostic chat entry point.

    Parameters
    ----------
    config_store:
        Source of provider configuration; read on first use and on :meth:`reload_config`.
    settings:
        Fallback model, auto-switch preference, cost threshold and call deadline.
    provider_factory:
        Builds an adapter from a :class:`ProviderConfig`.  Defaults to :func:`load_provider`.
    models:
        Model catalog; defaults to the static registry.
    """

    def __init__(
        self,
        config_store: ProviderConfigStore | None = None,
        settings: Settings | None = None,
        provider_factory: ProviderFactory | None = None,
        models: Sequence[Model] | None = None,
    ):
        self.settings = settings or default_settings
        self.config_store = config_store or ProviderConfigStore(self.settings)
        self._factory = provider_factory or self._default_factory
        self._models: Dict[str, Model] = {m.id: m for m in (models or list_models())}
        self._providers: Dict[ProviderId, BaseProvider] = {}
        self._loaded = False
        self._init_lock = threading.RLock()
        self.usage = UsageTracker(self.settings.COST_WARNING_THRESHOLD)

    def _default_factory(self, config: ProviderConfig) -> BaseProvider:
        return load_provider(config, timeout=self.settings.REQUEST_TIMEOUT)

    # ------------------------------------------------------------------ #
    # Provider lifecycle
    # ------------------------------------------------------------------ #
    def _initialize_providers(self) -> None:
        with self._init_lock:
            providers: Dict[ProviderId, BaseProvider] = {}
            for config in self.config_store.enabled():
                try:
                    providers[config.id] = self._factory(config)
                except ValueError as exc:
                    logger.error("Could not initialise provider '%s': %s", config.id.value, exc)
            # Swap in one assignment so concurrent readers never see a half-built map
            self._providers = providers
            self._loaded = True
        logger.info(
            "Initialised %d provider adapter(s): %s",
            len(providers),
            ", ".join(p.value for p in providers) or "none",
        )

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._init_lock:
            if not self._loaded:
                self._initialize_providers()

    def reload_config(self) -> None:
        """Rebuild every adapter from the current provider configuration."""
        self._initialize_providers()

    @property
    def active_providers(self) -> List[ProviderId]:
        self._ensure_loaded()
        return list(self._providers)

    def _adapter_for(self, provider_id: ProviderId) -> BaseProvider:
        provider = self._providers.get(provider_id)
        if provider is None:
            logger.info("Provider '%s' not initialised; reloading configuration", provider_id.value)
            self._initialize_providers()
            provider = self._providers.get(provider_id)
            if provider is None:
                raise ProviderNotConfiguredError(
                    f"Provider {provider_id.value} not initialized. "
                    "Enable it and configure its API key in settings."
                )
        return provider

    # ------------------------------------------------------------------ #
    # Model resolution
    # ------------------------------------------------------------------ #
    @property
    def models(self) -> List[Model]:
        """Every model in the catalog, in registry order."""
        return list(self._models.values())

    def get_model(self, model_id: str) -> Optional[Model]:
        """Return the catalog entry for *model_id*, or None."""
        return self._models.get(model_id)

    def resolve_model(self, request: ChatRequest) -> Model:
        """
        Return the model that will serve *request*.

        The requested model is kept whenever it offers every required capability.  Otherwise a
        replacement that offers all of them is chosen.

        Raises
        ------
        ModelNotFoundError
            If the requested model id is unknown.
        CapabilityUnsatisfiableError
            If no replacement exists, or auto-switching is disabled.
        """
        model = self.get_model(request.model_id)
        if model is None:
            raise ModelNotFoundError(f"Model {request.model_id} not found in registry.")

        required = request.capabilities
        if model.supports(required):
            return model

        missing = model.missing(required)
        names = ", ".join(cap.value for cap in missing)
        if not self.settings.AUTO_SWITCH_MODELS:
            raise CapabilityUnsatisfiableError(
                f"Model {model.name} lacks required capabilities: {names} "
                "(automatic model switching is disabled)",
                missing,
            )

        logger.warning(
            "Model %s missing capabilities [%s]. Searching for alternative...", model.name, names
        )
        replacement = self._find_replacement(model, required)
        if replacement is None:
            raise CapabilityUnsatisfiableError(
                f"No available model supports required capabilities: {names}", missing
            )
        logger.info("Auto-switched from %s to %s", model.name, replacement.name)
        return replacement

    def _find_replacement(
        self, model: Model, required: AbstractSet[Capability]
    ) -> Optional[Model]:
        candidates = [m for m in self._models.values() if m.supports(required)]
        if not candidates:
            return None

        # Same provider first, then providers the user has enabled, then anything
        for candidate in candidates:
            if candidate.provider == model.provider:
                return candidate
        enabled = {config.id for config in self.config_store.enabled()}
        for candidate in candidates:
            if candidate.provider in enabled:
                return candidate
        return candidates[0]

    def _fallback_model(self, failed: Model) -> Optional[Model]:
        fallback = self.get_model(self.settings.FALLBACK_MODEL)
        if fallback is None or fallback.id == failed.id or fallback.provider == failed.provider:
            return None
        if not self.config_store.is_enabled(fallback.provider):
            return None
        return fallback

    # ------------------------------------------------------------------ #
    # Dispatch
    # ------------------------------------------------------------------ #
    async def _dispatch(self, provider: BaseProvider, request: ChatRequest) -> ChatResponse:
        deadline = self.settings.CALL_DEADLINE
        try:
            return await asyncio.wait_for(provider.chat(request), timeout=deadline)
        except asyncio.TimeoutError as exc:
            raise ProviderError(
                f"{provider.label} call exceeded the {deadline:.0f}s deadline",
                provider=provider.label,
            ) from exc

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """
        Serve *request* on the resolved model, falling back once on transient failure.

        The caller's request is never mutated; substitution and fallback work on copies that differ
        only in ``model_id``.
        """
        self._ensure_loaded()
        model = self.resolve_model(request)
        if model.id != request.model_id:
            request = request.model_copy(update={"model_id": model.id})

        provider = self._adapter_for(model.provider)
        try:
            response = await self._dispatch(provider, request)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Provider %s failed: %s", model.provider.value, exc)

            if is_auth_error(exc):
                raise ProviderAuthError(
                    f"Authentication failed for {model.name}. "
                    f"Check the {provider.label} API key in settings.",
                    provider=provider.label,
                ) from exc

            fallback = self._fallback_model(model)
            if fallback is None:
                raise

            logger.warning("Attempting fallback to %s...", fallback.name)
            try:
                response = await self._dispatch(
                    self._adapter_for(fallback.provider),
                    request.model_copy(update={"model_id": fallback.id}),
                )
            except Exception as fallback_exc:  # pylint: disable=broad-except
                logger.error("Fallback to %s also failed: %s", fallback.name, fallback_exc)
                raise exc from fallback_exc
            model = fallback

        self.usage.record(model, response.usage)
        return response
