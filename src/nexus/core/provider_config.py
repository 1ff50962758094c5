"""
Provider configuration store.

Holds one :class:`ProviderConfig` per known provider.  It is seeded from :class:`Settings` and
afterwards mutated only by explicit user settings actions (saving a key, toggling a provider).
The router reads it when it initialises and whenever it is asked to reload.
"""

import logging
import threading
from typing import (
    Dict,
    List,
)

from nexus.config import (
    Settings,
    settings as default_settings,
)
from nexus.core.registry import PROVIDER_DEFAULTS
from nexus.core.schema import (
    ProviderConfig,
    ProviderId,
)

logger = logging.getLogger(__name__)

# Providers that need no key and are switched on by a flag instead
_KEYLESS_FLAGS = {
    ProviderId.OLLAMA: "OLLAMA_ENABLED",
    ProviderId.NANOBANANA: "NANOBANANA_ENABLED",
}


class ProviderConfigStore:
    """Thread-safe map of provider id -> :class:`ProviderConfig`."""

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or default_settings
        self._lock = threading.Lock()
        self._configs: Dict[ProviderId, ProviderConfig] = self._seed()

    def _seed(self) -> Dict[ProviderId, ProviderConfig]:
        s = self._settings
        disabled = {name.lower() for name in s.DISABLED_PROVIDERS}
        configs: Dict[ProviderId, ProviderConfig] = {}

        for provider_id, (name, base_url) in PROVIDER_DEFAULTS.items():
            if provider_id in _KEYLESS_FLAGS:
                api_key = None
                enabled = bool(getattr(s, _KEYLESS_FLAGS[provider_id]))
            else:
                api_key = getattr(s, f"{provider_id.name}_API_KEY", None) or None
                enabled = api_key is not None

            configs[provider_id] = ProviderConfig(
                id=provider_id,
                name=name,
                base_url=s.PROVIDER_BASE_URLS.get(provider_id.value, base_url),
                api_key=api_key,
                enabled=enabled and provider_id.value not in disabled,
            )
        return configs

    # ------------------------------------------------------------------ #
    # Reads (always copies)
    # ------------------------------------------------------------------ #
    def get(self, provider_id: ProviderId | str) -> ProviderConfig:
        """Return a copy of the config for *provider_id*."""
        with self._lock:
            return self._configs[ProviderId(provider_id)].model_copy()

    def all(self) -> List[ProviderConfig]:
        """Return copies of every provider config."""
        with self._lock:
            return [cfg.model_copy() for cfg in self._configs.values()]

    def enabled(self) -> List[ProviderConfig]:
        """Return copies of the configs of enabled providers."""
        return [cfg for cfg in self.all() if cfg.enabled]

    def is_enabled(self, provider_id: ProviderId | str) -> bool:
        return self.get(provider_id).enabled

    # ------------------------------------------------------------------ #
    # User settings actions
    # ------------------------------------------------------------------ #
    def set_api_key(self, provider_id: ProviderId | str, api_key: str | None) -> ProviderConfig:
        """Store *api_key*; a non-empty key enables the provider, an empty one disables it."""
        pid = ProviderId(provider_id)
        with self._lock:
            cfg = self._configs[pid].model_copy(
                update={"api_key": api_key or None, "enabled": bool(api_key)}
            )
            self._configs[pid] = cfg
        logger.info("API key for provider '%s' %s", pid.value, "saved" if api_key else "cleared")
        return cfg.model_copy()

    def set_base_url(self, provider_id: ProviderId | str, base_url: str | None) -> ProviderConfig:
        pid = ProviderId(provider_id)
        with self._lock:
            cfg = self._configs[pid].model_copy(update={"base_url": base_url or None})
            self._configs[pid] = cfg
        return cfg.model_copy()

    def set_enabled(self, provider_id: ProviderId | str, enabled: bool) -> ProviderConfig:
        pid = ProviderId(provider_id)
        with self._lock:
            cfg = self._configs[pid].model_copy(update={"enabled": enabled})
            self._configs[pid] = cfg
        logger.info("Provider '%s' %s", pid.value, "enabled" if enabled else "disabled")
        return cfg.model_copy()
