"""
Provider adapters for Nexus.

Importing this package registers one adapter per upstream API family; use
:func:`load_provider` to build the adapter for a :class:`~nexus.core.schema.ProviderConfig`.
"""

from nexus.providers import (  # noqa: F401  (imported for registration side effects)
    anthropic_provider,
    deepseek,
    glm,
    google_provider,
    nanobanana,
    ollama,
    openai_compat,
)
from nexus.providers.base import (
    BaseProvider,
    ProviderAuthError,
    ProviderError,
    ProviderUnavailableError,
    load_provider,
    register_provider,
)

__all__ = [
    "BaseProvider",
    "ProviderAuthError",
    "ProviderError",
    "ProviderUnavailableError",
    "load_provider",
    "register_provider",
]
