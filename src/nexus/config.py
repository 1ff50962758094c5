"""Configuration settings for the application."""

from typing import (
    Dict,
    List,
)

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # Provider credentials (an empty key leaves the provider disabled)
    OPENAI_API_KEY: str | None = None
    ANTHROPIC_API_KEY: str | None = None
    GOOGLE_API_KEY: str | None = None
    DEEPSEEK_API_KEY: str | None = None
    GROK_API_KEY: str | None = None
    MOONSHOT_API_KEY: str | None = None
    GLM_API_KEY: str | None = None  # "<id>.<secret>"
    MISTRAL_API_KEY: str | None = None
    META_API_KEY: str | None = None

    # Keyless providers are switched on explicitly
    OLLAMA_ENABLED: bool = False
    NANOBANANA_ENABLED: bool = False

    PROVIDER_BASE_URLS: Dict[str, str] = {}
    DISABLED_PROVIDERS: List[str] = []

    # Default model per task category
    DEFAULT_GENERAL_MODEL: str = "gemini-3-flash-preview"
    DEFAULT_CODING_MODEL: str = "claude-opus-4-5-20251101"
    DEFAULT_VISION_MODEL: str = "gpt-5.2"
    DEFAULT_REASONING_MODEL: str = "deepseek-reasoner"
    DEFAULT_LONG_CONTEXT_MODEL: str = "gemini-3-flash-preview"
    FALLBACK_MODEL: str = "gemini-3-flash-preview"

    # Preferences
    AUTO_SWITCH_MODELS: bool = True
    COST_WARNING_THRESHOLD: float = 5.0  # USD

    # Browser front-ends allowed to call the API
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Timing (seconds)
    TICK_INTERVAL: float = 0.5
    CALL_DEADLINE: float = 180.0
    REQUEST_TIMEOUT: float = 60.0

    # Long-term memory configuration
    VECTOR_DB: str = "chroma"  # Options: chroma, none
    VECTOR_DB_HOST: str = "chroma"  # Service name in docker-compose
    VECTOR_DB_PORT: int = 8000
    MEMORY_COLLECTION: str = "nexus"

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"

    def default_model(self, category: str) -> str:
        """Return the configured default model id for a task *category*."""
        return {
            "general": self.DEFAULT_GENERAL_MODEL,
            "coding": self.DEFAULT_CODING_MODEL,
            "vision": self.DEFAULT_VISION_MODEL,
            "reasoning": self.DEFAULT_REASONING_MODEL,
            "long_context": self.DEFAULT_LONG_CONTEXT_MODEL,
        }.get(category, self.DEFAULT_GENERAL_MODEL)


settings = Settings()
