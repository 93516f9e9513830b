"""Configuration settings for the application."""

from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
)

from multitool.core.schema import ModelConfig

PROVIDER_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "openrouter": "https://openrouter.ai/api/v1",
    "groq": "https://api.groq.com/openai/v1",
}


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Loaded from environment variables or a .env file if not provided
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # LLM Configuration
    LLM_CLIENT: str = "openai"  # Options: openai (SDK), http (raw httpx)
    LLM_PROVIDER: str = "openai"  # Options: openai, openrouter, groq
    LLM_BASE_URL: str | None = None
    LLM_API_KEY: str | None = None
    LLM_MODEL: str = "gpt-3.5-turbo"
    LLM_MAX_TOKENS: int = 1500
    LLM_TEMPERATURE: float = 0.7
    SYSTEM_PROMPT: str | None = None

    # Timeouts (seconds)
    MODEL_TIMEOUT: float = 60.0
    TOOL_TIMEOUT: float = 30.0

    # Tool API Keys
    GOOGLE_API_KEY: str | None = None
    GOOGLE_CSE_ID: str | None = None
    SEARCH_RESULTS: int = 5
    AIPIPE_BASE_URL: str = "https://aipipe.org/openai/v1"
    AIPIPE_TOKEN: str | None = None
    AIPIPE_MODEL: str = "gpt-4o-mini"

    def base_url(self) -> str:
        """Explicit base URL, else the provider default (unknown providers use OpenAI)."""
        if self.LLM_BASE_URL:
            return self.LLM_BASE_URL
        return PROVIDER_BASE_URLS.get(self.LLM_PROVIDER.lower(), PROVIDER_BASE_URLS["openai"])

    def llm_config(self) -> ModelConfig | None:
        """Build the model client configuration, or None when no API key is configured."""
        if not self.LLM_API_KEY:
            return None
        return ModelConfig(
            base_url=self.base_url(),
            api_key=self.LLM_API_KEY,
            model=self.LLM_MODEL,
            max_tokens=self.LLM_MAX_TOKENS,
            temperature=self.LLM_TEMPERATURE,
        )


settings = Settings()
