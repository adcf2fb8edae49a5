"""Configuration settings for chatbridge."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server settings
    app_name: str = "chatbridge"
    app_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 8421
    debug: bool = False

    # Upstream selection
    provider: Literal["moonshot", "groq"] = "moonshot"

    # Moonshot (Anthropic-compatible, forwarded as-is)
    moonshot_base_url: str = "https://api.moonshot.ai/anthropic"
    moonshot_api_key: str = ""

    # Groq (OpenAI-compatible, translated)
    groq_base_url: str = "https://api.groq.com/openai/v1"
    groq_api_key: str = ""
    groq_model: Optional[str] = "moonshotai/kimi-k2-instruct"  # Overrides model mapping; empty enables it
    default_model: str = "moonshotai/kimi-k2-instruct"

    # Upstream HTTP settings
    upstream_timeout: Optional[float] = None  # seconds, None disables

    # CORS settings
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    cors_allow_headers: list[str] = ["Content-Type", "Authorization"]

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
    )

    def upstream_base_url(self) -> str:
        """Base URL of the active provider."""
        if self.provider == "groq":
            return self.groq_base_url.rstrip("/")
        return self.moonshot_base_url.rstrip("/")

    def upstream_api_key(self) -> str:
        """API key of the active provider."""
        if self.provider == "groq":
            return self.groq_api_key
        return self.moonshot_api_key


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
