"""
Application configuration module.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from casegen.recovery.types import DEFAULT_RETRY_INSTRUCTION, RecoveryOptions


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    APP_NAME: str = "Test Case Generator"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"

    # LLM provider selection, passed into the request path
    LLM_PROVIDER: str = Field(default="anthropic")

    # Response recovery
    RECOVERY_RECORDS_KEY: str = "testCases"
    RECOVERY_STRING_ANCHOR_WINDOW: int = Field(default=50, ge=1)
    RECOVERY_PREVIEW_CHARS: int = Field(default=500, ge=0)
    RECOVERY_ERROR_CONTEXT_CHARS: int = Field(default=100, ge=0)
    RECOVERY_RETRY_INSTRUCTION: str = DEFAULT_RETRY_INSTRUCTION

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    @field_validator("LLM_PROVIDER", mode="before")
    @classmethod
    def normalize_llm_provider(cls, v):
        value = str(v or "").strip().lower()
        if value not in {"anthropic", "openai", "gemini"}:
            raise ValueError(f"Unknown LLM provider: {v}")
        return value

    @field_validator("LOG_FORMAT", mode="before")
    @classmethod
    def normalize_log_format(cls, v):
        value = str(v or "").strip().lower()
        return value if value in {"json", "console"} else "json"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    @property
    def recovery_options(self) -> RecoveryOptions:
        return RecoveryOptions(
            records_key=self.RECOVERY_RECORDS_KEY,
            string_anchor_window=self.RECOVERY_STRING_ANCHOR_WINDOW,
            preview_chars=self.RECOVERY_PREVIEW_CHARS,
            error_context_chars=self.RECOVERY_ERROR_CONTEXT_CHARS,
            retry_instruction=self.RECOVERY_RETRY_INSTRUCTION,
        )


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
