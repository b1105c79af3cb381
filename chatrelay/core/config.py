from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
import warnings


class Settings(BaseSettings):
    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    # Timeouts (seconds), applied per connect/read operation, never to the whole call
    request_timeout: float = 120.0
    stream_timeout: float = 300.0  # max silence between two stream reads
    stream_connect_timeout: float = 30.0
    validation_timeout: float = 10.0

    # Vendor endpoints
    openai_api_url: str = "https://api.openai.com/v1"
    anthropic_api_url: str = "https://api.anthropic.com/v1"
    anthropic_version: str = "2023-06-01"
    gemini_api_url: str = "https://generativelanguage.googleapis.com/v1beta"
    chutes_api_url: str = "https://llm.chutes.ai/v1"
    openrouter_api_url: str = "https://openrouter.ai/api/v1"

    # OpenRouter attribution headers
    openrouter_referer: str = "http://localhost"
    openrouter_title: str = "chatrelay"

    # Key encryption (Fernet key, or a secret to derive one from)
    encryption_key: Optional[str] = None
    encryption_secret: Optional[str] = None

    # Plaintext vendor keys read by SettingsKeyStore
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    chutes_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None

    class Config:
        env_prefix = "CHATRELAY_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    def validate_production_settings(self) -> list[str]:
        """Validate settings for production deployment. Returns list of warnings."""
        issues = []

        if self.environment == "production":
            if not (self.encryption_key or self.encryption_secret):
                issues.append(
                    "SECURITY: no encryption_key/encryption_secret set, stored API keys cannot be decrypted"
                )
            if self.log_level == "DEBUG":
                issues.append("WARNING: log_level=DEBUG in production environment")

        return issues


@lru_cache()
def get_settings() -> Settings:
    instance = Settings()

    issues = instance.validate_production_settings()
    for issue in issues:
        warnings.warn(issue, RuntimeWarning)

    return instance


settings = get_settings()
