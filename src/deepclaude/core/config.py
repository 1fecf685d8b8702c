"""Application settings and upstream model configuration."""

import json
import os
from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ERROR_MESSAGE = "Failed to start the conversation, please contact the administrator"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env"), env_file_encoding="utf-8")

    # App
    APP_NAME: str = "DeepClaude"
    ENVIRONMENT: str = "development"  # development | production | test

    # CORS
    # Accept list or CSV/JSON string from env; normalized to list[str] by validators
    CORS_ORIGINS: list[str] | str = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Reasoning upstream (emits reasoning_content deltas)
    REASONER_MODEL_NAME: str = "deepseek-reasoner"
    REASONER_API_KEY: str = ""
    REASONER_API_URL: str = "https://api.deepseek.com/chat/completions"

    # Answering upstream (emits content deltas)
    ANSWERER_MODEL_NAME: str = "claude-3-5-sonnet-20241022"
    ANSWERER_API_KEY: str = ""
    ANSWERER_API_URL: str = "https://api.anthropic.com/v1/chat/completions"

    # Streaming
    STREAM_PACING_MS: int = Field(default=50, ge=0)
    UPSTREAM_CONNECT_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)
    UPSTREAM_READ_TIMEOUT_SECONDS: float = Field(default=300.0, gt=0)
    # Worker threads reserved for dialogs; one is held per in-flight request
    MAX_CONCURRENT_DIALOGS: int = Field(default=100, ge=1)

    # Error frames sent to the caller
    ERROR_CODE: int = 500
    ERROR_MESSAGE: str = DEFAULT_ERROR_MESSAGE

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: object) -> list[str]:
        """Accept a list, a JSON array string or a comma-separated string."""
        if isinstance(v, str):
            text = v.strip()
            if text.startswith("["):
                try:
                    v = json.loads(text)
                except json.JSONDecodeError as e:
                    raise ValueError("CORS_ORIGINS is not a valid JSON array") from e
            else:
                v = text.split(",")
        if not isinstance(v, list):
            raise ValueError("CORS_ORIGINS must be a list or a string")
        return [str(origin).strip() for origin in v if str(origin).strip()]

    @model_validator(mode="after")
    def _validate_production_keys(self) -> "Settings":
        """Refuse to start in production without upstream credentials."""
        if isinstance(self.CORS_ORIGINS, str):
            self.CORS_ORIGINS = self.assemble_cors_origins(self.CORS_ORIGINS)
        if self.ENVIRONMENT == "production":
            missing = [
                name
                for name, value in (
                    ("REASONER_API_KEY", self.REASONER_API_KEY),
                    ("ANSWERER_API_KEY", self.ANSWERER_API_KEY),
                )
                if not value.strip()
            ]
            if missing:
                raise ValueError(
                    f"{', '.join(missing)} must be set in production"
                )
        return self

    @property
    def stream_pacing_seconds(self) -> float:
        return self.STREAM_PACING_MS / 1000.0


ENV_FILES = {"development": ".env.dev", "production": ".env.prod", "test": None}


@lru_cache
def get_settings() -> Settings:
    env = os.getenv("ENVIRONMENT", "development").lower()
    if env not in ENV_FILES:
        raise ValueError("ENVIRONMENT must be 'development', 'production', or 'test'")

    env_file = ENV_FILES[env]
    if env_file and not os.path.exists(env_file):
        env_file = None
    # `_env_file` is a runtime-only pydantic-settings argument
    return Settings(_env_file=env_file)  # type: ignore[call-arg]
