"""Application settings and CORS configuration."""

import json
import os
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env"), env_file_encoding="utf-8")

    # App
    APP_NAME: str = "IEEE Paper Formatter"
    ENVIRONMENT: str = "development"  # development | production | test
    LOG_LEVEL: str | None = None

    # CORS
    # Accept list or CSV/JSON string from env; normalized to list[str] by validators
    CORS_ORIGINS: list[str] | str = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    ALLOW_CREDENTIALS: bool = True

    # AI / LLM provider configuration
    LLM_PROVIDER: Literal["gemini", "azure_openai"] = "gemini"
    GEMINI_API_KEY: str | None = None
    AZURE_OPENAI_ENDPOINT: str | None = None
    AZURE_OPENAI_API_KEY: str | None = None
    AZURE_OPENAI_API_VERSION: str | None = None

    # Model names (deployment names when LLM_PROVIDER=azure_openai)
    STRUCTURE_MODEL: str = "gemini-2.5-pro"
    CHAT_MODEL: str = "gemini-2.5-pro"
    MULTIMODAL_MODEL: str = "gemini-2.5-flash"
    # Search grounding and image generation are Gemini-only features
    SEARCH_MODEL: str = "gemini-2.5-flash"
    IMAGE_MODEL: str = "gemini-2.5-flash-image"

    # Transformation pipeline
    PIPELINE_MIN_TEXT_LENGTH: int = Field(default=50, ge=0)
    # 0 disables the per-stage timeout
    PIPELINE_STAGE_TIMEOUT_SECONDS: float = Field(default=120.0, ge=0.0)
    PIPELINE_VERIFY_OUTPUT: bool = True
    CITATION_PREVIEW_CHARS: int = Field(default=50, ge=1)
    OUTPUT_FILENAME_SUFFIX: str = "_IEEE"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: object) -> list[str]:
        """Allow list, CSV string, or JSON array string for CORS origins."""
        if isinstance(v, list):
            return [str(i).strip() for i in v]
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            if s.startswith("["):
                try:
                    parsed = json.loads(s)
                except json.JSONDecodeError as e:
                    raise ValueError(
                        "CORS_ORIGINS must be a CSV list or JSON array string"
                    ) from e
                if not isinstance(parsed, list):
                    raise ValueError("CORS_ORIGINS JSON must be a list")
                return [str(i).strip() for i in parsed]
            # CSV fallback
            return [i.strip() for i in s.split(",") if i.strip()]
        raise ValueError("Invalid CORS_ORIGINS type; expected str or list[str]")

    @model_validator(mode="after")
    def _validate_cors_credentials(self) -> "Settings":
        """Ensure wildcard origins are not used when credentials are allowed."""
        # Normalize in case the union allows a stray string at runtime
        if isinstance(self.CORS_ORIGINS, str):
            self.CORS_ORIGINS = self.assemble_cors_origins(self.CORS_ORIGINS)
        if self.ALLOW_CREDENTIALS and any(
            o.strip() == "*" for o in (self.CORS_ORIGINS or [])
        ):
            raise ValueError(
                "CORS configuration error: ALLOW_CREDENTIALS=True but "
                "CORS_ORIGINS contains '*'. Use explicit origins when credentials "
                "are allowed."
            )
        return self

    @property
    def stage_timeout(self) -> float | None:
        """Per-stage timeout in seconds, or None when disabled."""
        return self.PIPELINE_STAGE_TIMEOUT_SECONDS or None


@lru_cache
def get_settings() -> Settings:
    env = os.getenv("ENVIRONMENT", "development").lower()
    if env not in {"development", "production", "test"}:
        raise ValueError("ENVIRONMENT must be 'development', 'production', or 'test'")

    if env == "production":
        env_file = ".env.prod"
    elif env == "development":
        env_file = ".env.dev"
    else:
        # test environment - no env file needed, use defaults
        env_file = ""

    # The Settings initializer accepts a runtime-only `_env_file` kwarg used by
    # pydantic-settings; mypy's stub doesn't allow this call argument.
    return Settings(_env_file=env_file or None)  # type: ignore[call-arg]
