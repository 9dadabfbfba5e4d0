"""Relay settings, read from the environment and per-environment ``.env`` files."""

import json
import os
from functools import lru_cache
from typing import Any

import httpx
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# test runs read nothing from disk
ENV_FILES: dict[str, str | None] = {
    "development": ".env.dev",
    "production": ".env.prod",
    "test": None,
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    APP_NAME: str = "IconStream"
    ENVIRONMENT: str = "development"  # development | production | test

    # Upstream image generation API. The relay starts without FAL_KEY but
    # refuses generation requests until it is set.
    FAL_KEY: str | None = None
    UPSTREAM_STREAM_URL: str = "https://fal.run/fal-ai/flux-lora/stream"
    UPSTREAM_CONNECT_TIMEOUT_SECONDS: float = 10.0
    # Upstream keeps the stream open while it renders intermediate steps
    UPSTREAM_READ_TIMEOUT_SECONDS: float = 120.0

    # CORS; "*" admits any origin. The str arm lets CSV values through the
    # env source undecoded; the validator always produces a list.
    CORS_ORIGINS: list[str] | str = ["*"]
    ALLOW_CREDENTIALS: bool = True

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v: object) -> list[str]:
        """Accept a list, a JSON array string or a comma separated string."""
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
        return [origin for item in v if (origin := str(item).strip())]

    @property
    def upstream_configured(self) -> bool:
        return bool(self.FAL_KEY and self.FAL_KEY.strip())

    @property
    def upstream_timeout(self) -> httpx.Timeout:
        connect = self.UPSTREAM_CONNECT_TIMEOUT_SECONDS
        return httpx.Timeout(
            connect, connect=connect, read=self.UPSTREAM_READ_TIMEOUT_SECONDS
        )


def cors_origin_options(settings: Settings) -> dict[str, Any]:
    """Translate CORS_ORIGINS into CORSMiddleware origin keyword arguments.

    Browsers reject a literal ``*`` together with credentials, so an open
    origin list is expressed as a regex; Starlette then reflects the
    request's Origin header back.
    """
    origins = list(settings.CORS_ORIGINS)
    if "*" not in origins:
        return {"allow_origins": origins}
    if settings.ALLOW_CREDENTIALS:
        return {"allow_origin_regex": ".*"}
    return {"allow_origins": ["*"]}


@lru_cache
def get_settings() -> Settings:
    env = os.getenv("ENVIRONMENT", "development").lower()
    if env not in ENV_FILES:
        raise ValueError(
            f"ENVIRONMENT must be one of {', '.join(ENV_FILES)}; got {env!r}"
        )
    # `_env_file` is a runtime-only pydantic-settings argument
    return Settings(_env_file=ENV_FILES[env])  # type: ignore[call-arg]
