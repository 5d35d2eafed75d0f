"""Connection settings for the phoenixd HTTP API."""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator


class PhoenixdConfig(BaseModel):
    """Where phoenixd listens and how to authenticate.

    The API password is read from the environment variable named by
    ``password_env`` (``PHOENIXD_PASSWORD`` by default). phoenixd accepts an
    empty password only when started with authentication disabled, so an
    unset variable yields an empty secret rather than an error.
    """

    url: str = Field(
        default="http://localhost:9740",
        description="phoenixd HTTP base URL",
    )
    password_env: str = Field(
        default="PHOENIXD_PASSWORD",  # pragma: allowlist secret
        min_length=1,
        description="Environment variable holding the phoenixd API password",
    )
    password: SecretStr = Field(
        default=SecretStr(""),
        description="API password (loaded from password_env)",
    )
    request_timeout: float = Field(default=30.0, ge=0.1, description="REST call timeout (s)")
    connect_timeout: float = Field(default=10.0, ge=0.1, description="Feed connect timeout (s)")
    heartbeat: float | None = Field(
        default=30.0, ge=1.0, description="Feed WebSocket ping interval (s, None disables)"
    )
    max_response_size: int = Field(
        default=16 * 1024 * 1024, ge=1024, description="Largest REST response body accepted"
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return v.rstrip("/")

    @model_validator(mode="before")
    @classmethod
    def resolve_password(cls, data: Any) -> Any:
        if isinstance(data, dict) and "password" not in data:
            env_var = data.get("password_env", "PHOENIXD_PASSWORD")  # pragma: allowlist secret
            data = {**data, "password": SecretStr(os.getenv(env_var, ""))}
        return data
