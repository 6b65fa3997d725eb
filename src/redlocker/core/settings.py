"""Settings loader for redlocker clients and the CLI."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from redlocker.core.scripts import DEFAULT_DELAY_SECONDS


_ENV_FIELDS = {
    "redis_url": "REDIS_URL",
    "namespace": "REDLOCKER_NAMESPACE",
    "delay": "REDLOCKER_DELAY",
    "timeout": "REDLOCKER_TIMEOUT",
    "log_level": "REDLOCKER_LOG_LEVEL",
}


class RedlockerSettings(BaseModel):
    redis_url: str = "redis://localhost:6379/0"
    namespace: Optional[str] = None
    delay: float = Field(default=DEFAULT_DELAY_SECONDS, ge=0)
    timeout: float = Field(default=10.0, ge=0)
    log_level: str = "WARNING"

    @classmethod
    def from_file(cls, path: Path) -> "RedlockerSettings":
        data = yaml.safe_load(path.read_text()) or {}
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid redlocker settings in {path}: {exc}") from exc

    @classmethod
    def from_env(cls) -> "RedlockerSettings":
        """Build settings from ``REDIS_URL`` and ``REDLOCKER_*`` variables."""
        data = {}
        for field, env_name in _ENV_FIELDS.items():
            raw = os.getenv(env_name)
            if raw is not None and raw.strip():
                data[field] = raw.strip()
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid redlocker settings in environment: {exc}") from exc
