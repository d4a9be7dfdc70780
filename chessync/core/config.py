"""
Client configuration + logging setup.

Values come from the environment (CHESSYNC_* variables) with defaults that match the public backend.
"""

import logging
import os
from typing import Self

from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "CHESSYNC_"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseModel):
    backend_url: str = "https://chess-backend-hu0h.onrender.com/api"
    websocket_path: str = "/chess-websocket"
    connect_timeout_seconds: float = Field(default=10.0, gt=0)
    time_per_player_seconds: int = Field(default=10 * 60, gt=0)
    timer_enabled: bool = False
    tick_interval_seconds: float = Field(default=1.0, gt=0)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @property
    def websocket_url(self) -> str:
        return f"{self.backend_url.rstrip('/')}{self.websocket_path}"

    @classmethod
    def from_env(cls) -> Self:
        """Only variables that are actually set override the defaults."""
        overrides: dict[str, str] = {}
        for name in cls.model_fields:
            value = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if value is not None:
                overrides[name] = value
        return cls.model_validate(overrides)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
