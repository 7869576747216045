"""
Настройки движка бронирования.

Значения берутся из переменных окружения с префиксом HOTEL_BOOKING_,
например HOTEL_BOOKING_STORAGE_BACKEND=sqlalchemy.
"""

import logging
import os
from enum import Enum
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .booking.domain import TerminalStatusPolicy

ENV_PREFIX = "HOTEL_BOOKING_"


class ConfigurationError(Exception):
    """Некорректная или неполная конфигурация."""


class StorageBackend(str, Enum):
    """Доступные реализации хранилища."""

    MEMORY = "memory"
    SQLALCHEMY = "sqlalchemy"


class EngineSettings(BaseModel):
    """Настройки движка."""

    model_config = ConfigDict(frozen=True)

    storage_backend: StorageBackend = StorageBackend.MEMORY
    database_url: str = "sqlite:///hotel_booking.db"
    sql_echo: bool = False
    terminal_status_policy: TerminalStatusPolicy = TerminalStatusPolicy.IGNORE
    allow_degraded_bookings: bool = False
    tolerate_list_failures: bool = False
    log_level: str = "INFO"

    @field_validator("storage_backend", "terminal_status_policy", mode="before")
    @classmethod
    def lowercase_choice(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Неизвестный уровень логирования: {v}")
        return level

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        """Собирает настройки из переменных окружения; пустые значения игнорируются."""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw not in (None, ""):
                values[name] = raw
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            raise ConfigurationError(f"Некорректная конфигурация движка: {exc}") from exc
