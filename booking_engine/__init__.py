"""
Движок бронирования номеров отеля.

Ограниченные контексты:
- shared_kernel: общие типы, перечисления и исключения
- catalog: номера и их флаг доступности
- booking: бронирования, детектор конфликтов, машина состояний
- search: поиск свободных номеров
"""

from .bootstrap import bootstrap_engine
from .config import ConfigurationError, EngineSettings, StorageBackend

__all__ = [
    "bootstrap_engine",
    "ConfigurationError",
    "EngineSettings",
    "StorageBackend",
]
