"""
Модуль каталога номеров (Room Catalog).

Отвечает за записи о номерах отеля:
- Поиск номера по идентификатору и по номеру комнаты
- Переключение флага доступности
- Сохранение номеров с проверкой уникальности номера комнаты
"""

from . import application, domain, interfaces
from .application import RoomCatalogService
from .domain import Room, RoomAvailabilityChanged, RoomCatalog

__all__ = [
    "application",
    "domain",
    "interfaces",
    "Room",
    "RoomAvailabilityChanged",
    "RoomCatalog",
    "RoomCatalogService",
]
