"""
Общее ядро (Shared Kernel) движка бронирования.

Содержит общие типы данных, исключения и утилиты, используемые
каталогом номеров, контекстом бронирования и поиском.
"""

from .domain import (
    ACTIVE_BOOKING_STATUSES,
    DEFAULT_CURRENCY,
    TERMINAL_BOOKING_STATUSES,
    BookingStatus,
    BookingValidationException,
    BusinessRuleValidationException,
    DateRange,
    DomainEvent,
    # Исключения
    DomainException,
    # Базовые типы
    EntityId,
    FieldError,
    # Основные классы
    Money,
    ResourceNotFoundException,
    # Перечисления
    RoomStatus,
    RoomType,
    StorageException,
    ensure_date_order,
    generate_id,
    # Утилиты
    now,
)
from .infrastructure import InMemoryEventBus, StdLibLogger, configure_logging
from .interfaces import IEventBus, ILogger

__all__ = [
    # Базовые типы
    "EntityId",
    "generate_id",
    "DEFAULT_CURRENCY",
    # Основные классы
    "Money",
    "DateRange",
    "DomainEvent",
    "FieldError",
    # Перечисления
    "RoomType",
    "RoomStatus",
    "BookingStatus",
    "ACTIVE_BOOKING_STATUSES",
    "TERMINAL_BOOKING_STATUSES",
    # Исключения
    "DomainException",
    "ResourceNotFoundException",
    "BusinessRuleValidationException",
    "BookingValidationException",
    "StorageException",
    # Порты и инфраструктура
    "ILogger",
    "IEventBus",
    "StdLibLogger",
    "InMemoryEventBus",
    "configure_logging",
    # Утилиты
    "now",
    "ensure_date_order",
]
