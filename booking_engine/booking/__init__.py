"""
Модуль контекста бронирования (Booking Context).

Отвечает за управление бронированием номеров в отеле, включая:
- Создание, изменение и отмену бронирований
- Проверку пересечения дат (детектор конфликтов)
- Машину состояний бронирования и синхронизацию флага доступности номера
"""

from . import application, domain, infrastructure, interfaces
from .application import BookingApplicationService, UpdateBookingRequest
from .domain import (
    Booking,
    BookingCreated,
    BookingStatusChanged,
    ConflictDetector,
    DegradedBooking,
    TerminalStatusPolicy,
    User,
)
from .infrastructure import InMemoryStore, InMemoryUnitOfWork

__all__ = [
    "application",
    "domain",
    "infrastructure",
    "interfaces",
    "Booking",
    "BookingApplicationService",
    "BookingCreated",
    "BookingStatusChanged",
    "ConflictDetector",
    "DegradedBooking",
    "InMemoryStore",
    "InMemoryUnitOfWork",
    "TerminalStatusPolicy",
    "UpdateBookingRequest",
    "User",
]
