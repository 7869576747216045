"""
Интерфейсы (порты) для контекста бронирования.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, List, Optional, Protocol

from ..catalog.interfaces import ICatalogUnitOfWork
from ..shared_kernel import BookingStatus, EntityId

if TYPE_CHECKING:
    from .domain import Booking, User


class IBookingRepository(Protocol):
    """Интерфейс репозитория для бронирований."""

    def add(self, booking: Booking) -> None: ...
    def get_by_id(self, booking_id: EntityId) -> Booking | None: ...
    def update(self, booking: Booking) -> None: ...
    def list(self) -> List[Booking]: ...
    def find_by_user(self, user_id: EntityId) -> List[Booking]: ...
    def find_by_room(self, room_id: EntityId) -> List[Booking]: ...
    def find_by_status(self, status: BookingStatus) -> List[Booking]: ...
    def find_overlapping_bookings(
        self,
        room_id: EntityId,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[EntityId] = None,
    ) -> List[Booking]: ...


class IUserRepository(Protocol):
    """Интерфейс репозитория пользователей (модель для чтения)."""

    def add(self, user: User) -> None: ...
    def get_by_id(self, user_id: EntityId) -> User | None: ...
    def find_by_email(self, email: str) -> User | None: ...


class IBookingUnitOfWork(ICatalogUnitOfWork, Protocol):
    """Интерфейс Unit of Work для контекста Booking."""

    @property
    def bookings(self) -> IBookingRepository: ...
    @property
    def users(self) -> IUserRepository: ...
