"""
Инфраструктурный слой контекста бронирования.

Содержит базовую единицу работы с публикацией событий после фиксации
и реализацию хранилища в памяти.
"""

import threading
from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, List, Optional, Tuple, TypeVar

from pydantic import BaseModel

from ..catalog.domain import Room
from ..shared_kernel import (
    BookingStatus,
    DomainEvent,
    EntityId,
    IEventBus,
    ILogger,
    InMemoryEventBus,
    RoomStatus,
    StdLibLogger,
    StorageException,
)
from . import interfaces as ports
from .domain import Booking, User

T = TypeVar("T", bound=BaseModel)


def _detach(model: T) -> T:
    """Возвращает независимую копию модели без накопленных событий."""
    copy = model.model_copy(deep=True)
    if hasattr(copy, "clear_events"):
        copy.clear_events()
    return copy


class AbstractUnitOfWork(ABC):
    """
    Базовая единица работы.

    Одна операция сервиса = один вход в контекст. При выходе без исключения
    изменения фиксируются, иначе откатываются. Доменные события, собранные
    через collect_events, публикуются только после успешной фиксации.
    """

    def __init__(
        self,
        event_bus: Optional[IEventBus] = None,
        logger: Optional[ILogger] = None,
    ):
        self._logger = logger or StdLibLogger(__name__)
        self.event_bus = event_bus or InMemoryEventBus(self._logger)
        self._events: List[DomainEvent] = []

    def __enter__(self):
        self._events = []
        self._begin()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            self._end()
        if exc_type is None:
            self._publish_events()
        return False  # Пробрасываем исключение дальше, если оно было

    def commit(self) -> None:
        """Фиксирует все изменения."""
        self._commit()
        self._logger.debug(
            f"{type(self).__name__} committed", events=len(self._events)
        )

    def rollback(self) -> None:
        """Откатывает все изменения и отбрасывает события."""
        self._rollback()
        self._logger.warning(
            f"{type(self).__name__} rolled back", discarded_events=len(self._events)
        )
        self._events = []

    def collect_events(self, aggregate) -> None:
        """Забирает доменные события из агрегата."""
        new_events = list(aggregate.domain_events)
        if new_events:
            self._events.extend(new_events)
            aggregate.clear_events()

    def _publish_events(self) -> None:
        events, self._events = self._events, []
        for event in events:
            self.event_bus.publish(event)

    @abstractmethod
    def _begin(self) -> None: ...

    @abstractmethod
    def _commit(self) -> None: ...

    @abstractmethod
    def _rollback(self) -> None: ...

    def _end(self) -> None:
        """Освобождает ресурсы транзакции."""


class InMemoryStore:
    """
    Общее хранилище в памяти для всех единиц работы.

    Блокировка удерживается на протяжении всей единицы работы, поэтому
    проверка конфликтов и последующая запись выполняются последовательно.
    """

    def __init__(self):
        self.rooms: Dict[EntityId, Room] = {}
        self.bookings: Dict[EntityId, Booking] = {}
        self.users: Dict[EntityId, User] = {}
        self.lock = threading.RLock()

    def snapshot(self) -> Tuple[dict, dict, dict]:
        # Репозитории заменяют объекты целиком, поверхностной копии словарей достаточно
        return dict(self.rooms), dict(self.bookings), dict(self.users)

    def restore(self, snapshot: Tuple[dict, dict, dict]) -> None:
        rooms, bookings, users = snapshot
        self.rooms.clear()
        self.rooms.update(rooms)
        self.bookings.clear()
        self.bookings.update(bookings)
        self.users.clear()
        self.users.update(users)


class InMemoryRoomRepository:
    """Реализация репозитория номеров в памяти."""

    def __init__(self, store: InMemoryStore):
        self._store = store

    def get_by_id(self, room_id: EntityId) -> Optional[Room]:
        room = self._store.rooms.get(room_id)
        return _detach(room) if room is not None else None

    def find_by_room_number(self, room_number: str) -> Optional[Room]:
        for room in self._store.rooms.values():
            if room.room_number == room_number:
                return _detach(room)
        return None

    def save(self, room: Room) -> None:
        for existing in self._store.rooms.values():
            if existing.room_number == room.room_number and existing.id != room.id:
                raise StorageException(
                    "Нарушено ограничение уникальности номера комнаты"
                )
        self._store.rooms[room.id] = _detach(room)

    def list(self) -> List[Room]:
        return [_detach(room) for room in self._store.rooms.values()]

    def find_by_status(self, status: RoomStatus) -> List[Room]:
        return [
            _detach(room)
            for room in self._store.rooms.values()
            if room.availability_status == status
        ]

    def search_by_description(self, text: str) -> List[Room]:
        needle = text.lower()
        return [
            _detach(room)
            for room in self._store.rooms.values()
            if needle in room.description.lower()
        ]


class InMemoryBookingRepository:
    """Реализация репозитория бронирований в памяти."""

    def __init__(self, store: InMemoryStore):
        self._store = store

    def get_by_id(self, booking_id: EntityId) -> Optional[Booking]:
        booking = self._store.bookings.get(booking_id)
        return _detach(booking) if booking is not None else None

    def add(self, booking: Booking) -> None:
        if booking.id in self._store.bookings:
            raise StorageException(f"Бронирование {booking.id} уже существует")
        self._store.bookings[booking.id] = _detach(booking)

    def update(self, booking: Booking) -> None:
        if booking.id not in self._store.bookings:
            raise StorageException(f"Бронирование {booking.id} отсутствует в хранилище")
        self._store.bookings[booking.id] = _detach(booking)

    def list(self) -> List[Booking]:
        return [_detach(booking) for booking in self._store.bookings.values()]

    def find_by_user(self, user_id: EntityId) -> List[Booking]:
        return [
            _detach(booking)
            for booking in self._store.bookings.values()
            if booking.user_id == user_id
        ]

    def find_by_room(self, room_id: EntityId) -> List[Booking]:
        return [
            _detach(booking)
            for booking in self._store.bookings.values()
            if booking.room_id == room_id
        ]

    def find_by_status(self, status: BookingStatus) -> List[Booking]:
        return [
            _detach(booking)
            for booking in self._store.bookings.values()
            if booking.status == status
        ]

    def find_overlapping_bookings(
        self,
        room_id: EntityId,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[EntityId] = None,
    ) -> List[Booking]:
        result = []

        for booking in self._store.bookings.values():
            # Пропускаем исключенное бронирование
            if exclude_booking_id is not None and booking.id == exclude_booking_id:
                continue

            if (
                booking.room_id == room_id
                and booking.is_active()
                and booking.overlaps(check_in, check_out)
            ):
                result.append(_detach(booking))

        return result


class InMemoryUserRepository:
    """Реализация репозитория пользователей в памяти."""

    def __init__(self, store: InMemoryStore):
        self._store = store

    def get_by_id(self, user_id: EntityId) -> Optional[User]:
        user = self._store.users.get(user_id)
        return _detach(user) if user is not None else None

    def find_by_email(self, email: str) -> Optional[User]:
        for user in self._store.users.values():
            if user.email.lower() == email.lower():
                return _detach(user)
        return None

    def add(self, user: User) -> None:
        if user.id in self._store.users:
            raise StorageException(f"Пользователь {user.id} уже существует")
        if self.find_by_email(user.email) is not None:
            raise StorageException(f"Пользователь с email {user.email} уже существует")
        self._store.users[user.id] = _detach(user)


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """Единица работы поверх общего хранилища в памяти."""

    def __init__(
        self,
        store: Optional[InMemoryStore] = None,
        event_bus: Optional[IEventBus] = None,
        logger: Optional[ILogger] = None,
    ):
        super().__init__(event_bus=event_bus, logger=logger)
        self.store = store if store is not None else InMemoryStore()
        self._rooms = InMemoryRoomRepository(self.store)
        self._bookings = InMemoryBookingRepository(self.store)
        self._users = InMemoryUserRepository(self.store)
        self._snapshot: Optional[Tuple[dict, dict, dict]] = None

    @property
    def bookings(self) -> ports.IBookingRepository:
        return self._bookings

    @property
    def rooms(self) -> InMemoryRoomRepository:
        return self._rooms

    @property
    def users(self) -> ports.IUserRepository:
        return self._users

    def _begin(self) -> None:
        self.store.lock.acquire()
        self._snapshot = self.store.snapshot()

    def _commit(self) -> None:
        self._snapshot = self.store.snapshot()

    def _rollback(self) -> None:
        if self._snapshot is not None:
            self.store.restore(self._snapshot)

    def _end(self) -> None:
        self._snapshot = None
        self.store.lock.release()
