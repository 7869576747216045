"""
Доменная модель каталога номеров.

Каталог владеет записями о номерах. Движок бронирования только читает
номера и переключает их флаг доступности как побочный эффект смены
статуса бронирования.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Set

from pydantic import BaseModel, Field, PrivateAttr, field_validator

from ..shared_kernel import (
    BusinessRuleValidationException,
    DomainEvent,
    EntityId,
    FieldError,
    Money,
    ResourceNotFoundException,
    RoomStatus,
    RoomType,
    generate_id,
    now,
)
from .interfaces import IRoomRepository


class RoomAvailabilityChanged(DomainEvent):
    """Событие изменения флага доступности номера."""

    room_id: EntityId
    room_number: str
    previous_status: RoomStatus
    new_status: RoomStatus


class Room(BaseModel):
    """Номер в отеле."""

    id: EntityId = Field(default_factory=generate_id)
    room_number: str = Field(..., min_length=1, max_length=10)  # "101", "202A"
    room_type: RoomType
    price_per_night: Money
    max_guests: int = Field(..., gt=0)
    description: str = ""
    amenities: Set[str] = Field(default_factory=set)
    availability_status: RoomStatus = RoomStatus.AVAILABLE
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)
    _domain_events: List[DomainEvent] = PrivateAttr(default_factory=list)

    @field_validator("amenities", mode="before")
    @classmethod
    def strip_amenities(cls, v):
        if v is None:
            return set()
        if isinstance(v, str):
            v = v.split(",")
        return {str(tag).strip() for tag in v if str(tag).strip()}

    @property
    def domain_events(self) -> List[DomainEvent]:
        """Возвращает список доменных событий."""
        return self._domain_events

    def clear_events(self) -> None:
        """Очищает список доменных событий."""
        self._domain_events = []

    def has_amenities(self, required: Iterable[str]) -> bool:
        """Номер содержит все перечисленные удобства. Пустой список подходит всегда."""
        return set(required) <= self.amenities

    def change_availability(self, status: RoomStatus) -> bool:
        """
        Меняет флаг доступности.

        Возвращает False, если флаг уже имеет нужное значение: повторная
        запись ничего не меняет и событие не публикуется.
        """
        if self.availability_status == status:
            return False

        previous = self.availability_status
        self.availability_status = status
        self.updated_at = now()
        self._domain_events.append(
            RoomAvailabilityChanged(
                room_id=self.id,
                room_number=self.room_number,
                previous_status=previous,
                new_status=status,
            )
        )
        return True


class RoomCatalog:
    """Доменный сервис каталога номеров поверх репозитория текущей единицы работы."""

    def __init__(self, room_repository: IRoomRepository):
        self.room_repository = room_repository

    def get_by_id(self, room_id: EntityId) -> Room:
        room = self.room_repository.get_by_id(room_id)
        if room is None:
            raise ResourceNotFoundException("Room", room_id)
        return room

    def get_by_room_number(self, room_number: str) -> Room:
        room = self.room_repository.find_by_room_number(room_number)
        if room is None:
            raise ResourceNotFoundException("Room", room_number)
        return room

    def set_availability(self, room_id: EntityId, status: RoomStatus) -> Room:
        """Переключает флаг доступности и сохраняет номер, если флаг изменился."""
        room = self.get_by_id(room_id)
        if room.change_availability(status):
            self.room_repository.save(room)
        return room

    def save(self, room: Room) -> Room:
        """Сохраняет номер, проверяя уникальность номера комнаты."""
        existing = self.room_repository.find_by_room_number(room.room_number)
        if existing is not None and existing.id != room.id:
            raise BusinessRuleValidationException(
                f"Номер комнаты {room.room_number} уже занят",
                [
                    FieldError(
                        field="room_number",
                        message="Номер комнаты должен быть уникальным",
                    )
                ],
            )
        room.updated_at = now()
        self.room_repository.save(room)
        return room

    def list_rooms(self, status: Optional[RoomStatus] = None) -> List[Room]:
        if status is None:
            return self.room_repository.list()
        return self.room_repository.find_by_status(status)

    def search_by_description(self, text: str) -> List[Room]:
        return self.room_repository.search_by_description(text.strip())
