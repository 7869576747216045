"""
Доменная модель контекста бронирования.

Содержит агрегат бронирования с его машиной состояний, детектор
конфликтов дат и явный тип временного (деградированного) бронирования.
"""

from datetime import date, datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

from ..catalog.domain import Room
from ..shared_kernel import (
    BookingStatus,
    BookingValidationException,
    DateRange,
    DomainEvent,
    EntityId,
    FieldError,
    RoomStatus,
    generate_id,
    now,
)
from .interfaces import IBookingRepository


class User(BaseModel):
    """Пользователь, от имени которого делается бронирование (без учетных данных)."""

    id: EntityId = Field(default_factory=generate_id)
    email: str
    full_name: str = ""


class TerminalStatusPolicy(str, Enum):
    """Что делать с попыткой сменить статус завершенного или отмененного бронирования."""

    IGNORE = "ignore"  # Вернуть бронирование без изменений
    REJECT = "reject"  # Ошибка валидации поля status


class BookingCreated(DomainEvent):
    """Событие создания бронирования."""

    booking_id: EntityId
    room_id: EntityId
    user_id: EntityId
    check_in: date
    check_out: date


class BookingStatusChanged(DomainEvent):
    """Событие смены статуса бронирования."""

    booking_id: EntityId
    room_id: EntityId
    previous_status: BookingStatus
    new_status: BookingStatus


ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.COMPLETED}
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.CANCELLED, BookingStatus.COMPLETED}
    ),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

# Флаг номера, который выставляется при переходе бронирования в статус
ROOM_STATUS_AFTER_TRANSITION: Dict[BookingStatus, RoomStatus] = {
    BookingStatus.CONFIRMED: RoomStatus.OCCUPIED,
    BookingStatus.CANCELLED: RoomStatus.AVAILABLE,
    BookingStatus.COMPLETED: RoomStatus.AVAILABLE,
}


def ensure_guest_count(number_of_guests: int, room: Optional[Room] = None) -> None:
    """Проверяет число гостей: хотя бы один и не больше вместимости номера."""
    if number_of_guests < 1:
        raise BookingValidationException(
            "Число гостей должно быть не меньше одного",
            [
                FieldError(
                    field="number_of_guests",
                    message="Укажите хотя бы одного гостя",
                )
            ],
        )
    if room is not None and number_of_guests > room.max_guests:
        raise BookingValidationException(
            f"Превышена вместимость номера (макс. {room.max_guests} гостей)",
            [
                FieldError(
                    field="number_of_guests",
                    message=f"Номер {room.room_number} вмещает не более "
                    f"{room.max_guests} гостей",
                )
            ],
        )


class Booking(BaseModel):
    """Бронирование номера в отеле."""

    id: EntityId = Field(default_factory=generate_id)
    user_id: EntityId
    room_id: EntityId
    check_in: date
    check_out: date  # Не включается в проживание
    number_of_guests: int = Field(..., gt=0)
    special_requests: Optional[str] = None
    status: BookingStatus = BookingStatus.PENDING
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)
    _domain_events: List[DomainEvent] = PrivateAttr(default_factory=list)

    @model_validator(mode="after")
    def check_out_after_check_in(self) -> "Booking":
        if self.check_out <= self.check_in:
            raise ValueError("Дата выезда должна быть позже даты заезда")
        return self

    @property
    def period(self) -> DateRange:
        return DateRange(check_in=self.check_in, check_out=self.check_out)

    @property
    def domain_events(self) -> List[DomainEvent]:
        """Возвращает список доменных событий."""
        return self._domain_events

    def clear_events(self) -> None:
        """Очищает список доменных событий."""
        self._domain_events = []

    def is_active(self) -> bool:
        """Бронирование занимает номер (pending или confirmed)."""
        return self.status.is_active

    def overlaps(self, check_in: date, check_out: date) -> bool:
        return self.check_in < check_out and check_in < self.check_out

    def transition_to(
        self,
        new_status: BookingStatus,
        policy: TerminalStatusPolicy = TerminalStatusPolicy.IGNORE,
    ) -> bool:
        """
        Переводит бронирование в новый статус.

        Возвращает True, если статус действительно изменился. Переход в
        текущий статус ничего не делает. Для терминальных статусов поведение
        определяет ``policy``: IGNORE возвращает False, REJECT поднимает
        BookingValidationException. Переход, которого нет в таблице
        ALLOWED_TRANSITIONS (например, confirmed -> pending), отклоняется.
        """
        if new_status == self.status:
            return False

        if self.status.is_terminal:
            if policy == TerminalStatusPolicy.REJECT:
                raise BookingValidationException(
                    f"Бронирование в статусе {self.status.value} нельзя изменить",
                    [
                        FieldError(
                            field="status",
                            message="Создайте новое бронирование вместо изменения "
                            "завершенного или отмененного",
                        )
                    ],
                )
            return False

        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise BookingValidationException(
                f"Недопустимый переход статуса: {self.status.value} -> {new_status.value}",
                [
                    FieldError(
                        field="status",
                        message=f"Из статуса {self.status.value} нельзя перейти "
                        f"в {new_status.value}",
                    )
                ],
            )

        previous = self.status
        self.status = new_status
        self.updated_at = now()
        self._domain_events.append(
            BookingStatusChanged(
                booking_id=self.id,
                room_id=self.room_id,
                previous_status=previous,
                new_status=new_status,
            )
        )
        return True

    def reschedule(self, period: DateRange) -> None:
        """Переносит бронирование на новый период."""
        self.check_in = period.check_in
        self.check_out = period.check_out
        self.updated_at = now()

    def move_to_room(self, room: Room) -> None:
        self.room_id = room.id
        self.updated_at = now()

    def reassign_to(self, user: User) -> None:
        self.user_id = user.id
        self.updated_at = now()

    @classmethod
    def create(
        cls,
        user: User,
        room: Room,
        period: DateRange,
        number_of_guests: int,
        special_requests: Optional[str] = None,
    ) -> "Booking":
        """Создает новое бронирование в статусе pending."""
        ensure_guest_count(number_of_guests, room)

        booking = cls(
            user_id=user.id,
            room_id=room.id,
            check_in=period.check_in,
            check_out=period.check_out,
            number_of_guests=number_of_guests,
            special_requests=special_requests,
        )

        booking._domain_events.append(
            BookingCreated(
                booking_id=booking.id,
                room_id=room.id,
                user_id=user.id,
                check_in=period.check_in,
                check_out=period.check_out,
            )
        )

        return booking


class DegradedBooking(BaseModel):
    """
    Временная запись о бронировании, выданная при сбое хранилища.

    Инварианты: никогда не сохраняется, не занимает номер, не участвует
    в проверке конфликтов и всегда требует подтверждения (повторного
    создания настоящего бронирования). Порядок дат проверен.
    """

    model_config = ConfigDict(frozen=True)

    id: EntityId = Field(default_factory=generate_id)
    user_id: EntityId
    room_id: EntityId
    check_in: date
    check_out: date
    number_of_guests: int = Field(..., gt=0)
    special_requests: Optional[str] = None
    status: BookingStatus = BookingStatus.PENDING
    is_temporary: bool = True
    requires_confirmation: bool = True
    reason: str
    created_at: datetime = Field(default_factory=now)


class ConflictDetector:
    """Доменный сервис проверки пересечения бронирований одного номера."""

    def __init__(self, booking_repository: IBookingRepository):
        self.booking_repository = booking_repository

    def find_conflicts(
        self,
        room_id: EntityId,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[EntityId] = None,
    ) -> List[Booking]:
        """
        Возвращает активные бронирования номера, пересекающиеся с [check_in, check_out).

        Отмененные и завершенные бронирования номер не занимают и не учитываются.
        """
        candidates = self.booking_repository.find_overlapping_bookings(
            room_id=room_id,
            check_in=check_in,
            check_out=check_out,
            exclude_booking_id=exclude_booking_id,
        )
        return [
            booking
            for booking in candidates
            if booking.room_id == room_id
            and booking.id != exclude_booking_id
            and booking.is_active()
            and booking.overlaps(check_in, check_out)
        ]

    def has_conflict(
        self,
        room_id: EntityId,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[EntityId] = None,
    ) -> bool:
        """Проверяет, занят ли номер на указанные даты."""
        return bool(
            self.find_conflicts(room_id, check_in, check_out, exclude_booking_id)
        )
