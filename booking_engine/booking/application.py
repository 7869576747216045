"""
Прикладной слой контекста бронирования.

Сервис управляет жизненным циклом бронирования: создание с проверкой
конфликтов, смена статуса с синхронизацией флага номера, отмена и чтение.
Каждая операция выполняется в отдельной единице работы: запись
бронирования и запись флага номера фиксируются вместе или не фиксируются
вовсе.
"""

from datetime import date
from typing import Callable, List, Optional, Union

from pydantic import BaseModel, Field

from ..catalog.domain import RoomCatalog
from ..shared_kernel import (
    BookingStatus,
    BookingValidationException,
    EntityId,
    FieldError,
    ILogger,
    ResourceNotFoundException,
    RoomStatus,
    StdLibLogger,
    StorageException,
    ensure_date_order,
)
from . import interfaces as ports
from .domain import (
    ROOM_STATUS_AFTER_TRANSITION,
    Booking,
    ConflictDetector,
    DegradedBooking,
    TerminalStatusPolicy,
    ensure_guest_count,
)


class UpdateBookingRequest(BaseModel):
    """Запрос на обновление бронирования. Передаются только изменяемые поля."""

    user_id: Optional[EntityId] = None
    room_id: Optional[EntityId] = None
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    number_of_guests: Optional[int] = Field(None, gt=0)
    special_requests: Optional[str] = None
    status: Optional[Union[BookingStatus, str]] = None


class BookingApplicationService:
    """Сервис приложения для работы с бронированиями."""

    def __init__(
        self,
        uow_factory: Callable[[], ports.IBookingUnitOfWork],
        logger: Optional[ILogger] = None,
        terminal_status_policy: TerminalStatusPolicy = TerminalStatusPolicy.IGNORE,
        allow_degraded_bookings: bool = False,
        tolerate_list_failures: bool = False,
    ):
        """Инициализирует сервис."""
        self._uow_factory = uow_factory
        self._logger = logger or StdLibLogger(__name__)
        self._terminal_status_policy = terminal_status_policy
        self._allow_degraded_bookings = allow_degraded_bookings
        self._tolerate_list_failures = tolerate_list_failures

    def create_booking(
        self,
        user_id: EntityId,
        room_id: EntityId,
        check_in: date,
        check_out: date,
        number_of_guests: int,
        special_requests: Optional[str] = None,
    ) -> Booking:
        """
        Создает новое бронирование в статусе pending.

        Порядок дат проверяется до любого обращения к хранилищу. Пересечение
        с активным бронированием номера сообщается как ошибка валидации дат.
        Флаг доступности номера не меняется.
        """
        period = ensure_date_order(check_in, check_out)
        ensure_guest_count(number_of_guests)

        with self._uow_factory() as uow:
            user = uow.users.get_by_id(user_id)
            if user is None:
                raise ResourceNotFoundException("User", user_id)

            room = RoomCatalog(uow.rooms).get_by_id(room_id)

            conflicts = ConflictDetector(uow.bookings).find_conflicts(
                room_id=room.id,
                check_in=period.check_in,
                check_out=period.check_out,
            )
            if conflicts:
                self._logger.warning(
                    "Booking conflict detected",
                    room_id=room.id,
                    check_in=period.check_in,
                    check_out=period.check_out,
                    conflicting_booking_ids=[booking.id for booking in conflicts],
                )
                raise BookingValidationException.for_dates(
                    f"Номер {room.room_number} уже забронирован на выбранные даты"
                )

            booking = Booking.create(
                user=user,
                room=room,
                period=period,
                number_of_guests=number_of_guests,
                special_requests=special_requests,
            )
            uow.collect_events(booking)
            uow.bookings.add(booking)

        self._logger.info(
            "Booking created",
            booking_id=booking.id,
            room_id=booking.room_id,
            user_id=booking.user_id,
            check_in=booking.check_in,
            check_out=booking.check_out,
        )
        return booking

    def create_booking_with_fallback(
        self,
        user_id: EntityId,
        room_id: EntityId,
        check_in: date,
        check_out: date,
        number_of_guests: int,
        special_requests: Optional[str] = None,
    ) -> Union[Booking, DegradedBooking]:
        """
        Создает бронирование, а при сбое хранилища выдает DegradedBooking.

        Временная запись выдается только если это разрешено настройкой
        allow_degraded_bookings и только для StorageException. Ошибки
        валидации и отсутствия ресурсов пробрасываются как есть.
        """
        try:
            return self.create_booking(
                user_id=user_id,
                room_id=room_id,
                check_in=check_in,
                check_out=check_out,
                number_of_guests=number_of_guests,
                special_requests=special_requests,
            )
        except StorageException as exc:
            if not self._allow_degraded_bookings:
                raise
            degraded = DegradedBooking(
                user_id=user_id,
                room_id=room_id,
                check_in=check_in,
                check_out=check_out,
                number_of_guests=number_of_guests,
                special_requests=special_requests,
                reason=exc.message,
            )
            self._logger.warning(
                "Degraded booking issued",
                degraded_booking_id=degraded.id,
                room_id=room_id,
                user_id=user_id,
                reason=exc.message,
            )
            return degraded

    def get_booking(self, booking_id: EntityId) -> Booking:
        """Возвращает бронирование по идентификатору."""
        with self._uow_factory() as uow:
            return self._get_booking(uow, booking_id)

    def list_bookings(
        self,
        user_id: Optional[EntityId] = None,
        room_id: Optional[EntityId] = None,
        status: Optional[Union[BookingStatus, str]] = None,
    ) -> List[Booking]:
        """
        Возвращает список бронирований с фильтрацией.

        Права доступа к бронированиям проверяет вызывающая сторона.
        """
        parsed_status = BookingStatus.parse(status) if status is not None else None

        try:
            with self._uow_factory() as uow:
                if user_id is not None:
                    bookings = uow.bookings.find_by_user(user_id)
                elif room_id is not None:
                    bookings = uow.bookings.find_by_room(room_id)
                elif parsed_status is not None:
                    bookings = uow.bookings.find_by_status(parsed_status)
                else:
                    bookings = uow.bookings.list()
        except StorageException as exc:
            if not self._tolerate_list_failures:
                raise
            self._logger.error(
                "Failed to list bookings, returning empty result",
                error=exc.message,
            )
            return []

        return [
            booking
            for booking in bookings
            if (user_id is None or booking.user_id == user_id)
            and (room_id is None or booking.room_id == room_id)
            and (parsed_status is None or booking.status == parsed_status)
        ]

    def update_status(
        self, booking_id: EntityId, new_status: Union[BookingStatus, str]
    ) -> Booking:
        """
        Меняет статус бронирования и синхронизирует флаг номера.

        confirmed -> номер occupied; cancelled/completed -> номер available.
        """
        status = BookingStatus.parse(new_status)

        with self._uow_factory() as uow:
            booking = self._get_booking(uow, booking_id)
            self._apply_status(uow, booking, status)

        return booking

    def update_booking(
        self, booking_id: EntityId, request: UpdateBookingRequest
    ) -> Booking:
        """
        Обновляет поля бронирования.

        Новый пользователь и новый номер разрешаются по идентификатору
        (NotFound, если их нет). При переносе в другой номер или изменении
        любой из дат итоговый период проверяется заново, включая проверку
        конфликтов в целевом номере без учета самого бронирования. Смена
        статуса проходит через ту же машину состояний, что и update_status,
        в той же единице работы.
        """
        status = BookingStatus.parse(request.status) if request.status is not None else None

        with self._uow_factory() as uow:
            booking = self._get_booking(uow, booking_id)

            if (
                booking.status.is_terminal
                and self._terminal_status_policy == TerminalStatusPolicy.REJECT
            ):
                raise BookingValidationException(
                    f"Бронирование в статусе {booking.status.value} нельзя изменить",
                    [
                        FieldError(
                            field="status",
                            message="Создайте новое бронирование вместо изменения "
                            "завершенного или отмененного",
                        )
                    ],
                )

            user = None
            if request.user_id is not None and request.user_id != booking.user_id:
                user = uow.users.get_by_id(request.user_id)
                if user is None:
                    raise ResourceNotFoundException("User", request.user_id)

            catalog = RoomCatalog(uow.rooms)
            new_room = None
            if request.room_id is not None and request.room_id != booking.room_id:
                new_room = catalog.get_by_id(request.room_id)

            period = booking.period
            dates_changed = request.check_in is not None or request.check_out is not None
            if dates_changed:
                period = ensure_date_order(
                    request.check_in if request.check_in is not None else booking.check_in,
                    request.check_out if request.check_out is not None else booking.check_out,
                )

            target_room_id = new_room.id if new_room is not None else booking.room_id
            if (
                (dates_changed or new_room is not None)
                and booking.is_active()
                and ConflictDetector(uow.bookings).has_conflict(
                    room_id=target_room_id,
                    check_in=period.check_in,
                    check_out=period.check_out,
                    exclude_booking_id=booking.id,
                )
            ):
                raise BookingValidationException.for_dates(
                    "Номер уже забронирован на выбранные даты"
                )

            number_of_guests = (
                request.number_of_guests
                if request.number_of_guests is not None
                else booking.number_of_guests
            )
            if request.number_of_guests is not None or new_room is not None:
                ensure_guest_count(
                    number_of_guests, new_room or catalog.get_by_id(booking.room_id)
                )

            if user is not None:
                booking.reassign_to(user)
            if dates_changed:
                booking.reschedule(period)
            booking.number_of_guests = number_of_guests
            if request.special_requests is not None:
                booking.special_requests = request.special_requests

            previous_room_id = booking.room_id
            if new_room is not None:
                booking.move_to_room(new_room)
            uow.bookings.update(booking)

            # Подтвержденная бронь переносит занятость вместе с собой
            if new_room is not None and booking.status == BookingStatus.CONFIRMED:
                for room_id, room_status in (
                    (previous_room_id, RoomStatus.AVAILABLE),
                    (new_room.id, RoomStatus.OCCUPIED),
                ):
                    uow.collect_events(catalog.set_availability(room_id, room_status))

            if status is not None:
                self._apply_status(uow, booking, status)

        self._logger.info(
            "Booking updated",
            booking_id=booking.id,
            room_id=booking.room_id,
            user_id=booking.user_id,
        )
        return booking

    def cancel_booking(self, booking_id: EntityId) -> Booking:
        """
        Отменяет бронирование.

        Повторная отмена ничего не записывает и не считается ошибкой.
        Завершенное бронирование возвращается без изменений.
        """
        with self._uow_factory() as uow:
            booking = self._get_booking(uow, booking_id)

            if booking.status == BookingStatus.COMPLETED:
                self._logger.warning(
                    "Cancel requested for completed booking, ignoring",
                    booking_id=booking.id,
                )
                return booking

            self._apply_status(uow, booking, BookingStatus.CANCELLED)

        return booking

    def _get_booking(
        self, uow: ports.IBookingUnitOfWork, booking_id: EntityId
    ) -> Booking:
        booking = uow.bookings.get_by_id(booking_id)
        if booking is None:
            raise ResourceNotFoundException("Booking", booking_id)
        return booking

    def _apply_status(
        self,
        uow: ports.IBookingUnitOfWork,
        booking: Booking,
        status: BookingStatus,
    ) -> bool:
        """Применяет переход статуса и обновляет флаг номера в текущей единице работы."""
        previous = booking.status
        if not booking.transition_to(status, self._terminal_status_policy):
            self._logger.debug(
                "Status update is a no-op",
                booking_id=booking.id,
                current_status=previous.value,
                requested_status=status.value,
            )
            return False

        uow.collect_events(booking)
        uow.bookings.update(booking)

        room_status = ROOM_STATUS_AFTER_TRANSITION.get(status)
        if room_status is not None:
            room = RoomCatalog(uow.rooms).set_availability(booking.room_id, room_status)
            uow.collect_events(room)

        self._logger.info(
            "Booking status changed",
            booking_id=booking.id,
            room_id=booking.room_id,
            previous_status=previous.value,
            new_status=status.value,
            room_status=room_status.value if room_status is not None else None,
        )
        return True
