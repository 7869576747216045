"""
Прикладной слой поиска номеров.
"""

from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from ..booking import interfaces as ports
from ..booking.domain import ConflictDetector
from ..catalog.domain import Room
from ..shared_kernel import (
    BookingValidationException,
    EntityId,
    FieldError,
    ILogger,
    RoomStatus,
    StdLibLogger,
)
from .domain import RoomSearchFilter, room_matches, sort_rooms


class RoomSearchService:
    """Сервис приложения для поиска свободных номеров."""

    def __init__(
        self,
        uow_factory: Callable[[], ports.IBookingUnitOfWork],
        logger: Optional[ILogger] = None,
    ):
        self._uow_factory = uow_factory
        self._logger = logger or StdLibLogger(__name__)

    def search(
        self, search_filter: Optional[RoomSearchFilter] = None, **criteria: Any
    ) -> List[Room]:
        """
        Возвращает номера, подходящие под фильтр.

        Кандидаты: номера с флагом available. Если задан диапазон дат,
        номера с пересекающимися активными бронированиями исключаются
        (проверка выполняется для каждого кандидата при каждом вызове).
        Затем применяются остальные предикаты, дубликаты отбрасываются,
        и в самом конце выполняется сортировка. Флаги номеров поиск не меняет.
        """
        if search_filter is None:
            search_filter = self._build_filter(criteria)
        self._validate_dates(search_filter)

        with self._uow_factory() as uow:
            detector = ConflictDetector(uow.bookings)
            found: Dict[EntityId, Room] = {}

            for room in uow.rooms.find_by_status(RoomStatus.AVAILABLE):
                if room.id in found or not room_matches(room, search_filter):
                    continue
                if search_filter.has_date_range and detector.has_conflict(
                    room_id=room.id,
                    check_in=search_filter.check_in,
                    check_out=search_filter.check_out,
                ):
                    continue
                found[room.id] = room

        results = list(found.values())
        if search_filter.sort_field is not None:
            results = sort_rooms(
                results, search_filter.sort_field, search_filter.effective_sort_order
            )

        self._logger.debug(
            "Room search completed",
            criteria=search_filter.model_dump(mode="json", exclude_none=True),
            found=len(results),
        )
        return results

    @staticmethod
    def _build_filter(criteria: Dict[str, Any]) -> RoomSearchFilter:
        try:
            return RoomSearchFilter(**criteria)
        except ValidationError as exc:
            raise BookingValidationException(
                "Некорректные параметры поиска",
                [
                    FieldError(
                        field=".".join(str(part) for part in error["loc"]) or "filter",
                        message=error["msg"],
                    )
                    for error in exc.errors()
                ],
            ) from exc

    @staticmethod
    def _validate_dates(search_filter: RoomSearchFilter) -> None:
        check_in, check_out = search_filter.check_in, search_filter.check_out
        if check_in is None and check_out is None:
            return
        if check_in is None or check_out is None:
            missing = "check_in" if check_in is None else "check_out"
            raise BookingValidationException(
                "Для поиска по датам нужны обе даты",
                [FieldError(field=missing, message="Укажите дату")],
            )
        if check_in >= check_out:
            raise BookingValidationException.for_dates(
                "Дата заезда должна быть раньше даты выезда"
            )
