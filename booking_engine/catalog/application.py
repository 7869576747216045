"""
Прикладной слой каталога номеров.

Каждая операция выполняется в собственной единице работы.
"""

from typing import Callable, List, Optional

from ..shared_kernel import EntityId, ILogger, RoomStatus, StdLibLogger
from .domain import Room, RoomCatalog
from .interfaces import ICatalogUnitOfWork


class RoomCatalogService:
    """Сервис приложения для работы с каталогом номеров."""

    def __init__(
        self,
        uow_factory: Callable[[], ICatalogUnitOfWork],
        logger: Optional[ILogger] = None,
    ):
        self._uow_factory = uow_factory
        self._logger = logger or StdLibLogger(__name__)

    def get_room(self, room_id: EntityId) -> Room:
        """Возвращает номер по идентификатору."""
        with self._uow_factory() as uow:
            return RoomCatalog(uow.rooms).get_by_id(room_id)

    def get_room_by_number(self, room_number: str) -> Room:
        """Возвращает номер по номеру комнаты."""
        with self._uow_factory() as uow:
            return RoomCatalog(uow.rooms).get_by_room_number(room_number)

    def list_rooms(self, status: Optional[RoomStatus] = None) -> List[Room]:
        """Возвращает все номера или только номера с указанным флагом."""
        with self._uow_factory() as uow:
            return RoomCatalog(uow.rooms).list_rooms(status)

    def search_by_description(self, text: str) -> List[Room]:
        """Ищет номера по подстроке в описании без учета регистра."""
        with self._uow_factory() as uow:
            return RoomCatalog(uow.rooms).search_by_description(text)

    def save_room(self, room: Room) -> Room:
        """Добавляет или обновляет номер."""
        with self._uow_factory() as uow:
            saved = RoomCatalog(uow.rooms).save(room)
        self._logger.info("Room saved", room_id=saved.id, room_number=saved.room_number)
        return saved

    def set_availability(self, room_id: EntityId, status: RoomStatus) -> Room:
        """
        Напрямую переключает флаг доступности номера.

        Предназначено для служб отеля (уборка, обслуживание); движок
        бронирования меняет флаг сам при смене статуса бронирования.
        """
        with self._uow_factory() as uow:
            room = RoomCatalog(uow.rooms).set_availability(room_id, status)
            uow.collect_events(room)
        self._logger.info(
            "Room availability set",
            room_id=room.id,
            availability_status=room.availability_status.value,
        )
        return room
