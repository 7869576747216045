"""
Интерфейсы (порты) каталога номеров.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Protocol

from ..shared_kernel import EntityId, RoomStatus

if TYPE_CHECKING:
    from .domain import Room


class IRoomRepository(Protocol):
    """Интерфейс репозитория для номеров."""

    def get_by_id(self, room_id: EntityId) -> Room | None: ...
    def find_by_room_number(self, room_number: str) -> Room | None: ...
    def save(self, room: Room) -> None: ...
    def list(self) -> List[Room]: ...
    def find_by_status(self, status: RoomStatus) -> List[Room]: ...
    def search_by_description(self, text: str) -> List[Room]: ...


class ICatalogUnitOfWork(Protocol):
    """Единица работы, дающая доступ к репозиторию номеров."""

    @property
    def rooms(self) -> IRoomRepository: ...

    def __enter__(self) -> ICatalogUnitOfWork: ...
    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...
    def collect_events(self, aggregate: Any) -> None: ...
