"""
Общие фикстуры: хранилище в памяти, пользователь и набор номеров.
"""

from datetime import date
from decimal import Decimal
from functools import partial
from typing import Callable, Iterable

import pytest

from booking_engine.booking import (
    BookingApplicationService,
    InMemoryStore,
    InMemoryUnitOfWork,
    User,
)
from booking_engine.catalog import Room, RoomCatalogService
from booking_engine.search import RoomSearchService
from booking_engine.shared_kernel import InMemoryEventBus, Money, RoomType

JUNE_10 = date(2030, 6, 10)
JUNE_15 = date(2030, 6, 15)
JUNE_20 = date(2030, 6, 20)


def make_room(
    room_number: str,
    room_type: RoomType = RoomType.DOUBLE,
    price: str = "100.00",
    max_guests: int = 2,
    amenities: Iterable[str] = (),
    description: str = "",
) -> Room:
    return Room(
        room_number=room_number,
        room_type=room_type,
        price_per_night=Money(amount=Decimal(price)),
        max_guests=max_guests,
        amenities=set(amenities),
        description=description,
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def uow_factory(store: InMemoryStore, event_bus: InMemoryEventBus) -> Callable:
    return partial(InMemoryUnitOfWork, store, event_bus)


@pytest.fixture
def add_rooms(uow_factory: Callable) -> Callable:
    """Сохраняет номера в хранилище в переданном порядке."""

    def _add(*rooms: Room) -> None:
        with uow_factory() as uow:
            for room in rooms:
                uow.rooms.save(room)

    return _add


@pytest.fixture
def user(uow_factory: Callable) -> User:
    guest = User(email="guest@example.com", full_name="Иван Петров")
    with uow_factory() as uow:
        uow.users.add(guest)
    return guest


@pytest.fixture
def room(add_rooms: Callable) -> Room:
    standard = make_room("101", amenities={"wifi", "tv"})
    add_rooms(standard)
    return standard


@pytest.fixture
def booking_service(uow_factory: Callable) -> BookingApplicationService:
    return BookingApplicationService(uow_factory)


@pytest.fixture
def catalog_service(uow_factory: Callable) -> RoomCatalogService:
    return RoomCatalogService(uow_factory)


@pytest.fixture
def search_service(uow_factory: Callable) -> RoomSearchService:
    return RoomSearchService(uow_factory)
