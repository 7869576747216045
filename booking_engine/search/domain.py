"""
Доменная модель поиска номеров: фильтр, предикаты и сортировка.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..catalog.domain import Room
from ..shared_kernel import RoomType


class SortField(str, Enum):
    """Поля, по которым можно сортировать результаты поиска."""

    PRICE = "price"
    TYPE = "type"
    MAX_GUESTS = "max_guests"
    ROOM_NUMBER = "room_number"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


# Старые имена полей сортировки из HTTP-слоя
_SORT_FIELD_ALIASES = {
    "pricepernight": SortField.PRICE.value,
    "price_per_night": SortField.PRICE.value,
    "roomtype": SortField.TYPE.value,
    "room_type": SortField.TYPE.value,
    "maxguests": SortField.MAX_GUESTS.value,
    "roomnumber": SortField.ROOM_NUMBER.value,
}


class RoomSearchFilter(BaseModel):
    """
    Критерии поиска номеров.

    Все поля необязательны. Диапазон дат задается обеими датами сразу,
    границы цены включительные, удобства проверяются по принципу "все из".
    """

    check_in: Optional[date] = None
    check_out: Optional[date] = None
    room_type: Optional[RoomType] = None
    max_guests: Optional[int] = Field(None, ge=1)  # Минимальная вместимость номера
    min_price: Optional[Decimal] = Field(None, ge=0)
    max_price: Optional[Decimal] = Field(None, ge=0)
    amenities: List[str] = Field(default_factory=list)
    sort_field: Optional[SortField] = None
    sort_order: Optional[SortOrder] = None

    @field_validator("amenities", mode="before")
    @classmethod
    def split_amenities(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        return [str(tag).strip() for tag in v if str(tag).strip()]

    @field_validator("room_type", "sort_order", mode="before")
    @classmethod
    def lowercase_enum_value(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("sort_field", mode="before")
    @classmethod
    def normalize_sort_field(cls, v):
        if isinstance(v, str):
            normalized = v.strip().lower()
            return _SORT_FIELD_ALIASES.get(normalized, normalized)
        return v

    @property
    def has_date_range(self) -> bool:
        return self.check_in is not None and self.check_out is not None

    @property
    def effective_sort_order(self) -> SortOrder:
        """Порядок сортировки; по умолчанию по возрастанию."""
        return self.sort_order or SortOrder.ASC


SORT_KEYS: Dict[SortField, Callable[[Room], object]] = {
    SortField.PRICE: lambda room: room.price_per_night.amount,
    SortField.TYPE: lambda room: room.room_type.value,
    SortField.MAX_GUESTS: lambda room: room.max_guests,
    SortField.ROOM_NUMBER: lambda room: room.room_number,
}


def room_matches(room: Room, search_filter: RoomSearchFilter) -> bool:
    """Проверяет все заданные предикаты фильтра, кроме доступности по датам."""
    if search_filter.room_type is not None and room.room_type != search_filter.room_type:
        return False
    if search_filter.max_guests is not None and room.max_guests < search_filter.max_guests:
        return False
    price = room.price_per_night.amount
    if search_filter.min_price is not None and price < search_filter.min_price:
        return False
    if search_filter.max_price is not None and price > search_filter.max_price:
        return False
    return room.has_amenities(search_filter.amenities)


def sort_rooms(
    rooms: Iterable[Room], field: SortField, order: SortOrder = SortOrder.ASC
) -> List[Room]:
    """
    Сортирует номера по одному полю.

    Сортировка устойчивая в обоих направлениях: номера с равным ключом
    сохраняют исходный порядок.
    """
    return sorted(rooms, key=SORT_KEYS[field], reverse=order == SortOrder.DESC)
