"""
Основные доменные типы и утилиты общего ядра.
"""

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, List, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Общие типы идентификаторов
EntityId = UUID

DEFAULT_CURRENCY = "USD"

_CENTS = Decimal("0.01")


def generate_id() -> UUID:
    """Генерирует новый UUID."""
    return uuid4()


def now() -> datetime:
    """Возвращает текущие дату и время в UTC."""
    return datetime.now(timezone.utc)


class Money(BaseModel):
    """Денежная сумма с фиксированной точностью (два знака) и валютой."""

    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(..., ge=0, description="Сумма денег")
    currency: str = Field(
        default=DEFAULT_CURRENCY,
        min_length=3,
        max_length=3,
        description="Код валюты (ISO 4217)",
    )

    @field_validator("amount")
    @classmethod
    def round_to_cents(cls, v: Decimal) -> Decimal:
        return v.quantize(_CENTS, rounding=ROUND_HALF_UP)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class DateRange(BaseModel):
    """Полуоткрытый диапазон дат [check_in, check_out)."""

    model_config = ConfigDict(frozen=True)

    check_in: date
    check_out: date

    @model_validator(mode="after")
    def check_out_after_check_in(self) -> "DateRange":
        if self.check_out <= self.check_in:
            raise ValueError("Дата выезда должна быть позже даты заезда")
        return self

    @property
    def nights(self) -> int:
        """Количество ночей в диапазоне."""
        return (self.check_out - self.check_in).days

    def overlaps(self, other: "DateRange") -> bool:
        """
        Проверяет пересечение двух полуоткрытых диапазонов.

        Совпадение даты выезда одного диапазона с датой заезда другого
        пересечением не считается.
        """
        return self.check_in < other.check_out and other.check_in < self.check_out


class DomainEvent(BaseModel):
    """Базовый класс для всех доменных событий."""

    event_id: UUID = Field(default_factory=uuid4)
    occurred_on: datetime = Field(default_factory=now)

    @property
    def event_type(self) -> str:
        return type(self).__name__


# Общие перечисления
class RoomType(str, Enum):
    """Типы номеров в отеле."""

    SINGLE = "single"
    DOUBLE = "double"
    SUITE = "suite"
    DELUXE = "deluxe"
    FAMILY = "family"


class RoomStatus(str, Enum):
    """Флаг доступности номера."""

    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"
    CLEANING = "cleaning"


class BookingStatus(str, Enum):
    """Статусы бронирования."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_BOOKING_STATUSES

    @property
    def is_active(self) -> bool:
        """Активные бронирования занимают номер и участвуют в проверке конфликтов."""
        return self in ACTIVE_BOOKING_STATUSES

    @classmethod
    def parse(cls, value: Union["BookingStatus", str]) -> "BookingStatus":
        """
        Разбирает статус, пришедший от вызывающей стороны.

        Принимает член перечисления или строку без учета регистра
        ("Pending", " confirmed "). Неизвестная строка приводит к
        BookingValidationException, а не к молчаливому PENDING.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for status in cls:
                if status.value == normalized:
                    return status
        raise BookingValidationException(
            f"Неизвестный статус бронирования: {value!r}",
            [
                FieldError(
                    field="status",
                    message="Допустимые значения: "
                    + ", ".join(status.value for status in cls),
                )
            ],
        )


ACTIVE_BOOKING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})
TERMINAL_BOOKING_STATUSES = frozenset(
    {BookingStatus.CANCELLED, BookingStatus.COMPLETED}
)


# Общие исключения
class FieldError(BaseModel):
    """Описание ошибки валидации конкретного поля."""

    field: str
    message: str


class DomainException(Exception):
    """Базовое исключение для доменных ошибок."""

    code = "DOMAIN_ERROR"
    http_status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ResourceNotFoundException(DomainException):
    """Запрошенный пользователь, номер или бронирование не существует."""

    code = "RESOURCE_NOT_FOUND"
    http_status = 404

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(f"{resource} с ID {resource_id} не найден")
        self.resource = resource
        self.resource_id = resource_id


class BusinessRuleValidationException(DomainException):
    """Исключение при нарушении бизнес-правил."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: Optional[List[FieldError]] = None):
        super().__init__(message)
        self.errors: List[FieldError] = list(errors or [])

    @property
    def fields(self) -> List[str]:
        """Имена полей, к которым относятся ошибки."""
        return [error.field for error in self.errors]


class BookingValidationException(BusinessRuleValidationException):
    """Ошибка валидации бронирования (порядок дат, пересечение, вместимость)."""

    code = "BOOKING_VALIDATION_ERROR"

    @classmethod
    def for_dates(cls, message: str) -> "BookingValidationException":
        """Ошибка, относящаяся сразу к обеим датам бронирования."""
        return cls(
            message,
            [
                FieldError(
                    field="check_in",
                    message="Дата заезда должна быть раньше даты выезда",
                ),
                FieldError(
                    field="check_out",
                    message="Дата выезда должна быть позже даты заезда",
                ),
            ],
        )


class StorageException(DomainException):
    """
    Сбой слоя хранения.

    Исходная ошибка драйвера доступна через ``cause`` (и ``__cause__``),
    но ее текст не попадает в сообщение для вызывающей стороны.
    """

    code = "DATABASE_ERROR"
    http_status = 500

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


def ensure_date_order(check_in: date, check_out: date) -> DateRange:
    """Проверяет порядок дат и возвращает диапазон."""
    if check_in >= check_out:
        raise BookingValidationException.for_dates(
            "Дата заезда должна быть раньше даты выезда"
        )
    return DateRange(check_in=check_in, check_out=check_out)
