"""
Хранилище на SQLAlchemy Core.

Таблицы rooms, bookings и users, отображение строк в доменные модели,
репозитории и единица работы. Любая ошибка SQLAlchemy превращается в
StorageException с сохранением исходной причины.

Гонка "проверка конфликта, затем вставка" закрывается сериализацией
транзакций: в SQLite транзакция открывается через BEGIN IMMEDIATE (писатели
выстраиваются в очередь до проверки конфликта), в остальных СУБД
используется уровень изоляции SERIALIZABLE.
"""

from contextlib import contextmanager
from datetime import date
from typing import Iterator, List, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    create_engine,
    event,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..catalog.domain import Room
from ..shared_kernel import (
    ACTIVE_BOOKING_STATUSES,
    BookingStatus,
    EntityId,
    IEventBus,
    ILogger,
    Money,
    RoomStatus,
    RoomType,
    StorageException,
)
from .domain import Booking, User
from .infrastructure import AbstractUnitOfWork

metadata = MetaData()

users_table = Table(
    "users",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("full_name", String(255), nullable=False, default=""),
)

rooms_table = Table(
    "rooms",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("room_number", String(10), nullable=False, unique=True),
    Column("room_type", String(20), nullable=False),
    Column("price_per_night", Numeric(10, 2), nullable=False),
    Column("currency", String(3), nullable=False),
    Column("max_guests", Integer, nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("amenities", JSON, nullable=False),
    Column("availability_status", String(20), nullable=False, index=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

bookings_table = Table(
    "bookings",
    metadata,
    Column("booking_id", Uuid, primary_key=True),
    Column("user_id", Uuid, ForeignKey("users.id"), nullable=False, index=True),
    Column("room_id", Uuid, ForeignKey("rooms.id"), nullable=False, index=True),
    Column("check_in_date", Date, nullable=False),
    Column("check_out_date", Date, nullable=False),
    Column("number_of_guests", Integer, nullable=False),
    Column("special_requests", Text, nullable=True),
    Column("status", String(20), nullable=False, index=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    CheckConstraint(
        "check_in_date < check_out_date", name="ck_bookings_date_order"
    ),
    Index("ix_bookings_room_dates", "room_id", "check_in_date", "check_out_date"),
)


def create_storage_engine(database_url: str, echo: bool = False) -> Engine:
    """Создает движок SQLAlchemy с сериализуемыми транзакциями."""
    url = make_url(database_url)

    if url.get_backend_name() != "sqlite":
        return create_engine(url, echo=echo, isolation_level="SERIALIZABLE")

    kwargs = {}
    if url.database in (None, "", ":memory:"):
        # Одна общая база в памяти для всех соединений
        kwargs = {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    engine = create_engine(url, echo=echo, **kwargs)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Транзакциями управляет SQLAlchemy, а не драйвер pysqlite
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def create_schema(engine: Engine) -> None:
    """Создает таблицы, если их еще нет."""
    with storage_errors("Не удалось создать схему хранилища"):
        metadata.create_all(engine)


@contextmanager
def storage_errors(message: str) -> Iterator[None]:
    """Переводит ошибки SQLAlchemy в StorageException."""
    try:
        yield
    except SQLAlchemyError as exc:
        raise StorageException(message, exc) from exc


def _room_from_row(row) -> Room:
    return Room(
        id=row.id,
        room_number=row.room_number,
        room_type=RoomType(row.room_type),
        price_per_night=Money(amount=row.price_per_night, currency=row.currency),
        max_guests=row.max_guests,
        description=row.description or "",
        amenities=row.amenities or [],
        availability_status=RoomStatus(row.availability_status),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _room_values(room: Room) -> dict:
    return {
        "room_number": room.room_number,
        "room_type": room.room_type.value,
        "price_per_night": room.price_per_night.amount,
        "currency": room.price_per_night.currency,
        "max_guests": room.max_guests,
        "description": room.description,
        "amenities": sorted(room.amenities),
        "availability_status": room.availability_status.value,
        "created_at": room.created_at,
        "updated_at": room.updated_at,
    }


def _booking_from_row(row) -> Booking:
    return Booking(
        id=row.booking_id,
        user_id=row.user_id,
        room_id=row.room_id,
        check_in=row.check_in_date,
        check_out=row.check_out_date,
        number_of_guests=row.number_of_guests,
        special_requests=row.special_requests,
        status=BookingStatus(row.status),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _booking_values(booking: Booking) -> dict:
    return {
        "user_id": booking.user_id,
        "room_id": booking.room_id,
        "check_in_date": booking.check_in,
        "check_out_date": booking.check_out,
        "number_of_guests": booking.number_of_guests,
        "special_requests": booking.special_requests,
        "status": booking.status.value,
        "created_at": booking.created_at,
        "updated_at": booking.updated_at,
    }


class SqlAlchemyRoomRepository:
    """Репозиторий номеров поверх соединения текущей транзакции."""

    def __init__(self, connection: Connection):
        self._connection = connection

    def _fetch(self, statement) -> List[Room]:
        rows = self._connection.execute(statement.order_by(rooms_table.c.room_number))
        return [_room_from_row(row) for row in rows]

    def get_by_id(self, room_id: EntityId) -> Optional[Room]:
        with storage_errors("Не удалось загрузить номер"):
            row = self._connection.execute(
                select(rooms_table).where(rooms_table.c.id == room_id)
            ).first()
        return _room_from_row(row) if row is not None else None

    def find_by_room_number(self, room_number: str) -> Optional[Room]:
        with storage_errors("Не удалось найти номер по номеру комнаты"):
            row = self._connection.execute(
                select(rooms_table).where(rooms_table.c.room_number == room_number)
            ).first()
        return _room_from_row(row) if row is not None else None

    def save(self, room: Room) -> None:
        values = _room_values(room)
        with storage_errors("Не удалось сохранить номер"):
            result = self._connection.execute(
                update(rooms_table).where(rooms_table.c.id == room.id).values(**values)
            )
            if result.rowcount == 0:
                self._connection.execute(insert(rooms_table).values(id=room.id, **values))

    def list(self) -> List[Room]:
        with storage_errors("Не удалось загрузить номера"):
            return self._fetch(select(rooms_table))

    def find_by_status(self, status: RoomStatus) -> List[Room]:
        with storage_errors("Не удалось загрузить номера"):
            return self._fetch(
                select(rooms_table).where(
                    rooms_table.c.availability_status == status.value
                )
            )

    def search_by_description(self, text: str) -> List[Room]:
        with storage_errors("Не удалось выполнить поиск по описанию"):
            return self._fetch(
                select(rooms_table).where(
                    func.lower(rooms_table.c.description).contains(
                        text.lower(), autoescape=True
                    )
                )
            )


class SqlAlchemyBookingRepository:
    """Репозиторий бронирований поверх соединения текущей транзакции."""

    def __init__(self, connection: Connection):
        self._connection = connection

    def _fetch(self, statement) -> List[Booking]:
        rows = self._connection.execute(
            statement.order_by(
                bookings_table.c.check_in_date, bookings_table.c.created_at
            )
        )
        return [_booking_from_row(row) for row in rows]

    def get_by_id(self, booking_id: EntityId) -> Optional[Booking]:
        with storage_errors("Не удалось загрузить бронирование"):
            row = self._connection.execute(
                select(bookings_table).where(bookings_table.c.booking_id == booking_id)
            ).first()
        return _booking_from_row(row) if row is not None else None

    def add(self, booking: Booking) -> None:
        with storage_errors("Не удалось сохранить бронирование"):
            self._connection.execute(
                insert(bookings_table).values(
                    booking_id=booking.id, **_booking_values(booking)
                )
            )

    def update(self, booking: Booking) -> None:
        with storage_errors("Не удалось обновить бронирование"):
            result = self._connection.execute(
                update(bookings_table)
                .where(bookings_table.c.booking_id == booking.id)
                .values(**_booking_values(booking))
            )
        if result.rowcount == 0:
            raise StorageException(f"Бронирование {booking.id} отсутствует в хранилище")

    def list(self) -> List[Booking]:
        with storage_errors("Не удалось загрузить бронирования"):
            return self._fetch(select(bookings_table))

    def find_by_user(self, user_id: EntityId) -> List[Booking]:
        with storage_errors("Не удалось загрузить бронирования пользователя"):
            return self._fetch(
                select(bookings_table).where(bookings_table.c.user_id == user_id)
            )

    def find_by_room(self, room_id: EntityId) -> List[Booking]:
        with storage_errors("Не удалось загрузить бронирования номера"):
            return self._fetch(
                select(bookings_table).where(bookings_table.c.room_id == room_id)
            )

    def find_by_status(self, status: BookingStatus) -> List[Booking]:
        with storage_errors("Не удалось загрузить бронирования"):
            return self._fetch(
                select(bookings_table).where(bookings_table.c.status == status.value)
            )

    def find_overlapping_bookings(
        self,
        room_id: EntityId,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[EntityId] = None,
    ) -> List[Booking]:
        statement = select(bookings_table).where(
            bookings_table.c.room_id == room_id,
            bookings_table.c.status.in_(
                [status.value for status in ACTIVE_BOOKING_STATUSES]
            ),
            bookings_table.c.check_in_date < check_out,
            bookings_table.c.check_out_date > check_in,
        )
        if exclude_booking_id is not None:
            statement = statement.where(
                bookings_table.c.booking_id != exclude_booking_id
            )
        with storage_errors("Не удалось проверить пересечение бронирований"):
            return self._fetch(statement)


class SqlAlchemyUserRepository:
    """Репозиторий пользователей поверх соединения текущей транзакции."""

    def __init__(self, connection: Connection):
        self._connection = connection

    def get_by_id(self, user_id: EntityId) -> Optional[User]:
        with storage_errors("Не удалось загрузить пользователя"):
            row = self._connection.execute(
                select(users_table).where(users_table.c.id == user_id)
            ).first()
        return User(id=row.id, email=row.email, full_name=row.full_name) if row else None

    def find_by_email(self, email: str) -> Optional[User]:
        with storage_errors("Не удалось найти пользователя по email"):
            row = self._connection.execute(
                select(users_table).where(
                    func.lower(users_table.c.email) == email.lower()
                )
            ).first()
        return User(id=row.id, email=row.email, full_name=row.full_name) if row else None

    def add(self, user: User) -> None:
        with storage_errors("Не удалось сохранить пользователя"):
            self._connection.execute(
                insert(users_table).values(
                    id=user.id, email=user.email, full_name=user.full_name
                )
            )


class SqlAlchemyUnitOfWork(AbstractUnitOfWork):
    """Единица работы: одно соединение и одна транзакция на операцию."""

    def __init__(
        self,
        engine: Engine,
        event_bus: Optional[IEventBus] = None,
        logger: Optional[ILogger] = None,
    ):
        super().__init__(event_bus=event_bus, logger=logger)
        self._engine = engine
        self._connection: Optional[Connection] = None
        self._transaction = None
        self._rooms: Optional[SqlAlchemyRoomRepository] = None
        self._bookings: Optional[SqlAlchemyBookingRepository] = None
        self._users: Optional[SqlAlchemyUserRepository] = None

    def _require_open(self) -> None:
        if self._connection is None:
            raise RuntimeError("Единица работы не открыта, используйте `with uow:`")

    @property
    def rooms(self) -> SqlAlchemyRoomRepository:
        self._require_open()
        return self._rooms

    @property
    def bookings(self) -> SqlAlchemyBookingRepository:
        self._require_open()
        return self._bookings

    @property
    def users(self) -> SqlAlchemyUserRepository:
        self._require_open()
        return self._users

    def _begin(self) -> None:
        with storage_errors("Не удалось открыть транзакцию"):
            self._connection = self._engine.connect()
            try:
                self._transaction = self._connection.begin()
            except SQLAlchemyError:
                self._connection.close()
                self._connection = None
                raise
        self._rooms = SqlAlchemyRoomRepository(self._connection)
        self._bookings = SqlAlchemyBookingRepository(self._connection)
        self._users = SqlAlchemyUserRepository(self._connection)

    def _commit(self) -> None:
        with storage_errors("Не удалось зафиксировать транзакцию"):
            self._transaction.commit()

    def _rollback(self) -> None:
        if self._transaction is not None and self._transaction.is_active:
            with storage_errors("Не удалось откатить транзакцию"):
                self._transaction.rollback()

    def _end(self) -> None:
        if self._connection is not None:
            self._connection.close()
        self._connection = None
        self._transaction = None
        self._rooms = self._bookings = self._users = None
