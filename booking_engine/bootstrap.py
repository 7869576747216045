"""Сборка движка бронирования из настроек."""

from functools import partial
from typing import Any, Dict, Optional

from .booking.application import BookingApplicationService
from .booking.infrastructure import InMemoryStore, InMemoryUnitOfWork
from .catalog.application import RoomCatalogService
from .config import EngineSettings, StorageBackend
from .search.application import RoomSearchService
from .shared_kernel import IEventBus, ILogger, InMemoryEventBus, StdLibLogger, configure_logging


def bootstrap_engine(
    settings: Optional[EngineSettings] = None,
    event_bus: Optional[IEventBus] = None,
    logger: Optional[ILogger] = None,
) -> Dict[str, Any]:
    """Создает и настраивает все компоненты движка."""
    settings = settings or EngineSettings.from_env()
    configure_logging(settings.log_level)
    logger = logger or StdLibLogger("booking_engine")
    event_bus = event_bus or InMemoryEventBus(logger)

    # 1. Выбираем хранилище и фабрику единиц работы
    if settings.storage_backend == StorageBackend.SQLALCHEMY:
        from .booking.sql_infrastructure import (
            SqlAlchemyUnitOfWork,
            create_schema,
            create_storage_engine,
        )

        engine = create_storage_engine(settings.database_url, echo=settings.sql_echo)
        create_schema(engine)
        uow_factory = partial(SqlAlchemyUnitOfWork, engine, event_bus, logger)
    else:
        store = InMemoryStore()
        uow_factory = partial(InMemoryUnitOfWork, store, event_bus, logger)

    # 2. Создаем сервисы, передавая им общую фабрику единиц работы
    booking_service = BookingApplicationService(
        uow_factory,
        logger=logger,
        terminal_status_policy=settings.terminal_status_policy,
        allow_degraded_bookings=settings.allow_degraded_bookings,
        tolerate_list_failures=settings.tolerate_list_failures,
    )

    # Возвращаем настроенные компоненты
    return {
        "settings": settings,
        "uow_factory": uow_factory,
        "event_bus": event_bus,
        "room_catalog": RoomCatalogService(uow_factory, logger=logger),
        "booking_service": booking_service,
        "search_service": RoomSearchService(uow_factory, logger=logger),
    }
