"""
Тесты единицы работы: атомарность записи бронирования и флага номера,
публикация событий после фиксации, деградированные бронирования,
терпимость списка к сбоям и последовательная обработка конкурентных запросов.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from booking_engine.booking import (
    BookingApplicationService,
    BookingCreated,
    BookingStatusChanged,
    DegradedBooking,
    InMemoryUnitOfWork,
    User,
)
from booking_engine.booking.infrastructure import (
    InMemoryBookingRepository,
    InMemoryRoomRepository,
)
from booking_engine.catalog import RoomAvailabilityChanged
from booking_engine.shared_kernel import (
    BookingStatus,
    BookingValidationException,
    RoomStatus,
    StorageException,
)
from conftest import JUNE_10, JUNE_15


def failing_storage(*args, **kwargs):
    raise StorageException("Сбой хранилища")


class TestAtomicity:
    def test_room_write_failure_rolls_back_booking(
        self, booking_service, catalog_service, user, room, monkeypatch
    ):
        booking = booking_service.create_booking(user.id, room.id, JUNE_10, JUNE_15, 1)
        monkeypatch.setattr(InMemoryRoomRepository, "save", failing_storage)

        with pytest.raises(StorageException):
            booking_service.update_status(booking.id, BookingStatus.CONFIRMED)

        assert booking_service.get_booking(booking.id).status == BookingStatus.PENDING
        assert (
            catalog_service.get_room(room.id).availability_status
            == RoomStatus.AVAILABLE
        )

    def test_changes_outside_commit_are_discarded(self, store, user):
        with pytest.raises(RuntimeError):
            with InMemoryUnitOfWork(store) as uow:
                uow.users.add(User(email="other@example.com"))
                raise RuntimeError("прерываем операцию")

        assert len(store.users) == 1


class TestEventPublishing:
    def test_events_published_after_commit(
        self, booking_service, event_bus, user, room
    ):
        seen = []

        def on_created(event: BookingCreated):
            # К моменту публикации бронирование уже зафиксировано
            seen.append(booking_service.get_booking(event.booking_id).status)

        event_bus.subscribe(BookingCreated, on_created)
        booking_service.create_booking(user.id, room.id, JUNE_10, JUNE_15, 1)

        assert seen == [BookingStatus.PENDING]

    def test_status_change_publishes_booking_and_room_events(
        self, booking_service, event_bus, user, room
    ):
        received = []
        event_bus.subscribe(BookingStatusChanged, received.append)
        event_bus.subscribe(RoomAvailabilityChanged, received.append)

        booking = booking_service.create_booking(user.id, room.id, JUNE_10, JUNE_15, 1)
        booking_service.update_status(booking.id, BookingStatus.CONFIRMED)

        assert [type(event) for event in received] == [
            BookingStatusChanged,
            RoomAvailabilityChanged,
        ]
        assert received[1].new_status == RoomStatus.OCCUPIED

    def test_no_events_after_rollback(
        self, booking_service, event_bus, user, room, monkeypatch
    ):
        received = []
        event_bus.subscribe(BookingStatusChanged, received.append)
        booking = booking_service.create_booking(user.id, room.id, JUNE_10, JUNE_15, 1)
        monkeypatch.setattr(InMemoryRoomRepository, "save", failing_storage)

        with pytest.raises(StorageException):
            booking_service.update_status(booking.id, BookingStatus.CONFIRMED)

        assert received == []


class TestDegradedBookings:
    def test_storage_failure_yields_degraded_booking(
        self, uow_factory, user, room, monkeypatch
    ):
        service = BookingApplicationService(uow_factory, allow_degraded_bookings=True)
        monkeypatch.setattr(InMemoryBookingRepository, "add", failing_storage)

        result = service.create_booking_with_fallback(user.id, room.id, JUNE_10, JUNE_15, 1)

        assert isinstance(result, DegradedBooking)
        assert result.is_temporary and result.requires_confirmation
        assert result.status == BookingStatus.PENDING
        assert result.reason == "Сбой хранилища"

        monkeypatch.undo()
        assert service.list_bookings() == []
        # Временная запись не занимает номер
        service.create_booking(user.id, room.id, JUNE_10, JUNE_15, 1)

    def test_disabled_by_default(self, booking_service, user, room, monkeypatch):
        monkeypatch.setattr(InMemoryBookingRepository, "add", failing_storage)
        with pytest.raises(StorageException):
            booking_service.create_booking_with_fallback(
                user.id, room.id, JUNE_10, JUNE_15, 1
            )

    def test_validation_errors_are_not_degraded(self, uow_factory, user, room):
        service = BookingApplicationService(uow_factory, allow_degraded_bookings=True)
        with pytest.raises(BookingValidationException):
            service.create_booking_with_fallback(user.id, room.id, JUNE_15, JUNE_10, 1)

    def test_successful_path_returns_real_booking(self, uow_factory, user, room):
        service = BookingApplicationService(uow_factory, allow_degraded_bookings=True)
        result = service.create_booking_with_fallback(user.id, room.id, JUNE_10, JUNE_15, 1)
        assert not isinstance(result, DegradedBooking)
        assert service.get_booking(result.id).id == result.id


class TestListFailures:
    def test_failure_propagates_by_default(self, booking_service, monkeypatch):
        monkeypatch.setattr(InMemoryBookingRepository, "list", failing_storage)
        with pytest.raises(StorageException):
            booking_service.list_bookings()

    def test_failure_tolerated_when_configured(self, uow_factory, monkeypatch, caplog):
        service = BookingApplicationService(uow_factory, tolerate_list_failures=True)
        monkeypatch.setattr(InMemoryBookingRepository, "list", failing_storage)

        assert service.list_bookings() == []
        assert "Failed to list bookings" in caplog.text


class TestConcurrency:
    def test_only_one_overlapping_booking_wins(self, booking_service, user, room):
        def attempt(_):
            try:
                return booking_service.create_booking(
                    user.id, room.id, JUNE_10, JUNE_15, 1
                )
            except BookingValidationException:
                return None

        with ThreadPoolExecutor(max_workers=8) as executor:
            results = list(executor.map(attempt, range(16)))

        assert len([r for r in results if r is not None]) == 1
        assert len(booking_service.list_bookings(room_id=room.id)) == 1
