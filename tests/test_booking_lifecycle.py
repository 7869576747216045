"""
Тесты жизненного цикла бронирования: создание, машина состояний,
синхронизация флага номера, изменение и отмена.
"""

from datetime import date, timedelta
from uuid import uuid4

import pytest

from booking_engine.booking import (
    BookingApplicationService,
    TerminalStatusPolicy,
    UpdateBookingRequest,
    User,
)
from booking_engine.shared_kernel import (
    BookingStatus,
    BookingValidationException,
    ResourceNotFoundException,
    RoomStatus,
)
from conftest import JUNE_10, JUNE_15, JUNE_20, make_room


@pytest.fixture
def booking(booking_service, user, room):
    return booking_service.create_booking(
        user_id=user.id,
        room_id=room.id,
        check_in=JUNE_10,
        check_out=JUNE_15,
        number_of_guests=2,
    )


def room_status(catalog_service, room) -> RoomStatus:
    return catalog_service.get_room(room.id).availability_status


class TestCreateBooking:
    def test_new_booking_is_pending_and_room_flag_untouched(
        self, booking, booking_service, catalog_service, room
    ):
        assert booking.status == BookingStatus.PENDING
        assert booking_service.get_booking(booking.id).check_out == JUNE_15
        assert room_status(catalog_service, room) == RoomStatus.AVAILABLE

    @pytest.mark.parametrize("check_out", [JUNE_10, JUNE_10 - timedelta(days=1)])
    def test_date_order_checked_before_storage(self, check_out):
        def no_storage():
            raise AssertionError("Хранилище не должно использоваться")

        service = BookingApplicationService(no_storage)
        with pytest.raises(BookingValidationException) as exc_info:
            service.create_booking(uuid4(), uuid4(), JUNE_10, check_out, 1)
        assert exc_info.value.fields == ["check_in", "check_out"]

    def test_unknown_user(self, booking_service, room):
        with pytest.raises(ResourceNotFoundException) as exc_info:
            booking_service.create_booking(uuid4(), room.id, JUNE_10, JUNE_15, 1)
        assert exc_info.value.resource == "User"

    def test_unknown_room(self, booking_service, user):
        missing_room_id = uuid4()
        with pytest.raises(ResourceNotFoundException) as exc_info:
            booking_service.create_booking(user.id, missing_room_id, JUNE_10, JUNE_15, 1)
        assert exc_info.value.resource == "Room"
        assert exc_info.value.resource_id == missing_room_id

    @pytest.mark.parametrize("guests", [0, -1])
    def test_guest_count_checked_before_storage(self, guests):
        def no_storage():
            raise AssertionError("Хранилище не должно использоваться")

        service = BookingApplicationService(no_storage)
        with pytest.raises(BookingValidationException) as exc_info:
            service.create_booking(uuid4(), uuid4(), JUNE_10, JUNE_15, guests)
        assert exc_info.value.fields == ["number_of_guests"]

    def test_guests_over_capacity(self, booking_service, user, room):
        with pytest.raises(BookingValidationException) as exc_info:
            booking_service.create_booking(user.id, room.id, JUNE_10, JUNE_15, 3)
        assert exc_info.value.fields == ["number_of_guests"]

    def test_overlap_is_rejected(self, booking, booking_service, user, room):
        with pytest.raises(BookingValidationException) as exc_info:
            booking_service.create_booking(
                user.id, room.id, date(2030, 6, 14), JUNE_20, 1
            )
        assert exc_info.value.fields == ["check_in", "check_out"]

    def test_conflict_is_logged_with_blocking_ids(
        self, booking, booking_service, user, room, caplog
    ):
        with pytest.raises(BookingValidationException):
            booking_service.create_booking(user.id, room.id, JUNE_10, JUNE_15, 1)
        assert "Booking conflict detected" in caplog.text
        assert str(booking.id) in caplog.text

    def test_back_to_back_is_allowed(self, booking, booking_service, user, room):
        next_stay = booking_service.create_booking(user.id, room.id, JUNE_15, JUNE_20, 1)
        assert next_stay.check_in == booking.check_out

    def test_cancelled_booking_frees_dates(self, booking, booking_service, user, room):
        booking_service.cancel_booking(booking.id)
        rebooked = booking_service.create_booking(user.id, room.id, JUNE_10, JUNE_15, 1)
        assert rebooked.status == BookingStatus.PENDING


class TestStatusTransitions:
    def test_confirm_marks_room_occupied(
        self, booking, booking_service, catalog_service, room
    ):
        confirmed = booking_service.update_status(booking.id, BookingStatus.CONFIRMED)

        assert confirmed.status == BookingStatus.CONFIRMED
        assert booking_service.get_booking(booking.id).status == BookingStatus.CONFIRMED
        assert room_status(catalog_service, room) == RoomStatus.OCCUPIED

    @pytest.mark.parametrize("final", [BookingStatus.CANCELLED, BookingStatus.COMPLETED])
    def test_cancel_or_complete_frees_room(
        self, booking, booking_service, catalog_service, room, final
    ):
        booking_service.update_status(booking.id, BookingStatus.CONFIRMED)
        booking_service.update_status(booking.id, final)

        assert booking_service.get_booking(booking.id).status == final
        assert room_status(catalog_service, room) == RoomStatus.AVAILABLE

    def test_status_string_is_parsed(self, booking, booking_service):
        updated = booking_service.update_status(booking.id, "Confirmed")
        assert updated.status == BookingStatus.CONFIRMED

    def test_unknown_status_string(self, booking, booking_service):
        with pytest.raises(BookingValidationException) as exc_info:
            booking_service.update_status(booking.id, "archived")
        assert exc_info.value.fields == ["status"]
        assert booking_service.get_booking(booking.id).status == BookingStatus.PENDING

    def test_same_status_is_noop(self, booking, booking_service):
        unchanged = booking_service.update_status(booking.id, BookingStatus.PENDING)
        assert unchanged.updated_at == booking.updated_at

    def test_confirmed_cannot_go_back_to_pending(self, booking, booking_service):
        booking_service.update_status(booking.id, BookingStatus.CONFIRMED)
        with pytest.raises(BookingValidationException) as exc_info:
            booking_service.update_status(booking.id, BookingStatus.PENDING)
        assert exc_info.value.fields == ["status"]

    def test_terminal_status_ignored_by_default(
        self, booking, booking_service, catalog_service, room
    ):
        booking_service.cancel_booking(booking.id)
        result = booking_service.update_status(booking.id, BookingStatus.CONFIRMED)

        assert result.status == BookingStatus.CANCELLED
        assert room_status(catalog_service, room) == RoomStatus.AVAILABLE

    def test_terminal_status_rejected_by_policy(self, uow_factory, user, room):
        service = BookingApplicationService(
            uow_factory, terminal_status_policy=TerminalStatusPolicy.REJECT
        )
        booking = service.create_booking(user.id, room.id, JUNE_10, JUNE_15, 1)
        service.update_status(booking.id, BookingStatus.COMPLETED)

        with pytest.raises(BookingValidationException) as exc_info:
            service.update_status(booking.id, BookingStatus.CONFIRMED)
        assert exc_info.value.fields == ["status"]
        assert service.get_booking(booking.id).status == BookingStatus.COMPLETED

    def test_unknown_booking(self, booking_service):
        with pytest.raises(ResourceNotFoundException) as exc_info:
            booking_service.update_status(uuid4(), BookingStatus.CONFIRMED)
        assert exc_info.value.resource == "Booking"


class TestCancelBooking:
    def test_cancel_is_idempotent(self, booking, booking_service, catalog_service, room):
        booking_service.update_status(booking.id, BookingStatus.CONFIRMED)
        first = booking_service.cancel_booking(booking.id)
        second = booking_service.cancel_booking(booking.id)

        assert second.status == BookingStatus.CANCELLED
        assert second.updated_at == first.updated_at
        assert room_status(catalog_service, room) == RoomStatus.AVAILABLE

    def test_completed_booking_is_not_cancelled(self, booking, booking_service):
        booking_service.update_status(booking.id, BookingStatus.COMPLETED)
        result = booking_service.cancel_booking(booking.id)
        assert result.status == BookingStatus.COMPLETED


class TestUpdateBooking:
    def test_reschedule_to_free_dates(self, booking, booking_service):
        updated = booking_service.update_booking(
            booking.id, UpdateBookingRequest(check_in=JUNE_15, check_out=JUNE_20)
        )
        assert (updated.check_in, updated.check_out) == (JUNE_15, JUNE_20)

    def test_shift_within_own_range_is_allowed(self, booking, booking_service):
        updated = booking_service.update_booking(
            booking.id, UpdateBookingRequest(check_out=date(2030, 6, 16))
        )
        assert updated.check_out == date(2030, 6, 16)

    def test_reschedule_onto_other_booking(self, booking, booking_service, user, room):
        other = booking_service.create_booking(user.id, room.id, JUNE_15, JUNE_20, 1)
        with pytest.raises(BookingValidationException):
            booking_service.update_booking(
                other.id, UpdateBookingRequest(check_in=date(2030, 6, 12))
            )
        assert booking_service.get_booking(other.id).check_in == JUNE_15

    def test_merged_range_is_validated(self, booking, booking_service):
        with pytest.raises(BookingValidationException) as exc_info:
            booking_service.update_booking(
                booking.id, UpdateBookingRequest(check_out=date(2030, 6, 9))
            )
        assert exc_info.value.fields == ["check_in", "check_out"]

    def test_guests_over_capacity(self, booking, booking_service):
        with pytest.raises(BookingValidationException) as exc_info:
            booking_service.update_booking(
                booking.id, UpdateBookingRequest(number_of_guests=5)
            )
        assert exc_info.value.fields == ["number_of_guests"]

    def test_fields_and_status_together(
        self, booking, booking_service, catalog_service, room
    ):
        updated = booking_service.update_booking(
            booking.id,
            UpdateBookingRequest(special_requests="Поздний заезд", status="confirmed"),
        )

        stored = booking_service.get_booking(booking.id)
        assert updated.status == stored.status == BookingStatus.CONFIRMED
        assert stored.special_requests == "Поздний заезд"
        assert room_status(catalog_service, room) == RoomStatus.OCCUPIED

    def test_terminal_booking_rejected_by_policy(self, uow_factory, user, room):
        service = BookingApplicationService(
            uow_factory, terminal_status_policy=TerminalStatusPolicy.REJECT
        )
        booking = service.create_booking(user.id, room.id, JUNE_10, JUNE_15, 1)
        service.cancel_booking(booking.id)

        with pytest.raises(BookingValidationException):
            service.update_booking(
                booking.id, UpdateBookingRequest(special_requests="Без завтрака")
            )


class TestListBookings:
    def test_filters(self, booking, booking_service, user, room, add_rooms):
        other_room = make_room("102")
        add_rooms(other_room)
        elsewhere = booking_service.create_booking(
            user.id, other_room.id, JUNE_10, JUNE_15, 1
        )
        booking_service.update_status(elsewhere.id, BookingStatus.CONFIRMED)

        assert len(booking_service.list_bookings(user_id=user.id)) == 2
        assert [b.id for b in booking_service.list_bookings(room_id=room.id)] == [
            booking.id
        ]
        assert [b.id for b in booking_service.list_bookings(status="CONFIRMED")] == [
            elsewhere.id
        ]
        assert booking_service.list_bookings(user_id=uuid4()) == []


class TestReassignBooking:
    @pytest.fixture
    def family_room(self, add_rooms):
        family = make_room("301", max_guests=4)
        add_rooms(family)
        return family

    def test_move_to_free_room(self, booking, booking_service, family_room):
        moved = booking_service.update_booking(
            booking.id, UpdateBookingRequest(room_id=family_room.id, number_of_guests=4)
        )

        stored = booking_service.get_booking(booking.id)
        assert moved.room_id == stored.room_id == family_room.id
        assert stored.number_of_guests == 4

    def test_move_onto_booked_range(
        self, booking, booking_service, user, family_room
    ):
        booking_service.create_booking(
            user.id, family_room.id, date(2030, 6, 12), JUNE_20, 1
        )
        with pytest.raises(BookingValidationException) as exc_info:
            booking_service.update_booking(
                booking.id, UpdateBookingRequest(room_id=family_room.id)
            )
        assert exc_info.value.fields == ["check_in", "check_out"]
        assert booking_service.get_booking(booking.id).room_id != family_room.id

    def test_move_checks_new_room_capacity(self, booking, booking_service, add_rooms):
        single = make_room("302", max_guests=1)
        add_rooms(single)
        with pytest.raises(BookingValidationException) as exc_info:
            booking_service.update_booking(
                booking.id, UpdateBookingRequest(room_id=single.id)
            )
        assert exc_info.value.fields == ["number_of_guests"]

    def test_confirmed_booking_carries_occupancy(
        self, booking, booking_service, catalog_service, room, family_room
    ):
        booking_service.update_status(booking.id, BookingStatus.CONFIRMED)
        booking_service.update_booking(
            booking.id, UpdateBookingRequest(room_id=family_room.id)
        )

        assert room_status(catalog_service, room) == RoomStatus.AVAILABLE
        assert room_status(catalog_service, family_room) == RoomStatus.OCCUPIED

    def test_unknown_room(self, booking, booking_service):
        missing_room_id = uuid4()
        with pytest.raises(ResourceNotFoundException) as exc_info:
            booking_service.update_booking(
                booking.id, UpdateBookingRequest(room_id=missing_room_id)
            )
        assert exc_info.value.resource == "Room"
        assert exc_info.value.resource_id == missing_room_id

    def test_reassign_to_other_user(self, booking, booking_service, uow_factory):
        other = User(email="second.guest@example.com")
        with uow_factory() as uow:
            uow.users.add(other)

        booking_service.update_booking(booking.id, UpdateBookingRequest(user_id=other.id))

        assert booking_service.get_booking(booking.id).user_id == other.id
        assert booking_service.list_bookings(user_id=other.id)[0].id == booking.id

    def test_unknown_user(self, booking, booking_service):
        with pytest.raises(ResourceNotFoundException) as exc_info:
            booking_service.update_booking(
                booking.id, UpdateBookingRequest(user_id=uuid4())
            )
        assert exc_info.value.resource == "User"
