from datetime import date

import pytest

from errors import (
    AlreadyBooked,
    CapacityExceeded,
    NotBooked,
    NotFound,
    StoreError,
    Unauthenticated,
    Unauthorized,
)
from ledger import BookingLedger
from models import User


def test_create_event_sets_owner_and_caches(ledger, organizer, event_data):
    event = ledger.create_event(event_data, organizer)
    assert event.organizer_id == organizer.id
    assert event.organizer_name == organizer.name
    assert event.attendees == []
    assert event.date == date(2025, 5, 1)
    assert ledger.get_event(event.id) == event
    assert ledger.db.get_event(event.id)["title"] == "Jazz Night"


def test_only_organizers_create_events(ledger, attendee, event_data):
    with pytest.raises(Unauthorized):
        ledger.create_event(event_data, attendee)
    with pytest.raises(Unauthorized):
        ledger.create_event(event_data, None)
    assert ledger.events == []


def test_update_event_merges_patch(ledger, organizer, event_data):
    event = ledger.create_event(event_data, organizer)
    updated = ledger.update_event(event.id, {"title": "Late Jazz", "date": "2025-06-02", "organizer_id": "x"}, organizer)
    assert updated.title == "Late Jazz"
    assert updated.date == date(2025, 6, 2)
    assert updated.organizer_id == organizer.id
    assert updated.location == event.location
    assert ledger.get_event(event.id) == updated


def test_update_unknown_event_is_not_found(ledger, organizer):
    with pytest.raises(NotFound):
        ledger.update_event("missing", {"title": "x"}, organizer)


def test_update_by_non_owner_attendee_is_unauthorized(ledger, organizer, attendee, event_data):
    event = ledger.create_event(event_data, organizer)
    with pytest.raises(Unauthorized):
        ledger.update_event(event.id, {"title": "Hijacked"}, attendee)
    assert ledger.get_event(event.id) == event


def test_any_organizer_may_update_and_delete(ledger, organizer, other_organizer, event_data):
    event = ledger.create_event(event_data, organizer)
    updated = ledger.update_event(event.id, {"capacity": 5}, other_organizer)
    assert updated.capacity == 5
    ledger.delete_event(event.id, other_organizer)
    assert ledger.get_event(event.id) is None
    assert ledger.db.get_event(event.id) is None


def test_delete_requires_permission(ledger, organizer, attendee, event_data):
    event = ledger.create_event(event_data, organizer)
    with pytest.raises(Unauthorized):
        ledger.delete_event(event.id, attendee)
    with pytest.raises(NotFound):
        ledger.delete_event("missing", organizer)
    assert ledger.get_event(event.id) is not None


def test_capacity_one_scenario(ledger, organizer, attendee, second_attendee, event_data):
    event = ledger.create_event({**event_data, "capacity": 1}, organizer)
    booked = ledger.book_event(event.id, attendee)
    assert booked.attendees == [attendee.id]
    with pytest.raises(CapacityExceeded):
        ledger.book_event(event.id, second_attendee)
    assert ledger.get_event(event.id).attendees == [attendee.id]


def test_double_booking_fails(ledger, organizer, attendee, event_data):
    event = ledger.create_event(event_data, organizer)
    ledger.book_event(event.id, attendee)
    with pytest.raises(AlreadyBooked):
        ledger.book_event(event.id, attendee)
    assert ledger.get_event(event.id).attendees == [attendee.id]


def test_capacity_is_checked_before_membership(ledger, organizer, attendee, event_data):
    event = ledger.create_event({**event_data, "capacity": 1}, organizer)
    ledger.book_event(event.id, attendee)
    with pytest.raises(CapacityExceeded):
        ledger.book_event(event.id, attendee)


def test_only_attendees_book(ledger, organizer, event_data):
    event = ledger.create_event(event_data, organizer)
    with pytest.raises(Unauthorized):
        ledger.book_event(event.id, organizer)
    with pytest.raises(Unauthorized):
        ledger.book_event(event.id, None)
    with pytest.raises(NotFound):
        ledger.book_event("missing", User(id="u", name="U", email="u@example.com", role="attendee"))


def test_cancel_then_book_restores_membership(ledger, organizer, attendee, second_attendee, event_data):
    event = ledger.create_event(event_data, organizer)
    ledger.book_event(event.id, attendee)
    before = ledger.book_event(event.id, second_attendee)
    cancelled = ledger.cancel_booking(event.id, attendee)
    assert cancelled.attendees == [second_attendee.id]
    rebooked = ledger.book_event(event.id, attendee)
    assert attendee.id in rebooked.attendees
    assert len(rebooked.attendees) == len(before.attendees)


def test_cancel_booking_errors(ledger, organizer, attendee, event_data):
    event = ledger.create_event(event_data, organizer)
    with pytest.raises(Unauthenticated):
        ledger.cancel_booking(event.id, None)
    with pytest.raises(NotFound):
        ledger.cancel_booking("missing", attendee)
    with pytest.raises(NotBooked):
        ledger.cancel_booking(event.id, attendee)


def test_cached_records_are_replaced_not_mutated(ledger, organizer, attendee, event_data):
    event = ledger.create_event(event_data, organizer)
    ledger.book_event(event.id, attendee)
    assert event.attendees == []


def test_store_failure_leaves_cache_unchanged(ledger, organizer, event_data):
    event = ledger.create_event(event_data, organizer)
    ghost = User(id="ghost", name="Ghost", email="ghost@example.com", role="attendee")
    with pytest.raises(StoreError):
        ledger.book_event(event.id, ghost)
    assert ledger.get_event(event.id).attendees == []


def test_store_enforces_capacity_for_stale_cache(db, organizer, attendee, second_attendee, event_data):
    first = BookingLedger(db)
    event = first.create_event({**event_data, "capacity": 1}, organizer)
    second = BookingLedger(db)
    first.book_event(event.id, attendee)
    with pytest.raises(StoreError):
        second.book_event(event.id, second_attendee)
    assert second.get_event(event.id).attendees == []


def test_refresh_loads_events_from_store(db, organizer, attendee, event_data):
    first = BookingLedger(db)
    event = first.create_event(event_data, organizer)
    first.book_event(event.id, attendee)
    second = BookingLedger(db)
    assert second.get_event(event.id).attendees == [attendee.id]


def test_attendee_roster(ledger, db, organizer, attendee, second_attendee, event_data):
    event = ledger.create_event(event_data, organizer)
    ledger.book_event(event.id, second_attendee)
    ledger.book_event(event.id, attendee)
    roster = ledger.attendee_roster(event.id, organizer)
    assert [u.email for u in roster] == ["vic@example.com", "attendee@example.com"]
    with pytest.raises(Unauthorized):
        ledger.attendee_roster(event.id, attendee)


def test_update_ignores_none_values(ledger, organizer, event_data):
    event = ledger.create_event(event_data, organizer)
    updated = ledger.update_event(event.id, {"title": None, "date": None, "capacity": None, "location": "Dock 4"}, organizer)
    assert updated.title == event.title
    assert updated.date == event.date
    assert updated.capacity == event.capacity
    assert updated.location == "Dock 4"


@pytest.mark.parametrize("missing", ["title", "date", "category", "capacity"])
def test_create_event_requires_core_fields(ledger, organizer, event_data, missing):
    data = {k: v for k, v in event_data.items() if k != missing}
    with pytest.raises(ValueError, match=missing):
        ledger.create_event(data, organizer)
    assert ledger.events == []


def test_create_event_fills_optional_fields(ledger, organizer):
    event = ledger.create_event({"title": "Code Dojo", "date": "2025-09-09", "category": "Tech", "capacity": 12}, organizer)
    assert event.description == ""
    assert event.price == 0.0
    assert event.location == ""
