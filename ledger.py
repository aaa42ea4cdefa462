from dataclasses import replace
from typing import Optional
import logging
import threading

from database import Database
from errors import (
    AlreadyBooked,
    CapacityExceeded,
    NotBooked,
    NotFound,
    Unauthenticated,
    Unauthorized,
)
from models import Event, User
from utils import generate_id, parse_date

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "title", "description", "date", "time", "location", "price",
    "category", "image_url", "capacity",
)
REQUIRED_FIELDS = ("title", "date", "category", "capacity")
OPTIONAL_DEFAULTS = {"description": "", "time": "", "location": "", "price": 0.0, "image_url": ""}


class BookingLedger:
    def __init__(self, db: Database):
        """Initialize the ledger with a store and load its events into the local cache."""
        self.db = db
        self._lock = threading.RLock()
        self._events: list[Event] = []
        self.refresh()

    def refresh(self) -> None:
        """Reload the local cache from the store."""
        events = [Event.from_record(e) for e in self.db.list_events()]
        with self._lock:
            self._events = events
        logger.info(f"Loaded {len(events)} events from the store")

    @property
    def events(self) -> list[Event]:
        """Snapshot of the cached events."""
        return list(self._events)

    def get_event(self, event_id: str) -> Optional[Event]:
        """Retrieve a cached event by ID."""
        return next((e for e in self._events if e.id == event_id), None)

    def _require_event(self, event_id: str) -> Event:
        event = self.get_event(event_id)
        if event is None:
            raise NotFound()
        return event

    def _replace(self, event: Event) -> None:
        self._events = [event if e.id == event.id else e for e in self._events]

    def _check_manage_permission(self, event: Event, acting_user: Optional[User], action: str) -> None:
        # Owners and any organizer may manage an event
        if acting_user is None or (acting_user.id != event.organizer_id and not acting_user.is_organizer):
            logger.warning(f"Denied {action} of event {event.id} for {acting_user.id if acting_user else 'anonymous'}")
            raise Unauthorized(f"You don't have permission to {action} this event")

    def create_event(self, data: dict, acting_user: Optional[User]) -> Event:
        """Create a new event owned by the acting organizer."""
        if acting_user is None or not acting_user.is_organizer:
            raise Unauthorized("Only organizers can create events")
        missing = [k for k in REQUIRED_FIELDS if data.get(k) is None]
        if missing:
            raise ValueError(f"Missing required event fields: {', '.join(missing)}")
        fields = {**OPTIONAL_DEFAULTS, **{k: data[k] for k in EDITABLE_FIELDS if data.get(k) is not None}}
        fields["date"] = parse_date(fields["date"])
        event = Event(
            id=generate_id(),
            organizer_id=acting_user.id,
            organizer_name=acting_user.name,
            attendees=[],
            **fields,
        )
        with self._lock:
            created = Event.from_record(self.db.add_event(event.to_record()))
            self._events = [*self._events, created]
        logger.info(f"Event {created.id} created by {acting_user.id}")
        return created

    def update_event(self, event_id: str, patch: dict, acting_user: Optional[User]) -> Event:
        """Merge a patch onto an event; ownership and attendance fields are not patchable."""
        with self._lock:
            event = self._require_event(event_id)
            self._check_manage_permission(event, acting_user, "update")
            # every event column is NOT NULL, so a None in a patch means "leave as is"
            changes = {k: v for k, v in patch.items() if k in EDITABLE_FIELDS and v is not None}
            if "date" in changes:
                changes["date"] = parse_date(changes["date"])
            merged = replace(event, **changes)
            updated = Event.from_record(self.db.update_event(event_id, merged.to_record()))
            self._replace(updated)
        logger.info(f"Event {event_id} updated by {acting_user.id}")
        return updated

    def delete_event(self, event_id: str, acting_user: Optional[User]) -> None:
        """Delete an event from the store and the cache."""
        with self._lock:
            event = self._require_event(event_id)
            self._check_manage_permission(event, acting_user, "delete")
            self.db.delete_event(event_id)
            self._events = [e for e in self._events if e.id != event_id]
        logger.info(f"Event {event_id} deleted by {acting_user.id}")

    def book_event(self, event_id: str, acting_user: Optional[User]) -> Event:
        """Reserve a spot for the acting attendee.

        Checks run in the order existence, capacity, membership; the store
        enforces capacity and uniqueness again when the row is inserted.
        """
        if acting_user is None or not acting_user.is_attendee:
            raise Unauthorized("Only attendees can book events")
        with self._lock:
            event = self._require_event(event_id)
            if event.is_full:
                logger.warning(f"Booking of full event {event_id} refused for {acting_user.id}")
                raise CapacityExceeded()
            if acting_user.id in event.attendees:
                raise AlreadyBooked()
            self.db.add_attendee(event_id, acting_user.id)
            updated = replace(event, attendees=[*event.attendees, acting_user.id])
            self._replace(updated)
        logger.info(f"Attendee {acting_user.id} booked event {event_id}")
        return updated

    def cancel_booking(self, event_id: str, acting_user: Optional[User]) -> Event:
        """Give up the acting user's spot at an event."""
        if acting_user is None:
            raise Unauthenticated()
        with self._lock:
            event = self._require_event(event_id)
            if acting_user.id not in event.attendees:
                raise NotBooked()
            self.db.remove_attendee(event_id, acting_user.id)
            updated = replace(event, attendees=[a for a in event.attendees if a != acting_user.id])
            self._replace(updated)
        logger.info(f"Attendee {acting_user.id} cancelled booking for event {event_id}")
        return updated

    def attendee_roster(self, event_id: str, acting_user: Optional[User]) -> list[User]:
        """Return the attendees of an event, in booking order."""
        event = self._require_event(event_id)
        self._check_manage_permission(event, acting_user, "view attendees of")
        return [User.from_record(u) for u in self.db.get_users(event.attendees)]
