"""Event directory: derives display lists from the working set of events."""

from dataclasses import replace
from typing import Optional

from models import CATEGORIES, Event, EventFilter, User

DEFAULT_FILTER = EventFilter()


def apply_filter(events: list[Event], filter: EventFilter) -> list[Event]:
    """Return the events matching ``filter``, ordered by its date mode.

    Never mutates ``events``. Unknown category or date values impose no
    constraint.
    """
    filtered = list(events)

    if filter.search:
        needle = filter.search.lower()
        filtered = [
            e for e in filtered
            if needle in e.title.lower()
            or needle in e.description.lower()
            or needle in e.location.lower()
        ]

    if filter.category in CATEGORIES:
        filtered = [e for e in filtered if e.category == filter.category]

    # sorted() is stable, so equal dates keep their input order
    if filter.date == "soonest":
        filtered = sorted(filtered, key=lambda e: e.date)
    elif filter.date == "farthest":
        filtered = sorted(filtered, key=lambda e: e.date, reverse=True)

    return filtered


def user_events(events: list[Event], user: Optional[User]) -> list[Event]:
    """Events an attendee is attending, or events an organizer owns."""
    if user is None:
        return []
    if user.is_attendee:
        return [e for e in events if user.id in e.attendees]
    if user.is_organizer:
        return [e for e in events if e.organizer_id == user.id]
    return []


def discoverable_events(events: list[Event], user: Optional[User]) -> list[Event]:
    """Events worth suggesting: attendees don't see what they already booked."""
    if user is not None and user.is_attendee:
        return [e for e in events if user.id not in e.attendees]
    return list(events)


def available_seats(events: list[Event]) -> int:
    return sum(max(e.spots_left, 0) for e in events)


class EventDirectory:
    """Holds the current filter over a live source of events.

    ``source`` is anything with an ``events`` attribute, usually the
    BookingLedger whose cache is the working set.
    """

    def __init__(self, source, filter: Optional[EventFilter] = None):
        self.source = source
        self.filter = filter or DEFAULT_FILTER

    def set_filter(self, **changes) -> EventFilter:
        """Merge a partial filter into the current one."""
        self.filter = replace(self.filter, **changes)
        return self.filter

    def reset_filter(self) -> EventFilter:
        self.filter = DEFAULT_FILTER
        return self.filter

    @property
    def filtered_events(self) -> list[Event]:
        return apply_filter(self.source.events, self.filter)

    def user_events(self, user: Optional[User]) -> list[Event]:
        return user_events(self.source.events, user)
