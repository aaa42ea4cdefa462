from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Optional

ATTENDEE = "attendee"
ORGANIZER = "organizer"
ROLES = (ATTENDEE, ORGANIZER)

CATEGORIES = ("Music", "Travel", "Tech", "Workshops")
ALL_CATEGORIES = "All"  # filter-only, never stored on an event


@dataclass
class User:
    id: str
    name: str
    email: str
    role: str  # 'attendee' or 'organizer'
    profile_image: Optional[str] = None
    gender: Optional[str] = None
    city: Optional[str] = None
    interests: list[str] = field(default_factory=list)
    age: Optional[int] = None
    budget: Optional[float] = None
    verified: bool = False

    @classmethod
    def from_record(cls, record: dict) -> "User":
        """Build a User from a store record, dropping the password hash."""
        fields = {k: v for k, v in record.items() if k != "password"}
        fields["interests"] = list(fields.get("interests") or [])
        fields["verified"] = bool(fields.get("verified"))
        return cls(**fields)

    @property
    def is_organizer(self) -> bool:
        return self.role == ORGANIZER

    @property
    def is_attendee(self) -> bool:
        return self.role == ATTENDEE


@dataclass
class Event:
    id: str
    title: str
    description: str
    date: date
    time: str
    location: str
    price: float
    category: str
    capacity: int
    organizer_id: str
    organizer_name: str
    image_url: str = ""
    attendees: list[str] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: dict) -> "Event":
        fields = dict(record)
        fields["date"] = date.fromisoformat(fields["date"]) if isinstance(fields["date"], str) else fields["date"]
        fields["attendees"] = list(fields.get("attendees") or [])
        return cls(**fields)

    def to_record(self) -> dict:
        """Flatten the event into the column layout used by the store."""
        record = asdict(self)
        record["date"] = self.date.isoformat()
        return record

    @property
    def spots_left(self) -> int:
        return self.capacity - len(self.attendees)

    @property
    def is_full(self) -> bool:
        return len(self.attendees) >= self.capacity


@dataclass(frozen=True)
class EventFilter:
    search: str = ""
    category: str = ALL_CATEGORIES
    date: str = "all"
