from datetime import date, datetime
from io import StringIO
from typing import Optional
from urllib.parse import urlencode
import csv
import uuid

from config import QR_CODE_ENDPOINT, QR_CODE_SIZE


def parse_date(value) -> date:
    """Parse a calendar date from a date, datetime or ISO string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        try:
            return datetime.fromisoformat(value).date()
        except (TypeError, ValueError):
            raise ValueError(f"Invalid date format: {value!r}")


def generate_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid.uuid4().hex


def days_remaining(event_date: date, today: Optional[date] = None) -> int:
    """Return the number of days until an event; negative once it has passed."""
    today = today or date.today()
    return (event_date - today).days


def generate_qr_code_url(content: str) -> str:
    """Build the URL of an externally rendered QR code for the given content."""
    return f"{QR_CODE_ENDPOINT}?{urlencode({'size': QR_CODE_SIZE, 'data': content})}"


def ticket_payload(event_id: str, user_id: str) -> str:
    return f"eventhub:ticket:{event_id}:{user_id}"


def generate_csv(attendees):
    """Generate a CSV string from a list of attendees."""
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["ID", "Name", "Email", "City"])
    for a in attendees:
        writer.writerow([a.id, a.name, a.email, a.city or ""])
    buffer.seek(0)
    return buffer
