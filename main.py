from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi import status
from pydantic import BaseModel
from typing import Optional, List, Literal
from dataclasses import asdict
from datetime import date as Date
from contextlib import asynccontextmanager
import logging

from auth import (
    create_access_token,
    decode_token,
    get_current_user,
    get_identity,
    get_optional_user,
    issue_tokens,
    oauth2_scheme,
    revoke_session,
)
from config import CORS_ORIGINS, LOG_LEVEL
from database import Database, get_db
from directory import apply_filter, available_seats, user_events
from errors import EventHubError, NotBooked, NotFound
from identity import IdentityProvider
from ledger import BookingLedger
from models import Event, EventFilter, User
from utils import days_remaining, generate_csv, generate_qr_code_url, ticket_payload

# Logging
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

ledger: Optional[BookingLedger] = None


def get_ledger() -> BookingLedger:
    """Return the process-wide ledger, loading its cache on first use."""
    global ledger
    if ledger is None:
        ledger = BookingLedger(get_db())
    return ledger


# FastAPI App
@asynccontextmanager
async def lifespan(app: FastAPI):
    get_ledger()
    yield
    logger.info("Closing database connection")
    get_db().close()

app = FastAPI(title="EventHub", lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EventHubError)
async def eventhub_error_handler(request: Request, exc: EventHubError):
    """Render core errors as {"detail": message} with their mapped status."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

# -------------------------------
# Schemas
# -------------------------------
Category = Literal["Music", "Travel", "Tech", "Workshops"]


class EventCreate(BaseModel):
    title: str
    description: str = ""
    date: Date
    time: str = ""
    location: str = ""
    price: float = 0.0
    category: Category
    image_url: str = ""
    capacity: int

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Jazz Night",
                "description": "Live jazz by the river",
                "date": "2025-05-01",
                "time": "19:30",
                "location": "Riverside Hall",
                "price": 25.0,
                "category": "Music",
                "image_url": "https://example.com/jazz.jpg",
                "capacity": 50
            }
        }


class EventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[Date] = None
    time: Optional[str] = None
    location: Optional[str] = None
    price: Optional[float] = None
    category: Optional[Category] = None
    image_url: Optional[str] = None
    capacity: Optional[int] = None


class UserRegister(BaseModel):
    name: str
    email: str
    password: str
    role: Literal["attendee", "organizer"] = "attendee"
    profile_image: Optional[str] = None
    gender: Optional[str] = None
    city: Optional[str] = None
    interests: List[str] = []
    age: Optional[int] = None
    budget: Optional[float] = None


class UserLogin(BaseModel):
    email: str
    password: str
    role: Optional[Literal["attendee", "organizer"]] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    profile_image: Optional[str] = None
    gender: Optional[str] = None
    city: Optional[str] = None
    interests: Optional[List[str]] = None
    age: Optional[int] = None
    budget: Optional[float] = None


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str


def check_event_values(capacity: Optional[int], price: Optional[float]):
    """Reject non-positive capacities and negative prices."""
    if capacity is not None and capacity <= 0:
        raise HTTPException(status_code=400, detail="Capacity must be positive")
    if price is not None and price < 0:
        raise HTTPException(status_code=400, detail="Price cannot be negative")


def serialize_event(event: Event) -> dict:
    data = asdict(event)
    data["date"] = event.date.isoformat()
    data["spots_left"] = event.spots_left
    return data


# -------------------------------
# Auth Routes
# -------------------------------
@app.post("/register", response_model=dict, status_code=status.HTTP_201_CREATED, summary="Register a new user")
def register(user: UserRegister, db: Database = Depends(get_db)):
    """Register a new user with a specified role and sign them in."""
    identity = IdentityProvider(db)
    created = identity.register(user.model_dump())
    return {"message": "User registered", "data": {"user": asdict(created), **issue_tokens(created.email)}}

@app.post("/login", response_model=TokenResponse, summary="Login and receive access/refresh tokens")
def login(user: UserLogin, db: Database = Depends(get_db)):
    """Authenticate user and return access and refresh tokens."""
    identity = IdentityProvider(db)
    signed_in = identity.login(user.email, user.password, expected_role=user.role)
    return issue_tokens(signed_in.email)

@app.post("/refresh", response_model=dict, summary="Refresh access token")
def refresh(token: str = Depends(oauth2_scheme)):
    """Exchange a refresh token for a new access token."""
    token_data = decode_token(token, expected_type="refresh")
    access_token = create_access_token(data={"sub": token_data.email, "sid": token_data.sid})
    logger.info(f"Token refreshed for {token_data.email}")
    return {"message": "Token refreshed", "data": {"access_token": access_token}}

@app.post("/logout", response_model=dict, summary="End the current session")
def logout(token: str = Depends(oauth2_scheme), identity: IdentityProvider = Depends(get_identity)):
    revoke_session(token)
    identity.logout()
    return {"message": "Logged out", "data": {}}

@app.get("/me", response_model=dict, summary="Current user profile")
def me(current_user: User = Depends(get_current_user)):
    return {"message": "User retrieved", "data": asdict(current_user)}

@app.patch("/me", response_model=dict, summary="Update the current user's profile")
def update_me(patch: ProfileUpdate, identity: IdentityProvider = Depends(get_identity)):
    """Update profile fields; role and email cannot be changed."""
    user = identity.update_profile(patch.model_dump(exclude_unset=True))
    return {"message": "Profile updated", "data": asdict(user)}

@app.get("/me/events", response_model=dict, summary="Events booked (attendee) or created (organizer)")
def my_events(current_user: User = Depends(get_current_user), ledger: BookingLedger = Depends(get_ledger)):
    events = user_events(ledger.events, current_user)
    data = {
        "events": [serialize_event(e) for e in events],
        "available_seats": available_seats(events),
    }
    return {"message": "Events retrieved", "data": data}

# -------------------------------
# Event Routes
# -------------------------------
@app.get("/", response_model=dict, summary="API root endpoint")
def root():
    """Welcome message for the EventHub API."""
    return {"message": "Welcome to EventHub API", "data": {}}

@app.get("/events", response_model=dict, summary="List and filter events")
def list_events(
    search: str = "",
    category: str = "All",
    date_order: str = Query("all", alias="date"),
    ledger: BookingLedger = Depends(get_ledger),
):
    """Retrieve events matching a search text and category, ordered by date."""
    event_filter = EventFilter(search=search, category=category, date=date_order)
    events = apply_filter(ledger.events, event_filter)
    return {"message": "Events retrieved", "data": [serialize_event(e) for e in events]}

@app.post("/events", response_model=dict, status_code=status.HTTP_201_CREATED, summary="Create a new event")
def create_event(event: EventCreate, current_user: User = Depends(get_current_user), ledger: BookingLedger = Depends(get_ledger)):
    """Create a new event (organizers only)."""
    check_event_values(event.capacity, event.price)
    created = ledger.create_event(event.model_dump(), current_user)
    return {"message": "Event created", "data": serialize_event(created)}

@app.get("/events/{event_id}", response_model=dict, summary="Get an event")
def get_event(event_id: str, current_user: Optional[User] = Depends(get_optional_user), ledger: BookingLedger = Depends(get_ledger)):
    event = ledger.get_event(event_id)
    if not event:
        raise NotFound()
    data = serialize_event(event)
    data["days_remaining"] = days_remaining(event.date)
    data["is_attending"] = bool(current_user and current_user.id in event.attendees)
    return {"message": "Event retrieved", "data": data}

@app.put("/events/{event_id}", response_model=dict, summary="Update an event")
def update_event(event_id: str, event: EventUpdate, current_user: User = Depends(get_current_user), ledger: BookingLedger = Depends(get_ledger)):
    """Update an existing event (its organizer, or any organizer)."""
    check_event_values(event.capacity, event.price)
    updated = ledger.update_event(event_id, event.model_dump(exclude_unset=True, exclude_none=True), current_user)
    return {"message": f"Event {event_id} updated", "data": serialize_event(updated)}

@app.delete("/events/{event_id}", response_model=dict, summary="Delete an event")
def delete_event(event_id: str, current_user: User = Depends(get_current_user), ledger: BookingLedger = Depends(get_ledger)):
    """Delete an event (its organizer, or any organizer)."""
    ledger.delete_event(event_id, current_user)
    return {"message": f"Event {event_id} deleted", "data": {}}

# -------------------------------
# Booking Routes
# -------------------------------
@app.post("/events/{event_id}/book", response_model=dict, summary="Book a spot at an event")
def book_event(event_id: str, current_user: User = Depends(get_current_user), ledger: BookingLedger = Depends(get_ledger)):
    """Reserve a spot for the current attendee."""
    event = ledger.book_event(event_id, current_user)
    return {"message": f"{current_user.name} registered for {event.title}", "data": serialize_event(event)}

@app.delete("/events/{event_id}/book", response_model=dict, summary="Cancel a booking")
def cancel_booking(event_id: str, current_user: User = Depends(get_current_user), ledger: BookingLedger = Depends(get_ledger)):
    event = ledger.cancel_booking(event_id, current_user)
    return {"message": f"Booking for {event.title} cancelled", "data": serialize_event(event)}

@app.get("/events/{event_id}/ticket", response_model=dict, summary="QR code ticket for a booked event")
def get_ticket(event_id: str, current_user: User = Depends(get_current_user), ledger: BookingLedger = Depends(get_ledger)):
    event = ledger.get_event(event_id)
    if not event:
        raise NotFound()
    if current_user.id not in event.attendees:
        raise NotBooked()
    qr_code_url = generate_qr_code_url(ticket_payload(event.id, current_user.id))
    return {"message": "Ticket retrieved", "data": {"event_id": event.id, "qr_code_url": qr_code_url}}

@app.get("/events/{event_id}/attendees", response_model=dict, summary="List attendees of an event")
def list_attendees(event_id: str, current_user: User = Depends(get_current_user), ledger: BookingLedger = Depends(get_ledger)):
    """Attendee roster (the event's organizer, or any organizer)."""
    roster = ledger.attendee_roster(event_id, current_user)
    return {"message": "Attendees retrieved", "data": [asdict(u) for u in roster]}

@app.get("/events/{event_id}/attendees/export", response_model=None, summary="Export attendees as CSV")
def export_attendees(event_id: str, current_user: User = Depends(get_current_user), ledger: BookingLedger = Depends(get_ledger)):
    """Export the list of attendees for an event as a CSV file."""
    roster = ledger.attendee_roster(event_id, current_user)
    csv_data = generate_csv(roster)
    logger.info(f"Attendees exported for event {event_id} by {current_user.id}")
    return StreamingResponse(csv_data, media_type="text/csv", headers={"Content-Disposition": "attachment; filename=attendees.csv"})
