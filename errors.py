"""Errors raised by the booking core and the identity provider.

Each error carries the message shown to the user and the HTTP status the API
layer answers with.
"""


class EventHubError(Exception):
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(EventHubError):
    status_code = 401
    default_message = "You must be logged in"


class Unauthorized(EventHubError):
    status_code = 403
    default_message = "You don't have permission to perform this action"


class NotFound(EventHubError):
    status_code = 404
    default_message = "Event not found"


class CapacityExceeded(EventHubError):
    status_code = 409
    default_message = "Event is at full capacity"


class AlreadyBooked(EventHubError):
    status_code = 409
    default_message = "You are already attending this event"


class NotBooked(EventHubError):
    status_code = 409
    default_message = "You are not attending this event"


class InvalidCredentials(EventHubError):
    status_code = 401
    default_message = "Invalid email or password"


class RoleMismatch(EventHubError):
    status_code = 403
    default_message = "Invalid role"

    def __init__(self, role: str):
        super().__init__(f"Invalid role. You are not registered as a {role}.")
        self.role = role


class EmailInUse(EventHubError):
    status_code = 400
    default_message = "Email already in use"


class StoreError(EventHubError):
    """The record store rejected the call or could not be reached."""

    status_code = 502
    default_message = "Store request failed"
