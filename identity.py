"""Identity provider: sign-up, sign-in, session and profile management.

The provider owns one session (the current user). The HTTP layer builds one
per request from the bearer token; library callers keep one around.
"""

import logging
from typing import Optional

from passlib.hash import bcrypt

from database import Database
from errors import EmailInUse, InvalidCredentials, RoleMismatch, Unauthenticated
from models import ATTENDEE, ROLES, User
from utils import generate_id

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "profile_image", "gender", "city", "interests", "age", "budget")


class IdentityProvider:
    def __init__(self, db: Database, current_user: Optional[User] = None):
        self.db = db
        self._current = current_user

    def get_current_user(self) -> Optional[User]:
        """Return the signed-in user, or None."""
        return self._current

    def register(self, profile_data: dict) -> User:
        """Create an account, sign it in and return it.

        ``profile_data`` holds ``name``, ``email``, ``password``, ``role`` and any
        of the optional profile fields.
        """
        email = profile_data["email"]
        if self.db.get_user_by_email(email):
            raise EmailInUse()
        role = profile_data.get("role") or ATTENDEE
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        record = {k: profile_data.get(k) for k in PROFILE_FIELDS}
        record.update(
            id=generate_id(),
            email=email,
            password=bcrypt.hash(profile_data["password"]),
            role=role,
            verified=False,
        )
        user = User.from_record(self.db.add_user(record))
        self._current = user
        logger.info(f"User {user.email} registered with role {user.role}")
        return user

    def login(self, email: str, password: str, expected_role: Optional[str] = None) -> User:
        """Verify credentials and start a session.

        When ``expected_role`` is given and differs from the account's role the
        session is closed again and RoleMismatch is raised.
        """
        record = self.db.get_user_by_email(email)
        if not record or not bcrypt.verify(password, record["password"]):
            logger.warning(f"Failed login for {email}")
            raise InvalidCredentials()
        user = User.from_record(record)
        self._current = user
        if expected_role and user.role != expected_role:
            self.logout()
            raise RoleMismatch(expected_role)
        logger.info(f"User {email} logged in")
        return user

    def logout(self) -> None:
        if self._current:
            logger.info(f"User {self._current.email} logged out")
        self._current = None

    def update_profile(self, patch: dict) -> User:
        """Apply a profile patch to the signed-in user; identity fields are ignored."""
        if self._current is None:
            raise Unauthenticated("No user logged in")
        fields = {k: v for k, v in patch.items() if k in PROFILE_FIELDS and not (k == "name" and v is None)}
        user = User.from_record(self.db.update_user(self._current.id, fields))
        self._current = user
        logger.info(f"Profile updated for {user.email}")
        return user
