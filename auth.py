from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel
from datetime import datetime, timedelta, UTC
from typing import Optional
import threading
import uuid

from config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, REFRESH_TOKEN_EXPIRE_DAYS
from database import Database, get_db
from identity import IdentityProvider
from models import User

# OAuth2 scheme
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/login", auto_error=False)

# Session ids ended by /logout, mapped to the time the last token of the session expires
revoked_sessions: dict[str, datetime] = {}
_revoked_lock = threading.Lock()


class TokenData(BaseModel):
    email: str
    sid: Optional[str] = None
    type: str = "access"


def new_session_id() -> str:
    return uuid.uuid4().hex


def _create_token(data: dict, expires_delta: timedelta, token_type: str) -> str:
    to_encode = data.copy()
    expire = datetime.now(UTC) + expires_delta
    to_encode.update({"exp": expire, "type": token_type})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def create_access_token(data: dict):
    """Create a JWT access token."""
    return _create_token(data, timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES), "access")


def create_refresh_token(data: dict):
    """Create a JWT refresh token."""
    return _create_token(data, timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS), "refresh")


def issue_tokens(email: str) -> dict:
    """Start a session: an access and a refresh token sharing one session id."""
    data = {"sub": email, "sid": new_session_id()}
    return {
        "access_token": create_access_token(data=data),
        "refresh_token": create_refresh_token(data=data),
    }


def _prune_revoked_sessions(now: datetime) -> None:
    for sid in [s for s, expires in revoked_sessions.items() if expires <= now]:
        del revoked_sessions[sid]


def is_session_revoked(sid: Optional[str]) -> bool:
    with _revoked_lock:
        _prune_revoked_sessions(datetime.now(UTC))
        return sid in revoked_sessions


def decode_token(token: str, expected_type: str = "access") -> TokenData:
    """Decode a token, rejecting expired, revoked or wrongly typed ones."""
    credentials_exception = HTTPException(
        status_code=401,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_exception
    email = payload.get("sub")
    if email is None:
        raise credentials_exception
    token_data = TokenData(email=email, sid=payload.get("sid"), type=payload.get("type", "access"))
    if token_data.type != expected_type or is_session_revoked(token_data.sid):
        raise credentials_exception
    return token_data


def revoke_session(token: str) -> None:
    """End the session of an access token; its refresh token stops working too."""
    token_data = decode_token(token)
    # no token of the session outlives a refresh token issued now
    expires = datetime.now(UTC) + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    with _revoked_lock:
        revoked_sessions[token_data.sid] = expires


async def get_current_user(token: str = Depends(oauth2_scheme), db: Database = Depends(get_db)) -> User:
    """Retrieve the current authenticated user from a JWT token."""
    token_data = decode_token(token)
    record = db.get_user_by_email(token_data.email)
    if record is None:
        raise HTTPException(status_code=401, detail="User not found")
    return User.from_record(record)


async def get_optional_user(token: Optional[str] = Depends(optional_oauth2_scheme), db: Database = Depends(get_db)) -> Optional[User]:
    """Like get_current_user, but anonymous requests resolve to None."""
    if not token:
        return None
    return await get_current_user(token, db)


async def get_identity(user: User = Depends(get_current_user), db: Database = Depends(get_db)) -> IdentityProvider:
    """Identity provider whose session is the requesting user."""
    return IdentityProvider(db, current_user=user)
