"""
Auth utilities for the gather API.

Password hashing, bearer token issuance and verification, and the two
request-edge resolvers: the acting user and the caller's location hint.
Core operations never read these from request state; the API layer resolves
them once and passes them down explicitly.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from gather.core.config import Settings
from gather.core.errors import AuthenticationError, ValidationError
from gather.features.users.persistence import UserPersistence
from gather.models.location import Coordinate
from gather.models.user import User

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    return check_password_hash(password_hash, password)


def create_token(user_id: str, settings: Settings, now: Optional[datetime] = None) -> str:
    """
    Issue a signed bearer token for user_id.

    The token carries `sub` and `iat`; `exp` only when TOKEN_TTL_HOURS > 0.
    """
    now = now or datetime.now(timezone.utc)
    payload = {"sub": user_id, "iat": int(now.timestamp())}
    if settings.TOKEN_TTL_HOURS > 0:
        payload["exp"] = int((now + timedelta(hours=settings.TOKEN_TTL_HOURS)).timestamp())
    return jwt.encode(payload, settings.TOKEN_SECRET, algorithm=settings.TOKEN_ALGORITHM)


def decode_token(token: str, settings: Settings) -> str:
    """
    Verify a bearer token and return its subject.

    Raises:
        AuthenticationError: bad signature, expired, or no `sub` claim
    """
    try:
        payload = jwt.decode(
            token,
            settings.TOKEN_SECRET,
            algorithms=[settings.TOKEN_ALGORITHM],
            options={"verify_signature": True, "verify_exp": True},
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Expired token")
        raise AuthenticationError("Invalid token")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        raise AuthenticationError("Invalid token")

    user_id = payload.get("sub")
    if not user_id or not isinstance(user_id, str):
        raise AuthenticationError("Invalid token")
    return user_id


def resolve_actor(
    authorization: Optional[str],
    users: UserPersistence,
    settings: Settings,
) -> Optional[User]:
    """
    Resolve the acting user from an Authorization header value.

    Returns:
        None when no header was sent (anonymous), else the stored User

    Raises:
        AuthenticationError: malformed header, invalid token, or unknown user
    """
    if authorization is None:
        return None
    if not authorization.startswith(BEARER_PREFIX):
        raise AuthenticationError("Invalid token")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise AuthenticationError("Invalid token")

    user_id = decode_token(token, settings)
    user = users.get(user_id)
    if user is None:
        raise AuthenticationError("User not found")
    return user


def parse_location(value: Optional[str]) -> Optional[Coordinate]:
    """
    Parse a "lat,lng" location hint.

    Raises:
        ValidationError: not two numbers, or out of range
    """
    if value is None or not value.strip():
        return None
    parts = value.split(",")
    if len(parts) != 2:
        raise ValidationError("Location must be 'latitude,longitude'")
    try:
        latitude, longitude = float(parts[0]), float(parts[1])
    except ValueError:
        raise ValidationError("Location must be 'latitude,longitude'")
    if not (-90.0 <= latitude <= 90.0) or not (-180.0 <= longitude <= 180.0):
        raise ValidationError("Location out of range")
    return Coordinate(latitude=latitude, longitude=longitude)
