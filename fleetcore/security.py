"""
Credentials for identities.

bcrypt password hashes for the "email" provider and short-lived JWTs:

- access:  sub (identity id), email, type, iat, exp, jti
- refresh: sub, type, iat, exp, jti

The email claim lets the middleware recognise the platform admin without
a database round trip.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

import bcrypt
from jose import jwt

from fleetcore.config.settings import get_settings
from fleetcore.exceptions import ValidationError

ACCESS = "access"
REFRESH = "refresh"

# bcrypt ignores (bcrypt>=5 rejects) anything past 72 bytes
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        raise ValidationError(
            f"Password must be at most {BCRYPT_MAX_BYTES} bytes",
            context={"field": "password"},
        )
    return encoded


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Raises:
        ValidationError: If the password is longer than bcrypt accepts
    """
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    """False on mismatch, on a malformed stored hash and on over-long input."""
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed_password.encode("utf-8"))
    except (ValueError, ValidationError):
        return False


def _issue(user_id: UUID, token_type: str, lifetime: timedelta, **claims: Any) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "type": token_type,
        "iat": now,
        "exp": now + lifetime,
        "jti": str(uuid.uuid4()),
        **claims,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user_id: UUID, email: str, expires_delta: Optional[timedelta] = None) -> str:
    """Access token for an identity; lifetime defaults to ACCESS_TOKEN_EXPIRE_MINUTES."""
    lifetime = expires_delta or timedelta(minutes=get_settings().ACCESS_TOKEN_EXPIRE_MINUTES)
    return _issue(user_id, ACCESS, lifetime, email=email)


def create_refresh_token(user_id: UUID, expires_delta: Optional[timedelta] = None) -> str:
    """Refresh token, only good for POST /auth/refresh."""
    lifetime = expires_delta or timedelta(days=get_settings().REFRESH_TOKEN_EXPIRE_DAYS)
    return _issue(user_id, REFRESH, lifetime)


def verify_token(token: str, token_type: str = ACCESS) -> dict:
    """
    Decode a token and check its type.

    Raises:
        JWTError: If the signature is invalid or the token expired
        ValueError: If the token is of another type
    """
    settings = get_settings()
    payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])

    if payload.get("type") != token_type:
        raise ValueError(f"Invalid token type. Expected {token_type}, got {payload.get('type')}")

    return payload


def token_subject(token: str, token_type: str = ACCESS) -> UUID:
    """
    Identity id a valid token was issued to.

    Raises:
        JWTError: If the token does not verify
        ValueError: If the type is wrong or the subject is missing or not a UUID
    """
    subject = verify_token(token, token_type).get("sub")
    if not subject:
        raise ValueError("Token has no subject")
    return UUID(subject)
