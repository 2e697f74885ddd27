"""
Unit tests for password hashing, JWT tokens and actor resolution.
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from jose import JWTError, jwt

from fleetcore.config.settings import get_settings
from fleetcore.context import ActorContext
from fleetcore.exceptions import ValidationError
from fleetcore.security import (
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
    token_subject,
    verify_token,
)

pytestmark = pytest.mark.unit

settings = get_settings()


class TestPasswordHashing:
    """Test password hashing and verification."""

    def test_hash_is_salted(self):
        """Test that the same password hashes differently each time."""
        hashed = hash_password("brakepads42")

        assert hashed != "brakepads42"
        assert hashed != hash_password("brakepads42")

    def test_verify_password(self):
        hashed = hash_password("brakepads42")

        assert verify_password("brakepads42", hashed) is True
        assert verify_password("brakepads43", hashed) is False
        assert verify_password("", hashed) is False

    def test_verify_password_invalid_hash(self):
        """Test that a malformed stored hash is a mismatch, not an error."""
        assert verify_password("brakepads42", "not-a-bcrypt-hash") is False

    def test_overlong_password(self):
        """Test that passwords past the bcrypt limit are rejected, not truncated."""
        with pytest.raises(ValidationError):
            hash_password("x" * 73)

        assert verify_password("x" * 73, hash_password("x" * 72)) is False


class TestTokens:
    """Test access and refresh token round trips."""

    def test_access_token_claims(self):
        user_id = uuid4()

        token = create_access_token(user_id=user_id, email="tina@acme-fleet.com")
        payload = verify_token(token)

        assert payload["sub"] == str(user_id)
        assert payload["email"] == "tina@acme-fleet.com"
        assert payload["type"] == "access"
        assert "jti" in payload

    def test_access_token_custom_expiration(self):
        token = create_access_token(user_id=uuid4(), email="a@b.io", expires_delta=timedelta(minutes=60))

        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])

        assert payload["exp"] - payload["iat"] == 3600

    def test_refresh_token_has_no_email(self):
        user_id = uuid4()

        payload = verify_token(create_refresh_token(user_id=user_id), token_type="refresh")

        assert payload["sub"] == str(user_id)
        assert "email" not in payload

    def test_token_type_mismatch(self):
        """Test that a refresh token is not accepted as an access token and vice versa."""
        with pytest.raises(ValueError, match="Expected access"):
            verify_token(create_refresh_token(user_id=uuid4()))

        with pytest.raises(ValueError, match="Expected refresh"):
            verify_token(create_access_token(user_id=uuid4(), email="a@b.io"), token_type="refresh")

    def test_token_subject(self):
        user_id = uuid4()

        assert token_subject(create_access_token(user_id=user_id, email="a@b.io")) == user_id
        assert token_subject(create_refresh_token(user_id=user_id), token_type="refresh") == user_id

    def test_token_subject_requires_uuid_subject(self):
        token = jwt.encode({"sub": "not-a-uuid", "type": "access"}, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

        with pytest.raises(ValueError):
            token_subject(token)

    def test_refresh_lifetime_from_settings(self):
        payload = verify_token(create_refresh_token(user_id=uuid4()), token_type="refresh")

        assert payload["exp"] - payload["iat"] == settings.REFRESH_TOKEN_EXPIRE_DAYS * 86400

    def test_expired_token_rejected(self):
        token = create_access_token(user_id=uuid4(), email="a@b.io", expires_delta=timedelta(seconds=-1))

        with pytest.raises(JWTError):
            verify_token(token)

    def test_tampered_token_rejected(self):
        token = jwt.encode({"sub": str(uuid4()), "type": "access"}, "wrong-secret", algorithm=settings.JWT_ALGORITHM)

        with pytest.raises(JWTError):
            verify_token(token)


class TestActorContext:
    """Actor resolution from the authenticated identity."""

    def test_regular_user(self):
        actor = ActorContext.for_user(uuid4(), "tina@acme-fleet.com")

        assert actor.is_platform_admin is False
        assert actor.is_system is False

    def test_platform_admin_email_is_case_insensitive(self):
        actor = ActorContext.for_user(uuid4(), settings.platform_admin_email.upper())

        assert actor.is_platform_admin is True

    def test_system_actor_audits_as_platform_admin(self):
        actor = ActorContext.platform_admin()

        assert actor.is_system
        assert actor.audit_identity() == settings.platform_admin_id
