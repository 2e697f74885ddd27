"""
Authentication API routes.

Provides endpoints for:
- Registration (identity + user provisioning)
- Login (JWT generation)
- Token refresh
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from jose import JWTError
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.config.settings import get_settings
from fleetcore.database import AsyncSessionLocal, get_db
from fleetcore.models import Identity
from fleetcore.security import (
    REFRESH,
    create_access_token,
    create_refresh_token,
    hash_password,
    token_subject,
    verify_password,
)
from fleetcore.services.provisioning import ProvisioningLinker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/fleet/auth", tags=["authentication"])

PASSWORD_PROVIDER = "email"


# Pydantic schemas
class LoginRequest(BaseModel):
    """Schema for login request."""

    email: EmailStr
    password: str = Field(..., min_length=8)


class TokenResponse(BaseModel):
    """Schema for token response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class RefreshTokenRequest(BaseModel):
    """Schema for refresh token request."""

    refresh_token: str


class RegisterRequest(BaseModel):
    """Schema for registration request."""

    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)


class RegisterResponse(BaseModel):
    """Schema for registration response."""

    id: UUID
    email: str
    provisioned: bool
    company_id: Optional[UUID] = None
    role: Optional[str] = None
    message: str = "User registered successfully"


def get_provisioning_linker() -> ProvisioningLinker:
    """Dependency returning the linker used after registration."""
    return ProvisioningLinker(AsyncSessionLocal)


def _token_response(identity: Identity) -> TokenResponse:
    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(user_id=identity.id, email=identity.email),
        refresh_token=create_refresh_token(user_id=identity.id),
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    register_data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    linker: ProvisioningLinker = Depends(get_provisioning_linker),
):
    """
    Register a new identity and provision its user profile.

    The profile is linked to the company whose contact email shares the
    registrant's domain. A provisioning failure is logged and reported in
    the response; the identity itself stays registered.

    Raises:
        HTTPException: If the email is already registered
    """
    existing = await db.scalar(
        select(Identity.id).where(
            Identity.email == register_data.email,
            Identity.provider == PASSWORD_PROVIDER,
        )
    )
    if existing is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered"
        )

    metadata = {
        key: value
        for key, value in (("first_name", register_data.first_name), ("last_name", register_data.last_name))
        if value
    }
    identity = Identity(
        email=register_data.email,
        provider=PASSWORD_PROVIDER,
        hashed_password=hash_password(register_data.password),
        raw_metadata=metadata,
    )
    db.add(identity)
    await db.commit()
    identity_id, email = identity.id, identity.email

    result = await linker.link(identity_id)
    if not result.success:
        logger.error("Registered identity %s without a user profile: %s", identity_id, result.error)

    return RegisterResponse(
        id=identity_id,
        email=email,
        provisioned=result.success,
        company_id=result.company_id,
        role=result.role,
    )


@router.post("/login", response_model=TokenResponse)
async def login(login_data: LoginRequest, db: AsyncSession = Depends(get_db)):
    """
    Authenticate an identity and return JWT tokens.

    Raises:
        HTTPException: If credentials are invalid
    """
    identity = (
        await db.execute(
            select(Identity).where(
                Identity.email == login_data.email,
                Identity.provider == PASSWORD_PROVIDER,
            )
        )
    ).scalar_one_or_none()

    if not identity or not identity.hashed_password:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not verify_password(login_data.password, identity.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return _token_response(identity)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(refresh_data: RefreshTokenRequest, db: AsyncSession = Depends(get_db)):
    """
    Exchange a refresh token for a new token pair.

    Raises:
        HTTPException: If the refresh token is invalid
    """
    try:
        identity_id = token_subject(refresh_data.refresh_token, token_type=REFRESH)
    except (JWTError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    identity = await db.get(Identity, identity_id)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return _token_response(identity)
