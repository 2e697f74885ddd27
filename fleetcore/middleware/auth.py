"""
JWT authentication middleware.

Provides FastAPI dependencies for:
- Bearer token validation
- The authenticated Identity
- The ActorContext handed to service mutations
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.context import ActorContext
from fleetcore.database import get_db
from fleetcore.models import Identity
from fleetcore.security import token_subject

# HTTP Bearer token scheme
security = HTTPBearer()


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Identity:
    """
    Validate the bearer token and return the identity it was issued to.

    Raises:
        HTTPException: If token is invalid or the identity no longer exists
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        identity_id = token_subject(credentials.credentials)
    except (JWTError, ValueError):
        raise credentials_exception

    identity = await db.get(Identity, identity_id)
    if identity is None:
        raise credentials_exception

    return identity


async def get_actor(identity: Identity = Depends(get_current_identity)) -> ActorContext:
    """Actor for service calls; the platform admin is recognised by email."""
    return ActorContext.for_user(identity.id, identity.email)
