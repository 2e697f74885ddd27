"""
Acting identity passed through every mutation.

Hooks never infer privileges from the connection; they read the actor that
the entry point stored on the session.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from fleetcore.config.settings import get_settings

ACTOR_KEY = "actor"


@dataclass(frozen=True)
class ActorContext:
    """
    Who is performing a mutation.

    Attributes:
        user_id: End user performing the request, None for system-initiated work
        is_platform_admin: True only for the distinguished platform-admin actor
    """

    user_id: Optional[UUID] = None
    is_platform_admin: bool = False

    @property
    def is_system(self) -> bool:
        return self.user_id is None

    @classmethod
    def for_user(cls, user_id: UUID, email: Optional[str] = None) -> "ActorContext":
        """Actor for an authenticated end user."""
        settings = get_settings()
        is_platform_admin = bool(email) and email.lower() == settings.platform_admin_email.lower()
        return cls(user_id=user_id, is_platform_admin=is_platform_admin)

    @classmethod
    def platform_admin(cls) -> "ActorContext":
        """The system actor: no end user, platform-admin rights."""
        return cls(user_id=None, is_platform_admin=True)

    def audit_identity(self) -> UUID:
        """Identity recorded as performed_by in audit rows."""
        return self.user_id or get_settings().platform_admin_id


SYSTEM_ACTOR = ActorContext.platform_admin()


def set_actor(session: AsyncSession, actor: ActorContext) -> None:
    session.info[ACTOR_KEY] = actor


def current_actor(session: AsyncSession) -> ActorContext:
    """Actor stored on the session; an unprivileged system actor when none was set."""
    return session.info.get(ACTOR_KEY) or ActorContext()
