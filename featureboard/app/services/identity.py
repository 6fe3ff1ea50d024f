"""Caller identity: session resolution and the self-healing user upsert.

Session issuance and verification belong to the external identity provider.
This module only reads the verified payload and makes sure a matching
``User`` row exists, since the store can be reset independently of sessions.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from featureboard.app.errors import IdentitySyncFailed
from featureboard.app.models.board import Board
from featureboard.app.models.user import User
from featureboard.app.services.invalidation import Mutation, MutationKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentitySession:
    id: str
    email: str
    name: str | None = None
    image: str | None = None


class IdentityProvider(Protocol):
    async def resolve(self, request: Request) -> IdentitySession | None:
        """Return the verified session for this request, or None when there is none."""
        ...


class TrustedHeaderIdentityProvider:
    """Reads identity headers injected by an authenticating reverse proxy.

    The proxy is responsible for stripping these headers from client traffic;
    whatever arrives here is trusted as-is.
    """

    def __init__(self, prefix: str = "X-Auth-User") -> None:
        self.prefix = prefix

    async def resolve(self, request: Request) -> IdentitySession | None:
        user_id = request.headers.get(f"{self.prefix}-Id")
        if not user_id:
            return None
        return IdentitySession(
            id=user_id,
            email=request.headers.get(f"{self.prefix}-Email", ""),
            name=request.headers.get(f"{self.prefix}-Name") or None,
            image=request.headers.get(f"{self.prefix}-Image") or None,
        )


async def upsert_identity(db: AsyncSession, session: IdentitySession) -> tuple[User, bool]:
    """Upsert the session's user; the flag is True when an existing row changed.

    Idempotent: repeated calls with the same payload leave the row untouched.
    Email is only written on insert; a changed provider email would collide
    with the unique constraint of whoever already owns it.
    """
    if not session.id or not session.email:
        raise IdentitySyncFailed("Invalid session data")

    user = await db.get(User, session.id)
    if user is None:
        now = datetime.now(UTC).isoformat()
        try:
            async with db.begin_nested():
                user = User(
                    id=session.id,
                    email=session.email,
                    name=session.name,
                    image=session.image,
                    created_at=now,
                    updated_at=now,
                )
                db.add(user)
            logger.info("[IDENTITY] Created user %s", session.id)
            return user, False
        except IntegrityError:
            # A concurrent request inserted the same id first
            user = await db.get(User, session.id, populate_existing=True)
            if user is None:
                raise
            logger.debug("[IDENTITY] Lost insert race for user %s", session.id)

    changed = False
    if session.name and user.name != session.name:
        user.name = session.name
        changed = True
    if session.image and user.image != session.image:
        user.image = session.image
        changed = True
    if changed:
        user.updated_at = datetime.now(UTC).isoformat()
        await db.flush()
        logger.debug("[IDENTITY] Refreshed profile for user %s", user.id)
    return user, changed


async def profile_mutation(db: AsyncSession, user: User) -> Mutation:
    """Describe a profile change, naming the boards whose views show this user."""
    result = await db.execute(select(Board.slug).where(Board.creator_id == user.id))
    return Mutation(
        MutationKind.PROFILE_UPDATED,
        user_id=user.id,
        owned_board_slugs=tuple(result.scalars().all()),
    )
