"""Shared fixtures and factories.

Each test gets its own app wired to a throwaway SQLite file, so the response
cache and the store start empty every time. Requests authenticate through the
trusted identity headers; ``auth_headers`` builds them for a user.
"""

import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from featureboard.app.config import Settings
from featureboard.app.main import create_app
from featureboard.app.models.board import Board
from featureboard.app.models.comment import Comment
from featureboard.app.models.feature_request import FeatureRequest, RequestStatus
from featureboard.app.models.upvote import Upvote
from featureboard.app.models.user import User


@pytest.fixture
async def app(tmp_path: Path) -> AsyncGenerator[FastAPI, None]:
    config = Settings(
        data_dir=tmp_path,
        database_url_override=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        cors_origins=["http://test"],
    )
    application = create_app(config)
    await application.state.database.create_all()
    yield application
    await application.state.database.dispose()


@pytest.fixture
async def db(app: FastAPI) -> AsyncGenerator[AsyncSession, None]:
    async with app.state.database.session() as session:
        yield session


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> str:
    return datetime.now(UTC).isoformat()


def auth_headers(user: User | None = None, **overrides: str) -> dict[str, str]:
    """Identity headers as the upstream proxy would set them."""
    headers = {}
    if user is not None:
        headers = {"X-Auth-User-Id": user.id, "X-Auth-User-Email": user.email}
        if user.name:
            headers["X-Auth-User-Name"] = user.name
    headers.update(overrides)
    return headers


async def reload(db: AsyncSession, model: type, *key):
    """Re-read a row as committed by the app's own sessions."""
    # End our read transaction so the next query sees other connections' commits;
    # nothing is pending here and commit leaves loaded objects unexpired
    await db.commit()
    return await db.get(model, key[0] if len(key) == 1 else key, populate_existing=True)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


async def create_user(
    db: AsyncSession,
    name: str | None = "Ada",
    email: str | None = None,
    user_id: str | None = None,
    username: str | None = None,
) -> User:
    user_id = user_id or f"user-{uuid.uuid4().hex[:8]}"
    user = User(
        id=user_id,
        email=email or f"{user_id}@example.com",
        name=name,
        username=username,
        created_at=_now(),
        updated_at=_now(),
    )
    db.add(user)
    await db.flush()
    return user


async def create_board(
    db: AsyncSession,
    creator: User,
    slug: str | None = None,
    title: str = "Roadmap",
    is_public: bool = True,
) -> Board:
    board = Board(
        id=str(uuid.uuid4()),
        slug=slug or f"board-{uuid.uuid4().hex[:8]}",
        title=title,
        description=None,
        theme_config=None,
        is_public=is_public,
        creator_id=creator.id,
        created_at=_now(),
        updated_at=_now(),
    )
    db.add(board)
    await db.flush()
    return board


async def create_feature_request(
    db: AsyncSession,
    board: Board,
    submitter: User | None = None,
    title: str = "Dark mode",
    status: RequestStatus = RequestStatus.NEW,
    upvote_count: int = 0,
    created_at: str | None = None,
) -> FeatureRequest:
    fr = FeatureRequest(
        id=str(uuid.uuid4()),
        board_id=board.id,
        title=title,
        description=None,
        status=status.value,
        submitter_id=submitter.id if submitter else None,
        submitter_name=submitter.name if submitter else "Anonymous",
        submitter_email=submitter.email if submitter else "anon@example.com",
        upvote_count=upvote_count,
        comment_count=0,
        is_edited=False,
        created_at=created_at or _now(),
        updated_at=created_at or _now(),
    )
    db.add(fr)
    await db.flush()
    return fr


async def create_comment(
    db: AsyncSession,
    feature_request: FeatureRequest,
    author: User | None = None,
    content: str = "Yes please",
    parent: Comment | None = None,
) -> Comment:
    """Insert a comment and keep the request's comment_count in step."""
    comment = Comment(
        id=str(uuid.uuid4()),
        feature_request_id=feature_request.id,
        parent_comment_id=parent.id if parent else None,
        author_id=author.id if author else None,
        author_name=author.name if author else "Anonymous",
        author_email=author.email if author else "anon@example.com",
        content=content,
        is_edited=False,
        created_at=_now(),
        updated_at=_now(),
    )
    db.add(comment)
    feature_request.comment_count += 1
    await db.flush()
    return comment


async def create_upvote(db: AsyncSession, feature_request: FeatureRequest, user: User) -> Upvote:
    upvote = Upvote(feature_request_id=feature_request.id, user_id=user.id, created_at=_now())
    db.add(upvote)
    feature_request.upvote_count += 1
    await db.flush()
    return upvote
