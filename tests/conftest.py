"""Pytest configuration and fixtures.

Every test gets a fresh in-memory store; the HTTP client fixture wires that
store (and a fresh deck session registry) into the FastAPI app.
"""

import os
import uuid

os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("SWIPE_SETTLE_MS", "0")
os.environ.setdefault("PASSWORD_SALT", "test-salt")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from knowme.models.group import Group  # noqa: E402
from knowme.models.profile import ProfileCard  # noqa: E402
from knowme.models.user import User, UserTier  # noqa: E402
from knowme.services.deck import DeckEngine, DeckSessionRegistry  # noqa: E402
from knowme.services.groups import GroupService  # noqa: E402
from knowme.services.store import ProfileStore, create_memory_store  # noqa: E402


@pytest.fixture
def store() -> ProfileStore:
    return create_memory_store()


@pytest.fixture
def engine(store: ProfileStore) -> DeckEngine:
    return DeckEngine(store)


@pytest.fixture
def group_service(store: ProfileStore) -> GroupService:
    return GroupService(store)


@pytest.fixture
def make_user(store: ProfileStore):
    """Insert a user and their profile card directly, skipping password hashing."""

    async def _make(name: str, tier: UserTier = UserTier.STANDARD, user_id: str | None = None) -> User:
        user_id = user_id or uuid.uuid4().hex
        user = User(id=user_id, name=name, email=f"{user_id}@example.com", tier=tier)
        await store.users.insert(user)
        await store.profiles.insert(ProfileCard(id=f"card-{user_id}", user_id=user_id, full_name=name))
        return user

    return _make


@pytest.fixture
def make_group(group_service: GroupService):
    """Create a group owned by ``creator`` and join every other user to it."""

    async def _make(creator: User, *members: User, join_code: str | None = None) -> Group:
        group = await group_service.create_group(
            creator,
            name="Engineering",
            description="Building the core product.",
            join_code=join_code or uuid.uuid4().hex[:8],
            is_public=True,
        )
        for member in members:
            await group_service.join_group(group.id, member.id)
        return group

    return _make


@pytest.fixture
def client(store: ProfileStore):
    from knowme.api.deps import get_deck_sessions, get_store
    from knowme.core.app import app

    sessions = DeckSessionRegistry(settle_duration=0)
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_deck_sessions] = lambda: sessions
    with TestClient(app) as test_client:
        yield test_client
    sessions.close_all()
    app.dependency_overrides.clear()

