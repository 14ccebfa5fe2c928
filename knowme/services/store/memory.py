import asyncio

from cachetools import TTLCache

from knowme.core.exceptions import DuplicateJoinCode, DuplicateKey, NotFound
from knowme.models.deck import CardStatus
from knowme.models.group import Group, Invitation, Membership, normalize_join_code
from knowme.models.profile import ProfileCard
from knowme.models.user import User
from knowme.services.store.base import (
    CardStatusRepository,
    GroupRepository,
    InvitationRepository,
    MembershipRepository,
    ProfileRepository,
    ProfileStore,
    SessionRepository,
    UserRepository,
)

# Models are copied on the way in and out so callers never share state with the store.


class InMemoryUserRepository(UserRepository):
    def __init__(self) -> None:
        self._rows: dict[str, User] = {}

    async def get(self, user_id: str) -> User | None:
        user = self._rows.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def get_by_email(self, email: str) -> User | None:
        needle = (email or "").strip().lower()
        for user in self._rows.values():
            if user.email.lower() == needle:
                return user.model_copy(deep=True)
        return None

    async def insert(self, user: User) -> User:
        if user.id in self._rows or await self.get_by_email(user.email):
            raise DuplicateKey("user", user.email)
        self._rows[user.id] = user.model_copy(deep=True)
        return user

    async def update(self, user: User) -> User:
        if user.id not in self._rows:
            raise NotFound("user", user.id)
        self._rows[user.id] = user.model_copy(deep=True)
        return user

    async def list_all(self) -> list[User]:
        return [u.model_copy(deep=True) for u in self._rows.values()]


class InMemoryProfileRepository(ProfileRepository):
    def __init__(self) -> None:
        self._rows: dict[str, ProfileCard] = {}
        self._by_user: dict[str, str] = {}

    async def get(self, profile_id: str) -> ProfileCard | None:
        profile = self._rows.get(profile_id)
        return profile.model_copy(deep=True) if profile else None

    async def get_by_user(self, user_id: str) -> ProfileCard | None:
        profile_id = self._by_user.get(user_id)
        return await self.get(profile_id) if profile_id else None

    async def insert(self, profile: ProfileCard) -> ProfileCard:
        if profile.user_id in self._by_user or profile.id in self._rows:
            raise DuplicateKey("profile", profile.user_id)
        self._rows[profile.id] = profile.model_copy(deep=True)
        self._by_user[profile.user_id] = profile.id
        return profile

    async def update(self, profile: ProfileCard) -> ProfileCard:
        existing = self._rows.get(profile.id)
        if existing is None:
            raise NotFound("profile", profile.id)
        if existing.user_id != profile.user_id:
            raise DuplicateKey("profile", profile.user_id)
        self._rows[profile.id] = profile.model_copy(deep=True)
        return profile


class InMemoryGroupRepository(GroupRepository):
    def __init__(self) -> None:
        self._rows: dict[str, Group] = {}
        self._by_code: dict[str, str] = {}

    async def get(self, group_id: str) -> Group | None:
        group = self._rows.get(group_id)
        return group.model_copy(deep=True) if group else None

    async def get_by_code(self, join_code: str) -> Group | None:
        group_id = self._by_code.get(normalize_join_code(join_code))
        return await self.get(group_id) if group_id else None

    async def insert(self, group: Group) -> Group:
        code = normalize_join_code(group.join_code)
        if code in self._by_code:
            raise DuplicateJoinCode(code)
        group = group.model_copy(update={"join_code": code})
        self._rows[group.id] = group.model_copy(deep=True)
        self._by_code[code] = group.id
        return group

    async def update(self, group: Group) -> Group:
        existing = self._rows.get(group.id)
        if existing is None:
            raise NotFound("group", group.id)
        code = normalize_join_code(group.join_code)
        owner = self._by_code.get(code)
        if owner is not None and owner != group.id:
            raise DuplicateJoinCode(code)
        group = group.model_copy(update={"join_code": code})
        if existing.join_code != code:
            self._by_code.pop(existing.join_code, None)
            self._by_code[code] = group.id
        self._rows[group.id] = group.model_copy(deep=True)
        return group

    async def list_all(self) -> list[Group]:
        return [g.model_copy(deep=True) for g in self._rows.values()]


class InMemoryMembershipRepository(MembershipRepository):
    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], Membership] = {}

    async def add(self, membership: Membership) -> bool:
        pair = (membership.group_id, membership.user_id)
        if pair in self._rows:
            return False
        self._rows[pair] = membership.model_copy(deep=True)
        return True

    async def list_by_group(self, group_id: str) -> list[Membership]:
        return [m.model_copy() for (gid, _), m in self._rows.items() if gid == group_id]

    async def list_by_user(self, user_id: str) -> list[Membership]:
        return [m.model_copy() for (_, uid), m in self._rows.items() if uid == user_id]

    async def exists(self, group_id: str, user_id: str) -> bool:
        return (group_id, user_id) in self._rows


class InMemoryCardStatusRepository(CardStatusRepository):
    def __init__(self) -> None:
        self._rows: dict[tuple[str, str, str], CardStatus] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _key(status: CardStatus) -> tuple[str, str, str]:
        return status.viewer_user_id, status.profile_card_id, status.group_id

    async def get(self, viewer_id: str, card_id: str, group_id: str) -> CardStatus | None:
        status = self._rows.get((viewer_id, card_id, group_id))
        return status.model_copy() if status else None

    async def upsert(self, status: CardStatus) -> CardStatus:
        async with self._lock:
            key = self._key(status)
            existing = self._rows.get(key)
            if existing is not None:
                if existing.last_reviewed_at > status.last_reviewed_at:
                    return existing.model_copy()
                status = status.model_copy(update={"id": existing.id})
            self._rows[key] = status.model_copy()
            return status

    async def list_for_viewer_group(self, viewer_id: str, group_id: str) -> list[CardStatus]:
        return [s.model_copy() for (v, _, g), s in self._rows.items() if v == viewer_id and g == group_id]

    async def list_for_viewer(self, viewer_id: str) -> list[CardStatus]:
        return [s.model_copy() for (v, _, _), s in self._rows.items() if v == viewer_id]

    async def list_all(self) -> list[CardStatus]:
        return [s.model_copy() for s in self._rows.values()]

    async def delete_for_viewer_group(self, viewer_id: str, group_id: str) -> int:
        async with self._lock:
            doomed = [k for k in self._rows if k[0] == viewer_id and k[2] == group_id]
            for key in doomed:
                del self._rows[key]
            return len(doomed)


class InMemoryInvitationRepository(InvitationRepository):
    def __init__(self) -> None:
        self._rows: list[Invitation] = []

    async def add(self, invitation: Invitation) -> Invitation:
        self._rows.append(invitation.model_copy())
        return invitation

    async def list_by_group(self, group_id: str) -> list[Invitation]:
        return [i.model_copy() for i in self._rows if i.group_id == group_id]


class InMemorySessionRepository(SessionRepository):
    def __init__(self, maxsize: int = 10000, ttl: int = 86400) -> None:
        self._sessions: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)

    async def create(self, token: str, user_id: str, ttl: int) -> None:
        # TTLCache has a single ttl; the configured one wins over per-call values
        self._sessions[token] = user_id

    async def resolve(self, token: str) -> str | None:
        return self._sessions.get(token)

    async def revoke(self, token: str) -> None:
        self._sessions.pop(token, None)


def create_memory_store(session_ttl: int = 86400) -> ProfileStore:
    return ProfileStore(
        users=InMemoryUserRepository(),
        profiles=InMemoryProfileRepository(),
        groups=InMemoryGroupRepository(),
        memberships=InMemoryMembershipRepository(),
        statuses=InMemoryCardStatusRepository(),
        invitations=InMemoryInvitationRepository(),
        sessions=InMemorySessionRepository(ttl=session_ttl),
    )
