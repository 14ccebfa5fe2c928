from abc import ABC, abstractmethod

from knowme.models.deck import CardStatus
from knowme.models.group import Group, Invitation, Membership
from knowme.models.profile import ProfileCard
from knowme.models.user import User


class UserRepository(ABC):
    @abstractmethod
    async def get(self, user_id: str) -> User | None:
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> User | None:
        pass

    @abstractmethod
    async def insert(self, user: User) -> User:
        """Raise DuplicateKey when the email is already registered."""
        pass

    @abstractmethod
    async def update(self, user: User) -> User:
        """Raise NotFound when the user does not exist."""
        pass

    @abstractmethod
    async def list_all(self) -> list[User]:
        pass

    async def count(self) -> int:
        return len(await self.list_all())


class ProfileRepository(ABC):
    @abstractmethod
    async def get(self, profile_id: str) -> ProfileCard | None:
        pass

    @abstractmethod
    async def get_by_user(self, user_id: str) -> ProfileCard | None:
        pass

    @abstractmethod
    async def insert(self, profile: ProfileCard) -> ProfileCard:
        """Raise DuplicateKey when the user already has a profile."""
        pass

    @abstractmethod
    async def update(self, profile: ProfileCard) -> ProfileCard:
        """Raise NotFound when the profile does not exist."""
        pass

    async def list_by_users(self, user_ids: list[str]) -> list[ProfileCard]:
        """Profiles for the given users, in the order of ``user_ids``."""
        profiles = []
        for user_id in user_ids:
            profile = await self.get_by_user(user_id)
            if profile:
                profiles.append(profile)
        return profiles


class GroupRepository(ABC):
    @abstractmethod
    async def get(self, group_id: str) -> Group | None:
        pass

    @abstractmethod
    async def get_by_code(self, join_code: str) -> Group | None:
        """Case-insensitive lookup."""
        pass

    @abstractmethod
    async def insert(self, group: Group) -> Group:
        """Raise DuplicateJoinCode when the code is taken by any group."""
        pass

    @abstractmethod
    async def update(self, group: Group) -> Group:
        """Raise NotFound for an unknown id, DuplicateJoinCode for a code owned by another group."""
        pass

    @abstractmethod
    async def list_all(self) -> list[Group]:
        pass

    async def list_by_ids(self, group_ids: list[str]) -> list[Group]:
        groups = []
        for group_id in group_ids:
            group = await self.get(group_id)
            if group:
                groups.append(group)
        return groups

    async def search_public(self, query: str) -> list[Group]:
        needle = (query or "").strip().lower()
        return [g for g in await self.list_all() if g.is_public and needle in g.name.lower()]


class MembershipRepository(ABC):
    @abstractmethod
    async def add(self, membership: Membership) -> bool:
        """Insert the pair; return False (and write nothing) when it already exists."""
        pass

    @abstractmethod
    async def list_by_group(self, group_id: str) -> list[Membership]:
        """Memberships of a group in join order."""
        pass

    @abstractmethod
    async def list_by_user(self, user_id: str) -> list[Membership]:
        pass

    async def exists(self, group_id: str, user_id: str) -> bool:
        return any(m.user_id == user_id for m in await self.list_by_group(group_id))


class CardStatusRepository(ABC):
    @abstractmethod
    async def get(self, viewer_id: str, card_id: str, group_id: str) -> CardStatus | None:
        pass

    @abstractmethod
    async def upsert(self, status: CardStatus) -> CardStatus:
        """Write the row for the (viewer, card, group) triple.

        An existing row keeps its id. A write older than the stored
        ``last_reviewed_at`` is dropped and the stored row is returned.
        """
        pass

    @abstractmethod
    async def list_for_viewer_group(self, viewer_id: str, group_id: str) -> list[CardStatus]:
        pass

    @abstractmethod
    async def list_for_viewer(self, viewer_id: str) -> list[CardStatus]:
        pass

    @abstractmethod
    async def list_all(self) -> list[CardStatus]:
        pass

    @abstractmethod
    async def delete_for_viewer_group(self, viewer_id: str, group_id: str) -> int:
        """Bulk delete; returns the number of rows removed."""
        pass


class InvitationRepository(ABC):
    @abstractmethod
    async def add(self, invitation: Invitation) -> Invitation:
        pass

    @abstractmethod
    async def list_by_group(self, group_id: str) -> list[Invitation]:
        pass


class SessionRepository(ABC):
    @abstractmethod
    async def create(self, token: str, user_id: str, ttl: int) -> None:
        pass

    @abstractmethod
    async def resolve(self, token: str) -> str | None:
        pass

    @abstractmethod
    async def revoke(self, token: str) -> None:
        pass


class ProfileStore:
    """Bundle of per-entity repositories handed to the services."""

    def __init__(
        self,
        users: UserRepository,
        profiles: ProfileRepository,
        groups: GroupRepository,
        memberships: MembershipRepository,
        statuses: CardStatusRepository,
        invitations: InvitationRepository,
        sessions: SessionRepository,
    ):
        self.users = users
        self.profiles = profiles
        self.groups = groups
        self.memberships = memberships
        self.statuses = statuses
        self.invitations = invitations
        self.sessions = sessions

    async def close(self) -> None:
        """Release backend resources. No-op for in-process stores."""
        return None
