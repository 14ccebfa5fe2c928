import time
import uuid
from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

from loguru import logger

from knowme.core.config import settings
from knowme.core.exceptions import InvalidJoinCode, NotFound
from knowme.models.group import Group, GroupUpdate, Invitation, Membership, normalize_join_code
from knowme.models.user import User
from knowme.services.store import ProfileStore


def resolve_join_code(scanned: str) -> str:
    """Turn a scanned QR payload or deep link into a join code.

    Accepts a bare code or any URL carrying ``?code=...``; the result is
    trimmed and upper-cased.
    """
    text = (scanned or "").strip()
    parsed = urlparse(text)
    if parsed.scheme and parsed.netloc:
        codes = parse_qs(parsed.query).get("code")
        if codes:
            text = codes[0]
    return normalize_join_code(text)


class GroupService:
    def __init__(self, store: ProfileStore):
        self.store = store

    async def create_group(
        self,
        creator: User,
        name: str,
        description: str,
        join_code: str,
        is_public: bool = False,
    ) -> Group:
        """Create a group and make its creator the first member.

        Raises InvalidJoinCode for a blank code and DuplicateJoinCode when the
        code is taken.
        """
        code = normalize_join_code(join_code)
        if not code:
            raise InvalidJoinCode("Join code must not be blank")
        group = Group(
            id=uuid.uuid4().hex,
            name=name.strip(),
            description=description.strip(),
            created_by_user_id=creator.id,
            is_public=is_public,
            join_code=code,
        )
        group = await self.store.groups.insert(group)
        await self.join_group(group.id, creator.id)
        logger.info(f"Group {group.id} ({group.join_code}) created by {creator.id}")
        return group

    async def update_group(self, group_id: str, changes: GroupUpdate) -> Group:
        group = await self.store.groups.get(group_id)
        if group is None:
            raise NotFound("group", group_id)
        updates = changes.model_dump(exclude_none=True)
        if "join_code" in updates:
            updates["join_code"] = normalize_join_code(updates["join_code"])
            if not updates["join_code"]:
                raise InvalidJoinCode("Join code must not be blank")
        updates["updated_at"] = datetime.now(timezone.utc)
        return await self.store.groups.update(group.model_copy(update=updates))

    async def get_group(self, group_id: str) -> Group | None:
        return await self.store.groups.get(group_id)

    async def find_by_code(self, code: str) -> Group | None:
        if not normalize_join_code(code):
            return None
        return await self.store.groups.get_by_code(code)

    async def join_group(self, group_id: str, user_id: str) -> bool:
        """Add a membership. False when the user already belongs to the group."""
        membership = Membership(id=uuid.uuid4().hex, group_id=group_id, user_id=user_id)
        joined = await self.store.memberships.add(membership)
        if joined:
            logger.info(f"User {user_id} joined group {group_id}")
        return joined

    async def join_by_code(self, code: str, user_id: str) -> tuple[Group, bool]:
        """Resolve a typed, scanned or linked code and join its group.

        Raises NotFound when no group has the code.
        """
        join_code = resolve_join_code(code)
        group = await self.find_by_code(join_code)
        if group is None:
            raise NotFound("group", join_code or code)
        joined = await self.join_group(group.id, user_id)
        return group, joined

    async def groups_for_user(self, user_id: str) -> list[Group]:
        memberships = await self.store.memberships.list_by_user(user_id)
        return await self.store.groups.list_by_ids([m.group_id for m in memberships])

    async def members(self, group_id: str) -> list[User]:
        memberships = await self.store.memberships.list_by_group(group_id)
        users = []
        for membership in memberships:
            user = await self.store.users.get(membership.user_id)
            if user:
                users.append(user)
        return users

    async def is_member(self, group_id: str, user_id: str) -> bool:
        return await self.store.memberships.exists(group_id, user_id)

    async def search_public(self, query: str) -> list[Group]:
        if not (query or "").strip():
            return []
        return await self.store.groups.search_public(query)

    async def invite(self, group_id: str, emails: list[str]) -> list[Invitation]:
        invited_at = int(time.time() * 1000)
        invitations = []
        for email in emails:
            email = email.strip()
            if not email:
                continue
            invitation = Invitation(id=uuid.uuid4().hex, group_id=group_id, email=email, invited_at=invited_at)
            invitations.append(await self.store.invitations.add(invitation))
        logger.info(f"Recorded {len(invitations)} invitations for group {group_id}")
        return invitations

    async def invitations(self, group_id: str) -> list[Invitation]:
        return await self.store.invitations.list_by_group(group_id)

    @staticmethod
    def join_link(group: Group) -> str:
        return f"{settings.HOST_NAME.rstrip('/')}?code={group.join_code}"
