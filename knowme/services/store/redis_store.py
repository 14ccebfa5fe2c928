import json
from contextlib import contextmanager

import redis.asyncio as redis
from loguru import logger

from knowme.core import constants
from knowme.core.config import settings
from knowme.core.exceptions import DuplicateJoinCode, DuplicateKey, NotFound, StoreUnavailable
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


@contextmanager
def _unavailable_on_error(action: str):
    try:
        yield
    except (redis.RedisError, OSError) as exc:
        logger.error(f"Redis {action} failed: {exc}")
        raise StoreUnavailable(f"Redis {action} failed") from exc


class RedisConnection:
    """Lazily created, shared Redis client plus key formatting."""

    def __init__(self, url: str | None = None, prefix: str | None = None) -> None:
        self.url = url or settings.REDIS_URL
        self.prefix = prefix if prefix is not None else settings.REDIS_KEY_PREFIX
        self._client: redis.Redis | None = None
        if not self.url:
            logger.warning("REDIS_URL is not set. Store operations will fail until configured.")

    async def get_client(self) -> redis.Redis:
        if self._client is None:
            logger.info("Creating Redis client for profile store")
            self._client = redis.from_url(
                self.url,
                decode_responses=True,
                encoding="utf-8",
                socket_connect_timeout=5,
                socket_timeout=5,
                max_connections=getattr(settings, "REDIS_MAX_CONNECTIONS", 100),
                health_check_interval=30,
                socket_keepalive=True,
            )
        return self._client

    def key(self, template: str, **params: str) -> str:
        return self.prefix + template.format(**params)

    async def close(self) -> None:
        """Close and disconnect the Redis client"""
        if self._client is not None:
            try:
                await self._client.close()
                logger.info("Profile store Redis client closed")
            except Exception as exc:
                logger.warning(f"Failed to close Redis client: {exc}")
            finally:
                self._client = None


class _RedisRepository:
    def __init__(self, conn: RedisConnection) -> None:
        self.conn = conn

    async def _mget_models(self, client: redis.Redis, keys: list[str], model):
        if not keys:
            return []
        raw_values = await client.mget(keys)
        return [model.model_validate_json(raw) for raw in raw_values if raw]

    async def _write_claimed(self, client: redis.Redis, queue, release) -> None:
        """Run the writes queued by ``queue(pipe)`` in one MULTI/EXEC after a unique claim.

        When the transaction fails the claim is undone with ``release()`` so a
        key never stays taken by a record that was not written.
        """
        try:
            async with client.pipeline(transaction=True) as pipe:
                queue(pipe)
                await pipe.execute()
        except (redis.RedisError, OSError):
            logger.warning("Write after unique claim failed, releasing the claim")
            await release()
            raise


class RedisUserRepository(_RedisRepository, UserRepository):
    def _user_key(self, user_id: str) -> str:
        return self.conn.key(constants.USER_KEY, user_id=user_id)

    def _email_key(self, email: str) -> str:
        return self.conn.key(constants.USER_EMAIL_KEY, email=email.strip().lower())

    async def get(self, user_id: str) -> User | None:
        with _unavailable_on_error(f"get user {user_id}"):
            client = await self.conn.get_client()
            raw = await client.get(self._user_key(user_id))
        return User.model_validate_json(raw) if raw else None

    async def get_by_email(self, email: str) -> User | None:
        with _unavailable_on_error("get user by email"):
            client = await self.conn.get_client()
            user_id = await client.get(self._email_key(email))
        return await self.get(user_id) if user_id else None

    def _dump(self, user: User) -> str:
        # password_hash is excluded from the public dump but must be persisted
        data = json.loads(user.model_dump_json())
        data["password_hash"] = user.password_hash
        return json.dumps(data)

    async def insert(self, user: User) -> User:
        with _unavailable_on_error(f"insert user {user.id}"):
            client = await self.conn.get_client()
            email_key = self._email_key(user.email)
            claimed = await client.set(email_key, user.id, nx=True)
            if not claimed:
                raise DuplicateKey("user", user.email)

            def queue(pipe):
                pipe.set(self._user_key(user.id), self._dump(user))
                pipe.sadd(self.conn.key(constants.USERS_INDEX_KEY), user.id)

            await self._write_claimed(client, queue, lambda: client.delete(email_key))
        return user

    async def update(self, user: User) -> User:
        with _unavailable_on_error(f"update user {user.id}"):
            client = await self.conn.get_client()
            written = await client.set(self._user_key(user.id), self._dump(user), xx=True)
        if not written:
            raise NotFound("user", user.id)
        return user

    async def list_all(self) -> list[User]:
        with _unavailable_on_error("list users"):
            client = await self.conn.get_client()
            user_ids = sorted(await client.smembers(self.conn.key(constants.USERS_INDEX_KEY)))
            raw_values = await client.mget([self._user_key(uid) for uid in user_ids]) if user_ids else []
        return [User.model_validate_json(raw) for raw in raw_values if raw]

    async def count(self) -> int:
        with _unavailable_on_error("count users"):
            client = await self.conn.get_client()
            return await client.scard(self.conn.key(constants.USERS_INDEX_KEY))


class RedisProfileRepository(_RedisRepository, ProfileRepository):
    def _profile_key(self, profile_id: str) -> str:
        return self.conn.key(constants.PROFILE_KEY, profile_id=profile_id)

    def _owner_key(self, user_id: str) -> str:
        return self.conn.key(constants.PROFILE_USER_KEY, user_id=user_id)

    async def get(self, profile_id: str) -> ProfileCard | None:
        with _unavailable_on_error(f"get profile {profile_id}"):
            client = await self.conn.get_client()
            raw = await client.get(self._profile_key(profile_id))
        return ProfileCard.model_validate_json(raw) if raw else None

    async def get_by_user(self, user_id: str) -> ProfileCard | None:
        with _unavailable_on_error(f"get profile of user {user_id}"):
            client = await self.conn.get_client()
            profile_id = await client.get(self._owner_key(user_id))
        return await self.get(profile_id) if profile_id else None

    async def insert(self, profile: ProfileCard) -> ProfileCard:
        with _unavailable_on_error(f"insert profile {profile.id}"):
            client = await self.conn.get_client()
            owner_key = self._owner_key(profile.user_id)
            claimed = await client.set(owner_key, profile.id, nx=True)
            if not claimed:
                raise DuplicateKey("profile", profile.user_id)
            await self._write_claimed(
                client,
                lambda pipe: pipe.set(self._profile_key(profile.id), profile.model_dump_json()),
                lambda: client.delete(owner_key),
            )
        return profile

    async def update(self, profile: ProfileCard) -> ProfileCard:
        with _unavailable_on_error(f"update profile {profile.id}"):
            client = await self.conn.get_client()
            written = await client.set(self._profile_key(profile.id), profile.model_dump_json(), xx=True)
        if not written:
            raise NotFound("profile", profile.id)
        return profile

    async def list_by_users(self, user_ids: list[str]) -> list[ProfileCard]:
        if not user_ids:
            return []
        with _unavailable_on_error("list profiles"):
            client = await self.conn.get_client()
            profile_ids = await client.mget([self._owner_key(uid) for uid in user_ids])
            keys = [self._profile_key(pid) for pid in profile_ids if pid]
            return await self._mget_models(client, keys, ProfileCard)


class RedisGroupRepository(_RedisRepository, GroupRepository):
    def _group_key(self, group_id: str) -> str:
        return self.conn.key(constants.GROUP_KEY, group_id=group_id)

    def _code_key(self, join_code: str) -> str:
        return self.conn.key(constants.GROUP_CODE_KEY, join_code=normalize_join_code(join_code))

    async def get(self, group_id: str) -> Group | None:
        with _unavailable_on_error(f"get group {group_id}"):
            client = await self.conn.get_client()
            raw = await client.get(self._group_key(group_id))
        return Group.model_validate_json(raw) if raw else None

    async def get_by_code(self, join_code: str) -> Group | None:
        if not normalize_join_code(join_code):
            return None
        with _unavailable_on_error("get group by code"):
            client = await self.conn.get_client()
            group_id = await client.get(self._code_key(join_code))
        return await self.get(group_id) if group_id else None

    async def insert(self, group: Group) -> Group:
        code = normalize_join_code(group.join_code)
        group = group.model_copy(update={"join_code": code})
        with _unavailable_on_error(f"insert group {group.id}"):
            client = await self.conn.get_client()
            code_key = self._code_key(code)
            claimed = await client.set(code_key, group.id, nx=True)
            if not claimed:
                raise DuplicateJoinCode(code)

            def queue(pipe):
                pipe.set(self._group_key(group.id), group.model_dump_json())
                pipe.sadd(self.conn.key(constants.GROUPS_INDEX_KEY), group.id)

            await self._write_claimed(client, queue, lambda: client.delete(code_key))
        return group

    async def update(self, group: Group) -> Group:
        existing = await self.get(group.id)
        if existing is None:
            raise NotFound("group", group.id)
        code = normalize_join_code(group.join_code)
        group = group.model_copy(update={"join_code": code})
        with _unavailable_on_error(f"update group {group.id}"):
            client = await self.conn.get_client()
            if code == existing.join_code:
                await client.set(self._group_key(group.id), group.model_dump_json())
                return group
            new_code_key = self._code_key(code)
            claimed = await client.set(new_code_key, group.id, nx=True)
            if not claimed:
                raise DuplicateJoinCode(code)

            def queue(pipe):
                pipe.set(self._group_key(group.id), group.model_dump_json())
                pipe.delete(self._code_key(existing.join_code))

            await self._write_claimed(client, queue, lambda: client.delete(new_code_key))
        return group

    async def list_all(self) -> list[Group]:
        with _unavailable_on_error("list groups"):
            client = await self.conn.get_client()
            group_ids = sorted(await client.smembers(self.conn.key(constants.GROUPS_INDEX_KEY)))
            return await self._mget_models(client, [self._group_key(gid) for gid in group_ids], Group)

    async def list_by_ids(self, group_ids: list[str]) -> list[Group]:
        with _unavailable_on_error("list groups by id"):
            client = await self.conn.get_client()
            return await self._mget_models(client, [self._group_key(gid) for gid in group_ids], Group)


class RedisMembershipRepository(_RedisRepository, MembershipRepository):
    """Members are kept in sorted sets scored by join time, so listing keeps join order."""

    def _record_key(self, group_id: str, user_id: str) -> str:
        return self.conn.key(constants.MEMBERSHIP_KEY, group_id=group_id, user_id=user_id)

    async def add(self, membership: Membership) -> bool:
        score = membership.created_at.timestamp()
        with _unavailable_on_error(f"add membership {membership.group_id}/{membership.user_id}"):
            client = await self.conn.get_client()
            members_key = self.conn.key(constants.GROUP_MEMBERS_KEY, group_id=membership.group_id)
            added = await client.zadd(members_key, {membership.user_id: score}, nx=True)
            if not added:
                return False

            def queue(pipe):
                pipe.zadd(
                    self.conn.key(constants.USER_GROUPS_KEY, user_id=membership.user_id),
                    {membership.group_id: score},
                    nx=True,
                )
                pipe.set(self._record_key(membership.group_id, membership.user_id), membership.model_dump_json())

            await self._write_claimed(client, queue, lambda: client.zrem(members_key, membership.user_id))
        return True

    async def list_by_group(self, group_id: str) -> list[Membership]:
        with _unavailable_on_error(f"list members of {group_id}"):
            client = await self.conn.get_client()
            user_ids = await client.zrange(self.conn.key(constants.GROUP_MEMBERS_KEY, group_id=group_id), 0, -1)
            keys = [self._record_key(group_id, uid) for uid in user_ids]
            return await self._mget_models(client, keys, Membership)

    async def list_by_user(self, user_id: str) -> list[Membership]:
        with _unavailable_on_error(f"list groups of {user_id}"):
            client = await self.conn.get_client()
            group_ids = await client.zrange(self.conn.key(constants.USER_GROUPS_KEY, user_id=user_id), 0, -1)
            keys = [self._record_key(gid, user_id) for gid in group_ids]
            return await self._mget_models(client, keys, Membership)

    async def exists(self, group_id: str, user_id: str) -> bool:
        with _unavailable_on_error(f"check membership {group_id}/{user_id}"):
            client = await self.conn.get_client()
            score = await client.zscore(self.conn.key(constants.GROUP_MEMBERS_KEY, group_id=group_id), user_id)
        return score is not None


class RedisCardStatusRepository(_RedisRepository, CardStatusRepository):
    """One hash per (viewer, group); the field is the card id, so a triple maps to exactly one entry."""

    MAX_WATCH_RETRIES = 5

    def _hash_key(self, viewer_id: str, group_id: str) -> str:
        return self.conn.key(constants.STATUS_KEY, viewer_id=viewer_id, group_id=group_id)

    async def get(self, viewer_id: str, card_id: str, group_id: str) -> CardStatus | None:
        with _unavailable_on_error("get card status"):
            client = await self.conn.get_client()
            raw = await client.hget(self._hash_key(viewer_id, group_id), card_id)
        return CardStatus.model_validate_json(raw) if raw else None

    async def upsert(self, status: CardStatus) -> CardStatus:
        key = self._hash_key(status.viewer_user_id, status.group_id)
        with _unavailable_on_error("upsert card status"):
            client = await self.conn.get_client()
            for _ in range(self.MAX_WATCH_RETRIES):
                async with client.pipeline(transaction=True) as pipe:
                    try:
                        await pipe.watch(key)
                        raw = await pipe.hget(key, status.profile_card_id)
                        if raw:
                            existing = CardStatus.model_validate_json(raw)
                            if existing.last_reviewed_at > status.last_reviewed_at:
                                await pipe.unwatch()
                                return existing
                            status = status.model_copy(update={"id": existing.id})
                        pipe.multi()
                        pipe.hset(key, status.profile_card_id, status.model_dump_json())
                        await pipe.execute()
                        return status
                    except redis.WatchError:
                        logger.debug(f"Card status {key}/{status.profile_card_id} changed concurrently, retrying")
            raise StoreUnavailable(f"Card status upsert kept conflicting on {key}")

    async def list_for_viewer_group(self, viewer_id: str, group_id: str) -> list[CardStatus]:
        with _unavailable_on_error("list card statuses"):
            client = await self.conn.get_client()
            values = await client.hvals(self._hash_key(viewer_id, group_id))
        return [CardStatus.model_validate_json(raw) for raw in values]

    async def _scan(self, pattern: str) -> list[CardStatus]:
        with _unavailable_on_error(f"scan card statuses {pattern}"):
            client = await self.conn.get_client()
            statuses = []
            async for key in client.scan_iter(match=pattern, count=500):
                for raw in await client.hvals(key):
                    statuses.append(CardStatus.model_validate_json(raw))
        return statuses

    async def list_for_viewer(self, viewer_id: str) -> list[CardStatus]:
        return await self._scan(self._hash_key(viewer_id, "*"))

    async def list_all(self) -> list[CardStatus]:
        return await self._scan(self._hash_key("*", "*"))

    async def delete_for_viewer_group(self, viewer_id: str, group_id: str) -> int:
        key = self._hash_key(viewer_id, group_id)
        with _unavailable_on_error("reset card statuses"):
            client = await self.conn.get_client()
            async with client.pipeline(transaction=True) as pipe:
                pipe.hlen(key)
                pipe.delete(key)
                removed, _ = await pipe.execute()
        return int(removed)


class RedisInvitationRepository(_RedisRepository, InvitationRepository):
    async def add(self, invitation: Invitation) -> Invitation:
        with _unavailable_on_error("add invitation"):
            client = await self.conn.get_client()
            await client.rpush(
                self.conn.key(constants.INVITATIONS_KEY, group_id=invitation.group_id), invitation.model_dump_json()
            )
        return invitation

    async def list_by_group(self, group_id: str) -> list[Invitation]:
        with _unavailable_on_error("list invitations"):
            client = await self.conn.get_client()
            values = await client.lrange(self.conn.key(constants.INVITATIONS_KEY, group_id=group_id), 0, -1)
        return [Invitation.model_validate_json(raw) for raw in values]


class RedisSessionRepository(_RedisRepository, SessionRepository):
    async def create(self, token: str, user_id: str, ttl: int) -> None:
        with _unavailable_on_error("create session"):
            client = await self.conn.get_client()
            key = self.conn.key(constants.SESSION_KEY, token=token)
            if ttl and ttl > 0:
                await client.setex(key, ttl, user_id)
            else:
                await client.set(key, user_id)

    async def resolve(self, token: str) -> str | None:
        with _unavailable_on_error("resolve session"):
            client = await self.conn.get_client()
            return await client.get(self.conn.key(constants.SESSION_KEY, token=token))

    async def revoke(self, token: str) -> None:
        with _unavailable_on_error("revoke session"):
            client = await self.conn.get_client()
            await client.delete(self.conn.key(constants.SESSION_KEY, token=token))


class RedisProfileStore(ProfileStore):
    def __init__(self, conn: RedisConnection | None = None) -> None:
        self.conn = conn or RedisConnection()
        super().__init__(
            users=RedisUserRepository(self.conn),
            profiles=RedisProfileRepository(self.conn),
            groups=RedisGroupRepository(self.conn),
            memberships=RedisMembershipRepository(self.conn),
            statuses=RedisCardStatusRepository(self.conn),
            invitations=RedisInvitationRepository(self.conn),
            sessions=RedisSessionRepository(self.conn),
        )

    async def close(self) -> None:
        await self.conn.close()
