import uuid

from loguru import logger

from knowme.core.config import settings
from knowme.core.constants import PLACEHOLDER_AVATAR_URL, PLACEHOLDER_PHOTO_URL
from knowme.core.exceptions import InvalidCredentials, NotFound
from knowme.core.security import hash_password, make_token, redact_token, verify_password
from knowme.models.profile import ProfileCard
from knowme.models.user import User, UserTier
from knowme.services.store import ProfileStore


class AccountService:
    """Signup, login and bearer-token sessions."""

    def __init__(self, store: ProfileStore):
        self.store = store
        if not settings.PASSWORD_SALT or settings.PASSWORD_SALT == "change-me":
            logger.warning("PASSWORD_SALT is missing or using the default placeholder. Set a strong value.")

    async def signup(self, name: str, email: str, password: str, tier: UserTier = UserTier.STANDARD) -> User:
        """Register a user together with their (mostly empty) profile card.

        Raises DuplicateKey when the email is already registered.
        """
        user_id = uuid.uuid4().hex
        seed = name.replace(" ", "") or user_id
        user = User(
            id=user_id,
            name=name.strip(),
            email=email.strip().lower(),
            tier=tier,
            avatar_url=PLACEHOLDER_AVATAR_URL.format(seed=seed),
            password_hash=hash_password(password, settings.PASSWORD_SALT),
        )
        user = await self.store.users.insert(user)
        profile = ProfileCard(
            id=uuid.uuid4().hex,
            user_id=user.id,
            full_name=user.name,
            photo_url=PLACEHOLDER_PHOTO_URL.format(seed=user.id),
        )
        await self.store.profiles.insert(profile)
        logger.info(f"Account created for user {user.id} ({tier.value})")
        return user

    async def authenticate(self, email: str, password: str) -> User:
        user = await self.store.users.get_by_email(email)
        if user is None or not verify_password(password, user.password_hash, settings.PASSWORD_SALT):
            raise InvalidCredentials("Invalid email or password")
        return user

    async def open_session(self, user: User) -> str:
        token = make_token()
        await self.store.sessions.create(token, user.id, settings.SESSION_TTL_SECONDS)
        logger.info(f"[{redact_token(token)}] Session opened for user {user.id}")
        return token

    async def login(self, email: str, password: str) -> tuple[User, str]:
        user = await self.authenticate(email, password)
        return user, await self.open_session(user)

    async def logout(self, token: str) -> None:
        await self.store.sessions.revoke(token)
        logger.info(f"[{redact_token(token)}] Session closed")

    async def current_user(self, token: str | None) -> User | None:
        if not token:
            return None
        user_id = await self.store.sessions.resolve(token)
        if not user_id:
            return None
        return await self.store.users.get(user_id)

    async def change_password(self, user: User, new_password: str) -> User:
        updated = user.model_copy(update={"password_hash": hash_password(new_password, settings.PASSWORD_SALT)})
        return await self.store.users.update(updated)

    async def update_user(
        self,
        user_id: str,
        name: str | None = None,
        avatar_url: str | None = None,
        tier: UserTier | None = None,
    ) -> User:
        user = await self.store.users.get(user_id)
        if user is None:
            raise NotFound("user", user_id)
        updates = {k: v for k, v in {"name": name, "avatar_url": avatar_url, "tier": tier}.items() if v is not None}
        return await self.store.users.update(user.model_copy(update=updates))
