from knowme.core.exceptions import NotFound
from knowme.models.profile import ProfileCard, ProfileUpdate
from knowme.services.store import ProfileStore


class ProfileService:
    def __init__(self, store: ProfileStore):
        self.store = store

    async def get_for_user(self, user_id: str) -> ProfileCard | None:
        return await self.store.profiles.get_by_user(user_id)

    async def update_own(self, user_id: str, changes: ProfileUpdate) -> ProfileCard:
        """Apply the owner's edits; fields left as None are kept."""
        profile = await self.store.profiles.get_by_user(user_id)
        if profile is None:
            raise NotFound("profile", user_id)
        updates = changes.model_dump(exclude_none=True)
        if "links" in updates:
            updates["links"] = [link.strip() for link in updates["links"] if link and link.strip()]
        return await self.store.profiles.update(profile.model_copy(update=updates))
