"""
Core constants used across the application. Keep these simple and documented.
"""

# Swipe gesture: a drag must travel strictly further than this (px) to commit
SWIPE_COMMIT_THRESHOLD: float = 75.0
# Movement beyond this (px) counts as a real drag and suppresses the next tap
SMALL_MOTION_THRESHOLD: float = 5.0
# Off-canvas offset a committed card is thrown to
EXIT_OFFSET: float = 1000.0

PLACEHOLDER_AVATAR_URL: str = "https://picsum.photos/seed/{seed}/200"
PLACEHOLDER_PHOTO_URL: str = "https://picsum.photos/seed/{seed}/400/600"

# Redis key templates, relative to settings.REDIS_KEY_PREFIX
USER_KEY: str = "user:{user_id}"
USER_EMAIL_KEY: str = "user_email:{email}"
USERS_INDEX_KEY: str = "users"
PROFILE_KEY: str = "profile:{profile_id}"
PROFILE_USER_KEY: str = "profile_user:{user_id}"
GROUP_KEY: str = "group:{group_id}"
GROUP_CODE_KEY: str = "group_code:{join_code}"
GROUPS_INDEX_KEY: str = "groups"
GROUP_MEMBERS_KEY: str = "members:{group_id}"
USER_GROUPS_KEY: str = "user_groups:{user_id}"
MEMBERSHIP_KEY: str = "membership:{group_id}:{user_id}"
STATUS_KEY: str = "status:{viewer_id}:{group_id}"
INVITATIONS_KEY: str = "invitations:{group_id}"
SESSION_KEY: str = "session:{token}"
