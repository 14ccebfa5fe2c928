"""
Persistence layer.

Repositories per entity behind ``ProfileStore``; the backend is chosen by
``settings.STORE_BACKEND``. Services receive the store as a dependency and
never reach for a backend directly.
"""

from loguru import logger

from knowme.core.config import settings
from knowme.services.store.base import ProfileStore
from knowme.services.store.memory import create_memory_store
from knowme.services.store.redis_store import RedisProfileStore


def build_profile_store(backend: str | None = None) -> ProfileStore:
    backend = backend or settings.STORE_BACKEND
    if backend == "memory":
        logger.warning("Using in-memory profile store. Data is lost on restart.")
        return create_memory_store(session_ttl=settings.SESSION_TTL_SECONDS)
    return RedisProfileStore()


profile_store = build_profile_store()

__all__ = [
    "ProfileStore",
    "RedisProfileStore",
    "build_profile_store",
    "create_memory_store",
    "profile_store",
]
