"""BedHeat application services."""

from .profile_store import ProfileStore, UserProfile
from .run_lock import RunLock, init_redis

__all__ = [
    "ProfileStore",
    "RunLock",
    "UserProfile",
    "init_redis",
]
