import time
from typing import Optional

from pydantic import ValidationError

from kamistream.config.settings import settings
from kamistream.core.models import ReconciledList
from kamistream.utils.database import kv_store
from kamistream.utils.helpers import create_storage_key
from kamistream.utils.logger import cache_logger

EPISODES_NAMESPACE = "episodes"


# ===========================
# Episode Cache Class
# ===========================
class EpisodeCache:
    """Last reconciled list per media id, replaced wholesale on save."""

    def __init__(self, store=None):
        self.store = store if store is not None else kv_store

    async def load(self, media_id: int) -> Optional[ReconciledList]:
        key = create_storage_key(EPISODES_NAMESPACE, media_id)

        try:
            raw = await self.store.get(key)
        except Exception as e:
            cache_logger.error(f"Cache read failed: {type(e).__name__}")
            return None

        if not raw:
            cache_logger.debug(f"Miss: {media_id}")
            return None

        try:
            cached = ReconciledList.model_validate_json(raw)
        except ValidationError as e:
            cache_logger.error(f"Corrupted cache for {media_id}: {type(e).__name__}")
            return None

        cache_logger.debug(f"Hit: {media_id} - {len(cached)} episodes")
        return cached

    async def save(self, media_id: int, episode_list: ReconciledList):
        key = create_storage_key(EPISODES_NAMESPACE, media_id)

        try:
            await self.store.set(key, episode_list.model_dump_json())
            cache_logger.debug(f"Saved: {media_id} - {len(episode_list)} episodes")
        except Exception as e:
            cache_logger.error(f"Cache save failed: {type(e).__name__}")

    async def invalidate(self, media_id: int):
        try:
            await self.store.remove(create_storage_key(EPISODES_NAMESPACE, media_id))
            cache_logger.debug(f"Invalidated: {media_id}")
        except Exception as e:
            cache_logger.error(f"Cache invalidate failed: {type(e).__name__}")

    async def clear(self) -> int:
        try:
            removed = await self.store.remove_prefix(f"{EPISODES_NAMESPACE}:")
            cache_logger.info(f"Cleared {removed} cached lists")
            return removed
        except Exception as e:
            cache_logger.error(f"Cache clear failed: {type(e).__name__}")
            return 0

    @staticmethod
    def is_stale(episode_list: ReconciledList, max_age: Optional[int] = None) -> bool:
        max_age = max_age if max_age is not None else settings.EPISODE_CACHE_STALE_AFTER
        return time.time() - episode_list.reconciled_at > max_age


# ===========================
# Singleton Instance
# ===========================
episode_cache = EpisodeCache()
