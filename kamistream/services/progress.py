import asyncio
from typing import Dict, Optional

from kamistream.core.models import Episode, ReconciledList
from kamistream.services.anilist import AniListService, anilist_service
from kamistream.utils.database import kv_store
from kamistream.utils.helpers import create_storage_key
from kamistream.utils.logger import progress_logger

PROGRESS_NAMESPACE = "progress"


# ===========================
# Progress Tracker Class
# ===========================
class ProgressTracker:
    """Watched progress per media id.

    AniList is the source of truth. A local checkpoint keeps the last known
    value for offline reads, and recorded progress only ever moves forward.
    """

    def __init__(self, metadata: Optional[AniListService] = None, store=None):
        self.metadata = metadata or anilist_service
        self.store = store if store is not None else kv_store
        self._locks: Dict[int, asyncio.Lock] = {}

    def _lock(self, media_id: int) -> asyncio.Lock:
        if media_id not in self._locks:
            self._locks[media_id] = asyncio.Lock()
        return self._locks[media_id]

    async def _read_checkpoint(self, media_id: int) -> int:
        try:
            raw = await self.store.get(create_storage_key(PROGRESS_NAMESPACE, media_id))
            return max(int(raw), 0) if raw else 0
        except (TypeError, ValueError):
            progress_logger.error(f"Corrupted checkpoint for {media_id}")
            return 0
        except Exception as e:
            progress_logger.error(f"Checkpoint read failed: {type(e).__name__}")
            return 0

    async def _write_checkpoint(self, media_id: int, value: int):
        try:
            await self.store.set(create_storage_key(PROGRESS_NAMESPACE, media_id), str(value))
        except Exception as e:
            progress_logger.error(f"Checkpoint write failed: {type(e).__name__}")

    async def local_progress(self, media_id: int) -> int:
        return await self._read_checkpoint(media_id)

    async def fetch_progress(self, media_id: int) -> int:
        try:
            remote = await self.metadata.fetch_progress(media_id)
        except Exception as e:
            cached = await self._read_checkpoint(media_id)
            progress_logger.debug(f"Remote progress unavailable for {media_id} ({type(e).__name__}), using checkpoint {cached}")
            return cached

        remote = max(int(remote), 0)
        await self._write_checkpoint(media_id, remote)
        progress_logger.debug(f"Progress {media_id}: {remote}")
        return remote

    async def record_progress(self, media_id: int, episode_number: int) -> bool:
        episode_number = int(episode_number)

        async with self._lock(media_id):
            current = await self._read_checkpoint(media_id)
            if episode_number <= current:
                progress_logger.debug(f"Ignoring progress {episode_number} for {media_id} (already at {current})")
                return False

            try:
                await self.metadata.save_progress(media_id, episode_number)
            except Exception as e:
                progress_logger.error(f"Remote progress save failed for {media_id}: {type(e).__name__}")

            await self._write_checkpoint(media_id, episode_number)
            progress_logger.info(f"Progress {media_id}: {current} -> {episode_number}")
            return True


# ===========================
# Watched State
# ===========================
def is_watched(episode: Episode, progress: int) -> bool:
    return episode.number is not None and episode.number <= progress


def next_episode(episode_list: Optional[ReconciledList], progress: int) -> Optional[Episode]:
    if not episode_list:
        return None
    for episode in sorted(episode_list.episodes, key=lambda ep: ep.number):
        if episode.number > progress:
            return episode
    return None


# ===========================
# Singleton Instance
# ===========================
progress_tracker = ProgressTracker()
