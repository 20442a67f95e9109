from __future__ import annotations

import time

from kamistream.core.models import ReconciledList
from kamistream.utils.cache import EpisodeCache


async def test_save_replaces_previous_entry(make_episode, memory_store) -> None:
    cache = EpisodeCache(memory_store)

    await cache.save(5, ReconciledList(media_id=5, episodes=[make_episode(n) for n in range(1, 4)]))
    await cache.save(5, ReconciledList(media_id=5, episodes=[make_episode(1, "zoro")], providers=["zoro"]))

    cached = await cache.load(5)
    assert len(cached) == 1
    assert cached.providers == ["zoro"]
    assert cached.get(1).source_provider == "zoro"


async def test_missing_and_corrupt_entries_read_as_absent(memory_store) -> None:
    memory_store.data["episodes:6"] = "{not json"
    cache = EpisodeCache(memory_store)

    assert await cache.load(5) is None
    assert await cache.load(6) is None


async def test_invalidate_and_clear(make_episode, memory_store) -> None:
    memory_store.data["progress:1"] = "3"
    cache = EpisodeCache(memory_store)
    for media_id in (1, 2):
        await cache.save(media_id, ReconciledList(media_id=media_id, episodes=[make_episode(1)]))

    await cache.invalidate(1)
    assert await cache.load(1) is None

    assert await cache.clear() == 1
    assert await cache.load(2) is None
    assert memory_store.data == {"progress:1": "3"}


def test_staleness_is_reported_not_enforced() -> None:
    fresh = ReconciledList(media_id=1)
    old = ReconciledList(media_id=1, reconciled_at=time.time() - 100)

    assert EpisodeCache.is_stale(fresh, max_age=50) is False
    assert EpisodeCache.is_stale(old, max_age=50) is True
