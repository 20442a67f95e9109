from __future__ import annotations

from kamistream.config.settings import settings
from kamistream.core.models import AudioType, DisplayPreference, ProviderPreference, SortOrder
from kamistream.services.preferences import PreferenceStore


async def test_missing_preferences_use_defaults(memory_store) -> None:
    store = PreferenceStore(memory_store)

    provider = await store.load_provider()
    display = await store.load_display()

    assert provider.default_provider == settings.DEFAULT_PROVIDER
    assert provider.preferred_audio == AudioType(settings.DEFAULT_AUDIO)
    assert provider.auto_select is True
    assert display.column_count == 1
    assert display.sort_order == SortOrder.asc
    assert display.page_size == settings.RANGE_PAGE_SIZE


async def test_preferences_round_trip(memory_store) -> None:
    store = PreferenceStore(memory_store)

    await store.save_provider(ProviderPreference(
        default_provider="animepahe",
        preferred_audio=AudioType.dub,
        provider_priority=["animepahe", "zoro"],
        auto_select=False,
    ))
    await store.save_display(DisplayPreference(column_count=3, sort_order=SortOrder.desc, page_size=50))

    provider = await store.load_provider()
    display = await store.load_display()

    assert provider.default_provider == "animepahe"
    assert provider.preferred_audio == AudioType.dub
    assert provider.auto_select is False
    assert display.column_count == 3
    assert display.sort_order == SortOrder.desc


async def test_corrupt_preference_falls_back_to_default(memory_store) -> None:
    memory_store.data["preferences:display"] = '{"column_count": 9}'
    store = PreferenceStore(memory_store)

    display = await store.load_display()

    assert display.column_count == 1


async def test_reset_removes_stored_values(memory_store) -> None:
    store = PreferenceStore(memory_store)
    await store.save_display(DisplayPreference(column_count=2))

    await store.reset()

    assert memory_store.data == {}
    assert (await store.load_display()).column_count == 1
