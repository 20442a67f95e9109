from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

from kamistream.core.errors import ProviderHTTPError, ProviderUnavailable
from kamistream.core.models import AudioType, OutcomeStatus
from kamistream.providers.anilist_meta import AniListMetaProvider
from kamistream.providers.animepahe import AnimePaheProvider
from kamistream.providers.registry import ProviderRegistry
from kamistream.providers.zoro import ZoroProvider

BASE_URL = "https://consumet.test"


def _fetcher(*payloads: object) -> MagicMock:
    fetcher = MagicMock()
    fetcher.get_json = AsyncMock(side_effect=list(payloads))
    return fetcher


async def test_zoro_reads_both_audio_flags() -> None:
    fetcher = _fetcher(
        {"results": [{"id": "frieren-18542", "title": "Frieren: Beyond Journey's End", "type": "TV"}]},
        {"episodes": [
            {"id": "frieren-18542?ep=1", "number": 1, "title": "The Journey's End", "isSubbed": True, "isDubbed": True},
            {"id": "frieren-18542?ep=2", "number": 2, "isSubbed": True, "isDubbed": False, "isFiller": True},
        ]},
    )
    provider = ZoroProvider(fetcher=fetcher, base_url=BASE_URL)

    outcome = await provider.resolve_and_fetch("Frieren: Beyond Journey's End", 154587, AudioType.sub)

    assert outcome.status == OutcomeStatus.ok
    assert outcome.provider_media_id == "frieren-18542"
    assert [e.number for e in outcome.episodes] == [1, 2]
    assert outcome.episodes[0].audio.dub is True
    assert outcome.episodes[1].audio.dub is False
    assert outcome.episodes[1].is_filler is True
    assert outcome.episodes[1].title is None
    assert outcome.episodes[0].provider_refs == {"zoro": "frieren-18542?ep=1"}

    search_call, info_call = fetcher.get_json.await_args_list
    assert search_call.args[0] == f"{BASE_URL}/anime/zoro/Frieren%3A%20Beyond%20Journey%27s%20End"
    assert search_call.kwargs["params"] == {"type": 1}
    assert info_call.kwargs["params"] == {"id": "frieren-18542"}


async def test_animepahe_marks_episodes_sub_only() -> None:
    fetcher = _fetcher({"episodes": [{"id": "abc", "number": 1, "duration": 1440}]})
    provider = AnimePaheProvider(fetcher=fetcher, base_url=BASE_URL)

    outcome = await provider.get_episodes("pahe-1", AudioType.dub)

    episode = outcome.episodes[0]
    assert episode.audio.sub is True
    assert episode.audio.dub is False
    assert episode.duration_minutes == 24
    assert fetcher.get_json.await_args.args[0] == f"{BASE_URL}/anime/animepahe/info/pahe-1"


async def test_anilist_meta_needs_canonical_id() -> None:
    provider = AniListMetaProvider(fetcher=_fetcher(), base_url=BASE_URL)

    outcome = await provider.resolve_and_fetch("Frieren", None, AudioType.sub)

    assert outcome.status == OutcomeStatus.not_found


async def test_anilist_meta_fetches_both_tracks() -> None:
    fetcher = _fetcher(
        [{"id": "ep-1-dub", "number": 1}, {"id": "ep-2-dub", "number": "2"}],
        [{"id": "ep-1", "number": 1}, {"id": "ep-2", "number": 2}, {"id": "ep-3", "number": 3}],
    )
    provider = AniListMetaProvider(fetcher=fetcher, base_url=BASE_URL)

    outcome = await provider.resolve_and_fetch("Frieren", 154587, AudioType.dub)

    assert outcome.ok
    assert [e.number for e in outcome.episodes] == [1, 2, 3]
    assert outcome.episodes[0].id == "ep-1-dub"
    assert outcome.episodes[1].audio.sub is True and outcome.episodes[1].audio.dub is True
    assert outcome.episodes[2].audio.sub is True and outcome.episodes[2].audio.dub is None

    dub_call, sub_call = fetcher.get_json.await_args_list
    assert dub_call.args[0] == f"{BASE_URL}/meta/anilist/episodes/154587"
    assert dub_call.kwargs["params"] == {"provider": "zoro", "dub": "true"}
    assert sub_call.kwargs["params"] == {"provider": "zoro"}


async def test_anilist_meta_keeps_track_that_answered() -> None:
    fetcher = MagicMock()
    fetcher.get_json = AsyncMock(side_effect=[[{"id": "ep-1", "number": 1}], ProviderHTTPError("HTTP 404", 404)])
    provider = AniListMetaProvider(fetcher=fetcher, base_url=BASE_URL)

    outcome = await provider.get_episodes("154587", AudioType.sub)

    assert outcome.status == OutcomeStatus.ok
    assert [(e.audio.sub, e.audio.dub) for e in outcome.episodes] == [(True, None)]

    fetcher.get_json = AsyncMock(side_effect=ProviderUnavailable("throttled", attempts=3, status_code=429))
    assert (await provider.get_episodes("154587", AudioType.sub)).status == OutcomeStatus.unavailable


async def test_throttling_becomes_unavailable_outcome() -> None:
    fetcher = MagicMock()
    fetcher.get_json = AsyncMock(side_effect=ProviderUnavailable("throttled", attempts=3, status_code=429))
    provider = ZoroProvider(fetcher=fetcher, base_url=BASE_URL)

    outcome = await provider.resolve_and_fetch("Frieren", 1, AudioType.sub)

    assert outcome.status == OutcomeStatus.unavailable
    assert outcome.episodes == []


async def test_http_and_parse_errors_become_error_outcomes() -> None:
    fetcher = MagicMock()
    fetcher.get_json = AsyncMock(side_effect=ProviderHTTPError("HTTP 500", 500))
    provider = ZoroProvider(fetcher=fetcher, base_url=BASE_URL)

    assert (await provider.get_episodes("x", AudioType.sub)).status == OutcomeStatus.error

    provider = AnimePaheProvider(fetcher=_fetcher({"episodes": "nope"}), base_url=BASE_URL)
    assert (await provider.get_episodes("x", AudioType.sub)).status == OutcomeStatus.error


async def test_no_search_results_is_not_found() -> None:
    provider = ZoroProvider(fetcher=_fetcher({"results": []}), base_url=BASE_URL)

    outcome = await provider.resolve("Unknown Show")

    assert outcome.status == OutcomeStatus.not_found


async def test_unconfigured_provider_finds_nothing() -> None:
    fetcher = _fetcher()
    provider = ZoroProvider(fetcher=fetcher, base_url="")

    outcome = await provider.resolve("Frieren")

    assert outcome.status == OutcomeStatus.not_found
    fetcher.get_json.assert_not_awaited()


def test_registry_orders_chosen_provider_first() -> None:
    registry = ProviderRegistry([
        AnimePaheProvider(base_url=BASE_URL),
        ZoroProvider(base_url=BASE_URL),
        AniListMetaProvider(base_url=BASE_URL),
    ])

    selected = registry.select("zoro", ["animepahe", "zoro", "anilist_meta"], True, AudioType.sub)
    assert [p.name for p in selected] == ["zoro", "animepahe", "anilist_meta"]

    selected = registry.select("zoro", ["animepahe", "zoro", "anilist_meta"], True, AudioType.dub)
    assert [p.name for p in selected] == ["zoro", "anilist_meta"]

    selected = registry.select("animepahe", [], False, AudioType.dub)
    assert [p.name for p in selected] == ["animepahe"]


async def test_registry_unknown_provider_is_not_found() -> None:
    registry = ProviderRegistry([])

    outcome = await registry.get("gogoanime").resolve_and_fetch("Frieren", 1, AudioType.sub)

    assert outcome.status == OutcomeStatus.not_found
    assert "gogoanime" not in registry
