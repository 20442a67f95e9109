from typing import List, Optional

from kamistream.core.models import AudioType, Episode, OutcomeStatus, ProviderOutcome, SearchCandidate
from kamistream.providers.base import BaseProvider, AUDIO_SINGLE
from kamistream.utils.logger import provider_logger


# ===========================
# AniList Meta Provider Class
# ===========================
class AniListMetaProvider(BaseProvider):
    """Episodes mapped onto the AniList id, one audio track per request.

    No title search is involved: the canonical id is the provider id, so a
    session without one resolves to ``not_found``.
    """

    name = "anilist_meta"
    label = "AniList (Zoro mapping)"
    audio_mode = AUDIO_SINGLE
    supports_dub = True

    def __init__(self, *args, mapped_provider: str = "zoro", **kwargs):
        super().__init__(*args, **kwargs)
        self.mapped_provider = mapped_provider

    async def resolve(self, title: str, canonical_id: Optional[int] = None) -> ProviderOutcome:
        if not self.is_configured():
            return self._outcome(OutcomeStatus.not_found, error="Provider not configured")
        if not canonical_id:
            provider_logger.debug(f"[{self.name}] No canonical id for '{title}'")
            return self._outcome(OutcomeStatus.not_found, error=f"{self.name}: canonical id required")
        return self._outcome(OutcomeStatus.ok, provider_media_id=str(canonical_id))

    async def search(self, query: str) -> List[SearchCandidate]:
        return []

    async def fetch_episodes(self, provider_media_id: str, audio: AudioType) -> List[Episode]:
        params = {"provider": self.mapped_provider}
        if audio == AudioType.dub:
            params["dub"] = "true"

        data = await self.fetcher.get_json(
            f"{self.base_url}/meta/anilist/episodes/{provider_media_id}",
            params=params
        )
        if isinstance(data, dict):
            data = data.get("episodes", data.get("results"))
        return self.build_episodes(data or [], audio)


# ===========================
# Singleton Instance
# ===========================
anilist_meta_provider = AniListMetaProvider()
