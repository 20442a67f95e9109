from typing import List
from urllib.parse import quote

from kamistream.core.errors import ProviderError
from kamistream.core.models import AudioType, Episode, SearchCandidate
from kamistream.providers.base import BaseProvider, AUDIO_SINGLE


# ===========================
# AnimePahe Provider Class
# ===========================
class AnimePaheProvider(BaseProvider):
    """Subtitled releases only; a dub request still yields the sub track."""

    name = "animepahe"
    label = "AnimePahe"
    audio_mode = AUDIO_SINGLE
    supports_dub = False

    async def search(self, query: str) -> List[SearchCandidate]:
        data = await self.fetcher.get_json(f"{self.base_url}/anime/animepahe/{quote(query, safe='')}")
        return self.build_candidates(data.get("results") if isinstance(data, dict) else None)

    async def fetch_episodes(self, provider_media_id: str, audio: AudioType) -> List[Episode]:
        data = await self.fetcher.get_json(f"{self.base_url}/anime/animepahe/info/{quote(provider_media_id, safe='')}")
        if not isinstance(data, dict):
            raise ProviderError(self.name, "unexpected info payload")
        return self.build_episodes(data.get("episodes"), audio)


# ===========================
# Singleton Instance
# ===========================
animepahe_provider = AnimePaheProvider()
