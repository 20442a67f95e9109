from typing import List
from urllib.parse import quote

from kamistream.core.errors import ProviderError
from kamistream.core.models import AudioType, Episode, SearchCandidate
from kamistream.providers.base import BaseProvider, AUDIO_DUAL


# ===========================
# Zoro (HiAnime) Provider Class
# ===========================
class ZoroProvider(BaseProvider):

    name = "zoro"
    label = "Zoro/HiAnime"
    audio_mode = AUDIO_DUAL
    supports_dub = True

    async def search(self, query: str) -> List[SearchCandidate]:
        data = await self.fetcher.get_json(
            f"{self.base_url}/anime/zoro/{quote(query, safe='')}",
            params={"type": 1}
        )
        return self.build_candidates(data.get("results") if isinstance(data, dict) else None)

    async def fetch_episodes(self, provider_media_id: str, audio: AudioType) -> List[Episode]:
        data = await self.fetcher.get_json(
            f"{self.base_url}/anime/zoro/info",
            params={"id": provider_media_id}
        )
        if not isinstance(data, dict):
            raise ProviderError(self.name, "unexpected info payload")
        return self.build_episodes(data.get("episodes"), audio)


# ===========================
# Singleton Instance
# ===========================
zoro_provider = ZoroProvider()
