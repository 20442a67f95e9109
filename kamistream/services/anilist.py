from typing import Optional, Dict, Any

from kamistream.config.settings import settings
from kamistream.core.errors import MetadataError
from kamistream.utils.fetcher import RateLimitedFetcher, fetcher as default_fetcher
from kamistream.utils.logger import metadata_logger

# ===========================
# GraphQL Documents
# ===========================
PROGRESS_QUERY = """
query ($mediaId: Int) {
  Media(id: $mediaId, type: ANIME) {
    mediaListEntry {
      progress
      updatedAt
      status
    }
  }
}
"""

SAVE_PROGRESS_MUTATION = """
mutation ($mediaId: Int, $progress: Int) {
  SaveMediaListEntry (mediaId: $mediaId, progress: $progress) {
    id
    progress
  }
}
"""

EPISODE_COUNT_QUERY = """
query ($mediaId: Int) {
  Media(id: $mediaId) {
    episodes
    chapters
    nextAiringEpisode {
      episode
    }
  }
}
"""


# ===========================
# AniList Service Class
# ===========================
class AniListService:

    def __init__(self, fetcher: Optional[RateLimitedFetcher] = None, token: Optional[str] = None, url: Optional[str] = None):
        self.fetcher = fetcher or default_fetcher
        self._token = token
        self._url = url

    @property
    def url(self) -> str:
        return self._url or settings.ANILIST_GRAPHQL_URL

    @property
    def token(self) -> Optional[str]:
        return self._token if self._token is not None else settings.ANILIST_TOKEN

    def _headers(self, authenticated: bool) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if authenticated:
            if not self.token:
                raise MetadataError("AniList token not configured")
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _execute(self, query: str, variables: Dict[str, Any], authenticated: bool = True) -> Dict[str, Any]:
        headers = self._headers(authenticated)

        try:
            payload = await self.fetcher.post_json(
                self.url,
                json={"query": query, "variables": variables},
                headers=headers,
                timeout=settings.METADATA_TIMEOUT
            )
        except Exception as e:
            metadata_logger.error(f"AniList request error: {type(e).__name__}")
            raise MetadataError(f"AniList request failed: {type(e).__name__}") from e

        if not isinstance(payload, dict):
            raise MetadataError("Invalid AniList response")

        if payload.get("errors"):
            message = payload["errors"][0].get("message", "unknown error")
            metadata_logger.error(f"AniList error: {message}")
            raise MetadataError(message)

        return payload.get("data") or {}

    async def fetch_progress(self, media_id: int) -> int:
        metadata_logger.debug(f"Fetching progress: {media_id}")
        data = await self._execute(PROGRESS_QUERY, {"mediaId": int(media_id)})

        entry = (data.get("Media") or {}).get("mediaListEntry")
        if not entry:
            return 0
        return int(entry.get("progress") or 0)

    async def save_progress(self, media_id: int, progress: int) -> int:
        metadata_logger.debug(f"Saving progress: {media_id} -> {progress}")
        data = await self._execute(SAVE_PROGRESS_MUTATION, {"mediaId": int(media_id), "progress": int(progress)})

        entry = data.get("SaveMediaListEntry") or {}
        return int(entry.get("progress") or progress)

    async def fetch_episode_count(self, media_id: int) -> Optional[int]:
        try:
            data = await self._execute(EPISODE_COUNT_QUERY, {"mediaId": int(media_id)}, authenticated=False)
        except MetadataError:
            return None

        media = data.get("Media") or {}
        if media.get("episodes"):
            return int(media["episodes"])

        next_airing = media.get("nextAiringEpisode") or {}
        if next_airing.get("episode"):
            return int(next_airing["episode"]) - 1 or None

        return None


# ===========================
# Singleton Instance
# ===========================
anilist_service = AniListService()
