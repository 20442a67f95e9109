import asyncio
from abc import ABC, abstractmethod
from typing import List, Dict, Optional, Any

from kamistream.config.settings import settings
from kamistream.core.errors import ProviderUnavailable, ProviderError, NotFound
from kamistream.core.models import (
    AudioType, AudioAvailability, Episode, OutcomeStatus, ProviderOutcome, SearchCandidate
)
from kamistream.services.reconciler import episode_reconciler
from kamistream.services.resolver import title_resolver
from kamistream.utils.fetcher import RateLimitedFetcher, fetcher as default_fetcher
from kamistream.utils.helpers import parse_aired, parse_duration_minutes, parse_episode_number
from kamistream.utils.logger import provider_logger

# ===========================
# Audio Modes
# ===========================
AUDIO_DUAL = "dual"
AUDIO_SINGLE = "single"


# ===========================
# Base Provider Class
# ===========================
class BaseProvider(ABC):
    """Common contract for every episode provider.

    Subclasses implement ``search`` and ``fetch_episodes`` and may raise
    freely; ``resolve`` and ``get_episodes`` are the boundary the engine
    calls and always return a ``ProviderOutcome``.
    """

    name: str = ""
    label: str = ""
    audio_mode: str = AUDIO_SINGLE
    supports_dub: bool = True

    def __init__(self, fetcher: Optional[RateLimitedFetcher] = None, base_url: Optional[str] = None):
        self.fetcher = fetcher or default_fetcher
        self._base_url = base_url

    @property
    def base_url(self) -> Optional[str]:
        return self._base_url if self._base_url is not None else settings.CONSUMET_API_URL

    def is_configured(self) -> bool:
        return bool(self.base_url)

    def fetches_both_tracks(self) -> bool:
        return self.audio_mode == AUDIO_SINGLE and self.supports_dub

    @abstractmethod
    async def search(self, query: str) -> List[SearchCandidate]:
        pass

    @abstractmethod
    async def fetch_episodes(self, provider_media_id: str, audio: AudioType) -> List[Episode]:
        pass

    # ===========================
    # Engine Boundary
    # ===========================
    async def resolve(self, title: str, canonical_id: Optional[int] = None) -> ProviderOutcome:
        if not self.is_configured():
            provider_logger.debug(f"[{self.name}] Not configured")
            return self._outcome(OutcomeStatus.not_found, error="Provider not configured")

        try:
            candidate = await title_resolver.resolve(self, title)
            if not candidate:
                raise NotFound(self.name, title)
            return self._outcome(OutcomeStatus.ok, provider_media_id=candidate.id)
        except NotFound as e:
            provider_logger.debug(f"[{self.name}] {e}")
            return self._outcome(OutcomeStatus.not_found, error=str(e))
        except Exception as e:
            return self._failure(e, f"resolve '{title}'")

    async def get_episodes(self, provider_media_id: str, audio: Optional[AudioType] = None) -> ProviderOutcome:
        audio = audio or AudioType(settings.DEFAULT_AUDIO)

        if self.fetches_both_tracks():
            return await self._get_both_tracks(provider_media_id, audio)

        try:
            episodes = await self.fetch_episodes(provider_media_id, audio)
            provider_logger.debug(f"[{self.name}] {len(episodes)} episodes for {provider_media_id} ({audio.value})")
            return self._outcome(OutcomeStatus.ok, episodes=episodes, provider_media_id=provider_media_id)
        except Exception as e:
            return self._failure(e, f"episodes {provider_media_id}", provider_media_id)

    async def _get_both_tracks(self, provider_media_id: str, audio: AudioType) -> ProviderOutcome:
        tracks = [audio, AudioType.sub if audio == AudioType.dub else AudioType.dub]
        results = await asyncio.gather(
            *[self.fetch_episodes(provider_media_id, track) for track in tracks],
            return_exceptions=True
        )

        episode_sets = []
        for track, result in zip(tracks, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                provider_logger.debug(f"[{self.name}] {track.value} track failed for {provider_media_id}: {type(result).__name__}")
                continue
            episode_sets.append(result)

        # Both tracks failed
        if not episode_sets:
            return self._failure(results[0], f"episodes {provider_media_id}", provider_media_id)

        merged = episode_reconciler.merge(None, episode_sets, providers=[self.name])
        provider_logger.debug(f"[{self.name}] {len(merged)} episodes for {provider_media_id} ({' + '.join(t.value for t in tracks)})")
        return self._outcome(OutcomeStatus.ok, episodes=merged.episodes, provider_media_id=provider_media_id)

    async def resolve_and_fetch(self, title: str, canonical_id: Optional[int], audio: AudioType) -> ProviderOutcome:
        resolved = await self.resolve(title, canonical_id)
        if not resolved.ok:
            return resolved
        return await self.get_episodes(resolved.provider_media_id, audio)

    # ===========================
    # Normalization Helpers
    # ===========================
    def audio_for(self, raw: Dict[str, Any], audio: AudioType) -> AudioAvailability:
        if self.audio_mode == AUDIO_DUAL:
            return AudioAvailability(sub=self._flag(raw.get("isSubbed")), dub=self._flag(raw.get("isDubbed")))

        if not self.supports_dub:
            return AudioAvailability(sub=True, dub=False)
        if audio == AudioType.dub:
            return AudioAvailability(sub=None, dub=True)
        return AudioAvailability(sub=True, dub=None)

    def build_episode(self, raw: Dict[str, Any], audio: AudioType, fallback_id: Optional[str] = None) -> Episode:
        number = parse_episode_number(raw.get("number"))
        episode_id = str(raw.get("id") or fallback_id or f"{self.name}-{raw.get('number')}")

        return Episode(
            id=episode_id,
            number=number,
            title=raw.get("title") or None,
            aired_at=parse_aired(raw.get("aired") or raw.get("airDate") or raw.get("createdAt")),
            duration_minutes=parse_duration_minutes(raw.get("duration")),
            is_filler=bool(raw.get("isFiller") or False),
            is_recap=bool(raw.get("isRecap") or False),
            image=raw.get("image") or None,
            source_provider=self.name,
            audio=self.audio_for(raw, audio),
            provider_refs={self.name: episode_id}
        )

    def build_episodes(self, raw_episodes: Any, audio: AudioType) -> List[Episode]:
        if not isinstance(raw_episodes, list):
            raise ProviderError(self.name, "episode list missing from response")

        episodes = []
        for raw in raw_episodes:
            if not isinstance(raw, dict):
                provider_logger.warning(f"[{self.name}] Skipping malformed episode entry: {type(raw).__name__}")
                continue
            episodes.append(self.build_episode(raw, audio))
        return episodes

    @staticmethod
    def build_candidates(results: Any) -> List[SearchCandidate]:
        candidates = []
        if not isinstance(results, list):
            return candidates

        for result in results:
            if not isinstance(result, dict) or not result.get("id"):
                continue
            title = result.get("title")
            if isinstance(title, dict):
                title = title.get("english") or title.get("romaji") or title.get("userPreferred") or ""
            candidates.append(SearchCandidate(
                id=str(result["id"]),
                title=str(title or ""),
                type=result.get("type")
            ))
        return candidates

    @staticmethod
    def _flag(value: Any) -> Optional[bool]:
        if value is None:
            return None
        return bool(value)

    # ===========================
    # Outcome Helpers
    # ===========================
    def _outcome(self, status: OutcomeStatus, **kwargs) -> ProviderOutcome:
        return ProviderOutcome(provider=self.name, status=status, **kwargs)

    def _failure(self, error: Exception, action: str, provider_media_id: Optional[str] = None) -> ProviderOutcome:
        if isinstance(error, ProviderUnavailable):
            provider_logger.error(f"[{self.name}] Unavailable during {action}: {error}")
            status = OutcomeStatus.unavailable
        else:
            provider_logger.error(f"[{self.name}] {action} failed: {type(error).__name__}")
            status = OutcomeStatus.error

        return self._outcome(status, provider_media_id=provider_media_id, error=str(error) or type(error).__name__)


# ===========================
# Absent Provider
# ===========================
class MissingProvider(BaseProvider):
    """Stands in for a provider name nobody registered; never finds anything."""

    def __init__(self, name: str):
        super().__init__()
        self.name = name
        self.label = name

    def is_configured(self) -> bool:
        return False

    async def search(self, query: str) -> List[SearchCandidate]:
        return []

    async def fetch_episodes(self, provider_media_id: str, audio: AudioType) -> List[Episode]:
        return []

    async def get_episodes(self, provider_media_id: str, audio: Optional[AudioType] = None) -> ProviderOutcome:
        return self._outcome(OutcomeStatus.not_found, error=f"Unknown provider '{self.name}'")
