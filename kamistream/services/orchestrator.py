import asyncio
from typing import Dict, List, Optional

from pydantic import BaseModel

from kamistream.config.settings import settings
from kamistream.core.errors import ReconciliationEmpty
from kamistream.core.models import (
    AudioType, DisplayPreference, OutcomeStatus, ProviderOutcome, ProviderPreference,
    Range, ReconciledList, SessionSnapshot, SessionState, SortOrder
)
from kamistream.providers.registry import ProviderRegistry, provider_registry
from kamistream.services.anilist import AniListService, anilist_service
from kamistream.services.partitioner import partition, find_range_index
from kamistream.services.preferences import default_display_preference, default_provider_preference
from kamistream.services.progress import ProgressTracker, progress_tracker, next_episode
from kamistream.services.reconciler import CanonicalHint, EpisodeReconciler, episode_reconciler
from kamistream.utils.cache import EpisodeCache, episode_cache
from kamistream.utils.logger import engine_logger, session_logger


# ===========================
# Session Request
# ===========================
class SessionRequest(BaseModel):
    media_id: int
    title: str
    provider: Optional[str] = None
    audio: Optional[AudioType] = None
    max_known_episode: Optional[int] = None


# ===========================
# Episode Session
# ===========================
class EpisodeSession:

    def __init__(self, media_id: int, title: str, preference: ProviderPreference, display: DisplayPreference):
        self.media_id = media_id
        self.title = title
        self.preference = preference
        self.display = display
        self.provider = preference.default_provider
        self.audio = preference.preferred_audio
        self.max_known_episode: Optional[int] = None

        self.state = SessionState.idle
        self.history: List[SessionState] = [SessionState.idle]
        self.episodes: Optional[ReconciledList] = None
        self.ranges: List[Range] = []
        self.progress = 0
        self.outcomes: List[ProviderOutcome] = []
        self.reason: Optional[str] = None
        self.version = 0
        self.task: Optional[asyncio.Task] = None
        self.log = session_logger(media_id)

    @property
    def sort_order(self) -> SortOrder:
        return self.display.sort_order

    def same_target(self, provider: str, audio: AudioType) -> bool:
        return self.provider == provider and self.audio == audio


# ===========================
# Orchestrator Class
# ===========================
class EpisodeOrchestrator:
    """Entry point of the engine, one session per media id.

    A run goes cache -> resolve -> fetch -> reconcile -> cache -> partition.
    Each run is stamped with the session version when it starts; a run
    whose version is no longer current drops its results.
    """

    def __init__(
        self,
        registry: Optional[ProviderRegistry] = None,
        cache: Optional[EpisodeCache] = None,
        progress: Optional[ProgressTracker] = None,
        reconciler: Optional[EpisodeReconciler] = None,
        metadata: Optional[AniListService] = None,
        use_canonical_count: Optional[bool] = None
    ):
        self.registry = registry or provider_registry
        self.cache = cache or episode_cache
        self.progress = progress or progress_tracker
        self.reconciler = reconciler or episode_reconciler
        self.metadata = metadata or anilist_service
        self.use_canonical_count = settings.USE_CANONICAL_COUNT if use_canonical_count is None else use_canonical_count
        self.sessions: Dict[int, EpisodeSession] = {}

    # ===========================
    # Public Operations
    # ===========================
    async def open(
        self,
        request: SessionRequest,
        preference: Optional[ProviderPreference] = None,
        display: Optional[DisplayPreference] = None,
        wait: Optional[bool] = True,
        refresh: bool = False
    ) -> SessionSnapshot:
        """Open or reuse the session for a media id.

        ``wait=None`` returns the cached list at once and refreshes in the
        background, and waits for the run only when nothing is cached.
        """
        preference = preference or default_provider_preference()
        display = display or default_display_preference()
        provider = request.provider or preference.default_provider
        audio = request.audio or preference.preferred_audio

        session = self.sessions.get(request.media_id)
        if session is None:
            session = EpisodeSession(request.media_id, request.title, preference, display)
            self.sessions[request.media_id] = session
            engine_logger.debug(f"New session {request.media_id}: '{request.title}'")
        elif not refresh and session.state == SessionState.ready and session.same_target(provider, audio):
            self._apply_display(session, display)
            return self.snapshot(request.media_id)

        session.title = request.title or session.title
        session.preference = preference
        session.provider = provider
        session.audio = audio
        session.max_known_episode = request.max_known_episode
        self._apply_display(session, display)

        if session.episodes is None:
            cached = await self.cache.load(request.media_id)
            if cached is not None and cached.episodes:
                self._swap(session, cached)
                session.progress = await self.progress.local_progress(request.media_id)
                self._transition(session, SessionState.cache_hit)

        if wait is None:
            wait = session.episodes is None

        return await self._start(session, wait)

    async def switch(
        self,
        media_id: int,
        provider: Optional[str] = None,
        audio: Optional[AudioType] = None,
        wait: bool = True
    ) -> SessionSnapshot:
        session = self._session(media_id)
        session.provider = provider or session.provider
        session.audio = audio or session.audio
        session.log.info(f"Switching to {session.provider} ({session.audio.value})")
        return await self._start(session, wait)

    async def refresh(self, media_id: int, wait: bool = True) -> SessionSnapshot:
        return await self._start(self._session(media_id), wait)

    async def record_progress(self, media_id: int, episode_number: int) -> bool:
        accepted = await self.progress.record_progress(media_id, episode_number)
        session = self.sessions.get(media_id)
        if accepted and session is not None:
            session.progress = int(episode_number)
        return accepted

    def update_display(self, media_id: int, display: DisplayPreference) -> SessionSnapshot:
        session = self._session(media_id)
        self._apply_display(session, display)
        return self.snapshot(media_id)

    def snapshot(self, media_id: int) -> SessionSnapshot:
        session = self._session(media_id)
        upcoming = next_episode(session.episodes, session.progress)

        alternates = []
        if session.state == SessionState.failed:
            alternates = [
                name for name in self.registry.names()
                if name != session.provider and self.registry.get(name).is_configured()
            ]

        return SessionSnapshot(
            media_id=session.media_id,
            title=session.title,
            state=session.state,
            provider=session.provider,
            audio=session.audio,
            episodes=session.episodes,
            ranges=session.ranges,
            active_range=find_range_index(session.ranges, upcoming.number) if upcoming else 0,
            progress=session.progress,
            next_episode=upcoming,
            outcomes=session.outcomes,
            reason=session.reason,
            alternate_providers=alternates,
            version=session.version
        )

    async def close(self, media_id: int):
        session = self.sessions.pop(media_id, None)
        if session is None:
            return
        engine_logger.debug(f"Closing session {media_id}")

        session.version += 1
        if session.task and not session.task.done():
            session.task.cancel()
            try:
                await session.task
            except asyncio.CancelledError:
                pass

    # ===========================
    # Run Sequencing
    # ===========================
    async def _start(self, session: EpisodeSession, wait: bool) -> SessionSnapshot:
        session.version += 1
        version = session.version

        if wait:
            await self._run(session, version)
        else:
            session.task = asyncio.create_task(self._run(session, version))

        return self.snapshot(session.media_id)

    async def _run(self, session: EpisodeSession, version: int):
        try:
            await self._resolve_and_reconcile(session, version)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            session.log.error(f"Run failed: {type(e).__name__}")
            if self._current(session, version):
                session.reason = f"Unexpected error while loading episodes ({type(e).__name__})"
                self._transition(session, SessionState.failed)

    async def _resolve_and_reconcile(self, session: EpisodeSession, version: int):
        self._transition(session, SessionState.resolving)

        providers = self.registry.select(
            session.provider,
            session.preference.provider_priority,
            session.preference.auto_select,
            session.audio
        )
        session.log.debug(f"Fetching from {', '.join(p.name for p in providers)}")

        fetches = [
            provider.resolve_and_fetch(session.title, session.media_id, session.audio)
            for provider in providers
        ]
        results, progress, canonical = await asyncio.gather(
            asyncio.gather(*fetches, return_exceptions=True),
            self.progress.fetch_progress(session.media_id),
            self._canonical_count(session)
        )

        if not self._current(session, version):
            session.log.debug(f"Discarding superseded run v{version}")
            return

        outcomes = []
        for provider, result in zip(providers, results):
            if isinstance(result, ProviderOutcome):
                outcomes.append(result)
            else:
                session.log.error(f"[{provider.name}] Escaped adapter boundary: {type(result).__name__}")
                outcomes.append(ProviderOutcome(provider=provider.name, status=OutcomeStatus.error, error=str(result)))

        session.outcomes = outcomes
        session.progress = progress

        successes = [outcome for outcome in outcomes if outcome.ok and outcome.episodes]
        last_provider = providers[-1].name if providers else None

        if not successes:
            self._fail(session, ReconciliationEmpty(last_provider, self._failure_reason(outcomes, last_provider)))
            return

        self._transition(session, SessionState.reconciling)
        merged = self.reconciler.merge(
            CanonicalHint(max_known_episode=canonical),
            [outcome.episodes for outcome in successes],
            sort_order=session.sort_order,
            media_id=session.media_id,
            providers=[outcome.provider for outcome in successes]
        )

        if not merged.episodes:
            self._fail(session, ReconciliationEmpty(last_provider))
            return

        if not self._current(session, version):
            session.log.debug(f"Discarding superseded run v{version}")
            return

        await self.cache.save(session.media_id, merged)

        if not self._current(session, version):
            session.log.debug(f"Superseded while caching, leaving v{version} unapplied")
            return

        self._swap(session, merged)
        session.reason = None
        self._transition(session, SessionState.ready)
        session.log.info(f"{len(merged)} episodes from {', '.join(merged.providers)}")

    async def _canonical_count(self, session: EpisodeSession) -> Optional[int]:
        if session.max_known_episode:
            return session.max_known_episode
        if not self.use_canonical_count:
            return None
        try:
            return await self.metadata.fetch_episode_count(session.media_id)
        except Exception as e:
            session.log.debug(f"Canonical count unavailable: {type(e).__name__}")
            return None

    # ===========================
    # State Helpers
    # ===========================
    def _session(self, media_id: int) -> EpisodeSession:
        session = self.sessions.get(media_id)
        if session is None:
            raise KeyError(media_id)
        return session

    @staticmethod
    def _current(session: EpisodeSession, version: int) -> bool:
        return session.version == version

    @staticmethod
    def _transition(session: EpisodeSession, state: SessionState):
        session.state = state
        session.history.append(state)
        session.log.debug(f"State: {state.value}")

    def _swap(self, session: EpisodeSession, episode_list: ReconciledList):
        session.episodes = episode_list
        session.ranges = partition(episode_list, session.display.page_size, session.sort_order)

    def _apply_display(self, session: EpisodeSession, display: DisplayPreference):
        changed = (
            display.sort_order != session.display.sort_order
            or display.page_size != session.display.page_size
        )
        session.display = display
        if changed and session.episodes is not None:
            session.ranges = partition(session.episodes, display.page_size, display.sort_order)

    def _fail(self, session: EpisodeSession, error: ReconciliationEmpty):
        session.log.info(error.reason)
        session.reason = error.reason
        self._transition(session, SessionState.failed)

    @staticmethod
    def _failure_reason(outcomes: List[ProviderOutcome], last_provider: Optional[str]) -> Optional[str]:
        if not outcomes or not last_provider:
            return None

        last = outcomes[-1]
        if last.status == OutcomeStatus.not_found:
            return f"'{last_provider}' has no match for this title"
        if last.status == OutcomeStatus.unavailable:
            return f"'{last_provider}' is rate limited or unreachable, try again later"
        if last.status == OutcomeStatus.error:
            return f"'{last_provider}' returned an error"
        return None


# ===========================
# Singleton Instance
# ===========================
episode_orchestrator = EpisodeOrchestrator()
