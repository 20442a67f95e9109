from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel

from kamistream.core.models import (
    AudioAvailability, Episode, EpisodeNumber, ReconciledList, SortOrder
)
from kamistream.utils.helpers import parse_episode_number
from kamistream.utils.logger import reconcile_logger


# ===========================
# Canonical Hint
# ===========================
class CanonicalHint(BaseModel):
    max_known_episode: Optional[int] = None


# ===========================
# Episode Validation
# ===========================
def _valid_episodes(episodes: Sequence[Episode]) -> List[Episode]:
    valid = []
    seen = set()

    for episode in episodes:
        number = parse_episode_number(episode.number)
        if number is None:
            reconcile_logger.warning(
                f"Discarding episode '{episode.id}' from {episode.source_provider}: invalid number {episode.number!r}"
            )
            continue

        if number in seen:
            reconcile_logger.debug(f"Duplicate episode {number} from {episode.source_provider}, keeping first")
            continue

        seen.add(number)
        if number != episode.number or type(number) is not type(episode.number):
            episode = episode.model_copy(update={"number": number})
        valid.append(episode)

    return valid


# ===========================
# Episode Reconciler Class
# ===========================
class EpisodeReconciler:
    """Merges provider episode sets into one list with one entry per number.

    Sets are given in trust order and the first non-empty set is the
    primary. A later set adds numbers the map does not have yet, and
    replaces entries numbered above everything the primary knows about
    (newer content the primary has not caught up with). Otherwise the
    earlier record's fields survive. Audio flags and provider refs are
    always the union over every set that carried the number.
    """

    def merge(
        self,
        hint: Optional[CanonicalHint],
        episode_sets: Sequence[Sequence[Episode]],
        sort_order: SortOrder = SortOrder.asc,
        media_id: int = 0,
        providers: Optional[List[str]] = None
    ) -> ReconciledList:
        hint = hint or CanonicalHint()

        merged: Dict[EpisodeNumber, Episode] = {}
        audio: Dict[EpisodeNumber, AudioAvailability] = {}
        refs: Dict[EpisodeNumber, Dict[str, str]] = {}
        contributors: List[str] = []

        primary_max: Optional[EpisodeNumber] = None
        primary_seen = False
        if hint.max_known_episode:
            primary_max = hint.max_known_episode

        for episodes in episode_sets:
            valid = _valid_episodes(episodes)
            if not valid:
                continue

            for episode in valid:
                if episode.source_provider not in contributors:
                    contributors.append(episode.source_provider)

            if not primary_seen:
                primary_seen = True
                for episode in valid:
                    merged[episode.number] = episode
                    audio[episode.number] = episode.audio
                    refs[episode.number] = dict(episode.provider_refs)
                highest = max(episode.number for episode in valid)
                primary_max = highest if primary_max is None else max(primary_max, highest)
                continue

            for episode in valid:
                number = episode.number
                if number not in merged:
                    merged[number] = episode
                elif primary_max is not None and number > primary_max:
                    reconcile_logger.debug(f"Episode {number} beyond primary ({primary_max}), taking {episode.source_provider}")
                    merged[number] = episode

                audio[number] = audio[number].union(episode.audio) if number in audio else episode.audio
                episode_refs = refs.setdefault(number, {})
                for provider, native_id in episode.provider_refs.items():
                    episode_refs.setdefault(provider, native_id)

        final = [
            episode.model_copy(update={"audio": audio[number], "provider_refs": refs[number]})
            for number, episode in merged.items()
        ]
        final.sort(key=lambda ep: ep.number, reverse=sort_order == SortOrder.desc)

        reconcile_logger.debug(f"Merged {len(episode_sets)} sources into {len(final)} episodes for {media_id}")
        return ReconciledList(
            media_id=media_id,
            episodes=final,
            providers=providers if providers is not None else contributors,
            sort_order=sort_order
        )


# ===========================
# Singleton Instance
# ===========================
episode_reconciler = EpisodeReconciler()
