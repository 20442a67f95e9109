from typing import List, Optional, Sequence

from kamistream.config.settings import settings
from kamistream.core.models import SearchCandidate
from kamistream.utils.helpers import simplify_title
from kamistream.utils.logger import provider_logger

# ===========================
# Match Tiers
# ===========================
TIER_EXACT = "exact"
TIER_NORMALIZED = "normalized"
TIER_SUBSTRING = "substring"
TIER_FALLBACK = "fallback"


def match_tier(title: str, candidate: SearchCandidate) -> Optional[str]:
    wanted = (title or "").strip().lower()
    found = (candidate.title or "").strip().lower()

    if not wanted or not found:
        return None

    if wanted == found:
        return TIER_EXACT

    if simplify_title(wanted) == simplify_title(found):
        return TIER_NORMALIZED

    if wanted in found or found in wanted:
        return TIER_SUBSTRING

    return None


# ===========================
# Title Matching
# ===========================
def match_title(
    title: str,
    candidates: Sequence[SearchCandidate],
    series_type: Optional[str] = None
) -> Optional[SearchCandidate]:
    if not candidates:
        return None

    wanted = (title or "").strip().lower()
    series_type = (series_type or settings.SERIES_TYPE).lower()

    for candidate in candidates:
        if (candidate.title or "").strip().lower() == wanted:
            return candidate

    simplified = simplify_title(wanted)
    if simplified:
        for candidate in candidates:
            if simplify_title(candidate.title) == simplified:
                return candidate

    if wanted:
        for candidate in candidates:
            found = (candidate.title or "").strip().lower()
            if found and (wanted in found or found in wanted):
                return candidate

    for candidate in candidates:
        if (candidate.type or "").lower() == series_type:
            return candidate

    return candidates[0]


# ===========================
# Title Resolver Class
# ===========================
class TitleResolver:

    def __init__(self, series_type: Optional[str] = None):
        self.series_type = series_type

    def best_match(self, title: str, candidates: List[SearchCandidate]) -> Optional[SearchCandidate]:
        selected = match_title(title, candidates, self.series_type)
        if selected:
            tier = match_tier(title, selected) or TIER_FALLBACK
            provider_logger.debug(f"Matched '{title}' -> '{selected.title}' [{tier}] ({len(candidates)} candidates)")
        return selected

    async def resolve(self, provider, title: str) -> Optional[SearchCandidate]:
        candidates = await provider.search(title)
        return self.best_match(title, candidates)


# ===========================
# Singleton Instance
# ===========================
title_resolver = TitleResolver()
