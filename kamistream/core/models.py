import time
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Union

from pydantic import BaseModel, ConfigDict, Field

EpisodeNumber = Union[int, float]


# ===========================
# Enums
# ===========================
class AudioType(str, Enum):
    sub = "sub"
    dub = "dub"


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


class SessionState(str, Enum):
    idle = "idle"
    cache_hit = "cache_hit"
    resolving = "resolving"
    reconciling = "reconciling"
    ready = "ready"
    failed = "failed"


class OutcomeStatus(str, Enum):
    ok = "ok"
    not_found = "not_found"
    error = "error"
    unavailable = "unavailable"


# ===========================
# Audio Availability
# ===========================
def _union_flag(left: Optional[bool], right: Optional[bool]) -> Optional[bool]:
    if left is True or right is True:
        return True
    if left is False or right is False:
        return False
    return None


class AudioAvailability(BaseModel):
    model_config = ConfigDict(frozen=True)

    sub: Optional[bool] = None
    dub: Optional[bool] = None

    def union(self, other: "AudioAvailability") -> "AudioAvailability":
        return AudioAvailability(
            sub=_union_flag(self.sub, other.sub),
            dub=_union_flag(self.dub, other.dub)
        )

    def has(self, audio: AudioType) -> Optional[bool]:
        return self.sub if audio == AudioType.sub else self.dub


# ===========================
# Episode
# ===========================
class Episode(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    number: Optional[EpisodeNumber] = None
    title: Optional[str] = None
    aired_at: Optional[datetime] = None
    duration_minutes: Optional[float] = None
    is_filler: bool = False
    is_recap: bool = False
    image: Optional[str] = None
    source_provider: str
    audio: AudioAvailability = Field(default_factory=AudioAvailability)
    provider_refs: Dict[str, str] = Field(default_factory=dict)

    @property
    def display_title(self) -> str:
        return self.title or f"Episode {self.number}"


# ===========================
# Reconciled List
# ===========================
class ReconciledList(BaseModel):
    model_config = ConfigDict(frozen=True)

    media_id: int
    episodes: List[Episode] = Field(default_factory=list)
    providers: List[str] = Field(default_factory=list)
    sort_order: SortOrder = SortOrder.asc
    reconciled_at: float = Field(default_factory=time.time)

    def __len__(self) -> int:
        return len(self.episodes)

    def numbers(self) -> List[EpisodeNumber]:
        return [episode.number for episode in self.episodes]

    def max_number(self) -> Optional[EpisodeNumber]:
        if not self.episodes:
            return None
        return max(episode.number for episode in self.episodes)

    def get(self, number: EpisodeNumber) -> Optional[Episode]:
        for episode in self.episodes:
            if episode.number == number:
                return episode
        return None

    def ordered(self, sort_order: SortOrder) -> List[Episode]:
        return sorted(self.episodes, key=lambda ep: ep.number, reverse=sort_order == SortOrder.desc)


# ===========================
# Range
# ===========================
class Range(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    start: EpisodeNumber
    end: EpisodeNumber
    episodes: List[Episode]


# ===========================
# Provider Data
# ===========================
class SearchCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    type: Optional[str] = None


class ProviderOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: str
    status: OutcomeStatus
    episodes: List[Episode] = Field(default_factory=list)
    provider_media_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.ok


# ===========================
# Preferences
# ===========================
class ProviderPreference(BaseModel):
    default_provider: str = "zoro"
    preferred_audio: AudioType = AudioType.sub
    provider_priority: List[str] = Field(default_factory=list)
    auto_select: bool = True


class DisplayPreference(BaseModel):
    column_count: int = Field(default=1, ge=1, le=3)
    sort_order: SortOrder = SortOrder.asc
    page_size: int = Field(default=24, ge=1)


# ===========================
# Session Snapshot
# ===========================
class SessionSnapshot(BaseModel):
    media_id: int
    title: str
    state: SessionState
    provider: Optional[str] = None
    audio: AudioType = AudioType.sub
    episodes: Optional[ReconciledList] = None
    ranges: List[Range] = Field(default_factory=list)
    active_range: int = 0
    progress: int = 0
    next_episode: Optional[Episode] = None
    outcomes: List[ProviderOutcome] = Field(default_factory=list)
    reason: Optional[str] = None
    alternate_providers: List[str] = Field(default_factory=list)
    version: int = 0
