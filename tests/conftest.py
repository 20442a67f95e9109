from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from kamistream.core.models import AudioAvailability, Episode  # noqa: E402
from kamistream.utils.database import MemoryStore  # noqa: E402


@pytest.fixture()
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def make_episode() -> Callable[..., Episode]:
    def _make(
        number,
        provider: str = "animepahe",
        sub: Optional[bool] = True,
        dub: Optional[bool] = None,
        **overrides: object,
    ) -> Episode:
        episode_id = overrides.pop("id", f"{provider}-{number}")
        fields = {
            "id": episode_id,
            "number": number,
            "title": f"Episode {number}",
            "source_provider": provider,
            "audio": AudioAvailability(sub=sub, dub=dub),
            "provider_refs": {provider: episode_id},
        }
        fields.update(overrides)
        return Episode(**fields)

    return _make


@pytest.fixture()
def metadata() -> MagicMock:
    service = MagicMock()
    service.fetch_progress = AsyncMock(return_value=0)
    service.save_progress = AsyncMock(return_value=0)
    service.fetch_episode_count = AsyncMock(return_value=None)
    return service
