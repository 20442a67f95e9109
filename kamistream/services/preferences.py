from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from kamistream.config.settings import settings
from kamistream.core.models import AudioType, DisplayPreference, ProviderPreference
from kamistream.utils.database import kv_store
from kamistream.utils.helpers import PROVIDER_PREFERENCE_KEY, DISPLAY_PREFERENCE_KEY
from kamistream.utils.logger import engine_logger

PreferenceModel = TypeVar("PreferenceModel", bound=BaseModel)


# ===========================
# Defaults
# ===========================
def default_provider_preference() -> ProviderPreference:
    return ProviderPreference(
        default_provider=settings.DEFAULT_PROVIDER,
        preferred_audio=AudioType(settings.DEFAULT_AUDIO),
        provider_priority=list(settings.PROVIDER_PRIORITY),
        auto_select=True
    )


def default_display_preference() -> DisplayPreference:
    return DisplayPreference(page_size=settings.RANGE_PAGE_SIZE)


# ===========================
# Preference Store Class
# ===========================
class PreferenceStore:

    def __init__(self, store=None):
        self.store = store if store is not None else kv_store

    async def _load(self, key: str, model: Type[PreferenceModel], default: PreferenceModel) -> PreferenceModel:
        try:
            raw = await self.store.get(key)
        except Exception as e:
            engine_logger.error(f"Preference read failed ({key}): {type(e).__name__}")
            return default

        if not raw:
            return default

        try:
            return model.model_validate_json(raw)
        except ValidationError:
            engine_logger.error(f"Invalid stored preference ({key}), using defaults")
            return default

    async def load_provider(self) -> ProviderPreference:
        return await self._load(PROVIDER_PREFERENCE_KEY, ProviderPreference, default_provider_preference())

    async def save_provider(self, preference: ProviderPreference):
        await self.store.set(PROVIDER_PREFERENCE_KEY, preference.model_dump_json())

    async def load_display(self) -> DisplayPreference:
        return await self._load(DISPLAY_PREFERENCE_KEY, DisplayPreference, default_display_preference())

    async def save_display(self, preference: DisplayPreference):
        await self.store.set(DISPLAY_PREFERENCE_KEY, preference.model_dump_json())

    async def reset(self, key: Optional[str] = None):
        for stored_key in [key] if key else [PROVIDER_PREFERENCE_KEY, DISPLAY_PREFERENCE_KEY]:
            await self.store.remove(stored_key)


# ===========================
# Singleton Instance
# ===========================
preference_store = PreferenceStore()
