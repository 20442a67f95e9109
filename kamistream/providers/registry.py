from typing import Dict, List, Iterable, Optional

from kamistream.core.models import AudioType
from kamistream.providers.anilist_meta import anilist_meta_provider
from kamistream.providers.animepahe import animepahe_provider
from kamistream.providers.base import BaseProvider, MissingProvider
from kamistream.providers.zoro import zoro_provider


# ===========================
# Provider Registry Class
# ===========================
class ProviderRegistry:

    def __init__(self, providers: Optional[Iterable[BaseProvider]] = None):
        self._providers: Dict[str, BaseProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: BaseProvider):
        self._providers[provider.name] = provider

    def get(self, name: str) -> BaseProvider:
        return self._providers.get(name) or MissingProvider(name)

    def names(self) -> List[str]:
        return list(self._providers.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._providers

    def select(
        self,
        chosen: str,
        priority: List[str],
        auto_select: bool,
        audio: AudioType
    ) -> List[BaseProvider]:
        if not auto_select:
            return [self.get(chosen)]

        ordered = [chosen] + [name for name in priority if name != chosen]
        ordered += [name for name in self._providers if name not in ordered]

        selected = []
        for name in ordered:
            provider = self.get(name)
            if audio == AudioType.dub and not provider.supports_dub and name != chosen:
                continue
            selected.append(provider)
        return selected


# ===========================
# Global Registry Instance
# ===========================
provider_registry = ProviderRegistry([animepahe_provider, zoro_provider, anilist_meta_provider])
