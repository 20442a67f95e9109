from typing import Optional, Dict

import httpx

from kamistream.config.settings import settings

# ===========================
# HTTP Client Singleton
# ===========================
class HTTPClient:
    """One pooled AsyncClient shared by every provider and the AniList client."""

    _instance: Optional['HTTPClient'] = None
    _client: Optional[httpx.AsyncClient] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @staticmethod
    def default_headers() -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": f"{settings.ADDON_NAME}/{settings.VERSION}",
        }

    async def get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            client_args = {
                "timeout": httpx.Timeout(float(settings.HTTP_TIMEOUT), connect=float(settings.METADATA_TIMEOUT)),
                "follow_redirects": True,
                "headers": self.default_headers(),
                "limits": httpx.Limits(
                    max_connections=settings.HTTP_MAX_CONNECTIONS,
                    max_keepalive_connections=settings.HTTP_MAX_CONNECTIONS
                ),
            }
            if settings.PROXY_URL:
                client_args["proxy"] = settings.PROXY_URL
            self._client = httpx.AsyncClient(**client_args)
        return self._client

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        client = await self.get_client()
        return await client.request(method, url, **kwargs)

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

# ===========================
# Global HTTP Client Instance
# ===========================
http_client = HTTPClient()
