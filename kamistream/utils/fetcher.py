import asyncio
from typing import Any, Awaitable, Callable, Optional

import httpx

from kamistream.config.settings import settings
from kamistream.core.errors import ProviderUnavailable, ProviderHTTPError
from kamistream.utils.http_client import http_client
from kamistream.utils.logger import fetcher_logger

# ===========================
# Constants
# ===========================
THROTTLE_STATUS = 429


# ===========================
# Rate-Limited Fetcher Class
# ===========================
class RateLimitedFetcher:
    """Outbound HTTP with bounded exponential backoff on throttling.

    Only throttling responses are retried: a 429, or a 503 carrying a
    ``Retry-After`` header. The delay before retry ``n`` (0-based) is
    ``2 ** n * base_delay`` and at most ``max_attempts`` requests are made
    before ``ProviderUnavailable`` is raised. Every other HTTP error raises
    ``ProviderHTTPError`` on the first response.
    """

    def __init__(
        self,
        client=None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self._client = client if client is not None else http_client
        self.max_attempts = max_attempts if max_attempts is not None else settings.FETCH_MAX_ATTEMPTS
        self.base_delay = base_delay if base_delay is not None else settings.FETCH_BASE_DELAY
        self._sleep = sleep

    @staticmethod
    def is_throttled(response: httpx.Response) -> bool:
        if response.status_code == THROTTLE_STATUS:
            return True
        return response.status_code == 503 and "retry-after" in response.headers

    def backoff_delay(self, attempt: int) -> float:
        return (2 ** attempt) * self.base_delay

    async def fetch(self, method: str, url: str, **kwargs) -> httpx.Response:
        last_status = None

        for attempt in range(self.max_attempts):
            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.TransportError as e:
                fetcher_logger.error(f"{method} {url} transport error: {type(e).__name__}")
                raise ProviderUnavailable(f"{url} unreachable: {type(e).__name__}", attempts=attempt + 1) from e

            if not self.is_throttled(response):
                if response.status_code >= 400:
                    fetcher_logger.debug(f"HTTP {response.status_code} - {method} {url}")
                    raise ProviderHTTPError(f"HTTP {response.status_code} from {url}", response.status_code)
                return response

            last_status = response.status_code
            if attempt + 1 >= self.max_attempts:
                break

            delay = self.backoff_delay(attempt)
            fetcher_logger.debug(f"HTTP {response.status_code} - Retry {attempt + 1}/{self.max_attempts - 1} in {delay:.1f}s")
            await self._sleep(delay)

        fetcher_logger.error(f"HTTP {last_status} - Max attempts ({self.max_attempts}) for {url}")
        raise ProviderUnavailable(
            f"{url} throttled after {self.max_attempts} attempts",
            attempts=self.max_attempts,
            status_code=last_status
        )

    async def get_json(self, url: str, **kwargs) -> Any:
        response = await self.fetch("GET", url, **kwargs)
        return response.json()

    async def post_json(self, url: str, **kwargs) -> Any:
        response = await self.fetch("POST", url, **kwargs)
        return response.json()


# ===========================
# Global Fetcher Instance
# ===========================
fetcher = RateLimitedFetcher()
