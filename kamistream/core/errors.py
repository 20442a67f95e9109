from typing import Optional


# ===========================
# Base Error
# ===========================
class KamiStreamError(Exception):
    pass


# ===========================
# Fetcher Errors
# ===========================
class ProviderUnavailable(KamiStreamError):
    """Transient failure: throttled past the retry budget or unreachable."""

    def __init__(self, message: str, attempts: int = 0, status_code: Optional[int] = None):
        super().__init__(message)
        self.attempts = attempts
        self.status_code = status_code


class ProviderHTTPError(KamiStreamError):
    """Non-retryable HTTP status returned by an upstream API."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


# ===========================
# Adapter Errors
# ===========================
class ProviderError(KamiStreamError):
    """An adapter gave up after a parse or logic failure."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class NotFound(KamiStreamError):
    """No catalog entry matched. Expected, not an anomaly."""

    def __init__(self, provider: str, title: str):
        super().__init__(f"{provider}: no match for '{title}'")
        self.provider = provider
        self.title = title


# ===========================
# Engine Errors
# ===========================
class ReconciliationEmpty(KamiStreamError):
    """Every source returned nothing for a session."""

    def __init__(self, last_provider: Optional[str], reason: Optional[str] = None):
        if not reason:
            if last_provider:
                reason = f"No episodes found on {last_provider}"
            else:
                reason = "No provider configured for this title"
        super().__init__(reason)
        self.last_provider = last_provider
        self.reason = reason


class MetadataError(KamiStreamError):
    pass
