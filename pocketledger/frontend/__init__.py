"""Client side: HTTP client for the API and the optimistic state cache."""
from .api_client import ApiClient, ApiError
from .state_cache import CacheService, LedgerState

__all__ = ["ApiClient", "ApiError", "CacheService", "LedgerState"]
