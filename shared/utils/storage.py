"""
shared/utils/storage.py
Object storage client for class photos.
Talks to the storage service's REST API over httpx; each call goes through
a circuit breaker so a failing storage backend degrades fast instead of
piling up slow uploads.
"""

import logging
from typing import Optional

import httpx
from pybreaker import CircuitBreaker
from starlette.concurrency import run_in_threadpool

from config.settings import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


# ── Resilience: Circuit Breaker ──────────────────────────────

class CircuitBreakerManager:
    """Manages circuit breakers for each downstream service."""

    def __init__(self):
        self.breakers = {}

    def get_breaker(self, service_name: str) -> CircuitBreaker:
        """Get or create a circuit breaker for a service."""
        if service_name not in self.breakers:
            self.breakers[service_name] = CircuitBreaker(
                fail_max=5,  # Open after 5 failures
                reset_timeout=60,  # Try again after 60 seconds
                name=service_name,
            )
        return self.breakers[service_name]


circuit_breaker_manager = CircuitBreakerManager()


# ── Client ────────────────────────────────────────────────────

class StorageClient:
    """upload-by-path and get-public-url against one bucket."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        bucket: str,
        transport: Optional[httpx.BaseTransport] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.breaker = breaker or circuit_breaker_manager.get_breaker("storage")
        self._http = httpx.Client(
            base_url=f"{self.base_url}/storage/v1",
            headers={"Authorization": f"Bearer {api_key}", "apikey": api_key},
            timeout=settings.STORAGE_TIMEOUT_SECONDS,
            transport=transport,
        )

    def _upload(self, path: str, data: bytes, content_type: str) -> str:
        response = self._http.post(
            f"/object/{self.bucket}/{path}",
            content=data,
            headers={"Content-Type": content_type, "x-upsert": "true"},
        )
        if response.status_code >= 400:
            raise StorageError(f"Upload of {path} failed with {response.status_code}: {response.text}")
        return path

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        """Store ``data`` at ``path`` in the bucket. Returns the stored path."""
        # pybreaker's call_async needs tornado, so the sync breaker and sync
        # client run together in the threadpool. Keep httpx.Client here.
        try:
            return await run_in_threadpool(self.breaker.call, self._upload, path, data, content_type)
        except (StorageError, httpx.HTTPError) as e:
            logger.error(f"Storage upload failed for {path}: {e}")
            raise

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path.lstrip('/')}"

    def close(self) -> None:
        self._http.close()


_storage_client: Optional[StorageClient] = None


def get_storage() -> StorageClient:
    """FastAPI dependency to get the storage client."""
    global _storage_client
    if _storage_client is None:
        _storage_client = StorageClient(
            settings.SUPABASE_URL, settings.SUPABASE_KEY, settings.STORAGE_BUCKET
        )
    return _storage_client


def close_storage() -> None:
    global _storage_client
    if _storage_client is not None:
        _storage_client.close()
        _storage_client = None
