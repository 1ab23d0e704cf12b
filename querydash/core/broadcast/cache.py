"""
Result cache for resolved natural-language queries.

Talks to an Upstash-style Redis REST endpoint: every command is a JSON array
POSTed to the base URL with a bearer token, and the reply is either
{"result": ...} or {"error": "..."}.

The cache is an optimisation only. If it is not configured it stays disabled
for the life of the process, and any backend failure is logged and treated as
a miss so queries always fall through to live execution.
"""

import hashlib
import logging
from typing import Any, List, Optional

import httpx

from querydash.core.broadcast.errors import CacheError

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300
REQUEST_TIMEOUT_SECONDS = 2.0


def normalize_query_text(text: str) -> str:
    return text.strip().lower()


def cache_key(dashboard_id: str, text: str) -> str:
    """Deterministic key from the dashboard and the normalized query text."""
    digest = hashlib.sha256(normalize_query_text(text).encode("utf-8")).hexdigest()
    return f"query:{dashboard_id}:{digest}"


class ResultCache:
    def __init__(
        self,
        url: Optional[str] = None,
        token: Optional[str] = None,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url.rstrip("/") if url else None
        self.token = token
        self.default_ttl = default_ttl if default_ttl > 0 else DEFAULT_TTL_SECONDS
        # Decided once: no per-call connectivity probing
        self.enabled = bool(self.url and self.token)
        self._client = client
        self._owns_client = client is None

        if self.enabled:
            logger.info("Result cache enabled (%s)", self.url)
        else:
            logger.warning("Result cache disabled (REDIS_URL/REDIS_TOKEN not configured)")

    async def get(self, key: str) -> Optional[str]:
        if not self.enabled:
            return None
        try:
            value = await self._command(["GET", key])
        except CacheError as error:
            logger.warning("Cache GET failed for %s, treating as miss: %s", key, error)
            return None

        if value is None:
            logger.debug("Cache MISS %s", key)
            return None
        logger.debug("Cache HIT %s", key)
        return str(value)

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        if not self.enabled:
            return
        ttl = ttl_seconds if ttl_seconds and ttl_seconds > 0 else self.default_ttl
        try:
            await self._command(["SET", key, value, "EX", ttl])
            logger.debug("Cache SET %s ttl=%ss", key, ttl)
        except CacheError as error:
            logger.warning("Cache SET failed for %s: %s", key, error)

    async def delete(self, key: str) -> None:
        if not self.enabled:
            return
        try:
            await self._command(["DEL", key])
            logger.debug("Cache DEL %s", key)
        except CacheError as error:
            logger.warning("Cache DEL failed for %s: %s", key, error)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS)
        return self._client

    async def _command(self, command: List[Any]) -> Any:
        try:
            response = await self._get_client().post(
                self.url,
                json=command,
                headers={"Authorization": f"Bearer {self.token}"},
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as error:
            raise CacheError(str(error)) from error

        if not isinstance(body, dict):
            raise CacheError(f"Unexpected reply: {body!r}")
        if "error" in body:
            raise CacheError(body["error"])
        return body.get("result")
