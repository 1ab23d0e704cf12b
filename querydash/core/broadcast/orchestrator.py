import asyncio
import copy
import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from querydash.core.broadcast.cache import ResultCache, cache_key
from querydash.core.broadcast.errors import (
    InvalidQueryInput,
    QueryExecutionFailed,
    QueryPersistenceFailed,
)
from querydash.core.broadcast.executor import normalize_table
from querydash.core.broadcast.registry import SubscriptionRegistry, dashboard_topic
from querydash.core.security import Principal

# -----------------------------------------------------------------------------
# QUERY ORCHESTRATOR
# Purpose: validate -> cache lookup -> execute -> cache write -> persist -> broadcast
# Every successful resolution is broadcast to the dashboard topic, cached or not
# -----------------------------------------------------------------------------

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 500
DEFAULT_TIMEOUT_SECONDS = 10.0


class QueryExecutor(Protocol):
    async def execute(self, dashboard_id: str, text: str) -> Dict[str, Any]: ...


class QueryStore(Protocol):
    async def append(
        self, dashboard_id: str, text: str, result: Dict[str, Any], timestamp: int
    ) -> None: ...


@dataclass(frozen=True)
class QueryResultEnvelope:
    query_id: str
    dashboard_id: str
    data: Dict[str, Any]
    timestamp: int
    from_cache: bool

    def to_response(self) -> Dict[str, Any]:
        return {
            "queryId": self.query_id,
            "dashboardId": self.dashboard_id,
            # Callers and queued events each get their own copy of the table
            "data": copy.deepcopy(self.data),
            "fromCache": self.from_cache,
            "timestamp": self.timestamp,
        }

    def to_event(self) -> Dict[str, Any]:
        return {"type": "query-result", **self.to_response()}


def now_ms() -> int:
    return int(time.time() * 1000)


class QueryOrchestrator:
    def __init__(
        self,
        cache: ResultCache,
        executor: QueryExecutor,
        store: QueryStore,
        registry: SubscriptionRegistry,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_length: int = MAX_QUERY_LENGTH,
    ):
        self.cache = cache
        self.executor = executor
        self.store = store
        self.registry = registry
        self.timeout = timeout
        self.max_length = max_length

    async def execute_query(
        self,
        principal: Principal,
        dashboard_id: str,
        text: str,
        query_id: Optional[str] = None,
    ) -> QueryResultEnvelope:
        """
        Resolve a natural-language query for a dashboard.

        Raises InvalidQueryInput before touching the cache or the executor,
        and QueryExecutionFailed when the executor errors or times out. A
        failed run leaves no cache entry and no durable record.
        """
        dashboard_id = str(dashboard_id)
        self._validate(text)
        query_id = query_id or uuid.uuid4().hex
        key = cache_key(dashboard_id, text)

        cached = await self.cache.get(key)
        data = self._decode_cached(key, cached) if cached is not None else None

        if data is not None:
            envelope = QueryResultEnvelope(
                query_id=query_id,
                dashboard_id=dashboard_id,
                data=data,
                timestamp=now_ms(),
                from_cache=True,
            )
            logger.info(
                "Query %s for dashboard %s served from cache (user %s)",
                query_id,
                dashboard_id,
                principal.id,
            )
        else:
            data = await self._run_executor(query_id, dashboard_id, text)
            envelope = QueryResultEnvelope(
                query_id=query_id,
                dashboard_id=dashboard_id,
                data=data,
                timestamp=now_ms(),
                from_cache=False,
            )
            # Cache only after a confirmed result
            await self.cache.set(key, json.dumps(data))
            await self._persist(envelope, text)
            logger.info(
                "Query %s for dashboard %s executed (user %s, %d rows)",
                query_id,
                dashboard_id,
                principal.id,
                len(data["rows"]),
            )

        recipients = self.registry.publish(dashboard_topic(dashboard_id), envelope.to_event())
        logger.debug("Query %s broadcast to %d subscribers", query_id, recipients)
        return envelope

    def _validate(self, text: str) -> None:
        if not isinstance(text, str) or not text.strip():
            raise InvalidQueryInput("Natural language query required")
        if len(text) > self.max_length:
            raise InvalidQueryInput(
                f"Natural language query must be at most {self.max_length} characters"
            )

    def _decode_cached(self, key: str, cached: str) -> Optional[Dict[str, Any]]:
        try:
            return normalize_table(json.loads(cached))
        except ValueError as error:
            # Unreadable entries are dropped and treated as a miss
            logger.warning("Discarding unreadable cache entry %s: %s", key, error)
            return None

    async def _run_executor(self, query_id: str, dashboard_id: str, text: str) -> Dict[str, Any]:
        try:
            result = await asyncio.wait_for(
                self.executor.execute(dashboard_id, text), timeout=self.timeout
            )
            return normalize_table(result)
        except asyncio.TimeoutError:
            logger.error(
                "Query %s for dashboard %s timed out after %ss", query_id, dashboard_id, self.timeout
            )
            raise QueryExecutionFailed("Query execution timed out")
        except Exception as error:
            logger.error("Query %s for dashboard %s failed: %s", query_id, dashboard_id, error)
            raise QueryExecutionFailed() from error

    async def _persist(self, envelope: QueryResultEnvelope, text: str) -> None:
        # Delivery is not blocked on durability: this run simply leaves no audit record
        try:
            await self.store.append(envelope.dashboard_id, text, envelope.data, envelope.timestamp)
        except QueryPersistenceFailed as error:
            logger.error(
                "Failed to record query %s for dashboard %s: %s",
                envelope.query_id,
                envelope.dashboard_id,
                error,
            )
        except Exception:
            logger.exception(
                "Unexpected error recording query %s for dashboard %s",
                envelope.query_id,
                envelope.dashboard_id,
            )
