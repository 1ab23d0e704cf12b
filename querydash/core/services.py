"""Service wiring: built once in the app lifespan and kept on app.state."""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends
from fastapi.requests import HTTPConnection

from querydash.core.config import Settings
from querydash.core.database import AsyncSessionLocal
from querydash.core.broadcast.cache import ResultCache
from querydash.core.broadcast.executor import HttpQueryExecutor, SampleQueryExecutor
from querydash.core.broadcast.orchestrator import QueryOrchestrator
from querydash.core.broadcast.registry import SubscriptionRegistry
from querydash.core.broadcast.store import SqlQueryStore


@dataclass
class Services:
    cache: ResultCache
    registry: SubscriptionRegistry
    orchestrator: QueryOrchestrator

    async def aclose(self):
        await self.cache.aclose()
        executor = self.orchestrator.executor
        if isinstance(executor, HttpQueryExecutor):
            await executor.aclose()


def build_services(settings: Settings) -> Services:
    cache = ResultCache(
        url=settings.REDIS_URL,
        token=settings.REDIS_TOKEN,
        default_ttl=settings.CACHE_TTL_SECONDS,
    )
    registry = SubscriptionRegistry(queue_size=settings.SUBSCRIBER_QUEUE_SIZE)

    if settings.QUERY_SERVICE_URL:
        executor = HttpQueryExecutor(settings.QUERY_SERVICE_URL)
    else:
        executor = SampleQueryExecutor()

    orchestrator = QueryOrchestrator(
        cache=cache,
        executor=executor,
        store=SqlQueryStore(AsyncSessionLocal),
        registry=registry,
        timeout=settings.QUERY_TIMEOUT_SECONDS,
        max_length=settings.MAX_QUERY_LENGTH,
    )
    return Services(cache=cache, registry=registry, orchestrator=orchestrator)


# HTTPConnection so the same dependencies serve both HTTP and WebSocket routes
def get_services(connection: HTTPConnection) -> Services:
    return connection.app.state.services


services_dep = Annotated[Services, Depends(get_services)]


def get_registry(services: services_dep) -> SubscriptionRegistry:
    return services.registry


def get_orchestrator(services: services_dep) -> QueryOrchestrator:
    return services.orchestrator


registry_dep = Annotated[SubscriptionRegistry, Depends(get_registry)]
orchestrator_dep = Annotated[QueryOrchestrator, Depends(get_orchestrator)]
