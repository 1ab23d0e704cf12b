import json

import httpx
import pytest

from querydash.core.config import settings
from querydash.core.services import build_services
from querydash.core.broadcast.executor import (
    HttpQueryExecutor,
    SampleQueryExecutor,
    normalize_table,
)

from conftest import SAMPLE_TABLE


def test_normalize_table_copies_into_lists():
    result = normalize_table({"columns": ("a", 1), "rows": ({"a": 1},)})
    assert result == {"columns": ["a", "1"], "rows": [{"a": 1}]}


@pytest.mark.parametrize(
    "bad",
    [None, [], {"columns": ["a"]}, {"rows": []}, {"columns": ["a"], "rows": [1]}],
)
def test_normalize_table_rejects_bad_shapes(bad):
    with pytest.raises(ValueError):
        normalize_table(bad)


@pytest.mark.asyncio
async def test_sample_executor_returns_a_table():
    result = await SampleQueryExecutor().execute("1", "anything")
    assert normalize_table(result)["columns"] == ["id", "name", "value"]


@pytest.mark.asyncio
async def test_http_executor_posts_query():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=SAMPLE_TABLE)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    executor = HttpQueryExecutor("https://nlq.test/run", client=client)

    assert await executor.execute("42", "top 5 customers") == SAMPLE_TABLE
    assert seen == [{"dashboardId": "42", "naturalLanguage": "top 5 customers"}]
    await client.aclose()


@pytest.mark.asyncio
async def test_http_executor_raises_on_server_error():
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(502))
    )
    executor = HttpQueryExecutor("https://nlq.test/run", client=client)

    with pytest.raises(httpx.HTTPStatusError):
        await executor.execute("42", "top 5 customers")
    await client.aclose()


def test_build_services_defaults():
    services = build_services(settings)
    assert services.cache.enabled is False
    assert isinstance(services.orchestrator.executor, SampleQueryExecutor)
    assert services.orchestrator.registry is services.registry
    assert services.orchestrator.max_length == 500


def test_build_services_with_backends_configured():
    configured = settings.model_copy(
        update={
            "REDIS_URL": "https://cache.test",
            "REDIS_TOKEN": "token",
            "QUERY_SERVICE_URL": "https://nlq.test/run",
            "CACHE_TTL_SECONDS": 60,
        }
    )
    services = build_services(configured)
    assert services.cache.enabled is True
    assert services.cache.default_ttl == 60
    assert isinstance(services.orchestrator.executor, HttpQueryExecutor)
