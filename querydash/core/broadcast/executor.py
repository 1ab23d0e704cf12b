"""Query executors: turn natural-language text into a tabular result."""

from typing import Any, Dict, Optional

import httpx


def normalize_table(result: Any) -> Dict[str, Any]:
    """Coerce an executor reply into {"columns": [...], "rows": [...]}."""
    if not isinstance(result, dict):
        raise ValueError("Executor result must be an object")
    columns = result.get("columns")
    rows = result.get("rows")
    if not isinstance(columns, (list, tuple)) or not isinstance(rows, (list, tuple)):
        raise ValueError("Executor result needs 'columns' and 'rows' lists")
    if not all(isinstance(row, dict) for row in rows):
        raise ValueError("Every row must be an object")
    return {
        "columns": [str(column) for column in columns],
        "rows": [dict(row) for row in rows],
    }


class SampleQueryExecutor:
    """Stand-in used until a real query service is configured."""

    async def execute(self, dashboard_id: str, text: str) -> Dict[str, Any]:
        return {
            "columns": ["id", "name", "value"],
            "rows": [
                {"id": 1, "name": "Sample Data", "value": 100},
                {"id": 2, "name": "Sample Data 2", "value": 200},
            ],
        }


class HttpQueryExecutor:
    """Calls the external NL query service over HTTP."""

    def __init__(self, url: str, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self._client = client
        self._owns_client = client is None

    async def execute(self, dashboard_id: str, text: str) -> Dict[str, Any]:
        if self._client is None:
            self._client = httpx.AsyncClient()
        response = await self._client.post(
            self.url, json={"dashboardId": dashboard_id, "naturalLanguage": text}
        )
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
