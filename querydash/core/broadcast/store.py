from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from querydash.core import models
from querydash.core.broadcast.errors import QueryPersistenceFailed


class SqlQueryStore:
    """Durable append of resolved queries into the queries table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def append(
        self,
        dashboard_id: str,
        text: str,
        result: Dict[str, Any],
        timestamp: int,
    ) -> None:
        try:
            record = models.Query(
                dashboard_id=int(dashboard_id),
                natural_language=text,
                result=result,
                executed_at=datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc),
            )
        except ValueError as error:
            raise QueryPersistenceFailed(f"Bad dashboard id {dashboard_id!r}") from error

        async with self.session_factory() as session:
            try:
                session.add(record)
                await session.commit()
            except Exception as error:
                await session.rollback()
                raise QueryPersistenceFailed(str(error)) from error
