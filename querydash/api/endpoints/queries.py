from fastapi import APIRouter, HTTPException, status

from querydash.core import schemas
from querydash.core.broadcast.errors import QueryError
from querydash.core.security import principal_dep
from querydash.core.services import orchestrator_dep

router = APIRouter(prefix="/api/queries", tags=["Queries"])


@router.post(
    "/{dashboard_id}/execute",
    response_model=schemas.QueryResultResponse,
    status_code=status.HTTP_200_OK,
)
async def execute_query(
    dashboard_id: str,
    payload: schemas.QueryExecuteRequest,
    principal: principal_dep,
    orchestrator: orchestrator_dep,
):
    """
    Resolve a natural-language query and return it directly.
    The same result is also broadcast to everyone watching the dashboard,
    so a subscribed caller sees it twice and should de-duplicate by queryId.
    """
    try:
        envelope = await orchestrator.execute_query(
            principal, dashboard_id, payload.naturalLanguage
        )
    except QueryError as error:
        raise HTTPException(status_code=error.status_code, detail=error.message)

    return envelope.to_response()
