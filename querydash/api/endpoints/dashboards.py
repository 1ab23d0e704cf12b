import logging
from typing import Annotated, List
from fastapi import APIRouter, HTTPException, status, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc

from querydash.core import schemas, models
from querydash.core.database import get_db
from querydash.core.security import principal_dep, sanitize_input

router = APIRouter(prefix="/api/dashboards", tags=["Dashboards"])

db_dep = Annotated[AsyncSession, Depends(get_db)]


# Get all dashboards for user
@router.get("", response_model=List[schemas.DashboardResponse])
async def list_dashboards(principal: principal_dep, db: db_dep):
    query = (
        select(models.Dashboard)
        .where(models.Dashboard.user_id == principal.id)
        .order_by(desc(models.Dashboard.created_at))
    )
    result = await db.execute(query)
    return result.scalars().all()


# Create new dashboard
@router.post(
    "",
    response_model=schemas.DashboardResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_dashboard(
    dashboard: schemas.DashboardCreate, principal: principal_dep, db: db_dep
):
    try:
        new_dashboard = models.Dashboard(
            user_id=principal.id,
            name=sanitize_input(dashboard.name),
            description=dashboard.description,
            config=dashboard.config,
        )
        db.add(new_dashboard)
        await db.commit()
        await db.refresh(new_dashboard)
        return new_dashboard
    except Exception as error:
        await db.rollback()
        logging.error(f"Failed to create dashboard for user {principal.id}: {error}")
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to create dashboard"
        )


# Recent durable query records for one dashboard
@router.get(
    "/{dashboard_id}/queries", response_model=List[schemas.QueryRecordResponse]
)
async def recent_queries(
    dashboard_id: int, principal: principal_dep, db: db_dep, limit: int = 10
):
    query = select(models.Dashboard).where(
        models.Dashboard.id == dashboard_id,
        models.Dashboard.user_id == principal.id,
    )
    result = await db.execute(query)
    if result.scalars().first() is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Dashboard not found")

    history = (
        select(models.Query)
        .where(models.Query.dashboard_id == dashboard_id)
        .order_by(desc(models.Query.created_at), desc(models.Query.id))
        .limit(max(1, min(limit, 100)))
    )
    result = await db.execute(history)
    return result.scalars().all()
