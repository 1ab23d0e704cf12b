from fastapi import APIRouter
from querydash.api.endpoints import auth, users, dashboards, queries, realtime

api_router = APIRouter()

# Combine all sub-routers into one
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(dashboards.router)
api_router.include_router(queries.router)
api_router.include_router(realtime.router)
