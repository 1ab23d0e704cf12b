import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from querydash.core.config import settings
from querydash.core.database import engine, init_db
from querydash.core.services import build_services
from querydash.api.router import api_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# Build the shared services once and close everything when the app stops
@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.INIT_DB_ON_STARTUP:
        try:
            await init_db()
        except Exception as e:
            logger.error(f"Database initialisation failed during startup: {e}")

    app.state.services = build_services(settings)
    logger.info("QueryDash backend ready")

    yield

    logger.info("Shutting down...")
    await app.state.services.aclose()
    await engine.dispose()


app = FastAPI(title="QueryDash API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    expose_headers=["Content-Range", "X-Content-Range"],
    max_age=86400,
)

# Include the master router containing all our endpoints
app.include_router(api_router)


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    logger.error(
        "Unhandled error on %s %s (status %d): %s",
        request.method,
        request.url.path,
        status_code,
        exc,
        exc_info=exc,
    )
    # Don't expose internal errors outside development
    message = str(exc) if settings.ENVIRONMENT == "development" else "Something went wrong"
    return JSONResponse(
        status_code=status_code,
        content={"error": {"message": message, "statusCode": status_code}},
    )


@app.get("/health")
async def health(request: Request):
    services = getattr(request.app.state, "services", None)
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "cache": "enabled" if services and services.cache.enabled else "disabled",
        "realtime": services.registry.stats() if services else None,
    }


@app.get("/")
async def root():
    return {
        "message": "QueryDash API",
        "version": "1.0.0",
        "endpoints": {
            "health": "/health",
            "auth": "/api/auth",
            "queries": "/api/queries",
            "dashboards": "/api/dashboards",
            "realtime": "/ws",
        },
    }
