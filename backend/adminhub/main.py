# adminhub/main.py
import logging
import psutil # For system metrics in health check
import time   # For uptime calculation
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from typing import Dict, Any
from datetime import datetime, timedelta, timezone
from fastapi import status

from adminhub.core.config import settings, PROJECT_NAME, API_V1_PREFIX, VERSION
from adminhub.db.database import connect_to_mongo, close_mongo_connection, check_database_health
from adminhub.db.init_db import init_db

from adminhub.api.v1.endpoints.auth import router as auth_router
from adminhub.api.v1.endpoints.users import router as users_router
from adminhub.api.v1.endpoints.creators import router as creators_router
from adminhub.api.v1.endpoints.brands import router as brands_router
from adminhub.api.v1.endpoints.roles import router as roles_router
from adminhub.api.v1.endpoints.permissions import router as permissions_router
from adminhub.api.v1.endpoints.user_types import router as user_types_router
from adminhub.api.v1.endpoints.creator_categories import router as creator_categories_router
from adminhub.api.v1.endpoints.kyc import router as kyc_router

logger = logging.getLogger(__name__)

# Track application start time for uptime calculation
APP_START_TIME = time.time()

app = FastAPI(
    title=f"{PROJECT_NAME} - Creator & Brand Administration",
    version=VERSION,
    description="Admin API for creators, brands, roles and KYC verification",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Event Handlers for DB Connection ---
@app.on_event("startup")
async def startup_event():
    """Connect to MongoDB, then ensure indexes and synchronise the permission catalogue."""
    logger.info("Executing startup event: Connecting to database...")
    connected = await connect_to_mongo()
    if not connected:
        logger.critical("FATAL: Database connection failed on startup. Application might not function correctly.")
        return
    logger.info("Startup event: Database connection successful.")
    try:
        await init_db()
    except Exception as e:
        logger.error(f"Error initialising database: {e}", exc_info=True)

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Executing shutdown event: Disconnecting from database...")
    await close_mongo_connection()

# --- API Endpoints ---
@app.get("/", tags=["Root"], include_in_schema=False)
async def read_root():
    """Root endpoint welcome message."""
    return {"message": f"Welcome to {PROJECT_NAME}"}

@app.get("/health", status_code=200, tags=["Health Check"])
async def health_check() -> Dict[str, Any]:
    """
    Process uptime and memory, database reachability and topology, and whether
    KYC blob storage is configured. Storage is reported but does not change the status.
    """
    db_health = await check_database_health()

    process = psutil.Process()
    memory_info = process.memory_info()

    uptime_seconds = time.time() - APP_START_TIME
    uptime = str(timedelta(seconds=int(uptime_seconds)))

    health_info = {
        "status": "OK",
        "application": {
            "name": PROJECT_NAME,
            "version": VERSION,
            "status": "OK",
            "uptime": uptime,
            "memory_usage": {
                "rss_bytes": memory_info.rss,
                "vms_bytes": memory_info.vms,
                "percent": f"{process.memory_percent():.2f}%"
            }
        },
        "database": db_health,
        "kyc_storage": {
            "configured": bool(settings.AZURE_BLOB_CONNECTION_STRING),
            "container": settings.AZURE_BLOB_CONTAINER_NAME,
        },
        "timestamp": datetime.now(timezone.utc).isoformat()
    }

    if db_health.get("status") in ("ERROR", "WARNING"):
        health_info["status"] = db_health["status"]

    return health_info

# --- Liveness and Readiness ---
@app.get("/healthz", tags=["Health"], status_code=status.HTTP_200_OK)
async def liveness_check():
    """Liveness: the process is running and responsive."""
    return {"status": "live"}

@app.get("/readyz", tags=["Health"])
async def readiness_check(response: Response):
    """Readiness: the database is reachable."""
    db_health = await check_database_health()
    if db_health.get("status") == "OK":
        response.status_code = status.HTTP_200_OK
        return {"status": "ready", "database": db_health}
    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "not_ready", "database": db_health}

# --- Include API Routers ---
app.include_router(auth_router, prefix=API_V1_PREFIX)
app.include_router(users_router, prefix=API_V1_PREFIX)
app.include_router(creators_router, prefix=API_V1_PREFIX)
app.include_router(brands_router, prefix=API_V1_PREFIX)
app.include_router(roles_router, prefix=API_V1_PREFIX)
app.include_router(permissions_router, prefix=API_V1_PREFIX)
app.include_router(user_types_router, prefix=API_V1_PREFIX)
app.include_router(creator_categories_router, prefix=API_V1_PREFIX)
app.include_router(kyc_router, prefix=API_V1_PREFIX)
