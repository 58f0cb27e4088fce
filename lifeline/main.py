import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI

from lifeline.api.routes import admin, conversations, emergencies, realtime
from lifeline.auth_config import auth_backend, fastapi_users
from lifeline.db import change_feed, check_database_health, get_db_session
from lifeline.middleware.presence import PresenceMiddleware
from lifeline.schemas.user import UserCreate, UserRead, UserUpdate
from lifeline.services.migration_service import run_migrations

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    try:
        await run_migrations()
        await check_database_health()
        logger.info("Database health check passed - application ready")
    except Exception as e:
        logger.error(f"Application startup aborted: {e}")
        raise

    yield

    logger.info("Application shutting down...")
    await change_feed.close()


app = FastAPI(title="Lifeline", lifespan=lifespan)

app.add_middleware(PresenceMiddleware, session_factory=get_db_session)

app.include_router(
    fastapi_users.get_auth_router(auth_backend), prefix="/auth/jwt", tags=["auth"]
)
app.include_router(
    fastapi_users.get_register_router(UserRead, UserCreate),
    prefix="/auth",
    tags=["auth"],
)
app.include_router(
    fastapi_users.get_users_router(UserRead, UserUpdate),
    prefix="/users",
    tags=["users"],
)
app.include_router(conversations.conversations_router_instance)
app.include_router(emergencies.emergencies_router_instance)
app.include_router(admin.admin_router_instance)
app.include_router(realtime.realtime_router, tags=["realtime"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}
