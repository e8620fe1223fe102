from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
import logging
import atexit

from . import routers
from .database import init_db, check_db_connection
from .utils.background_tasks import start_background_tasks, stop_background_tasks
from .utils.constants import AppSettings, SchedulerSettings

logging.basicConfig(
    level=AppSettings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Campus Events API",
    description="Campus event approval workflow and notifications API",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=AppSettings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """Create tables and start background tasks when app starts"""
    init_db()

    if SchedulerSettings.ENABLED:
        logger.info("🚀 Starting Campus Events API with background scheduler...")
        start_background_tasks()
    else:
        logger.info("Background scheduler disabled (ENABLE_SCHEDULER=false)")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop background tasks when app shuts down"""
    logger.info("⏹️ Stopping background tasks...")
    stop_background_tasks()


# Include routers
app.include_router(routers.event.router, prefix="/api/events", tags=["events"])
app.include_router(
    routers.notifications.router, prefix="/api/notifications", tags=["notifications"]
)

atexit.register(stop_background_tasks)


@app.get("/")
async def root():
    return {"message": "Welcome to Campus Events API", "status": "running"}


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": "campus-events-api",
        "version": "1.0.0",
        "database": check_db_connection(),
    }


if __name__ == "__main__":
    uvicorn.run("campus_api.main:app", host="0.0.0.0", port=8000, reload=True)
