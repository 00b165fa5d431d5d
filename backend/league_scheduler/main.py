import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from league_scheduler.config import CORS_ORIGINS
from league_scheduler.database import init_db
from league_scheduler.logging_config import setup_logging
from league_scheduler.routes import auto_scheduler, schedule

logger = logging.getLogger(__name__)

app = FastAPI(title="League Scheduler API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(schedule.router, prefix="/api", tags=["schedule"])
app.include_router(auto_scheduler.router, prefix="/api", tags=["auto-scheduler"])


@app.on_event("startup")
def on_startup():
    setup_logging()
    init_db()  # Imports models and creates tables

    route_count = sum(1 for r in app.routes if getattr(r, "path", None))
    logger.info("League Scheduler API started with %d routes", route_count)


@app.get("/api/health")
def health_check():
    return {"app_name": "League Scheduler API", "status": "healthy"}
