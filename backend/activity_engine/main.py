from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from activity_engine.api.api import router as api_router
from activity_engine.core.config import settings
from activity_engine.core.database import engine, Base
from activity_engine.core.logging import get_logger, setup_logging

setup_logging(debug=settings.DEBUG, level=settings.LOG_LEVEL)
logger = get_logger(__name__)

# Create database tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Activity Engine API",
    description="Activity sessions, daily summaries, streaks and weekly rollups for health profiles.",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api")

logger.info("application_ready", project=settings.PROJECT_NAME, activity_timezone=settings.ACTIVITY_TIMEZONE)

@app.get("/")
def root():
    return {"message": "Welcome to the Activity Engine API. See /docs for documentation."}
