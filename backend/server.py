"""Clicklone API entry point: app, routers, error handlers and background jobs."""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import uuid
from contextlib import asynccontextmanager
from database import database, DEFAULT_DB_NAME
from routes import auth, generator, public, tracking, webhooks, admin, admin_orders, admin_users, admin_seo, analytics

import os
import logging
from pathlib import Path
from dotenv import load_dotenv
from pymongo import MongoClient
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.jobstores.mongodb import MongoDBJobStore

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"

from job_runner import run_expired_results_cleanup, run_abandoned_checkout_cleanup

# (job id, display name, runner, trigger)
SCHEDULED_JOBS = [
    ("expired_results_cleanup", "Expired Pending Results Cleanup", run_expired_results_cleanup,
     IntervalTrigger(hours=1)),
    ("abandoned_checkout_cleanup", "Abandoned Checkout Cleanup", run_abandoned_checkout_cleanup,
     CronTrigger(hour=3, minute=0)),
]


def build_scheduler() -> AsyncIOScheduler:
    """Scheduler backed by a MongoDB job store (scheduled_jobs) so jobs survive restarts."""
    mongo_url = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
    db_name = os.environ.get('DB_NAME', DEFAULT_DB_NAME)
    jobstore = MongoDBJobStore(database=db_name, collection='scheduled_jobs', client=MongoClient(mongo_url))
    return AsyncIOScheduler(jobstores={'default': jobstore})


scheduler = build_scheduler()


def _log_configuration():
    stripe_key = (os.environ.get("STRIPE_SECRET_KEY") or os.environ.get("STRIPE_API_KEY") or "").strip()
    if not stripe_key:
        logger.error("STRIPE_SECRET_KEY / STRIPE_API_KEY is not set. Checkout will fail.")
    else:
        logger.info("STRIPE_MODE = %s", "test" if stripe_key.startswith("sk_test_") else "live")
    if not (os.environ.get("LLM_API_KEY") or "").strip():
        logger.error("LLM_API_KEY is not set. Generation will fail.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Clicklone API v%s", APP_VERSION)
    await database.connect()
    _log_configuration()

    from services.settings_service import seed_default_settings
    try:
        await seed_default_settings()
    except Exception as e:
        logger.error(f"Failed to seed default settings: {e}")

    if os.environ.get("ADMIN_PASSWORD"):
        from services.admin_bootstrap import run_bootstrap_admin
        try:
            result = await run_bootstrap_admin()
            logger.info("Admin bootstrap: %s - %s", result["action"], result["message"])
        except Exception as e:
            logger.error(f"Admin bootstrap failed: {e}")

    for job_id, name, runner, trigger in SCHEDULED_JOBS:
        scheduler.add_job(runner, trigger, id=job_id, name=name, replace_existing=True)
    scheduler.start()
    logger.info("Scheduler started with %d jobs", len(SCHEDULED_JOBS))

    yield

    logger.info("Shutting down Clicklone API")
    scheduler.shutdown(wait=False)
    await database.close()


app = FastAPI(
    title="Clicklone API",
    description="AI marketing tagline generator",
    version=APP_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (auth, generator, public, tracking, webhooks, admin, admin_orders, admin_users, admin_seo, analytics):
    app.include_router(module.router)
app.include_router(public.sitemap_router)


@app.get("/api")
async def root():
    return {
        "service": "Clicklone",
        "tagline": "Ten taglines in seconds",
        "version": APP_VERSION,
        "status": "operational"
    }


@app.get("/api/health")
async def health_check():
    return {
        "status": "healthy",
        "environment": os.getenv("ENVIRONMENT", "development")
    }


@app.get("/api/version")
async def version_info():
    return {
        "version": APP_VERSION,
        "commit_sha": os.getenv("GIT_COMMIT_SHA", "unknown"),
        "environment": os.getenv("ENVIRONMENT", "development"),
    }


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """422 with a request_id that also appears in the log line."""
    request_id = str(uuid.uuid4())
    errors = [
        {"loc": list(e.get("loc", [])), "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
    logger.warning("Validation failed request_id=%s path=%s errors=%s", request_id, request.url.path, errors)
    return JSONResponse(status_code=422, content={"detail": errors, "request_id": request_id})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "server:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8001")),
        reload=os.getenv("ENVIRONMENT") == "development"
    )
