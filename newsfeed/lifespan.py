# newsfeed/lifespan.py
from contextlib import asynccontextmanager
from fastapi import FastAPI

from .config import DB_URL, SCHEDULER_ENABLED, UPDATE_INTERVAL_MINUTES
from .logging_setup import get_logger
from .ranker import load_ranking_config
from .store import init_db
from .scheduler import add_jobs, start_scheduler, shutdown_scheduler

logger = get_logger("newsfeed.lifespan")

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("APP_STARTUP", extra={"db": DB_URL.split("://")[0], "scheduler": SCHEDULER_ENABLED})
    init_db()

    # Fail fast on a broken ranking config file rather than on the first feed request
    cfg = load_ranking_config()
    logger.info("RANKING_CONFIG", extra={"sources_rated": len(cfg.source_ratings),
                                         "categories": len(cfg.category_keywords)})

    if SCHEDULER_ENABLED and not getattr(app.state, "scheduler_started", False):
        add_jobs()
        start_scheduler()
        app.state.scheduler_started = True
        logger.info("SCHEDULER_STARTED", extra={"interval_min": UPDATE_INTERVAL_MINUTES})

    yield

    logger.info("APP_SHUTDOWN")
    if getattr(app.state, "scheduler_started", False):
        shutdown_scheduler(wait=False)
        app.state.scheduler_started = False
