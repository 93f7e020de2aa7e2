from fastapi import APIRouter
from ..logging_setup import get_logger
from ..scheduler import refresh_guard, scheduler

logger = get_logger("newsfeed.routes.health")

router = APIRouter()

@router.get("/health")
def health():
    logger.debug("Health check invoked")
    return {"status": "ok"}

@router.get("/health/scheduler")
def scheduler_status():
    return {
        "running": scheduler.running,
        "refresh_in_progress": refresh_guard.busy,
        "jobs": [{"id": j.id, "next_run": str(j.next_run_time)} for j in scheduler.get_jobs()],
    }
