from fastapi import APIRouter, BackgroundTasks

from ..logging_setup import get_logger
from ..scheduler import refresh_guard, trigger_manual_refresh

logger = get_logger("newsfeed.routes.admin")

router = APIRouter(prefix="/admin", tags=["Admin"])

@router.post("/refresh")
def refresh(bg: BackgroundTasks):
    """
    Queue a fetch + analysis cycle. Returns started=false when one is already
    running; the scheduled cycle is never queued behind it.
    """
    if refresh_guard.busy:
        logger.info("Manual refresh refused: cycle in progress")
        return {"started": False}
    bg.add_task(trigger_manual_refresh)
    return {"started": True}
