from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from ..logging_setup import get_logger
from ..schema import Preferences, PrefsIn, ReadIn
from ..store import UserProfileStore
from .feed import get_profile_store

logger = get_logger("newsfeed.routes.users")

router = APIRouter(prefix="/users", tags=["Users"])

def _profile_out(profile):
    try:
        prefs = profile.get_preferences()
    except ValidationError:
        logger.warning("PREFERENCES_INVALID", extra={"user_id": profile.user_id, "handled": True})
        prefs = Preferences()
    return {
        "userId": profile.user_id,
        "interests": profile.interests,
        "preferences": prefs.model_dump(by_alias=True),
        "historySize": len(profile.reading_history or []),
    }

@router.get("/{user_id}")
def get_profile(user_id: str, profiles: UserProfileStore = Depends(get_profile_store)):
    return _profile_out(profiles.get(user_id))

@router.post("/{user_id}/reads")
def mark_read(user_id: str, body: ReadIn, profiles: UserProfileStore = Depends(get_profile_store)):
    logger.info(f"Read recorded: user={user_id} url={body.article_url}")
    try:
        profile = profiles.record_read(user_id, body.article_url, body.time_spent, body.completed)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"ok": True, "historySize": len(profile.reading_history or [])}

@router.put("/{user_id}/preferences")
def update_preferences(user_id: str, body: PrefsIn, profiles: UserProfileStore = Depends(get_profile_store)):
    logger.info(f"Updating preferences: user={user_id}")
    return _profile_out(profiles.update_preferences(user_id, body))
