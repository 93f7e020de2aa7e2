from datetime import datetime, timedelta, timezone
from fastapi import APIRouter, Depends, Query

from ..analysis import AnalysisService
from ..logging_setup import get_logger
from ..store import ArticleStore, UserProfileStore
from ..workflow import build_user_feed

logger = get_logger("newsfeed.routes.feed")

router = APIRouter(prefix="/feed", tags=["Feed"])

def get_article_store() -> ArticleStore:
    return ArticleStore()

def get_profile_store() -> UserProfileStore:
    return UserProfileStore()

def get_analyzer() -> AnalysisService:
    return AnalysisService()

@router.get("/trending")
def trending(
    hours: int = Query(24, ge=1, le=24 * 7),
    limit: int = Query(10, ge=1, le=50),
    articles: ArticleStore = Depends(get_article_store),
    analyzer: AnalysisService = Depends(get_analyzer),
):
    """Trending topics over recent headlines (LLM when configured, word counts otherwise)."""
    since = datetime.now(timezone.utc) - timedelta(hours=hours)
    recent = articles.find(since=since, limit=100)
    return {"topics": analyzer.extract_trending_topics(recent, limit=limit)}

@router.get("/{user_id}")
def user_feed(
    user_id: str,
    page: int = Query(1, ge=1),
    profiles: UserProfileStore = Depends(get_profile_store),
    articles: ArticleStore = Depends(get_article_store),
    analyzer: AnalysisService = Depends(get_analyzer),
):
    """
    Personalized feed: ranked articles (paged by the user's maxArticles),
    breaking news, and the page grouped by category.
    """
    logger.info(f"Feed requested: user={user_id} page={page}")
    return build_user_feed(user_id, profile_store=profiles, article_store=articles, analyzer=analyzer, page=page)
