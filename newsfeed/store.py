"""
store.py
========
Database gateway for the service.

1) Creates the engine from DB_URL and the tables from the SQLModel classes in models.py.
2) Provides get_session() for a unit of work.
3) Implements the two storage collaborators the feed pipeline talks to:
   - ArticleStore: upsert/find articles, write back analysis results, expire old rows.
   - UserProfileStore: read profiles, record reads (capped history), update preferences.

The ranking code never imports this module; it receives plain Article and
UserProfile snapshots from here.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional

from sqlmodel import SQLModel, Session, create_engine, select

from .config import DB_URL, HISTORY_CAP, RETENTION_DAYS
from .exceptions import ProfileNotFound
from .logging_setup import get_logger
from .models import Article, UserProfile
from .schema import AnalysisResult, Preferences, PrefsIn, ReadingHistoryEntry

logger = get_logger("newsfeed.store")

# SQLite connections are handed between FastAPI worker threads, so allow cross-thread use.
_connect_args = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}
engine = create_engine(DB_URL, echo=False, connect_args=_connect_args)


def init_db() -> None:
    """
    Create all tables for the SQLModel classes in models.py.
    Safe to call on every startup; it only creates missing tables.
    """
    from . import models  # noqa: F401  (import just to register models with SQLModel)

    SQLModel.metadata.create_all(engine)


def get_session() -> Session:
    """
    Open a Session bound to our engine. Use it as a context manager:

      with get_session() as session:
          session.add(obj)
          session.commit()
    """
    return Session(engine)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ArticleStore:
    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session = session_factory

    def upsert(self, article: Article) -> Article:
        """
        Insert by URL, or refresh the content fields of an existing row.
        Analysis fields and counters of an existing row are kept.
        """
        with self._session() as s:
            existing = s.exec(select(Article).where(Article.url == article.url)).first()
            if existing is None:
                s.add(article)
                row = article
            else:
                existing.title = article.title or existing.title
                existing.description = article.description or existing.description
                existing.content = article.content or existing.content
                existing.url_to_image = article.url_to_image or existing.url_to_image
                if article.category and article.category != "general":
                    existing.category = article.category
                s.add(existing)
                row = existing
            s.commit()
            s.refresh(row)
            return row

    def upsert_many(self, articles: Iterable[Article]) -> List[Article]:
        out: List[Article] = []
        for a in articles:
            try:
                out.append(self.upsert(a))
            except Exception as e:
                logger.exception("UPSERT_FAILED", extra={"handled": True, "url": a.url, "error": type(e).__name__})
        return out

    def find(
        self,
        category: Optional[str] = None,
        categories: Optional[List[str]] = None,
        source_names: Optional[List[str]] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Article]:
        stmt = select(Article)
        if category:
            stmt = stmt.where(Article.category == category)
        if categories:
            stmt = stmt.where(Article.category.in_(categories))
        if source_names:
            stmt = stmt.where(Article.source_name.in_(source_names))
        if since is not None:
            stmt = stmt.where(Article.published_at >= since)
        stmt = stmt.order_by(Article.published_at.desc())
        if limit:
            stmt = stmt.limit(limit)
        with self._session() as s:
            return list(s.exec(stmt).all())

    def get(self, url: str) -> Optional[Article]:
        with self._session() as s:
            return s.exec(select(Article).where(Article.url == url)).first()

    def apply_analysis(self, results: Iterable[AnalysisResult], now: Optional[datetime] = None) -> int:
        from .analysis import apply_analysis

        now = now or _utcnow()
        updated = 0
        with self._session() as s:
            for res in results:
                row = s.exec(select(Article).where(Article.url == res.id)).first()
                if row is None:
                    continue
                apply_analysis(row, res, now)
                s.add(row)
                updated += 1
            s.commit()
        return updated

    def cleanup_expired(self, now: Optional[datetime] = None, retention_days: int = RETENTION_DAYS) -> int:
        """Delete articles past the retention window that nobody saved."""
        cutoff = (now or _utcnow()) - timedelta(days=retention_days)
        with self._session() as s:
            rows = s.exec(
                select(Article).where(Article.published_at < cutoff, Article.save_count < 1)
            ).all()
            for row in rows:
                s.delete(row)
            s.commit()
            return len(rows)


class UserProfileStore:
    def __init__(self, session_factory: Callable[[], Session] = get_session, history_cap: int = HISTORY_CAP):
        self._session = session_factory
        self.history_cap = history_cap

    def get(self, user_id: str) -> UserProfile:
        with self._session() as s:
            profile = s.exec(select(UserProfile).where(UserProfile.user_id == user_id)).first()
        if profile is None:
            raise ProfileNotFound(user_id)
        return profile

    def get_or_create(self, user_id: str) -> UserProfile:
        with self._session() as s:
            profile = s.exec(select(UserProfile).where(UserProfile.user_id == user_id)).first()
            if profile is None:
                profile = UserProfile(user_id=user_id, preferences=Preferences().model_dump())
                s.add(profile)
                s.commit()
                s.refresh(profile)
                logger.info("PROFILE_CREATED", extra={"user_id": user_id})
            return profile

    def touch_feed_access(self, user_id: str, now: Optional[datetime] = None) -> None:
        with self._session() as s:
            profile = s.exec(select(UserProfile).where(UserProfile.user_id == user_id)).first()
            if profile is None:
                return
            profile.last_feed_access = now or _utcnow()
            s.add(profile)
            s.commit()

    def record_read(
        self,
        user_id: str,
        article_url: str,
        time_spent: int = 0,
        completed: bool = False,
        now: Optional[datetime] = None,
    ) -> UserProfile:
        """
        Prepend a history entry (most recent first) and evict beyond the cap.
        Re-reading an article only updates time spent / completion.
        """
        now = now or _utcnow()
        self.get_or_create(user_id)
        with self._session() as s:
            profile = s.exec(select(UserProfile).where(UserProfile.user_id == user_id)).first()
            article = s.exec(select(Article).where(Article.url == article_url)).first()
            if article is None:
                raise LookupError(f"article not found: {article_url}")

            history = list(profile.reading_history or [])
            for i, raw in enumerate(history):
                if raw.get("article_url") == article_url:
                    entry = ReadingHistoryEntry.model_validate(raw)
                    entry.time_spent = max(entry.time_spent, time_spent)
                    entry.completed = entry.completed or completed
                    history[i] = entry.model_dump(mode="json")
                    break
            else:
                entry = ReadingHistoryEntry(
                    article_url=article.url,
                    category=article.category,
                    source_name=article.source_name,
                    tags=list(article.tags or []),
                    read_at=now,
                    time_spent=time_spent,
                    completed=completed,
                )
                history.insert(0, entry.model_dump(mode="json"))
                history = history[: self.history_cap]

            # JSON columns are only flushed on reassignment
            profile.reading_history = history
            article.read_count = (article.read_count or 0) + 1
            s.add(profile)
            s.add(article)
            s.commit()
            s.refresh(profile)
            return profile

    def update_preferences(self, user_id: str, body: PrefsIn) -> UserProfile:
        self.get_or_create(user_id)
        with self._session() as s:
            profile = s.exec(select(UserProfile).where(UserProfile.user_id == user_id)).first()
            merged = {**(profile.preferences or {}), **body.model_dump(exclude_none=True, exclude={"interests"})}
            profile.preferences = Preferences.model_validate(merged).model_dump()
            if body.interests is not None:
                profile.interests = list(body.interests)
            s.add(profile)
            s.commit()
            s.refresh(profile)
            return profile
