from typing import Any, Dict, List, Optional, Union
from sqlmodel import SQLModel, Field, Column, JSON
from datetime import datetime, timedelta, timezone
from pydantic import ValidationError

from .schema import ArticleIn, Preferences, ReadingHistoryEntry

CATEGORIES = (
    "general", "business", "technology", "science", "health",
    "entertainment", "sports", "politics", "world", "other",
)
SENTIMENTS = ("positive", "neutral", "negative", "unknown")
ARTICLE_TTL_DAYS = 30


def normalize_category(value: Optional[str]) -> str:
    v = (value or "").strip().lower()
    return v if v in CATEGORIES else "general"


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Article(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    url: str = Field(index=True, unique=True)
    title: str = ""
    description: Optional[str] = ""
    content: Optional[str] = ""
    url_to_image: Optional[str] = None
    author: Optional[str] = None
    published_at: Optional[datetime] = Field(default=None, index=True)
    source_name: Optional[str] = Field(default="", index=True)
    source_id: Optional[str] = None

    category: str = Field(default="general", index=True)
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    sentiment: str = "unknown"
    sentiment_score: float = 0.0   # [-1, 1]
    relevance_score: float = 50.0  # [0, 100]
    is_breaking_news: bool = Field(default=False, index=True)
    popularity: Optional[float] = None  # [0, 1] engagement proxy, if known

    read_count: int = 0
    save_count: int = 0
    share_count: int = 0

    fetched_at: datetime = Field(default_factory=_utcnow)
    last_analyzed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Union[ArticleIn, Dict[str, Any]]) -> "Article":
        """Build an Article from a collaborator record, defaulting bad fields."""
        rec = record if isinstance(record, ArticleIn) else ArticleIn.model_validate(record)
        now = _utcnow()
        relevance = rec.relevance_score if rec.relevance_score is not None else 50.0
        popularity = clamp(rec.popularity, 0.0, 1.0) if rec.popularity is not None else None
        return cls(
            url=rec.url,
            title=rec.title or "",
            description=rec.description or "",
            content=rec.content or "",
            url_to_image=rec.url_to_image,
            author=rec.author,
            published_at=rec.published_at,
            source_name=rec.source.name or "",
            source_id=rec.source.id,
            category=normalize_category(rec.category),
            tags=list(rec.tags),
            relevance_score=clamp(float(relevance), 0.0, 100.0),
            is_breaking_news=bool(rec.is_breaking_news),
            popularity=popularity,
            fetched_at=now,
            expires_at=now + timedelta(days=ARTICLE_TTL_DAYS),
        )

    def text(self) -> str:
        return " ".join([self.title or "", self.description or "", self.content or ""])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "urlToImage": self.url_to_image,
            "author": self.author,
            "publishedAt": self.published_at.isoformat() if self.published_at else None,
            "source": {"id": self.source_id, "name": self.source_name},
            "category": self.category,
            "tags": list(self.tags or []),
            "sentiment": self.sentiment,
            "sentimentScore": self.sentiment_score,
            "relevanceScore": self.relevance_score,
            "isBreakingNews": self.is_breaking_news,
            "readCount": self.read_count,
            "saveCount": self.save_count,
            "shareCount": self.share_count,
        }


class UserProfile(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, unique=True)
    interests: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    preferences: dict = Field(default_factory=dict, sa_column=Column(JSON))
    reading_history: List[dict] = Field(default_factory=list, sa_column=Column(JSON))  # most recent first
    saved_articles: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    last_feed_access: Optional[datetime] = None

    def get_preferences(self) -> Preferences:
        # Raises ValidationError on malformed data; callers decide how to degrade.
        return Preferences.model_validate(self.preferences or {})

    def get_history(self) -> List[ReadingHistoryEntry]:
        entries: List[ReadingHistoryEntry] = []
        for raw in self.reading_history or []:
            try:
                entries.append(ReadingHistoryEntry.model_validate(raw))
            except ValidationError:
                continue
        return entries
