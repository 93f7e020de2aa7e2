from __future__ import annotations

from datetime import datetime, timezone
import math
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Best-effort ISO-8601 parser; anything unparseable becomes None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_number(value: Any) -> Optional[float]:
    """Float or None; booleans, non-numeric strings and NaN/inf all become None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


class SourceIn(BaseModel):
    id: Optional[str] = None
    name: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def _name_or_empty(cls, v):
        return v if isinstance(v, str) else ""

    @field_validator("id", mode="before")
    @classmethod
    def _id_text(cls, v):
        return v if isinstance(v, str) else None


class ArticleIn(BaseModel):
    """Article record as supplied by fetch collaborators (JSON keyed by `url`)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    url: str
    title: str = ""
    description: Optional[str] = ""
    content: Optional[str] = ""
    published_at: Optional[datetime] = Field(default=None, alias="publishedAt")
    source: SourceIn = Field(default_factory=SourceIn)
    author: Optional[str] = None
    url_to_image: Optional[str] = Field(default=None, alias="urlToImage")
    category: Optional[str] = "general"
    tags: List[str] = Field(default_factory=list)
    relevance_score: Optional[float] = Field(default=None, alias="relevanceScore")
    is_breaking_news: bool = Field(default=False, alias="isBreakingNews")
    popularity: Optional[float] = None

    @field_validator("title", "description", "content", mode="before")
    @classmethod
    def _text_or_empty(cls, v):
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)

    @field_validator("published_at", mode="before")
    @classmethod
    def _lenient_date(cls, v):
        return parse_timestamp(v)

    @field_validator("source", mode="before")
    @classmethod
    def _source_from_string(cls, v):
        if v is None:
            return {}
        if isinstance(v, str):
            return {"name": v}
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_list(cls, v):
        return [str(t) for t in v] if isinstance(v, (list, tuple)) else []

    @field_validator("relevance_score", "popularity", mode="before")
    @classmethod
    def _lenient_number(cls, v):
        return parse_number(v)

    @field_validator("category", mode="before")
    @classmethod
    def _category_text(cls, v):
        return v if isinstance(v, str) else "general"

    @field_validator("author", "url_to_image", mode="before")
    @classmethod
    def _str_or_none(cls, v):
        return v if isinstance(v, str) else None

    @field_validator("is_breaking_news", mode="before")
    @classmethod
    def _lenient_flag(cls, v):
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in ("1", "true", "yes") if v is not None else False


class AnalysisResult(BaseModel):
    """One item of the LLM analysis response; `id` is the article URL."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    relevance_score: Optional[float] = Field(default=None, alias="relevanceScore")
    explanation: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_breaking_news: bool = Field(default=False, alias="isBreakingNews")
    sentiment: Optional[str] = None
    sentiment_score: Optional[float] = Field(default=None, alias="sentimentScore")


class Preferences(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    categories: List[str] = Field(default_factory=list)
    sources: List[str] = Field(default_factory=list)
    max_articles: int = Field(default=15, alias="maxArticles", ge=1, le=100)
    refresh_interval_minutes: int = Field(default=30, alias="refreshIntervalMinutes", ge=1)
    topics_to_avoid: List[str] = Field(default_factory=list, alias="topicsToAvoid")
    notifications_enabled: bool = Field(default=True, alias="notificationsEnabled")


class ReadingHistoryEntry(BaseModel):
    article_url: str
    category: Optional[str] = None
    source_name: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    read_at: datetime
    time_spent: int = 0  # seconds
    completed: bool = False


class ReadIn(BaseModel):
    article_url: str
    time_spent: int = 0
    completed: bool = False


class PrefsIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    categories: Optional[List[str]] = None
    sources: Optional[List[str]] = None
    max_articles: Optional[int] = Field(default=None, alias="maxArticles", ge=1, le=100)
    refresh_interval_minutes: Optional[int] = Field(default=None, alias="refreshIntervalMinutes", ge=1)
    topics_to_avoid: Optional[List[str]] = Field(default=None, alias="topicsToAvoid")
    notifications_enabled: Optional[bool] = Field(default=None, alias="notificationsEnabled")
    interests: Optional[List[str]] = None
