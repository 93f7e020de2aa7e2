# newsfeed/sources.py
"""
Article sources.
Providers, tried in order until one returns items:
  - NewsAPIProvider: top-headlines / everything, requires NEWS_API_KEY
  - GNewsProvider: fallback, requires GNEWS_API_KEY
  - GoogleNewsRSSProvider: query/category-driven RSS, no API key

fetch_articles() always returns a list of validated article records
(ArticleIn-shaped dicts); a total failure yields [].
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional
from urllib.parse import quote_plus
import time
import requests
import feedparser
from feedparser.datetimes import _parse_date
from pydantic import ValidationError

from .config import (
    DEFAULT_COUNTRY, DEFAULT_LANGUAGE, GNEWS_API_BASE_URL, GNEWS_API_KEY,
    MAX_ARTICLES_PER_REQUEST, NEWS_API_BASE_URL, NEWS_API_KEY, REQUESTS_TIMEOUT,
)
from .dedup import dedupe_by_url
from .exceptions import SourceError
from .logging_setup import get_logger
from .schema import ArticleIn

logger = get_logger("newsfeed.sources")

URL_CATEGORIES = ["politics", "business", "technology", "science", "health", "sports", "entertainment", "world"]

# GNews has no politics topic
GNEWS_TOPICS = {
    "general": "general", "business": "business", "technology": "technology", "science": "science",
    "health": "health", "entertainment": "entertainment", "sports": "sports", "politics": "world",
}

# ---------- Utilities ----------

def category_from_url(url: str) -> str:
    u = (url or "").lower()
    for c in URL_CATEGORIES:
        if f"/{c}/" in u or f"-{c}-" in u or f"-{c}/" in u or f"/{c}-" in u:
            return c
    return "general"

def _parse_feed_datetime(published: str) -> Optional[str]:
    """Best-effort parser for feedparser 'published'; returns ISO-8601 or None."""
    try:
        tt = _parse_date(published)
        if not tt:
            return None
        return datetime(*tt[:6], tzinfo=timezone.utc).isoformat()
    except Exception:
        return None

def _validated(items: List[Dict]) -> List[Dict]:
    """Drop records that do not satisfy the article contract."""
    out: List[Dict] = []
    for it in items:
        try:
            out.append(ArticleIn.model_validate(it).model_dump(by_alias=True, mode="json"))
        except ValidationError:
            continue
    return dedupe_by_url(out)

@dataclass
class FetchQuery:
    category: Optional[str] = None
    q: Optional[str] = None
    sources: List[str] = field(default_factory=list)
    country: str = DEFAULT_COUNTRY
    language: str = DEFAULT_LANGUAGE
    page_size: int = 20
    page: int = 1

# ---------- Provider base ----------

@dataclass
class ProviderResult:
    items: List[Dict]
    source_name: str

class BaseProvider:
    name = "base"

    def fetch(self, query: FetchQuery) -> ProviderResult:
        raise NotImplementedError

    def _get_json(self, url: str, params: Dict, headers: Optional[Dict] = None) -> Dict:
        try:
            r = requests.get(url, params=params, headers=headers or {}, timeout=REQUESTS_TIMEOUT)
            r.raise_for_status()
            return r.json()
        except (requests.RequestException, ValueError) as e:
            raise SourceError(f"{self.name}: {type(e).__name__}: {e}") from e

# ---------- NewsAPI ----------

class NewsAPIProvider(BaseProvider):
    """
    https://newsapi.org/: /top-headlines for category feeds, /everything for search.
    The sources parameter cannot be mixed with country/category.
    """

    name = "newsapi"

    def __init__(self, api_key: str, base_url: str = NEWS_API_BASE_URL):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    def fetch(self, query: FetchQuery) -> ProviderResult:
        params: Dict = {"pageSize": min(query.page_size, MAX_ARTICLES_PER_REQUEST), "page": query.page}
        if query.q:
            endpoint = "everything"
            params.update({"q": query.q, "language": query.language, "sortBy": "relevancy"})
        else:
            endpoint = "top-headlines"
            if query.sources:
                params["sources"] = ",".join(query.sources)
            else:
                params["country"] = query.country
                if query.category:
                    params["category"] = query.category

        data = self._get_json(f"{self.base_url}/{endpoint}", params, headers={"X-Api-Key": self.api_key})
        if data.get("status") != "ok":
            raise SourceError(f"{self.name}: status={data.get('status')} code={data.get('code')}")

        items: List[Dict] = []
        for a in data.get("articles", []):
            url = a.get("url") or ""
            items.append({
                "url": url,
                "title": a.get("title") or "",
                "description": a.get("description") or "",
                "content": a.get("content") or "",
                "urlToImage": a.get("urlToImage"),
                "author": a.get("author"),
                "publishedAt": a.get("publishedAt"),
                "source": a.get("source") or {},
                "category": query.category or category_from_url(url),
            })
        return ProviderResult(items=_validated(items), source_name=self.name)

# ---------- GNews ----------

class GNewsProvider(BaseProvider):
    name = "gnews"

    def __init__(self, api_key: str, base_url: str = GNEWS_API_BASE_URL):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    def fetch(self, query: FetchQuery) -> ProviderResult:
        params: Dict = {"token": self.api_key, "max": query.page_size, "page": query.page}
        if query.q:
            endpoint = "search"
            params.update({"q": query.q, "lang": query.language})
        else:
            endpoint = "top-headlines"
            params["country"] = query.country
            if query.category:
                params["topic"] = GNEWS_TOPICS.get(query.category, "general")

        data = self._get_json(f"{self.base_url}/{endpoint}", params)
        if "articles" not in data:
            raise SourceError(f"{self.name}: invalid response")

        items: List[Dict] = []
        for a in data["articles"]:
            url = a.get("url") or ""
            items.append({
                "url": url,
                "title": a.get("title") or "",
                "description": a.get("description") or "",
                "content": a.get("content") or "",
                "urlToImage": a.get("image"),
                "publishedAt": a.get("publishedAt"),
                "source": {"name": (a.get("source") or {}).get("name") or "GNews", "id": None},
                "category": query.category or category_from_url(url),
            })
        return ProviderResult(items=_validated(items), source_name=self.name)

# ---------- Google News RSS (no key) ----------

class GoogleNewsRSSProvider(BaseProvider):
    """
    Uses Google News RSS for a query or a category keyword.
    Pros: free, no key. Cons: RSS snippets are short.
    """

    name = "google_news_rss"

    def _build_url(self, query: FetchQuery) -> str:
        lang, country = query.language, query.country.upper()
        ceid = f"{country}:{lang}"
        term = query.q or (query.category if query.category and query.category != "general" else "")
        if not term:
            return f"https://news.google.com/rss?hl={lang}&gl={country}&ceid={ceid}"
        return f"https://news.google.com/rss/search?q={quote_plus(term)}+when:1d&hl={lang}&gl={country}&ceid={ceid}"

    def fetch(self, query: FetchQuery) -> ProviderResult:
        feed = feedparser.parse(self._build_url(query))
        if getattr(feed, "bozo", False) and not feed.entries:
            raise SourceError(f"{self.name}: unreadable feed")
        items: List[Dict] = []
        for e in feed.entries[: query.page_size]:
            url = getattr(e, "link", "")
            source = getattr(e, "source", None) or {}
            items.append({
                "url": url,
                "title": getattr(e, "title", ""),
                "description": getattr(e, "summary", ""),
                "publishedAt": _parse_feed_datetime(getattr(e, "published", "")),
                "source": {"name": (source.get("title") if hasattr(source, "get") else None) or "Google News"},
                "category": query.category or category_from_url(url),
            })
        return ProviderResult(items=_validated(items), source_name=self.name)

# ---------- Orchestrator ----------

def default_providers() -> List[BaseProvider]:
    providers: List[BaseProvider] = []
    if NEWS_API_KEY:
        providers.append(NewsAPIProvider(NEWS_API_KEY))
    if GNEWS_API_KEY:
        providers.append(GNewsProvider(GNEWS_API_KEY))
    providers.append(GoogleNewsRSSProvider())
    return providers

def fetch_articles(query: Optional[FetchQuery] = None, providers: Optional[List[BaseProvider]] = None) -> List[Dict]:
    """
    Fetch one page of articles. Providers are tried in order; the first one
    that answers with items wins. Returns [] when every provider fails.
    """
    query = query or FetchQuery()
    providers = providers if providers is not None else default_providers()

    for i, p in enumerate(providers):
        t0 = time.perf_counter()
        try:
            res = p.fetch(query)
        except Exception as e:
            # soft-fail one provider; fall through to the next
            logger.warning(
                "PROVIDER_FAILED",
                extra={"provider": p.name, "category": query.category, "handled": True, "error": type(e).__name__},
            )
            continue
        if res.items:
            logger.info(
                "PROVIDER_OK",
                extra={
                    "provider": p.name,
                    "category": query.category,
                    "count": len(res.items),
                    "elapsed_ms": round((time.perf_counter() - t0) * 1000),
                },
            )
            return res.items
        # polite pacing if providers rate-limit
        if i + 1 < len(providers):
            time.sleep(0.3)

    logger.warning("FETCH_EMPTY", extra={"category": query.category, "providers": [p.name for p in providers]})
    return []
