# newsfeed/workflow.py
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence
import time
import uuid
from collections import Counter

from pydantic import ValidationError

from .analysis import AnalysisService, apply_analysis
from .breaking import detect_breaking, identify_breaking
from .config import ANALYSIS_BATCH_DELAY_SECONDS, ANALYSIS_BATCH_SIZE, DEFAULT_CATEGORIES
from .dedup import dedupe_by_url
from .grouping import group_by_category
from .guard import RefreshGuard
from .interests import reading_patterns, suggest_interests
from .logging_setup import get_logger
from .models import Article
from .personalizer import personalize
from .ranker import RankingConfig, RankingContext, Strategy, load_ranking_config, rank_articles
from .schema import Preferences, ReadingHistoryEntry
from .sources import FetchQuery, fetch_articles
from .store import ArticleStore, UserProfileStore

logger = get_logger("newsfeed.workflow")

FEED_CANDIDATES = 200  # stored articles considered per feed request


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_article(item: Any) -> Article:
    return item if isinstance(item, Article) else Article.from_record(item)


def strategy_for(articles: Sequence[Article]) -> Strategy:
    """Additive scoring once an external analysis pass has touched the batch."""
    return Strategy.ADDITIVE if any(a.last_analyzed_at is not None for a in articles) else Strategy.WEIGHTED


def generate_feed(
    raw_articles: Sequence[Any],
    preferences: Optional[Preferences] = None,
    interests: Sequence[str] = (),
    history: Sequence[ReadingHistoryEntry] = (),
    strategy: Optional[Strategy] = None,
    config: Optional[RankingConfig] = None,
    now: Optional[datetime] = None,
    page: int = 1,
) -> Dict[str, Any]:
    """
    Pure feed pipeline for one request:
    dedupe -> score -> breaking detection -> personalize -> page -> group.
    `raw_articles` may hold Article rows or collaborator records (dicts).
    """
    now = now or _utcnow()
    config = config or RankingConfig()
    preferences = preferences or Preferences()

    articles: List[Article] = []
    for item in dedupe_by_url(raw_articles):
        try:
            articles.append(_to_article(item))
        except ValidationError:
            logger.debug("ARTICLE_DROPPED", extra={"step": "convert", "handled": True})

    strategy = strategy or strategy_for(articles)
    patterns = reading_patterns(history, interests, now)
    context = RankingContext(
        categories=[c.lower() for c in preferences.categories],
        interests=list(patterns.topics_of_interest),
        now=now,
    )

    ranked = rank_articles(articles, context, strategy, config)
    ranked = detect_breaking(ranked, config)
    personalized = personalize(ranked, preferences, patterns)
    size = preferences.max_articles
    start = (max(1, page) - 1) * size
    top = personalized[start:start + size]

    logger.info(
        "FEED_GENERATED",
        extra={
            "step": "feed",
            "strategy": strategy.value,
            "candidates": len(articles),
            "returned": len(top),
            "category_dist": dict(Counter(s.category for s in top)),
        },
    )
    return {
        "articles": [s.to_dict() for s in top],
        "breakingNews": [s.to_dict() for s in identify_breaking(personalized)],
        "articlesByCategory": {
            cat: [s.to_dict() for s in items] for cat, items in group_by_category(top).items()
        },
        "strategy": strategy.value,
        "page": max(1, page),
        "total": len(personalized),
        "lastUpdated": now.isoformat(),
    }


def _load_candidates(preferences: Preferences, article_store: ArticleStore, fetch: Callable) -> List[Article]:
    candidates = article_store.find(
        categories=preferences.categories or None,
        limit=FEED_CANDIDATES,
    )
    if preferences.sources:
        candidates += article_store.find(source_names=preferences.sources, limit=FEED_CANDIDATES)
    if candidates:
        return dedupe_by_url(candidates)

    # Nothing stored yet: fetch live, one page per preferred category
    raw: List[Dict] = []
    for cat in preferences.categories or [None]:
        raw.extend(fetch(FetchQuery(category=cat)))
    return article_store.upsert_many(Article.from_record(r) for r in dedupe_by_url(raw))


def build_user_feed(
    user_id: str,
    profile_store: Optional[UserProfileStore] = None,
    article_store: Optional[ArticleStore] = None,
    analyzer: Optional[AnalysisService] = None,
    fetch: Callable[[FetchQuery], List[Dict]] = fetch_articles,
    config: Optional[RankingConfig] = None,
    now: Optional[datetime] = None,
    page: int = 1,
) -> Dict[str, Any]:
    """Load the profile and candidates, optionally refresh analysis, then run generate_feed."""
    profile_store = profile_store or UserProfileStore()
    article_store = article_store or ArticleStore()
    analyzer = analyzer or AnalysisService()
    config = config or load_ranking_config()
    now = now or _utcnow()
    t0 = time.perf_counter()

    profile = profile_store.get(user_id)
    try:
        preferences = profile.get_preferences()
    except ValidationError as e:
        logger.warning("PREFERENCES_INVALID", extra={"user_id": user_id, "handled": True, "error": type(e).__name__})
        preferences = Preferences()
    history = profile.get_history()

    candidates = _load_candidates(preferences, article_store, fetch)

    # Optional LLM pass; articles keep their heuristic data when it yields nothing
    try:
        results = analyzer.analyze(candidates, {"interests": profile.interests, "categories": preferences.categories}, now)
    except Exception as e:
        logger.exception("ANALYZE_FAILED", extra={"step": "analyze", "handled": True, "error": type(e).__name__})
        results = []
    if results:
        by_url = {a.url: a for a in candidates}
        for res in results:
            if res.id in by_url:
                apply_analysis(by_url[res.id], res, now)
        article_store.apply_analysis(results, now)

    interests = list(profile.interests) or suggest_interests(history, analyzer if analyzer.available else None)
    feed = generate_feed(candidates, preferences, interests, history, config=config, now=now, page=page)
    profile_store.touch_feed_access(user_id, now)

    logger.info(
        "USER_FEED_READY",
        extra={"user_id": user_id, "count": len(feed["articles"]),
               "elapsed_ms": round((time.perf_counter() - t0) * 1000)},
    )
    return feed


def run_refresh(
    guard: RefreshGuard,
    article_store: Optional[ArticleStore] = None,
    analyzer: Optional[AnalysisService] = None,
    fetch: Callable[[FetchQuery], List[Dict]] = fetch_articles,
    categories: Sequence[str] = tuple(DEFAULT_CATEGORIES),
    batch_size: int = ANALYSIS_BATCH_SIZE,
    batch_delay: float = ANALYSIS_BATCH_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> Optional[Dict[str, Any]]:
    """
    Scheduled refresh: fetch every category, dedupe, upsert, then analyze in
    paced batches. Returns None (and logs) when another cycle holds the guard.
    """
    run_id = uuid.uuid4().hex[:8]

    def X(**fields):
        return {"run_id": run_id, **fields}

    with guard.running() as acquired:
        if not acquired:
            logger.info("REFRESH_SKIPPED_BUSY", extra=X(step="start", handled=True))
            return None

        article_store = article_store or ArticleStore()
        analyzer = analyzer or AnalysisService()
        t0 = time.perf_counter()
        logger.info("REFRESH_START", extra=X(step="start", categories=list(categories)))

        # --- Fetch ---
        raw: List[Dict] = []
        for cat in categories:
            try:
                raw.extend(fetch(FetchQuery(category=cat, page_size=20)))
            except Exception as e:
                logger.exception("FETCH_FAILED", extra=X(step="fetch", category=cat, handled=True, error=type(e).__name__))
        unique = dedupe_by_url(raw)
        logger.info("FETCH_OK", extra=X(step="fetch", count=len(raw), unique=len(unique)))

        # --- Persist ---
        articles: List[Article] = []
        for r in unique:
            try:
                articles.append(Article.from_record(r))
            except ValidationError:
                continue
        stored = article_store.upsert_many(articles)

        # --- Analyze in batches ---
        analyzed = 0
        batch_errors = 0
        n_batches = (len(stored) + batch_size - 1) // batch_size if batch_size else 0
        for i in range(n_batches):
            batch = stored[i * batch_size:(i + 1) * batch_size]
            try:
                results = analyzer.analyze(batch, {})
                analyzed += article_store.apply_analysis(results)
                logger.info("BATCH_ANALYZED", extra=X(step="analyze", batch=i + 1, of=n_batches, results=len(results)))
            except Exception as e:
                batch_errors += 1
                logger.exception("BATCH_FAILED", extra=X(step="analyze", batch=i + 1, handled=True, error=type(e).__name__))
            if i + 1 < n_batches:
                # backpressure against the rate-limited analysis service
                sleep(batch_delay)

        metrics = {
            "run_id": run_id,
            "fetched": len(raw),
            "unique": len(unique),
            "stored": len(stored),
            "analyzed": analyzed,
            "batch_errors": batch_errors,
        }
        logger.info(
            "REFRESH_DONE",
            extra=X(step="end", metrics=metrics, total_elapsed_ms=round((time.perf_counter() - t0) * 1000)),
        )
        return metrics


def run_cleanup(article_store: Optional[ArticleStore] = None, now: Optional[datetime] = None) -> int:
    article_store = article_store or ArticleStore()
    try:
        deleted = article_store.cleanup_expired(now)
    except Exception as e:
        logger.exception("CLEANUP_FAILED", extra={"step": "cleanup", "handled": True, "error": type(e).__name__})
        return 0
    logger.info("CLEANUP_DONE", extra={"step": "cleanup", "deleted": deleted})
    return deleted
