from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse
import json

from .config import RANKING_CONFIG_PATH
from .models import Article, clamp

DEFAULT_CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "technology": ["tech", "software", "hardware", "ai", "artificial intelligence", "app",
                   "digital", "internet", "cyber", "computer"],
    "business": ["market", "stock", "economy", "finance", "company", "trade", "investment",
                 "startup", "entrepreneur"],
    "science": ["research", "study", "discovery", "scientist", "experiment", "space",
                "physics", "chemistry", "biology"],
    "health": ["medical", "doctor", "patient", "hospital", "disease", "treatment",
               "medicine", "healthcare", "wellness"],
    "entertainment": ["movie", "film", "music", "celebrity", "actor", "actress", "hollywood",
                      "tv", "show", "star"],
    "sports": ["game", "player", "team", "match", "tournament", "championship", "athlete",
               "league", "score"],
    "politics": ["government", "president", "election", "party", "vote", "campaign", "policy",
                 "congress", "senate", "democrat", "republican"],
    "world": ["country", "international", "global", "foreign", "nation", "diplomatic",
              "embassy", "treaty", "border"],
}

# 1-10 ratings; matched as substrings of the source host
DEFAULT_SOURCE_RATINGS: Dict[str, int] = {
    "bbc.com": 9,
    "reuters.com": 9,
    "apnews.com": 9,
    "nytimes.com": 8,
    "washingtonpost.com": 8,
    "theguardian.com": 8,
    "economist.com": 8,
    "npr.org": 8,
    "wsj.com": 7,
    "bloomberg.com": 7,
    "cnn.com": 6,
    "foxnews.com": 5,
}

DEFAULT_WEIGHTS: Dict[str, float] = {
    "recency": 0.3,
    "relevance": 0.4,
    "source_quality": 0.2,
    "popularity": 0.1,
}

URGENCY_KEYWORDS: Tuple[str, ...] = ("breaking", "urgent", "just in", "alert", "update")

# (max age in hours, bonus points) for the additive strategy
AGE_BONUSES: Tuple[Tuple[float, float], ...] = ((2, 20), (6, 15), (12, 10), (24, 5))
INTEREST_MATCH_BONUS = 5.0
BREAKING_BONUS = 15.0
DEFAULT_RELEVANCE = 50.0


class Strategy(str, Enum):
    """WEIGHTED for freshly fetched articles, ADDITIVE once LLM analysis has run."""
    WEIGHTED = "weighted"
    ADDITIVE = "additive"


@dataclass(frozen=True)
class RankingConfig:
    category_keywords: Dict[str, List[str]] = field(default_factory=lambda: dict(DEFAULT_CATEGORY_KEYWORDS))
    source_ratings: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_SOURCE_RATINGS))
    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    urgency_keywords: Tuple[str, ...] = URGENCY_KEYWORDS
    breaking_recency_threshold: float = 0.85
    breaking_score_threshold: float = 0.9       # weighted scale
    breaking_relevance_threshold: float = 90.0  # additive scale (base relevance)

    @classmethod
    def from_file(cls, path) -> "RankingConfig":
        """Load a JSON file; keys present replace the defaults wholesale."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        base = cls()
        return cls(
            category_keywords={k.lower(): [w.lower() for w in v]
                               for k, v in data.get("category_keywords", base.category_keywords).items()},
            source_ratings={k.lower(): int(v) for k, v in data.get("source_ratings", base.source_ratings).items()},
            weights={**base.weights, **data.get("weights", {})},
            urgency_keywords=tuple(data.get("urgency_keywords", base.urgency_keywords)),
            breaking_recency_threshold=float(data.get("breaking_recency_threshold", base.breaking_recency_threshold)),
            breaking_score_threshold=float(data.get("breaking_score_threshold", base.breaking_score_threshold)),
            breaking_relevance_threshold=float(
                data.get("breaking_relevance_threshold", base.breaking_relevance_threshold)
            ),
        )


def load_ranking_config(path: Optional[str] = None) -> RankingConfig:
    path = path or RANKING_CONFIG_PATH
    return RankingConfig.from_file(path) if path else RankingConfig()


@dataclass(frozen=True)
class RankingContext:
    categories: Sequence[str] = ()
    interests: Sequence[str] = ()
    now: Optional[datetime] = None


@dataclass(frozen=True)
class ScoreBreakdown:
    recency: float
    relevance: float
    source_quality: float
    popularity: float

    def as_dict(self) -> Dict[str, float]:
        return {
            "recency": round(self.recency, 4),
            "relevance": round(self.relevance, 4),
            "sourceQuality": round(self.source_quality, 4),
            "popularity": round(self.popularity, 4),
        }


@dataclass(frozen=True)
class ScoredArticle:
    article: Article
    score: float
    breakdown: ScoreBreakdown
    strategy: Strategy = Strategy.WEIGHTED
    position: int = 0
    is_breaking: bool = False

    @property
    def url(self) -> str:
        return self.article.url

    @property
    def category(self) -> str:
        return self.article.category

    @property
    def source_name(self) -> str:
        return self.article.source_name or ""

    def adjusted(self, delta: float) -> "ScoredArticle":
        return replace(self, score=self.score + delta)

    def to_dict(self) -> Dict:
        return {
            **self.article.to_dict(),
            "isBreakingNews": self.is_breaking,
            "compositeScore": round(self.score, 4),
            "analysisDetails": self.breakdown.as_dict(),
        }


# ---------- Sub-scores ----------

def age_hours(published_at: Optional[datetime], now: Optional[datetime] = None) -> Optional[float]:
    if published_at is None:
        return None
    now = now or datetime.now(timezone.utc)
    if published_at.tzinfo is None:
        published_at = published_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return max(0.0, (now - published_at).total_seconds() / 3600.0)


def recency_score(published_at: Optional[datetime], now: Optional[datetime] = None) -> float:
    age = age_hours(published_at, now)
    if age is None:
        return 0.5
    if age < 2:
        return 1.0
    if age < 12:
        return 0.9 - age / 120
    if age < 24:
        return 0.8 - age / 240
    if age < 48:
        return 0.7 - age / 480
    if age < 72:
        return 0.5 - age / 720
    return max(0.1, 0.4 - age / 1000)


def relevance_score(article: Article, user_categories: Iterable[str], config: RankingConfig) -> float:
    cats = [c.lower() for c in user_categories if c]
    if not cats:
        return 0.5
    text = article.text().strip().lower()
    if not text:
        return 0.3
    if (article.category or "").lower() in cats:
        return 0.9

    matched = set()
    for cat in cats:
        for kw in config.category_keywords.get(cat, []):
            if kw in text:
                matched.add(kw)
    return min(1.0, 0.3 + 0.1 * len(matched))


def _domain(value: str) -> str:
    v = (value or "").strip().lower()
    if "://" in v:
        try:
            return urlparse(v).hostname or v
        except ValueError:
            return v
    return v


def _rating_for(value: str, config: RankingConfig) -> Optional[float]:
    domain = _domain(value)
    if not domain:
        return None
    for rated, rating in config.source_ratings.items():
        if rated in domain:
            return rating / 10.0
    return None


def source_quality_score(article: Article, config: RankingConfig) -> float:
    # The source name (often itself a domain) decides; the URL only stands in when it is empty.
    rating = _rating_for(article.source_name or article.url or "", config)
    return clamp(rating, 0.0, 1.0) if rating is not None else 0.5


def popularity_score(article: Article) -> float:
    if article.popularity is None:
        return 0.5
    return clamp(float(article.popularity), 0.0, 1.0)


def breakdown_for(article: Article, context: RankingContext, config: RankingConfig) -> ScoreBreakdown:
    return ScoreBreakdown(
        recency=recency_score(article.published_at, context.now),
        relevance=relevance_score(article, context.categories, config),
        source_quality=source_quality_score(article, config),
        popularity=popularity_score(article),
    )


# ---------- Strategies ----------

def weighted_score(b: ScoreBreakdown, config: RankingConfig) -> float:
    """Composite in [0, 1]."""
    w = config.weights
    total = (
        b.recency * w.get("recency", 0.0)
        + b.relevance * w.get("relevance", 0.0)
        + b.source_quality * w.get("source_quality", 0.0)
        + b.popularity * w.get("popularity", 0.0)
    )
    return clamp(total, 0.0, 1.0)


def interest_matches(article: Article, interests: Iterable[str]) -> int:
    text = f"{article.title or ''} {article.description or ''} {article.category or ''}".lower()
    return sum(1 for i in {x.lower() for x in interests if x} if i in text)


def additive_score(article: Article, context: RankingContext) -> float:
    """
    Relevance (0-100) plus bonuses. Practical range is
    [0, 135 + 5 * len(interests)]: age adds at most 20, breaking 15.
    """
    score = article.relevance_score if article.relevance_score is not None else DEFAULT_RELEVANCE
    score = clamp(float(score), 0.0, 100.0)

    age = age_hours(article.published_at, context.now)
    if age is not None:
        for max_age, bonus in AGE_BONUSES:
            if age < max_age:
                score += bonus
                break

    score += INTEREST_MATCH_BONUS * interest_matches(article, context.interests)
    if article.is_breaking_news:
        score += BREAKING_BONUS
    return score


def score_article(
    article: Article,
    context: RankingContext = RankingContext(),
    strategy: Strategy = Strategy.WEIGHTED,
    config: Optional[RankingConfig] = None,
    position: int = 0,
) -> ScoredArticle:
    config = config or RankingConfig()
    b = breakdown_for(article, context, config)
    if strategy is Strategy.ADDITIVE:
        score = additive_score(article, context)
    else:
        score = weighted_score(b, config)
    return ScoredArticle(
        article=article,
        score=score,
        breakdown=b,
        strategy=strategy,
        position=position,
        is_breaking=bool(article.is_breaking_news),
    )


def sort_scored(items: Iterable[ScoredArticle]) -> List[ScoredArticle]:
    # sorted() is stable: equal scores keep their current relative order
    return sorted(items, key=lambda s: s.score, reverse=True)


def rank_articles(
    articles: Iterable[Article],
    context: RankingContext = RankingContext(),
    strategy: Strategy = Strategy.WEIGHTED,
    config: Optional[RankingConfig] = None,
) -> List[ScoredArticle]:
    config = config or RankingConfig()
    if context.now is None:
        context = replace(context, now=datetime.now(timezone.utc))
    scored = [score_article(a, context, strategy, config, position=i) for i, a in enumerate(articles)]
    return sort_scored(scored)
