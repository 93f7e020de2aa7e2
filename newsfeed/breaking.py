from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Optional

from .ranker import RankingConfig, ScoredArticle, Strategy


def has_urgency_keyword(title: str, config: RankingConfig) -> bool:
    t = (title or "").lower()
    return any(k in t for k in config.urgency_keywords)


def is_breaking(item: ScoredArticle, config: Optional[RankingConfig] = None) -> bool:
    """
    Breaking when analysis already said so, when a fresh article carries an
    urgency keyword in its title, or when its score is top-tier for its scale.
    """
    config = config or RankingConfig()
    if item.is_breaking or item.article.is_breaking_news:
        return True
    if item.breakdown.recency > config.breaking_recency_threshold and has_urgency_keyword(item.article.title, config):
        return True
    if item.strategy is Strategy.ADDITIVE:
        base = item.article.relevance_score or 0.0
        return base > config.breaking_relevance_threshold
    return item.score > config.breaking_score_threshold


def detect_breaking(items: Iterable[ScoredArticle], config: Optional[RankingConfig] = None) -> List[ScoredArticle]:
    """Return copies with `is_breaking` set; order and scores are untouched."""
    config = config or RankingConfig()
    return [replace(it, is_breaking=is_breaking(it, config)) for it in items]


def identify_breaking(items: Iterable[ScoredArticle]) -> List[ScoredArticle]:
    return [it for it in items if it.is_breaking]
