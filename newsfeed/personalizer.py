"""
personalizer.py
===============
Re-orders a scored feed for one user.

Steps run in a fixed order (filter, category boost, source boost,
diversify, breaking-news placement). Each step returns a new list and never
mutates its input; score changes are applied to copies of the ScoredArticle.
A step that raises is logged and skipped, so the user still gets a feed.
"""
from __future__ import annotations

from collections import Counter
from typing import Callable, Dict, List, Optional, Sequence

from .interests import ReadingPatterns
from .logging_setup import get_logger
from .ranker import ScoredArticle, sort_scored
from .schema import Preferences

logger = get_logger("newsfeed.personalizer")

CATEGORY_BOOST = 10.0
SOURCE_BOOST = 5.0

DOMINANT_SHARE = 0.3
MIN_DIVERSIFY_SIZE = 5
CATEGORY_FREE_OCCURRENCES = 3
CATEGORY_PENALTY = 5.0
SOURCE_FREE_OCCURRENCES = 2
SOURCE_PENALTY = 3.0

BREAKING_WINDOW = 3
BREAKING_SLOT = 2


def filter_topics_to_avoid(items: Sequence[ScoredArticle], topics: Sequence[str]) -> List[ScoredArticle]:
    needles = [t.strip().lower() for t in topics or [] if t and t.strip()]
    if not needles:
        return list(items)
    out = []
    for it in items:
        text = it.article.text().lower()
        if any(n in text for n in needles):
            continue
        out.append(it)
    return out


def boost_categories(items: Sequence[ScoredArticle], categories: Sequence[str]) -> List[ScoredArticle]:
    if not categories:
        return list(items)
    wanted = set(categories)
    return sort_scored(it.adjusted(CATEGORY_BOOST) if it.category in wanted else it for it in items)


def boost_sources(items: Sequence[ScoredArticle], sources: Sequence[str]) -> List[ScoredArticle]:
    if not sources:
        return list(items)
    wanted = set(sources)
    return sort_scored(
        it.adjusted(SOURCE_BOOST) if it.source_name and it.source_name in wanted else it
        for it in items
    )


def _dominant(counts: Counter, total: int) -> set:
    return {k for k, n in counts.items() if n / total > DOMINANT_SHARE}


def diversify(items: Sequence[ScoredArticle]) -> List[ScoredArticle]:
    """
    Penalize over-represented categories and sources. A category or source is
    dominant above a 30% share; its occurrences past the first few (in scan
    order) lose points, then the list is re-sorted.
    """
    items = list(items)
    if len(items) < MIN_DIVERSIFY_SIZE:
        return items

    total = len(items)
    dom_cats = _dominant(Counter(it.category for it in items if it.category), total)
    dom_srcs = _dominant(Counter(it.source_name for it in items if it.source_name), total)
    if not dom_cats and not dom_srcs:
        return items

    seen_cats: Dict[str, int] = {}
    seen_srcs: Dict[str, int] = {}
    adjusted = []
    for it in items:
        delta = 0.0
        if it.category in dom_cats:
            seen_cats[it.category] = seen_cats.get(it.category, 0) + 1
            if seen_cats[it.category] > CATEGORY_FREE_OCCURRENCES:
                delta -= CATEGORY_PENALTY
        if it.source_name in dom_srcs:
            seen_srcs[it.source_name] = seen_srcs.get(it.source_name, 0) + 1
            if seen_srcs[it.source_name] > SOURCE_FREE_OCCURRENCES:
                delta -= SOURCE_PENALTY
        adjusted.append(it.adjusted(delta) if delta else it)
    return sort_scored(adjusted)


def ensure_breaking_in_top(items: Sequence[ScoredArticle]) -> List[ScoredArticle]:
    """Move the highest-ranked breaking article to the third slot when none sits in the top three."""
    items = list(items)
    if any(it.is_breaking for it in items[:BREAKING_WINDOW]):
        return items
    idx = next((i for i, it in enumerate(items) if it.is_breaking), None)
    if idx is None:
        return items
    top = items.pop(idx)
    items.insert(BREAKING_SLOT, top)
    return items


def _run_step(name: str, fn: Callable[..., List[ScoredArticle]], items: List[ScoredArticle], *args) -> List[ScoredArticle]:
    try:
        return fn(items, *args)
    except Exception as e:
        logger.exception(
            "PERSONALIZE_STEP_FAILED",
            extra={"step": name, "handled": True, "error": type(e).__name__, "count": len(items)},
        )
        return items


def personalize(
    items: Sequence[ScoredArticle],
    preferences: Optional[Preferences] = None,
    patterns: Optional[ReadingPatterns] = None,
) -> List[ScoredArticle]:
    original = list(items)
    if not original:
        return []
    try:
        topics = preferences.topics_to_avoid if preferences is not None else []
        patterns = patterns or ReadingPatterns()

        out = _run_step("filter_topics", filter_topics_to_avoid, original, topics)
        out = _run_step("boost_categories", boost_categories, out, patterns.preferred_categories)
        out = _run_step("boost_sources", boost_sources, out, patterns.preferred_sources)
        out = _run_step("diversify", diversify, out)
        out = _run_step("breaking", ensure_breaking_in_top, out)
    except Exception as e:
        logger.exception("PERSONALIZE_FAILED", extra={"handled": True, "error": type(e).__name__})
        return original

    logger.debug(
        "PERSONALIZE_DONE",
        extra={"step": "personalize", "count_in": len(original), "count_out": len(out)},
    )
    return out
