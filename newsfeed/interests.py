from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence

from .logging_setup import get_logger
from .schema import ReadingHistoryEntry

logger = get_logger("newsfeed.interests")

ANALYSIS_WINDOW = 50
TOP_K = 10
TOP_PATTERNS = 5
MIN_HISTORY_FOR_SUGGESTIONS = 5


@dataclass
class ReadingPatterns:
    preferred_categories: List[str] = field(default_factory=list)
    preferred_sources: List[str] = field(default_factory=list)
    reading_frequency: str = "new"  # new | low | medium | high
    topics_of_interest: List[str] = field(default_factory=list)


def _top(values: Iterable[Optional[str]], n: int) -> List[str]:
    # Counter keeps insertion order, and most_common sorts stably, so ties stay first-seen
    counts = Counter(v for v in values if v)
    return [v for v, _ in counts.most_common(n)]


def extract_interests(
    history: Sequence[ReadingHistoryEntry],
    window: int = ANALYSIS_WINDOW,
    top_k: int = TOP_K,
) -> List[str]:
    """Most frequent tags across the most recent `window` reads."""
    tags = (t.strip() for entry in history[:window] for t in entry.tags)
    return _top(tags, top_k)


def reading_frequency(history: Sequence[ReadingHistoryEntry], now: Optional[datetime] = None) -> str:
    if not history:
        return "new"
    now = now or datetime.now(timezone.utc)
    week_ago = now - timedelta(days=7)
    recent = 0
    for e in history:
        read_at = e.read_at if e.read_at.tzinfo else e.read_at.replace(tzinfo=timezone.utc)
        if read_at >= week_ago:
            recent += 1
    if recent >= 30:
        return "high"
    if recent >= 10:
        return "medium"
    return "low"


def reading_patterns(
    history: Sequence[ReadingHistoryEntry],
    interests: Sequence[str] = (),
    now: Optional[datetime] = None,
) -> ReadingPatterns:
    if not history:
        return ReadingPatterns(topics_of_interest=list(interests))
    return ReadingPatterns(
        preferred_categories=_top((e.category for e in history), TOP_PATTERNS),
        preferred_sources=_top((e.source_name for e in history), TOP_PATTERNS),
        reading_frequency=reading_frequency(history, now),
        topics_of_interest=list(interests) if interests else extract_interests(history),
    )


def merge_interests(primary: Iterable[str], fallback: Iterable[str], limit: int = TOP_K) -> List[str]:
    seen = set()
    out: List[str] = []
    for topic in list(primary) + list(fallback):
        key = (topic or "").strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        out.append(topic.strip())
    return out[:limit]


def suggest_interests(history: Sequence[ReadingHistoryEntry], analyzer=None) -> List[str]:
    """
    Frequency-based interests, optionally led by LLM suggestions.
    The analyzer is only consulted with enough history; any failure falls
    back to the frequency result.
    """
    base = extract_interests(history)
    if analyzer is None or len(history) < MIN_HISTORY_FOR_SUGGESTIONS:
        return base
    try:
        suggested = analyzer.suggest_interests(list(history[:ANALYSIS_WINDOW]))
    except Exception as e:
        logger.exception("INTEREST_SUGGEST_FAILED", extra={"handled": True, "error": type(e).__name__})
        return base
    return merge_interests(suggested or [], base)
