# newsfeed/analysis.py
from __future__ import annotations
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence
import json
import re

from openai import OpenAI
from pydantic import ValidationError

from .config import OPENAI_API_KEY, OPENAI_MODEL, REANALYZE_AFTER_HOURS
from .exceptions import AnalysisError
from .logging_setup import get_logger
from .models import Article, SENTIMENTS, clamp
from .schema import AnalysisResult, ReadingHistoryEntry

logger = get_logger("newsfeed.analysis")

ANALYZE_PROMPT = """
You are an expert news analyst and personalization engine.
Rank the articles on importance and global relevance (40%), recency (30%)
and relevance to the user's interests (30%).

User context: {context}

For each article return:
  - id: the article url, unchanged
  - relevanceScore: integer 0-100
  - explanation: one sentence
  - tags: up to 5 short topic tags
  - isBreakingNews: boolean
  - sentiment: "positive" | "neutral" | "negative"
  - sentimentScore: number between -1 and 1

Return strict JSON: {{"articles": [ ... ]}}
""".strip()

INTERESTS_PROMPT = """
Based on the user's reading history, identify their top interests.
Return strict JSON: {"interests": [{"topic": str, "relevance": 1-10, "category": str}]}
ranked by relevance.
""".strip()

TRENDING_PROMPT = """
Extract the top 10 trending topics from these headlines.
Return strict JSON: {"topics": [{"topic": str, "count": int, "category": str}]}
""".strip()

_STOP = set("""
a an and the of for to in on with by as at from about via into over under toward against between among
is are be was were been being this that those these it its their his her our your they we you i
new more less very most least not no yes will would can could should may might says said after
""".split())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def needs_analysis(article: Article, now: Optional[datetime] = None) -> bool:
    if article.last_analyzed_at is None:
        return True
    now = now or _utcnow()
    last = article.last_analyzed_at
    if last.tzinfo is None:
        last = last.replace(tzinfo=timezone.utc)
    return now - last > timedelta(hours=REANALYZE_AFTER_HOURS)


def apply_analysis(article: Article, result: AnalysisResult, now: Optional[datetime] = None) -> Article:
    """Merge one analysis result into the article, keeping existing values where the result is silent."""
    if result.relevance_score is not None:
        article.relevance_score = clamp(float(result.relevance_score), 0.0, 100.0)
    if result.tags:
        article.tags = [str(t) for t in result.tags]
    article.is_breaking_news = bool(result.is_breaking_news or article.is_breaking_news)
    if result.sentiment in SENTIMENTS:
        article.sentiment = result.sentiment
    if result.sentiment_score is not None:
        article.sentiment_score = clamp(float(result.sentiment_score), -1.0, 1.0)
    article.last_analyzed_at = now or _utcnow()
    return article


def trending_topics_fallback(articles: Sequence[Article], limit: int = 10) -> List[Dict[str, Any]]:
    """Word frequency over titles and descriptions, tagged with the dominant category per word."""
    words: Counter = Counter()
    cats: Dict[str, Counter] = {}
    for a in articles:
        text = re.sub(r"[^A-Za-z0-9 ]+", " ", f"{a.title or ''} {a.description or ''}").lower()
        for w in set(text.split()):
            if len(w) < 4 or w in _STOP:
                continue
            words[w] += 1
            cats.setdefault(w, Counter())[a.category or "general"] += 1
    return [
        {"topic": w, "count": n, "category": cats[w].most_common(1)[0][0]}
        for w, n in words.most_common(limit)
    ]


class AnalysisService:
    """
    LLM-backed article analysis. Every public method degrades to an empty or
    deterministic result when no client is configured or the call fails.
    """

    def __init__(self, client: Optional[OpenAI] = None, model: str = OPENAI_MODEL):
        self._client = client
        self.model = model

    @property
    def client(self) -> Optional[OpenAI]:
        if self._client is None and OPENAI_API_KEY:
            self._client = OpenAI(api_key=OPENAI_API_KEY)
        return self._client

    @property
    def available(self) -> bool:
        return self.client is not None

    def _complete_json(self, system: str, user: str, max_tokens: int) -> Dict[str, Any]:
        try:
            resp = self.client.chat.completions.create(
                model=self.model,
                temperature=0.3,
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
            )
            content = resp.choices[0].message.content
        except Exception as e:
            raise AnalysisError(f"completion failed: {type(e).__name__}: {e}") from e
        try:
            data = json.loads(content or "")
        except json.JSONDecodeError as e:
            logger.debug("LLM_RAW_RESPONSE", extra={"content": (content or "")[:500]})
            raise AnalysisError(f"unparseable response: {e}") from e
        if not isinstance(data, dict):
            raise AnalysisError("response is not a JSON object")
        return data

    def analyze(
        self,
        articles: Sequence[Article],
        context: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> List[AnalysisResult]:
        pending = [a for a in articles if needs_analysis(a, now)]
        if not pending or not self.available:
            return []

        payload = [
            {
                "id": a.url,
                "title": a.title,
                "description": a.description or "",
                "source": a.source_name or "Unknown",
                "publishedAt": a.published_at.isoformat() if a.published_at else None,
                "category": a.category or "general",
            }
            for a in pending
        ]
        try:
            data = self._complete_json(
                ANALYZE_PROMPT.format(context=json.dumps(context or {})),
                f"Analyze these news articles: {json.dumps(payload)}",
                max_tokens=4000,
            )
        except AnalysisError as e:
            logger.exception("ANALYZE_FAILED", extra={"handled": True, "count": len(pending), "error": str(e)})
            return []

        results: List[AnalysisResult] = []
        known = {a.url for a in pending}
        for raw in data.get("articles") or []:
            try:
                res = AnalysisResult.model_validate(raw)
            except ValidationError:
                continue
            if res.id in known:
                results.append(res)
        logger.info("ANALYZE_OK", extra={"step": "analyze", "sent": len(pending), "received": len(results)})
        return results

    def suggest_interests(self, history: Sequence[ReadingHistoryEntry]) -> List[str]:
        if not history or not self.available:
            return []
        payload = [
            {"url": e.article_url, "category": e.category, "tags": e.tags, "readAt": e.read_at.isoformat()}
            for e in history
        ]
        data = self._complete_json(INTERESTS_PROMPT, f"Analyze this reading history: {json.dumps(payload)}", 1000)
        out = []
        for item in data.get("interests") or []:
            topic = item.get("topic") if isinstance(item, dict) else item
            if isinstance(topic, str) and topic.strip():
                out.append(topic.strip())
        return out

    def extract_trending_topics(self, articles: Sequence[Article], limit: int = 10) -> List[Dict[str, Any]]:
        if not articles:
            return []
        if not self.available:
            return trending_topics_fallback(articles, limit)
        headlines = "\n".join(a.title for a in articles if a.title)
        try:
            data = self._complete_json(TRENDING_PROMPT, headlines, 1000)
        except AnalysisError as e:
            logger.exception("TRENDING_FAILED", extra={"handled": True, "error": str(e)})
            return trending_topics_fallback(articles, limit)
        topics = [t for t in data.get("topics") or [] if isinstance(t, dict) and t.get("topic")]
        return topics[:limit] or trending_topics_fallback(articles, limit)
