# tests/test_analysis.py
import json
from datetime import timedelta
from types import SimpleNamespace

import pytest

from newsfeed.analysis import AnalysisService, apply_analysis, needs_analysis, trending_topics_fallback
from newsfeed.exceptions import AnalysisError
from newsfeed.schema import AnalysisResult

from conftest import NOW


def fake_client(mocker, content):
    client = mocker.Mock()
    client.chat.completions.create.return_value = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )
    return client


def test_analyze_without_client_returns_empty(make_article, mocker):
    mocker.patch("newsfeed.analysis.OPENAI_API_KEY", "")
    assert AnalysisService().analyze([make_article("u1")]) == []


def test_analyze_keeps_known_ids(make_article, mocker):
    content = json.dumps({"articles": [
        {"id": "u1", "relevanceScore": 92, "tags": ["quake"], "isBreakingNews": True,
         "sentiment": "negative", "sentimentScore": -0.7},
        {"id": "not-sent", "relevanceScore": 10},
        {"relevanceScore": 10},
    ]})
    svc = AnalysisService(client=fake_client(mocker, content))
    results = svc.analyze([make_article("u1"), make_article("u2")], {"interests": ["geology"]}, NOW)
    assert [r.id for r in results] == ["u1"]
    assert results[0].relevance_score == 92 and results[0].is_breaking_news


def test_analyze_unparseable_response_degrades(make_article, mocker):
    svc = AnalysisService(client=fake_client(mocker, "not json"))
    assert svc.analyze([make_article("u1")]) == []


def test_analyze_skips_recently_analyzed(make_article, mocker):
    client = fake_client(mocker, "{}")
    a = make_article("u1", last_analyzed_at=NOW - timedelta(hours=1))
    assert AnalysisService(client=client).analyze([a], now=NOW) == []
    client.chat.completions.create.assert_not_called()
    assert needs_analysis(a, NOW + timedelta(hours=13))


def test_apply_analysis_clamps_and_keeps_flag(make_article):
    a = make_article("u1", is_breaking_news=True)
    apply_analysis(a, AnalysisResult(id="u1", relevanceScore=140, sentimentScore=-3, sentiment="weird"), NOW)
    assert a.relevance_score == 100.0
    assert a.sentiment_score == -1.0
    assert a.sentiment == "unknown"
    assert a.is_breaking_news is True
    assert a.last_analyzed_at == NOW


def test_suggest_interests_raises_on_failure(mocker):
    client = mocker.Mock()
    client.chat.completions.create.side_effect = RuntimeError("down")
    from newsfeed.schema import ReadingHistoryEntry
    history = [ReadingHistoryEntry(article_url="u1", read_at=NOW)]
    with pytest.raises(AnalysisError):
        AnalysisService(client=client).suggest_interests(history)


def test_trending_fallback(make_article):
    items = [
        make_article("u1", title="Quantum chips arrive", category="technology"),
        make_article("u2", title="Quantum sensors for hospitals", category="health"),
        make_article("u3", title="Quantum startup raises funds", category="technology"),
    ]
    topics = trending_topics_fallback(items, limit=3)
    assert topics[0] == {"topic": "quantum", "count": 3, "category": "technology"}


def test_trending_uses_fallback_on_error(make_article, mocker):
    svc = AnalysisService(client=fake_client(mocker, "[]"))
    topics = svc.extract_trending_topics([make_article("u1", title="Lunar lander lands")])
    assert topics[0]["topic"] in {"lunar", "lander", "lands"}
