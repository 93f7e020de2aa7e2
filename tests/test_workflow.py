# tests/test_workflow.py
from datetime import timedelta

from freezegun import freeze_time

from newsfeed.guard import RefreshGuard
from newsfeed.ranker import Strategy
from newsfeed.schema import Preferences, ReadingHistoryEntry
from newsfeed.store import ArticleStore, UserProfileStore
from newsfeed.workflow import build_user_feed, generate_feed, run_cleanup, run_refresh

from conftest import NOW


def record(url, title, hours_old, category="general", source="Example Wire", **kw):
    return {
        "url": url,
        "title": title,
        "description": kw.pop("description", ""),
        "publishedAt": (NOW - timedelta(hours=hours_old)).isoformat(),
        "source": {"name": source},
        "category": category,
        **kw,
    }


RECORDS = [
    record("https://a.example/1", "Markets steady ahead of earnings", 3, "business"),
    record("https://a.example/2", "Local team wins opener", 5, "sports"),
    record("https://a.example/3", "New gallery opens downtown", 8, "entertainment"),
    record("https://bbc.com/4", "Summit talks continue", 2, "world", source="bbc.com"),
    record("https://a.example/5", "BREAKING: Earthquake strikes capital", 1, "world"),
    record("https://a.example/5", "duplicate of the breaking story", 1, "world"),
]


def test_breaking_story_surfaces_in_top_three():
    feed = generate_feed(RECORDS, Preferences(categories=["world"]), now=NOW)
    top = feed["articles"][:3]
    breaking = next(a for a in feed["articles"] if a["url"] == "https://a.example/5")

    assert "https://a.example/5" in [a["url"] for a in top]
    assert breaking["isBreakingNews"] is True
    assert breaking["analysisDetails"]["recency"] == 1.0
    assert breaking["analysisDetails"]["relevance"] == 0.9
    assert [a["url"] for a in feed["breakingNews"]] == ["https://a.example/5"]
    assert feed["strategy"] == "weighted"
    assert feed["total"] == 5


def test_feed_shape_and_grouping():
    feed = generate_feed(RECORDS, Preferences(max_articles=3), now=NOW)
    assert len(feed["articles"]) == 3
    grouped = [a["url"] for items in feed["articlesByCategory"].values() for a in items]
    assert sorted(grouped) == sorted(a["url"] for a in feed["articles"])
    for a in feed["articles"]:
        for k in ["url", "title", "category", "compositeScore", "analysisDetails", "isBreakingNews"]:
            assert k in a


def test_feed_pages_by_max_articles():
    second = generate_feed(RECORDS, Preferences(max_articles=3), now=NOW, page=2)
    first = generate_feed(RECORDS, Preferences(max_articles=3), now=NOW, page=1)
    assert len(second["articles"]) == 2
    assert not {a["url"] for a in first["articles"]} & {a["url"] for a in second["articles"]}


def test_topics_to_avoid_are_removed():
    records = RECORDS + [record("https://a.example/6", "Polls open", 1, "politics",
                                description="The ELECTION begins today")]
    feed = generate_feed(records, Preferences(topics_to_avoid=["election"]), now=NOW)
    assert "https://a.example/6" not in [a["url"] for a in feed["articles"]]


def test_avoided_breaking_story_is_not_resurfaced():
    records = [
        record("https://a.example/1", "Markets steady", 3, "business"),
        record("https://a.example/2", "BREAKING: Election results in", 1, "politics"),
    ]
    feed = generate_feed(records, Preferences(topics_to_avoid=["election"]), now=NOW)
    assert [a["url"] for a in feed["articles"]] == ["https://a.example/1"]
    assert feed["breakingNews"] == []


def test_malformed_fields_are_defaulted_not_dropped():
    records = [
        record("https://a.example/1", "Fine record", 2, "world"),
        record("https://a.example/2", 12345, 2, category=42, relevanceScore="high",
               popularity="lots", isBreakingNews="nope", author=["x"]),
    ]
    feed = generate_feed(records, Preferences(), now=NOW)
    assert len(feed["articles"]) == 2
    bad = next(a for a in feed["articles"] if a["url"] == "https://a.example/2")
    assert bad["category"] == "general"
    assert bad["relevanceScore"] == 50.0
    assert bad["title"] == "12345"
    assert bad["isBreakingNews"] is False


def test_additive_strategy_after_analysis():
    records = [
        record("https://a.example/1", "Quiet day", 1, relevanceScore=40),
        record("https://a.example/2", "Important vote", 30, relevanceScore=95),
    ]
    history = [ReadingHistoryEntry(article_url="x", tags=["vote"], read_at=NOW)]
    feed = generate_feed(records, Preferences(), ["vote"], history, strategy=Strategy.ADDITIVE, now=NOW)
    assert [a["url"] for a in feed["articles"]] == ["https://a.example/2", "https://a.example/1"]
    assert feed["articles"][0]["compositeScore"] == 95 + 5
    assert feed["articles"][0]["isBreakingNews"] is True


def test_empty_input_gives_empty_feed():
    feed = generate_feed([], now=NOW)
    assert feed["articles"] == [] and feed["breakingNews"] == [] and feed["articlesByCategory"] == {}


def test_build_user_feed_fetches_when_store_empty(session_factory, mocker):
    profiles = UserProfileStore(session_factory)
    articles = ArticleStore(session_factory)
    profiles.get_or_create("alice")
    fetch = mocker.Mock(return_value=RECORDS)
    analyzer = mocker.Mock(available=False)
    analyzer.analyze.return_value = []

    with freeze_time(NOW):
        feed = build_user_feed("alice", profiles, articles, analyzer, fetch=fetch)

    assert fetch.call_count == 1
    assert len(feed["articles"]) == 5
    assert len(articles.find()) == 5
    assert profiles.get("alice").last_feed_access is not None


def test_build_user_feed_survives_analyzer_failure(session_factory, mocker, make_article):
    profiles = UserProfileStore(session_factory)
    articles = ArticleStore(session_factory)
    profiles.get_or_create("bob")
    articles.upsert(make_article("https://a.example/1", hours_old=1))
    analyzer = mocker.Mock(available=False)
    analyzer.analyze.side_effect = RuntimeError("boom")

    feed = build_user_feed("bob", profiles, articles, analyzer, fetch=mocker.Mock(), now=NOW)
    assert [a["url"] for a in feed["articles"]] == ["https://a.example/1"]


def test_refresh_batches_with_backpressure(session_factory, mocker):
    fetch = mocker.Mock(side_effect=lambda q: [
        record(f"https://{q.category}.example/{i}", f"{q.category} {i}", i, q.category) for i in range(13)
    ])
    analyzer = mocker.Mock()
    analyzer.analyze.side_effect = [[], RuntimeError("rate limited"), [], []]
    sleep = mocker.Mock()

    metrics = run_refresh(RefreshGuard(), ArticleStore(session_factory), analyzer, fetch,
                          categories=["world", "sports"], batch_size=10, batch_delay=1.0, sleep=sleep)

    assert metrics["fetched"] == 26 and metrics["stored"] == 26
    assert analyzer.analyze.call_count == 3
    assert metrics["batch_errors"] == 1
    assert sleep.call_count == 2
    sleep.assert_called_with(1.0)


def test_refresh_skips_when_busy(mocker):
    guard = RefreshGuard()
    assert guard.try_acquire()
    fetch = mocker.Mock()
    assert run_refresh(guard, mocker.Mock(), mocker.Mock(), fetch) is None
    fetch.assert_not_called()
    guard.release()
    assert not guard.busy


def test_cleanup_failure_is_logged_not_raised(mocker):
    store = mocker.Mock()
    store.cleanup_expired.side_effect = RuntimeError("locked")
    assert run_cleanup(store, NOW) == 0
