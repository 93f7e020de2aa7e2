# tests/test_store.py
from datetime import timedelta

import pytest
from sqlmodel import select

from newsfeed.exceptions import ProfileNotFound
from newsfeed.models import Article
from newsfeed.schema import AnalysisResult, PrefsIn
from newsfeed.store import ArticleStore, UserProfileStore, get_session

from conftest import NOW


def test_db_roundtrip():
    with get_session() as s:
        a = Article(url="roundtrip-u", title="t")
        s.add(a); s.commit(); s.refresh(a)
        got = s.exec(select(Article).where(Article.id == a.id)).first()
        assert got and got.title == "t"


def test_upsert_by_url_keeps_analysis(session_factory, make_article):
    store = ArticleStore(session_factory)
    store.upsert(make_article("u1", title="old"))
    store.apply_analysis([AnalysisResult(id="u1", relevanceScore=88, tags=["x"])], NOW)
    store.upsert(make_article("u1", title="new"))

    rows = store.find()
    assert len(rows) == 1
    assert rows[0].title == "new"
    assert rows[0].relevance_score == 88
    assert rows[0].tags == ["x"]


def test_find_filters(session_factory, make_article):
    store = ArticleStore(session_factory)
    store.upsert_many([
        make_article("u1", category="sports", hours_old=1),
        make_article("u2", category="world", hours_old=2, source="Wire"),
        make_article("u3", category="sports", hours_old=50),
    ])
    assert [a.url for a in store.find(category="sports")] == ["u1", "u3"]
    assert [a.url for a in store.find(categories=["world"])] == ["u2"]
    assert [a.url for a in store.find(source_names=["Wire"])] == ["u2"]
    assert {a.url for a in store.find(since=NOW - timedelta(hours=10))} == {"u1", "u2"}


def test_cleanup_keeps_saved_and_recent(session_factory, make_article):
    store = ArticleStore(session_factory)
    store.upsert_many([
        make_article("old", hours_old=24 * 40),
        make_article("old-saved", hours_old=24 * 40, save_count=1),
        make_article("recent", hours_old=1),
    ])
    assert store.cleanup_expired(NOW) == 1
    assert {a.url for a in store.find()} == {"old-saved", "recent"}


def test_profile_not_found(session_factory):
    with pytest.raises(ProfileNotFound):
        UserProfileStore(session_factory).get("nobody")


def test_record_read_caps_history(session_factory, make_article):
    articles = ArticleStore(session_factory)
    articles.upsert_many([make_article(f"u{i}", category="science", tags=[f"t{i}"]) for i in range(5)])
    profiles = UserProfileStore(session_factory, history_cap=3)

    for i in range(5):
        profiles.record_read("alice", f"u{i}", time_spent=10, now=NOW + timedelta(minutes=i))
    profile = profiles.record_read("alice", "u4", time_spent=30, completed=True)

    history = profile.get_history()
    assert [e.article_url for e in history] == ["u4", "u3", "u2"]
    assert history[0].time_spent == 30 and history[0].completed
    assert history[0].category == "science" and history[0].tags == ["t4"]
    assert articles.get("u4").read_count == 2


def test_record_read_unknown_article(session_factory):
    with pytest.raises(LookupError):
        UserProfileStore(session_factory).record_read("alice", "missing")


def test_update_preferences_merges(session_factory):
    profiles = UserProfileStore(session_factory)
    profiles.update_preferences("bob", PrefsIn(categories=["world"], interests=["space"]))
    profile = profiles.update_preferences("bob", PrefsIn(max_articles=5))
    prefs = profile.get_preferences()
    assert prefs.categories == ["world"]
    assert prefs.max_articles == 5
    assert profile.interests == ["space"]
