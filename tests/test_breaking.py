# tests/test_breaking.py
from newsfeed.breaking import detect_breaking, identify_breaking, is_breaking
from newsfeed.ranker import RankingContext, Strategy, rank_articles, score_article

from conftest import NOW

CTX = RankingContext(now=NOW)


def test_fresh_urgent_title_is_breaking(make_article):
    s = score_article(make_article("u1", title="BREAKING: Quake hits coast", hours_old=1), CTX)
    assert is_breaking(s)


def test_stale_urgent_title_is_not_breaking(make_article):
    s = score_article(make_article("u1", title="Breaking down the budget", hours_old=30), CTX)
    assert not is_breaking(s)


def test_existing_flag_wins(make_article):
    s = score_article(make_article("u1", hours_old=100, is_breaking_news=True), CTX)
    assert is_breaking(s)


def test_additive_threshold_uses_base_relevance(make_article):
    hot = score_article(make_article("u1", hours_old=30, relevance_score=95.0), CTX, Strategy.ADDITIVE)
    warm = score_article(make_article("u2", hours_old=0, relevance_score=85.0), CTX, Strategy.ADDITIVE)
    assert warm.score > hot.score
    assert is_breaking(hot)
    assert not is_breaking(warm)


def test_detect_breaking_returns_copies_in_order(make_article):
    ranked = rank_articles(
        [make_article("u1", title="Just in: vote delayed", hours_old=0), make_article("u2", hours_old=5)],
        CTX,
    )
    flagged = detect_breaking(ranked)
    assert [s.url for s in flagged] == [s.url for s in ranked]
    assert [s.score for s in flagged] == [s.score for s in ranked]
    assert not any(s.is_breaking for s in ranked)
    assert [s.url for s in identify_breaking(flagged)] == ["u1"]
