"""Tests for the database abstraction layer."""

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from rss_ingest import db
from rss_ingest.models import NewArticle, NewFeed


def add_feed(database, url="https://example.com/feed.xml", title="Example"):
    return database.insert_feed(NewFeed(title=title, feed_url=url, site_url="https://example.com/"))


def add_article(database, feed_id, guid, **overrides):
    values = {"title": f"Article {guid}", "link": f"https://example.com/{guid}"}
    values.update(overrides)
    return database.insert_article(NewArticle(feed_id=feed_id, guid=guid, **values))


def test_init_engine_without_connection_string_returns_none():
    assert db.init_engine(None) is None
    assert db.init_engine("") is None


def test_from_url_requires_connection_string():
    with pytest.raises(ValueError):
        db.Database.from_url("")


def test_insert_and_get_feed(database):
    feed_id = add_feed(database)

    assert database.get_feed_url(feed_id) == "https://example.com/feed.xml"
    record = database.get_feed(feed_id)
    assert record["title"] == "Example"
    assert record["site_url"] == "https://example.com/"
    assert record["unread_count"] == 0
    assert record["last_fetched_at"] is None


def test_unknown_feed_lookups(database):
    assert database.get_feed_url(999) is None
    assert database.get_feed(999) is None


def test_duplicate_feed_url_is_rejected(database):
    add_feed(database)
    with pytest.raises(IntegrityError):
        add_feed(database)


def test_insert_article_is_idempotent_per_feed_and_guid(database):
    feed_id = add_feed(database)

    first = add_article(database, feed_id, "guid-1")
    second = add_article(database, feed_id, "guid-1", title="Changed")

    assert first.inserted
    assert first.article_id is not None
    assert not second.inserted
    assert database.get_article(first.article_id)["title"] == "Article guid-1"


def test_same_guid_in_another_feed_is_a_new_article(database):
    first_feed = add_feed(database)
    other_feed = add_feed(database, url="https://other.example/rss")

    assert add_article(database, first_feed, "shared").inserted
    assert add_article(database, other_feed, "shared").inserted


def test_insert_article_fallback_path_reports_ignored(database, monkeypatch):
    monkeypatch.setattr(db, "_INSERT_OR_IGNORE", {})
    feed_id = add_feed(database)

    assert add_article(database, feed_id, "guid-1").inserted
    assert not add_article(database, feed_id, "guid-1").inserted


def test_feed_updates(database):
    feed_id = add_feed(database)

    database.update_feed_last_fetched(feed_id)
    database.update_feed_favicon(feed_id, "https://example.com/favicon.ico")

    record = database.get_feed(feed_id)
    assert record["last_fetched_at"] is not None
    assert record["favicon_url"] == "https://example.com/favicon.ico"


def test_get_feeds_reports_unread_counts(database):
    busy = add_feed(database, title="B feed")
    quiet = add_feed(database, url="https://quiet.example/rss", title="A feed")
    ids = [add_article(database, busy, f"g{i}").article_id for i in range(3)]
    database.toggle_read(ids[0])

    feeds = database.get_feeds()

    assert [feed["id"] for feed in feeds] == [quiet, busy]
    assert {feed["id"]: feed["unread_count"] for feed in feeds} == {quiet: 0, busy: 2}


def test_delete_feed_removes_articles(database):
    feed_id = add_feed(database)
    article_id = add_article(database, feed_id, "g1").article_id

    assert database.delete_feed(feed_id) is True
    assert database.get_feed(feed_id) is None
    assert database.get_article(article_id) is None
    assert database.delete_feed(feed_id) is False


def test_get_articles_orders_and_filters(database):
    feed_id = add_feed(database)
    other = add_feed(database, url="https://other.example/rss")
    old = add_article(
        database, feed_id, "old", published_at=datetime(2023, 1, 1, tzinfo=timezone.utc)
    ).article_id
    new = add_article(
        database, feed_id, "new", published_at=datetime(2024, 1, 1, tzinfo=timezone.utc)
    ).article_id
    elsewhere = add_article(
        database, other, "x", published_at=datetime(2022, 1, 1, tzinfo=timezone.utc)
    ).article_id

    assert [a["id"] for a in database.get_articles(feed_id=feed_id)] == [new, old]
    assert [a["id"] for a in database.get_articles()] == [new, old, elsewhere]
    assert [a["id"] for a in database.get_articles(offset=1, limit=1)] == [old]

    database.toggle_read(new)
    assert [a["id"] for a in database.get_articles(unread_only=True)] == [old, elsewhere]

    database.toggle_favorite(elsewhere)
    favorites = database.get_articles(favorites_only=True)
    assert [a["id"] for a in favorites] == [elsewhere]
    assert favorites[0]["feed_title"] == "Example"


def test_toggles_return_new_state(database):
    feed_id = add_feed(database)
    article_id = add_article(database, feed_id, "g1").article_id

    assert database.toggle_read(article_id) is True
    assert database.toggle_read(article_id) is False
    assert database.toggle_favorite(article_id) is True
    assert database.get_favorites_count() == 1
    assert database.toggle_read(12345) is None


def test_mark_all_read_and_unread(database):
    feed_id = add_feed(database)
    other = add_feed(database, url="https://other.example/rss")
    for guid in ("a", "b"):
        add_article(database, feed_id, guid)
    add_article(database, other, "c")

    assert database.mark_all_read(feed_id) == 2
    assert database.get_feed(feed_id)["unread_count"] == 0
    assert database.get_feed(other)["unread_count"] == 1

    assert database.mark_all_read() == 1
    assert database.mark_all_unread() == 3


def test_search_articles_is_case_insensitive(database):
    feed_id = add_feed(database)
    add_article(database, feed_id, "a", title="Python tips")
    add_article(database, feed_id, "b", title="Other", summary="all about PYTHON")
    add_article(database, feed_id, "c", title="Unrelated")

    found = database.search_articles("python")

    assert sorted(article["guid"] for article in found) == ["a", "b"]


def test_update_article_content(database):
    feed_id = add_feed(database)
    article_id = add_article(database, feed_id, "a").article_id

    database.update_article_content(article_id, "<p>full text</p>")

    assert database.get_article(article_id)["content"] == "<p>full text</p>"
