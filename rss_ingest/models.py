"""Shared data models for rss_ingest."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


class FeedFormat(enum.Enum):
    """Feed dialects understood by the parsers."""

    RSS2 = "rss2"
    RSS1 = "rss1"
    ATOM = "atom"


@dataclass
class FeedEntry:
    """One syndicated item, normalised across dialects."""

    id: str = ""
    title: str = ""
    link: str = ""
    content: Optional[str] = None
    summary: Optional[str] = None
    author: Optional[str] = None
    published: Optional[datetime] = None
    updated: Optional[datetime] = None
    categories: List[str] = field(default_factory=list)
    image_url: Optional[str] = None


@dataclass
class Feed:
    """Canonical feed produced by every dialect parser."""

    title: str
    link: str
    feed_url: str
    description: Optional[str] = None
    language: Optional[str] = None
    last_updated: Optional[datetime] = None
    entries: List[FeedEntry] = field(default_factory=list)

    @property
    def site_url(self) -> Optional[str]:
        return self.link or None


@dataclass(frozen=True)
class DiscoveredFeed:
    """Candidate feed URL found during autodiscovery."""

    url: str


@dataclass
class NewFeed:
    """Feed row to be persisted."""

    title: str
    feed_url: str
    site_url: Optional[str] = None
    description: Optional[str] = None
    language: Optional[str] = None
    favicon_url: Optional[str] = None
    last_build_date: Optional[datetime] = None

    @classmethod
    def from_feed(cls, feed: Feed) -> "NewFeed":
        return cls(
            title=feed.title,
            feed_url=feed.feed_url,
            site_url=feed.site_url,
            description=feed.description,
            language=feed.language,
            last_build_date=feed.last_updated,
        )


@dataclass
class NewArticle:
    """Article row to be persisted with insert-or-ignore semantics."""

    feed_id: int
    guid: str
    title: str
    link: Optional[str] = None
    author: Optional[str] = None
    summary: Optional[str] = None
    content: Optional[str] = None
    image_url: Optional[str] = None
    published_at: Optional[datetime] = None

    @classmethod
    def from_entry(cls, feed_id: int, entry: FeedEntry) -> "NewArticle":
        return cls(
            feed_id=feed_id,
            guid=entry.id,
            title=entry.title,
            link=entry.link or None,
            author=entry.author,
            summary=entry.summary,
            content=entry.content,
            image_url=entry.image_url,
            published_at=entry.published,
        )


@dataclass(frozen=True)
class InsertResult:
    """Outcome of an insert-or-ignore article write."""

    article_id: Optional[int] = None

    @property
    def inserted(self) -> bool:
        return self.article_id is not None

    @classmethod
    def ignored(cls) -> "InsertResult":
        return cls(article_id=None)


@dataclass
class RefreshResult:
    """Per-feed outcome of a refresh."""

    feed_id: int
    new_articles: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ImportResult:
    """Per-URL outcome of an OPML import."""

    url: str
    feed_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
