"""SQLAlchemy storage for feeds and articles."""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    case,
    create_engine,
    delete,
    event,
    func,
    or_,
    select,
    update,
)
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .models import InsertResult, NewArticle, NewFeed

logger = logging.getLogger(__name__)

_INSERT_OR_IGNORE = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class FeedModel(Base):
    """A subscribed feed."""

    __tablename__ = "feeds"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    feed_url = Column(String, nullable=False, unique=True)
    site_url = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    language = Column(String, nullable=True)
    favicon_url = Column(String, nullable=True)
    last_fetched_at = Column(DateTime(timezone=True), nullable=True)
    last_build_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)


class ArticleModel(Base):
    """An article belonging to a feed, unique per (feed, guid)."""

    __tablename__ = "articles"
    __table_args__ = (UniqueConstraint("feed_id", "guid", name="uq_articles_feed_guid"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    feed_id = Column(
        Integer, ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False, index=True
    )
    guid = Column(String, nullable=False)
    title = Column(String, nullable=False, default="")
    link = Column(String, nullable=True)
    author = Column(String, nullable=True)
    summary = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    is_favorite = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_engine(connection_string: Optional[str]) -> Optional[Engine]:
    """Initialize the database engine and create missing tables."""
    if not connection_string:
        return None

    logger.info("Initializing database connection: %s", connection_string)
    engine = create_engine(connection_string)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Return a session factory for the given engine."""
    return sessionmaker(bind=engine)


def _feed_to_dict(feed: FeedModel, unread_count: int = 0) -> Dict[str, Any]:
    return {
        "id": feed.id,
        "title": feed.title,
        "feed_url": feed.feed_url,
        "site_url": feed.site_url,
        "description": feed.description,
        "language": feed.language,
        "favicon_url": feed.favicon_url,
        "last_fetched_at": feed.last_fetched_at,
        "last_build_date": feed.last_build_date,
        "created_at": feed.created_at,
        "updated_at": feed.updated_at,
        "unread_count": int(unread_count or 0),
    }


def _article_to_dict(article: ArticleModel, feed_title: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": article.id,
        "feed_id": article.feed_id,
        "feed_title": feed_title,
        "guid": article.guid,
        "title": article.title,
        "link": article.link,
        "author": article.author,
        "summary": article.summary,
        "content": article.content,
        "image_url": article.image_url,
        "published_at": article.published_at,
        "is_read": article.is_read,
        "is_favorite": article.is_favorite,
        "created_at": article.created_at,
    }


class Database:
    """Feed and article storage over a SQLAlchemy engine.

    Each call opens its own session, so one instance can be shared by the
    refresh worker threads.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._session_factory = get_session_factory(engine)

    @classmethod
    def from_url(cls, connection_string: str) -> "Database":
        engine = init_engine(connection_string)
        if engine is None:
            raise ValueError("A database connection string is required")
        return cls(engine)

    def session(self) -> Session:
        return self._session_factory()

    def close(self) -> None:
        self.engine.dispose()

    # Feeds

    def insert_feed(self, new_feed: NewFeed) -> int:
        with self.session() as session:
            feed = FeedModel(**asdict(new_feed))
            session.add(feed)
            try:
                session.commit()
            except Exception:
                session.rollback()
                raise
            logger.debug("Stored feed %s as id %s", new_feed.feed_url, feed.id)
            return feed.id

    def get_feed_url(self, feed_id: int) -> Optional[str]:
        with self.session() as session:
            stmt = select(FeedModel.feed_url).where(FeedModel.id == feed_id)
            return session.execute(stmt).scalar_one_or_none()

    def _touch_feed(self, feed_id: int, **values: Any) -> None:
        values["updated_at"] = _utcnow()
        with self.session() as session:
            session.execute(
                update(FeedModel).where(FeedModel.id == feed_id).values(**values)
            )
            try:
                session.commit()
            except Exception:
                session.rollback()
                raise

    def update_feed_last_fetched(self, feed_id: int) -> None:
        self._touch_feed(feed_id, last_fetched_at=_utcnow())

    def update_feed_favicon(self, feed_id: int, favicon_url: str) -> None:
        self._touch_feed(feed_id, favicon_url=favicon_url)

    def _unread_count_column(self):
        return func.coalesce(
            func.sum(case((ArticleModel.is_read.is_(False), 1), else_=0)), 0
        )

    def get_feeds(self) -> List[Dict[str, Any]]:
        """Return every feed with its unread article count, ordered by title."""
        with self.session() as session:
            stmt = (
                select(FeedModel, self._unread_count_column())
                .outerjoin(ArticleModel, ArticleModel.feed_id == FeedModel.id)
                .group_by(FeedModel.id)
                .order_by(FeedModel.title, FeedModel.id)
            )
            return [_feed_to_dict(feed, unread) for feed, unread in session.execute(stmt)]

    def get_feed(self, feed_id: int) -> Optional[Dict[str, Any]]:
        with self.session() as session:
            stmt = (
                select(FeedModel, self._unread_count_column())
                .outerjoin(ArticleModel, ArticleModel.feed_id == FeedModel.id)
                .where(FeedModel.id == feed_id)
                .group_by(FeedModel.id)
            )
            row = session.execute(stmt).first()
            if row is None:
                return None
            return _feed_to_dict(row[0], row[1])

    def delete_feed(self, feed_id: int) -> bool:
        """Delete a feed and its articles; returns whether a row was removed."""
        with self.session() as session:
            session.execute(delete(ArticleModel).where(ArticleModel.feed_id == feed_id))
            result = session.execute(delete(FeedModel).where(FeedModel.id == feed_id))
            try:
                session.commit()
            except Exception:
                session.rollback()
                raise
            return result.rowcount > 0

    # Articles

    def insert_article(self, article: NewArticle) -> InsertResult:
        """Insert ``article`` unless its (feed, guid) pair already exists."""
        values = asdict(article)
        insert_factory = _INSERT_OR_IGNORE.get(self.engine.dialect.name)
        with self.session() as session:
            try:
                if insert_factory is not None:
                    stmt = (
                        insert_factory(ArticleModel)
                        .values(**values)
                        .on_conflict_do_nothing(index_elements=["feed_id", "guid"])
                        .returning(ArticleModel.id)
                    )
                    article_id = session.execute(stmt).scalar_one_or_none()
                else:
                    row = ArticleModel(**values)
                    session.add(row)
                    session.flush()
                    article_id = row.id
                session.commit()
            except IntegrityError:
                session.rollback()
                return InsertResult.ignored()
            except Exception:
                session.rollback()
                raise
        return InsertResult(article_id=article_id)

    def get_article(self, article_id: int) -> Optional[Dict[str, Any]]:
        with self.session() as session:
            stmt = (
                select(ArticleModel, FeedModel.title)
                .join(FeedModel, FeedModel.id == ArticleModel.feed_id)
                .where(ArticleModel.id == article_id)
            )
            row = session.execute(stmt).first()
            if row is None:
                return None
            return _article_to_dict(row[0], row[1])

    def get_articles(
        self,
        feed_id: Optional[int] = None,
        offset: int = 0,
        limit: int = 50,
        unread_only: bool = False,
        favorites_only: bool = False,
    ) -> List[Dict[str, Any]]:
        """Return articles newest first, optionally filtered."""
        stmt = select(ArticleModel, FeedModel.title).join(
            FeedModel, FeedModel.id == ArticleModel.feed_id
        )
        if feed_id is not None:
            stmt = stmt.where(ArticleModel.feed_id == feed_id)
        if unread_only:
            stmt = stmt.where(ArticleModel.is_read.is_(False))
        if favorites_only:
            stmt = stmt.where(ArticleModel.is_favorite.is_(True))
        stmt = (
            stmt.order_by(
                func.coalesce(ArticleModel.published_at, ArticleModel.created_at).desc(),
                ArticleModel.id.desc(),
            )
            .offset(offset)
            .limit(limit)
        )
        with self.session() as session:
            return [_article_to_dict(article, title) for article, title in session.execute(stmt)]

    def _toggle(self, article_id: int, column: str) -> Optional[bool]:
        with self.session() as session:
            article = session.get(ArticleModel, article_id)
            if article is None:
                return None
            value = not getattr(article, column)
            setattr(article, column, value)
            try:
                session.commit()
            except Exception:
                session.rollback()
                raise
            return value

    def toggle_read(self, article_id: int) -> Optional[bool]:
        """Flip the read flag; returns the new value or ``None`` if missing."""
        return self._toggle(article_id, "is_read")

    def toggle_favorite(self, article_id: int) -> Optional[bool]:
        return self._toggle(article_id, "is_favorite")

    def _set_read(self, is_read: bool, feed_id: Optional[int]) -> int:
        stmt = update(ArticleModel).where(ArticleModel.is_read.is_(not is_read))
        if feed_id is not None:
            stmt = stmt.where(ArticleModel.feed_id == feed_id)
        with self.session() as session:
            result = session.execute(stmt.values(is_read=is_read))
            try:
                session.commit()
            except Exception:
                session.rollback()
                raise
            return result.rowcount

    def mark_all_read(self, feed_id: Optional[int] = None) -> int:
        return self._set_read(True, feed_id)

    def mark_all_unread(self, feed_id: Optional[int] = None) -> int:
        return self._set_read(False, feed_id)

    def get_favorites_count(self) -> int:
        with self.session() as session:
            stmt = select(func.count(ArticleModel.id)).where(
                ArticleModel.is_favorite.is_(True)
            )
            return session.execute(stmt).scalar_one()

    def search_articles(self, query: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Case-insensitive substring search over title, summary and content."""
        pattern = f"%{query}%"
        stmt = (
            select(ArticleModel, FeedModel.title)
            .join(FeedModel, FeedModel.id == ArticleModel.feed_id)
            .where(
                or_(
                    ArticleModel.title.ilike(pattern),
                    ArticleModel.summary.ilike(pattern),
                    ArticleModel.content.ilike(pattern),
                )
            )
            .order_by(ArticleModel.id.desc())
            .limit(limit)
        )
        with self.session() as session:
            return [_article_to_dict(article, title) for article, title in session.execute(stmt)]

    def update_article_content(self, article_id: int, content: str) -> None:
        with self.session() as session:
            session.execute(
                update(ArticleModel)
                .where(ArticleModel.id == article_id)
                .values(content=content)
            )
            try:
                session.commit()
            except Exception:
                session.rollback()
                raise
