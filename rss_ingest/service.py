"""Ingestion coordination: add, refresh and import feeds."""

from __future__ import annotations

import concurrent.futures
import logging
import sys
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from tqdm import tqdm

from .db import Database
from .discovery import discover
from .errors import FeedError, FeedNotFoundError
from .favicons import resolve_favicon
from .fetching import HttpClient
from .models import Feed, ImportResult, NewArticle, NewFeed, RefreshResult
from .opml import parse_opml
from .parser import parse

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 8
PROGRESS_LOG_EVERY = 10


class FeedService:
    """Turns feed URLs into stored feeds and keeps their articles current."""

    def __init__(
        self,
        database: Database,
        client: Optional[HttpClient] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        resolve_favicons: bool = True,
    ) -> None:
        self.database = database
        self.client = client if client is not None else HttpClient()
        self.concurrency = max(1, concurrency)
        self.resolve_favicons = resolve_favicons

    def _resolve_feed_url(self, url: str) -> str:
        try:
            candidates = discover(url, self.client)
        except FeedError as exc:
            logger.info("Discovery failed for %s (%s); using it as the feed URL", url, exc)
            return url
        return candidates[0].url if candidates else url

    def _fetch_and_parse(self, feed_url: str) -> Feed:
        data = self.client.fetch_bytes(feed_url)
        return parse(data, feed_url)

    def _store_entries(self, feed_id: int, feed: Feed) -> int:
        inserted = 0
        for entry in feed.entries:
            try:
                result = self.database.insert_article(NewArticle.from_entry(feed_id, entry))
            except SQLAlchemyError as exc:
                logger.warning(
                    "Skipping entry %s of feed %s: %s", entry.id, feed_id, exc
                )
                continue
            if result.inserted:
                inserted += 1
        return inserted

    def _update_favicon(self, feed_id: int, site_url: str) -> None:
        favicon = resolve_favicon(site_url, self.client)
        if not favicon:
            return
        try:
            self.database.update_feed_favicon(feed_id, favicon)
        except SQLAlchemyError as exc:
            logger.warning("Could not store favicon for feed %s: %s", feed_id, exc)

    def add_feed(self, url: str) -> Dict[str, Any]:
        """Discover, fetch, parse and store a feed with its current entries."""
        feed_url = self._resolve_feed_url(url)
        feed = self._fetch_and_parse(feed_url)

        feed_id = self.database.insert_feed(NewFeed.from_feed(feed))
        inserted = self._store_entries(feed_id, feed)
        logger.info(
            "Added feed %s (%s) with %d/%d articles",
            feed_id,
            feed_url,
            inserted,
            len(feed.entries),
        )

        if self.resolve_favicons and feed.site_url:
            self._update_favicon(feed_id, feed.site_url)

        record = self.database.get_feed(feed_id)
        if record is None:
            raise FeedNotFoundError(feed_id)
        return record

    def refresh_feed(self, feed_id: int) -> RefreshResult:
        """Fetch a stored feed again and insert entries not seen before."""
        feed_url = self.database.get_feed_url(feed_id)
        if feed_url is None:
            raise FeedNotFoundError(feed_id)

        feed = self._fetch_and_parse(feed_url)
        new_articles = self._store_entries(feed_id, feed)
        self.database.update_feed_last_fetched(feed_id)

        logger.info("Refreshed feed %s: %d new articles", feed_id, new_articles)
        return RefreshResult(feed_id=feed_id, new_articles=new_articles)

    def _refresh_isolated(self, feed_id: int) -> RefreshResult:
        try:
            return self.refresh_feed(feed_id)
        except Exception as exc:
            logger.exception("Failed to refresh feed %s", feed_id)
            return RefreshResult(feed_id=feed_id, new_articles=0, error=str(exc))

    def refresh_feeds(self, feed_ids: Iterable[int]) -> List[RefreshResult]:
        """Refresh ``feed_ids`` in parallel; one result per feed, in completion order."""
        feed_ids = list(feed_ids)
        total = len(feed_ids)
        if not total:
            return []

        results: List[RefreshResult] = []
        interactive = sys.stderr.isatty()
        log_progress = not interactive and total >= PROGRESS_LOG_EVERY
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=min(self.concurrency, total)
        ) as executor:
            future_to_feed = {
                executor.submit(self._refresh_isolated, feed_id): feed_id
                for feed_id in feed_ids
            }
            completed = concurrent.futures.as_completed(future_to_feed)
            if interactive:
                completed = tqdm(completed, total=total, desc="Refreshing", unit="feed")
            for index, future in enumerate(completed, start=1):
                results.append(future.result())
                if log_progress and index % PROGRESS_LOG_EVERY == 0:
                    logger.info("Refreshed %d/%d feeds", index, total)

        failed = sum(1 for result in results if not result.ok)
        logger.info(
            "Refresh finished: %d feeds, %d new articles, %d failures",
            total,
            sum(result.new_articles for result in results),
            failed,
        )
        return results

    def refresh_all_feeds(self) -> List[RefreshResult]:
        return self.refresh_feeds(feed["id"] for feed in self.database.get_feeds())

    def import_opml(self, path: str) -> List[ImportResult]:
        """Add every feed listed in an OPML file, isolating failures per URL."""
        results: List[ImportResult] = []
        for feed_url in parse_opml(path):
            try:
                record = self.add_feed(feed_url)
            except (FeedError, SQLAlchemyError) as exc:
                logger.warning("Could not import %s: %s", feed_url, exc)
                results.append(ImportResult(url=feed_url, error=str(exc)))
                continue
            results.append(ImportResult(url=feed_url, feed_id=record["id"]))
        logger.info(
            "Imported %d of %d feeds from %s",
            sum(1 for result in results if result.ok),
            len(results),
            path,
        )
        return results

    def remove_feed(self, feed_id: int) -> None:
        if not self.database.delete_feed(feed_id):
            raise FeedNotFoundError(feed_id)
        logger.info("Removed feed %s", feed_id)

    def get_feeds(self) -> List[Dict[str, Any]]:
        return self.database.get_feeds()
