"""Per-dialect field tables driving the generic feed parser.

Each dialect is a stateless object describing three things: how element
starts and ends move the parser between feed, entry and author scopes,
which attributes carry data (Atom links, enclosures, RDF identity), and a
table mapping a local tag name to the action that stores its text.
Namespaced fields carry a qualifier that must appear in the qualified tag
name, so ``dc:creator`` matches while a bare ``creator`` does not.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .dates import parse_date
from .models import Feed, FeedEntry, FeedFormat
from .xmlstream import XmlEvent

logger = logging.getLogger(__name__)

FieldAction = Callable[[Any, str], None]


def assign(attr: str) -> FieldAction:
    """Store the text; a later occurrence replaces an earlier one."""

    def action(target: Any, text: str) -> None:
        setattr(target, attr, text)

    return action


def assign_date(attr: str) -> FieldAction:
    def action(target: Any, text: str) -> None:
        setattr(target, attr, parse_date(text))

    return action


def assign_first_date(attr: str) -> FieldAction:
    """Parse and store a date only while the field is still unset."""

    def action(target: Any, text: str) -> None:
        if getattr(target, attr) is None:
            setattr(target, attr, parse_date(text))

    return action


def append_to(attr: str) -> FieldAction:
    def action(target: Any, text: str) -> None:
        getattr(target, attr).append(text)

    return action


@dataclass(frozen=True)
class FieldRule:
    action: FieldAction
    qualifier: Optional[str] = None

    def applies_to(self, qualified_tag: str) -> bool:
        return self.qualifier is None or self.qualifier in qualified_tag


@dataclass
class ParserState:
    """Mutable state threaded through one parse."""

    feed: Feed
    entry: Optional[FeedEntry] = None
    in_channel: bool = False
    in_author: bool = False
    in_channel_aside: bool = False
    tag: str = ""
    qualified_tag: str = ""

    def begin_entry(self, entry_id: str = "") -> None:
        self.entry = FeedEntry(id=entry_id)

    def finish_entry(self) -> None:
        entry, self.entry = self.entry, None
        if entry is None:
            return
        if not entry.id:
            entry.id = entry.link or f"{self.feed.feed_url}-{len(self.feed.entries)}"
        self.feed.entries.append(entry)


class Dialect:
    """Base behaviour shared by every dialect."""

    format: FeedFormat
    entry_tag = "item"
    feed_fields: Mapping[str, FieldRule] = {}
    entry_fields: Mapping[str, FieldRule] = {}

    def start_element(self, state: ParserState, event: XmlEvent) -> None:
        if event.local_name == self.entry_tag and self.can_open_entry(state):
            state.begin_entry(self.entry_id(event))

    def end_element(self, state: ParserState, event: XmlEvent) -> None:
        if event.local_name == self.entry_tag and state.entry is not None:
            state.finish_entry()

    def can_open_entry(self, state: ParserState) -> bool:
        return state.entry is None

    def entry_id(self, event: XmlEvent) -> str:
        return ""

    def in_feed_scope(self, state: ParserState) -> bool:
        return True

    def text_rules(
        self, state: ParserState
    ) -> Tuple[Optional[Mapping[str, FieldRule]], Any]:
        if state.entry is not None:
            return self.entry_fields, state.entry
        if self.in_feed_scope(state):
            return self.feed_fields, state.feed
        return None, None

    def handle_text(self, state: ParserState, text: str) -> None:
        rules, target = self.text_rules(state)
        if rules is None:
            return
        rule = rules.get(state.tag)
        if rule is not None and rule.applies_to(state.qualified_tag):
            rule.action(target, text)


class Rss2Dialect(Dialect):
    """RSS 0.9x/2.0: ``<rss><channel>`` with nested ``<item>`` elements."""

    format = FeedFormat.RSS2
    entry_tag = "item"
    # Channel children whose own title/link are not channel metadata.
    aside_tags = frozenset({"image", "textInput"})

    feed_fields: Dict[str, FieldRule] = {
        "title": FieldRule(assign("title")),
        "link": FieldRule(assign("link")),
        "description": FieldRule(assign("description")),
        "language": FieldRule(assign("language")),
        "lastBuildDate": FieldRule(assign_first_date("last_updated")),
        "pubDate": FieldRule(assign_first_date("last_updated")),
    }
    entry_fields: Dict[str, FieldRule] = {
        "title": FieldRule(assign("title")),
        "link": FieldRule(assign("link")),
        "guid": FieldRule(assign("id")),
        "description": FieldRule(assign("summary")),
        "encoded": FieldRule(assign("content"), qualifier="content"),
        "creator": FieldRule(assign("author"), qualifier="dc"),
        "author": FieldRule(assign("author")),
        "pubDate": FieldRule(assign_date("published")),
        "date": FieldRule(assign_date("published"), qualifier="dc"),
        "category": FieldRule(append_to("categories")),
    }

    def start_element(self, state: ParserState, event: XmlEvent) -> None:
        name = event.local_name
        if name == "channel":
            state.in_channel = True
        elif name in self.aside_tags and state.entry is None:
            state.in_channel_aside = True
        elif name == "enclosure" and state.entry is not None:
            self._apply_enclosure(state.entry, event)
        super().start_element(state, event)

    def end_element(self, state: ParserState, event: XmlEvent) -> None:
        name = event.local_name
        if name == "channel":
            state.in_channel = False
        elif name in self.aside_tags and state.entry is None:
            state.in_channel_aside = False
        super().end_element(state, event)

    def can_open_entry(self, state: ParserState) -> bool:
        return state.in_channel

    def in_feed_scope(self, state: ParserState) -> bool:
        return not state.in_channel_aside

    @staticmethod
    def _apply_enclosure(entry: FeedEntry, event: XmlEvent) -> None:
        url = event.attr("url") or ""
        media_type = event.attr("type") or ""
        if url and media_type.startswith("image/"):
            entry.image_url = url


class Rss1Dialect(Dialect):
    """RSS 1.0 (RDF): ``<channel>`` and ``<item>`` are siblings under the root."""

    format = FeedFormat.RSS1
    entry_tag = "item"

    feed_fields: Dict[str, FieldRule] = {
        "title": FieldRule(assign("title")),
        "link": FieldRule(assign("link")),
        "description": FieldRule(assign("description")),
        "language": FieldRule(assign("language"), qualifier="dc"),
        "date": FieldRule(assign_date("last_updated"), qualifier="dc"),
    }
    entry_fields: Dict[str, FieldRule] = {
        "title": FieldRule(assign("title")),
        "link": FieldRule(assign("link")),
        "description": FieldRule(assign("summary")),
        "encoded": FieldRule(assign("content"), qualifier="content"),
        "creator": FieldRule(assign("author"), qualifier="dc"),
        "date": FieldRule(assign_date("published"), qualifier="dc"),
        "subject": FieldRule(append_to("categories"), qualifier="dc"),
    }

    def start_element(self, state: ParserState, event: XmlEvent) -> None:
        name = event.local_name
        if name == "channel":
            state.in_channel = True
        elif name == self.entry_tag:
            state.in_channel = False
        super().start_element(state, event)

    def end_element(self, state: ParserState, event: XmlEvent) -> None:
        if event.local_name == "channel":
            state.in_channel = False
        super().end_element(state, event)

    def can_open_entry(self, state: ParserState) -> bool:
        return True

    def entry_id(self, event: XmlEvent) -> str:
        return event.attr("about") or ""

    def in_feed_scope(self, state: ParserState) -> bool:
        return state.in_channel


class AtomDialect(Dialect):
    """Atom 1.0: ``<feed>`` with ``<entry>`` children and attribute links."""

    format = FeedFormat.ATOM
    entry_tag = "entry"

    feed_fields: Dict[str, FieldRule] = {
        "title": FieldRule(assign("title")),
        "subtitle": FieldRule(assign("description")),
        "updated": FieldRule(assign_date("last_updated")),
    }
    entry_fields: Dict[str, FieldRule] = {
        "title": FieldRule(assign("title")),
        "id": FieldRule(assign("id")),
        "content": FieldRule(assign("content")),
        "summary": FieldRule(assign("summary")),
        "published": FieldRule(assign_date("published")),
        "updated": FieldRule(assign_date("updated")),
    }
    author_fields: Dict[str, FieldRule] = {
        **entry_fields,
        "name": FieldRule(assign("author")),
    }

    def start_element(self, state: ParserState, event: XmlEvent) -> None:
        name = event.local_name
        if name == "feed" and state.entry is None:
            lang = event.attrs.get("xml:lang")
            if lang:
                state.feed.language = lang
        elif name == "author":
            state.in_author = True
        elif name == "link":
            self._apply_link(state, event)
        elif name == "category" and state.entry is not None:
            term = event.attr("term")
            if term:
                state.entry.categories.append(term)
        super().start_element(state, event)

    def end_element(self, state: ParserState, event: XmlEvent) -> None:
        if event.local_name == "author":
            state.in_author = False
        super().end_element(state, event)

    def text_rules(
        self, state: ParserState
    ) -> Tuple[Optional[Mapping[str, FieldRule]], Any]:
        if state.entry is not None and state.in_author:
            return self.author_fields, state.entry
        return super().text_rules(state)

    @staticmethod
    def _apply_link(state: ParserState, event: XmlEvent) -> None:
        href = event.attr("href") or ""
        rel = event.attr("rel")
        if rel is None:
            rel = "alternate"
        if not href or rel not in ("alternate", ""):
            return
        target = state.entry if state.entry is not None else state.feed
        # First alternate link wins.
        if not target.link:
            target.link = href


DIALECTS: Dict[FeedFormat, Dialect] = {
    FeedFormat.RSS2: Rss2Dialect(),
    FeedFormat.RSS1: Rss1Dialect(),
    FeedFormat.ATOM: AtomDialect(),
}
