"""Error types raised by the ingestion engine."""

from __future__ import annotations


class FeedError(Exception):
    """Base class for every ingestion failure."""


class MalformedXmlError(FeedError):
    """The document is not well-formed XML."""


class MissingFieldError(FeedError):
    """A mandatory feed field was absent after parsing."""

    def __init__(self, field: str) -> None:
        super().__init__(f"Missing required field: {field}")
        self.field = field


class UnknownFormatError(FeedError):
    """The root element is not one of the supported dialects."""

    def __init__(self, message: str = "Unknown or unsupported feed format") -> None:
        super().__init__(message)


class DiscoveryError(FeedError):
    """No feed could be located for a URL."""


class TransportError(FeedError):
    """Network or HTTP failure while fetching a URL."""


class FeedNotFoundError(FeedError):
    """The requested feed id is not known to storage."""

    def __init__(self, feed_id: int) -> None:
        super().__init__(f"Feed not found: {feed_id}")
        self.feed_id = feed_id


__all__ = [
    "DiscoveryError",
    "FeedError",
    "FeedNotFoundError",
    "MalformedXmlError",
    "MissingFieldError",
    "TransportError",
    "UnknownFormatError",
]
