"""Incremental XML event stream shared by the detector and the parsers."""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from functools import partial
from html.entities import name2codepoint
from typing import Callable, Iterator, List, Mapping, Optional, Union
from xml.sax import SAXException
from xml.sax.handler import ContentHandler, LexicalHandler, property_lexical_handler

from defusedxml.common import DefusedXmlException
from defusedxml.sax import make_parser

from .errors import MalformedXmlError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

XML_ENTITIES = frozenset({b"amp", b"lt", b"gt", b"quot", b"apos"})

# CDATA sections and comments are matched whole so references inside them stay literal.
_ENTITY_REFERENCE = re.compile(
    rb"<!\[CDATA\[.*?\]\]>|<!--.*?-->|&([A-Za-z][A-Za-z0-9]*);", re.DOTALL
)


class EventKind(enum.Enum):
    START = "start"
    END = "end"
    TEXT = "text"
    CDATA = "cdata"


def local_name(name: str) -> str:
    """Strip a namespace prefix: ``dc:creator`` -> ``creator``."""
    return name.rpartition(":")[2]


@dataclass(frozen=True)
class XmlEvent:
    """A structural event; ``name`` is the qualified name as written."""

    kind: EventKind
    name: str = ""
    attrs: Mapping[str, str] = field(default_factory=dict)
    text: str = ""

    @property
    def local_name(self) -> str:
        return local_name(self.name)

    def attr(self, name: str) -> Optional[str]:
        """Return the attribute whose un-prefixed name is ``name``."""
        for key, value in self.attrs.items():
            if local_name(key) == name:
                return value
        return None


class _EventCollector(ContentHandler, LexicalHandler):
    """SAX handler turning callbacks into a list of ``XmlEvent``.

    Character data is buffered until the next structural callback so one
    text node always arrives as a single event, however expat chunks it.
    """

    def __init__(self) -> None:
        ContentHandler.__init__(self)
        self.events: List[XmlEvent] = []
        self._text: List[str] = []
        self._cdata: Optional[List[str]] = None

    def drain(self) -> List[XmlEvent]:
        pending, self.events = self.events, []
        return pending

    def _flush_text(self) -> None:
        if not self._text:
            return
        text = "".join(self._text).strip()
        self._text = []
        if text:
            self.events.append(XmlEvent(EventKind.TEXT, text=text))

    def startElement(self, name, attrs):  # noqa: N802 - SAX API
        self._flush_text()
        self.events.append(
            XmlEvent(EventKind.START, name=name, attrs=dict(attrs.items()))
        )

    def endElement(self, name):  # noqa: N802 - SAX API
        self._flush_text()
        self.events.append(XmlEvent(EventKind.END, name=name))

    def characters(self, content):
        if self._cdata is not None:
            self._cdata.append(content)
        else:
            self._text.append(content)

    def startCDATA(self):  # noqa: N802 - SAX API
        self._flush_text()
        self._cdata = []

    def endCDATA(self):  # noqa: N802 - SAX API
        text = "".join(self._cdata or [])
        self._cdata = None
        if text:
            self.events.append(XmlEvent(EventKind.CDATA, text=text))

    def endDocument(self):  # noqa: N802 - SAX API
        self._flush_text()


def _rewrite_reference(match: re.Match) -> bytes:
    name = match.group(1)
    if name is None or name in XML_ENTITIES:
        return match.group(0)
    codepoint = name2codepoint.get(name.decode("ascii"))
    if codepoint is None:
        logger.debug("Dropping unknown entity reference &%s;", name.decode("ascii"))
        return b""
    return b"&#%d;" % codepoint


def replace_html_entities(data: bytes) -> bytes:
    """Rewrite undeclared named entities such as ``&nbsp;`` as character references.

    The five XML entities are left alone. Names HTML does not define are
    dropped, so only that reference is lost rather than the whole document.
    """
    if b"&" not in data:
        return data
    return _ENTITY_REFERENCE.sub(_rewrite_reference, data)


def _steps(parser, data: bytes, chunk_size: int) -> Iterator[Callable[[], None]]:
    for offset in range(0, len(data), chunk_size):
        yield partial(parser.feed, data[offset : offset + chunk_size])
    yield parser.close


def _run(step: Callable[[], None]) -> Optional[Exception]:
    try:
        step()
    except (SAXException, DefusedXmlException) as exc:
        return exc
    return None


def iter_events(
    data: Union[bytes, str], chunk_size: int = CHUNK_SIZE
) -> Iterator[XmlEvent]:
    """Yield structural events from ``data``.

    The document is fed to the parser chunk by chunk, so a consumer that
    stops early never pays for the rest of the input. HTML named entities
    are rewritten first (see ``replace_html_entities``). Events seen before a
    well-formedness violation are still yielded; the violation then raises
    ``MalformedXmlError``.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    data = replace_html_entities(data)

    collector = _EventCollector()
    parser = make_parser()
    parser.setContentHandler(collector)
    parser.setProperty(property_lexical_handler, collector)

    for step in _steps(parser, data, chunk_size):
        error = _run(step)
        yield from collector.drain()
        if error is not None:
            raise MalformedXmlError(f"XML parsing error: {error}") from error
