import pytest

from rss_ingest.errors import MalformedXmlError
from rss_ingest.xmlstream import EventKind, iter_events, local_name


def kinds(events):
    return [(event.kind, event.name or event.text) for event in events]


def test_self_closing_element_yields_start_then_end():
    events = list(iter_events(b'<a><b x="1"/></a>'))

    assert kinds(events) == [
        (EventKind.START, "a"),
        (EventKind.START, "b"),
        (EventKind.END, "b"),
        (EventKind.END, "a"),
    ]
    assert events[1].attrs == {"x": "1"}


def test_text_is_trimmed_and_coalesced_across_chunks():
    events = list(iter_events(b"<a>\n   hello world  \n</a>", chunk_size=3))

    texts = [event.text for event in events if event.kind is EventKind.TEXT]
    assert texts == ["hello world"]


def test_whitespace_only_text_is_dropped():
    events = list(iter_events(b"<a>\n  <b/>\n</a>"))
    assert all(event.kind is not EventKind.TEXT for event in events)


def test_cdata_is_delivered_verbatim():
    events = list(iter_events(b"<a><![CDATA[ <b>bold</b> & more ]]></a>"))

    cdata = [event for event in events if event.kind is EventKind.CDATA]
    assert len(cdata) == 1
    assert cdata[0].text == " <b>bold</b> & more "


def test_prefixed_names_are_kept_with_local_name():
    doc = b'<rss xmlns:dc="http://purl.org/dc/elements/1.1/"><dc:creator>Ann</dc:creator></rss>'
    starts = [event for event in iter_events(doc) if event.kind is EventKind.START]

    assert starts[1].name == "dc:creator"
    assert starts[1].local_name == "creator"
    assert local_name("rdf:RDF") == "RDF"


def test_attr_matches_unprefixed_names():
    doc = b'<rdf:RDF xmlns:rdf="x"><item rdf:about="urn:1"/></rdf:RDF>'
    item = [event for event in iter_events(doc) if event.name == "item"][0]

    assert item.attr("about") == "urn:1"
    assert item.attr("missing") is None


def test_empty_input_yields_nothing():
    assert list(iter_events(b"")) == []


def test_str_input_is_accepted():
    events = list(iter_events("<title>Café</title>"))
    assert events[1].text == "Café"


def test_malformed_document_raises_after_yielding_prefix():
    seen = []
    with pytest.raises(MalformedXmlError):
        for event in iter_events(b"<rss><channel><title>x</channel></rss>"):
            seen.append(event)

    assert seen[0].kind is EventKind.START
    assert seen[0].name == "rss"


def texts(data):
    return [
        event.text
        for event in iter_events(data)
        if event.kind in (EventKind.TEXT, EventKind.CDATA)
    ]


def test_html_entities_become_characters():
    assert texts(b"<rss><title>a&nbsp;b &eacute;t&eacute; &amp; &lt;x&gt;</title></rss>") == [
        "a\u00a0b \u00e9t\u00e9 & <x>"
    ]


def test_unknown_entity_is_dropped():
    assert texts(b"<rss><title>a&bogus;b</title></rss>") == ["ab"]


def test_entities_inside_cdata_and_comments_stay_literal():
    doc = b"<rss><!-- &nbsp; --><title><![CDATA[a&nbsp;b]]></title></rss>"
    assert texts(doc) == ["a&nbsp;b"]


def test_entity_declarations_are_rejected():
    doc = b'<?xml version="1.0"?><!DOCTYPE r [<!ENTITY e "boom">]><r>&e;</r>'
    with pytest.raises(MalformedXmlError):
        list(iter_events(doc))
