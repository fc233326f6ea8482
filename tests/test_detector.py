import pytest

from rss_ingest.detector import detect_format
from rss_ingest.models import FeedFormat


@pytest.mark.parametrize(
    "data, expected",
    [
        (b'<?xml version="1.0"?><rss version="2.0"><channel/></rss>', FeedFormat.RSS2),
        (
            b'<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#"/>',
            FeedFormat.RSS1,
        ),
        (b'<feed xmlns="http://www.w3.org/2005/Atom"></feed>', FeedFormat.ATOM),
        (b"<?xml version='1.0'?>\n<!-- generator -->\n<?xml-stylesheet href='a.xsl'?>\n<rss/>", FeedFormat.RSS2),
    ],
)
def test_detect_format_by_root_element(data, expected):
    assert detect_format(data) is expected


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"<html><head></head></html>",
        b"<wrapper><rss/></wrapper>",
        b"not xml at all",
        b"<?xml version='1.0'?>",
    ],
)
def test_detect_format_returns_none_for_other_input(data):
    assert detect_format(data) is None


def test_detection_only_needs_the_root_element():
    # Truncated after the root; detection still succeeds.
    assert detect_format(b"<rss><channel><item>") is FeedFormat.RSS2
