"""Tests for sitemap writer functionality."""

import os
import tempfile
from datetime import datetime, timezone
from lxml import etree
import pytest
from tree_sitemap.errors import SerializationError
from tree_sitemap.sitemap_writer import SitemapWriter
from tree_sitemap.types import AlternateLink, ImageRef, SerializeOptions, UrlEntry, UrlSet

NS = "{http://www.sitemaps.org/schemas/sitemap/0.9}"
XHTML = "{http://www.w3.org/1999/xhtml}"
IMAGE = "{http://www.google.com/schemas/sitemap-image/1.1}"


@pytest.fixture
def sitemap_writer():
    return SitemapWriter()


@pytest.fixture
def sample_urlset():
    """Create a URL set with alternates and images."""
    modified = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)

    home = UrlEntry(location="https://example.tld/", last_modified=modified, priority="1")
    home.add_alternate_link(AlternateLink("en", "https://example.tld/"))
    home.add_alternate_link(AlternateLink("de", "https://example.tld/de/"))

    about = UrlEntry(location="https://example.tld/about", last_modified=modified)
    about.add_image(ImageRef(
        href="https://example.tld/assets/team.jpg",
        title="Team",
        description="Our team",
        license="https://creativecommons.org/licenses/by/4.0/",
        geo_location="Berlin",
    ))

    return UrlSet([home, about])


def test_empty_urlset(sitemap_writer):
    """An empty URL set is a valid, empty urlset element."""
    output = sitemap_writer.serialize(UrlSet())

    root = etree.fromstring(output)
    assert root.tag == f"{NS}urlset"
    assert len(root) == 0
    assert output.startswith(b"<?xml")


def test_sitemap_xml_structure(sitemap_writer, sample_urlset):
    """Test the structure of generated XML sitemap."""
    root = etree.fromstring(sitemap_writer.serialize(sample_urlset))

    urls = root.findall(f"{NS}url")
    assert [url.findtext(f"{NS}loc") for url in urls] == [
        "https://example.tld/",
        "https://example.tld/about",
    ]

    home = urls[0]
    assert home.findtext(f"{NS}lastmod") == "2024-05-01T10:00:00+00:00"
    assert home.findtext(f"{NS}priority") == "1.0"

    links = home.findall(f"{XHTML}link")
    assert [(link.get("rel"), link.get("hreflang"), link.get("href")) for link in links] == [
        ("alternate", "en", "https://example.tld/"),
        ("alternate", "de", "https://example.tld/de/"),
    ]
    assert home.find(f"{IMAGE}image") is None

    about = urls[1]
    assert about.find(f"{NS}priority") is None
    image = about.find(f"{IMAGE}image")
    assert image.findtext(f"{IMAGE}loc") == "https://example.tld/assets/team.jpg"
    assert image.findtext(f"{IMAGE}caption") == "Our team"
    assert image.findtext(f"{IMAGE}license") == "https://creativecommons.org/licenses/by/4.0/"
    assert image.findtext(f"{IMAGE}title") == "Team"
    assert image.findtext(f"{IMAGE}geo_location") == "Berlin"


@pytest.mark.parametrize("priority, expected", [
    (0, "0.0"),
    ("0.55", "0.6"),
    (0.55, "0.6"),
    (0.45, "0.5"),
    (0.8, "0.8"),
    (1, "1.0"),
])
def test_priority_formatting(sitemap_writer, priority, expected):
    """Priorities always carry exactly one decimal digit, rounded half up."""
    urlset = UrlSet([UrlEntry(location="https://example.tld/", priority=priority)])
    root = etree.fromstring(sitemap_writer.serialize(urlset))

    assert root.find(f"{NS}url/{NS}priority").text == expected


def test_naive_lastmod_is_utc(sitemap_writer):
    urlset = UrlSet([UrlEntry(location="https://example.tld/", last_modified=datetime(2024, 1, 2, 3, 4, 5))])
    root = etree.fromstring(sitemap_writer.serialize(urlset))

    assert root.find(f"{NS}url/{NS}lastmod").text == "2024-01-02T03:04:05+00:00"


def test_namespaces_declared_only_when_used(sitemap_writer, sample_urlset):
    plain = etree.fromstring(sitemap_writer.serialize(UrlSet([UrlEntry(location="https://example.tld/")])))
    assert set(plain.nsmap) == {None}

    rich = etree.fromstring(sitemap_writer.serialize(sample_urlset))
    assert rich.nsmap["xhtml"] == "http://www.w3.org/1999/xhtml"
    assert rich.nsmap["image"] == "http://www.google.com/schemas/sitemap-image/1.1"


def test_comment_and_processing_instruction_order(sitemap_writer, sample_urlset):
    """The comment comes first, then the stylesheet instruction, then the root."""
    options = SerializeOptions(
        comment="Generated on 2024-05-01T10:00:00+00:00",
        processing_instruction=("xml-stylesheet", 'type="text/xsl" href="https://example.tld/sitemap.xsl"'),
    )
    output = sitemap_writer.serialize(sample_urlset, options)

    comment_at = output.index(b"<!-- Generated on 2024-05-01T10:00:00+00:00 -->")
    instruction_at = output.index(b'<?xml-stylesheet type="text/xsl" href="https://example.tld/sitemap.xsl"?>')
    root_at = output.index(b"<urlset")
    assert comment_at < instruction_at < root_at

    # Still well-formed
    assert etree.fromstring(output).tag == f"{NS}urlset"


def test_comment_with_double_dash_stays_well_formed(sitemap_writer):
    output = sitemap_writer.serialize(UrlSet(), SerializeOptions(comment="a -- b -"))
    assert etree.fromstring(output).tag == f"{NS}urlset"


def test_indented_and_compact_output(sitemap_writer, sample_urlset):
    indented = sitemap_writer.serialize(sample_urlset, SerializeOptions(indented=True))
    compact = sitemap_writer.serialize(sample_urlset, SerializeOptions(indented=False))

    assert b"\n  <url>" in indented
    assert b"\n  <url>" not in compact
    assert len(etree.fromstring(compact).findall(f"{NS}url")) == 2


def test_serialization_failure_raises(sitemap_writer, sample_urlset, monkeypatch):
    def broken_tree(urlset, options):
        raise ValueError("All strings must be XML compatible")

    monkeypatch.setattr(sitemap_writer, "_build_tree", broken_tree)

    with pytest.raises(SerializationError):
        sitemap_writer.serialize(sample_urlset)


def test_write_sitemap(sitemap_writer, sample_urlset):
    with tempfile.TemporaryDirectory() as tmpdir:
        filepath = os.path.join(tmpdir, "nested", "sitemap.xml")

        result = sitemap_writer.write_sitemap(sample_urlset, filepath)

        assert result == filepath
        assert os.path.exists(filepath)
        assert sitemap_writer.validate_sitemap(filepath) is True
        # No temp files left behind
        assert os.listdir(os.path.dirname(filepath)) == ["sitemap.xml"]


def test_write_sitemap_failure(sitemap_writer, sample_urlset):
    with tempfile.TemporaryDirectory() as tmpdir:
        blocker = os.path.join(tmpdir, "blocker")
        with open(blocker, "w") as f:
            f.write("not a directory")

        with pytest.raises(SerializationError):
            sitemap_writer.write_sitemap(sample_urlset, os.path.join(blocker, "sitemap.xml"))


def test_sitemap_validation(sitemap_writer, sample_urlset):
    """Test sitemap validation functionality."""
    assert sitemap_writer.validate_sitemap(sitemap_writer.serialize(sample_urlset)) is True
    assert sitemap_writer.validate_sitemap(b"<notasitemap/>") is False
    assert sitemap_writer.validate_sitemap(b"<urlset") is False

    bad_priority = (
        b'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        b'<url><loc>https://example.tld/</loc><priority>1.5</priority></url></urlset>'
    )
    assert sitemap_writer.validate_sitemap(bad_priority) is False


def test_sitemap_stats(sitemap_writer, sample_urlset):
    """Test getting sitemap statistics."""
    stats = sitemap_writer.get_sitemap_stats(sitemap_writer.serialize(sample_urlset))

    assert stats['total_urls'] == 2
    assert stats['has_lastmod'] == 2
    assert stats['has_priority'] == 1
    assert stats['alternate_links'] == 2
    assert stats['images'] == 1
    assert stats['priority_distribution'] == {"1.0": 1}


def test_large_sitemap_is_well_formed(sitemap_writer):
    """Test handling of larger numbers of URLs."""
    urlset = UrlSet([UrlEntry(location=f"https://example.tld/page{i}") for i in range(500)])

    root = etree.fromstring(sitemap_writer.serialize(urlset))

    urls = root.findall(f"{NS}url")
    assert len(urls) == 500
    assert urls[-1].findtext(f"{NS}loc") == "https://example.tld/page499"
