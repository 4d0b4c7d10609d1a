"""Sitemap writer for serializing URL sets into sitemaps.org XML."""

import logging
import os
import tempfile
from typing import Optional, Union
from lxml import etree
from .config import IMAGE_NAMESPACE, SITEMAP_NAMESPACE, XHTML_NAMESPACE
from .errors import SerializationError
from .types import ImageRef, SerializeOptions, UrlEntry, UrlSet
from .utils import clean_text, format_lastmod, format_priority, is_valid_url

logger = logging.getLogger(__name__)

# sitemaps.org limit for a single file
MAX_URLS_PER_SITEMAP = 50000

SitemapSource = Union[str, bytes]


def _sm(tag: str) -> str:
    return f"{{{SITEMAP_NAMESPACE}}}{tag}"


def _img(tag: str) -> str:
    return f"{{{IMAGE_NAMESPACE}}}{tag}"


class SitemapWriter:
    """Generates XML sitemaps following sitemaps.org standards."""

    def __init__(self):
        self.sitemap_namespace = SITEMAP_NAMESPACE

    def serialize(self, urlset: UrlSet, options: Optional[SerializeOptions] = None) -> bytes:
        """
        Serialize a URL set to a UTF-8 XML document.

        Args:
            urlset: Entries to include, in output order
            options: Indentation, leading comment and processing instruction

        Returns:
            The complete document as bytes

        Raises:
            SerializationError: if lxml fails to build or encode the document
        """
        options = options or SerializeOptions()

        try:
            tree = self._build_tree(urlset, options)
            output = etree.tostring(
                tree,
                encoding="UTF-8",
                xml_declaration=True,
                pretty_print=options.indented
            )
        except (etree.LxmlError, ValueError, TypeError, UnicodeError) as e:
            logger.error(f"Error serializing sitemap with {len(urlset)} URLs: {e}")
            raise SerializationError(f"Could not serialize sitemap: {e}") from e

        logger.debug(f"Serialized sitemap with {len(urlset)} URLs ({len(output)} bytes)")
        return output

    def write_sitemap(
        self,
        urlset: UrlSet,
        filepath: str,
        options: Optional[SerializeOptions] = None
    ) -> str:
        """Write a URL set to an XML file, replacing the target atomically."""
        self.write_bytes(self.serialize(urlset, options), filepath)
        logger.info(f"Written sitemap with {len(urlset)} URLs to {filepath}")
        return filepath

    def write_bytes(self, output: bytes, filepath: str) -> None:
        """Write a serialized document via a temp file and rename."""
        directory = os.path.dirname(os.path.abspath(filepath))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "wb", dir=directory, prefix=".sitemap-", suffix=".tmp", delete=False
            ) as f:
                tmp_path = f.name
                f.write(output)
            os.replace(tmp_path, filepath)
        except OSError as e:
            logger.error(f"Error writing sitemap to {filepath}: {e}")
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise SerializationError(f"Could not write sitemap to {filepath}: {e}") from e

    def _build_tree(self, urlset: UrlSet, options: SerializeOptions) -> etree._ElementTree:
        """Build the document tree, including leading comment and PI."""
        nsmap = {None: self.sitemap_namespace}
        if urlset.has_alternates:
            nsmap["xhtml"] = XHTML_NAMESPACE
        if urlset.has_images:
            nsmap["image"] = IMAGE_NAMESPACE

        root = etree.Element(_sm("urlset"), nsmap=nsmap)
        tree = etree.ElementTree(root)

        # Siblings are inserted directly before the root, so the comment
        # has to go first to end up above the processing instruction.
        if options.comment:
            root.addprevious(etree.Comment(self._comment_text(options.comment)))
        if options.processing_instruction:
            target, data = options.processing_instruction
            root.addprevious(etree.ProcessingInstruction(target, data))

        for entry in urlset:
            self._add_url_element(root, entry)

        return tree

    def _add_url_element(self, root: etree._Element, entry: UrlEntry) -> None:
        url_element = etree.SubElement(root, _sm("url"))

        # Location (required)
        loc_element = etree.SubElement(url_element, _sm("loc"))
        loc_element.text = entry.location

        # Last modified (optional)
        if entry.last_modified:
            lastmod_element = etree.SubElement(url_element, _sm("lastmod"))
            lastmod_element.text = format_lastmod(entry.last_modified)

        # Priority (optional)
        if entry.priority is not None:
            priority_element = etree.SubElement(url_element, _sm("priority"))
            priority_element.text = format_priority(entry.priority)

        for link in entry.alternate_links:
            etree.SubElement(
                url_element,
                f"{{{XHTML_NAMESPACE}}}link",
                rel="alternate",
                hreflang=link.language_code,
                href=link.href
            )

        for image in entry.images:
            self._add_image_element(url_element, image)

    def _add_image_element(self, url_element: etree._Element, image: ImageRef) -> None:
        image_element = etree.SubElement(url_element, _img("image"))
        etree.SubElement(image_element, _img("loc")).text = image.href

        for tag, value in (
            ("caption", image.description),
            ("license", image.license),
            ("title", image.title),
            ("geo_location", image.geo_location),
        ):
            text = clean_text(value)
            if text:
                etree.SubElement(image_element, _img(tag)).text = text

    @staticmethod
    def _comment_text(comment: str) -> str:
        """XML comments may not contain '--' or end with '-'."""
        text = clean_text(comment).replace("--", "- -")
        if text.endswith("-"):
            text += " "
        return f" {text} "

    def _parse(self, source: SitemapSource) -> etree._Element:
        if isinstance(source, bytes):
            return etree.fromstring(source)
        return etree.parse(source).getroot()

    def validate_sitemap(self, source: SitemapSource) -> bool:
        """Validate a sitemap file path or document bytes."""
        name = "<bytes>" if isinstance(source, bytes) else source
        try:
            root = self._parse(source)

            # Basic validation
            if root.tag != _sm("urlset"):
                logger.error(f"Invalid root element in {name}")
                return False

            # Check URL count
            urls = root.findall(_sm("url"))
            if len(urls) > MAX_URLS_PER_SITEMAP:
                logger.error(f"Too many URLs in sitemap: {len(urls)}")
                return False

            # Validate each URL
            for url_elem in urls:
                loc_elem = url_elem.find(_sm("loc"))
                if loc_elem is None or not is_valid_url(loc_elem.text):
                    logger.error(f"URL missing or invalid location in {name}")
                    return False

                priority_elem = url_elem.find(_sm("priority"))
                if priority_elem is not None:
                    try:
                        priority = float(priority_elem.text)
                    except (TypeError, ValueError):
                        priority = -1.0
                    if not 0.0 <= priority <= 1.0:
                        logger.error(f"Invalid priority for {loc_elem.text}: {priority_elem.text}")
                        return False

                for link_elem in url_elem.findall(f"{{{XHTML_NAMESPACE}}}link"):
                    if not link_elem.get("hreflang") or not is_valid_url(link_elem.get("href")):
                        logger.error(f"Invalid alternate link for {loc_elem.text}")
                        return False

            logger.info(f"Sitemap validation passed: {name}")
            return True

        except (etree.LxmlError, OSError) as e:
            logger.error(f"Error validating sitemap {name}: {e}")
            return False

    def get_sitemap_stats(self, source: SitemapSource) -> dict:
        """Get statistics about a sitemap file or document."""
        try:
            root = self._parse(source)
        except (etree.LxmlError, OSError) as e:
            logger.error(f"Error getting sitemap stats: {e}")
            return {}

        urls = root.findall(_sm("url"))
        stats = {
            'total_urls': len(urls),
            'size_bytes': len(source) if isinstance(source, bytes) else os.path.getsize(source),
            'has_lastmod': 0,
            'has_priority': 0,
            'alternate_links': 0,
            'images': 0,
            'priority_distribution': {},
        }

        for url_elem in urls:
            if url_elem.find(_sm("lastmod")) is not None:
                stats['has_lastmod'] += 1

            priority_elem = url_elem.find(_sm("priority"))
            if priority_elem is not None:
                stats['has_priority'] += 1
                priority = priority_elem.text
                stats['priority_distribution'][priority] = stats['priority_distribution'].get(priority, 0) + 1

            stats['alternate_links'] += len(url_elem.findall(f"{{{XHTML_NAMESPACE}}}link"))
            stats['images'] += len(url_elem.findall(_img("image")))

        return stats
