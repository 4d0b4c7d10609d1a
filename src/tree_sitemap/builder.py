"""Sitemap build pipeline: tree walk followed by XML serialization."""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional
from .config import get_stylesheet_href
from .errors import ProviderError, SitemapError
from .sitemap_writer import SitemapWriter
from .tree import ContentNode, ContentTree
from .types import BuildStatistics, SerializeOptions, SitemapConfig, UrlSet
from .utils import format_duration, format_lastmod, format_number
from .walker import TreeWalker

logger = logging.getLogger(__name__)


class SitemapBuilder:
    """Builds complete sitemap documents for a content tree."""

    def __init__(
        self,
        tree: ContentTree,
        config: SitemapConfig,
        walker: Optional[TreeWalker] = None,
        writer: Optional[SitemapWriter] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.tree = tree
        self.config = config
        self.walker = walker or TreeWalker.from_config(tree, config)
        self.writer = writer or SitemapWriter()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.last_statistics: Optional[BuildStatistics] = None

    def serialize_options(self) -> SerializeOptions:
        """Output options derived from configuration."""
        comment = None
        if self.config.generation_comment:
            comment = f"Generated by tree-sitemap on {format_lastmod(self.clock())}"

        instruction = None
        href = get_stylesheet_href(self.config)
        if href:
            instruction = ("xml-stylesheet", f'type="text/xsl" href="{href}"')

        return SerializeOptions(
            indented=self.config.indented,
            comment=comment,
            processing_instruction=instruction,
        )

    def build_urlset(self, root: ContentNode) -> UrlSet:
        """
        Walk the tree from root.

        Raises:
            ProviderError: if the content tree fails during the walk
        """
        statistics = BuildStatistics(start_time=self.clock())
        languages = self.config.languages if self.config.multi_language else []

        try:
            urlset = self.walker.walk(
                root,
                languages=languages,
                selector=self.config.child_selector,
                statistics=statistics,
            )
        except SitemapError:
            raise
        except Exception as e:
            logger.error(f"Content tree failed while walking {root.path}: {e}")
            raise ProviderError(f"Content tree failed while walking {root.path}: {e}") from e
        finally:
            statistics.end_time = self.clock()
            self.last_statistics = statistics

        return urlset

    def build(self, root: ContentNode) -> bytes:
        """Build the serialized sitemap document for root."""
        urlset = self.build_urlset(root)
        output = self.writer.serialize(urlset, self.serialize_options())

        statistics = self.last_statistics
        logger.info(
            f"Built sitemap for {root.path}: {format_number(len(urlset))} URLs from "
            f"{format_number(statistics.nodes_visited)} pages "
            f"in {format_duration(statistics.duration_seconds)}"
        )
        return output


def build_sitemap(
    tree: ContentTree,
    config: SitemapConfig,
    root_path: str = "/",
    output_path: Optional[str] = None
) -> bytes:
    """
    Build a sitemap for the page at root_path, optionally writing it to a file.

    Raises:
        ProviderError: if the root page does not exist or the tree fails
        SerializationError: if the document cannot be written
    """
    root = tree.get(root_path)
    if root is None:
        raise ProviderError(f"Root page not found: {root_path}")

    builder = SitemapBuilder(tree, config)
    output = builder.build(root)

    if output_path:
        builder.writer.write_bytes(output, output_path)

    return output
