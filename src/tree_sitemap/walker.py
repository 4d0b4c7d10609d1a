"""Recursive content tree walker that collects sitemap entries."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set
from .errors import ValidationError
from .images import ImageRefBuilder
from .page_options import PageOptionsResolver
from .tree import ContentNode, ContentTree
from .types import (
    AlternateLink,
    BuildStatistics,
    ChildSelector,
    Language,
    PageSitemapOptions,
    SitemapConfig,
    UrlEntry,
    UrlSet,
)

logger = logging.getLogger(__name__)


def language_invalid(language: Language, node: ContentNode) -> bool:
    """A non-default language the node has no status for."""
    return not language.is_default and not node.has_language(language)


class AlternateLinkBuilder:
    """Builds the alternate-language links of a node, self link included."""

    def __init__(
        self,
        tree: ContentTree,
        default_iso: Optional[str] = None,
        use_home_segment: bool = False
    ):
        self.tree = tree
        self.default_iso = default_iso
        self.use_home_segment = use_home_segment

    def language_code(self, language: Language) -> str:
        """hreflang code for a language, taken from the home page name."""
        home_name = self.tree.home().local_name(language)
        if (language.is_default
                and not home_name
                and not self.use_home_segment
                and self.default_iso):
            return self.default_iso
        return home_name or language.name

    def build(self, node: ContentNode, languages: Sequence[Language]) -> List[AlternateLink]:
        links: List[AlternateLink] = []
        seen: Set[str] = set()

        for language in languages:
            if language_invalid(language, node):
                continue

            code = self.language_code(language)
            if code in seen:
                logger.warning(f"Duplicate hreflang '{code}' on {node.path}, keeping the first link")
                continue

            try:
                links.append(AlternateLink(language_code=code, href=node.local_url(language)))
                seen.add(code)
            except ValidationError as e:
                logger.warning(f"Skipping alternate link on {node.path}: {e}")

        return links


@dataclass
class _WalkState:
    urlset: UrlSet
    languages: Sequence[Language]
    selector: Optional[ChildSelector]
    statistics: BuildStatistics
    visited: Set[int] = field(default_factory=set)


class TreeWalker:
    """Walks the content tree in pre-order and builds the URL set."""

    def __init__(
        self,
        tree: ContentTree,
        resolver: PageOptionsResolver,
        image_builder: ImageRefBuilder,
        alternate_builder: AlternateLinkBuilder,
        max_depth: int = 100
    ):
        self.tree = tree
        self.resolver = resolver
        self.image_builder = image_builder
        self.alternate_builder = alternate_builder
        self.max_depth = max_depth

    @classmethod
    def from_config(cls, tree: ContentTree, config: SitemapConfig, provider=None) -> "TreeWalker":
        """Create a walker wired from configuration; the tree provides options unless given."""
        return cls(
            tree=tree,
            resolver=PageOptionsResolver(config.include_templates, provider or tree),
            image_builder=ImageRefBuilder(config.image_fields),
            alternate_builder=AlternateLinkBuilder(
                tree,
                default_iso=config.default_iso,
                use_home_segment=config.use_home_segment,
            ),
            max_depth=config.max_depth,
        )

    def walk(
        self,
        root: ContentNode,
        languages: Optional[Sequence[Language]] = None,
        selector: Optional[ChildSelector] = None,
        statistics: Optional[BuildStatistics] = None
    ) -> UrlSet:
        """
        Walk the tree below (and including) root.

        Args:
            root: Node the walk starts at; it is always included
            languages: Languages to emit entries for; empty means
                single-language mode
            selector: Child selection policy
            statistics: Optional counters filled in during the walk

        Returns:
            UrlSet in pre-order
        """
        state = _WalkState(
            urlset=UrlSet(),
            languages=list(languages or []),
            selector=selector,
            statistics=statistics if statistics is not None else BuildStatistics(),
        )
        self._add_pages(root, state, depth=0)

        logger.debug(
            f"Walked {state.statistics.nodes_visited} pages from {root.path}, "
            f"{len(state.urlset)} entries"
        )
        return state.urlset

    def _add_pages(self, node: ContentNode, state: _WalkState, depth: int) -> None:
        if node.id in state.visited:
            logger.warning(f"Page {node.path} (id {node.id}) reached twice, not descending again")
            return
        state.visited.add(node.id)
        state.statistics.nodes_visited += 1

        is_root = depth == 0
        options = self.resolver.resolve(node, is_root=is_root)

        if is_root or (node.is_viewable() and not options.exclude_page):
            self._add_entries(node, options, state)
        else:
            state.statistics.pages_excluded += 1
            logger.debug(f"Excluded page {node.path}")

        if options.exclude_children:
            logger.debug(f"Skipping children of {node.path}")
            return

        children = self.tree.children(node, state.selector)
        if children and depth >= self.max_depth:
            logger.warning(f"Max depth {self.max_depth} reached at {node.path}, not descending")
            return

        for child in children:
            self._add_pages(child, state, depth + 1)

    def _add_entries(self, node: ContentNode, options: PageSitemapOptions, state: _WalkState) -> None:
        if not state.languages:
            self._add_entry(node, node.url, options, [], None, state)
            return

        links = self.alternate_builder.build(node, state.languages)
        for language in state.languages:
            if language_invalid(language, node) or not node.is_viewable(language):
                continue
            self._add_entry(node, node.local_url(language), options, links, language, state)

    def _add_entry(
        self,
        node: ContentNode,
        location: str,
        options: PageSitemapOptions,
        links: List[AlternateLink],
        language: Optional[Language],
        state: _WalkState
    ) -> None:
        try:
            entry = UrlEntry(
                location=location,
                last_modified=node.modified,
                priority=options.priority,
            )
            for link in links:
                entry.add_alternate_link(link)
            if not options.exclude_images:
                for image in self.image_builder.build(node, language):
                    entry.add_image(image)
        except ValidationError as e:
            state.statistics.entries_skipped += 1
            logger.warning(f"Skipping sitemap entry for {node.path}: {e}")
            return

        state.urlset.add_url(entry)
        state.statistics.entries_added += 1
