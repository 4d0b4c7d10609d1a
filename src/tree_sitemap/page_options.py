"""Resolution of effective per-page sitemap options."""

import logging
from decimal import Decimal
from typing import Iterable, Optional
from .tree import ContentNode, PageOptionsProvider
from .types import PageSitemapOptions, StoredPageOptions
from .utils import parse_priority

logger = logging.getLogger(__name__)

DEFAULT_OPTIONS = PageSitemapOptions()


class PageOptionsResolver:
    """
    Resolves the options a node is walked with.

    Only nodes whose template is enabled for sitemap options may carry
    overrides. Settings stored on nodes of any other template are ignored,
    so values left behind by a template that was later disabled never take
    effect. Resolution never fails: anything missing or malformed resolves
    to the default.
    """

    def __init__(self, include_templates: Iterable[str], provider: Optional[PageOptionsProvider] = None):
        self.include_templates = frozenset(include_templates)
        self.provider = provider

    def is_template_enabled(self, template: str) -> bool:
        return template in self.include_templates

    def resolve(
        self,
        node: ContentNode,
        stored: Optional[StoredPageOptions] = None,
        is_root: bool = False
    ) -> PageSitemapOptions:
        """Resolve the effective options for a node."""
        if not self.is_template_enabled(node.template):
            return DEFAULT_OPTIONS

        if stored is None and self.provider is not None:
            stored = self.provider.load_page_options(node)
        if stored is None:
            return DEFAULT_OPTIONS

        # The home page and the walk root can never be excluded
        exclude_page = bool(stored.ignore_page) and not (is_root or node.path == "/")

        return PageSitemapOptions(
            exclude_page=exclude_page,
            exclude_children=bool(stored.ignore_children),
            exclude_images=bool(stored.ignore_images),
            priority=self._resolve_priority(node, stored.priority),
        )

    @staticmethod
    def _resolve_priority(node: ContentNode, raw: Optional[str]) -> Optional[Decimal]:
        if raw is None or not str(raw).strip():
            return None
        try:
            return parse_priority(raw)
        except ValueError as e:
            logger.warning(f"Ignoring stored priority for {node.path}: {e}")
            return None
