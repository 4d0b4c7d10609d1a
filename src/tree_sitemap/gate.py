"""Request gate serving /sitemap.xml through the cache manager."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional
from aiohttp import web
from .builder import SitemapBuilder
from .cache import CacheManager
from .config import CACHE_STATUS_HEADER, CONTENT_TYPE, SITEMAP_URI
from .errors import SitemapError
from .tree import ContentTree
from .types import CacheStatus, SitemapConfig
from .utils import cache_key_for_root, normalize_root_path

logger = logging.getLogger(__name__)

# host -> subdomain whose pages live under /<subdomain>/ in the tree
SubdomainResolver = Callable[[Optional[str]], Optional[str]]


@dataclass
class SitemapResponse:
    """A successful sitemap response."""
    body: bytes
    cache_status: CacheStatus
    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)


class RequestGate:
    """Matches sitemap requests and answers them from the cache manager."""

    def __init__(
        self,
        tree: ContentTree,
        cache_manager: CacheManager,
        config: SitemapConfig,
        builder: Optional[SitemapBuilder] = None,
        subdomain_resolver: Optional[SubdomainResolver] = None
    ):
        self.tree = tree
        self.cache_manager = cache_manager
        self.config = config
        self.builder = builder or SitemapBuilder(tree, config)
        self.subdomain_resolver = subdomain_resolver

    @classmethod
    def from_config(
        cls,
        tree: ContentTree,
        config: SitemapConfig,
        subdomain_resolver: Optional[SubdomainResolver] = None
    ) -> "RequestGate":
        return cls(
            tree=tree,
            cache_manager=CacheManager.from_config(config),
            config=config,
            subdomain_resolver=subdomain_resolver,
        )

    def matches(self, path: Optional[str]) -> bool:
        """True if the path ends exactly with /sitemap.xml."""
        return bool(path) and path.endswith(SITEMAP_URI)

    def resolve_root_path(self, path: str, host: Optional[str] = None) -> str:
        """Page path the sitemap for this request is rooted at."""
        directory = path[:-len(SITEMAP_URI)] + "/"

        # Strip the install root, e.g. /site/en/sitemap.xml -> /en/
        install_root = normalize_root_path(self.config.root_url_path)
        if install_root != "/" and directory.lower().startswith(install_root.lower()):
            directory = "/" + directory[len(install_root):]

        root_path = normalize_root_path(directory)

        if self.subdomain_resolver is not None:
            subdomain = self.subdomain_resolver(host)
            if subdomain:
                root_path = normalize_root_path(f"/{subdomain}{root_path}")

        return root_path

    async def handle(self, path: str, host: Optional[str] = None) -> Optional[SitemapResponse]:
        """
        Answer a sitemap request.

        Returns None when the request is not for a sitemap, the root page
        does not exist, or the build fails; the caller then continues with
        its normal not-found handling.
        """
        if not self.matches(path):
            return None

        root_path = self.resolve_root_path(path, host)
        try:
            root = self.tree.get(root_path)
        except Exception as e:
            logger.error(f"Content tree lookup failed for {root_path}: {e}")
            return None

        if root is None:
            logger.debug(f"No page at {root_path}, declining {path}")
            return None

        key = cache_key_for_root(root_path)
        try:
            body, from_cache = await self.cache_manager.get_or_build(
                key, lambda: self.builder.build(root)
            )
        except SitemapError as e:
            logger.error(f"Sitemap build failed for {root_path}: {e}")
            return None

        cache_status = CacheStatus.HIT if from_cache else CacheStatus.MISS
        return SitemapResponse(
            body=body,
            cache_status=cache_status,
            headers={
                "Content-Type": CONTENT_TYPE,
                CACHE_STATUS_HEADER: cache_status.value,
            },
        )

    async def invalidate(self, root_path: str = "/") -> None:
        """Evict the cached sitemap for a root, e.g. after a page save."""
        await self.cache_manager.invalidate(cache_key_for_root(root_path))


GATE_KEY = web.AppKey("sitemap_gate", RequestGate)


def sitemap_middleware(gate: RequestGate):
    """aiohttp middleware answering sitemap requests before routing falls through."""

    @web.middleware
    async def middleware(request: web.Request, handler):
        if request.method in ("GET", "HEAD") and gate.matches(request.path):
            response = await gate.handle(request.path, request.host)
            if response is not None:
                return web.Response(
                    body=response.body,
                    status=response.status,
                    headers=response.headers
                )
        return await handler(request)

    return middleware


def create_app(gate: RequestGate) -> web.Application:
    """Create an aiohttp application serving sitemaps through the gate."""
    app = web.Application(middlewares=[sitemap_middleware(gate)])
    app[GATE_KEY] = gate
    return app
