"""
Tree Sitemap

Builds sitemaps.org XML documents by walking a site's content tree.

Key Features:
- Pre-order walk of the content tree with per-page exclusion and priority
- Template-level enablement of per-page sitemap options
- One entry per language with hreflang alternate links
- Image sub-elements with localized captions, titles and licenses
- Optional xml-stylesheet instruction and generation timestamp comment
- TTL cache (in memory or SQLite) with debug bypass and invalidation
- aiohttp middleware serving /sitemap.xml with a cache-status header
"""

__version__ = "1.0.0"

from .builder import SitemapBuilder, build_sitemap
from .cache import CacheManager, MemoryCacheStore, SQLiteCacheStore
from .config import get_config_from_env
from .errors import ProviderError, SerializationError, SitemapError, ValidationError
from .gate import RequestGate, create_app, sitemap_middleware
from .page_options import PageOptionsResolver
from .sitemap_writer import SitemapWriter
from .tree import MemoryContentTree
from .types import (
    AlternateLink,
    ImageRef,
    Language,
    PageSitemapOptions,
    SerializeOptions,
    SitemapConfig,
    UrlEntry,
    UrlSet,
)
from .walker import TreeWalker

__all__ = [
    "AlternateLink",
    "CacheManager",
    "ImageRef",
    "Language",
    "MemoryCacheStore",
    "MemoryContentTree",
    "PageOptionsResolver",
    "PageSitemapOptions",
    "ProviderError",
    "RequestGate",
    "SQLiteCacheStore",
    "SerializationError",
    "SerializeOptions",
    "SitemapBuilder",
    "SitemapConfig",
    "SitemapError",
    "SitemapWriter",
    "TreeWalker",
    "UrlEntry",
    "UrlSet",
    "ValidationError",
    "build_sitemap",
    "create_app",
    "get_config_from_env",
    "sitemap_middleware",
]
