"""Configuration and constants for the sitemap builder."""

import os
from typing import List, Optional
from .types import Language, SitemapConfig
from .utils import is_valid_url

# Request path the sitemap is served from
SITEMAP_URI = "/sitemap.xml"

# XML namespaces
SITEMAP_NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"
XHTML_NAMESPACE = "http://www.w3.org/1999/xhtml"
IMAGE_NAMESPACE = "http://www.google.com/schemas/sitemap-image/1.1"

# Image sub-element -> metadata properties, first non-empty wins
IMAGE_FIELDS = (
    ("description", ("description",)),
    ("license", ("license",)),
    ("title", ("title",)),
    ("geo_location", ("geolocation", "location", "geo")),
)

# Defaults
DEFAULT_SITE_URL = "http://localhost:8080"
DEFAULT_CACHE_TTL = 3600  # seconds
DEFAULT_CACHE_METHOD = "memory"
DEFAULT_CACHE_PATH = "data/sitemap_cache.db"
DEFAULT_NOT_FOUND_PAGE_ID = 27
DEFAULT_ADMIN_TEMPLATES = ["admin"]
DEFAULT_MAX_DEPTH = 100
DEFAULT_STYLESHEET_PATH = "/assets/sitemap-stylesheet.xsl"

CACHE_METHODS = ("memory", "sqlite", "none")

# Response headers
CONTENT_TYPE = "application/xml"
CACHE_STATUS_HEADER = "X-Sitemap-Cache"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str) -> List[str]:
    value = os.getenv(name, "")
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_languages(value: str) -> List[Language]:
    """
    Parse a language list of the form ``1:default:default,2:de,3:fr``.

    Each item is ``id:name`` with an optional third ``default`` marker.
    When no item is marked, the first language is the default.
    """
    languages = []
    for item in value.split(","):
        parts = [part.strip() for part in item.split(":") if part.strip()]
        if not parts:
            continue
        if len(parts) < 2:
            raise ValueError(f"Invalid language definition: {item!r}")
        is_default = len(parts) > 2 and parts[2].lower() == "default"
        languages.append(Language(id=int(parts[0]), name=parts[1], is_default=is_default))

    if languages and not any(language.is_default for language in languages):
        first = languages[0]
        languages[0] = Language(id=first.id, name=first.name, is_default=True)

    return languages


def get_config_from_env() -> SitemapConfig:
    """Create configuration from environment variables with defaults."""
    not_found = os.getenv("SITEMAP_NOT_FOUND_PAGE_ID", str(DEFAULT_NOT_FOUND_PAGE_ID))

    return SitemapConfig(
        site_url=os.getenv("SITEMAP_SITE_URL", DEFAULT_SITE_URL),
        root_url_path=os.getenv("SITEMAP_ROOT_URL_PATH", "/"),
        include_templates=_env_list("SITEMAP_INCLUDE_TEMPLATES"),
        image_fields=_env_list("SITEMAP_IMAGE_FIELDS"),
        languages=parse_languages(os.getenv("SITEMAP_LANGUAGES", "")),
        language_support=_env_flag("SITEMAP_LANGUAGE_SUPPORT"),
        use_home_segment=_env_flag("SITEMAP_USE_HOME_SEGMENT"),
        default_iso=os.getenv("SITEMAP_DEFAULT_ISO") or None,
        include_hidden=_env_flag("SITEMAP_INCLUDE_HIDDEN"),
        not_found_page_id=int(not_found) if not_found else None,
        admin_templates=_env_list("SITEMAP_ADMIN_TEMPLATES") or list(DEFAULT_ADMIN_TEMPLATES),
        cache_method=os.getenv("SITEMAP_CACHE_METHOD", DEFAULT_CACHE_METHOD).lower(),
        cache_ttl=int(os.getenv("SITEMAP_CACHE_TTL", DEFAULT_CACHE_TTL)),
        cache_path=os.getenv("SITEMAP_CACHE_PATH", DEFAULT_CACHE_PATH),
        stylesheet=_env_flag("SITEMAP_STYLESHEET"),
        stylesheet_url=os.getenv("SITEMAP_STYLESHEET_URL") or None,
        generation_comment=_env_flag("SITEMAP_GENERATION_COMMENT", "true"),
        indented=_env_flag("SITEMAP_INDENTED", "true"),
        debug=_env_flag("SITEMAP_DEBUG"),
        max_depth=int(os.getenv("SITEMAP_MAX_DEPTH", DEFAULT_MAX_DEPTH)),
        single_flight=_env_flag("SITEMAP_SINGLE_FLIGHT"),
    )


def validate_config(config: SitemapConfig) -> None:
    """Validate configuration parameters."""
    if not is_valid_url(config.site_url):
        raise ValueError(f"Invalid site URL: {config.site_url}")

    if config.cache_method not in CACHE_METHODS:
        raise ValueError(
            f"Unknown cache method '{config.cache_method}', "
            f"expected one of: {', '.join(CACHE_METHODS)}"
        )

    if config.cache_ttl < 0:
        raise ValueError("Cache TTL cannot be negative")

    if config.max_depth < 1:
        raise ValueError("Max depth must be at least 1")

    if config.language_support and config.languages:
        defaults = [language for language in config.languages if language.is_default]
        if len(defaults) != 1:
            raise ValueError("Exactly one language must be marked as default")


def get_stylesheet_href(config: SitemapConfig) -> Optional[str]:
    """Stylesheet URL for the xml-stylesheet instruction, if enabled."""
    if not config.stylesheet:
        return None
    if config.stylesheet_url and is_valid_url(config.stylesheet_url):
        return config.stylesheet_url
    return config.site_url.rstrip("/") + DEFAULT_STYLESHEET_PATH
