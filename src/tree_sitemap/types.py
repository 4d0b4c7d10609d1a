"""Type definitions for the sitemap builder."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterator, List, Mapping, Optional, Tuple
from .errors import ValidationError
from .utils import PriorityValue, is_valid_url, is_xml_safe, parse_priority


class CacheStatus(Enum):
    """Whether a sitemap was served from the cache."""
    HIT = "hit"
    MISS = "miss"


@dataclass(frozen=True)
class Language:
    """A configured site language."""
    id: int
    name: str
    is_default: bool = False


@dataclass
class AlternateLink:
    """One language variant of the same logical page."""
    language_code: str
    href: str

    def __post_init__(self) -> None:
        if not self.language_code:
            raise ValidationError("Alternate link requires a language code")
        if not is_xml_safe(self.language_code):
            raise ValidationError(f"Alternate language code is not XML-safe: {self.language_code!r}")
        if not is_valid_url(self.href):
            raise ValidationError(f"Alternate link href is not an absolute URL: {self.href!r}")


@dataclass
class ImageRef:
    """Image reference attached to a URL entry."""
    href: str
    title: Optional[str] = None
    description: Optional[str] = None
    license: Optional[str] = None
    geo_location: Optional[str] = None

    def __post_init__(self) -> None:
        if not is_valid_url(self.href):
            raise ValidationError(f"Image href is not an absolute URL: {self.href!r}")


@dataclass
class UrlEntry:
    """One indexable location in the sitemap."""
    location: str
    last_modified: Optional[datetime] = None
    priority: Optional[PriorityValue] = None
    alternate_links: List[AlternateLink] = field(default_factory=list)
    images: List[ImageRef] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not is_valid_url(self.location):
            raise ValidationError(f"Location is not an absolute URL: {self.location!r}")
        if self.priority is not None:
            try:
                self.priority = parse_priority(self.priority)
            except ValueError as e:
                raise ValidationError(str(e)) from e

    def add_alternate_link(self, link: AlternateLink) -> None:
        """Attach an alternate link; language codes must be unique per entry."""
        if any(alt.language_code == link.language_code for alt in self.alternate_links):
            raise ValidationError(
                f"Duplicate alternate language '{link.language_code}' for {self.location}"
            )
        self.alternate_links.append(link)

    def add_image(self, image: ImageRef) -> None:
        self.images.append(image)


class UrlSet:
    """Ordered collection of URL entries, in traversal order."""

    def __init__(self, entries: Optional[List[UrlEntry]] = None):
        self._entries: List[UrlEntry] = list(entries or [])

    def add_url(self, entry: UrlEntry) -> None:
        self._entries.append(entry)

    @property
    def has_alternates(self) -> bool:
        return any(entry.alternate_links for entry in self._entries)

    @property
    def has_images(self) -> bool:
        return any(entry.images for entry in self._entries)

    @property
    def locations(self) -> List[str]:
        return [entry.location for entry in self._entries]

    def __iter__(self) -> Iterator[UrlEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(frozen=True)
class PageSitemapOptions:
    """Effective sitemap options for a single content node."""
    exclude_page: bool = False
    exclude_children: bool = False
    exclude_images: bool = False
    priority: Optional[Decimal] = None


def _as_flag(value: Any) -> Optional[bool]:
    """Interpret a stored checkbox value; unknown values are treated as unset."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off", ""):
            return False
    return None


@dataclass
class StoredPageOptions:
    """Raw per-node sitemap settings as stored by the content system."""
    ignore_page: Optional[bool] = None
    ignore_children: Optional[bool] = None
    ignore_images: Optional[bool] = None
    priority: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "StoredPageOptions":
        """Read the sitemap_* keys of a stored settings mapping."""
        if not data:
            return cls()
        priority = data.get("sitemap_priority")
        return cls(
            ignore_page=_as_flag(data.get("sitemap_ignore_page")),
            ignore_children=_as_flag(data.get("sitemap_ignore_children")),
            ignore_images=_as_flag(data.get("sitemap_ignore_images")),
            priority=str(priority) if priority not in (None, "") else None,
        )


# Metadata properties an image asset may carry
IMAGE_METADATA_PROPERTIES = ("description", "license", "title", "geo", "location", "geolocation")


@dataclass
class ImageAsset:
    """An image value of an image-bearing field on a content node."""
    url: str
    description: Optional[str] = None
    license: Optional[str] = None
    title: Optional[str] = None
    geo: Optional[str] = None
    location: Optional[str] = None
    geolocation: Optional[str] = None
    # language id -> {property: value}
    translations: Dict[int, Dict[str, str]] = field(default_factory=dict)

    def metadata(self, prop: str, language: Optional[Language] = None) -> Optional[str]:
        """
        Return a metadata value, preferring the translation for a
        non-default language when that translation is non-empty.
        """
        if prop not in IMAGE_METADATA_PROPERTIES:
            raise KeyError(f"Unknown image metadata property: {prop}")

        if language is not None and not language.is_default:
            localized = self.translations.get(language.id, {}).get(prop)
            if localized:
                return localized

        values = {
            "description": self.description,
            "license": self.license,
            "title": self.title,
            "geo": self.geo,
            "location": self.location,
            "geolocation": self.geolocation,
        }
        return values[prop] or None


@dataclass(frozen=True)
class ChildSelector:
    """Policy for which children of a node are visited."""
    not_found_page_id: Optional[int] = 27
    include_hidden: bool = False
    admin_templates: FrozenSet[str] = frozenset({"admin"})

    def allows(self, node: Any) -> bool:
        if self.not_found_page_id is not None and node.id == self.not_found_page_id:
            return False
        if node.hidden:
            return self.include_hidden and node.template not in self.admin_templates
        return True


@dataclass
class SerializeOptions:
    """Output options for the XML serializer."""
    indented: bool = True
    comment: Optional[str] = None
    processing_instruction: Optional[Tuple[str, str]] = None


@dataclass
class SitemapConfig:
    """Configuration for the sitemap builder."""
    site_url: str = "http://localhost:8080"
    root_url_path: str = "/"
    include_templates: List[str] = field(default_factory=list)
    image_fields: List[str] = field(default_factory=list)
    languages: List[Language] = field(default_factory=list)
    language_support: bool = False
    use_home_segment: bool = False
    default_iso: Optional[str] = None
    include_hidden: bool = False
    not_found_page_id: Optional[int] = 27
    admin_templates: List[str] = field(default_factory=lambda: ["admin"])
    cache_method: str = "memory"
    cache_ttl: int = 3600
    cache_path: str = "data/sitemap_cache.db"
    stylesheet: bool = False
    stylesheet_url: Optional[str] = None
    generation_comment: bool = True
    indented: bool = True
    debug: bool = False
    max_depth: int = 100
    single_flight: bool = False

    @property
    def multi_language(self) -> bool:
        return self.language_support and bool(self.languages)

    @property
    def child_selector(self) -> ChildSelector:
        return ChildSelector(
            not_found_page_id=self.not_found_page_id,
            include_hidden=self.include_hidden,
            admin_templates=frozenset(self.admin_templates),
        )


@dataclass
class BuildStatistics:
    """Statistics about a single sitemap build."""
    nodes_visited: int = 0
    entries_added: int = 0
    entries_skipped: int = 0
    pages_excluded: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        """Calculate build duration in seconds."""
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return 0.0
