"""Content tree provider interfaces and an in-memory implementation."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol, Set, Union
from .types import ChildSelector, ImageAsset, Language, StoredPageOptions
from .utils import normalize_root_path

logger = logging.getLogger(__name__)


class ContentNode(Protocol):
    """One addressable page in the content hierarchy."""
    id: int
    path: str
    template: str
    hidden: bool
    modified: Optional[datetime]

    @property
    def url(self) -> str: ...

    def local_url(self, language: Language) -> str: ...

    def local_name(self, language: Language) -> str: ...

    def is_viewable(self, language: Optional[Language] = None) -> bool: ...

    def has_language(self, language: Language) -> bool: ...

    def images(self, field_name: str) -> List[ImageAsset]: ...


class ContentTree(Protocol):
    """Read-only access to the content hierarchy."""

    def get(self, key: Union[int, str]) -> Optional[ContentNode]: ...

    def home(self) -> ContentNode: ...

    def children(self, node: ContentNode, selector: Optional[ChildSelector] = None) -> List[ContentNode]: ...


class PageOptionsProvider(Protocol):
    """Loads the stored per-node sitemap settings."""

    def load_page_options(self, node: ContentNode) -> Optional[StoredPageOptions]: ...


@dataclass(eq=False)
class MemoryNode:
    """Content node held in memory."""
    id: int
    name: str
    path: str
    site_url: str
    template: str = "basic-page"
    modified: Optional[datetime] = None
    hidden: bool = False
    viewable: bool = True
    parent: Optional["MemoryNode"] = field(default=None, repr=False)
    # language id -> localized page name
    names: Dict[int, str] = field(default_factory=dict)
    # Active non-default languages; None means every language is active
    active_languages: Optional[Set[int]] = None
    # Languages the page is viewable in; None means all
    viewable_languages: Optional[Set[int]] = None
    image_fields: Dict[str, List[ImageAsset]] = field(default_factory=dict)
    options: Optional[StoredPageOptions] = None
    children: List["MemoryNode"] = field(default_factory=list, repr=False)

    @property
    def url(self) -> str:
        return self.site_url.rstrip("/") + self.path

    def local_name(self, language: Language) -> str:
        return self.names.get(language.id, self.name)

    def local_url(self, language: Language) -> str:
        segments = [node.local_name(language) for node in self._lineage()]
        path = "/".join(segment for segment in segments if segment)
        if self.parent is None:
            return f"{self.site_url.rstrip('/')}/{path + '/' if path else ''}"
        return f"{self.site_url.rstrip('/')}/{path}"

    def _lineage(self) -> List["MemoryNode"]:
        lineage = []
        node: Optional[MemoryNode] = self
        while node is not None:
            lineage.append(node)
            node = node.parent
        return list(reversed(lineage))

    def is_viewable(self, language: Optional[Language] = None) -> bool:
        if not self.viewable:
            return False
        if language is not None and self.viewable_languages is not None:
            return language.id in self.viewable_languages
        return True

    def has_language(self, language: Language) -> bool:
        if language.is_default or self.active_languages is None:
            return True
        return language.id in self.active_languages

    def images(self, field_name: str) -> List[ImageAsset]:
        return list(self.image_fields.get(field_name, []))


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return datetime.fromisoformat(str(value))


def _language_ids(values: Optional[List[Any]]) -> Optional[Set[int]]:
    if values is None:
        return None
    return {int(value) for value in values}


def _parse_image(data: Mapping[str, Any]) -> ImageAsset:
    translations = {
        int(language_id): dict(values)
        for language_id, values in (data.get("translations") or {}).items()
    }
    return ImageAsset(
        url=data["url"],
        description=data.get("description"),
        license=data.get("license"),
        title=data.get("title"),
        geo=data.get("geo"),
        location=data.get("location"),
        geolocation=data.get("geolocation"),
        translations=translations,
    )


class MemoryContentTree:
    """
    In-memory content tree, page-options provider included.

    Built from a nested mapping such as::

        {
            "name": "",
            "template": "home",
            "modified": "2024-05-01T10:00:00+00:00",
            "children": [
                {"name": "about", "sitemap": {"sitemap_priority": "0.8"}}
            ]
        }

    Node ids are assigned in pre-order starting at 1 unless given.
    """

    def __init__(self, root: MemoryNode):
        self.root = root
        self._by_id: Dict[int, MemoryNode] = {}
        self._by_path: Dict[str, MemoryNode] = {}
        for node in self._iter_nodes(root):
            self._by_id[node.id] = node
            self._by_path[normalize_root_path(node.path)] = node

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], site_url: str) -> "MemoryContentTree":
        counter = {"next_id": 1}

        def build(item: Mapping[str, Any], parent: Optional[MemoryNode]) -> MemoryNode:
            node_id = int(item.get("id", counter["next_id"]))
            counter["next_id"] = max(counter["next_id"], node_id) + 1

            name = "" if parent is None else str(item["name"])
            if parent is None:
                path = "/"
            else:
                path = parent.path.rstrip("/") + "/" + name

            node = MemoryNode(
                id=node_id,
                name=name,
                path=path,
                site_url=site_url,
                template=item.get("template", "home" if parent is None else "basic-page"),
                modified=_parse_datetime(item.get("modified")),
                hidden=bool(item.get("hidden", False)),
                viewable=bool(item.get("viewable", True)),
                parent=parent,
                names={int(k): str(v) for k, v in (item.get("names") or {}).items()},
                active_languages=_language_ids(item.get("languages")),
                viewable_languages=_language_ids(item.get("viewable_languages")),
                image_fields={
                    field_name: [_parse_image(image) for image in images]
                    for field_name, images in (item.get("images") or {}).items()
                },
                options=StoredPageOptions.from_mapping(item.get("sitemap")) if "sitemap" in item else None,
            )
            node.children = [build(child, node) for child in item.get("children", [])]
            return node

        return cls(build(data, None))

    @classmethod
    def from_json_file(cls, filepath: str, site_url: str) -> "MemoryContentTree":
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)
        tree = cls.from_dict(data, site_url)
        logger.info(f"Loaded {len(tree._by_id)} pages from {filepath}")
        return tree

    def _iter_nodes(self, node: MemoryNode) -> Iterator[MemoryNode]:
        yield node
        for child in node.children:
            yield from self._iter_nodes(child)

    def get(self, key: Union[int, str]) -> Optional[MemoryNode]:
        if isinstance(key, int):
            return self._by_id.get(key)
        return self._by_path.get(normalize_root_path(key))

    def home(self) -> MemoryNode:
        return self.root

    def children(self, node: MemoryNode, selector: Optional[ChildSelector] = None) -> List[MemoryNode]:
        return [child for child in node.children if selector is None or selector.allows(child)]

    def load_page_options(self, node: MemoryNode) -> Optional[StoredPageOptions]:
        return node.options

    def __len__(self) -> int:
        return len(self._by_id)
