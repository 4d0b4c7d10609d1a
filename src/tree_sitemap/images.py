"""Image reference building for sitemap entries."""

import logging
from typing import Iterable, List, Optional
from .config import IMAGE_FIELDS
from .errors import ValidationError
from .tree import ContentNode
from .types import ImageAsset, ImageRef, Language
from .utils import is_valid_url

logger = logging.getLogger(__name__)


class ImageRefBuilder:
    """Builds image references from the configured image fields of a node."""

    def __init__(self, image_fields: Iterable[str]):
        self.image_fields = list(image_fields)

    def build(self, node: ContentNode, language: Optional[Language] = None) -> List[ImageRef]:
        """Collect image references for a node, in field then value order."""
        refs = []
        for field_name in self.image_fields:
            for asset in node.images(field_name):
                try:
                    refs.append(self.build_image(asset, language))
                except ValidationError as e:
                    logger.warning(f"Skipping image on {node.path} ({field_name}): {e}")
        return refs

    def build_image(self, asset: ImageAsset, language: Optional[Language] = None) -> ImageRef:
        """
        Build one image reference.

        Each sub-element takes the first non-empty property listed for it
        in IMAGE_FIELDS. License values must be absolute URLs; invalid ones
        are dropped.
        """
        image = ImageRef(href=asset.url)

        for attribute, properties in IMAGE_FIELDS:
            for prop in properties:
                value = asset.metadata(prop, language)
                if not value:
                    continue
                if attribute == "license" and not is_valid_url(value):
                    logger.debug(f"Dropping invalid image license URL: {value!r}")
                    continue
                setattr(image, attribute, value)
                break

        return image
