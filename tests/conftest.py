"""Shared fixtures for the sitemap builder tests."""

import pytest
from tree_sitemap.tree import MemoryContentTree
from tree_sitemap.types import Language, SitemapConfig

SITE_URL = "https://example.tld"


@pytest.fixture
def simple_tree_data():
    """Home page with a single child."""
    return {
        "name": "",
        "template": "home",
        "modified": "2024-05-01T10:00:00+00:00",
        "children": [
            {
                "name": "about",
                "template": "basic-page",
                "modified": "2024-05-02T08:30:00+00:00",
            },
        ],
    }


@pytest.fixture
def simple_tree(simple_tree_data):
    return MemoryContentTree.from_dict(simple_tree_data, SITE_URL)


@pytest.fixture
def config():
    """Single-language configuration without timestamp comment."""
    return SitemapConfig(site_url=SITE_URL, generation_comment=False)


@pytest.fixture
def languages():
    return [
        Language(id=1, name="default", is_default=True),
        Language(id=2, name="de"),
        Language(id=3, name="fr"),
    ]
