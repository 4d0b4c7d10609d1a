"""Tests for the command line interface."""

import asyncio
import json
from click.testing import CliRunner
from lxml import etree
import pytest
from tree_sitemap.cache import SQLiteCacheStore
from tree_sitemap.main import main

NS = "{http://www.sitemaps.org/schemas/sitemap/0.9}"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SITEMAP_SITE_URL", "SITEMAP_CACHE_METHOD", "SITEMAP_CACHE_PATH", "SITEMAP_LANGUAGES"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SITEMAP_GENERATION_COMMENT", "false")


@pytest.fixture
def tree_file(tmp_path, simple_tree_data):
    path = tmp_path / "tree.json"
    path.write_text(json.dumps(simple_tree_data), encoding="utf-8")
    return str(path)


def test_build_writes_sitemap(tmp_path, tree_file):
    output = tmp_path / "out" / "sitemap.xml"

    result = CliRunner().invoke(main, [
        "build", "--tree", tree_file, "--output", str(output), "--site-url", "https://example.tld",
    ])

    assert result.exit_code == 0, result.output
    assert "URLs written: 2" in result.output
    root = etree.parse(str(output)).getroot()
    assert [loc.text for loc in root.iter(f"{NS}loc")] == [
        "https://example.tld/",
        "https://example.tld/about",
    ]


def test_build_compact_from_subtree(tmp_path, tree_file, monkeypatch):
    monkeypatch.setenv("SITEMAP_SITE_URL", "https://example.tld")
    output = tmp_path / "sitemap.xml"

    result = CliRunner().invoke(main, [
        "build", "--tree", tree_file, "--output", str(output), "--root", "/about", "--compact",
    ])

    assert result.exit_code == 0, result.output
    content = output.read_bytes()
    assert b"\n  <url>" not in content
    assert b"<loc>https://example.tld/about</loc>" in content
    assert b"<loc>https://example.tld/</loc>" not in content


def test_build_unknown_root(tmp_path, tree_file):
    result = CliRunner().invoke(main, [
        "build", "--tree", tree_file, "--output", str(tmp_path / "sitemap.xml"),
        "--root", "/missing", "--site-url", "https://example.tld",
    ])

    assert result.exit_code == 1
    assert not (tmp_path / "sitemap.xml").exists()


def test_build_invalid_site_url(tmp_path, tree_file):
    result = CliRunner().invoke(main, [
        "build", "--tree", tree_file, "--output", str(tmp_path / "sitemap.xml"), "--site-url", "example.tld",
    ])

    assert result.exit_code == 1


def test_validate(tmp_path, tree_file):
    good = tmp_path / "good.xml"
    bad = tmp_path / "bad.xml"
    bad.write_text("<urlset>", encoding="utf-8")
    runner = CliRunner()
    runner.invoke(main, ["build", "--tree", tree_file, "--output", str(good), "--site-url", "https://example.tld"])

    result = runner.invoke(main, ["validate", str(good)])
    assert result.exit_code == 0
    assert "1/1 files valid" in result.output

    result = runner.invoke(main, ["validate", str(good), str(bad)])
    assert result.exit_code == 1
    assert "bad.xml: INVALID" in result.output


def test_invalidate_sqlite_cache(tmp_path, monkeypatch):
    cache_path = str(tmp_path / "cache.db")
    monkeypatch.setenv("SITEMAP_CACHE_METHOD", "sqlite")
    monkeypatch.setenv("SITEMAP_CACHE_PATH", cache_path)

    store = SQLiteCacheStore(cache_path)
    asyncio.run(store.set("sitemap:home", b"<home/>"))
    asyncio.run(store.set("sitemap:blog", b"<blog/>"))

    result = CliRunner().invoke(main, ["invalidate"])
    assert result.exit_code == 0
    assert "sitemap:home" in result.output
    assert asyncio.run(store.get("sitemap:home", 3600)) is None
    assert asyncio.run(store.get("sitemap:blog", 3600)) == b"<blog/>"

    result = CliRunner().invoke(main, ["invalidate", "--all"])
    assert result.exit_code == 0
    assert asyncio.run(store.get("sitemap:blog", 3600)) is None


def test_invalidate_memory_cache_is_noop():
    result = CliRunner().invoke(main, ["invalidate"])

    assert result.exit_code == 0
    assert "keeps nothing between runs" in result.output
