"""Main CLI entry point for the tree sitemap builder."""

import asyncio
import logging
import os
import sys
from typing import Optional, Tuple
import click
from aiohttp import web
from .builder import SitemapBuilder
from .cache import SQLiteCacheStore
from .config import get_config_from_env, validate_config
from .errors import SitemapError
from .gate import RequestGate, create_app
from .sitemap_writer import SitemapWriter
from .tree import MemoryContentTree
from .types import SitemapConfig
from .utils import cache_key_for_root, format_duration, format_number, setup_logging

logger = logging.getLogger(__name__)


def log_options(func):
    func = click.option(
        '--log-file',
        help='Log file path (optional)',
        type=click.Path()
    )(func)
    func = click.option(
        '--log-level',
        default='INFO',
        type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
        help='Logging level',
        show_default=True
    )(func)
    return func


def load_config(site_url: Optional[str]) -> SitemapConfig:
    """Load configuration from the environment, applying CLI overrides."""
    config = get_config_from_env()
    if site_url:
        config.site_url = site_url
    validate_config(config)
    return config


@click.group()
def main() -> None:
    """Build XML sitemaps from a content tree."""


@main.command()
@click.option(
    '--tree',
    'tree_path',
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help='JSON file describing the content tree'
)
@click.option(
    '--output',
    'output_path',
    default='sitemap.xml',
    type=click.Path(dir_okay=False),
    help='Output path for the sitemap',
    show_default=True
)
@click.option('--root', 'root_path', default='/', help='Page path to start at', show_default=True)
@click.option('--site-url', help='Site URL (overrides SITEMAP_SITE_URL)')
@click.option('--compact', is_flag=True, help='Write without indentation')
@click.option('--no-comment', is_flag=True, help='Omit the generation timestamp comment')
@log_options
def build(
    tree_path: str,
    output_path: str,
    root_path: str,
    site_url: Optional[str],
    compact: bool,
    no_comment: bool,
    log_level: str,
    log_file: Optional[str]
) -> None:
    """Build a sitemap from a content tree file."""
    setup_logging(log_level, log_file)

    try:
        config = load_config(site_url)
        if compact:
            config.indented = False
        if no_comment:
            config.generation_comment = False

        tree = MemoryContentTree.from_json_file(tree_path, config.site_url)
        root = tree.get(root_path)
        if root is None:
            click.echo(f"Error: no page at {root_path}", err=True)
            sys.exit(1)

        builder = SitemapBuilder(tree, config)
        output = builder.build(root)
        builder.writer.write_bytes(output, output_path)

        statistics = builder.last_statistics
        click.echo(f"Pages visited: {format_number(statistics.nodes_visited)}")
        click.echo(f"URLs written: {format_number(statistics.entries_added)}")
        if statistics.entries_skipped:
            click.echo(f"Entries skipped: {format_number(statistics.entries_skipped)}")
        click.echo(f"Duration: {format_duration(statistics.duration_seconds)}")
        click.echo(f"Sitemap written to {output_path}")

    except KeyboardInterrupt:
        logger.info("Process interrupted by user")
        sys.exit(130)  # Standard exit code for SIGINT

    except (SitemapError, ValueError, OSError) as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


@main.command()
@click.option(
    '--tree',
    'tree_path',
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help='JSON file describing the content tree'
)
@click.option('--host', default='127.0.0.1', show_default=True, help='Interface to bind')
@click.option('--port', default=8080, type=int, show_default=True, help='Port to listen on')
@click.option('--site-url', help='Site URL (overrides SITEMAP_SITE_URL)')
@log_options
def serve(
    tree_path: str,
    host: str,
    port: int,
    site_url: Optional[str],
    log_level: str,
    log_file: Optional[str]
) -> None:
    """Serve /sitemap.xml over HTTP."""
    setup_logging(log_level, log_file)

    try:
        config = load_config(site_url)
        tree = MemoryContentTree.from_json_file(tree_path, config.site_url)
    except (ValueError, OSError) as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)

    gate = RequestGate.from_config(tree, config)
    click.echo(f"Serving sitemaps for {config.site_url} on http://{host}:{port}/sitemap.xml")
    web.run_app(create_app(gate), host=host, port=port, print=None)


@main.command()
@click.argument('paths', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@log_options
def validate(paths: Tuple[str, ...], log_level: str, log_file: Optional[str]) -> None:
    """Validate existing sitemap files."""
    setup_logging(log_level, log_file)
    writer = SitemapWriter()

    click.echo(f"Validating {len(paths)} sitemap files...")

    valid_count = 0
    for filepath in paths:
        if writer.validate_sitemap(filepath):
            stats = writer.get_sitemap_stats(filepath)
            click.echo(
                f"✓ {os.path.basename(filepath)}: {format_number(stats['total_urls'])} URLs, "
                f"{format_number(stats['alternate_links'])} alternates, "
                f"{format_number(stats['images'])} images"
            )
            valid_count += 1
        else:
            click.echo(f"✗ {os.path.basename(filepath)}: INVALID")

    click.echo(f"\nValidation complete: {valid_count}/{len(paths)} files valid")
    if valid_count != len(paths):
        sys.exit(1)


@main.command()
@click.option('--root', 'root_path', default='/', help='Root page path of the sitemap', show_default=True)
@click.option('--all', 'clear_all', is_flag=True, help='Clear every cached sitemap')
@log_options
def invalidate(root_path: str, clear_all: bool, log_level: str, log_file: Optional[str]) -> None:
    """Evict cached sitemaps from the SQLite cache."""
    setup_logging(log_level, log_file)
    config = get_config_from_env()

    if config.cache_method != "sqlite":
        click.echo(f"Cache method '{config.cache_method}' keeps nothing between runs")
        return

    store = SQLiteCacheStore(config.cache_path)
    if clear_all:
        asyncio.run(store.clear())
        click.echo("Cleared all cached sitemaps")
    else:
        key = cache_key_for_root(root_path)
        asyncio.run(store.invalidate(key))
        click.echo(f"Invalidated cached sitemap '{key}'")


if __name__ == '__main__':
    main()
