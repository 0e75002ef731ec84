"""Feed generation for Scribe.

Produces sitemap.xml and rss.xml as OutputPages so they go through the same
duplicate-path check and atomic write as every other output.

Classes:
    FeedGenerator: Base class for feed generators.
    SitemapGenerator: Generates sitemap.xml.
    RSSGenerator: Generates an RSS 2.0 feed of recent posts.
    FeedRegistry: Registry for managing feed generators.

Functions:
    create_default_feed_registry: Create a registry with default generators.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from markupsafe import escape

from .collections import listing_order
from .content import Document
from .site import OutputPage

RFC822 = "%a, %d %b %Y %H:%M:%S +0000"
RSS_LIMIT = 20


def _base_url(data: dict[str, Any]) -> str:
    return str(data.get("url", "") or "").rstrip("/")


class FeedGenerator(ABC):
    """Base class for feed generators.

    Subclasses return the feed text, or None when the site data lacks what
    the feed needs (an absolute ``url``).
    """

    @property
    @abstractmethod
    def filename(self) -> str:
        """Output filename such as 'sitemap.xml'."""
        ...

    @abstractmethod
    def generate(
        self,
        pages: list[OutputPage],
        documents: dict[Path, Document],
        data: dict[str, Any],
    ) -> str | None:
        """Generate feed content.

        Args:
            pages: Rendered document and listing pages.
            documents: Loaded documents keyed by source path.
            data: Site data containing 'url' and optionally 'title'.
        """
        ...

    def build(
        self,
        pages: list[OutputPage],
        documents: dict[Path, Document],
        data: dict[str, Any],
    ) -> OutputPage | None:
        content = self.generate(pages, documents, data)
        if content is None:
            return None
        return OutputPage(url=f"/{self.filename}", content=content, kind="feed")


class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml following the sitemaps.org protocol.

    Dated posts carry a ``lastmod``; pages and listings do not.
    """

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, pages, documents, data):
        base_url = _base_url(data)
        if not base_url:
            return None

        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for page in sorted(pages, key=lambda p: p.url):
            loc = escape(f"{base_url}{page.url}")
            document = documents.get(page.source) if page.source else None
            if document is not None and document.date is not None:
                lastmod = document.date.strftime("%Y-%m-%d")
                lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
            else:
                lines.append(f"  <url><loc>{loc}</loc></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


class RSSGenerator(FeedGenerator):
    """Generates an RSS 2.0 feed of the latest published posts.

    ``lastBuildDate`` is the date of the newest post, never the wall clock,
    so unchanged input gives an unchanged feed.
    """

    @property
    def filename(self) -> str:
        return "rss.xml"

    def generate(self, pages, documents, data):
        base_url = _base_url(data)
        if not base_url:
            return None

        urls = {page.source: page.url for page in pages if page.kind == "post"}
        posts = listing_order(
            d for d in documents.values() if d.is_post and not d.draft and d.source in urls
        )[:RSS_LIMIT]

        title = escape(data.get("title", "Scribe Feed"))
        rss = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0"><channel>',
            f"<title>{title}</title>",
            f"<link>{escape(base_url)}/</link>",
            f"<description>{escape(data.get('description', title))}</description>",
        ]
        if posts:
            rss.append(f"<lastBuildDate>{posts[0].date.strftime(RFC822)}</lastBuildDate>")
        for post in posts:
            link = escape(f"{base_url}{urls[post.source]}")
            description = escape(post.excerpt or post.title)
            rss.append(
                f"<item><title>{escape(post.title)}</title><link>{link}</link>"
                f"<guid>{link}</guid><description>{description}</description>"
                f"<pubDate>{post.date.strftime(RFC822)}</pubDate></item>"
            )
        rss.append("</channel></rss>")
        return "\n".join(rss) + "\n"


class FeedRegistry:
    """Registry for managing feed generators."""

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def build_all(
        self,
        pages: Iterable[OutputPage],
        documents: Iterable[Document],
        data: dict[str, Any],
    ) -> list[OutputPage]:
        """Build every registered feed that has enough data.

        Args:
            pages: Rendered document and listing pages.
            documents: Loaded documents.
            data: Site data dictionary.

        Returns:
            Feed OutputPages, in registration order.
        """
        pages_list = list(pages)
        by_source = {d.source: d for d in documents}
        feeds = []
        for generator in self._generators:
            feed = generator.build(pages_list, by_source, data)
            if feed is not None:
                feeds.append(feed)
        return feeds


def create_default_feed_registry() -> FeedRegistry:
    """Create a registry with the sitemap and RSS generators."""
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(RSSGenerator())
    return registry
