"""Site rendering for Scribe.

Turns loaded Documents into OutputPages: one per document, plus the
paginated home listing and one listing per category.

Key classes:
- OutputPage: One rendered file and the URL it is published at.
- SiteRenderer: Derives URLs and applies the post/page/index/category layouts.

Key functions:
- expand_permalink: Fill a post permalink pattern from a document.
- read_page_metadata: Recover title and date from a rendered page.
"""

from __future__ import annotations

import html
import re
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any

from markupsafe import Markup

from .collections import DocumentCollection, Paginator, listing_order, paginate
from .content import Document
from .renderers import MarkdownRenderer
from .templates import TemplateEngine
from .utils import normalize_url, slug_from_filename, slugify, url_to_output_path

DEFAULT_POST_PERMALINK = "/:year/:month/:day/:title/"
CATEGORY_ROOT = "/categories/"

_PERMALINK_TOKEN_RE = re.compile(
    r":(year|month|day|hour|minute|second|title|categories)\b"
)
_META_TAG_RE = re.compile(r"<meta\b[^>]*>", re.IGNORECASE)
_ATTR_RE = re.compile(r'([\w:-]+)\s*=\s*"([^"]*)"')
_CATEGORY_SAFE_RE = re.compile(r"[a-z0-9-]")


@dataclass(frozen=True)
class OutputPage:
    """A rendered, publishable file.

    Attributes:
        url: Canonical site-relative URL, e.g. "/about/" or "/rss.xml".
        content: Rendered text.
        kind: "post", "page", "index", "category" or "feed".
        source: Source file of the document, None for aggregate pages.
    """

    url: str
    content: str
    kind: str
    source: Path | None = None

    @property
    def output_path(self) -> PurePosixPath:
        """File path relative to the output directory."""
        return url_to_output_path(self.url)

    @property
    def origin(self) -> str:
        """Human-readable origin used in error messages."""
        return str(self.source) if self.source is not None else f"the {self.kind} listing {self.url}"


def _title_slug(document: Document) -> str:
    return slugify(document.title) or slug_from_filename(PurePosixPath(document.path).stem)


def expand_permalink(pattern: str, document: Document) -> str:
    """Expand a post permalink pattern such as "/:year/:month/:day/:title/".

    Args:
        pattern: Pattern with ``:token`` placeholders.
        document: A dated document.

    Returns:
        Canonical URL.
    """
    date = document.date
    values = {
        "year": f"{date.year:04d}",
        "month": f"{date.month:02d}",
        "day": f"{date.day:02d}",
        "hour": f"{date.hour:02d}",
        "minute": f"{date.minute:02d}",
        "second": f"{date.second:02d}",
        "title": _title_slug(document),
        "categories": "/".join(category_slug(c) for c in document.categories),
    }
    return normalize_url(_PERMALINK_TOKEN_RE.sub(lambda m: values[m.group(1)], pattern))


def category_slug(category: str) -> str:
    """URL segment for ``category``, distinct for every distinct token.

    Lowercase letters, digits and hyphens are kept; any other character is
    written as ``_`` plus the hex of each of its UTF-8 bytes, so "c++"
    becomes "c_2b_2b" and never meets the listing of "c".
    """
    return "".join(
        ch if _CATEGORY_SAFE_RE.fullmatch(ch) else "".join(f"_{b:02x}" for b in ch.encode("utf-8"))
        for ch in category.lower()
    )


def category_url(category: str) -> str:
    """URL of the listing page for ``category``."""
    return normalize_url(CATEGORY_ROOT + category_slug(category))


def read_page_metadata(rendered: str) -> dict[str, Any]:
    """Read the visible metadata back from a rendered page.

    Looks at the ``og:title`` and ``article:published_time`` meta tags that
    the post and page layouts emit.

    Args:
        rendered: HTML of a rendered page.

    Returns:
        Dict with "title" and, for posts, "date".
    """
    found: dict[str, Any] = {}
    for tag in _META_TAG_RE.findall(rendered):
        attrs = {k.lower(): html.unescape(v) for k, v in _ATTR_RE.findall(tag)}
        key = attrs.get("property") or attrs.get("name")
        if key == "og:title" and "content" in attrs:
            found["title"] = attrs["content"]
        elif key == "article:published_time" and "content" in attrs:
            found["date"] = datetime.fromisoformat(attrs["content"])
    return found


class SiteRenderer:
    """Produces the output page set of a site.

    Attributes:
        engine: Template engine used for every layout.
        config: Build configuration.
        markdown: Renderer for document bodies.
        post_permalink: Pattern for post URLs.
        paginate: Posts per home listing page, 0 for no pagination.
    """

    def __init__(
        self,
        engine: TemplateEngine,
        config: dict[str, Any] | None = None,
        markdown: MarkdownRenderer | None = None,
    ):
        self.engine = engine
        self.config = config or {}
        self.markdown = markdown or MarkdownRenderer()
        self.post_permalink = self.config.get("post_permalink", DEFAULT_POST_PERMALINK)
        self.paginate = int(self.config.get("paginate", 10))
        engine.set_permalink_resolver(self.permalink)
        engine.env.globals["category_url"] = category_url

    def permalink(self, document: Document) -> str:
        """Derive the canonical URL of a document.

        Posts expand ``post_permalink``; pages use their explicit permalink
        or the slug of their title.
        """
        if document.is_post:
            return expand_permalink(self.post_permalink, document)
        if document.permalink:
            return document.permalink
        return normalize_url(_title_slug(document))

    def render_post(self, document: Document) -> OutputPage:
        """Render a post with the ``post`` layout."""
        return self._render_document(document, "post")

    def render_page(self, document: Document) -> OutputPage:
        """Render a page with the ``page`` layout."""
        return self._render_document(document, "page")

    def render_document(self, document: Document) -> OutputPage:
        if document.is_post:
            return self.render_post(document)
        return self.render_page(document)

    def render_all(
        self, documents: Sequence[Document], workers: int = 1
    ) -> list[OutputPage]:
        """Render every document, keeping input order.

        Args:
            documents: Documents to render.
            workers: Threads to render with; 1 renders serially.

        Returns:
            One OutputPage per document.
        """
        if workers <= 1 or len(documents) <= 1:
            return [self.render_document(d) for d in documents]
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(self.render_document, documents))

    def _render_document(self, document: Document, layout: str) -> OutputPage:
        body_html, headings = self.markdown.render(document.body)
        url = self.permalink(document)
        context = {
            "document": document,
            "title": document.title,
            "url": url,
            "content": Markup(body_html),
            "toc": headings,
        }
        rendered = self.engine.render(layout, context, document.source)
        return OutputPage(url=url, content=rendered, kind=document.layout, source=document.source)

    def build_index(self, documents: Iterable[Document]) -> list[OutputPage]:
        """Render the home listing and one listing per category.

        Only posts are listed, newest first, equal dates ordered by path.
        Drafts included in ``documents`` are listed like any other post.

        Args:
            documents: The complete, fully loaded document set.

        Returns:
            Home listing pages (page 1 first) followed by category listings
            in alphabetical order.
        """
        posts = listing_order(d for d in documents if d.is_post)
        pages = [
            self._render_listing("index", paginator, None)
            for paginator in paginate(posts, self.paginate, "/")
        ]
        for category, members in DocumentCollection(posts).categories().items():
            paginator = paginate(members, 0, category_url(category))[0]
            pages.append(self._render_listing("category", paginator, category))
        return pages

    def _render_listing(
        self, layout: str, paginator: Paginator, category: str | None
    ) -> OutputPage:
        context = {
            "paginator": paginator,
            "documents": paginator.documents,
            "category": category,
            "url": paginator.url,
        }
        rendered = self.engine.render(layout, context)
        return OutputPage(
            url=paginator.url,
            content=rendered,
            kind="category" if category is not None else "index",
        )
