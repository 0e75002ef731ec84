"""Utility functions for Scribe.

String processing, URL and path handling used throughout the codebase.

Key functions:
    slugify: Convert titles to URL slugs.
    slug_from_filename: Convert a post file name to a slug, dropping the date prefix.
    titleize: Convert filenames to human-readable titles.
    extract_excerpt: First prose paragraph of a Markdown body.
    normalize_url: Canonical form of a site-relative URL.
    url_to_output_path: Output file for a site-relative URL.
    join_root_url: Join a base URL with a path.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import re
import shutil
import unicodedata
from pathlib import Path, PurePosixPath

MARKDOWN_SUFFIXES = (".md", ".markdown")

_FENCE_RE = re.compile(r"^(`{3,}|~{3,})")


def _strip_date_prefix(stem: str) -> str:
    parts = stem.split("-")
    if len(parts) >= 4 and all(p.isdigit() for p in parts[:3]):
        return "-".join(parts[3:])
    return stem


def slugify(text: str) -> str:
    """Convert free text to a lowercase, hyphen separated slug.

    Accented letters are folded to ASCII; anything else that is not
    alphanumeric collapses into a single hyphen.

    Args:
        text: Text to slugify, typically a title.

    Returns:
        URL-friendly slug, possibly empty.

    Examples:
        >>> slugify("Why I Chose Go (over Rust)?")
        'why-i-chose-go-over-rust'
    """
    folded = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode()
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", folded)
    return cleaned.strip("-").lower()


def slug_from_filename(stem: str) -> str:
    """Convert a filename stem to a slug, dropping a YYYY-MM-DD- prefix.

    Args:
        stem: Filename without extension.

    Returns:
        URL-friendly slug, "index" when nothing usable remains.
    """
    return slugify(_strip_date_prefix(stem)) or "index"


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Removes date prefixes (YYYY-MM-DD), replaces hyphens and underscores
    with spaces, and capitalizes each word.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'
    """
    base = _strip_date_prefix(Path(filename).stem.lstrip("_"))
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def extract_excerpt(text: str) -> str:
    """Extract the first prose paragraph from Markdown text.

    Headings, images, horizontal rules, HTML blocks and fenced code blocks
    are skipped; the contents of a fence are never inspected.

    Args:
        text: Markdown body.

    Returns:
        The paragraph with whitespace collapsed, or an empty string.
    """
    paragraphs: list[list[str]] = []
    current: list[str] = []
    fence: str | None = None
    for line in text.splitlines():
        stripped = line.strip()
        if fence is not None:
            if stripped.startswith(fence):
                fence = None
            continue
        match = _FENCE_RE.match(stripped)
        if match:
            fence = match.group(1)
            if current:
                paragraphs.append(current)
                current = []
            continue
        if not stripped:
            if current:
                paragraphs.append(current)
                current = []
            continue
        current.append(stripped)
    if current:
        paragraphs.append(current)

    for lines in paragraphs:
        first = lines[0]
        if first.startswith(("#", "![", "---", "***", "<", "|", ">")):
            continue
        return " ".join(" ".join(lines).split())
    return ""


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file (case-insensitive)."""
    return path.suffix.lower() in MARKDOWN_SUFFIXES


def normalize_url(url: str) -> str:
    """Return the canonical form of a site-relative URL.

    A leading slash is added, repeated slashes are collapsed and a trailing
    slash is added when the last segment has no file extension.

    Args:
        url: URL or permalink such as "about", "/about/" or "/feed.xml".

    Returns:
        Canonical URL, e.g. "/about/".

    Raises:
        ValueError: If the URL contains "." or ".." segments.
    """
    segments = [s for s in url.strip().split("/") if s]
    if any(s in (".", "..") for s in segments):
        raise ValueError(f"URL may not contain relative segments: {url!r}")
    if not segments:
        return "/"
    path = "/" + "/".join(segments)
    if "." in segments[-1] and not url.endswith("/"):
        return path
    return path + "/"


def url_to_output_path(url: str) -> PurePosixPath:
    """Map a canonical URL to the file written in the output directory.

    Examples:
        >>> url_to_output_path("/about/")
        PurePosixPath('about/index.html')
        >>> url_to_output_path("/rss.xml")
        PurePosixPath('rss.xml')
    """
    stripped = url.strip("/")
    if url.endswith("/"):
        return PurePosixPath(stripped, "index.html") if stripped else PurePosixPath("index.html")
    return PurePosixPath(stripped)


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Examples:
        >>> join_root_url('https://example.com/', 'about')
        'https://example.com/about'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)
