"""Content loading for Scribe.

This module discovers content files under the site directory, validates
their front matter and turns each one into an immutable Document.

Key classes:
- Document: Dataclass representing one parsed content file.
- FileContentLoader: Discovers content files in a directory.
- DocumentBuilder: Builds a Document from a single file.
- ContentStore: Loads every document of a site in a deterministic order.

Loading is a pure transformation from files to Documents: nothing is
written, and the same input always yields the same sequence.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from .errors import MalformedFrontMatterError
from .frontmatter import PostFrontMatter, parse_front_matter, split_front_matter
from .utils import extract_excerpt, is_markdown, titleize

POSTS_DIR = "_posts"
DRAFTS_DIR = "_drafts"


@dataclass(frozen=True)
class Document:
    """One content file's validated metadata and body.

    Attributes:
        path: POSIX path relative to the content root; unique per store.
        source: Absolute path of the source file.
        layout: "post" or "page".
        title: Display title.
        date: Publication time for posts, None for pages.
        categories: Lowercase category tokens.
        permalink: Explicit output URL (pages only).
        body: Raw Markdown body, fenced code included verbatim.
        excerpt: First prose paragraph of the body as plain text.
        draft: Whether the document is a draft.
        extra: Remaining front matter keys.
    """

    path: str
    source: Path
    layout: str
    title: str
    body: str
    date: datetime | None = None
    categories: tuple[str, ...] = ()
    permalink: str | None = None
    excerpt: str = ""
    draft: bool = False
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_post(self) -> bool:
        return self.layout == "post"


class FileContentLoader:
    """Discovers content files in a directory.

    Directories starting with an underscore are internal (layouts, partials)
    and skipped, except ``_posts`` and, when drafts are requested,
    ``_drafts``. Files whose name starts with an underscore are drafts.

    Attributes:
        site_dir: Directory containing site content.
    """

    def __init__(self, site_dir: Path):
        self.site_dir = site_dir

    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        """List all content files, sorted by relative path.

        Args:
            include_drafts: Whether to include draft files.

        Returns:
            List of paths to content files.
        """
        files: list[Path] = []
        for path in self.site_dir.rglob("*"):
            if path.is_dir() or not is_markdown(path):
                continue
            rel = path.relative_to(self.site_dir)
            if not self._is_visible_dir(rel.parts[:-1], include_drafts):
                continue
            if rel.name.startswith("_") and not include_drafts:
                continue
            files.append(path)
        return sorted(files, key=lambda p: p.relative_to(self.site_dir).as_posix())

    @staticmethod
    def _is_visible_dir(parts: tuple[str, ...], include_drafts: bool) -> bool:
        for part in parts:
            if not part.startswith("_") or part == POSTS_DIR:
                continue
            if part == DRAFTS_DIR and include_drafts:
                continue
            return False
        return True


class DocumentBuilder:
    """Builds Document objects from source files.

    Attributes:
        site_dir: Directory containing site content.
    """

    def __init__(self, site_dir: Path):
        self.site_dir = site_dir

    def build(self, path: Path) -> Document:
        """Read, validate and wrap a single content file.

        Args:
            path: Path to the source file.

        Returns:
            Document object.

        Raises:
            MalformedFrontMatterError: If the file is not UTF-8 text or the
                front matter is not well-formed.
            MissingRequiredFieldError: If a post lacks its title or date.
        """
        rel = path.relative_to(self.site_dir)
        try:
            raw = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedFrontMatterError(path, "file is not valid UTF-8", exc) from exc
        mapping, body = split_front_matter(raw, path)

        folders = rel.parts[:-1]
        in_posts = POSTS_DIR in folders or DRAFTS_DIR in folders
        meta = parse_front_matter(
            mapping, path, default_layout="post" if in_posts else "page"
        )
        draft = rel.name.startswith("_") or DRAFTS_DIR in folders

        if isinstance(meta, PostFrontMatter):
            return Document(
                path=rel.as_posix(),
                source=path,
                layout=meta.layout,
                title=meta.title,
                body=body,
                date=meta.date,
                categories=meta.categories,
                excerpt=extract_excerpt(body),
                draft=draft,
                extra=meta.extra,
            )
        return Document(
            path=rel.as_posix(),
            source=path,
            layout=meta.layout,
            title=meta.title or titleize(path.name),
            body=body,
            categories=meta.categories,
            permalink=meta.permalink,
            excerpt=extract_excerpt(body),
            draft=draft,
            extra=meta.extra,
        )


class ContentStore:
    """Loads all documents of a site.

    The store is rebuilt from scratch on every build; documents are never
    mutated once loaded.

    Attributes:
        site_dir: Directory containing site content.
        workers: Number of threads used to parse files.
    """

    def __init__(
        self,
        site_dir: Path,
        workers: int = 1,
        content_loader: FileContentLoader | None = None,
        document_builder: DocumentBuilder | None = None,
    ):
        self.site_dir = site_dir
        self.workers = workers
        self._content_loader = content_loader or FileContentLoader(site_dir)
        self._document_builder = document_builder or DocumentBuilder(site_dir)

    def load_all(self, include_drafts: bool = False) -> list[Document]:
        """Load every content file into a Document.

        Args:
            include_drafts: Whether to include draft documents.

        Returns:
            Documents ordered by relative path.

        Raises:
            BuildError: The first failing file, in path order.
        """
        paths = self._content_loader.iter_files(include_drafts)
        if self.workers <= 1 or len(paths) <= 1:
            return [self._document_builder.build(path) for path in paths]
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            return list(pool.map(self._document_builder.build, paths))


def load_all(
    root_directory: Path, include_drafts: bool = False, workers: int = 1
) -> list[Document]:
    """Load all documents under ``root_directory``.

    Shortcut for ``ContentStore(root_directory, workers).load_all()``.
    """
    if not root_directory.is_dir():
        raise FileNotFoundError(f"Expected site directory at {root_directory}")
    return ContentStore(root_directory, workers=workers).load_all(include_drafts)
