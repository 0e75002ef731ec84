from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass

from .content import Document


def listing_order(documents: Iterable[Document]) -> list[Document]:
    """Sort documents newest first; equal dates fall back to ascending path."""
    by_path = sorted(documents, key=lambda d: d.path)
    return sorted(by_path, key=lambda d: d.date, reverse=True)


class DocumentCollection(Sequence[Document]):
    """Lightweight helper for working with lists of Documents in templates and code."""

    def __init__(self, documents: Iterable[Document]):
        self._documents = list(documents)

    def __iter__(self) -> Iterator[Document]:
        return iter(self._documents)

    def __len__(self) -> int:
        return len(self._documents)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return DocumentCollection(self._documents[item])
        return self._documents[item]

    def posts(self) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if d.is_post)

    def pages(self) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if not d.is_post)

    def in_category(self, category: str) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if category in d.categories)

    def published(self) -> DocumentCollection:
        return DocumentCollection(d for d in self._documents if not d.draft)

    def sorted(self) -> DocumentCollection:
        """Posts newest first, ties broken by path. Pages are dropped."""
        return DocumentCollection(listing_order(self.posts()))

    def latest(self, count: int = 5) -> DocumentCollection:
        return self.sorted()[:count]

    def categories(self) -> CategoryCollection:
        mapping: dict[str, list[Document]] = {}
        for document in self.sorted():
            for category in document.categories:
                mapping.setdefault(category, []).append(document)
        return CategoryCollection(dict(sorted(mapping.items())))

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"DocumentCollection({len(self._documents)} documents)"


class CategoryCollection(Mapping[str, DocumentCollection]):
    """Mapping of category name to DocumentCollection, alphabetical by name."""

    def __init__(self, mapping: dict[str, Iterable[Document]]):
        self._mapping = {k: DocumentCollection(v) for k, v in mapping.items()}

    def __getitem__(self, key: str) -> DocumentCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"CategoryCollection({len(self._mapping)} categories)"


@dataclass(frozen=True)
class Paginator:
    """One slice of a paginated listing, exposed to templates as ``paginator``.

    Attributes:
        page: 1-based page number.
        total_pages: Number of pages in the listing.
        documents: Documents on this page.
        url: URL of this page.
        previous_url: URL of the previous page, if any.
        next_url: URL of the next page, if any.
    """

    page: int
    total_pages: int
    documents: DocumentCollection
    url: str
    previous_url: str | None
    next_url: str | None


def paginate(
    documents: Sequence[Document], per_page: int, first_url: str = "/"
) -> list[Paginator]:
    """Split an ordered listing into pages.

    Page 1 lives at ``first_url``; page N at ``{first_url}page/N/``. A
    ``per_page`` of 0 keeps everything on one page. An empty listing still
    yields one (empty) page.
    """
    if per_page <= 0:
        chunks = [list(documents)]
    else:
        chunks = [
            list(documents[i : i + per_page]) for i in range(0, len(documents), per_page)
        ] or [[]]

    def url_for(number: int) -> str:
        return first_url if number == 1 else f"{first_url}page/{number}/"

    total = len(chunks)
    return [
        Paginator(
            page=number,
            total_pages=total,
            documents=DocumentCollection(chunk),
            url=url_for(number),
            previous_url=url_for(number - 1) if number > 1 else None,
            next_url=url_for(number + 1) if number < total else None,
        )
        for number, chunk in enumerate(chunks, start=1)
    ]
