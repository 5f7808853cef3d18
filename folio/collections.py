from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from .content import Resource


class ArticleCollection(Sequence[Resource]):
    """Lightweight helper for working with lists of post resources in templates and code."""

    def __init__(self, articles: Iterable[Resource]):
        self._articles = list(articles)

    def __iter__(self) -> Iterator[Resource]:
        return iter(self._articles)

    def __len__(self) -> int:
        return len(self._articles)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return ArticleCollection(self._articles[item])
        return self._articles[item]

    def sorted(self, reverse: bool = True) -> ArticleCollection:
        """Sort articles by date, then by slug.

        Args:
            reverse: If True (default), newest first.

        Returns:
            A new ArticleCollection with sorted articles.
        """
        return ArticleCollection(
            sorted(self._articles, key=lambda a: (a.post.date, a.post.slug), reverse=reverse)
        )

    def latest(self, count: int = 5) -> ArticleCollection:
        return self.sorted()[:count]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"ArticleCollection({len(self._articles)} articles)"


@dataclass(eq=False)
class PaginationPage:
    """One listing page.

    Attributes:
        number: 1-based page number.
        total_pages: Number of listing pages.
        articles: Articles on this page, newest first.
        resource: The resource this page is published as.
        prev_page: Previous (newer) listing page.
        next_page: Next (older) listing page.
    """

    number: int
    total_pages: int
    articles: ArticleCollection
    resource: Any = None
    prev_page: PaginationPage | None = field(default=None, repr=False)
    next_page: PaginationPage | None = field(default=None, repr=False)

    @property
    def url(self) -> str | None:
        return self.resource.route if self.resource is not None else None

    @property
    def prev_url(self) -> str | None:
        return self.prev_page.url if self.prev_page else None

    @property
    def next_url(self) -> str | None:
        return self.next_page.url if self.next_page else None

    @property
    def is_first(self) -> bool:
        return self.number == 1

    @property
    def is_last(self) -> bool:
        return self.number == self.total_pages


def paginate(articles: Iterable[Resource], per_page: int) -> list[PaginationPage]:
    """Partition articles into linked listing pages, newest first.

    Every article lands on exactly one page. An empty collection still
    yields one empty page so the listing route always exists.

    Args:
        articles: Post resources in any order.
        per_page: Maximum articles per page.

    Returns:
        Listing pages in order, linked to their neighbours.
    """
    if per_page < 1:
        raise ValueError(f"per_page must be positive, got {per_page}")
    ordered = ArticleCollection(articles).sorted()
    chunks = [ordered[i : i + per_page] for i in range(0, len(ordered), per_page)]
    if not chunks:
        chunks = [ArticleCollection([])]

    pages = [
        PaginationPage(number=index, total_pages=len(chunks), articles=chunk)
        for index, chunk in enumerate(chunks, start=1)
    ]
    for previous, current in zip(pages, pages[1:]):
        previous.next_page = current
        current.prev_page = previous
    return pages
