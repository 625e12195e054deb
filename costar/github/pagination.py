"""Cursor pagination shared by every paginated GitHub call site.

A crawl walks several GraphQL connections (a repository's stargazers, a
user's starred repositories) that all follow the same shape: fetch a page for
a cursor, fold it into some accumulator, then read ``hasNextPage`` and
``endCursor`` to decide whether to continue. :class:`Paginator` captures that
loop once so call sites only provide the three functions that differ.
"""

from __future__ import annotations

import dataclasses
import typing as typ

from .errors import PaginationIntegrityError

if typ.TYPE_CHECKING:
    import collections.abc as cabc


type PageFetcher[PageT] = cabc.Callable[[str | None], cabc.Awaitable[PageT | None]]
type PageAccumulator[PageT] = cabc.Callable[[PageT | None], bool]
type CursorExtractor[PageT] = cabc.Callable[[PageT], tuple[bool, str | None]]


@dataclasses.dataclass(frozen=True, slots=True)
class PaginationResult:
    """Summary of one pagination run."""

    pages: int
    completed: bool
    last_cursor: str | None


@dataclasses.dataclass(frozen=True, slots=True)
class Paginator[PageT]:
    """Drive a fetch/accumulate/extract-cursor loop until exhaustion.

    Attributes
    ----------
    fetch
        Returns the page for a cursor (``None`` for the first page). A ``None``
        page is a soft failure and is still handed to ``accumulate``, which
        decides whether the run can continue.
    accumulate
        Folds a page into caller state; returning ``False`` stops the run.
    extract_cursor
        Returns ``(has_more, next_cursor)`` for an accumulated page.
    context
        Human-readable label used in integrity errors.

    """

    fetch: PageFetcher[PageT]
    accumulate: PageAccumulator[PageT]
    extract_cursor: CursorExtractor[PageT]
    context: str = "pagination"

    async def run(self, first_cursor: str | None = None) -> PaginationResult:
        """Fetch pages until the connection is exhausted or accumulation stops.

        Raises
        ------
        PaginationIntegrityError
            If a page claims more data but carries no cursor.

        """
        cursor = first_cursor
        pages = 0
        while True:
            page = await self.fetch(cursor)
            pages += 1
            if not self.accumulate(page) or page is None:
                return PaginationResult(
                    pages=pages, completed=False, last_cursor=cursor
                )
            has_more, next_cursor = self.extract_cursor(page)
            if not has_more:
                return PaginationResult(pages=pages, completed=True, last_cursor=cursor)
            if not next_cursor:
                raise PaginationIntegrityError.missing_cursor(self.context)
            cursor = next_cursor
