"""Caller-side query sequencing for the directory.

Typing in the search box, clicking sort headers and paging can issue
overlapping queries. Only the most recently issued one may update what the
caller shows: older responses (and older failures) are dropped when they
arrive. In-flight requests are left to finish; nothing is cancelled.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Coroutine, Iterable, TypeVar

from tutordesk.config import Settings, get_settings
from tutordesk.errors import DirectoryError
from tutordesk.services import AsyncSessionLocal
from tutordesk.services.directory_service import DirectoryService
from tutordesk.services.directory_types import (
    STATUS_ALL,
    DirectoryPage,
    DirectoryQuery,
    SortDirection,
    SortField,
)
from tutordesk.services.selection import SelectionState

logger = logging.getLogger(__name__)

T = TypeVar("T")

PageFetcher = Callable[[DirectoryQuery], Awaitable[DirectoryPage]]


class Debouncer:
    """Run a coroutine callback once input has been quiet for `delay` seconds.

    Only the quiet period can be cancelled. Once the delay has passed the
    callback runs in its own task, and later submissions leave it alone.
    """

    def __init__(self, delay: float):
        self.delay = delay
        self._timer: asyncio.Task | None = None
        self._running: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        """A callback is still waiting out the delay."""
        return self._timer is not None and not self._timer.done()

    def submit(self, callback: Callable[[], Coroutine[Any, Any, object]]) -> asyncio.Task:
        """Schedule callback, replacing any callback still waiting."""
        self.cancel()
        self._timer = asyncio.create_task(self._fire(callback))
        return self._timer

    async def _fire(self, callback: Callable[[], Coroutine[Any, Any, object]]) -> None:
        await asyncio.sleep(self.delay)
        task = asyncio.create_task(callback())
        self._running.add(task)
        task.add_done_callback(self._running.discard)

    def cancel(self) -> None:
        if self.pending:
            self._timer.cancel()

    async def wait(self) -> None:
        """Wait until the scheduled callback and every fired one have finished."""
        if self._timer is not None:
            await asyncio.wait({self._timer})
        if self._running:
            await asyncio.wait(set(self._running))


class QuerySequencer:
    """Last request wins.

    Each request gets the next sequence number. When it resolves, its result
    is returned only if no newer request has been issued since.
    """

    def __init__(self):
        self._latest = 0

    @property
    def latest(self) -> int:
        return self._latest

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, seq: int) -> bool:
        return seq == self._latest

    async def run(self, request: Callable[[], Awaitable[T]]) -> T | None:
        """Await request; return its result, or None if it went stale.

        Raises:
            Whatever the request raised, but only if it is still current.
        """
        seq = self.issue()
        try:
            result = await request()
        except Exception:
            if self.is_current(seq):
                raise
            logger.debug("Dropping failure of stale query #%d (latest #%d)", seq, self._latest)
            return None

        if not self.is_current(seq):
            logger.debug("Dropping stale query #%d (latest #%d)", seq, self._latest)
            return None
        return result


def session_fetcher(session_factory=None, settings: Settings | None = None) -> PageFetcher:
    """PageFetcher that opens its own session per query.

    An AsyncSession runs one statement at a time, so overlapping queries
    each need their own session.
    """
    session_factory = session_factory or AsyncSessionLocal

    async def fetch(query: DirectoryQuery) -> DirectoryPage:
        async with session_factory() as session:
            return await DirectoryService(session, settings).query(query)

    return fetch


class DirectoryController:
    """Directory view state: filter, search, sort, page and selection.

    Changes trigger a refresh; only the latest refresh may replace
    `current_page` or `error`.
    """

    def __init__(
        self,
        fetch_page: PageFetcher,
        settings: Settings | None = None,
        disabled_ids: Iterable[int] = (),
    ):
        self.settings = settings or get_settings()
        self.fetch_page = fetch_page
        self.status = STATUS_ALL
        self.search = ""
        self.sort_field = SortField.DISPLAY_NAME
        self.sort_direction = SortDirection.ASC
        self.page = 1
        self.page_size = self.settings.page_size
        self.selection = SelectionState(disabled_ids)

        self.current_page: DirectoryPage | None = None
        self.error: DirectoryError | None = None
        self.loading = False

        self._sequencer = QuerySequencer()
        self._debouncer = Debouncer(self.settings.search_debounce_seconds)

    @property
    def query(self) -> DirectoryQuery:
        return DirectoryQuery(
            status=self.status,
            search=self.search,
            sort_field=self.sort_field,
            sort_direction=self.sort_direction,
            page=self.page,
            page_size=self.page_size,
        )

    async def refresh(self) -> DirectoryPage | None:
        """Query with the current state.

        Returns:
            The page if this refresh was still the latest when it resolved,
            else None. A current failure is kept in `error`.
        """
        query = self.query
        self.loading = True
        try:
            page = await self._sequencer.run(lambda: self.fetch_page(query))
        except DirectoryError as e:
            logger.warning("Directory refresh failed: %s", e.message)
            self.error = e
            self.loading = False
            return None

        if page is not None:
            self.current_page = page
            self.error = None
            self.loading = False
        return page

    async def set_status(self, status: str, clear_selection: bool = False) -> DirectoryPage | None:
        """Change the status filter and return to page 1.

        The selection survives unless clear_selection is set.
        """
        self.status = status
        self.page = 1
        if clear_selection:
            self.selection.clear()
        return await self.refresh()

    def set_search(self, text: str) -> asyncio.Task:
        """Update search text; the refresh runs after the debounce delay."""
        self.search = text
        self.page = 1
        return self._debouncer.submit(self.refresh)

    async def set_sort(self, sort_field: SortField | str) -> DirectoryPage | None:
        """Sort by a field; choosing the current field again flips direction."""
        sort_field = SortField(sort_field)
        if sort_field == self.sort_field:
            self.sort_direction = (
                SortDirection.DESC if self.sort_direction == SortDirection.ASC else SortDirection.ASC
            )
        else:
            self.sort_field = sort_field
            self.sort_direction = SortDirection.ASC
        self.page = 1
        return await self.refresh()

    async def set_page(self, page: int) -> DirectoryPage | None:
        self.page = page
        return await self.refresh()

    async def settle(self) -> None:
        """Wait for debounced searches, including superseded ones, to finish."""
        await self._debouncer.wait()

    def close(self) -> None:
        self._debouncer.cancel()


__all__ = [
    "Debouncer",
    "DirectoryController",
    "PageFetcher",
    "QuerySequencer",
    "session_fetcher",
]
