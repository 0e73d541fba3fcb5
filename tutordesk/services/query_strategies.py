"""Retrieval strategies behind a directory query.

select_strategy() picks exactly one strategy from the query alone:

- SearchStrategy: search text present. Resolve every candidate, attach
  balances, sort the full candidate list in memory, then slice the page.
- BalanceSortStrategy: sort on total_balance. Aggregate balances for every
  matching id, sort ids, slice, then hydrate only the page.
- FieldSortStrategy: sort on a column the store orders natively. One
  ordered range query plus a count; balances only for the page.
- PageResortStrategy: sort on member_count. Fetches the page in display
  name order and re-sorts just that page. This is not a global order across
  pages and is accepted as such.

Every stage goes through a StageRunner so that store failures and timeouts
surface with the stage that caused them.
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from tutordesk.errors import QueryStage, QueryTimeoutError, StoreReadError
from tutordesk.models.account import Account
from tutordesk.services.account_store import AccountStore
from tutordesk.services.directory_types import (
    AccountView,
    DirectoryPage,
    DirectoryQuery,
    SortField,
    statuses_for,
)
from tutordesk.services.ledger_service import LedgerAggregator
from tutordesk.services.search_service import SearchResolver

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StageRunner:
    """Run query stages against one shared deadline."""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        self._deadline: float | None = None

    async def run(self, stage: QueryStage, awaitable: Awaitable[T]) -> T:
        """Await one stage, mapping failures to stage-tagged errors.

        Raises:
            QueryTimeoutError: the operation deadline passed during this stage
            StoreReadError: the store failed during this stage
        """
        loop = asyncio.get_running_loop()
        if self._deadline is None:
            self._deadline = loop.time() + self.timeout_seconds
        remaining = self._deadline - loop.time()
        if remaining <= 0:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise QueryTimeoutError(stage, self.timeout_seconds)

        try:
            return await asyncio.wait_for(awaitable, timeout=remaining)
        except StoreReadError:
            raise
        except asyncio.TimeoutError as e:
            logger.warning("Directory %s stage timed out", stage.value)
            raise QueryTimeoutError(stage, self.timeout_seconds) from e
        except SQLAlchemyError as e:
            logger.error("Directory %s stage failed: %s", stage.value, e)
            raise StoreReadError(stage) from e


@dataclass
class StrategyContext:
    """Collaborators a strategy may use."""

    store: AccountStore
    aggregator: LedgerAggregator
    resolver: SearchResolver
    balance_sort_limit: int


def _text_key(value: str | None) -> str:
    return (value or "").casefold()


SORT_KEYS: dict[SortField, Callable[[AccountView], Any]] = {
    SortField.DISPLAY_NAME: lambda view: _text_key(view.display_name),
    SortField.STATUS: lambda view: view.status,
    SortField.PRIMARY_EMAIL: lambda view: _text_key(view.primary_email),
    SortField.TOTAL_BALANCE: lambda view: view.total_balance,
    SortField.MEMBER_COUNT: lambda view: view.member_count,
}


def sort_views(views: Iterable[AccountView], field: SortField, descending: bool) -> list[AccountView]:
    """Stable in-memory sort; ties keep id ascending in both directions."""
    ordered = sorted(views, key=lambda view: view.id)
    # list.sort stays stable with reverse=True
    ordered.sort(key=SORT_KEYS[field], reverse=descending)
    return ordered


def sort_ids_by_balance(
    account_ids: Iterable[int], balances: dict[int, Decimal], descending: bool
) -> list[int]:
    """Order ids by balance; ties keep id ascending in both directions."""
    ordered = sorted(account_ids)
    ordered.sort(key=lambda account_id: balances[account_id], reverse=descending)
    return ordered


def page_window(items: list[T], query: DirectoryQuery) -> list[T]:
    return items[query.offset : query.offset + query.page_size]


def build_views(accounts: Iterable[Account], balances: dict[int, Decimal]) -> list[AccountView]:
    return [AccountView.from_account(account, balances[account.id]) for account in accounts]


class QueryStrategy:
    """One way of producing a directory page."""

    name = "base"

    async def execute(
        self, query: DirectoryQuery, ctx: StrategyContext, runner: StageRunner
    ) -> DirectoryPage:
        raise NotImplementedError

    def _page(self, query: DirectoryQuery, views: list[AccountView], total: int) -> DirectoryPage:
        return DirectoryPage(
            accounts=views,
            total_count=total,
            page=query.page,
            page_size=query.page_size,
            strategy=self.name,
        )


class SearchStrategy(QueryStrategy):
    """Search-driven: sort the whole candidate set before slicing."""

    name = "search"

    async def execute(
        self, query: DirectoryQuery, ctx: StrategyContext, runner: StageRunner
    ) -> DirectoryPage:
        candidates = await runner.run(
            QueryStage.SEARCH, ctx.resolver.resolve(query.search, query.status)
        )
        balances = await runner.run(
            QueryStage.AGGREGATE,
            ctx.aggregator.open_balances(account.id for account in candidates),
        )
        ordered = sort_views(build_views(candidates, balances), query.sort_field, query.descending)
        return self._page(query, page_window(ordered, query), len(ordered))


class BalanceSortStrategy(QueryStrategy):
    """Computed-aggregate sort: rank every matching id by balance, then hydrate the page."""

    name = "balance_sort"

    async def execute(
        self, query: DirectoryQuery, ctx: StrategyContext, runner: StageRunner
    ) -> DirectoryPage:
        statuses = statuses_for(query.status)
        account_ids = await runner.run(
            QueryStage.COUNT, ctx.store.fetch_ids(statuses, ctx.balance_sort_limit)
        )
        if len(account_ids) >= ctx.balance_sort_limit:
            logger.warning(
                "Balance sort reached the %d account limit; lower balances may be missing",
                ctx.balance_sort_limit,
            )

        balances = await runner.run(QueryStage.AGGREGATE, ctx.aggregator.open_balances(account_ids))
        page_ids = page_window(sort_ids_by_balance(account_ids, balances, query.descending), query)

        # Hydration only; balances computed above are reattached as-is
        accounts = await runner.run(QueryStage.HYDRATE, ctx.store.fetch_by_ids(page_ids))
        by_id = {account.id: account for account in accounts}
        views = [
            AccountView.from_account(by_id[account_id], balances[account_id])
            for account_id in page_ids
            if account_id in by_id
        ]
        return self._page(query, views, len(account_ids))


class FieldSortStrategy(QueryStrategy):
    """Store-native sort: one ordered range query, balances for the page only."""

    name = "field_sort"

    def baseline(self, query: DirectoryQuery) -> tuple[SortField, bool]:
        return query.sort_field, query.descending

    def reorder(self, views: list[AccountView], query: DirectoryQuery) -> list[AccountView]:
        return views

    async def execute(
        self, query: DirectoryQuery, ctx: StrategyContext, runner: StageRunner
    ) -> DirectoryPage:
        statuses = statuses_for(query.status)
        sort_field, descending = self.baseline(query)
        accounts = await runner.run(
            QueryStage.HYDRATE,
            ctx.store.fetch_page(
                statuses, sort_field.value, descending, query.offset, query.page_size
            ),
        )
        total = await runner.run(QueryStage.COUNT, ctx.store.count(statuses))
        balances = await runner.run(
            QueryStage.AGGREGATE,
            ctx.aggregator.open_balances(account.id for account in accounts),
        )
        return self._page(query, self.reorder(build_views(accounts, balances), query), total)


class PageResortStrategy(FieldSortStrategy):
    """Client-only sort: display-name page, re-sorted locally."""

    name = "page_resort"

    def baseline(self, query: DirectoryQuery) -> tuple[SortField, bool]:
        return SortField.DISPLAY_NAME, False

    def reorder(self, views: list[AccountView], query: DirectoryQuery) -> list[AccountView]:
        return sort_views(views, query.sort_field, query.descending)


def select_strategy(query: DirectoryQuery) -> QueryStrategy:
    """Pick the strategy for a validated query."""
    if query.search:
        return SearchStrategy()
    if query.sort_field == SortField.TOTAL_BALANCE:
        return BalanceSortStrategy()
    if query.sort_field.is_native:
        return FieldSortStrategy()
    return PageResortStrategy()


__all__ = [
    "BalanceSortStrategy",
    "FieldSortStrategy",
    "PageResortStrategy",
    "QueryStrategy",
    "SearchStrategy",
    "StageRunner",
    "StrategyContext",
    "select_strategy",
    "sort_ids_by_balance",
    "sort_views",
]
