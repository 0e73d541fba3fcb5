"""Directory query coordinator.

Answers "page N of accounts matching filter F, sorted by S" by validating the
request, selecting one retrieval strategy and running it under the
configured deadline.
"""

import logging
import time

from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.config import Settings, get_settings
from tutordesk.errors import QueryStage
from tutordesk.services.account_store import AccountStore
from tutordesk.services.directory_types import (
    STATUS_ALL,
    AccountView,
    DirectoryPage,
    DirectoryQuery,
    SortDirection,
    SortField,
)
from tutordesk.services.ledger_service import LedgerAggregator
from tutordesk.services.query_strategies import StageRunner, StrategyContext, select_strategy
from tutordesk.services.search_service import SearchResolver

logger = logging.getLogger(__name__)


class DirectoryService:
    """Paginated, searchable, sortable account directory."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        """Initialize with async database session.

        Args:
            session: AsyncSession for database operations
            settings: Limits and timeouts (default: process settings)
        """
        self.session = session
        self.settings = settings or get_settings()
        self.store = AccountStore(session)
        self.aggregator = LedgerAggregator(session, self.settings.open_ledger_statuses)
        self.resolver = SearchResolver(session, self.settings.search_result_limit)

    def build_query(
        self,
        status: str = STATUS_ALL,
        search: str = "",
        sort_field: SortField | str = SortField.DISPLAY_NAME,
        sort_direction: SortDirection | str = SortDirection.ASC,
        page: int = 1,
        page_size: int | None = None,
    ) -> DirectoryQuery:
        """Build a DirectoryQuery, defaulting page_size from settings."""
        return DirectoryQuery(
            status=status,
            search=search,
            sort_field=sort_field,
            sort_direction=sort_direction,
            page=page,
            page_size=self.settings.page_size if page_size is None else page_size,
        )

    async def query(self, query: DirectoryQuery) -> DirectoryPage:
        """Return one page of the directory.

        Args:
            query: Filter, search text, sort and page window

        Returns:
            DirectoryPage with accounts in sort order and the total match count

        Raises:
            ValidationError: malformed query, before any store access
            StoreReadError: a stage failed (search, aggregate, hydrate or count)
            QueryTimeoutError: the query exceeded query_timeout_seconds
        """
        query = query.validated(self.settings.max_page_size)
        strategy = select_strategy(query)
        runner = StageRunner(self.settings.query_timeout_seconds)
        ctx = StrategyContext(
            store=self.store,
            aggregator=self.aggregator,
            resolver=self.resolver,
            balance_sort_limit=self.settings.balance_sort_limit,
        )

        start_time = time.time()
        page = await strategy.execute(query, ctx, runner)
        logger.debug(
            "directory.query: strategy=%s status=%s search=%r sort=%s:%s page=%d "
            "rows=%d total=%d duration_ms=%d",
            strategy.name,
            query.status,
            query.search,
            query.sort_field.value,
            query.sort_direction.value,
            query.page,
            len(page.accounts),
            page.total_count,
            int((time.time() - start_time) * 1000),
        )
        return page

    async def get_account(self, account_id: int) -> AccountView | None:
        """Fetch a single account with members and balance, regardless of status.

        Returns:
            AccountView, or None if the account does not exist
        """
        runner = StageRunner(self.settings.query_timeout_seconds)
        accounts = await runner.run(QueryStage.HYDRATE, self.store.fetch_by_ids([account_id]))
        if not accounts:
            return None
        balance = await runner.run(QueryStage.AGGREGATE, self.aggregator.balance_for(account_id))
        return AccountView.from_account(accounts[0], balance)


__all__ = ["DirectoryService"]
