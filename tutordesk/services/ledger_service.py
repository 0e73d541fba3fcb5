"""Outstanding balance aggregation for directory accounts.

Balance = sum(balance_due) over an account's open ledger entries
(sent, partial, overdue by default). Draft, paid and void entries never count.

Balances are folded from ledger_entries rows directly. A view that joins
accounts to members and ledger entries returns one row per member for every
entry, so summing over it multiplies each balance by the member count.
"""

import logging
from decimal import Decimal
from typing import Iterable, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.errors import QueryStage, StoreReadError
from tutordesk.services.account_store import AccountStore

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class LedgerAggregator:
    """Compute outstanding balances for sets of accounts."""

    def __init__(self, session: AsyncSession, open_statuses: Sequence[str]):
        """Initialize with database session.

        Args:
            session: AsyncSession for database operations
            open_statuses: Ledger statuses that contribute to the balance
        """
        self.store = AccountStore(session)
        self.open_statuses = list(open_statuses)

    async def open_balances(self, account_ids: Iterable[int]) -> dict[int, Decimal]:
        """Sum open balance_due per account.

        Args:
            account_ids: Accounts to aggregate; duplicates are ignored

        Returns:
            Mapping with an entry for every requested id; ids without open
            entries map to Decimal("0")

        Raises:
            StoreReadError: stage "aggregate", when the ledger read fails.
                No partial mapping is returned.
        """
        ids = list(dict.fromkeys(account_ids))
        if not ids:
            return {}

        try:
            rows = await self.store.open_ledger_rows(ids, self.open_statuses)
        except SQLAlchemyError as e:
            logger.error("Balance aggregation failed for %d accounts: %s", len(ids), e)
            raise StoreReadError(QueryStage.AGGREGATE) from e

        balances = {account_id: ZERO for account_id in ids}
        for account_id, balance_due in rows:
            balances[account_id] += Decimal(balance_due or 0)

        logger.debug("Aggregated %d open ledger entries over %d accounts", len(rows), len(ids))
        return balances

    async def balance_for(self, account_id: int) -> Decimal:
        """Outstanding balance of a single account."""
        balances = await self.open_balances([account_id])
        return balances[account_id]


__all__ = ["LedgerAggregator"]
