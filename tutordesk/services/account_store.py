"""Data access for directory accounts.

AccountStore is the only place that builds SQL for the directory. It never
reads a view joining accounts, members and ledger entries together: such a
join yields one row per (member x ledger entry) and multiplies balances.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Sequence

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tutordesk.models.account import Account
from tutordesk.models.enrollment import Enrollment
from tutordesk.models.ledger_entry import LedgerEntry
from tutordesk.models.member import Member

logger = logging.getLogger(__name__)

# Columns the store can order natively
NATIVE_SORT_COLUMNS = {
    "display_name": Account.display_name,
    "status": Account.status,
    "primary_email": Account.primary_email,
}

LIKE_ESCAPE = "\\"


def contains_pattern(text: str) -> str:
    """Build a LIKE pattern matching text literally anywhere in a column."""
    escaped = (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


class AccountStore:
    """Async store primitives over accounts, members, enrollments and ledger entries."""

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def fetch_page(
        self,
        statuses: Sequence[str],
        sort_field: str,
        descending: bool,
        offset: int,
        limit: int,
    ) -> list[Account]:
        """Fetch one natively ordered page of accounts with members loaded.

        Text is compared case-insensitively. Ties on the sort column are
        broken by id ascending so that pages never overlap or skip rows.
        """
        key = func.lower(NATIVE_SORT_COLUMNS[sort_field])
        ordering = key.desc() if descending else key.asc()
        stmt = (
            select(Account)
            .options(selectinload(Account.members))
            .where(Account.status.in_(statuses))
            .order_by(ordering, Account.id.asc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count(self, statuses: Sequence[str]) -> int:
        """Count accounts under a status filter."""
        result = await self.session.execute(
            select(func.count(Account.id)).where(Account.status.in_(statuses))
        )
        return int(result.scalar() or 0)

    async def fetch_ids(self, statuses: Sequence[str], limit: int) -> list[int]:
        """Fetch up to limit account ids under a status filter, ordered by id."""
        result = await self.session.execute(
            select(Account.id)
            .where(Account.status.in_(statuses))
            .order_by(Account.id.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def fetch_by_ids(
        self,
        account_ids: Iterable[int],
        statuses: Sequence[str] | None = None,
    ) -> list[Account]:
        """Fetch accounts with members for an id set. Result order is unspecified."""
        ids = list(account_ids)
        if not ids:
            return []
        stmt = select(Account).options(selectinload(Account.members)).where(Account.id.in_(ids))
        if statuses is not None:
            stmt = stmt.where(Account.status.in_(statuses))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def search_accounts(
        self, text: str, statuses: Sequence[str], limit: int
    ) -> list[Account]:
        """Accounts whose name, email or phone contains text (case-insensitive)."""
        pattern = contains_pattern(text)
        stmt = (
            select(Account)
            .options(selectinload(Account.members))
            .where(Account.status.in_(statuses))
            .where(
                or_(
                    Account.display_name.ilike(pattern, escape=LIKE_ESCAPE),
                    Account.primary_email.ilike(pattern, escape=LIKE_ESCAPE),
                    Account.primary_phone.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
            .order_by(Account.id.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def search_member_account_ids(self, text: str, limit: int) -> list[int]:
        """Owning account ids of members whose name contains text.

        One id per matched member row, in member id order. The limit bounds
        member rows, so siblings in one account use several slots.
        """
        result = await self.session.execute(
            select(Member.account_id)
            .where(Member.full_name.ilike(contains_pattern(text), escape=LIKE_ESCAPE))
            .order_by(Member.id.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def open_ledger_rows(
        self, account_ids: Sequence[int], open_statuses: Sequence[str]
    ) -> list[tuple[int, Decimal]]:
        """(account_id, balance_due) for every open ledger entry of the given accounts.

        Reads ledger_entries alone, so each entry yields exactly one row.
        """
        result = await self.session.execute(
            select(LedgerEntry.account_id, LedgerEntry.balance_due)
            .where(LedgerEntry.account_id.in_(account_ids))
            .where(LedgerEntry.status.in_(open_statuses))
        )
        return [(account_id, balance_due) for account_id, balance_due in result.all()]

    async def statuses_by_id(self, account_ids: Sequence[int]) -> dict[int, str]:
        """Current status for each existing account id."""
        if not account_ids:
            return {}
        result = await self.session.execute(
            select(Account.id, Account.status).where(Account.id.in_(account_ids))
        )
        return {account_id: str(status) for account_id, status in result.all()}

    async def enrollment_blockers(self, account_ids: Sequence[int]) -> dict[int, int]:
        """Number of enrollments tied to each account, directly or through a member."""
        if not account_ids:
            return {}
        ids = set(account_ids)
        result = await self.session.execute(
            select(Enrollment.id, Enrollment.account_id, Member.account_id)
            .outerjoin(Member, Member.id == Enrollment.member_id)
            .where(
                or_(
                    Enrollment.account_id.in_(account_ids),
                    Member.account_id.in_(account_ids),
                )
            )
        )
        enrollments: dict[int, set[int]] = {}
        for enrollment_id, account_id, member_account_id in result.all():
            for owner in (account_id, member_account_id):
                if owner in ids:
                    enrollments.setdefault(owner, set()).add(enrollment_id)
        return {account_id: len(found) for account_id, found in enrollments.items()}

    async def ledger_blockers(self, account_ids: Sequence[int]) -> dict[int, int]:
        """Number of ledger entries (any status) owned by each account."""
        if not account_ids:
            return {}
        result = await self.session.execute(
            select(LedgerEntry.account_id, func.count(LedgerEntry.id))
            .where(LedgerEntry.account_id.in_(account_ids))
            .group_by(LedgerEntry.account_id)
        )
        return {account_id: int(count) for account_id, count in result.all()}

    # ------------------------------------------------------------------
    # Writes (caller owns the transaction)
    # ------------------------------------------------------------------

    async def update_status(self, account_ids: Sequence[int], status: str) -> None:
        """Set status on an id set."""
        await self.session.execute(
            update(Account)
            .where(Account.id.in_(account_ids))
            .values(status=status, updated_at=datetime.now(timezone.utc))
        )

    async def delete_accounts(self, account_ids: Sequence[int]) -> None:
        """Delete accounts and the members they own."""
        await self.session.execute(delete(Member).where(Member.account_id.in_(account_ids)))
        await self.session.execute(delete(Account).where(Account.id.in_(account_ids)))


__all__ = ["AccountStore", "NATIVE_SORT_COLUMNS", "contains_pattern"]
