"""Bulk operations on selected directory accounts.

- bulk_update_status: batched, each batch one transaction; per-id failures
  are reported, never collapsed into a single pass/fail flag
- bulk_delete: refuses the whole request if any account still has
  enrollments or ledger entries
- export_csv: read-only, every field quoted, rows in the requested order
"""

import asyncio
import csv
import io
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Iterable, NamedTuple, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.config import Settings, get_settings
from tutordesk.errors import (
    BlockingReference,
    QueryStage,
    ReferentialIntegrityError,
    StoreWriteError,
    ValidationError,
)
from tutordesk.models.account import AccountStatus
from tutordesk.models.audit_log import AuditLog
from tutordesk.services.account_store import AccountStore
from tutordesk.services.directory_types import AccountView
from tutordesk.services.ledger_service import LedgerAggregator
from tutordesk.services.query_strategies import StageRunner

logger = logging.getLogger(__name__)

ENTITY_TYPE = "account"


class BulkFailure(NamedTuple):
    """One account a bulk operation could not apply to."""

    id: int
    reason: str


@dataclass
class BulkUpdateResult:
    """Outcome of a bulk status update."""

    updated: list[int] = field(default_factory=list)
    failed: list[BulkFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def partial(self) -> bool:
        """Some accounts were updated and some were not."""
        return bool(self.updated) and bool(self.failed)


@dataclass
class BulkDeleteResult:
    deleted: list[int] = field(default_factory=list)


class ExportField(str, Enum):
    """Columns available for CSV export."""

    DISPLAY_NAME = "display_name"
    STATUS = "status"
    PRIMARY_EMAIL = "primary_email"
    PRIMARY_PHONE = "primary_phone"
    PRIMARY_CONTACT_NAME = "primary_contact_name"
    MEMBERS = "members"
    TOTAL_BALANCE = "total_balance"
    NOTES = "notes"


EXPORT_LABELS = {
    ExportField.DISPLAY_NAME: "Account Name",
    ExportField.STATUS: "Status",
    ExportField.PRIMARY_EMAIL: "Email",
    ExportField.PRIMARY_PHONE: "Phone",
    ExportField.PRIMARY_CONTACT_NAME: "Primary Contact",
    ExportField.MEMBERS: "Members",
    ExportField.TOTAL_BALANCE: "Balance",
    ExportField.NOTES: "Notes",
}

DEFAULT_EXPORT_FIELDS = (
    ExportField.DISPLAY_NAME,
    ExportField.STATUS,
    ExportField.PRIMARY_EMAIL,
    ExportField.PRIMARY_PHONE,
    ExportField.MEMBERS,
    ExportField.TOTAL_BALANCE,
)


def unique_ids(account_ids: Iterable[int]) -> list[int]:
    """Drop repeated ids, keeping first occurrence order."""
    return list(dict.fromkeys(account_ids))


def export_value(view: AccountView, export_field: ExportField) -> str:
    """Render one export cell."""
    if export_field == ExportField.MEMBERS:
        return "; ".join(member.full_name for member in view.members)
    if export_field == ExportField.TOTAL_BALANCE:
        return f"{view.total_balance:.2f}"
    value = getattr(view, export_field.value)
    return "" if value is None else str(value)


def _plural(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


class BulkOperationService:
    """Bulk status change, guarded delete and CSV export for account id sets."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        """Initialize with async database session."""
        self.session = session
        self.settings = settings or get_settings()
        self.store = AccountStore(session)
        self.aggregator = LedgerAggregator(session, self.settings.open_ledger_statuses)

    async def bulk_update_status(
        self,
        account_ids: Iterable[int],
        new_status: AccountStatus | str,
        actor_id: int | None = None,
    ) -> BulkUpdateResult:
        """Set the status of many accounts.

        Ids are applied in batches of bulk_batch_size, one transaction per
        batch. A failed batch is rolled back and each of its ids reported with
        the error; other batches are unaffected. Re-applying the current
        status counts as updated.

        Raises:
            ValidationError: new_status is not an account status
        """
        try:
            status = AccountStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown account status: {new_status!r}") from None

        ids = unique_ids(account_ids)
        result = BulkUpdateResult()
        batch_size = self.settings.bulk_batch_size

        for start in range(0, len(ids), batch_size):
            batch = ids[start : start + batch_size]
            try:
                updated, missing = await asyncio.wait_for(
                    self._update_batch(batch, status, actor_id),
                    timeout=self.settings.query_timeout_seconds,
                )
            except (SQLAlchemyError, asyncio.TimeoutError) as e:
                await self.session.rollback()
                reason = "timed out" if isinstance(e, asyncio.TimeoutError) else f"store error: {e}"
                logger.error("Bulk status batch of %d accounts failed: %s", len(batch), reason)
                result.failed.extend(BulkFailure(aid, reason) for aid in batch)
                continue

            result.updated.extend(updated)
            result.failed.extend(BulkFailure(aid, "account not found") for aid in missing)

        logger.info(
            "Bulk status -> %s: %d updated, %d failed",
            status.value,
            len(result.updated),
            len(result.failed),
        )
        return result

    async def _update_batch(
        self, batch: Sequence[int], status: AccountStatus, actor_id: int | None
    ) -> tuple[list[int], list[int]]:
        current = await self.store.statuses_by_id(batch)
        found = [aid for aid in batch if aid in current]
        missing = [aid for aid in batch if aid not in current]

        if found:
            await self.store.update_status(found, status.value)
            for account_id in found:
                if current[account_id] != status.value:
                    self._audit(
                        account_id,
                        "status_change",
                        actor_id,
                        {"status": {"from": current[account_id], "to": status.value}},
                    )
        await self.session.commit()
        return found, missing

    async def bulk_delete(
        self, account_ids: Iterable[int], actor_id: int | None = None
    ) -> BulkDeleteResult:
        """Delete accounts (and their members) unless any has dependents.

        The whole id set is checked first. If any account has enrollments or
        ledger entries nothing is deleted. Unknown ids are skipped.

        Raises:
            ReferentialIntegrityError: lists every blocking id with its reason
            StoreReadError: the dependency check failed
            StoreWriteError: the delete failed and was rolled back
        """
        ids = unique_ids(account_ids)
        if not ids:
            return BulkDeleteResult()

        runner = StageRunner(self.settings.query_timeout_seconds)
        enrollments = await runner.run(QueryStage.COUNT, self.store.enrollment_blockers(ids))
        ledger_entries = await runner.run(QueryStage.COUNT, self.store.ledger_blockers(ids))

        blocking: list[BlockingReference] = []
        for account_id in ids:
            if enrollments.get(account_id):
                reason = "has " + _plural(enrollments[account_id], "enrollment", "enrollments")
                blocking.append(BlockingReference(account_id, reason))
            if ledger_entries.get(account_id):
                reason = "has " + _plural(
                    ledger_entries[account_id], "ledger entry", "ledger entries"
                )
                blocking.append(BlockingReference(account_id, reason))

        if blocking:
            error = ReferentialIntegrityError(blocking)
            logger.warning(
                "Bulk delete of %d accounts refused; blocked: %s", len(ids), error.blocking_ids
            )
            raise error

        try:
            deleted = await asyncio.wait_for(
                self._delete(ids, actor_id), timeout=self.settings.query_timeout_seconds
            )
        except (SQLAlchemyError, asyncio.TimeoutError) as e:
            await self.session.rollback()
            logger.error("Bulk delete of %d accounts failed: %s", len(ids), e)
            raise StoreWriteError("Bulk delete failed; no accounts were deleted") from e

        logger.info("Bulk delete removed %d accounts", len(deleted))
        return BulkDeleteResult(deleted=deleted)

    async def _delete(self, ids: Sequence[int], actor_id: int | None) -> list[int]:
        current = await self.store.statuses_by_id(ids)
        deleted = [aid for aid in ids if aid in current]
        if deleted:
            await self.store.delete_accounts(deleted)
            for account_id in deleted:
                self._audit(account_id, "delete", actor_id, {"status": current[account_id]})
        await self.session.commit()
        return deleted

    def _audit(self, account_id: int, action: str, actor_id: int | None, changes: dict) -> None:
        """Record a change in the audit log as part of the current transaction."""
        self.session.add(
            AuditLog(
                entity_type=ENTITY_TYPE,
                entity_id=account_id,
                action=action,
                actor_id=actor_id,
                changes=changes,
            )
        )

    async def export_csv(
        self,
        account_ids: Iterable[int],
        fields: Sequence[ExportField | str] | None = None,
    ) -> bytes:
        """Serialize accounts to CSV.

        Args:
            account_ids: Accounts to export; rows follow this order and
                unknown ids are skipped
            fields: Columns in output order (default: DEFAULT_EXPORT_FIELDS)

        Returns:
            UTF-8 bytes: header row of labels, then one row per account, all
            fields quoted

        Raises:
            ValidationError: unknown export field
            StoreReadError: reading accounts or balances failed
        """
        columns = self._export_columns(fields)
        ids = unique_ids(account_ids)

        runner = StageRunner(self.settings.query_timeout_seconds)
        accounts = await runner.run(QueryStage.HYDRATE, self.store.fetch_by_ids(ids))
        by_id = {account.id: account for account in accounts}
        balances: dict[int, Decimal] = {}
        if ExportField.TOTAL_BALANCE in columns:
            balances = await runner.run(QueryStage.AGGREGATE, self.aggregator.open_balances(by_id))

        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL)
        writer.writerow([EXPORT_LABELS[column] for column in columns])
        for account_id in ids:
            account = by_id.get(account_id)
            if account is None:
                logger.warning("Export skipped unknown account %d", account_id)
                continue
            view = AccountView.from_account(account, balances.get(account_id, Decimal("0")))
            writer.writerow([export_value(view, column) for column in columns])

        logger.info("Exported %d accounts to CSV", len(by_id))
        return buffer.getvalue().encode("utf-8")

    @staticmethod
    def _export_columns(fields: Sequence[ExportField | str] | None) -> list[ExportField]:
        if not fields:
            return list(DEFAULT_EXPORT_FIELDS)
        columns = []
        for name in fields:
            try:
                columns.append(ExportField(name))
            except ValueError:
                raise ValidationError(f"Unknown export field: {name!r}") from None
        return list(dict.fromkeys(columns))


__all__ = [
    "BulkDeleteResult",
    "BulkFailure",
    "BulkOperationService",
    "BulkUpdateResult",
    "DEFAULT_EXPORT_FIELDS",
    "EXPORT_LABELS",
    "ExportField",
]
