"""LedgerEntry ORM model: an invoice issued to an account."""

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tutordesk.models import Base, BaseModel


class LedgerStatus(str, Enum):
    """Invoice status. Only open statuses count toward outstanding balance."""

    DRAFT = "draft"
    SENT = "sent"
    PARTIAL = "partial"
    OVERDUE = "overdue"
    PAID = "paid"
    VOID = "void"


class LedgerEntry(Base, BaseModel):
    """Billing record with an outstanding balance_due."""

    __tablename__ = "ledger_entries"

    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )
    invoice_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    invoice_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    amount_paid: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    balance_due: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0"),
        comment="total_amount - amount_paid",
    )
    status: Mapped[LedgerStatus] = mapped_column(
        String(20),
        nullable=False,
        default=LedgerStatus.DRAFT,
    )

    account: Mapped["Account"] = relationship(  # noqa: F821
        "Account",
        back_populates="ledger_entries",
    )

    __table_args__ = (Index("idx_ledger_account_status", "account_id", "status"),)

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry(id={self.id}, account_id={self.account_id}, "
            f"status={self.status}, balance_due={self.balance_due})>"
        )


__all__ = ["LedgerEntry", "LedgerStatus"]
