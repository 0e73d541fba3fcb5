"""Account ORM model: a customer household listed in the directory."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tutordesk.models import Base, BaseModel


class AccountStatus(str, Enum):
    """Lifecycle status of an account."""

    LEAD = "lead"
    """Prospect tracked by marketing, not yet a customer."""

    TRIAL = "trial"
    ACTIVE = "active"
    PAUSED = "paused"
    CHURNED = "churned"


# Statuses listed by the directory when no explicit filter is chosen.
# Leads belong to the marketing view.
DIRECTORY_STATUSES: tuple[AccountStatus, ...] = (
    AccountStatus.TRIAL,
    AccountStatus.ACTIVE,
    AccountStatus.PAUSED,
    AccountStatus.CHURNED,
)


class Account(Base, BaseModel):
    """Customer account (a family) owning members, enrollments and ledger entries."""

    __tablename__ = "accounts"

    display_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Household display name, e.g. 'Smith, Jane & John'",
    )
    status: Mapped[AccountStatus] = mapped_column(
        String(20),
        nullable=False,
        default=AccountStatus.LEAD,
        comment="lead, trial, active, paused or churned",
    )

    # Contact fields
    primary_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    primary_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    primary_contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_contact_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    members: Mapped[list["Member"]] = relationship(  # noqa: F821
        "Member",
        back_populates="account",
        cascade="all, delete-orphan",
        order_by="Member.id",
    )
    enrollments: Mapped[list["Enrollment"]] = relationship(  # noqa: F821
        "Enrollment",
        back_populates="account",
    )
    ledger_entries: Mapped[list["LedgerEntry"]] = relationship(  # noqa: F821
        "LedgerEntry",
        back_populates="account",
    )

    __table_args__ = (
        Index("idx_account_status", "status"),
        Index("idx_account_display_name", "display_name"),
        Index("idx_account_email", "primary_email"),
    )

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, display_name={self.display_name!r}, status={self.status})>"


__all__ = ["Account", "AccountStatus", "DIRECTORY_STATUSES"]
