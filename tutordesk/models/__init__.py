"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from tutordesk.models.account import (  # noqa: E402
    DIRECTORY_STATUSES,
    Account,
    AccountStatus,
)
from tutordesk.models.audit_log import AuditLog  # noqa: E402
from tutordesk.models.enrollment import Enrollment, EnrollmentStatus  # noqa: E402
from tutordesk.models.ledger_entry import LedgerEntry, LedgerStatus  # noqa: E402
from tutordesk.models.member import Member  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "Account",
    "AccountStatus",
    "AuditLog",
    "DIRECTORY_STATUSES",
    "Enrollment",
    "EnrollmentStatus",
    "LedgerEntry",
    "LedgerStatus",
    "Member",
]
