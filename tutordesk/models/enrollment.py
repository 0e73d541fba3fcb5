"""Enrollment ORM model: a member signed up for a tutoring service."""

from datetime import date
from enum import Enum

from sqlalchemy import Date, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tutordesk.models import Base, BaseModel


class EnrollmentStatus(str, Enum):
    """Enrollment lifecycle."""

    TRIAL = "trial"
    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"


class Enrollment(Base, BaseModel):
    """Service enrollment. Any enrollment blocks deletion of its account."""

    __tablename__ = "enrollments"

    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )
    member_id: Mapped[int | None] = mapped_column(
        ForeignKey("members.id"),
        nullable=True,
        index=True,
        comment="Enrolled member; null for account-level services",
    )
    service_code: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[EnrollmentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=EnrollmentStatus.TRIAL,
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    account: Mapped["Account"] = relationship(  # noqa: F821
        "Account",
        back_populates="enrollments",
    )

    def __repr__(self) -> str:
        return (
            f"<Enrollment(id={self.id}, account_id={self.account_id}, "
            f"member_id={self.member_id}, service_code={self.service_code!r}, status={self.status})>"
        )


__all__ = ["Enrollment", "EnrollmentStatus"]
