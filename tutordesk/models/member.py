"""Member ORM model: a student belonging to exactly one account."""

from datetime import date

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tutordesk.models import Base, BaseModel


class Member(Base, BaseModel):
    """Student owned by an account. Deleted together with its account."""

    __tablename__ = "members"

    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Owning account",
    )
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Optional demographics
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    grade_level: Mapped[str | None] = mapped_column(String(50), nullable=True)
    age_group: Mapped[str | None] = mapped_column(String(50), nullable=True)

    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    account: Mapped["Account"] = relationship(  # noqa: F821
        "Account",
        back_populates="members",
    )

    __table_args__ = (Index("idx_member_full_name", "full_name"),)

    def __repr__(self) -> str:
        return f"<Member(id={self.id}, account_id={self.account_id}, full_name={self.full_name!r})>"


__all__ = ["Member"]
