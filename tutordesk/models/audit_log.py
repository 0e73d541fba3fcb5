"""Audit log model for tracking directory bulk operations."""

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from tutordesk.models import Base, BaseModel


class AuditLog(Base, BaseModel):
    """Audit log entry for a change made to an account.

    Records who (actor_id) did what (action) to which entity (entity_type, entity_id)
    and an optional snapshot of the changed fields (changes).
    """

    __tablename__ = "audit_logs"

    entity_type: Mapped[str] = mapped_column(String(50))
    """Entity type being audited: "account"."""

    entity_id: Mapped[int] = mapped_column(index=True)
    """Primary key of the entity being audited."""

    action: Mapped[str] = mapped_column(String(50))
    """Action performed: "status_change", "delete"."""

    actor_id: Mapped[int | None] = mapped_column(nullable=True)
    """Operator who performed the action. None for system actions."""

    changes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    """Optional JSON snapshot: {"status": {"from": "trial", "to": "active"}}."""

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, entity_type={self.entity_type}, entity_id={self.entity_id}, "
            f"action={self.action}, actor_id={self.actor_id})>"
        )


__all__ = ["AuditLog"]
