"""Pydantic schemas for the account directory API."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from tutordesk.services.bulk_service import BulkDeleteResult, BulkUpdateResult
from tutordesk.services.directory_types import AccountView, DirectoryPage


class MemberResponse(BaseModel):
    """Member of an account."""

    id: int
    full_name: str
    grade_level: str | None = None
    age_group: str | None = None
    date_of_birth: date | None = None
    active: bool = True

    model_config = ConfigDict(from_attributes=True)


class AccountResponse(BaseModel):
    """Directory row: account, its members and outstanding balance."""

    id: int
    display_name: str
    status: str
    primary_email: str | None = None
    primary_phone: str | None = None
    primary_contact_name: str | None = None
    notes: str | None = None
    members: list[MemberResponse] = Field(default_factory=list)
    member_count: int
    total_balance: Decimal

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_view(cls, view: AccountView) -> "AccountResponse":
        return cls(
            id=view.id,
            display_name=view.display_name,
            status=view.status,
            primary_email=view.primary_email,
            primary_phone=view.primary_phone,
            primary_contact_name=view.primary_contact_name,
            notes=view.notes,
            members=[MemberResponse.model_validate(member._asdict()) for member in view.members],
            member_count=view.member_count,
            total_balance=view.total_balance,
        )


class DirectoryPageResponse(BaseModel):
    """Response for GET /api/directory/accounts."""

    accounts: list[AccountResponse]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    strategy: str

    @classmethod
    def from_page(cls, page: DirectoryPage) -> "DirectoryPageResponse":
        return cls(
            accounts=[AccountResponse.from_view(view) for view in page.accounts],
            total_count=page.total_count,
            page=page.page,
            page_size=page.page_size,
            total_pages=page.total_pages,
            strategy=page.strategy,
        )


class BulkStatusPayload(BaseModel):
    """Payload for POST /api/directory/accounts/bulk-status."""

    ids: list[int] = Field(..., description="Account ids to update")
    status: str = Field(..., description="New account status")
    actor_id: int | None = Field(None, description="Operator performing the change")


class BulkFailureResponse(BaseModel):
    id: int
    reason: str


class BulkStatusResponse(BaseModel):
    """Per-account outcome of a bulk status update."""

    updated: list[int]
    failed: list[BulkFailureResponse]
    partial: bool

    @classmethod
    def from_result(cls, result: BulkUpdateResult) -> "BulkStatusResponse":
        return cls(
            updated=result.updated,
            failed=[BulkFailureResponse(id=f.id, reason=f.reason) for f in result.failed],
            partial=result.partial,
        )


class BulkDeletePayload(BaseModel):
    """Payload for POST /api/directory/accounts/bulk-delete."""

    ids: list[int] = Field(..., description="Account ids to delete")
    actor_id: int | None = Field(None, description="Operator performing the delete")


class BulkDeleteResponse(BaseModel):
    deleted: list[int]

    @classmethod
    def from_result(cls, result: BulkDeleteResult) -> "BulkDeleteResponse":
        return cls(deleted=result.deleted)


class ExportPayload(BaseModel):
    """Payload for POST /api/directory/accounts/export."""

    ids: list[int] = Field(..., description="Account ids, in row order")
    fields: list[str] | None = Field(None, description="Columns to export (default set if omitted)")
