"""Value types shared by the directory query engine."""

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from math import ceil
from typing import NamedTuple

from tutordesk.errors import ValidationError
from tutordesk.models.account import DIRECTORY_STATUSES, Account, AccountStatus

STATUS_ALL = "all"


class SortField(str, Enum):
    """Columns the directory can be sorted by."""

    DISPLAY_NAME = "display_name"
    STATUS = "status"
    PRIMARY_EMAIL = "primary_email"
    TOTAL_BALANCE = "total_balance"
    """Computed from open ledger entries, never stored."""
    MEMBER_COUNT = "member_count"
    """Only orderable client-side, within the fetched page."""

    @property
    def is_native(self) -> bool:
        return self in NATIVE_SORT_FIELDS


NATIVE_SORT_FIELDS = frozenset({SortField.DISPLAY_NAME, SortField.STATUS, SortField.PRIMARY_EMAIL})


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


def statuses_for(status_filter: str) -> list[str]:
    """Expand a status filter to the concrete statuses it matches.

    "all" lists every directory status; leads are only listed when asked for
    explicitly.
    """
    if status_filter == STATUS_ALL:
        return [status.value for status in DIRECTORY_STATUSES]
    return [AccountStatus(status_filter).value]


@dataclass(frozen=True)
class DirectoryQuery:
    """One directory page request."""

    status: str = STATUS_ALL
    search: str = ""
    sort_field: SortField = SortField.DISPLAY_NAME
    sort_direction: SortDirection = SortDirection.ASC
    page: int = 1
    page_size: int = 25

    def validated(self, max_page_size: int) -> "DirectoryQuery":
        """Return a normalized copy or raise ValidationError.

        Runs before any store access.
        """
        if isinstance(self.page, bool) or not isinstance(self.page, int) or self.page < 1:
            raise ValidationError(f"page must be an integer >= 1, got {self.page!r}")
        if (
            isinstance(self.page_size, bool)
            or not isinstance(self.page_size, int)
            or not 1 <= self.page_size <= max_page_size
        ):
            raise ValidationError(
                f"page_size must be between 1 and {max_page_size}, got {self.page_size!r}"
            )
        try:
            sort_field = SortField(self.sort_field)
        except ValueError:
            raise ValidationError(f"Unknown sort field: {self.sort_field!r}") from None
        try:
            sort_direction = SortDirection(self.sort_direction)
        except ValueError:
            raise ValidationError(f"Unknown sort direction: {self.sort_direction!r}") from None
        status = self.status.value if isinstance(self.status, AccountStatus) else self.status
        if status != STATUS_ALL:
            try:
                status = AccountStatus(status).value
            except ValueError:
                raise ValidationError(f"Unknown status filter: {self.status!r}") from None

        return replace(
            self,
            status=status,
            search=(self.search or "").strip(),
            sort_field=sort_field,
            sort_direction=sort_direction,
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def descending(self) -> bool:
        return self.sort_direction == SortDirection.DESC


class MemberView(NamedTuple):
    """Member as shown inside a directory row."""

    id: int
    full_name: str
    grade_level: str | None
    age_group: str | None
    date_of_birth: date | None
    active: bool


@dataclass(frozen=True)
class AccountView:
    """Account row with members and its outstanding balance."""

    id: int
    display_name: str
    status: str
    primary_email: str | None
    primary_phone: str | None
    primary_contact_name: str | None
    notes: str | None
    members: tuple[MemberView, ...]
    total_balance: Decimal

    @property
    def member_count(self) -> int:
        return len(self.members)

    @classmethod
    def from_account(cls, account: Account, total_balance: Decimal) -> "AccountView":
        return cls(
            id=account.id,
            display_name=account.display_name,
            status=AccountStatus(account.status).value,
            primary_email=account.primary_email,
            primary_phone=account.primary_phone,
            primary_contact_name=account.primary_contact_name,
            notes=account.notes,
            members=tuple(
                MemberView(
                    id=member.id,
                    full_name=member.full_name,
                    grade_level=member.grade_level,
                    age_group=member.age_group,
                    date_of_birth=member.date_of_birth,
                    active=member.active,
                )
                for member in account.members
            ),
            total_balance=total_balance,
        )


@dataclass(frozen=True)
class DirectoryPage:
    """One page of directory results plus the total matching count."""

    accounts: list[AccountView]
    total_count: int
    page: int
    page_size: int
    strategy: str = field(default="", compare=False)

    @property
    def total_pages(self) -> int:
        return ceil(self.total_count / self.page_size) if self.total_count else 0

    @property
    def account_ids(self) -> list[int]:
        return [account.id for account in self.accounts]


__all__ = [
    "AccountView",
    "DirectoryPage",
    "DirectoryQuery",
    "MemberView",
    "NATIVE_SORT_FIELDS",
    "STATUS_ALL",
    "SortDirection",
    "SortField",
    "statuses_for",
]
