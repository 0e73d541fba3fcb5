"""Pytest configuration and shared fixtures for directory tests."""

import os
from decimal import Decimal

# Point the application engine at an in-memory database BEFORE importing tutordesk
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from tutordesk.config import Settings  # noqa: E402
from tutordesk.models import (  # noqa: E402
    Account,
    AccountStatus,
    Base,
    Enrollment,
    LedgerEntry,
    LedgerStatus,
    Member,
)


@pytest.fixture
async def engine():
    """Fresh in-memory database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, database_url="sqlite+aiosqlite:///:memory:")


class Seeder:
    """Create accounts with members, ledger entries and enrollments.

    Every helper commits and then empties the identity map, so later reads
    load members and balances from the database rather than from objects
    built here.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def account(
        self,
        display_name: str,
        status: str = "active",
        email: str | None = None,
        phone: str | None = None,
        members: tuple[str, ...] | list[str] = (),
        ledger: tuple | list = (),
        notes: str | None = None,
    ) -> int:
        """Create an account; ledger items are amounts (sent) or (amount, status) pairs."""
        account = Account(
            display_name=display_name,
            status=AccountStatus(status).value,
            primary_email=email,
            primary_phone=phone,
            notes=notes,
        )
        self.session.add(account)
        await self.session.flush()

        for full_name in members:
            self.session.add(Member(account_id=account.id, full_name=full_name))
        for item in ledger:
            amount, ledger_status = item if isinstance(item, tuple) else (item, LedgerStatus.SENT)
            self.session.add(
                LedgerEntry(
                    account_id=account.id,
                    total_amount=Decimal(str(amount)),
                    balance_due=Decimal(str(amount)),
                    status=LedgerStatus(ledger_status).value,
                )
            )

        account_id = account.id
        await self.session.commit()
        self.session.expunge_all()
        return account_id

    async def member_ids(self, account_id: int) -> list[int]:
        result = await self.session.execute(
            select(Member.id).where(Member.account_id == account_id).order_by(Member.id)
        )
        return list(result.scalars().all())

    async def enrollment(self, account_id: int, member_id: int | None = None) -> None:
        self.session.add(
            Enrollment(account_id=account_id, member_id=member_id, service_code="MATH-1")
        )
        await self.session.commit()
        self.session.expunge_all()


@pytest.fixture
def seed(session) -> Seeder:
    return Seeder(session)
