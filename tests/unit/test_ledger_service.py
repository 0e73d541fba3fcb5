from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from tutordesk.errors import QueryStage, StoreReadError
from tutordesk.services.ledger_service import LedgerAggregator

OPEN = ["sent", "partial", "overdue"]
LEDGER = [10, ("20", "partial"), ("30", "overdue"), ("1000", "void")]


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("members", [(), ("Ana",), ("Ana", "Ben", "Cleo")])
async def test_balance_does_not_depend_on_member_count(session, seed, members):
    account_id = await seed.account("Rivera Family", members=members, ledger=LEDGER)

    balances = await LedgerAggregator(session, OPEN).open_balances([account_id])

    assert balances == {account_id: Decimal("60")}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_closed_entries_never_count(session, seed):
    account_id = await seed.account(
        "Closed Family",
        ledger=[("15", "draft"), ("25", "paid"), ("35", "void")],
    )

    balance = await LedgerAggregator(session, OPEN).balance_for(account_id)

    assert balance == Decimal("0")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_every_requested_id_is_present(session, seed):
    with_debt = await seed.account("Debt Family", ledger=["12.50"])
    without_entries = await seed.account("Fresh Family")

    balances = await LedgerAggregator(session, OPEN).open_balances(
        [with_debt, without_entries, with_debt]
    )

    assert balances == {with_debt: Decimal("12.50"), without_entries: Decimal("0")}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_open_statuses_are_configurable(session, seed):
    account_id = await seed.account("Config Family", ledger=[("40", "sent"), ("5", "overdue")])

    balances = await LedgerAggregator(session, ["overdue"]).open_balances([account_id])

    assert balances[account_id] == Decimal("5")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_empty_id_set_skips_the_store(session):
    aggregator = LedgerAggregator(session, OPEN)
    aggregator.store.open_ledger_rows = AsyncMock()

    assert await aggregator.open_balances([]) == {}
    aggregator.store.open_ledger_rows.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_store_failure_raises_instead_of_zero(session, seed):
    account_id = await seed.account("Broken Family", ledger=[10])
    aggregator = LedgerAggregator(session, OPEN)
    aggregator.store.open_ledger_rows = AsyncMock(
        side_effect=OperationalError("SELECT", {}, Exception("database is locked"))
    )

    with pytest.raises(StoreReadError) as exc_info:
        await aggregator.open_balances([account_id])

    assert exc_info.value.stage == QueryStage.AGGREGATE
    assert exc_info.value.retryable is False
