"""Service tests for journal posting and journal entry numbering."""
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from app.models.accounting import JournalEntryType
from app.services.accounting_service import AccountingService, JournalEntryError
from app.services.reference_number_service import ReferenceNumberService

pytestmark = pytest.mark.integration


def _lines(chart, debit, credit):
    return [
        {"account_id": chart["commission_expense"].id, "debit": debit, "credit": Decimal("0")},
        {"account_id": chart["main_bank"].id, "debit": Decimal("0"), "credit": credit},
    ]


@pytest.mark.asyncio
async def test_entries_numbered_per_day(db_session, chart):
    service = AccountingService(db_session, posted_by="tester")
    on = date(2024, 6, 1)

    first = await service.create_journal_entry(
        entry_type=JournalEntryType.MANUAL.value, source_type="MANUAL", source_id=uuid4(),
        narration="first", lines=_lines(chart, Decimal("10"), Decimal("10")), entry_date=on,
    )
    second = await service.create_journal_entry(
        entry_type=JournalEntryType.MANUAL.value, source_type="MANUAL", source_id=uuid4(),
        narration="second", lines=_lines(chart, Decimal("5"), Decimal("5")), entry_date=on,
    )

    assert first.entry_number == "JE-20240601-0001"
    assert second.entry_number == "JE-20240601-0002"
    assert await ReferenceNumberService(db_session).next_journal_entry_number(date(2024, 6, 2)) == "JE-20240602-0001"


@pytest.mark.asyncio
async def test_posting_moves_balances(db_session, chart):
    service = AccountingService(db_session)

    entry = await service.post_commission_payout(
        payout_id=uuid4(),
        payout_reference="COMM-PAY.2024/06/0001",
        agent_name="Meera Nair",
        amount=Decimal("60.00"),
        expense_account_id=chart["commission_expense"].id,
        paying_account_id=chart["main_bank"].id,
        payout_date=date(2024, 6, 1),
        commission_reference="COMM.2024/05/0001",
    )

    assert entry.status == "POSTED"
    assert entry.total_debit == entry.total_credit == Decimal("60.00")
    assert "Meera Nair" in entry.narration
    assert chart["commission_expense"].current_balance == Decimal("60.00")
    assert chart["main_bank"].current_balance == Decimal("-60.00")


@pytest.mark.asyncio
async def test_unbalanced_entry_rejected(db_session, chart):
    service = AccountingService(db_session)

    with pytest.raises(JournalEntryError, match="unbalanced"):
        await service.create_journal_entry(
            entry_type=JournalEntryType.MANUAL.value, source_type="MANUAL", source_id=uuid4(),
            narration="broken", lines=_lines(chart, Decimal("10"), Decimal("9")),
        )


@pytest.mark.asyncio
async def test_unknown_account_rejected(db_session, chart):
    service = AccountingService(db_session)

    with pytest.raises(JournalEntryError, match="Account not found"):
        await service.create_journal_entry(
            entry_type=JournalEntryType.MANUAL.value, source_type="MANUAL", source_id=uuid4(),
            narration="missing",
            lines=[{"account_id": uuid4(), "debit": Decimal("1"), "credit": Decimal("0")}],
        )
