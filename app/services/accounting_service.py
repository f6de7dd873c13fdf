"""
Accounting Service for Automatic GL Posting.

This service handles journal entry creation for business events:
- Commission Payout → Debit Commission Expense, Credit Paying Bank/Cash account
"""
import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, List, Dict, Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.accounting import (
    ChartOfAccount, JournalEntry, JournalEntryLine,
    JournalEntryStatus, JournalEntryType,
)
from app.services.reference_number_service import ReferenceNumberService

logger = logging.getLogger(__name__)


class JournalEntryError(ValueError):
    """Journal entry cannot be created: unknown account or unbalanced lines."""


class AccountingService:
    """Service for automated accounting entries."""

    def __init__(self, db: AsyncSession, posted_by: Optional[str] = None):
        self.db = db
        self.posted_by = posted_by
        self._account_cache: Dict[uuid.UUID, ChartOfAccount] = {}

    async def _get_account(self, account_id: uuid.UUID) -> Optional[ChartOfAccount]:
        """Get account by id with caching."""
        if account_id in self._account_cache:
            return self._account_cache[account_id]

        result = await self.db.execute(
            select(ChartOfAccount).where(ChartOfAccount.id == account_id)
        )
        account = result.scalar_one_or_none()
        if account:
            self._account_cache[account_id] = account
        return account

    async def create_journal_entry(
        self,
        entry_type: str,
        source_type: str,
        source_id: uuid.UUID,
        narration: str,
        lines: List[Dict[str, Any]],
        entry_date: Optional[date] = None,
        source_number: Optional[str] = None,
        auto_post: bool = True,
    ) -> JournalEntry:
        """
        Create a journal entry with lines.

        Args:
            entry_type: Type of entry (PAYMENT, COMMISSION_PAYOUT, etc.)
            source_type: Source document type
            source_id: Source document ID
            narration: Entry description
            lines: List of line items with account_id, debit, credit, description
            entry_date: Date of entry (defaults to today)
            source_number: Source document number
            auto_post: Whether to post the entry immediately
        """
        entry_date = entry_date or date.today()
        entry_number = await ReferenceNumberService(self.db).next_journal_entry_number(entry_date)

        journal_entry = JournalEntry(
            id=uuid.uuid4(),
            entry_number=entry_number,
            entry_type=entry_type,
            entry_date=entry_date,
            source_type=source_type,
            source_id=source_id,
            source_number=source_number,
            narration=narration,
            status=JournalEntryStatus.DRAFT.value,
            total_debit=Decimal("0"),
            total_credit=Decimal("0"),
        )

        total_debit = Decimal("0")
        total_credit = Decimal("0")

        for idx, line_data in enumerate(lines, 1):
            account = await self._get_account(line_data["account_id"])
            if not account:
                raise JournalEntryError(f"Account not found: {line_data['account_id']}")

            debit = Decimal(str(line_data.get("debit", 0)))
            credit = Decimal(str(line_data.get("credit", 0)))

            journal_entry.lines.append(JournalEntryLine(
                id=uuid.uuid4(),
                line_number=idx,
                account_id=account.id,
                debit_amount=debit,
                credit_amount=credit,
                description=line_data.get("description", ""),
            ))

            total_debit += debit
            total_credit += credit

        # Validate debit = credit
        if total_debit != total_credit:
            raise JournalEntryError(
                f"Journal entry unbalanced: Debit={total_debit}, Credit={total_credit}"
            )

        journal_entry.total_debit = total_debit
        journal_entry.total_credit = total_credit

        self.db.add(journal_entry)

        if auto_post:
            await self._post_journal_entry(journal_entry)

        # Flush so the next entry number in this transaction sees this one
        await self.db.flush()
        logger.info(f"Journal entry {entry_number} created: {narration} ({total_debit})")
        return journal_entry

    async def _post_journal_entry(self, journal_entry: JournalEntry):
        """Apply lines to account balances and mark the entry posted."""
        for line in journal_entry.lines:
            account = await self._get_account(line.account_id)

            # Debit-normal accounts grow with debits, the rest with credits
            if account.is_debit_account:
                balance_change = line.debit_amount - line.credit_amount
            else:
                balance_change = line.credit_amount - line.debit_amount

            account.current_balance = (account.current_balance or Decimal("0")) + balance_change

        journal_entry.status = JournalEntryStatus.POSTED.value
        journal_entry.posted_by = self.posted_by
        journal_entry.posted_at = datetime.now(timezone.utc)

    # ==================== Business Event Handlers ====================

    async def post_commission_payout(
        self,
        payout_id: uuid.UUID,
        payout_reference: str,
        agent_name: str,
        amount: Decimal,
        expense_account_id: uuid.UUID,
        paying_account_id: uuid.UUID,
        payout_date: Optional[date] = None,
        commission_reference: Optional[str] = None,
    ) -> JournalEntry:
        """
        Post journal entry for a commission paid to a sales agent.

        Debit: Commission expense account (from the expense category)
        Credit: Paying bank/cash account
        """
        narration = f"Commission payout {payout_reference} to {agent_name}"
        if commission_reference:
            narration += f" for {commission_reference}"

        lines = [
            {
                "account_id": expense_account_id,
                "debit": amount,
                "credit": Decimal("0"),
                "description": f"Commission to {agent_name}",
            },
            {
                "account_id": paying_account_id,
                "debit": Decimal("0"),
                "credit": amount,
                "description": f"Commission payout - {agent_name}",
            },
        ]

        return await self.create_journal_entry(
            entry_type=JournalEntryType.COMMISSION_PAYOUT.value,
            source_type="COMMISSION_PAYOUT",
            source_id=payout_id,
            narration=narration,
            source_number=payout_reference,
            entry_date=payout_date,
            lines=lines,
        )
