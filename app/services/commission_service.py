"""
Commission Service

Handles the commission lifecycle:
- Create / update with server-side recalculation and allocation checks
- Approval workflow (PENDING_APPROVAL <-> APPROVED, CANCELLED)
- Soft delete that releases the covered sales
- Batch payouts to sales agents with GL posting
"""
import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional, Dict, Any, List, Iterable, Sequence, Tuple

from sqlalchemy import select, and_, or_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.models.commission import (
    Commission, CommissionSale, CommissionRecipient, CommissionPayout,
    SalesAgent, CommissionStatus, CommissionPaymentStatus,
)
from app.models.customer import Customer
from app.models.sale import Sale
from app.models.banking import BankAccount
from app.models.accounting import ExpenseCategory
from app.services.accounting_service import AccountingService, JournalEntryError
from app.services.commission_calculator import (
    AllocationCheck,
    AllocationExceedsPayableError,
    CommissionInput,
    CommissionResult,
    CommissionTotals,
    check_allocations,
    percent_to_fraction,
    summarize_commission_entries,
    validate_allocations,
)
from app.services.reference_number_service import ReferenceNumberService, is_valid_manual_reference

logger = logging.getLogger(__name__)


class CommissionError(Exception):
    """Base exception for commission errors."""
    status_code = 400

    def __init__(self, message: str, details: Dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class CommissionNotFoundError(CommissionError):
    status_code = 404


class CommissionConflictError(CommissionError):
    status_code = 409


class CommissionStateError(CommissionError):
    """Operation not allowed in the commission's current status."""
    status_code = 400


class CommissionValidationError(CommissionError):
    status_code = 422


class CommissionAllocationError(CommissionValidationError):
    """Recipient shares exceed the commission payable."""


class PayoutError(CommissionError):
    status_code = 400


# Manual status changes. PROCESSED is only reached through payouts.
ALLOWED_STATUS_TRANSITIONS = {
    CommissionStatus.PENDING_APPROVAL.value: {
        CommissionStatus.APPROVED.value,
        CommissionStatus.CANCELLED.value,
    },
    CommissionStatus.APPROVED.value: {
        CommissionStatus.PENDING_APPROVAL.value,
        CommissionStatus.CANCELLED.value,
    },
}

_PAID_STATES = (CommissionPaymentStatus.PARTIAL.value, CommissionPaymentStatus.PAID.value)


def to_commission_input(entry: Any) -> CommissionInput:
    """Build calculator input from a sale entry whose rates are percentages."""
    return CommissionInput(
        amount_received=Decimal(entry.amount_received or 0),
        additions=Decimal(entry.additions or 0),
        deductions=Decimal(entry.deductions or 0),
        commission_rate=percent_to_fraction(entry.commission_rate),
        withholding_tax_rate=percent_to_fraction(entry.withholding_tax_rate),
    )


def resolve_payment_status(recipients: Iterable[CommissionRecipient]) -> str:
    """Commission payment status from its active recipients."""
    statuses = [r.payment_status for r in recipients if r.is_active]
    if statuses and all(s == CommissionPaymentStatus.PAID.value for s in statuses):
        return CommissionPaymentStatus.PAID.value
    if any(s in _PAID_STATES for s in statuses):
        return CommissionPaymentStatus.PARTIAL.value
    return CommissionPaymentStatus.PENDING.value


class CommissionService:
    """
    Service for commission records and payouts.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(
        self,
        db: AsyncSession,
        clamp_negative_base: Optional[bool] = None,
        tolerance: Optional[Decimal] = None,
    ):
        self.db = db
        self.clamp_negative_base = (
            settings.COMMISSION_CLAMP_NEGATIVE_BASE if clamp_negative_base is None else clamp_negative_base
        )
        self.tolerance = settings.COMMISSION_ALLOCATION_TOLERANCE if tolerance is None else tolerance

    # ==================== Calculation ====================

    def calculate(self, entries: Sequence[Any]) -> Tuple[List[CommissionResult], CommissionTotals]:
        """Per-entry results (rounded to cents) and commission totals."""
        return summarize_commission_entries(
            [to_commission_input(e) for e in entries],
            clamp_negative_base=self.clamp_negative_base,
        )

    def check_allocations(self, amounts: Iterable[Decimal], total_payable: Decimal) -> AllocationCheck:
        return check_allocations(amounts, total_payable, self.tolerance)

    def _validate_allocations(self, amounts: Iterable[Decimal], total_payable: Decimal) -> AllocationCheck:
        try:
            return validate_allocations(amounts, total_payable, self.tolerance)
        except AllocationExceedsPayableError as e:
            logger.warning(
                f"Allocation rejected: {e.total_allocated} allocated vs {e.total_payable} payable"
            )
            raise CommissionAllocationError(e.message, e.details) from e

    # ==================== Queries ====================

    def _commission_query(self):
        return (
            select(Commission)
            .options(
                selectinload(Commission.customer),
                selectinload(Commission.sales_entries).selectinload(CommissionSale.sale),
                selectinload(Commission.recipients).selectinload(CommissionRecipient.sales_agent),
                selectinload(Commission.recipients).selectinload(CommissionRecipient.payouts),
            )
            .execution_options(populate_existing=True)
        )

    async def get_commission(self, commission_id: uuid.UUID, include_inactive: bool = False) -> Commission:
        """Commission with sale entries, recipients and payouts loaded."""
        query = self._commission_query().where(Commission.id == commission_id)
        if not include_inactive:
            query = query.where(Commission.is_active == True)
        result = await self.db.execute(query)
        commission = result.scalar_one_or_none()
        if not commission:
            raise CommissionNotFoundError("Commission not found", {"commission_id": str(commission_id)})
        return commission

    async def list_commissions(
        self,
        skip: int = 0,
        limit: int = 50,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        customer_id: Optional[uuid.UUID] = None,
        sales_agent_id: Optional[uuid.UUID] = None,
        sale_id: Optional[uuid.UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        min_payable: Optional[Decimal] = None,
        max_payable: Optional[Decimal] = None,
        search: Optional[str] = None,
        include_inactive: bool = False,
    ) -> Tuple[List[Commission], int]:
        """Filtered, paginated commissions, newest first."""
        conditions = []
        if not include_inactive:
            conditions.append(Commission.is_active == True)
        if status:
            conditions.append(Commission.status == status)
        if payment_status:
            conditions.append(Commission.payment_status == payment_status)
        if customer_id:
            conditions.append(Commission.customer_id == customer_id)
        if sales_agent_id:
            conditions.append(Commission.id.in_(
                select(CommissionRecipient.commission_id).where(
                    CommissionRecipient.sales_agent_id == sales_agent_id,
                    CommissionRecipient.is_active == True,
                )
            ))
        if sale_id:
            conditions.append(Commission.id.in_(
                select(CommissionSale.commission_id).where(
                    CommissionSale.sale_id == sale_id,
                    CommissionSale.is_active == True,
                )
            ))
        if date_from:
            conditions.append(Commission.commission_date >= date_from)
        if date_to:
            conditions.append(Commission.commission_date <= date_to)
        if min_payable is not None:
            conditions.append(Commission.total_commission_payable >= min_payable)
        if max_payable is not None:
            conditions.append(Commission.total_commission_payable <= max_payable)
        if search:
            conditions.append(Commission.commission_ref_number.ilike(f"%{search}%"))

        count_query = select(func.count(Commission.id))
        query = self._commission_query()
        if conditions:
            count_query = count_query.where(and_(*conditions))
            query = query.where(and_(*conditions))

        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(
            Commission.commission_date.desc(), Commission.created_at.desc()
        ).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def list_eligible_sales(
        self,
        customer_id: Optional[uuid.UUID] = None,
        commission_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Sale]:
        """
        Active sales not covered by an active commission.

        When editing, pass commission_id so that commission's own sales stay selectable.
        """
        available = Sale.is_commission_applied == False
        if commission_id:
            available = or_(available, Sale.id.in_(
                select(CommissionSale.sale_id).where(
                    CommissionSale.commission_id == commission_id,
                    CommissionSale.is_active == True,
                )
            ))

        query = select(Sale).where(Sale.is_active == True, available)
        if customer_id:
            query = query.where(Sale.customer_id == customer_id)
        if search:
            query = query.where(Sale.invoice_number.ilike(f"%{search}%"))

        query = query.order_by(Sale.sale_date.desc(), Sale.invoice_number).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_payouts(
        self,
        skip: int = 0,
        limit: int = 50,
        commission_id: Optional[uuid.UUID] = None,
        commission_recipient_id: Optional[uuid.UUID] = None,
        sales_agent_id: Optional[uuid.UUID] = None,
        paying_account_id: Optional[uuid.UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> Tuple[List[CommissionPayout], int]:
        conditions = [CommissionPayout.is_active == True]
        if commission_recipient_id:
            conditions.append(CommissionPayout.commission_recipient_id == commission_recipient_id)
        if commission_id or sales_agent_id:
            recipients = select(CommissionRecipient.id)
            if commission_id:
                recipients = recipients.where(CommissionRecipient.commission_id == commission_id)
            if sales_agent_id:
                recipients = recipients.where(CommissionRecipient.sales_agent_id == sales_agent_id)
            conditions.append(CommissionPayout.commission_recipient_id.in_(recipients))
        if paying_account_id:
            conditions.append(CommissionPayout.paying_account_id == paying_account_id)
        if date_from:
            conditions.append(CommissionPayout.payout_date >= date_from)
        if date_to:
            conditions.append(CommissionPayout.payout_date <= date_to)

        total = (await self.db.execute(
            select(func.count(CommissionPayout.id)).where(and_(*conditions))
        )).scalar() or 0

        result = await self.db.execute(
            select(CommissionPayout)
            .where(and_(*conditions))
            .order_by(CommissionPayout.payout_date.desc(), CommissionPayout.payout_ref_number.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    # ==================== Validation helpers ====================

    async def _get_customer(self, customer_id: uuid.UUID) -> Customer:
        customer = await self.db.get(Customer, customer_id)
        if not customer:
            raise CommissionNotFoundError("Customer not found", {"customer_id": str(customer_id)})
        return customer

    async def _load_sales(
        self,
        entries: Sequence[Any],
        customer_id: uuid.UUID,
        exclude_commission_id: Optional[uuid.UUID] = None,
    ) -> Dict[uuid.UUID, Sale]:
        """Check the sale entries and return their sales keyed by id."""
        sale_ids = [e.sale_id for e in entries]
        duplicates = {str(s) for s in sale_ids if sale_ids.count(s) > 1}
        if duplicates:
            raise CommissionValidationError(
                "Each sale can only appear once in a commission",
                {"duplicate_sale_ids": sorted(duplicates)},
            )

        result = await self.db.execute(select(Sale).where(Sale.id.in_(sale_ids)))
        sales = {s.id: s for s in result.scalars().all()}

        missing = [str(s) for s in sale_ids if s not in sales]
        if missing:
            raise CommissionNotFoundError("Sale not found", {"sale_ids": missing})

        for sale in sales.values():
            if not sale.is_active:
                raise CommissionValidationError(
                    f"Sale {sale.invoice_number} is not active", {"sale_id": str(sale.id)}
                )
            if sale.customer_id != customer_id:
                raise CommissionValidationError(
                    f"Sale {sale.invoice_number} does not belong to the selected customer",
                    {"sale_id": str(sale.id)},
                )

        # A sale may belong to one active commission only
        taken_query = (
            select(CommissionSale.sale_id, Commission.commission_ref_number)
            .join(Commission, Commission.id == CommissionSale.commission_id)
            .where(
                CommissionSale.sale_id.in_(sale_ids),
                CommissionSale.is_active == True,
                Commission.is_active == True,
                Commission.status != CommissionStatus.CANCELLED.value,
            )
        )
        if exclude_commission_id:
            taken_query = taken_query.where(Commission.id != exclude_commission_id)
        taken = (await self.db.execute(taken_query)).first()
        if taken:
            sale = sales[taken.sale_id]
            logger.warning(
                f"Sale {sale.invoice_number} already covered by commission {taken.commission_ref_number}"
            )
            raise CommissionConflictError(
                f"Sale {sale.invoice_number} already has an active commission ({taken.commission_ref_number})",
                {"sale_id": str(sale.id), "commission_ref_number": taken.commission_ref_number},
            )

        return sales

    async def _check_recipients(self, recipients: Sequence[Any]) -> None:
        agent_ids = [r.sales_agent_id for r in recipients]
        duplicates = {str(a) for a in agent_ids if agent_ids.count(a) > 1}
        if duplicates:
            raise CommissionValidationError(
                "Each sales agent can only be added once",
                {"duplicate_sales_agent_ids": sorted(duplicates)},
            )

        result = await self.db.execute(select(SalesAgent).where(SalesAgent.id.in_(agent_ids)))
        agents = {a.id: a for a in result.scalars().all()}

        missing = [str(a) for a in agent_ids if a not in agents]
        if missing:
            raise CommissionNotFoundError("Sales agent not found", {"sales_agent_ids": missing})

        inactive = [a for a in agents.values() if not a.is_active]
        if inactive:
            raise CommissionValidationError(
                f"Sales agent {inactive[0].name} is not active",
                {"sales_agent_id": str(inactive[0].id)},
            )

        for r in recipients:
            if r.amount <= 0:
                raise CommissionValidationError(
                    "Recipient amount must be greater than zero",
                    {"sales_agent_id": str(r.sales_agent_id)},
                )

        account_ids = {r.paying_account_id for r in recipients if getattr(r, "paying_account_id", None)}
        if account_ids:
            result = await self.db.execute(select(BankAccount.id).where(BankAccount.id.in_(account_ids)))
            unknown = account_ids - set(result.scalars().all())
            if unknown:
                raise CommissionNotFoundError(
                    "Paying account not found", {"paying_account_ids": sorted(str(a) for a in unknown)}
                )

    async def _ref_number_taken(self, ref: str) -> bool:
        result = await self.db.execute(
            select(Commission.id).where(Commission.commission_ref_number == ref)
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    def _apply_totals(commission: Commission, totals: CommissionTotals) -> None:
        commission.total_amount_received = totals.total_amount_received
        commission.total_additions = totals.total_additions
        commission.total_deductions = totals.total_deductions
        commission.total_base_for_commission = totals.total_base_for_commission
        commission.total_gross_commission = totals.total_gross_commission
        commission.total_withholding_tax_amount = totals.total_withholding_tax_amount
        commission.total_commission_payable = totals.total_commission_payable

    @staticmethod
    def _build_sale_entry(entry: Any, result: CommissionResult) -> CommissionSale:
        return CommissionSale(
            sale_id=entry.sale_id,
            amount_received=entry.amount_received,
            additions=entry.additions,
            deductions=entry.deductions,
            commission_rate=entry.commission_rate,
            withholding_tax_rate=entry.withholding_tax_rate,
            base_for_commission=result.base_for_commission,
            gross_commission=result.gross_commission,
            withholding_tax_amount=result.withholding_tax_amount,
            commission_payable=result.total_commission_payable,
            is_active=True,
        )

    @staticmethod
    def _build_recipient(recipient: Any) -> CommissionRecipient:
        return CommissionRecipient(
            sales_agent_id=recipient.sales_agent_id,
            amount=recipient.amount,
            paying_account_id=getattr(recipient, "paying_account_id", None),
            notes=recipient.notes,
            payment_status=CommissionPaymentStatus.PENDING.value,
            is_active=True,
        )

    @staticmethod
    def _release_sales(commission: Commission) -> None:
        for entry in commission.sales_entries:
            if entry.sale is not None:
                entry.sale.is_commission_applied = False

    # ==================== Lifecycle ====================

    async def create_commission(self, data) -> Commission:
        """
        Create a commission from sale entries and recipient shares.

        Figures are recalculated from the inputs; the recipients must fit in the
        total payable. Starts as PENDING_APPROVAL / PENDING.
        """
        await self._get_customer(data.customer_id)
        sales = await self._load_sales(data.sales_entries, data.customer_id)
        await self._check_recipients(data.recipients)

        results, totals = self.calculate(data.sales_entries)
        self._validate_allocations([r.amount for r in data.recipients], totals.total_commission_payable)

        if data.commission_ref_number:
            ref_number = data.commission_ref_number.strip()
            if not is_valid_manual_reference(ref_number, settings.COMMISSION_REF_PREFIX):
                raise CommissionValidationError(
                    f"Commission reference {ref_number} must follow "
                    f"{settings.COMMISSION_REF_PREFIX}.YYYY/MM/NNNN or use another prefix",
                    {"commission_ref_number": ref_number},
                )
            if await self._ref_number_taken(ref_number):
                raise CommissionConflictError(
                    f"Commission reference {ref_number} already exists",
                    {"commission_ref_number": ref_number},
                )
        else:
            ref_number = await ReferenceNumberService(self.db).next_commission_ref(data.commission_date)

        commission = Commission(
            id=uuid.uuid4(),
            commission_ref_number=ref_number,
            commission_date=data.commission_date,
            customer_id=data.customer_id,
            notes=data.notes,
            status=CommissionStatus.PENDING_APPROVAL.value,
            payment_status=CommissionPaymentStatus.PENDING.value,
            is_active=True,
        )
        self._apply_totals(commission, totals)

        for entry, result in zip(data.sales_entries, results):
            commission.sales_entries.append(self._build_sale_entry(entry, result))
            sales[entry.sale_id].is_commission_applied = True
        for recipient in data.recipients:
            commission.recipients.append(self._build_recipient(recipient))

        self.db.add(commission)
        try:
            await self.db.flush()
        except IntegrityError as e:
            logger.error(f"Database integrity error creating commission {ref_number}: {e.orig}")
            raise CommissionConflictError(
                f"Commission reference {ref_number} already exists",
                {"commission_ref_number": ref_number},
            ) from e

        logger.info(
            f"Commission {ref_number} created: payable {totals.total_commission_payable} "
            f"across {len(results)} sale(s), {len(data.recipients)} recipient(s)"
        )
        return await self.get_commission(commission.id)

    async def update_commission(self, commission_id: uuid.UUID, data) -> Commission:
        """
        Update header fields and optionally replace sale entries / recipients.

        Only allowed before any payment; the commission goes back to PENDING_APPROVAL.
        """
        commission = await self.get_commission(commission_id)

        if commission.has_payments or commission.status in (
            CommissionStatus.PROCESSED.value, CommissionStatus.CANCELLED.value
        ):
            logger.warning(f"Update refused for commission {commission.commission_ref_number} ({commission.status})")
            raise CommissionStateError(
                f"Cannot edit a {commission.status} commission with payment status {commission.payment_status}",
                {"status": commission.status, "payment_status": commission.payment_status},
            )

        update_data = data.model_dump(exclude_unset=True)
        customer_id = update_data.get("customer_id") or commission.customer_id
        if customer_id != commission.customer_id:
            await self._get_customer(customer_id)

        sales = None
        if data.sales_entries is not None:
            sales = await self._load_sales(data.sales_entries, customer_id, exclude_commission_id=commission.id)
            results, totals = self.calculate(data.sales_entries)
        else:
            current = [e for e in commission.sales_entries if e.is_active]
            for entry in current:
                if entry.sale is not None and entry.sale.customer_id != customer_id:
                    raise CommissionValidationError(
                        f"Sale {entry.sale.invoice_number} does not belong to the selected customer",
                        {"sale_id": str(entry.sale_id)},
                    )
            _, totals = self.calculate(current)

        if data.recipients is not None:
            await self._check_recipients(data.recipients)
            amounts = [r.amount for r in data.recipients]
        else:
            amounts = [r.amount for r in commission.recipients if r.is_active]
        self._validate_allocations(amounts, totals.total_commission_payable)

        if sales is not None:
            for entry in commission.sales_entries:
                if entry.sale_id not in sales and entry.sale is not None:
                    entry.sale.is_commission_applied = False
            commission.sales_entries.clear()
            for entry, result in zip(data.sales_entries, results):
                commission.sales_entries.append(self._build_sale_entry(entry, result))
                sales[entry.sale_id].is_commission_applied = True

        if data.recipients is not None:
            commission.recipients.clear()
            for recipient in data.recipients:
                commission.recipients.append(self._build_recipient(recipient))

        for field in ("commission_date", "customer_id", "notes"):
            if field in update_data:
                setattr(commission, field, update_data[field])
        self._apply_totals(commission, totals)
        commission.status = CommissionStatus.PENDING_APPROVAL.value

        await self.db.flush()
        logger.info(f"Commission {commission.commission_ref_number} updated, back to PENDING_APPROVAL")
        return await self.get_commission(commission.id)

    async def change_status(
        self,
        commission_id: uuid.UUID,
        new_status: str,
        notes: Optional[str] = None,
    ) -> Commission:
        """Approve, send back for approval, or cancel."""
        commission = await self.get_commission(commission_id)
        current = commission.status
        new_status = CommissionStatus(new_status).value

        if new_status == current:
            raise CommissionStateError(f"Commission is already {current}", {"status": current})

        if new_status not in ALLOWED_STATUS_TRANSITIONS.get(current, set()):
            logger.warning(f"Invalid transition {current} -> {new_status} for {commission.commission_ref_number}")
            raise CommissionStateError(
                f"Cannot change status from {current} to {new_status}",
                {"status": current, "requested": new_status},
            )

        if commission.has_payments:
            raise CommissionStateError(
                "Commission has payouts; its status follows the payments",
                {"payment_status": commission.payment_status},
            )

        commission.status = new_status
        if notes:
            commission.notes = notes

        if new_status == CommissionStatus.CANCELLED.value:
            for recipient in commission.recipients:
                if recipient.payment_status == CommissionPaymentStatus.PENDING.value:
                    recipient.payment_status = CommissionPaymentStatus.CANCELLED.value
            commission.payment_status = CommissionPaymentStatus.CANCELLED.value
            self._release_sales(commission)

        await self.db.flush()
        logger.info(f"Commission {commission.commission_ref_number}: {current} -> {new_status}")
        return await self.get_commission(commission.id)

    async def delete_commission(self, commission_id: uuid.UUID) -> Commission:
        """Soft delete. Refused once any payout exists."""
        commission = await self.get_commission(commission_id)

        paid = [p for r in commission.recipients for p in r.payouts if p.is_active]
        if paid:
            logger.warning(f"Delete refused for commission {commission.commission_ref_number}: {len(paid)} payout(s)")
            raise CommissionStateError(
                "Cannot delete a commission that has payouts",
                {"payout_count": len(paid)},
            )

        commission.is_active = False
        commission.status = CommissionStatus.CANCELLED.value
        commission.payment_status = CommissionPaymentStatus.CANCELLED.value
        for recipient in commission.recipients:
            recipient.is_active = False
            recipient.payment_status = CommissionPaymentStatus.CANCELLED.value
        for entry in commission.sales_entries:
            entry.is_active = False
        self._release_sales(commission)

        await self.db.flush()
        logger.info(f"Commission {commission.commission_ref_number} deleted")
        return commission

    # ==================== Payouts ====================

    async def process_payouts(
        self,
        lines: Sequence[Any],
        payout_date: date,
        processed_by: Optional[str] = None,
    ) -> List[CommissionPayout]:
        """
        Pay recipients from company accounts.

        Every line is validated before its effects apply; any failure raises and
        the caller rolls the whole batch back.
        """
        recipient_ids = {line.commission_recipient_id for line in lines}
        result = await self.db.execute(
            select(CommissionRecipient)
            .options(
                selectinload(CommissionRecipient.sales_agent),
                selectinload(CommissionRecipient.payouts),
                selectinload(CommissionRecipient.commission).selectinload(Commission.recipients),
            )
            .where(CommissionRecipient.id.in_(recipient_ids))
            .execution_options(populate_existing=True)
        )
        recipients = {r.id: r for r in result.scalars().all()}

        account_ids = {line.paying_account_id for line in lines if line.paying_account_id}
        account_ids.update(r.paying_account_id for r in recipients.values() if r.paying_account_id)
        result = await self.db.execute(
            select(BankAccount).where(BankAccount.id.in_(account_ids)).with_for_update()
        )
        accounts = {a.id: a for a in result.scalars().all()}

        category_ids = {line.expense_category_id for line in lines}
        result = await self.db.execute(select(ExpenseCategory).where(ExpenseCategory.id.in_(category_ids)))
        categories = {c.id: c for c in result.scalars().all()}

        refs = await ReferenceNumberService(self.db).next_payout_refs(payout_date, count=len(lines))
        accounting = AccountingService(self.db, posted_by=processed_by)

        payouts: List[CommissionPayout] = []
        touched: Dict[uuid.UUID, Commission] = {}

        for line, ref in zip(lines, refs):
            recipient = recipients.get(line.commission_recipient_id)
            if recipient is None or not recipient.is_active:
                raise CommissionNotFoundError(
                    "Commission recipient not found",
                    {"commission_recipient_id": str(line.commission_recipient_id)},
                )
            commission = recipient.commission
            agent_name = recipient.sales_agent_name or str(recipient.sales_agent_id)

            if not commission.is_active or commission.status != CommissionStatus.APPROVED.value:
                raise PayoutError(
                    f"Commission {commission.commission_ref_number} must be APPROVED before payout "
                    f"(current: {commission.status})",
                    {"commission_id": str(commission.id), "status": commission.status},
                )
            if recipient.payment_status == CommissionPaymentStatus.CANCELLED.value:
                raise PayoutError(f"Commission share of {agent_name} is cancelled")

            account_id = line.paying_account_id or recipient.paying_account_id
            if account_id is None:
                raise PayoutError(
                    f"No paying account given for {agent_name}",
                    {"commission_recipient_id": str(recipient.id)},
                )
            account = accounts.get(account_id)
            if account is None:
                raise CommissionNotFoundError(
                    "Paying account not found", {"paying_account_id": str(account_id)}
                )
            if not account.is_active:
                raise PayoutError(f"Paying account {account.account_name} is inactive")
            if not account.chart_of_account_id:
                raise PayoutError(f"Paying account {account.account_name} is not linked to the chart of accounts")

            category = categories.get(line.expense_category_id)
            if category is None:
                raise CommissionNotFoundError(
                    "Expense category not found", {"expense_category_id": str(line.expense_category_id)}
                )
            if not category.is_active:
                raise PayoutError(f"Expense category {category.name} is inactive")
            if not category.chart_of_account_id:
                raise PayoutError(f"Expense category {category.name} is not linked to the chart of accounts")

            amount = line.amount
            if amount <= 0:
                raise PayoutError("Payout amount must be greater than zero")

            remaining = recipient.remaining_due
            if amount > remaining + self.tolerance:
                raise PayoutError(
                    f"Payout of {amount} to {agent_name} exceeds remaining due {remaining}",
                    {"commission_recipient_id": str(recipient.id), "remaining_due": str(remaining)},
                )
            if amount > account.current_balance:
                raise PayoutError(
                    f"Insufficient balance in {account.account_name}: {account.current_balance} available",
                    {"paying_account_id": str(account.id), "current_balance": str(account.current_balance)},
                )

            payout = CommissionPayout(
                id=uuid.uuid4(),
                payout_ref_number=ref,
                recipient=recipient,
                paying_account_id=account.id,
                expense_category_id=category.id,
                amount=amount,
                payout_date=payout_date,
                notes=line.notes,
                processed_by=processed_by,
                is_active=True,
            )
            self.db.add(payout)

            account.current_balance = account.current_balance - amount
            if recipient.total_paid >= recipient.amount - self.tolerance:
                recipient.payment_status = CommissionPaymentStatus.PAID.value
            else:
                recipient.payment_status = CommissionPaymentStatus.PARTIAL.value

            try:
                journal_entry = await accounting.post_commission_payout(
                    payout_id=payout.id,
                    payout_reference=ref,
                    agent_name=agent_name,
                    amount=amount,
                    expense_account_id=category.chart_of_account_id,
                    paying_account_id=account.chart_of_account_id,
                    payout_date=payout_date,
                    commission_reference=commission.commission_ref_number,
                )
            except JournalEntryError as e:
                raise PayoutError(
                    f"Journal posting failed for {ref}: {e}",
                    {"commission_recipient_id": str(recipient.id)},
                ) from e
            payout.journal_entry_id = journal_entry.id

            payouts.append(payout)
            touched[commission.id] = commission

        for commission in touched.values():
            commission.payment_status = resolve_payment_status(commission.recipients)
            if commission.payment_status == CommissionPaymentStatus.PAID.value:
                commission.status = CommissionStatus.PROCESSED.value
                logger.info(f"Commission {commission.commission_ref_number} fully paid")

        await self.db.flush()

        total = sum((p.amount for p in payouts), Decimal("0"))
        logger.info(f"Processed {len(payouts)} commission payout(s) totalling {total}")

        result = await self.db.execute(
            select(CommissionPayout)
            .where(CommissionPayout.id.in_([p.id for p in payouts]))
            .order_by(CommissionPayout.payout_ref_number)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())
