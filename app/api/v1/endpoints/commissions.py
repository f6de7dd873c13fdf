"""API endpoints for Commission management."""
from typing import Optional
from uuid import UUID
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, HTTPException, status, Query

from app.models.commission import CommissionStatus, CommissionPaymentStatus
from app.schemas.commission import (
    # Calculator
    CommissionCalculationRequest, CommissionCalculationResponse,
    CommissionCalculationResult, CommissionTotalsResponse,
    AllocationValidationRequest, AllocationValidationResponse,
    # Commission
    CommissionCreate, CommissionUpdate, CommissionStatusUpdate,
    CommissionResponse, CommissionListResponse, CommissionReferencePreview,
    # Payout
    CommissionPayoutRequest, CommissionPayoutResponse,
    CommissionPayoutBatchResponse, CommissionPayoutListResponse,
    EligibleSaleResponse,
)
from app.api.deps import DB, Page
from app.services.commission_service import CommissionService, CommissionError
from app.services.reference_number_service import ReferenceNumberService

router = APIRouter()


def _http_error(e: CommissionError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


# ==================== Calculator ====================

@router.post("/calculate", response_model=CommissionCalculationResponse)
async def calculate_commission(
    request: CommissionCalculationRequest,
    db: DB,
):
    """
    Recalculate a commission form.

    Non-numeric inputs count as zero. Rates are percentages. Nothing is saved.
    """
    service = CommissionService(db, clamp_negative_base=request.clamp_negative_base)
    results, totals = service.calculate(request.entries)

    return CommissionCalculationResponse(
        entries=[
            CommissionCalculationResult(
                sale_id=entry.sale_id,
                base_for_commission=r.base_for_commission,
                gross_commission=r.gross_commission,
                withholding_tax_amount=r.withholding_tax_amount,
                commission_payable=r.total_commission_payable,
            )
            for entry, r in zip(request.entries, results)
        ],
        totals=CommissionTotalsResponse(**vars(totals)),
    )


@router.post("/validate-allocations", response_model=AllocationValidationResponse)
async def validate_allocations(
    request: AllocationValidationRequest,
    db: DB,
):
    """Check recipient shares against the commission payable."""
    check = CommissionService(db).check_allocations(request.amounts, request.total_commission_payable)
    return AllocationValidationResponse(
        total_allocated=check.total_allocated,
        total_commission_payable=check.total_commission_payable,
        remaining=check.remaining,
        tolerance=check.tolerance,
        is_valid=check.is_valid,
        message=check.message,
    )


@router.get("/next-reference", response_model=CommissionReferencePreview)
async def preview_next_reference(db: DB):
    """Next commission and payout numbers for today (not reserved)."""
    return await ReferenceNumberService(db).preview()


@router.get("/eligible-sales", response_model=list[EligibleSaleResponse])
async def list_eligible_sales(
    db: DB,
    page: Page,
    customer_id: Optional[UUID] = None,
    commission_id: Optional[UUID] = Query(None, description="Keep this commission's own sales selectable"),
    search: Optional[str] = None,
):
    """Sales not yet covered by an active commission."""
    service = CommissionService(db)
    sales = await service.list_eligible_sales(
        customer_id=customer_id,
        commission_id=commission_id,
        search=search,
        skip=page.skip,
        limit=page.limit,
    )
    return [EligibleSaleResponse.model_validate(s) for s in sales]


# ==================== Payouts ====================

@router.post("/payouts", response_model=CommissionPayoutBatchResponse, status_code=status.HTTP_201_CREATED)
async def create_payouts(
    request: CommissionPayoutRequest,
    db: DB,
):
    """
    Pay commission recipients.

    Each line decreases the paying account balance, updates the recipient's
    payment status and posts a journal entry. All lines are applied together.
    """
    service = CommissionService(db)
    try:
        payouts = await service.process_payouts(
            request.payouts,
            payout_date=request.payout_date,
            processed_by=request.processed_by,
        )
    except CommissionError as e:
        raise _http_error(e)

    await db.commit()

    items = [CommissionPayoutResponse.model_validate(p) for p in payouts]
    return CommissionPayoutBatchResponse(
        items=items,
        total_amount=sum((p.amount for p in items), Decimal("0")),
    )


@router.get("/payouts", response_model=CommissionPayoutListResponse)
async def list_payouts(
    db: DB,
    page: Page,
    commission_id: Optional[UUID] = None,
    commission_recipient_id: Optional[UUID] = None,
    sales_agent_id: Optional[UUID] = None,
    paying_account_id: Optional[UUID] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
):
    """List commission payouts."""
    service = CommissionService(db)
    payouts, total = await service.list_payouts(
        skip=page.skip,
        limit=page.limit,
        commission_id=commission_id,
        commission_recipient_id=commission_recipient_id,
        sales_agent_id=sales_agent_id,
        paying_account_id=paying_account_id,
        date_from=date_from,
        date_to=date_to,
    )
    return CommissionPayoutListResponse(
        items=[CommissionPayoutResponse.model_validate(p) for p in payouts],
        total=total,
        skip=page.skip,
        limit=page.limit,
    )


# ==================== Commissions ====================

@router.post("", response_model=CommissionResponse, status_code=status.HTTP_201_CREATED)
async def create_commission(
    commission_in: CommissionCreate,
    db: DB,
):
    """Create a commission. Figures are recalculated from the sale entries."""
    service = CommissionService(db)
    try:
        commission = await service.create_commission(commission_in)
    except CommissionError as e:
        raise _http_error(e)

    await db.commit()
    return CommissionResponse.model_validate(commission)


@router.get("", response_model=CommissionListResponse)
async def list_commissions(
    db: DB,
    page: Page,
    status: Optional[CommissionStatus] = None,
    payment_status: Optional[CommissionPaymentStatus] = None,
    customer_id: Optional[UUID] = None,
    sales_agent_id: Optional[UUID] = None,
    sale_id: Optional[UUID] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    min_payable: Optional[Decimal] = Query(None, ge=0),
    max_payable: Optional[Decimal] = Query(None, ge=0),
    search: Optional[str] = Query(None, description="Reference number contains"),
):
    """List commissions with filters."""
    service = CommissionService(db)
    commissions, total = await service.list_commissions(
        skip=page.skip,
        limit=page.limit,
        status=status.value if status else None,
        payment_status=payment_status.value if payment_status else None,
        customer_id=customer_id,
        sales_agent_id=sales_agent_id,
        sale_id=sale_id,
        date_from=date_from,
        date_to=date_to,
        min_payable=min_payable,
        max_payable=max_payable,
        search=search,
    )
    return CommissionListResponse(
        items=[CommissionResponse.model_validate(c) for c in commissions],
        total=total,
        skip=page.skip,
        limit=page.limit,
    )


@router.get("/{commission_id}", response_model=CommissionResponse)
async def get_commission(
    commission_id: UUID,
    db: DB,
):
    """Get commission with sale entries, recipients and payouts."""
    try:
        commission = await CommissionService(db).get_commission(commission_id)
    except CommissionError as e:
        raise _http_error(e)
    return CommissionResponse.model_validate(commission)


@router.put("/{commission_id}", response_model=CommissionResponse)
async def update_commission(
    commission_id: UUID,
    commission_in: CommissionUpdate,
    db: DB,
):
    """Update a commission that has no payments yet. It returns to PENDING_APPROVAL."""
    service = CommissionService(db)
    try:
        commission = await service.update_commission(commission_id, commission_in)
    except CommissionError as e:
        raise _http_error(e)

    await db.commit()
    return CommissionResponse.model_validate(commission)


@router.patch("/{commission_id}/status", response_model=CommissionResponse)
async def change_commission_status(
    commission_id: UUID,
    status_in: CommissionStatusUpdate,
    db: DB,
):
    """Approve, send back for approval, or cancel a commission."""
    service = CommissionService(db)
    try:
        commission = await service.change_status(commission_id, status_in.status.value, status_in.notes)
    except CommissionError as e:
        raise _http_error(e)

    await db.commit()
    return CommissionResponse.model_validate(commission)


@router.delete("/{commission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_commission(
    commission_id: UUID,
    db: DB,
):
    """Soft delete a commission without payouts and release its sales."""
    service = CommissionService(db)
    try:
        await service.delete_commission(commission_id)
    except CommissionError as e:
        raise _http_error(e)

    await db.commit()
