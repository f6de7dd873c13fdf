"""Pydantic schemas for the Commission module."""
from datetime import datetime, date
from typing import Annotated, Any, ClassVar, Optional, List
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field, field_validator

from app.schemas.base import (
    BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema,
    LenientAmountsSchema, ListResponseSchema,
)

from app.models.commission import CommissionStatus, CommissionPaymentStatus
from app.services.commission_calculator import coerce_amount, round_money


# ==================== Calculator Schemas ====================

class CommissionCalculationEntry(LenientAmountsSchema):
    """One sale line as typed into the commission form. Rates are percentages."""
    amount_fields: ClassVar[tuple] = (
        "amount_received", "additions", "deductions",
        "commission_rate", "withholding_tax_rate",
    )

    sale_id: Optional[UUID] = None
    amount_received: Decimal = Decimal("0")
    additions: Decimal = Decimal("0")
    deductions: Decimal = Decimal("0")
    commission_rate: Decimal = Decimal("0")
    withholding_tax_rate: Decimal = Decimal("0")


class CommissionCalculationRequest(BaseCreateSchema):
    entries: List[CommissionCalculationEntry] = []
    clamp_negative_base: Optional[bool] = Field(
        None, description="Override the configured negative-base behaviour"
    )


class CommissionCalculationResult(BaseModel):
    sale_id: Optional[UUID] = None
    base_for_commission: Decimal
    gross_commission: Decimal
    withholding_tax_amount: Decimal
    commission_payable: Decimal


class CommissionTotalsResponse(BaseModel):
    total_amount_received: Decimal
    total_additions: Decimal
    total_deductions: Decimal
    total_base_for_commission: Decimal
    total_gross_commission: Decimal
    total_withholding_tax_amount: Decimal
    total_commission_payable: Decimal


class CommissionCalculationResponse(BaseModel):
    entries: List[CommissionCalculationResult]
    totals: CommissionTotalsResponse


class AllocationValidationRequest(LenientAmountsSchema):
    amount_fields: ClassVar[tuple] = ("total_commission_payable",)

    total_commission_payable: Decimal = Decimal("0")
    amounts: List[Annotated[Decimal, Field(ge=0)]] = []

    @field_validator("amounts", mode="before")
    @classmethod
    def _coerce_shares(cls, value: Any) -> Any:
        if not isinstance(value, (list, tuple)):
            return value
        return [coerce_amount(v) for v in value]


class AllocationValidationResponse(BaseModel):
    total_allocated: Decimal
    total_commission_payable: Decimal
    remaining: Decimal
    tolerance: Decimal
    is_valid: bool
    message: Optional[str] = None


# ==================== Commission Schemas ====================

class CommissionSaleInput(BaseModel):
    """Sale entry of a commission. Results are always recalculated server-side."""
    sale_id: UUID
    amount_received: Decimal = Field(..., gt=0)
    additions: Decimal = Field(Decimal("0"), ge=0)
    deductions: Decimal = Field(Decimal("0"), ge=0)
    commission_rate: Decimal = Field(..., ge=0, le=100, description="Percent")
    withholding_tax_rate: Decimal = Field(Decimal("0"), ge=0, le=100, description="Percent")

    @field_validator(
        "amount_received", "additions", "deductions", "commission_rate", "withholding_tax_rate"
    )
    @classmethod
    def _to_stored_precision(cls, v: Decimal) -> Decimal:
        # Columns keep 2 places; figures are computed from what gets stored
        return round_money(v)


class CommissionRecipientInput(BaseModel):
    sales_agent_id: UUID
    amount: Decimal = Field(..., ge=Decimal("0.01"))
    paying_account_id: Optional[UUID] = Field(None, description="Default account for payouts")
    notes: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def _to_cents(cls, v: Decimal) -> Decimal:
        return round_money(v)


class CommissionCreate(BaseCreateSchema):
    """Schema for creating a Commission."""
    commission_ref_number: Optional[str] = Field(
        None, max_length=40, description="Generated when omitted"
    )
    commission_date: date
    customer_id: UUID
    notes: Optional[str] = None
    sales_entries: List[CommissionSaleInput] = Field(..., min_length=1)
    recipients: List[CommissionRecipientInput] = Field(..., min_length=1)


class CommissionUpdate(BaseUpdateSchema):
    """Schema for updating a Commission. Lists replace the existing ones."""
    commission_date: Optional[date] = None
    customer_id: Optional[UUID] = None
    notes: Optional[str] = None
    sales_entries: Optional[List[CommissionSaleInput]] = Field(None, min_length=1)
    recipients: Optional[List[CommissionRecipientInput]] = Field(None, min_length=1)


class CommissionStatusUpdate(BaseModel):
    status: CommissionStatus
    notes: Optional[str] = None


class CommissionSaleResponse(BaseResponseSchema):
    id: UUID
    sale_id: UUID
    invoice_number: Optional[str] = None
    amount_received: Decimal
    additions: Decimal
    deductions: Decimal
    commission_rate: Decimal
    withholding_tax_rate: Decimal
    base_for_commission: Decimal
    gross_commission: Decimal
    withholding_tax_amount: Decimal
    commission_payable: Decimal
    is_active: bool


class CommissionPayoutResponse(BaseResponseSchema):
    """Response schema for CommissionPayout."""
    id: UUID
    payout_ref_number: str
    commission_recipient_id: UUID
    paying_account_id: UUID
    expense_category_id: UUID
    amount: Decimal
    payout_date: date
    notes: Optional[str] = None
    processed_by: Optional[str] = None
    journal_entry_id: Optional[UUID] = None
    is_active: bool
    created_at: datetime


class CommissionRecipientResponse(BaseResponseSchema):
    id: UUID
    sales_agent_id: UUID
    sales_agent_name: Optional[str] = None
    amount: Decimal
    paying_account_id: Optional[UUID] = None
    payment_status: CommissionPaymentStatus
    total_paid: Decimal
    remaining_due: Decimal
    notes: Optional[str] = None
    is_active: bool
    payouts: List[CommissionPayoutResponse] = []


class CommissionResponse(BaseResponseSchema):
    """Response schema for Commission."""
    id: UUID
    commission_ref_number: str
    commission_date: date
    customer_id: UUID
    customer_name: Optional[str] = None
    notes: Optional[str] = None
    total_amount_received: Decimal
    total_additions: Decimal
    total_deductions: Decimal
    total_base_for_commission: Decimal
    total_gross_commission: Decimal
    total_withholding_tax_amount: Decimal
    total_commission_payable: Decimal
    total_allocated: Decimal
    status: CommissionStatus
    payment_status: CommissionPaymentStatus
    is_active: bool
    sales_entries: List[CommissionSaleResponse] = []
    recipients: List[CommissionRecipientResponse] = []
    created_at: datetime
    updated_at: datetime


class CommissionListResponse(ListResponseSchema):
    """Response for listing commissions."""
    items: List[CommissionResponse]


class CommissionReferencePreview(BaseModel):
    commission_ref_number: str
    payout_ref_number: str


# ==================== Payout Schemas ====================

class CommissionPayoutLine(BaseModel):
    """One payment to one recipient."""
    commission_recipient_id: UUID
    paying_account_id: Optional[UUID] = Field(None, description="Defaults to the recipient's account")
    expense_category_id: UUID
    amount: Decimal = Field(..., gt=0)
    notes: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def _to_cents(cls, v: Decimal) -> Decimal:
        return round_money(v)


class CommissionPayoutRequest(BaseCreateSchema):
    """Pay several recipients at once. All lines succeed or none do."""
    payout_date: date = Field(default_factory=date.today)
    processed_by: Optional[str] = Field(None, max_length=100)
    payouts: List[CommissionPayoutLine] = Field(..., min_length=1)


class CommissionPayoutBatchResponse(BaseModel):
    items: List[CommissionPayoutResponse]
    total_amount: Decimal


class CommissionPayoutListResponse(ListResponseSchema):
    """Response for listing payouts."""
    items: List[CommissionPayoutResponse]


# ==================== Eligible Sales ====================

class EligibleSaleResponse(BaseResponseSchema):
    """Sale that can still be put on a commission."""
    id: UUID
    invoice_number: str
    customer_id: UUID
    sale_date: date
    total_amount: Decimal
    amount_received: Decimal
