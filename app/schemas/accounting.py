"""Pydantic schemas for Accounting module."""
from datetime import datetime, date
from typing import Optional, List
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict

from app.schemas.base import BaseResponseSchema, BaseUpdateSchema, ListResponseSchema

from app.models.accounting import AccountType, JournalEntryStatus as JournalStatus
from app.models.banking import BankAccountType


# ==================== ChartOfAccount Schemas ====================

class ChartOfAccountBase(BaseModel):
    """Base schema for ChartOfAccount."""
    account_code: str = Field(..., min_length=1, max_length=20, alias="code")
    account_name: str = Field(..., min_length=1, max_length=200, alias="name")
    account_type: AccountType = Field(..., alias="type")
    description: Optional[str] = None
    parent_id: Optional[UUID] = None
    is_group: bool = Field(False, alias="isGroup")
    is_active: bool = True

    model_config = ConfigDict(populate_by_name=True)


class ChartOfAccountCreate(ChartOfAccountBase):
    """Schema for creating ChartOfAccount."""
    # Frontend may send either 'name' or 'account_name', 'type' or 'account_type'
    pass


class ChartOfAccountUpdate(BaseUpdateSchema):
    """Schema for updating ChartOfAccount. Moving an account re-paths its subtree."""
    account_name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    parent_id: Optional[UUID] = None
    is_group: Optional[bool] = None
    is_active: Optional[bool] = None


class ChartOfAccountResponse(BaseResponseSchema):
    """Response schema for ChartOfAccount."""
    id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    description: Optional[str] = None
    parent_id: Optional[UUID] = None
    path: str
    depth: int = 0
    is_group: bool = False
    is_active: bool = True
    current_balance: Decimal = Decimal("0")
    created_at: datetime
    updated_at: datetime


class ChartOfAccountTreeResponse(ChartOfAccountResponse):
    """Response with children for tree view."""
    children: List["ChartOfAccountTreeResponse"] = []


class AccountOptionResponse(BaseModel):
    """Flattened account for indented select inputs."""
    id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    depth: int
    path: str
    label: str
    is_group: bool


class AccountListResponse(ListResponseSchema):
    """Paginated account list response."""
    items: List[ChartOfAccountResponse]


# ==================== BankAccount Schemas ====================

class BankAccountCreate(BaseModel):
    account_name: str = Field(..., min_length=1, max_length=200)
    account_number: str = Field(..., min_length=1, max_length=50)
    bank_name: str = Field(..., min_length=1, max_length=200)
    account_type: BankAccountType = BankAccountType.CURRENT
    opening_balance: Decimal = Field(Decimal("0"), ge=0)
    chart_of_account_id: Optional[UUID] = None
    is_active: bool = True


class BankAccountResponse(BaseResponseSchema):
    id: UUID
    account_name: str
    account_number: str
    bank_name: str
    account_type: str
    opening_balance: Decimal
    current_balance: Decimal
    chart_of_account_id: Optional[UUID] = None
    is_active: bool
    created_at: datetime


class BankAccountListResponse(ListResponseSchema):
    items: List[BankAccountResponse]


# ==================== ExpenseCategory Schemas ====================

class ExpenseCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    chart_of_account_id: Optional[UUID] = None
    is_active: bool = True


class ExpenseCategoryResponse(BaseResponseSchema):
    id: UUID
    name: str
    description: Optional[str] = None
    chart_of_account_id: Optional[UUID] = None
    is_active: bool
    created_at: datetime


class ExpenseCategoryListResponse(ListResponseSchema):
    items: List[ExpenseCategoryResponse]


# ==================== JournalEntry Schemas ====================

class JournalEntryLineResponse(BaseResponseSchema):
    id: UUID
    line_number: int
    account_id: UUID
    debit_amount: Decimal
    credit_amount: Decimal
    description: Optional[str] = None


class JournalEntryResponse(BaseResponseSchema):
    id: UUID
    entry_number: str
    entry_date: date
    entry_type: str
    source_type: Optional[str] = None
    source_id: Optional[UUID] = None
    source_number: Optional[str] = None
    narration: str
    total_debit: Decimal
    total_credit: Decimal
    status: JournalStatus
    posted_by: Optional[str] = None
    posted_at: Optional[datetime] = None
    lines: List[JournalEntryLineResponse] = []
    created_at: datetime


class JournalEntryListResponse(ListResponseSchema):
    items: List[JournalEntryResponse]
