"""Accounting models for double-entry bookkeeping.

Implements: Chart of Accounts, Expense Categories and Journal Entries.
"""
import uuid
from datetime import datetime, date, timezone
from enum import Enum
from typing import Optional, List
from decimal import Decimal

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, Text, Date
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, Money


class AccountType(str, Enum):
    """Account type classification."""
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


class JournalEntryType(str, Enum):
    MANUAL = "MANUAL"
    COMMISSION_PAYOUT = "COMMISSION_PAYOUT"


class JournalEntryStatus(str, Enum):
    """Journal entry status."""
    DRAFT = "DRAFT"
    POSTED = "POSTED"
    CANCELLED = "CANCELLED"


class ChartOfAccount(Base):
    """
    Chart of Accounts (COA) master.
    Hierarchical account structure with a materialized name path and depth.
    """
    __tablename__ = "chart_of_accounts"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    # Account Identification
    account_code: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
        comment="Account code e.g., 1000, 2000, 3000"
    )
    account_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Classification
    account_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="ASSET, LIABILITY, EQUITY, REVENUE, EXPENSE"
    )

    # Hierarchy
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("chart_of_accounts.id", ondelete="RESTRICT"),
        nullable=True,
        index=True
    )
    path: Mapped[str] = mapped_column(
        String(1000),
        nullable=False,
        default="",
        comment="Account names from the root, joined by ' / '"
    )
    depth: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_group: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        comment="True if this is a group account (not transactable)"
    )

    current_balance: Mapped[Decimal] = mapped_column(
        Money,
        default=Decimal("0"),
        comment="Running balance from posted journal lines"
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    parent: Mapped[Optional["ChartOfAccount"]] = relationship(
        "ChartOfAccount",
        remote_side=[id],
        back_populates="children"
    )
    children: Mapped[List["ChartOfAccount"]] = relationship(
        "ChartOfAccount",
        back_populates="parent"
    )

    @property
    def is_debit_account(self) -> bool:
        """Assets and Expenses have debit normal balance."""
        return self.account_type in (AccountType.ASSET.value, AccountType.EXPENSE.value)

    def __repr__(self) -> str:
        return f"<ChartOfAccount(code='{self.account_code}', name='{self.account_name}')>"


class ExpenseCategory(Base):
    """
    Expense category used to classify payouts.
    Each category posts to one expense account.
    """
    __tablename__ = "expense_categories"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    chart_of_account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("chart_of_accounts.id", ondelete="RESTRICT"),
        nullable=True,
        index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    chart_of_account: Mapped[Optional["ChartOfAccount"]] = relationship("ChartOfAccount")

    def __repr__(self) -> str:
        return f"<ExpenseCategory(name='{self.name}')>"


class JournalEntry(Base):
    """
    Journal entry header for double-entry bookkeeping.
    Each entry must balance (total debits = total credits).
    """
    __tablename__ = "journal_entries"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    entry_number: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True,
        comment="Auto-generated: JE-YYYYMMDD-XXXX"
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    # Type and Source
    entry_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="MANUAL, COMMISSION_PAYOUT"
    )
    source_type: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        comment="commission_payout, etc."
    )
    source_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        nullable=True,
        comment="Reference to source document"
    )
    source_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    narration: Mapped[str] = mapped_column(Text, nullable=False)

    # Totals
    total_debit: Mapped[Decimal] = mapped_column(Money, nullable=False)
    total_credit: Mapped[Decimal] = mapped_column(Money, nullable=False)

    status: Mapped[str] = mapped_column(
        String(50),
        default=JournalEntryStatus.DRAFT.value,
        nullable=False,
        comment="DRAFT, POSTED, CANCELLED"
    )
    posted_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    posted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    lines: Mapped[List["JournalEntryLine"]] = relationship(
        "JournalEntryLine",
        back_populates="journal_entry",
        cascade="all, delete-orphan",
        order_by="JournalEntryLine.line_number"
    )

    def __repr__(self) -> str:
        return f"<JournalEntry(number='{self.entry_number}', status='{self.status}')>"


class JournalEntryLine(Base):
    """
    Journal entry line item.
    Individual debit/credit entries.
    """
    __tablename__ = "journal_entry_lines"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    journal_entry_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("journal_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("chart_of_accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Amount (one must be zero)
    debit_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    credit_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    line_number: Mapped[int] = mapped_column(Integer, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    journal_entry: Mapped["JournalEntry"] = relationship("JournalEntry", back_populates="lines")
    account: Mapped["ChartOfAccount"] = relationship("ChartOfAccount")

    def __repr__(self) -> str:
        return f"<JournalEntryLine(account={self.account_id}, dr={self.debit_amount}, cr={self.credit_amount})>"
