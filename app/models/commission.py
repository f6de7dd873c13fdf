"""Sales commission models.

Supports:
- Sales agents who receive commission shares
- Commission records covering one or more sales
- Per-agent recipient shares of the net payable
- Payouts of those shares from company accounts
"""
import uuid
from datetime import datetime, date, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional, List
from decimal import Decimal

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Text, Date, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.db_types import UUIDType, Money, Percent

if TYPE_CHECKING:
    from app.models.customer import Customer
    from app.models.sale import Sale
    from app.models.banking import BankAccount
    from app.models.accounting import ExpenseCategory


class CommissionStatus(str, Enum):
    """Commission approval status."""
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    PROCESSED = "PROCESSED"     # Every recipient fully paid
    CANCELLED = "CANCELLED"


class CommissionPaymentStatus(str, Enum):
    """Payment status of a commission or a single recipient share."""
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SalesAgent(Base):
    """Person who can receive a share of a commission."""
    __tablename__ = "sales_agents"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    agent_code: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True,
        comment="Unique agent code e.g., AG-001"
    )
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    recipient_shares: Mapped[List["CommissionRecipient"]] = relationship(
        "CommissionRecipient",
        back_populates="sales_agent"
    )

    def __repr__(self) -> str:
        return f"<SalesAgent(code='{self.agent_code}', name='{self.name}')>"


class Commission(Base):
    """
    Commission header.
    Totals are the sums of the calculated sale entries.
    """
    __tablename__ = "commissions"
    __table_args__ = (
        Index("idx_commissions_status", "status"),
        Index("idx_commissions_payment_status", "payment_status"),
        Index("idx_commissions_date", "commission_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    commission_ref_number: Mapped[str] = mapped_column(
        String(40),
        unique=True,
        nullable=False,
        index=True,
        comment="COMM.YYYY/MM/NNNN"
    )
    commission_date: Mapped[date] = mapped_column(Date, nullable=False)
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Totals
    total_amount_received: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    total_additions: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    total_base_for_commission: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    total_gross_commission: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    total_withholding_tax_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    total_commission_payable: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)

    # Status
    status: Mapped[str] = mapped_column(
        String(30),
        default=CommissionStatus.PENDING_APPROVAL.value,
        nullable=False,
        comment="PENDING_APPROVAL, APPROVED, PROCESSED, CANCELLED"
    )
    payment_status: Mapped[str] = mapped_column(
        String(30),
        default=CommissionPaymentStatus.PENDING.value,
        nullable=False,
        comment="PENDING, PARTIAL, PAID, CANCELLED"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    # Relationships
    customer: Mapped["Customer"] = relationship("Customer")
    sales_entries: Mapped[List["CommissionSale"]] = relationship(
        "CommissionSale",
        back_populates="commission",
        cascade="all, delete-orphan",
        order_by="CommissionSale.created_at"
    )
    recipients: Mapped[List["CommissionRecipient"]] = relationship(
        "CommissionRecipient",
        back_populates="commission",
        cascade="all, delete-orphan",
        order_by="CommissionRecipient.created_at"
    )

    @property
    def total_allocated(self) -> Decimal:
        return sum((r.amount for r in self.recipients if r.is_active), Decimal("0"))

    @property
    def customer_name(self) -> Optional[str]:
        return self.customer.full_name if self.customer else None

    @property
    def has_payments(self) -> bool:
        return self.payment_status in (
            CommissionPaymentStatus.PARTIAL.value,
            CommissionPaymentStatus.PAID.value,
        )

    def __repr__(self) -> str:
        return f"<Commission(ref='{self.commission_ref_number}', status='{self.status}')>"


class CommissionSale(Base):
    """One sale included in a commission, with its inputs and calculated figures."""
    __tablename__ = "commission_sales"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    commission_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("commissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    sale_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("sales.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Inputs
    amount_received: Mapped[Decimal] = mapped_column(Money, nullable=False)
    additions: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    deductions: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(Percent, nullable=False, comment="Commission %")
    withholding_tax_rate: Mapped[Decimal] = mapped_column(
        Percent, default=Decimal("0"), nullable=False, comment="WHT %"
    )

    # Calculated
    base_for_commission: Mapped[Decimal] = mapped_column(Money, nullable=False)
    gross_commission: Mapped[Decimal] = mapped_column(Money, nullable=False)
    withholding_tax_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    commission_payable: Mapped[Decimal] = mapped_column(Money, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    commission: Mapped["Commission"] = relationship("Commission", back_populates="sales_entries")
    sale: Mapped["Sale"] = relationship("Sale")

    @property
    def invoice_number(self) -> Optional[str]:
        return self.sale.invoice_number if self.sale else None


class CommissionRecipient(Base):
    """A sales agent's share of a commission payable."""
    __tablename__ = "commission_recipients"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    commission_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("commissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    sales_agent_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("sales_agents.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    paying_account_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("bank_accounts.id", ondelete="SET NULL"),
        nullable=True,
        comment="Default account for this recipient's payouts"
    )
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    payment_status: Mapped[str] = mapped_column(
        String(30),
        default=CommissionPaymentStatus.PENDING.value,
        nullable=False
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    commission: Mapped["Commission"] = relationship("Commission", back_populates="recipients")
    sales_agent: Mapped["SalesAgent"] = relationship("SalesAgent", back_populates="recipient_shares")
    paying_account: Mapped[Optional["BankAccount"]] = relationship("BankAccount")
    payouts: Mapped[List["CommissionPayout"]] = relationship(
        "CommissionPayout",
        back_populates="recipient",
        order_by="CommissionPayout.created_at"
    )

    @property
    def total_paid(self) -> Decimal:
        """Sum of active payouts."""
        return sum((p.amount for p in self.payouts if p.is_active), Decimal("0"))

    @property
    def remaining_due(self) -> Decimal:
        return self.amount - self.total_paid

    @property
    def sales_agent_name(self) -> Optional[str]:
        return self.sales_agent.name if self.sales_agent else None


class CommissionPayout(Base):
    """Money paid to a recipient from a company account."""
    __tablename__ = "commission_payouts"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)

    payout_ref_number: Mapped[str] = mapped_column(
        String(40),
        unique=True,
        nullable=False,
        index=True,
        comment="COMM-PAY.YYYY/MM/NNNN"
    )
    commission_recipient_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("commission_recipients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    paying_account_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("bank_accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    expense_category_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("expense_categories.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    payout_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    journal_entry_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("journal_entries.id", ondelete="SET NULL"),
        nullable=True
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    recipient: Mapped["CommissionRecipient"] = relationship("CommissionRecipient", back_populates="payouts")
    paying_account: Mapped["BankAccount"] = relationship("BankAccount")
    expense_category: Mapped["ExpenseCategory"] = relationship("ExpenseCategory")

    def __repr__(self) -> str:
        return f"<CommissionPayout(ref='{self.payout_ref_number}', amount={self.amount})>"
