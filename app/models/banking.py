"""Company bank and cash accounts that commissions are paid from."""
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.database import Base
from app.db_types import UUIDType, Money


class BankAccountType(str, Enum):
    """Bank account types."""
    CURRENT = "CURRENT"
    SAVINGS = "SAVINGS"
    CASH = "CASH"


class BankAccount(Base):
    """
    Paying account.

    Links to a ledger account so payouts can be posted automatically.
    """
    __tablename__ = "bank_accounts"

    id: Mapped[UUID] = mapped_column(UUIDType, primary_key=True, default=uuid4)

    # Account Details
    account_name: Mapped[str] = mapped_column(String(200), nullable=False)
    account_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    bank_name: Mapped[str] = mapped_column(String(200), nullable=False)
    account_type: Mapped[str] = mapped_column(String(50), default=BankAccountType.CURRENT.value)

    # Balances
    opening_balance: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    current_balance: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))

    # Linked Ledger Account (for auto journal entries)
    chart_of_account_id: Mapped[Optional[UUID]] = mapped_column(
        UUIDType, ForeignKey("chart_of_accounts.id"), nullable=True
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    chart_of_account = relationship("ChartOfAccount")

    def __repr__(self):
        return f"<BankAccount {self.bank_name} - {self.account_number}>"
