"""Import every model so Base.metadata knows all tables."""
from app.models.customer import Customer
from app.models.sale import Sale
from app.models.accounting import (
    AccountType,
    ChartOfAccount,
    ExpenseCategory,
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
    JournalEntryType,
)
from app.models.banking import BankAccount, BankAccountType
from app.models.commission import (
    SalesAgent,
    Commission,
    CommissionSale,
    CommissionRecipient,
    CommissionPayout,
    CommissionStatus,
    CommissionPaymentStatus,
)

__all__ = [
    "Customer",
    "Sale",
    "AccountType",
    "ChartOfAccount",
    "ExpenseCategory",
    "JournalEntry",
    "JournalEntryLine",
    "JournalEntryStatus",
    "JournalEntryType",
    "BankAccount",
    "BankAccountType",
    "SalesAgent",
    "Commission",
    "CommissionSale",
    "CommissionRecipient",
    "CommissionPayout",
    "CommissionStatus",
    "CommissionPaymentStatus",
]
