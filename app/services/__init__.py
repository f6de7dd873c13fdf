# Services module
from app.services.commission_service import CommissionService, CommissionError
from app.services.accounting_service import AccountingService
from app.services.reference_number_service import ReferenceNumberService

__all__ = [
    "CommissionService",
    "CommissionError",
    "AccountingService",
    "ReferenceNumberService",
]
