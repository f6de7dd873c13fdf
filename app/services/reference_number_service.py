"""
Reference Number Service

Month based numbering for commission documents:
- Commission:        {PREFIX}.{YYYY}/{MM}/{NNNN}    e.g. COMM.2024/05/0001
- Commission payout: {PREFIX}.{YYYY}/{MM}/{NNNN}    e.g. COMM-PAY.2024/05/0007
- Journal entry:     JE-{YYYYMMDD}-{NNNN}           e.g. JE-20240531-0002

The next number is the highest number already issued in the same period plus
one. References in a series whose tail is not all digits are ignored. Batch requests (several payouts in one call) get consecutive numbers.

USAGE:
    service = ReferenceNumberService(db)
    ref = await service.next_commission_ref(date.today())
    refs = await service.next_payout_refs(date.today(), count=3)
"""

import re
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.accounting import JournalEntry
from app.models.commission import Commission, CommissionPayout

SEQUENCE_PADDING = 4
JOURNAL_ENTRY_PREFIX = "JE"


def monthly_series(prefix: str, on_date: date) -> str:
    """'COMM', 2024-05-31 -> 'COMM.2024/05/'"""
    return f"{prefix}.{on_date:%Y}/{on_date:%m}/"


def daily_series(prefix: str, on_date: date) -> str:
    """'JE', 2024-05-31 -> 'JE-20240531-'"""
    return f"{prefix}-{on_date:%Y%m%d}-"


def format_reference(series: str, sequence: int, padding: int = SEQUENCE_PADDING) -> str:
    return f"{series}{str(sequence).zfill(padding)}"


def parse_sequence(reference: Optional[str], series: str) -> int:
    """
    Sequence number of reference within series.

    Returns 0 when reference is missing, belongs to another series or has a
    non-numeric tail, so numbering restarts at 1.
    """
    if not reference or not reference.startswith(series):
        return 0
    tail = reference[len(series):]
    return int(tail) if tail.isdigit() else 0


def highest_sequence(references: Iterable[Optional[str]], series: str) -> int:
    return max((parse_sequence(r, series) for r in references), default=0)


def references_after(
    sequence: int,
    series: str,
    count: int = 1,
    padding: int = SEQUENCE_PADDING,
) -> List[str]:
    """Next `count` consecutive references after sequence number `sequence`."""
    if count < 1:
        raise ValueError("count must be at least 1")
    start = sequence + 1
    return [format_reference(series, n, padding) for n in range(start, start + count)]


def next_references(
    last_reference: Optional[str],
    series: str,
    count: int = 1,
    padding: int = SEQUENCE_PADDING,
) -> List[str]:
    """Next `count` consecutive references after last_reference."""
    return references_after(parse_sequence(last_reference, series), series, count, padding)


def is_valid_manual_reference(reference: str, prefix: str) -> bool:
    """
    False for references that use the automatic `{prefix}.` namespace without
    the `{prefix}.YYYY/MM/NNNN` shape. Anything outside the namespace is allowed.
    """
    if not reference.startswith(f"{prefix}."):
        return True
    return re.fullmatch(rf"{re.escape(prefix)}\.\d{{4}}/(0[1-9]|1[0-2])/\d+", reference) is not None


class ReferenceNumberService:
    """Generates commission, payout and journal entry numbers from existing documents."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _highest_sequence(self, column, series: str) -> int:
        result = await self.db.execute(select(column).where(column.like(f"{series}%")))
        return highest_sequence(result.scalars().all(), series)

    async def _next(self, column, series: str, count: int) -> List[str]:
        return references_after(await self._highest_sequence(column, series), series, count)

    async def next_commission_refs(self, on_date: date, count: int = 1) -> List[str]:
        series = monthly_series(settings.COMMISSION_REF_PREFIX, on_date)
        return await self._next(Commission.commission_ref_number, series, count)

    async def next_commission_ref(self, on_date: date) -> str:
        return (await self.next_commission_refs(on_date))[0]

    async def next_payout_refs(self, on_date: date, count: int = 1) -> List[str]:
        series = monthly_series(settings.COMMISSION_PAYOUT_REF_PREFIX, on_date)
        return await self._next(CommissionPayout.payout_ref_number, series, count)

    async def next_journal_entry_number(self, on_date: date) -> str:
        series = daily_series(JOURNAL_ENTRY_PREFIX, on_date)
        return (await self._next(JournalEntry.entry_number, series, 1))[0]

    async def preview(self) -> dict:
        """Next numbers for today without reserving anything."""
        today = date.today()
        return {
            "commission_ref_number": await self.next_commission_ref(today),
            "payout_ref_number": (await self.next_payout_refs(today))[0],
        }
