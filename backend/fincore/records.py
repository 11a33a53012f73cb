"""
Plain records handed to the analytics core by the record store.

The store itself (invoices, expenses, budgets) belongs to the wider product;
the core only sees these frozen shapes through `RecordStore`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Protocol, Tuple, Union


@dataclass(frozen=True)
class InvoiceRecord:
    id: str
    tenant_id: str
    issued_at: datetime
    total: float
    status: str
    description: Optional[str] = None


@dataclass(frozen=True)
class ExpenseRecord:
    id: str
    tenant_id: str
    occurred_at: datetime
    amount: float
    description: Optional[str] = None
    vendor: Optional[str] = None
    category: Optional[str] = None
    has_receipt: bool = False

    @property
    def day(self) -> date:
        return self.occurred_at.date()


@dataclass(frozen=True)
class BudgetRecord:
    id: str
    tenant_id: str
    category: str
    start_date: date
    end_date: date
    amount: float
    status: str


class RecordStore(Protocol):
    def paid_invoices(self, tenant_id: str, start: datetime, end: datetime) -> List[InvoiceRecord]:
        ...

    def invoices(self, tenant_id: str, start: datetime, end: datetime) -> List[InvoiceRecord]:
        ...

    def expenses(self, tenant_id: str, start: datetime, end: datetime) -> List[ExpenseRecord]:
        ...

    def approved_budgets(self, tenant_id: str) -> List[BudgetRecord]:
        ...


AsOf = Union[date, datetime, None]


def as_of_date(as_of: AsOf = None) -> date:
    if as_of is None:
        return datetime.now(timezone.utc).date()
    if isinstance(as_of, datetime):
        return as_of.date()
    return as_of


def window_bounds(as_of: AsOf, days: int) -> Tuple[datetime, datetime]:
    """[as_of - days, as_of] widened to whole days."""
    end_day = as_of_date(as_of)
    start_day = end_day - timedelta(days=days)
    return datetime.combine(start_day, time.min), datetime.combine(end_day, time.max)


def day_bounds(start_day: date, end_day: date) -> Tuple[datetime, datetime]:
    return datetime.combine(start_day, time.min), datetime.combine(end_day, time.max)
