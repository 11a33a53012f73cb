from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List

from backend.fincore.records import (
    AsOf,
    ExpenseRecord,
    InvoiceRecord,
    RecordStore,
    day_bounds,
    window_bounds,
)


@dataclass(frozen=True)
class CashFlowPoint:
    date: date
    amount: float   # inflow - outflow for the day


def build_daily_cash_flow(
    paid_invoices: Iterable[InvoiceRecord],
    expenses: Iterable[ExpenseRecord],
) -> List[CashFlowPoint]:
    """
    Net cash flow per calendar day, oldest -> newest.

    Days without any record are left out rather than zero-filled so the
    regression is not pulled towards invented zero days.
    """
    daily: Dict[str, Dict[str, float]] = {}

    for inv in paid_invoices:
        key = inv.issued_at.date().isoformat()
        flow = daily.setdefault(key, {"inflow": 0.0, "outflow": 0.0})
        flow["inflow"] += float(inv.total)

    for exp in expenses:
        key = exp.occurred_at.date().isoformat()
        flow = daily.setdefault(key, {"inflow": 0.0, "outflow": 0.0})
        flow["outflow"] += float(exp.amount)

    return [
        CashFlowPoint(date=date.fromisoformat(key), amount=flow["inflow"] - flow["outflow"])
        for key, flow in sorted(daily.items())
    ]


def historical_cash_flow(
    store: RecordStore,
    tenant_id: str,
    days: int = 90,
    *,
    as_of: AsOf = None,
) -> List[CashFlowPoint]:
    start, end = window_bounds(as_of, days)
    return build_daily_cash_flow(
        store.paid_invoices(tenant_id, start, end),
        store.expenses(tenant_id, start, end),
    )


def cash_flow_between(
    store: RecordStore,
    tenant_id: str,
    start_day: date,
    end_day: date,
) -> List[CashFlowPoint]:
    start, end = day_bounds(start_day, end_day)
    return build_daily_cash_flow(
        store.paid_invoices(tenant_id, start, end),
        store.expenses(tenant_id, start, end),
    )
