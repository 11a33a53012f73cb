from __future__ import annotations

from datetime import datetime
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.fincore.models import Budget, Expense, Invoice
from backend.fincore.records import BudgetRecord, ExpenseRecord, InvoiceRecord

PAID_STATUS = "PAID"
APPROVED_STATUS = "APPROVED"


def _invoice_record(row: Invoice) -> InvoiceRecord:
    return InvoiceRecord(
        id=row.id,
        tenant_id=row.tenant_id,
        issued_at=row.issued_at,
        total=float(row.total or 0.0),
        status=row.status,
        description=row.description,
    )


def _expense_record(row: Expense) -> ExpenseRecord:
    return ExpenseRecord(
        id=row.id,
        tenant_id=row.tenant_id,
        occurred_at=row.occurred_at,
        amount=float(row.amount or 0.0),
        description=row.description,
        vendor=row.vendor,
        category=row.category,
        has_receipt=bool(row.receipt_url) or bool(row.attachments),
    )


def _budget_record(row: Budget) -> BudgetRecord:
    return BudgetRecord(
        id=row.id,
        tenant_id=row.tenant_id,
        category=row.category,
        start_date=row.start_date,
        end_date=row.end_date,
        amount=float(row.amount or 0.0),
        status=row.status,
    )


class SqlRecordStore:
    """`RecordStore` over the invoices/expenses/budgets tables."""

    def __init__(self, db: Session):
        self.db = db

    def _invoice_rows(self, tenant_id: str, start: datetime, end: datetime, *clauses) -> List[Invoice]:
        stmt = (
            select(Invoice)
            .where(
                Invoice.tenant_id == tenant_id,
                Invoice.issued_at >= start,
                Invoice.issued_at <= end,
                *clauses,
            )
            .order_by(Invoice.issued_at.asc(), Invoice.created_at.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def paid_invoices(self, tenant_id: str, start: datetime, end: datetime) -> List[InvoiceRecord]:
        rows = self._invoice_rows(tenant_id, start, end, Invoice.status == PAID_STATUS)
        return [_invoice_record(row) for row in rows]

    def invoices(self, tenant_id: str, start: datetime, end: datetime) -> List[InvoiceRecord]:
        return [_invoice_record(row) for row in self._invoice_rows(tenant_id, start, end)]

    def expenses(self, tenant_id: str, start: datetime, end: datetime) -> List[ExpenseRecord]:
        stmt = (
            select(Expense)
            .where(
                Expense.tenant_id == tenant_id,
                Expense.occurred_at >= start,
                Expense.occurred_at <= end,
            )
            .order_by(Expense.occurred_at.asc(), Expense.created_at.asc())
        )
        return [_expense_record(row) for row in self.db.execute(stmt).scalars().all()]

    def approved_budgets(self, tenant_id: str) -> List[BudgetRecord]:
        stmt = (
            select(Budget)
            .where(Budget.tenant_id == tenant_id, Budget.status == APPROVED_STATUS)
            .order_by(Budget.start_date.asc(), Budget.category.asc())
        )
        return [_budget_record(row) for row in self.db.execute(stmt).scalars().all()]
