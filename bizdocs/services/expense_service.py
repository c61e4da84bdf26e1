"""
Expense service.

Expenses use the per-day scan numbering (EXP-YYYYMMDD-NNNN). An expense
tied to a vendor snapshots the vendor's name, and approval is a one-shot
stamp of who approved it and when.
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from bizdocs.exceptions import IllegalTransitionError
from bizdocs.models.company import Company
from bizdocs.models.expense import Expense
from bizdocs.models.user import User
from bizdocs.models.vendor import Vendor
from bizdocs.schemas.expense import ExpenseCreate, ExpenseUpdate
from bizdocs.services.numbering import DocumentType, insert_with_scan_number
from bizdocs.services.record_store import RecordStore

logger = logging.getLogger(__name__)


def expenses(db: AsyncSession, company_id: int) -> RecordStore[Expense]:
    return RecordStore(db, Expense, company_id)


async def _vendor_name(db: AsyncSession, company_id: int, vendor_id: int) -> str:
    vendor = await RecordStore(db, Vendor, company_id).get(vendor_id)
    return vendor.name


async def create_expense(db: AsyncSession, company: Company, user: Optional[User], data: ExpenseCreate) -> Expense:
    expense = Expense(
        title=data.title,
        description=data.description,
        category=data.category,
        amount=data.amount,
        currency=data.currency or company.currency,
        payment_method=data.payment_method,
        payment_status=data.payment_status,
        vendor_id=data.vendor_id,
        vendor_name=data.vendor_name,
        expense_date=data.expense_date or date.today(),
        receipt_number=data.receipt_number,
        tags=list(data.tags),
        notes=data.notes,
        created_by_id=user.id if user else None,
    )
    if data.vendor_id is not None:
        expense.vendor_name = await _vendor_name(db, company.id, data.vendor_id)

    await insert_with_scan_number(db, company.id, DocumentType.EXPENSE, expense)
    logger.info(f"Created expense {expense.expense_number} ({expense.category}, {expense.amount})")
    return expense


async def update_expense(db: AsyncSession, company_id: int, expense_id: int, data: ExpenseUpdate) -> Expense:
    expense = await expenses(db, company_id).get(expense_id)
    patch = data.model_dump(exclude_unset=True)

    if patch.get("vendor_id") is not None and patch["vendor_id"] != expense.vendor_id:
        patch["vendor_name"] = await _vendor_name(db, company_id, patch["vendor_id"])
    elif "vendor_id" in patch and patch["vendor_id"] is None and "vendor_name" not in patch:
        # Unlinked from the vendor: drop its name snapshot too
        patch["vendor_name"] = None

    for field, value in patch.items():
        if value is None and field in ("title", "category", "amount", "currency", "expense_date", "tags"):
            continue
        setattr(expense, field, value)
    await db.flush()
    return expense


async def delete_expense(db: AsyncSession, company_id: int, expense_id: int) -> None:
    store = expenses(db, company_id)
    expense = await store.get(expense_id)
    await store.delete(expense.id)
    logger.info(f"Deleted expense {expense.expense_number}")


async def approve_expense(
    db: AsyncSession,
    company_id: int,
    expense_id: int,
    user: User,
    now: Optional[datetime] = None,
) -> Expense:
    expense = await expenses(db, company_id).get(expense_id)
    if expense.approved_by_id is not None:
        raise IllegalTransitionError("approve", "approved", "expense")
    expense.approved_by_id = user.id
    expense.approved_at = now or datetime.now(timezone.utc)
    await db.flush()
    logger.info(f"Expense {expense.expense_number} approved by user {user.id}")
    return expense
