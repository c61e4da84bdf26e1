from datetime import date
from fastapi import APIRouter, status, Query
from typing import Optional

from bizdocs.api.deps import DbSession, CurrentUser, CurrentCompany, ManagerUser
from bizdocs.models.expense import Expense
from bizdocs.schemas.expense import (
    ExpenseCreate,
    ExpenseUpdate,
    ExpenseResponse,
    ExpenseListResponse,
)
from bizdocs.schemas.types import StatsDict
from bizdocs.services import expense_service, stats_service

router = APIRouter()


@router.get("/", response_model=ExpenseListResponse)
async def list_expenses(
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=500),
    category: Optional[str] = None,
    payment_status: Optional[str] = None,
    vendor_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    filters = {}
    if category:
        filters["category"] = category
    if payment_status:
        filters["payment_status"] = payment_status
    if vendor_id:
        filters["vendor_id"] = vendor_id
    criteria = []
    if start_date:
        criteria.append(Expense.expense_date >= start_date)
    if end_date:
        criteria.append(Expense.expense_date <= end_date)

    store = expense_service.expenses(db, current_user.company_id)
    total = await store.count(*criteria, **filters)
    items = await store.find_many(
        *criteria,
        order_by=[Expense.expense_date.desc(), Expense.id.desc()],
        skip=(page - 1) * page_size,
        limit=page_size,
        **filters,
    )
    return ExpenseListResponse(items=items, total=total, page=page, page_size=page_size)


@router.get("/stats", response_model=StatsDict)
async def get_expense_stats(
    db: DbSession,
    current_user: CurrentUser,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    return await stats_service.expense_stats(db, current_user.company_id, start_date, end_date)


@router.get("/{expense_id}", response_model=ExpenseResponse)
async def get_expense(expense_id: int, db: DbSession, current_user: CurrentUser):
    return await expense_service.expenses(db, current_user.company_id).get(expense_id)


@router.post("/", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    expense_data: ExpenseCreate,
    db: DbSession,
    current_user: CurrentUser,
    company: CurrentCompany,
):
    expense = await expense_service.create_expense(db, company, current_user, expense_data)
    await db.commit()
    await db.refresh(expense)
    return expense


@router.put("/{expense_id}", response_model=ExpenseResponse)
async def update_expense(
    expense_id: int,
    expense_data: ExpenseUpdate,
    db: DbSession,
    current_user: CurrentUser,
):
    expense = await expense_service.update_expense(db, current_user.company_id, expense_id, expense_data)
    await db.commit()
    await db.refresh(expense)
    return expense


@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense(expense_id: int, db: DbSession, current_user: CurrentUser):
    await expense_service.delete_expense(db, current_user.company_id, expense_id)
    await db.commit()


@router.post("/{expense_id}/approve", response_model=ExpenseResponse)
async def approve_expense(expense_id: int, db: DbSession, current_user: ManagerUser):
    expense = await expense_service.approve_expense(db, current_user.company_id, expense_id, current_user)
    await db.commit()
    await db.refresh(expense)
    return expense
