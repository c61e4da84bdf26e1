from datetime import date
from fastapi import APIRouter, status, Query
from sqlalchemy import or_
from typing import Optional

from bizdocs.api.deps import DbSession, CurrentUser, CurrentCompany
from bizdocs.models.customer import Customer
from bizdocs.schemas.customer import (
    CustomerCreate,
    CustomerUpdate,
    CustomerResponse,
    CustomerListResponse,
)
from bizdocs.schemas.invoice import CustomerStatement
from bizdocs.schemas.types import StatsDict
from bizdocs.services import invoice_service, stats_service
from bizdocs.services.record_store import RecordStore

router = APIRouter()


def customers(db, current_user) -> RecordStore[Customer]:
    return RecordStore(db, Customer, current_user.company_id)


@router.get("/", response_model=CustomerListResponse)
async def list_customers(
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=500),
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
):
    """List customers with pagination and filtering."""
    criteria = []
    if search:
        criteria.append(or_(
            Customer.first_name.ilike(f"%{search}%"),
            Customer.last_name.ilike(f"%{search}%"),
            Customer.company_name.ilike(f"%{search}%"),
            Customer.email.ilike(f"%{search}%"),
            Customer.phone.ilike(f"%{search}%"),
        ))
    if is_active is not None:
        criteria.append(Customer.is_active == is_active)

    store = customers(db, current_user)
    total = await store.count(*criteria)
    items = await store.find_many(
        *criteria,
        order_by=[Customer.created_at.desc(), Customer.id.desc()],
        skip=(page - 1) * page_size,
        limit=page_size,
    )
    return CustomerListResponse(items=items, total=total, page=page, page_size=page_size)


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: int,
    db: DbSession,
    current_user: CurrentUser,
):
    """Get a single customer by ID."""
    return await customers(db, current_user).get(customer_id)


@router.get("/{customer_id}/stats", response_model=StatsDict)
async def get_customer_stats(
    customer_id: int,
    db: DbSession,
    current_user: CurrentUser,
):
    customer = await customers(db, current_user).get(customer_id)
    return await stats_service.customer_quote_stats(db, current_user.company_id, customer.id)


@router.get("/{customer_id}/statement", response_model=CustomerStatement)
async def get_customer_statement(
    customer_id: int,
    db: DbSession,
    company: CurrentCompany,
    start_date: date,
    end_date: date,
):
    """Statement of account: invoice charges and payments with a running balance."""
    return await invoice_service.customer_statement(db, company, customer_id, start_date, end_date)


@router.post("/", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    customer_data: CustomerCreate,
    db: DbSession,
    current_user: CurrentUser,
):
    """Create a new customer."""
    customer = await customers(db, current_user).insert(Customer(**customer_data.model_dump()))
    await db.commit()
    await db.refresh(customer)
    return customer


@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: int,
    customer_data: CustomerUpdate,
    db: DbSession,
    current_user: CurrentUser,
):
    """Update a customer. Only provided fields change."""
    update_data = customer_data.model_dump(exclude_unset=True)
    customer = await customers(db, current_user).update_by_id(customer_id, update_data)
    await db.commit()
    await db.refresh(customer)
    return customer


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(
    customer_id: int,
    db: DbSession,
    current_user: CurrentUser,
):
    """Soft-delete: the customer is deactivated so its documents stay intact."""
    await customers(db, current_user).update_by_id(customer_id, {"is_active": False})
    await db.commit()
