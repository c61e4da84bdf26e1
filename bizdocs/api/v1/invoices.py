"""
Invoices API - Invoices, payments and quote conversion.

Reads are open to every user of the company; writes need a manager or an
admin, and deleting an invoice needs an admin.
"""
from fastapi import APIRouter, status, Query
from typing import Optional

from bizdocs.api.deps import DbSession, CurrentUser, CurrentCompany, AdminUser, ManagerUser, Mailer
from bizdocs.models.invoice import Invoice
from bizdocs.schemas.invoice import (
    ConvertQuoteRequest,
    InvoiceCreate,
    InvoiceUpdate,
    InvoiceResponse,
    InvoiceListResponse,
    InvoiceSendResponse,
    PaymentCreate,
)
from bizdocs.schemas.types import StatsDict
from bizdocs.services import invoice_service, stats_service

router = APIRouter()


@router.get("/", response_model=InvoiceListResponse)
async def list_invoices(
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=500),
    customer_id: Optional[int] = None,
    status: Optional[str] = None,
):
    """List invoices with pagination and filtering."""
    filters = {}
    if customer_id:
        filters["customer_id"] = customer_id
    if status:
        filters["status"] = status

    store = invoice_service.invoices(db, current_user.company_id)
    total = await store.count(**filters)
    items = await store.find_many(
        order_by=[Invoice.created_at.desc(), Invoice.id.desc()],
        skip=(page - 1) * page_size,
        limit=page_size,
        **filters,
    )
    return InvoiceListResponse(items=items, total=total, page=page, page_size=page_size)


@router.get("/stats", response_model=StatsDict)
async def get_invoice_stats(db: DbSession, current_user: CurrentUser):
    return await stats_service.invoice_stats(db, current_user.company_id)


@router.post("/mark-overdue", response_model=InvoiceListResponse)
async def mark_overdue(db: DbSession, current_user: ManagerUser):
    """Move every sent invoice past its due date to overdue."""
    late = await invoice_service.mark_overdue_invoices(db, current_user.company_id)
    await db.commit()
    for invoice in late:
        await db.refresh(invoice)
    return InvoiceListResponse(items=late, total=len(late), page=1, page_size=max(len(late), 1))


@router.post(
    "/convert-from-quote/{quote_id}",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def convert_from_quote(
    quote_id: int,
    db: DbSession,
    current_user: ManagerUser,
    company: CurrentCompany,
    data: Optional[ConvertQuoteRequest] = None,
):
    """Raise an invoice from a sent, viewed or accepted quote."""
    due_date = data.due_date if data else None
    invoice = await invoice_service.convert_quote(db, company, quote_id, user=current_user, due_date=due_date)
    await db.commit()
    await db.refresh(invoice)
    return invoice


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(invoice_id: int, db: DbSession, current_user: CurrentUser):
    return await invoice_service.invoices(db, current_user.company_id).get(invoice_id)


@router.post("/", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_data: InvoiceCreate,
    db: DbSession,
    current_user: ManagerUser,
    company: CurrentCompany,
):
    invoice = await invoice_service.create_invoice(db, company, current_user, invoice_data)
    await db.commit()
    await db.refresh(invoice)
    return invoice


@router.put("/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: int,
    invoice_data: InvoiceUpdate,
    db: DbSession,
    current_user: ManagerUser,
):
    invoice = await invoice_service.update_invoice(db, current_user.company_id, invoice_id, invoice_data)
    await db.commit()
    await db.refresh(invoice)
    return invoice


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_invoice(invoice_id: int, db: DbSession, current_user: AdminUser):
    await invoice_service.delete_invoice(db, current_user.company_id, invoice_id)
    await db.commit()


@router.post("/{invoice_id}/send", response_model=InvoiceSendResponse)
async def send_invoice(
    invoice_id: int,
    db: DbSession,
    current_user: ManagerUser,
    company: CurrentCompany,
    email_service: Mailer,
):
    """Mark a draft invoice as sent and email it (best effort)."""
    invoice, email_result = await invoice_service.send_invoice(db, company, invoice_id, email_service)
    return InvoiceSendResponse(invoice=InvoiceResponse.model_validate(invoice), email=email_result)


@router.post("/{invoice_id}/payments", response_model=InvoiceResponse)
async def add_payment(
    invoice_id: int,
    payment: PaymentCreate,
    db: DbSession,
    current_user: ManagerUser,
):
    """Record a payment. The invoice becomes paid once it is fully covered."""
    invoice = await invoice_service.add_payment(db, current_user.company_id, invoice_id, payment)
    await db.commit()
    await db.refresh(invoice)
    return invoice


async def _transition(db, current_user, invoice_id: int, action: str) -> Invoice:
    invoice = await invoice_service.transition_invoice(db, current_user.company_id, invoice_id, action)
    await db.commit()
    await db.refresh(invoice)
    return invoice


@router.post("/{invoice_id}/cancel", response_model=InvoiceResponse)
async def cancel_invoice(invoice_id: int, db: DbSession, current_user: ManagerUser):
    return await _transition(db, current_user, invoice_id, "cancel")


@router.post("/{invoice_id}/mark-paid", response_model=InvoiceResponse)
async def mark_paid(invoice_id: int, db: DbSession, current_user: ManagerUser):
    return await _transition(db, current_user, invoice_id, "mark_paid")


@router.post("/{invoice_id}/mark-overdue", response_model=InvoiceResponse)
async def mark_invoice_overdue(invoice_id: int, db: DbSession, current_user: ManagerUser):
    return await _transition(db, current_user, invoice_id, "mark_overdue")
