"""
Invoice service.

Invoices are numbered when they are created (never lazily), so a quote
converted to an invoice and an invoice created directly follow the same
path. Payments are not a lifecycle action of their own: they append to
the payment list and trigger mark_paid once the invoice is covered.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from bizdocs.config import settings
from bizdocs.exceptions import IllegalTransitionError, ValidationError
from bizdocs.models.company import Company
from bizdocs.models.customer import Customer
from bizdocs.models.invoice import Invoice
from bizdocs.models.quote import Quote
from bizdocs.models.user import User
from bizdocs.schemas.invoice import InvoiceCreate, InvoiceUpdate, PaymentCreate
from bizdocs.services.email_service import EmailService, email_failure, send_invoice_email
from bizdocs.services.lifecycle import INVOICE_LIFECYCLE
from bizdocs.services.numbering import DocumentType, next_number
from bizdocs.services.record_store import RecordStore
from bizdocs.services.totals import to_money

logger = logging.getLogger(__name__)

# Quote statuses from which an invoice may be raised
CONVERTIBLE_QUOTE_STATUSES = ("sent", "viewed", "accepted")

# Invoices in these statuses are closed to edits and payments
CLOSED_STATUSES = ("paid", "cancelled")


def invoices(db: AsyncSession, company_id: int) -> RecordStore[Invoice]:
    return RecordStore(db, Invoice, company_id)


def default_due_date(today: Optional[date] = None) -> date:
    return (today or date.today()) + timedelta(days=settings.INVOICE_DUE_DAYS)


async def _customer(db: AsyncSession, company_id: int, customer_id: int) -> Customer:
    return await RecordStore(db, Customer, company_id).get(customer_id)


async def create_invoice(db: AsyncSession, company: Company, user: Optional[User], data: InvoiceCreate) -> Invoice:
    await _customer(db, company.id, data.customer_id)

    invoice = Invoice(
        customer_id=data.customer_id,
        title=data.title,
        description=data.description,
        items=[item.model_dump(mode="json") for item in data.items],
        tax_rate=data.tax_rate if data.tax_rate is not None else company.tax_rate,
        due_date=data.due_date or default_due_date(),
        terms=data.terms if data.terms is not None else company.terms,
        notes=data.notes,
        status="draft",
        payments=[],
        paid_amount=Decimal("0"),
        created_by_id=user.id if user else None,
    )
    invoice.calculate_totals()
    invoice.invoice_number = await next_number(db, company.id, DocumentType.INVOICE)
    await invoices(db, company.id).insert(invoice)
    logger.info(f"Created invoice {invoice.invoice_number} (total {invoice.total})")
    return invoice


async def update_invoice(db: AsyncSession, company_id: int, invoice_id: int, data: InvoiceUpdate) -> Invoice:
    invoice = await invoices(db, company_id).get(invoice_id)
    if invoice.status in CLOSED_STATUSES:
        raise IllegalTransitionError("update", invoice.status, "invoice")

    patch = data.model_dump(exclude_unset=True)
    if patch.get("customer_id") not in (None, invoice.customer_id):
        await _customer(db, company_id, patch["customer_id"])
    if "items" in patch:
        patch["items"] = [item.model_dump(mode="json") for item in data.items or []]

    for field, value in patch.items():
        if value is None and field in ("customer_id", "title", "tax_rate", "items"):
            continue
        setattr(invoice, field, value)

    if "items" in patch or "tax_rate" in patch:
        invoice.calculate_totals()
    await db.flush()
    return invoice


async def delete_invoice(db: AsyncSession, company_id: int, invoice_id: int) -> None:
    store = invoices(db, company_id)
    invoice = await store.get(invoice_id)

    # Unlink the source quote so it can be converted again
    if invoice.original_quote_id is not None:
        quote = await RecordStore(db, Quote, company_id).find_by_id(invoice.original_quote_id)
        if quote is not None and quote.converted_invoice_id == invoice.id:
            quote.converted_invoice_id = None

    await store.delete(invoice.id)
    logger.info(f"Deleted invoice {invoice.invoice_number}")


async def convert_quote(
    db: AsyncSession,
    company: Company,
    quote_id: int,
    user: Optional[User] = None,
    due_date: Optional[date] = None,
) -> Invoice:
    """Raise an invoice from a sent, viewed or accepted quote.

    Items are copied by value and totals recomputed; the quote and the
    invoice reference each other afterwards.
    """
    quote = await RecordStore(db, Quote, company.id).get(quote_id)
    if quote.status not in CONVERTIBLE_QUOTE_STATUSES or quote.converted_invoice_id is not None:
        raise IllegalTransitionError("convert", quote.status, "quote")

    invoice = Invoice(
        customer_id=quote.customer_id,
        title=quote.title,
        description=quote.description,
        items=[dict(item) for item in quote.items or []],
        tax_rate=quote.tax_rate,
        due_date=due_date or default_due_date(),
        terms=quote.terms,
        notes=quote.notes,
        status="draft",
        payments=[],
        paid_amount=Decimal("0"),
        original_quote_id=quote.id,
        created_by_id=user.id if user else None,
    )
    invoice.calculate_totals()
    invoice.invoice_number = await next_number(db, company.id, DocumentType.INVOICE)
    await invoices(db, company.id).insert(invoice)

    quote.converted_invoice_id = invoice.id
    await db.flush()
    logger.info(f"Converted quote {quote.quote_number} to invoice {invoice.invoice_number}")
    return invoice


async def add_payment(db: AsyncSession, company_id: int, invoice_id: int, data: PaymentCreate) -> Invoice:
    """Record a payment; the invoice becomes paid once payments cover the total."""
    invoice = await invoices(db, company_id).get(invoice_id)
    if invoice.status in CLOSED_STATUSES:
        raise IllegalTransitionError("add_payment", invoice.status, "invoice")
    if data.amount is None or data.amount <= 0:
        raise ValidationError(
            "Payment amount must be greater than 0",
            errors=[{"field": "amount", "message": "must be greater than 0", "type": "greater_than"}],
        )

    payment = {
        "amount": str(to_money(data.amount)),
        "payment_date": (data.payment_date or date.today()).isoformat(),
        "payment_method": data.payment_method,
        "notes": data.notes,
    }
    invoice.payments = [*(invoice.payments or []), payment]
    invoice.calculate_paid_amount()

    if invoice.paid_amount >= Decimal(str(invoice.total)):
        INVOICE_LIFECYCLE.apply(invoice, "mark_paid")
    await db.flush()

    logger.info(
        f"Payment of {payment['amount']} on invoice {invoice.invoice_number}: "
        f"paid {invoice.paid_amount} of {invoice.total}, status {invoice.status}"
    )
    return invoice


async def transition_invoice(db: AsyncSession, company_id: int, invoice_id: int, action: str) -> Invoice:
    """Apply cancel, mark_overdue or mark_paid."""
    invoice = await invoices(db, company_id).get(invoice_id)
    INVOICE_LIFECYCLE.apply(invoice, action)
    await db.flush()
    return invoice


async def mark_overdue_invoices(db: AsyncSession, company_id: int, today: Optional[date] = None) -> list[Invoice]:
    """Move every sent invoice past its due date to overdue."""
    today = today or date.today()
    store = invoices(db, company_id)
    late = await store.find_many(Invoice.due_date < today, status="sent")
    for invoice in late:
        INVOICE_LIFECYCLE.apply(invoice, "mark_overdue")
    await db.flush()
    return late


async def send_invoice(
    db: AsyncSession,
    company: Company,
    invoice_id: int,
    email_service: EmailService,
) -> tuple[Invoice, dict]:
    """Mark the invoice sent, commit, then email it (best effort)."""
    invoice = await invoices(db, company.id).get(invoice_id)
    INVOICE_LIFECYCLE.apply(invoice, "send")
    await db.commit()
    await db.refresh(invoice)

    customer = await RecordStore(db, Customer, company.id).find_by_id(invoice.customer_id)
    if customer is None:
        return invoice, email_failure("Customer not found")
    email_result = await send_invoice_email(email_service, invoice, customer, company)
    return invoice, email_result


def _invoice_date(invoice: Invoice) -> date:
    return invoice.created_at.date() if invoice.created_at else date.today()


def _ledger(invoice: Invoice) -> list[dict]:
    """The charge an invoice raises followed by each payment made on it."""
    names = [item.get("name") for item in invoice.items or [] if item.get("name")]
    rows = [{
        "entry_date": _invoice_date(invoice),
        "entry_type": "invoice",
        "invoice_id": invoice.id,
        "reference": invoice.invoice_number,
        "description": ", ".join(names) or invoice.title,
        "charge": to_money(invoice.total),
        "payment": Decimal("0.00"),
    }]
    for payment in invoice.payments or []:
        rows.append({
            "entry_date": date.fromisoformat(payment["payment_date"]),
            "entry_type": "payment",
            "invoice_id": invoice.id,
            "reference": invoice.invoice_number,
            "description": f"Payment ({payment.get('payment_method') or 'cash'})",
            "charge": Decimal("0.00"),
            "payment": to_money(payment["amount"]),
        })
    return rows


async def customer_statement(
    db: AsyncSession,
    company: Company,
    customer_id: int,
    start: date,
    end: date,
    today: Optional[date] = None,
) -> dict:
    """Statement of account: invoices and payments between start and end.

    Cancelled invoices are left out. Everything dated before start is
    rolled into the opening balance, and each entry carries the running
    balance after it.
    """
    if start > end:
        raise ValidationError(
            "Statement start date is after its end date",
            errors=[{"field": "start_date", "message": "must not be after end_date", "type": "date_range"}],
        )
    customer = await _customer(db, company.id, customer_id)
    billed = await invoices(db, company.id).find_many(
        Invoice.status != "cancelled",
        customer_id=customer.id,
        order_by=[Invoice.created_at, Invoice.id],
    )

    rows = [row for invoice in billed for row in _ledger(invoice)]
    # Charges before payments on the same day
    rows.sort(key=lambda row: (row["entry_date"], row["entry_type"] != "invoice"))

    opening = sum((row["charge"] - row["payment"] for row in rows if row["entry_date"] < start), Decimal("0"))
    balance = opening
    entries = []
    for row in rows:
        if not start <= row["entry_date"] <= end:
            continue
        balance += row["charge"] - row["payment"]
        entries.append({**row, "balance": to_money(balance)})

    total_charges = sum((entry["charge"] for entry in entries), Decimal("0"))
    total_payments = sum((entry["payment"] for entry in entries), Decimal("0"))
    return {
        "customer_id": customer.id,
        "customer_name": customer.full_name,
        "currency": company.currency,
        "start_date": start,
        "end_date": end,
        "statement_date": today or date.today(),
        "opening_balance": to_money(opening),
        "total_charges": to_money(total_charges),
        "total_payments": to_money(total_payments),
        "closing_balance": to_money(opening + total_charges - total_payments),
        "entries": entries,
    }
