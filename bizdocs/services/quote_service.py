"""
Quote service.

Create, update, delete and transition quotes. Every write that touches
items or the tax rate recomputes totals, and every write that can change
a customer's quote count or value refreshes that customer's stats.
Callers commit, except send_quote which commits the status change before
attempting the email.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from bizdocs.exceptions import NotFoundError
from bizdocs.models.company import Company
from bizdocs.models.customer import Customer
from bizdocs.models.invoice import Invoice
from bizdocs.models.quote import Quote
from bizdocs.models.user import User
from bizdocs.schemas.quote import QuoteCreate, QuoteUpdate
from bizdocs.services.email_service import EmailService, email_failure, send_quote_email
from bizdocs.services.lifecycle import QUOTE_LIFECYCLE
from bizdocs.services.numbering import DocumentType, next_number
from bizdocs.services.record_store import RecordStore
from bizdocs.services.stats_service import refresh_customer_stats, refresh_customer_stats_by_id

logger = logging.getLogger(__name__)

# Fields that force a totals recomputation when patched
TOTALS_FIELDS = ("items", "tax_rate")


def quotes(db: AsyncSession, company_id: int) -> RecordStore[Quote]:
    return RecordStore(db, Quote, company_id)


async def _active_customer(db: AsyncSession, company_id: int, customer_id: int) -> Customer:
    customer = await RecordStore(db, Customer, company_id).find_one(id=customer_id, is_active=True)
    if customer is None:
        raise NotFoundError("Customer", customer_id)
    return customer


async def create_quote(db: AsyncSession, company: Company, user: Optional[User], data: QuoteCreate) -> Quote:
    """Create a draft quote with computed totals and the next quote number."""
    customer = await _active_customer(db, company.id, data.customer_id)

    quote = Quote(
        customer_id=customer.id,
        title=data.title,
        description=data.description,
        items=[item.model_dump(mode="json") for item in data.items],
        tax_rate=data.tax_rate if data.tax_rate is not None else company.tax_rate,
        valid_until=data.valid_until or date.today() + timedelta(days=company.quote_validity_days),
        terms=data.terms if data.terms is not None else company.terms,
        notes=data.notes,
        status="draft",
        created_by_id=user.id if user else None,
    )
    # Validate before a number is consumed
    quote.calculate_totals()
    quote.quote_number = await next_number(db, company.id, DocumentType.QUOTE)
    await quotes(db, company.id).insert(quote)

    await refresh_customer_stats(db, customer)
    logger.info(f"Created quote {quote.quote_number} (total {quote.total}) for customer {customer.id}")
    return quote


async def update_quote(db: AsyncSession, company_id: int, quote_id: int, data: QuoteUpdate) -> Quote:
    quote = await quotes(db, company_id).get(quote_id)
    patch = data.model_dump(exclude_unset=True)
    old_customer_id = quote.customer_id

    if patch.get("customer_id") not in (None, old_customer_id):
        await _active_customer(db, company_id, patch["customer_id"])
    if "items" in patch:
        patch["items"] = [item.model_dump(mode="json") for item in data.items or []]

    for field, value in patch.items():
        if value is None and field in ("customer_id", "title", "tax_rate", "items"):
            continue
        setattr(quote, field, value)

    if any(field in patch for field in TOTALS_FIELDS):
        quote.calculate_totals()
    await db.flush()

    await refresh_customer_stats_by_id(db, company_id, quote.customer_id)
    if quote.customer_id != old_customer_id:
        await refresh_customer_stats_by_id(db, company_id, old_customer_id)
    return quote


async def delete_quote(db: AsyncSession, company_id: int, quote_id: int) -> None:
    store = quotes(db, company_id)
    quote = await store.get(quote_id)
    customer_id = quote.customer_id

    # The invoice outlives its source quote
    linked = await RecordStore(db, Invoice, company_id).find_many(original_quote_id=quote.id)
    for invoice in linked:
        invoice.original_quote_id = None

    await store.delete(quote.id)
    await refresh_customer_stats_by_id(db, company_id, customer_id)
    logger.info(f"Deleted quote {quote.quote_number}")


async def duplicate_quote(db: AsyncSession, company: Company, user: Optional[User], quote_id: int) -> Quote:
    """Copy a quote into a new draft with a fresh number."""
    original = await quotes(db, company.id).get(quote_id)
    copy = Quote(
        customer_id=original.customer_id,
        title=f"{original.title} (Copy)",
        description=original.description,
        items=[dict(item) for item in original.items or []],
        tax_rate=original.tax_rate,
        valid_until=original.valid_until,
        terms=original.terms,
        notes=original.notes,
        status="draft",
        created_by_id=user.id if user else None,
    )
    copy.calculate_totals()
    copy.quote_number = await next_number(db, company.id, DocumentType.QUOTE)
    await quotes(db, company.id).insert(copy)
    await refresh_customer_stats_by_id(db, company.id, copy.customer_id)
    return copy


async def transition_quote(
    db: AsyncSession,
    company_id: int,
    quote_id: int,
    action: str,
    reason: Optional[str] = None,
) -> Quote:
    """Apply view, accept, reject or expire."""
    quote = await quotes(db, company_id).get(quote_id)
    QUOTE_LIFECYCLE.apply(quote, action, reason=reason)
    await db.flush()
    return quote


async def send_quote(
    db: AsyncSession,
    company: Company,
    quote_id: int,
    email_service: EmailService,
) -> tuple[Quote, dict]:
    """Mark the quote sent, commit, then email it.

    The email is best effort: its result is returned next to the quote and
    a failure never reverts the status change.
    """
    quote = await quotes(db, company.id).get(quote_id)
    QUOTE_LIFECYCLE.apply(quote, "send")
    await db.commit()
    await db.refresh(quote)

    customer = await RecordStore(db, Customer, company.id).find_by_id(quote.customer_id)
    if customer is None:
        return quote, email_failure("Customer not found")
    email_result = await send_quote_email(email_service, quote, customer, company)
    return quote, email_result
