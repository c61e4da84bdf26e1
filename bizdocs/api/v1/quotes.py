"""
Quotes API - Manage customer quotes.
"""
from fastapi import APIRouter, status, Query
from typing import Optional

from bizdocs.api.deps import DbSession, CurrentUser, CurrentCompany, Mailer
from bizdocs.models.quote import Quote
from bizdocs.schemas.quote import (
    QuoteCreate,
    QuoteUpdate,
    QuoteResponse,
    QuoteListResponse,
    QuoteRejectRequest,
    QuoteSendResponse,
)
from bizdocs.schemas.types import StatsDict
from bizdocs.services import quote_service, stats_service

router = APIRouter()


@router.get("/", response_model=QuoteListResponse)
async def list_quotes(
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=500),
    customer_id: Optional[int] = None,
    status: Optional[str] = None,
):
    """List quotes with pagination and filtering."""
    filters = {}
    if customer_id:
        filters["customer_id"] = customer_id
    if status:
        filters["status"] = status

    store = quote_service.quotes(db, current_user.company_id)
    total = await store.count(**filters)
    items = await store.find_many(
        order_by=[Quote.created_at.desc(), Quote.id.desc()],
        skip=(page - 1) * page_size,
        limit=page_size,
        **filters,
    )
    return QuoteListResponse(items=items, total=total, page=page, page_size=page_size)


@router.get("/stats/overview", response_model=StatsDict)
async def get_quote_stats(db: DbSession, current_user: CurrentUser):
    return await stats_service.quote_stats(db, current_user.company_id)


@router.get("/{quote_id}", response_model=QuoteResponse)
async def get_quote(quote_id: int, db: DbSession, current_user: CurrentUser):
    """Get a single quote by ID."""
    return await quote_service.quotes(db, current_user.company_id).get(quote_id)


@router.post("/", response_model=QuoteResponse, status_code=status.HTTP_201_CREATED)
async def create_quote(
    quote_data: QuoteCreate,
    db: DbSession,
    current_user: CurrentUser,
    company: CurrentCompany,
):
    """Create a draft quote. Number and totals are assigned server-side."""
    quote = await quote_service.create_quote(db, company, current_user, quote_data)
    await db.commit()
    await db.refresh(quote)
    return quote


@router.put("/{quote_id}", response_model=QuoteResponse)
async def update_quote(
    quote_id: int,
    quote_data: QuoteUpdate,
    db: DbSession,
    current_user: CurrentUser,
):
    quote = await quote_service.update_quote(db, current_user.company_id, quote_id, quote_data)
    await db.commit()
    await db.refresh(quote)
    return quote


@router.delete("/{quote_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_quote(quote_id: int, db: DbSession, current_user: CurrentUser):
    await quote_service.delete_quote(db, current_user.company_id, quote_id)
    await db.commit()


@router.post("/{quote_id}/duplicate", response_model=QuoteResponse, status_code=status.HTTP_201_CREATED)
async def duplicate_quote(
    quote_id: int,
    db: DbSession,
    current_user: CurrentUser,
    company: CurrentCompany,
):
    quote = await quote_service.duplicate_quote(db, company, current_user, quote_id)
    await db.commit()
    await db.refresh(quote)
    return quote


@router.post("/{quote_id}/send", response_model=QuoteSendResponse)
async def send_quote(
    quote_id: int,
    db: DbSession,
    current_user: CurrentUser,
    company: CurrentCompany,
    email_service: Mailer,
):
    """Mark a draft quote as sent and email it to the customer.

    The status change sticks even when the email fails; the email outcome
    is reported next to the quote.
    """
    quote, email_result = await quote_service.send_quote(db, company, quote_id, email_service)
    return QuoteSendResponse(quote=QuoteResponse.model_validate(quote), email=email_result)


async def _transition(db, current_user, quote_id: int, action: str, reason: Optional[str] = None) -> Quote:
    quote = await quote_service.transition_quote(db, current_user.company_id, quote_id, action, reason=reason)
    await db.commit()
    await db.refresh(quote)
    return quote


@router.post("/{quote_id}/view", response_model=QuoteResponse)
async def view_quote(quote_id: int, db: DbSession, current_user: CurrentUser):
    return await _transition(db, current_user, quote_id, "view")


@router.post("/{quote_id}/accept", response_model=QuoteResponse)
async def accept_quote(quote_id: int, db: DbSession, current_user: CurrentUser):
    return await _transition(db, current_user, quote_id, "accept")


@router.post("/{quote_id}/reject", response_model=QuoteResponse)
async def reject_quote(
    quote_id: int,
    data: QuoteRejectRequest,
    db: DbSession,
    current_user: CurrentUser,
):
    return await _transition(db, current_user, quote_id, "reject", reason=data.reason)


@router.post("/{quote_id}/expire", response_model=QuoteResponse)
async def expire_quote(quote_id: int, db: DbSession, current_user: CurrentUser):
    return await _transition(db, current_user, quote_id, "expire")
