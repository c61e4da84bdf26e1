"""
Purchase order service.

The client of an order is resolved once, when the order is written: the
company variant snapshots the tenant's own name and email, the customer
variant must point at a customer of the same company.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from bizdocs.exceptions import IllegalTransitionError
from bizdocs.models.company import Company
from bizdocs.models.customer import Customer
from bizdocs.models.purchase_order import PurchaseOrder
from bizdocs.models.user import User
from bizdocs.models.vendor import Vendor
from bizdocs.schemas.purchase_order import (
    CompanyClient,
    CustomerClient,
    PurchaseOrderCreate,
    PurchaseOrderUpdate,
)
from bizdocs.services.lifecycle import PURCHASE_ORDER_LIFECYCLE
from bizdocs.services.numbering import DocumentType, next_number
from bizdocs.services.record_store import RecordStore

logger = logging.getLogger(__name__)

# Only orders that have not been confirmed can be edited or deleted
EDITABLE_STATUSES = ("draft", "sent")


def purchase_orders(db: AsyncSession, company_id: int) -> RecordStore[PurchaseOrder]:
    return RecordStore(db, PurchaseOrder, company_id, resource="Purchase order")


async def resolve_client(db: AsyncSession, company: Company, client) -> dict:
    """Column values for a CompanyClient or CustomerClient."""
    if isinstance(client, CustomerClient):
        customer = await RecordStore(db, Customer, company.id).get(client.customer_id)
        return {
            "client_kind": "customer",
            "client_customer_id": customer.id,
            "client_name": customer.company_name or customer.full_name,
            "client_email": customer.email,
        }
    if isinstance(client, CompanyClient):
        return {
            "client_kind": "company",
            "client_customer_id": None,
            "client_name": company.name,
            "client_email": company.email,
        }
    raise TypeError(f"Unsupported client reference: {client!r}")


async def create_purchase_order(
    db: AsyncSession,
    company: Company,
    user: Optional[User],
    data: PurchaseOrderCreate,
) -> PurchaseOrder:
    await RecordStore(db, Vendor, company.id).get(data.vendor_id)
    client = await resolve_client(db, company, data.client)

    po = PurchaseOrder(
        vendor_id=data.vendor_id,
        title=data.title,
        description=data.description,
        items=[item.model_dump(mode="json") for item in data.items],
        tax_rate=data.tax_rate if data.tax_rate is not None else company.tax_rate,
        priority=data.priority,
        expected_delivery_date=data.expected_delivery_date,
        payment_terms=data.payment_terms,
        terms=data.terms,
        notes=data.notes,
        status="draft",
        created_by_id=user.id if user else None,
        **client,
    )
    po.calculate_totals()
    po.po_number = await next_number(db, company.id, DocumentType.PURCHASE_ORDER)
    await purchase_orders(db, company.id).insert(po)
    logger.info(f"Created purchase order {po.po_number} for vendor {po.vendor_id}")
    return po


async def update_purchase_order(
    db: AsyncSession,
    company: Company,
    po_id: int,
    data: PurchaseOrderUpdate,
) -> PurchaseOrder:
    po = await purchase_orders(db, company.id).get(po_id)
    if po.status not in EDITABLE_STATUSES:
        raise IllegalTransitionError("update", po.status, "purchase order")

    patch = data.model_dump(exclude_unset=True, exclude={"client", "items"})
    if patch.get("vendor_id") not in (None, po.vendor_id):
        await RecordStore(db, Vendor, company.id).get(patch["vendor_id"])
    for field, value in patch.items():
        if value is None and field in ("vendor_id", "title", "tax_rate", "priority"):
            continue
        setattr(po, field, value)

    if data.client is not None:
        for field, value in (await resolve_client(db, company, data.client)).items():
            setattr(po, field, value)
    if data.items is not None:
        po.items = [item.model_dump(mode="json") for item in data.items]

    if data.items is not None or "tax_rate" in patch:
        po.calculate_totals()
    await db.flush()
    return po


async def delete_purchase_order(db: AsyncSession, company_id: int, po_id: int) -> None:
    store = purchase_orders(db, company_id)
    po = await store.get(po_id)
    if po.status not in EDITABLE_STATUSES:
        raise IllegalTransitionError("delete", po.status, "purchase order")
    await store.delete(po.id)


async def transition_purchase_order(
    db: AsyncSession,
    company_id: int,
    po_id: int,
    action: str,
    approved_by: Optional[str] = None,
) -> PurchaseOrder:
    """Apply send, confirm, start, complete or cancel."""
    po = await purchase_orders(db, company_id).get(po_id)
    PURCHASE_ORDER_LIFECYCLE.apply(po, action, actor=approved_by)
    await db.flush()
    return po
