"""
Sale service.

Sales are numbered with the per-day scan scheme (SALE-YYYYMMDD-NNNN).
A return is itself a sale, flagged is_return and linked to the sale it
reverses. Every returned line must match a line of the original, and
across all returns of a sale a line can never be returned more times
than it was sold.

Product lines move stock: a sale takes it unless the sale is cancelled,
and a return puts it back.
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from bizdocs.exceptions import ConflictError, IllegalTransitionError, ValidationError
from bizdocs.models.company import Company
from bizdocs.models.customer import Customer
from bizdocs.models.sale import Sale
from bizdocs.models.user import User
from bizdocs.schemas.sale import SaleCreate, SaleReturnCreate, SaleUpdate
from bizdocs.services.numbering import DocumentType, insert_with_scan_number
from bizdocs.services.product_service import move_stock, plain_quantity, resolve_sale_items
from bizdocs.services.record_store import RecordStore

logger = logging.getLogger(__name__)

MANUAL_SKU = "CUSTOM"

TAKE = -1
PUT_BACK = 1


def sales(db: AsyncSession, company_id: int) -> RecordStore[Sale]:
    return RecordStore(db, Sale, company_id)


def _dump_item(item) -> dict:
    data = item.model_dump(mode="json")
    if data.get("product_id") is None and not data.get("product_sku"):
        data["product_sku"] = MANUAL_SKU
    return data


def _holds_stock(status: Optional[str]) -> bool:
    return status != "cancelled"


async def create_sale(db: AsyncSession, company: Company, user: Optional[User], data: SaleCreate) -> Sale:
    items = [_dump_item(item) for item in data.items]
    await resolve_sale_items(db, company.id, items, check_stock=_holds_stock(data.status))

    sale = Sale(
        customer_id=data.customer_id,
        customer_name=data.customer_name,
        customer_email=data.customer_email,
        customer_phone=data.customer_phone,
        items=items,
        tax_rate=data.tax_rate if data.tax_rate is not None else company.tax_rate,
        discount=data.discount,
        discount_type=data.discount_type,
        payment_method=data.payment_method,
        payment_status=data.payment_status,
        status=data.status,
        notes=data.notes,
        is_return=False,
        created_by_id=user.id if user else None,
    )
    if data.sale_date is not None:
        sale.sale_date = data.sale_date

    # Snapshot the customer as it is at the time of sale
    if data.customer_id is not None:
        customer = await RecordStore(db, Customer, company.id).get(data.customer_id)
        sale.customer_name = customer.full_name
        sale.customer_email = customer.email
        sale.customer_phone = customer.phone

    sale.calculate_totals()
    await insert_with_scan_number(db, company.id, DocumentType.SALE, sale)
    if _holds_stock(sale.status):
        await move_stock(db, company.id, sale.items, TAKE)
    logger.info(f"Created sale {sale.sale_number} (total {sale.total}, profit {sale.total_profit})")
    return sale


async def update_sale(db: AsyncSession, company_id: int, sale_id: int, data: SaleUpdate) -> Sale:
    sale = await sales(db, company_id).get(sale_id)
    if sale.status == "completed":
        raise IllegalTransitionError("update", sale.status, "sale")

    old_items = [dict(item) for item in sale.items or []]
    held_stock = _holds_stock(sale.status)

    patch = data.model_dump(exclude_unset=True, exclude={"items"})
    for field, value in patch.items():
        if value is None and field in ("tax_rate", "discount", "discount_type", "payment_method", "payment_status", "status"):
            continue
        setattr(sale, field, value)

    holds_stock = _holds_stock(sale.status)
    if data.items is not None or held_stock != holds_stock:
        # Give back what the old lines took, then take for the new ones
        if held_stock:
            await move_stock(db, company_id, old_items, PUT_BACK)
        new_items = [_dump_item(item) for item in data.items] if data.items is not None else old_items
        await resolve_sale_items(db, company_id, new_items, check_stock=holds_stock)
        sale.items = new_items
        if holds_stock:
            await move_stock(db, company_id, new_items, TAKE)

    if data.items is not None or {"tax_rate", "discount", "discount_type"} & patch.keys():
        sale.calculate_totals()
    await db.flush()
    return sale


async def delete_sale(db: AsyncSession, company_id: int, sale_id: int) -> None:
    store = sales(db, company_id)
    sale = await store.get(sale_id)
    if sale.status == "completed":
        raise IllegalTransitionError("delete", sale.status, "sale")

    returns = await store.count(original_sale_id=sale.id)
    if returns:
        raise ConflictError(f"Sale {sale.sale_number} has {returns} return(s) recorded against it")

    if _holds_stock(sale.status):
        await move_stock(db, company_id, sale.items, PUT_BACK)
    await store.delete(sale.id)
    logger.info(f"Deleted sale {sale.sale_number}")


def _original_line(original_items: list, product_id: Optional[int], product_name: Optional[str]) -> Optional[int]:
    """Index of the original line for a returned line: by product_id, else by product_name."""
    if product_id is not None:
        for index, item in enumerate(original_items):
            if item.get("product_id") == product_id:
                return index
        return None
    if product_name:
        wanted = product_name.strip().lower()
        for index, item in enumerate(original_items):
            if (item.get("product_name") or "").strip().lower() == wanted:
                return index
    return None


async def _already_returned(db: AsyncSession, company_id: int, original: Sale) -> dict:
    """Quantity returned so far per original line index."""
    returned = defaultdict(Decimal)
    earlier = await sales(db, company_id).find_many(original_sale_id=original.id, is_return=True)
    for refund in earlier:
        for item in refund.items or []:
            index = _original_line(original.items or [], item.get("product_id"), item.get("product_name"))
            if index is not None:
                returned[index] += Decimal(str(item["quantity"]))
    return returned


async def create_return(
    db: AsyncSession,
    company: Company,
    user: Optional[User],
    original_sale_id: int,
    data: SaleReturnCreate,
) -> Sale:
    """Record a return against an existing sale and put its stock back."""
    original = await sales(db, company.id).get(original_sale_id)
    if original.is_return:
        raise IllegalTransitionError("return", "returned", "sale")
    if original.status == "cancelled":
        raise IllegalTransitionError("return", original.status, "sale")

    original_items = original.items or []
    returned = await _already_returned(db, company.id, original)
    requested = defaultdict(Decimal)

    errors = []
    items = []
    for position, return_item in enumerate(data.items):
        index = _original_line(original_items, return_item.product_id, return_item.product_name)
        if index is None:
            label = return_item.product_id if return_item.product_id is not None else return_item.product_name
            errors.append({
                "field": f"items.{position}",
                "message": f"Item not found in original sale: {label}",
                "type": "not_found",
            })
            continue

        match = original_items[index]
        sold = Decimal(str(match["quantity"]))
        remaining = max(Decimal("0"), sold - returned[index] - requested[index])
        requested[index] += return_item.quantity
        if return_item.quantity > remaining:
            errors.append({
                "field": f"items.{position}.quantity",
                "message": (
                    f"Return quantity cannot exceed original quantity for {match['product_name']} "
                    f"({plain_quantity(remaining)} left to return)"
                ),
                "type": "less_than_equal",
            })
            continue

        items.append({
            "product_id": match.get("product_id"),
            "product_name": match["product_name"],
            "product_sku": match.get("product_sku"),
            "description": match.get("description"),
            "quantity": str(return_item.quantity),
            "unit_price": str(return_item.unit_price if return_item.unit_price is not None else match["unit_price"]),
            "cost_price": match.get("cost_price"),
        })
    if errors:
        raise ValidationError("Invalid return items", errors=errors)

    refund = Sale(
        customer_id=original.customer_id,
        customer_name=original.customer_name,
        customer_email=original.customer_email,
        customer_phone=original.customer_phone,
        items=items,
        tax_rate=original.tax_rate,
        discount=Decimal("0"),
        discount_type="fixed",
        payment_method=data.payment_method or original.payment_method,
        payment_status="refunded",
        status="completed",
        is_return=True,
        original_sale_id=original.id,
        return_reason=data.reason,
        created_by_id=user.id if user else None,
    )
    refund.calculate_totals()
    await insert_with_scan_number(db, company.id, DocumentType.SALE, refund)
    await move_stock(db, company.id, refund.items, PUT_BACK)
    logger.info(f"Recorded return {refund.sale_number} against sale {original.sale_number}")
    return refund
