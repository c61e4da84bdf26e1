"""
Derived statistics.

Read-side aggregation over a company's documents using grouped SQL
queries. refresh_customer_stats is the only writer: it recomputes the
denormalized quote count and value stored on a customer and is called
after every quote create, update and delete.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bizdocs.models.customer import Customer
from bizdocs.models.expense import Expense, EXPENSE_PAYMENT_STATUSES
from bizdocs.models.invoice import Invoice
from bizdocs.models.purchase_order import PurchaseOrder
from bizdocs.models.quote import Quote
from bizdocs.models.sale import Sale
from bizdocs.models.user import User
from bizdocs.models.vendor import Vendor, VENDOR_STATUSES
from bizdocs.services.lifecycle import INVOICE_LIFECYCLE, PURCHASE_ORDER_LIFECYCLE, QUOTE_LIFECYCLE
from bizdocs.services.totals import to_money

logger = logging.getLogger(__name__)


def _money(value: Any) -> Decimal:
    return to_money(value if value is not None else 0)


async def _status_counts(db: AsyncSession, model, company_id: int, statuses) -> dict:
    """Count of rows per status, zero-filled for every known status."""
    result = await db.execute(
        select(model.status, func.count(model.id))
        .where(model.company_id == company_id)
        .group_by(model.status)
    )
    counts = {status: 0 for status in statuses}
    for status, count in result.all():
        counts[status] = count
    return counts


async def refresh_customer_stats(db: AsyncSession, customer: Customer) -> Customer:
    """Recompute total_quotes and total_value from the customer's quotes."""
    result = await db.execute(
        select(func.count(Quote.id), func.sum(Quote.total))
        .where(Quote.company_id == customer.company_id, Quote.customer_id == customer.id)
    )
    count, total = result.one()
    customer.total_quotes = count or 0
    customer.total_value = _money(total)
    await db.flush()
    logger.debug(f"Customer {customer.id} stats: {customer.total_quotes} quotes, {customer.total_value}")
    return customer


async def refresh_customer_stats_by_id(db: AsyncSession, company_id: int, customer_id: Optional[int]) -> None:
    if customer_id is None:
        return
    result = await db.execute(
        select(Customer).where(Customer.id == customer_id, Customer.company_id == company_id)
    )
    customer = result.scalar_one_or_none()
    if customer is not None:
        await refresh_customer_stats(db, customer)


async def customer_quote_stats(db: AsyncSession, company_id: int, customer_id: int) -> dict:
    """Quote totals for one customer."""
    result = await db.execute(
        select(
            func.count(Quote.id),
            func.sum(Quote.total),
            func.avg(Quote.total),
        ).where(Quote.company_id == company_id, Quote.customer_id == customer_id)
    )
    count, total, average = result.one()
    by_status = await db.execute(
        select(Quote.status, func.count(Quote.id))
        .where(Quote.company_id == company_id, Quote.customer_id == customer_id)
        .group_by(Quote.status)
    )
    counts = dict(by_status.all())
    return {
        "total_quotes": count or 0,
        "total_value": _money(total),
        "average_value": _money(average),
        "accepted_quotes": counts.get("accepted", 0),
        "pending_quotes": counts.get("sent", 0) + counts.get("viewed", 0),
    }


async def quote_stats(db: AsyncSession, company_id: int) -> dict:
    result = await db.execute(
        select(func.count(Quote.id), func.sum(Quote.total), func.avg(Quote.total))
        .where(Quote.company_id == company_id)
    )
    count, total, average = result.one()
    return {
        "total_quotes": count or 0,
        "total_value": _money(total),
        "average_value": _money(average),
        "by_status": await _status_counts(db, Quote, company_id, QUOTE_LIFECYCLE.states),
    }


async def invoice_stats(db: AsyncSession, company_id: int) -> dict:
    """Overview, status breakdown and the last twelve months of invoicing."""
    result = await db.execute(
        select(
            func.count(Invoice.id),
            func.sum(Invoice.total),
            func.sum(Invoice.paid_amount),
            func.avg(Invoice.total),
        ).where(Invoice.company_id == company_id)
    )
    count, total, paid, average = result.one()
    total_value = _money(total)
    paid_value = _money(paid)

    status_rows = await db.execute(
        select(Invoice.status, func.count(Invoice.id), func.sum(Invoice.total))
        .where(Invoice.company_id == company_id)
        .group_by(Invoice.status)
    )
    breakdown = {status: {"count": 0, "value": _money(0)} for status in INVOICE_LIFECYCLE.states}
    for status, status_count, value in status_rows.all():
        breakdown[status] = {"count": status_count, "value": _money(value)}

    year = extract("year", Invoice.created_at)
    month = extract("month", Invoice.created_at)
    monthly_rows = await db.execute(
        select(year, month, func.count(Invoice.id), func.sum(Invoice.total))
        .where(Invoice.company_id == company_id)
        .group_by(year, month)
        .order_by(year.desc(), month.desc())
        .limit(12)
    )

    return {
        "overview": {
            "total_invoices": count or 0,
            "total_value": total_value,
            "paid_value": paid_value,
            "outstanding_value": total_value - paid_value,
            "average_value": _money(average),
        },
        "status_breakdown": breakdown,
        "monthly_trends": [
            {"year": int(y), "month": int(m), "count": c, "value": _money(v)}
            for y, m, c, v in monthly_rows.all()
        ],
    }


async def purchase_order_stats(db: AsyncSession, company_id: int) -> dict:
    result = await db.execute(
        select(func.count(PurchaseOrder.id), func.sum(PurchaseOrder.total), func.avg(PurchaseOrder.total))
        .where(PurchaseOrder.company_id == company_id)
    )
    count, total, average = result.one()
    return {
        "total_orders": count or 0,
        "total_value": _money(total),
        "average_value": _money(average),
        "by_status": await _status_counts(db, PurchaseOrder, company_id, PURCHASE_ORDER_LIFECYCLE.states),
    }


async def vendor_stats(db: AsyncSession, company_id: int) -> dict:
    by_status = await _status_counts(db, Vendor, company_id, VENDOR_STATUSES)
    return {
        "total_vendors": sum(by_status.values()),
        "by_status": by_status,
    }


def _sale_window(start: Optional[date], end: Optional[date]) -> list:
    clauses = [Sale.status == "completed"]
    if start:
        clauses.append(Sale.sale_date >= datetime.combine(start, datetime.min.time()))
    if end:
        clauses.append(Sale.sale_date <= datetime.combine(end, datetime.max.time()))
    return clauses


async def sale_stats(
    db: AsyncSession,
    company_id: int,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> dict:
    """Revenue, cost and profit over completed sales."""
    result = await db.execute(
        select(
            func.count(Sale.id),
            func.sum(Sale.total),
            func.sum(Sale.total_cost),
            func.sum(Sale.total_profit),
            func.avg(Sale.total),
        ).where(Sale.company_id == company_id, *_sale_window(start, end))
    )
    count, revenue, cost, profit, average = result.one()
    return {
        "total_transactions": count or 0,
        "total_sales": _money(revenue),
        "total_cost": _money(cost),
        "total_profit": _money(profit),
        "average_sale_value": _money(average),
    }


async def daily_sales_report(
    db: AsyncSession,
    company_id: int,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[dict]:
    """Completed sales grouped per calendar day, oldest first."""
    year = extract("year", Sale.sale_date)
    month = extract("month", Sale.sale_date)
    day = extract("day", Sale.sale_date)
    result = await db.execute(
        select(year, month, day, func.count(Sale.id), func.sum(Sale.total), func.sum(Sale.total_profit))
        .where(Sale.company_id == company_id, *_sale_window(start, end))
        .group_by(year, month, day)
        .order_by(year, month, day)
    )
    return [
        {
            "date": date(int(y), int(m), int(d)),
            "total_transactions": c,
            "total_sales": _money(revenue),
            "total_profit": _money(profit),
        }
        for y, m, d, c, revenue, profit in result.all()
    ]


async def top_products(
    db: AsyncSession,
    company_id: int,
    start: Optional[date] = None,
    end: Optional[date] = None,
    limit: int = 10,
) -> list[dict]:
    """Best sellers by quantity across completed sales.

    Items live in a JSON column, so they are summed here rather than in SQL.
    """
    result = await db.execute(
        select(Sale.items).where(Sale.company_id == company_id, *_sale_window(start, end))
    )
    products: dict = {}
    for (items,) in result.all():
        for item in items or []:
            key = item.get("product_id") or item.get("product_name")
            entry = products.setdefault(key, {
                "product_id": item.get("product_id"),
                "product_name": item.get("product_name"),
                "product_sku": item.get("product_sku"),
                "total_quantity": Decimal("0"),
                "total_revenue": Decimal("0"),
                "total_profit": Decimal("0"),
            })
            entry["total_quantity"] += Decimal(item["quantity"])
            entry["total_revenue"] += Decimal(item["total"])
            if item.get("profit") is not None:
                entry["total_profit"] += Decimal(item["profit"])

    ranked = sorted(products.values(), key=lambda p: p["total_quantity"], reverse=True)
    return ranked[:limit]


async def expense_stats(
    db: AsyncSession,
    company_id: int,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> dict:
    window = [Expense.company_id == company_id]
    if start:
        window.append(Expense.expense_date >= start)
    if end:
        window.append(Expense.expense_date <= end)

    result = await db.execute(
        select(func.count(Expense.id), func.sum(Expense.amount), func.avg(Expense.amount)).where(*window)
    )
    count, total, average = result.one()

    status_rows = await db.execute(
        select(Expense.payment_status, func.count(Expense.id)).where(*window).group_by(Expense.payment_status)
    )
    by_payment_status = {status: 0 for status in EXPENSE_PAYMENT_STATUSES}
    by_payment_status.update(dict(status_rows.all()))

    category_total = func.sum(Expense.amount)
    category_rows = await db.execute(
        select(Expense.category, func.count(Expense.id), category_total)
        .where(*window)
        .group_by(Expense.category)
        .order_by(category_total.desc())
    )

    return {
        "total_expenses": count or 0,
        "total_amount": _money(total),
        "average_amount": _money(average),
        "by_payment_status": by_payment_status,
        "category_breakdown": [
            {"category": category, "count": c, "total_amount": _money(amount)}
            for category, c, amount in category_rows.all()
        ],
    }


async def company_stats(db: AsyncSession, company_id: int) -> dict:
    """Headline numbers for the company dashboard."""
    customers = await db.execute(
        select(func.count(Customer.id), func.sum(Customer.total_value))
        .where(Customer.company_id == company_id, Customer.is_active.is_(True))
    )
    customer_count, customer_value = customers.one()

    quotes = await db.execute(
        select(func.count(Quote.id), func.sum(Quote.total)).where(Quote.company_id == company_id)
    )
    quote_count, quote_value = quotes.one()
    accepted = await db.execute(
        select(func.count(Quote.id)).where(Quote.company_id == company_id, Quote.status == "accepted")
    )

    users = await db.execute(
        select(func.count(User.id)).where(User.company_id == company_id, User.is_active.is_(True))
    )

    return {
        "customers": {"total_customers": customer_count or 0, "total_value": _money(customer_value)},
        "quotes": {
            "total_quotes": quote_count or 0,
            "total_value": _money(quote_value),
            "accepted_quotes": accepted.scalar() or 0,
        },
        "users": {"total_users": users.scalar() or 0},
    }
