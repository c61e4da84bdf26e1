"""
Tests for the aggregate statistics queries.
"""

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from bizdocs.schemas.expense import ExpenseCreate
from bizdocs.schemas.invoice import InvoiceCreate, PaymentCreate
from bizdocs.schemas.quote import QuoteCreate
from bizdocs.schemas.sale import SaleCreate, SaleItemIn
from bizdocs.schemas.types import LineItemIn
from bizdocs.services import (
    expense_service,
    invoice_service,
    quote_service,
    sale_service,
    stats_service,
)


def _line(price) -> list[LineItemIn]:
    return [LineItemIn(name="Service", quantity=Decimal("1"), unit_price=Decimal(str(price)))]


@pytest.mark.asyncio
async def test_quote_stats_zero_fill_statuses(test_db: AsyncSession, company, customer):
    await quote_service.create_quote(
        test_db, company, None, QuoteCreate(customer_id=customer.id, title="A", items=_line(100)),
    )
    await quote_service.create_quote(
        test_db, company, None, QuoteCreate(customer_id=customer.id, title="B", items=_line(200)),
    )

    stats = await stats_service.quote_stats(test_db, company.id)

    assert stats["total_quotes"] == 2
    assert stats["total_value"] == Decimal("330.00")
    assert stats["average_value"] == Decimal("165.00")
    assert stats["by_status"]["draft"] == 2
    assert stats["by_status"]["accepted"] == 0


@pytest.mark.asyncio
async def test_invoice_stats_outstanding(test_db: AsyncSession, company, customer):
    invoice = await invoice_service.create_invoice(
        test_db, company, None,
        InvoiceCreate(customer_id=customer.id, title="Audit", items=_line(100), tax_rate=Decimal("0")),
    )
    await invoice_service.add_payment(test_db, company.id, invoice.id, PaymentCreate(amount=Decimal("25")))

    stats = await stats_service.invoice_stats(test_db, company.id)

    assert stats["overview"]["total_invoices"] == 1
    assert stats["overview"]["paid_value"] == Decimal("25.00")
    assert stats["overview"]["outstanding_value"] == Decimal("75.00")
    assert stats["status_breakdown"]["draft"]["count"] == 1
    assert stats["status_breakdown"]["paid"]["count"] == 0
    assert len(stats["monthly_trends"]) == 1


@pytest.mark.asyncio
async def test_stats_are_scoped_to_company(test_db: AsyncSession, company, other_company, other_customer):
    await quote_service.create_quote(
        test_db, other_company, None,
        QuoteCreate(customer_id=other_customer.id, title="Elsewhere", items=_line(500)),
    )

    stats = await stats_service.quote_stats(test_db, company.id)

    assert stats["total_quotes"] == 0
    assert stats["total_value"] == Decimal("0")


@pytest.mark.asyncio
async def test_sale_reports(test_db: AsyncSession, company):
    items = [
        SaleItemIn(product_name="Toner", quantity=Decimal("3"),
                   unit_price=Decimal("30"), cost_price=Decimal("20")),
        SaleItemIn(product_name="Stapler", quantity=Decimal("1"),
                   unit_price=Decimal("15"), cost_price=Decimal("5")),
    ]
    await sale_service.create_sale(test_db, company, None, SaleCreate(items=items, tax_rate=Decimal("0")))
    await sale_service.create_sale(
        test_db, company, None, SaleCreate(items=items[:1], tax_rate=Decimal("0"), status="cancelled"),
    )

    stats = await stats_service.sale_stats(test_db, company.id)
    assert stats["total_transactions"] == 1
    assert stats["total_sales"] == Decimal("105.00")
    assert stats["total_profit"] == Decimal("40.00")

    daily = await stats_service.daily_sales_report(test_db, company.id)
    assert len(daily) == 1
    assert daily[0]["total_sales"] == Decimal("105.00")

    ranked = await stats_service.top_products(test_db, company.id)
    assert [product["product_name"] for product in ranked] == ["Toner", "Stapler"]
    assert ranked[0]["total_quantity"] == Decimal("3")
    assert ranked[0]["total_profit"] == Decimal("30.00")


@pytest.mark.asyncio
async def test_expense_category_breakdown(test_db: AsyncSession, company):
    for category, amount in [("travel", "120.00"), ("travel", "80.00"), ("utilities", "60.00")]:
        await expense_service.create_expense(
            test_db, company, None,
            ExpenseCreate(title="Expense", category=category, amount=Decimal(amount)),
        )

    stats = await stats_service.expense_stats(test_db, company.id)

    assert stats["total_expenses"] == 3
    assert stats["total_amount"] == Decimal("260.00")
    assert stats["by_payment_status"]["pending"] == 3
    assert stats["category_breakdown"][0] == {
        "category": "travel",
        "count": 2,
        "total_amount": Decimal("200.00"),
    }
