"""
Tests for the sales (/api/v1/sales) and expenses (/api/v1/expenses) endpoints.
"""
import pytest
from datetime import date
from decimal import Decimal
from httpx import AsyncClient

from tests.factories import ExpenseFactory, SaleFactory, SaleItemFactory

SALES_PREFIX = "/api/v1/sales"
EXPENSES_PREFIX = "/api/v1/expenses"


async def _sale(client: AsyncClient, **overrides) -> dict:
    response = await client.post(f"{SALES_PREFIX}/", json=SaleFactory(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


class TestSales:

    @pytest.mark.asyncio
    async def test_create_sale(self, authenticated_client: AsyncClient):
        sale = await _sale(
            authenticated_client,
            items=[SaleItemFactory(product_name="Desk Lamp", quantity="2")],
            tax_rate="0",
        )

        assert sale["sale_number"] == f"SALE-{date.today():%Y%m%d}-0001"
        assert Decimal(sale["total"]) == Decimal("40")
        assert Decimal(sale["total_cost"]) == Decimal("24")
        assert Decimal(sale["total_profit"]) == Decimal("16")
        assert sale["is_return"] is False

    @pytest.mark.asyncio
    async def test_sale_needs_items(self, authenticated_client: AsyncClient):
        response = await authenticated_client.post(f"{SALES_PREFIX}/", json=SaleFactory(items=[]))
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_return_flow(self, authenticated_client: AsyncClient, product):
        item = SaleItemFactory(product_id=product.id, quantity="3")
        sale = await _sale(authenticated_client, items=[item], tax_rate="0")
        assert sale["items"][0]["product_sku"] == "TNR-001"

        too_many = await authenticated_client.post(
            f"{SALES_PREFIX}/{sale['id']}/return",
            json={"items": [{"product_id": product.id, "quantity": "4"}]},
        )
        assert too_many.status_code == 422
        assert too_many.json()["errors"][0]["field"] == "items.0.quantity"

        refund = await authenticated_client.post(
            f"{SALES_PREFIX}/{sale['id']}/return",
            json={"items": [{"product_id": product.id, "quantity": "1"}], "reason": "Wrong colour"},
        )
        assert refund.status_code == 201
        assert refund.json()["is_return"] is True
        assert refund.json()["original_sale_id"] == sale["id"]
        assert Decimal(refund.json()["total"]) == Decimal("20")

        returns = await authenticated_client.get(f"{SALES_PREFIX}/", params={"is_return": True})
        assert returns.json()["total"] == 1

        stock = await authenticated_client.get(f"/api/v1/products/{product.id}")
        assert Decimal(stock.json()["stock_quantity"]) == Decimal("8")

    @pytest.mark.asyncio
    async def test_repeated_returns_stop_at_quantity_sold(self, authenticated_client: AsyncClient, product):
        sale = await _sale(authenticated_client, items=[SaleItemFactory(product_id=product.id, quantity="2")])
        url = f"{SALES_PREFIX}/{sale['id']}/return"

        doubled = await authenticated_client.post(url, json={"items": [
            {"product_id": product.id, "quantity": "2"},
            {"product_id": product.id, "quantity": "2"},
        ]})
        assert doubled.status_code == 422
        assert doubled.json()["errors"][0]["field"] == "items.1.quantity"

        first = await authenticated_client.post(url, json={"items": [{"product_id": product.id, "quantity": "2"}]})
        assert first.status_code == 201

        second = await authenticated_client.post(url, json={"items": [{"product_id": product.id, "quantity": "2"}]})
        assert second.status_code == 422
        assert second.json()["errors"][0]["field"] == "items.0.quantity"

    @pytest.mark.asyncio
    async def test_insufficient_stock(self, authenticated_client: AsyncClient, product):
        response = await authenticated_client.post(
            f"{SALES_PREFIX}/", json=SaleFactory(items=[SaleItemFactory(product_id=product.id, quantity="11")]),
        )

        assert response.status_code == 422
        assert response.json()["errors"][0]["message"].startswith("Insufficient stock for Toner Cartridge")

    @pytest.mark.asyncio
    async def test_sale_with_returns_cannot_be_deleted(self, authenticated_client: AsyncClient, product):
        sale = await _sale(
            authenticated_client, items=[SaleItemFactory(product_id=product.id)], status="returned",
        )
        await authenticated_client.post(
            f"{SALES_PREFIX}/{sale['id']}/return", json={"items": [{"product_id": product.id, "quantity": "1"}]},
        )

        response = await authenticated_client.delete(f"{SALES_PREFIX}/{sale['id']}")

        assert response.status_code == 409
        assert response.json()["code"] == "RES_003"

    @pytest.mark.asyncio
    async def test_completed_sale_cannot_be_deleted(self, authenticated_client: AsyncClient):
        sale = await _sale(authenticated_client)

        response = await authenticated_client.delete(f"{SALES_PREFIX}/{sale['id']}")

        assert response.status_code == 400
        assert response.json()["code"] == "BIZ_004"

    @pytest.mark.asyncio
    async def test_reports(self, authenticated_client: AsyncClient):
        await _sale(authenticated_client, items=[SaleItemFactory(product_name="Toner", quantity="5")])
        await _sale(authenticated_client, items=[SaleItemFactory(product_name="Paper", quantity="1")])

        stats = await authenticated_client.get(f"{SALES_PREFIX}/stats")
        assert stats.json()["total_transactions"] == 2

        top = await authenticated_client.get(f"{SALES_PREFIX}/reports/top-products", params={"limit": 1})
        assert top.status_code == 200
        assert [product["product_name"] for product in top.json()] == ["Toner"]

        daily = await authenticated_client.get(f"{SALES_PREFIX}/reports/daily")
        assert daily.status_code == 200
        assert sum(day["total_transactions"] for day in daily.json()) == 2


class TestExpenses:

    @pytest.mark.asyncio
    async def test_create_with_vendor(self, authenticated_client: AsyncClient, vendor):
        response = await authenticated_client.post(
            f"{EXPENSES_PREFIX}/", json=ExpenseFactory(vendor_id=vendor.id, amount="120.00"),
        )

        assert response.status_code == 201
        expense = response.json()
        assert expense["expense_number"] == f"EXP-{date.today():%Y%m%d}-0001"
        assert expense["vendor_name"] == "Paper Supply Co"
        assert expense["currency"] == "USD"

    @pytest.mark.asyncio
    async def test_amount_must_be_positive(self, authenticated_client: AsyncClient):
        response = await authenticated_client.post(f"{EXPENSES_PREFIX}/", json=ExpenseFactory(amount="0"))
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_approve_needs_manager(
        self, authenticated_client: AsyncClient, test_user, headers_for,
    ):
        expense = (await authenticated_client.post(f"{EXPENSES_PREFIX}/", json=ExpenseFactory())).json()
        url = f"{EXPENSES_PREFIX}/{expense['id']}/approve"

        denied = await authenticated_client.post(url, headers=headers_for(test_user))
        assert denied.status_code == 403

        approved = await authenticated_client.post(url)
        assert approved.status_code == 200
        assert approved.json()["approved_by_id"] is not None

        twice = await authenticated_client.post(url)
        assert twice.status_code == 400

    @pytest.mark.asyncio
    async def test_filters_and_stats(self, authenticated_client: AsyncClient):
        await authenticated_client.post(f"{EXPENSES_PREFIX}/", json=ExpenseFactory(category="travel", amount="80.00"))
        await authenticated_client.post(f"{EXPENSES_PREFIX}/", json=ExpenseFactory(category="rent", amount="900.00"))

        travel = await authenticated_client.get(f"{EXPENSES_PREFIX}/", params={"category": "travel"})
        assert travel.json()["total"] == 1

        stats = await authenticated_client.get(f"{EXPENSES_PREFIX}/stats")
        assert Decimal(stats.json()["total_amount"]) == Decimal("980")
        assert stats.json()["category_breakdown"][0]["category"] == "rent"
