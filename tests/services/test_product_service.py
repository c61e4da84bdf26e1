"""
Tests for the product catalogue and manual stock adjustments.
"""

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from bizdocs.exceptions import ConflictError
from bizdocs.models.product import Product
from bizdocs.schemas.product import ProductCreate, ProductUpdate, StockAdjustment
from bizdocs.services import product_service


def _payload(**overrides) -> ProductCreate:
    data = {
        "name": "Desk Lamp",
        "sku": "lmp-01",
        "cost_price": Decimal("15"),
        "selling_price": Decimal("24"),
        "stock_quantity": Decimal("4"),
        "min_stock_level": Decimal("5"),
    }
    data.update(overrides)
    return ProductCreate(**data)


@pytest.mark.asyncio
async def test_create_upper_cases_sku(test_db: AsyncSession, company):
    product = await product_service.create_product(test_db, company.id, None, _payload())

    assert product.sku == "LMP-01"
    assert product.company_id == company.id
    assert product.is_active is True


@pytest.mark.asyncio
async def test_sku_unique_per_company(test_db: AsyncSession, company, other_company):
    await product_service.create_product(test_db, company.id, None, _payload())

    with pytest.raises(ConflictError):
        await product_service.create_product(test_db, company.id, None, _payload(sku="LMP-01"))

    elsewhere = await product_service.create_product(test_db, other_company.id, None, _payload())
    assert elsewhere.sku == "LMP-01"


@pytest.mark.asyncio
async def test_renaming_sku_onto_another_is_refused(test_db: AsyncSession, company, product):
    lamp = await product_service.create_product(test_db, company.id, None, _payload())

    with pytest.raises(ConflictError):
        await product_service.update_product(test_db, company.id, lamp.id, ProductUpdate(sku="tnr-001"))


def test_derived_stock_fields():
    product = Product(
        cost_price=Decimal("15"), selling_price=Decimal("24"),
        stock_quantity=Decimal("4"), min_stock_level=Decimal("5"), reorder_point=Decimal("4"),
    )

    assert product.stock_status == "low_stock"
    assert product.profit_margin == Decimal("60.00")
    assert product.needs_reorder is True

    product.stock_quantity = Decimal("0")
    assert product.stock_status == "out_of_stock"


@pytest.mark.asyncio
@pytest.mark.parametrize("operation, quantity, expected", [
    ("add", "5", Decimal("15")),
    ("subtract", "4", Decimal("6")),
    ("subtract", "40", Decimal("0")),
    ("set", "3", Decimal("3")),
])
async def test_adjust_stock(test_db: AsyncSession, company, product, operation, quantity, expected):
    await product_service.adjust_stock(
        test_db, company.id, product.id, StockAdjustment(operation=operation, quantity=Decimal(quantity)),
    )

    await test_db.refresh(product)
    assert product.stock_quantity == expected


@pytest.mark.asyncio
async def test_stock_alerts(test_db: AsyncSession, company, product):
    lamp = await product_service.create_product(test_db, company.id, None, _payload())
    empty = await product_service.create_product(
        test_db, company.id, None, _payload(name="Chair", sku="CHR-01", stock_quantity=Decimal("0")),
    )
    await product_service.create_product(
        test_db, company.id, None,
        _payload(name="Consulting", sku="SVC-01", stock_quantity=Decimal("0"), track_stock=False),
    )

    low = await product_service.low_stock_products(test_db, company.id)
    out = await product_service.out_of_stock_products(test_db, company.id)

    assert [p.id for p in low] == [empty.id, lamp.id]
    assert [p.id for p in out] == [empty.id]


@pytest.mark.asyncio
async def test_deactivated_products_leave_categories(test_db: AsyncSession, company, product):
    lamp = await product_service.create_product(test_db, company.id, None, _payload(category="lighting"))
    assert await product_service.product_categories(test_db, company.id) == ["consumables", "lighting"]

    await product_service.deactivate_product(test_db, company.id, lamp.id)

    assert await product_service.product_categories(test_db, company.id) == ["consumables"]
