"""
Product service.

Catalogue CRUD plus the stock movements driven by sales. A sale line that
names a product_id is resolved against the company's active products:
missing name, SKU and cost price are filled from the product, and the
quantity is checked against stock on hand. Products that do not track
stock are never checked or moved.

Stock changes go through RecordStore.atomic_increment, so two sales of the
same product never lose an update.
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bizdocs.exceptions import ConflictError, NotFoundError, ValidationError
from bizdocs.models.product import Product
from bizdocs.models.user import User
from bizdocs.schemas.product import ProductCreate, ProductUpdate, StockAdjustment
from bizdocs.services.record_store import RecordStore

logger = logging.getLogger(__name__)


def products(db: AsyncSession, company_id: int) -> RecordStore[Product]:
    return RecordStore(db, Product, company_id)


def plain_quantity(value: Decimal) -> str:
    """Decimal('10.000') -> '10'"""
    return format(value.normalize(), "f")


def stock_criteria(stock_status: Optional[str]) -> list:
    if stock_status == "out_of_stock":
        return [Product.stock_quantity <= 0]
    if stock_status == "low_stock":
        return [Product.stock_quantity > 0, Product.stock_quantity <= Product.min_stock_level]
    if stock_status == "in_stock":
        return [Product.stock_quantity > Product.min_stock_level]
    return []


def search_criteria(search: Optional[str]) -> list:
    if not search:
        return []
    return [or_(
        Product.name.ilike(f"%{search}%"),
        Product.sku.ilike(f"%{search}%"),
        Product.description.ilike(f"%{search}%"),
        Product.category.ilike(f"%{search}%"),
    )]


async def _require_unique_sku(db: AsyncSession, company_id: int, sku: str, exclude_id: Optional[int] = None) -> None:
    criteria = [Product.id != exclude_id] if exclude_id is not None else []
    if await products(db, company_id).find_one(*criteria, sku=sku) is not None:
        raise ConflictError(f"SKU {sku} already exists")


async def create_product(db: AsyncSession, company_id: int, user: Optional[User], data: ProductCreate) -> Product:
    await _require_unique_sku(db, company_id, data.sku)
    product = Product(**data.model_dump(), is_active=True, created_by_id=user.id if user else None)
    await products(db, company_id).insert(product)
    logger.info(f"Created product {product.sku} with {product.stock_quantity} in stock")
    return product


async def update_product(db: AsyncSession, company_id: int, product_id: int, data: ProductUpdate) -> Product:
    store = products(db, company_id)
    product = await store.get(product_id)
    patch = data.model_dump(exclude_unset=True)

    if patch.get("sku") and patch["sku"] != product.sku:
        await _require_unique_sku(db, company_id, patch["sku"], exclude_id=product.id)

    for field, value in patch.items():
        if value is None and field in ("name", "sku", "unit", "cost_price", "selling_price", "track_stock", "is_active"):
            continue
        setattr(product, field, value)
    await db.flush()
    return product


async def deactivate_product(db: AsyncSession, company_id: int, product_id: int) -> Product:
    """Soft delete: past sales keep pointing at the product."""
    return await products(db, company_id).update_by_id(product_id, {"is_active": False})


async def adjust_stock(db: AsyncSession, company_id: int, product_id: int, data: StockAdjustment) -> Product:
    """Add, subtract or set stock by hand. Stock never goes below zero."""
    store = products(db, company_id)
    product = await store.get(product_id)
    current = Decimal(str(product.stock_quantity or 0))

    if data.operation == "add":
        target = current + data.quantity
    elif data.operation == "subtract":
        target = max(Decimal("0"), current - data.quantity)
    else:
        target = data.quantity

    await store.atomic_increment(product.id, "stock_quantity", target - current)
    logger.info(f"Stock of {product.sku}: {data.operation} {data.quantity} -> {target}")
    return product


async def low_stock_products(db: AsyncSession, company_id: int) -> list[Product]:
    return await products(db, company_id).find_many(
        Product.stock_quantity <= Product.min_stock_level,
        is_active=True,
        track_stock=True,
        order_by=[Product.stock_quantity, Product.name],
    )


async def out_of_stock_products(db: AsyncSession, company_id: int) -> list[Product]:
    return await products(db, company_id).find_many(
        Product.stock_quantity <= 0,
        is_active=True,
        track_stock=True,
        order_by=[Product.name],
    )


async def product_categories(db: AsyncSession, company_id: int) -> list[str]:
    result = await db.execute(
        select(Product.category)
        .where(Product.company_id == company_id, Product.is_active.is_(True), Product.category.is_not(None))
        .distinct()
        .order_by(Product.category)
    )
    return [category for (category,) in result.all()]


async def resolve_sale_items(
    db: AsyncSession,
    company_id: int,
    items: list[dict],
    check_stock: bool = True,
) -> list[dict]:
    """Fill product lines from the catalogue and check stock on hand.

    Quantities of lines that share a product are added up before the
    check, which is skipped when check_stock is False. Raises
    NotFoundError for an unknown or inactive product and ValidationError
    for a manual line without a name or a shortfall.
    """
    store = products(db, company_id)
    errors = []
    wanted: dict = defaultdict(Decimal)
    first_line: dict = {}
    catalogue: dict = {}

    for index, item in enumerate(items):
        product_id = item.get("product_id")
        if product_id is None:
            if not (item.get("product_name") or "").strip():
                errors.append({
                    "field": f"items.{index}.product_name",
                    "message": "Manual item requires product_name",
                    "type": "missing",
                })
            continue

        product = catalogue.get(product_id)
        if product is None:
            product = await store.find_one(id=product_id, is_active=True)
            if product is None:
                raise NotFoundError("Product", product_id)
            catalogue[product_id] = product

        item["product_name"] = item.get("product_name") or product.name
        item["product_sku"] = item.get("product_sku") or product.sku
        if item.get("cost_price") is None:
            item["cost_price"] = str(product.cost_price)

        wanted[product_id] += Decimal(str(item["quantity"]))
        first_line.setdefault(product_id, index)

    for product_id, quantity in wanted.items():
        product = catalogue[product_id]
        available = Decimal(str(product.stock_quantity or 0))
        if check_stock and product.track_stock and available < quantity:
            errors.append({
                "field": f"items.{first_line[product_id]}.quantity",
                "message": f"Insufficient stock for {product.name}. Available: {plain_quantity(available)}",
                "type": "insufficient_stock",
            })

    if errors:
        raise ValidationError("Invalid sale items", errors=errors)
    return items


async def move_stock(db: AsyncSession, company_id: int, items: list[dict], direction: int) -> None:
    """Take (direction -1) or put back (+1) the quantities of product lines.

    Lines for products that no longer exist or do not track stock are
    skipped. Removal never takes a product below zero.
    """
    store = products(db, company_id)
    for item in items or []:
        if item.get("product_id") is None:
            continue
        product = await store.find_by_id(item["product_id"])
        if product is None or not product.track_stock:
            continue

        delta = Decimal(str(item["quantity"])) * direction
        if direction < 0:
            delta = max(delta, -Decimal(str(product.stock_quantity or 0)))
        new_level = await store.atomic_increment(product.id, "stock_quantity", delta)
        logger.debug(f"Stock of {product.sku} moved by {delta} to {new_level}")
