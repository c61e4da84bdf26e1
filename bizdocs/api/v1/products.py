from fastapi import APIRouter, status, Query
from typing import Optional

from bizdocs.api.deps import DbSession, CurrentUser
from bizdocs.models.product import Product
from bizdocs.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductListResponse,
    StockAdjustment,
    StockStatus,
)
from bizdocs.services import product_service

router = APIRouter()


@router.get("/", response_model=ProductListResponse)
async def list_products(
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=500),
    search: Optional[str] = None,
    category: Optional[str] = None,
    stock_status: Optional[StockStatus] = None,
    is_active: Optional[bool] = True,
):
    """List products. Inactive (deleted) products are hidden unless is_active=false."""
    criteria = product_service.search_criteria(search) + product_service.stock_criteria(stock_status)
    if category:
        criteria.append(Product.category == category)
    if is_active is not None:
        criteria.append(Product.is_active == is_active)

    store = product_service.products(db, current_user.company_id)
    total = await store.count(*criteria)
    items = await store.find_many(
        *criteria,
        order_by=[Product.name, Product.id],
        skip=(page - 1) * page_size,
        limit=page_size,
    )
    return ProductListResponse(items=items, total=total, page=page, page_size=page_size)


# Fixed paths are declared before /{product_id}
@router.get("/categories", response_model=list[str])
async def list_categories(db: DbSession, current_user: CurrentUser):
    return await product_service.product_categories(db, current_user.company_id)


@router.get("/alerts/low-stock", response_model=list[ProductResponse])
async def low_stock(db: DbSession, current_user: CurrentUser):
    return await product_service.low_stock_products(db, current_user.company_id)


@router.get("/alerts/out-of-stock", response_model=list[ProductResponse])
async def out_of_stock(db: DbSession, current_user: CurrentUser):
    return await product_service.out_of_stock_products(db, current_user.company_id)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: int, db: DbSession, current_user: CurrentUser):
    return await product_service.products(db, current_user.company_id).get(product_id)


@router.post("/", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    db: DbSession,
    current_user: CurrentUser,
):
    """Create a product. SKUs are upper-cased and unique per company."""
    product = await product_service.create_product(db, current_user.company_id, current_user, product_data)
    await db.commit()
    await db.refresh(product)
    return product


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    product_data: ProductUpdate,
    db: DbSession,
    current_user: CurrentUser,
):
    product = await product_service.update_product(db, current_user.company_id, product_id, product_data)
    await db.commit()
    await db.refresh(product)
    return product


@router.patch("/{product_id}/stock", response_model=ProductResponse)
async def adjust_stock(
    product_id: int,
    adjustment: StockAdjustment,
    db: DbSession,
    current_user: CurrentUser,
):
    product = await product_service.adjust_stock(db, current_user.company_id, product_id, adjustment)
    await db.commit()
    await db.refresh(product)
    return product


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(product_id: int, db: DbSession, current_user: CurrentUser):
    """Soft delete: the product is deactivated so past sales still resolve."""
    await product_service.deactivate_product(db, current_user.company_id, product_id)
    await db.commit()
