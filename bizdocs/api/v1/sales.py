from datetime import date
from fastapi import APIRouter, status, Query
from typing import Optional

from bizdocs.api.deps import DbSession, CurrentUser, CurrentCompany
from bizdocs.models.sale import Sale
from bizdocs.schemas.sale import (
    SaleCreate,
    SaleUpdate,
    SaleResponse,
    SaleListResponse,
    SaleReturnCreate,
)
from bizdocs.schemas.types import StatsDict
from bizdocs.services import sale_service, stats_service

router = APIRouter()


@router.get("/", response_model=SaleListResponse)
async def list_sales(
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=500),
    customer_id: Optional[int] = None,
    status: Optional[str] = None,
    is_return: Optional[bool] = None,
):
    filters = {}
    if customer_id:
        filters["customer_id"] = customer_id
    if status:
        filters["status"] = status
    if is_return is not None:
        filters["is_return"] = is_return

    store = sale_service.sales(db, current_user.company_id)
    total = await store.count(**filters)
    items = await store.find_many(
        order_by=[Sale.sale_date.desc(), Sale.id.desc()],
        skip=(page - 1) * page_size,
        limit=page_size,
        **filters,
    )
    return SaleListResponse(items=items, total=total, page=page, page_size=page_size)


@router.get("/stats", response_model=StatsDict)
async def get_sale_stats(
    db: DbSession,
    current_user: CurrentUser,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    return await stats_service.sale_stats(db, current_user.company_id, start_date, end_date)


@router.get("/reports/daily", response_model=list[StatsDict])
async def get_daily_report(
    db: DbSession,
    current_user: CurrentUser,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    return await stats_service.daily_sales_report(db, current_user.company_id, start_date, end_date)


@router.get("/reports/top-products", response_model=list[StatsDict])
async def get_top_products(
    db: DbSession,
    current_user: CurrentUser,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = Query(10, ge=1, le=100),
):
    return await stats_service.top_products(db, current_user.company_id, start_date, end_date, limit=limit)


@router.get("/{sale_id}", response_model=SaleResponse)
async def get_sale(sale_id: int, db: DbSession, current_user: CurrentUser):
    return await sale_service.sales(db, current_user.company_id).get(sale_id)


@router.post("/", response_model=SaleResponse, status_code=status.HTTP_201_CREATED)
async def create_sale(
    sale_data: SaleCreate,
    db: DbSession,
    current_user: CurrentUser,
    company: CurrentCompany,
):
    """Record a sale. The sale number is SALE-YYYYMMDD-NNNN."""
    sale = await sale_service.create_sale(db, company, current_user, sale_data)
    await db.commit()
    await db.refresh(sale)
    return sale


@router.put("/{sale_id}", response_model=SaleResponse)
async def update_sale(
    sale_id: int,
    sale_data: SaleUpdate,
    db: DbSession,
    current_user: CurrentUser,
):
    sale = await sale_service.update_sale(db, current_user.company_id, sale_id, sale_data)
    await db.commit()
    await db.refresh(sale)
    return sale


@router.delete("/{sale_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_sale(sale_id: int, db: DbSession, current_user: CurrentUser):
    await sale_service.delete_sale(db, current_user.company_id, sale_id)
    await db.commit()


@router.post("/{sale_id}/return", response_model=SaleResponse, status_code=status.HTTP_201_CREATED)
async def create_return(
    sale_id: int,
    data: SaleReturnCreate,
    db: DbSession,
    current_user: CurrentUser,
    company: CurrentCompany,
):
    """Record a return against a sale."""
    refund = await sale_service.create_return(db, company, current_user, sale_id, data)
    await db.commit()
    await db.refresh(refund)
    return refund
