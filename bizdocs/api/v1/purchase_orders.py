"""
Purchase Orders API.

Responses are built with PurchaseOrderResponse.from_model, which folds the
stored client columns back into the client union.
"""
from fastapi import APIRouter, status, Query
from typing import Optional

from bizdocs.api.deps import DbSession, CurrentUser, CurrentCompany
from bizdocs.models.purchase_order import PurchaseOrder
from bizdocs.schemas.purchase_order import (
    ConfirmRequest,
    PurchaseOrderCreate,
    PurchaseOrderUpdate,
    PurchaseOrderResponse,
    PurchaseOrderListResponse,
)
from bizdocs.schemas.types import StatsDict
from bizdocs.services import purchase_order_service, stats_service

router = APIRouter()


@router.get("/", response_model=PurchaseOrderListResponse)
async def list_purchase_orders(
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=500),
    vendor_id: Optional[int] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
):
    filters = {}
    if vendor_id:
        filters["vendor_id"] = vendor_id
    if status:
        filters["status"] = status
    if priority:
        filters["priority"] = priority

    store = purchase_order_service.purchase_orders(db, current_user.company_id)
    total = await store.count(**filters)
    orders = await store.find_many(
        order_by=[PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()],
        skip=(page - 1) * page_size,
        limit=page_size,
        **filters,
    )
    return PurchaseOrderListResponse(
        items=[PurchaseOrderResponse.from_model(po) for po in orders],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/stats", response_model=StatsDict)
async def get_purchase_order_stats(db: DbSession, current_user: CurrentUser):
    return await stats_service.purchase_order_stats(db, current_user.company_id)


@router.get("/{po_id}", response_model=PurchaseOrderResponse)
async def get_purchase_order(po_id: int, db: DbSession, current_user: CurrentUser):
    po = await purchase_order_service.purchase_orders(db, current_user.company_id).get(po_id)
    return PurchaseOrderResponse.from_model(po)


@router.post("/", response_model=PurchaseOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_purchase_order(
    po_data: PurchaseOrderCreate,
    db: DbSession,
    current_user: CurrentUser,
    company: CurrentCompany,
):
    po = await purchase_order_service.create_purchase_order(db, company, current_user, po_data)
    await db.commit()
    await db.refresh(po)
    return PurchaseOrderResponse.from_model(po)


@router.put("/{po_id}", response_model=PurchaseOrderResponse)
async def update_purchase_order(
    po_id: int,
    po_data: PurchaseOrderUpdate,
    db: DbSession,
    current_user: CurrentUser,
    company: CurrentCompany,
):
    po = await purchase_order_service.update_purchase_order(db, company, po_id, po_data)
    await db.commit()
    await db.refresh(po)
    return PurchaseOrderResponse.from_model(po)


@router.delete("/{po_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_purchase_order(po_id: int, db: DbSession, current_user: CurrentUser):
    await purchase_order_service.delete_purchase_order(db, current_user.company_id, po_id)
    await db.commit()


async def _transition(db, current_user, po_id: int, action: str, approved_by: Optional[str] = None):
    po = await purchase_order_service.transition_purchase_order(
        db, current_user.company_id, po_id, action, approved_by=approved_by
    )
    await db.commit()
    await db.refresh(po)
    return PurchaseOrderResponse.from_model(po)


@router.post("/{po_id}/send", response_model=PurchaseOrderResponse)
async def send_purchase_order(po_id: int, db: DbSession, current_user: CurrentUser):
    return await _transition(db, current_user, po_id, "send")


@router.post("/{po_id}/confirm", response_model=PurchaseOrderResponse)
async def confirm_purchase_order(
    po_id: int,
    data: ConfirmRequest,
    db: DbSession,
    current_user: CurrentUser,
):
    return await _transition(db, current_user, po_id, "confirm", approved_by=data.approved_by)


@router.post("/{po_id}/start", response_model=PurchaseOrderResponse)
async def start_purchase_order(po_id: int, db: DbSession, current_user: CurrentUser):
    return await _transition(db, current_user, po_id, "start")


@router.post("/{po_id}/complete", response_model=PurchaseOrderResponse)
async def complete_purchase_order(po_id: int, db: DbSession, current_user: CurrentUser):
    return await _transition(db, current_user, po_id, "complete")


@router.post("/{po_id}/cancel", response_model=PurchaseOrderResponse)
async def cancel_purchase_order(po_id: int, db: DbSession, current_user: CurrentUser):
    return await _transition(db, current_user, po_id, "cancel")
