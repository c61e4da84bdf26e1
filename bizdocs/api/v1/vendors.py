from fastapi import APIRouter, status, Query
from sqlalchemy import or_
from typing import Optional

from bizdocs.api.deps import DbSession, CurrentUser
from bizdocs.models.vendor import Vendor
from bizdocs.schemas.types import StatsDict
from bizdocs.schemas.vendor import (
    VendorCreate,
    VendorUpdate,
    VendorResponse,
    VendorListResponse,
)
from bizdocs.services import stats_service, vendor_service

router = APIRouter()


@router.get("/", response_model=VendorListResponse)
async def list_vendors(
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=500),
    search: Optional[str] = None,
    status: Optional[str] = None,
):
    """List vendors with pagination and filtering."""
    criteria = []
    if search:
        criteria.append(or_(
            Vendor.name.ilike(f"%{search}%"),
            Vendor.contact_person.ilike(f"%{search}%"),
            Vendor.email.ilike(f"%{search}%"),
        ))
    if status:
        criteria.append(Vendor.status == status)

    store = vendor_service.vendors(db, current_user.company_id)
    total = await store.count(*criteria)
    items = await store.find_many(
        *criteria,
        order_by=[Vendor.name],
        skip=(page - 1) * page_size,
        limit=page_size,
    )
    return VendorListResponse(items=items, total=total, page=page, page_size=page_size)


# Declared before /{vendor_id} so "stats" is not parsed as an id
@router.get("/stats", response_model=StatsDict)
async def get_vendor_stats(db: DbSession, current_user: CurrentUser):
    return await stats_service.vendor_stats(db, current_user.company_id)


@router.get("/{vendor_id}", response_model=VendorResponse)
async def get_vendor(vendor_id: int, db: DbSession, current_user: CurrentUser):
    return await vendor_service.vendors(db, current_user.company_id).get(vendor_id)


@router.post("/", response_model=VendorResponse, status_code=status.HTTP_201_CREATED)
async def create_vendor(
    vendor_data: VendorCreate,
    db: DbSession,
    current_user: CurrentUser,
):
    vendor = await vendor_service.vendors(db, current_user.company_id).insert(Vendor(**vendor_data.model_dump()))
    await db.commit()
    await db.refresh(vendor)
    return vendor


@router.put("/{vendor_id}", response_model=VendorResponse)
async def update_vendor(
    vendor_id: int,
    vendor_data: VendorUpdate,
    db: DbSession,
    current_user: CurrentUser,
):
    update_data = vendor_data.model_dump(exclude_unset=True)
    vendor = await vendor_service.vendors(db, current_user.company_id).update_by_id(vendor_id, update_data)
    await db.commit()
    await db.refresh(vendor)
    return vendor


@router.delete("/{vendor_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_vendor(vendor_id: int, db: DbSession, current_user: CurrentUser):
    """Refused with 409 while purchase orders or expenses reference the vendor."""
    await vendor_service.delete_vendor(db, current_user.company_id, vendor_id)
    await db.commit()
