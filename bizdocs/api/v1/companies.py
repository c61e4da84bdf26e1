from fastapi import APIRouter, Query, status

from bizdocs.api.deps import AdminUser, CurrentCompany, CurrentUser, DbSession, get_password_hash
from bizdocs.models.user import User
from bizdocs.schemas.auth import RoleUpdate, UserCreate, UserListResponse, UserResponse
from bizdocs.schemas.company import CompanyResponse, CompanySettingsUpdate, CompanyUpdate
from bizdocs.schemas.types import StatsDict
from bizdocs.services import company_service, stats_service

router = APIRouter()


@router.get("/current", response_model=CompanyResponse)
async def get_company(company: CurrentCompany):
    """The authenticated user's company."""
    return company


@router.put("/current", response_model=CompanyResponse)
async def update_company(
    data: CompanyUpdate,
    db: DbSession,
    company: CurrentCompany,
    current_user: AdminUser,
):
    await company_service.update_company(db, company, data)
    await db.commit()
    await db.refresh(company)
    return company


@router.put("/settings", response_model=CompanyResponse)
async def update_settings(
    data: CompanySettingsUpdate,
    db: DbSession,
    company: CurrentCompany,
    current_user: AdminUser,
):
    """Update currency, tax, terms and numbering settings."""
    await company_service.update_settings(db, company, data)
    await db.commit()
    await db.refresh(company)
    return company


@router.get("/stats", response_model=StatsDict)
async def get_company_stats(db: DbSession, company: CurrentCompany):
    return await stats_service.company_stats(db, company.id)


@router.get("/users", response_model=UserListResponse)
async def list_users(
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    store = company_service.users(db, current_user.company_id)
    total = await store.count()
    items = await store.find_many(
        order_by=[User.created_at.desc(), User.id.desc()],
        skip=(page - 1) * page_size,
        limit=page_size,
    )
    return UserListResponse(items=items, total=total, page=page, page_size=page_size)


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def add_user(
    data: UserCreate,
    db: DbSession,
    current_user: AdminUser,
):
    user = await company_service.add_user(db, current_user.company_id, data, get_password_hash(data.password))
    await db.commit()
    await db.refresh(user)
    return user


@router.put("/users/{user_id}/role", response_model=UserResponse)
async def change_user_role(
    user_id: int,
    data: RoleUpdate,
    db: DbSession,
    current_user: AdminUser,
):
    user = await company_service.change_role(db, current_user, user_id, data.role)
    await db.commit()
    await db.refresh(user)
    return user


@router.put("/users/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(user_id: int, db: DbSession, current_user: AdminUser):
    user = await company_service.set_active(db, current_user, user_id, False)
    await db.commit()
    await db.refresh(user)
    return user


@router.put("/users/{user_id}/activate", response_model=UserResponse)
async def activate_user(user_id: int, db: DbSession, current_user: AdminUser):
    user = await company_service.set_active(db, current_user, user_id, True)
    await db.commit()
    await db.refresh(user)
    return user
