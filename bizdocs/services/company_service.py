"""
Company service: sign-up, company profile and settings, user management.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizdocs.exceptions import BusinessRuleError, ConflictError, ValidationError
from bizdocs.models.company import Company
from bizdocs.models.user import User
from bizdocs.schemas.auth import RegisterRequest, UserCreate
from bizdocs.schemas.company import CompanySettingsUpdate, CompanyUpdate
from bizdocs.services.numbering import COUNTER_SCHEMES
from bizdocs.services.record_store import RecordStore

logger = logging.getLogger(__name__)

COUNTER_FIELDS = tuple(scheme.counter_field for scheme in COUNTER_SCHEMES.values())


def users(db: AsyncSession, company_id: int) -> RecordStore[User]:
    return RecordStore(db, User, company_id)


async def _ensure_email_available(db: AsyncSession, email: str) -> None:
    result = await db.execute(select(User.id).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        raise ConflictError("Email already registered")


async def register_company(db: AsyncSession, data: RegisterRequest, hashed_password: str) -> User:
    """Create a company together with its first user, who is an admin."""
    await _ensure_email_available(db, data.email)

    company = Company(name=data.company_name, email=data.email)
    db.add(company)
    await db.flush()

    user = User(
        company_id=company.id,
        email=data.email,
        hashed_password=hashed_password,
        first_name=data.first_name,
        last_name=data.last_name,
        role="admin",
        is_active=True,
    )
    db.add(user)
    await db.flush()
    logger.info(f"Registered company {company.id} with admin user {user.id}")
    return user


async def update_company(db: AsyncSession, company: Company, data: CompanyUpdate) -> Company:
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field == "name":
            continue
        setattr(company, field, value)
    await db.flush()
    return company


async def update_settings(db: AsyncSession, company: Company, data: CompanySettingsUpdate) -> Company:
    """Apply settings. Numbering counters may only move forward."""
    patch = {field: value for field, value in data.model_dump(exclude_unset=True).items() if value is not None}

    errors = []
    for field in COUNTER_FIELDS:
        if field in patch and patch[field] < getattr(company, field):
            errors.append({
                "field": field,
                "message": f"Cannot be lowered below {getattr(company, field)}",
                "type": "greater_than_equal",
            })
    if errors:
        raise ValidationError("Document counters cannot be decreased", errors=errors)

    for field, value in patch.items():
        setattr(company, field, value)
    await db.flush()
    logger.info(f"Updated settings for company {company.id}: {sorted(patch)}")
    return company


async def add_user(db: AsyncSession, company_id: int, data: UserCreate, hashed_password: str) -> User:
    await _ensure_email_available(db, data.email)
    user = User(
        email=data.email,
        hashed_password=hashed_password,
        first_name=data.first_name,
        last_name=data.last_name,
        role=data.role,
        is_active=True,
    )
    return await users(db, company_id).insert(user)


def _not_self(actor: User, target_id: int, action: str) -> None:
    if actor.id == target_id:
        raise BusinessRuleError(f"You cannot {action} your own account")


async def change_role(db: AsyncSession, actor: User, user_id: int, role: str) -> User:
    _not_self(actor, user_id, "change the role of")
    user = await users(db, actor.company_id).update_by_id(user_id, {"role": role})
    logger.info(f"User {actor.id} set role of user {user_id} to {role}")
    return user


async def set_active(db: AsyncSession, actor: User, user_id: int, is_active: bool) -> User:
    _not_self(actor, user_id, "activate" if is_active else "deactivate")
    return await users(db, actor.company_id).update_by_id(user_id, {"is_active": is_active})
