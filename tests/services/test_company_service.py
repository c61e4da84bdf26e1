"""
Tests for sign-up, company settings and user management.
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from bizdocs.exceptions import BusinessRuleError, ConflictError, NotFoundError, ValidationError
from bizdocs.schemas.auth import RegisterRequest, UserCreate
from bizdocs.schemas.company import CompanySettingsUpdate
from bizdocs.services import company_service
from bizdocs.services.numbering import DocumentType, next_number


class TestRegistration:

    @pytest.mark.asyncio
    async def test_register_creates_company_and_admin(self, test_db: AsyncSession):
        user = await company_service.register_company(
            test_db,
            RegisterRequest(email="owner@initech.test", password="longenoughpassword", company_name="Initech"),
            hashed_password="hashed",
        )

        assert user.role == "admin"
        assert user.company_id is not None

    @pytest.mark.asyncio
    async def test_email_must_be_unique(self, test_db: AsyncSession, admin_user):
        with pytest.raises(ConflictError):
            await company_service.register_company(
                test_db,
                RegisterRequest(email="admin@acme.test", password="longenoughpassword", company_name="Copycat"),
                hashed_password="hashed",
            )


class TestSettings:

    @pytest.mark.asyncio
    async def test_counters_can_be_raised(self, test_db: AsyncSession, company):
        await company_service.update_settings(
            test_db, company, CompanySettingsUpdate(next_invoice_number=100, invoice_prefix="BILL"),
        )

        assert await next_number(test_db, company.id, DocumentType.INVOICE) == "BILL-00101"

    @pytest.mark.asyncio
    async def test_counters_cannot_be_lowered(self, test_db: AsyncSession, company):
        company.next_quote_number = 10
        await test_db.flush()

        with pytest.raises(ValidationError) as exc_info:
            await company_service.update_settings(
                test_db, company, CompanySettingsUpdate(next_quote_number=3, tax_rate=5),
            )

        assert exc_info.value.errors[0]["field"] == "next_quote_number"
        assert company.next_quote_number == 10
        assert company.tax_rate == 10


class TestUserManagement:

    @pytest.mark.asyncio
    async def test_add_user_to_company(self, test_db: AsyncSession, company):
        user = await company_service.add_user(
            test_db,
            company.id,
            UserCreate(email="clerk@acme.test", password="longenoughpassword", role="manager"),
            hashed_password="hashed",
        )

        assert user.company_id == company.id
        assert user.role == "manager"

    @pytest.mark.asyncio
    async def test_change_role(self, test_db: AsyncSession, admin_user, test_user):
        user = await company_service.change_role(test_db, admin_user, test_user.id, "manager")
        assert user.role == "manager"

    @pytest.mark.asyncio
    async def test_cannot_change_own_role(self, test_db: AsyncSession, admin_user):
        with pytest.raises(BusinessRuleError):
            await company_service.change_role(test_db, admin_user, admin_user.id, "user")

    @pytest.mark.asyncio
    async def test_cannot_deactivate_self(self, test_db: AsyncSession, admin_user):
        with pytest.raises(BusinessRuleError):
            await company_service.set_active(test_db, admin_user, admin_user.id, False)

    @pytest.mark.asyncio
    async def test_users_of_other_companies_are_out_of_reach(self, test_db: AsyncSession, admin_user, other_user):
        with pytest.raises(NotFoundError):
            await company_service.set_active(test_db, admin_user, other_user.id, False)
