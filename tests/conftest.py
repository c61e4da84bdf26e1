from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from bizdocs.main import app
from bizdocs.database import Base, get_db, enable_sqlite_savepoints, enforce_sqlite_foreign_keys
from bizdocs.api.deps import get_password_hash, create_user_token
from bizdocs.models.company import Company
from bizdocs.models.customer import Customer
from bizdocs.models.product import Product
from bizdocs.models.user import User
from bizdocs.models.vendor import Vendor
from bizdocs.services.email_service import MockEmailService, get_email_service

# In-memory SQLite shared by every session of one test
TEST_DATABASE_URL = "sqlite+aiosqlite://"

TEST_PASSWORD = "testpassword123"


@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)
    enforce_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(test_engine):
    """Session for the test and for the app under test."""
    async_session = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with async_session() as session:
        yield session


async def _add(db: AsyncSession, record):
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return record


@pytest_asyncio.fixture
async def company(test_db: AsyncSession) -> Company:
    return await _add(test_db, Company(
        name="Acme Traders",
        email="billing@acme.test",
        currency="USD",
        tax_rate=Decimal("10"),
        terms="Net 30",
    ))


@pytest_asyncio.fixture
async def other_company(test_db: AsyncSession) -> Company:
    return await _add(test_db, Company(name="Globex", email="accounts@globex.test"))


async def make_user(db: AsyncSession, company: Company, email: str, role: str = "user") -> User:
    return await _add(db, User(
        company_id=company.id,
        email=email,
        hashed_password=get_password_hash(TEST_PASSWORD),
        first_name="Test",
        last_name=role.capitalize(),
        role=role,
        is_active=True,
    ))


@pytest_asyncio.fixture
async def admin_user(test_db: AsyncSession, company: Company) -> User:
    return await make_user(test_db, company, "admin@acme.test", role="admin")


@pytest_asyncio.fixture
async def test_user(test_db: AsyncSession, company: Company) -> User:
    """A plain user (no manager or admin rights)."""
    return await make_user(test_db, company, "user@acme.test", role="user")


@pytest_asyncio.fixture
async def other_user(test_db: AsyncSession, other_company: Company) -> User:
    return await make_user(test_db, other_company, "admin@globex.test", role="admin")


@pytest_asyncio.fixture
async def customer(test_db: AsyncSession, company: Company) -> Customer:
    return await _add(test_db, Customer(
        company_id=company.id,
        first_name="Jane",
        last_name="Doe",
        email="jane.doe@example.com",
        phone="5551234567",
    ))


@pytest_asyncio.fixture
async def other_customer(test_db: AsyncSession, other_company: Company) -> Customer:
    return await _add(test_db, Customer(
        company_id=other_company.id,
        first_name="Hank",
        last_name="Scorpio",
        email="hank@globex.test",
    ))


@pytest_asyncio.fixture
async def vendor(test_db: AsyncSession, company: Company) -> Vendor:
    return await _add(test_db, Vendor(
        company_id=company.id,
        name="Paper Supply Co",
        email="orders@paper.test",
    ))


@pytest.fixture
def mock_email() -> MockEmailService:
    return MockEmailService()


@pytest_asyncio.fixture
async def client(test_db: AsyncSession, mock_email: MockEmailService):
    """Create test client with overridden database and email service."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: mock_email

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", follow_redirects=True) as ac:
        yield ac

    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_user_token(user)}"}


@pytest_asyncio.fixture
async def authenticated_client(client: AsyncClient, admin_user: User):
    """Client signed in as the company admin."""
    client.headers.update(auth_headers(admin_user))
    return client


@pytest.fixture
def headers_for():
    """Build the Authorization header for any user: headers_for(user)."""
    return auth_headers


@pytest_asyncio.fixture
async def product(test_db: AsyncSession, company: Company) -> Product:
    """Tracked product with 10 in stock, reordered at 2."""
    return await _add(test_db, Product(
        company_id=company.id,
        name="Toner Cartridge",
        sku="TNR-001",
        category="consumables",
        cost_price=Decimal("18.00"),
        selling_price=Decimal("30.00"),
        stock_quantity=Decimal("10"),
        min_stock_level=Decimal("2"),
        reorder_point=Decimal("2"),
    ))
