"""
Shared fixtures: an in-memory SQLite database per test, the ASGI app
wired to it, and factories for users, products and orders.

Environment overrides must be in place before ``storefront`` is imported,
since settings are read at import time.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"

import uuid
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront import models  # noqa: F401
from storefront.core.security import create_access_token, get_password_hash
from storefront.database import Base, build_engine, get_db
from storefront.main import app
from storefront.models.product import Product
from storefront.models.user import User, UserRole

TEST_PASSWORD = "PouchPass123"

ADDRESS = {
    "full_name": "Sam Tremblay",
    "address_line1": "100 King St W",
    "city": "Toronto",
    "province": "ON",
    "postal_code": "M5X 1A9",
    "country": "Canada",
}


@pytest_asyncio.fixture
async def engine():
    test_engine = build_engine("sqlite+aiosqlite://")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    """
    Sessions for arranging and inspecting data.

    All sessions share one connection, so open them only between requests.
    """
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def headers_for():
    def _headers_for(user: User) -> dict:
        token = create_access_token(user.id, user.role)
        return {"Authorization": f"Bearer {token}"}
    return _headers_for


@pytest.fixture
def make_user(session_factory):
    async def _make_user(
        role: UserRole = UserRole.CUSTOMER,
        email: str | None = None,
        name: str = "Test User",
        commission_rate: Decimal | None = None,
        referred_by: User | None = None,
        is_active: bool = True,
    ) -> User:
        async with session_factory() as session:
            user = User(
                email=email or f"{uuid.uuid4().hex[:10]}@pouchshop.ca",
                password_hash=get_password_hash(TEST_PASSWORD),
                name=name,
                role=role.value,
                referral_code=uuid.uuid4().hex[:8].upper(),
                referred_by_id=referred_by.id if referred_by else None,
                commission_rate=commission_rate,
                is_active=is_active,
            )
            session.add(user)
            await session.commit()
            return user
    return _make_user


@pytest_asyncio.fixture
async def admin(make_user):
    return await make_user(UserRole.ADMIN, email="admin@pouchshop.ca", name="Store Admin")


@pytest_asyncio.fixture
async def referrer(make_user):
    return await make_user(email="referrer@pouchshop.ca", name="Riley Referrer", commission_rate=Decimal("5.00"))


@pytest_asyncio.fixture
async def customer(make_user, referrer):
    return await make_user(email="customer@pouchshop.ca", name="Casey Customer", referred_by=referrer)


@pytest_asyncio.fixture
async def distributor(make_user):
    return await make_user(
        UserRole.DISTRIBUTOR,
        email="distributor@pouchshop.ca",
        name="Dana Distributor",
        commission_rate=Decimal("10.00"),
    )


@pytest.fixture
def make_product(session_factory):
    async def _make_product(price: str = "25.00", sku: str | None = None, is_active: bool = True) -> Product:
        async with session_factory() as session:
            product = Product(
                sku=sku or f"ZYN-{uuid.uuid4().hex[:6].upper()}",
                name="Cool Mint 6mg",
                flavor="Cool Mint",
                strength_mg=6,
                price=Decimal(price),
                is_active=is_active,
            )
            session.add(product)
            await session.commit()
            return product
    return _make_product


@pytest_asyncio.fixture
async def product(make_product):
    return await make_product("25.00", sku="ZYN-MINT-6")


@pytest.fixture
def place_order(client, product, headers_for):
    """Add ``quantity`` of the $25 product to the cart and check out. 2 units price to $66.50."""
    async def _place_order(
        user: User,
        quantity: int = 2,
        payment_method: str = "E_TRANSFER",
        referral_code: str | None = None,
    ) -> dict:
        headers = headers_for(user)
        resp = await client.post(
            "/api/cart",
            json={"product_id": str(product.id), "quantity": quantity},
            headers=headers,
        )
        assert resp.status_code == 201, resp.text

        payload = {"shipping_address": ADDRESS, "payment_method": payment_method}
        if referral_code:
            payload["referral_code"] = referral_code
        resp = await client.post("/api/checkout", json=payload, headers=headers)
        assert resp.status_code == 201, resp.text
        return resp.json()
    return _place_order


@pytest.fixture
def set_status(client, admin, headers_for):
    async def _set_status(order_id: str, status: str, reason: str = "Admin update"):
        return await client.put(
            f"/api/admin/orders/{order_id}/status",
            json={"status": status, "reason": reason},
            headers=headers_for(admin),
        )
    return _set_status
