from datetime import timedelta

from storefront.core.security import create_access_token, verify_access_token

from conftest import TEST_PASSWORD


def test_access_token_round_trip():
    token = create_access_token("0b6c7a4e-2a3c-4f3e-9d51-3f4b6f0f8c11", "ADMIN")
    payload = verify_access_token(token)
    assert payload["sub"] == "0b6c7a4e-2a3c-4f3e-9d51-3f4b6f0f8c11"
    assert payload["role"] == "ADMIN"
    assert payload["type"] == "access"


def test_expired_token_rejected():
    token = create_access_token("0b6c7a4e-2a3c-4f3e-9d51-3f4b6f0f8c11", "ADMIN", expires_delta=timedelta(seconds=-1))
    assert verify_access_token(token) is None


def test_garbage_token_rejected():
    assert verify_access_token("not-a-jwt") is None


async def test_register_login_and_profile(client, referrer):
    resp = await client.post(
        "/api/auth/register",
        json={
            "email": "New.Customer@PouchShop.ca",
            "password": "PouchPass123",
            "name": "New Customer",
            "referral_code": referrer.referral_code,
        },
    )
    assert resp.status_code == 201, resp.text
    user = resp.json()
    assert user["email"] == "new.customer@pouchshop.ca"
    assert user["role"] == "CUSTOMER"
    assert user["referred_by_id"] == str(referrer.id)
    assert len(user["referral_code"]) == 8

    resp = await client.post(
        "/api/auth/login", json={"email": "new.customer@pouchshop.ca", "password": "PouchPass123"}
    )
    assert resp.status_code == 200, resp.text
    token = resp.json()["access_token"]
    assert resp.json()["token_type"] == "bearer"

    me = await client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["id"] == user["id"]


async def test_duplicate_email_rejected(client, customer):
    resp = await client.post(
        "/api/auth/register",
        json={"email": customer.email, "password": "PouchPass123", "name": "Again"},
    )
    assert resp.status_code == 409


async def test_short_password_rejected(client):
    resp = await client.post(
        "/api/auth/register",
        json={"email": "short@pouchshop.ca", "password": "abc", "name": "Short"},
    )
    assert resp.status_code == 400


async def test_wrong_password(client, customer):
    resp = await client.post("/api/auth/login", json={"email": customer.email, "password": "WrongPass999"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Incorrect email or password"


async def test_deactivated_account_cannot_log_in(client, make_user):
    user = await make_user(email="gone@pouchshop.ca", is_active=False)
    resp = await client.post("/api/auth/login", json={"email": user.email, "password": TEST_PASSWORD})
    assert resp.status_code == 403


async def test_missing_and_bad_tokens(client):
    assert (await client.get("/api/users/me")).status_code == 401
    resp = await client.get("/api/users/me", headers={"Authorization": "Bearer nonsense"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Could not validate credentials"


async def test_public_catalog_hides_inactive_products(client, make_product):
    await make_product(sku="ZYN-CITRUS-3")
    hidden = await make_product(sku="ZYN-OLD-9", is_active=False)

    listing = (await client.get("/api/products")).json()
    assert [p["sku"] for p in listing["items"]] == ["ZYN-CITRUS-3"]
    assert (await client.get(f"/api/products/{hidden.id}")).status_code == 404


async def test_admin_product_management(client, admin, headers_for):
    headers = headers_for(admin)
    resp = await client.post(
        "/api/admin/products",
        json={"sku": "velo-ice-10", "name": "Velo Ice Cool 10mg", "price": "8.99", "strength_mg": 10},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    product = resp.json()
    assert product["sku"] == "VELO-ICE-10"

    duplicate = await client.post(
        "/api/admin/products",
        json={"sku": "VELO-ICE-10", "name": "Dup", "price": "8.99"},
        headers=headers,
    )
    assert duplicate.status_code == 409

    resp = await client.put(f"/api/admin/products/{product['id']}", json={"price": "9.49"}, headers=headers)
    assert resp.json()["price"] == "9.49"


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["checks"]["database"] == "connected"
