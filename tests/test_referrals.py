from storefront.models.user import UserRole

from conftest import TEST_PASSWORD


async def test_validate_referral_code(client, referrer):
    resp = await client.get("/api/referrals/validate", params={"code": referrer.referral_code.lower()})
    assert resp.status_code == 200
    body = resp.json()
    assert body["valid"] is True
    assert body["referrer"] == {"id": str(referrer.id), "name": "Riley Referrer", "role": "CUSTOMER"}


async def test_validate_rejects_missing_unknown_and_suspended_codes(client, make_user):
    resp = await client.get("/api/referrals/validate")
    assert resp.status_code == 400
    assert resp.json()["message"] == "Referral code is required"

    resp = await client.get("/api/referrals/validate", params={"code": "NOSUCH01"})
    assert resp.status_code == 404
    assert resp.json()["message"] == "Invalid referral code"

    suspended = await make_user(is_active=False)
    resp = await client.get("/api/referrals/validate", params={"code": suspended.referral_code})
    assert resp.status_code == 400
    assert resp.json()["message"] == "This referral code is no longer active"


async def test_list_my_referrals(client, referrer, customer, make_user, headers_for):
    await make_user(name="Second Referral", referred_by=referrer)
    await make_user(name="Not Mine")

    resp = await client.get("/api/users/me/referrals", headers=headers_for(referrer))
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 2
    assert {r["name"] for r in body["items"]} == {"Casey Customer", "Second Referral"}

    page = (await client.get("/api/users/me/referrals", params={"limit": 1}, headers=headers_for(referrer))).json()
    assert len(page["items"]) == 1
    assert page["pages"] == 2


async def test_referral_link_and_regeneration(client, referrer, customer, headers_for):
    headers = headers_for(referrer)
    link = (await client.get("/api/users/me/referral-link", headers=headers)).json()
    assert link["referral_code"] == referrer.referral_code
    assert link["referral_link"].endswith(f"/ref/{referrer.referral_code}")

    resp = await client.post("/api/users/me/referral-link", headers=headers)
    assert resp.status_code == 200
    fresh = resp.json()
    assert fresh["referral_code"] != referrer.referral_code
    assert fresh["referral_link"].endswith(f"/ref/{fresh['referral_code']}")

    old = await client.get("/api/referrals/validate", params={"code": referrer.referral_code})
    assert old.status_code == 404

    # Existing referrals stay linked
    mine = (await client.get("/api/users/me/referrals", headers=headers)).json()
    assert mine["total"] == 1


async def test_admin_suspends_and_activates_user(client, admin, customer, headers_for):
    headers = headers_for(admin)

    resp = await client.post(f"/api/admin/users/{customer.id}/suspend", headers=headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["is_active"] is False

    login = await client.post("/api/auth/login", json={"email": customer.email, "password": TEST_PASSWORD})
    assert login.status_code == 403
    assert (await client.get("/api/users/me", headers=headers_for(customer))).status_code == 403

    again = await client.post(f"/api/admin/users/{customer.id}/suspend", headers=headers)
    assert again.status_code == 400
    assert again.json()["message"] == "User is already suspended"

    resp = await client.post(f"/api/admin/users/{customer.id}/activate", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["is_active"] is True

    login = await client.post("/api/auth/login", json={"email": customer.email, "password": TEST_PASSWORD})
    assert login.status_code == 200


async def test_admin_cannot_suspend_self(client, admin, headers_for):
    resp = await client.post(f"/api/admin/users/{admin.id}/suspend", headers=headers_for(admin))
    assert resp.status_code == 400
    assert resp.json()["message"] == "You cannot suspend your own account"


async def test_suspend_unknown_user_and_non_admin(client, admin, make_user, headers_for):
    resp = await client.post(
        "/api/admin/users/00000000-0000-0000-0000-000000000000/suspend", headers=headers_for(admin)
    )
    assert resp.status_code == 404

    distributor = await make_user(UserRole.DISTRIBUTOR)
    resp = await client.post(f"/api/admin/users/{admin.id}/suspend", headers=headers_for(distributor))
    assert resp.status_code == 403
