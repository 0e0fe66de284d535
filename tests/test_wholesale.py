import uuid

from sqlalchemy import select

from storefront.models.task import Task
from storefront.models.user import User, UserRole
from storefront.models.wholesale import WholesaleApplication

APPLICATION = {
    "company_name": "Northern Puck Supply",
    "tax_id": "123456789RT0001",
    "business_type": "Convenience store",
    "address": {
        "street": "55 Bay St",
        "city": "Toronto",
        "province": "ON",
        "postal_code": "M5J 2N8",
    },
    "phone": "416-555-0199",
    "website": "https://northernpuck.ca",
}


async def apply(client, headers, **overrides):
    return await client.post("/api/wholesale/apply", json={**APPLICATION, **overrides}, headers=headers)


async def test_apply_creates_pending_application_and_review_task(client, session_factory, admin, customer, headers_for):
    resp = await apply(client, headers_for(customer))
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["success"] is True

    async with session_factory() as session:
        application = await session.get(WholesaleApplication, uuid.UUID(body["application_id"]))
        assert application.status == "PENDING"
        assert application.user_id == customer.id
        assert application.address["country"] == "Canada"

        task = (await session.execute(select(Task).where(Task.related_id == application.id))).scalar_one()
        assert task.category == "WHOLESALE_REVIEW"
        assert task.title == "Review wholesale application from Northern Puck Supply"
        assert task.assigned_to == admin.id


async def test_one_pending_application_per_customer(client, customer, headers_for):
    headers = headers_for(customer)
    assert (await apply(client, headers)).status_code == 201

    resp = await apply(client, headers)
    assert resp.status_code == 409
    assert resp.json()["message"] == "You already have a pending wholesale application"


async def test_only_customers_apply(client, distributor, headers_for):
    resp = await apply(client, headers_for(distributor))
    assert resp.status_code == 400


async def test_application_requires_business_details(client, customer, headers_for):
    resp = await apply(client, headers_for(customer), company_name="")
    assert resp.status_code == 400


async def test_approve_promotes_applicant(client, session_factory, admin, customer, headers_for):
    application_id = (await apply(client, headers_for(customer))).json()["application_id"]
    headers = headers_for(admin)

    resp = await client.post(
        f"/api/admin/wholesale/applications/{application_id}/approve",
        json={"notes": "Tax number verified"},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "APPROVED"
    assert body["reviewed_by"] == str(admin.id)
    assert body["reviewer_notes"] == "Tax number verified"

    async with session_factory() as session:
        user = await session.get(User, customer.id)
        assert user.role == UserRole.WHOLESALE_BUYER.value
        task = (await session.execute(select(Task).where(Task.category == "WHOLESALE_REVIEW"))).scalar_one()
        assert task.status == "COMPLETED"

    again = await client.post(f"/api/admin/wholesale/applications/{application_id}/reject",
                              json={"reason": "Changed my mind"}, headers=headers)
    assert again.status_code == 409
    assert again.json()["message"] == "Application has already been approved"

    # Promoted accounts cannot apply again
    resp = await apply(client, headers_for(user))
    assert resp.status_code == 409


async def test_reject_keeps_customer_role_and_allows_reapplying(client, session_factory, admin, customer, headers_for):
    application_id = (await apply(client, headers_for(customer))).json()["application_id"]
    headers = headers_for(admin)

    blank = await client.post(f"/api/admin/wholesale/applications/{application_id}/reject",
                              json={"reason": "   "}, headers=headers)
    assert blank.status_code == 400

    resp = await client.post(f"/api/admin/wholesale/applications/{application_id}/reject",
                             json={"reason": "Business licence missing"}, headers=headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "REJECTED"
    assert resp.json()["reviewer_notes"] == "Business licence missing"

    async with session_factory() as session:
        user = await session.get(User, customer.id)
        assert user.role == UserRole.CUSTOMER.value

    assert (await apply(client, headers_for(customer))).status_code == 201


async def test_admin_lists_applications_by_status(client, admin, customer, make_user, headers_for):
    other = await make_user()
    first = (await apply(client, headers_for(customer))).json()["application_id"]
    await apply(client, headers_for(other), company_name="Rink Side Convenience")
    headers = headers_for(admin)
    await client.post(f"/api/admin/wholesale/applications/{first}/approve", headers=headers)

    listing = (await client.get("/api/admin/wholesale/applications", headers=headers)).json()
    assert listing["total"] == 2

    pending = (await client.get(
        "/api/admin/wholesale/applications", params={"status": "PENDING"}, headers=headers
    )).json()
    assert [a["company_name"] for a in pending["items"]] == ["Rink Side Convenience"]

    detail = await client.get(f"/api/admin/wholesale/applications/{first}", headers=headers)
    assert detail.json()["status"] == "APPROVED"


async def test_unknown_application(client, admin, headers_for):
    resp = await client.post(
        "/api/admin/wholesale/applications/00000000-0000-0000-0000-000000000000/approve",
        headers=headers_for(admin),
    )
    assert resp.status_code == 404


async def test_review_needs_admin(client, customer, headers_for):
    resp = await client.get("/api/admin/wholesale/applications", headers=headers_for(customer))
    assert resp.status_code == 403
