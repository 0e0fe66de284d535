import uuid
from decimal import Decimal

from sqlalchemy import select

from storefront.models.commission import Commission
from storefront.models.task import Task
from storefront.services.commission_service import calculate_commission_amount


def test_commission_amount_rounds_half_up():
    assert calculate_commission_amount(Decimal("66.50"), Decimal("5")) == Decimal("3.33")
    assert calculate_commission_amount(Decimal("59.85"), Decimal("10")) == Decimal("5.99")


async def ship(order_id, set_status):
    assert (await set_status(order_id, "PROCESSING")).status_code == 200
    resp = await set_status(order_id, "SHIPPED", reason="Shipped with Canada Post")
    assert resp.status_code == 200, resp.text
    return resp.json()


async def test_shipping_accrues_referral_commission(
    client, session_factory, admin, referrer, customer, place_order, set_status, headers_for
):
    order = await place_order(customer)
    await ship(order["order_id"], set_status)

    async with session_factory() as session:
        commission = (await session.execute(
            select(Commission).where(Commission.related_id == uuid.UUID(order["order_id"]))
        )).scalar_one()
        assert commission.user_id == referrer.id
        assert commission.commission_type == "ORDER_REFERRAL"
        assert commission.status == "PENDING"
        assert commission.amount == Decimal("3.33")
        assert commission.rate == Decimal("5.00")
        assert commission.order_amount == Decimal("66.50")

        payout_task = (await session.execute(
            select(Task).where(Task.related_id == commission.id)
        )).scalar_one()
        assert payout_task.category == "PAYOUT"
        assert payout_task.title == f"Approve referral commission payout for Order {order['order_number']}"

    mine = (await client.get("/api/users/me/commissions", headers=headers_for(referrer))).json()
    assert Decimal(mine["summary"]["pending_amount"]) == Decimal("3.33")
    assert Decimal(mine["summary"]["total_earned"]) == Decimal("3.33")
    assert len(mine["items"]) == 1


async def test_calculate_commission_is_idempotent(client, admin, customer, place_order, set_status, headers_for):
    order = await place_order(customer)
    await ship(order["order_id"], set_status)
    headers = headers_for(admin)

    first = await client.post(f"/api/orders/{order['order_id']}/calculate-commission", headers=headers)
    second = await client.post(f"/api/orders/{order['order_id']}/calculate-commission", headers=headers)
    assert first.status_code == 200
    assert second.status_code == 200

    first_body, second_body = first.json(), second.json()
    assert first_body["commission_id"] is not None
    assert first_body["commission_id"] == second_body["commission_id"]
    assert second_body["message"] == "Commission already calculated for this order"
    assert Decimal(second_body["amount"]) == Decimal("3.33")
    assert all(not r["created"] for r in second_body["results"])

    listing = (await client.get(
        "/api/admin/commissions", params={"order_id": order["order_id"]}, headers=headers
    )).json()
    assert listing["total"] == 1


async def test_calculate_commission_requires_shipped_order(client, admin, customer, place_order, headers_for):
    order = await place_order(customer)
    resp = await client.post(
        f"/api/orders/{order['order_id']}/calculate-commission", headers=headers_for(admin)
    )
    assert resp.status_code == 400


async def test_no_referrer_means_no_commission(
    client, admin, make_user, place_order, set_status, headers_for
):
    walk_in = await make_user()
    order = await place_order(walk_in)
    await ship(order["order_id"], set_status)

    resp = await client.post(
        f"/api/orders/{order['order_id']}/calculate-commission", headers=headers_for(admin)
    )
    body = resp.json()
    assert body["commission_id"] is None
    assert body["message"] == "Customer has no referrer"


async def test_refund_cancels_open_commissions(
    client, session_factory, admin, customer, place_order, set_status
):
    order = await place_order(customer)
    await ship(order["order_id"], set_status)

    resp = await set_status(order["order_id"], "REFUNDED", reason="Lost in transit")
    assert resp.status_code == 200, resp.text

    async with session_factory() as session:
        commission = (await session.execute(
            select(Commission).where(Commission.related_id == uuid.UUID(order["order_id"]))
        )).scalar_one()
        assert commission.status == "CANCELLED"
        assert commission.notes.endswith("| Cancelled due to order refund")

        payout_task = (await session.execute(select(Task).where(Task.related_id == commission.id))).scalar_one()
        assert payout_task.status == "CANCELLED"


async def test_cancel_cancels_commissions(
    session_factory, admin, referrer, customer, place_order, set_status
):
    order = await place_order(customer)
    await set_status(order["order_id"], "PROCESSING")

    # Accrued out of band (e.g. a manual entry) before the order is cancelled
    async with session_factory() as session:
        session.add(Commission(
            user_id=referrer.id,
            commission_type="ORDER_REFERRAL",
            status="APPROVED",
            amount=Decimal("3.33"),
            related_entity_type="ORDER",
            related_id=uuid.UUID(order["order_id"]),
        ))
        await session.commit()

    resp = await set_status(order["order_id"], "CANCELLED", reason="Fraud check failed")
    assert resp.status_code == 200

    async with session_factory() as session:
        commission = (await session.execute(
            select(Commission).where(Commission.related_id == uuid.UUID(order["order_id"]))
        )).scalar_one()
        assert commission.status == "CANCELLED"
        assert commission.notes == "Cancelled due to order cancellation"


async def test_distributor_fulfillment_flow(
    client, session_factory, admin, distributor, customer, place_order, set_status, headers_for
):
    order = await place_order(customer)
    order_id = order["order_id"]
    admin_headers = headers_for(admin)
    distributor_headers = headers_for(distributor)

    resp = await client.post(
        f"/api/admin/orders/{order_id}/assign-distributor",
        json={"distributor_id": str(distributor.id)},
        headers=admin_headers,
    )
    assert resp.status_code == 400  # not paid yet

    await client.post(f"/api/admin/orders/{order_id}/confirm-payment", headers=admin_headers)
    resp = await client.post(
        f"/api/admin/orders/{order_id}/assign-distributor",
        json={"distributor_id": str(distributor.id)},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "ASSIGNED"

    my_tasks = (await client.get("/api/users/me/tasks", headers=distributor_headers)).json()
    assert [t["title"] for t in my_tasks] == [f"Fulfill Order {order['order_number']}"]

    assigned = (await client.get("/api/distributor/orders", headers=distributor_headers)).json()
    assert len(assigned) == 1
    assert assigned[0]["order"]["order_number"] == order["order_number"]

    resp = await client.post(
        f"/api/distributor/orders/{order_id}/fulfill",
        json={"tracking_number": "CP123456789CA", "carrier": "Canada Post"},
        headers=distributor_headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "COMPLETED"
    assert (await client.get("/api/users/me/tasks", headers=distributor_headers)).json() == []

    resp = await set_status(order_id, "SHIPPED", reason="Verified distributor shipment")
    assert resp.status_code == 200, resp.text

    async with session_factory() as session:
        commissions = {
            c.commission_type: c
            for c in (await session.execute(
                select(Commission).where(Commission.related_id == uuid.UUID(order_id))
            )).scalars().all()
        }
    assert commissions["DISTRIBUTOR_FULFILLMENT"].user_id == distributor.id
    assert commissions["DISTRIBUTOR_FULFILLMENT"].amount == Decimal("6.65")
    assert commissions["ORDER_REFERRAL"].amount == Decimal("3.33")


async def test_only_distributors_see_distributor_orders(client, customer, headers_for):
    resp = await client.get("/api/distributor/orders", headers=headers_for(customer))
    assert resp.status_code == 403


async def test_payout_marks_paid_and_skips_closed(
    client, session_factory, admin, referrer, customer, place_order, set_status, headers_for
):
    order = await place_order(customer)
    await ship(order["order_id"], set_status)
    headers = headers_for(admin)

    listing = (await client.get("/api/admin/commissions", params={"status": "PENDING"}, headers=headers)).json()
    commission_id = listing["items"][0]["id"]
    unknown_id = str(uuid.uuid4())

    resp = await client.post(
        "/api/admin/commissions/payout",
        json={"commission_ids": [commission_id, unknown_id], "payment_reference": "ETR-2024-0042"},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["paid"] == [commission_id]
    assert body["skipped"] == [unknown_id]
    assert Decimal(body["total_paid"]) == Decimal("3.33")

    again = (await client.post(
        "/api/admin/commissions/payout",
        json={"commission_ids": [commission_id], "payment_reference": "ETR-2024-0043"},
        headers=headers,
    )).json()
    assert again["paid"] == []

    async with session_factory() as session:
        payout_task = (await session.execute(
            select(Task).where(Task.related_id == uuid.UUID(commission_id))
        )).scalar_one()
        assert payout_task.status == "COMPLETED"

    mine = (await client.get("/api/users/me/commissions", headers=headers_for(referrer))).json()
    assert Decimal(mine["summary"]["paid_amount"]) == Decimal("3.33")
    assert Decimal(mine["summary"]["pending_amount"]) == Decimal("0.00")


async def test_calculate_commission_needs_admin(client, customer, place_order, headers_for):
    order = await place_order(customer)
    resp = await client.post(
        f"/api/orders/{order['order_id']}/calculate-commission", headers=headers_for(customer)
    )
    assert resp.status_code == 403


async def test_pending_payout_queue(client, admin, referrer, distributor, customer, place_order, set_status, headers_for):
    order = await place_order(customer)
    await ship(order["order_id"], set_status)
    headers = headers_for(admin)

    queue = (await client.get("/api/admin/commissions/pending", headers=headers)).json()
    assert queue["total"] == 1
    assert Decimal(queue["total_amount"]) == Decimal("3.33")
    assert queue["items"][0]["user_id"] == str(referrer.id)

    other = (await client.get(
        "/api/admin/commissions/pending", params={"user_id": str(distributor.id)}, headers=headers
    )).json()
    assert other["total"] == 0
    assert Decimal(other["total_amount"]) == Decimal("0.00")

    await client.post(
        "/api/admin/commissions/payout",
        json={"commission_ids": [queue["items"][0]["id"]], "payment_reference": "ETR-2024-0050"},
        headers=headers,
    )
    emptied = (await client.get("/api/admin/commissions/pending", headers=headers)).json()
    assert emptied["total"] == 0
