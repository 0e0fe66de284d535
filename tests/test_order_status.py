import uuid

from sqlalchemy import select

from storefront.models.inventory import Inventory, StockMovement
from storefront.models.order import Order, can_transition
from storefront.services.inventory_service import InventoryService


def test_transition_table():
    assert can_transition("PENDING_PAYMENT", "PROCESSING")
    assert can_transition("PROCESSING", "SHIPPED")
    assert can_transition("SHIPPED", "REFUNDED")
    assert not can_transition("PENDING_PAYMENT", "SHIPPED")
    assert not can_transition("CANCELLED", "PROCESSING")
    assert not can_transition("REFUNDED", "COMPLETED")
    assert not can_transition("DELIVERED", "CANCELLED")


async def test_illegal_transition_rejected(customer, place_order, set_status):
    order = await place_order(customer)
    resp = await set_status(order["order_id"], "SHIPPED")
    assert resp.status_code == 400
    assert resp.json()["message"] == "Cannot change order status from PENDING_PAYMENT to SHIPPED"


async def test_blank_reason_rejected(customer, place_order, set_status):
    order = await place_order(customer)
    resp = await set_status(order["order_id"], "PROCESSING", reason="   ")
    assert resp.status_code == 400


async def test_unknown_status_rejected(customer, place_order, set_status):
    order = await place_order(customer)
    resp = await set_status(order["order_id"], "LOST_IN_MAIL")
    assert resp.status_code == 400


async def test_unknown_order(admin, set_status):
    resp = await set_status(str(uuid.uuid4()), "PROCESSING")
    assert resp.status_code == 404


async def test_status_change_requires_admin(client, customer, place_order, headers_for):
    order = await place_order(customer)
    resp = await client.put(
        f"/api/admin/orders/{order['order_id']}/status",
        json={"status": "CANCELLED", "reason": "Changed my mind"},
        headers=headers_for(customer),
    )
    assert resp.status_code == 403


async def test_status_is_case_insensitive_and_recorded(client, admin, customer, place_order, set_status, headers_for):
    order = await place_order(customer)
    resp = await set_status(order["order_id"], "processing", reason="Paid by card at counter")
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["from_status"] == "PENDING_PAYMENT"
    assert body["status"] == "PROCESSING"
    assert body["side_effect_failures"] == []

    detail = (await client.get(f"/api/admin/orders/{order['order_id']}", headers=headers_for(admin))).json()
    last = detail["status_history"][-1]
    assert last["from_status"] == "PENDING_PAYMENT"
    assert last["to_status"] == "PROCESSING"
    assert last["notes"] == "Paid by card at counter"
    assert last["changed_by"] == str(admin.id)


async def test_cancel_restocks_items(client, session_factory, admin, customer, product, place_order, set_status):
    order = await place_order(customer, quantity=3)
    resp = await set_status(order["order_id"], "CANCELLED", reason="Customer request")
    assert resp.status_code == 200, resp.text

    async with session_factory() as session:
        stock = (await session.execute(
            select(Inventory).where(Inventory.product_id == product.id, Inventory.location == "Main Warehouse")
        )).scalar_one()
        assert stock.quantity == 3

        movement = (await session.execute(
            select(StockMovement).where(StockMovement.reference_id == uuid.UUID(order["order_id"]))
        )).scalar_one()
        assert movement.movement_type == "RESTOCK"
        assert movement.quantity_change == 3
        assert order["order_number"] in movement.notes

        cancelled = await session.get(Order, uuid.UUID(order["order_id"]))
        assert cancelled.status == "CANCELLED"
        assert cancelled.cancelled_at is not None


async def test_cancelled_order_is_terminal(customer, place_order, set_status):
    order = await place_order(customer)
    await set_status(order["order_id"], "CANCELLED")
    resp = await set_status(order["order_id"], "PROCESSING")
    assert resp.status_code == 400


async def test_repeat_cancel_does_not_restock_twice(session_factory, admin, customer, product, place_order, set_status):
    order = await place_order(customer, quantity=2)
    first = await set_status(order["order_id"], "CANCELLED")
    second = await set_status(order["order_id"], "CANCELLED")
    assert first.status_code == 200
    assert second.status_code == 400

    async with session_factory() as session:
        stock = (await session.execute(select(Inventory).where(Inventory.product_id == product.id))).scalar_one()
        assert stock.quantity == 2


async def test_failed_side_effect_keeps_status_and_queues_reconciliation(
    client, admin, customer, place_order, set_status, headers_for, monkeypatch
):
    async def warehouse_offline(self, order, changed_by=None):
        raise RuntimeError("warehouse offline")

    monkeypatch.setattr(InventoryService, "restock_order", warehouse_offline)

    order = await place_order(customer)
    resp = await set_status(order["order_id"], "CANCELLED", reason="Out of stock")
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "CANCELLED"
    assert body["side_effect_failures"] == ["restock: warehouse offline"]

    headers = headers_for(admin)
    detail = (await client.get(f"/api/admin/orders/{order['order_id']}", headers=headers)).json()
    assert detail["status"] == "CANCELLED"

    tasks = (await client.get("/api/admin/tasks", params={"category": "RECONCILIATION"}, headers=headers)).json()
    assert tasks["total"] == 1
    assert tasks["items"][0]["priority"] == "HIGH"
    assert tasks["items"][0]["title"] == f"Reconcile restock for Order {order['order_number']}"


async def test_confirm_payment_moves_to_processing_and_closes_tasks(
    client, admin, customer, place_order, headers_for
):
    order = await place_order(customer, payment_method="E_TRANSFER")
    headers = headers_for(admin)

    resp = await client.post(
        f"/api/admin/orders/{order['order_id']}/confirm-payment",
        json={"notes": "Interac ref 8841"},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "PROCESSING"

    detail = (await client.get(f"/api/admin/orders/{order['order_id']}", headers=headers)).json()
    assert detail["payment_status"] == "COMPLETED"
    assert detail["paid_at"] is not None
    assert detail["status_history"][-1]["notes"] == "Payment confirmed: Interac ref 8841"

    open_tasks = (await client.get("/api/admin/tasks", params={"status": "PENDING"}, headers=headers)).json()
    assert open_tasks["total"] == 0

    again = await client.post(f"/api/admin/orders/{order['order_id']}/confirm-payment", headers=headers)
    assert again.status_code == 400


async def test_refund_after_payment_queues_refund(client, admin, customer, place_order, set_status, headers_for):
    order = await place_order(customer)
    headers = headers_for(admin)
    await client.post(f"/api/admin/orders/{order['order_id']}/confirm-payment", headers=headers)

    resp = await set_status(order["order_id"], "REFUNDED", reason="Damaged in transit")
    assert resp.status_code == 200, resp.text

    detail = (await client.get(f"/api/admin/orders/{order['order_id']}", headers=headers)).json()
    assert detail["status"] == "REFUNDED"
    assert detail["payment_status"] == "REFUNDED"

    refunds = (await client.get("/api/admin/tasks", params={"category": "REFUND"}, headers=headers)).json()
    assert refunds["total"] == 1
    assert refunds["items"][0]["title"] == f"Process refund for Order {order['order_number']}"
    assert refunds["items"][0]["priority"] == "HIGH"


async def test_shipping_stamps_timestamp(client, admin, customer, place_order, set_status, headers_for):
    order = await place_order(customer)
    await set_status(order["order_id"], "PROCESSING")
    resp = await set_status(order["order_id"], "SHIPPED", reason="Canada Post")
    assert resp.status_code == 200

    detail = (await client.get(f"/api/admin/orders/{order['order_id']}", headers=headers_for(admin))).json()
    assert detail["shipped_at"] is not None


async def test_admin_order_list_filters_by_status(client, admin, customer, place_order, set_status, headers_for):
    first = await place_order(customer, quantity=1)
    await place_order(customer, quantity=1)
    await set_status(first["order_id"], "CANCELLED")

    headers = headers_for(admin)
    pending = (await client.get("/api/admin/orders", params={"status": "PENDING_PAYMENT"}, headers=headers)).json()
    assert pending["total"] == 1
    everything = (await client.get("/api/admin/orders", headers=headers)).json()
    assert everything["total"] == 2
