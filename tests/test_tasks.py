from datetime import datetime, timedelta, timezone

from storefront.models.user import UserRole


async def create_task(client, headers, **payload):
    resp = await client.post("/api/admin/tasks", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def test_tasks_sorted_by_priority_then_due_date(client, admin, headers_for):
    headers = headers_for(admin)
    soon = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
    later = (datetime.now(timezone.utc) + timedelta(days=5)).isoformat()

    await create_task(client, headers, title="Reorder stock", priority="low")
    await create_task(client, headers, title="Call supplier", priority="HIGH", due_date=later)
    await create_task(client, headers, title="Chargeback", priority="URGENT")
    await create_task(client, headers, title="Review refund", priority="HIGH", due_date=soon)

    listing = (await client.get("/api/admin/tasks", headers=headers)).json()
    assert [t["title"] for t in listing["items"]] == [
        "Chargeback",
        "Review refund",
        "Call supplier",
        "Reorder stock",
    ]
    assert listing["total"] == 4


async def test_assignee_can_complete_own_task(client, admin, distributor, headers_for):
    task = await create_task(
        client, headers_for(admin), title="Ship backorder", category="FULFILLMENT",
        assigned_to=str(distributor.id),
    )

    resp = await client.post(
        f"/api/tasks/{task['id']}/complete",
        json={"notes": "Left with courier"},
        headers=headers_for(distributor),
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "COMPLETED"
    assert body["completed_at"] is not None
    assert body["notes"] == "Left with courier"

    again = await client.post(f"/api/tasks/{task['id']}/complete", headers=headers_for(distributor))
    assert again.status_code == 400


async def test_other_users_cannot_complete_task(client, admin, distributor, customer, headers_for):
    task = await create_task(client, headers_for(admin), title="Ship backorder", assigned_to=str(distributor.id))
    resp = await client.post(f"/api/tasks/{task['id']}/complete", headers=headers_for(customer))
    assert resp.status_code == 403


async def test_update_task_status_and_reassign(client, admin, distributor, headers_for):
    headers = headers_for(admin)
    task = await create_task(client, headers, title="Count inventory")

    resp = await client.patch(
        f"/api/admin/tasks/{task['id']}",
        json={"status": "in_progress", "assigned_to": str(distributor.id)},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "IN_PROGRESS"
    assert resp.json()["assigned_to"] == str(distributor.id)

    resp = await client.patch(f"/api/admin/tasks/{task['id']}", json={"status": "COMPLETED"}, headers=headers)
    assert resp.json()["completed_at"] is not None


async def test_my_tasks_hide_closed_by_default(client, admin, headers_for):
    headers = headers_for(admin)
    open_task = await create_task(client, headers, title="Open", assigned_to=str(admin.id))
    closed_task = await create_task(client, headers, title="Closed", assigned_to=str(admin.id))
    await client.post(f"/api/tasks/{closed_task['id']}/complete", headers=headers)

    mine = (await client.get("/api/users/me/tasks", headers=headers)).json()
    assert [t["id"] for t in mine] == [open_task["id"]]

    everything = (await client.get("/api/users/me/tasks", params={"include_closed": True}, headers=headers)).json()
    assert len(everything) == 2


async def test_unknown_task(client, admin, headers_for):
    resp = await client.patch(
        "/api/admin/tasks/00000000-0000-0000-0000-000000000000",
        json={"title": "Nope"},
        headers=headers_for(admin),
    )
    assert resp.status_code == 404


async def test_pending_queue_shows_own_and_unassigned_open_tasks(client, admin, make_user, headers_for):
    other_admin = await make_user(UserRole.ADMIN, name="Night Shift")
    headers = headers_for(admin)

    await create_task(client, headers, title="Unassigned chargeback", priority="HIGH")
    await create_task(client, headers, title="My urgent refund", priority="URGENT", assigned_to=str(admin.id))
    await create_task(client, headers, title="Someone else's", priority="URGENT", assigned_to=str(other_admin.id))
    done = await create_task(client, headers, title="Already handled", assigned_to=str(admin.id))
    await client.post(f"/api/tasks/{done['id']}/complete", headers=headers)

    pending = (await client.get("/api/admin/tasks/pending", headers=headers)).json()
    assert [t["title"] for t in pending] == ["My urgent refund", "Unassigned chargeback"]


async def test_pending_queue_needs_admin(client, customer, headers_for):
    resp = await client.get("/api/admin/tasks/pending", headers=headers_for(customer))
    assert resp.status_code == 403
