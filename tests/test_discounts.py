from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select

from storefront.models.discount_code import DiscountCode
from storefront.services import discount_service
from storefront.services.discount_service import (
    DiscountAlreadyAppliedError,
    DiscountCodeNotFoundError,
    DiscountExhaustedError,
    DiscountExpiredError,
    DiscountNotApplicableError,
    DiscountNotStartedError,
    InvalidDiscountCodeError,
    MinimumOrderNotMetError,
    calculate_discount_amount,
    validate_discount_code,
)


def discount(**overrides):
    values = dict(
        code="SAVE10",
        discount_type="PERCENTAGE",
        discount_value=Decimal("10"),
        max_discount_amount=None,
        min_order_amount=Decimal("0.00"),
        start_date=datetime.now(timezone.utc) - timedelta(days=1),
        end_date=None,
        usage_limit=None,
        times_used=0,
        is_active=True,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


# ==================== Amount calculation ====================

def test_percentage_of_order_total():
    assert calculate_discount_amount("PERCENTAGE", Decimal("10"), Decimal("66.50")) == Decimal("6.65")


def test_percentage_respects_max_discount():
    amount = calculate_discount_amount("PERCENTAGE", Decimal("50"), Decimal("200.00"), Decimal("25.00"))
    assert amount == Decimal("25.00")


def test_percentage_clamped_to_hundred():
    assert calculate_discount_amount("PERCENTAGE", Decimal("150"), Decimal("40.00")) == Decimal("40.00")


def test_fixed_amount_capped_at_total():
    assert calculate_discount_amount("FIXED_AMOUNT", Decimal("15"), Decimal("66.50")) == Decimal("15.00")
    assert calculate_discount_amount("FIXED_AMOUNT", Decimal("100"), Decimal("66.50")) == Decimal("66.50")


# ==================== Validation order ====================

def test_missing_code():
    with pytest.raises(DiscountCodeNotFoundError) as exc:
        validate_discount_code(None, Decimal("66.50"), "PENDING_PAYMENT")
    assert exc.value.message == "Invalid or expired discount code"


def test_inactive_code():
    with pytest.raises(InvalidDiscountCodeError):
        validate_discount_code(discount(is_active=False), Decimal("66.50"), "PENDING_PAYMENT")


def test_not_started():
    future = datetime.now(timezone.utc) + timedelta(days=2)
    with pytest.raises(DiscountNotStartedError):
        validate_discount_code(discount(start_date=future), Decimal("66.50"), "PENDING_PAYMENT")


def test_expired():
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    with pytest.raises(DiscountExpiredError):
        validate_discount_code(discount(end_date=past), Decimal("66.50"), "PENDING_PAYMENT")


def test_naive_dates_treated_as_utc():
    past = (datetime.now(timezone.utc) - timedelta(hours=1)).replace(tzinfo=None)
    with pytest.raises(DiscountExpiredError):
        validate_discount_code(discount(end_date=past), Decimal("66.50"), "PENDING_PAYMENT")


def test_exhausted_before_status_check():
    with pytest.raises(DiscountExhaustedError):
        validate_discount_code(discount(usage_limit=5, times_used=5), Decimal("66.50"), "SHIPPED")


def test_order_not_awaiting_payment():
    with pytest.raises(DiscountNotApplicableError):
        validate_discount_code(discount(), Decimal("66.50"), "PROCESSING")


def test_order_already_discounted():
    with pytest.raises(DiscountAlreadyAppliedError) as exc:
        validate_discount_code(discount(), Decimal("66.50"), "PENDING_PAYMENT", order_discount_code="OTHER")
    assert exc.value.status_code == 409


def test_minimum_order_not_met():
    with pytest.raises(MinimumOrderNotMetError) as exc:
        validate_discount_code(discount(min_order_amount=Decimal("100")), Decimal("66.50"), "PENDING_PAYMENT")
    assert exc.value.message == "This code requires a minimum order of $100.00"


def test_valid_code_returns_amount():
    amount = validate_discount_code(discount(), Decimal("66.50"), "PENDING_PAYMENT")
    assert amount == Decimal("6.65")


# ==================== API ====================

async def create_code(session_factory, **overrides) -> DiscountCode:
    values = dict(
        code="SAVE10",
        discount_type="PERCENTAGE",
        discount_value=Decimal("10.00"),
        min_order_amount=Decimal("0.00"),
        start_date=datetime.now(timezone.utc) - timedelta(days=1),
    )
    values.update(overrides)
    async with session_factory() as session:
        code = DiscountCode(**values)
        session.add(code)
        await session.commit()
        return code


async def test_apply_percentage_code(client, session_factory, customer, place_order, headers_for):
    await create_code(session_factory)
    order = await place_order(customer)

    resp = await client.post(
        "/api/discount/apply",
        json={"code": "save10", "order_id": order["order_id"]},
        headers=headers_for(customer),
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["success"] is True
    assert Decimal(body["discount_amount_applied"]) == Decimal("6.65")
    assert Decimal(body["new_total_amount"]) == Decimal("59.85")

    async with session_factory() as session:
        code = (await session.execute(select(DiscountCode).where(DiscountCode.code == "SAVE10"))).scalar_one()
        assert code.times_used == 1


async def test_apply_fixed_code(client, session_factory, customer, place_order, headers_for):
    await create_code(session_factory, code="FLAT15", discount_type="FIXED_AMOUNT", discount_value=Decimal("15.00"))
    order = await place_order(customer)

    resp = await client.post(
        "/api/discount/apply",
        json={"code": "FLAT15", "order_id": order["order_id"]},
        headers=headers_for(customer),
    )
    assert resp.status_code == 200, resp.text
    assert Decimal(resp.json()["new_total_amount"]) == Decimal("51.50")


async def test_second_code_rejected(client, session_factory, customer, place_order, headers_for):
    await create_code(session_factory)
    await create_code(session_factory, code="FLAT15", discount_type="FIXED_AMOUNT", discount_value=Decimal("15.00"))
    order = await place_order(customer)
    headers = headers_for(customer)

    first = await client.post("/api/discount/apply", json={"code": "SAVE10", "order_id": order["order_id"]}, headers=headers)
    assert first.status_code == 200

    second = await client.post("/api/discount/apply", json={"code": "FLAT15", "order_id": order["order_id"]}, headers=headers)
    assert second.status_code == 409
    assert second.json()["message"] == "A discount code is already applied to this order"

    detail = await client.get(f"/api/orders/me/{order['order_id']}", headers=headers)
    assert Decimal(detail.json()["total_amount"]) == Decimal("59.85")


async def test_exhausted_code_rejected(client, session_factory, customer, place_order, headers_for):
    await create_code(session_factory, usage_limit=1, times_used=1)
    order = await place_order(customer)

    resp = await client.post(
        "/api/discount/apply",
        json={"code": "SAVE10", "order_id": order["order_id"]},
        headers=headers_for(customer),
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "This discount code has reached its usage limit"


async def test_expired_code_rejected(client, session_factory, customer, place_order, headers_for):
    await create_code(
        session_factory,
        start_date=datetime.now(timezone.utc) - timedelta(days=30),
        end_date=datetime.now(timezone.utc) - timedelta(days=1),
    )
    order = await place_order(customer)

    resp = await client.post(
        "/api/discount/apply",
        json={"code": "SAVE10", "order_id": order["order_id"]},
        headers=headers_for(customer),
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "This discount code has expired"


async def test_cannot_discount_someone_elses_order(client, session_factory, customer, make_user, place_order, headers_for):
    await create_code(session_factory)
    order = await place_order(customer)
    stranger = await make_user()

    resp = await client.post(
        "/api/discount/apply",
        json={"code": "SAVE10", "order_id": order["order_id"]},
        headers=headers_for(stranger),
    )
    assert resp.status_code == 404


async def test_validate_endpoint_previews_amount(client, session_factory):
    await create_code(session_factory, min_order_amount=Decimal("30.00"))

    resp = await client.get("/api/discount/validate", params={"code": "save10", "subtotal": "50.00"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["valid"] is True
    assert body["code"] == "SAVE10"
    assert Decimal(body["discount_amount"]) == Decimal("5.00")

    resp = await client.get("/api/discount/validate", params={"code": "SAVE10", "subtotal": "20.00"})
    body = resp.json()
    assert body["valid"] is False
    assert body["message"] == "This code requires a minimum order of $30.00"

    resp = await client.get("/api/discount/validate", params={"code": "NOPE", "subtotal": "20.00"})
    assert resp.json()["valid"] is False


async def test_admin_code_crud(client, admin, headers_for):
    headers = headers_for(admin)
    payload = {"code": "summer20", "discount_type": "percentage", "discount_value": "20", "usage_limit": 100}

    resp = await client.post("/api/admin/discount-codes", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    created = resp.json()
    assert created["code"] == "SUMMER20"
    assert created["discount_type"] == "PERCENTAGE"
    assert created["times_used"] == 0

    duplicate = await client.post("/api/admin/discount-codes", json=payload, headers=headers)
    assert duplicate.status_code == 409

    resp = await client.put(
        f"/api/admin/discount-codes/{created['id']}",
        json={"is_active": False},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False

    listing = await client.get("/api/admin/discount-codes", headers=headers)
    assert listing.json()["total"] == 1

    resp = await client.delete(f"/api/admin/discount-codes/{created['id']}", headers=headers)
    assert resp.status_code == 200
    missing = await client.get(f"/api/admin/discount-codes/{created['id']}", headers=headers)
    assert missing.status_code == 404


async def test_percentage_over_hundred_rejected(client, admin, headers_for):
    resp = await client.post(
        "/api/admin/discount-codes",
        json={"code": "TOOMUCH", "discount_type": "PERCENTAGE", "discount_value": "120"},
        headers=headers_for(admin),
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Percentage discount cannot exceed 100"


async def test_admin_endpoints_need_admin(client, customer, headers_for):
    resp = await client.get("/api/admin/discount-codes", headers=headers_for(customer))
    assert resp.status_code == 403


async def test_usage_limit_cannot_drop_below_times_used(client, session_factory, admin, headers_for):
    code = await create_code(session_factory, usage_limit=5, times_used=3)
    headers = headers_for(admin)

    resp = await client.put(f"/api/admin/discount-codes/{code.id}", json={"usage_limit": 1}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "Usage limit cannot be lower than the number of times the code has been used"

    resp = await client.put(f"/api/admin/discount-codes/{code.id}", json={"usage_limit": 3}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["usage_limit"] == 3


async def test_times_used_over_limit_rejected_by_database(session_factory):
    with pytest.raises(IntegrityError):
        await create_code(session_factory, usage_limit=1, times_used=2)


async def test_order_leaving_pending_payment_mid_apply(
    client, session_factory, customer, place_order, set_status, headers_for, monkeypatch
):
    await create_code(session_factory)
    order = await place_order(customer)
    assert (await set_status(order["order_id"], "PROCESSING")).status_code == 200

    # Validation saw the order before the status change landed
    monkeypatch.setattr(discount_service, "validate_discount_code", lambda *args, **kwargs: Decimal("6.65"))

    resp = await client.post(
        "/api/discount/apply",
        json={"code": "SAVE10", "order_id": order["order_id"]},
        headers=headers_for(customer),
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Discount codes can only be applied to orders awaiting payment"

    async with session_factory() as session:
        code = (await session.execute(select(DiscountCode).where(DiscountCode.code == "SAVE10"))).scalar_one()
        assert code.times_used == 0
