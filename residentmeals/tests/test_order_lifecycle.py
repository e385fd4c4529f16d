import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import ADMIN, CUTOFF, WEEK_END, WEEK_START
from residentmeals.domain.errors import (
    AuthorizationError, ConflictError, DeadlinePassedError, NotFoundError,
    PaymentError, PaymentTimeoutError, ValidationError,
)
from residentmeals.logic.ordering.access import Actor
from residentmeals.utilities.validators import OrderCreateInput, OrderUpdateInput

STAFF = Actor(user_id="staff-1", role="nursing_home_user", facility_id="fac-riverdale")
FACILITY_ADMIN = Actor(user_id="fa-1", role="nursing_home_admin", facility_id="fac-riverdale")
OTHER_FACILITY_ADMIN = Actor(user_id="fa-2", role="nursing_home_admin", facility_id="fac-elsewhere")


def _create_payload(resident_id="res-100", meals=None, **extra):
    data = {
        "residentId": resident_id,
        "weekStartDate": WEEK_START.isoformat(),
        "weekEndDate": WEEK_END.isoformat(),
        "meals": meals if meals is not None else [
            {"day": "Monday", "mealType": "breakfast",
             "items": [{"id": "bk-eggs-on-bagel"}, {"id": "bk-side-fruit-cup"}], "bagelType": "Everything"},
            {"day": "Monday", "mealType": "lunch",
             "items": [{"id": "ln-salmon-wrap", "price": "0.01"}, {"id": "ln-side-brown-rice"}]},
        ],
    }
    data.update(extra)
    return OrderCreateInput.model_validate(data)


def test_create_draft_prices_from_menu(lifecycle):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    assert order.status == "draft"
    assert order.payment_status == "pending"
    assert order.order_number.startswith("NH-RES-")
    assert order.subtotal == Decimal("36.00")
    assert order.total == Decimal("39.20")
    assert order.tax == Decimal("3.20")
    assert order.total_meals == 2
    assert order.deadline == CUTOFF
    assert order.billing_email == "david.katz@example.com"
    assert order.delivery_address["city"] == "Bronx"
    assert lifecycle.orders.get(order.id).total == Decimal("39.20")


def test_create_rejects_bad_weeks(lifecycle):
    with pytest.raises(ValidationError):
        lifecycle.create_draft(ADMIN, _create_payload(weekStartDate="2026-11-10", weekEndDate="2026-11-16"))
    with pytest.raises(ValidationError):
        lifecycle.create_draft(ADMIN, _create_payload(weekEndDate="2026-11-14"))


def test_create_rejects_empty_order(lifecycle):
    with pytest.raises(ValidationError) as exc:
        lifecycle.create_draft(ADMIN, _create_payload(meals=[]))
    assert exc.value.message == "at least one meal required"


def test_create_after_deadline_rejected(lifecycle, clock):
    clock.now = CUTOFF + timedelta(seconds=1)
    with pytest.raises(DeadlinePassedError):
        lifecycle.create_draft(ADMIN, _create_payload())


def test_unknown_resident(lifecycle):
    with pytest.raises(NotFoundError):
        lifecycle.create_draft(ADMIN, _create_payload(resident_id="res-999"))


def test_access_rules(lifecycle):
    order = lifecycle.create_draft(STAFF, _create_payload())
    assert lifecycle.get(FACILITY_ADMIN, order.id).id == order.id
    with pytest.raises(AuthorizationError):
        lifecycle.get(OTHER_FACILITY_ADMIN, order.id)
    # res-101 has no assigned staff member
    with pytest.raises(AuthorizationError):
        lifecycle.create_draft(STAFF, _create_payload(resident_id="res-101"))


def test_list_orders_scoped_by_role(lifecycle):
    mine = lifecycle.create_draft(ADMIN, _create_payload())
    lifecycle.create_draft(ADMIN, _create_payload(resident_id="res-101"))

    staff_orders, total = lifecycle.list_orders(STAFF)
    assert total == 1
    assert staff_orders[0].id == mine.id

    _, total = lifecycle.list_orders(FACILITY_ADMIN)
    assert total == 2
    _, total = lifecycle.list_orders(OTHER_FACILITY_ADMIN)
    assert total == 0

    page, total = lifecycle.list_orders(ADMIN, page=2, limit=1)
    assert total == 2
    assert len(page) == 1


def test_save_draft_replaces_meals_and_reprices(lifecycle):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    update = OrderUpdateInput.model_validate({"meals": [
        {"day": "Tuesday", "mealType": "dinner", "items": [{"id": "dn-salmon"}]},
    ], "notes": "No onions"})
    saved = lifecycle.save_draft(ADMIN, order.id, update)
    assert [m.key for m in saved.meals] == [("Tuesday", "dinner")]
    assert saved.subtotal == Decimal("23.00")
    assert saved.total == Decimal("25.04")
    assert saved.notes == "No onions"
    assert saved.version == order.version + 1


def test_save_draft_after_deadline_rejected(lifecycle, clock):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    clock.now = CUTOFF - timedelta(seconds=1)
    lifecycle.save_draft(ADMIN, order.id, OrderUpdateInput())
    clock.now = CUTOFF
    lifecycle.save_draft(ADMIN, order.id, OrderUpdateInput())
    clock.now = CUTOFF + timedelta(seconds=1)
    with pytest.raises(DeadlinePassedError):
        lifecycle.save_draft(ADMIN, order.id, OrderUpdateInput())


def test_save_draft_on_stale_version_conflicts(lifecycle, monkeypatch):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    lifecycle.orders.compare_and_update(order.id, {}, {"notes": "someone else"})
    stale = lifecycle.orders.get(order.id)
    stale.version = order.version
    monkeypatch.setattr(lifecycle.orders, "get", lambda order_id: stale)
    with pytest.raises(ConflictError):
        lifecycle.save_draft(ADMIN, order.id, OrderUpdateInput())


@pytest.mark.asyncio
async def test_submit_and_pay_captures_once(lifecycle, gateway):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    result = await lifecycle.submit_and_pay(ADMIN, order.id, "pm_card_visa")
    assert result.order.status == "paid"
    assert result.order.payment_status == "paid"
    assert result.receipt["amount"] == "39.20"
    assert len(gateway.captures) == 1
    capture = gateway.captures[0]
    assert capture["amount"] == 3920
    assert capture["payment_method_id"] == "pm_card_visa"
    assert capture["metadata"]["orderNumber"] == order.order_number
    assert capture["metadata"]["totalMeals"] == "2"

    again = await lifecycle.submit_and_pay(ADMIN, order.id, "pm_card_visa")
    assert again.already_paid
    assert again.receipt == result.receipt
    assert len(gateway.captures) == 1


@pytest.mark.asyncio
async def test_submit_uses_saved_prices_not_current_menu(lifecycle, gateway, data_dir):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    menu_path = data_dir / "menu_items.json"
    menu_path.write_text(menu_path.read_text(encoding="utf-8").replace('"21.00"', '"99.00"'), encoding="utf-8")
    result = await lifecycle.submit_and_pay(ADMIN, order.id)
    assert result.order.total == Decimal("39.20")
    assert gateway.captures[0]["amount"] == 3920


@pytest.mark.asyncio
async def test_submit_rejects_item_removed_from_menu(lifecycle, gateway, data_dir):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    menu_path = data_dir / "menu_items.json"
    menu_path.write_text(menu_path.read_text(encoding="utf-8").replace('"ln-salmon-wrap"', '"ln-salmon-wrap-2"'),
                         encoding="utf-8")
    with pytest.raises(ValidationError):
        await lifecycle.submit_and_pay(ADMIN, order.id)
    assert gateway.captures == []
    assert lifecycle.orders.get(order.id).status == "draft"


@pytest.mark.asyncio
async def test_submit_at_deadline_boundary(lifecycle, gateway, clock):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    late = lifecycle.create_draft(ADMIN, _create_payload())

    clock.now = CUTOFF - timedelta(seconds=1)
    result = await lifecycle.submit_and_pay(ADMIN, order.id)
    assert result.order.is_paid

    clock.now = CUTOFF + timedelta(seconds=1)
    with pytest.raises(DeadlinePassedError):
        await lifecycle.submit_and_pay(ADMIN, late.id)
    assert len(gateway.captures) == 1
    assert lifecycle.orders.get(late.id).status == "draft"


@pytest.mark.asyncio
async def test_declined_card_returns_order_to_draft(lifecycle, gateway):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    gateway.outcome = PaymentError("Your card was declined.", code="card_declined")
    with pytest.raises(PaymentError):
        await lifecycle.submit_and_pay(ADMIN, order.id)

    failed = lifecycle.orders.get(order.id)
    assert failed.status == "draft"
    assert failed.payment_status == "failed"
    assert failed.payment_error == "Your card was declined."
    assert failed.capture_token is None

    gateway.outcome = "succeeded"
    result = await lifecycle.submit_and_pay(ADMIN, order.id, "pm_other_card")
    assert result.order.is_paid
    assert len(gateway.captures) == 2
    assert gateway.captures[0]["idempotency_key"] != gateway.captures[1]["idempotency_key"]


@pytest.mark.asyncio
async def test_timeout_leaves_order_pending_and_resumes_with_same_key(lifecycle, gateway):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    gateway.outcome = PaymentTimeoutError("Payment processor did not respond; payment is pending")
    with pytest.raises(PaymentTimeoutError):
        await lifecycle.submit_and_pay(ADMIN, order.id)

    pending = lifecycle.orders.get(order.id)
    assert pending.status == "submitted"
    assert pending.payment_status == "pending"
    assert not pending.capture_in_flight

    gateway.outcome = "succeeded"
    result = await lifecycle.submit_and_pay(ADMIN, order.id)
    assert result.order.is_paid
    assert len(gateway.captures) == 2
    assert gateway.captures[0]["idempotency_key"] == gateway.captures[1]["idempotency_key"]


@pytest.mark.asyncio
async def test_slow_gateway_times_out(lifecycle, gateway):
    lifecycle.payment_timeout = 0.05
    gateway.delay = 1
    order = lifecycle.create_draft(ADMIN, _create_payload())
    with pytest.raises(PaymentTimeoutError):
        await lifecycle.submit_and_pay(ADMIN, order.id)
    assert lifecycle.orders.get(order.id).status == "submitted"


@pytest.mark.asyncio
async def test_requires_action_returns_client_secret(lifecycle, gateway):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    gateway.outcome = "requires_action"
    result = await lifecycle.submit_and_pay(ADMIN, order.id)
    assert result.in_progress
    assert result.client_secret == "pi_secret_123"
    assert result.order.status == "submitted"

    # once the customer finishes authentication the stored intent is looked up, not re-created
    gateway.outcome = "succeeded"
    result = await lifecycle.submit_and_pay(ADMIN, order.id)
    assert result.order.is_paid
    assert len(gateway.captures) == 1
    assert gateway.retrieves == [result.order.payment_intent_id]


@pytest.mark.asyncio
async def test_concurrent_submits_charge_once(lifecycle, gateway):
    gateway.delay = 0.05
    order = lifecycle.create_draft(ADMIN, _create_payload())
    first, second = await asyncio.gather(
        lifecycle.submit_and_pay(ADMIN, order.id),
        lifecycle.submit_and_pay(ADMIN, order.id),
    )
    assert len(gateway.captures) == 1
    assert {first.order.status, second.order.status} == {"paid", "submitted"}
    assert lifecycle.orders.get(order.id).is_paid


@pytest.mark.asyncio
async def test_cancel_rules(lifecycle, gateway):
    draft = lifecycle.create_draft(ADMIN, _create_payload())
    cancelled = lifecycle.cancel(ADMIN, draft.id)
    assert cancelled.status == "cancelled"
    with pytest.raises(ValidationError):
        lifecycle.cancel(ADMIN, draft.id)
    with pytest.raises(ValidationError):
        await lifecycle.submit_and_pay(ADMIN, draft.id)

    paid = lifecycle.create_draft(ADMIN, _create_payload())
    await lifecycle.submit_and_pay(ADMIN, paid.id)
    with pytest.raises(ValidationError):
        lifecycle.cancel(ADMIN, paid.id)
    assert len(gateway.captures) == 1


def test_submitted_order_without_capture_attempt_cancels(lifecycle):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    lifecycle.orders.compare_and_update(order.id, {}, {"status": "submitted"})
    cancelled = lifecycle.cancel(ADMIN, order.id)
    assert cancelled.status == "cancelled"
    assert cancelled.cancelled_at is not None


def test_cancel_while_capturing_rejected(lifecycle):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    lifecycle.orders.compare_and_update(
        order.id, {}, {"status": "submitted", "capture_token": "tok-1", "capture_in_flight": True})
    with pytest.raises(ValidationError):
        lifecycle.cancel(ADMIN, order.id)
    assert lifecycle.orders.get(order.id).status == "submitted"


@pytest.mark.asyncio
async def test_cancel_after_timeout_rejected_until_payment_settles(lifecycle, gateway):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    gateway.outcome = PaymentTimeoutError("Payment processor did not respond; payment is pending")
    with pytest.raises(PaymentTimeoutError):
        await lifecycle.submit_and_pay(ADMIN, order.id)

    with pytest.raises(ValidationError):
        lifecycle.cancel(ADMIN, order.id)
    pending = lifecycle.orders.get(order.id)
    assert pending.status == "submitted"
    assert pending.capture_token is not None

    gateway.outcome = "succeeded"
    result = await lifecycle.submit_and_pay(ADMIN, order.id)
    assert result.order.is_paid
    assert gateway.captures[0]["idempotency_key"] == gateway.captures[1]["idempotency_key"]


@pytest.mark.asyncio
async def test_cancel_after_requires_action_rejected(lifecycle, gateway):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    gateway.outcome = "requires_action"
    result = await lifecycle.submit_and_pay(ADMIN, order.id)
    intent_id = result.order.payment_intent_id
    assert intent_id

    with pytest.raises(ValidationError) as exc:
        lifecycle.cancel(ADMIN, order.id)
    assert exc.value.details["paymentIntentId"] == intent_id
    stored = lifecycle.orders.get(order.id)
    assert stored.status == "submitted"
    assert stored.payment_intent_id == intent_id

    gateway.outcome = "succeeded"
    result = await lifecycle.submit_and_pay(ADMIN, order.id)
    assert result.order.is_paid
    assert gateway.retrieves == [intent_id]


@pytest.mark.asyncio
async def test_declined_draft_can_still_be_cancelled(lifecycle, gateway):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    gateway.outcome = PaymentError("Your card was declined.", code="card_declined")
    with pytest.raises(PaymentError):
        await lifecycle.submit_and_pay(ADMIN, order.id)
    assert lifecycle.cancel(ADMIN, order.id).status == "cancelled"


def test_cannot_edit_submitted_order(lifecycle):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    lifecycle.orders.compare_and_update(order.id, {}, {"status": "submitted"})
    with pytest.raises(ValidationError):
        lifecycle.save_draft(ADMIN, order.id, OrderUpdateInput())


@pytest.mark.asyncio
async def test_empty_order_cannot_be_saved_or_submitted(lifecycle, gateway):
    order = lifecycle.create_draft(ADMIN, _create_payload())
    with pytest.raises(ValidationError) as exc:
        lifecycle.save_draft(ADMIN, order.id, OrderUpdateInput(meals=[]))
    assert exc.value.message == "at least one meal required"

    lifecycle.orders.compare_and_update(order.id, {}, {"meals": []})
    with pytest.raises(ValidationError) as exc:
        await lifecycle.submit_and_pay(ADMIN, order.id)
    assert exc.value.message == "at least one meal required"
    assert gateway.captures == []
