"""Resident order lifecycle: draft -> submitted -> paid, with cancellation.

State flow:
    draft --save_draft--> draft
    draft --submit_and_pay--> submitted --capture ok--> paid
                                        --declined--> draft (payment_status=failed)
                                        --timeout--> submitted (payment_status=pending)
    draft | submitted (no capture attempt) --cancel--> cancelled

Every status change goes through OrderRepository.compare_and_update, so two
concurrent submits for one order cannot both reach the payment gateway: the
loser observes the winner's state and returns it instead of charging again.
"""
from __future__ import annotations

import asyncio
import logging
import random
import string
import time
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from residentmeals.domain.ResidentOrder import ResidentOrder
from residentmeals.domain.Resident import Resident
from residentmeals.domain.errors import (
    ValidationError, DeadlinePassedError, AuthorizationError, NotFoundError,
    ConflictError, PaymentError, PaymentTimeoutError,
)
from residentmeals.events.Event_Bus import (
    ORDER_CREATED, ORDER_UPDATED, ORDER_SUBMITTED, ORDER_PAID, ORDER_PAYMENT_FAILED, ORDER_CANCELLED,
)
from residentmeals.events.event_helpers import publish_order_event
from residentmeals.infra.payment_gateway import CaptureResult
from residentmeals.logic.deadline.calendar import cutoff_for_week, is_monday, week_end_for
from residentmeals.logic.ordering.access import Actor, ensure_resident_access
from residentmeals.logic.ordering.composer import OrderDraft, compose_from_catalog
from residentmeals.logic.pricing.engine import price, to_minor_units
from residentmeals.utilities.config import TAX_RATE, PAYMENT_TIMEOUT_SECONDS, PAYMENT_CURRENCY
from residentmeals.utilities.constants import (
    STATUS_DRAFT, STATUS_SUBMITTED, STATUS_PAID, STATUS_CANCELLED,
    PAYMENT_PENDING, PAYMENT_PAID, PAYMENT_FAILED,
    ROLE_ADMIN, ROLE_FACILITY_ADMIN, ROLE_FACILITY_USER,
    ORDER_NUMBER_PREFIX, DEADLINE_MESSAGE,
)

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_uppercase


def _base36(n: int) -> str:
    out = ""
    while True:
        n, r = divmod(n, 36)
        out = _BASE36[r] + out
        if n == 0:
            return out


def generate_order_number() -> str:
    """NH-RES-{base36 millis}-{5 random chars}."""
    stamp = _base36(int(time.time() * 1000))
    rand = "".join(random.choices(_BASE36, k=5))
    return f"{ORDER_NUMBER_PREFIX}-{stamp}-{rand}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SubmitResult:
    """Outcome of submit_and_pay as seen by the caller."""
    order: ResidentOrder
    already_paid: bool = False
    in_progress: bool = False
    client_secret: Optional[str] = None

    @property
    def receipt(self) -> Optional[dict]:
        return self.order.receipt

    def to_dict(self):
        data = {
            "status": self.order.status,
            "paymentStatus": self.order.payment_status,
            "receipt": self.order.receipt,
            "paymentIntentId": self.order.payment_intent_id,
            "alreadyPaid": self.already_paid,
            "inProgress": self.in_progress,
            "order": self.order.to_public_dict(),
        }
        if self.client_secret:
            data["clientSecret"] = self.client_secret
        return data


class OrderLifecycle:
    """Creates, edits, submits, pays and cancels resident orders."""

    VALID_TRANSITIONS = {
        STATUS_DRAFT: {STATUS_DRAFT, STATUS_SUBMITTED, STATUS_CANCELLED},
        STATUS_SUBMITTED: {STATUS_PAID, STATUS_DRAFT, STATUS_CANCELLED},
        STATUS_PAID: set(),
        STATUS_CANCELLED: set(),
    }

    def __init__(self, orders, menu, residents, gateway, tax_rate: Decimal = TAX_RATE,
                 payment_timeout: float = PAYMENT_TIMEOUT_SECONDS, tz=None, clock=_utcnow):
        self.orders = orders
        self.menu = menu
        self.residents = residents
        self.gateway = gateway
        self.tax_rate = tax_rate
        self.payment_timeout = payment_timeout
        self.tz = tz
        self.clock = clock

    # -------------------- helpers --------------------
    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self.clock()

    def _check_transition(self, order: ResidentOrder, target: str) -> None:
        if target not in self.VALID_TRANSITIONS.get(order.status, set()):
            raise ValidationError(f"Order is {order.status}; cannot move to {target}")

    def _check_deadline(self, order: ResidentOrder, now: datetime, action: str) -> None:
        if now > order.deadline:
            logger.info("Order %s: %s rejected after deadline %s", order.id, action, order.deadline.isoformat())
            raise DeadlinePassedError(
                f"Cannot {action} order after deadline",
                details={"message": DEADLINE_MESSAGE, "deadline": order.deadline.isoformat()},
            )

    def _resident(self, resident_id: str) -> Resident:
        resident = self.residents.get_resident(resident_id)
        if resident is None:
            raise NotFoundError("Resident not found")
        return resident

    def _load_authorized(self, actor: Actor, order_id: str) -> Tuple[ResidentOrder, Resident]:
        order = self.orders.get(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        resident = self._resident(order.resident_id)
        ensure_resident_access(actor, resident)
        return order, resident

    def _existing_result(self, order_id: str) -> SubmitResult:
        """Resolve a lost race into whatever the winning writer persisted."""
        order = self.orders.get(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if order.is_paid:
            return SubmitResult(order, already_paid=True)
        if order.is_awaiting_payment:
            return SubmitResult(order, in_progress=True)
        raise ConflictError("Order was changed while submitting; please retry")

    # -------------------- reads --------------------
    def get(self, actor: Actor, order_id: str) -> ResidentOrder:
        order, _ = self._load_authorized(actor, order_id)
        return order

    def list_orders(self, actor: Actor, resident_id: Optional[str] = None, status: Optional[str] = None,
                    payment_status: Optional[str] = None, week_start_date: Optional[date] = None,
                    page: int = 1, limit: int = 20) -> Tuple[List[ResidentOrder], int]:
        """Orders visible to ``actor``, newest first, paginated. Returns (page, total count)."""
        allowed_residents = None
        facility_id = None
        if resident_id:
            ensure_resident_access(actor, self._resident(resident_id))
        if actor.role == ROLE_FACILITY_USER:
            allowed_residents = set(self.residents.resident_ids_assigned_to(actor.user_id))
        elif actor.role == ROLE_FACILITY_ADMIN and actor.facility_id:
            facility_id = actor.facility_id
        elif actor.role != ROLE_ADMIN:
            logger.warning("Access denied: user %s with role %r listed orders", actor.user_id, actor.role)
            raise AuthorizationError("Access denied")

        def visible(o: ResidentOrder) -> bool:
            if resident_id and o.resident_id != resident_id:
                return False
            if allowed_residents is not None and o.resident_id not in allowed_residents:
                return False
            if facility_id is not None and o.facility_id != facility_id:
                return False
            if status and o.status != status:
                return False
            if payment_status and o.payment_status != payment_status:
                return False
            if week_start_date and o.week_start_date != week_start_date:
                return False
            return True

        found = self.orders.list(visible)
        found.sort(key=lambda o: o.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        offset = (page - 1) * limit
        return found[offset:offset + limit], len(found)

    # -------------------- draft --------------------
    def create_draft(self, actor: Actor, payload, now: Optional[datetime] = None) -> ResidentOrder:
        """Create a priced draft from an OrderCreateInput-shaped payload."""
        now = self._now(now)
        resident = self._resident(payload.resident_id)
        ensure_resident_access(actor, resident)
        if not resident.is_active:
            raise ValidationError("Resident is not active")

        week_start = payload.week_start_date
        if not is_monday(week_start):
            raise ValidationError("weekStartDate must be a Monday")
        if payload.week_end_date != week_end_for(week_start):
            raise ValidationError("weekEndDate must be the Sunday after weekStartDate")
        deadline = cutoff_for_week(week_start, self.tz)
        if now > deadline:
            raise DeadlinePassedError(
                "Cannot create order after deadline",
                details={"message": DEADLINE_MESSAGE, "deadline": deadline.isoformat()},
            )

        draft = compose_from_catalog(payload.meals, self.menu)
        draft.validate_complete()
        totals = price(draft.meals, self.tax_rate)

        if payload.delivery_address is not None:
            address = payload.delivery_address.model_dump()
        else:
            facility = self.residents.get_facility(resident.facility_id)
            address = facility.address if facility else {}

        order = ResidentOrder(
            id=str(uuid.uuid4()),
            order_number=generate_order_number(),
            resident_id=resident.id,
            facility_id=resident.facility_id,
            created_by_user_id=actor.user_id,
            resident_name=resident.name,
            room_number=resident.room_number,
            week_start_date=week_start,
            week_end_date=payload.week_end_date,
            deadline=deadline,
            meals=draft.meals,
            subtotal=totals.subtotal,
            tax=totals.tax,
            total=totals.total,
            status=STATUS_DRAFT,
            payment_status=PAYMENT_PENDING,
            billing_email=payload.billing_email or resident.billing_email,
            billing_name=payload.billing_name or resident.billing_name,
            delivery_address=address,
            notes=payload.notes,
            created_at=now,
            updated_at=now,
        )
        self.orders.insert(order)
        logger.info("Resident order created: %s (%s) for resident %s by %s",
                    order.id, order.order_number, resident.id, actor.user_id)
        publish_order_event(ORDER_CREATED, order)
        return order

    def save_draft(self, actor: Actor, order_id: str, payload, now: Optional[datetime] = None) -> ResidentOrder:
        """Replace a draft's meals (and billing fields), re-pricing from the menu."""
        now = self._now(now)
        order, _ = self._load_authorized(actor, order_id)
        if not order.is_draft:
            raise ValidationError("Can only edit draft orders", details={"status": order.status})
        self._check_deadline(order, now, "edit")

        if payload.meals is not None:
            draft = compose_from_catalog(payload.meals, self.menu)
        else:
            draft = OrderDraft(order.meals)
        draft.validate_complete()
        totals = price(draft.meals, self.tax_rate)

        changes = {
            "meals": draft.meals,
            "subtotal": totals.subtotal,
            "tax": totals.tax,
            "total": totals.total,
            "updated_at": now,
        }
        if payload.billing_email:
            changes["billing_email"] = str(payload.billing_email)
        if payload.billing_name:
            changes["billing_name"] = payload.billing_name
        if payload.notes is not None:
            changes["notes"] = payload.notes

        updated = self.orders.compare_and_update(
            order.id, expected={"status": STATUS_DRAFT, "version": order.version}, changes=changes,
        )
        if updated is None:
            raise ConflictError("Order was changed by someone else; reload and try again")
        logger.info("Resident order updated: %s by %s", order.id, actor.user_id)
        publish_order_event(ORDER_UPDATED, updated)
        return updated

    # -------------------- submit & pay --------------------
    async def submit_and_pay(self, actor: Actor, order_id: str, payment_method_id: Optional[str] = None,
                             now: Optional[datetime] = None) -> SubmitResult:
        """Submit a draft and capture its payment; safe to call repeatedly.

        A paid order returns its existing receipt without touching the gateway.
        """
        now = self._now(now)
        order, resident = self._load_authorized(actor, order_id)

        if order.is_paid:
            logger.info("Order %s already paid; returning existing receipt", order.id)
            return SubmitResult(order, already_paid=True)
        if order.is_cancelled:
            raise ValidationError("Order has been cancelled")
        if order.is_awaiting_payment:
            if order.capture_in_flight:
                return SubmitResult(order, in_progress=True)
            return await self._resume(order, now)

        self._check_transition(order, STATUS_SUBMITTED)
        self._check_deadline(order, now, "submit")
        draft = OrderDraft(order.meals)
        draft.validate_complete()
        self._check_still_available(draft)
        totals = price(draft.meals, self.tax_rate)

        claimed = self.orders.compare_and_update(
            order.id,
            expected={"status": STATUS_DRAFT, "version": order.version},
            changes={
                "status": STATUS_SUBMITTED,
                "payment_status": PAYMENT_PENDING,
                "meals": draft.meals,
                "subtotal": totals.subtotal,
                "tax": totals.tax,
                "total": totals.total,
                "capture_token": uuid.uuid4().hex,
                "capture_in_flight": True,
                "payment_method_ref": payment_method_id or resident.payment_method_id,
                "payment_intent_id": None,
                "payment_error": None,
                "submitted_at": now,
                "updated_at": now,
            },
        )
        if claimed is None:
            logger.info("Order %s: concurrent submit observed, returning persisted state", order.id)
            return self._existing_result(order.id)

        publish_order_event(ORDER_SUBMITTED, claimed)
        return await self._capture(claimed, now)

    def _check_still_available(self, draft: OrderDraft) -> None:
        for meal in draft.meals:
            for item in meal.items:
                menu_item = self.menu.get_item(item.id)
                if menu_item is None or not menu_item.is_active:
                    raise ValidationError(
                        f"'{item.name}' ({meal.day} {meal.meal_type}) is no longer available; please edit the order"
                    )

    async def _resume(self, order: ResidentOrder, now: datetime) -> SubmitResult:
        """Finish a submitted-but-unpaid order with its original capture token."""
        claimed = self.orders.compare_and_update(
            order.id,
            expected={"status": STATUS_SUBMITTED, "capture_in_flight": False,
                      "capture_token": order.capture_token},
            changes={"capture_in_flight": True, "updated_at": now},
        )
        if claimed is None:
            return self._existing_result(order.id)
        logger.info("Order %s: resuming pending payment (intent %s)", order.id, claimed.payment_intent_id)
        if claimed.payment_intent_id:
            return await self._settle(claimed, self.gateway.retrieve(claimed.payment_intent_id), now)
        return await self._capture(claimed, now)

    async def _capture(self, order: ResidentOrder, now: datetime) -> SubmitResult:
        call = self.gateway.capture(
            to_minor_units(order.total),
            order.payment_method_ref,
            idempotency_key=order.capture_token,
            description=f"Weekly Meal Order - {order.resident_name} - Week of {order.week_start_date.isoformat()}",
            metadata={
                "orderNumber": order.order_number,
                "residentName": order.resident_name,
                "roomNumber": order.room_number or "",
                "weekStartDate": order.week_start_date.isoformat(),
                "weekEndDate": order.week_end_date.isoformat(),
                "totalMeals": str(order.total_meals),
                "billingName": order.billing_name or "",
            },
            receipt_email=order.billing_email,
        )
        return await self._settle(order, call, now)

    async def _settle(self, order: ResidentOrder, call, now: datetime) -> SubmitResult:
        try:
            result = await asyncio.wait_for(call, timeout=self.payment_timeout)
        except asyncio.TimeoutError as e:
            self._release_pending(order, now)
            raise PaymentTimeoutError("Payment processor did not respond; payment is pending") from e
        except PaymentTimeoutError:
            self._release_pending(order, now)
            raise
        except PaymentError as e:
            self._mark_failed(order, e.message, now)
            raise
        except Exception:
            # Unknown outcome: the charge may exist, so keep the order pending rather than failed.
            self._release_pending(order, now)
            logger.exception("Order %s: unexpected error during payment capture", order.id)
            raise
        return self._apply(order, result, now)

    def _apply(self, order: ResidentOrder, result: CaptureResult, now: datetime) -> SubmitResult:
        expected = {"capture_token": order.capture_token, "status": STATUS_SUBMITTED}
        if result.succeeded:
            receipt = {
                "paymentIntentId": result.payment_intent_id,
                "amount": str(order.total),
                "currency": result.currency or PAYMENT_CURRENCY,
                "receiptUrl": result.receipt_url,
                "paidAt": now.isoformat(),
            }
            updated = self.orders.compare_and_update(order.id, expected, {
                "status": STATUS_PAID,
                "payment_status": PAYMENT_PAID,
                "payment_method": "stripe",
                "payment_intent_id": result.payment_intent_id,
                "receipt": receipt,
                "capture_in_flight": False,
                "paid_at": now,
                "updated_at": now,
            })
            if updated is None:
                logger.error("Order %s: captured %s but order changed underneath",
                             order.id, result.payment_intent_id)
                return self._existing_result(order.id)
            logger.info("Resident order paid: %s intent=%s amount=%s",
                        order.id, result.payment_intent_id, order.total)
            publish_order_event(ORDER_PAID, updated)
            return SubmitResult(updated)

        # requires_action / processing: wait for the customer or the processor
        updated = self.orders.compare_and_update(order.id, expected, {
            "payment_intent_id": result.payment_intent_id,
            "capture_in_flight": False,
            "updated_at": now,
        })
        if updated is None:
            return self._existing_result(order.id)
        logger.info("Order %s: payment %s is %s", order.id, result.payment_intent_id, result.status)
        return SubmitResult(updated, in_progress=True, client_secret=result.client_secret)

    def _release_pending(self, order: ResidentOrder, now: datetime) -> None:
        self.orders.compare_and_update(
            order.id,
            {"capture_token": order.capture_token, "status": STATUS_SUBMITTED},
            {"capture_in_flight": False, "updated_at": now},
        )
        logger.warning("Order %s left submitted/pending after an unanswered capture", order.id)

    def _mark_failed(self, order: ResidentOrder, message: str, now: datetime) -> None:
        updated = self.orders.compare_and_update(
            order.id,
            {"capture_token": order.capture_token, "status": STATUS_SUBMITTED},
            {
                "status": STATUS_DRAFT,
                "payment_status": PAYMENT_FAILED,
                "capture_token": None,
                "capture_in_flight": False,
                "payment_intent_id": None,
                "payment_error": message,
                "updated_at": now,
            },
        )
        logger.warning("Stripe payment failed for order %s: %s", order.id, message)
        publish_order_event(ORDER_PAYMENT_FAILED, updated or order, message=message)

    # -------------------- cancel --------------------
    def cancel(self, actor: Actor, order_id: str, now: Optional[datetime] = None) -> ResidentOrder:
        now = self._now(now)
        order, _ = self._load_authorized(actor, order_id)
        self._check_transition(order, STATUS_CANCELLED)
        if order.capture_in_flight:
            raise ValidationError("Payment is being processed; the order cannot be cancelled now")
        if order.capture_token or order.payment_intent_id:
            # A timed-out or 3-D Secure capture may still settle at the processor.
            logger.info("Order %s: cancel refused, payment %s outcome pending",
                        order.id, order.payment_intent_id or "attempt")
            raise ValidationError(
                "Payment outcome is pending; retry submit-and-pay to settle it before cancelling",
                details={"paymentIntentId": order.payment_intent_id},
            )
        updated = self.orders.compare_and_update(
            order.id,
            expected={"status": order.status, "version": order.version, "capture_in_flight": False,
                      "capture_token": None, "payment_intent_id": None},
            changes={"status": STATUS_CANCELLED, "cancelled_at": now, "updated_at": now},
        )
        if updated is None:
            raise ConflictError("Order was changed by someone else; reload and try again")
        logger.info("Resident order cancelled: %s by %s", order.id, actor.user_id)
        publish_order_event(ORDER_CANCELLED, updated)
        return updated


__all__ = ["OrderLifecycle", "SubmitResult", "generate_order_number"]
