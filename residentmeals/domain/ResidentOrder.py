"""ResidentOrder aggregate: one resident's weekly meal order with its pricing and payment state."""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from residentmeals.domain.Meal import Meal
from residentmeals.domain.MenuItem import to_decimal
from residentmeals.utilities.constants import (
    STATUS_DRAFT, STATUS_SUBMITTED, STATUS_PAID, STATUS_CANCELLED,
    PAYMENT_PENDING,
)


def _parse_date(value) -> Optional[date]:
    if value is None or isinstance(value, date) and not isinstance(value, datetime):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace('Z', '+00:00'))


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


class ResidentOrder:
    # persisted name -> attribute name
    _FIELDS = {
        "id": "id",
        "orderNumber": "order_number",
        "residentId": "resident_id",
        "facilityId": "facility_id",
        "createdByUserId": "created_by_user_id",
        "residentName": "resident_name",
        "roomNumber": "room_number",
        "status": "status",
        "paymentStatus": "payment_status",
        "paymentMethod": "payment_method",
        "paymentMethodRef": "payment_method_ref",
        "paymentIntentId": "payment_intent_id",
        "captureToken": "capture_token",
        "captureInFlight": "capture_in_flight",
        "receipt": "receipt",
        "paymentError": "payment_error",
        "billingEmail": "billing_email",
        "billingName": "billing_name",
        "deliveryAddress": "delivery_address",
        "notes": "notes",
        "version": "version",
    }
    _DATES = {"weekStartDate": "week_start_date", "weekEndDate": "week_end_date"}
    _INSTANTS = {
        "deadline": "deadline",
        "submittedAt": "submitted_at",
        "paidAt": "paid_at",
        "cancelledAt": "cancelled_at",
        "createdAt": "created_at",
        "updatedAt": "updated_at",
    }
    _MONEY = ("subtotal", "tax", "total")

    def __init__(self, id: str, resident_id: str, facility_id: str, week_start_date: date,
                 week_end_date: date, deadline: datetime, meals: Optional[List[Meal]] = None,
                 order_number: str = "", created_by_user_id: Optional[str] = None,
                 resident_name: str = "", room_number: Optional[str] = None,
                 subtotal=Decimal('0.00'), tax=Decimal('0.00'), total=Decimal('0.00'),
                 status: str = STATUS_DRAFT, payment_status: str = PAYMENT_PENDING,
                 payment_method: Optional[str] = None, payment_method_ref: Optional[str] = None,
                 payment_intent_id: Optional[str] = None,
                 capture_token: Optional[str] = None, capture_in_flight: bool = False,
                 receipt: Optional[dict] = None, payment_error: Optional[str] = None,
                 billing_email: Optional[str] = None, billing_name: Optional[str] = None,
                 delivery_address: Optional[dict] = None, notes: Optional[str] = None,
                 submitted_at: Optional[datetime] = None, paid_at: Optional[datetime] = None,
                 cancelled_at: Optional[datetime] = None, created_at: Optional[datetime] = None,
                 updated_at: Optional[datetime] = None, version: int = 0):
        self.id = id
        self.order_number = order_number
        self.resident_id = resident_id
        self.facility_id = facility_id
        self.created_by_user_id = created_by_user_id
        self.resident_name = resident_name
        self.room_number = room_number
        self.week_start_date = week_start_date
        self.week_end_date = week_end_date
        self.deadline = deadline
        self.meals = meals[:] if meals else []
        self.subtotal = to_decimal(subtotal)
        self.tax = to_decimal(tax)
        self.total = to_decimal(total)
        self.status = status
        self.payment_status = payment_status
        self.payment_method = payment_method
        self.payment_method_ref = payment_method_ref
        self.payment_intent_id = payment_intent_id
        self.capture_token = capture_token
        self.capture_in_flight = capture_in_flight
        self.receipt = receipt
        self.payment_error = payment_error
        self.billing_email = billing_email
        self.billing_name = billing_name
        self.delivery_address = dict(delivery_address) if delivery_address else {}
        self.notes = notes
        self.submitted_at = submitted_at
        self.paid_at = paid_at
        self.cancelled_at = cancelled_at
        self.created_at = created_at
        self.updated_at = updated_at
        self.version = version

    @property
    def total_meals(self) -> int:
        return len([m for m in self.meals if m.items])

    @property
    def is_draft(self) -> bool:
        return self.status == STATUS_DRAFT

    @property
    def is_paid(self) -> bool:
        return self.status == STATUS_PAID

    @property
    def is_awaiting_payment(self) -> bool:
        return self.status == STATUS_SUBMITTED

    @property
    def is_cancelled(self) -> bool:
        return self.status == STATUS_CANCELLED

    def __repr__(self) -> str:
        return (f"ResidentOrder({self.order_number or self.id}, {self.resident_name}, "
                f"week {self.week_start_date}, {self.status}/{self.payment_status}, ${self.total})")

    @staticmethod
    def from_dict(data):
        d = dict(data)
        kwargs = {}
        for wire, attr in ResidentOrder._FIELDS.items():
            if wire in d:
                kwargs[attr] = d[wire]
        for wire, attr in ResidentOrder._DATES.items():
            kwargs[attr] = _parse_date(d.get(wire))
        for wire, attr in ResidentOrder._INSTANTS.items():
            kwargs[attr] = _parse_datetime(d.get(wire))
        for attr in ResidentOrder._MONEY:
            if attr in d:
                kwargs[attr] = d[attr]
        kwargs["meals"] = [Meal.from_dict(m) for m in d.get("meals", [])]
        return ResidentOrder(**kwargs)

    def to_dict(self):
        '''Converts the order to its persisted / wire form.'''
        data = {wire: getattr(self, attr) for wire, attr in self._FIELDS.items()}
        for wire, attr in self._DATES.items():
            data[wire] = _iso(getattr(self, attr))
        for wire, attr in self._INSTANTS.items():
            data[wire] = _iso(getattr(self, attr))
        for attr in self._MONEY:
            data[attr] = str(getattr(self, attr))
        data["meals"] = [m.to_dict() for m in self.meals]
        data["totalMeals"] = self.total_meals
        return data

    def to_public_dict(self):
        '''Wire form without the internal capture bookkeeping.'''
        data = self.to_dict()
        data.pop("captureToken", None)
        data.pop("captureInFlight", None)
        data.pop("paymentMethodRef", None)
        return data
