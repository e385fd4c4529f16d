import asyncio
import shutil
from datetime import date, timedelta
from pathlib import Path

import pytest

from residentmeals.infra.Menu_Repository import MenuRepository
from residentmeals.infra.Order_Repository import OrderRepository
from residentmeals.infra.Resident_Repository import ResidentRepository
from residentmeals.infra.payment_gateway import CaptureResult
from residentmeals.logic.deadline.calendar import cutoff_for_week
from residentmeals.logic.ordering.access import Actor
from residentmeals.logic.ordering.lifecycle import OrderLifecycle

SEED_DIR = Path(__file__).resolve().parent.parent / "data"

# Monday of a week well clear of daylight-saving changes.
WEEK_START = date(2026, 11, 9)
WEEK_END = date(2026, 11, 15)
CUTOFF = cutoff_for_week(WEEK_START, "America/New_York")

ADMIN = Actor(user_id="admin-1", role="admin")


class FakeGateway:
    """In-memory stand-in for the card processor that records every call."""

    def __init__(self):
        self.captures = []
        self.retrieves = []
        self.outcome = "succeeded"
        self.delay = 0

    async def capture(self, amount, payment_method_id, idempotency_key, description="",
                      metadata=None, receipt_email=None):
        self.captures.append({
            "amount": amount,
            "payment_method_id": payment_method_id,
            "idempotency_key": idempotency_key,
            "metadata": metadata or {},
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return CaptureResult(
            payment_intent_id=f"pi_{idempotency_key[:12]}",
            status=self.outcome,
            amount=amount,
            client_secret="pi_secret_123",
            receipt_url="https://pay.example.test/receipts/1",
        )

    async def retrieve(self, payment_intent_id):
        self.retrieves.append(payment_intent_id)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return CaptureResult(payment_intent_id=payment_intent_id, status=self.outcome, amount=0)


@pytest.fixture
def data_dir(tmp_path):
    for name in ("menu_items.json", "residents.json", "facilities.json"):
        shutil.copy(SEED_DIR / name, tmp_path / name)
    return tmp_path


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def clock():
    """Mutable clock; tests move ``clock.now`` around the cutoff."""
    class _Clock:
        now = CUTOFF - timedelta(days=1)

        def __call__(self):
            return self.now

    return _Clock()


@pytest.fixture
def lifecycle(data_dir, gateway, clock):
    return OrderLifecycle(
        orders=OrderRepository(data_dir / "resident_orders.json"),
        menu=MenuRepository(data_dir / "menu_items.json"),
        residents=ResidentRepository(data_dir / "residents.json", data_dir / "facilities.json"),
        gateway=gateway,
        payment_timeout=1,
        tz="America/New_York",
        clock=clock,
    )
