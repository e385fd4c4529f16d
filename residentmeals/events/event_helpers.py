"""Event helper utilities.

Helpers for publishing order lifecycle events on the global event bus, and the
logging observer the app registers at startup.

Quick import:
    from residentmeals.events.event_helpers import publish_order_event, start_order_logging
"""
from __future__ import annotations
import logging
from typing import Any, Optional
from .Event_Bus import publish, GLOBAL_EVENT_BUS, ORDER_EVENTS, ORDER_PAYMENT_FAILED

logger = logging.getLogger("residentmeals.orders")

__all__ = ['publish_order_event', 'start_order_logging', 'log_order_event']

_started = False


def publish_order_event(event_name: str, order: Any, message: Optional[str] = None):
    """Publish an order.* event carrying the order (and an optional message)."""
    payload = {'order': order}
    if message is not None:
        payload['message'] = message
    publish(event_name, payload)


def log_order_event(event_name: str, payload: Any):
    order = payload.get('order') if isinstance(payload, dict) else None
    if order is None:
        logger.info("%s", event_name)
        return
    fields = {
        'orderId': getattr(order, 'id', None),
        'orderNumber': getattr(order, 'order_number', None),
        'residentId': getattr(order, 'resident_id', None),
        'status': getattr(order, 'status', None),
        'paymentStatus': getattr(order, 'payment_status', None),
        'total': str(getattr(order, 'total', '')),
    }
    if event_name == ORDER_PAYMENT_FAILED:
        logger.warning("%s %s: %s", event_name, fields, payload.get('message'))
    else:
        logger.info("%s %s", event_name, fields)


def start_order_logging():
    """Idempotent start: subscribe the logging observer once."""
    global _started
    if _started:
        return
    for name in ORDER_EVENTS:
        GLOBAL_EVENT_BUS.subscribe(name, log_order_event)
    _started = True
