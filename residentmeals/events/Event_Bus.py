"""Simple Event Bus / Observer implementation for order lifecycle notifications.

Event names:
  order.created        -> payload {"order": ResidentOrder}
  order.updated        -> payload {"order": ResidentOrder}
  order.submitted      -> payload {"order": ResidentOrder}
  order.paid           -> payload {"order": ResidentOrder}
  order.payment_failed -> payload {"order": ResidentOrder, "message": str}
  order.cancelled      -> payload {"order": ResidentOrder}

Subscribers are callables taking (event_name, payload).
"""
from __future__ import annotations
import logging
from collections import defaultdict
from typing import Callable, Any, Dict, List

logger = logging.getLogger(__name__)

# --- Event name constants (used across modules) ---
ORDER_CREATED = "order.created"
ORDER_UPDATED = "order.updated"
ORDER_SUBMITTED = "order.submitted"
ORDER_PAID = "order.paid"
ORDER_PAYMENT_FAILED = "order.payment_failed"
ORDER_CANCELLED = "order.cancelled"

ORDER_EVENTS = (
	ORDER_CREATED, ORDER_UPDATED, ORDER_SUBMITTED, ORDER_PAID, ORDER_PAYMENT_FAILED, ORDER_CANCELLED,
)


class EventBus:
	def __init__(self):
		self._subscribers: Dict[str, List[Callable[[str, Any], None]]] = defaultdict(list)

	def subscribe(self, event_name: str, callback: Callable[[str, Any], None]):
		if callback not in self._subscribers[event_name]:
			self._subscribers[event_name].append(callback)

	def unsubscribe(self, event_name: str, callback: Callable[[str, Any], None]):
		try:
			self._subscribers[event_name].remove(callback)
		except (ValueError, KeyError):
			pass

	def publish(self, event_name: str, payload: Any):
		# A failing subscriber must not undo an order transition that already happened.
		for cb in list(self._subscribers.get(event_name, [])):
			try:
				cb(event_name, payload)
			except Exception:
				logger.exception("Error delivering %s to %r", event_name, cb)


# A singleton-like instance (can be imported)
GLOBAL_EVENT_BUS = EventBus()


def publish(event_name: str, payload: Any = None) -> None:
	"""Publish an event on the global bus (sugar function)."""
	GLOBAL_EVENT_BUS.publish(event_name, payload)


__all__ = [
	'EventBus', 'GLOBAL_EVENT_BUS', 'publish', 'ORDER_EVENTS',
	'ORDER_CREATED', 'ORDER_UPDATED', 'ORDER_SUBMITTED', 'ORDER_PAID',
	'ORDER_PAYMENT_FAILED', 'ORDER_CANCELLED',
]
