import logging
from threading import RLock
from typing import Any, Callable, Dict, List, Optional

from residentmeals.domain.ResidentOrder import ResidentOrder
from residentmeals.domain.errors import ConflictError
from residentmeals.infra.json_store import load_json, atomic_write_json
from residentmeals.infra.paths import ORDERS_FILE

logger = logging.getLogger(__name__)

# One lock per process guards read-compare-write on the order store.
_store_lock = RLock()


class OrderRepository:
    """JSON-file store of resident orders keyed by order id.

    ``compare_and_update`` is the only way a persisted order changes after it
    is inserted: the write happens only if the stored fields still hold the
    expected values, so two writers racing on the same order cannot both win.
    """

    def __init__(self, path=ORDERS_FILE):
        self.path = path

    def _load(self) -> Dict[str, dict]:
        return load_json(self.path, {}) or {}

    def _save(self, store: Dict[str, dict]) -> None:
        atomic_write_json(self.path, store)

    def get(self, order_id: str) -> Optional[ResidentOrder]:
        with _store_lock:
            record = self._load().get(order_id)
        return ResidentOrder.from_dict(record) if record else None

    def list(self, predicate: Optional[Callable[[ResidentOrder], bool]] = None) -> List[ResidentOrder]:
        with _store_lock:
            records = list(self._load().values())
        orders = [ResidentOrder.from_dict(r) for r in records]
        if predicate is not None:
            orders = [o for o in orders if predicate(o)]
        return orders

    def insert(self, order: ResidentOrder) -> ResidentOrder:
        with _store_lock:
            store = self._load()
            if order.id in store:
                raise ConflictError(f"order {order.id} already exists")
            order.version = 1
            store[order.id] = order.to_dict()
            self._save(store)
        logger.debug("Inserted order %s", order.id)
        return order

    def compare_and_update(self, order_id: str, expected: Dict[str, Any],
                           changes: Dict[str, Any]) -> Optional[ResidentOrder]:
        """Apply ``changes`` only if every attribute in ``expected`` still matches.

        Returns the updated order, or None when the order is gone or another
        writer got there first.
        """
        with _store_lock:
            store = self._load()
            record = store.get(order_id)
            if record is None:
                return None
            order = ResidentOrder.from_dict(record)
            for attr, value in expected.items():
                if getattr(order, attr) != value:
                    logger.info("Conditional update on %s skipped: %s is %r, expected %r",
                                order_id, attr, getattr(order, attr), value)
                    return None
            for attr, value in changes.items():
                if not hasattr(order, attr):
                    raise AttributeError(f"ResidentOrder has no field '{attr}'")
                setattr(order, attr, value)
            order.version += 1
            store[order_id] = order.to_dict()
            self._save(store)
        return order
