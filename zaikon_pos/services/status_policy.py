"""Order status vocabulary, lifecycle timestamp map and legacy status repair."""
from enum import Enum
from typing import Dict, Optional

from .logging import log_event


class OrderStatus(str, Enum):
    """Closed set of order states stored in ``zaikon_orders.order_status``."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COOKING = "cooking"
    READY = "ready"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"
    ACTIVE = "active"  # legacy synonym of pending
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REPLACEMENT = "replacement"


class StatusSource(str, Enum):
    """Where a status change originated; recorded on every audit row."""
    POS = "pos"
    KDS = "kds"
    API = "api"
    SYSTEM = "system"
    TRACKING = "tracking"
    RIDER = "rider"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    PICKED = "picked"
    ON_ROUTE = "on_route"
    DELIVERED = "delivered"
    FAILED = "failed"


VALID_STATUSES = frozenset(s.value for s in OrderStatus)

TERMINAL_STATUSES = frozenset({
    OrderStatus.COMPLETED.value,
    OrderStatus.CANCELLED.value,
    OrderStatus.DELIVERED.value,
    OrderStatus.REPLACEMENT.value,
})

# delivered_at lives on the delivery row, not on the order
STATUS_TIMESTAMP_MAP: Dict[str, str] = {
    OrderStatus.CONFIRMED.value: "confirmed_at",
    OrderStatus.COOKING.value: "cooking_started_at",
    OrderStatus.READY.value: "ready_at",
    OrderStatus.DISPATCHED.value: "dispatched_at",
}

LEGACY_STATUS_MAP: Dict[str, str] = {
    "preparing": OrderStatus.COOKING.value,
    "in_progress": OrderStatus.COOKING.value,
    "on_the_way": OrderStatus.DISPATCHED.value,
    "out_for_delivery": OrderStatus.DISPATCHED.value,
    "new": OrderStatus.PENDING.value,
    "": OrderStatus.PENDING.value,
}

DEFAULT_COOKING_ETA = 20
DEFAULT_DELIVERY_ETA = 15
OVERTIME_EXTENSION = 5


def _value(status) -> Optional[str]:
    if isinstance(status, Enum):
        return status.value
    # anything that is not a string (lists, numbers, dicts from JSON) is never valid
    return status if isinstance(status, str) else None


def is_valid_status(status) -> bool:
    return _value(status) in VALID_STATUSES


def is_valid_source(source) -> bool:
    return _value(source) in {s.value for s in StatusSource}


def timestamp_field_for(status) -> Optional[str]:
    return STATUS_TIMESTAMP_MAP.get(_value(status))


def normalize_legacy_status(raw: Optional[str]) -> str:
    """Map a historical or UI status string onto the valid vocabulary.

    Valid statuses map to themselves. Known synonyms map to their modern
    equivalent. Anything else falls back to ``pending``: this is a lossy,
    best-effort repair and is logged as a warning so the change stays visible.
    """
    key = (_value(raw) or "").strip().lower()
    if key in VALID_STATUSES:
        return key
    if key in LEGACY_STATUS_MAP:
        return LEGACY_STATUS_MAP[key]
    log_event("warning", "status.normalize_lossy", raw=raw, mapped_to=OrderStatus.PENDING.value)
    return OrderStatus.PENDING.value
