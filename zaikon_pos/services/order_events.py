"""Named lifecycle events layered on the status service.

Systems fire events ("cooking started", "rider assigned") instead of writing
status strings. Each event maps to exactly one order status; a few events
also touch the delivery row of the order. Every dispatched event writes one
audit record tagged with the event name, even when the status does not move
(``rider_assigned`` on an order that is already ready).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from ..db.session import get_session
from ..utils.clock import utc_now
from .delivery_repository import DeliveryRepository
from .errors import INVALID_INPUT, NOT_FOUND, InvalidInputError, StorageFailure
from .logging import log_event
from .order_repository import OrderRepository
from .order_status_service import OrderStatusService
from .rider_payout import payout_fields
from .status_policy import DeliveryStatus, OrderStatus, StatusSource, is_valid_source


class OrderEvent(str, Enum):
    ORDER_CREATED = "order_created"
    ORDER_CONFIRMED = "order_confirmed"
    COOKING_STARTED = "cooking_started"
    KITCHEN_COMPLETED = "kitchen_completed"
    RIDER_ASSIGNED = "rider_assigned"
    ORDER_DISPATCHED = "order_dispatched"
    ORDER_DELIVERED = "order_delivered"
    ORDER_CANCELLED = "order_cancelled"
    ORDER_COMPLETED = "order_completed"


EVENT_STATUS_MAP: Dict[OrderEvent, OrderStatus] = {
    OrderEvent.ORDER_CREATED: OrderStatus.PENDING,
    OrderEvent.ORDER_CONFIRMED: OrderStatus.CONFIRMED,
    OrderEvent.COOKING_STARTED: OrderStatus.COOKING,
    OrderEvent.KITCHEN_COMPLETED: OrderStatus.READY,
    OrderEvent.RIDER_ASSIGNED: OrderStatus.READY,  # status stays ready; assignment is the side effect
    OrderEvent.ORDER_DISPATCHED: OrderStatus.DISPATCHED,
    OrderEvent.ORDER_DELIVERED: OrderStatus.DELIVERED,
    OrderEvent.ORDER_CANCELLED: OrderStatus.CANCELLED,
    OrderEvent.ORDER_COMPLETED: OrderStatus.COMPLETED,
}


def _as_event(event: Union[str, OrderEvent, None]) -> Optional[OrderEvent]:
    try:
        return OrderEvent(event)
    except (TypeError, ValueError):
        return None


def is_valid_event(event) -> bool:
    return _as_event(event) is not None


def status_for_event(event) -> Optional[str]:
    ev = _as_event(event)
    return EVENT_STATUS_MAP[ev].value if ev is not None else None


@dataclass
class DispatchOptions:
    source: Union[str, StatusSource]
    actor_user_id: Optional[int] = None
    rider_id: Optional[int] = None
    notes: Optional[str] = None


@dataclass
class EventResult:
    success: bool
    event: str
    message: str
    error: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class OrderEventDispatcher:
    """Event-based state changes backed by DB."""

    def __init__(
        self,
        session_factory=get_session,
        clock: Callable[[], datetime] = utc_now,
        status_service: Optional[OrderStatusService] = None,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._status_service = status_service or OrderStatusService(session_factory, clock)

    def dispatch(self, order_id: int, event: Union[str, OrderEvent], options: DispatchOptions) -> EventResult:
        ev = _as_event(event)
        event_name = ev.value if ev else str(event)
        result = EventResult(success=False, event=event_name, message="")

        if ev is None:
            return self._reject(result, order_id, INVALID_INPUT, f"Invalid event type: {event_name}")
        source = getattr(options.source, "value", options.source)
        if not is_valid_source(source):
            return self._reject(result, order_id, INVALID_INPUT, f"Invalid source: {source}")
        if ev is OrderEvent.RIDER_ASSIGNED and not options.rider_id:
            return self._reject(result, order_id, INVALID_INPUT, "rider_id is required for rider_assigned")

        new_status = EVENT_STATUS_MAP[ev].value
        try:
            with self._session_factory() as session:
                orders = OrderRepository(session)
                deliveries = DeliveryRepository(session)
                order = orders.get(order_id, for_update=True)
                if order is None:
                    return self._reject(result, order_id, NOT_FOUND, f"Order not found: #{order_id}")

                now = self._clock()
                old_status = order.order_status
                delivery = deliveries.get_by_order_id(order_id)
                extra: Dict[str, Any] = {}

                if ev is OrderEvent.RIDER_ASSIGNED:
                    if delivery is None:
                        return self._reject(
                            result, order_id, NOT_FOUND, f"Delivery record not found for order #{order_id}"
                        )
                    rider = deliveries.get_rider(options.rider_id)
                    payout = None
                    if rider is not None:
                        try:
                            payout = payout_fields(rider, delivery.distance_km)
                        except InvalidInputError as exc:
                            return self._reject(result, order_id, INVALID_INPUT, str(exc))
                    else:
                        log_event("warning", "event.rider_unknown", order_id=order_id, rider_id=options.rider_id)
                    deliveries.update_rider_assignment(delivery.id, options.rider_id, now=now, payout=payout)
                    extra["rider_assigned_at"] = now
                    if payout:
                        result.data["rider_payout_amount"] = float(payout["rider_payout_amount"])
                        result.data["rider_payout_slab"] = payout["rider_payout_slab"]
                elif ev is OrderEvent.ORDER_DISPATCHED and delivery is not None:
                    deliveries.update_delivery_status(delivery.id, DeliveryStatus.ON_ROUTE.value, now=now)
                elif ev is OrderEvent.ORDER_DELIVERED and delivery is not None:
                    deliveries.update_delivery_status(
                        delivery.id, DeliveryStatus.DELIVERED.value, delivered_at=now, now=now
                    )

                timestamps = self._status_service.record_transition(
                    session,
                    order,
                    new_status,
                    source,
                    options.actor_user_id,
                    notes=options.notes,
                    event_type=ev.value,
                    extra_fields=extra,
                    restamp=False,
                    now=now,
                )
                order_number = order.order_number
        except SQLAlchemyError as exc:
            log_event("error", "event.dispatch_failed", order_id=order_id, event_type=ev.value, error=str(exc))
            raise StorageFailure(f"Failed to dispatch {ev.value} for order #{order_id}: {exc}") from exc

        result.success = True
        result.message = f"Event {ev.value} dispatched successfully"
        result.data.update(
            {
                "order_id": order_id,
                "order_number": order_number,
                "old_status": old_status,
                "new_status": new_status,
                "timestamp": now.isoformat(),
                "timestamps_set": timestamps,
                "source": source,
            }
        )
        if ev is OrderEvent.RIDER_ASSIGNED:
            result.data["rider_id"] = options.rider_id
        log_event(
            "info",
            "event.dispatched",
            order_id=order_id,
            order_number=order_number,
            event_type=ev.value,
            old_status=old_status,
            new_status=new_status,
            source=source,
        )
        return result

    @staticmethod
    def _reject(result: EventResult, order_id: int, code: str, message: str) -> EventResult:
        result.error = code
        result.message = message
        log_event("error", "event.rejected", order_id=order_id, event_type=result.event, reason=message)
        return result

    # convenience wrappers used by the KDS, POS and rider screens

    def cooking_started(self, order_id: int, source=StatusSource.KDS, actor_user_id: Optional[int] = None) -> EventResult:
        return self.dispatch(order_id, OrderEvent.COOKING_STARTED, DispatchOptions(source=source, actor_user_id=actor_user_id))

    def kitchen_completed(self, order_id: int, source=StatusSource.KDS, actor_user_id: Optional[int] = None) -> EventResult:
        return self.dispatch(order_id, OrderEvent.KITCHEN_COMPLETED, DispatchOptions(source=source, actor_user_id=actor_user_id))

    def rider_assigned(
        self, order_id: int, rider_id: int, source=StatusSource.POS, actor_user_id: Optional[int] = None
    ) -> EventResult:
        return self.dispatch(
            order_id,
            OrderEvent.RIDER_ASSIGNED,
            DispatchOptions(source=source, actor_user_id=actor_user_id, rider_id=rider_id),
        )

    def order_dispatched(self, order_id: int, source=StatusSource.POS, actor_user_id: Optional[int] = None) -> EventResult:
        return self.dispatch(order_id, OrderEvent.ORDER_DISPATCHED, DispatchOptions(source=source, actor_user_id=actor_user_id))

    def order_delivered(self, order_id: int, source=StatusSource.RIDER, actor_user_id: Optional[int] = None) -> EventResult:
        return self.dispatch(order_id, OrderEvent.ORDER_DELIVERED, DispatchOptions(source=source, actor_user_id=actor_user_id))
