"""Cooking and delivery countdowns shown on the KDS and tracking page."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..db.session import get_session
from ..utils.clock import utc_now
from ..utils.validators import ensure_positive_int
from .errors import NotFoundError, StorageFailure
from .logging import log_event
from .order_repository import OrderRepository
from .status_policy import DEFAULT_COOKING_ETA, DEFAULT_DELIVERY_ETA, OVERTIME_EXTENSION, OrderStatus


def _remaining(start: datetime, eta_minutes: int, now: datetime) -> int:
    elapsed = (now - start).total_seconds() / 60
    return int(round(max(0.0, eta_minutes - elapsed)))


class EtaService:
    def __init__(
        self,
        session_factory=get_session,
        clock: Callable[[], datetime] = utc_now,
        *,
        default_cooking_eta: int = DEFAULT_COOKING_ETA,
        default_delivery_eta: int = DEFAULT_DELIVERY_ETA,
        overtime_extension: int = OVERTIME_EXTENSION,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._default_cooking_eta = default_cooking_eta
        self._default_delivery_eta = default_delivery_eta
        self._overtime_extension = overtime_extension

    def get_remaining_eta(self, order_id: int) -> Optional[Dict[str, Any]]:
        with self._session_factory() as session:
            order = OrderRepository(session).get(order_id)
            if order is None:
                return None
            return self.remaining_for(order)

    def remaining_for(self, order) -> Dict[str, Any]:
        now = self._clock()
        result = {
            "status": order.order_status,
            "cooking_eta_remaining": None,
            "delivery_eta_remaining": None,
        }
        if order.order_status == OrderStatus.COOKING.value and order.cooking_started_at:
            eta = order.cooking_eta_minutes or self._default_cooking_eta
            result["cooking_eta_remaining"] = _remaining(order.cooking_started_at, eta, now)
        if order.order_status in (OrderStatus.READY.value, OrderStatus.DISPATCHED.value):
            start = order.dispatched_at or order.ready_at
            if start:
                eta = order.delivery_eta_minutes or self._default_delivery_eta
                result["delivery_eta_remaining"] = _remaining(start, eta, now)
        return result

    def extend_cooking_eta(self, order_id: int, additional_minutes: Optional[int] = None) -> int:
        return self._extend(order_id, "cooking_eta_minutes", self._default_cooking_eta, additional_minutes)

    def extend_delivery_eta(self, order_id: int, additional_minutes: Optional[int] = None) -> int:
        return self._extend(order_id, "delivery_eta_minutes", self._default_delivery_eta, additional_minutes)

    def _extend(self, order_id: int, column: str, default: int, additional_minutes: Optional[int]) -> int:
        minutes = ensure_positive_int(
            self._overtime_extension if additional_minutes is None else additional_minutes,
            "additional_minutes",
        )
        try:
            with self._session_factory() as session:
                orders = OrderRepository(session)
                order = orders.get(order_id, for_update=True)
                if order is None:
                    raise NotFoundError(f"Order not found: #{order_id}")
                current = getattr(order, column)
                new_eta = (current if current is not None else default) + minutes
                orders.update_status_fields(order_id, {column: new_eta, "updated_at": self._clock()})
        except SQLAlchemyError as exc:
            raise StorageFailure(f"Failed to extend {column} for order #{order_id}: {exc}") from exc
        log_event("info", "eta.extended", order_id=order_id, field=column, old_eta=current, new_eta=new_eta)
        return new_eta

    def check_and_extend_cooking_eta(self, order_id: int) -> Optional[int]:
        """Extend the cooking ETA once the kitchen has run past it."""
        with self._session_factory() as session:
            order = OrderRepository(session).get(order_id)
            if order is None or order.order_status != OrderStatus.COOKING.value or not order.cooking_started_at:
                return None
            eta = order.cooking_eta_minutes or self._default_cooking_eta
            elapsed = (self._clock() - order.cooking_started_at).total_seconds() / 60
        if elapsed >= eta:
            return self.extend_cooking_eta(order_id)
        return None

    def check_and_extend_delivery_eta(self, order_id: int) -> Optional[int]:
        with self._session_factory() as session:
            order = OrderRepository(session).get(order_id)
            if order is None or order.order_status not in (OrderStatus.READY.value, OrderStatus.DISPATCHED.value):
                return None
            start = order.dispatched_at or order.ready_at
            if not start:
                return None
            eta = order.delivery_eta_minutes if order.delivery_eta_minutes is not None else self._default_delivery_eta
            elapsed = (self._clock() - start).total_seconds() / 60
        if elapsed >= eta:
            return self.extend_delivery_eta(order_id)
        return None
