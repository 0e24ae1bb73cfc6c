"""Order status transitions: validation, timestamp stamping and audit trail.

Single entry point for changing ``zaikon_orders.order_status``. Every
successful, non-idempotent transition writes the status, ``updated_at``, the
lifecycle timestamp mapped to the new status and one audit row inside one
database transaction.

Idempotent calls (the order already has the requested status and ``force``
is not set) succeed without touching the row and without an audit record.
Every entry into a status stamps its timestamp, so re-entering one (e.g.
cooking -> ready -> cooking) refreshes it. A same-status write keeps the
existing timestamp unless forced. The events dispatcher follows the same rule.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.session import get_session
from ..models.order import Order
from ..utils.clock import utc_now
from .audit_repository import AuditRepository
from .errors import INVALID_INPUT, NOT_FOUND, StorageFailure
from .logging import log_event
from .order_repository import OrderRepository
from .status_policy import (
    DEFAULT_COOKING_ETA,
    DEFAULT_DELIVERY_ETA,
    OrderStatus,
    StatusSource,
    is_valid_source,
    is_valid_status,
    timestamp_field_for,
)


@dataclass
class TransitionOptions:
    force: bool = False
    notes: Optional[str] = None


@dataclass
class TransitionResult:
    success: bool
    message: str
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    error: Optional[str] = None
    timestamps_set: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _value(v):
    return getattr(v, "value", v)


def _parse_day(value: Union[None, str, date], fallback: date) -> date:
    if value is None or value == "":
        return fallback
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(str(value), "%Y-%m-%d").date()


class OrderStatusService:
    """Validated, audited status transitions backed by DB."""

    def __init__(
        self,
        session_factory=get_session,
        clock: Callable[[], datetime] = utc_now,
        *,
        default_cooking_eta: int = DEFAULT_COOKING_ETA,
        default_delivery_eta: int = DEFAULT_DELIVERY_ETA,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._default_cooking_eta = default_cooking_eta
        self._default_delivery_eta = default_delivery_eta

    def transition_status(
        self,
        order_id: int,
        new_status: Union[str, OrderStatus],
        source: Union[str, StatusSource],
        actor_user_id: Optional[int] = None,
        options: Optional[TransitionOptions] = None,
    ) -> TransitionResult:
        """Move an order to ``new_status``.

        Returns a result with ``error="invalid_input"`` for an unknown status
        or source and ``error="not_found"`` for a missing order; neither
        writes anything. Raises ``StorageFailure`` when the transaction fails,
        after it was rolled back.
        """
        options = options or TransitionOptions()
        status = _value(new_status)
        src = _value(source)
        result = TransitionResult(success=False, message="", new_status=status)

        if not is_valid_status(status):
            result.error = INVALID_INPUT
            result.message = (
                f"Invalid status: {status}. Valid statuses: {', '.join(s.value for s in OrderStatus)}"
            )
            log_event("error", "status.transition_rejected", order_id=order_id, reason=result.message)
            return result
        if not is_valid_source(src):
            result.error = INVALID_INPUT
            result.message = f"Invalid source: {src}"
            log_event("error", "status.transition_rejected", order_id=order_id, reason=result.message)
            return result

        try:
            with self._session_factory() as session:
                order = OrderRepository(session).get(order_id, for_update=True)
                if order is None:
                    result.error = NOT_FOUND
                    result.message = f"Order not found: #{order_id}"
                    log_event("error", "status.transition_rejected", order_id=order_id, reason=result.message)
                    return result

                result.old_status = order.order_status
                if order.order_status == status and not options.force:
                    result.success = True
                    result.message = f"Status already set to {status}"
                    return result

                result.timestamps_set = self.record_transition(
                    session,
                    order,
                    status,
                    src,
                    actor_user_id,
                    notes=options.notes,
                )
        except SQLAlchemyError as exc:
            log_event(
                "error",
                "status.transition_failed",
                order_id=order_id,
                old_status=result.old_status,
                new_status=status,
                source=src,
                error=str(exc),
            )
            raise StorageFailure(f"Failed to update order #{order_id} status: {exc}") from exc

        result.success = True
        result.message = f"Status updated from {result.old_status} to {status}"
        log_event(
            "info",
            "status.transition",
            order_id=order_id,
            old_status=result.old_status,
            new_status=status,
            source=src,
            actor_user_id=actor_user_id,
            forced=options.force,
            timestamps_set=result.timestamps_set,
        )
        return result

    def record_transition(
        self,
        session: Session,
        order: Order,
        new_status: str,
        source: str,
        actor_user_id: Optional[int],
        *,
        notes: Optional[str] = None,
        event_type: Optional[str] = None,
        extra_fields: Optional[Dict[str, Any]] = None,
        restamp: bool = True,
        now: Optional[datetime] = None,
    ) -> List[str]:
        """Write status fields and the audit row inside ``session``.

        Callers own the transaction and have already validated inputs.
        With ``restamp=False`` a same-status write keeps an existing
        lifecycle timestamp. Returns the timestamp columns that were written.
        """
        now = now or self._clock()
        old_status = order.order_status
        fields: Dict[str, Any] = {"order_status": new_status, "updated_at": now}

        ts_field = timestamp_field_for(new_status)
        if ts_field and (new_status != old_status or restamp or getattr(order, ts_field) is None):
            fields[ts_field] = now

        if new_status == OrderStatus.COOKING.value and order.cooking_eta_minutes is None:
            fields["cooking_eta_minutes"] = self._default_cooking_eta
        if new_status in (OrderStatus.READY.value, OrderStatus.DISPATCHED.value) and order.delivery_eta_minutes is None:
            fields["delivery_eta_minutes"] = self._default_delivery_eta
        if extra_fields:
            fields.update(extra_fields)

        OrderRepository(session).update_status_fields(order.id, fields)
        AuditRepository(session).append(
            order_id=order.id,
            status_from=old_status,
            status_to=new_status,
            source=source,
            actor_user_id=actor_user_id,
            event_type=event_type,
            notes=notes,
            created_at=now,
        )
        return [k for k in fields if k.endswith("_at")]

    def get_status_history(self, order_id: int, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        with self._session_factory() as session:
            records = AuditRepository(session).query_by_order(order_id, limit=limit, offset=offset)
            return [r.to_dict() for r in records]

    def get_transition_stats(self, date_from=None, date_to=None) -> Dict[str, Any]:
        today = self._clock().date()
        start_day = _parse_day(date_from, today - timedelta(days=30))
        end_day = _parse_day(date_to, today)
        start = datetime.combine(start_day, time.min)
        end = datetime.combine(end_day, time.max)
        with self._session_factory() as session:
            stats = AuditRepository(session).transition_stats(start, end)
        stats["date_range"] = {"from": start_day.isoformat(), "to": end_day.isoformat()}
        return stats
