from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from ..db.session import get_session
from ..utils.clock import utc_now
from ..utils.validators import ensure_non_negative_amount, ensure_positive_int
from .audit_repository import AuditRepository
from .delivery_repository import DeliveryRepository
from .errors import InvalidInputError, StorageFailure
from .logging import log_event, token_preview
from .order_events import OrderEvent
from .order_repository import OrderRepository
from .status_policy import DEFAULT_COOKING_ETA, DEFAULT_DELIVERY_ETA, OrderStatus, StatusSource, is_valid_source
from .tracking_service import TrackingTokenService


ORDER_TYPES = ("dine_in", "takeaway", "delivery")


def _amount(data: Dict, key: str) -> Decimal:
    try:
        return ensure_non_negative_amount(data.get(key), key)
    except ValueError as exc:
        raise InvalidInputError(str(exc)) from exc


class OrderService:
    """Order intake and retrieval backed by DB."""

    def __init__(
        self,
        session_factory=get_session,
        clock: Callable[[], datetime] = utc_now,
        tracking_service: Optional[TrackingTokenService] = None,
        *,
        default_cooking_eta: int = DEFAULT_COOKING_ETA,
        default_delivery_eta: int = DEFAULT_DELIVERY_ETA,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._tracking = tracking_service or TrackingTokenService(session_factory)
        self._default_cooking_eta = default_cooking_eta
        self._default_delivery_eta = default_delivery_eta

    def create_order(
        self,
        *,
        order_data: Dict,
        items: List[Dict],
        delivery_data: Optional[Dict] = None,
        source=StatusSource.POS,
        actor_user_id: Optional[int] = None,
    ) -> Dict:
        """Create order, items, delivery row, audit entry and tracking token in one transaction.

        An existing ``order_number`` makes the call idempotent: the stored
        order is returned unchanged.
        """
        src = getattr(source, "value", source)
        if not is_valid_source(src):
            raise InvalidInputError(f"Invalid source: {src}")
        order_type = str(order_data.get("order_type") or "takeaway").strip().lower()
        if order_type not in ORDER_TYPES:
            raise InvalidInputError(f"Invalid order type: {order_type}")
        if not items:
            raise InvalidInputError("order must contain at least one item")
        if order_type == "delivery":
            if not delivery_data:
                raise InvalidInputError("delivery orders require delivery details")
            for key in ("customer_name", "customer_phone"):
                if not str(delivery_data.get(key) or "").strip():
                    raise InvalidInputError(f"{key} required")

        snapshot = []
        subtotal = Decimal("0")
        for it in items:
            name = str(it.get("product_name") or "").strip()
            if not name:
                raise InvalidInputError("product_name required")
            try:
                qty = int(it.get("qty", 1))
            except (TypeError, ValueError) as exc:
                raise InvalidInputError("qty must be an integer") from exc
            if qty <= 0:
                raise InvalidInputError("qty must be > 0")
            unit_price = _amount(it, "unit_price")
            line = unit_price * qty
            subtotal += line
            snapshot.append(
                {
                    "product_id": it.get("product_id"),
                    "product_name": name,
                    "qty": qty,
                    "unit_price": unit_price,
                    "line_total": line,
                    "cost_price": it.get("cost_price"),
                }
            )

        delivery_charges = Decimal("0")
        is_free = False
        if order_type == "delivery":
            is_free = bool(delivery_data.get("is_free_delivery"))
            delivery_charges = Decimal("0") if is_free else _amount(delivery_data, "delivery_charges")
        discounts = _amount(order_data, "discounts")
        taxes = _amount(order_data, "taxes")
        grand_total = subtotal + delivery_charges + taxes - discounts
        if grand_total < 0:
            raise InvalidInputError("discounts exceed order total")

        order_number = str(order_data.get("order_number") or "").strip()
        now = self._clock()
        try:
            with self._session_factory() as session:
                orders = OrderRepository(session)
                if order_number:
                    existing = orders.get_by_order_number(order_number)
                    if existing:
                        return {
                            "order_id": existing.id,
                            "order_number": existing.order_number,
                            "tracking_token": existing.tracking_token,
                            "status": existing.order_status,
                        }
                else:
                    order_number = f"ORD-{now:%Y%m%d}-{uuid4().hex[:6].upper()}"

                cooking_eta = order_data.get("cooking_eta_minutes")
                delivery_eta = order_data.get("delivery_eta_minutes")
                order = orders.create(
                    {
                        "order_number": order_number,
                        "order_type": order_type,
                        "items_subtotal": subtotal,
                        "delivery_charges": delivery_charges,
                        "discounts": discounts,
                        "taxes": taxes,
                        "grand_total": grand_total,
                        "payment_status": order_data.get("payment_status") or "unpaid",
                        "payment_type": order_data.get("payment_type") or "cash",
                        "order_status": OrderStatus.PENDING.value,
                        "special_instructions": order_data.get("special_instructions"),
                        "cashier_id": order_data.get("cashier_id"),
                        "cooking_eta_minutes": ensure_positive_int(
                            cooking_eta if cooking_eta is not None else self._default_cooking_eta, "cooking_eta_minutes"
                        ),
                        "delivery_eta_minutes": ensure_positive_int(
                            delivery_eta if delivery_eta is not None else self._default_delivery_eta, "delivery_eta_minutes"
                        ),
                        "created_at": now,
                        "updated_at": now,
                    },
                    snapshot,
                )
                if order_type == "delivery":
                    DeliveryRepository(session).create(
                        {
                            "order_id": order.id,
                            "customer_name": str(delivery_data["customer_name"]).strip(),
                            "customer_phone": str(delivery_data["customer_phone"]).strip(),
                            "location_name": delivery_data.get("location_name"),
                            "distance_km": _amount(delivery_data, "distance_km"),
                            "delivery_charges": delivery_charges,
                            "is_free_delivery": is_free,
                            "special_instruction": delivery_data.get("special_instruction"),
                            "delivery_status": "pending",
                            "created_at": now,
                            "updated_at": now,
                        }
                    )
                AuditRepository(session).append(
                    order_id=order.id,
                    status_from=None,
                    status_to=OrderStatus.PENDING.value,
                    source=src,
                    actor_user_id=actor_user_id,
                    event_type=OrderEvent.ORDER_CREATED.value,
                    created_at=now,
                )
                token = self._tracking.assign_token(session, order.id)
                order_id = order.id
        except SQLAlchemyError as exc:
            log_event("error", "order.create_failed", order_number=order_number, error=str(exc))
            raise StorageFailure(f"Failed to create order {order_number}: {exc}") from exc

        log_event(
            "info",
            "order.created",
            order_id=order_id,
            order_number=order_number,
            order_type=order_type,
            items=len(snapshot),
            grand_total=float(grand_total),
            token=token_preview(token),
        )
        return {"order_id": order_id, "order_number": order_number, "tracking_token": token, "status": OrderStatus.PENDING.value}

    def get_order(self, order_id: int) -> Dict:
        if not order_id:
            return {}
        with self._session_factory() as session:
            o = OrderRepository(session).get(order_id)
            if not o:
                return {}
            return {
                "order_id": o.id,
                "order_number": o.order_number,
                "order_type": o.order_type,
                "status": o.order_status,
                "grand_total": float(o.grand_total or 0),
                "tracking_token": o.tracking_token,
                "cashier_id": o.cashier_id,
            }
