"""Order persistence backed by the SQLAlchemy session of the caller."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..models.order import Order
from ..models.order_item import OrderItem


class OrderRepository:
    """Plain CRUD on ``zaikon_orders``; no business rules live here.

    The repository never commits: it works inside the unit of work opened by
    the service, so status fields and audit rows land in one transaction.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, order_id: int, *, for_update: bool = False) -> Optional[Order]:
        q = self._session.query(Order).filter(Order.id == order_id)
        if for_update:
            q = q.with_for_update()
        return q.first()

    def get_by_tracking_token(self, token: str) -> Optional[Order]:
        return self._session.query(Order).filter(Order.tracking_token == token).first()

    def get_by_order_number(self, order_number: str) -> Optional[Order]:
        return self._session.query(Order).filter(Order.order_number == order_number).first()

    def token_exists(self, token: str) -> bool:
        return (
            self._session.query(Order.id).filter(Order.tracking_token == token).first()
            is not None
        )

    def read_tracking_token(self, order_id: int) -> Optional[str]:
        """Fresh read of the stored token, bypassing the identity map."""
        row = self._session.query(Order.tracking_token).filter(Order.id == order_id).first()
        return row[0] if row else None

    def create(self, fields: Dict[str, Any], items: Iterable[Dict[str, Any]] = ()) -> Order:
        order = Order(**fields)
        for item in items:
            order.items.append(OrderItem(**item))
        self._session.add(order)
        self._session.flush()
        return order

    def update_status_fields(self, order_id: int, status_fields: Dict[str, Any]) -> int:
        if not status_fields:
            return 0
        updated = (
            self._session.query(Order)
            .filter(Order.id == order_id)
            .update(status_fields, synchronize_session="fetch")
        )
        self._session.flush()
        return updated

    def list_items(self, order_id: int) -> List[OrderItem]:
        return (
            self._session.query(OrderItem)
            .filter(OrderItem.order_id == order_id)
            .order_by(OrderItem.id.asc())
            .all()
        )

    def find_missing_timestamp(self, status: str, field: str, limit: int = 100) -> List[Order]:
        column = getattr(Order, field)
        return (
            self._session.query(Order)
            .filter(Order.order_status == status, column.is_(None))
            .order_by(Order.id.desc())
            .limit(limit)
            .all()
        )

    def find_invalid_status(self, valid_statuses: Iterable[str], limit: int = 100) -> List[Order]:
        return (
            self._session.query(Order)
            .filter(Order.order_status.notin_(list(valid_statuses)))
            .order_by(Order.id.desc())
            .limit(limit)
            .all()
        )

    def find_open_before(self, cutoff, terminal_statuses: Iterable[str], limit: int = 100) -> List[Order]:
        return (
            self._session.query(Order)
            .filter(
                Order.created_at <= cutoff,
                Order.order_status.notin_(list(terminal_statuses)),
            )
            .order_by(Order.created_at.asc())
            .limit(limit)
            .all()
        )
