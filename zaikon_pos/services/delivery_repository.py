"""Delivery and rider persistence."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..models.delivery import Delivery
from ..models.rider import Rider


class DeliveryRepository:
    """CRUD on ``zaikon_deliveries`` plus the read-only rider lookup."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_order_id(self, order_id: int) -> Optional[Delivery]:
        return self._session.query(Delivery).filter(Delivery.order_id == order_id).first()

    def create(self, fields: Dict[str, Any]) -> Delivery:
        delivery = Delivery(**fields)
        self._session.add(delivery)
        self._session.flush()
        return delivery

    def update_rider_assignment(
        self,
        delivery_id: int,
        rider_id: int,
        *,
        now: datetime,
        payout: Optional[Dict[str, Any]] = None,
    ) -> int:
        values: Dict[str, Any] = {
            "assigned_rider_id": rider_id,
            "delivery_status": "assigned",
            "updated_at": now,
        }
        if payout:
            values.update(payout)
        updated = (
            self._session.query(Delivery)
            .filter(Delivery.id == delivery_id)
            .update(values, synchronize_session="fetch")
        )
        self._session.flush()
        return updated

    def update_delivery_status(
        self,
        delivery_id: int,
        status: str,
        delivered_at: Optional[datetime] = None,
        *,
        now: datetime,
    ) -> int:
        values: Dict[str, Any] = {"delivery_status": status, "updated_at": now}
        if delivered_at is not None:
            values["delivered_at"] = delivered_at
        updated = (
            self._session.query(Delivery)
            .filter(Delivery.id == delivery_id)
            .update(values, synchronize_session="fetch")
        )
        self._session.flush()
        return updated

    def get_rider(self, rider_id: int) -> Optional[Rider]:
        return self._session.query(Rider).filter(Rider.id == rider_id).first()
