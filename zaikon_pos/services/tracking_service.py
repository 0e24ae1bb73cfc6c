"""Public tracking tokens: generation and customer-safe order lookup."""

from __future__ import annotations

import re
import secrets
from typing import Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.session import get_session
from ..utils.dto import to_tracking_view
from .delivery_repository import DeliveryRepository
from .errors import NotFoundError, StorageFailure, VerificationFailure
from .logging import log_event, token_preview
from .order_repository import OrderRepository


TOKEN_PATTERN = re.compile(r"^[a-f0-9]{16,64}$")
TOKEN_BYTES = 16  # 32 hex characters
MAX_TOKEN_ATTEMPTS = 5


def is_well_formed_token(token: Optional[str]) -> bool:
    return isinstance(token, str) and bool(TOKEN_PATTERN.match(token))


class TrackingTokenService:
    """Issues tracking tokens and resolves them for unauthenticated customers."""

    def __init__(
        self,
        session_factory=get_session,
        random_bytes: Callable[[int], bytes] = secrets.token_bytes,
        base_url: str = "",
    ):
        self._session_factory = session_factory
        self._random_bytes = random_bytes
        self._base_url = (base_url or "").rstrip("/")

    def generate_token(self, order_id: int) -> str:
        """Create, store and verify a new token for ``order_id``.

        Raises ``NotFoundError`` for a missing order, ``VerificationFailure``
        when the stored value does not match after the write, and
        ``StorageFailure`` for any other database error.
        """
        try:
            with self._session_factory() as session:
                return self.assign_token(session, order_id)
        except SQLAlchemyError as exc:
            log_event("error", "tracking.token_write_failed", order_id=order_id, error=str(exc))
            raise StorageFailure(f"Failed to store tracking token for order #{order_id}: {exc}") from exc

    def assign_token(self, session: Session, order_id: int) -> str:
        """Token generation inside a caller-owned transaction."""
        orders = OrderRepository(session)
        if orders.get(order_id) is None:
            raise NotFoundError(f"Order not found: #{order_id}")

        token = None
        for _ in range(MAX_TOKEN_ATTEMPTS):
            candidate = self._random_bytes(TOKEN_BYTES).hex()
            if not orders.token_exists(candidate):
                token = candidate
                break
            log_event("warning", "tracking.token_collision", order_id=order_id, token=token_preview(candidate))
        if token is None:
            raise StorageFailure(f"Could not generate a unique tracking token for order #{order_id}")

        orders.update_status_fields(order_id, {"tracking_token": token})
        saved = orders.read_tracking_token(order_id)
        if saved != token:
            log_event(
                "error",
                "tracking.token_verify_failed",
                order_id=order_id,
                expected=token_preview(token),
                got=token_preview(saved),
            )
            raise VerificationFailure(f"Tracking token was not persisted for order #{order_id}")

        log_event("info", "tracking.token_generated", order_id=order_id, token=token_preview(token))
        return token

    def tracking_url(self, token: str) -> str:
        return f"{self._base_url}/track/{token}"

    def resolve_token(self, token: Optional[str]) -> Optional[Dict]:
        """Customer-safe order view for ``token`` or ``None``.

        Malformed tokens are rejected before any storage access.
        """
        if not is_well_formed_token(token):
            log_event("info", "tracking.token_malformed", token=token_preview(token if isinstance(token, str) else None))
            return None
        with self._session_factory() as session:
            order = OrderRepository(session).get_by_tracking_token(token)
            if order is None:
                log_event("info", "tracking.token_unknown", token=token_preview(token))
                return None
            deliveries = DeliveryRepository(session)
            delivery = deliveries.get_by_order_id(order.id)
            rider = None
            if delivery is not None and delivery.assigned_rider_id:
                rider = deliveries.get_rider(delivery.assigned_rider_id)
            items = OrderRepository(session).list_items(order.id)
            return to_tracking_view(order, delivery, rider, items)
