from .errors import InvalidInputError, NotFoundError, OrderCoreError, StorageFailure, VerificationFailure
from .eta_service import EtaService
from .order_events import DispatchOptions, EventResult, OrderEvent, OrderEventDispatcher
from .order_health_service import OrderHealthService
from .order_service import OrderService
from .order_status_service import OrderStatusService, TransitionOptions, TransitionResult
from .status_policy import OrderStatus, StatusSource
from .tracking_service import TrackingTokenService

__all__ = [
    "DispatchOptions",
    "EtaService",
    "EventResult",
    "InvalidInputError",
    "NotFoundError",
    "OrderCoreError",
    "OrderEvent",
    "OrderEventDispatcher",
    "OrderHealthService",
    "OrderService",
    "OrderStatus",
    "OrderStatusService",
    "StatusSource",
    "StorageFailure",
    "TrackingTokenService",
    "TransitionOptions",
    "TransitionResult",
    "VerificationFailure",
]
