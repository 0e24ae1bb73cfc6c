"""Rider payout calculation.

Pure functions: no storage access. ``rider`` is anything exposing
``payout_type``, ``per_delivery_rate``, ``per_km_rate`` and ``base_rate``
(the ``Rider`` model or a ``RiderRates`` value).

Payout models:

* ``per_delivery``: flat ``per_delivery_rate``, distance ignored.
* ``per_km``: ``base_rate + per_km_rate * distance``.
* ``hybrid``: ``base_rate + per_delivery_rate + per_km_rate * distance``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional

from .errors import InvalidInputError


class PayoutType(str, Enum):
    PER_DELIVERY = "per_delivery"
    PER_KM = "per_km"
    HYBRID = "hybrid"


# rate defaults for riders created before payout columns existed
DEFAULT_PAYOUT_TYPE = PayoutType.PER_KM
DEFAULT_PER_DELIVERY_RATE = Decimal("0")
DEFAULT_PER_KM_RATE = Decimal("10")
DEFAULT_BASE_RATE = Decimal("20")

_CENT = Decimal("0.01")


@dataclass(frozen=True)
class RiderRates:
    payout_type: str = DEFAULT_PAYOUT_TYPE.value
    per_delivery_rate: Optional[Decimal] = None
    per_km_rate: Optional[Decimal] = None
    base_rate: Optional[Decimal] = None


def _to_decimal(value: Any, field: str, default: Decimal) -> Decimal:
    if value is None or value == "":
        return default
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidInputError(f"{field} must be a number") from exc
    if not amount.is_finite():
        raise InvalidInputError(f"{field} must be a number")
    return amount


def _distance(distance_km: Any) -> Decimal:
    if distance_km is None:
        raise InvalidInputError("distance_km is required")
    distance = _to_decimal(distance_km, "distance_km", Decimal("0"))
    if distance < 0:
        raise InvalidInputError("distance_km must be >= 0")
    return distance


def _payout_type(rider: Any) -> PayoutType:
    raw = getattr(rider, "payout_type", None)
    if raw is None or raw == "":
        return DEFAULT_PAYOUT_TYPE
    try:
        return PayoutType(raw)
    except ValueError as exc:
        raise InvalidInputError(f"Unknown payout type: {raw}") from exc


def _rate(rider: Any, field: str, default: Decimal) -> Decimal:
    rate = _to_decimal(getattr(rider, field, None), field, default)
    if rate < 0:
        raise InvalidInputError(f"{field} must be >= 0")
    return rate


def calculate_pay(rider: Any, distance_km: Any) -> Decimal:
    if rider is None:
        raise InvalidInputError("rider is required")
    distance = _distance(distance_km)
    payout_type = _payout_type(rider)
    per_delivery = _rate(rider, "per_delivery_rate", DEFAULT_PER_DELIVERY_RATE)
    per_km = _rate(rider, "per_km_rate", DEFAULT_PER_KM_RATE)
    base = _rate(rider, "base_rate", DEFAULT_BASE_RATE)

    if payout_type is PayoutType.PER_DELIVERY:
        amount = per_delivery
    elif payout_type is PayoutType.PER_KM:
        amount = base + per_km * distance
    else:
        amount = base + per_delivery + per_km * distance
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


def determine_slab(distance_km: Any) -> str:
    distance = _distance(distance_km)
    if distance <= 5:
        return "0-5km"
    if distance <= 10:
        return "5-10km"
    return "10+km"


def payout_fields(rider: Any, distance_km: Any) -> Dict[str, Any]:
    """Columns stored on the delivery row when a rider is assigned."""
    return {
        "rider_payout_amount": calculate_pay(rider, distance_km),
        "rider_payout_slab": determine_slab(distance_km),
        "payout_type": _payout_type(rider).value,
    }
