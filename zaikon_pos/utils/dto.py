from typing import Any, Dict, Iterable, Optional


def _money(value: Any) -> float:
    return float(value or 0)


def _iso(value: Any) -> Optional[str]:
    return value.isoformat() if value is not None else None


def to_tracking_view(order: Any, delivery: Any = None, rider: Any = None, items: Iterable[Any] = ()) -> Dict:
    """Read-only projection shown on the public tracking page.

    Internal columns (cashier, cost prices, audit rows, rider payout) are
    left out on purpose; only whitelisted fields are copied.
    """
    view = {
        "order_id": getattr(order, "id", None),
        "order_number": getattr(order, "order_number", None),
        "order_type": getattr(order, "order_type", None),
        "order_status": getattr(order, "order_status", None),
        "payment_status": getattr(order, "payment_status", None),
        "payment_type": getattr(order, "payment_type", None),
        "totals": {
            "items_subtotal": _money(getattr(order, "items_subtotal", 0)),
            "delivery_charges": _money(getattr(order, "delivery_charges", 0)),
            "discounts": _money(getattr(order, "discounts", 0)),
            "taxes": _money(getattr(order, "taxes", 0)),
            "grand_total": _money(getattr(order, "grand_total", 0)),
        },
        "cooking_eta_minutes": getattr(order, "cooking_eta_minutes", None),
        "delivery_eta_minutes": getattr(order, "delivery_eta_minutes", None),
        "timestamps": {
            "created_at": _iso(getattr(order, "created_at", None)),
            "confirmed_at": _iso(getattr(order, "confirmed_at", None)),
            "cooking_started_at": _iso(getattr(order, "cooking_started_at", None)),
            "ready_at": _iso(getattr(order, "ready_at", None)),
            "dispatched_at": _iso(getattr(order, "dispatched_at", None)),
            "updated_at": _iso(getattr(order, "updated_at", None)),
        },
        "delivery": None,
        "rider": None,
        "items": [
            {
                "product_name": getattr(it, "product_name", None),
                "qty": getattr(it, "qty", 0),
                "unit_price": _money(getattr(it, "unit_price", 0)),
                "line_total": _money(getattr(it, "line_total", 0)),
            }
            for it in items
        ],
    }
    if delivery is not None:
        view["delivery"] = {
            "customer_name": getattr(delivery, "customer_name", None),
            "customer_phone": getattr(delivery, "customer_phone", None),
            "location_name": getattr(delivery, "location_name", None),
            "special_instruction": getattr(delivery, "special_instruction", None),
            "delivery_status": getattr(delivery, "delivery_status", None),
            "delivery_charges": _money(getattr(delivery, "delivery_charges", 0)),
            "delivered_at": _iso(getattr(delivery, "delivered_at", None)),
        }
    if rider is not None:
        view["rider"] = {
            "name": getattr(rider, "name", None),
            "phone": getattr(rider, "phone", None),
            "vehicle_number": getattr(rider, "vehicle_number", None),
        }
    return view
