from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from zaikon_pos.utils.dto import to_tracking_view
from zaikon_pos.utils.pagination import normalize_paging
from zaikon_pos.utils.validators import ensure_non_negative_amount, ensure_positive_int


@pytest.mark.parametrize(
    "page, size, expected",
    [(None, None, (1, 20, 0)), ("3", "10", (3, 10, 20)), ("x", "-4", (1, 20, 0)), (2, 500, (2, 50, 50))],
)
def test_normalize_paging(page, size, expected):
    assert tuple(normalize_paging(page, size, max_page_size=50)) == expected


def test_validators():
    assert ensure_positive_int("5", "eta") == 5
    assert ensure_non_negative_amount(None, "taxes") == Decimal("0")
    with pytest.raises(ValueError):
        ensure_positive_int(-1, "eta")
    with pytest.raises(ValueError):
        ensure_non_negative_amount("abc", "taxes")
    with pytest.raises(ValueError):
        ensure_non_negative_amount("NaN", "taxes")


def test_tracking_view_whitelist():
    order = SimpleNamespace(
        id=1,
        order_number="ORD-1",
        order_type="delivery",
        order_status="ready",
        cashier_id=7,
        grand_total=Decimal("99.5"),
        created_at=datetime(2026, 3, 1, 12, 0),
    )
    delivery = SimpleNamespace(customer_name="A", rider_payout_amount=Decimal("50"), delivery_status="assigned")
    items = [SimpleNamespace(product_name="Tea", qty=2, unit_price=Decimal("50"), line_total=Decimal("100"), cost_price=30)]

    view = to_tracking_view(order, delivery, None, items)

    assert view["totals"]["grand_total"] == 99.5
    assert view["timestamps"]["created_at"] == "2026-03-01T12:00:00"
    assert "cashier_id" not in view
    assert "rider_payout_amount" not in view["delivery"]
    assert view["items"] == [{"product_name": "Tea", "qty": 2, "unit_price": 50.0, "line_total": 100.0}]
    assert view["rider"] is None
