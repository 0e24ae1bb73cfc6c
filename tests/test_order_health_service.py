from datetime import timedelta

import pytest

from zaikon_pos.models import Delivery, Order
from zaikon_pos.services.order_health_service import SCAN_LIMIT, OrderHealthService


@pytest.fixture
def health(session_factory, clock, status_service, dispatcher):
    return OrderHealthService(session_factory, clock, status_service, dispatcher)


def _broken_orders(make_order):
    return {
        "cooking": make_order(status="cooking"),
        "ready": make_order(status="ready"),
        "dispatched": make_order(status="dispatched"),
        "legacy": make_order(status="preparing"),
        "garbage": make_order(status="???"),
        "fine": make_order(status="pending"),
    }


def test_health_check_reports_issues(health, make_order):
    ids = _broken_orders(make_order)

    issues = {(i.order_id, i.issue_type) for i in health.health_check()}

    assert (ids["cooking"], "cooking_no_timestamp") in issues
    assert (ids["ready"], "ready_no_timestamp") in issues
    assert (ids["dispatched"], "dispatched_no_timestamp") in issues
    assert (ids["legacy"], "invalid_status") in issues
    assert (ids["garbage"], "invalid_status") in issues
    assert all(order_id != ids["fine"] for order_id, _ in issues)


def test_dry_run_is_repeatable_and_writes_nothing(health, make_order, audits, load):
    ids = _broken_orders(make_order)

    first = health.auto_repair(dry_run=True)
    second = health.auto_repair(dry_run=True)

    assert first.to_dict() == second.to_dict()
    assert first.fixed == 0
    assert first.skipped == first.checked == 5
    assert audits() == []
    assert load(Order, ids["legacy"]).order_status == "preparing"
    assert load(Order, ids["cooking"]).cooking_started_at is None


def test_repair_converges(health, make_order, load, audits, clock):
    ids = _broken_orders(make_order)

    results = health.auto_repair(dry_run=False)

    assert results.fixed == 5
    assert results.errors == 0
    assert health.health_check() == []
    assert load(Order, ids["cooking"]).cooking_started_at == clock()
    assert load(Order, ids["legacy"]).order_status == "cooking"
    legacy = load(Order, ids["legacy"])
    assert legacy.cooking_started_at is not None
    assert load(Order, ids["garbage"]).order_status == "pending"
    repair_audits = audits(ids["ready"])
    assert len(repair_audits) == 1
    assert repair_audits[0].source == "system"
    assert repair_audits[0].status_from == repair_audits[0].status_to == "ready"


def test_auto_complete_stale_orders(health, make_order, session_factory, load, clock, audits):
    old = clock() - timedelta(hours=3)
    takeaway = make_order(status="ready", created_at=old)
    delivery = make_order(status="dispatched", order_type="delivery", created_at=old)
    done = make_order(status="completed", created_at=old)
    fresh = make_order(status="cooking")

    results = health.auto_complete_stale_orders(hours=2)

    assert results["total_processed"] == 2
    assert results["completed"] == 2
    assert load(Order, takeaway).order_status == "completed"
    assert load(Order, delivery).order_status == "delivered"
    with session_factory() as s:
        row = s.query(Delivery).filter(Delivery.order_id == delivery).first()
        assert row.delivery_status == "delivered"
    assert load(Order, done).order_status == "completed"
    assert load(Order, fresh).order_status == "cooking"
    assert audits(takeaway)[0].source == "system"

    assert health.auto_complete_stale_orders(hours=2)["total_processed"] == 0


def test_repair_converges_past_one_scan_batch(health, make_order, load):
    ids = [make_order(status="cooking") for _ in range(SCAN_LIMIT + 30)]
    ids.append(make_order(status="preparing"))

    results = health.auto_repair(dry_run=False)

    assert results.fixed == SCAN_LIMIT + 31
    assert results.errors == 0
    assert health.health_check() == []
    assert load(Order, ids[0]).cooking_started_at is not None
    assert load(Order, ids[-1]).order_status == "cooking"


def test_dry_run_reports_a_single_batch(health, make_order, audits):
    for _ in range(SCAN_LIMIT + 5):
        make_order(status="ready")
    results = health.auto_repair(dry_run=True)
    assert results.checked == SCAN_LIMIT
    assert audits() == []
