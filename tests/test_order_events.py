from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from zaikon_pos.models import Delivery, Order
from zaikon_pos.services.audit_repository import AuditRepository
from zaikon_pos.services.delivery_repository import DeliveryRepository
from zaikon_pos.services.errors import StorageFailure
from zaikon_pos.services.order_events import DispatchOptions, OrderEvent, is_valid_event, status_for_event


def _delivery_for(session_factory, order_id):
    with session_factory() as s:
        return s.query(Delivery).filter(Delivery.order_id == order_id).first()


@pytest.mark.parametrize(
    "event, status",
    [
        ("order_created", "pending"),
        ("order_confirmed", "confirmed"),
        ("cooking_started", "cooking"),
        ("kitchen_completed", "ready"),
        ("rider_assigned", "ready"),
        ("order_dispatched", "dispatched"),
        ("order_delivered", "delivered"),
        ("order_cancelled", "cancelled"),
        ("order_completed", "completed"),
    ],
)
def test_event_status_table(event, status):
    assert is_valid_event(event)
    assert status_for_event(event) == status


def test_unknown_event():
    assert not is_valid_event("order_teleported")
    assert status_for_event("order_teleported") is None


def test_rider_assigned_keeps_ready_and_sets_rider(dispatcher, make_order, make_rider, load, audits, session_factory):
    order_id = make_order(status="ready", order_type="delivery", ready_at=None)
    rider_id = make_rider(id=7, payout_type="per_km", base_rate=Decimal("20"), per_km_rate=Decimal("10"))
    assert rider_id == 7

    result = dispatcher.dispatch(order_id, "rider_assigned", DispatchOptions(source="pos", actor_user_id=3, rider_id=7))

    assert result.success, result.message
    assert load(Order, order_id).order_status == "ready"
    delivery = _delivery_for(session_factory, order_id)
    assert delivery.assigned_rider_id == 7
    assert delivery.delivery_status == "assigned"
    assert delivery.rider_payout_amount == Decimal("50.00")
    assert delivery.rider_payout_slab == "0-5km"
    [record] = audits(order_id)
    assert record.source == "pos"
    assert record.event_type == "rider_assigned"
    assert (record.status_from, record.status_to) == ("ready", "ready")


def test_rider_assigned_does_not_restamp_ready(dispatcher, status_service, make_order, make_rider, load, clock):
    order_id = make_order(order_type="delivery")
    status_service.transition_status(order_id, "ready", "kds")
    ready_at = load(Order, order_id).ready_at
    rider_id = make_rider()
    clock.advance(timedelta(minutes=4))

    dispatcher.rider_assigned(order_id, rider_id)

    order = load(Order, order_id)
    assert order.ready_at == ready_at
    assert order.rider_assigned_at == clock()


def test_rider_assigned_requires_rider_id(dispatcher, make_order, audits):
    order_id = make_order(status="ready", order_type="delivery")
    result = dispatcher.dispatch(order_id, OrderEvent.RIDER_ASSIGNED, DispatchOptions(source="pos"))
    assert result.error == "invalid_input"
    assert audits(order_id) == []


def test_rider_assigned_without_delivery_row(dispatcher, make_order, make_rider, audits):
    order_id = make_order(status="ready")
    result = dispatcher.rider_assigned(order_id, make_rider())
    assert result.error == "not_found"
    assert audits(order_id) == []


def test_unknown_rider_is_assigned_without_payout(dispatcher, make_order, session_factory):
    order_id = make_order(status="ready", order_type="delivery")
    result = dispatcher.rider_assigned(order_id, 404)
    assert result.success
    delivery = _delivery_for(session_factory, order_id)
    assert delivery.assigned_rider_id == 404
    assert delivery.rider_payout_amount is None


def test_dispatch_and_deliver_update_delivery_row(dispatcher, make_order, session_factory, load, clock):
    order_id = make_order(status="ready", order_type="delivery")

    assert dispatcher.order_dispatched(order_id).success
    assert _delivery_for(session_factory, order_id).delivery_status == "on_route"
    assert load(Order, order_id).dispatched_at == clock()

    clock.advance(timedelta(minutes=12))
    assert dispatcher.order_delivered(order_id).success
    delivery = _delivery_for(session_factory, order_id)
    assert delivery.delivery_status == "delivered"
    assert delivery.delivered_at == clock()
    assert load(Order, order_id).order_status == "delivered"


def test_event_always_audited_even_when_status_unchanged(dispatcher, make_order, audits):
    order_id = make_order(status="cooking")
    dispatcher.cooking_started(order_id)
    dispatcher.cooking_started(order_id)
    records = audits(order_id)
    assert len(records) == 2
    assert all(r.event_type == "cooking_started" for r in records)


def test_invalid_event_and_source(dispatcher, make_order, audits):
    order_id = make_order()
    assert dispatcher.dispatch(order_id, "order_teleported", DispatchOptions(source="pos")).error == "invalid_input"
    assert dispatcher.dispatch(order_id, "cooking_started", DispatchOptions(source="cron")).error == "invalid_input"
    assert audits(order_id) == []


def test_missing_order(dispatcher):
    result = dispatcher.kitchen_completed(12345)
    assert result.error == "not_found"


def test_failed_write_rolls_back_rider_assignment(dispatcher, make_order, make_rider, session_factory, load, monkeypatch):
    order_id = make_order(status="ready", order_type="delivery")
    rider_id = make_rider()

    def failing_append(self, **kwargs):
        raise OperationalError("INSERT INTO zaikon_status_audit", {}, Exception("database is locked"))

    monkeypatch.setattr(AuditRepository, "append", failing_append)

    with pytest.raises(StorageFailure):
        dispatcher.rider_assigned(order_id, rider_id)

    delivery = _delivery_for(session_factory, order_id)
    assert delivery.assigned_rider_id is None
    assert delivery.delivery_status == "pending"
    assert delivery.rider_payout_amount is None
    order = load(Order, order_id)
    assert order.order_status == "ready"
    assert order.rider_assigned_at is None


def test_failed_delivery_update_leaves_order_untouched(dispatcher, make_order, session_factory, load, audits, monkeypatch):
    order_id = make_order(status="ready", order_type="delivery")

    def failing_update(self, *args, **kwargs):
        raise OperationalError("UPDATE zaikon_deliveries", {}, Exception("database is locked"))

    monkeypatch.setattr(DeliveryRepository, "update_delivery_status", failing_update)

    with pytest.raises(StorageFailure):
        dispatcher.order_dispatched(order_id)

    order = load(Order, order_id)
    assert order.order_status == "ready"
    assert order.dispatched_at is None
    assert _delivery_for(session_factory, order_id).delivery_status == "pending"
    assert audits(order_id) == []


@pytest.mark.parametrize("event", [["cooking_started"], {"e": 1}, 3, None])
def test_non_string_event_is_invalid_input(dispatcher, make_order, event):
    assert dispatcher.dispatch(make_order(), event, DispatchOptions(source="pos")).error == "invalid_input"
