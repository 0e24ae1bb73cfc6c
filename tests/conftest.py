import itertools
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from zaikon_pos.db.session import init_db, make_session_factory
from zaikon_pos.models import Delivery, Order, Rider
from zaikon_pos.services.order_events import OrderEventDispatcher
from zaikon_pos.services.order_status_service import OrderStatusService
from zaikon_pos.services.tracking_service import TrackingTokenService


START = datetime(2026, 3, 1, 12, 0, 0)


class FixedClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now = self.now + delta


class CountingBytes:
    """Deterministic random source: each call yields a new, distinct byte string."""

    def __init__(self):
        self._counter = itertools.count(1)
        self.calls = 0

    def __call__(self, n):
        self.calls += 1
        return next(self._counter).to_bytes(n, "big")


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def random_bytes():
    return CountingBytes()


@pytest.fixture
def status_service(session_factory, clock):
    return OrderStatusService(session_factory, clock)


@pytest.fixture
def dispatcher(session_factory, clock, status_service):
    return OrderEventDispatcher(session_factory, clock, status_service)


@pytest.fixture
def tracking_service(session_factory, random_bytes):
    return TrackingTokenService(session_factory, random_bytes, "https://zaikon.example")


@pytest.fixture
def make_order(session_factory, clock):
    counter = itertools.count(1)

    def _make(status="pending", order_type="takeaway", distance_km=Decimal("3"), **fields):
        n = next(counter)
        with session_factory() as s:
            order = Order(
                order_number=f"T-{n:04d}",
                order_type=order_type,
                order_status=status,
                items_subtotal=Decimal("500"),
                grand_total=Decimal("500"),
                created_at=fields.pop("created_at", clock()),
                updated_at=clock(),
                **fields,
            )
            s.add(order)
            s.flush()
            if order_type == "delivery":
                s.add(
                    Delivery(
                        order_id=order.id,
                        customer_name="Ayesha",
                        customer_phone="03001234567",
                        distance_km=distance_km,
                        delivery_status="pending",
                        created_at=clock(),
                        updated_at=clock(),
                    )
                )
            return order.id

    return _make


@pytest.fixture
def make_rider(session_factory):
    def _make(**fields):
        fields.setdefault("name", "Bilal")
        with session_factory() as s:
            rider = Rider(**fields)
            s.add(rider)
            s.flush()
            return rider.id

    return _make


@pytest.fixture
def load(session_factory):
    """Fresh read of one row by primary key."""

    def _load(model, pk):
        with session_factory() as s:
            return s.get(model, pk)

    return _load


@pytest.fixture
def audits(session_factory):
    from zaikon_pos.models import StatusAudit

    def _audits(order_id=None):
        with session_factory() as s:
            q = s.query(StatusAudit)
            if order_id is not None:
                q = q.filter(StatusAudit.order_id == order_id)
            return q.order_by(StatusAudit.id.asc()).all()

    return _audits
