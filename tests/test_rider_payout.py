from decimal import Decimal

import pytest

from zaikon_pos.services.errors import InvalidInputError
from zaikon_pos.services.rider_payout import RiderRates, calculate_pay, determine_slab, payout_fields


@pytest.mark.parametrize(
    "rider, distance, pay, slab",
    [
        (RiderRates("per_km", base_rate=20, per_km_rate=10), 5, Decimal("70"), "0-5km"),
        (RiderRates("per_delivery", per_delivery_rate=50), 12, Decimal("50"), "10+km"),
        (RiderRates("hybrid", base_rate=20, per_delivery_rate=15, per_km_rate=5), 8, Decimal("75"), "5-10km"),
    ],
)
def test_payout_scenarios(rider, distance, pay, slab):
    assert calculate_pay(rider, distance) == pay
    assert determine_slab(distance) == slab


@pytest.mark.parametrize("distance, slab", [(0, "0-5km"), (5, "0-5km"), ("5.01", "5-10km"), (10, "5-10km"), (10.5, "10+km")])
def test_slab_bounds_inclusive(distance, slab):
    assert determine_slab(distance) == slab


def test_missing_rates_use_defaults():
    assert calculate_pay(RiderRates(payout_type=None), Decimal("2.5")) == Decimal("45.00")


def test_fractional_distance_rounds_to_cents():
    assert calculate_pay(RiderRates("per_km", base_rate=0, per_km_rate="12.5"), "3.333") == Decimal("41.66")


@pytest.mark.parametrize(
    "rider, distance",
    [
        (RiderRates("per_km"), -1),
        (RiderRates("per_km"), None),
        (RiderRates("per_km"), "far"),
        (RiderRates("per_km", per_km_rate=-2), 3),
        (RiderRates("salary"), 3),
        (None, 3),
    ],
)
def test_invalid_inputs(rider, distance):
    with pytest.raises(InvalidInputError):
        calculate_pay(rider, distance)


def test_payout_fields():
    fields = payout_fields(RiderRates("hybrid", base_rate=20, per_delivery_rate=15, per_km_rate=5), 8)
    assert fields == {"rider_payout_amount": Decimal("75.00"), "rider_payout_slab": "5-10km", "payout_type": "hybrid"}
