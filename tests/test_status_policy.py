import pytest

from zaikon_pos.services.logging import configure_logging
from zaikon_pos.services.status_policy import (
    TERMINAL_STATUSES,
    OrderStatus,
    StatusSource,
    is_valid_source,
    is_valid_status,
    normalize_legacy_status,
    timestamp_field_for,
)


def test_every_enum_member_is_valid():
    for status in OrderStatus:
        assert is_valid_status(status)
        assert is_valid_status(status.value)


@pytest.mark.parametrize("value", ["bogus_status", "", None, "COOKING"])
def test_unknown_statuses_rejected(value):
    assert not is_valid_status(value)


def test_sources():
    assert is_valid_source(StatusSource.KDS)
    assert is_valid_source("rider")
    assert not is_valid_source("cron")


def test_timestamp_map():
    assert timestamp_field_for("confirmed") == "confirmed_at"
    assert timestamp_field_for(OrderStatus.COOKING) == "cooking_started_at"
    assert timestamp_field_for("ready") == "ready_at"
    assert timestamp_field_for("dispatched") == "dispatched_at"
    assert timestamp_field_for("delivered") is None
    assert timestamp_field_for("pending") is None


def test_terminal_statuses():
    assert TERMINAL_STATUSES == {"completed", "cancelled", "delivered", "replacement"}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("ready", "ready"),
        ("  Ready ", "ready"),
        ("preparing", "cooking"),
        ("on_the_way", "dispatched"),
        ("", "pending"),
        (None, "pending"),
        ("something_weird", "pending"),
    ],
)
def test_normalize_legacy_status(raw, expected):
    assert normalize_legacy_status(raw) == expected


def test_lossy_normalization_is_logged(capsys):
    configure_logging("info")
    normalize_legacy_status("something_weird")
    assert "status.normalize_lossy" in capsys.readouterr().out


@pytest.mark.parametrize("value", [["ready"], {"status": "ready"}, 3, 1.5])
def test_non_string_values_are_never_valid(value):
    assert not is_valid_status(value)
    assert not is_valid_source(value)
    assert timestamp_field_for(value) is None
