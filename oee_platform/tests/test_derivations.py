from datetime import date, datetime

import pytest

from oee_app.derivations import (
    compute_shift_duration,
    derive_stock_status,
    merge_fields,
    parse_hhmm,
)

NOW = datetime(2025, 6, 1, 12, 0, 0)


def test_negative_stock_is_depleted():
    r = derive_stock_status(-1, 10, 200, None, NOW)
    assert r.status == "depleted"
    assert r.needs_attention is True
    assert r.attention_reason == "low-stock"


def test_below_minimum_keeps_status():
    r = derive_stock_status(5, 10, 200, None, NOW, status="inactive")
    assert r.status == "inactive"
    assert r.needs_attention is True
    assert r.attention_reason == "low-stock"


def test_at_minimum_is_low_stock():
    r = derive_stock_status(10, 10, 200, None, NOW)
    assert r.attention_reason == "low-stock"


def test_above_maximum_is_high_stock():
    r = derive_stock_status(100, 10, 90, None, NOW)
    assert r.status == "active"
    assert r.needs_attention is True
    assert r.attention_reason == "high-stock"


def test_unset_maximum_never_triggers_high_stock():
    assert derive_stock_status(10_000, 10, None, None, NOW).needs_attention is False
    assert derive_stock_status(10_000, 10, 0, None, NOW).needs_attention is False


def test_past_expiry_is_expired_near_expiry():
    r = derive_stock_status(50, 10, 200, date(2025, 5, 31), NOW)
    assert r.status == "expired"
    assert r.needs_attention is True
    assert r.attention_reason == "near-expiry"


def test_expiry_keeps_quantity_reason():
    r = derive_stock_status(5, 10, 200, date(2025, 1, 1), NOW)
    assert r.status == "expired"
    assert r.attention_reason == "low-stock"


def test_expiry_today_is_expired_after_midnight():
    r = derive_stock_status(50, 10, 200, date(2025, 6, 1), NOW)
    assert r.status == "expired"
    assert r.attention_reason == "near-expiry"


def test_expiry_tomorrow_is_not_expired():
    r = derive_stock_status(50, 10, 200, date(2025, 6, 2), NOW)
    assert r.status == "active"
    assert r.needs_attention is False


def test_expiry_today_at_midnight_exactly_is_not_expired():
    midnight = datetime(2025, 6, 1, 0, 0, 0)
    assert derive_stock_status(50, 10, 200, date(2025, 6, 1), midnight).status == "active"


def test_healthy_stock_clears_derived_status():
    r = derive_stock_status(50, 10, 200, None, NOW, status="depleted")
    assert r.status == "active"
    assert r.needs_attention is False
    assert r.attention_reason is None


def test_merge_fields_overlays_only_given_keys():
    current = {"current_quantity": 50, "min_quantity": 10, "max_quantity": 200}
    merged = merge_fields(current, {"current_quantity": 5})
    assert merged == {"current_quantity": 5, "min_quantity": 10, "max_quantity": 200}
    assert current["current_quantity"] == 50


@pytest.mark.parametrize(
    "start,end,expected",
    [
        ("08:00", "16:00", 8.0),
        ("22:00", "06:00", 8.0),
        ("09:15", "17:45", 8.5),
        ("7:00", "7:20", 0.33),
        ("00:00", "00:00", 0.0),
    ],
)
def test_shift_duration(start, end, expected):
    assert compute_shift_duration(start, end) == expected


def test_shift_duration_missing_time():
    assert compute_shift_duration(None, "16:00") is None
    assert compute_shift_duration("08:00", "") is None


def test_parse_hhmm_rejects_bad_input():
    assert parse_hhmm("23:59") == 23 * 60 + 59
    with pytest.raises(ValueError):
        parse_hhmm("24:00")
    with pytest.raises(ValueError):
        parse_hhmm("12:60")
