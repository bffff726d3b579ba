import logging
import re
from datetime import datetime

from sqlalchemy.exc import OperationalError

from oee_app import order_numbers
from oee_app.counters import UnsupportedDialectError
from oee_app.models import ProductionOrder
from oee_app.order_numbers import format_order_number, generate_order_number

NOW = datetime(2025, 3, 14, 10, 0, 0)


def _broken_counter(*_args, **_kwargs):
    raise OperationalError("UPDATE counter", {}, Exception("database is locked"))


def test_format_pads_to_four_digits():
    assert format_order_number(2025, 1) == "OP20250001"
    assert format_order_number(2025, 42) == "OP20250042"
    assert format_order_number(2025, 12345) == "OP202512345"


def test_sequence_is_per_tenant_and_year(session, tenant):
    assert generate_order_number(session, tenant.id, NOW) == "OP20250001"
    assert generate_order_number(session, tenant.id, NOW) == "OP20250002"
    assert generate_order_number(session, tenant.id + 1, NOW) == "OP20250001"
    assert generate_order_number(session, tenant.id, datetime(2026, 1, 2)) == "OP20260001"
    session.commit()


def test_count_fallback_when_counter_fails(monkeypatch, session, catalog, caplog):
    tenant_id = catalog["machine"].tenant_id
    session.add(
        ProductionOrder(
            tenant_id=tenant_id,
            order_number="OP20250007",
            product_id=catalog["product"].id,
            machine_id=catalog["machine"].id,
            link_id=catalog["link"].id,
            target_quantity=10,
            status="finished",
        )
    )
    session.commit()
    monkeypatch.setattr(order_numbers, "next_sequence", _broken_counter)

    with caplog.at_level(logging.WARNING, logger="oee_app.order_numbers"):
        number = generate_order_number(session, tenant_id, NOW)

    assert number == "OP20250002"
    assert any("falling back to count" in r.getMessage() for r in caplog.records)


def test_unsupported_dialect_uses_count_fallback(monkeypatch, session, tenant):
    def _unsupported(*_args, **_kwargs):
        raise UnsupportedDialectError("mssql")

    monkeypatch.setattr(order_numbers, "next_sequence", _unsupported)
    assert generate_order_number(session, tenant.id, NOW) == "OP20250001"


def test_timestamp_fallback_when_everything_fails(monkeypatch, session, tenant, caplog):
    monkeypatch.setattr(order_numbers, "next_sequence", _broken_counter)
    monkeypatch.setattr(order_numbers, "_count_fallback", _broken_counter)
    monkeypatch.setattr(order_numbers.time, "time", lambda: 1741946400.1234)

    with caplog.at_level(logging.WARNING, logger="oee_app.order_numbers"):
        number = generate_order_number(session, tenant.id, NOW)

    assert re.fullmatch(r"OP2025\d{4}", number)
    assert number == "OP20250123"
    assert any(r.levelno == logging.ERROR for r in caplog.records)
