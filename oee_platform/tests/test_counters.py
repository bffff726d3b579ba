from concurrent.futures import ThreadPoolExecutor

import pytest

from oee_app.counters import UnsupportedDialectError, counter_key, next_sequence
from oee_app.db import DBConfig, build_engine, build_session_factory
from oee_app.models import Base, Counter


def test_counter_key_format():
    assert counter_key(7, 2025) == "7:2025"


def test_first_call_returns_one(session, tenant):
    assert next_sequence(session, tenant.id, 2025) == 1
    session.commit()
    row = session.get(Counter, counter_key(tenant.id, 2025))
    assert row.seq == 1


def test_sequence_increments(session, tenant):
    values = []
    for _ in range(3):
        values.append(next_sequence(session, tenant.id, 2025))
        session.commit()
    assert values == [1, 2, 3]


def test_keys_are_independent(session, tenant):
    assert next_sequence(session, tenant.id, 2025) == 1
    assert next_sequence(session, tenant.id, 2026) == 1
    assert next_sequence(session, tenant.id + 1, 2025) == 1
    assert next_sequence(session, tenant.id, 2025) == 2
    session.commit()


def test_concurrent_calls_yield_distinct_contiguous_values(tmp_path):
    engine = build_engine(DBConfig(url=f"sqlite:///{tmp_path / 'counters.sqlite'}"))
    Base.metadata.create_all(bind=engine)
    factory = build_session_factory(engine)
    n = 25

    def _take(_):
        with factory() as s:
            value = next_sequence(s, 1, 2025)
            s.commit()
            return value

    with ThreadPoolExecutor(max_workers=8) as pool:
        values = list(pool.map(_take, range(n)))

    assert sorted(values) == list(range(1, n + 1))
    engine.dispose()


def test_unsupported_dialect_raises(session, monkeypatch):
    bind = session.get_bind()
    monkeypatch.setattr(bind.dialect, "name", "mssql")
    with pytest.raises(UnsupportedDialectError) as exc_info:
        next_sequence(session, 1, 2025)
    assert "mssql" in str(exc_info.value)
