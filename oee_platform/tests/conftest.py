import os

# keep oee_app.main off the on-disk default database
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from oee_app.models import Base, Machine, Product, ProductMachineLink
from oee_app.tenancy import create_tenant


@pytest.fixture(scope="function")
def engine():
    eng = create_engine(
        "sqlite:///:memory:", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture(scope="function")
def session(session_factory):
    with session_factory() as sess:
        yield sess


@pytest.fixture(scope="function")
def tenant(session):
    t, _token = create_tenant(session, "Acme Plastics")
    return t


@pytest.fixture(scope="function")
def catalog(session, tenant):
    """One machine with one active product link."""
    machine = Machine(tenant_id=tenant.id, machine_code="INJ-01", name="Injection Press 1")
    product = Product(tenant_id=tenant.id, product_code="PROD001", name="Bottle Cap")
    session.add_all([machine, product])
    session.flush()
    link = ProductMachineLink(
        tenant_id=tenant.id,
        product_id=product.id,
        machine_id=machine.id,
        ideal_cycle_time_s=12.0,
        ideal_rate_per_hour=300.0,
    )
    session.add(link)
    session.commit()
    return {"machine": machine, "product": product, "link": link}


@pytest.fixture(scope="function")
def client(session_factory):
    from oee_app.main import app, get_session

    def _get_test_session():
        with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _get_test_session
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def auth(session):
    """Bearer headers for a fresh tenant."""
    _t, token = create_tenant(session, "API Tenant")
    return {"Authorization": f"Bearer {token}"}
