import logging
import time
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from oee_app.counters import UnsupportedDialectError, next_sequence
from oee_app.models import ProductionOrder

logger = logging.getLogger(__name__)

ORDER_PREFIX = "OP"


def format_order_number(year: int, seq: int) -> str:
    return f"{ORDER_PREFIX}{year}{seq:04d}"


def _count_fallback(session: Session, tenant_id: int, year: int) -> str:
    prefix = f"{ORDER_PREFIX}{year}"
    count = session.execute(
        select(func.count())
        .select_from(ProductionOrder)
        .where(
            ProductionOrder.tenant_id == tenant_id,
            ProductionOrder.order_number.like(f"{prefix}%"),
        )
    ).scalar_one()
    return format_order_number(year, int(count) + 1)


def _timestamp_fallback(year: int) -> str:
    millis = str(int(time.time() * 1000))
    return f"{ORDER_PREFIX}{year}{millis[-4:]}"


def generate_order_number(session: Session, tenant_id: int, now: datetime | None = None) -> str:
    """Issue the next ``OP{year}{seq:04d}`` number for a tenant.

    Call before adding the new order to the session: the fallback paths roll
    the session back. Numbers produced by either fallback may collide under
    concurrency.
    """
    year = (now or datetime.now()).year
    try:
        return format_order_number(year, next_sequence(session, tenant_id, year))
    except (SQLAlchemyError, UnsupportedDialectError) as exc:
        logger.warning("Counter unavailable for tenant %s; falling back to count: %s", tenant_id, exc)
        session.rollback()

    try:
        return _count_fallback(session, tenant_id, year)
    except SQLAlchemyError as exc:
        logger.error("Order count fallback failed for tenant %s: %s", tenant_id, exc)
        session.rollback()

    return _timestamp_fallback(year)
