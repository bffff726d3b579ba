import logging
from datetime import date, timedelta
from typing import Dict, Optional, Tuple

from sqlalchemy.orm import Session

from oee_app.derivations import compute_shift_duration
from oee_app.inventory import apply_stock_attention
from oee_app.models import (
    InventoryItem,
    Machine,
    Product,
    ProductMachineLink,
    ScrapReason,
    Shift,
    StopReason,
    Tenant,
)
from oee_app.tenancy import create_tenant

logger = logging.getLogger(__name__)

DEMO_TENANT_NAME = "Demo Plant"

MACHINES = [
    ("INJ-01", "Injection Press 1", "simulator"),
    ("INJ-02", "Injection Press 2", "simulator"),
    ("CNC-01", "CNC Lathe", "real"),
]

PRODUCTS = [
    ("PROD001", "Bottle Cap 28mm", "caps", "unit"),
    ("PROD002", "Bottle Cap 38mm", "caps", "unit"),
    ("PROD003", "Steel Shaft 12mm", "shafts", "unit"),
]

# product_code, machine_code, ideal_cycle_time_s, ideal_rate_per_hour
LINKS = [
    ("PROD001", "INJ-01", 12.0, 300.0),
    ("PROD002", "INJ-01", 15.0, 240.0),
    ("PROD002", "INJ-02", 14.0, 0.0),
    ("PROD003", "CNC-01", 0.0, 60.0),
]

SHIFTS = [
    ("Morning", "06:00", "14:00", [1, 2, 3, 4, 5]),
    ("Afternoon", "14:00", "22:00", [1, 2, 3, 4, 5]),
]

STOP_REASONS = [
    ("Mould change", "process", "#f59e0b"),
    ("Hydraulic failure", "equipment", "#ef4444"),
    ("Missing material", "organizational", "#8b5cf6"),
    ("Operator break", "operational", "#3b82f6"),
]

SCRAP_REASONS = [
    ("FLA01", "Flash", "visual", "low"),
    ("SHO01", "Short shot", "dimensional", "high"),
    ("BUR01", "Burn mark", "visual", "medium"),
]

# code, name, current, min, max, days to expiry
ITEMS = [
    ("RES-PP", "Polypropylene resin", 500.0, 100.0, 2000.0, 180),
    ("RES-PE", "Polyethylene resin", 40.0, 100.0, 2000.0, 180),
    ("MB-BLUE", "Blue masterbatch", 25.0, 5.0, 20.0, None),
    ("STEEL-12", "Steel bar 12mm", 80.0, 10.0, None, None),
]


def _get_or_create_tenant(session: Session, name: str) -> Tuple[Tenant, Optional[str]]:
    existing = session.query(Tenant).filter_by(name=name).first()
    if existing:
        return existing, None
    return create_tenant(session, name)


def run_seed(session: Session, tenant_name: str = DEMO_TENANT_NAME) -> Dict[str, object]:
    """Idempotently load demo catalog data for one tenant.

    Returns the tenant id, the API token when the tenant was created by this
    call, and the counts of inserted rows.
    """
    tenant, token = _get_or_create_tenant(session, tenant_name)
    tid = tenant.id
    counts: Dict[str, int] = {
        "machine": 0,
        "product": 0,
        "product_machine_link": 0,
        "shift": 0,
        "stop_reason": 0,
        "scrap_reason": 0,
        "inventory_item": 0,
    }

    machines = {}
    for code, name, kind in MACHINES:
        existing = session.query(Machine).filter_by(tenant_id=tid, machine_code=code).first()
        if not existing:
            existing = Machine(tenant_id=tid, machine_code=code, name=name, kind=kind)
            session.add(existing)
            session.flush()
            counts["machine"] += 1
        machines[code] = existing

    products = {}
    for code, name, category, unit in PRODUCTS:
        existing = session.query(Product).filter_by(tenant_id=tid, product_code=code).first()
        if not existing:
            existing = Product(tenant_id=tid, product_code=code, name=name, category=category, unit=unit)
            session.add(existing)
            session.flush()
            counts["product"] += 1
        products[code] = existing

    for product_code, machine_code, cycle_time, rate in LINKS:
        product = products[product_code]
        machine = machines[machine_code]
        existing = (
            session.query(ProductMachineLink)
            .filter_by(tenant_id=tid, product_id=product.id, machine_id=machine.id)
            .first()
        )
        if not existing:
            session.add(
                ProductMachineLink(
                    tenant_id=tid,
                    product_id=product.id,
                    machine_id=machine.id,
                    ideal_cycle_time_s=cycle_time,
                    ideal_rate_per_hour=rate,
                )
            )
            counts["product_machine_link"] += 1

    for name, start, end, weekdays in SHIFTS:
        if not session.query(Shift).filter_by(tenant_id=tid, name=name).first():
            session.add(
                Shift(
                    tenant_id=tid,
                    name=name,
                    start_time=start,
                    end_time=end,
                    duration_hours=compute_shift_duration(start, end),
                    weekdays=weekdays,
                )
            )
            counts["shift"] += 1

    for name, category, color in STOP_REASONS:
        if not session.query(StopReason).filter_by(tenant_id=tid, name=name).first():
            session.add(StopReason(tenant_id=tid, name=name, category=category, color=color))
            counts["stop_reason"] += 1

    for code, name, category, severity in SCRAP_REASONS:
        if not session.query(ScrapReason).filter_by(tenant_id=tid, code=code).first():
            session.add(
                ScrapReason(tenant_id=tid, code=code, name=name, category=category, severity=severity)
            )
            counts["scrap_reason"] += 1

    today = date.today()
    for code, name, current, minimum, maximum, expiry_days in ITEMS:
        if session.query(InventoryItem).filter_by(tenant_id=tid, code=code).first():
            continue
        item = InventoryItem(
            tenant_id=tid,
            code=code,
            name=name,
            current_quantity=current,
            min_quantity=minimum,
            max_quantity=maximum,
            expiry_date=today + timedelta(days=expiry_days) if expiry_days is not None else None,
            status="active",
        )
        apply_stock_attention(item)
        session.add(item)
        counts["inventory_item"] += 1

    session.commit()
    logger.info("Seeded tenant %s (%s): %s", tid, tenant_name, counts)
    return {"tenant_id": tid, "api_token": token, "inserted": counts}
