"""Shop-floor events: stoppages, scrap and production cycles.

Timestamps are stored as naive UTC. A stoppage timestamp marks the end of the
stop; it began ``duration_seconds`` earlier.
"""

import csv
import io
import logging
from datetime import datetime, timezone

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from oee_app.catalog import CatalogRepo, ReasonRepo, normalize_code
from oee_app.contracts import (
    CycleIngest,
    MachineCycleStats,
    ProductionStats,
    ScrapCreate,
    ScrapSummaryRow,
    ScrapUpdate,
    StoppageClassify,
    StoppageCreate,
    StoppageUpdate,
)
from oee_app.errors import NotFoundError
from oee_app.models import ProductionCycle, ScrapEntry, Stoppage

logger = logging.getLogger(__name__)

SCRAP_CSV_COLUMNS = [
    "timestamp",
    "machine_code",
    "category",
    "reason",
    "quantity",
    "severity",
    "description",
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _period(stmt, column, start: datetime | None, end: datetime | None):
    if start is not None:
        stmt = stmt.where(column >= start)
    if end is not None:
        stmt = stmt.where(column <= end)
    return stmt


class StoppageService:
    def __init__(self, session: Session, tenant_id: int):
        self._session = session
        self._tenant_id = tenant_id
        self._catalog = CatalogRepo(session, tenant_id)
        self._reasons = ReasonRepo(session, tenant_id)

    def _require_machine(self, machine_code: str) -> str:
        machine = self._catalog.find_machine_by_code(machine_code)
        if machine is None:
            raise NotFoundError("Machine", normalize_code(machine_code))
        return machine.machine_code

    def create(self, payload: StoppageCreate) -> Stoppage:
        stop = Stoppage(
            tenant_id=self._tenant_id,
            machine_code=self._require_machine(payload.machine_code),
            timestamp=payload.timestamp or utcnow(),
            duration_seconds=payload.duration_seconds,
            reason=payload.reason.strip(),
            classified=False,
            operator=(payload.operator or "").strip() or "N/A",
            notes=payload.notes,
        )
        self._session.add(stop)
        self._session.commit()
        self._session.refresh(stop)
        return stop

    def list_stoppages(
        self,
        machine_code: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 100,
    ) -> list[Stoppage]:
        stmt = select(Stoppage).where(Stoppage.tenant_id == self._tenant_id)
        if machine_code:
            stmt = stmt.where(Stoppage.machine_code == normalize_code(machine_code))
        stmt = _period(stmt, Stoppage.timestamp, start, end)
        stmt = stmt.order_by(Stoppage.timestamp.desc()).limit(limit)
        return list(self._session.execute(stmt).scalars())

    def get(self, stoppage_id: int) -> Stoppage:
        stop = self._session.get(Stoppage, stoppage_id)
        if stop is None or stop.tenant_id != self._tenant_id:
            raise NotFoundError("Stoppage", stoppage_id)
        return stop

    def classify(self, stoppage_id: int, payload: StoppageClassify) -> Stoppage:
        stop = self.get(stoppage_id)

        if payload.stop_reason_id is not None:
            reason = self._reasons.get_stop_reason(payload.stop_reason_id)
            stop.stop_reason_id = reason.id
            stop.reason = reason.name
        if payload.reason:
            stop.reason = payload.reason.strip()
        if payload.operator:
            stop.operator = payload.operator.strip()
        stop.classified = True

        self._session.commit()
        self._session.refresh(stop)
        return stop

    def update(self, stoppage_id: int, payload: StoppageUpdate) -> Stoppage:
        """Edit a logged stop. Giving it a reason marks it classified."""
        stop = self.get(stoppage_id)
        updates = payload.changes()
        if "stop_reason_id" in updates:
            reason = self._reasons.get_stop_reason(updates["stop_reason_id"])
            stop.stop_reason_id = reason.id
            stop.reason = reason.name
            stop.classified = True
        if "reason" in updates:
            stop.reason = updates["reason"].strip()
            stop.classified = True
        if "operator" in updates:
            stop.operator = updates["operator"].strip() or "N/A"
        for field in ("duration_seconds", "notes"):
            if field in updates:
                setattr(stop, field, updates[field])

        self._session.commit()
        self._session.refresh(stop)
        return stop

    def delete(self, stoppage_id: int) -> None:
        stop = self.get(stoppage_id)
        self._session.delete(stop)
        self._session.commit()


class ScrapService:
    def __init__(self, session: Session, tenant_id: int):
        self._session = session
        self._tenant_id = tenant_id
        self._catalog = CatalogRepo(session, tenant_id)

    def create(self, payload: ScrapCreate) -> ScrapEntry:
        machine = self._catalog.find_machine_by_code(payload.machine_code)
        if machine is None:
            raise NotFoundError("Machine", normalize_code(payload.machine_code))
        entry = ScrapEntry(
            tenant_id=self._tenant_id,
            machine_code=machine.machine_code,
            timestamp=payload.timestamp or utcnow(),
            category=payload.category.strip(),
            reason=payload.reason.strip(),
            quantity=payload.quantity,
            severity=payload.severity.value,
            description=payload.description.strip(),
        )
        self._session.add(entry)
        self._session.commit()
        self._session.refresh(entry)
        return entry

    def get(self, entry_id: int) -> ScrapEntry:
        entry = self._session.get(ScrapEntry, entry_id)
        if entry is None or entry.tenant_id != self._tenant_id or not entry.is_active:
            raise NotFoundError("ScrapEntry", entry_id)
        return entry

    def update(self, entry_id: int, payload: ScrapUpdate) -> ScrapEntry:
        entry = self.get(entry_id)
        updates = payload.changes()
        if "machine_code" in updates:
            machine = self._catalog.find_machine_by_code(updates["machine_code"])
            if machine is None:
                raise NotFoundError("Machine", normalize_code(updates["machine_code"]))
            updates["machine_code"] = machine.machine_code
        for key in ("category", "reason", "description"):
            if key in updates:
                updates[key] = updates[key].strip()
        if "severity" in updates:
            updates["severity"] = updates["severity"].value
        for field, value in updates.items():
            setattr(entry, field, value)
        self._session.commit()
        self._session.refresh(entry)
        return entry

    def deactivate(self, entry_id: int) -> None:
        """Hide an entry from listings, summaries, exports and OEE."""
        entry = self.get(entry_id)
        entry.is_active = False
        self._session.commit()

    def _scoped(self, stmt, machine_code, start, end):
        stmt = stmt.where(ScrapEntry.tenant_id == self._tenant_id, ScrapEntry.is_active.is_(True))
        if machine_code:
            stmt = stmt.where(ScrapEntry.machine_code == normalize_code(machine_code))
        return _period(stmt, ScrapEntry.timestamp, start, end)

    def list_entries(
        self,
        machine_code: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        severity: str | None = None,
    ) -> list[ScrapEntry]:
        stmt = self._scoped(select(ScrapEntry), machine_code, start, end)
        if severity:
            stmt = stmt.where(ScrapEntry.severity == severity)
        stmt = stmt.order_by(ScrapEntry.timestamp.desc(), ScrapEntry.id.desc())
        return list(self._session.execute(stmt).scalars())

    def _summary(self, column, machine_code, start, end) -> list[ScrapSummaryRow]:
        quantity = func.coalesce(func.sum(ScrapEntry.quantity), 0)
        stmt = self._scoped(
            select(column, func.count(ScrapEntry.id), quantity), machine_code, start, end
        )
        stmt = stmt.group_by(column).order_by(quantity.desc(), column)
        return [
            ScrapSummaryRow(key=key, entries=int(entries), quantity=int(qty))
            for key, entries, qty in self._session.execute(stmt).all()
        ]

    def summary_by_reason(self, machine_code=None, start=None, end=None) -> list[ScrapSummaryRow]:
        return self._summary(ScrapEntry.reason, machine_code, start, end)

    def summary_by_severity(self, machine_code=None, start=None, end=None) -> list[ScrapSummaryRow]:
        return self._summary(ScrapEntry.severity, machine_code, start, end)

    def export_csv(self, machine_code=None, start=None, end=None) -> str:
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=SCRAP_CSV_COLUMNS)
        writer.writeheader()
        for entry in self.list_entries(machine_code, start, end):
            writer.writerow(
                {
                    "timestamp": entry.timestamp.isoformat(),
                    "machine_code": entry.machine_code,
                    "category": entry.category,
                    "reason": entry.reason,
                    "quantity": entry.quantity,
                    "severity": entry.severity,
                    "description": entry.description,
                }
            )
        return buf.getvalue()


# Idempotency is enforced by UNIQUE(tenant_id, source_event_id), so a replayed
# cycle is rejected by the database even when two ingests race.
class CycleLoader:
    def __init__(self, session: Session, tenant_id: int):
        self._session = session
        self._tenant_id = tenant_id

    def find(self, source_event_id: str) -> ProductionCycle | None:
        stmt = select(ProductionCycle).where(
            ProductionCycle.tenant_id == self._tenant_id,
            ProductionCycle.source_event_id == source_event_id,
        )
        return self._session.execute(stmt).scalars().first()

    def insert_if_new(self, e: CycleIngest) -> bool:
        row = ProductionCycle(
            tenant_id=self._tenant_id,
            machine_code=normalize_code(e.machine_code),
            timestamp=e.timestamp,
            is_defective=e.is_defective,
            source_event_id=e.source_event_id,
        )
        self._session.add(row)
        try:
            self._session.commit()
            return True
        except IntegrityError:
            self._session.rollback()
            return False

    def ingest(self, e: CycleIngest) -> tuple[str, ProductionCycle]:
        if self.insert_if_new(e):
            status = "inserted"
        else:
            status = "duplicate"
            logger.info(
                "Duplicate cycle %s for tenant %s ignored", e.source_event_id, self._tenant_id
            )
        return status, self.find(e.source_event_id)


def production_stats(
    session: Session,
    tenant_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
) -> ProductionStats:
    defective = func.sum(case((ProductionCycle.is_defective.is_(True), 1), else_=0))
    stmt = select(ProductionCycle.machine_code, func.count(ProductionCycle.id), defective).where(
        ProductionCycle.tenant_id == tenant_id
    )
    stmt = _period(stmt, ProductionCycle.timestamp, start, end)
    stmt = stmt.group_by(ProductionCycle.machine_code).order_by(ProductionCycle.machine_code)

    machines: dict[str, MachineCycleStats] = {}
    for code, total, bad in session.execute(stmt).all():
        bad = int(bad or 0)
        machines[code] = MachineCycleStats(total=int(total), conform=int(total) - bad, defective=bad)

    total_cycles = sum(m.total for m in machines.values())
    defective_cycles = sum(m.defective for m in machines.values())
    conform_cycles = total_cycles - defective_cycles
    rate = conform_cycles / total_cycles * 100.0 if total_cycles else 0.0
    return ProductionStats(
        total_cycles=total_cycles,
        conform_cycles=conform_cycles,
        defective_cycles=defective_cycles,
        conformity_rate=round(rate, 2),
        machines=machines,
    )
