import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from oee_app.catalog import CatalogRepo, normalize_code
from oee_app.contracts import OEEReport, to_naive_utc
from oee_app.errors import NotFoundError
from oee_app.events import utcnow
from oee_app.models import ProductionCycle, ScrapEntry, Stoppage
from oee_app.oee import DEFAULT_IDEAL_CYCLE_TIME_S, compute_oee, resolve_ideal_cycle_time
from oee_app.orders import ProductionOrderService
from oee_app.shifts import ShiftService

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0


class OEEReportService:
    """Loads a tenant's records for one window and runs the OEE calculator."""

    def __init__(
        self,
        session: Session,
        tenant_id: int,
        default_ideal_cycle_time_s: float = DEFAULT_IDEAL_CYCLE_TIME_S,
    ):
        self._session = session
        self._tenant_id = tenant_id
        self._default_cycle_time = default_ideal_cycle_time_s
        self._catalog = CatalogRepo(session, tenant_id)
        self._orders = ProductionOrderService(session, tenant_id)
        self._shifts = ShiftService(session, tenant_id)

    def _ideal_cycle_time(self, machine_id: int | None) -> float:
        if machine_id is None:
            return self._default_cycle_time
        order = self._orders.in_progress_for_machine(machine_id)
        cycle_time = resolve_ideal_cycle_time(order.link if order is not None else None)
        return cycle_time or self._default_cycle_time

    def _load(self, model, machine_code: str | None, start: datetime, end: datetime | None):
        stmt = select(model).where(model.tenant_id == self._tenant_id, model.timestamp >= start)
        if end is not None:
            stmt = stmt.where(model.timestamp <= end)
        if machine_code:
            stmt = stmt.where(model.machine_code == machine_code)
        return list(self._session.execute(stmt).scalars())

    def report(
        self,
        machine_code: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        hours_per_day: float | None = None,
    ) -> OEEReport:
        window_end = to_naive_utc(end) or utcnow()
        window_start = to_naive_utc(start) or window_end - timedelta(days=1)
        if window_start >= window_end:
            raise ValueError("start must be before end")

        machine_id = None
        code = None
        if machine_code:
            machine = self._catalog.find_machine_by_code(machine_code)
            if machine is None:
                raise NotFoundError("Machine", normalize_code(machine_code))
            machine_id = machine.id
            code = machine.machine_code

        if hours_per_day is None:
            hours_per_day = self._shifts.planned_hours_per_day()
        window_days = (window_end - window_start).total_seconds() / SECONDS_PER_DAY

        cycles = self._load(ProductionCycle, code, window_start, window_end)
        scrap = [e for e in self._load(ScrapEntry, code, window_start, window_end) if e.is_active]
        # a stop ending after the window may still overlap it
        stoppages = self._load(Stoppage, code, window_start, None)

        result = compute_oee(
            cycles,
            stoppages,
            scrap,
            window_start,
            window_end,
            hours_per_day=hours_per_day,
            window_days=window_days,
            ideal_cycle_time_s=self._ideal_cycle_time(machine_id),
            machine_code=code,
        )
        logger.info(
            "OEE for tenant %s machine %s: %.1f%%", self._tenant_id, code or "*", result.oee
        )
        return OEEReport(
            machine_code=code,
            window_start=window_start,
            window_end=window_end,
            hours_per_day=hours_per_day,
            window_days=window_days,
            availability=result.availability,
            performance=result.performance,
            quality=result.quality,
            oee=result.oee,
            total_cycles=result.total_cycles,
            good_cycles=result.good_cycles,
            defective_cycles=result.defective_cycles,
            stoppage_seconds=result.stoppage_seconds,
            theoretical_seconds=result.theoretical_seconds,
            available_seconds=result.available_seconds,
            ideal_cycle_time_s=result.ideal_cycle_time_s,
            ideal_cycles=result.ideal_cycles,
            scrap_quantity=result.scrap_quantity,
        )
