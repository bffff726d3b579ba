from sqlalchemy.orm import Session

from oee_app.contracts import ShiftCreate, ShiftUpdate
from oee_app.derivations import compute_shift_duration, merge_fields
from oee_app.errors import NotFoundError
from oee_app.models import Shift

MAX_HOURS_PER_DAY = 24.0


class ShiftService:
    def __init__(self, session: Session, tenant_id: int):
        self._session = session
        self._tenant_id = tenant_id

    def list_shifts(self, status: str | None = None) -> list[Shift]:
        q = self._session.query(Shift).filter(Shift.tenant_id == self._tenant_id)
        if status:
            q = q.filter(Shift.status == status)
        return q.order_by(Shift.start_time, Shift.id).all()

    def get(self, shift_id: int) -> Shift:
        shift = self._session.get(Shift, shift_id)
        if shift is None or shift.tenant_id != self._tenant_id:
            raise NotFoundError("Shift", shift_id)
        return shift

    def create(self, payload: ShiftCreate) -> Shift:
        shift = Shift(
            tenant_id=self._tenant_id,
            name=payload.name.strip(),
            start_time=payload.start_time,
            end_time=payload.end_time,
            duration_hours=compute_shift_duration(payload.start_time, payload.end_time),
            weekdays=sorted(set(payload.weekdays)),
            status=payload.status,
        )
        self._session.add(shift)
        self._session.commit()
        self._session.refresh(shift)
        return shift

    def update(self, shift_id: int, payload: ShiftUpdate) -> Shift:
        shift = self.get(shift_id)
        updates = payload.changes()
        if "weekdays" in updates:
            updates["weekdays"] = sorted(set(updates["weekdays"]))

        if "start_time" in updates or "end_time" in updates:
            merged = merge_fields(
                {"start_time": shift.start_time, "end_time": shift.end_time}, updates
            )
            updates["duration_hours"] = compute_shift_duration(
                merged["start_time"], merged["end_time"]
            )

        for field, value in updates.items():
            setattr(shift, field, value)
        self._session.commit()
        self._session.refresh(shift)
        return shift

    def delete(self, shift_id: int) -> None:
        shift = self.get(shift_id)
        self._session.delete(shift)
        self._session.commit()

    def planned_hours_per_day(self) -> float:
        """Sum of active shift durations, capped at a full day.

        A tenant without active shifts is treated as running around the clock.
        """
        shifts = self.list_shifts(status="active")
        if not shifts:
            return MAX_HOURS_PER_DAY
        total = sum(
            s.duration_hours
            if s.duration_hours is not None
            else (compute_shift_duration(s.start_time, s.end_time) or 0.0)
            for s in shifts
        )
        return min(MAX_HOURS_PER_DAY, total)
