import pytest
from pydantic import ValidationError

from oee_app.contracts import ShiftCreate, ShiftUpdate
from oee_app.errors import NotFoundError
from oee_app.shifts import ShiftService


@pytest.fixture
def svc(session, tenant):
    return ShiftService(session, tenant.id)


def test_create_computes_duration(svc):
    shift = svc.create(
        ShiftCreate(name="Night", start_time="22:00", end_time="06:00", weekdays=[5, 1, 1])
    )
    assert shift.duration_hours == 8.0
    assert shift.weekdays == [1, 5]
    assert shift.status == "active"


def test_updating_one_time_recomputes_with_stored_other(svc):
    shift = svc.create(ShiftCreate(name="Day", start_time="08:00", end_time="16:00", weekdays=[1]))
    shift = svc.update(shift.id, ShiftUpdate(end_time="17:45"))
    assert shift.start_time == "08:00"
    assert shift.duration_hours == 9.75

    shift = svc.update(shift.id, ShiftUpdate(start_time="09:15"))
    assert shift.duration_hours == 8.5


def test_update_without_times_keeps_duration(svc):
    shift = svc.create(ShiftCreate(name="Day", start_time="08:00", end_time="16:00", weekdays=[1]))
    shift = svc.update(shift.id, ShiftUpdate(name="Day shift", status="inactive"))
    assert shift.name == "Day shift"
    assert shift.status == "inactive"
    assert shift.duration_hours == 8.0


def test_delete(svc):
    shift = svc.create(ShiftCreate(name="Day", start_time="08:00", end_time="16:00", weekdays=[1]))
    svc.delete(shift.id)
    with pytest.raises(NotFoundError):
        svc.get(shift.id)


def test_planned_hours_per_day(svc):
    assert svc.planned_hours_per_day() == 24.0
    svc.create(ShiftCreate(name="A", start_time="06:00", end_time="14:00", weekdays=[1]))
    svc.create(ShiftCreate(name="B", start_time="14:00", end_time="22:00", weekdays=[1]))
    svc.create(ShiftCreate(name="Off", start_time="22:00", end_time="06:00", weekdays=[1], status="inactive"))
    assert svc.planned_hours_per_day() == 16.0
    svc.create(ShiftCreate(name="C", start_time="22:00", end_time="20:00", weekdays=[1]))
    assert svc.planned_hours_per_day() == 24.0


def test_invalid_input_rejected():
    with pytest.raises(ValidationError):
        ShiftCreate(name="Bad", start_time="25:00", end_time="06:00", weekdays=[1])
    with pytest.raises(ValidationError):
        ShiftCreate(name="Bad", start_time="08:00", end_time="16:00", weekdays=[7])
    with pytest.raises(ValidationError):
        ShiftCreate(name="Bad", start_time="08:00", end_time="16:00", weekdays=[])


def test_null_times_do_not_touch_stored_shift(svc):
    shift = svc.create(ShiftCreate(name="Day", start_time="08:00", end_time="16:00", weekdays=[1]))
    payload = ShiftUpdate.model_validate(
        {"end_time": None, "start_time": None, "weekdays": None, "name": None}
    )
    shift = svc.update(shift.id, payload)
    assert shift.start_time == "08:00"
    assert shift.end_time == "16:00"
    assert shift.duration_hours == 8.0
    assert shift.weekdays == [1]
    assert shift.name == "Day"
