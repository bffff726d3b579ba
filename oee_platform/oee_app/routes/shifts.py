from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from oee_app.contracts import ShiftCreate, ShiftOut, ShiftUpdate
from oee_app.deps import domain_errors, get_current_tenant, get_session
from oee_app.models import Tenant
from oee_app.shifts import ShiftService

router = APIRouter(prefix="/shifts", tags=["shifts"])


@router.get("", response_model=List[ShiftOut])
def list_shifts(
    status: Optional[str] = Query(None),
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return ShiftService(session, tenant.id).list_shifts(status)


@router.get("/{shift_id}", response_model=ShiftOut)
def get_shift(
    shift_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return ShiftService(session, tenant.id).get(shift_id)


@router.post("", response_model=ShiftOut, status_code=201)
def create_shift(
    payload: ShiftCreate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return ShiftService(session, tenant.id).create(payload)


@router.patch("/{shift_id}", response_model=ShiftOut)
def update_shift(
    shift_id: int,
    payload: ShiftUpdate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return ShiftService(session, tenant.id).update(shift_id, payload)


@router.delete("/{shift_id}", status_code=204)
def delete_shift(
    shift_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        ShiftService(session, tenant.id).delete(shift_id)
