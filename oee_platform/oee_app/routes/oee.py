from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from oee_app.config import AppSettings
from oee_app.contracts import OEEReport
from oee_app.deps import domain_errors, get_current_tenant, get_session, get_settings
from oee_app.models import Tenant
from oee_app.oee_service import OEEReportService

router = APIRouter(tags=["oee"])


@router.get("/oee", response_model=OEEReport)
def get_oee(
    machine_code: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    hours_per_day: Optional[float] = Query(None, ge=0, le=24),
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
    settings: AppSettings = Depends(get_settings),
):
    service = OEEReportService(
        session, tenant.id, default_ideal_cycle_time_s=settings.default_ideal_cycle_time_s
    )
    with domain_errors():
        return service.report(machine_code, start, end, hours_per_day)
