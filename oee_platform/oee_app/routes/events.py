from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from oee_app.contracts import (
    CycleIngest,
    CycleIngestResponse,
    CycleOut,
    ProductionStats,
    ScrapCreate,
    ScrapOut,
    ScrapSummaryRow,
    ScrapUpdate,
    StoppageClassify,
    StoppageCreate,
    StoppageOut,
    StoppageUpdate,
    to_naive_utc,
)
from oee_app.deps import domain_errors, get_current_tenant, get_session
from oee_app.events import CycleLoader, ScrapService, StoppageService, production_stats
from oee_app.models import Severity, Tenant

router = APIRouter(tags=["events"])


@router.get("/stoppages", response_model=List[StoppageOut])
def list_stoppages(
    machine_code: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    limit: int = Query(100, ge=1),
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return StoppageService(session, tenant.id).list_stoppages(
        machine_code, to_naive_utc(start), to_naive_utc(end), min(limit, 500)
    )


@router.post("/stoppages", response_model=StoppageOut, status_code=201)
def create_stoppage(
    payload: StoppageCreate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return StoppageService(session, tenant.id).create(payload)


@router.post("/stoppages/{stoppage_id}/classify", response_model=StoppageOut)
def classify_stoppage(
    stoppage_id: int,
    payload: StoppageClassify,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return StoppageService(session, tenant.id).classify(stoppage_id, payload)


@router.patch("/stoppages/{stoppage_id}", response_model=StoppageOut)
def update_stoppage(
    stoppage_id: int,
    payload: StoppageUpdate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return StoppageService(session, tenant.id).update(stoppage_id, payload)


@router.delete("/stoppages/{stoppage_id}", status_code=204)
def delete_stoppage(
    stoppage_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        StoppageService(session, tenant.id).delete(stoppage_id)


@router.get("/scrap", response_model=List[ScrapOut])
def list_scrap(
    machine_code: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    severity: Optional[Severity] = Query(None),
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return ScrapService(session, tenant.id).list_entries(
        machine_code,
        to_naive_utc(start),
        to_naive_utc(end),
        severity.value if severity else None,
    )


@router.post("/scrap", response_model=ScrapOut, status_code=201)
def create_scrap(
    payload: ScrapCreate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return ScrapService(session, tenant.id).create(payload)


@router.patch("/scrap/{entry_id}", response_model=ScrapOut)
def update_scrap(
    entry_id: int,
    payload: ScrapUpdate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return ScrapService(session, tenant.id).update(entry_id, payload)


@router.delete("/scrap/{entry_id}", status_code=204)
def delete_scrap(
    entry_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        ScrapService(session, tenant.id).deactivate(entry_id)


@router.get("/scrap/summary/reason", response_model=List[ScrapSummaryRow])
def scrap_by_reason(
    machine_code: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return ScrapService(session, tenant.id).summary_by_reason(
        machine_code, to_naive_utc(start), to_naive_utc(end)
    )


@router.get("/scrap/summary/severity", response_model=List[ScrapSummaryRow])
def scrap_by_severity(
    machine_code: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return ScrapService(session, tenant.id).summary_by_severity(
        machine_code, to_naive_utc(start), to_naive_utc(end)
    )


@router.get("/scrap/export/csv")
def export_scrap_csv(
    machine_code: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    body = ScrapService(session, tenant.id).export_csv(
        machine_code, to_naive_utc(start), to_naive_utc(end)
    )
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="scrap.csv"'},
    )


@router.post("/cycles", response_model=CycleIngestResponse)
def ingest_cycle(
    payload: CycleIngest,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    status, cycle = CycleLoader(session, tenant.id).ingest(payload)
    return CycleIngestResponse(status=status, cycle=CycleOut.model_validate(cycle))


@router.get("/production/stats", response_model=ProductionStats)
def get_production_stats(
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return production_stats(session, tenant.id, to_naive_utc(start), to_naive_utc(end))
