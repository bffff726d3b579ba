from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from oee_app.contracts import TenantCreate, TenantCreated
from oee_app.deps import get_session, require_admin
from oee_app.seed import DEMO_TENANT_NAME, run_seed
from oee_app.tenancy import create_tenant

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.post("/tenants", response_model=TenantCreated, status_code=201)
def create_tenant_route(payload: TenantCreate, session: Session = Depends(get_session)):
    tenant, token = create_tenant(session, payload.name)
    return TenantCreated(id=tenant.id, name=tenant.name, api_token=token)


@router.post("/seed")
def admin_seed(
    tenant_name: Optional[str] = Query(None),
    session: Session = Depends(get_session),
):
    result = run_seed(session, tenant_name or DEMO_TENANT_NAME)
    return {"status": "ok", **result}
