from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from oee_app.catalog import CatalogRepo, ReasonRepo
from oee_app.contracts import (
    LinkCreate,
    LinkOut,
    LinkUpdate,
    MachineCreate,
    MachineOut,
    MachineUpdate,
    ProductCreate,
    ProductOut,
    ProductUpdate,
    ScrapReasonCreate,
    ScrapReasonOut,
    ScrapReasonUpdate,
    StopReasonCreate,
    StopReasonOut,
    StopReasonUpdate,
)
from oee_app.deps import domain_errors, get_current_tenant, get_session
from oee_app.models import Tenant

router = APIRouter(tags=["catalog"])


@router.get("/machines", response_model=List[MachineOut])
def list_machines(
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return CatalogRepo(session, tenant.id).list_machines()


@router.get("/machines/{machine_id}", response_model=MachineOut)
def get_machine(
    machine_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return CatalogRepo(session, tenant.id).get_machine(machine_id)


@router.post("/machines", response_model=MachineOut, status_code=201)
def create_machine(
    payload: MachineCreate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return CatalogRepo(session, tenant.id).create_machine(payload)


@router.patch("/machines/{machine_id}", response_model=MachineOut)
def update_machine(
    machine_id: int,
    payload: MachineUpdate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return CatalogRepo(session, tenant.id).update_machine(machine_id, payload)


@router.delete("/machines/{machine_id}", status_code=204)
def delete_machine(
    machine_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        CatalogRepo(session, tenant.id).delete_machine(machine_id)


@router.get("/products", response_model=List[ProductOut])
def list_products(
    category: Optional[str] = Query(None),
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return CatalogRepo(session, tenant.id).list_products(category)


@router.post("/products", response_model=ProductOut, status_code=201)
def create_product(
    payload: ProductCreate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return CatalogRepo(session, tenant.id).create_product(payload)


@router.get("/products/{product_id}", response_model=ProductOut)
def get_product(
    product_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return CatalogRepo(session, tenant.id).get_product(product_id)


@router.patch("/products/{product_id}", response_model=ProductOut)
def update_product(
    product_id: int,
    payload: ProductUpdate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return CatalogRepo(session, tenant.id).update_product(product_id, payload)


@router.delete("/products/{product_id}", status_code=204)
def delete_product(
    product_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        CatalogRepo(session, tenant.id).deactivate_product(product_id)


@router.get("/links", response_model=List[LinkOut])
def list_links(
    machine_id: Optional[int] = Query(None),
    active_only: bool = Query(True),
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return CatalogRepo(session, tenant.id).list_links(machine_id, active_only)


@router.post("/links", response_model=LinkOut, status_code=201)
def create_link(
    payload: LinkCreate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return CatalogRepo(session, tenant.id).create_link(payload)


@router.patch("/links/{link_id}", response_model=LinkOut)
def update_link(
    link_id: int,
    payload: LinkUpdate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return CatalogRepo(session, tenant.id).update_link(link_id, payload)


@router.get("/stop-reasons", response_model=List[StopReasonOut])
def list_stop_reasons(
    category: Optional[str] = Query(None),
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return ReasonRepo(session, tenant.id).list_stop_reasons(category)


@router.post("/stop-reasons", response_model=StopReasonOut, status_code=201)
def create_stop_reason(
    payload: StopReasonCreate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return ReasonRepo(session, tenant.id).create_stop_reason(payload)


@router.patch("/stop-reasons/{reason_id}", response_model=StopReasonOut)
def update_stop_reason(
    reason_id: int,
    payload: StopReasonUpdate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return ReasonRepo(session, tenant.id).update_stop_reason(reason_id, payload)


@router.delete("/stop-reasons/{reason_id}", status_code=204)
def delete_stop_reason(
    reason_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        ReasonRepo(session, tenant.id).deactivate_stop_reason(reason_id)


@router.get("/scrap-reasons", response_model=List[ScrapReasonOut])
def list_scrap_reasons(
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return ReasonRepo(session, tenant.id).list_scrap_reasons()


@router.post("/scrap-reasons", response_model=ScrapReasonOut, status_code=201)
def create_scrap_reason(
    payload: ScrapReasonCreate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return ReasonRepo(session, tenant.id).create_scrap_reason(payload)


@router.patch("/scrap-reasons/{reason_id}", response_model=ScrapReasonOut)
def update_scrap_reason(
    reason_id: int,
    payload: ScrapReasonUpdate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return ReasonRepo(session, tenant.id).update_scrap_reason(reason_id, payload)


@router.delete("/scrap-reasons/{reason_id}", status_code=204)
def delete_scrap_reason(
    reason_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        ReasonRepo(session, tenant.id).deactivate_scrap_reason(reason_id)
