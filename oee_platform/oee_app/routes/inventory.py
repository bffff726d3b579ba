from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from oee_app.contracts import (
    CleanupResult,
    InventoryItemCreate,
    InventoryItemOut,
    InventoryItemUpdate,
    InventorySummary,
    PurchaseRequestCreate,
    PurchaseRequestOut,
    PurchaseRequestPage,
    PurchaseRequestUpdate,
)
from oee_app.deps import domain_errors, get_current_tenant, get_session
from oee_app.inventory import InventoryService, PurchaseRequestService
from oee_app.models import PurchaseStatus, StockStatus, Tenant

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("/items", response_model=List[InventoryItemOut])
def list_items(
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    status: Optional[StockStatus] = Query(None),
    needs_attention: Optional[bool] = Query(None),
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return InventoryService(session, tenant.id).list_items(
        search=search,
        category=category,
        status=status.value if status else None,
        needs_attention=needs_attention,
    )


@router.get("/items/attention", response_model=List[InventoryItemOut])
def list_attention_items(
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return InventoryService(session, tenant.id).attention_items()


@router.get("/summary", response_model=InventorySummary)
def inventory_summary(
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return InventoryService(session, tenant.id).summary()


@router.get("/items/{item_id}", response_model=InventoryItemOut)
def get_item(
    item_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return InventoryService(session, tenant.id).get(item_id)


@router.post("/items", response_model=InventoryItemOut, status_code=201)
def create_item(
    payload: InventoryItemCreate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return InventoryService(session, tenant.id).create(payload)


@router.patch("/items/{item_id}", response_model=InventoryItemOut)
def update_item(
    item_id: int,
    payload: InventoryItemUpdate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return InventoryService(session, tenant.id).update(item_id, payload)


@router.delete("/items/{item_id}", status_code=204)
def delete_item(
    item_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        InventoryService(session, tenant.id).deactivate(item_id)


@router.get("/purchase-requests", response_model=PurchaseRequestPage)
def list_purchase_requests(
    status: Optional[PurchaseStatus] = Query(None),
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    rows = PurchaseRequestService(session, tenant.id).list_requests(
        status.value if status else None
    )
    return PurchaseRequestPage(
        data=[PurchaseRequestOut.model_validate(r) for r in rows], total=len(rows)
    )


@router.post("/purchase-requests", response_model=PurchaseRequestOut, status_code=201)
def create_purchase_request(
    payload: PurchaseRequestCreate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return PurchaseRequestService(session, tenant.id).create(payload)


@router.post("/purchase-requests/cleanup", response_model=CleanupResult)
def cleanup_purchase_requests(
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return CleanupResult(deleted=PurchaseRequestService(session, tenant.id).cleanup_closed())


@router.post("/purchase-requests/clear", response_model=CleanupResult)
def clear_purchase_requests(
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    return CleanupResult(deleted=PurchaseRequestService(session, tenant.id).clear_all())


@router.patch("/purchase-requests/{request_id}", response_model=PurchaseRequestOut)
def update_purchase_request(
    request_id: int,
    payload: PurchaseRequestUpdate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return PurchaseRequestService(session, tenant.id).update(request_id, payload)


@router.delete("/purchase-requests/{request_id}", status_code=204)
def delete_purchase_request(
    request_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        PurchaseRequestService(session, tenant.id).delete(request_id)
