from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from oee_app.contracts import OrderCreate, OrderOut, OrderPage, OrderUpdate, OrderUpdateResponse
from oee_app.deps import domain_errors, get_current_tenant, get_session
from oee_app.models import OrderStatus, Tenant
from oee_app.orders import ProductionOrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=OrderPage)
def list_orders(
    machine_code: Optional[str] = Query(None),
    status: Optional[OrderStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1),
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    limit = min(limit, 500)
    orders, total = ProductionOrderService(session, tenant.id).list_orders(
        machine_code=machine_code,
        status=status.value if status else None,
        page=page,
        limit=limit,
    )
    return OrderPage(
        data=[OrderOut.model_validate(o) for o in orders], page=page, limit=limit, total=total
    )


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return ProductionOrderService(session, tenant.id).get(order_id)


@router.post("", response_model=OrderOut, status_code=201)
def create_order(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return ProductionOrderService(session, tenant.id).create(payload)


@router.patch("/{order_id}", response_model=OrderUpdateResponse)
def update_order(
    order_id: int,
    payload: OrderUpdate,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        order, finished = ProductionOrderService(session, tenant.id).update(order_id, payload)
    return OrderUpdateResponse(order=OrderOut.model_validate(order), finished=finished)


@router.delete("/{order_id}", response_model=OrderOut)
def finish_order(
    order_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return ProductionOrderService(session, tenant.id).finish(order_id)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    session: Session = Depends(get_session),
    tenant: Tenant = Depends(get_current_tenant),
):
    with domain_errors():
        return ProductionOrderService(session, tenant.id).cancel(order_id)
