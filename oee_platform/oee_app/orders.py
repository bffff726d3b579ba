import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from oee_app.catalog import CatalogRepo
from oee_app.contracts import OrderCreate, OrderUpdate
from oee_app.errors import (
    DuplicateCodeError,
    InvalidLinkError,
    NotFoundError,
    OrderConflictError,
    OrderStateError,
)
from oee_app.models import OrderStatus, ProductionOrder
from oee_app.order_numbers import generate_order_number

logger = logging.getLogger(__name__)


class ProductionOrderService:
    def __init__(self, session: Session, tenant_id: int):
        self._session = session
        self._tenant_id = tenant_id
        self._catalog = CatalogRepo(session, tenant_id)

    def get(self, order_id: int) -> ProductionOrder:
        order = self._session.get(ProductionOrder, order_id)
        if order is None or order.tenant_id != self._tenant_id:
            raise NotFoundError("ProductionOrder", order_id)
        return order

    def list_orders(
        self,
        machine_code: str | None = None,
        status: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[ProductionOrder], int]:
        stmt = select(ProductionOrder).where(ProductionOrder.tenant_id == self._tenant_id)
        if machine_code:
            machine = self._catalog.find_machine_by_code(machine_code)
            if machine is None:
                return [], 0
            stmt = stmt.where(ProductionOrder.machine_id == machine.id)
        if status:
            stmt = stmt.where(ProductionOrder.status == status)

        total = self._session.execute(
            select(func.count()).select_from(stmt.subquery())
        ).scalar_one()
        rows = self._session.execute(
            stmt.order_by(ProductionOrder.created_at.desc(), ProductionOrder.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars()
        return list(rows), int(total)

    def in_progress_for_machine(self, machine_id: int) -> ProductionOrder | None:
        stmt = select(ProductionOrder).where(
            ProductionOrder.tenant_id == self._tenant_id,
            ProductionOrder.machine_id == machine_id,
            ProductionOrder.status == OrderStatus.IN_PROGRESS.value,
        )
        return self._session.execute(stmt).scalars().first()

    def create(self, payload: OrderCreate, now: datetime | None = None) -> ProductionOrder:
        link = self._catalog.get_link(payload.link_id)
        if not link.is_active:
            raise InvalidLinkError(link.id, "link is inactive")

        running = self.in_progress_for_machine(link.machine_id)
        if running is not None:
            raise OrderConflictError(link.machine.machine_code, running.order_number)
        machine_id, machine_code = link.machine_id, link.machine.machine_code

        # number first: the counter fallbacks may roll the session back
        order_number = generate_order_number(self._session, self._tenant_id, now)
        order = ProductionOrder(
            tenant_id=self._tenant_id,
            order_number=order_number,
            product_id=link.product_id,
            machine_id=link.machine_id,
            link_id=link.id,
            target_quantity=payload.target_quantity,
            produced_quantity=0,
            status=OrderStatus.IN_PROGRESS.value,
            end_date=payload.end_date,
            notes=(payload.notes or "").strip(),
        )
        if now is not None:
            order.created_at = now
        self._session.add(order)
        try:
            self._session.commit()
        except IntegrityError as exc:
            self._session.rollback()
            # lost a race with a concurrent create on the same machine
            running = self.in_progress_for_machine(machine_id)
            if running is not None:
                raise OrderConflictError(machine_code, running.order_number) from exc
            raise DuplicateCodeError("ProductionOrder", order_number) from exc
        self._session.refresh(order)
        logger.info("Created order %s for tenant %s", order.order_number, self._tenant_id)
        return order

    def update(
        self, order_id: int, payload: OrderUpdate, now: datetime | None = None
    ) -> tuple[ProductionOrder, bool]:
        """Apply an edit; returns the order and whether it auto-finished."""
        order = self.get(order_id)
        if order.status != OrderStatus.IN_PROGRESS.value:
            raise OrderStateError(order.order_number, order.status)

        for field, value in payload.changes().items():
            setattr(order, field, value)

        finished = False
        if order.produced_quantity >= order.target_quantity:
            order.status = OrderStatus.FINISHED.value
            if order.end_date is None:
                order.end_date = now or datetime.now()
            finished = True
            logger.info("Order %s reached its target and was finished", order.order_number)

        self._session.commit()
        self._session.refresh(order)
        return order, finished

    def finish(self, order_id: int, now: datetime | None = None) -> ProductionOrder:
        order = self.get(order_id)
        if order.status == OrderStatus.CANCELLED.value:
            raise OrderStateError(order.order_number, order.status)
        order.status = OrderStatus.FINISHED.value
        if order.end_date is None:
            order.end_date = now or datetime.now()
        self._session.commit()
        self._session.refresh(order)
        return order

    def cancel(self, order_id: int, now: datetime | None = None) -> ProductionOrder:
        order = self.get(order_id)
        if order.status != OrderStatus.IN_PROGRESS.value:
            raise OrderStateError(order.order_number, order.status)
        order.status = OrderStatus.CANCELLED.value
        if order.end_date is None:
            order.end_date = now or datetime.now()
        self._session.commit()
        self._session.refresh(order)
        return order
