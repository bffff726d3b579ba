from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from oee_app.contracts import (
    InventoryItemCreate,
    InventoryItemUpdate,
    InventorySummary,
    PurchaseRequestCreate,
    PurchaseRequestUpdate,
)
from oee_app.derivations import derive_stock_status, merge_fields
from oee_app.errors import NotFoundError
from oee_app.models import InventoryItem, PurchaseRequest, PurchaseStatus

_STOCK_FIELDS = ("current_quantity", "min_quantity", "max_quantity", "expiry_date", "status")


def apply_stock_attention(item: InventoryItem, now: datetime | None = None) -> InventoryItem:
    derived = derive_stock_status(
        item.current_quantity,
        item.min_quantity,
        item.max_quantity,
        item.expiry_date,
        now or datetime.now(),
        status=item.status,
    )
    item.status = derived.status
    item.needs_attention = derived.needs_attention
    item.attention_reason = derived.attention_reason
    return item


def _normalize(data: dict) -> dict:
    if data.get("status") is not None:
        data["status"] = data["status"].value
    if "code" in data and data["code"]:
        data["code"] = data["code"].strip().upper()
    return data


class InventoryService:
    def __init__(self, session: Session, tenant_id: int):
        self._session = session
        self._tenant_id = tenant_id

    def _base_query(self):
        return select(InventoryItem).where(
            InventoryItem.tenant_id == self._tenant_id,
            InventoryItem.is_active.is_(True),
        )

    def list_items(
        self,
        search: str | None = None,
        category: str | None = None,
        status: str | None = None,
        needs_attention: bool | None = None,
    ) -> list[InventoryItem]:
        stmt = self._base_query()
        if search:
            like = f"%{search}%"
            stmt = stmt.where(InventoryItem.code.ilike(like) | InventoryItem.name.ilike(like))
        if category:
            stmt = stmt.where(InventoryItem.category == category)
        if status:
            stmt = stmt.where(InventoryItem.status == status)
        if needs_attention is not None:
            stmt = stmt.where(InventoryItem.needs_attention.is_(needs_attention))
        stmt = stmt.order_by(InventoryItem.created_at.desc(), InventoryItem.id.desc())
        return list(self._session.execute(stmt).scalars())

    def attention_items(self) -> list[InventoryItem]:
        stmt = self._base_query().where(InventoryItem.needs_attention.is_(True)).order_by(
            InventoryItem.attention_reason, InventoryItem.current_quantity
        )
        return list(self._session.execute(stmt).scalars())

    def get(self, item_id: int) -> InventoryItem:
        item = self._session.get(InventoryItem, item_id)
        if item is None or item.tenant_id != self._tenant_id or not item.is_active:
            raise NotFoundError("InventoryItem", item_id)
        return item

    def create(self, payload: InventoryItemCreate, now: datetime | None = None) -> InventoryItem:
        item = InventoryItem(tenant_id=self._tenant_id, **_normalize(payload.model_dump()))
        if item.status is None:
            item.status = "active"
        apply_stock_attention(item, now)
        self._session.add(item)
        self._session.commit()
        self._session.refresh(item)
        return item

    def update(
        self, item_id: int, payload: InventoryItemUpdate, now: datetime | None = None
    ) -> InventoryItem:
        item = self.get(item_id)
        updates = _normalize(payload.changes())
        stored = {field: getattr(item, field) for field in _STOCK_FIELDS}
        merged = merge_fields(stored, {k: v for k, v in updates.items() if k in _STOCK_FIELDS})

        for field, value in updates.items():
            setattr(item, field, value)
        derived = derive_stock_status(
            merged["current_quantity"],
            merged["min_quantity"],
            merged["max_quantity"],
            merged["expiry_date"],
            now or datetime.now(),
            status=merged["status"],
        )
        item.status = derived.status
        item.needs_attention = derived.needs_attention
        item.attention_reason = derived.attention_reason

        self._session.commit()
        self._session.refresh(item)
        return item

    def deactivate(self, item_id: int) -> None:
        item = self.get(item_id)
        item.is_active = False
        self._session.commit()

    def summary(self) -> InventorySummary:
        def count(*criteria) -> int:
            stmt = (
                select(func.count())
                .select_from(InventoryItem)
                .where(
                    InventoryItem.tenant_id == self._tenant_id,
                    InventoryItem.is_active.is_(True),
                    *criteria,
                )
            )
            return int(self._session.execute(stmt).scalar_one())

        total = count()
        attention = count(InventoryItem.needs_attention.is_(True))
        low = count(InventoryItem.current_quantity <= InventoryItem.min_quantity)
        return InventorySummary(
            total_items=total,
            needing_attention=attention,
            low_stock=low,
            all_ok=attention == 0,
        )


_CLOSED_REQUESTS = (PurchaseStatus.RECEIVED.value, PurchaseStatus.CANCELLED.value)


class PurchaseRequestService:
    """Purchase requests raised against inventory items."""

    def __init__(self, session: Session, tenant_id: int):
        self._session = session
        self._tenant_id = tenant_id

    def list_requests(self, status: str | None = None) -> list[PurchaseRequest]:
        stmt = select(PurchaseRequest).where(PurchaseRequest.tenant_id == self._tenant_id)
        if status:
            stmt = stmt.where(PurchaseRequest.status == status)
        stmt = stmt.order_by(PurchaseRequest.requested_at.desc(), PurchaseRequest.id.desc())
        return list(self._session.execute(stmt).scalars())

    def get(self, request_id: int) -> PurchaseRequest:
        request = self._session.get(PurchaseRequest, request_id)
        if request is None or request.tenant_id != self._tenant_id:
            raise NotFoundError("PurchaseRequest", request_id)
        return request

    def create(self, payload: PurchaseRequestCreate) -> PurchaseRequest:
        # the item must be a live item of this tenant
        InventoryService(self._session, self._tenant_id).get(payload.item_id)
        request = PurchaseRequest(
            tenant_id=self._tenant_id,
            item_id=payload.item_id,
            quantity=payload.quantity,
            priority=payload.priority.value,
            reason=payload.reason,
            requested_by=payload.requested_by,
            expected_delivery_at=payload.expected_delivery_at,
        )
        self._session.add(request)
        self._session.commit()
        self._session.refresh(request)
        return request

    def update(
        self, request_id: int, payload: PurchaseRequestUpdate, now: datetime | None = None
    ) -> PurchaseRequest:
        request = self.get(request_id)
        updates = payload.changes()
        for key in ("priority", "status"):
            if key in updates:
                updates[key] = updates[key].value
        if updates.get("status") == PurchaseStatus.RECEIVED.value and "received_at" not in updates:
            if request.received_at is None:
                updates["received_at"] = now or datetime.now()

        for field, value in updates.items():
            setattr(request, field, value)
        self._session.commit()
        self._session.refresh(request)
        return request

    def delete(self, request_id: int) -> None:
        request = self.get(request_id)
        self._session.delete(request)
        self._session.commit()

    def _delete_where(self, *criteria) -> int:
        stmt = delete(PurchaseRequest).where(
            PurchaseRequest.tenant_id == self._tenant_id, *criteria
        )
        result = self._session.execute(stmt)
        self._session.commit()
        return result.rowcount or 0

    def cleanup_closed(self) -> int:
        """Remove received and cancelled requests; return how many went."""
        return self._delete_where(PurchaseRequest.status.in_(_CLOSED_REQUESTS))

    def clear_all(self) -> int:
        return self._delete_where()
