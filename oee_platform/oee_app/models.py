from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class OrderStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    FINISHED = "finished"
    CANCELLED = "cancelled"


class StockStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DEPLETED = "depleted"
    EXPIRED = "expired"


class AttentionReason(str, Enum):
    LOW_STOCK = "low-stock"
    HIGH_STOCK = "high-stock"
    NEAR_EXPIRY = "near-expiry"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class StopCategory(str, Enum):
    EQUIPMENT = "equipment"
    PROCESS = "process"
    OPERATIONAL = "operational"
    ORGANIZATIONAL = "organizational"


class PurchasePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class PurchaseStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PURCHASING = "purchasing"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class Base(DeclarativeBase):
    pass


class Tenant(Base):
    __tablename__ = "tenant"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    api_token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())


class Counter(Base):
    __tablename__ = "counter"

    # "{tenant_id}:{year}"
    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())


class Machine(Base):
    __tablename__ = "machine"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenant.id"), nullable=False)
    machine_code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False, default="simulator")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    __table_args__ = (
        UniqueConstraint("tenant_id", "machine_code", name="uq_machine_tenant_code"),
    )


class Product(Base):
    __tablename__ = "product"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenant.id"), nullable=False)
    product_code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    min_stock: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    links: Mapped[list["ProductMachineLink"]] = relationship(back_populates="product")

    __table_args__ = (
        UniqueConstraint("tenant_id", "product_code", name="uq_product_tenant_code"),
    )


class ProductMachineLink(Base):
    __tablename__ = "product_machine_link"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenant.id"), nullable=False)
    product_id: Mapped[int] = mapped_column(Integer, ForeignKey("product.id"), nullable=False)
    machine_id: Mapped[int] = mapped_column(Integer, ForeignKey("machine.id"), nullable=False)
    ideal_cycle_time_s: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    setup_time_s: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    ideal_rate_per_hour: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    product: Mapped["Product"] = relationship(back_populates="links")
    machine: Mapped["Machine"] = relationship()

    __table_args__ = (
        UniqueConstraint("tenant_id", "product_id", "machine_id", name="uq_link_product_machine"),
        Index("ix_link_tenant_active", "tenant_id", "is_active"),
    )


class ProductionOrder(Base):
    __tablename__ = "production_order"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenant.id"), nullable=False)
    order_number: Mapped[str] = mapped_column(String(20), nullable=False)
    product_id: Mapped[int] = mapped_column(Integer, ForeignKey("product.id"), nullable=False)
    machine_id: Mapped[int] = mapped_column(Integer, ForeignKey("machine.id"), nullable=False)
    link_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("product_machine_link.id"), nullable=False
    )
    target_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    produced_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrderStatus.IN_PROGRESS.value
    )
    end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    product: Mapped["Product"] = relationship()
    machine: Mapped["Machine"] = relationship()
    link: Mapped["ProductMachineLink"] = relationship()

    __table_args__ = (
        UniqueConstraint("tenant_id", "order_number", name="uq_order_tenant_number"),
        Index("ix_order_tenant_machine_status", "tenant_id", "machine_id", "status"),
        Index("ix_order_created_at", "created_at"),
        # at most one running order per machine
        Index(
            "uq_order_machine_in_progress",
            "tenant_id",
            "machine_id",
            unique=True,
            sqlite_where=text("status = 'in-progress'"),
            postgresql_where=text("status = 'in-progress'"),
        ),
    )


class ProductionCycle(Base):
    __tablename__ = "production_cycle"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenant.id"), nullable=False)
    machine_code: Mapped[str] = mapped_column(String(50), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_defective: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    source_event_id: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    __table_args__ = (
        UniqueConstraint("tenant_id", "source_event_id", name="uq_cycle_src_event"),
        Index("ix_cycle_tenant_machine_ts", "tenant_id", "machine_code", "timestamp"),
    )


class StopReason(Base):
    __tablename__ = "stop_reason"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenant.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#3b82f6")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class Stoppage(Base):
    __tablename__ = "stoppage"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenant.id"), nullable=False)
    machine_code: Mapped[str] = mapped_column(String(50), nullable=False)
    # end of the stop; it started duration_seconds earlier
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    duration_seconds: Mapped[float] = mapped_column(Float, nullable=False)
    reason: Mapped[str] = mapped_column(String(200), nullable=False)
    stop_reason_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("stop_reason.id"), nullable=True
    )
    classified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    operator: Mapped[str] = mapped_column(String(100), nullable=False, default="N/A")
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    stop_reason: Mapped[Optional["StopReason"]] = relationship()

    __table_args__ = (
        Index("ix_stoppage_tenant_ts", "tenant_id", "timestamp"),
        Index("ix_stoppage_machine", "machine_code"),
    )


class ScrapReason(Base):
    __tablename__ = "scrap_reason"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenant.id"), nullable=False)
    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, default=Severity.LOW.value)
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#ef4444")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_scrap_reason_code"),
    )


class ScrapEntry(Base):
    __tablename__ = "scrap_entry"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenant.id"), nullable=False)
    machine_code: Mapped[str] = mapped_column(String(50), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    reason: Mapped[str] = mapped_column(String(200), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    __table_args__ = (
        Index("ix_scrap_tenant_ts", "tenant_id", "timestamp"),
        Index("ix_scrap_machine", "machine_code"),
    )


class InventoryItem(Base):
    __tablename__ = "inventory_item"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenant.id"), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    current_quantity: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    min_quantity: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    max_quantity: Mapped[float | None] = mapped_column(Float, nullable=True)
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="unit")
    location: Mapped[str | None] = mapped_column(String(100), nullable=True)
    supplier: Mapped[str | None] = mapped_column(String(100), nullable=True)
    unit_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=StockStatus.ACTIVE.value)
    needs_attention: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    attention_reason: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_item_tenant_code", "tenant_id", "code"),
        Index("ix_item_tenant_status_attention", "tenant_id", "status", "needs_attention"),
    )


class Shift(Base):
    __tablename__ = "shift"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenant.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    duration_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    weekdays: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    __table_args__ = (
        Index("ix_shift_tenant_status", "tenant_id", "status"),
    )


class PurchaseRequest(Base):
    __tablename__ = "purchase_request"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[int] = mapped_column(Integer, ForeignKey("tenant.id"), nullable=False)
    item_id: Mapped[int] = mapped_column(Integer, ForeignKey("inventory_item.id"), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    priority: Mapped[str] = mapped_column(
        String(10), nullable=False, default=PurchasePriority.MEDIUM.value
    )
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PurchaseStatus.PENDING.value
    )
    requested_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    requested_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    expected_delivery_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    received_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())

    item: Mapped["InventoryItem"] = relationship()

    __table_args__ = (
        Index("ix_purchase_tenant_status", "tenant_id", "status"),
    )
