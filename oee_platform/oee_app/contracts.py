from datetime import date, datetime, timezone
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from oee_app.models import (
    PurchasePriority,
    PurchaseStatus,
    Severity,
    StockStatus,
    StopCategory,
)

HHMM_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"
HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


def to_naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class _Timestamped(BaseModel):
    @field_validator("timestamp", mode="after", check_fields=False)
    @classmethod
    def _naive_utc(cls, value):
        return to_naive_utc(value)


class _PartialUpdate(BaseModel):
    # fields a client may clear by sending null; others treat null as "leave alone"
    nullable_fields: ClassVar[frozenset[str]] = frozenset()

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        return {k: v for k, v in data.items() if v is not None or k in self.nullable_fields}


# --- tenants ---

class TenantCreate(BaseModel):
    name: str = Field(min_length=2, max_length=120)


class TenantCreated(BaseModel):
    id: int
    name: str
    api_token: str


# --- catalog ---

class MachineCreate(BaseModel):
    machine_code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=100)
    kind: str = Field("simulator", pattern=r"^(simulator|real)$")
    status: str = Field("active", pattern=r"^(active|inactive|maintenance)$")


class MachineUpdate(_PartialUpdate):
    # machine_code is immutable: events reference machines by code
    name: str | None = Field(None, min_length=1, max_length=100)
    kind: str | None = Field(None, pattern=r"^(simulator|real)$")
    status: str | None = Field(None, pattern=r"^(active|inactive|maintenance)$")


class MachineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    machine_code: str
    name: str
    kind: str
    status: str


class ProductCreate(BaseModel):
    product_code: str | None = Field(None, max_length=50)
    name: str = Field(min_length=1, max_length=100)
    category: str | None = Field(None, max_length=50)
    unit: str | None = Field(None, max_length=20)
    min_stock: float = Field(0, ge=0)


class ProductUpdate(_PartialUpdate):
    nullable_fields = frozenset({"category", "unit"})

    product_code: str | None = Field(None, min_length=1, max_length=50)
    name: str | None = Field(None, min_length=1, max_length=100)
    category: str | None = Field(None, max_length=50)
    unit: str | None = Field(None, max_length=20)
    min_stock: float | None = Field(None, ge=0)
    is_active: bool | None = None


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_code: str
    name: str
    category: str | None
    unit: str | None
    min_stock: float
    is_active: bool


class LinkCreate(BaseModel):
    product_id: int
    machine_id: int
    ideal_cycle_time_s: float = Field(0, ge=0)
    setup_time_s: float = Field(0, ge=0)
    ideal_rate_per_hour: float = Field(0, ge=0)
    notes: str | None = Field(None, max_length=500)


class LinkUpdate(_PartialUpdate):
    nullable_fields = frozenset({"notes"})

    ideal_cycle_time_s: float | None = Field(None, ge=0)
    setup_time_s: float | None = Field(None, ge=0)
    ideal_rate_per_hour: float | None = Field(None, ge=0)
    notes: str | None = Field(None, max_length=500)
    is_active: bool | None = None


class LinkOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    machine_id: int
    ideal_cycle_time_s: float
    setup_time_s: float
    ideal_rate_per_hour: float
    notes: str | None
    is_active: bool


class StopReasonCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    category: StopCategory
    description: str | None = Field(None, max_length=500)
    color: str = Field("#3b82f6", pattern=HEX_COLOR_PATTERN)


class StopReasonUpdate(_PartialUpdate):
    nullable_fields = frozenset({"description"})

    name: str | None = Field(None, min_length=2, max_length=100)
    category: StopCategory | None = None
    description: str | None = Field(None, max_length=500)
    color: str | None = Field(None, pattern=HEX_COLOR_PATTERN)
    is_active: bool | None = None


class StopReasonOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    category: str
    description: str | None
    color: str
    is_active: bool


class ScrapReasonCreate(BaseModel):
    code: str | None = Field(None, min_length=3, max_length=20)
    name: str = Field(min_length=2, max_length=100)
    category: str = Field(min_length=2, max_length=50)
    severity: Severity = Severity.LOW
    color: str = Field("#ef4444", pattern=HEX_COLOR_PATTERN)


class ScrapReasonUpdate(_PartialUpdate):
    name: str | None = Field(None, min_length=2, max_length=100)
    category: str | None = Field(None, min_length=2, max_length=50)
    severity: Severity | None = None
    color: str | None = Field(None, pattern=HEX_COLOR_PATTERN)
    is_active: bool | None = None


class ScrapReasonOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    name: str
    category: str
    severity: str
    color: str
    is_active: bool


# --- production orders ---

class OrderCreate(BaseModel):
    link_id: int
    target_quantity: int = Field(gt=0)
    end_date: datetime | None = None
    notes: str | None = Field(None, max_length=1000)


class OrderUpdate(_PartialUpdate):
    nullable_fields = frozenset({"end_date", "notes"})

    target_quantity: int | None = Field(None, gt=0)
    produced_quantity: int | None = Field(None, ge=0)
    end_date: datetime | None = None
    notes: str | None = Field(None, max_length=1000)


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    product_id: int
    machine_id: int
    link_id: int
    target_quantity: int
    produced_quantity: int
    status: str
    end_date: datetime | None
    notes: str | None
    created_at: datetime | None


class OrderUpdateResponse(BaseModel):
    order: OrderOut
    finished: bool


class OrderPage(BaseModel):
    data: list[OrderOut]
    page: int
    limit: int
    total: int


# --- shifts ---

class ShiftCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    start_time: str = Field(pattern=HHMM_PATTERN)
    end_time: str = Field(pattern=HHMM_PATTERN)
    weekdays: list[int] = Field(min_length=1)
    status: str = Field("active", pattern=r"^(active|inactive)$")

    @field_validator("weekdays")
    @classmethod
    def _valid_weekdays(cls, value: list[int]) -> list[int]:
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("weekdays must be numbers from 0 (Sunday) to 6 (Saturday)")
        return value


class ShiftUpdate(_PartialUpdate):
    name: str | None = Field(None, min_length=2, max_length=100)
    start_time: str | None = Field(None, pattern=HHMM_PATTERN)
    end_time: str | None = Field(None, pattern=HHMM_PATTERN)
    weekdays: list[int] | None = Field(None, min_length=1)
    status: str | None = Field(None, pattern=r"^(active|inactive)$")

    @field_validator("weekdays")
    @classmethod
    def _valid_weekdays(cls, value: list[int] | None) -> list[int] | None:
        if value is not None and any(day < 0 or day > 6 for day in value):
            raise ValueError("weekdays must be numbers from 0 (Sunday) to 6 (Saturday)")
        return value


class ShiftOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    start_time: str
    end_time: str
    duration_hours: float | None
    weekdays: list[int]
    status: str


# --- inventory ---

class InventoryItemCreate(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=100)
    category: str | None = Field(None, max_length=50)
    current_quantity: float = 0
    min_quantity: float = Field(0, ge=0)
    max_quantity: float | None = Field(None, ge=0)
    unit: str = Field("unit", max_length=20)
    location: str | None = Field(None, max_length=100)
    supplier: str | None = Field(None, max_length=100)
    unit_cost: float = Field(0, ge=0)
    expiry_date: date | None = None
    status: StockStatus = StockStatus.ACTIVE


class InventoryItemUpdate(_PartialUpdate):
    nullable_fields = frozenset({"category", "max_quantity", "location", "supplier", "expiry_date"})

    code: str | None = Field(None, min_length=1, max_length=50)
    name: str | None = Field(None, min_length=1, max_length=100)
    category: str | None = Field(None, max_length=50)
    current_quantity: float | None = None
    min_quantity: float | None = Field(None, ge=0)
    max_quantity: float | None = Field(None, ge=0)
    unit: str | None = Field(None, max_length=20)
    location: str | None = Field(None, max_length=100)
    supplier: str | None = Field(None, max_length=100)
    unit_cost: float | None = Field(None, ge=0)
    expiry_date: date | None = None
    status: StockStatus | None = None


class InventoryItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    name: str
    category: str | None
    current_quantity: float
    min_quantity: float
    max_quantity: float | None
    unit: str
    expiry_date: date | None
    status: str
    needs_attention: bool
    attention_reason: str | None


class InventorySummary(BaseModel):
    total_items: int
    needing_attention: int
    low_stock: int
    all_ok: bool


class PurchaseRequestCreate(BaseModel):
    item_id: int
    quantity: float = Field(ge=1)
    priority: PurchasePriority = PurchasePriority.MEDIUM
    reason: str | None = Field(None, max_length=500)
    expected_delivery_at: datetime | None = None
    requested_by: str | None = Field(None, max_length=100)


class PurchaseRequestUpdate(_PartialUpdate):
    nullable_fields = frozenset({"reason", "expected_delivery_at", "received_at"})

    quantity: float | None = Field(None, ge=1)
    priority: PurchasePriority | None = None
    reason: str | None = Field(None, max_length=500)
    status: PurchaseStatus | None = None
    expected_delivery_at: datetime | None = None
    received_at: datetime | None = None


class PurchaseRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    item_id: int
    quantity: float
    priority: str
    reason: str | None
    status: str
    requested_by: str | None
    requested_at: datetime
    expected_delivery_at: datetime | None
    received_at: datetime | None


class PurchaseRequestPage(BaseModel):
    data: list[PurchaseRequestOut]
    total: int


class CleanupResult(BaseModel):
    deleted: int


# --- events ---

class StoppageCreate(_Timestamped):
    machine_code: str = Field(min_length=1, max_length=50)
    reason: str = Field(min_length=1, max_length=200)
    duration_seconds: float = Field(gt=0)
    timestamp: datetime | None = None
    operator: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=500)


class StoppageClassify(BaseModel):
    stop_reason_id: int | None = None
    reason: str | None = Field(None, max_length=200)
    operator: str | None = Field(None, max_length=100)


class StoppageUpdate(_PartialUpdate):
    nullable_fields = frozenset({"notes"})

    stop_reason_id: int | None = None
    reason: str | None = Field(None, min_length=1, max_length=200)
    duration_seconds: float | None = Field(None, gt=0)
    operator: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=500)


class StoppageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    machine_code: str
    timestamp: datetime
    duration_seconds: float
    reason: str
    stop_reason_id: int | None
    classified: bool
    operator: str
    notes: str | None


class ScrapCreate(_Timestamped):
    machine_code: str = Field(min_length=1, max_length=50)
    category: str = Field(min_length=2, max_length=50)
    reason: str = Field(min_length=1, max_length=200)
    quantity: int = Field(ge=1)
    severity: Severity
    timestamp: datetime | None = None
    description: str = ""


class ScrapUpdate(_PartialUpdate):
    machine_code: str | None = Field(None, min_length=1, max_length=50)
    category: str | None = Field(None, min_length=2, max_length=50)
    reason: str | None = Field(None, min_length=1, max_length=200)
    quantity: int | None = Field(None, ge=1)
    severity: Severity | None = None
    description: str | None = None


class ScrapOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    machine_code: str
    timestamp: datetime
    category: str
    reason: str
    quantity: int
    severity: str
    description: str


class ScrapSummaryRow(BaseModel):
    key: str
    entries: int
    quantity: int


class CycleIngest(_Timestamped):
    machine_code: str = Field(min_length=1, max_length=50)
    source_event_id: str = Field(min_length=1, max_length=100)
    timestamp: datetime
    is_defective: bool = False


class CycleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    machine_code: str
    source_event_id: str
    timestamp: datetime
    is_defective: bool


class CycleIngestResponse(BaseModel):
    status: str
    cycle: CycleOut


class MachineCycleStats(BaseModel):
    total: int
    conform: int
    defective: int


class ProductionStats(BaseModel):
    total_cycles: int
    conform_cycles: int
    defective_cycles: int
    conformity_rate: float
    machines: dict[str, MachineCycleStats]


# --- OEE ---

class OEEReport(BaseModel):
    machine_code: str | None
    window_start: datetime
    window_end: datetime
    hours_per_day: float
    window_days: float
    availability: float
    performance: float
    quality: float
    oee: float
    total_cycles: int
    good_cycles: int
    defective_cycles: int
    stoppage_seconds: float
    theoretical_seconds: float
    available_seconds: float
    ideal_cycle_time_s: float
    ideal_cycles: int
    scrap_quantity: float
