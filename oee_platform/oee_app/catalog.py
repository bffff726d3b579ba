from sqlalchemy import func, select
from sqlalchemy.orm import Session

from oee_app.contracts import (
    LinkCreate,
    LinkUpdate,
    MachineCreate,
    MachineUpdate,
    ProductCreate,
    ProductUpdate,
    ScrapReasonCreate,
    ScrapReasonUpdate,
    StopReasonCreate,
    StopReasonUpdate,
)
from oee_app.errors import DuplicateCodeError, InUseError, NotFoundError
from oee_app.models import (
    Machine,
    Product,
    ProductionOrder,
    ProductMachineLink,
    ScrapReason,
    StopReason,
)


def normalize_code(code: str) -> str:
    return code.strip().upper()


class CatalogRepo:
    """Machines, products and their links, scoped to one tenant."""

    def __init__(self, session: Session, tenant_id: int):
        self._session = session
        self._tenant_id = tenant_id

    # --- machines ---

    def list_machines(self) -> list[Machine]:
        stmt = (
            select(Machine)
            .where(Machine.tenant_id == self._tenant_id)
            .order_by(Machine.machine_code)
        )
        return list(self._session.execute(stmt).scalars())

    def find_machine_by_code(self, machine_code: str) -> Machine | None:
        stmt = select(Machine).where(
            Machine.tenant_id == self._tenant_id,
            Machine.machine_code == normalize_code(machine_code),
        )
        return self._session.execute(stmt).scalars().first()

    def get_machine(self, machine_id: int) -> Machine:
        machine = self._session.get(Machine, machine_id)
        if machine is None or machine.tenant_id != self._tenant_id:
            raise NotFoundError("Machine", machine_id)
        return machine

    def create_machine(self, payload: MachineCreate) -> Machine:
        code = normalize_code(payload.machine_code)
        if self.find_machine_by_code(code) is not None:
            raise DuplicateCodeError("Machine", code)
        machine = Machine(
            tenant_id=self._tenant_id,
            machine_code=code,
            name=payload.name.strip(),
            kind=payload.kind,
            status=payload.status,
        )
        self._session.add(machine)
        self._session.commit()
        self._session.refresh(machine)
        return machine

    def update_machine(self, machine_id: int, payload: MachineUpdate) -> Machine:
        machine = self.get_machine(machine_id)
        updates = payload.changes()
        if "name" in updates:
            updates["name"] = updates["name"].strip()
        for field, value in updates.items():
            setattr(machine, field, value)
        self._session.commit()
        self._session.refresh(machine)
        return machine

    def delete_machine(self, machine_id: int) -> None:
        """Remove a machine nothing points at.

        Links and orders hold foreign keys to the machine, so those must go
        first. Events keep their machine code and stay queryable.
        """
        machine = self.get_machine(machine_id)
        references = ((ProductMachineLink, "product links"), (ProductionOrder, "production orders"))
        for model, label in references:
            used = self._session.execute(
                select(model.id).where(model.machine_id == machine.id).limit(1)
            ).first()
            if used is not None:
                raise InUseError("Machine", machine.machine_code, f"referenced by {label}")
        self._session.delete(machine)
        self._session.commit()

    # --- products ---

    def list_products(self, category: str | None = None) -> list[Product]:
        stmt = select(Product).where(Product.tenant_id == self._tenant_id, Product.is_active.is_(True))
        if category:
            stmt = stmt.where(Product.category == category)
        return list(self._session.execute(stmt.order_by(Product.product_code)).scalars())

    def get_product(self, product_id: int) -> Product:
        product = self._session.get(Product, product_id)
        if product is None or product.tenant_id != self._tenant_id:
            raise NotFoundError("Product", product_id)
        return product

    def _product_code_taken(self, code: str) -> bool:
        stmt = select(Product.id).where(
            Product.tenant_id == self._tenant_id, Product.product_code == code
        )
        return self._session.execute(stmt).first() is not None

    def next_product_code(self) -> str:
        count = self._session.execute(
            select(func.count()).select_from(Product).where(Product.tenant_id == self._tenant_id)
        ).scalar_one()
        n = int(count) + 1
        code = f"PROD{n:03d}"
        while self._product_code_taken(code):
            n += 1
            code = f"PROD{n:03d}"
        return code

    def create_product(self, payload: ProductCreate) -> Product:
        if payload.product_code and payload.product_code.strip():
            code = normalize_code(payload.product_code)
            if self._product_code_taken(code):
                raise DuplicateCodeError("Product", code)
        else:
            code = self.next_product_code()
        product = Product(
            tenant_id=self._tenant_id,
            product_code=code,
            name=payload.name.strip(),
            category=payload.category,
            unit=payload.unit,
            min_stock=payload.min_stock,
        )
        self._session.add(product)
        self._session.commit()
        self._session.refresh(product)
        return product

    def update_product(self, product_id: int, payload: ProductUpdate) -> Product:
        product = self.get_product(product_id)
        updates = payload.changes()
        if "product_code" in updates:
            code = normalize_code(updates["product_code"])
            if code != product.product_code and self._product_code_taken(code):
                raise DuplicateCodeError("Product", code)
            updates["product_code"] = code
        if "name" in updates:
            updates["name"] = updates["name"].strip()
        for field, value in updates.items():
            setattr(product, field, value)
        self._session.commit()
        self._session.refresh(product)
        return product

    def deactivate_product(self, product_id: int) -> None:
        product = self.get_product(product_id)
        product.is_active = False
        self._session.commit()

    # --- product-machine links ---

    def list_links(self, machine_id: int | None = None, active_only: bool = True) -> list[ProductMachineLink]:
        stmt = select(ProductMachineLink).where(ProductMachineLink.tenant_id == self._tenant_id)
        if machine_id is not None:
            stmt = stmt.where(ProductMachineLink.machine_id == machine_id)
        if active_only:
            stmt = stmt.where(ProductMachineLink.is_active.is_(True))
        return list(self._session.execute(stmt.order_by(ProductMachineLink.id)).scalars())

    def get_link(self, link_id: int) -> ProductMachineLink:
        link = self._session.get(ProductMachineLink, link_id)
        if link is None or link.tenant_id != self._tenant_id:
            raise NotFoundError("ProductMachineLink", link_id)
        return link

    def create_link(self, payload: LinkCreate) -> ProductMachineLink:
        product = self.get_product(payload.product_id)
        machine = self.get_machine(payload.machine_id)
        existing = self._session.execute(
            select(ProductMachineLink.id).where(
                ProductMachineLink.tenant_id == self._tenant_id,
                ProductMachineLink.product_id == product.id,
                ProductMachineLink.machine_id == machine.id,
            )
        ).first()
        if existing is not None:
            raise DuplicateCodeError("ProductMachineLink", f"{product.product_code}@{machine.machine_code}")
        link = ProductMachineLink(
            tenant_id=self._tenant_id,
            product_id=product.id,
            machine_id=machine.id,
            ideal_cycle_time_s=payload.ideal_cycle_time_s,
            setup_time_s=payload.setup_time_s,
            ideal_rate_per_hour=payload.ideal_rate_per_hour,
            notes=payload.notes,
        )
        self._session.add(link)
        self._session.commit()
        self._session.refresh(link)
        return link

    def update_link(self, link_id: int, payload: LinkUpdate) -> ProductMachineLink:
        link = self.get_link(link_id)
        for field, value in payload.changes().items():
            setattr(link, field, value)
        self._session.commit()
        self._session.refresh(link)
        return link


class ReasonRepo:
    """Stop and scrap reason catalogs for one tenant."""

    def __init__(self, session: Session, tenant_id: int):
        self._session = session
        self._tenant_id = tenant_id

    def list_stop_reasons(self, category: str | None = None) -> list[StopReason]:
        stmt = select(StopReason).where(
            StopReason.tenant_id == self._tenant_id, StopReason.is_active.is_(True)
        )
        if category:
            stmt = stmt.where(StopReason.category == category)
        return list(self._session.execute(stmt.order_by(StopReason.name)).scalars())

    def get_stop_reason(self, reason_id: int) -> StopReason:
        reason = self._session.get(StopReason, reason_id)
        if reason is None or reason.tenant_id != self._tenant_id:
            raise NotFoundError("StopReason", reason_id)
        return reason

    def _stop_reason_name_taken(self, name: str, exclude_id: int | None = None) -> bool:
        stmt = select(StopReason.id).where(
            StopReason.tenant_id == self._tenant_id,
            StopReason.is_active.is_(True),
            StopReason.name == name,
        )
        if exclude_id is not None:
            stmt = stmt.where(StopReason.id != exclude_id)
        return self._session.execute(stmt).first() is not None

    def create_stop_reason(self, payload: StopReasonCreate) -> StopReason:
        name = payload.name.strip()
        if self._stop_reason_name_taken(name):
            raise DuplicateCodeError("StopReason", name)
        reason = StopReason(
            tenant_id=self._tenant_id,
            name=name,
            category=payload.category.value,
            description=payload.description,
            color=payload.color,
        )
        self._session.add(reason)
        self._session.commit()
        self._session.refresh(reason)
        return reason

    def update_stop_reason(self, reason_id: int, payload: StopReasonUpdate) -> StopReason:
        reason = self.get_stop_reason(reason_id)
        updates = payload.changes()
        if "name" in updates:
            updates["name"] = updates["name"].strip()
            if self._stop_reason_name_taken(updates["name"], exclude_id=reason.id):
                raise DuplicateCodeError("StopReason", updates["name"])
        if "category" in updates:
            updates["category"] = updates["category"].value
        for field, value in updates.items():
            setattr(reason, field, value)
        self._session.commit()
        self._session.refresh(reason)
        return reason

    def deactivate_stop_reason(self, reason_id: int) -> None:
        reason = self.get_stop_reason(reason_id)
        reason.is_active = False
        self._session.commit()

    def list_scrap_reasons(self) -> list[ScrapReason]:
        stmt = select(ScrapReason).where(
            ScrapReason.tenant_id == self._tenant_id, ScrapReason.is_active.is_(True)
        )
        return list(self._session.execute(stmt.order_by(ScrapReason.code)).scalars())

    def get_scrap_reason(self, reason_id: int) -> ScrapReason:
        reason = self._session.get(ScrapReason, reason_id)
        if reason is None or reason.tenant_id != self._tenant_id:
            raise NotFoundError("ScrapReason", reason_id)
        return reason

    def _scrap_code_taken(self, code: str) -> bool:
        stmt = select(ScrapReason.id).where(
            ScrapReason.tenant_id == self._tenant_id, ScrapReason.code == code
        )
        return self._session.execute(stmt).first() is not None

    def next_scrap_code(self, name: str) -> str:
        base = name.strip()[:3].upper()
        n = 1
        code = f"{base}{n:02d}"
        while self._scrap_code_taken(code):
            n += 1
            code = f"{base}{n:02d}"
        return code

    def create_scrap_reason(self, payload: ScrapReasonCreate) -> ScrapReason:
        if payload.code:
            code = normalize_code(payload.code)
            if self._scrap_code_taken(code):
                raise DuplicateCodeError("ScrapReason", code)
        else:
            code = self.next_scrap_code(payload.name)
        reason = ScrapReason(
            tenant_id=self._tenant_id,
            code=code,
            name=payload.name.strip(),
            category=payload.category.strip(),
            severity=payload.severity.value,
            color=payload.color,
        )
        self._session.add(reason)
        self._session.commit()
        self._session.refresh(reason)
        return reason

    def update_scrap_reason(self, reason_id: int, payload: ScrapReasonUpdate) -> ScrapReason:
        reason = self.get_scrap_reason(reason_id)
        updates = payload.changes()
        for key in ("name", "category"):
            if key in updates:
                updates[key] = updates[key].strip()
        if "severity" in updates:
            updates["severity"] = updates["severity"].value
        for field, value in updates.items():
            setattr(reason, field, value)
        self._session.commit()
        self._session.refresh(reason)
        return reason

    def deactivate_scrap_reason(self, reason_id: int) -> None:
        reason = self.get_scrap_reason(reason_id)
        reason.is_active = False
        self._session.commit()
