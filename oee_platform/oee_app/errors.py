class NotFoundError(Exception):
    def __init__(self, entity: str, key):
        super().__init__(f"{entity} not found: {key!r}")
        self.entity = entity
        self.key = key


class InvalidLinkError(Exception):
    def __init__(self, link_id: int, detail: str):
        super().__init__(f"Product-machine link {link_id!r} cannot be used: {detail}")
        self.link_id = link_id
        self.detail = detail


class OrderConflictError(Exception):
    def __init__(self, machine_code: str, order_number: str):
        super().__init__(
            f"Machine {machine_code!r} already has order {order_number!r} in progress"
        )
        self.machine_code = machine_code
        self.order_number = order_number


class OrderStateError(Exception):
    def __init__(self, order_number: str, status: str):
        super().__init__(
            f"Order {order_number!r} is {status!r}; only in-progress orders can be changed"
        )
        self.order_number = order_number
        self.status = status


class DuplicateCodeError(Exception):
    def __init__(self, entity: str, code: str):
        super().__init__(f"{entity} code already exists for this tenant: {code!r}")
        self.entity = entity
        self.code = code


class AuthenticationError(Exception):
    def __init__(self, detail: str, status_code: int = 401):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class InUseError(Exception):
    def __init__(self, entity: str, key, detail: str):
        super().__init__(f"{entity} {key!r} is still in use: {detail}")
        self.entity = entity
        self.key = key
        self.detail = detail
