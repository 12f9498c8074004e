"""
Business errors raised by the storefront services.

Each class carries the HTTP status the API answers with; ``main.py`` turns
them into ``{"detail": ...}`` JSON responses.
"""
from typing import Iterable, Optional


class StoreError(Exception):
    status_code = 500

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        body = {"detail": self.message}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(StoreError):
    status_code = 400


class EmptyCartError(ValidationError):
    def __init__(self):
        super().__init__("Cart is empty", field="items")


class MissingCustomerInfoError(ValidationError):
    def __init__(self, fields: Iterable[str]):
        self.fields = list(fields)
        super().__init__(
            f"Missing customer information: {', '.join(self.fields)}",
            field=self.fields[0] if self.fields else None,
        )


class NotFoundError(StoreError):
    status_code = 404


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class CustomerNotFoundError(NotFoundError):
    def __init__(self, customer_id):
        self.customer_id = customer_id
        super().__init__(f"Customer not found: {customer_id}")


class ConflictError(StoreError):
    status_code = 409


class InvalidTransitionError(ConflictError):
    def __init__(self, field: str, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change {field} from '{current}' to '{requested}'", field=field)


class InsufficientStockError(StoreError):
    status_code = 409

    def __init__(self, product_id: str, product_name: str, requested: int, available: int):
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {product_name}: requested {requested}, available {available}",
            field="items",
        )


class InternalError(StoreError):
    status_code = 500

    def __init__(self, message: str = "Server error"):
        super().__init__(message)
