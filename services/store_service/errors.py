"""Store domain errors.

Every core operation raises one of these; the HTTP layer maps ``kind`` to a
status code. Raising inside ``atomic()`` rolls the unit of work back.
"""

from typing import Any, Optional


class StoreError(Exception):
    kind = "StoreError"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        entity_id: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.entity_id = entity_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "field": self.field,
            "entity_id": self.entity_id,
        }

    def __repr__(self):
        return f"<{self.kind} {self.message!r}>"


class NotFound(StoreError):
    kind = "NotFound"


class PreconditionFailed(StoreError):
    """Creating under an inactive parent."""

    kind = "PreconditionFailed"


class ConsistencyViolation(StoreError):
    """Subcategory does not belong to the given category."""

    kind = "ConsistencyViolation"


class InsufficientStock(StoreError):
    kind = "InsufficientStock"

    def __init__(self, product_id: int, requested: int, available: int) -> None:
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested {requested}, available {available}",
            field="quantity",
            entity_id=product_id,
        )
        self.requested = requested
        self.available = available


class EmptyCart(StoreError):
    kind = "EmptyCart"


class OrderCreationFailed(StoreError):
    kind = "OrderCreationFailed"


class InvalidTransition(StoreError):
    kind = "InvalidTransition"


class OperationNotAllowed(StoreError):
    kind = "OperationNotAllowed"


class ValidationError(StoreError):
    kind = "ValidationError"
