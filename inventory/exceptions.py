"""Errors raised by ledger operations.

Every mutating service runs inside one transaction; when one of these errors
escapes, that transaction has been rolled back and no partial state remains.
"""


class LedgerError(Exception):
    """Base class for stock ledger failures."""

    code = "ledger_error"

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.__class__.__doc__)
        self.context = context

    def as_dict(self) -> dict:
        return {"detail": str(self), "code": self.code, **self.context}


class InvalidRequest(LedgerError):
    """Invalid request."""

    code = "invalid_request"


class InsufficientStock(LedgerError):
    """Not enough stock in the warehouse to satisfy the request."""

    code = "insufficient_stock"

    def __init__(self, *, product_id, warehouse_id, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id} in warehouse {warehouse_id}: "
            f"requested {requested}, available {available}",
            product_id=product_id,
            warehouse_id=warehouse_id,
            requested=requested,
            available=available,
            shortfall=requested - available,
        )
        self.product_id = product_id
        self.warehouse_id = warehouse_id
        self.requested = requested
        self.available = available

    @property
    def shortfall(self) -> int:
        return self.requested - self.available


class InsufficientSourceStock(LedgerError):
    """Return quantity exceeds the stock held by the source vending machine."""

    code = "insufficient_source_stock"

    def __init__(self, *, vending_machine_id, product_id, requested: int, available: int):
        super().__init__(
            f"Vending machine {vending_machine_id} holds {available} of product {product_id}, "
            f"cannot return {requested}",
            vending_machine_id=vending_machine_id,
            product_id=product_id,
            requested=requested,
            available=available,
        )
        self.vending_machine_id = vending_machine_id
        self.product_id = product_id
        self.requested = requested
        self.available = available


class InsufficientQuantity(LedgerError):
    """Batch no longer holds the quantity being removed."""

    code = "insufficient_quantity"

    def __init__(self, *, batch_id, requested: int, available: int):
        super().__init__(
            f"Batch {batch_id} holds {available}, cannot remove {requested}",
            batch_id=batch_id,
            requested=requested,
            available=available,
        )
        self.batch_id = batch_id
        self.requested = requested
        self.available = available
