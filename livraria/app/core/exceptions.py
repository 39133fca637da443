"""Domain errors raised by the PDV core.

Validation errors subclass ``ValueError`` and are raised before anything is
written. ``PersistenceFailure`` wraps an opaque failure of the database layer
and always names the step that failed.
"""

from __future__ import annotations

from uuid import UUID


class InvalidQuantityError(ValueError):
    def __init__(self, quantity: int, message: str | None = None) -> None:
        self.quantity = quantity
        super().__init__(message or f"Quantity must be greater than zero (got {quantity})")


class InsufficientStockError(ValueError):
    def __init__(
        self,
        book_id: UUID,
        available: int,
        requested: int,
        title: str | None = None,
        step: str | None = None,
    ) -> None:
        self.book_id = book_id
        self.available = available
        self.requested = requested
        self.title = title
        self.step = step
        label = f"'{title}'" if title else str(book_id)
        message = f"Insufficient stock for {label}: {available} available, {requested} requested"
        if step:
            message += f" (sale rolled back during {step}; no changes were saved)"
        super().__init__(message)


class NoAdjustmentNeededError(ValueError):
    def __init__(self, book_id: UUID, quantity: int) -> None:
        self.book_id = book_id
        self.quantity = quantity
        super().__init__(
            f"Current quantity is already {quantity}. No adjustment needed."
        )


class EmptyCartError(ValueError):
    def __init__(self) -> None:
        super().__init__("Cart must contain at least one item")


class BookNotFoundError(ValueError):
    def __init__(self, book_id: UUID) -> None:
        self.book_id = book_id
        super().__init__(f"Book {book_id} not found")


class SaleNotFoundError(ValueError):
    def __init__(self, sale_id: UUID | str) -> None:
        self.sale_id = sale_id
        super().__init__(f"Sale {sale_id} not found")


class SaleAlreadyCanceledError(ValueError):
    def __init__(self, sale_id: UUID) -> None:
        self.sale_id = sale_id
        super().__init__(f"Sale {sale_id} is already canceled")


class SessionClosedError(ValueError):
    def __init__(self, message: str = "Register session is closed. Log in again.") -> None:
        super().__init__(message)


class PersistenceFailure(Exception):
    """The database rejected a write; nothing from the operation was kept."""

    def __init__(self, step: str, message: str) -> None:
        self.step = step
        self.message = message
        super().__init__(message)


class SaleFinalizationError(PersistenceFailure):
    """Sale finalization failed at *step* and was rolled back."""
