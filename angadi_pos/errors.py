"""
Domain errors raised by the billing engine, the stock allocator and the
repositories. Callers surface these to the user (toast/dialog) and abort the
save; nothing is partially written when one of them is raised.
"""
from __future__ import annotations

from decimal import Decimal


class DomainError(Exception):
    """Domain-level error suitable for surfacing to the UI."""
    pass


class ValidationError(DomainError, ValueError):
    """Bad numeric or document input (negative, non-finite, missing fields)."""
    pass


class NotFoundError(DomainError, LookupError):
    pass


class InvalidStateError(DomainError):
    """Operation not allowed in the document's current lifecycle state."""
    pass


class InsufficientStockError(DomainError):
    def __init__(self, item_id: int, requested: Decimal, available: Decimal):
        self.item_id = item_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for item {item_id}: requested {requested}, available {available}"
        )


class ConcurrentModificationError(DomainError):
    def __init__(self, batch_id: int, expected_version: int):
        self.batch_id = batch_id
        self.expected_version = expected_version
        super().__init__(
            f"Batch {batch_id} was modified concurrently (expected version {expected_version})"
        )
