"""
inventory/allocation.py

Pure FEFO (first-expiry-first-out) planning over in-memory batch snapshots.
The repository reads the snapshot and commits the plan; nothing here touches
the database.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

__all__ = ["Batch", "Allocation", "AllocationPlan", "fefo_order", "plan_fefo"]


@dataclass(frozen=True)
class Batch:
    batch_id: int
    item_id: int
    quantity: Decimal
    version: int = 0
    expiry_date: Optional[date] = None
    status: str = "normal"
    purchase_rate: Decimal | None = None
    batch_number: str | None = None


@dataclass(frozen=True)
class Allocation:
    batch_id: int
    take: Decimal
    before: Decimal
    expected_version: int

    @property
    def after(self) -> Decimal:
        return self.before - self.take


@dataclass
class AllocationPlan:
    item_id: int
    requested: Decimal
    available: Decimal
    allocations: list[Allocation] = field(default_factory=list)

    @property
    def deducted(self) -> Decimal:
        return sum((a.take for a in self.allocations), Decimal("0"))

    @property
    def shortfall(self) -> Decimal:
        return self.requested - self.deducted

    @property
    def is_complete(self) -> bool:
        return self.shortfall <= 0


def fefo_order(batches: Iterable[Batch]) -> list[Batch]:
    """Soonest expiry first, undated batches last, ties by batch id."""
    return sorted(
        batches,
        key=lambda b: (b.expiry_date is None, b.expiry_date or date.max, b.batch_id),
    )


def plan_fefo(item_id: int, batches: Iterable[Batch], quantity: Decimal) -> AllocationPlan:
    """
    Walk batches in FEFO order taking min(batch.quantity, remaining) from each
    until the request is met or stock runs out. Empty batches are skipped.
    The plan may be incomplete; callers decide whether a shortfall is an error.
    """
    usable = [b for b in fefo_order(batches) if b.quantity > 0]
    plan = AllocationPlan(
        item_id=item_id,
        requested=quantity,
        available=sum((b.quantity for b in usable), Decimal("0")),
    )
    remaining = quantity
    for b in usable:
        if remaining <= 0:
            break
        take = min(b.quantity, remaining)
        plan.allocations.append(
            Allocation(batch_id=b.batch_id, take=take, before=b.quantity, expected_version=b.version)
        )
        remaining -= take
    return plan
