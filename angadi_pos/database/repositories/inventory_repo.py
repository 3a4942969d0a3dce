"""
Batch stock repository: FEFO deduction, purchase receipt and restock.

Stock for an item is the sum of its inventory_batches.quantity. Batches are
never deleted or merged; a depleted batch simply sits at quantity 0.

Conventions:
- Quantities are Decimal in and out; stored as exact decimal text.
- Every batch write bumps `version` and is guarded by the version read at
  planning time, so a plan made against a stale snapshot cannot commit.
- Date strings are ISO 'YYYY-MM-DD'.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
import logging
import sqlite3
from typing import Optional, List, Dict

from ...constants import EXPIRY_WARNING_DAYS
from ...errors import (
    ConcurrentModificationError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from ...modules.inventory.allocation import Allocation, AllocationPlan, Batch, plan_fefo
from ...utils.helpers import today_str
from ...utils.loggers import log_event
from ...utils.validators import strictly_positive, non_negative
from ..rows import dec, row_to_dict, rows_to_dicts
from ..transactions import immediate_tx

_log = logging.getLogger(__name__)

_BATCH_DECIMALS = ("quantity", "purchase_rate")


@dataclass
class DeductionResult:
    item_id: int
    requested: Decimal
    deducted: Decimal
    remaining_shortfall: Decimal
    allocations: list[Allocation] = field(default_factory=list)


class InventoryRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ------------------------------------------------------------------
    # Snapshot / planning
    # ------------------------------------------------------------------
    def _snapshot(self, item_id: int) -> list[Batch]:
        rows = self.conn.execute(
            """
            SELECT batch_id, item_id, quantity, version, expiry_date, status,
                   purchase_rate, batch_number
            FROM inventory_batches
            WHERE item_id = ? AND CAST(quantity AS REAL) > 0
            """,
            (item_id,),
        ).fetchall()
        return [
            Batch(
                batch_id=int(r["batch_id"]),
                item_id=int(r["item_id"]),
                quantity=dec(r["quantity"]),
                version=int(r["version"]),
                expiry_date=date.fromisoformat(r["expiry_date"]) if r["expiry_date"] else None,
                status=r["status"],
                purchase_rate=dec(r["purchase_rate"]) if r["purchase_rate"] is not None else None,
                batch_number=r["batch_number"],
            )
            for r in rows
        ]

    def plan(self, item_id: int, quantity) -> AllocationPlan:
        """Read-only FEFO plan over the current batches. May be incomplete."""
        qty = strictly_positive(quantity, "quantity")
        return plan_fefo(item_id, self._snapshot(item_id), qty)

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------
    def apply(self, plan: AllocationPlan) -> DeductionResult:
        """
        Commit a plan. Each batch row is updated only if its version still
        matches the one seen when planning; otherwise the whole operation is
        rolled back and ConcurrentModificationError is raised.
        """
        with immediate_tx(self.conn):
            for a in plan.allocations:
                cur = self.conn.execute(
                    """
                    UPDATE inventory_batches
                       SET quantity = ?, version = version + 1
                     WHERE batch_id = ? AND version = ?
                    """,
                    (a.after, a.batch_id, a.expected_version),
                )
                if cur.rowcount != 1:
                    log_event(
                        _log, "deduct", "conflict",
                        f"batch {a.batch_id} changed since planning",
                        {"item_id": plan.item_id, "batch_id": a.batch_id,
                         "expected_version": a.expected_version},
                        level=logging.WARNING,
                    )
                    raise ConcurrentModificationError(a.batch_id, a.expected_version)
            log_event(
                _log, "deduct", "commit",
                f"deducted {plan.deducted} of item {plan.item_id}",
                {"item_id": plan.item_id, "requested": str(plan.requested),
                 "batches": [[a.batch_id, str(a.take)] for a in plan.allocations]},
            )
        return DeductionResult(
            item_id=plan.item_id,
            requested=plan.requested,
            deducted=plan.deducted,
            remaining_shortfall=plan.shortfall if plan.shortfall > 0 else Decimal("0"),
            allocations=list(plan.allocations),
        )

    def deduct(self, item_id: int, quantity) -> DeductionResult:
        """
        Deduct `quantity` of an item across its batches, soonest expiry first,
        undated batches last.

        All-or-nothing: if total stock is short, InsufficientStockError is
        raised before any batch is touched.
        """
        qty = strictly_positive(quantity, "quantity")
        with immediate_tx(self.conn):
            plan = plan_fefo(item_id, self._snapshot(item_id), qty)
            if not plan.is_complete:
                _log.warning(
                    "Insufficient stock for item %s: requested %s, available %s",
                    item_id, qty, plan.available,
                )
                raise InsufficientStockError(item_id, qty, plan.available)
            return self.apply(plan)

    def deduct_best_effort(self, item_id: int, quantity) -> DeductionResult:
        """
        Deduct whatever is available up to `quantity` and report the
        shortfall instead of raising.
        """
        qty = strictly_positive(quantity, "quantity")
        with immediate_tx(self.conn):
            plan = plan_fefo(item_id, self._snapshot(item_id), qty)
            result = self.apply(plan)
        if result.remaining_shortfall > 0:
            _log.warning(
                "Best-effort deduction for item %s short by %s",
                item_id, result.remaining_shortfall,
            )
        return result

    # ------------------------------------------------------------------
    # New batches
    # ------------------------------------------------------------------
    def _insert_batch(
        self,
        *,
        item_id: int,
        quantity: Decimal,
        status: str,
        source_type: str,
        source_id: Optional[str],
        purchase_rate: Optional[Decimal],
        batch_number: Optional[str],
        expiry_date: Optional[str],
        notes: Optional[str],
    ) -> int:
        if self.conn.execute("SELECT 1 FROM items WHERE item_id=?", (item_id,)).fetchone() is None:
            raise NotFoundError(f"Item {item_id} not found.")
        cur = self.conn.execute(
            """
            INSERT INTO inventory_batches (
                item_id, batch_number, quantity, purchase_rate, expiry_date,
                status, source_type, source_id, notes
            ) VALUES (?,?,?,?,?,?,?,?,?)
            """,
            (
                item_id, batch_number, quantity, purchase_rate, expiry_date,
                status, source_type, source_id, notes,
            ),
        )
        return int(cur.lastrowid)

    def restock(
        self,
        item_id: int,
        quantity,
        *,
        purchase_rate=None,
        source_type: str = "return",
        source_id: Optional[str] = None,
        batch_number: Optional[str] = None,
        notes: Optional[str] = None,
        expiry_date: Optional[str] = None,
    ) -> int:
        """
        Put returned goods back as a brand-new batch with status 'returned'.
        Existing batches are never topped up.
        """
        qty = strictly_positive(quantity, "quantity")
        rate = non_negative(purchase_rate, "purchase_rate") if purchase_rate is not None else None
        with immediate_tx(self.conn):
            batch_id = self._insert_batch(
                item_id=item_id,
                quantity=qty,
                status="returned",
                source_type=source_type,
                source_id=source_id,
                purchase_rate=rate,
                batch_number=batch_number,
                expiry_date=expiry_date,
                notes=notes,
            )
            log_event(
                _log, "restock", "commit",
                f"restocked {qty} of item {item_id} as batch {batch_id}",
                {"item_id": item_id, "batch_id": batch_id, "quantity": str(qty),
                 "source_type": source_type, "source_id": source_id},
            )
        return batch_id

    def receive(
        self,
        item_id: int,
        quantity,
        *,
        purchase_rate=None,
        batch_number: Optional[str] = None,
        expiry_date: Optional[str] = None,
        source_type: str = "purchase",
        source_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        """Insert a 'normal' batch for goods received (purchase or opening stock)."""
        qty = strictly_positive(quantity, "quantity")
        rate = non_negative(purchase_rate, "purchase_rate") if purchase_rate is not None else None
        if source_type not in ("purchase", "opening"):
            raise ValidationError("source_type must be 'purchase' or 'opening'.")
        with immediate_tx(self.conn):
            batch_id = self._insert_batch(
                item_id=item_id,
                quantity=qty,
                status="normal",
                source_type=source_type,
                source_id=source_id,
                purchase_rate=rate,
                batch_number=batch_number or f"B-{today_str().replace('-', '')}",
                expiry_date=expiry_date,
                notes=notes,
            )
        return batch_id

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def total_stock(self, item_id: int) -> Decimal:
        rows = self.conn.execute(
            "SELECT quantity FROM inventory_batches WHERE item_id = ?", (item_id,)
        ).fetchall()
        return sum((dec(r["quantity"]) for r in rows), Decimal("0"))

    def get_batch(self, batch_id: int) -> Dict | None:
        r = self.conn.execute(
            "SELECT * FROM inventory_batches WHERE batch_id = ?", (batch_id,)
        ).fetchone()
        return row_to_dict(r, _BATCH_DECIMALS)

    def list_batches(self, item_id: int, *, include_empty: bool = True) -> List[Dict]:
        """Batches of an item in FEFO order (soonest expiry first, undated last)."""
        sql = """
            SELECT * FROM inventory_batches
            WHERE item_id = ?
        """
        if not include_empty:
            sql += " AND CAST(quantity AS REAL) > 0"
        sql += " ORDER BY expiry_date IS NULL, expiry_date, batch_id"
        rows = self.conn.execute(sql, (item_id,)).fetchall()
        return rows_to_dicts(rows, _BATCH_DECIMALS)

    def stock_summary(self) -> List[Dict]:
        """
        One row per active item:
          item_id, name, unit, total_stock, min_stock_level, is_low
        An item is low when total_stock <= min_stock_level.
        """
        items = self.conn.execute(
            "SELECT item_id, name, unit, min_stock_level FROM items "
            "WHERE is_active = 1 ORDER BY name"
        ).fetchall()
        totals: dict[int, Decimal] = {}
        for r in self.conn.execute("SELECT item_id, quantity FROM inventory_batches"):
            totals[int(r["item_id"])] = totals.get(int(r["item_id"]), Decimal("0")) + dec(r["quantity"])
        out: List[Dict] = []
        for r in items:
            stock = totals.get(int(r["item_id"]), Decimal("0"))
            min_level = dec(r["min_stock_level"])
            out.append(
                {
                    "item_id": int(r["item_id"]),
                    "name": r["name"],
                    "unit": r["unit"],
                    "total_stock": stock,
                    "min_stock_level": min_level,
                    "is_low": stock <= min_level,
                }
            )
        return out

    def low_stock_items(self) -> List[Dict]:
        return [r for r in self.stock_summary() if r["is_low"]]

    def expiring_batches(
        self,
        within_days: int = EXPIRY_WARNING_DAYS,
        as_of: Optional[str] = None,
    ) -> List[Dict]:
        """
        Non-empty batches whose expiry falls before as_of + within_days,
        already-expired ones included (flagged with is_expired).
        """
        if within_days < 0:
            raise ValidationError("within_days cannot be negative.")
        ref = date.fromisoformat(as_of) if as_of else date.today()
        horizon = (ref + timedelta(days=within_days)).isoformat()
        rows = self.conn.execute(
            """
            SELECT b.*, i.name AS item_name
            FROM inventory_batches b
            JOIN items i ON i.item_id = b.item_id
            WHERE b.expiry_date IS NOT NULL
              AND b.expiry_date < ?
              AND CAST(b.quantity AS REAL) > 0
            ORDER BY b.expiry_date, b.batch_id
            """,
            (horizon,),
        ).fetchall()
        out = rows_to_dicts(rows, _BATCH_DECIMALS)
        for d in out:
            d["is_expired"] = d["expiry_date"] < ref.isoformat()
        return out
