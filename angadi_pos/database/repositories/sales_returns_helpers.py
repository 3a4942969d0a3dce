from __future__ import annotations

from decimal import Decimal
from typing import Dict
import sqlite3

from ..rows import dec


def get_returnable_quantities(conn: sqlite3.Connection, invoice_id: int) -> Dict[int, Decimal]:
    """
    Compute remaining returnable quantity per invoice line.

    Returns a dict mapping invoice line_id -> remaining quantity (Decimal,
    clamped to >= 0). Pending and completed returns both count as returned;
    rejected ones do not.
    """
    sold_rows = conn.execute(
        "SELECT line_id, quantity FROM sales_invoice_items WHERE invoice_id = ?",
        (invoice_id,),
    ).fetchall()
    returned_rows = conn.execute(
        """
        SELECT sri.invoice_line_id, sri.quantity
        FROM sales_return_items sri
        JOIN sales_returns sr ON sr.return_id = sri.return_id
        WHERE sr.invoice_id = ?
          AND sr.refund_status IN ('pending', 'completed')
        """,
        (invoice_id,),
    ).fetchall()

    returned: Dict[int, Decimal] = {}
    for r in returned_rows:
        line_id = int(r["invoice_line_id"])
        returned[line_id] = returned.get(line_id, Decimal("0")) + dec(r["quantity"])

    out: Dict[int, Decimal] = {}
    for r in sold_rows:
        line_id = int(r["line_id"])
        remaining = dec(r["quantity"]) - returned.get(line_id, Decimal("0"))
        out[line_id] = remaining if remaining > 0 else Decimal("0")
    return out
