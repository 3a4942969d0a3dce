
"""
Vendor payments against purchase invoices.

Paid amount is the sum of purchase_payments rows; the header's
payment_status is rolled up after every insert/delete:
pending -> partial -> paid.
"""

from __future__ import annotations

from decimal import Decimal
import logging
import sqlite3
from typing import Optional

from ...constants import PREFIX_PURCHASE_PAYMENT, PURCHASE_PAYMENT_METHODS
from ...errors import InvalidStateError, NotFoundError, ValidationError
from ...modules.payments.payment_utilities.calculations import (
    pending_amount,
    purchase_status_from_paid,
)
from ...utils.helpers import today_str
from ...utils.validators import strictly_positive
from ..rows import dec, rows_to_dicts
from ..sequences import next_document_number
from ..transactions import immediate_tx

_log = logging.getLogger(__name__)


class PurchasePaymentsRepo:
    def __init__(self, conn: sqlite3.Connection):
        conn.row_factory = sqlite3.Row
        self.conn = conn

    def _paid(self, purchase_id: int) -> Decimal:
        rows = self.conn.execute(
            "SELECT amount FROM purchase_payments WHERE purchase_id = ?", (purchase_id,)
        ).fetchall()
        return sum((dec(r["amount"]) for r in rows), Decimal("0"))

    def _roll_up(self, purchase_id: int, total: Decimal) -> str:
        status = purchase_status_from_paid(total, self._paid(purchase_id))
        self.conn.execute(
            "UPDATE purchase_invoices SET payment_status = ? WHERE purchase_id = ?",
            (status, purchase_id),
        )
        return status

    # ---------------------------------------------------------------------
    # READ
    # ---------------------------------------------------------------------
    def list_outstanding(self, vendor_id: Optional[int] = None) -> list[dict]:
        """
        Purchases in status 'pending' or 'partial' with paid_amount and
        pending_amount (Decimal), oldest first.
        """
        sql = """
            SELECT p.purchase_id, p.record_number, p.invoice_number, p.invoice_date,
                   p.vendor_id, COALESCE(v.name, p.unregistered_vendor_name) AS vendor_name,
                   p.total_amount, p.payment_status
            FROM purchase_invoices p
            LEFT JOIN vendors v ON v.vendor_id = p.vendor_id
            WHERE p.payment_status IN ('pending', 'partial')
        """
        params: list = []
        if vendor_id is not None:
            sql += " AND p.vendor_id = ?"
            params.append(vendor_id)
        sql += " ORDER BY DATE(p.invoice_date), p.purchase_id"
        out = rows_to_dicts(self.conn.execute(sql, params).fetchall(), ("total_amount",))
        for d in out:
            d["paid_amount"] = self._paid(d["purchase_id"])
            d["pending_amount"] = pending_amount(d["total_amount"], d["paid_amount"])
        return out

    def list_payments(self, purchase_id: int) -> list[dict]:
        """Payments for one purchase, ordered by date then id."""
        rows = self.conn.execute(
            """
            SELECT * FROM purchase_payments
            WHERE purchase_id = ?
            ORDER BY DATE(payment_date), payment_id
            """,
            (purchase_id,),
        ).fetchall()
        return rows_to_dicts(rows, ("amount",))

    def list_payments_for_vendor(
        self,
        vendor_id: int,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> list[dict]:
        sql_parts = [
            """
            SELECT pp.*, p.record_number, p.invoice_number
            FROM purchase_payments pp
            JOIN purchase_invoices p ON p.purchase_id = pp.purchase_id
            WHERE p.vendor_id = ?
            """
        ]
        params: list = [vendor_id]
        if date_from:
            sql_parts.append("AND DATE(pp.payment_date) >= DATE(?)")
            params.append(date_from)
        if date_to:
            sql_parts.append("AND DATE(pp.payment_date) <= DATE(?)")
            params.append(date_to)
        sql_parts.append("ORDER BY DATE(pp.payment_date), pp.payment_id")
        return rows_to_dicts(self.conn.execute("\n".join(sql_parts), params).fetchall(), ("amount",))

    # ---------------------------------------------------------------------
    # WRITE
    # ---------------------------------------------------------------------
    def record_payment(
        self,
        purchase_id: int,
        amount,
        method: str = "cash",
        payment_date: Optional[str] = None,
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        """
        Pay `amount` to the vendor against a pending/partial purchase.
        Returns the payment id. Overpayment is refused.
        """
        amt = strictly_positive(amount, "amount")
        m = (method or "").strip().lower()
        if m not in PURCHASE_PAYMENT_METHODS:
            raise ValidationError(f"method must be one of: {', '.join(PURCHASE_PAYMENT_METHODS)}")
        on = payment_date or today_str()

        with immediate_tx(self.conn):
            p = self.conn.execute(
                "SELECT record_number, total_amount, payment_status FROM purchase_invoices WHERE purchase_id = ?",
                (purchase_id,),
            ).fetchone()
            if p is None:
                raise NotFoundError(f"Purchase {purchase_id} not found.")
            if p["payment_status"] == "paid":
                raise InvalidStateError(f"Purchase {p['record_number']} is already paid.")

            total = dec(p["total_amount"])
            pending = pending_amount(total, self._paid(purchase_id))
            if amt > pending:
                raise ValidationError(f"Amount {amt} exceeds pending amount {pending}.")

            number = next_document_number(self.conn, PREFIX_PURCHASE_PAYMENT, on)
            cur = self.conn.execute(
                """
                INSERT INTO purchase_payments (
                    payment_number, purchase_id, payment_date, amount, payment_method,
                    reference_number, notes
                ) VALUES (?,?,?,?,?,?,?)
                """,
                (number, purchase_id, on, amt, m, reference_number, notes),
            )
            payment_id = int(cur.lastrowid)
            status = self._roll_up(purchase_id, total)

        _log.info("Recorded %s of %s against %s (%s)", number, amt, p["record_number"], status)
        return payment_id

    def delete_payment(self, payment_id: int) -> str:
        """Remove a payment and re-derive the purchase status. Returns the new status."""
        with immediate_tx(self.conn):
            row = self.conn.execute(
                """
                SELECT pp.purchase_id, p.total_amount
                FROM purchase_payments pp
                JOIN purchase_invoices p ON p.purchase_id = pp.purchase_id
                WHERE pp.payment_id = ?
                """,
                (payment_id,),
            ).fetchone()
            if row is None:
                raise NotFoundError(f"Purchase payment {payment_id} not found.")
            self.conn.execute("DELETE FROM purchase_payments WHERE payment_id = ?", (payment_id,))
            return self._roll_up(row["purchase_id"], dec(row["total_amount"]))
