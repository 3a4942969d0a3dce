"""
Credits ledger: collections against invoices sold on credit.

Paid amount for an invoice is the sum of its positive sales_payments rows
(refunds are negative and do not reduce what the customer has paid toward
the sale). Pending is total - returned_amount - paid: processed returns
write off the receivable before anything is refunded.

Each collection is written twice: once in credit_payments (the
ledger) and once in sales_payments (so invoice payment history stays
complete).
"""

from __future__ import annotations

from decimal import Decimal
import logging
import sqlite3
from typing import Optional

from ...constants import PAYMENT_METHODS, PREFIX_CREDIT_PAYMENT
from ...errors import InvalidStateError, NotFoundError, ValidationError
from ...modules.payments.payment_utilities.calculations import (
    pending_amount,
    project_invoice_after_payment,
)
from ...utils.helpers import today_str
from ...utils.validators import strictly_positive
from ..rows import dec, rows_to_dicts
from ..sequences import next_document_number
from ..transactions import immediate_tx

_log = logging.getLogger(__name__)

# Methods accepted when collecting against a credit invoice.
COLLECTION_METHODS = tuple(m for m in PAYMENT_METHODS if m not in ("credit", "credit_note"))


def paid_to_date(conn: sqlite3.Connection, invoice_id: int) -> tuple[Decimal, Decimal]:
    """(paid, net_paid): positive payments only, and payments less refunds."""
    amounts = [
        dec(r[0])
        for r in conn.execute(
            "SELECT amount FROM sales_payments WHERE invoice_id = ?", (invoice_id,)
        ).fetchall()
    ]
    paid = sum((a for a in amounts if a > 0), Decimal("0"))
    return paid, sum(amounts, Decimal("0"))


class CreditPaymentsRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    def _paid(self, invoice_id: int) -> Decimal:
        return paid_to_date(self.conn, invoice_id)[0]

    # ---------------------------------------------------------------------
    # READ
    # ---------------------------------------------------------------------
    def list_outstanding(self, customer_id: Optional[int] = None) -> list[dict]:
        """
        Invoices in status 'credit' or 'partial' with paid_amount and
        pending_amount (Decimal), oldest first.
        """
        sql = """
            SELECT invoice_id, invoice_number, invoice_date, customer_id,
                   customer_name, customer_phone, total_amount, returned_amount,
                   payment_status
            FROM sales_invoices
            WHERE payment_status IN ('credit', 'partial')
        """
        params: list = []
        if customer_id is not None:
            sql += " AND customer_id = ?"
            params.append(customer_id)
        sql += " ORDER BY DATE(invoice_date), invoice_id"
        out = rows_to_dicts(
            self.conn.execute(sql, params).fetchall(), ("total_amount", "returned_amount")
        )
        for d in out:
            d["paid_amount"] = self._paid(d["invoice_id"])
            d["pending_amount"] = pending_amount(
                d["total_amount"], d["paid_amount"], d["returned_amount"]
            )
        return out

    def payments_for(self, invoice_id: int) -> list[dict]:
        rows = self.conn.execute(
            "SELECT * FROM credit_payments WHERE invoice_id = ? ORDER BY payment_date, payment_id",
            (invoice_id,),
        ).fetchall()
        return rows_to_dicts(rows, ("amount",))

    # ---------------------------------------------------------------------
    # WRITE
    # ---------------------------------------------------------------------
    def record_payment(
        self,
        invoice_id: int,
        amount,
        method: str = "cash",
        payment_date: Optional[str] = None,
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        """
        Collect `amount` against a credit/partial invoice. Returns the
        credit payment id. The invoice becomes 'paid' once nothing is
        pending, otherwise 'partial'.
        """
        amt = strictly_positive(amount, "amount")
        m = (method or "").strip().lower()
        if m not in COLLECTION_METHODS:
            raise ValidationError(f"method must be one of: {', '.join(COLLECTION_METHODS)}")
        on = payment_date or today_str()

        with immediate_tx(self.conn):
            inv = self.conn.execute(
                "SELECT invoice_number, total_amount, returned_amount, payment_status "
                "FROM sales_invoices WHERE invoice_id = ?",
                (invoice_id,),
            ).fetchone()
            if inv is None:
                raise NotFoundError(f"Sales invoice {invoice_id} not found.")
            if inv["payment_status"] not in ("credit", "partial"):
                raise InvalidStateError(f"Invoice {inv['invoice_number']} has nothing pending.")

            total = dec(inv["total_amount"])
            returned = dec(inv["returned_amount"])
            paid = self._paid(invoice_id)
            pending = pending_amount(total, paid, returned)
            if amt > pending:
                raise ValidationError(f"Amount {amt} exceeds pending amount {pending}.")

            number = next_document_number(self.conn, PREFIX_CREDIT_PAYMENT, on)
            cur = self.conn.execute(
                """
                INSERT INTO credit_payments (
                    payment_number, invoice_id, payment_date, amount, payment_method,
                    reference_number, notes
                ) VALUES (?,?,?,?,?,?,?)
                """,
                (number, invoice_id, on, amt, m, reference_number, notes),
            )
            payment_id = int(cur.lastrowid)
            self.conn.execute(
                """
                INSERT INTO sales_payments (
                    payment_number, invoice_id, payment_date, amount, payment_method,
                    reference_number, notes
                ) VALUES (?,?,?,?,?,?,?)
                """,
                (number, invoice_id, on, amt, m, reference_number, notes or "Credit collection"),
            )
            _, status = project_invoice_after_payment(
                total_amount=total, current_paid_amount=paid, new_payment_amount=amt,
                returned_amount=returned,
            )
            self.conn.execute(
                "UPDATE sales_invoices SET payment_status = ? WHERE invoice_id = ?",
                (status, invoice_id),
            )

        _log.info("Recorded %s of %s against %s (%s)", number, amt, inv["invoice_number"], status)
        return payment_id
