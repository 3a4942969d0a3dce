"""
Sales returns: create (pending) -> process (completed) or reject.

Processing a return restocks the goods as new 'returned' batches (when the
return is restockable), settles the refund and adds the return total to the
invoice's returned_amount, all in one transaction.

Settlement by refund_method, for whatever is left after writing off the
invoice's pending receivable:
- 'credit_note': a credit note is issued to the invoice's registered
  customer.
- any other method: a negative sales payment (refund) is recorded on the
  original invoice.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
import logging
import sqlite3
from typing import Optional

from ...config import HOME_STATE
from ...constants import PREFIX_REFUND, PREFIX_SALES_RETURN, REFUND_METHODS
from ...errors import InvalidStateError, NotFoundError, ValidationError
from ...modules.billing import LineItem, compute_totals, jurisdiction_for, line_totals
from ...modules.payments.payment_utilities.calculations import (
    pending_amount,
    split_return_settlement,
)
from ...utils.helpers import today_str
from ...utils.validators import strictly_positive
from ..rows import dec, row_to_dict, rows_to_dicts
from ..sequences import next_document_number
from ..transactions import immediate_tx
from .credit_notes_repo import CreditNotesRepo
from .credit_payments_repo import paid_to_date
from .inventory_repo import InventoryRepo
from .sales_returns_helpers import get_returnable_quantities

_log = logging.getLogger(__name__)

_HEADER_DECIMALS = (
    "subtotal", "discount_amount", "taxable_amount", "cgst_amount",
    "sgst_amount", "igst_amount", "total_amount", "refund_amount",
)
_LINE_DECIMALS = (
    "quantity", "rate", "discount_percent", "discount_amount", "taxable_amount",
    "gst_rate", "cgst_amount", "sgst_amount", "igst_amount", "total_amount",
)


@dataclass
class ReturnLine:
    invoice_line_id: int
    quantity: Decimal


@dataclass
class ReturnSettlement:
    return_id: int
    refund_amount: Decimal
    receivable_reduction: Decimal = Decimal("0")
    credit_note_id: Optional[int] = None
    refund_payment_id: Optional[int] = None
    restocked_batch_ids: list[int] = field(default_factory=list)


class SalesReturnsRepo:
    def __init__(self, conn: sqlite3.Connection, home_state: Optional[str] = None):
        conn.row_factory = sqlite3.Row
        self.conn = conn
        self.home_state = HOME_STATE if home_state is None else home_state
        self.inventory = InventoryRepo(conn)
        self.credit_notes = CreditNotesRepo(conn)

    # ---------------------------------------------------------------------
    # READ
    # ---------------------------------------------------------------------
    def get_return(self, return_id: int) -> dict | None:
        r = self.conn.execute(
            """
            SELECT sr.*, si.invoice_number
            FROM sales_returns sr
            JOIN sales_invoices si ON si.invoice_id = sr.invoice_id
            WHERE sr.return_id = ?
            """,
            (return_id,),
        ).fetchone()
        return row_to_dict(r, _HEADER_DECIMALS)

    def _require(self, return_id: int) -> dict:
        ret = self.get_return(return_id)
        if ret is None:
            raise NotFoundError(f"Sales return {return_id} not found.")
        return ret

    def list_lines(self, return_id: int) -> list[dict]:
        rows = self.conn.execute(
            """
            SELECT sri.*, i.name AS item_name
            FROM sales_return_items sri
            JOIN items i ON i.item_id = sri.item_id
            WHERE sri.return_id = ?
            ORDER BY sri.line_id
            """,
            (return_id,),
        ).fetchall()
        return rows_to_dicts(rows, _LINE_DECIMALS)

    def list_returns(self, invoice_id: int | None = None, status: str | None = None) -> list[dict]:
        where: list[str] = []
        params: list = []
        if invoice_id is not None:
            where.append("sr.invoice_id = ?")
            params.append(invoice_id)
        if status:
            where.append("sr.refund_status = ?")
            params.append(status)
        sql = """
            SELECT sr.*, si.invoice_number
            FROM sales_returns sr
            JOIN sales_invoices si ON si.invoice_id = sr.invoice_id
        """
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY DATE(sr.return_date) DESC, sr.return_id DESC"
        return rows_to_dicts(self.conn.execute(sql, params).fetchall(), _HEADER_DECIMALS)

    def returnable_quantities(self, invoice_id: int) -> dict[int, Decimal]:
        return get_returnable_quantities(self.conn, invoice_id)

    # ---------------------------------------------------------------------
    # WRITE
    # ---------------------------------------------------------------------
    def create_return(
        self,
        invoice_id: int,
        lines: list[ReturnLine],
        refund_method: str,
        *,
        is_restockable: bool = True,
        return_date: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        """
        Record a pending return against an invoice. Rate, discount and GST
        come from the invoice lines; only quantities are chosen here.
        """
        method = (refund_method or "").strip().lower()
        if method not in REFUND_METHODS:
            raise ValidationError(f"refund_method must be one of: {', '.join(REFUND_METHODS)}")
        if not lines:
            raise ValidationError("Select at least one item to return.")
        on = return_date or today_str()

        with immediate_tx(self.conn):
            invoice = self.conn.execute(
                "SELECT * FROM sales_invoices WHERE invoice_id = ?", (invoice_id,)
            ).fetchone()
            if invoice is None:
                raise NotFoundError(f"Sales invoice {invoice_id} not found.")
            if method == "credit_note" and invoice["customer_id"] is None:
                raise ValidationError("Credit notes can only be issued to registered customers.")

            remaining = get_returnable_quantities(self.conn, invoice_id)
            requested: dict[int, Decimal] = {}
            for ln in lines:
                qty = strictly_positive(ln.quantity, "quantity")
                requested[ln.invoice_line_id] = requested.get(ln.invoice_line_id, Decimal("0")) + qty
            for line_id, qty in requested.items():
                if line_id not in remaining:
                    raise ValidationError(f"Line {line_id} is not on invoice {invoice['invoice_number']}.")
                if qty > remaining[line_id]:
                    raise ValidationError(
                        f"Cannot return {qty} of line {line_id}; only {remaining[line_id]} returnable."
                    )

            jurisdiction = jurisdiction_for(invoice["place_of_supply"], self.home_state)
            priced: list[tuple[int, LineItem]] = []
            for ln in lines:
                src = self.conn.execute(
                    "SELECT * FROM sales_invoice_items WHERE line_id = ?", (ln.invoice_line_id,)
                ).fetchone()
                priced.append(
                    (
                        ln.invoice_line_id,
                        LineItem.of(
                            src["item_id"], ln.quantity, src["rate"],
                            src["discount_percent"], src["gst_rate"],
                        ),
                    )
                )
            totals = compute_totals([it for _, it in priced], jurisdiction, round_total=False)

            number = next_document_number(self.conn, PREFIX_SALES_RETURN, on)
            cur = self.conn.execute(
                """
                INSERT INTO sales_returns (
                    return_number, invoice_id, customer_id, customer_name, return_date,
                    subtotal, discount_amount, taxable_amount,
                    cgst_amount, sgst_amount, igst_amount, total_amount,
                    refund_method, refund_status, is_restockable, notes
                ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?, 'pending', ?, ?)
                """,
                (
                    number, invoice_id, invoice["customer_id"], invoice["customer_name"], on,
                    totals.subtotal, totals.discount_amount, totals.taxable_amount,
                    totals.cgst, totals.sgst, totals.igst, totals.total,
                    method, 1 if is_restockable else 0, notes,
                ),
            )
            return_id = int(cur.lastrowid)

            for line_id, it in priced:
                lt = line_totals(it, jurisdiction)
                self.conn.execute(
                    """
                    INSERT INTO sales_return_items (
                        return_id, invoice_line_id, item_id, quantity, rate,
                        discount_percent, discount_amount, taxable_amount, gst_rate,
                        cgst_amount, sgst_amount, igst_amount, total_amount
                    ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?)
                    """,
                    (
                        return_id, line_id, it.item_id, it.quantity, it.rate,
                        it.discount_percent, lt.discount_amount, lt.taxable_amount, it.gst_rate,
                        lt.cgst, lt.sgst, lt.igst, lt.total,
                    ),
                )

        _log.info("Created return %s for invoice %s total=%s", number, invoice["invoice_number"], totals.total)
        return return_id

    def process_return(self, return_id: int, *, refund_date: Optional[str] = None) -> ReturnSettlement:
        """
        Complete a pending return: restock, settle, update the invoice.

        On a credit/partial invoice the return total first reduces what the
        customer still owes; only the remainder is refunded, capped at what
        was actually paid. The invoice flips to 'paid' once nothing is
        pending.
        """
        on = refund_date or today_str()
        with immediate_tx(self.conn):
            ret = self._require(return_id)
            if ret["refund_status"] != "pending":
                raise InvalidStateError(
                    f"Return {ret['return_number']} is already {ret['refund_status']}."
                )
            total = ret["total_amount"]
            invoice_id = ret["invoice_id"]

            inv = self.conn.execute(
                "SELECT total_amount, returned_amount, payment_status FROM sales_invoices WHERE invoice_id = ?",
                (invoice_id,),
            ).fetchone()
            invoice_total = dec(inv["total_amount"])
            returned_before = dec(inv["returned_amount"])
            on_credit = inv["payment_status"] in ("credit", "partial")
            paid, net_paid = paid_to_date(self.conn, invoice_id)
            pending_before = pending_amount(invoice_total, paid, returned_before) if on_credit else Decimal("0")
            reduction, refundable = split_return_settlement(
                return_total=total, pending_before=pending_before, net_paid=net_paid
            )
            settlement = ReturnSettlement(
                return_id=return_id, refund_amount=refundable, receivable_reduction=reduction
            )

            self.conn.execute(
                """
                UPDATE sales_returns
                   SET refund_status = 'completed', refund_date = ?, refund_amount = ?
                 WHERE return_id = ?
                """,
                (on, refundable, return_id),
            )

            if ret["is_restockable"]:
                for ln in self.list_lines(return_id):
                    batch_id = self.inventory.restock(
                        ln["item_id"],
                        ln["quantity"],
                        purchase_rate=ln["rate"],
                        source_type="return",
                        source_id=ret["return_number"],
                        batch_number=f"RET-{ret['return_number']}",
                        notes=f"Returned from {ret['invoice_number']}",
                    )
                    self.conn.execute(
                        """
                        UPDATE sales_return_items
                           SET is_restocked = 1, restocked_batch_id = ?, restocked_at = ?
                         WHERE line_id = ?
                        """,
                        (batch_id, datetime.now().isoformat(timespec="seconds"), ln["line_id"]),
                    )
                    settlement.restocked_batch_ids.append(batch_id)

            if refundable > 0 and ret["refund_method"] == "credit_note":
                if ret["customer_id"] is None:
                    raise ValidationError("Credit notes can only be issued to registered customers.")
                settlement.credit_note_id = self.credit_notes.issue(
                    ret["customer_id"],
                    refundable,
                    issue_date=on,
                    return_id=return_id,
                    invoice_id=invoice_id,
                    notes=f"Credit note for return {ret['return_number']}",
                )
            elif refundable > 0:
                number = next_document_number(self.conn, PREFIX_REFUND, on)
                cur = self.conn.execute(
                    """
                    INSERT INTO sales_payments (
                        payment_number, invoice_id, payment_date, amount, payment_method, notes
                    ) VALUES (?,?,?,?,?,?)
                    """,
                    (
                        number, invoice_id, on, -refundable, ret["refund_method"],
                        f"Refund for return {ret['return_number']}",
                    ),
                )
                settlement.refund_payment_id = int(cur.lastrowid)

            returned_after = returned_before + total
            status = inv["payment_status"]
            if on_credit and pending_amount(invoice_total, paid, returned_after) <= 0:
                status = "paid"
            self.conn.execute(
                "UPDATE sales_invoices SET returned_amount = ?, payment_status = ? WHERE invoice_id = ?",
                (returned_after, status, invoice_id),
            )

        _log.info(
            "Processed return %s total=%s written off=%s refunded=%s via %s",
            ret["return_number"], total, reduction, refundable, ret["refund_method"],
        )
        return settlement

    def reject_return(self, return_id: int, reason: Optional[str] = None) -> None:
        with immediate_tx(self.conn):
            ret = self._require(return_id)
            if ret["refund_status"] != "pending":
                raise InvalidStateError(
                    f"Return {ret['return_number']} is already {ret['refund_status']}."
                )
            self.conn.execute(
                "UPDATE sales_returns SET refund_status = 'rejected', notes = COALESCE(?, notes) WHERE return_id = ?",
                (reason, return_id),
            )

    def delete_return(self, return_id: int) -> None:
        """Completed returns have moved stock and money; they cannot be deleted."""
        with immediate_tx(self.conn):
            ret = self._require(return_id)
            if ret["refund_status"] == "completed":
                raise InvalidStateError(f"Return {ret['return_number']} is completed and cannot be deleted.")
            self.conn.execute("DELETE FROM sales_returns WHERE return_id = ?", (return_id,))
