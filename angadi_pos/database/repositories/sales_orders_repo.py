from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
import logging
import sqlite3
from typing import Optional

from ...config import HOME_STATE
from ...constants import PREFIX_SALES_ORDER
from ...errors import InvalidStateError, NotFoundError, ValidationError
from ...modules.billing import LineItem, compute_totals, jurisdiction_for, line_totals
from ...modules.payments.payment_utilities.status import ensure_valid
from ...utils.helpers import today_str
from ...utils.validators import strictly_positive
from ..rows import row_to_dict, rows_to_dicts
from ..sequences import next_document_number
from ..transactions import immediate_tx
from .sales_repo import InvoiceDraft, InvoiceLine, SalesInvoicesRepo, resolve_customer_state

_log = logging.getLogger(__name__)

_HEADER_DECIMALS = (
    "subtotal", "discount_amount", "taxable_amount", "cgst_amount",
    "sgst_amount", "igst_amount", "total_amount",
)
_LINE_DECIMALS = ("quantity", "rate", "discount_percent", "gst_rate", "taxable_amount", "total_amount")


@dataclass
class OrderLine:
    item_id: int
    quantity: Decimal
    rate: Decimal
    discount_percent: Decimal = Decimal("0")
    gst_rate: Optional[Decimal] = None


@dataclass
class OrderDraft:
    customer_name: str
    lines: list[OrderLine] = field(default_factory=list)
    customer_id: Optional[int] = None
    customer_phone: Optional[str] = None
    customer_gstin: Optional[str] = None
    customer_state: Optional[str] = None
    order_date: Optional[str] = None
    delivery_date: Optional[str] = None
    notes: Optional[str] = None


class SalesOrdersRepo:
    """
    Sales orders: priced like invoices but never rounded and never touching
    stock. Conversion produces a real sales invoice (rounded, stock deducted)
    and locks the order as 'converted'.
    """

    def __init__(self, conn: sqlite3.Connection, home_state: Optional[str] = None):
        conn.row_factory = sqlite3.Row
        self.conn = conn
        self.home_state = HOME_STATE if home_state is None else home_state
        self.invoices = SalesInvoicesRepo(conn, home_state=self.home_state)

    # ---------------------------------------------------------------------
    # READ
    # ---------------------------------------------------------------------
    def get_order(self, order_id: int) -> dict | None:
        r = self.conn.execute("SELECT * FROM sales_orders WHERE order_id = ?", (order_id,)).fetchone()
        return row_to_dict(r, _HEADER_DECIMALS)

    def _require(self, order_id: int) -> dict:
        order = self.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Sales order {order_id} not found.")
        return order

    def list_lines(self, order_id: int) -> list[dict]:
        rows = self.conn.execute(
            """
            SELECT soi.*, i.name AS item_name
            FROM sales_order_items soi
            JOIN items i ON i.item_id = soi.item_id
            WHERE soi.order_id = ?
            ORDER BY soi.line_id
            """,
            (order_id,),
        ).fetchall()
        return rows_to_dicts(rows, _LINE_DECIMALS)

    def list_orders(self, status: str | None = None) -> list[dict]:
        sql = "SELECT * FROM sales_orders"
        params: list = []
        if status:
            sql += " WHERE status = ?"
            params.append(ensure_valid("order", status))
        sql += " ORDER BY DATE(order_date) DESC, order_id DESC"
        return rows_to_dicts(self.conn.execute(sql, params).fetchall(), _HEADER_DECIMALS)

    # ---------------------------------------------------------------------
    # INTERNAL WRITES
    # ---------------------------------------------------------------------
    def _price(self, draft: OrderDraft):
        if not (draft.customer_name or "").strip():
            raise ValidationError("Customer name is required.")
        if not draft.lines:
            raise ValidationError("An order needs at least one line.")
        items: list[LineItem] = []
        for ln in draft.lines:
            row = self.conn.execute(
                "SELECT gst_rate FROM items WHERE item_id = ?", (ln.item_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError(f"Item {ln.item_id} not found.")
            strictly_positive(ln.quantity, "quantity")
            gst = ln.gst_rate if ln.gst_rate is not None else row["gst_rate"]
            items.append(LineItem.of(ln.item_id, ln.quantity, ln.rate, ln.discount_percent, gst))
        state = resolve_customer_state(
            self.conn, draft.customer_id, draft.customer_state, self.home_state
        )
        jurisdiction = jurisdiction_for(state, self.home_state)
        return items, jurisdiction, state, compute_totals(items, jurisdiction, round_total=False)

    def _insert_lines(self, order_id: int, items: list[LineItem], jurisdiction) -> None:
        for it in items:
            lt = line_totals(it, jurisdiction)
            self.conn.execute(
                """
                INSERT INTO sales_order_items (
                    order_id, item_id, quantity, rate, discount_percent, gst_rate,
                    taxable_amount, total_amount
                ) VALUES (?,?,?,?,?,?,?,?)
                """,
                (
                    order_id, it.item_id, it.quantity, it.rate, it.discount_percent,
                    it.gst_rate, lt.taxable_amount, lt.total,
                ),
            )

    @staticmethod
    def _ensure_editable(order: dict) -> None:
        if order["status"] == "converted":
            raise InvalidStateError(
                f"Sales order {order['order_number']} is converted and cannot be changed."
            )

    # ---------------------------------------------------------------------
    # WRITE
    # ---------------------------------------------------------------------
    def create_order(self, draft: OrderDraft) -> int:
        on = draft.order_date or today_str()
        with immediate_tx(self.conn):
            items, jurisdiction, state, totals = self._price(draft)
            number = next_document_number(self.conn, PREFIX_SALES_ORDER, on)
            cur = self.conn.execute(
                """
                INSERT INTO sales_orders (
                    order_number, customer_id, customer_name, customer_phone,
                    customer_gstin, customer_state, order_date, delivery_date,
                    subtotal, discount_amount, taxable_amount,
                    cgst_amount, sgst_amount, igst_amount, total_amount,
                    status, notes
                ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?, 'pending', ?)
                """,
                (
                    number, draft.customer_id, draft.customer_name.strip(), draft.customer_phone,
                    draft.customer_gstin, state, on, draft.delivery_date,
                    totals.subtotal, totals.discount_amount, totals.taxable_amount,
                    totals.cgst, totals.sgst, totals.igst, totals.total,
                    draft.notes,
                ),
            )
            order_id = int(cur.lastrowid)
            self._insert_lines(order_id, items, jurisdiction)
        _log.info("Created sales order %s total=%s", number, totals.total)
        return order_id

    def update_order(self, order_id: int, draft: OrderDraft) -> None:
        """Replace header fields and lines. Not allowed once converted."""
        with immediate_tx(self.conn):
            order = self._require(order_id)
            self._ensure_editable(order)
            items, jurisdiction, state, totals = self._price(draft)
            self.conn.execute(
                """
                UPDATE sales_orders SET
                    customer_id=?, customer_name=?, customer_phone=?, customer_gstin=?,
                    customer_state=?, order_date=?, delivery_date=?,
                    subtotal=?, discount_amount=?, taxable_amount=?,
                    cgst_amount=?, sgst_amount=?, igst_amount=?, total_amount=?, notes=?
                WHERE order_id=?
                """,
                (
                    draft.customer_id, draft.customer_name.strip(), draft.customer_phone,
                    draft.customer_gstin, state, draft.order_date or order["order_date"],
                    draft.delivery_date,
                    totals.subtotal, totals.discount_amount, totals.taxable_amount,
                    totals.cgst, totals.sgst, totals.igst, totals.total, draft.notes,
                    order_id,
                ),
            )
            self.conn.execute("DELETE FROM sales_order_items WHERE order_id = ?", (order_id,))
            self._insert_lines(order_id, items, jurisdiction)

    def delete_order(self, order_id: int) -> None:
        with immediate_tx(self.conn):
            order = self._require(order_id)
            self._ensure_editable(order)
            self.conn.execute("DELETE FROM sales_orders WHERE order_id = ?", (order_id,))

    def set_status(self, order_id: int, status: str) -> None:
        """Move between 'pending' and 'confirmed'. Conversion has its own call."""
        s = ensure_valid("order", status)
        if s == "converted":
            raise ValidationError("Use convert_to_invoice() to convert an order.")
        with immediate_tx(self.conn):
            order = self._require(order_id)
            self._ensure_editable(order)
            self.conn.execute("UPDATE sales_orders SET status = ? WHERE order_id = ?", (s, order_id))

    def convert_to_invoice(
        self,
        order_id: int,
        payment_method: str = "cash",
        *,
        invoice_date: Optional[str] = None,
        credit_note_id: Optional[int] = None,
        reference_number: Optional[str] = None,
        printer=None,
    ) -> int:
        """
        Create a sales invoice from the order lines and mark the order
        'converted'. Returns the invoice id. Both happen or neither does.
        """
        with immediate_tx(self.conn):
            order = self._require(order_id)
            self._ensure_editable(order)
            lines = [
                InvoiceLine(
                    item_id=ln["item_id"],
                    quantity=ln["quantity"],
                    rate=ln["rate"],
                    discount_percent=ln["discount_percent"],
                    gst_rate=ln["gst_rate"],
                )
                for ln in self.list_lines(order_id)
            ]
            invoice_id = self.invoices.create_invoice(
                InvoiceDraft(
                    customer_name=order["customer_name"],
                    lines=lines,
                    payment_method=payment_method,
                    customer_id=order["customer_id"],
                    customer_phone=order["customer_phone"],
                    customer_gstin=order["customer_gstin"],
                    customer_state=order["customer_state"],
                    invoice_date=invoice_date,
                    credit_note_id=credit_note_id,
                    reference_number=reference_number,
                    notes=f"From order {order['order_number']}",
                    source_order_id=order_id,
                )
            )
            self.conn.execute(
                "UPDATE sales_orders SET status = 'converted', converted_invoice_id = ? WHERE order_id = ?",
                (invoice_id, order_id),
            )
        _log.info("Converted sales order %s to invoice %s", order["order_number"], invoice_id)
        if printer is not None:
            self.invoices.print_invoice(invoice_id, printer)
        return invoice_id
