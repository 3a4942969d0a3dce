from __future__ import annotations
from dataclasses import asdict, dataclass, field
from decimal import Decimal
import logging
import sqlite3
from typing import Optional

from ...config import HOME_STATE
from ...constants import PAYMENT_METHODS, PREFIX_SALES_INVOICE, PREFIX_SALES_PAYMENT
from ...errors import NotFoundError, ValidationError
from ...modules.billing import LineItem, InvoiceTotals, compute_totals, jurisdiction_for, line_totals
from ...modules.payments.payment_utilities.status import ensure_valid
from ...printing.receipt import build_receipt_payload
from ...utils.helpers import today_str
from ...utils.validators import strictly_positive
from ..rows import row_to_dict, rows_to_dicts
from ..sequences import next_document_number
from ..transactions import immediate_tx
from .credit_notes_repo import CreditNotesRepo
from .inventory_repo import InventoryRepo
from .store_settings_repo import StoreSettingsRepo

_log = logging.getLogger(__name__)

HEADER_DECIMALS = (
    "subtotal", "discount_amount", "taxable_amount", "cgst_amount", "sgst_amount",
    "igst_amount", "round_off", "total_amount", "returned_amount",
)
LINE_DECIMALS = (
    "quantity", "rate", "discount_percent", "discount_amount", "taxable_amount",
    "gst_rate", "cgst_amount", "sgst_amount", "igst_amount", "total_amount",
)


def resolve_customer_state(
    conn: sqlite3.Connection,
    customer_id: Optional[int],
    customer_state: Optional[str],
    home_state: Optional[str],
) -> Optional[str]:
    """Explicit state, else the registered customer's state, else the home state."""
    if customer_state is not None:
        return customer_state
    if customer_id is not None:
        r = conn.execute(
            "SELECT state FROM customers WHERE customer_id = ?", (customer_id,)
        ).fetchone()
        if r is None:
            raise NotFoundError(f"Customer {customer_id} not found.")
        if r["state"]:
            return r["state"]
    return home_state


@dataclass
class InvoiceLine:
    item_id: int
    quantity: Decimal
    rate: Decimal
    discount_percent: Decimal = Decimal("0")
    gst_rate: Optional[Decimal] = None      # None -> item's catalog GST rate


@dataclass
class InvoiceDraft:
    customer_name: str
    lines: list[InvoiceLine] = field(default_factory=list)
    payment_method: str = "cash"
    customer_id: Optional[int] = None
    customer_phone: Optional[str] = None
    customer_gstin: Optional[str] = None
    customer_state: Optional[str] = None    # None -> registered customer's state, else home state
    invoice_date: Optional[str] = None
    credit_note_id: Optional[int] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    source_order_id: Optional[int] = None


class SalesInvoicesRepo:
    """
    Sales invoices.

    Key behavior:
      - Totals come from the billing engine with whole-rupee rounding.
      - Header, lines, payment/credit-note usage and stock deduction are one
        transaction; a stock shortfall aborts the whole save.
      - payment_status: 'paid' for immediate methods and credit notes,
        'credit' for credit sales (settled later through the credits ledger).
    """

    def __init__(self, conn: sqlite3.Connection, home_state: Optional[str] = None):
        conn.row_factory = sqlite3.Row
        self.conn = conn
        self.home_state = HOME_STATE if home_state is None else home_state
        self.inventory = InventoryRepo(conn)
        self.credit_notes = CreditNotesRepo(conn)

    # ---------------------------------------------------------------------
    # READ
    # ---------------------------------------------------------------------
    def get_invoice(self, invoice_id: int) -> dict | None:
        r = self.conn.execute(
            "SELECT * FROM sales_invoices WHERE invoice_id = ?", (invoice_id,)
        ).fetchone()
        return row_to_dict(r, HEADER_DECIMALS)

    def require_invoice(self, invoice_id: int) -> dict:
        inv = self.get_invoice(invoice_id)
        if inv is None:
            raise NotFoundError(f"Sales invoice {invoice_id} not found.")
        return inv

    def list_lines(self, invoice_id: int) -> list[dict]:
        sql = """
        SELECT sii.*, i.name AS item_name, i.hsn_code, i.unit
        FROM sales_invoice_items sii
        JOIN items i ON i.item_id = sii.item_id
        WHERE sii.invoice_id = ?
        ORDER BY sii.line_id
        """
        return rows_to_dicts(self.conn.execute(sql, (invoice_id,)).fetchall(), LINE_DECIMALS)

    def list_payments(self, invoice_id: int) -> list[dict]:
        rows = self.conn.execute(
            "SELECT * FROM sales_payments WHERE invoice_id = ? ORDER BY payment_id",
            (invoice_id,),
        ).fetchall()
        return rows_to_dicts(rows, ("amount",))

    def search_invoices(
        self,
        query: str = "",
        date_from: str | None = None,
        date_to: str | None = None,
        payment_status: str | None = None,
    ) -> list[dict]:
        """
        Filter by number/customer (LIKE), inclusive date range and status.
        Newest first.
        """
        where: list[str] = []
        params: list = []

        if query:
            where.append("(invoice_number LIKE ? OR customer_name LIKE ? OR customer_phone LIKE ?)")
            params += [f"%{query}%"] * 3
        if date_from:
            where.append("DATE(invoice_date) >= DATE(?)")
            params.append(date_from)
        if date_to:
            where.append("DATE(invoice_date) <= DATE(?)")
            params.append(date_to)
        if payment_status:
            where.append("payment_status = ?")
            params.append(ensure_valid("invoice", payment_status))

        sql = "SELECT * FROM sales_invoices"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY DATE(invoice_date) DESC, invoice_id DESC"
        return rows_to_dicts(self.conn.execute(sql, params).fetchall(), HEADER_DECIMALS)

    def invoice_totals(self, invoice_id: int) -> InvoiceTotals:
        """Stored header amounts as an InvoiceTotals."""
        inv = self.require_invoice(invoice_id)
        return InvoiceTotals(
            subtotal=inv["subtotal"],
            discount_amount=inv["discount_amount"],
            taxable_amount=inv["taxable_amount"],
            cgst=inv["cgst_amount"],
            sgst=inv["sgst_amount"],
            igst=inv["igst_amount"],
            round_off=inv["round_off"],
            total=inv["total_amount"],
        )

    def receipt_payload(self, invoice_id: int) -> dict:
        store = StoreSettingsRepo(self.conn).get()
        return build_receipt_payload(
            asdict(store) if store else None,
            self.require_invoice(invoice_id),
            self.list_lines(invoice_id),
            self.invoice_totals(invoice_id),
        )

    # ---------------------------------------------------------------------
    # WRITE
    # ---------------------------------------------------------------------
    def _resolve_lines(self, lines: list[InvoiceLine]) -> list[LineItem]:
        out: list[LineItem] = []
        for ln in lines:
            item = self.conn.execute(
                "SELECT item_id, gst_rate, is_active FROM items WHERE item_id = ?", (ln.item_id,)
            ).fetchone()
            if item is None:
                raise NotFoundError(f"Item {ln.item_id} not found.")
            gst = ln.gst_rate if ln.gst_rate is not None else item["gst_rate"]
            strictly_positive(ln.quantity, "quantity")
            out.append(LineItem.of(ln.item_id, ln.quantity, ln.rate, ln.discount_percent, gst))
        return out

    def _insert_payment(
        self,
        invoice_id: int,
        amount: Decimal,
        method: str,
        on: str,
        *,
        prefix: str = PREFIX_SALES_PAYMENT,
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        number = next_document_number(self.conn, prefix, on)
        cur = self.conn.execute(
            """
            INSERT INTO sales_payments (
                payment_number, invoice_id, payment_date, amount, payment_method,
                reference_number, notes
            ) VALUES (?,?,?,?,?,?,?)
            """,
            (number, invoice_id, on, amount, method, reference_number, notes),
        )
        return int(cur.lastrowid)

    def create_invoice(self, draft: InvoiceDraft, *, printer=None) -> int:
        """
        Validate, price, persist and deduct stock for a sales invoice.
        Returns the new invoice_id.

        `printer`, if given, receives the receipt payload after commit.
        A printer failure is logged; the invoice stays saved.
        """
        customer_name = (draft.customer_name or "").strip()
        if not customer_name:
            raise ValidationError("Customer name is required.")
        if not draft.lines:
            raise ValidationError("An invoice needs at least one line.")
        method = (draft.payment_method or "").strip().lower()
        if method not in PAYMENT_METHODS:
            raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
        if method == "credit" and draft.customer_id is None:
            raise ValidationError("Credit sales require a registered customer.")
        if method == "credit_note":
            if draft.credit_note_id is None:
                raise ValidationError("A credit note must be selected.")
            if draft.customer_id is None:
                raise ValidationError("Credit note redemption requires a registered customer.")

        on = draft.invoice_date or today_str()

        with immediate_tx(self.conn):
            items = self._resolve_lines(draft.lines)
            state = resolve_customer_state(
                self.conn, draft.customer_id, draft.customer_state, self.home_state
            )
            jurisdiction = jurisdiction_for(state, self.home_state)
            totals = compute_totals(items, jurisdiction)

            if draft.customer_id is not None and self.conn.execute(
                "SELECT 1 FROM customers WHERE customer_id = ?", (draft.customer_id,)
            ).fetchone() is None:
                raise NotFoundError(f"Customer {draft.customer_id} not found.")

            note = None
            if method == "credit_note":
                note = self.credit_notes.get(draft.credit_note_id)  # type: ignore[arg-type]
                if note is None:
                    raise NotFoundError(f"Credit note {draft.credit_note_id} not found.")
                if note["customer_id"] != draft.customer_id:
                    raise ValidationError("Credit note belongs to a different customer.")
                if note["balance_amount"] < totals.total:
                    raise ValidationError(
                        f"Credit note balance {note['balance_amount']} does not cover "
                        f"invoice total {totals.total}."
                    )

            number = next_document_number(self.conn, PREFIX_SALES_INVOICE, on)
            status = "credit" if method == "credit" else "paid"
            cur = self.conn.execute(
                """
                INSERT INTO sales_invoices (
                    invoice_number, customer_id, customer_name, customer_phone,
                    customer_gstin, place_of_supply, invoice_date,
                    subtotal, discount_amount, taxable_amount,
                    cgst_amount, sgst_amount, igst_amount, round_off, total_amount,
                    payment_method, payment_status, source_order_id, notes
                ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
                """,
                (
                    number, draft.customer_id, customer_name, draft.customer_phone,
                    draft.customer_gstin, state, on,
                    totals.subtotal, totals.discount_amount, totals.taxable_amount,
                    totals.cgst, totals.sgst, totals.igst, totals.round_off, totals.total,
                    method, status, draft.source_order_id, draft.notes,
                ),
            )
            invoice_id = int(cur.lastrowid)

            for it in items:
                lt = line_totals(it, jurisdiction)
                self.conn.execute(
                    """
                    INSERT INTO sales_invoice_items (
                        invoice_id, item_id, quantity, rate, discount_percent,
                        discount_amount, taxable_amount, gst_rate,
                        cgst_amount, sgst_amount, igst_amount, total_amount
                    ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?)
                    """,
                    (
                        invoice_id, it.item_id, it.quantity, it.rate, it.discount_percent,
                        lt.discount_amount, lt.taxable_amount, it.gst_rate,
                        lt.cgst, lt.sgst, lt.igst, lt.total,
                    ),
                )

            if method == "credit_note" and totals.total > 0:
                self.credit_notes.apply_to_invoice(
                    draft.credit_note_id, invoice_id, totals.total, on,  # type: ignore[arg-type]
                    notes=f"Redeemed on {number}",
                )
                self._insert_payment(
                    invoice_id, totals.total, "credit_note", on,
                    reference_number=note["credit_note_number"] if note else None,
                )
            elif method not in ("credit", "credit_note"):
                self._insert_payment(
                    invoice_id, totals.total, method, on,
                    reference_number=draft.reference_number,
                )

            # One deduction per item, quantities summed across lines.
            per_item: dict[int, Decimal] = {}
            for it in items:
                per_item[it.item_id] = per_item.get(it.item_id, Decimal("0")) + it.quantity  # type: ignore[index]
            for item_id, qty in per_item.items():
                self.inventory.deduct(item_id, qty)

        _log.info("Created sales invoice %s total=%s status=%s", number, totals.total, status)

        if printer is not None:
            self.print_invoice(invoice_id, printer)
        return invoice_id

    def print_invoice(self, invoice_id: int, printer) -> bool:
        """Hand the receipt to `printer`. Returns False (and logs) on failure."""
        try:
            printer.print_invoice(self.receipt_payload(invoice_id))
            return True
        except Exception:
            _log.exception("Printing invoice %s failed", invoice_id)
            return False
