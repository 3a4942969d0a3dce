from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
import logging
import sqlite3
from typing import Optional

from ...config import HOME_STATE
from ...constants import PREFIX_PURCHASE_INVOICE
from ...errors import NotFoundError, ValidationError
from ...modules.billing import LineItem, compute_totals, jurisdiction_for, line_totals
from ...modules.payments.payment_utilities.status import ensure_valid
from ...utils.helpers import today_str
from ...utils.validators import strictly_positive
from ..rows import row_to_dict, rows_to_dicts
from ..sequences import next_document_number
from ..transactions import immediate_tx
from .inventory_repo import InventoryRepo

_log = logging.getLogger(__name__)

_HEADER_DECIMALS = (
    "subtotal", "discount_amount", "cgst_amount", "sgst_amount", "igst_amount", "total_amount",
)
_LINE_DECIMALS = (
    "quantity", "rate", "discount_percent", "discount_amount", "taxable_amount",
    "gst_rate", "cgst_amount", "sgst_amount", "igst_amount", "total_amount",
)


@dataclass
class PurchaseLine:
    item_id: int
    quantity: Decimal
    rate: Decimal
    gst_rate: Optional[Decimal] = None
    discount_percent: Decimal = Decimal("0")
    batch_number: Optional[str] = None
    expiry_date: Optional[str] = None


@dataclass
class PurchaseDraft:
    lines: list[PurchaseLine] = field(default_factory=list)
    vendor_id: Optional[int] = None
    unregistered_vendor_name: Optional[str] = None
    unregistered_vendor_phone: Optional[str] = None
    vendor_state: Optional[str] = None
    invoice_number: Optional[str] = None
    invoice_date: Optional[str] = None
    received_date: Optional[str] = None
    payment_status: str = "pending"
    notes: Optional[str] = None


class PurchasesRepo:
    """
    Purchase invoices. Every line is received as its own 'normal' batch;
    totals are exact (no whole-rupee rounding).
    """

    def __init__(self, conn: sqlite3.Connection, home_state: Optional[str] = None):
        conn.row_factory = sqlite3.Row
        self.conn = conn
        self.home_state = HOME_STATE if home_state is None else home_state
        self.inventory = InventoryRepo(conn)

    # ---------------------------------------------------------------------
    # READ
    # ---------------------------------------------------------------------
    def get_purchase(self, purchase_id: int) -> dict | None:
        r = self.conn.execute(
            """
            SELECT p.*, COALESCE(v.name, p.unregistered_vendor_name) AS vendor_name
            FROM purchase_invoices p
            LEFT JOIN vendors v ON v.vendor_id = p.vendor_id
            WHERE p.purchase_id = ?
            """,
            (purchase_id,),
        ).fetchone()
        return row_to_dict(r, _HEADER_DECIMALS)

    def list_lines(self, purchase_id: int) -> list[dict]:
        rows = self.conn.execute(
            """
            SELECT pii.*, i.name AS item_name
            FROM purchase_invoice_items pii
            JOIN items i ON i.item_id = pii.item_id
            WHERE pii.purchase_id = ?
            ORDER BY pii.line_id
            """,
            (purchase_id,),
        ).fetchall()
        return rows_to_dicts(rows, _LINE_DECIMALS)

    def list_purchases(
        self,
        date_from: str | None = None,
        date_to: str | None = None,
        vendor_id: int | None = None,
    ) -> list[dict]:
        where: list[str] = []
        params: list = []
        if date_from:
            where.append("DATE(p.invoice_date) >= DATE(?)")
            params.append(date_from)
        if date_to:
            where.append("DATE(p.invoice_date) <= DATE(?)")
            params.append(date_to)
        if vendor_id is not None:
            where.append("p.vendor_id = ?")
            params.append(vendor_id)
        sql = """
            SELECT p.*, COALESCE(v.name, p.unregistered_vendor_name) AS vendor_name
            FROM purchase_invoices p
            LEFT JOIN vendors v ON v.vendor_id = p.vendor_id
        """
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY DATE(p.invoice_date) DESC, p.purchase_id DESC"
        return rows_to_dicts(self.conn.execute(sql, params).fetchall(), _HEADER_DECIMALS)

    # ---------------------------------------------------------------------
    # WRITE
    # ---------------------------------------------------------------------
    def _vendor_state(self, draft: PurchaseDraft) -> Optional[str]:
        if draft.vendor_state is not None:
            return draft.vendor_state
        if draft.vendor_id is not None:
            r = self.conn.execute(
                "SELECT state FROM vendors WHERE vendor_id = ?", (draft.vendor_id,)
            ).fetchone()
            if r is None:
                raise NotFoundError(f"Vendor {draft.vendor_id} not found.")
            if r["state"]:
                return r["state"]
        return self.home_state

    def create_purchase(self, draft: PurchaseDraft) -> int:
        """
        Record a purchase invoice and receive its stock. Returns purchase_id.
        """
        unregistered = draft.vendor_id is None
        if unregistered and not (draft.unregistered_vendor_name or "").strip():
            raise ValidationError("Select a vendor or enter the unregistered vendor's name.")
        if not draft.lines:
            raise ValidationError("A purchase needs at least one line.")
        status = ensure_valid("purchase", draft.payment_status)
        invoice_date = draft.invoice_date or today_str()
        received_date = draft.received_date or invoice_date
        unregistered_name = draft.unregistered_vendor_name.strip() if unregistered else None  # type: ignore[union-attr]

        with immediate_tx(self.conn):
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

            state = self._vendor_state(draft)
            jurisdiction = jurisdiction_for(state, self.home_state)
            totals = compute_totals(items, jurisdiction, round_total=False)

            record_number = next_document_number(self.conn, PREFIX_PURCHASE_INVOICE, received_date)
            cur = self.conn.execute(
                """
                INSERT INTO purchase_invoices (
                    record_number, invoice_number, vendor_id, is_unregistered_vendor,
                    unregistered_vendor_name, unregistered_vendor_phone, vendor_state,
                    invoice_date, received_date, subtotal, discount_amount,
                    cgst_amount, sgst_amount, igst_amount, total_amount,
                    payment_status, notes
                ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
                """,
                (
                    record_number, draft.invoice_number, draft.vendor_id, 1 if unregistered else 0,
                    unregistered_name,
                    draft.unregistered_vendor_phone if unregistered else None,
                    state, invoice_date, received_date,
                    totals.subtotal, totals.discount_amount,
                    totals.cgst, totals.sgst, totals.igst, totals.total,
                    status, draft.notes,
                ),
            )
            purchase_id = int(cur.lastrowid)

            for idx, (ln, it) in enumerate(zip(draft.lines, items), start=1):
                batch_number = ln.batch_number or f"{record_number}-{idx}"
                batch_id = self.inventory.receive(
                    it.item_id,  # type: ignore[arg-type]
                    it.quantity,
                    purchase_rate=it.rate,
                    batch_number=batch_number,
                    expiry_date=ln.expiry_date,
                    source_type="purchase",
                    source_id=record_number,
                )
                lt = line_totals(it, jurisdiction)
                self.conn.execute(
                    """
                    INSERT INTO purchase_invoice_items (
                        purchase_id, item_id, batch_id, batch_number, expiry_date,
                        quantity, rate, discount_percent, discount_amount, taxable_amount,
                        gst_rate, cgst_amount, sgst_amount, igst_amount, total_amount
                    ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
                    """,
                    (
                        purchase_id, it.item_id, batch_id, batch_number, ln.expiry_date,
                        it.quantity, it.rate, it.discount_percent, lt.discount_amount,
                        lt.taxable_amount, it.gst_rate, lt.cgst, lt.sgst, lt.igst, lt.total,
                    ),
                )

        _log.info("Recorded purchase %s total=%s", record_number, totals.total)
        return purchase_id
