# angadi_pos/database/repositories/tax_reports_repo.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
import sqlite3
from typing import Iterable

from dateutil.relativedelta import relativedelta

from ...errors import ValidationError
from ..rows import rows_to_dicts

ZERO = Decimal("0")
_TAX_DECIMALS = ("taxable_amount", "cgst_amount", "sgst_amount", "igst_amount", "total_amount")


@dataclass
class TaxTotals:
    count: int = 0
    taxable: Decimal = ZERO
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    igst: Decimal = ZERO
    total: Decimal = ZERO

    @property
    def tax(self) -> Decimal:
        return self.cgst + self.sgst + self.igst


@dataclass
class OutputTaxTotals(TaxTotals):
    b2b: int = 0
    b2c: int = 0


@dataclass
class GstSummary:
    period: str
    date_from: str
    date_to: str
    output: OutputTaxTotals = field(default_factory=OutputTaxTotals)
    returns: TaxTotals = field(default_factory=TaxTotals)
    input: TaxTotals = field(default_factory=TaxTotals)

    @property
    def net_liability(self) -> Decimal:
        """Output GST less GST reversed on returns less input GST."""
        return self.output.tax - self.returns.tax - self.input.tax

    @property
    def position(self) -> str:
        return "payable" if self.net_liability >= 0 else "refundable"


def month_range(period: str) -> tuple[str, str]:
    """'2025-02' -> ('2025-02-01', '2025-02-28')."""
    try:
        start = date.fromisoformat(f"{period}-01")
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Period must be YYYY-MM, got {period!r}.") from e
    end = start + relativedelta(months=1, days=-1)
    return start.isoformat(), end.isoformat()


def _accumulate(totals: TaxTotals, rows: Iterable[dict]) -> None:
    for r in rows:
        totals.count += 1
        totals.taxable += r["taxable_amount"]
        totals.cgst += r["cgst_amount"]
        totals.sgst += r["sgst_amount"]
        totals.igst += r["igst_amount"]
        totals.total += r["total_amount"]


class TaxReportsRepo:
    """
    Read-only GST reporting over the persisted document totals.

    - Output GST: sales invoices by invoice_date (B2B = customer GSTIN present).
    - Returns: completed sales returns by return_date; their GST is reversed.
    - Input GST: purchase invoices by invoice_date.
    Callers pass ISO 'YYYY-MM-DD' dates; ranges are inclusive.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ----------------------------------------------------------------------
    # ----------------------------- REGISTERS ------------------------------
    # ----------------------------------------------------------------------

    def sales_register(self, date_from: str, date_to: str) -> list[dict]:
        """Outward supplies (GSTR-1 style), one row per invoice."""
        sql = """
        SELECT invoice_id, invoice_number, invoice_date, customer_name, customer_gstin,
               place_of_supply, taxable_amount, cgst_amount, sgst_amount, igst_amount,
               total_amount
        FROM sales_invoices
        WHERE DATE(invoice_date) BETWEEN DATE(?) AND DATE(?)
        ORDER BY DATE(invoice_date), invoice_id
        """
        return rows_to_dicts(self.conn.execute(sql, (date_from, date_to)).fetchall(), _TAX_DECIMALS)

    def returns_register(self, date_from: str, date_to: str) -> list[dict]:
        sql = """
        SELECT sr.return_id, sr.return_number, sr.return_date, si.invoice_number,
               sr.customer_name, sr.taxable_amount, sr.cgst_amount, sr.sgst_amount,
               sr.igst_amount, sr.total_amount
        FROM sales_returns sr
        JOIN sales_invoices si ON si.invoice_id = sr.invoice_id
        WHERE sr.refund_status = 'completed'
          AND DATE(sr.return_date) BETWEEN DATE(?) AND DATE(?)
        ORDER BY DATE(sr.return_date), sr.return_id
        """
        return rows_to_dicts(self.conn.execute(sql, (date_from, date_to)).fetchall(), _TAX_DECIMALS)

    def purchase_register(self, date_from: str, date_to: str) -> list[dict]:
        """Inward supplies (GSTR-2 style); taxable = subtotal - discount."""
        sql = """
        SELECT p.purchase_id, p.record_number, p.invoice_number, p.invoice_date,
               COALESCE(v.name, p.unregistered_vendor_name) AS vendor_name, v.gstin AS vendor_gstin,
               p.subtotal, p.discount_amount, p.cgst_amount, p.sgst_amount, p.igst_amount,
               p.total_amount
        FROM purchase_invoices p
        LEFT JOIN vendors v ON v.vendor_id = p.vendor_id
        WHERE DATE(p.invoice_date) BETWEEN DATE(?) AND DATE(?)
        ORDER BY DATE(p.invoice_date), p.purchase_id
        """
        rows = rows_to_dicts(
            self.conn.execute(sql, (date_from, date_to)).fetchall(),
            ("subtotal", "discount_amount", "cgst_amount", "sgst_amount", "igst_amount", "total_amount"),
        )
        for r in rows:
            r["taxable_amount"] = r["subtotal"] - r["discount_amount"]
        return rows

    # ----------------------------------------------------------------------
    # ------------------------------ SUMMARY -------------------------------
    # ----------------------------------------------------------------------

    def monthly_summary(self, period: str) -> GstSummary:
        """Output, reversed and input GST for one month ('YYYY-MM')."""
        date_from, date_to = month_range(period)
        summary = GstSummary(period=period, date_from=date_from, date_to=date_to)

        sales = self.sales_register(date_from, date_to)
        _accumulate(summary.output, sales)
        summary.output.b2b = sum(1 for s in sales if (s["customer_gstin"] or "").strip())
        summary.output.b2c = summary.output.count - summary.output.b2b

        _accumulate(summary.returns, self.returns_register(date_from, date_to))
        _accumulate(summary.input, self.purchase_register(date_from, date_to))
        return summary
