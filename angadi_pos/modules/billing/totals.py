"""
billing/totals.py

Invoice totals engine shared by sales invoices, sales orders, purchase
invoices and returns.

Per line:   subtotal = qty * rate
            discount = subtotal * discount% / 100
            taxable  = subtotal - discount
            tax      = taxable * gst% / 100
            intrastate -> cgst = sgst = tax / 2 ; interstate -> igst = tax

Only sales invoices round the grand total to whole rupees
(round-half-away-from-zero); the other documents keep the exact total with a
zero round-off.

All arithmetic is Decimal. Division by 2 and by 100 of finite decimals is
exact, so no intermediate quantization happens here; formatting belongs to
the presentation layer.

Do not import repos or open DB connections here.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from .gst import TaxJurisdiction
from ...utils.validators import non_negative

__all__ = [
    "LineItem",
    "LineTotals",
    "InvoiceTotals",
    "line_totals",
    "compute_totals",
    "round_rupees",
]

ZERO = Decimal("0")
HUNDRED = Decimal("100")
TWO = Decimal("2")


@dataclass(frozen=True)
class LineItem:
    item_id: int | None
    quantity: Decimal
    rate: Decimal
    discount_percent: Decimal = ZERO
    gst_rate: Decimal = ZERO

    @classmethod
    def of(cls, item_id, quantity, rate, discount_percent=0, gst_rate=0) -> "LineItem":
        """Build a validated line from loosely typed input (str/int/float/Decimal)."""
        return cls(
            item_id=item_id,
            quantity=non_negative(quantity, "quantity"),
            rate=non_negative(rate, "rate"),
            discount_percent=non_negative(discount_percent, "discount_percent"),
            gst_rate=non_negative(gst_rate, "gst_rate"),
        )


@dataclass(frozen=True)
class LineTotals:
    subtotal: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    tax: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal

    @property
    def total(self) -> Decimal:
        return self.taxable_amount + self.tax


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal = ZERO
    discount_amount: Decimal = ZERO
    taxable_amount: Decimal = ZERO
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    igst: Decimal = ZERO
    round_off: Decimal = ZERO
    total: Decimal = ZERO

    @property
    def tax(self) -> Decimal:
        return self.cgst + self.sgst + self.igst

    def as_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount_amount": self.discount_amount,
            "taxable_amount": self.taxable_amount,
            "cgst": self.cgst,
            "sgst": self.sgst,
            "igst": self.igst,
            "round_off": self.round_off,
            "total": self.total,
        }


def _checked(item: LineItem) -> LineItem:
    # Lines may be built directly with the dataclass constructor; re-validate.
    return LineItem.of(item.item_id, item.quantity, item.rate, item.discount_percent, item.gst_rate)


def line_totals(item: LineItem, jurisdiction: TaxJurisdiction) -> LineTotals:
    """Per-line amounts as persisted on document line rows."""
    item = _checked(item)
    subtotal = item.quantity * item.rate
    discount = subtotal * item.discount_percent / HUNDRED
    taxable = subtotal - discount
    tax = taxable * item.gst_rate / HUNDRED
    if jurisdiction == TaxJurisdiction.INTRASTATE:
        half = tax / TWO
        return LineTotals(subtotal, discount, taxable, tax, cgst=half, sgst=half, igst=ZERO)
    return LineTotals(subtotal, discount, taxable, tax, cgst=ZERO, sgst=ZERO, igst=tax)


def round_rupees(amount: Decimal) -> Decimal:
    """Round to whole rupees, halves away from zero (212.5 -> 213, -0.5 -> -1)."""
    return amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def compute_totals(
    items: Iterable[LineItem],
    jurisdiction: TaxJurisdiction,
    *,
    round_total: bool = True,
) -> InvoiceTotals:
    """
    Aggregate line amounts into document totals.

    round_total=True is the sales-invoice behavior:
        total = round(taxable + cgst + sgst + igst), round_off = total - raw.
    With round_total=False, round_off is 0 and total is the exact raw sum.

    Raises ValidationError on negative or non-finite inputs. Percentages above
    100 are not rejected.
    """
    subtotal = discount = cgst = sgst = igst = ZERO
    for item in items:
        lt = line_totals(item, jurisdiction)
        subtotal += lt.subtotal
        discount += lt.discount_amount
        cgst += lt.cgst
        sgst += lt.sgst
        igst += lt.igst

    taxable = subtotal - discount
    raw = taxable + cgst + sgst + igst
    if round_total:
        total = round_rupees(raw)
        round_off = total - raw
    else:
        total = raw
        round_off = ZERO

    return InvoiceTotals(
        subtotal=subtotal,
        discount_amount=discount,
        taxable_amount=taxable,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        round_off=round_off,
        total=total,
    )
