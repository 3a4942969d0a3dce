from .gst import TaxJurisdiction, jurisdiction_for
from .totals import LineItem, LineTotals, InvoiceTotals, compute_totals, line_totals

__all__ = [
    "TaxJurisdiction",
    "jurisdiction_for",
    "LineItem",
    "LineTotals",
    "InvoiceTotals",
    "compute_totals",
    "line_totals",
]
