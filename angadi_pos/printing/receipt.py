"""
Receipt hand-off.

Sales invoices hand a payload to a printer collaborator after commit. The
payload is plain data (str/Decimal/dict/list) so a thermal driver, a PDF
exporter or a test double can consume it without touching the database.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

from jinja2 import Template

from ..modules.billing.totals import InvoiceTotals
from ..utils.helpers import amount_in_words, fmt_money

_log = logging.getLogger(__name__)

TEMPLATE_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates", "receipt.html")


class ReceiptPrinter:
    """Collaborator interface: anything with print_invoice(payload)."""

    def print_invoice(self, payload: dict) -> None:
        raise NotImplementedError


class HtmlReceiptPrinter(ReceiptPrinter):
    """Renders each payload to HTML and writes it under `out_dir`."""

    def __init__(self, out_dir: str):
        self.out_dir = out_dir

    def print_invoice(self, payload: dict) -> None:
        os.makedirs(self.out_dir, exist_ok=True)
        path = os.path.join(self.out_dir, f"{payload['invoice']['invoice_number']}.html")
        with open(path, "w", encoding="utf-8") as f:
            f.write(render_receipt_html(payload))
        _log.info("Receipt written to %s", path)


def build_receipt_payload(
    store: Optional[dict],
    invoice: dict,
    lines: list[dict],
    totals: InvoiceTotals,
) -> dict:
    """
    Assemble what a printer needs: store header, invoice header, lines,
    totals and the amount in words.
    """
    return {
        "store": dict(store) if store else {"store_name": ""},
        "invoice": {
            "invoice_id": invoice.get("invoice_id"),
            "invoice_number": invoice.get("invoice_number"),
            "invoice_date": invoice.get("invoice_date"),
            "customer_name": invoice.get("customer_name"),
            "customer_phone": invoice.get("customer_phone"),
            "customer_gstin": invoice.get("customer_gstin"),
            "place_of_supply": invoice.get("place_of_supply"),
            "payment_method": invoice.get("payment_method"),
            "payment_status": invoice.get("payment_status"),
        },
        "lines": [
            {
                "idx": idx,
                "item_name": ln.get("item_name"),
                "hsn_code": ln.get("hsn_code"),
                "quantity": ln.get("quantity"),
                "rate": ln.get("rate"),
                "discount_percent": ln.get("discount_percent"),
                "gst_rate": ln.get("gst_rate"),
                "taxable_amount": ln.get("taxable_amount"),
                "total_amount": ln.get("total_amount"),
            }
            for idx, ln in enumerate(lines, start=1)
        ],
        "totals": totals.as_dict(),
        "amount_in_words": amount_in_words(totals.total),
    }


def render_receipt_html(payload: dict, template_path: str = TEMPLATE_PATH) -> str:
    with open(template_path, "r", encoding="utf-8") as f:
        template_content = f.read()
    template = Template(template_content, autoescape=True)
    return template.render(money=fmt_money, **payload)
