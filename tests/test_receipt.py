from decimal import Decimal

from angadi_pos.database.repositories import (
    InvoiceDraft,
    InvoiceLine,
    SalesInvoicesRepo,
    StoreSettings,
    StoreSettingsRepo,
)
from angadi_pos.modules.billing import TaxJurisdiction, LineItem, compute_totals
from angadi_pos.printing import HtmlReceiptPrinter, build_receipt_payload, render_receipt_html

D = Decimal


def _payload(customer_name="Kumar Stores"):
    totals = compute_totals([LineItem.of(1, "2", "100", "10", "18")], TaxJurisdiction.INTRASTATE)
    return build_receipt_payload(
        {"store_name": "Angadi Mart", "gstin": "33ABCDE1234F1Z5", "address": "12 Car Street", "city": "Madurai"},
        {"invoice_id": 1, "invoice_number": "INV-202510-000001", "invoice_date": "2025-10-05",
         "customer_name": customer_name, "payment_method": "cash"},
        [{"item_name": "Bath Soap", "quantity": D("2"), "rate": D("100"), "discount_percent": D("10"),
          "gst_rate": D("18"), "taxable_amount": D("180"), "total_amount": D("212.4")}],
        totals,
    )


def test_payload_shape():
    p = _payload()
    assert p["store"]["store_name"] == "Angadi Mart"
    assert p["invoice"]["invoice_number"] == "INV-202510-000001"
    assert p["lines"][0]["idx"] == 1
    assert p["totals"]["round_off"] == D("-0.4")
    assert p["amount_in_words"] == "Two Hundred Twelve Rupees Only"


def test_render_html_intrastate():
    html = render_receipt_html(_payload())
    assert "INV-202510-000001" in html
    assert "Angadi Mart" in html
    assert "CGST" in html and "SGST" in html
    assert "IGST" not in html
    assert "212.00" in html
    assert "-0.40" in html
    assert "Two Hundred Twelve Rupees Only" in html


def test_render_escapes_user_text():
    html = render_receipt_html(_payload(customer_name="<b>Ravi & Sons</b>"))
    assert "<b>Ravi" not in html
    assert "&lt;b&gt;Ravi &amp; Sons&lt;/b&gt;" in html


def test_html_printer_writes_file_from_saved_invoice(conn, ids, stock, tmp_path):
    StoreSettingsRepo(conn).save(StoreSettings(store_name="Angadi Mart", state="Tamil Nadu"))
    assert StoreSettingsRepo(conn).get().state_code == "33"
    stock(ids["soap"], "5")

    invoice_id = SalesInvoicesRepo(conn, home_state="Tamil Nadu").create_invoice(
        InvoiceDraft(
            customer_name="Walk-in",
            invoice_date="2025-10-05",
            lines=[InvoiceLine(ids["soap"], D("1"), D("100"))],
        ),
        printer=HtmlReceiptPrinter(str(tmp_path)),
    )

    out = tmp_path / "INV-202510-000001.html"
    assert invoice_id
    assert out.exists()
    text = out.read_text(encoding="utf-8")
    assert "Bath Soap" in text
    assert "One Hundred Eighteen Rupees Only" in text
