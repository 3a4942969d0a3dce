from decimal import Decimal

import pytest

from angadi_pos.database.repositories import (
    InvoiceDraft,
    InvoiceLine,
    PurchaseDraft,
    PurchaseLine,
    PurchasesRepo,
    ReturnLine,
    SalesInvoicesRepo,
    SalesReturnsRepo,
    TaxReportsRepo,
)
from angadi_pos.database.repositories.tax_reports_repo import month_range
from angadi_pos.errors import ValidationError

D = Decimal
HOME = "Tamil Nadu"


@pytest.fixture()
def october(conn, ids, stock):
    """
    October 2025:
      sales     walk-in 2 soap (10% off, intrastate), Rao 1 soap (B2B, IGST)
      return    1 walk-in soap, completed; 1 Rao soap, still pending
      purchases 10 rice from Chennai (CGST+SGST), 5 soap from Bengaluru (IGST)
    plus one walk-in sale on 1 November.
    """
    stock(ids["soap"], "10")
    sales = SalesInvoicesRepo(conn, home_state=HOME)
    walk_in = sales.create_invoice(
        InvoiceDraft(customer_name="Walk-in", invoice_date="2025-10-05",
                     lines=[InvoiceLine(ids["soap"], D("2"), D("100"), D("10"))])
    )
    b2b = sales.create_invoice(
        InvoiceDraft(customer_name="Rao Traders", customer_id=ids["rao"],
                     customer_gstin="29ABCDE1234F1Z5", invoice_date="2025-10-06",
                     lines=[InvoiceLine(ids["soap"], D("1"), D("100"))])
    )
    sales.create_invoice(
        InvoiceDraft(customer_name="Walk-in", invoice_date="2025-11-01",
                     lines=[InvoiceLine(ids["soap"], D("1"), D("100"))])
    )

    returns = SalesReturnsRepo(conn, home_state=HOME)
    (walk_in_line,) = sales.list_lines(walk_in)
    done = returns.create_return(walk_in, [ReturnLine(walk_in_line["line_id"], D("1"))], "cash",
                                 return_date="2025-10-07")
    returns.process_return(done, refund_date="2025-10-07")
    (b2b_line,) = sales.list_lines(b2b)
    returns.create_return(b2b, [ReturnLine(b2b_line["line_id"], D("1"))], "cash", return_date="2025-10-08")

    purchases = PurchasesRepo(conn, home_state=HOME)
    purchases.create_purchase(
        PurchaseDraft(vendor_id=ids["chennai_vendor"], invoice_date="2025-10-02",
                      lines=[PurchaseLine(ids["rice"], D("10"), D("300"))])
    )
    purchases.create_purchase(
        PurchaseDraft(vendor_id=ids["blr_vendor"], invoice_date="2025-10-03",
                      lines=[PurchaseLine(ids["soap"], D("5"), D("60"))])
    )
    return {"walk_in": walk_in, "b2b": b2b}


def test_monthly_summary(conn, october):
    s = TaxReportsRepo(conn).monthly_summary("2025-10")
    assert (s.date_from, s.date_to) == ("2025-10-01", "2025-10-31")

    assert s.output.count == 2
    assert (s.output.b2b, s.output.b2c) == (1, 1)
    assert s.output.taxable == D("280")
    assert s.output.cgst == D("16.2")
    assert s.output.sgst == D("16.2")
    assert s.output.igst == D("18")
    assert s.output.tax == D("50.4")
    assert s.output.total == D("330")

    assert s.returns.count == 1            # the pending return is not counted
    assert s.returns.taxable == D("90")
    assert s.returns.tax == D("16.2")

    assert s.input.count == 2
    assert s.input.taxable == D("3300")
    assert s.input.cgst == D("75")
    assert s.input.igst == D("54")
    assert s.input.tax == D("204")
    assert s.input.total == D("3504")

    assert s.net_liability == D("-169.8")
    assert s.position == "refundable"


def test_next_month_is_payable(conn, october):
    s = TaxReportsRepo(conn).monthly_summary("2025-11")
    assert s.output.count == 1
    assert s.input.count == 0
    assert s.net_liability == D("18")
    assert s.position == "payable"


def test_registers(conn, ids, october):
    repo = TaxReportsRepo(conn)
    sales = repo.sales_register("2025-10-01", "2025-10-31")
    assert [r["invoice_id"] for r in sales] == [october["walk_in"], october["b2b"]]
    assert sales[1]["place_of_supply"] == "Karnataka"

    purchases = repo.purchase_register("2025-10-01", "2025-10-31")
    assert [p["vendor_name"] for p in purchases] == ["Chennai Wholesale", "Bengaluru Distributors"]
    assert purchases[0]["taxable_amount"] == D("3000")

    (ret,) = repo.returns_register("2025-10-01", "2025-10-31")
    assert ret["invoice_number"] == "INV-202510-000001"


def test_month_range():
    assert month_range("2024-02") == ("2024-02-01", "2024-02-29")
    assert month_range("2025-12") == ("2025-12-01", "2025-12-31")
    for bad in ("2025-13", "oct", ""):
        with pytest.raises(ValidationError):
            month_range(bad)
