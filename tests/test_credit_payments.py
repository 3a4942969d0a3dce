from decimal import Decimal

import pytest

from angadi_pos.database.repositories import (
    CreditNotesRepo,
    CreditPaymentsRepo,
    InvoiceDraft,
    InvoiceLine,
    ReturnLine,
    SalesInvoicesRepo,
    SalesReturnsRepo,
)
from angadi_pos.errors import InvalidStateError, ValidationError

D = Decimal


@pytest.fixture()
def sales(conn):
    return SalesInvoicesRepo(conn, home_state="Tamil Nadu")


@pytest.fixture()
def credit_invoice(conn, ids, stock, sales):
    """Kumar owes 212 for two soaps."""
    stock(ids["soap"], "10")
    return sales.create_invoice(
        InvoiceDraft(
            customer_name="Kumar Stores",
            customer_id=ids["kumar"],
            payment_method="credit",
            invoice_date="2025-10-05",
            lines=[InvoiceLine(ids["soap"], D("2"), D("100"), D("10"))],
        )
    )


def test_outstanding_lists_credit_invoices(conn, ids, credit_invoice):
    ledger = CreditPaymentsRepo(conn)
    (row,) = ledger.list_outstanding()
    assert row["invoice_id"] == credit_invoice
    assert row["total_amount"] == D("212")
    assert row["paid_amount"] == D("0")
    assert row["pending_amount"] == D("212")
    assert ledger.list_outstanding(customer_id=ids["rao"]) == []


def test_partial_then_full_payment(conn, sales, credit_invoice):
    ledger = CreditPaymentsRepo(conn)

    ledger.record_payment(credit_invoice, "100", "upi", "2025-10-10", reference_number="UPI123")
    assert sales.get_invoice(credit_invoice)["payment_status"] == "partial"
    (row,) = ledger.list_outstanding()
    assert row["pending_amount"] == D("112")

    ledger.record_payment(credit_invoice, "112", "cash", "2025-10-20")
    assert sales.get_invoice(credit_invoice)["payment_status"] == "paid"
    assert ledger.list_outstanding() == []

    payments = ledger.payments_for(credit_invoice)
    assert [p["amount"] for p in payments] == [D("100"), D("112")]
    assert payments[0]["payment_number"] == "CP-202510-000001"
    # mirrored into the invoice's payment history
    assert [p["amount"] for p in sales.list_payments(credit_invoice)] == [D("100"), D("112")]


def test_amount_must_be_positive_and_within_pending(conn, credit_invoice):
    ledger = CreditPaymentsRepo(conn)
    with pytest.raises(ValidationError):
        ledger.record_payment(credit_invoice, "212.01")
    with pytest.raises(ValidationError):
        ledger.record_payment(credit_invoice, "0")
    with pytest.raises(ValidationError):
        ledger.record_payment(credit_invoice, "10", method="credit")
    assert ledger.payments_for(credit_invoice) == []


def test_paid_invoice_has_nothing_pending(conn, ids, stock, sales):
    stock(ids["milk"], "5")
    invoice_id = sales.create_invoice(
        InvoiceDraft(customer_name="Walk-in", lines=[InvoiceLine(ids["milk"], D("1"), D("27"))])
    )
    with pytest.raises(InvalidStateError):
        CreditPaymentsRepo(conn).record_payment(invoice_id, "1")


def _return_soap(conn, sales, invoice_id, qty, method="cash"):
    (line,) = sales.list_lines(invoice_id)
    returns = SalesReturnsRepo(conn, home_state="Tamil Nadu")
    return_id = returns.create_return(
        invoice_id, [ReturnLine(line["line_id"], D(qty))], method, return_date="2025-10-12"
    )
    return returns.process_return(return_id, refund_date="2025-10-12")


def test_full_return_of_unpaid_credit_sale_writes_off_the_receivable(conn, sales, credit_invoice):
    settlement = _return_soap(conn, sales, credit_invoice, "2")

    assert settlement.receivable_reduction == D("212")
    assert settlement.refund_amount == D("0")
    assert settlement.refund_payment_id is None
    assert sales.list_payments(credit_invoice) == []      # nothing was paid, nothing refunded
    inv = sales.get_invoice(credit_invoice)
    assert inv["returned_amount"] == D("212.4")
    assert inv["payment_status"] == "paid"
    assert CreditPaymentsRepo(conn).list_outstanding() == []


def test_partial_return_reduces_what_is_still_owed(conn, sales, credit_invoice):
    ledger = CreditPaymentsRepo(conn)
    ledger.record_payment(credit_invoice, "100", "cash", "2025-10-10")

    settlement = _return_soap(conn, sales, credit_invoice, "1")
    assert settlement.receivable_reduction == D("106.2")
    assert settlement.refund_amount == D("0")

    (row,) = ledger.list_outstanding()
    assert row["returned_amount"] == D("106.2")
    assert row["pending_amount"] == D("5.8")
    assert sales.get_invoice(credit_invoice)["payment_status"] == "partial"
    with pytest.raises(ValidationError):
        ledger.record_payment(credit_invoice, "10", "cash", "2025-10-15")

    ledger.record_payment(credit_invoice, "5.8", "cash", "2025-10-15")
    assert sales.get_invoice(credit_invoice)["payment_status"] == "paid"


def test_refund_is_capped_at_what_was_paid(conn, sales, credit_invoice):
    CreditPaymentsRepo(conn).record_payment(credit_invoice, "150", "upi", "2025-10-10")

    settlement = _return_soap(conn, sales, credit_invoice, "2")
    assert settlement.receivable_reduction == D("62")
    assert settlement.refund_amount == D("150")
    refunds = [p for p in sales.list_payments(credit_invoice) if p["amount"] < 0]
    assert [p["amount"] for p in refunds] == [D("-150")]
    assert sales.get_invoice(credit_invoice)["payment_status"] == "paid"


def test_store_credit_return_on_unpaid_credit_sale_issues_no_note(conn, ids, sales, credit_invoice):
    settlement = _return_soap(conn, sales, credit_invoice, "1", method="credit_note")
    assert settlement.credit_note_id is None
    assert CreditNotesRepo(conn).list_for_customer(ids["kumar"], active_only=False) == []
    (row,) = CreditPaymentsRepo(conn).list_outstanding()
    assert row["pending_amount"] == D("105.8")
