from decimal import Decimal
import sqlite3

import pytest

from angadi_pos.database.repositories import (
    CreditNotesRepo,
    InvoiceDraft,
    InvoiceLine,
    SalesInvoicesRepo,
)
from angadi_pos.errors import InvalidStateError, NotFoundError, ValidationError

D = Decimal


@pytest.fixture()
def notes(conn):
    return CreditNotesRepo(conn)


@pytest.fixture()
def invoice_id(conn, ids, stock):
    stock(ids["milk"], "10")
    return SalesInvoicesRepo(conn, home_state="Tamil Nadu").create_invoice(
        InvoiceDraft(
            customer_name="Kumar Stores",
            customer_id=ids["kumar"],
            payment_method="credit",
            invoice_date="2025-10-05",
            lines=[InvoiceLine(ids["milk"], D("4"), D("27"))],
        )
    )


def test_issue_sets_six_month_expiry(conn, ids, notes):
    cn = notes.issue(ids["kumar"], "250.50", issue_date="2025-08-31")
    note = notes.get(cn)
    assert note["credit_note_number"] == "CN-202508-000001"
    assert note["expiry_date"] == "2026-02-28"      # calendar-aware month end
    assert note["amount"] == D("250.50")
    assert note["used_amount"] == D("0")
    assert note["balance_amount"] == D("250.50")
    assert note["status"] == "active"


def test_issue_validation(ids, notes):
    with pytest.raises(ValidationError):
        notes.issue(ids["kumar"], 0)
    with pytest.raises(NotFoundError):
        notes.issue(31337, 10)


def test_partial_then_full_use(conn, ids, notes, invoice_id):
    cn = notes.issue(ids["kumar"], "100", issue_date="2025-10-01")

    notes.apply_to_invoice(cn, invoice_id, "60", "2025-10-05")
    note = notes.get(cn)
    assert note["balance_amount"] == D("40")
    assert note["used_amount"] == D("60")
    assert note["status"] == "active"

    notes.apply_to_invoice(cn, invoice_id, "40", "2025-10-06")
    note = notes.get(cn)
    assert note["balance_amount"] == D("0")
    assert note["status"] == "used"
    assert [u["amount_used"] for u in notes.list_usage(cn)] == [D("60"), D("40")]

    with pytest.raises(InvalidStateError):
        notes.apply_to_invoice(cn, invoice_id, "1", "2025-10-07")


def test_cannot_overdraw(conn, ids, notes, invoice_id):
    cn = notes.issue(ids["kumar"], "50", issue_date="2025-10-01")
    with pytest.raises(ValidationError):
        notes.apply_to_invoice(cn, invoice_id, "50.01", "2025-10-05")
    with pytest.raises(ValidationError):
        notes.apply_to_invoice(cn, invoice_id, "-5", "2025-10-05")
    assert notes.get(cn)["balance_amount"] == D("50")


def test_trigger_guards_direct_overdraw(conn, ids, notes, invoice_id):
    cn = notes.issue(ids["kumar"], "50", issue_date="2025-10-01")
    with pytest.raises(sqlite3.IntegrityError, match="exceeds balance"):
        conn.execute(
            "INSERT INTO credit_note_usage (credit_note_id, invoice_id, usage_date, amount_used) "
            "VALUES (?, ?, '2025-10-05', '75')",
            (cn, invoice_id),
        )


def test_expired_note_cannot_be_used(conn, ids, notes, invoice_id):
    cn = notes.issue(ids["kumar"], "100", issue_date="2025-01-01")   # expires 2025-07-01
    with pytest.raises(InvalidStateError):
        notes.apply_to_invoice(cn, invoice_id, "10", "2025-07-02")
    # the expiry day itself is still valid
    notes.apply_to_invoice(cn, invoice_id, "10", "2025-07-01")


def test_expire_due_and_listing(conn, ids, notes, invoice_id):
    old = notes.issue(ids["kumar"], "100", issue_date="2025-01-01")
    fresh = notes.issue(ids["kumar"], "30", issue_date="2025-09-01")
    other = notes.issue(ids["rao"], "80", issue_date="2025-01-01")

    active = notes.list_for_customer(ids["kumar"], as_of="2025-10-05")
    assert [n["credit_note_id"] for n in active] == [fresh]
    everything = notes.list_for_customer(ids["kumar"], active_only=False)
    assert [n["credit_note_id"] for n in everything] == [fresh, old]

    assert notes.expire_due(as_of="2025-10-05") == 2
    assert notes.get(old)["status"] == "expired"
    assert notes.get(other)["status"] == "expired"
    assert notes.get(fresh)["status"] == "active"
    assert notes.expire_due(as_of="2025-10-05") == 0
