from decimal import Decimal
import json
import logging

import pytest

from angadi_pos.constants import SCHEMA_VERSION
from angadi_pos.database import get_connection
from angadi_pos.database.sequences import next_document_number
from angadi_pos.database.versioning import get_current_version
from angadi_pos.database.repositories import CustomersRepo, Item, ItemsRepo, VendorsRepo
from angadi_pos.errors import ValidationError
from angadi_pos.modules.payments.payment_utilities import calculations, status
from angadi_pos.utils.helpers import add_months, amount_in_words, fmt_money, number_to_words
from angadi_pos.utils.loggers import JsonLineFormatter, log_event
from angadi_pos.utils.validators import (
    is_strictly_positive_number,
    is_valid_phone,
    is_valid_pincode,
    non_negative,
    parse_decimal,
)

D = Decimal


@pytest.mark.parametrize(
    "n, words",
    [
        (0, "Zero"),
        (7, "Seven"),
        (15, "Fifteen"),
        (90, "Ninety"),
        (212, "Two Hundred Twelve"),
        (1005, "One Thousand Five"),
        (100000, "One Lakh"),
        (250075, "Two Lakh Fifty Thousand Seventy Five"),
        (12345678, "One Crore Twenty Three Lakh Forty Five Thousand Six Hundred Seventy Eight"),
    ],
)
def test_number_to_words_indian_system(n, words):
    assert number_to_words(n) == words


def test_amount_in_words_with_paise():
    assert amount_in_words("212.40") == "Two Hundred Twelve Rupees and Forty Paise Only"
    assert amount_in_words(D("1")) == "One Rupees Only"


def test_fmt_money():
    assert fmt_money(D("1234.5")) == "1,234.50"
    assert fmt_money("0.005") == "0.01"
    assert fmt_money("abc", sentinel="N/A") == "N/A"
    with pytest.raises(ValueError):
        fmt_money("abc", strict=True)


def test_add_months_clamps_to_month_end():
    assert add_months("2025-08-31", 6) == "2026-02-28"
    assert add_months("2025-10-05", 6) == "2026-04-05"


def test_numeric_validators():
    assert parse_decimal(" 12.50 ") == D("12.50")
    assert parse_decimal(0.1) == D("0.1")
    assert non_negative(0) == D("0")
    for bad in (True, None, "NaN", "Infinity", "x"):
        with pytest.raises(ValidationError):
            parse_decimal(bad)
    assert is_strictly_positive_number("0.01")
    assert not is_strictly_positive_number("0")


def test_party_validators():
    assert is_valid_phone("9876543210")
    assert not is_valid_phone("1234567890")
    assert is_valid_pincode("625001")
    assert not is_valid_pincode("025001")


def test_status_helpers():
    assert status.ensure_valid("order", " Confirmed ") == "confirmed"
    assert status.ensure_valid("purchase", "PAID") == "paid"
    assert status.normalize("   ") is None
    with pytest.raises(ValidationError):
        status.ensure_valid("credit_note", "void")


def test_credit_calculations():
    assert calculations.pending_amount(D("212"), D("250")) == D("0")
    assert calculations.project_invoice_after_payment(
        total_amount=D("212"), current_paid_amount=D("100"), new_payment_amount=D("112")
    ) == (D("212"), "paid")
    assert calculations.project_invoice_after_payment(
        total_amount=D("212"), current_paid_amount=D("0"), new_payment_amount=D("12")
    ) == (D("12"), "partial")
    assert calculations.pending_amount(D("212"), D("100"), returned_amount=D("106.2")) == D("5.8")


def test_return_settlement_split():
    # unpaid credit sale: everything is written off, nothing refunded
    assert calculations.split_return_settlement(
        return_total=D("212.4"), pending_before=D("212"), net_paid=D("0")
    ) == (D("212"), D("0"))
    # partly paid: owed part first, refund capped at what was paid
    assert calculations.split_return_settlement(
        return_total=D("212.4"), pending_before=D("62"), net_paid=D("150")
    ) == (D("62"), D("150"))
    # fully paid sale: plain refund
    assert calculations.split_return_settlement(
        return_total=D("106.2"), pending_before=D("0"), net_paid=D("580")
    ) == (D("0"), D("106.2"))


def test_purchase_status_from_paid():
    assert calculations.purchase_status_from_paid(D("1000"), D("0")) == "pending"
    assert calculations.purchase_status_from_paid(D("1000"), D("400")) == "partial"
    assert calculations.purchase_status_from_paid(D("1000"), D("1000")) == "paid"


def test_document_numbers_restart_each_month(conn):
    assert next_document_number(conn, "INV", "2025-10-31") == "INV-202510-000001"
    assert next_document_number(conn, "INV", "2025-10-01") == "INV-202510-000002"
    assert next_document_number(conn, "SO", "2025-10-01") == "SO-202510-000001"
    assert next_document_number(conn, "INV", "2025-11-01") == "INV-202511-000001"


def test_get_connection_is_idempotent(tmp_path):
    db = tmp_path / "nested" / "angadi.db"
    first = get_connection(db)
    try:
        ItemsRepo(first).create(Item(None, "Salt 1kg"))
        assert first.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        assert first.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
    finally:
        first.close()

    second = get_connection(db)
    try:
        assert [i.name for i in ItemsRepo(second).list_items()] == ["Salt 1kg"]
        assert get_current_version(second) == SCHEMA_VERSION
    finally:
        second.close()


def test_items_and_customers(conn, ids):
    items = ItemsRepo(conn)
    assert items.find_by_barcode("8901002").name == "Ponni Rice 5kg"
    assert [i.name for i in items.search("040")] == ["Milk 500ml"]

    soap = items.get(ids["soap"])
    soap.retail_price = D("95")
    items.update(soap)
    assert items.get(ids["soap"]).retail_price == D("95")

    items.deactivate(ids["milk"])
    assert ids["milk"] not in [i.item_id for i in items.list_items()]
    assert ids["milk"] in [i.item_id for i in items.list_items(active_only=False)]

    with pytest.raises(ValidationError):
        items.create(Item(None, "Bad", gst_rate=D("-5")))

    customers = CustomersRepo(conn)
    assert customers.get(ids["rao"]).gstin == "29ABCDE1234F1Z5"
    assert [c.name for c in customers.search("9123")] == ["Rao Traders"]
    with pytest.raises(ValidationError):
        customers.create("Bad GST", gstin="12345")


def test_log_event_json_line():
    logger = logging.getLogger("angadi_pos.test_events")
    records: list[logging.LogRecord] = []

    class _Collect(logging.Handler):
        def emit(self, record):
            records.append(record)

    handler = _Collect()
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    try:
        log_event(logger, "deduct", "commit", "deducted 3", {"item_id": 7, "op": "ignored"})
    finally:
        logger.removeHandler(handler)

    line = json.loads(JsonLineFormatter().format(records[0]))
    assert line["level"] == "INFO"
    assert line["name"] == "angadi_pos.test_events"
    assert line["msg"] == "deducted 3"
    assert line["extra"] == {"op": "deduct", "phase": "commit", "item_id": 7}
    assert line["ts"].endswith("Z")


def test_party_listings(conn, ids):
    assert [c.name for c in CustomersRepo(conn).list_customers()] == ["Rao Traders", "Kumar Stores"]
    vendors = VendorsRepo(conn)
    assert [v.name for v in vendors.list_vendors()] == ["Bengaluru Distributors", "Chennai Wholesale"]
    assert vendors.get(ids["blr_vendor"]).state == "Karnataka"
