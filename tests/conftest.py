# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - Every test gets its own in-memory SQLite DB (schema applied by
#   get_connection), so no cross-test contamination.
# - conn.row_factory = sqlite3.Row, PRAGMA foreign_keys=ON
# - `ids` seeds a small catalog, two customers and two vendors
# - Home state is pinned to Tamil Nadu regardless of environment
# ---------------------------------------------------------------------

from __future__ import annotations

from decimal import Decimal
from typing import Optional

import pytest

from angadi_pos.database import get_connection
from angadi_pos.database.repositories import (
    CustomersRepo,
    InventoryRepo,
    Item,
    ItemsRepo,
    VendorsRepo,
)

HOME = "Tamil Nadu"


@pytest.fixture()
def conn():
    con = get_connection(":memory:")
    try:
        yield con
    finally:
        con.close()


@pytest.fixture()
def ids(conn):
    """Seed catalog + parties; returns their ids by short name."""
    items = ItemsRepo(conn)
    customers = CustomersRepo(conn)
    vendors = VendorsRepo(conn)
    return {
        "soap": items.create(Item(None, "Bath Soap", hsn_code="3401", barcode="8901001",
                                  gst_rate=Decimal("18"), retail_price=Decimal("100"),
                                  min_stock_level=Decimal("5"))),
        "rice": items.create(Item(None, "Ponni Rice 5kg", hsn_code="1006", barcode="8901002",
                                  unit="bag", gst_rate=Decimal("5"), retail_price=Decimal("350"))),
        "milk": items.create(Item(None, "Milk 500ml", hsn_code="0401", gst_rate=Decimal("0"),
                                  retail_price=Decimal("27"), min_stock_level=Decimal("20"))),
        "kumar": customers.create("Kumar Stores", phone="9876543210", state=HOME),
        "rao": customers.create("Rao Traders", phone="9123456780", state="Karnataka",
                                gstin="29ABCDE1234F1Z5", customer_type="b2b"),
        "chennai_vendor": vendors.create("Chennai Wholesale", state=HOME),
        "blr_vendor": vendors.create("Bengaluru Distributors", state="Karnataka"),
    }


@pytest.fixture()
def stock(conn):
    """stock(item_id, qty, expiry=None) -> batch_id; receives a normal batch."""
    inv = InventoryRepo(conn)

    def _add(item_id: int, quantity, expiry: Optional[str] = None) -> int:
        return inv.receive(item_id, quantity, purchase_rate=Decimal("60"), expiry_date=expiry)

    return _add
