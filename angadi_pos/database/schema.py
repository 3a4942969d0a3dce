from pathlib import Path
import sqlite3
import sys

# Money and quantities are stored as exact decimal TEXT (str(Decimal)).
# CHECK constraints CAST to REAL only for sign guards.
SQL = r"""
PRAGMA foreign_keys = ON;

/* ======================== CORE TABLES ======================== */

/* -------- store (receipt header) -------- */
CREATE TABLE IF NOT EXISTS store_settings (
    store_id   INTEGER PRIMARY KEY CHECK (store_id = 1),
    store_name TEXT NOT NULL,
    gstin      TEXT,
    address    TEXT,
    city       TEXT,
    state      TEXT,
    state_code TEXT,
    pincode    TEXT,
    phone      TEXT,
    email      TEXT
);

/* -------- document numbering -------- */
CREATE TABLE IF NOT EXISTS document_sequences (
    prefix     TEXT NOT NULL,
    period     TEXT NOT NULL,               -- YYYYMM
    last_value INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (prefix, period)
);

/* -------- catalog -------- */
CREATE TABLE IF NOT EXISTS items (
    item_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name             TEXT NOT NULL,
    description      TEXT,
    hsn_code         TEXT,
    barcode          TEXT UNIQUE,
    unit             TEXT NOT NULL DEFAULT 'pcs',
    gst_rate         TEXT NOT NULL DEFAULT '0'  CHECK (CAST(gst_rate AS REAL) >= 0),
    mrp              TEXT NOT NULL DEFAULT '0'  CHECK (CAST(mrp AS REAL) >= 0),
    retail_price     TEXT NOT NULL DEFAULT '0'  CHECK (CAST(retail_price AS REAL) >= 0),
    wholesale_price  TEXT NOT NULL DEFAULT '0'  CHECK (CAST(wholesale_price AS REAL) >= 0),
    discount_percent TEXT NOT NULL DEFAULT '0'  CHECK (CAST(discount_percent AS REAL) >= 0),
    min_stock_level  TEXT NOT NULL DEFAULT '0'  CHECK (CAST(min_stock_level AS REAL) >= 0),
    is_active        INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1)),
    created_at       TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_items_name ON items(name);

/* -------- parties -------- */
CREATE TABLE IF NOT EXISTS customers (
    customer_id   INTEGER PRIMARY KEY AUTOINCREMENT,
    name          TEXT NOT NULL,
    phone         TEXT,
    email         TEXT,
    gstin         TEXT,
    address       TEXT,
    state         TEXT,
    customer_type TEXT NOT NULL DEFAULT 'retail' CHECK (customer_type IN ('retail','wholesale','b2b')),
    is_active     INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1))
);

CREATE TABLE IF NOT EXISTS vendors (
    vendor_id INTEGER PRIMARY KEY AUTOINCREMENT,
    name      TEXT NOT NULL,
    phone     TEXT,
    gstin     TEXT,
    address   TEXT,
    state     TEXT,
    is_active INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1))
);

/* -------- stock batches -------- */
CREATE TABLE IF NOT EXISTS inventory_batches (
    batch_id      INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id       INTEGER NOT NULL,
    batch_number  TEXT,
    quantity      TEXT NOT NULL CHECK (CAST(quantity AS REAL) >= 0),
    purchase_rate TEXT,
    expiry_date   DATE,
    status        TEXT NOT NULL DEFAULT 'normal' CHECK (status IN ('normal','returned')),
    source_type   TEXT NOT NULL DEFAULT 'purchase' CHECK (source_type IN ('purchase','return','opening')),
    source_id     TEXT,
    notes         TEXT,
    version       INTEGER NOT NULL DEFAULT 0,
    created_at    TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (item_id) REFERENCES items(item_id) ON DELETE RESTRICT
);
CREATE INDEX IF NOT EXISTS idx_batches_item ON inventory_batches(item_id);

/* -------- purchases -------- */
CREATE TABLE IF NOT EXISTS purchase_invoices (
    purchase_id               INTEGER PRIMARY KEY AUTOINCREMENT,
    record_number             TEXT UNIQUE NOT NULL,
    invoice_number            TEXT,
    vendor_id                 INTEGER,
    is_unregistered_vendor    INTEGER NOT NULL DEFAULT 0 CHECK (is_unregistered_vendor IN (0,1)),
    unregistered_vendor_name  TEXT,
    unregistered_vendor_phone TEXT,
    vendor_state              TEXT,
    invoice_date              DATE NOT NULL,
    received_date             DATE NOT NULL,
    subtotal                  TEXT NOT NULL,
    discount_amount           TEXT NOT NULL DEFAULT '0',
    cgst_amount               TEXT NOT NULL,
    sgst_amount               TEXT NOT NULL,
    igst_amount               TEXT NOT NULL,
    total_amount              TEXT NOT NULL,
    payment_status            TEXT NOT NULL CHECK (payment_status IN ('pending','partial','paid')),
    notes                     TEXT,
    created_at                TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (vendor_id) REFERENCES vendors(vendor_id),
    CHECK (vendor_id IS NOT NULL OR (is_unregistered_vendor = 1 AND unregistered_vendor_name IS NOT NULL))
);

CREATE TABLE IF NOT EXISTS purchase_invoice_items (
    line_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    purchase_id      INTEGER NOT NULL,
    item_id          INTEGER NOT NULL,
    batch_id         INTEGER,
    batch_number     TEXT,
    expiry_date      DATE,
    quantity         TEXT NOT NULL CHECK (CAST(quantity AS REAL) > 0),
    rate             TEXT NOT NULL,
    discount_percent TEXT NOT NULL DEFAULT '0',
    discount_amount  TEXT NOT NULL DEFAULT '0',
    taxable_amount   TEXT NOT NULL,
    gst_rate         TEXT NOT NULL,
    cgst_amount      TEXT NOT NULL,
    sgst_amount      TEXT NOT NULL,
    igst_amount      TEXT NOT NULL,
    total_amount     TEXT NOT NULL,
    FOREIGN KEY (purchase_id) REFERENCES purchase_invoices(purchase_id) ON DELETE CASCADE,
    FOREIGN KEY (item_id)     REFERENCES items(item_id),
    FOREIGN KEY (batch_id)    REFERENCES inventory_batches(batch_id)
);

/* vendor payments against purchase invoices; header status is rolled up by the repo */
CREATE TABLE IF NOT EXISTS purchase_payments (
    payment_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    payment_number   TEXT UNIQUE NOT NULL,
    purchase_id      INTEGER NOT NULL,
    payment_date     DATE NOT NULL,
    amount           TEXT NOT NULL CHECK (CAST(amount AS REAL) > 0),
    payment_method   TEXT NOT NULL,
    reference_number TEXT,
    notes            TEXT,
    created_at       TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (purchase_id) REFERENCES purchase_invoices(purchase_id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_purchase_payments_purchase ON purchase_payments(purchase_id);

/* -------- sales invoices -------- */
CREATE TABLE IF NOT EXISTS sales_invoices (
    invoice_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_number   TEXT UNIQUE NOT NULL,
    customer_id      INTEGER,
    customer_name    TEXT NOT NULL,
    customer_phone   TEXT,
    customer_gstin   TEXT,
    place_of_supply  TEXT,
    invoice_date     DATE NOT NULL,
    subtotal         TEXT NOT NULL,
    discount_amount  TEXT NOT NULL,
    taxable_amount   TEXT NOT NULL,
    cgst_amount      TEXT NOT NULL,
    sgst_amount      TEXT NOT NULL,
    igst_amount      TEXT NOT NULL,
    round_off        TEXT NOT NULL,
    total_amount     TEXT NOT NULL,
    returned_amount  TEXT NOT NULL DEFAULT '0',
    payment_method   TEXT NOT NULL,
    payment_status   TEXT NOT NULL CHECK (payment_status IN ('paid','credit','partial')),
    source_order_id  INTEGER,
    notes            TEXT,
    created_at       TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id)
);
CREATE INDEX IF NOT EXISTS idx_sales_invoices_date ON sales_invoices(invoice_date);

CREATE TABLE IF NOT EXISTS sales_invoice_items (
    line_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_id       INTEGER NOT NULL,
    item_id          INTEGER NOT NULL,
    quantity         TEXT NOT NULL CHECK (CAST(quantity AS REAL) > 0),
    rate             TEXT NOT NULL,
    discount_percent TEXT NOT NULL,
    discount_amount  TEXT NOT NULL,
    taxable_amount   TEXT NOT NULL,
    gst_rate         TEXT NOT NULL,
    cgst_amount      TEXT NOT NULL,
    sgst_amount      TEXT NOT NULL,
    igst_amount      TEXT NOT NULL,
    total_amount     TEXT NOT NULL,
    FOREIGN KEY (invoice_id) REFERENCES sales_invoices(invoice_id) ON DELETE CASCADE,
    FOREIGN KEY (item_id)    REFERENCES items(item_id)
);

/* amount < 0 for refunds */
CREATE TABLE IF NOT EXISTS sales_payments (
    payment_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    payment_number   TEXT NOT NULL,
    invoice_id       INTEGER NOT NULL,
    payment_date     DATE NOT NULL,
    amount           TEXT NOT NULL,
    payment_method   TEXT NOT NULL,
    reference_number TEXT,
    notes            TEXT,
    created_at       TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (invoice_id) REFERENCES sales_invoices(invoice_id) ON DELETE CASCADE
);

/* -------- sales orders -------- */
CREATE TABLE IF NOT EXISTS sales_orders (
    order_id             INTEGER PRIMARY KEY AUTOINCREMENT,
    order_number         TEXT UNIQUE NOT NULL,
    customer_id          INTEGER,
    customer_name        TEXT NOT NULL,
    customer_phone       TEXT,
    customer_gstin       TEXT,
    customer_state       TEXT,
    order_date           DATE NOT NULL,
    delivery_date        DATE,
    subtotal             TEXT NOT NULL,
    discount_amount      TEXT NOT NULL,
    taxable_amount       TEXT NOT NULL,
    cgst_amount          TEXT NOT NULL,
    sgst_amount          TEXT NOT NULL,
    igst_amount          TEXT NOT NULL,
    total_amount         TEXT NOT NULL,
    status               TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending','confirmed','converted')),
    converted_invoice_id INTEGER,
    notes                TEXT,
    created_at           TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (customer_id)          REFERENCES customers(customer_id),
    FOREIGN KEY (converted_invoice_id) REFERENCES sales_invoices(invoice_id)
);

CREATE TABLE IF NOT EXISTS sales_order_items (
    line_id          INTEGER PRIMARY KEY AUTOINCREMENT,
    order_id         INTEGER NOT NULL,
    item_id          INTEGER NOT NULL,
    quantity         TEXT NOT NULL CHECK (CAST(quantity AS REAL) > 0),
    rate             TEXT NOT NULL,
    discount_percent TEXT NOT NULL,
    gst_rate         TEXT NOT NULL,
    taxable_amount   TEXT NOT NULL,
    total_amount     TEXT NOT NULL,
    FOREIGN KEY (order_id) REFERENCES sales_orders(order_id) ON DELETE CASCADE,
    FOREIGN KEY (item_id)  REFERENCES items(item_id)
);

/* -------- returns -------- */
CREATE TABLE IF NOT EXISTS sales_returns (
    return_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    return_number   TEXT UNIQUE NOT NULL,
    invoice_id      INTEGER NOT NULL,
    customer_id     INTEGER,
    customer_name   TEXT,
    return_date     DATE NOT NULL,
    subtotal        TEXT NOT NULL,
    discount_amount TEXT NOT NULL,
    taxable_amount  TEXT NOT NULL,
    cgst_amount     TEXT NOT NULL,
    sgst_amount     TEXT NOT NULL,
    igst_amount     TEXT NOT NULL,
    total_amount    TEXT NOT NULL,
    refund_method   TEXT NOT NULL,
    refund_status   TEXT NOT NULL DEFAULT 'pending' CHECK (refund_status IN ('pending','completed','rejected')),
    refund_date     DATE,
    refund_amount   TEXT,
    is_restockable  INTEGER NOT NULL DEFAULT 1 CHECK (is_restockable IN (0,1)),
    notes           TEXT,
    created_at      TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (invoice_id)  REFERENCES sales_invoices(invoice_id),
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id)
);

CREATE TABLE IF NOT EXISTS sales_return_items (
    line_id            INTEGER PRIMARY KEY AUTOINCREMENT,
    return_id          INTEGER NOT NULL,
    invoice_line_id    INTEGER NOT NULL,
    item_id            INTEGER NOT NULL,
    quantity           TEXT NOT NULL CHECK (CAST(quantity AS REAL) > 0),
    rate               TEXT NOT NULL,
    discount_percent   TEXT NOT NULL,
    discount_amount    TEXT NOT NULL,
    taxable_amount     TEXT NOT NULL,
    gst_rate           TEXT NOT NULL,
    cgst_amount        TEXT NOT NULL,
    sgst_amount        TEXT NOT NULL,
    igst_amount        TEXT NOT NULL,
    total_amount       TEXT NOT NULL,
    is_restocked       INTEGER NOT NULL DEFAULT 0 CHECK (is_restocked IN (0,1)),
    restocked_batch_id INTEGER,
    restocked_at       TIMESTAMP,
    FOREIGN KEY (return_id)          REFERENCES sales_returns(return_id) ON DELETE CASCADE,
    FOREIGN KEY (invoice_line_id)    REFERENCES sales_invoice_items(line_id),
    FOREIGN KEY (restocked_batch_id) REFERENCES inventory_batches(batch_id)
);

/* -------- credit notes -------- */
CREATE TABLE IF NOT EXISTS credit_notes (
    credit_note_id     INTEGER PRIMARY KEY AUTOINCREMENT,
    credit_note_number TEXT UNIQUE NOT NULL,
    return_id          INTEGER,
    invoice_id         INTEGER,
    customer_id        INTEGER NOT NULL,
    issue_date         DATE NOT NULL,
    expiry_date        DATE NOT NULL,
    amount             TEXT NOT NULL CHECK (CAST(amount AS REAL) > 0),
    used_amount        TEXT NOT NULL DEFAULT '0',
    balance_amount     TEXT NOT NULL CHECK (CAST(balance_amount AS REAL) >= 0),
    status             TEXT NOT NULL DEFAULT 'active' CHECK (status IN ('active','used','expired','cancelled')),
    notes              TEXT,
    FOREIGN KEY (return_id)   REFERENCES sales_returns(return_id),
    FOREIGN KEY (invoice_id)  REFERENCES sales_invoices(invoice_id),
    FOREIGN KEY (customer_id) REFERENCES customers(customer_id)
);

CREATE TABLE IF NOT EXISTS credit_note_usage (
    usage_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    credit_note_id INTEGER NOT NULL,
    invoice_id     INTEGER NOT NULL,
    usage_date     DATE NOT NULL,
    amount_used    TEXT NOT NULL CHECK (CAST(amount_used AS REAL) > 0),
    notes          TEXT,
    FOREIGN KEY (credit_note_id) REFERENCES credit_notes(credit_note_id),
    FOREIGN KEY (invoice_id)     REFERENCES sales_invoices(invoice_id)
);

/* -------- credits ledger (collections against credit sales) -------- */
CREATE TABLE IF NOT EXISTS credit_payments (
    payment_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    payment_number   TEXT NOT NULL,
    invoice_id       INTEGER NOT NULL,
    payment_date     DATE NOT NULL,
    amount           TEXT NOT NULL CHECK (CAST(amount AS REAL) > 0),
    payment_method   TEXT NOT NULL,
    reference_number TEXT,
    notes            TEXT,
    FOREIGN KEY (invoice_id) REFERENCES sales_invoices(invoice_id)
);

/* ======================== TRIGGERS ======================== */

/* Guard: credit note usage can never exceed the note's balance */
DROP TRIGGER IF EXISTS trg_credit_note_no_overdraw;
CREATE TRIGGER trg_credit_note_no_overdraw
BEFORE INSERT ON credit_note_usage
FOR EACH ROW
BEGIN
  SELECT CASE
    WHEN CAST(NEW.amount_used AS REAL) >
         (SELECT CAST(balance_amount AS REAL) FROM credit_notes
           WHERE credit_note_id = NEW.credit_note_id) + 1e-9
    THEN RAISE(ABORT, 'Credit note usage exceeds balance')
    ELSE 1
  END;
END;

"""


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply the (idempotent) schema on an open connection."""
    conn.executescript(SQL)


def init_schema(db_path: Path | str = "angadi.db") -> None:
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path) as conn:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        apply_schema(conn)
        conn.commit()


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else Path.cwd() / "data" / "angadi.db"
    init_schema(target)
    print(f"✓ DB applied to {target}")
