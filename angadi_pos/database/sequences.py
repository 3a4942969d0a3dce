from __future__ import annotations

from datetime import date
import sqlite3


def next_document_number(conn: sqlite3.Connection, prefix: str, on_date: str | None = None) -> str:
    """
    Allocate the next number for a document prefix within its month:
    INV-202510-000001, INV-202510-000002, ...

    Must run inside the caller's write transaction so the increment and the
    document insert commit together.
    """
    period = (date.fromisoformat(on_date) if on_date else date.today()).strftime("%Y%m")
    conn.execute(
        """
        INSERT INTO document_sequences(prefix, period, last_value) VALUES (?, ?, 1)
        ON CONFLICT(prefix, period) DO UPDATE SET last_value = last_value + 1
        """,
        (prefix, period),
    )
    row = conn.execute(
        "SELECT last_value FROM document_sequences WHERE prefix=? AND period=?",
        (prefix, period),
    ).fetchone()
    return f"{prefix}-{period}-{int(row[0]):06d}"
