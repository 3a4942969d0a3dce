from __future__ import annotations

from contextlib import contextmanager
import sqlite3


@contextmanager
def immediate_tx(conn: sqlite3.Connection):
    """
    Start an IMMEDIATE transaction (write lock taken up front), commit on
    success, rollback on error.

    If the connection is already inside a transaction the block joins it: the
    outermost caller owns commit/rollback, so a multi-step save (invoice
    header, lines, payments, stock) succeeds or fails as one unit.
    """
    if conn.in_transaction:
        yield conn
        return
    cur = conn.cursor()
    try:
        cur.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        cur.close()
