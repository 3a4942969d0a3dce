"""
Credit notes: store credit issued against completed returns and redeemed on
later sales invoices.

A note is usable while status='active' and the usage date is on or before
its expiry_date. The balance never goes below zero (CHECK + trigger).
"""

from __future__ import annotations

from decimal import Decimal
import logging
import sqlite3
from typing import Optional, List, Dict

from ...constants import CREDIT_NOTE_VALIDITY_MONTHS, PREFIX_CREDIT_NOTE
from ...errors import InvalidStateError, NotFoundError, ValidationError
from ...utils.helpers import add_months, today_str
from ...utils.validators import strictly_positive
from ..rows import row_to_dict, rows_to_dicts
from ..sequences import next_document_number
from ..transactions import immediate_tx

_log = logging.getLogger(__name__)

_DECIMALS = ("amount", "used_amount", "balance_amount")


class CreditNotesRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ---------------------------------------------------------------------
    # READ
    # ---------------------------------------------------------------------
    def get(self, credit_note_id: int) -> Dict | None:
        r = self.conn.execute(
            "SELECT * FROM credit_notes WHERE credit_note_id = ?", (credit_note_id,)
        ).fetchone()
        return row_to_dict(r, _DECIMALS)

    def _require(self, credit_note_id: int) -> Dict:
        note = self.get(credit_note_id)
        if note is None:
            raise NotFoundError(f"Credit note {credit_note_id} not found.")
        return note

    def list_for_customer(
        self,
        customer_id: int,
        *,
        active_only: bool = True,
        as_of: Optional[str] = None,
    ) -> List[Dict]:
        """
        Notes for a customer, newest first. With active_only, only notes that
        are active, unexpired on `as_of` (default today) and carry a balance.
        """
        sql = "SELECT * FROM credit_notes WHERE customer_id = ?"
        params: list = [customer_id]
        if active_only:
            sql += " AND status = 'active' AND expiry_date >= ? AND CAST(balance_amount AS REAL) > 0"
            params.append(as_of or today_str())
        sql += " ORDER BY issue_date DESC, credit_note_id DESC"
        return rows_to_dicts(self.conn.execute(sql, params).fetchall(), _DECIMALS)

    def list_usage(self, credit_note_id: int) -> List[Dict]:
        rows = self.conn.execute(
            """
            SELECT u.*, si.invoice_number
            FROM credit_note_usage u
            JOIN sales_invoices si ON si.invoice_id = u.invoice_id
            WHERE u.credit_note_id = ?
            ORDER BY u.usage_date, u.usage_id
            """,
            (credit_note_id,),
        ).fetchall()
        return rows_to_dicts(rows, ("amount_used",))

    # ---------------------------------------------------------------------
    # WRITE
    # ---------------------------------------------------------------------
    def issue(
        self,
        customer_id: int,
        amount,
        *,
        issue_date: Optional[str] = None,
        return_id: Optional[int] = None,
        invoice_id: Optional[int] = None,
        notes: Optional[str] = None,
        validity_months: int = CREDIT_NOTE_VALIDITY_MONTHS,
    ) -> int:
        """Issue a new active note; expiry is issue_date + validity_months."""
        amt = strictly_positive(amount, "amount")
        issued = issue_date or today_str()
        with immediate_tx(self.conn):
            if self.conn.execute(
                "SELECT 1 FROM customers WHERE customer_id = ?", (customer_id,)
            ).fetchone() is None:
                raise NotFoundError(f"Customer {customer_id} not found.")
            number = next_document_number(self.conn, PREFIX_CREDIT_NOTE, issued)
            cur = self.conn.execute(
                """
                INSERT INTO credit_notes (
                    credit_note_number, return_id, invoice_id, customer_id,
                    issue_date, expiry_date, amount, used_amount,
                    balance_amount, status, notes
                ) VALUES (?,?,?,?,?,?,?,?,?, 'active', ?)
                """,
                (
                    number, return_id, invoice_id, customer_id,
                    issued, add_months(issued, validity_months), amt, Decimal("0"),
                    amt, notes,
                ),
            )
            credit_note_id = int(cur.lastrowid)
        _log.info("Issued credit note %s for %s to customer %s", number, amt, customer_id)
        return credit_note_id

    def apply_to_invoice(
        self,
        credit_note_id: int,
        invoice_id: int,
        amount,
        usage_date: Optional[str] = None,
        *,
        notes: Optional[str] = None,
    ) -> int:
        """
        Redeem `amount` of a note against an invoice. Returns the usage id.
        The note flips to 'used' once its balance reaches zero.
        """
        amt = strictly_positive(amount, "amount")
        on = usage_date or today_str()
        with immediate_tx(self.conn):
            note = self._require(credit_note_id)
            if note["status"] != "active":
                raise InvalidStateError(
                    f"Credit note {note['credit_note_number']} is {note['status']}."
                )
            if on > note["expiry_date"]:
                raise InvalidStateError(
                    f"Credit note {note['credit_note_number']} expired on {note['expiry_date']}."
                )
            balance = note["balance_amount"]
            if amt > balance:
                raise ValidationError(
                    f"Amount {amt} exceeds credit note balance {balance}."
                )
            cur = self.conn.execute(
                """
                INSERT INTO credit_note_usage (credit_note_id, invoice_id, usage_date, amount_used, notes)
                VALUES (?,?,?,?,?)
                """,
                (credit_note_id, invoice_id, on, amt, notes),
            )
            new_balance = balance - amt
            self.conn.execute(
                """
                UPDATE credit_notes
                   SET used_amount = ?, balance_amount = ?, status = ?
                 WHERE credit_note_id = ?
                """,
                (
                    note["used_amount"] + amt,
                    new_balance,
                    "used" if new_balance <= 0 else "active",
                    credit_note_id,
                ),
            )
            return int(cur.lastrowid)

    def expire_due(self, as_of: Optional[str] = None) -> int:
        """
        Mark active notes past their expiry date (and still carrying a
        balance) as 'expired'. Returns the number of notes changed.
        """
        on = as_of or today_str()
        with immediate_tx(self.conn):
            cur = self.conn.execute(
                """
                UPDATE credit_notes SET status = 'expired'
                 WHERE status = 'active'
                   AND expiry_date < ?
                   AND CAST(balance_amount AS REAL) > 0
                """,
                (on,),
            )
            changed = cur.rowcount
        if changed:
            _log.info("Expired %d credit note(s) as of %s", changed, on)
        return changed
