from __future__ import annotations
from dataclasses import dataclass
import sqlite3

from ...errors import NotFoundError, ValidationError
from ...utils.validators import is_valid_gstin

_COLUMNS = "customer_id, name, phone, email, gstin, address, state, customer_type, is_active"


@dataclass
class Customer:
    customer_id: int | None
    name: str
    phone: str | None = None
    email: str | None = None
    gstin: str | None = None
    address: str | None = None
    state: str | None = None
    customer_type: str = "retail"
    is_active: bool = True


class CustomersRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ---- Internal helpers -------------------------------------------------

    @staticmethod
    def _normalize_text(s: str | None) -> str | None:
        if s is None:
            return None
        return s.strip() or None

    @staticmethod
    def _ensure_non_empty(value: str | None, field_label: str) -> None:
        if value is None or value.strip() == "":
            raise ValidationError(f"{field_label} cannot be empty.")

    @staticmethod
    def _to_customer(r: sqlite3.Row) -> Customer:
        d = {k: r[k] for k in r.keys()}
        d["is_active"] = bool(d["is_active"])
        return Customer(**d)

    # ---- Queries ----------------------------------------------------------

    def list_customers(self, active_only: bool = True) -> list[Customer]:
        """
        Returns customers. By default, only active rows (is_active=1).
        """
        sql = f"SELECT {_COLUMNS} FROM customers"
        if active_only:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY customer_id DESC"
        return [self._to_customer(r) for r in self.conn.execute(sql).fetchall()]

    def search(self, term: str, active_only: bool = True) -> list[Customer]:
        """
        LIKE match on name, phone and GSTIN.
        """
        pattern = f"%{term.strip()}%"
        sql = (
            f"SELECT {_COLUMNS} FROM customers "
            "WHERE (name LIKE ? OR phone LIKE ? OR gstin LIKE ?)"
        )
        if active_only:
            sql += " AND is_active = 1"
        sql += " ORDER BY customer_id DESC"
        rows = self.conn.execute(sql, (pattern, pattern, pattern)).fetchall()
        return [self._to_customer(r) for r in rows]

    def get(self, customer_id: int) -> Customer | None:
        r = self.conn.execute(
            f"SELECT {_COLUMNS} FROM customers WHERE customer_id=?", (customer_id,)
        ).fetchone()
        return self._to_customer(r) if r else None

    def require(self, customer_id: int) -> Customer:
        c = self.get(customer_id)
        if c is None:
            raise NotFoundError(f"Customer {customer_id} not found.")
        return c

    # ---- Mutations --------------------------------------------------------

    def create(
        self,
        name: str,
        *,
        phone: str | None = None,
        email: str | None = None,
        gstin: str | None = None,
        address: str | None = None,
        state: str | None = None,
        customer_type: str = "retail",
    ) -> int:
        self._ensure_non_empty(name, "Name")
        gstin_n = self._normalize_text(gstin)
        if gstin_n is not None:
            gstin_n = gstin_n.upper()
            if not is_valid_gstin(gstin_n):
                raise ValidationError(f"Invalid GSTIN {gstin_n!r}.")
        if customer_type not in ("retail", "wholesale", "b2b"):
            raise ValidationError("customer_type must be retail, wholesale or b2b.")

        with self.conn:
            cur = self.conn.execute(
                "INSERT INTO customers(name, phone, email, gstin, address, state, customer_type) "
                "VALUES (?,?,?,?,?,?,?)",
                (
                    self._normalize_text(name),
                    self._normalize_text(phone),
                    self._normalize_text(email),
                    gstin_n,
                    self._normalize_text(address),
                    self._normalize_text(state),
                    customer_type,
                ),
            )
            return int(cur.lastrowid)
