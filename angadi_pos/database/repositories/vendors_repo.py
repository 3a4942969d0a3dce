from __future__ import annotations
from dataclasses import dataclass
import sqlite3

from ...errors import NotFoundError, ValidationError
from ...utils.validators import is_valid_gstin

_COLUMNS = "vendor_id, name, phone, gstin, address, state, is_active"


@dataclass
class Vendor:
    vendor_id: int | None
    name: str
    phone: str | None = None
    gstin: str | None = None
    address: str | None = None
    state: str | None = None
    is_active: bool = True


class VendorsRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    @staticmethod
    def _to_vendor(r: sqlite3.Row) -> Vendor:
        d = {k: r[k] for k in r.keys()}
        d["is_active"] = bool(d["is_active"])
        return Vendor(**d)

    def list_vendors(self, active_only: bool = True) -> list[Vendor]:
        sql = f"SELECT {_COLUMNS} FROM vendors"
        if active_only:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY vendor_id DESC"
        return [self._to_vendor(r) for r in self.conn.execute(sql).fetchall()]

    def search(self, term: str) -> list[Vendor]:
        pattern = f"%{term.strip()}%"
        rows = self.conn.execute(
            f"SELECT {_COLUMNS} FROM vendors "
            "WHERE name LIKE ? OR phone LIKE ? OR gstin LIKE ? "
            "ORDER BY vendor_id DESC",
            (pattern, pattern, pattern),
        ).fetchall()
        return [self._to_vendor(r) for r in rows]

    def get(self, vendor_id: int) -> Vendor | None:
        r = self.conn.execute(
            f"SELECT {_COLUMNS} FROM vendors WHERE vendor_id=?", (vendor_id,)
        ).fetchone()
        return self._to_vendor(r) if r else None

    def require(self, vendor_id: int) -> Vendor:
        v = self.get(vendor_id)
        if v is None:
            raise NotFoundError(f"Vendor {vendor_id} not found.")
        return v

    def create(
        self,
        name: str,
        *,
        phone: str | None = None,
        gstin: str | None = None,
        address: str | None = None,
        state: str | None = None,
    ) -> int:
        if not name or not name.strip():
            raise ValidationError("Name cannot be empty.")
        if gstin:
            gstin = gstin.strip().upper()
            if not is_valid_gstin(gstin):
                raise ValidationError(f"Invalid GSTIN {gstin!r}.")
        with self.conn:
            cur = self.conn.execute(
                "INSERT INTO vendors(name, phone, gstin, address, state) VALUES (?,?,?,?,?)",
                (name.strip(), phone, gstin or None, address, state),
            )
            return int(cur.lastrowid)
