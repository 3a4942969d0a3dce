from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
import sqlite3
from typing import Optional

from ...errors import NotFoundError, ValidationError
from ...utils.validators import non_negative
from ..rows import dec
from ..transactions import immediate_tx

_COLUMNS = (
    "item_id, name, description, hsn_code, barcode, unit, gst_rate, mrp, "
    "retail_price, wholesale_price, discount_percent, min_stock_level, is_active"
)
_NUMERIC = ("gst_rate", "mrp", "retail_price", "wholesale_price", "discount_percent", "min_stock_level")


@dataclass
class Item:
    item_id: int | None
    name: str
    description: str | None = None
    hsn_code: str | None = None
    barcode: str | None = None
    unit: str = "pcs"
    gst_rate: Decimal = Decimal("0")
    mrp: Decimal = Decimal("0")
    retail_price: Decimal = Decimal("0")
    wholesale_price: Decimal = Decimal("0")
    discount_percent: Decimal = Decimal("0")
    min_stock_level: Decimal = Decimal("0")
    is_active: bool = True


def _to_item(r: sqlite3.Row) -> Item:
    d = {k: r[k] for k in r.keys()}
    for k in _NUMERIC:
        d[k] = dec(d[k])
    d["is_active"] = bool(d["is_active"])
    return Item(**d)


class ItemsRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    # ---- Internal helpers -------------------------------------------------

    @staticmethod
    def _clean(item: Item) -> dict:
        name = (item.name or "").strip()
        if not name:
            raise ValidationError("Item name cannot be empty.")
        values = {k: non_negative(getattr(item, k), k) for k in _NUMERIC}
        return {
            "name": name,
            "description": item.description,
            "hsn_code": (item.hsn_code or "").strip() or None,
            "barcode": (item.barcode or "").strip() or None,
            "unit": (item.unit or "pcs").strip(),
            **values,
            "is_active": 1 if item.is_active else 0,
        }

    # ---- Queries ----------------------------------------------------------

    def get(self, item_id: int) -> Item | None:
        r = self.conn.execute(
            f"SELECT {_COLUMNS} FROM items WHERE item_id=?", (item_id,)
        ).fetchone()
        return _to_item(r) if r else None

    def require(self, item_id: int) -> Item:
        item = self.get(item_id)
        if item is None:
            raise NotFoundError(f"Item {item_id} not found.")
        return item

    def list_items(self, active_only: bool = True) -> list[Item]:
        sql = f"SELECT {_COLUMNS} FROM items"
        if active_only:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY name"
        return [_to_item(r) for r in self.conn.execute(sql).fetchall()]

    def search(self, term: str, active_only: bool = True) -> list[Item]:
        """LIKE match on name, HSN code and barcode."""
        pattern = f"%{term.strip()}%"
        sql = (
            f"SELECT {_COLUMNS} FROM items "
            "WHERE (name LIKE ? OR hsn_code LIKE ? OR barcode LIKE ?)"
        )
        if active_only:
            sql += " AND is_active = 1"
        sql += " ORDER BY name"
        rows = self.conn.execute(sql, (pattern, pattern, pattern)).fetchall()
        return [_to_item(r) for r in rows]

    def find_by_barcode(self, barcode: str) -> Optional[Item]:
        r = self.conn.execute(
            f"SELECT {_COLUMNS} FROM items WHERE barcode = ? AND is_active = 1",
            (barcode.strip(),),
        ).fetchone()
        return _to_item(r) if r else None

    # ---- Mutations --------------------------------------------------------

    def create(self, item: Item) -> int:
        v = self._clean(item)
        with immediate_tx(self.conn):
            cur = self.conn.execute(
                """
                INSERT INTO items (
                    name, description, hsn_code, barcode, unit, gst_rate, mrp,
                    retail_price, wholesale_price, discount_percent,
                    min_stock_level, is_active
                ) VALUES (
                    :name, :description, :hsn_code, :barcode, :unit, :gst_rate, :mrp,
                    :retail_price, :wholesale_price, :discount_percent,
                    :min_stock_level, :is_active
                )
                """,
                v,
            )
            return int(cur.lastrowid)

    def update(self, item: Item) -> None:
        if not item.item_id:
            raise ValidationError("item_id required for update")
        v = self._clean(item)
        v["item_id"] = item.item_id
        with immediate_tx(self.conn):
            cur = self.conn.execute(
                """
                UPDATE items SET
                    name=:name, description=:description, hsn_code=:hsn_code,
                    barcode=:barcode, unit=:unit, gst_rate=:gst_rate, mrp=:mrp,
                    retail_price=:retail_price, wholesale_price=:wholesale_price,
                    discount_percent=:discount_percent,
                    min_stock_level=:min_stock_level, is_active=:is_active
                WHERE item_id=:item_id
                """,
                v,
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Item {item.item_id} not found.")

    def deactivate(self, item_id: int) -> None:
        """Soft delete; batches and history keep referencing the row."""
        with immediate_tx(self.conn):
            cur = self.conn.execute("UPDATE items SET is_active = 0 WHERE item_id = ?", (item_id,))
            if cur.rowcount == 0:
                raise NotFoundError(f"Item {item_id} not found.")
